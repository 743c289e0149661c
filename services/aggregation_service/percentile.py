"""
Order-statistic percentile used for every latency figure in a report.

Nearest rank over the sorted observations, with the two neighbouring
ranks averaged when p * n lands exactly on an integer:

    rank  = p * n
    index = ceil(rank)
    rank integral  -> (s[index] + s[index + 1]) / 2
    otherwise      -> s[index]

Indices are 0-based and clamped to the last element. That pins the
boundaries: p = 1.0 is the maximum, p = 0.0 is the mean of the two
smallest observations (the only one when n == 1).
"""

from __future__ import annotations

import math
from typing import Sequence

import numpy as np

from services.aggregation_service.errors import EmptyInputError


def percentile(p: float, xs: Sequence[float]) -> float:
    """
    Return the p-th percentile (p in [0, 1]) of xs.

    xs is copied before sorting; the caller's sequence keeps its order.
    Raises EmptyInputError on no observations, ValueError on p out of range.
    """
    if not 0.0 <= p <= 1.0:
        raise ValueError(f"percentile must be within [0, 1], got {p!r}")

    ordered = np.sort(np.asarray(xs, dtype=np.float64))
    n = ordered.size
    if n == 0:
        raise EmptyInputError("percentile of an empty collection")

    rank = p * n
    last = n - 1
    index = min(math.ceil(rank), last)

    if rank == math.floor(rank):
        upper = min(index + 1, last)
        return float((ordered[index] + ordered[upper]) / 2.0)

    return float(ordered[index])
