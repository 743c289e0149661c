"""
Output extension registry — name -> factory, like a test runner's --out flag.

Extensions register themselves when their module is imported; the
package __init__ imports the built-in ones.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from utils.logger import get_logger

_log = get_logger(__name__)


@dataclass(frozen=True)
class OutputParams:
    """What the host hands an extension: the argument after `--out name=`."""

    config_argument: str = ""


OutputFactory = Callable[[OutputParams], Any]

_extensions: Dict[str, OutputFactory] = {}
_lock = threading.Lock()


def register_extension(name: str, factory: OutputFactory) -> None:
    """Register an output factory. Names are unique for the process lifetime."""
    with _lock:
        if name in _extensions:
            raise ValueError(f"output extension {name!r} is already registered")
        _extensions[name] = factory
    _log.debug("output_extension_registered", name=name)


def get_extension(name: str) -> OutputFactory:
    with _lock:
        try:
            return _extensions[name]
        except KeyError:
            raise KeyError(f"unknown output extension {name!r}") from None


def available_extensions() -> List[str]:
    with _lock:
        return sorted(_extensions)


def create_output(name: str, params: OutputParams) -> Any:
    """Look up `name` and build an output instance from params."""
    return get_extension(name)(params)
