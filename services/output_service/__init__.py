"""
Output Service Package — hands finished results to storage.
"""

from services.output_service.registry import (
    OutputParams,
    available_extensions,
    create_output,
    get_extension,
    register_extension,
)
from services.output_service.compacted_json import CompactedJsonOutput

__all__ = [
    "CompactedJsonOutput",
    "OutputParams",
    "available_extensions",
    "create_output",
    "get_extension",
    "register_extension",
]
