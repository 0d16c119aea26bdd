"""
Core ingestion functionality, separated from CLI logic for automation and chaining.
"""

from .binary_reader import SaleaeBinaryReader
from .csv_reader import SaleaeCsvReader
from .errors import SaleaeParseError
from .trace_storage import TraceStorage

__all__ = [
    'SaleaeBinaryReader',
    'SaleaeCsvReader',
    'SaleaeParseError',
    'TraceStorage',
]
