"""
Capture format detection and reader construction.
"""

import struct
from pathlib import Path
from typing import Optional, Union

from .binary_reader import SALEAE_MAGIC, SALEAE_V0_FILE_ID, SaleaeBinaryReader
from .csv_reader import COLUMN_ROLES, UTF8_BOM, SaleaeCsvReader, parse_csv_line, trim
from .trace_storage import TraceStorage

SALEAE_BINARY = 'saleae_binary'
SALEAE_CSV = 'saleae_csv'

# Enough to hold a header line of a typical analyzer export
DETECT_HEAD_SIZE = 4096

_LEGACY_FILE_ID = struct.pack('<I', SALEAE_V0_FILE_ID)


def guess_capture_format(head: bytes, path: Optional[Union[str, Path]] = None) -> Optional[str]:
    """
    Guess whether a file is a Saleae binary or CSV export.

    Args:
        head: The first bytes of the file.
        path: Optional file path, used for the .csv suffix.

    Returns:
        SALEAE_BINARY, SALEAE_CSV, or None if the format is not recognized.
    """
    if head.startswith(SALEAE_MAGIC) or head.startswith(_LEGACY_FILE_ID):
        return SALEAE_BINARY

    if path is not None and Path(path).suffix.lower() == '.csv':
        return SALEAE_CSV

    first_line = head.split(b'\n', 1)[0].decode('utf-8', errors='replace')
    if first_line.startswith(UTF8_BOM):
        first_line = first_line[len(UTF8_BOM):]
    roles = {COLUMN_ROLES.get(trim(name).lower()) for name in parse_csv_line(first_line)}
    if {'name', 'type', 'start_time'} <= roles:
        return SALEAE_CSV
    return None


def create_reader(capture_format: str, storage: TraceStorage):
    """Build the reader for a detected format, writing into storage."""
    if capture_format == SALEAE_BINARY:
        return SaleaeBinaryReader(storage, storage)
    if capture_format == SALEAE_CSV:
        return SaleaeCsvReader(storage, storage, storage)
    raise ValueError(f"Unknown capture format: {capture_format}")
