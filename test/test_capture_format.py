"""Tests for capture format detection."""

from __future__ import annotations

import pytest

from capture_builders import I2C_CSV, digital_v0_chunk, digital_v1_file, legacy_header
from saleaetrace.core.binary_reader import SaleaeBinaryReader
from saleaetrace.core.capture_format import (
    SALEAE_BINARY,
    SALEAE_CSV,
    create_reader,
    guess_capture_format,
)
from saleaetrace.core.csv_reader import SaleaeCsvReader
from saleaetrace.core.trace_storage import TraceStorage


def test_detects_magic_binary() -> None:
    assert guess_capture_format(digital_v1_file(0, [0.5])) == SALEAE_BINARY


def test_detects_legacy_binary() -> None:
    assert guess_capture_format(legacy_header(0) + digital_v0_chunk(0, [])) == SALEAE_BINARY


def test_detects_csv_by_header() -> None:
    assert guess_capture_format(I2C_CSV) == SALEAE_CSV
    assert guess_capture_format(b'\xef\xbb\xbf"Name","Type","Start Time","Duration"\r\n') == SALEAE_CSV


def test_detects_csv_by_suffix() -> None:
    assert guess_capture_format(b"anything", "export.CSV") == SALEAE_CSV


def test_unknown_format() -> None:
    assert guess_capture_format(b"time,value\n0,1\n", "capture.txt") is None
    assert guess_capture_format(b"") is None


def test_create_reader() -> None:
    storage: TraceStorage = TraceStorage()
    assert isinstance(create_reader(SALEAE_BINARY, storage), SaleaeBinaryReader)
    assert isinstance(create_reader(SALEAE_CSV, storage), SaleaeCsvReader)
    with pytest.raises(ValueError):
        create_reader("vcd", storage)
