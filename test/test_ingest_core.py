"""Tests for the ingestion tool, its output formatter and the CLI."""

from __future__ import annotations

import csv
import json
import sys
from pathlib import Path

import pytest

from capture_builders import I2C_CSV, digital_v1_file, magic_header
from saleaetrace import saleaeingest as cli
from saleaetrace.core.ingest_core import SaleaeIngester, SaleaeIngestTool
from saleaetrace.core.interfaces import ToolConfig, ToolResult


@pytest.fixture
def digital_capture(tmp_path: Path) -> Path:
    path: Path = tmp_path / "digital_0.bin"
    path.write_bytes(digital_v1_file(0, [0.5, 1.0]))
    return path


@pytest.fixture
def i2c_capture(tmp_path: Path) -> Path:
    path: Path = tmp_path / "i2c_export.csv"
    path.write_bytes(I2C_CSV)
    return path


def _run(paths, **custom_args) -> ToolResult:
    config: ToolConfig = ToolConfig(
        tool_name="saleae-ingest",
        input_paths=[str(p) for p in paths],
        custom_args=custom_args,
    )
    return SaleaeIngestTool().run(config)


# ----------------------------------------------------------------------------
# Ingestion
# ----------------------------------------------------------------------------


def test_ingest_digital_capture(digital_capture: Path) -> None:
    result: ToolResult = _run([digital_capture])
    assert result.success, result.errors

    file_data: dict = result.data[str(digital_capture)]
    assert file_data["format"] == "saleae_binary"
    assert file_data["reader"]["data_type"] == "digital"
    assert file_data["reader"]["version"] == 1
    assert file_data["total_counters"] == 3

    track: dict = file_data["tracks"][0]
    assert track["name"] == "Saleae Digital"
    assert track["events"] == 3
    assert track["timing"]["total_transitions"] == 2
    assert track["first_ts_ns"] == 0
    assert track["last_ts_ns"] == 1_000_000_000


def test_ingest_i2c_capture(i2c_capture: Path) -> None:
    result: ToolResult = _run([i2c_capture])
    assert result.success, result.errors

    file_data: dict = result.data[str(i2c_capture)]
    assert file_data["format"] == "saleae_csv"
    assert file_data["total_slices"] == 7
    assert file_data["reader"]["transactions"] == 1

    i2c_track: dict = file_data["tracks"][0]
    assert i2c_track["name"] == "Saleae CSV: I2C"
    assert i2c_track["events"] == 6
    assert i2c_track["transaction_names"] == ["0x20 W: 0x01 0x02"]


def test_small_chunk_size_matches_default(digital_capture: Path, i2c_capture: Path) -> None:
    """Feeding seven bytes at a time gives the same summary."""
    default: ToolResult = _run([digital_capture, i2c_capture])
    small: ToolResult = _run([digital_capture, i2c_capture], chunk_size=7)
    assert small.success
    assert small.data == default.data
    assert small.metadata["chunk_size"] == 7
    assert small.metadata["files_ingested"] == 2
    assert small.metadata["total_counters"] == 3
    assert small.metadata["total_slices"] == 7


def test_forced_input_format(tmp_path: Path) -> None:
    """A CSV without the .csv suffix can be forced through the CSV reader."""
    path: Path = tmp_path / "export.txt"
    path.write_bytes(b"Analyzer,Kind,Start,Length\nSPI,data,0,0\n")
    assert not _run([path]).success

    result: ToolResult = _run([path], input_format="csv")
    assert not result.success
    assert "missing required columns" in result.errors[0].lower()


def test_export(tmp_path: Path, digital_capture: Path, i2c_capture: Path) -> None:
    export_path: Path = tmp_path / "events.csv"
    result: ToolResult = _run([digital_capture, i2c_capture], export_path=str(export_path))
    assert result.success
    assert result.metadata["exported_rows"] == 10

    with open(export_path, newline="") as f:
        rows = list(csv.DictReader(f))
    assert len(rows) == 10
    assert {row["file"] for row in rows} == {str(digital_capture), str(i2c_capture)}
    assert rows[-1]["name"] == "A"


# ----------------------------------------------------------------------------
# Failures
# ----------------------------------------------------------------------------


def test_missing_file(tmp_path: Path) -> None:
    result: ToolResult = _run([tmp_path / "nope.bin"])
    assert not result.success
    assert result.errors[0].startswith("File not found")


def test_no_inputs() -> None:
    assert not _run([]).success


def test_parse_error_reports_path(tmp_path: Path) -> None:
    path: Path = tmp_path / "bad.bin"
    path.write_bytes(magic_header(7, 0))
    result: ToolResult = _run([path])
    assert not result.success
    assert result.errors[0].startswith(str(path))
    assert "7" in result.errors[0]


def test_unrecognized_format(tmp_path: Path) -> None:
    path: Path = tmp_path / "notes.txt"
    path.write_bytes(b"hello world\n")
    result: ToolResult = _run([path])
    assert not result.success
    assert "Unrecognized capture format" in result.errors[0]


def test_invalid_options(digital_capture: Path) -> None:
    assert not _run([digital_capture], chunk_size=0).success
    assert not _run([digital_capture], input_format="vcd").success
    with pytest.raises(ValueError):
        SaleaeIngester(chunk_size=-1)


# ----------------------------------------------------------------------------
# Output formatting and CLI
# ----------------------------------------------------------------------------


def test_text_output(digital_capture: Path, i2c_capture: Path) -> None:
    result: ToolResult = _run([digital_capture, i2c_capture])
    text: str = cli.SaleaeIngestOutputFormatter().format_result(result, "text")
    assert "Saleae Digital" in text
    assert "I2C transactions: 1" in text
    assert "0x20 W: 0x01 0x02" in text
    assert "HIGH pulses (1)" in text


def test_quiet_output(i2c_capture: Path) -> None:
    result: ToolResult = _run([i2c_capture])
    quiet: str = cli.SaleaeIngestOutputFormatter().format_result(result, "quiet")
    assert quiet.splitlines() == [
        f"{i2c_capture}\tSaleae CSV: I2C\t6",
        f"{i2c_capture}\tSaleae CSV: Async Serial\t1",
    ]


def test_json_output(digital_capture: Path) -> None:
    result: ToolResult = _run([digital_capture])
    decoded: dict = json.loads(cli.SaleaeIngestOutputFormatter().format_result(result, "json"))
    assert decoded["success"] is True
    assert decoded["metadata"]["total_counters"] == 3


def test_cli_main(monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str],
                  i2c_capture: Path) -> None:
    monkeypatch.setattr(cli, "init", lambda: None)
    monkeypatch.setattr(sys, "argv", ["saleae-ingest", str(i2c_capture), "--format", "quiet"])
    assert cli.saleaeingest() == 0
    assert "Saleae CSV: Async Serial\t1" in capsys.readouterr().out


def test_cli_failure_exit_code(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr(cli, "init", lambda: None)
    monkeypatch.setattr(sys, "argv", ["saleae-ingest", str(tmp_path / "missing.bin")])
    assert cli.saleaeingest() == 1
