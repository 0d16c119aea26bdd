"""
Core ingestion functionality - feeds Saleae capture files through the readers.
Separated from CLI logic for automation and chaining.
"""

import logging
import os
import time
from dataclasses import asdict
from enum import Enum
from typing import Any, Dict, List, Optional

from .capture_format import (
    DETECT_HEAD_SIZE,
    SALEAE_BINARY,
    SALEAE_CSV,
    create_reader,
    guess_capture_format,
)
from .errors import SaleaeParseError
from .i2c_transactions import I2C_CATEGORY
from .interfaces import ToolConfig, ToolInterface, ToolResult
from .track_analysis import analyze_analog_track, analyze_digital_track, export_events_csv
from .trace_storage import TraceStorage

logger = logging.getLogger(__name__)

DEFAULT_CHUNK_SIZE = 64 * 1024

INPUT_FORMATS = {
    'auto': None,
    'binary': SALEAE_BINARY,
    'csv': SALEAE_CSV,
}

# Transaction names listed per track in the summary
MAX_LISTED_TRANSACTIONS = 20


class SaleaeIngester:
    """Reads capture files in chunks and pushes them through a reader."""

    def __init__(self, chunk_size: int = DEFAULT_CHUNK_SIZE,
                 input_format: Optional[str] = None):
        """
        Initialize the ingester.

        Args:
            chunk_size: Bytes handed to the reader per feed() call
            input_format: Force SALEAE_BINARY or SALEAE_CSV instead of detecting
        """
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        self.chunk_size = chunk_size
        self.input_format = input_format

    def ingest_file(self, path: str) -> Dict[str, Any]:
        """
        Ingest a single capture file.

        Args:
            path: Path to a Saleae binary or CSV export

        Returns:
            Summary dictionary with the reader stats and per-track results

        Raises:
            SaleaeParseError: If the capture is malformed
            ValueError: If the format cannot be detected
            OSError: If the file cannot be read
        """
        storage = TraceStorage()
        with open(path, 'rb') as f:
            head = f.read(DETECT_HEAD_SIZE)
            capture_format = self.input_format or guess_capture_format(head, path)
            if capture_format is None:
                raise ValueError(
                    f"Unrecognized capture format: {path}. "
                    f"Expected a Saleae binary or CSV export"
                )
            logger.info("Ingesting %s as %s", path, capture_format)

            reader = create_reader(capture_format, storage)
            for offset in range(0, len(head), self.chunk_size):
                reader.feed(head[offset:offset + self.chunk_size])
            size = len(head)
            for chunk in iter(lambda: f.read(self.chunk_size), b''):
                reader.feed(chunk)
                size += len(chunk)
            stats = reader.finish()

        return {
            'format': capture_format,
            'size_bytes': size,
            'reader': _plain(asdict(stats)),
            'total_counters': len(storage.counters),
            'total_slices': len(storage.slices),
            'tracks': self.summarize_tracks(storage),
            'storage': storage,
        }

    def summarize_tracks(self, storage: TraceStorage) -> List[Dict[str, Any]]:
        """Per-track event counts, time span and analysis."""
        summaries = []
        for track in storage.tracks:
            summary = {
                'id': track.id,
                'name': storage.get_string(track.name),
                'classification': track.classification,
            }

            if track.kind == 'counter':
                counters = storage.counters_for_track(track.id)
                timestamps = [row.ts for row in counters]
                values = [row.value for row in counters]
                summary['events'] = len(counters)
                if track.classification == 'saleae_digital':
                    summary['timing'] = analyze_digital_track(timestamps, values)
                else:
                    summary['analog'] = analyze_analog_track(values)
            else:
                slices = storage.slices_for_track(track.id)
                timestamps = [row.ts for row in slices]
                transactions = [storage.get_string(row.name) for row in slices
                                if storage.get_string(row.category) == I2C_CATEGORY]
                summary['events'] = len(slices)
                summary['transactions'] = len(transactions)
                if transactions:
                    summary['transaction_names'] = transactions[:MAX_LISTED_TRANSACTIONS]

            if timestamps:
                summary['first_ts_ns'] = min(timestamps)
                summary['last_ts_ns'] = max(timestamps)
            summaries.append(summary)
        return summaries


def _plain(value):
    """Replace enums with their names so results serialize cleanly."""
    if isinstance(value, Enum):
        return value.name.lower()
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


class SaleaeIngestTool(ToolInterface):
    """Saleae capture ingestion tool implementation."""

    @property
    def name(self) -> str:
        return "saleae-ingest"

    @property
    def description(self) -> str:
        return "Convert Saleae binary and CSV exports into tracks, counters and slices"

    def _failure(self, errors: List[str], start_time: float) -> ToolResult:
        return ToolResult(
            success=False,
            data=None,
            errors=errors,
            metadata={},
            execution_time=time.time() - start_time
        )

    def run(self, config: ToolConfig) -> ToolResult:
        """Execute ingestion for every input path."""
        start_time = time.time()

        input_format = config.custom_args.get('input_format') or 'auto'
        chunk_size = config.custom_args.get('chunk_size')
        if chunk_size is None:
            chunk_size = DEFAULT_CHUNK_SIZE
        export_path = config.custom_args.get('export_path')

        if input_format not in INPUT_FORMATS:
            return self._failure([f"Unknown input format: {input_format}"], start_time)

        if not config.input_paths:
            return self._failure(["No capture file(s) provided"], start_time)

        try:
            ingester = SaleaeIngester(chunk_size=chunk_size,
                                      input_format=INPUT_FORMATS[input_format])
        except ValueError as e:
            return self._failure([str(e)], start_time)

        all_results = {}
        storages = {}

        for input_path in config.input_paths:
            if not os.path.isfile(input_path):
                return self._failure([f"File not found: {input_path}"], start_time)

            try:
                file_results = ingester.ingest_file(input_path)
            except SaleaeParseError as e:
                logger.debug("Parse failure in %s", input_path, exc_info=True)
                return self._failure([f"{input_path}: {e}"], start_time)
            except (ValueError, OSError) as e:
                return self._failure([f"{input_path}: {e}"], start_time)
            except Exception as e:
                return self._failure([f"Ingestion failed: {str(e)}"], start_time)

            storages[input_path] = file_results.pop('storage')
            all_results[input_path] = file_results

        metadata = {
            'files_ingested': len(all_results),
            'input_format': input_format,
            'chunk_size': chunk_size,
            'total_counters': sum(r['total_counters'] for r in all_results.values()),
            'total_slices': sum(r['total_slices'] for r in all_results.values()),
        }

        if export_path:
            try:
                metadata['exported_rows'] = export_events_csv(storages, export_path)
                metadata['export_path'] = str(export_path)
            except OSError as e:
                return self._failure([f"Export failed: {e}"], start_time)

        return ToolResult(
            success=True,
            data=all_results,
            errors=[],
            metadata=metadata,
            execution_time=time.time() - start_time
        )
