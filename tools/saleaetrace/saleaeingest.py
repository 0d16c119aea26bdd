#!/usr/bin/env python3
"""
saleae-ingest - Saleae capture ingestion.
Converts Saleae binary and CSV exports into tracks, counters and slices, and
summarizes what was decoded.
"""

import argparse
import logging
from colorama import init, Fore, Style
from .core.ingest_core import DEFAULT_CHUNK_SIZE, INPUT_FORMATS, SaleaeIngestTool
from .core.interfaces import ConfigBuilder, OutputFormatter, ToolResult
from .core.logger_config import setup_logger
from .core.track_analysis import format_duration


class SaleaeIngestOutputFormatter(OutputFormatter):
    """Custom output formatter for capture ingestion results."""

    def _format_text(self, result: ToolResult) -> str:
        """Format ingestion results as human-readable text."""
        if not result.success:
            return Fore.RED + "\n".join(result.errors) + Style.RESET_ALL

        if not result.data:
            return Fore.YELLOW + "No ingestion data available." + Style.RESET_ALL

        lines = []

        for file_path, file_data in result.data.items():
            lines.append(Fore.BLUE + f"File: {file_path}" + Style.RESET_ALL)
            lines.append("=" * 60)

            reader = file_data.get('reader', {})
            lines.append(Fore.CYAN + f"Format: {file_data.get('format')}" + Style.RESET_ALL)
            if reader.get('data_type'):
                header = "legacy" if reader.get('legacy_header') else "<SALEAE>"
                lines.append(f"Data type: {reader['data_type']} "
                             f"(version {reader.get('version')}, {header} header, "
                             f"{reader.get('chunks', 0)} chunk(s))")
            lines.append(Fore.GREEN + f"Counters: {file_data.get('total_counters', 0)}  "
                         f"Slices: {file_data.get('total_slices', 0)}" + Style.RESET_ALL)
            lines.append("")

            for track in file_data.get('tracks', []):
                lines.append(Fore.YELLOW + f"Track: {track['name']}" + Style.RESET_ALL +
                             f" ({track['events']} events)")
                if 'first_ts_ns' in track:
                    lines.append(f"  Span: {track['first_ts_ns']} .. {track['last_ts_ns']} ns")
                lines.extend(self._format_track_details(track))
                lines.append("")

        if 'export_path' in result.metadata:
            lines.append(Fore.GREEN + f"Exported {result.metadata['exported_rows']} rows "
                         f"to {result.metadata['export_path']}" + Style.RESET_ALL)

        return "\n".join(lines)

    def _format_track_details(self, track: dict) -> list:
        lines = []

        timing = track.get('timing')
        if timing:
            if 'error' in timing:
                lines.append(f"  Timing: {timing['error']}")
            else:
                a = timing['all']
                h = timing['high']
                lo = timing['low']
                lines.append(f"  Initial state: {timing['initial_state']}  "
                             f"Transitions: {timing['total_transitions']}")
                lines.append(f"  All durations:  min={format_duration(a['min_us'])}  "
                             f"max={format_duration(a['max_us'])}  "
                             f"mean={format_duration(a['mean_us'])}")
                lines.append(f"  HIGH pulses ({h['count']}): min={format_duration(h['min_us'])}  "
                             f"max={format_duration(h['max_us'])}  "
                             f"mean={format_duration(h['mean_us'])}")
                lines.append(f"  LOW gaps ({lo['count']}):   min={format_duration(lo['min_us'])}  "
                             f"max={format_duration(lo['max_us'])}  "
                             f"mean={format_duration(lo['mean_us'])}")

        analog = track.get('analog')
        if analog:
            if 'error' in analog:
                lines.append(f"  Analog: {analog['error']}")
            else:
                lines.append(f"  Samples: {analog['samples']}  min={analog['min']:.4g}  "
                             f"max={analog['max']:.4g}  mean={analog['mean']:.4g}  "
                             f"std={analog['std']:.4g}")

        if track.get('transactions'):
            lines.append(Fore.GREEN + f"  I2C transactions: {track['transactions']}" + Style.RESET_ALL)
            for name in track.get('transaction_names', []):
                lines.append(f"    {name}")

        return lines

    def _format_quiet(self, result: ToolResult) -> str:
        """Format result for quiet mode - one line per track."""
        if not result.success:
            return ""

        lines = []
        for file_path, file_data in result.data.items():
            for track in file_data.get('tracks', []):
                lines.append(f"{file_path}\t{track['name']}\t{track['events']}")

        return "\n".join(lines)


def saleaeingest():
    """Main CLI entry point for saleae-ingest."""
    parser = argparse.ArgumentParser(
        description="Convert Saleae binary and CSV exports into tracks, counters and slices.",
        epilog="Example: saleae-ingest digital_0.bin i2c_export.csv --export events.csv"
    )

    # Input
    parser.add_argument("capture_files", nargs='+',
                        help="Saleae binary (.bin) or CSV export file(s)")
    parser.add_argument("--input-format", dest="input_format",
                        choices=sorted(INPUT_FORMATS), default='auto',
                        help="Capture format (default: detect from content)")
    parser.add_argument("--chunk-size", dest="chunk_size", type=int,
                        default=DEFAULT_CHUNK_SIZE,
                        help=f"Bytes fed to the reader per call (default: {DEFAULT_CHUNK_SIZE})")

    # Output options
    parser.add_argument("--export", dest="export_path", metavar="CSV",
                        help="Export all decoded events to a CSV file")
    parser.add_argument("--format", choices=['text', 'json', 'quiet'], default='text',
                        help="Output format (default: text)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Enable verbose output")

    args = parser.parse_args()
    init()  # Initialize colorama

    setup_logger(level=logging.DEBUG if args.verbose else logging.WARNING)

    # Set paths attribute for ConfigBuilder compatibility
    args.paths = args.capture_files

    # Build configuration
    config = ConfigBuilder.from_args(args, 'saleae-ingest')

    # Add custom arguments
    config.custom_args.update({
        'input_format': args.input_format,
        'chunk_size': args.chunk_size,
        'export_path': args.export_path,
    })

    # Execute tool
    tool = SaleaeIngestTool()
    result = tool.run(config)

    # Format and output result
    formatter = SaleaeIngestOutputFormatter()
    output = formatter.format_result(result, config.output_format)
    if output:
        print(output)

    # Exit with appropriate code
    return 0 if result.success else 1


if __name__ == "__main__":
    import sys
    sys.exit(saleaeingest())
