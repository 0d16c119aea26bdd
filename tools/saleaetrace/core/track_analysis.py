"""
Summaries of ingested tracks.

Provides digital pulse timing statistics, analog value statistics, duration
formatting and a flat CSV export of everything a reader emitted.
"""

import csv
from pathlib import Path
from typing import List, Mapping, Sequence

import numpy as np

from .trace_storage import TraceStorage


def analyze_digital_track(timestamps_ns: Sequence[int],
                          values: Sequence[float]) -> dict:
    """
    Analyze timing characteristics of a digital counter track.

    Args:
        timestamps_ns: Sample timestamps in nanoseconds; the first sample is
            the initial state, every later one a transition.
        values: Logic level (0 or 1) at each timestamp.

    Returns:
        Dict with timing statistics, or {'error': msg} on failure.
    """
    if len(timestamps_ns) < 2:
        return {'error': 'Not enough transitions'}

    times = np.asarray(timestamps_ns, dtype=np.int64)
    levels = np.asarray(values, dtype=np.float64)
    durations_us = np.diff(times).astype(np.float64) / 1e3

    # Each duration is the time spent at the level of the sample that starts it
    starts_high = levels[:-1] != 0
    high_durations_us = durations_us[starts_high]
    low_durations_us = durations_us[~starts_high]

    return {
        'total_transitions': len(times) - 1,
        'signal_duration_s': float(times[-1] - times[0]) / 1e9,
        'initial_state': 'HIGH' if levels[0] else 'LOW',
        'all': _stats_us(durations_us),
        'high': dict(count=len(high_durations_us), **_stats_us(high_durations_us)),
        'low': dict(count=len(low_durations_us), **_stats_us(low_durations_us)),
    }


def _stats_us(durations_us: np.ndarray) -> dict:
    if len(durations_us) == 0:
        return {'min_us': 0, 'max_us': 0, 'mean_us': 0}
    return {
        'min_us': float(durations_us.min()),
        'max_us': float(durations_us.max()),
        'mean_us': float(durations_us.mean()),
    }


def analyze_analog_track(values: Sequence[float]) -> dict:
    """Min/max/mean/std of analog sample values."""
    if len(values) == 0:
        return {'error': 'No samples'}
    samples = np.asarray(values, dtype=np.float64)
    return {
        'samples': len(samples),
        'min': float(samples.min()),
        'max': float(samples.max()),
        'mean': float(samples.mean()),
        'std': float(samples.std()),
    }


def format_duration(us: float) -> str:
    """Format a duration in microseconds with appropriate units."""
    if us < 1000:
        return f"{us:.1f}us"
    elif us < 1000000:
        return f"{us/1000:.2f}ms"
    else:
        return f"{us/1e6:.3f}s"


EXPORT_COLUMNS: List[str] = ['file', 'kind', 'track', 'ts_ns', 'dur_ns', 'name', 'category', 'value']


def export_events_csv(storages: Mapping[str, TraceStorage], output_path) -> int:
    """
    Export every counter sample and slice to a CSV file.

    Args:
        storages: Ingested storage per source file.
        output_path: CSV file to write.

    Returns:
        Number of rows written.
    """
    output_path = Path(output_path)
    rows = 0
    with open(output_path, 'w', newline='') as f:
        writer = csv.writer(f)
        writer.writerow(EXPORT_COLUMNS)

        for source, storage in storages.items():
            rows += _write_storage(writer, source, storage)

    return rows


def _write_storage(writer, source: str, storage: TraceStorage) -> int:
    rows = 0
    for counter in storage.counters:
        writer.writerow([source, 'counter', storage.track_name(counter.track),
                         counter.ts, '', '', '', repr(float(counter.value))])
        rows += 1

    for row in storage.slices:
        writer.writerow([source, 'slice', storage.track_name(row.track), row.ts,
                         row.dur, storage.get_string(row.name),
                         storage.get_string(row.category) or '', ''])
        rows += 1

    return rows
