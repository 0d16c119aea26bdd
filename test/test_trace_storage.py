"""Tests for the in-memory trace storage."""

from __future__ import annotations

from saleaetrace.core.trace_storage import (
    SALEAE_ANALOG_BLUEPRINT,
    SALEAE_CSV_BLUEPRINT,
    SALEAE_DIGITAL_BLUEPRINT,
    Arg,
    ArgValue,
    TraceStorage,
)


def test_intern_string_is_stable() -> None:
    """The same text always maps to the same id; id 0 is reserved."""
    storage: TraceStorage = TraceStorage()
    first: int = storage.intern_string("data")
    assert first != 0
    assert storage.intern_string("data") == first
    assert storage.intern_string("address") != first
    assert storage.get_string(first) == "data"
    assert storage.get_string(None) is None


def test_tracks_keyed_by_classification_and_dimension() -> None:
    storage: TraceStorage = TraceStorage()
    digital: int = storage.create_or_get_track(SALEAE_DIGITAL_BLUEPRINT)
    analog: int = storage.create_or_get_track(SALEAE_ANALOG_BLUEPRINT)
    i2c: int = storage.create_or_get_track(SALEAE_CSV_BLUEPRINT, "I2C", "Saleae CSV: I2C")
    spi: int = storage.create_or_get_track(SALEAE_CSV_BLUEPRINT, "SPI", "Saleae CSV: SPI")

    assert len({digital, analog, i2c, spi}) == 4
    assert storage.create_or_get_track(SALEAE_DIGITAL_BLUEPRINT) == digital
    assert storage.create_or_get_track(SALEAE_CSV_BLUEPRINT, "I2C", "ignored") == i2c
    assert storage.track_name(digital) == "Saleae Digital"
    assert storage.track_name(analog) == "Saleae Analog"
    assert storage.track_name(i2c) == "Saleae CSV: I2C"
    assert storage.tracks[spi].kind == "slice"
    assert storage.tracks[digital].kind == "counter"


def test_events_filtered_by_track() -> None:
    storage: TraceStorage = TraceStorage()
    a: int = storage.create_or_get_track(SALEAE_CSV_BLUEPRINT, "A", "Saleae CSV: A")
    b: int = storage.create_or_get_track(SALEAE_CSV_BLUEPRINT, "B", "Saleae CSV: B")
    name: int = storage.intern_string("event")
    storage.emit_slice(0, a, None, name, 1, [])
    storage.emit_slice(5, b, None, name, 1, [])
    storage.emit_slice(9, a, None, name, 1, [])

    assert [row.ts for row in storage.slices_for_track(a)] == [0, 9]
    assert [row.ts for row in storage.slices_for_track(b)] == [5]
    assert storage.counters_for_track(a) == []


def test_slice_args_resolution() -> None:
    """Bool values pass through and string values are resolved from ids."""
    storage: TraceStorage = TraceStorage()
    track: int = storage.create_or_get_track(SALEAE_CSV_BLUEPRINT, "I2C", "Saleae CSV: I2C")
    args = [
        Arg(storage.intern_string("ack"), ArgValue.boolean(False)),
        Arg(storage.intern_string("address"), ArgValue.string(storage.intern_string("0x20"))),
    ]
    storage.emit_slice(0, track, None, storage.intern_string("0x20"), 0, args)
    assert storage.slice_args(storage.slices[0]) == {"ack": False, "address": "0x20"}
