"""
Saleae binary export reader.

Accumulates the whole file, then decodes it in one pass on finish(). Three
on-disk layouts are supported:

    <SALEAE> magic, version 1:  int32 version, int32 type, int64 chunk_count,
                                then chunk_count chunks
    <SALEAE> magic, version 0:  int32 version, int32 type, then one chunk
    legacy (no magic):          int32 file_id (0x00002f00), int32 version (0),
                                int32 type, then one chunk

Type 0 carries digital transitions and type 1 carries analog waveforms. All
fields are little-endian.
"""

import logging
import struct
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import numpy as np

from .errors import (
    EmptyInputError,
    InvalidChunkCountError,
    InvalidDownsampleError,
    InvalidSampleRateError,
    InvalidTimestampError,
    InvalidTransitionCountError,
    TruncatedError,
    UnsupportedHeaderError,
    UnsupportedTypeError,
    UnsupportedVersionError,
)
from .timestamps import seconds_to_ns
from .trace_storage import (
    SALEAE_ANALOG_BLUEPRINT,
    SALEAE_DIGITAL_BLUEPRINT,
    EventSink,
    TrackId,
    TrackRegistry,
)

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

SALEAE_MAGIC = b'<SALEAE>'
SALEAE_V0_FILE_ID = 0x00002f00
SALEAE_VERSION_0 = 0
SALEAE_VERSION_1 = 1
SALEAE_DIGITAL_TYPE = 0
SALEAE_ANALOG_TYPE = 1

_MAGIC_HEADER = struct.Struct('<ii')             # version, type
_CHUNK_COUNT = struct.Struct('<q')
_LEGACY_HEADER = struct.Struct('<iii')           # file_id, version, type
_DIGITAL_V1 = struct.Struct('<idddq')            # initial_state, sample_rate, begin, end, n
_DIGITAL_V0 = struct.Struct('<IddQ')             # initial_state, begin, end, n
_ANALOG_V1_COUNT = struct.Struct('<Q')
_ANALOG_V1_WAVEFORM = struct.Struct('<dddqQ')    # begin, trigger, sample_rate, downsample, n
_ANALOG_V0 = struct.Struct('<dQQQ')              # begin, sample_rate, downsample, n

_F64 = np.dtype('<f8')
_F32 = np.dtype('<f4')


class DataType(Enum):
    DIGITAL = SALEAE_DIGITAL_TYPE
    ANALOG = SALEAE_ANALOG_TYPE


class ChunkLayout(Enum):
    """The four chunk decoders, selected by file version and data type."""
    DIGITAL_V0 = 'digital v0'
    DIGITAL_V1 = 'digital'
    ANALOG_V0 = 'analog v0'
    ANALOG_V1 = 'analog v1'


def chunk_layout(version: int, data_type: DataType) -> ChunkLayout:
    if version == SALEAE_VERSION_1:
        if data_type == DataType.DIGITAL:
            return ChunkLayout.DIGITAL_V1
        return ChunkLayout.ANALOG_V1
    if data_type == DataType.DIGITAL:
        return ChunkLayout.DIGITAL_V0
    return ChunkLayout.ANALOG_V0


@dataclass
class BinaryReaderStats:
    """Summary of a completed binary decode."""
    data_type: Optional[DataType] = None
    version: Optional[int] = None
    legacy_header: bool = False
    chunks: int = 0
    counters_emitted: int = 0


# ============================================================================
# READER
# ============================================================================

class SaleaeBinaryReader:
    """Decodes a Saleae binary export into counter samples on one track."""

    def __init__(self, registry: TrackRegistry, sink: EventSink):
        self.registry = registry
        self.sink = sink
        self._buffer = bytearray()
        self._pos = 0
        self._track_id: Optional[TrackId] = None
        self.data_type = DataType.DIGITAL
        self.stats = BinaryReaderStats()

    def feed(self, data: bytes) -> None:
        """Append a chunk of the file. Decoding is deferred until finish()."""
        self._buffer.extend(data)

    def finish(self) -> BinaryReaderStats:
        """
        Decode the accumulated buffer.

        Returns:
            Stats for the decoded file.

        Raises:
            SaleaeParseError: On any malformed or truncated input.
        """
        if not self._buffer:
            raise EmptyInputError()
        self._pos = 0
        self._parse_buffer()
        logger.info("Decoded Saleae %s capture: %d chunk(s), %d counter samples",
                    self.stats.data_type.name.lower(), self.stats.chunks,
                    self.stats.counters_emitted)
        return self.stats

    # ------------------------------------------------------------------------
    # Header parsing
    # ------------------------------------------------------------------------

    def _parse_buffer(self) -> None:
        if self._buffer.startswith(SALEAE_MAGIC):
            self._pos = len(SALEAE_MAGIC)
            version, raw_type = self._read(_MAGIC_HEADER, 'v1 header')
            self.data_type = self._parse_data_type(raw_type)
            self.stats.data_type = self.data_type
            self.stats.version = version

            if version == SALEAE_VERSION_1:
                chunk_count, = self._read(_CHUNK_COUNT, 'v1 header')
                if chunk_count < 0:
                    raise InvalidChunkCountError(chunk_count)
                logger.debug("Saleae v1 %s file with %d chunk(s)",
                             self.data_type.name.lower(), chunk_count)
                layout = chunk_layout(version, self.data_type)
                for _ in range(chunk_count):
                    self._parse_chunk(layout)
                return

            if version == SALEAE_VERSION_0:
                self._parse_chunk(chunk_layout(version, self.data_type))
                return

            raise UnsupportedVersionError(version)

        file_id, version, raw_type = self._read(_LEGACY_HEADER, 'v0 header')
        if (file_id & 0xFFFFFFFF) != SALEAE_V0_FILE_ID or version != SALEAE_VERSION_0:
            raise UnsupportedHeaderError(file_id, version)
        self.data_type = self._parse_data_type(raw_type)
        self.stats.data_type = self.data_type
        self.stats.version = version
        self.stats.legacy_header = True
        self._parse_chunk(chunk_layout(version, self.data_type))

    @staticmethod
    def _parse_data_type(raw_type: int) -> DataType:
        if raw_type == SALEAE_DIGITAL_TYPE:
            return DataType.DIGITAL
        if raw_type == SALEAE_ANALOG_TYPE:
            return DataType.ANALOG
        raise UnsupportedTypeError(raw_type)

    # ------------------------------------------------------------------------
    # Chunk decoders
    # ------------------------------------------------------------------------

    def _parse_chunk(self, layout: ChunkLayout) -> None:
        if layout == ChunkLayout.DIGITAL_V1:
            self._parse_digital_v1()
        elif layout == ChunkLayout.DIGITAL_V0:
            self._parse_digital_v0()
        elif layout == ChunkLayout.ANALOG_V1:
            self._parse_analog_v1()
        else:
            self._parse_analog_v0()
        self.stats.chunks += 1

    def _parse_digital_v1(self) -> None:
        initial_state, _sample_rate, begin_time, _end_time, num_transitions = \
            self._read(_DIGITAL_V1, 'digital chunk')
        if num_transitions < 0:
            raise InvalidTransitionCountError(num_transitions)
        transitions = self._read_array(_F64, num_transitions, 'digital transitions')
        self._emit_transitions('digital', initial_state, begin_time, transitions)

    def _parse_digital_v0(self) -> None:
        initial_state, begin_time, _end_time, num_transitions = \
            self._read(_DIGITAL_V0, 'digital v0 header')
        transitions = self._read_array(_F64, num_transitions, 'digital v0 transitions')
        self._emit_transitions('digital v0', initial_state, begin_time, transitions)

    def _parse_analog_v1(self) -> None:
        waveform_count, = self._read(_ANALOG_V1_COUNT, 'analog v1 header')
        track_id = self._get_track()

        for _ in range(waveform_count):
            begin_time, _trigger_time, sample_rate, downsample, num_samples = \
                self._read(_ANALOG_V1_WAVEFORM, 'analog v1 waveform')
            if not sample_rate > 0.0:
                raise InvalidSampleRateError('analog v1', sample_rate)
            if downsample <= 0:
                raise InvalidDownsampleError('analog v1', downsample)
            samples = self._read_array(_F32, num_samples, 'analog v1 samples')
            step = float(downsample) / sample_rate
            self._emit_waveform('analog v1', track_id, begin_time, step, samples)

    def _parse_analog_v0(self) -> None:
        begin_time, sample_rate, downsample, num_samples = \
            self._read(_ANALOG_V0, 'analog v0 header')
        if sample_rate == 0:
            raise InvalidSampleRateError('analog v0', sample_rate)
        if downsample == 0:
            raise InvalidDownsampleError('analog v0', downsample)
        samples = self._read_array(_F32, num_samples, 'analog v0 samples')
        track_id = self._get_track()
        step = float(downsample) / float(sample_rate)
        self._emit_waveform('analog v0', track_id, begin_time, step, samples)

    # ------------------------------------------------------------------------
    # Emission
    # ------------------------------------------------------------------------

    def _emit_transitions(self, stage: str, initial_state: int,
                          begin_time: float, transitions: np.ndarray) -> None:
        track_id = self._get_track()
        state = 1 if initial_state else 0
        self._push(stage, begin_time, state, track_id)
        for transition_time in transitions.tolist():
            state = 1 - state
            self._push(stage, transition_time, state, track_id)

    def _emit_waveform(self, stage: str, track_id: TrackId, begin_time: float,
                       step: float, samples: np.ndarray) -> None:
        # Timestamps are accumulated, not recomputed as begin + i * step.
        current_time = begin_time
        for sample in samples.astype(np.float64).tolist():
            self._push(stage, current_time, sample, track_id)
            current_time += step

    def _push(self, stage: str, seconds: float, value: float,
              track_id: TrackId) -> None:
        try:
            ts_ns = seconds_to_ns(seconds)
        except ValueError:
            raise InvalidTimestampError(stage, seconds) from None
        self.sink.push_counter(ts_ns, value, track_id)
        self.stats.counters_emitted += 1

    def _get_track(self) -> TrackId:
        if self._track_id is None:
            blueprint = (SALEAE_ANALOG_BLUEPRINT if self.data_type == DataType.ANALOG
                         else SALEAE_DIGITAL_BLUEPRINT)
            self._track_id = self.registry.create_or_get_track(blueprint)
        return self._track_id

    # ------------------------------------------------------------------------
    # Bounds-checked buffer access
    # ------------------------------------------------------------------------

    def _read(self, layout: struct.Struct, stage: str) -> tuple:
        if self._pos + layout.size > len(self._buffer):
            raise TruncatedError(stage)
        values = layout.unpack_from(self._buffer, self._pos)
        self._pos += layout.size
        return values

    def _read_array(self, dtype: np.dtype, count: int, stage: str) -> np.ndarray:
        if self._pos + count * dtype.itemsize > len(self._buffer):
            raise TruncatedError(stage)
        if count == 0:
            return np.empty(0, dtype=dtype)
        values = np.frombuffer(self._buffer, dtype=dtype, count=count,
                               offset=self._pos)
        self._pos += count * dtype.itemsize
        return values
