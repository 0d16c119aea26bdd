"""
Destination storage for ingested Saleae events.

Defines the collaborator interfaces the readers write into (string interning,
track registration and event emission) and an in-memory TraceStorage that
implements all three with append-only tables.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

StringId = int
TrackId = int


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class TrackBlueprint:
    """Describes a family of tracks sharing a classification."""
    classification: str
    kind: str                              # 'counter' or 'slice'
    dimension_name: Optional[str] = None   # e.g. 'analyzer'
    name: Optional[str] = None             # Static name, None if supplied per track


SALEAE_DIGITAL_BLUEPRINT = TrackBlueprint(
    classification='saleae_digital', kind='counter', name='Saleae Digital')
SALEAE_ANALOG_BLUEPRINT = TrackBlueprint(
    classification='saleae_analog', kind='counter', name='Saleae Analog')
SALEAE_CSV_BLUEPRINT = TrackBlueprint(
    classification='saleae_csv', kind='slice', dimension_name='analyzer')


@dataclass(frozen=True)
class ArgValue:
    """A slice argument value: either a boolean or an interned string."""
    type: str                       # 'bool' or 'string'
    value: Union[bool, StringId]

    @classmethod
    def boolean(cls, value: bool) -> 'ArgValue':
        return cls('bool', bool(value))

    @classmethod
    def string(cls, string_id: StringId) -> 'ArgValue':
        return cls('string', string_id)


@dataclass(frozen=True)
class Arg:
    key: StringId
    value: ArgValue


@dataclass
class Track:
    id: TrackId
    classification: str
    kind: str
    dimension: Optional[str]
    name: Optional[StringId]


@dataclass
class CounterRow:
    ts: int
    value: float
    track: TrackId


@dataclass
class SliceRow:
    ts: int
    dur: int
    track: TrackId
    category: Optional[StringId]
    name: StringId
    args: List[Arg] = field(default_factory=list)


# ============================================================================
# COLLABORATOR INTERFACES
# ============================================================================

class StringInterner(ABC):
    """Deduplicates text into small stable identifiers."""

    @abstractmethod
    def intern_string(self, text: str) -> StringId:
        pass


class TrackRegistry(ABC):
    """Creates or looks up tracks by blueprint and dimension."""

    @abstractmethod
    def create_or_get_track(self, blueprint: TrackBlueprint,
                            dimension: Optional[str] = None,
                            name: Optional[str] = None) -> TrackId:
        """
        Return the track for (blueprint, dimension), creating it if needed.

        Identical keys always return the same identifier. The name is only
        used when the track is created.
        """


class EventSink(ABC):
    """Appends counter samples and timed slices to tracks."""

    @abstractmethod
    def push_counter(self, ts_ns: int, value: float, track: TrackId) -> None:
        pass

    @abstractmethod
    def emit_slice(self, ts_ns: int, track: TrackId,
                   category: Optional[StringId], name: StringId,
                   duration_ns: int, args: List[Arg]) -> None:
        pass


# ============================================================================
# IN-MEMORY STORAGE
# ============================================================================

class TraceStorage(StringInterner, TrackRegistry, EventSink):
    """In-memory tables of strings, tracks, counters and slices."""

    def __init__(self):
        # Id 0 is reserved so that a null string id can be represented by None.
        self.strings: List[str] = ['']
        self._string_ids: Dict[str, StringId] = {}
        self.tracks: List[Track] = []
        self._track_ids: Dict[Tuple[str, Optional[str]], TrackId] = {}
        self.counters: List[CounterRow] = []
        self.slices: List[SliceRow] = []

    def intern_string(self, text: str) -> StringId:
        string_id = self._string_ids.get(text)
        if string_id is None:
            string_id = len(self.strings)
            self.strings.append(text)
            self._string_ids[text] = string_id
        return string_id

    def get_string(self, string_id: Optional[StringId]) -> Optional[str]:
        if string_id is None:
            return None
        return self.strings[string_id]

    def create_or_get_track(self, blueprint: TrackBlueprint,
                            dimension: Optional[str] = None,
                            name: Optional[str] = None) -> TrackId:
        key = (blueprint.classification, dimension)
        track_id = self._track_ids.get(key)
        if track_id is not None:
            return track_id

        track_name = name if name is not None else blueprint.name
        track_id = len(self.tracks)
        self.tracks.append(Track(
            id=track_id,
            classification=blueprint.classification,
            kind=blueprint.kind,
            dimension=dimension,
            name=self.intern_string(track_name) if track_name is not None else None,
        ))
        self._track_ids[key] = track_id
        logger.debug("Created %s track %d (%s)", blueprint.classification,
                     track_id, track_name)
        return track_id

    def push_counter(self, ts_ns: int, value: float, track: TrackId) -> None:
        self.counters.append(CounterRow(ts=ts_ns, value=value, track=track))

    def emit_slice(self, ts_ns: int, track: TrackId,
                   category: Optional[StringId], name: StringId,
                   duration_ns: int, args: List[Arg]) -> None:
        self.slices.append(SliceRow(
            ts=ts_ns,
            dur=duration_ns,
            track=track,
            category=category,
            name=name,
            args=list(args),
        ))

    def track_name(self, track: TrackId) -> Optional[str]:
        return self.get_string(self.tracks[track].name)

    def counters_for_track(self, track: TrackId) -> List[CounterRow]:
        return [row for row in self.counters if row.track == track]

    def slices_for_track(self, track: TrackId) -> List[SliceRow]:
        return [row for row in self.slices if row.track == track]

    def slice_args(self, row: SliceRow) -> Dict[str, Union[bool, str]]:
        """Resolve a slice's arguments to plain Python values keyed by name."""
        resolved = {}
        for arg in row.args:
            key = self.strings[arg.key]
            if arg.value.type == 'bool':
                resolved[key] = arg.value.value
            else:
                resolved[key] = self.strings[arg.value.value]
        return resolved
