"""
Saleae CSV decoder-output reader.

Parses the analyzer export line by line as data arrives. The first non-blank
line is the header; every following line becomes one slice on the track of
its analyzer (the "name" column). I2C rows are additionally grouped into
transactions, see i2c_transactions.py.
"""

import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from .errors import (
    EmptyHeaderError,
    InvalidNumericFieldError,
    MissingSchemaColumnsError,
    MissingStartTimeError,
)
from .i2c_transactions import (
    I2C_ANALYZER,
    I2C_CATEGORY,
    I2cTransaction,
    I2cTransactionTracker,
    parse_bool,
)
from .timestamps import seconds_to_ns
from .trace_storage import (
    SALEAE_CSV_BLUEPRINT,
    Arg,
    ArgValue,
    EventSink,
    StringInterner,
    TrackId,
    TrackRegistry,
)

logger = logging.getLogger(__name__)


# ============================================================================
# CONSTANTS
# ============================================================================

WHITESPACE = ' \t\n\r\v\f'
UTF8_BOM = '\ufeff'

TRACK_NAME_PREFIX = 'Saleae CSV: '
DEFAULT_ANALYZER = 'Unknown'
DEFAULT_TYPE = 'event'

# Lower-cased header name -> semantic role
COLUMN_ROLES = {
    'name': 'name',
    'type': 'type',
    'start_time': 'start_time',
    'start time': 'start_time',
    'duration': 'duration',
    'data': 'data',
    'address': 'address',
    'read': 'read',
}
REQUIRED_ROLES = ('name', 'type', 'start_time', 'duration')

# Categories kept from the row type; every other type has no category.
CATEGORY_TYPES = {'data', 'address'}

_NUMBER_PATTERN = re.compile(r'^[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?$')


# ============================================================================
# TOKENIZING
# ============================================================================

def parse_csv_line(line: str) -> List[str]:
    """
    Split a CSV line on commas, honoring double-quoted runs.

    Inside quotes commas are literal and "" is one quote character. Quotes
    may open and close anywhere within a field. There is no other escaping.
    """
    fields = []
    current = []
    in_quotes = False
    i = 0
    n = len(line)
    while i < n:
        c = line[i]
        if in_quotes:
            if c == '"':
                if i + 1 < n and line[i + 1] == '"':
                    current.append('"')
                    i += 1
                else:
                    in_quotes = False
            else:
                current.append(c)
        elif c == '"':
            in_quotes = True
        elif c == ',':
            fields.append(''.join(current))
            current = []
        else:
            current.append(c)
        i += 1
    fields.append(''.join(current))
    return fields


def trim(value: str) -> str:
    return value.strip(WHITESPACE)


def parse_seconds(column: str, text: str) -> float:
    """Parse a plain decimal seconds value, raising InvalidNumericFieldError."""
    if not _NUMBER_PATTERN.match(text):
        raise InvalidNumericFieldError(column, text)
    return float(text)


# ============================================================================
# DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True)
class ColumnSchema:
    """Header field names plus the column index of each recognized role."""
    columns: List[str]
    key_ids: List[int]
    roles: Dict[str, int]

    def index(self, role: str) -> Optional[int]:
        return self.roles.get(role)

    @property
    def structural_indices(self) -> set:
        return {self.roles[role] for role in REQUIRED_ROLES}


@dataclass
class CsvReaderStats:
    """Summary of a completed CSV parse."""
    rows: int = 0
    slices_emitted: int = 0
    transactions: int = 0
    analyzers: int = 0


# ============================================================================
# READER
# ============================================================================

class SaleaeCsvReader:
    """Turns Saleae analyzer CSV rows into slices, one track per analyzer."""

    def __init__(self, interner: StringInterner, registry: TrackRegistry,
                 sink: EventSink):
        self.interner = interner
        self.registry = registry
        self.sink = sink
        self._pending = bytearray()
        self.schema: Optional[ColumnSchema] = None
        self._track_ids: Dict[str, TrackId] = {}
        self.transactions = I2cTransactionTracker()
        self.stats = CsvReaderStats()

    def feed(self, data: bytes) -> None:
        """
        Append a chunk and parse every complete line now available.

        Raises:
            SaleaeParseError: If the header or a row is malformed.
        """
        self._pending.extend(data)
        start = 0
        try:
            while True:
                end = self._pending.find(b'\n', start)
                if end < 0:
                    break
                line = bytes(self._pending[start:end])
                start = end + 1
                self._parse_line(line)
        finally:
            del self._pending[:start]

    def finish(self) -> CsvReaderStats:
        """Parse any unterminated final line."""
        if self._pending:
            line = bytes(self._pending)
            self._pending.clear()
            self._parse_line(line)

        still_open = self.transactions.open_transactions()
        if still_open:
            logger.debug("I2C transaction(s) left open at end of file: %s",
                         ', '.join(still_open))
        self.stats.analyzers = len(self._track_ids)
        logger.info("Parsed Saleae CSV: %d rows, %d slices, %d I2C transactions",
                    self.stats.rows, self.stats.slices_emitted,
                    self.stats.transactions)
        return self.stats

    # ------------------------------------------------------------------------
    # Line handling
    # ------------------------------------------------------------------------

    def _parse_line(self, raw: bytes) -> None:
        line = raw.decode('utf-8', errors='replace')
        if line.endswith('\r'):
            line = line[:-1]
        if not trim(line):
            return
        if self.schema is None:
            self.schema = self._parse_header(line)
        else:
            self._parse_row(line)

    def _parse_header(self, line: str) -> ColumnSchema:
        fields = parse_csv_line(line)
        if not fields:
            raise EmptyHeaderError()

        columns = []
        key_ids = []
        roles = {}
        for i, raw_field in enumerate(fields):
            name = trim(raw_field)
            if i == 0 and name.startswith(UTF8_BOM):
                name = name[len(UTF8_BOM):]
            columns.append(name)
            key_ids.append(self.interner.intern_string(name))
            role = COLUMN_ROLES.get(name.lower())
            if role is not None:
                roles[role] = i

        missing = [role for role in REQUIRED_ROLES if role not in roles]
        if missing:
            raise MissingSchemaColumnsError(missing)

        logger.debug("Saleae CSV columns: %s", ', '.join(columns))
        return ColumnSchema(columns=columns, key_ids=key_ids, roles=roles)

    def _field(self, fields: List[str], role: str) -> Optional[str]:
        """Trimmed value of a role's column, None if the column is absent."""
        index = self.schema.index(role)
        if index is None:
            return None
        return trim(fields[index])

    def _parse_row(self, line: str) -> None:
        schema = self.schema
        fields = parse_csv_line(line)
        if len(fields) < len(schema.columns):
            fields.extend([''] * (len(schema.columns) - len(fields)))

        analyzer = self._field(fields, 'name') or DEFAULT_ANALYZER
        analyzer_lower = analyzer.lower()
        row_type = self._field(fields, 'type') or DEFAULT_TYPE
        type_lower = row_type.lower()

        start_text = self._field(fields, 'start_time')
        if not start_text:
            raise MissingStartTimeError()
        start_seconds = parse_seconds('start_time', start_text)

        duration_text = self._field(fields, 'duration')
        duration_seconds = 0.0
        if duration_text:
            duration_seconds = parse_seconds('duration', duration_text)

        try:
            ts_ns = seconds_to_ns(start_seconds)
        except ValueError:
            raise InvalidNumericFieldError('start_time', start_text) from None
        try:
            dur_ns = seconds_to_ns(duration_seconds)
        except ValueError:
            raise InvalidNumericFieldError('duration', duration_text) from None

        track_id = self._get_track(analyzer)

        data = self._field(fields, 'data')
        address = self._field(fields, 'address')
        event_name = data or address or row_type

        category = None
        if type_lower in CATEGORY_TYPES:
            category = self.interner.intern_string(type_lower)

        self.sink.emit_slice(ts_ns, track_id, category,
                             self.interner.intern_string(event_name), dur_ns,
                             self._row_args(fields))
        self.stats.rows += 1
        self.stats.slices_emitted += 1

        if analyzer_lower == I2C_ANALYZER:
            transaction = self.transactions.on_row(
                analyzer_lower, type_lower, ts_ns, dur_ns,
                address=address,
                read=self._field(fields, 'read'),
                data=data,
            )
            if transaction is not None:
                self._emit_transaction(track_id, transaction)

    def _row_args(self, fields: List[str]) -> List[Arg]:
        schema = self.schema
        structural = schema.structural_indices
        args = []
        for i, column in enumerate(schema.columns):
            if i in structural or not column:
                continue
            value = trim(fields[i])
            if not value:
                continue
            as_bool = parse_bool(value)
            if as_bool is not None:
                args.append(Arg(schema.key_ids[i], ArgValue.boolean(as_bool)))
            else:
                args.append(Arg(schema.key_ids[i],
                                ArgValue.string(self.interner.intern_string(value))))
        return args

    def _emit_transaction(self, track_id: TrackId,
                          transaction: I2cTransaction) -> None:
        args = [
            Arg(self.interner.intern_string(key),
                ArgValue.string(self.interner.intern_string(value)))
            for key, value in transaction.args().items()
        ]
        self.sink.emit_slice(transaction.ts_ns, track_id,
                             self.interner.intern_string(I2C_CATEGORY),
                             self.interner.intern_string(transaction.name),
                             transaction.duration_ns, args)
        self.stats.slices_emitted += 1
        self.stats.transactions += 1
        logger.debug("I2C transaction %s at %d ns", transaction.name,
                     transaction.ts_ns)

    def _get_track(self, analyzer: str) -> TrackId:
        track_id = self._track_ids.get(analyzer)
        if track_id is None:
            track_id = self.registry.create_or_get_track(
                SALEAE_CSV_BLUEPRINT, dimension=analyzer,
                name=TRACK_NAME_PREFIX + analyzer)
            self._track_ids[analyzer] = track_id
        return track_id
