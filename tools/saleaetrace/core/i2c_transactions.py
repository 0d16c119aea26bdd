"""
I2C transaction reconstruction from Saleae CSV decoder rows.

The I2C analyzer exports one row per bus event (start, address, data, stop).
A transaction is assembled from a start...stop sequence on one analyzer and
reported once the stop row arrives.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional


I2C_ANALYZER = 'i2c'
I2C_CATEGORY = 'i2c'


@dataclass
class TransactionState:
    """In-progress transaction for one analyzer."""
    open: bool = False
    start_ts_ns: int = 0
    address: str = ''
    read: bool = False
    write_bytes: List[str] = field(default_factory=list)
    read_bytes: List[str] = field(default_factory=list)

    def reset(self, start_ts_ns: int) -> None:
        self.open = True
        self.start_ts_ns = start_ts_ns
        self.address = ''
        self.read = False
        self.write_bytes = []
        self.read_bytes = []


@dataclass
class I2cTransaction:
    """A completed transaction, ready to be emitted as a slice."""
    ts_ns: int
    duration_ns: int
    name: str
    address: str
    write_bytes: str
    read_bytes: str

    def args(self) -> Dict[str, str]:
        """Non-empty transaction arguments, in emission order."""
        values = {
            'address': self.address,
            'write_bytes': self.write_bytes,
            'read_bytes': self.read_bytes,
        }
        return {key: value for key, value in values.items() if value}


def build_transaction_name(state: TransactionState) -> str:
    """
    Build a display name like "0x20 W: 0x01 0x02 R: 0xff".

    Falls back to "i2c" when no address was seen.
    """
    name = state.address if state.address else I2C_ANALYZER
    if state.write_bytes:
        name += ' W:'
        for byte in state.write_bytes:
            name += ' ' + byte
    if state.read_bytes:
        name += ' R:'
        for byte in state.read_bytes:
            name += ' ' + byte
    return name


def parse_bool(text: str) -> Optional[bool]:
    """Return True/False for "true"/"false" in any case, None otherwise."""
    lower = text.lower()
    if lower == 'true':
        return True
    if lower == 'false':
        return False
    return None


class I2cTransactionTracker:
    """
    Per-analyzer state machine over I2C rows.

    A start while a transaction is already open is ignored, as are address
    and data rows outside a transaction and a stop with nothing open.
    """

    def __init__(self):
        self.states: Dict[str, TransactionState] = {}

    def on_row(self, analyzer_key: str, row_type: str, ts_ns: int,
               duration_ns: int, address: Optional[str] = None,
               read: Optional[str] = None,
               data: Optional[str] = None) -> Optional[I2cTransaction]:
        """
        Feed one I2C row.

        Args:
            analyzer_key: Lower-cased analyzer name.
            row_type: Lower-cased row type.
            ts_ns: Row start time in nanoseconds.
            duration_ns: Row duration in nanoseconds.
            address: Trimmed address column value, None if the column is absent.
            read: Trimmed read column value, None if the column is absent.
            data: Trimmed data column value, None if the column is absent.

        Returns:
            The completed transaction when a stop row closes one, else None.
        """
        state = self.states.get(analyzer_key)
        if state is None:
            state = TransactionState()
            self.states[analyzer_key] = state

        if row_type == 'start':
            if not state.open:
                state.reset(ts_ns)
        elif row_type == 'address':
            if state.open and address:
                state.address = address
            if state.open and read:
                is_read = parse_bool(read)
                if is_read is not None:
                    state.read = is_read
        elif row_type == 'data':
            if state.open and data:
                if state.read:
                    state.read_bytes.append(data)
                else:
                    state.write_bytes.append(data)
        elif row_type == 'stop':
            if state.open:
                return self._close(state, ts_ns + duration_ns)
        return None

    @staticmethod
    def _close(state: TransactionState, end_ts_ns: int) -> I2cTransaction:
        transaction = I2cTransaction(
            ts_ns=state.start_ts_ns,
            duration_ns=max(0, end_ts_ns - state.start_ts_ns),
            name=build_transaction_name(state),
            address=state.address,
            write_bytes=' '.join(state.write_bytes),
            read_bytes=' '.join(state.read_bytes),
        )
        state.open = False
        return transaction

    def open_transactions(self) -> List[str]:
        """Analyzer keys that still have a transaction open."""
        return sorted(key for key, state in self.states.items() if state.open)
