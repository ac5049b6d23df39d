"""
Transactions and the undo/redo transaction log.

A transaction is the unit of undo: an ordered tuple of field-level changes,
each carrying both the previous and the new value so it can be replayed in
either direction. The log keeps committed transactions (not table
snapshots), so memory grows with the number of user actions rather than
with the canvas size.

Log layout (cursor = number of transactions currently applied):

    [t0, t1, t2, t3]
             ^ cursor=2   undo -> inverse of t1, redo -> t2
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple
import logging
import time

from widgetstore.errors import InvariantViolation

logger = logging.getLogger(__name__)


class TransactionSource(Enum):
    """Where a transaction came from. Only USER transactions are logged."""
    USER = "user"
    UNDO = "undo"
    REDO = "redo"


@dataclass(frozen=True)
class FieldChange:
    """One field write: record_id.field goes from previous_value to new_value."""
    record_id: str
    field: str
    previous_value: Any
    new_value: Any

    def inverted(self) -> 'FieldChange':
        return FieldChange(self.record_id, self.field, self.new_value, self.previous_value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'record_id': self.record_id,
            'field': self.field,
            'previous_value': self.previous_value,
            'new_value': self.new_value,
        }


@dataclass(frozen=True)
class Transaction:
    """Immutable, atomic set of field changes on one table."""
    seq: int
    table: str
    changes: Tuple[FieldChange, ...]
    source: TransactionSource = TransactionSource.USER
    label: str = ""
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def create(
        cls,
        seq: int,
        table: str,
        changes: List[FieldChange],
        label: str = "",
        source: TransactionSource = TransactionSource.USER,
    ) -> 'Transaction':
        """Create a transaction with the current timestamp."""
        return cls(seq=seq, table=table, changes=tuple(changes), source=source, label=label)

    @property
    def record_ids(self) -> Tuple[str, ...]:
        """Ids touched by this transaction, in first-touch order."""
        return tuple(dict.fromkeys(c.record_id for c in self.changes))

    def inverted(self) -> 'Transaction':
        """Same transaction with previous/new swapped and changes in reverse order."""
        return replace(self, changes=tuple(c.inverted() for c in reversed(self.changes)))

    def retagged(self, seq: int, source: TransactionSource) -> 'Transaction':
        """Copy carrying a new sequence number and source, stamped now."""
        return replace(self, seq=seq, source=source, timestamp=time.time())

    def to_dict(self) -> Dict[str, Any]:
        """Export to JSON-serializable dict."""
        return {
            'seq': self.seq,
            'table': self.table,
            'source': self.source.value,
            'label': self.label,
            'timestamp': self.timestamp,
            'changes': [c.to_dict() for c in self.changes],
        }

    def __len__(self) -> int:
        return len(self.changes)


class TransactionLog:
    """Linear undo/redo history with a cursor.

    Owned by exactly one store. Committing after an undo discards the redo
    branch. With max_length set, the oldest transactions are evicted once the
    cap is exceeded.
    """

    def __init__(self, max_length: Optional[int] = None):
        if max_length is not None and max_length <= 0:
            raise ValueError(f"max_length must be positive, got {max_length}")
        self.max_length = max_length
        self._entries: List[Transaction] = []
        self._cursor: int = 0

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def can_undo(self) -> bool:
        return self._cursor > 0

    @property
    def can_redo(self) -> bool:
        return self._cursor < len(self._entries)

    def _check_cursor(self) -> None:
        if not 0 <= self._cursor <= len(self._entries):
            raise InvariantViolation(
                f"Transaction log cursor {self._cursor} out of bounds [0, {len(self._entries)}]"
            )

    def commit(self, transaction: Transaction) -> None:
        """Append a user transaction at the cursor, truncating the redo branch."""
        if transaction.source is not TransactionSource.USER:
            raise InvariantViolation(
                f"Replayed transaction {transaction.seq} ({transaction.source.value}) must not be logged"
            )
        if self._entries and transaction.seq <= self._entries[-1].seq:
            raise InvariantViolation(
                f"Non-monotonic transaction seq {transaction.seq} after {self._entries[-1].seq}"
            )
        self._check_cursor()

        discarded = len(self._entries) - self._cursor
        if discarded:
            del self._entries[self._cursor:]
            logger.debug(f"LOG: discarded {discarded} redo transaction(s)")

        self._entries.append(transaction)
        self._cursor += 1

        if self.max_length is not None and len(self._entries) > self.max_length:
            evicted = len(self._entries) - self.max_length
            del self._entries[:evicted]
            self._cursor -= evicted
            logger.info(f"LOG: evicted {evicted} oldest transaction(s), cap={self.max_length}")

        self._check_cursor()

    def undo(self) -> Optional[Transaction]:
        """Step back. Returns the inverse of the transaction before the cursor, or None."""
        self._check_cursor()
        if self._cursor == 0:
            return None
        self._cursor -= 1
        transaction = self._entries[self._cursor]
        logger.debug(f"LOG: undo seq={transaction.seq}, cursor={self._cursor}")
        return transaction.inverted()

    def redo(self) -> Optional[Transaction]:
        """Step forward. Returns the transaction at the cursor, or None."""
        self._check_cursor()
        if self._cursor == len(self._entries):
            return None
        transaction = self._entries[self._cursor]
        self._cursor += 1
        logger.debug(f"LOG: redo seq={transaction.seq}, cursor={self._cursor}")
        return transaction

    def clear(self) -> None:
        self._entries.clear()
        self._cursor = 0

    def entries(self) -> List[Transaction]:
        """Committed transactions, oldest first (redo branch included)."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
