"""
Widgetstore: transactional placement store for dashboard widgets.

Wraps the record table, the transaction log and the change notifier into
single-call operations. Every successful mutator commits exactly one
transaction: the table is written atomically, the transaction is logged
for undo, and subscribers receive the change set before the call returns.

Lifecycle of a record:
    absent -> live (changed=True) -> removed (tombstone)
    Every step is reversible through undo(); rows are only erased by compact().

Thread safety: Not thread-safe. All operations run to completion on the
calling thread and there is no suspension point inside a commit.
"""
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union
import logging

from widgetstore.config import IdentityResolver, StoreConfig
from widgetstore.errors import (
    DuplicateWidgetError,
    InvariantViolation,
    ReentrancyError,
    SchemaError,
    SchemaErrorKind,
)
from widgetstore.notifier import ChangeCallback, ChangeNotifier, ChangeSet, Subscription
from widgetstore.record_table import RecordTable
from widgetstore.records import DEFAULT_HEIGHT, DEFAULT_WIDTH, WidgetInfo, WidgetPosition
from widgetstore.schema import POSITION_FIELDS, TableSchema, WIDGET_SCHEMA
from widgetstore.transactions import FieldChange, Transaction, TransactionLog, TransactionSource

logger = logging.getLogger(__name__)

WidgetInput = Union[WidgetInfo, Mapping[str, Any]]
PositionInput = Union[WidgetPosition, Mapping[str, Any]]


class Widgetstore:
    """Schema-validated widget table with undo/redo and change notification.

    Example:
        store = Widgetstore(StoreConfig(id=0))
        store.listen_table(Widgetstore.WIDGET_SCHEMA, lambda change: print(change.record_ids))
        store.add_widget({"widget_id": "w1", "notebook_id": "n1", "cell_id": "c1"})
        store.move_widget("w1", WidgetPosition(left=10, top=20, width=100, height=50))
        store.undo()
    """

    WIDGET_SCHEMA = WIDGET_SCHEMA
    DEFAULT_WIDTH = DEFAULT_WIDTH
    DEFAULT_HEIGHT = DEFAULT_HEIGHT

    def __init__(self, config: Optional[StoreConfig] = None):
        self.config = config or StoreConfig()
        self._table = RecordTable(WIDGET_SCHEMA)
        self._log = TransactionLog(max_length=self.config.max_history)
        self._notifier = ChangeNotifier()
        self._seq: int = 0
        self._committing: bool = False

    @property
    def id(self) -> int:
        return self.config.id

    @property
    def identity_resolver(self) -> Optional[IdentityResolver]:
        return self.config.identity_resolver

    # ========== READ ACCESS ==========

    def get(self, widget_id: str, include_removed: bool = False) -> Optional[WidgetInfo]:
        """Get a record by id.

        Args:
            widget_id: Id of the widget.
            include_removed: Also return tombstoned records.

        Returns:
            The record, or None if absent (or removed, unless include_removed).
        """
        record = self._table.get(widget_id)
        if record is None or (record.removed and not include_removed):
            return None
        return record

    def iterate(self) -> Iterator[WidgetInfo]:
        """Lazily yield every live record. Each call starts a fresh pass."""
        return self._table.iterate()

    def __iter__(self) -> Iterator[WidgetInfo]:
        return self.iterate()

    @property
    def version(self) -> int:
        return self._table.version

    @property
    def can_undo(self) -> bool:
        return self._log.can_undo

    @property
    def can_redo(self) -> bool:
        return self._log.can_redo

    @property
    def history_length(self) -> int:
        return len(self._log)

    # ========== COMMIT MACHINERY ==========

    def _ensure_not_reentrant(self, operation: str) -> None:
        if self._committing:
            raise ReentrancyError(f"{operation}() called while a transaction is being committed")
        if self._notifier.dispatching:
            raise ReentrancyError(f"{operation}() called from inside a change listener")

    def _next_seq(self) -> int:
        self._seq += 1
        return self._seq

    def _diff(self, widget_id: str, updates: Mapping[str, Any]) -> List[FieldChange]:
        """Field changes turning the current row (or an empty shell) into updates."""
        current = self._table.get(widget_id) or WidgetInfo.shell(widget_id)
        return [
            FieldChange(widget_id, name, getattr(current, name), value)
            for name, value in updates.items()
        ]

    def _commit(self, transaction: Transaction) -> Transaction:
        """Apply, log (user transactions only) and publish one transaction."""
        self._committing = True
        try:
            self._table.apply_changes(transaction.changes)
            if transaction.source is TransactionSource.USER:
                self._log.commit(transaction)
        finally:
            self._committing = False

        logger.debug(
            f"TXN: seq={transaction.seq} source={transaction.source.value} label={transaction.label!r} "
            f"records={list(transaction.record_ids)} changes={len(transaction)}"
        )
        self._notifier.dispatch(ChangeSet.from_transaction(transaction))
        return transaction

    def _creation_updates(self, info: WidgetInput) -> Dict[str, Any]:
        """Validate a creation request and fill in defaults."""
        if isinstance(info, WidgetInfo):
            data = info.to_dict()
        else:
            data = {k: v for k, v in info.items() if v is not None}
        WIDGET_SCHEMA.validate(data, partial=False)

        widget_id = data["widget_id"]
        existing = self._table.get(widget_id)
        if existing is not None and not existing.removed:
            raise DuplicateWidgetError(widget_id)

        return {
            "widget_id": widget_id,
            "notebook_id": data["notebook_id"],
            "cell_id": data["cell_id"],
            "left": data.get("left", 0),
            "top": data.get("top", 0),
            "width": data.get("width", self.config.default_width),
            "height": data.get("height", self.config.default_height),
            "changed": True,
            "removed": False,
        }

    # ========== MUTATORS ==========

    def add_widget(self, info: WidgetInput) -> None:
        """Add a widget record in one transaction.

        left/top default to 0 and width/height to the configured defaults.
        The record starts with changed=True and removed=False. Any pending
        redo branch is discarded.

        Args:
            info: WidgetInfo or mapping with at least widget_id, notebook_id
                and cell_id. None values count as omitted.

        Raises:
            SchemaError: unknown field, wrong type, missing id or bad size.
            DuplicateWidgetError: the widget_id already has a live record.
        """
        self._ensure_not_reentrant("add_widget")
        updates = self._creation_updates(info)
        transaction = Transaction.create(
            self._next_seq(), WIDGET_SCHEMA.name,
            self._diff(updates["widget_id"], updates), label="add widget",
        )
        self._commit(transaction)

    def add_widgets(self, infos: Iterable[WidgetInput]) -> int:
        """Add several widgets as a single transaction (one undo step).

        Nothing is written if any record is invalid.

        Returns:
            Number of widgets added.
        """
        self._ensure_not_reentrant("add_widgets")
        changes: List[FieldChange] = []
        seen = set()
        for info in infos:
            updates = self._creation_updates(info)
            widget_id = updates["widget_id"]
            if widget_id in seen:
                raise DuplicateWidgetError(widget_id)
            seen.add(widget_id)
            changes.extend(self._diff(widget_id, updates))

        if not seen:
            return 0
        transaction = Transaction.create(
            self._next_seq(), WIDGET_SCHEMA.name, changes, label=f"add {len(seen)} widgets",
        )
        self._commit(transaction)
        return len(seen)

    def move_widget(self, widget_id: str, pos: PositionInput) -> bool:
        """Update the rectangle of a live widget.

        Args:
            widget_id: Id of the widget to move.
            pos: WidgetPosition, or a mapping with left/top/width/height.

        Returns:
            False (and no transaction) if the widget is absent or removed.

        Raises:
            SchemaError: the mapping has a missing or extra key, a coordinate is not a
                finite number or the size is not positive. The position is validated
                before the widget lookup, so a bad rectangle raises even for an absent
                widget.
        """
        self._ensure_not_reentrant("move_widget")
        if not isinstance(pos, WidgetPosition):
            for name in pos:
                if name not in POSITION_FIELDS:
                    raise SchemaError(SchemaErrorKind.UNKNOWN_FIELD, WIDGET_SCHEMA.name, name, pos[name],
                                      detail="only left/top/width/height can be moved")
            for name in POSITION_FIELDS:
                if name not in pos:
                    raise SchemaError(SchemaErrorKind.MISSING_FIELD, WIDGET_SCHEMA.name, name)
            pos = WidgetPosition(**{name: pos[name] for name in POSITION_FIELDS})
        updates: Dict[str, Any] = pos.to_dict()
        WIDGET_SCHEMA.validate(updates)

        if self.get(widget_id) is None:
            logger.warning(f"move_widget: no live widget {widget_id}")
            return False

        updates["changed"] = True
        transaction = Transaction.create(
            self._next_seq(), WIDGET_SCHEMA.name, self._diff(widget_id, updates), label="move widget",
        )
        self._commit(transaction)
        return True

    def delete_widget(self, widget_id: str) -> bool:
        """Mark a live widget as removed. The row is kept for undo.

        Returns:
            False (and no transaction) if the widget is absent or already removed.
        """
        self._ensure_not_reentrant("delete_widget")
        if self.get(widget_id) is None:
            logger.warning(f"delete_widget: no live widget {widget_id}")
            return False

        transaction = Transaction.create(
            self._next_seq(), WIDGET_SCHEMA.name,
            self._diff(widget_id, {"removed": True, "changed": True}), label="delete widget",
        )
        self._commit(transaction)
        return True

    # ========== UNDO / REDO ==========

    def _replay(self, transaction: Transaction, source: TransactionSource) -> None:
        """Apply a transaction pulled from the log without logging it again.

        Previous values are read from the table so the published change set
        reflects what was actually overwritten. Every touched record is
        flagged changed, since replaying is a mutation relative to the last
        persisted state.
        """
        targets: Dict[str, Dict[str, Any]] = {}
        for change in transaction.changes:
            if change.record_id not in self._table:
                raise InvariantViolation(
                    f"Transaction {transaction.seq} references missing record {change.record_id}"
                )
            targets.setdefault(change.record_id, {})[change.field] = change.new_value

        changes: List[FieldChange] = []
        for record_id, updates in targets.items():
            updates["changed"] = True
            changes.extend(self._diff(record_id, updates))

        replay = Transaction.create(
            self._next_seq(), transaction.table, changes,
            label=f"{source.value} {transaction.label}".strip(), source=source,
        )
        self._commit(replay)

    def undo(self) -> bool:
        """Revert the most recent applied transaction.

        Returns:
            False if there was nothing to undo (no-op).
        """
        self._ensure_not_reentrant("undo")
        transaction = self._log.undo()
        if transaction is None:
            return False
        self._replay(transaction, TransactionSource.UNDO)
        return True

    def redo(self) -> bool:
        """Re-apply the most recently undone transaction.

        Returns:
            False if there was nothing to redo (no-op).
        """
        self._ensure_not_reentrant("redo")
        transaction = self._log.redo()
        if transaction is None:
            return False
        self._replay(transaction, TransactionSource.REDO)
        return True

    # ========== NOTIFICATION ==========

    def listen_table(self, schema: Union[TableSchema, str], callback: ChangeCallback) -> Subscription:
        """Subscribe to every change set committed on a table.

        Args:
            schema: The table schema (or its name), e.g. Widgetstore.WIDGET_SCHEMA.
            callback: Receives one ChangeSet per committed transaction. It must
                not call a mutating store method (ReentrancyError).

        Returns:
            Subscription handle; call dispose() to unsubscribe.
        """
        table = schema if isinstance(schema, str) else schema.name
        return self._notifier.listen(table, callback)

    # ========== PERSISTENCE SUPPORT ==========

    def mark_persisted(self) -> int:
        """Clear the changed flag of every record after an external save.

        Bookkeeping only: not logged for undo and not published to listeners.

        Returns:
            Number of records whose flag was cleared.
        """
        self._ensure_not_reentrant("mark_persisted")
        changes = [
            FieldChange(row.widget_id, "changed", True, False)
            for row in self._table.all_rows() if row.changed
        ]
        if changes:
            self._table.apply_changes(changes)
        logger.info(f"PERSIST: store {self.id} cleared {len(changes)} changed flag(s)")
        return len(changes)

    def compact(self) -> int:
        """Erase tombstoned rows and drop the undo history.

        History has to go with the rows: logged transactions may reference
        the purged ids.

        Returns:
            Number of rows erased.
        """
        self._ensure_not_reentrant("compact")
        purged = self._table.purge([row.widget_id for row in self._table.all_rows() if row.removed])
        self._log.clear()
        logger.info(f"COMPACT: store {self.id} purged {purged} tombstone(s), history cleared")
        return purged

    def clear_history(self) -> None:
        """Forget all undo/redo history. The table is unchanged."""
        self._ensure_not_reentrant("clear_history")
        self._log.clear()
