"""
RecordTable: authoritative current value of every widget record.

The table is a pure projection of all committed transactions so far. It
knows nothing about transactions, history or listeners; it only applies
field-level change sets atomically.
"""
import logging
from typing import Any, Dict, Iterable, Iterator, List, Optional, Protocol, Tuple

from widgetstore.errors import SchemaError, SchemaErrorKind
from widgetstore.records import WidgetInfo
from widgetstore.schema import TableSchema, WIDGET_SCHEMA

logger = logging.getLogger(__name__)


class FieldWrite(Protocol):
    """Anything carrying a record id, a field name and the value to write."""
    record_id: str
    field: str
    new_value: Any


class RecordTable:
    """In-memory mapping widget_id -> latest WidgetInfo, versioned.

    Rows are never erased by apply_changes. A removed record stays as a
    tombstone (removed=True) until purge() is called by compaction.

    Thread safety: Not thread-safe (all operations expected on one thread).
    """

    def __init__(self, schema: TableSchema = WIDGET_SCHEMA):
        self.schema = schema
        self._rows: Dict[str, WidgetInfo] = {}
        self._version: int = 0

    @property
    def version(self) -> int:
        """Incremented once per applied change set."""
        return self._version

    def get(self, widget_id: str) -> Optional[WidgetInfo]:
        """Get a row by id, tombstones included. None if the id was never written."""
        return self._rows.get(widget_id)

    def apply_changes(self, changes: Iterable[FieldWrite]) -> None:
        """Write all changes as one atomic unit.

        Unknown ids start from an empty shell, so creating a record is just
        applying changes to a fresh id. Every change is validated and staged
        before any row is replaced; a failure leaves the table untouched.

        Raises:
            SchemaError: a change names an unknown field or has a bad value.
        """
        staged: Dict[str, Dict[str, Any]] = {}
        for change in changes:
            self.schema.validate_field(change.field, change.new_value)
            staged.setdefault(change.record_id, {})[change.field] = change.new_value

        new_rows: List[Tuple[str, WidgetInfo]] = []
        for record_id, updates in staged.items():
            base = self._rows.get(record_id) or WidgetInfo.shell(record_id)
            if updates.get("widget_id", record_id) != record_id:
                raise SchemaError(SchemaErrorKind.CONSTRAINT, self.schema.name, "widget_id",
                                  updates["widget_id"], detail="widget_id is immutable")
            new_rows.append((record_id, base.with_changes(updates)))

        for record_id, row in new_rows:
            self._rows[record_id] = row
        self._version += 1
        logger.debug(f"TABLE: applied {len(new_rows)} row update(s), version={self._version}")

    def iterate(self) -> Iterator[WidgetInfo]:
        """Lazily yield live records (removed=False) in insertion order.

        The rows are captured when iterate() is called: each call starts a new
        pass, and a pass is not affected by later table writes.
        """
        rows = tuple(self._rows.values())
        return (row for row in rows if not row.removed)

    def __iter__(self) -> Iterator[WidgetInfo]:
        return self.iterate()

    def all_rows(self) -> List[WidgetInfo]:
        """All rows including tombstones."""
        return list(self._rows.values())

    def purge(self, widget_ids: Iterable[str]) -> int:
        """Hard-delete rows. Used only by compaction.

        Returns:
            Number of rows deleted.
        """
        count = 0
        for widget_id in widget_ids:
            if self._rows.pop(widget_id, None) is not None:
                count += 1
        if count:
            self._version += 1
        return count

    def __contains__(self, widget_id: object) -> bool:
        return widget_id in self._rows

    def __len__(self) -> int:
        """Number of rows, tombstones included."""
        return len(self._rows)
