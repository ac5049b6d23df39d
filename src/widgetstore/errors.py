"""
Exception hierarchy for the widget placement store.

Two kinds of failure are NOT exceptions here:
- Moving or deleting an absent/removed widget returns False.
- Undo/redo with an empty history is a no-op.

Everything below is either a programmer error (schema, duplicate id,
reentrant mutation) or an internal invariant break.
"""
from enum import Enum
from typing import Any, Optional


class WidgetstoreError(Exception):
    """Base class for all widgetstore errors."""


class SchemaErrorKind(Enum):
    """Why a write was rejected by a table schema."""
    UNKNOWN_FIELD = "unknown_field"
    TYPE_MISMATCH = "type_mismatch"
    MISSING_FIELD = "missing_field"
    CONSTRAINT = "constraint"


class SchemaError(WidgetstoreError, ValueError):
    """A write does not match the table schema.

    Raised before any mutation happens, so the attempted transaction is
    aborted as a whole.
    """

    def __init__(self, kind: SchemaErrorKind, table: str, field: str, value: Any = None,
                 detail: Optional[str] = None):
        self.kind = kind
        self.table = table
        self.field = field
        self.value = value
        message = f"{kind.value}: {table}.{field}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class DuplicateWidgetError(WidgetstoreError, ValueError):
    """add_widget was called for a widget_id that already has a live record."""

    def __init__(self, widget_id: str):
        self.widget_id = widget_id
        super().__init__(f"Widget already exists: {widget_id}")


class ReentrancyError(WidgetstoreError, RuntimeError):
    """A mutating call re-entered the store during commit or change delivery."""


class InvariantViolation(WidgetstoreError, AssertionError):
    """Internal consistency break. Indicates a logic defect, never user input."""
