"""
Record types for the widget table.

Design Philosophy: data only
- Immutable records (frozen dataclass); a change produces a new record
- No references to notebooks, cells or rendering widgets, only their ids
- Direct attribute access, converted to/from plain dicts at the boundary
"""
from dataclasses import asdict, dataclass, replace
from typing import Any, Dict, Mapping
import uuid

from widgetstore.schema import WIDGET_SCHEMA

DEFAULT_WIDTH = 500
DEFAULT_HEIGHT = 250


def create_widget_id() -> str:
    """Mint a process-wide unique widget id."""
    return str(uuid.uuid4())


@dataclass(frozen=True)
class WidgetPosition:
    """Canvas-relative rectangle in pixels. left/top may be negative."""
    left: float
    top: float
    width: float
    height: float

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class WidgetInfo:
    """Placement record of one notebook cell output on the dashboard canvas.

    changed: True while the record has modifications not yet persisted.
    removed: soft-delete tombstone; the row stays for undo/redo.
    """
    widget_id: str
    notebook_id: str
    cell_id: str
    left: float = 0
    top: float = 0
    width: float = DEFAULT_WIDTH
    height: float = DEFAULT_HEIGHT
    changed: bool = False
    removed: bool = False

    @classmethod
    def shell(cls, widget_id: str) -> 'WidgetInfo':
        """Empty record a fresh id starts from before its creation is applied.

        A shell is a tombstone, so a table holding only shells yields nothing.
        """
        return cls(widget_id=widget_id, notebook_id="", cell_id="", removed=True)

    @property
    def position(self) -> WidgetPosition:
        return WidgetPosition(left=self.left, top=self.top, width=self.width, height=self.height)

    def with_changes(self, changes: Mapping[str, Any]) -> 'WidgetInfo':
        """Return a copy with the given fields replaced."""
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        """Export to JSON-serializable dict."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'WidgetInfo':
        """Import from dict (e.g. a saved dashboard snapshot).

        Raises:
            SchemaError: unknown key, wrong type or missing id.
        """
        WIDGET_SCHEMA.validate(data, partial=False)
        return cls(**data)
