"""
Dashboard: UI-agnostic controller for one dashboard canvas.

Owns (or is handed) a Widgetstore and tracks whether the dashboard has
unsaved changes. Rendering, drag-and-drop and file dialogs live elsewhere
and call into this class.
"""
from typing import Any, Dict, Optional
import logging
import uuid

from widgetstore.config import StoreConfig
from widgetstore.errors import WidgetstoreError
from widgetstore.notifier import ChangeSet
from widgetstore.records import WidgetInfo, WidgetPosition, create_widget_id
from widgetstore.store import PositionInput, WidgetInput, Widgetstore

logger = logging.getLogger(__name__)

DEFAULT_DASHBOARD_NAME = "Unnamed Dashboard"


class Dashboard:
    """A named canvas of cell-output widgets backed by a Widgetstore.

    The dirty flag is raised by a table listener on every committed change
    set (add, move, delete, undo and redo alike) and lowered by mark_saved().
    """

    def __init__(
        self,
        store: Optional[Widgetstore] = None,
        config: Optional[StoreConfig] = None,
        name: Optional[str] = None,
    ):
        self.store = store if store is not None else Widgetstore(config)
        self.id = f"JupyterDashboard-{uuid.uuid4()}"
        self._name = name or DEFAULT_DASHBOARD_NAME
        self._dirty = False
        self._subscription = self.store.listen_table(Widgetstore.WIDGET_SCHEMA, self._on_change)

    def _on_change(self, change: ChangeSet) -> None:
        self._dirty = True

    @property
    def name(self) -> str:
        return self._name

    @name.setter
    def name(self, value: str) -> None:
        self._name = value

    @property
    def dirty(self) -> bool:
        return self._dirty

    # ========== WIDGET OPERATIONS ==========

    def add_widget(self, info: WidgetInput) -> None:
        self.store.add_widget(info)

    def add_cell_output(
        self,
        notebook: Any,
        cell: Any,
        left: float = 0,
        top: float = 0,
        width: Optional[float] = None,
        height: Optional[float] = None,
    ) -> str:
        """Place the output of a live notebook cell on the canvas.

        Ids for the notebook and the cell come from the store's identity
        resolver; the widget id is freshly minted.

        Returns:
            The new widget id.

        Raises:
            WidgetstoreError: the store was configured without an identity resolver.
        """
        resolver = self.store.identity_resolver
        if resolver is None:
            raise WidgetstoreError(f"Store {self.store.id} has no identity resolver")

        widget_id = create_widget_id()
        self.store.add_widget({
            "widget_id": widget_id,
            "notebook_id": resolver.notebook_id(notebook),
            "cell_id": resolver.cell_id(cell),
            "left": left,
            "top": top,
            "width": width,
            "height": height,
        })
        return widget_id

    def move_widget(self, widget_id: str, pos: PositionInput) -> bool:
        """Move a widget. False if it isn't in the store or was removed."""
        return self.store.move_widget(widget_id, pos)

    def delete_widget(self, widget_id: str) -> bool:
        return self.store.delete_widget(widget_id)

    def undo(self) -> bool:
        return self.store.undo()

    def redo(self) -> bool:
        return self.store.redo()

    def widgets(self) -> Dict[str, WidgetPosition]:
        """Live widget id -> rectangle, for the rendering layer."""
        return {info.widget_id: info.position for info in self.store.iterate()}

    # ========== SAVE / LOAD ==========

    def mark_saved(self, compact: bool = False) -> None:
        """Record that the current state has been persisted externally.

        Args:
            compact: Also erase tombstones and drop the undo history.
        """
        self.store.mark_persisted()
        if compact:
            self.store.compact()
        self._dirty = False
        logger.info(f"Dashboard '{self._name}' marked saved")

    def to_dict(self) -> Dict[str, Any]:
        """Snapshot of all live records. The undo history is not included."""
        return {
            'name': self._name,
            'store_id': self.store.id,
            'widgets': [
                {k: v for k, v in info.to_dict().items() if k not in ('changed', 'removed')}
                for info in self.store.iterate()
            ],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], config: Optional[StoreConfig] = None) -> 'Dashboard':
        """Rebuild a dashboard from to_dict() output.

        The records are re-created with add_widget, then marked saved and the
        history dropped, so the loaded dashboard is clean with nothing to undo.
        """
        if config is None:
            config = StoreConfig(id=data.get('store_id', 0))
        dashboard = cls(config=config, name=data.get('name'))
        dashboard.store.add_widgets(WidgetInfo.from_dict(w) for w in data['widgets'])
        dashboard.store.clear_history()
        dashboard.mark_saved()
        logger.info(f"Dashboard '{dashboard.name}' loaded with {len(data['widgets'])} widget(s)")
        return dashboard

    def close(self) -> None:
        """Stop tracking store changes. Idempotent."""
        self._subscription.dispose()
