"""Tests for the Dashboard controller."""
import pytest

from conftest import make_info
from widgetstore import Dashboard, SchemaError, StoreConfig, WidgetPosition, Widgetstore, WidgetstoreError


class Notebook:
    pass


class Cell:
    pass


class TestDirtyTracking:
    """Test the dirty flag driven by store change sets."""

    def test_new_dashboard_is_clean(self):
        dashboard = Dashboard()
        assert dashboard.dirty is False
        assert dashboard.name == "Unnamed Dashboard"
        assert dashboard.id.startswith("JupyterDashboard-")

    @pytest.mark.parametrize("action", ["add", "move", "delete", "undo", "redo"])
    def test_every_committed_change_marks_dirty(self, action):
        dashboard = Dashboard()
        dashboard.add_widget(make_info())
        if action == "redo":
            dashboard.undo()
        dashboard.mark_saved()

        if action == "add":
            dashboard.add_widget(make_info("w2"))
        elif action == "move":
            dashboard.move_widget("w1", WidgetPosition(1, 2, 3, 4))
        elif action == "delete":
            dashboard.delete_widget("w1")
        elif action == "undo":
            dashboard.undo()
        else:
            dashboard.redo()

        assert dashboard.dirty is True

    def test_failed_operations_keep_clean(self):
        dashboard = Dashboard()
        assert dashboard.move_widget("missing", WidgetPosition(0, 0, 1, 1)) is False
        assert dashboard.delete_widget("missing") is False
        assert dashboard.undo() is False
        assert dashboard.dirty is False

    def test_mark_saved_clears_record_flags(self):
        dashboard = Dashboard()
        dashboard.add_widget(make_info())
        dashboard.mark_saved()
        assert dashboard.dirty is False
        assert dashboard.store.get("w1").changed is False

    def test_mark_saved_with_compaction(self):
        dashboard = Dashboard()
        dashboard.add_widget(make_info())
        dashboard.delete_widget("w1")
        dashboard.mark_saved(compact=True)
        assert dashboard.store.get("w1", include_removed=True) is None
        assert dashboard.undo() is False

    def test_close_stops_tracking(self):
        dashboard = Dashboard()
        dashboard.close()
        dashboard.close()
        dashboard.add_widget(make_info())
        assert dashboard.dirty is False

    def test_shared_store(self):
        store = Widgetstore()
        first, second = Dashboard(store=store), Dashboard(store=store)
        first.add_widget(make_info())
        assert second.dirty is True
        assert second.store is first.store


class TestAddCellOutput:
    """Test placing outputs from live notebook/cell objects."""

    def test_ids_from_resolver(self, resolver):
        dashboard = Dashboard(config=StoreConfig(identity_resolver=resolver))
        notebook, cell = Notebook(), Cell()

        widget_id = dashboard.add_cell_output(notebook, cell, left=15, top=25)
        record = dashboard.store.get(widget_id)
        assert record.notebook_id == resolver.notebook_id(notebook)
        assert record.cell_id == resolver.cell_id(cell)
        assert record.position == WidgetPosition(15, 25, Widgetstore.DEFAULT_WIDTH, Widgetstore.DEFAULT_HEIGHT)

    def test_same_cell_twice_gets_distinct_widgets(self, resolver):
        dashboard = Dashboard(config=StoreConfig(identity_resolver=resolver))
        notebook, cell = Notebook(), Cell()
        first = dashboard.add_cell_output(notebook, cell)
        second = dashboard.add_cell_output(notebook, cell)
        assert first != second
        assert len(dashboard.widgets()) == 2

    def test_requires_resolver(self):
        with pytest.raises(WidgetstoreError):
            Dashboard().add_cell_output(Notebook(), Cell())


class TestSnapshot:
    """Test to_dict()/from_dict()."""

    def test_only_live_records_exported(self):
        dashboard = Dashboard(name="Sales")
        dashboard.add_widget(make_info("a", left=1))
        dashboard.add_widget(make_info("b"))
        dashboard.delete_widget("b")

        data = dashboard.to_dict()
        assert data["name"] == "Sales"
        assert [w["widget_id"] for w in data["widgets"]] == ["a"]
        assert "changed" not in data["widgets"][0]

    def test_from_dict_is_clean_without_history(self):
        original = Dashboard(config=StoreConfig(id=7), name="Sales")
        original.add_widget(make_info("a", left=1, top=2, width=3, height=4))
        original.add_widget(make_info("b"))

        loaded = Dashboard.from_dict(original.to_dict())

        assert loaded.name == "Sales"
        assert loaded.store.id == 7
        assert loaded.dirty is False
        assert loaded.undo() is False
        assert loaded.widgets() == original.widgets()
        assert all(not row.changed for row in loaded.store.iterate())

    def test_from_dict_rejects_unknown_widget_keys(self):
        """A corrupted snapshot fails to load instead of dropping data."""
        data = {"name": "Sales", "store_id": 0, "widgets": [make_info("a", colour="red")]}
        with pytest.raises(SchemaError) as exc_info:
            Dashboard.from_dict(data)
        assert exc_info.value.field == "colour"

    def test_from_dict_rejects_missing_ids(self):
        data = {"name": "Sales", "store_id": 0, "widgets": [{"widget_id": "a", "notebook_id": "n1"}]}
        with pytest.raises(SchemaError):
            Dashboard.from_dict(data)
