"""Pytest configuration and shared fixtures."""
import pytest
from typing import Any, Dict, List

from widgetstore import ChangeSet, StoreConfig, Widgetstore


class FakeIdentityResolver:
    """Resolver handing out sequential ids, stable per object."""

    def __init__(self):
        self._ids: Dict[int, str] = {}

    def _resolve(self, prefix: str, obj: Any) -> str:
        key = id(obj)
        if key not in self._ids:
            self._ids[key] = f"{prefix}-{len(self._ids)}"
        return self._ids[key]

    def notebook_id(self, notebook: Any) -> str:
        return self._resolve("nb", notebook)

    def cell_id(self, cell: Any) -> str:
        return self._resolve("cell", cell)


class ChangeRecorder:
    """Listener collecting every change set it receives."""

    def __init__(self):
        self.change_sets: List[ChangeSet] = []

    def __call__(self, change_set: ChangeSet) -> None:
        self.change_sets.append(change_set)

    def __len__(self) -> int:
        return len(self.change_sets)


def make_info(widget_id: str = "w1", notebook_id: str = "n1", cell_id: str = "c1", **extra) -> Dict[str, Any]:
    """Minimal creation record."""
    return {"widget_id": widget_id, "notebook_id": notebook_id, "cell_id": cell_id, **extra}


@pytest.fixture
def resolver():
    """Provide a fake identity resolver."""
    return FakeIdentityResolver()


@pytest.fixture
def store(resolver):
    """Provide a fresh store."""
    return Widgetstore(StoreConfig(id=1, identity_resolver=resolver))


@pytest.fixture
def recorder(store):
    """Provide a recorder subscribed to the widget table of the store."""
    recorder = ChangeRecorder()
    store.listen_table(Widgetstore.WIDGET_SCHEMA, recorder)
    return recorder
