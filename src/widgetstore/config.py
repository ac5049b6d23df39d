"""
Store configuration.

Configuration is a plain immutable dataclass handed to the store at
construction; nothing is looked up from ambient/global state.
"""
from dataclasses import dataclass
from typing import Any, Optional, Protocol, runtime_checkable

from widgetstore.records import DEFAULT_HEIGHT, DEFAULT_WIDTH


@runtime_checkable
class IdentityResolver(Protocol):
    """Mints or looks up stable ids for live notebook and cell objects.

    Implemented outside this package (e.g. by tagging notebook/cell metadata).
    The same object must always resolve to the same id.
    """

    def notebook_id(self, notebook: Any) -> str:
        ...

    def cell_id(self, cell: Any) -> str:
        ...


@dataclass(frozen=True)
class StoreConfig:
    """Construction options for a Widgetstore.

    Attributes:
        id: Numeric namespace distinguishing otherwise identical stores that
            share a backing medium.
        identity_resolver: Resolver used when adding outputs from live
            notebook/cell objects. Optional for stores fed with ready ids.
        max_history: Maximum number of transactions kept for undo. None keeps
            everything.
        default_width: Width given to widgets created without one.
        default_height: Height given to widgets created without one.
    """
    id: int = 0
    identity_resolver: Optional[IdentityResolver] = None
    max_history: Optional[int] = None
    default_width: float = DEFAULT_WIDTH
    default_height: float = DEFAULT_HEIGHT

    def __post_init__(self):
        if self.max_history is not None and self.max_history <= 0:
            raise ValueError(f"max_history must be positive, got {self.max_history}")
        if self.default_width <= 0 or self.default_height <= 0:
            raise ValueError(
                f"default size must be positive, got {self.default_width}x{self.default_height}"
            )
