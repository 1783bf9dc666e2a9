"""On-disk selection state: non-affected tests, timing table, graph."""

from rts.state.store import SelectionStateStore

__all__ = [
    "SelectionStateStore",
]
