from __future__ import annotations

from collections import deque

from services.booking.app.models import Catalog


class CatalogHistory:
    """
    Undo/redo over whole-catalog snapshots for the admin back-office.

    Callers `checkpoint` the before-state of every edit. The history only stores
    snapshots; restoring one (and persisting it) is the caller's job.
    """

    def __init__(self, depth: int = 50) -> None:
        self._past: deque[Catalog] = deque(maxlen=depth)
        self._future: deque[Catalog] = deque(maxlen=depth)

    @property
    def can_undo(self) -> bool:
        return bool(self._past)

    @property
    def can_redo(self) -> bool:
        return bool(self._future)

    def checkpoint(self, before: Catalog) -> None:
        self._past.append(before)
        # A new edit invalidates the redo branch.
        self._future.clear()

    def undo(self, current: Catalog) -> Catalog | None:
        if not self._past:
            return None
        self._future.append(current)
        return self._past.pop()

    def redo(self, current: Catalog) -> Catalog | None:
        if not self._future:
            return None
        self._past.append(current)
        return self._future.pop()

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()
