"""Snapshot status events for UI badges and editor buffer reconciliation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

from core.snapshots.types import RestoreReport, Snapshot, SnapshotStats

logger = logging.getLogger(__name__)


class SnapshotEventKind(str, Enum):
    RECORDED = "recorded"
    STATUS_CHANGED = "status_changed"
    RESTORED = "restored"
    CLEARED = "cleared"


@dataclass(frozen=True)
class SnapshotEvent:
    kind: SnapshotEventKind
    session_id: str
    stats: SnapshotStats
    snapshots: tuple[Snapshot, ...] = ()
    report: RestoreReport | None = field(default=None, compare=False)


SnapshotListener = Callable[[SnapshotEvent], None]


class SnapshotEventBus:
    """Synchronous fan-out of snapshot events to subscribers."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: list[SnapshotListener] = []

    def subscribe(self, listener: SnapshotListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def emit(self, event: SnapshotEvent) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Snapshot listener failed for %s event on %s", event.kind.value, event.session_id)
