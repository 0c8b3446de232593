"""Mutation recorder: turns executed file mutations into pending snapshots."""

from __future__ import annotations

from contextvars import ContextVar
from dataclasses import dataclass

from core.errors import InvalidSnapshotError
from core.snapshots.store import SnapshotStore
from core.snapshots.types import Snapshot, SnapshotInput, SnapshotOperation

# Context variables for tracking the active session and authoring message
current_session_id: ContextVar[str] = ContextVar("current_session_id", default="")
current_message_id: ContextVar[str] = ContextVar("current_message_id", default="")


@dataclass(frozen=True)
class FileMutation:
    """One file change reported by a tool executor."""

    file_path: str
    operation: SnapshotOperation
    prev_state: str
    next_state: str

    def to_input(self) -> SnapshotInput:
        return SnapshotInput(
            file_path=self.file_path,
            operation=self.operation,
            prev_state=self.prev_state,
            next_state=self.next_state,
        )


class MutationRecorder:
    """Only producer of snapshots. UI code never records directly."""

    def __init__(self, store: SnapshotStore) -> None:
        self.store = store

    def capture(
        self,
        mutation: FileMutation,
        session_id: str | None = None,
        message_id: str | None = None,
    ) -> Snapshot:
        session_id = session_id or current_session_id.get()
        message_id = message_id or current_message_id.get()
        if not session_id or not message_id:
            raise InvalidSnapshotError(
                f"Cannot record {mutation.file_path}: no active session/message "
                f"(session={session_id!r}, message={message_id!r})"
            )
        return self.store.record(session_id, message_id, mutation.to_input())

    def capture_all(
        self,
        mutations: list[FileMutation],
        session_id: str | None = None,
        message_id: str | None = None,
    ) -> list[Snapshot]:
        return [self.capture(m, session_id=session_id, message_id=message_id) for m in mutations]
