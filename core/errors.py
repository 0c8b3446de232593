"""Domain errors for the change-tracking core."""

from __future__ import annotations


class RewindError(Exception):
    """Base class for all change-tracking errors."""


class InvalidSnapshotError(RewindError, ValueError):
    """A snapshot violates the create/delete content invariants or lacks ids."""


class GroupNotFoundError(RewindError, LookupError):
    """No snapshot group exists for the requested (session, message)."""

    def __init__(self, session_id: str, message_id: str | None = None):
        self.session_id = session_id
        self.message_id = message_id
        if message_id is None:
            super().__init__(f"No snapshots for session {session_id}")
        else:
            super().__init__(f"No snapshot group for session {session_id}, message {message_id}")


class SessionNotFoundError(GroupNotFoundError):
    """The session has no snapshot collection."""

    def __init__(self, session_id: str):
        super().__init__(session_id)


class FileIOError(RewindError, OSError):
    """Per-file failure during restoration. Captured into reports, not raised out of batches."""

    def __init__(self, file_path: str, reason: str):
        self.file_path = file_path
        self.reason = reason
        super().__init__(f"{file_path}: {reason}")


class UnknownToolError(RewindError, LookupError):
    """Tool name is not present in the registry."""


class ToolExecutionError(RewindError):
    """A tool executor could not complete its operation."""


class UnknownInvocationError(RewindError, LookupError):
    """Approve/cancel/wait referenced an invocation id the gateway never saw."""


class DuplicateInvocationError(RewindError):
    """An invocation id was proposed twice. Retries must use a fresh id."""
