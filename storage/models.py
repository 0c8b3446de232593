"""Provider-neutral storage row types."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class SnapshotRow:
    id: str
    session_id: str
    message_id: str
    timestamp: float
    operation: str
    file_path: str
    prev_state: str
    next_state: str
    status: str = "pending"
