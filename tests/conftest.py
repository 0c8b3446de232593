"""Pytest configuration for rewind-gate tests.

Ensures the project root is in sys.path so imports work correctly.
"""

import sys
from pathlib import Path

import pytest

# Add project root to sys.path
project_root = Path(__file__).parent.parent
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from core.filesystem.local_backend import LocalBackend  # noqa: E402
from core.snapshots.bulk import BulkResolver  # noqa: E402
from core.snapshots.recorder import MutationRecorder  # noqa: E402
from core.snapshots.restore import RestorationEngine  # noqa: E402
from core.snapshots.store import SnapshotStore  # noqa: E402
from storage.providers.memory.snapshot_repo import InMemorySnapshotRepo  # noqa: E402


@pytest.fixture
def store():
    return SnapshotStore(InMemorySnapshotRepo())


@pytest.fixture
def recorder(store):
    return MutationRecorder(store)


@pytest.fixture
def backend():
    return LocalBackend()


@pytest.fixture
def engine(store, backend):
    return RestorationEngine(store, backend)


@pytest.fixture
def bulk(engine):
    return BulkResolver(engine)
