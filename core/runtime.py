"""Composition root: wires storage, store, recorder, engine, gateway and agent middleware from settings."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from config.schema import RewindSettings
from core.approval.executors import ToolContext
from core.approval.gateway import ApprovalGateway
from core.approval.middleware import ApprovalMiddleware
from core.approval.registry import ToolRegistry, build_default_registry
from core.filesystem.backend import FileSystemBackend
from core.filesystem.local_backend import LocalBackend
from core.snapshots.bulk import BulkResolver
from core.snapshots.recorder import MutationRecorder
from core.snapshots.restore import RestorationEngine
from core.snapshots.store import SnapshotStore
from storage.container import StorageContainer
from storage.runtime import build_storage_container

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


@dataclass
class RewindRuntime:
    settings: RewindSettings
    storage: StorageContainer
    store: SnapshotStore
    recorder: MutationRecorder
    engine: RestorationEngine
    bulk: BulkResolver
    registry: ToolRegistry
    gateway: ApprovalGateway
    middleware: ApprovalMiddleware

    def close(self) -> None:
        self.store.close()


def build_runtime(
    settings: RewindSettings | None = None,
    *,
    backend: FileSystemBackend | None = None,
    storage: StorageContainer | None = None,
) -> RewindRuntime:
    settings = settings or RewindSettings()
    backend = backend or LocalBackend()
    storage = storage or build_storage_container(
        main_db_path=settings.storage.db_path,
        strategy=settings.storage.strategy,
    )

    store = SnapshotStore(storage.snapshot_repo())
    if settings.snapshots.prune_on_start:
        pruned = store.prune_older_than(settings.snapshots.retention_days * SECONDS_PER_DAY)
        if pruned:
            logger.info("Pruned %d snapshot(s) older than %s days", pruned, settings.snapshots.retention_days)

    recorder = MutationRecorder(store)
    engine = RestorationEngine(store, backend, create_missing_dirs=settings.snapshots.restore_creates_parents)

    registry = build_default_registry()
    registry.apply_policies(settings.approval.tools)

    context = ToolContext(
        backend=backend,
        workspace_root=settings.resolved_workspace(),
        unescape_sequences=settings.write.unescape_sequences,
        max_file_size=settings.write.max_file_size,
        command_timeout=settings.command.default_timeout,
        max_output_chars=settings.command.max_output_chars,
        max_search_results=settings.search.max_results,
    )
    gateway = ApprovalGateway(registry, recorder, context, timeout_seconds=settings.approval.timeout_seconds)

    return RewindRuntime(
        settings=settings,
        storage=storage,
        store=store,
        recorder=recorder,
        engine=engine,
        bulk=BulkResolver(engine),
        registry=registry,
        gateway=gateway,
        middleware=ApprovalMiddleware(gateway, timeout_seconds=settings.approval.timeout_seconds),
    )
