#!/usr/bin/env python3
"""
rewind - inspect, accept, reject and restore agent file changes

Reads the same snapshot store the agent writes to. Destructive commands
ask for confirmation unless -y is given.
"""

from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime

from config.loader import load_config
from core.errors import GroupNotFoundError
from core.runtime import RewindRuntime, build_runtime
from core.snapshots.types import RestoreReport, RestoreTarget, SnapshotStatus

_STATUS_STYLE = {
    SnapshotStatus.PENDING: "yellow",
    SnapshotStatus.ACCEPTED: "green",
    SnapshotStatus.REVERTED: "blue",
    SnapshotStatus.FAILED: "red",
}


def format_relative_time(timestamp: float) -> str:
    """Format a unix timestamp as relative time"""
    seconds = (datetime.now() - datetime.fromtimestamp(timestamp)).total_seconds()
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{int(seconds / 60)}m ago"
    if seconds < 86400:
        return f"{int(seconds / 3600)}h ago"
    return f"{int(seconds / 86400)}d ago"


def _console():
    from rich.console import Console

    return Console()


def _confirm(prompt: str, args) -> bool:
    if args.yes:
        return True
    return input(f"{prompt} [y/N] ").strip().lower() == "y"


def _print_report(console, report: RestoreReport) -> None:
    style = "green" if report.ok else "red"
    mark = "✓" if report.ok else "✗"
    console.print(f"[{style}]{mark} {report.summary()}[/{style}]")
    for result in report.failed:
        console.print(f"  [red]{result.file_path}: {result.error}[/red]")


def cmd_timeline(runtime: RewindRuntime, args) -> int:
    """Show message groups in timeline order"""
    from rich.table import Table

    console = _console()
    groups = runtime.store.timeline_for(args.session)
    if not groups:
        console.print(f"[yellow]No snapshots for session {args.session}[/yellow]")
        return 0

    table = Table(title=f"Timeline: {args.session}")
    table.add_column("#", style="dim")
    table.add_column("Message", style="cyan")
    table.add_column("When", style="green")
    table.add_column("Operation")
    table.add_column("File", style="white")
    table.add_column("Status")

    for i, group in enumerate(groups, start=1):
        for j, snap in enumerate(group.snapshots):
            style = _STATUS_STYLE[snap.status]
            table.add_row(
                str(i) if j == 0 else "",
                group.message_id if j == 0 else "",
                format_relative_time(snap.timestamp),
                snap.operation.value,
                snap.file_path,
                f"[{style}]{snap.status.value}[/{style}]",
            )
    console.print(table)
    return 0


def cmd_pending(runtime: RewindRuntime, args) -> int:
    """List pending snapshots"""
    from rich.table import Table

    console = _console()
    pending = runtime.store.pending_for(args.session)
    if not pending:
        console.print("[green]No pending changes[/green]")
        return 0

    table = Table(title=f"Pending: {args.session}")
    table.add_column("Message", style="cyan")
    table.add_column("Operation")
    table.add_column("File", style="white")
    table.add_column("When", style="green")
    for snap in pending:
        table.add_row(snap.message_id, snap.operation.value, snap.file_path, format_relative_time(snap.timestamp))
    console.print(table)
    return 0


def cmd_stats(runtime: RewindRuntime, args) -> int:
    console = _console()
    stats = runtime.store.stats_for(args.session)
    console.print(f"[bold]{stats.badge()}[/bold]")
    console.print(
        f"total={stats.total} pending={stats.pending} accepted={stats.accepted} "
        f"reverted={stats.reverted} failed={stats.failed}"
    )
    return 0


def cmd_accept(runtime: RewindRuntime, args) -> int:
    console = _console()
    if args.message:
        accepted = runtime.engine.accept_message(args.session, args.message)
    else:
        accepted = runtime.bulk.accept_all(args.session)
    console.print(f"[green]✓ Accepted {len(accepted)} change(s)[/green]")
    return 0


def cmd_reject(runtime: RewindRuntime, args) -> int:
    console = _console()
    if args.message:
        pending = runtime.store.pending_for_message(args.session, args.message)
    else:
        pending = runtime.store.pending_for(args.session)
    if pending:
        console.print(f"[yellow]Will revert {len(pending)} pending change(s):[/yellow]")
        for snap in pending[:5]:
            console.print(f"  - {snap.operation.value}: {snap.file_path}")
        if len(pending) > 5:
            console.print(f"  ... and {len(pending) - 5} more")
    if not _confirm("Revert these changes?", args):
        console.print("[yellow]Cancelled[/yellow]")
        return 1

    if args.message:
        report = runtime.engine.reject_message(args.session, args.message)
    else:
        report = runtime.bulk.reject_all(args.session)
    _print_report(console, report)
    return 0 if report.ok else 2


def cmd_restore(runtime: RewindRuntime, args) -> int:
    console = _console()
    target = RestoreTarget(args.to)
    group = runtime.store.group_for(args.session, args.message)
    console.print(f"[yellow]Restoring {len(group.snapshots)} file change(s) to '{target.value}':[/yellow]")
    for path in group.file_paths:
        console.print(f"  - {path}")
    if not _confirm("Continue?", args):
        console.print("[yellow]Cancelled[/yellow]")
        return 1

    report = runtime.engine.restore_to_state(args.session, args.message, target)
    _print_report(console, report)
    return 0 if report.ok else 2


def cmd_clear(runtime: RewindRuntime, args) -> int:
    console = _console()
    if not _confirm(f"Discard change history for session {args.session}? Files are not touched.", args):
        console.print("[yellow]Cancelled[/yellow]")
        return 1
    removed = runtime.store.clear_session(args.session)
    console.print(f"[green]✓ Cleared {removed} snapshot(s)[/green]")
    return 0


def cmd_prune(runtime: RewindRuntime, args) -> int:
    console = _console()
    days = args.days if args.days is not None else runtime.settings.snapshots.retention_days
    removed = runtime.store.prune_older_than(days * 86400)
    console.print(f"[green]✓ Pruned {removed} snapshot(s) older than {days} day(s)[/green]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="rewind", description="Inspect and resolve tracked agent file changes")
    parser.add_argument("--workspace", type=str, help="Workspace directory (project config is read from here)")
    parser.add_argument("--db", type=str, help="Snapshot database path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("timeline", help="Show the message timeline of a session")
    p.add_argument("session")
    p.set_defaults(func=cmd_timeline)

    p = sub.add_parser("pending", help="List pending changes")
    p.add_argument("session")
    p.set_defaults(func=cmd_pending)

    p = sub.add_parser("stats", help="Show change counts")
    p.add_argument("session")
    p.set_defaults(func=cmd_stats)

    p = sub.add_parser("accept", help="Accept pending changes")
    p.add_argument("session")
    p.add_argument("--message", help="Only this message's changes")
    p.set_defaults(func=cmd_accept)

    p = sub.add_parser("reject", help="Revert pending changes")
    p.add_argument("session")
    p.add_argument("--message", help="Only this message's changes")
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    p.set_defaults(func=cmd_reject)

    p = sub.add_parser("restore", help="Restore a message's files to before/after")
    p.add_argument("session")
    p.add_argument("message")
    p.add_argument("--to", choices=[t.value for t in RestoreTarget], required=True)
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    p.set_defaults(func=cmd_restore)

    p = sub.add_parser("clear", help="Discard a session's change history")
    p.add_argument("session")
    p.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    p.set_defaults(func=cmd_clear)

    p = sub.add_parser("prune", help="Drop snapshots older than the retention window")
    p.add_argument("--days", type=float, help="Override snapshots.retention_days")
    p.set_defaults(func=cmd_prune)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    overrides: dict = {"snapshots": {"prune_on_start": False}}
    if args.db:
        overrides["storage"] = {"db_path": args.db}
    settings = load_config(workspace_root=args.workspace, cli_overrides=overrides)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else getattr(logging, settings.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    runtime = build_runtime(settings)
    try:
        return args.func(runtime, args)
    except GroupNotFoundError as e:
        _console().print(f"[red]{e}[/red]")
        return 1
    finally:
        runtime.close()


if __name__ == "__main__":
    sys.exit(main())
