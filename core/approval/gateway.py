"""
Approval gateway - per-invocation state machine in front of the tool executors.

    proposed ──► executing ──► completed
        │            ▲    └──► failed
        ▼            │
    awaiting_approval ──► cancelled

Exactly one terminal state is reached per invocation id. Approve is
idempotent; cancel only acts while awaiting approval. Execution and snapshot
recording are serialized per session so snapshot order matches execution order.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from core.approval.executors import ToolContext
from core.approval.registry import ToolRegistry, ToolSpec
from core.errors import DuplicateInvocationError, RewindError, UnknownInvocationError
from core.snapshots.recorder import FileMutation, MutationRecorder, current_message_id, current_session_id
from core.snapshots.types import Snapshot

logger = logging.getLogger(__name__)


class InvocationState(str, Enum):
    PROPOSED = "proposed"
    AWAITING_APPROVAL = "awaiting_approval"
    EXECUTING = "executing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


# proposed -> failed covers unknown or disabled tools, rejected before execution
VALID_TRANSITIONS = {
    InvocationState.PROPOSED: [InvocationState.AWAITING_APPROVAL, InvocationState.EXECUTING, InvocationState.FAILED],
    InvocationState.AWAITING_APPROVAL: [InvocationState.EXECUTING, InvocationState.CANCELLED],
    InvocationState.EXECUTING: [InvocationState.COMPLETED, InvocationState.FAILED],
    InvocationState.COMPLETED: [],
    InvocationState.CANCELLED: [],
    InvocationState.FAILED: [],
}

TERMINAL_STATES = frozenset(s for s, targets in VALID_TRANSITIONS.items() if not targets)


@dataclass
class Invocation:
    id: str
    tool_name: str
    args: dict[str, Any]
    session_id: str
    message_id: str
    state: InvocationState = InvocationState.PROPOSED
    message: str = ""
    mutations: list[FileMutation] = field(default_factory=list)
    snapshots: list[Snapshot] = field(default_factory=list)
    error: str | None = None
    created_at: float = field(default_factory=time.time)
    updated_at: float = field(default_factory=time.time)
    _done: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.state in TERMINAL_STATES


StateCallback = Callable[[Invocation, InvocationState, InvocationState], None]


class ApprovalGateway:
    def __init__(
        self,
        registry: ToolRegistry,
        recorder: MutationRecorder,
        context: ToolContext,
        *,
        timeout_seconds: float | None = None,
    ) -> None:
        self.registry = registry
        self.recorder = recorder
        self.context = context
        self.timeout_seconds = timeout_seconds
        self._invocations: dict[str, Invocation] = {}
        self._session_locks: dict[str, asyncio.Lock] = {}
        self._callbacks: list[StateCallback] = []

    # ── Signals ──

    async def propose(
        self,
        invocation_id: str,
        tool_name: str,
        args: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        message_id: str | None = None,
    ) -> Invocation:
        """Register a tool call. Runs it right away unless the tool needs confirmation."""
        if invocation_id in self._invocations:
            raise DuplicateInvocationError(f"Invocation {invocation_id} already proposed; retry with a new id")

        invocation = Invocation(
            id=invocation_id,
            tool_name=tool_name,
            args=dict(args or {}),
            session_id=session_id or current_session_id.get(),
            message_id=message_id or current_message_id.get(),
        )
        self._invocations[invocation_id] = invocation

        spec = self.registry.get(tool_name)
        if spec is None or not spec.enabled:
            reason = "Unknown tool" if spec is None else "Tool is disabled"
            return self._reject(invocation, f"{reason}: {tool_name}")

        # Nothing may touch disk unless its snapshots have a turn to land in
        if not invocation.session_id or not invocation.message_id:
            return self._reject(invocation, f"No active session/message for {tool_name}")

        if spec.requires_confirmation:
            self._transition(invocation, InvocationState.AWAITING_APPROVAL)
            logger.info("Invocation %s (%s) awaiting approval", invocation_id, tool_name)
            return invocation

        await self._execute(invocation, spec)
        return invocation

    async def approve(self, invocation_id: str) -> Invocation:
        invocation = self._require(invocation_id)
        if invocation.state != InvocationState.AWAITING_APPROVAL:
            logger.debug("Ignoring approve for %s in state %s", invocation_id, invocation.state.value)
            return invocation
        logger.info("Invocation %s (%s) approved", invocation_id, invocation.tool_name)
        await self._execute(invocation, self.registry.require(invocation.tool_name))
        return invocation

    async def cancel(self, invocation_id: str, reason: str = "Cancelled by user") -> Invocation:
        invocation = self._require(invocation_id)
        if invocation.state != InvocationState.AWAITING_APPROVAL:
            logger.debug("Ignoring cancel for %s in state %s", invocation_id, invocation.state.value)
            return invocation
        invocation.message = reason
        self._transition(invocation, InvocationState.CANCELLED)
        logger.info("Invocation %s (%s) cancelled: %s", invocation_id, invocation.tool_name, reason)
        return invocation

    async def wait(self, invocation_id: str, timeout: float | None = None) -> Invocation:
        """Block until the invocation is terminal.

        A timeout that expires while the invocation still awaits approval
        cancels it. Once executing, the wait continues until execution ends.
        """
        invocation = self._require(invocation_id)
        timeout = self.timeout_seconds if timeout is None else timeout
        if invocation.is_terminal:
            return invocation
        try:
            await asyncio.wait_for(invocation._done.wait(), timeout=timeout)
        except asyncio.TimeoutError:
            if invocation.state == InvocationState.AWAITING_APPROVAL:
                await self.cancel(invocation_id, reason=f"Approval timed out after {timeout}s")
            else:
                await invocation._done.wait()
        return invocation

    async def run(
        self,
        invocation_id: str,
        tool_name: str,
        args: dict[str, Any] | None = None,
        *,
        session_id: str | None = None,
        message_id: str | None = None,
        timeout: float | None = None,
    ) -> Invocation:
        """Propose and wait for the terminal state."""
        await self.propose(invocation_id, tool_name, args, session_id=session_id, message_id=message_id)
        return await self.wait(invocation_id, timeout=timeout)

    # ── Queries ──

    def get(self, invocation_id: str) -> Invocation | None:
        return self._invocations.get(invocation_id)

    def awaiting_approval(self, session_id: str | None = None) -> list[Invocation]:
        return [
            inv for inv in self._invocations.values()
            if inv.state == InvocationState.AWAITING_APPROVAL and (session_id is None or inv.session_id == session_id)
        ]

    def on_state_changed(self, callback: StateCallback) -> Callable[[], None]:
        """Register a state change callback. Returns an unsubscribe function."""
        self._callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return unsubscribe

    # ── Internals ──

    def _require(self, invocation_id: str) -> Invocation:
        invocation = self._invocations.get(invocation_id)
        if invocation is None:
            raise UnknownInvocationError(f"Unknown invocation: {invocation_id}")
        return invocation

    def _reject(self, invocation: Invocation, error: str) -> Invocation:
        logger.warning("Invocation %s rejected: %s", invocation.id, error)
        invocation.error = error
        invocation.message = f"Error: {error}"
        self._transition(invocation, InvocationState.FAILED)
        return invocation

    def _session_lock(self, session_id: str) -> asyncio.Lock:
        lock = self._session_locks.get(session_id)
        if lock is None:
            lock = asyncio.Lock()
            self._session_locks[session_id] = lock
        return lock

    async def _execute(self, invocation: Invocation, spec: ToolSpec) -> None:
        # @@@executing-before-lock - state flips synchronously so a second approve sees EXECUTING
        self._transition(invocation, InvocationState.EXECUTING)
        async with self._session_lock(invocation.session_id):
            try:
                result = await spec.executor(self.context, invocation.args)
            except Exception as e:
                logger.warning("Invocation %s (%s) failed: %s", invocation.id, spec.name, e)
                invocation.error = str(e)
                invocation.message = f"Error: {e}"
                self._transition(invocation, InvocationState.FAILED)
                return

            try:
                snapshots = self.recorder.capture_all(
                    result.mutations,
                    session_id=invocation.session_id,
                    message_id=invocation.message_id,
                )
            except RewindError as e:
                logger.warning("Invocation %s (%s) could not record snapshots: %s", invocation.id, spec.name, e)
                invocation.error = str(e)
                invocation.message = f"Error: {e}"
                invocation.mutations = list(result.mutations)
                self._transition(invocation, InvocationState.FAILED)
                return

            invocation.message = result.message
            invocation.mutations = list(result.mutations)
            invocation.snapshots = snapshots
            self._transition(invocation, InvocationState.COMPLETED)
        logger.info(
            "Invocation %s (%s) completed with %d snapshot(s)", invocation.id, spec.name, len(invocation.snapshots)
        )

    def _transition(self, invocation: Invocation, new_state: InvocationState) -> None:
        old_state = invocation.state
        if new_state not in VALID_TRANSITIONS[old_state]:
            raise RuntimeError(f"Invalid transition {old_state.value} -> {new_state.value} for {invocation.id}")
        invocation.state = new_state
        invocation.updated_at = time.time()
        if new_state in TERMINAL_STATES:
            invocation._done.set()
        for cb in list(self._callbacks):
            try:
                cb(invocation, old_state, new_state)
            except Exception:
                logger.exception("State change callback failed for %s", invocation.id)
