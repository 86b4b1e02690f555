# ============================================================================
# ORCHESTRATION LOOP
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Master state machine
# PURPOSE: Start and stop checks on master transitions, reconcile drift
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestration Loop

State machine over MasterState:

    Initial  --is_master=True-->   BecomeMaster  -> Master
    Master   --re-scan tick-->     reconcile definitions (idempotent)
    Master   --is_master=False-->  LoseMastership (blocking drain) -> Initial
    any      --shutdown-->         Shutdown (blocking drain) -> stopped

Every transition runs inside a single control task that consumes commands
from a queue. The master-poll timer, the re-scan timer and the shutdown
coordinator only submit commands and wait for their reply; they never
touch MasterState or the set of running checks themselves. Activation and
deactivation decisions are therefore serialized while the checks they
start run concurrently.

Failed activations are not retried on their own timer. The next re-scan
tick reconciles every enabled definition and starts what is not running.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.errors import ActivationError, AlreadyActiveError, ClusterStateError, DeactivationTimeoutError
from core.logging import ComponentType, log_checkpoint, log_context
from core.models import CheckDefinition, MasterState
from infrastructure import MasterMonitor
from repositories import ClusterStateStore
from .registry import CheckRegistry

logger = logging.getLogger(__name__)

CMD_MASTER = "master"
CMD_RESCAN = "rescan"
CMD_SHUTDOWN = "shutdown"


@dataclass
class _Command:
    kind: str
    payload: Any = None
    reply: Optional[asyncio.Future] = field(default=None, repr=False)


class Orchestrator:
    """
    Owns MasterState and drives the check registry.

    Usage:
        orchestrator = Orchestrator(registry, monitor, store, builtin_definitions)
        await orchestrator.start()      # first master poll happens here
        ...
        await orchestrator.shutdown()   # returns once every check stopped
    """

    def __init__(
        self,
        registry: CheckRegistry,
        monitor: MasterMonitor,
        store: ClusterStateStore,
        builtin_definitions: Optional[List[CheckDefinition]] = None,
        master_poll_interval: float = 10.0,
        rescan_interval: float = 15.0,
        external_checks_enabled: bool = True,
        instance_id: Optional[str] = None,
    ):
        self.registry = registry
        self.monitor = monitor
        self.store = store
        self.builtin_definitions = list(builtin_definitions or [])
        self.master_poll_interval = master_poll_interval
        self.rescan_interval = rescan_interval
        self.external_checks_enabled = external_checks_enabled

        self._instance_id = instance_id or str(uuid.uuid4())
        self._state = MasterState()

        # Control
        self._commands: "asyncio.Queue[_Command]" = asyncio.Queue()
        self._control_task: Optional[asyncio.Task] = None
        self._poll_task: Optional[asyncio.Task] = None
        self._rescan_task: Optional[asyncio.Task] = None
        self._stop_event = asyncio.Event()
        self._running = False
        self._shut_down = False

        # Metrics
        self._started_at: Optional[datetime] = None
        self._transitions = 0
        self._polls = 0
        self._rescans = 0
        self._activation_failures = 0
        self._errors = 0
        self._last_poll_at: Optional[datetime] = None
        self._last_rescan_at: Optional[datetime] = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def master_state(self) -> MasterState:
        return self._state

    @property
    def is_master(self) -> bool:
        return self._state.is_master

    def active_names(self) -> frozenset:
        return self.registry.active_names()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """
        Start the control task, poll once, then start both timers.

        The master-poll and re-scan timers are independent tasks.
        """
        if self._running:
            logger.warning("Orchestrator already running")
            return

        self._running = True
        self._started_at = datetime.now(timezone.utc)
        self._stop_event.clear()

        self._control_task = asyncio.create_task(
            self._control_loop(), name=f"orchestrator-control-{self._instance_id[:8]}"
        )

        await self.poll_master()

        self._poll_task = asyncio.create_task(
            self._timer(self.master_poll_interval, self.poll_master),
            name=f"orchestrator-poll-{self._instance_id[:8]}",
        )
        self._rescan_task = asyncio.create_task(
            self._timer(self.rescan_interval, self.rescan),
            name=f"orchestrator-rescan-{self._instance_id[:8]}",
        )

        logger.info(
            f"Orchestrator started (instance={self._instance_id[:8]}..., "
            f"poll={self.master_poll_interval}s, rescan={self.rescan_interval}s)"
        )

    async def poll_master(self) -> bool:
        """Ask the leader election monitor and submit the answer."""
        try:
            is_master = await self.monitor.is_master()
        except Exception as e:
            self._errors += 1
            logger.error(f"Master status query failed: {e}")
            return self._state.is_master

        self._polls += 1
        self._last_poll_at = datetime.now(timezone.utc)
        await self._submit(CMD_MASTER, is_master)
        return self._state.is_master

    async def rescan(self) -> Dict[str, List[str]]:
        """Request a re-scan. Returns what the reconciliation changed."""
        result = await self._submit(CMD_RESCAN)
        return result or {"activated": [], "deactivated": [], "restarted": []}

    async def shutdown(self) -> None:
        """
        Stop both timers, deactivate every check and release mastership.

        Returns only after every stop was confirmed or timed out
        individually. Safe to call more than once.
        """
        if self._control_task is None or self._control_task.done():
            await self._handle_shutdown()
            return
        await self._submit(CMD_SHUTDOWN)
        await self._control_task

    # ------------------------------------------------------------------
    # Timers
    # ------------------------------------------------------------------

    async def _timer(self, interval: float, action) -> None:
        while not self._stop_event.is_set():
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=interval)
                break  # Stop event was set
            except asyncio.TimeoutError:
                pass

            try:
                await action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                self._errors += 1
                logger.exception(f"Timer action {action.__name__} failed: {e}")

    async def _submit(self, kind: str, payload: Any = None) -> Any:
        if self._shut_down:
            return None
        if self._control_task is None:
            raise RuntimeError("Orchestrator not started")
        reply = asyncio.get_running_loop().create_future()
        self._commands.put_nowait(_Command(kind=kind, payload=payload, reply=reply))
        return await reply

    # ------------------------------------------------------------------
    # Control task
    # ------------------------------------------------------------------

    async def _control_loop(self) -> None:
        with log_context(instance_id=self._instance_id, component=ComponentType.ORCHESTRATOR.value):
            while True:
                command = await self._commands.get()
                result = None
                try:
                    if command.kind == CMD_MASTER:
                        await self._handle_master(command.payload)
                    elif command.kind == CMD_RESCAN:
                        result = await self._handle_rescan()
                    elif command.kind == CMD_SHUTDOWN:
                        await self._handle_shutdown()
                except Exception as e:
                    self._errors += 1
                    logger.exception(f"Command {command.kind} failed: {e}")
                finally:
                    if command.reply is not None and not command.reply.done():
                        command.reply.set_result(result)

                if command.kind == CMD_SHUTDOWN:
                    break

            # Anything queued behind the shutdown gets an empty reply
            while not self._commands.empty():
                pending = self._commands.get_nowait()
                if pending.reply is not None and not pending.reply.done():
                    pending.reply.set_result(None)

    async def _handle_master(self, is_master: bool) -> None:
        if self._shut_down:
            return

        previous = self._state
        current = previous.transition(is_master, forced=self.monitor.forced)
        if current is previous:
            return

        self._state = current
        self._transitions += 1

        if current.is_master and not previous.is_master:
            await self._become_master()
        elif previous.is_master and not current.is_master:
            await self._lose_mastership()

    async def _become_master(self) -> None:
        log_checkpoint("became_master", {"forced": self._state.forced}, logger)

        definitions = await self._load_definitions()
        if definitions is None:
            # Cluster state unavailable; built-ins only, externals on re-scan
            definitions = self.builtin_definitions

        for definition in definitions:
            self.registry.register(definition)

        activated = []
        for definition in definitions:
            if definition.enabled and await self._activate(definition.name):
                activated.append(definition.name)

        logger.info(f"Activated {len(activated)} of {len(definitions)} checks")

    async def _lose_mastership(self) -> None:
        log_checkpoint("lost_mastership", {"active": sorted(self.registry.active_names())}, logger)
        timed_out = await self.registry.deactivate_all()
        log_checkpoint("mastership_released", {"stop_timeouts": timed_out}, logger)

    async def _handle_rescan(self) -> Dict[str, List[str]]:
        changes: Dict[str, List[str]] = {"activated": [], "deactivated": [], "restarted": []}
        if self._shut_down or not self._state.is_master:
            return changes

        definitions = await self._load_definitions()
        if definitions is None:
            return changes

        self._rescans += 1
        self._last_rescan_at = datetime.now(timezone.utc)

        wanted = {d.name: d for d in definitions}

        # Removed from cluster state
        for stale in self.registry.definitions():
            if stale.name in wanted:
                continue
            was_active = self.registry.is_active(stale.name)
            await self._deactivate(stale.name)
            self.registry.unregister(stale.name)
            if was_active:
                changes["deactivated"].append(stale.name)
            await self._forget_state(stale.name)
            logger.info(f"Check {stale.name} removed from cluster state")

        for definition in definitions:
            previous = self.registry.register(definition)
            name = definition.name
            active = self.registry.is_active(name)

            if not definition.enabled:
                if active:
                    await self._deactivate(name)
                    changes["deactivated"].append(name)
                continue

            if active and previous is not None and previous != definition:
                logger.info(f"Configuration drift for {name}, restarting")
                await self._deactivate(name)
                if await self._activate(name):
                    changes["restarted"].append(name)
            elif not active:
                if await self._activate(name):
                    changes["activated"].append(name)

        if any(changes.values()):
            logger.info(f"Re-scan applied changes: {changes}")
        return changes

    async def _handle_shutdown(self) -> None:
        if self._shut_down:
            return
        self._shut_down = True
        self._running = False
        self._stop_event.set()

        log_checkpoint("shutdown_started", {"active": sorted(self.registry.active_names())}, logger)

        for task in (self._poll_task, self._rescan_task):
            if task and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass

        timed_out = await self.registry.deactivate_all()
        self._state = self._state.transition(False)

        try:
            await self.monitor.release()
        except Exception as e:
            logger.warning(f"Releasing mastership failed: {e}")

        log_checkpoint("shutdown_drained", {"stop_timeouts": timed_out}, logger)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _load_definitions(self) -> Optional[List[CheckDefinition]]:
        """Built-in plus external definitions, None if cluster state failed."""
        definitions = list(self.builtin_definitions)
        if not self.external_checks_enabled:
            return definitions

        try:
            external = await self.store.list_external_check_definitions()
        except ClusterStateError as e:
            self._errors += 1
            logger.warning(f"Could not list external checks, retrying next tick: {e}")
            return None

        builtin_names = {d.name for d in definitions}
        for definition in external:
            if definition.name in builtin_names:
                logger.warning(f"External check {definition.name} shadows a built-in check, skipped")
                continue
            definitions.append(definition)
        return definitions

    async def _activate(self, name: str) -> bool:
        try:
            await self.registry.activate(name)
            return True
        except AlreadyActiveError:
            logger.info(f"Check {name} already active, nothing to do")
            return False
        except ActivationError as e:
            self._activation_failures += 1
            logger.error(f"{e}; will retry on next re-scan")
            return False

    async def _deactivate(self, name: str) -> None:
        try:
            await self.registry.deactivate(name)
        except DeactivationTimeoutError as e:
            logger.warning(f"{e}; treating as stopped")

    async def _forget_state(self, name: str) -> None:
        # Token first: a leftover process must not be able to report again
        try:
            await self.registry.whitelist.revoke(name)
        except ClusterStateError as e:
            logger.warning(f"Could not revoke token of removed check {name}: {e}")
        try:
            await self.store.delete_check_state(name)
        except ClusterStateError as e:
            logger.warning(f"Could not delete state of removed check {name}: {e}")

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    @property
    def stats(self) -> Dict[str, Any]:
        """Get orchestrator statistics."""
        uptime_seconds = None
        if self._started_at:
            uptime_seconds = (datetime.now(timezone.utc) - self._started_at).total_seconds()

        return {
            "running": self._running,
            "instance_id": self._instance_id,
            "is_master": self._state.is_master,
            "forced_master": self._state.forced,
            "master_since": self._state.changed_at.isoformat() if self._state.changed_at else None,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "uptime_seconds": uptime_seconds,
            "master_poll_interval": self.master_poll_interval,
            "rescan_interval": self.rescan_interval,
            "active_checks": sorted(self.registry.active_names()),
            "transitions": self._transitions,
            "polls": self._polls,
            "rescans": self._rescans,
            "activation_failures": self._activation_failures,
            "errors": self._errors,
            "last_poll_at": self._last_poll_at.isoformat() if self._last_poll_at else None,
            "last_rescan_at": self._last_rescan_at.isoformat() if self._last_rescan_at else None,
            "registry": self.registry.stats,
        }


__all__ = ["Orchestrator"]
