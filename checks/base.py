# ============================================================================
# CHECK RUNNERS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Check execution contract
# PURPOSE: Start/stop periodic checks as asyncio tasks
# CREATED: 19 OCT 2026
# ============================================================================
"""
Check Runners

A runner knows how to start a check and how to stop it again:

    handle = await runner.start(definition, run_uuid)
    await runner.stop(handle, timeout=30)   # DeactivationTimeoutError

Every check runs as one asyncio task that loops "run once, record, sleep
run_interval". Stopping cancels the task and waits a bounded time for it
to finish; a check that does not finish in time raises
DeactivationTimeoutError so the caller can log it and move on.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from core.errors import DeactivationTimeoutError
from core.logging import log_context
from core.models import CheckDefinition, CheckResult
from .registry import ProbeContext, ProbeFunc

logger = logging.getLogger(__name__)

# Called with every completed run
ResultRecorder = Callable[[CheckDefinition, CheckResult, Optional[str]], Awaitable[None]]


@dataclass
class StopHandle:
    """Opaque token returned by start() and consumed by stop()."""
    check_name: str
    task: asyncio.Task


class CheckRunner(ABC):
    """Base class for check runners."""

    def __init__(self, recorder: ResultRecorder):
        self._recorder = recorder

    async def start(
        self,
        definition: CheckDefinition,
        run_uuid: Optional[str] = None,
    ) -> StopHandle:
        """Start the check's run loop and return its stop handle."""
        task = asyncio.create_task(
            self._run_loop(definition, run_uuid),
            name=f"check-{definition.name}",
        )
        return StopHandle(check_name=definition.name, task=task)

    async def stop(self, handle: StopHandle, timeout: float) -> None:
        """
        Stop a check and wait for the stop to be confirmed.

        Raises:
            DeactivationTimeoutError: task still running after `timeout`
        """
        task = handle.task
        if task.done():
            return

        task.cancel()
        done, _ = await asyncio.wait({task}, timeout=timeout)
        if not done:
            raise DeactivationTimeoutError(handle.check_name, timeout)

    async def _run_loop(self, definition: CheckDefinition, run_uuid: Optional[str]) -> None:
        with log_context(check_name=definition.name, category=definition.category.value):
            logger.info(
                f"Check loop started (interval={definition.run_interval_seconds}s, "
                f"timeout={definition.timeout_seconds}s)"
            )
            try:
                while True:
                    started = time.monotonic()
                    result = await self.run_once(definition, run_uuid)
                    if result is not None:
                        result.duration_ms = (time.monotonic() - started) * 1000
                        await self._record(definition, result, run_uuid)
                    await asyncio.sleep(definition.run_interval_seconds)
            finally:
                logger.info("Check loop stopped")

    async def _record(
        self,
        definition: CheckDefinition,
        result: CheckResult,
        run_uuid: Optional[str],
    ) -> None:
        try:
            await self._recorder(definition, result, run_uuid)
        except Exception as e:
            # Recording failures are retried implicitly by the next run
            logger.warning(f"Failed to record result: {e}")

    @abstractmethod
    async def run_once(
        self,
        definition: CheckDefinition,
        run_uuid: Optional[str],
    ) -> Optional[CheckResult]:
        """
        Execute one run.

        Returns:
            The result to record, or None if the run reports for itself.
        """


class ProbeCheckRunner(CheckRunner):
    """Runs an in-process probe function, bounded by the check timeout."""

    def __init__(self, probe: ProbeFunc, recorder: ResultRecorder):
        super().__init__(recorder)
        self.probe = probe

    async def run_once(
        self,
        definition: CheckDefinition,
        run_uuid: Optional[str],
    ) -> Optional[CheckResult]:
        ctx = ProbeContext(
            definition=definition,
            parameters=definition.typed_parameters(),
            run_uuid=run_uuid,
        )
        try:
            return await asyncio.wait_for(self.probe(ctx), timeout=definition.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning(f"Probe timed out after {definition.timeout_seconds}s")
            return CheckResult.unhealthy(
                f"probe timed out after {definition.timeout_seconds}s"
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"Probe failed: {e}")
            return CheckResult.from_exception(e)


__all__ = [
    "ResultRecorder",
    "StopHandle",
    "CheckRunner",
    "ProbeCheckRunner",
]
