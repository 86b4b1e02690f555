# ============================================================================
# CHECK REGISTRY
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Check definitions and running checks
# PURPOSE: Register definitions, activate and deactivate checks
# CREATED: 19 OCT 2026
# ============================================================================
"""
Check Registry

Holds the registered check definitions and, for every active check, its
RunningCheck. At most one RunningCheck exists per check name.

The registry does not know how a check runs. It asks the runner set for a
runner, tells the runner to start, and on deactivation waits a bounded
time for the runner to confirm the stop.

    registry.register(definition)
    await registry.activate("dns-check")       # AlreadyActiveError if running
    await registry.deactivate("dns-check")     # no-op if inactive
    await registry.deactivate_all()            # blocks until every stop settled
"""

import asyncio
import logging
from typing import Dict, List, Optional, Protocol

from core.errors import (
    ActivationError,
    AlreadyActiveError,
    CheckNotRegisteredError,
    ClusterStateError,
    DeactivationTimeoutError,
)
from core.logging import ComponentType, log_context
from core.models import CheckDefinition, RunningCheck
from checks import CheckRunner
from .whitelist import UUIDWhitelist

logger = logging.getLogger(__name__)


class RunnerProvider(Protocol):
    def runner_for(self, definition: CheckDefinition) -> CheckRunner: ...


class CheckRegistry:
    """Definitions plus the set of currently running checks."""

    def __init__(
        self,
        runners: RunnerProvider,
        whitelist: UUIDWhitelist,
        stop_timeout: float = 30.0,
    ):
        self.runners = runners
        self.whitelist = whitelist
        self.stop_timeout = stop_timeout

        self._definitions: Dict[str, CheckDefinition] = {}
        self._running: Dict[str, RunningCheck] = {}
        self._runner_of: Dict[str, CheckRunner] = {}
        self._lock = asyncio.Lock()

        # Metrics
        self._activations = 0
        self._deactivations = 0
        self._stop_timeouts = 0

    # ------------------------------------------------------------------
    # Definitions
    # ------------------------------------------------------------------

    def register(self, definition: CheckDefinition) -> Optional[CheckDefinition]:
        """
        Register or replace a definition.

        Replacing does not touch a running check; callers compare the
        returned previous definition to decide on a restart.
        """
        previous = self._definitions.get(definition.name)
        self._definitions[definition.name] = definition
        if previous is None:
            logger.debug(f"Registered check {definition.name} ({definition.category.value})")
        return previous

    def unregister(self, name: str) -> Optional[CheckDefinition]:
        """Drop a definition. The check must already be inactive."""
        return self._definitions.pop(name, None)

    def get_definition(self, name: str) -> Optional[CheckDefinition]:
        return self._definitions.get(name)

    def definitions(self) -> List[CheckDefinition]:
        return list(self._definitions.values())

    # ------------------------------------------------------------------
    # Running checks
    # ------------------------------------------------------------------

    def active_names(self) -> frozenset:
        return frozenset(self._running)

    def running(self, name: str) -> Optional[RunningCheck]:
        return self._running.get(name)

    def is_active(self, name: str) -> bool:
        return name in self._running

    async def activate(self, name: str) -> RunningCheck:
        """
        Start a registered check.

        External checks get a fresh whitelist token before their runner
        starts, so the first submission of the new process verifies.

        Raises:
            AlreadyActiveError: a RunningCheck exists for this name
            CheckNotRegisteredError: no definition registered
            ActivationError: token issue or runner start failed
        """
        async with self._lock:
            if name in self._running:
                raise AlreadyActiveError(name)

            definition = self._definitions.get(name)
            if definition is None:
                raise CheckNotRegisteredError(name)

            with log_context(
                check_name=name,
                category=definition.category.value,
                component=ComponentType.REGISTRY.value,
                operation="activate",
            ):
                runner = self.runners.runner_for(definition)

                run_uuid = None
                if definition.is_external:
                    try:
                        run_uuid = await self.whitelist.issue_token(name)
                    except ClusterStateError as e:
                        raise ActivationError(name, f"could not issue whitelist token: {e}") from e

                try:
                    handle = await runner.start(definition, run_uuid)
                except ActivationError:
                    raise
                except Exception as e:
                    raise ActivationError(name, str(e)) from e

                running = RunningCheck(definition=definition, handle=handle, run_uuid=run_uuid)
                self._running[name] = running
                self._runner_of[name] = runner
                self._activations += 1
                logger.info("Check activated")
                return running

    async def deactivate(self, name: str) -> None:
        """
        Stop a check and wait for the stop to be confirmed.

        Unknown or inactive names are a no-op. On timeout the RunningCheck
        is already gone and DeactivationTimeoutError is raised.

        Raises:
            DeactivationTimeoutError: stop not confirmed within stop_timeout
        """
        async with self._lock:
            running = self._running.pop(name, None)
            runner = self._runner_of.pop(name, None)
            if running is None:
                logger.debug(f"Deactivate {name}: not active")
                return

            # Held across the stop so a re-activation cannot overlap it
            await self._stop(running, runner)

    async def deactivate_all(self) -> List[str]:
        """
        Stop every active check concurrently and block until each stop
        is confirmed or has timed out individually.

        Returns:
            Names whose stop timed out
        """
        async with self._lock:
            stopping = [
                (running, self._runner_of.pop(name))
                for name, running in self._running.items()
            ]
            self._running.clear()

            if not stopping:
                return []

            results = await asyncio.gather(
                *(self._stop(running, runner) for running, runner in stopping),
                return_exceptions=True,
            )

        timed_out = []
        for (running, _), result in zip(stopping, results):
            if isinstance(result, DeactivationTimeoutError):
                logger.warning(f"{result}; treating as stopped")
                timed_out.append(running.name)
            elif isinstance(result, Exception):
                logger.error(f"Stopping {running.name} failed: {result}")

        logger.info(f"Deactivated {len(stopping)} checks ({len(timed_out)} timed out)")
        return timed_out

    async def _stop(self, running: RunningCheck, runner: CheckRunner) -> None:
        with log_context(
            check_name=running.name,
            category=running.definition.category.value,
            component=ComponentType.REGISTRY.value,
            operation="deactivate",
        ):
            self._deactivations += 1
            try:
                await runner.stop(running.handle, self.stop_timeout)
            except DeactivationTimeoutError:
                self._stop_timeouts += 1
                raise
            logger.info("Check deactivated")

    @property
    def stats(self) -> Dict[str, int]:
        return {
            "registered": len(self._definitions),
            "active": len(self._running),
            "activations": self._activations,
            "deactivations": self._deactivations,
            "stop_timeouts": self._stop_timeouts,
        }


__all__ = ["CheckRegistry", "RunnerProvider"]
