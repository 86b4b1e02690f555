# ============================================================================
# SHUTDOWN COORDINATOR
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Signal-driven drain with a hard deadline
# PURPOSE: Drain checks before exit without outliving the grace period
# CREATED: 19 OCT 2026
# ============================================================================
"""
Shutdown Coordinator

    Idle ──first signal──> Draining ──┬─ drain done      -> GRACEFUL (exit 0)
                                      ├─ second signal   -> FORCED_SIGNAL (exit 1)
                                      └─ grace elapsed   -> FORCED_TIMEOUT (exit 1)

The first termination signal starts the drain and races it against a
second signal and the grace-period deadline. Exactly one outcome is
honored; the others are abandoned. Forced outcomes exit immediately.
"""

import asyncio
import logging
import os
import signal
from typing import Awaitable, Callable, Iterable, Optional

from core.contracts import ShutdownOutcome
from core.logging import ComponentType, log_checkpoint, log_context
from core.models import ShutdownState

logger = logging.getLogger(__name__)

TERMINATION_SIGNALS = (signal.SIGTERM, signal.SIGINT)


def hard_exit(code: int) -> None:
    """Flush logs and exit without unwinding the event loop."""
    logging.shutdown()
    os._exit(code)


class ShutdownCoordinator:
    """
    Owns the termination signals of the process.

    Args:
        drain: coroutine function that stops every check and returns
        grace_period: seconds the drain may take before exit is forced
        exit_func: called with the exit code on a forced outcome
    """

    def __init__(
        self,
        drain: Callable[[], Awaitable[None]],
        grace_period: float = 300.0,
        exit_func: Callable[[int], None] = hard_exit,
    ):
        self.drain = drain
        self.grace_period = grace_period
        self._exit = exit_func

        self.state: Optional[ShutdownState] = None
        self._first_signal = asyncio.Event()
        self._second_signal = asyncio.Event()

    @property
    def triggered(self) -> bool:
        return self._first_signal.is_set()

    def install_signal_handlers(
        self,
        loop: Optional[asyncio.AbstractEventLoop] = None,
        signals: Iterable[signal.Signals] = TERMINATION_SIGNALS,
    ) -> None:
        """Route termination signals of the running loop to notify_signal."""
        loop = loop or asyncio.get_running_loop()
        for sig in signals:
            loop.add_signal_handler(sig, self.notify_signal, sig)
        logger.debug(f"Installed shutdown handlers for {[s.name for s in signals]}")

    def notify_signal(self, sig: Optional[signal.Signals] = None) -> None:
        """Record a termination signal. Safe to call from a signal handler."""
        name = sig.name if sig is not None else "request"
        if self.state is None:
            self.state = ShutdownState()

        self.state.signal_count += 1
        with log_context(component=ComponentType.SHUTDOWN.value):
            if self.state.signal_count == 1:
                logger.info(f"Received {name}, draining checks (grace period {self.grace_period}s)")
                self._first_signal.set()
            else:
                logger.warning(f"Received {name} while draining, forcing shutdown")
                self._second_signal.set()

    async def wait_for_outcome(self) -> ShutdownOutcome:
        """
        Wait for the first signal, then race drain, second signal and
        grace period. Returns the winner.
        """
        await self._first_signal.wait()

        drain_task = asyncio.create_task(self._run_drain(), name="shutdown-drain")
        signal_task = asyncio.create_task(self._second_signal.wait(), name="shutdown-second-signal")

        done, _ = await asyncio.wait(
            {drain_task, signal_task},
            timeout=self.grace_period,
            return_when=asyncio.FIRST_COMPLETED,
        )

        if drain_task in done:
            outcome = ShutdownOutcome.GRACEFUL
        elif signal_task in done:
            outcome = ShutdownOutcome.FORCED_SIGNAL
        else:
            outcome = ShutdownOutcome.FORCED_TIMEOUT

        for task in (drain_task, signal_task):
            if not task.done():
                task.cancel()

        self.state.completed = outcome is ShutdownOutcome.GRACEFUL
        self.state.outcome = outcome

        with log_context(component=ComponentType.SHUTDOWN.value):
            if outcome is ShutdownOutcome.GRACEFUL:
                log_checkpoint("shutdown_graceful", {"signals": self.state.signal_count}, logger)
            elif outcome is ShutdownOutcome.FORCED_SIGNAL:
                log_checkpoint("shutdown_forced_signal", {"signals": self.state.signal_count}, logger)
            else:
                log_checkpoint("shutdown_forced_timeout", {"grace_period": self.grace_period}, logger)
        return outcome

    async def run(self) -> int:
        """
        Wait for the outcome and return its exit code.

        Forced outcomes call exit_func immediately instead of returning
        to the caller.
        """
        outcome = await self.wait_for_outcome()
        if outcome is not ShutdownOutcome.GRACEFUL:
            self._exit(outcome.exit_code)
        return outcome.exit_code

    async def _run_drain(self) -> None:
        try:
            await self.drain()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            # A failed drain still ends the race
            logger.exception(f"Drain failed: {e}")


__all__ = ["ShutdownCoordinator", "TERMINATION_SIGNALS", "hard_exit"]
