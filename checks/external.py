# ============================================================================
# EXTERNAL CHECK RUNNER
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Check - Out-of-process checks
# PURPOSE: Launch external check processes that report over the Status API
# CREATED: 19 OCT 2026
# ============================================================================
"""
External Check Runner

Every run launches the definition's command as a child process. The child
learns where and how to report through its environment:

    KH_CHECK_NAME          name of the check
    KH_RUN_UUID            whitelist token for this activation
    KH_REPORTING_URL       POST target for the result
    KH_CHECK_RUN_DEADLINE  unix seconds after which the run is killed

The child posts its own result. The runner only records a result when the
child cannot have done so: it timed out or exited non-zero.

KH_RUN_UUID is issued once per activation, not per launch. Every child of
one activation reports with the same token, so a process that detaches from
an earlier run (a daemonized grandchild the kill does not reach) can still
report until the check is re-activated (new token) or removed from cluster
state (token revoked).
"""

import asyncio
import logging
import os
import time
from typing import Dict, Optional

from core.models import CheckDefinition, CheckResult, ExternalParameters
from .base import CheckRunner, ResultRecorder

logger = logging.getLogger(__name__)

# Wait between SIGTERM and SIGKILL when a run is stopped
TERMINATE_GRACE_SECONDS = 5.0


class ExternalCheckRunner(CheckRunner):
    """Runs external checks as child processes."""

    def __init__(self, recorder: ResultRecorder, reporting_url: str):
        super().__init__(recorder)
        self.reporting_url = reporting_url

    def build_environment(
        self,
        definition: CheckDefinition,
        run_uuid: Optional[str],
        deadline: float,
    ) -> Dict[str, str]:
        params: ExternalParameters = definition.typed_parameters()
        env = dict(os.environ)
        env.update(params.env)
        env.update({
            "KH_CHECK_NAME": definition.name,
            "KH_RUN_UUID": run_uuid or "",
            "KH_REPORTING_URL": self.reporting_url,
            "KH_CHECK_RUN_DEADLINE": str(int(deadline)),
        })
        return env

    async def run_once(
        self,
        definition: CheckDefinition,
        run_uuid: Optional[str],
    ) -> Optional[CheckResult]:
        params: ExternalParameters = definition.typed_parameters()
        deadline = time.time() + definition.timeout_seconds
        env = self.build_environment(definition, run_uuid, deadline)

        try:
            process = await asyncio.create_subprocess_exec(
                *params.command,
                env=env,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error(f"Failed to launch {params.command[0]}: {e}")
            return CheckResult.unhealthy(f"failed to launch check process: {e}")

        logger.debug(f"Launched check process pid={process.pid}")

        try:
            _, stderr = await asyncio.wait_for(
                process.communicate(), timeout=definition.timeout_seconds
            )
        except asyncio.TimeoutError:
            await self._kill(process)
            logger.warning(
                f"Check process pid={process.pid} killed after "
                f"{definition.timeout_seconds}s"
            )
            return CheckResult.unhealthy(
                f"check process timed out after {definition.timeout_seconds}s"
            )
        except asyncio.CancelledError:
            await self._terminate(process)
            raise

        if process.returncode != 0:
            tail = (stderr or b"").decode(errors="replace").strip()[-500:]
            logger.warning(
                f"Check process pid={process.pid} exited with code {process.returncode}"
            )
            return CheckResult.unhealthy(
                f"check process exited with code {process.returncode}",
                stderr=tail,
            )

        return None

    async def _kill(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is not None:
            return
        try:
            process.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(process.wait(), timeout=TERMINATE_GRACE_SECONDS)
        except asyncio.TimeoutError:
            await self._kill(process)


__all__ = ["ExternalCheckRunner"]
