# ============================================================================
# STATUS SERVICE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Check results and aggregate status
# PURPOSE: Record check results and build the aggregate served over HTTP
# CREATED: 19 OCT 2026
# ============================================================================
"""
Status Service

Two writers, one reader:
- in-process checks record every run through record_result
- external checks submit through accept_external_report, which verifies
  the whitelist token before anything is written
- the Status API reads aggregate()

Every stored result is also counted in CheckMetrics for forwarding.

Results live in cluster state, so every replica serves the same status
regardless of which one is master.
"""

import logging
from typing import Any, Dict, List, Optional

from core.contracts import CheckStatus
from core.errors import ClusterStateError, VerificationFailure
from core.models import AggregateStatus, CheckDefinition, CheckResult, CheckState, utcnow
from core.observability import SOURCE_EXTERNAL, SOURCE_PROBE, CheckMetrics
from orchestrator.whitelist import UUIDWhitelist
from repositories import ClusterStateStore

logger = logging.getLogger(__name__)

REPORTED_BY_EXTERNAL = "external"


class StatusService:
    """
    Records check results and builds the aggregate status.

    Used by:
    - Check runners (recorder callback)
    - Status API (submissions and reads)
    """

    def __init__(
        self,
        store: ClusterStateStore,
        whitelist: UUIDWhitelist,
        instance_id: Optional[str] = None,
        metrics: Optional[CheckMetrics] = None,
    ):
        self.store = store
        self.whitelist = whitelist
        self.instance_id = instance_id
        self.metrics = metrics or CheckMetrics()

    async def record_result(
        self,
        definition: CheckDefinition,
        result: CheckResult,
        run_uuid: Optional[str] = None,
    ) -> CheckState:
        """
        Record the result of an in-process run.

        Raises:
            ClusterStateError: state could not be written
        """
        state = CheckState(
            check_name=definition.name,
            status=result.status,
            errors=result.errors,
            details={**result.details, "duration_ms": round(result.duration_ms, 1)},
            mandatory=definition.mandatory,
            last_run=utcnow(),
            run_uuid=run_uuid,
            reported_by=self.instance_id,
        )
        await self.store.put_check_state(state)
        self.metrics.record(
            definition.name,
            result.status,
            definition.mandatory,
            SOURCE_PROBE,
            duration_ms=result.duration_ms,
        )
        logger.debug(f"Recorded {definition.name}: {result.status.value}")
        return state

    async def accept_external_report(
        self,
        check_name: str,
        submitted_uuid: str,
        status: CheckStatus,
        errors: Optional[List[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> CheckState:
        """
        Verify and record a result submitted by an external check.

        Nothing is written unless the submitted UUID is the current token
        and the check is still defined in cluster state.

        Raises:
            VerificationFailure: UUID missing or not current, or check removed
            ClusterStateError: verification or write failed
        """
        await self.whitelist.require(check_name, submitted_uuid)

        definition = await self.store.get_check_definition(check_name)
        if definition is None:
            logger.warning(f"Rejected submission for {check_name}: check is no longer defined")
            raise VerificationFailure(check_name)

        state = CheckState(
            check_name=check_name,
            status=status,
            errors=list(errors or []),
            details=dict(details or {}),
            mandatory=definition.mandatory,
            last_run=utcnow(),
            run_uuid=submitted_uuid,
            reported_by=REPORTED_BY_EXTERNAL,
        )
        await self.store.put_check_state(state)
        self.metrics.record(check_name, status, definition.mandatory, SOURCE_EXTERNAL)
        logger.info(f"Accepted external result for {check_name}: {status.value}")
        return state

    async def aggregate(self, is_master: bool = False) -> AggregateStatus:
        """
        Aggregate status of every check in cluster state.

        A cluster state failure is reported in the aggregate (not OK)
        rather than raised, so the read endpoint keeps answering.
        """
        try:
            states = await self.store.list_check_states()
        except ClusterStateError as e:
            logger.warning(f"Aggregate status unavailable: {e}")
            return AggregateStatus(
                ok=False,
                errors=[f"cluster state unavailable: {e}"],
                is_master=is_master,
                instance_id=self.instance_id,
            )

        return AggregateStatus.from_states(
            states,
            is_master=is_master,
            instance_id=self.instance_id,
        )


__all__ = ["StatusService", "REPORTED_BY_EXTERNAL"]
