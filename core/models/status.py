# ============================================================================
# CHECK STATUS MODELS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Check results and aggregate status
# PURPOSE: Current result per check and the cluster-wide aggregate
# CREATED: 19 OCT 2026
# ============================================================================
"""
Check Status Models

CheckResult     - outcome of one probe run (in-process or external)
CheckState      - current persisted result for a check (no history)
AggregateStatus - what GET / returns
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.contracts import CheckStatus
from core.models.state import utcnow


class CheckResult(BaseModel):
    """Outcome of a single check run."""
    status: CheckStatus
    errors: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    duration_ms: float = 0.0

    @classmethod
    def healthy(cls, **details) -> "CheckResult":
        return cls(status=CheckStatus.HEALTHY, details=details)

    @classmethod
    def unhealthy(cls, *errors: str, **details) -> "CheckResult":
        return cls(status=CheckStatus.UNHEALTHY, errors=list(errors), details=details)

    @classmethod
    def from_exception(cls, e: BaseException) -> "CheckResult":
        return cls(
            status=CheckStatus.UNHEALTHY,
            errors=[str(e) or type(e).__name__],
            details={"exception_type": type(e).__name__},
        )


class CheckState(BaseModel):
    """
    Current state of a check.

    Table: khstate.check_states
    """
    check_name: str = Field(..., max_length=253)
    status: CheckStatus = CheckStatus.UNKNOWN
    errors: List[str] = Field(default_factory=list)
    details: Dict[str, Any] = Field(default_factory=dict)
    mandatory: bool = True
    last_run: datetime = Field(default_factory=utcnow)
    run_uuid: Optional[str] = None
    reported_by: Optional[str] = Field(
        default=None,
        description="Instance id for in-process checks, 'external' for submissions",
    )

    @property
    def ok(self) -> bool:
        return self.status == CheckStatus.HEALTHY


class AggregateStatus(BaseModel):
    """Cluster-wide status as served by the status API."""
    ok: bool
    errors: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)
    checks: Dict[str, CheckState] = Field(default_factory=dict)
    is_master: bool = False
    instance_id: Optional[str] = None
    checked_at: datetime = Field(default_factory=utcnow)

    @classmethod
    def from_states(cls, states: List[CheckState], **kwargs) -> "AggregateStatus":
        """
        Build the aggregate.

        OK iff every mandatory check is healthy. Failing optional checks
        only produce warnings.
        """
        errors: List[str] = []
        warnings: List[str] = []
        for state in sorted(states, key=lambda s: s.check_name):
            if state.ok:
                continue
            messages = state.errors or [f"status is {state.status.value}"]
            target = errors if state.mandatory else warnings
            target.extend(f"{state.check_name}: {m}" for m in messages)

        return cls(
            ok=not errors,
            errors=errors,
            warnings=warnings,
            checks={s.check_name: s for s in states},
            **kwargs,
        )


__all__ = ["CheckResult", "CheckState", "AggregateStatus"]
