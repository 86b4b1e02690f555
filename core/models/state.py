# ============================================================================
# ORCHESTRATOR STATE MODELS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Master, running-check and shutdown state
# PURPOSE: State owned by the orchestration loop and shutdown coordinator
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator State Models

MasterState     - owned by the orchestration loop, read-only elsewhere
RunningCheck    - one active execution; at most one per check name
ShutdownState   - transient, created on the first termination signal
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from core.contracts import ShutdownOutcome
from core.models.check import CheckDefinition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class MasterState(BaseModel):
    """
    Whether this instance is the elected master.

    `forced` is the debug override and pins is_master to True.

    Transitions:
        False -> True   activate every enabled check
        True  -> False  deactivate every active check (blocking)
    """
    is_master: bool = False
    forced: bool = False
    changed_at: Optional[datetime] = None

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _forced_implies_master(self) -> "MasterState":
        if self.forced and not self.is_master:
            raise ValueError("forced master state must have is_master=True")
        return self

    def transition(self, is_master: bool, forced: bool = False) -> "MasterState":
        """Return the next state (unchanged instance if nothing changed)."""
        is_master = is_master or forced
        if is_master == self.is_master and forced == self.forced:
            return self
        return MasterState(is_master=is_master, forced=forced, changed_at=utcnow())


@dataclass
class RunningCheck:
    """
    One active execution of a check.

    Created on activation, dropped on deactivation after the runner
    confirmed (or timed out) its stop.
    """
    definition: CheckDefinition
    handle: Any  # Opaque stop token from the runner
    started_at: datetime = field(default_factory=utcnow)
    run_uuid: Optional[str] = None

    @property
    def name(self) -> str:
        return self.definition.name


@dataclass
class ShutdownState:
    """Progress of the shutdown protocol."""
    signal_count: int = 0
    started_at: datetime = field(default_factory=utcnow)
    completed: bool = False
    outcome: Optional[ShutdownOutcome] = None


class UUIDWhitelistEntry(BaseModel):
    """
    The single valid credential of an external check.

    Rewritten every time the check is (re-)activated.

    Table: khstate.check_whitelist
    """
    check_name: str = Field(..., max_length=253)
    current_uuid: str = Field(..., max_length=64)
    issued_at: datetime = Field(default_factory=utcnow)


__all__ = [
    "utcnow",
    "MasterState",
    "RunningCheck",
    "ShutdownState",
    "UUIDWhitelistEntry",
]
