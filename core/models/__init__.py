# ============================================================================
# CORE MODELS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Domain models
# PURPOSE: Pydantic models shared by registry, orchestrator, API and storage
# CREATED: 19 OCT 2026
# ============================================================================

from core.models.check import (
    CheckParameters,
    ComponentStatusParameters,
    DaemonSetParameters,
    PodCheckParameters,
    DNSParameters,
    ExternalParameters,
    PARAMETER_SCHEMAS,
    CheckDefinition,
)
from core.models.state import (
    utcnow,
    MasterState,
    RunningCheck,
    ShutdownState,
    UUIDWhitelistEntry,
)
from core.models.status import CheckResult, CheckState, AggregateStatus

__all__ = [
    # Definitions
    "CheckParameters",
    "ComponentStatusParameters",
    "DaemonSetParameters",
    "PodCheckParameters",
    "DNSParameters",
    "ExternalParameters",
    "PARAMETER_SCHEMAS",
    "CheckDefinition",
    # State
    "utcnow",
    "MasterState",
    "RunningCheck",
    "ShutdownState",
    "UUIDWhitelistEntry",
    # Status
    "CheckResult",
    "CheckState",
    "AggregateStatus",
]
