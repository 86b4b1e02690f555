# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# LAST_REVIEWED: 19 OCT 2026
# ============================================================================

from core.contracts import CheckCategory, CheckStatus, ShutdownOutcome
from core.errors import (
    OrchestratorError,
    ConfigurationError,
    ActivationError,
    AlreadyActiveError,
    DeactivationTimeoutError,
    VerificationFailure,
    ClusterStateError,
)
from core.models import (
    CheckDefinition,
    CheckResult,
    CheckState,
    AggregateStatus,
    MasterState,
    RunningCheck,
    ShutdownState,
    UUIDWhitelistEntry,
)

__all__ = [
    # Enums
    "CheckCategory",
    "CheckStatus",
    "ShutdownOutcome",
    # Errors
    "OrchestratorError",
    "ConfigurationError",
    "ActivationError",
    "AlreadyActiveError",
    "DeactivationTimeoutError",
    "VerificationFailure",
    "ClusterStateError",
    # Models
    "CheckDefinition",
    "CheckResult",
    "CheckState",
    "AggregateStatus",
    "MasterState",
    "RunningCheck",
    "ShutdownState",
    "UUIDWhitelistEntry",
]
