# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Foundation - Core enums
# PURPOSE: Check categories, result statuses and shutdown outcomes
# LAST_REVIEWED: 19 OCT 2026
# EXPORTS: CheckCategory, CheckStatus, ShutdownOutcome
# ============================================================================
"""
Base contracts for the check orchestrator.

These enums cross every boundary:
- SQL (cluster state tables)
- HTTP (status API and external check submissions)
- Python (internal processing)
"""

from enum import Enum
from typing import List


class CheckCategory(str, Enum):
    """
    Check categories.

    Built-in categories are configured through environment flags.
    EXTERNAL definitions are discovered in cluster state.
    """
    COMPONENT_STATUS = "component_status"
    DAEMONSET = "daemonset"
    POD_RESTART = "pod_restart"
    POD_STATUS = "pod_status"
    DNS = "dns"
    EXTERNAL = "external"

    @property
    def is_external(self) -> bool:
        return self is CheckCategory.EXTERNAL


class CheckStatus(str, Enum):
    """Result status for a single check run."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    UNKNOWN = "unknown"          # Registered but never reported

    def __lt__(self, other: "CheckStatus") -> bool:
        """Enable comparison for 'worst wins' aggregation."""
        order = {
            CheckStatus.HEALTHY: 0,
            CheckStatus.UNKNOWN: 1,
            CheckStatus.UNHEALTHY: 2,
        }
        return order[self] < order[other]

    @classmethod
    def aggregate(cls, statuses: List["CheckStatus"]) -> "CheckStatus":
        """Aggregate multiple statuses (worst wins)."""
        if not statuses:
            return cls.HEALTHY
        return max(statuses)


class ShutdownOutcome(str, Enum):
    """
    Which event won the shutdown race.

        GRACEFUL      -> drain completed first (exit 0)
        FORCED_SIGNAL -> second termination signal arrived first (exit 1)
        FORCED_TIMEOUT -> grace period elapsed first (exit 1)
    """
    GRACEFUL = "graceful"
    FORCED_SIGNAL = "forced_signal"
    FORCED_TIMEOUT = "forced_timeout"

    @property
    def exit_code(self) -> int:
        return 0 if self is ShutdownOutcome.GRACEFUL else 1


__all__ = ["CheckCategory", "CheckStatus", "ShutdownOutcome"]
