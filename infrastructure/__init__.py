# ============================================================================
# INFRASTRUCTURE MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Infrastructure - External coordination services
# PURPOSE: Master election
# CREATED: 19 OCT 2026
# ============================================================================

from .locking import MasterMonitor, LeaderElectionMonitor

__all__ = ["MasterMonitor", "LeaderElectionMonitor"]
