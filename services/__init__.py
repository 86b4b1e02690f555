# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Business logic layer
# PURPOSE: Result recording and aggregate status
# CREATED: 19 OCT 2026
# ============================================================================
"""
Services Module

Usage:
    from services import StatusService

    status_service = StatusService(store, whitelist, instance_id)
    aggregate = await status_service.aggregate(is_master=True)
"""

from .status_service import StatusService, REPORTED_BY_EXTERNAL

__all__ = ["StatusService", "REPORTED_BY_EXTERNAL"]
