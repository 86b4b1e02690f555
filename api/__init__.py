# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - FastAPI routes
# PURPOSE: Status API
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the check orchestrator.
"""

from .routes import router
from .schemas import ExternalCheckReport, SubmissionAccepted, ErrorResponse

__all__ = [
    "router",
    "ExternalCheckReport",
    "SubmissionAccepted",
    "ErrorResponse",
]
