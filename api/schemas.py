# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for the Status API
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the Status API. Field names on the wire
are camelCase; both spellings are accepted on input.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from core.contracts import CheckStatus


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class ExternalCheckReport(BaseModel):
    """Result submission from an external check process."""
    check_name: str = Field(..., alias="checkName", min_length=1, max_length=253)
    uuid: str = Field(..., min_length=1, max_length=64)
    status: CheckStatus
    details: Dict[str, Any] = Field(default_factory=dict)
    errors: List[str] = Field(default_factory=list)

    model_config = {
        "populate_by_name": True,
        "extra": "forbid",
        "json_schema_extra": {
            "examples": [
                {
                    "checkName": "dns-check",
                    "uuid": "abc-123",
                    "status": "healthy",
                    "details": {"resolved": 2},
                }
            ]
        },
    }

    @field_validator("status")
    @classmethod
    def _reported_status(cls, value: CheckStatus) -> CheckStatus:
        if value is CheckStatus.UNKNOWN:
            raise ValueError("status must be healthy or unhealthy")
        return value


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class SubmissionAccepted(BaseModel):
    """Response to an accepted submission."""
    accepted: bool = True
    check_name: str = Field(..., serialization_alias="checkName")
    status: CheckStatus
    recorded_at: datetime = Field(..., serialization_alias="recordedAt")


class ErrorResponse(BaseModel):
    """Standard error response."""
    error: str
    detail: Optional[str] = None


__all__ = ["ExternalCheckReport", "SubmissionAccepted", "ErrorResponse"]
