# ============================================================================
# API ROUTES
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - FastAPI route definitions
# PURPOSE: Aggregate status, external check submissions, liveness
# CREATED: 19 OCT 2026
# ============================================================================
"""
API Routes

    GET  /                      aggregate status (always 200)
    POST /externalCheckStatus   external check result (200/400/403/503)
    GET  /livez                 process liveness
    GET  /orchestrator/status   master state and loop counters

Components are read from app.state, set by the application factory.
"""

import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from core.errors import ClusterStateError, VerificationFailure
from core.logging import ComponentType, log_context
from orchestrator import Orchestrator
from services import StatusService
from __version__ import __version__, BUILD_DATE
from .schemas import ErrorResponse, ExternalCheckReport, SubmissionAccepted

logger = logging.getLogger(__name__)

router = APIRouter()


# ============================================================================
# DEPENDENCY INJECTION
# ============================================================================

def get_status_service(request: Request) -> StatusService:
    service = getattr(request.app.state, "status_service", None)
    if service is None:
        raise HTTPException(500, "Status service not initialized")
    return service


def get_orchestrator(request: Request) -> Orchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(500, "Orchestrator not initialized")
    return orchestrator


def _error(status_code: int, error: str, detail: str = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, detail=detail).model_dump(),
    )


# ============================================================================
# AGGREGATE STATUS
# ============================================================================

@router.get("/", tags=["Status"])
async def get_status(
    status_service: StatusService = Depends(get_status_service),
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """
    Aggregate health of every check.

    `ok` is true iff every mandatory check is healthy. Failing optional
    checks are listed under `warnings`.
    """
    aggregate = await status_service.aggregate(is_master=orchestrator.is_master)
    return JSONResponse(content=aggregate.model_dump(mode="json"))


# ============================================================================
# EXTERNAL CHECK SUBMISSIONS
# ============================================================================

@router.post("/externalCheckStatus", tags=["Status"])
async def submit_external_status(
    request: Request,
    status_service: StatusService = Depends(get_status_service),
):
    """
    Accept a result from an external check process.

    The submission is verified against the check's current whitelist
    token before it is recorded.

    Returns:
        200 - accepted and recorded
        400 - malformed payload
        403 - UUID verification failed (nothing recorded)
        503 - cluster state unavailable
    """
    try:
        payload = json.loads(await request.body())
        report = ExternalCheckReport.model_validate(payload)
    except json.JSONDecodeError as e:
        return _error(400, "malformed payload", f"invalid JSON: {e.msg}")
    except UnicodeDecodeError as e:
        return _error(400, "malformed payload", f"body is not UTF-8: {e.reason}")
    except ValidationError as e:
        return _error(400, "malformed payload", str(e.errors(include_url=False)))

    with log_context(check_name=report.check_name, component=ComponentType.API.value):
        try:
            state = await status_service.accept_external_report(
                check_name=report.check_name,
                submitted_uuid=report.uuid,
                status=report.status,
                errors=report.errors,
                details=report.details,
            )
        except VerificationFailure as e:
            client = request.client.host if request.client else "unknown"
            logger.warning(f"Verification failed for check {report.check_name} (submitted from {client})")
            return _error(403, "verification failed", str(e))
        except ClusterStateError as e:
            logger.error(f"Submission not recorded: {e}")
            return _error(503, "cluster state unavailable", str(e))

    accepted = SubmissionAccepted(
        check_name=state.check_name,
        status=state.status,
        recorded_at=state.last_run,
    )
    return JSONResponse(content=accepted.model_dump(mode="json", by_alias=True))


# ============================================================================
# LIVENESS & ORCHESTRATOR STATUS
# ============================================================================

@router.get("/livez", tags=["Health"])
async def liveness_probe():
    """Returns 200 while the process is serving. No external checks."""
    return {"status": "alive", "version": __version__, "build_date": BUILD_DATE}


@router.get("/orchestrator/status", tags=["Orchestrator"])
async def get_orchestrator_status(
    orchestrator: Orchestrator = Depends(get_orchestrator),
):
    """
    Master state and orchestration loop statistics of this instance.
    """
    stats = orchestrator.stats

    return {
        "status": "running" if stats["running"] else "stopped",
        "instance_id": stats["instance_id"],
        "is_master": stats["is_master"],
        "forced_master": stats["forced_master"],
        "master_since": stats["master_since"],
        "started_at": stats["started_at"],
        "uptime_seconds": stats["uptime_seconds"],
        "active_checks": stats["active_checks"],
        "intervals": {
            "master_poll_seconds": stats["master_poll_interval"],
            "rescan_seconds": stats["rescan_interval"],
        },
        "metrics": {
            "transitions": stats["transitions"],
            "polls": stats["polls"],
            "rescans": stats["rescans"],
            "activation_failures": stats["activation_failures"],
            "errors": stats["errors"],
            "last_poll_at": stats["last_poll_at"],
            "last_rescan_at": stats["last_rescan_at"],
        },
        "registry": stats["registry"],
    }
