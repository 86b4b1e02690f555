# ============================================================================
# STATUS API TESTS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tests - HTTP boundary
# PURPOSE: Verify aggregate reads and verified external submissions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Status API Tests

Uses FastAPI TestClient against the real StatusService and UUIDWhitelist
backed by the in-memory cluster state; the orchestrator is a mock.

Run with:
    pytest tests/test_status_routes.py -v
"""

import asyncio
import logging
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from conftest import InMemoryClusterState, make_definition
from core.contracts import CheckCategory, CheckStatus
from core.models import CheckState
from main import create_app
from orchestrator import UUIDWhitelist
from services import StatusService


# ============================================================================
# FIXTURES
# ============================================================================

def _make_orchestrator(is_master=True):
    orchestrator = MagicMock()
    orchestrator.is_master = is_master
    orchestrator.stats = {
        "running": True,
        "instance_id": "inst-1",
        "is_master": is_master,
        "forced_master": False,
        "master_since": None,
        "started_at": "2026-10-19T00:00:00+00:00",
        "uptime_seconds": 12.0,
        "master_poll_interval": 10.0,
        "rescan_interval": 15.0,
        "active_checks": ["dns-check"],
        "transitions": 1,
        "polls": 3,
        "rescans": 2,
        "activation_failures": 0,
        "errors": 0,
        "last_poll_at": None,
        "last_rescan_at": None,
        "registry": {"registered": 1, "active": 1},
    }
    return orchestrator


def _make_test_app(store, tokens=("abc-123",)):
    """App wired to the in-memory store with a predictable token sequence."""
    it = iter(tokens)
    whitelist = UUIDWhitelist(store, token_factory=lambda: next(it))
    status_service = StatusService(store, whitelist, instance_id="inst-1")
    app = create_app(status_service, _make_orchestrator())
    return app, whitelist


def _report(**overrides):
    body = {
        "checkName": "ssl",
        "uuid": "abc-123",
        "status": "healthy",
        "details": {"days_left": 42},
    }
    body.update(overrides)
    return body


@pytest.fixture
def store():
    store = InMemoryClusterState()
    store.definitions["ssl"] = make_definition("ssl", CheckCategory.EXTERNAL, mandatory=False)
    return store


# ============================================================================
# AGGREGATE STATUS
# ============================================================================

class TestAggregateStatus:

    def test_empty_is_ok(self, store):
        app, _ = _make_test_app(store)
        resp = TestClient(app).get("/")
        assert resp.status_code == 200
        data = resp.json()
        assert data["ok"] is True
        assert data["is_master"] is True
        assert data["instance_id"] == "inst-1"

    def test_failing_mandatory_check(self, store):
        store.states["dns-check"] = CheckState(
            check_name="dns-check", status=CheckStatus.UNHEALTHY, errors=["nxdomain"]
        )
        app, _ = _make_test_app(store)
        data = TestClient(app).get("/").json()
        assert data["ok"] is False
        assert data["errors"] == ["dns-check: nxdomain"]
        assert data["checks"]["dns-check"]["mandatory"] is True
        assert "last_run" in data["checks"]["dns-check"]

    def test_failing_optional_check_is_warning(self, store):
        store.states["ssl"] = CheckState(
            check_name="ssl", status=CheckStatus.UNHEALTHY, errors=["expiring"], mandatory=False
        )
        app, _ = _make_test_app(store)
        data = TestClient(app).get("/").json()
        assert data["ok"] is True
        assert data["warnings"] == ["ssl: expiring"]

    def test_store_down_still_answers(self, store):
        store.failing = True
        app, _ = _make_test_app(store)
        resp = TestClient(app).get("/")
        assert resp.status_code == 200
        assert resp.json()["ok"] is False

    def test_read_has_no_side_effects(self, store):
        app, _ = _make_test_app(store)
        TestClient(app).get("/")
        assert store.calls == ["list_check_states"]


# ============================================================================
# EXTERNAL SUBMISSIONS
# ============================================================================

class TestExternalSubmission:

    def test_accepted(self, store):
        app, whitelist = _make_test_app(store)
        asyncio.run(whitelist.issue_token("ssl"))

        resp = TestClient(app).post("/externalCheckStatus", json=_report())
        assert resp.status_code == 200
        data = resp.json()
        assert data["accepted"] is True
        assert data["checkName"] == "ssl"

        state = store.states["ssl"]
        assert state.status == CheckStatus.HEALTHY
        assert state.details == {"days_left": 42}
        assert state.mandatory is False
        assert state.reported_by == "external"

    def test_unhealthy_with_errors(self, store):
        app, whitelist = _make_test_app(store)
        asyncio.run(whitelist.issue_token("ssl"))

        resp = TestClient(app).post(
            "/externalCheckStatus",
            json=_report(status="unhealthy", errors=["expires in 2 days"]),
        )
        assert resp.status_code == 200
        assert store.states["ssl"].errors == ["expires in 2 days"]

    def test_wrong_uuid_rejected_without_mutation(self, store):
        app, whitelist = _make_test_app(store)
        asyncio.run(whitelist.issue_token("ssl"))

        resp = TestClient(app).post("/externalCheckStatus", json=_report(uuid="forged"))
        assert resp.status_code == 403
        assert resp.json()["error"] == "verification failed"
        assert "ssl" not in store.states

    def test_stale_uuid_rejected_after_rotation(self, store):
        app, whitelist = _make_test_app(store, tokens=("abc-123", "xyz-789"))
        client = TestClient(app)

        asyncio.run(whitelist.issue_token("ssl"))
        assert client.post("/externalCheckStatus", json=_report()).status_code == 200

        asyncio.run(whitelist.issue_token("ssl"))
        resp = client.post("/externalCheckStatus", json=_report(status="unhealthy", errors=["x"]))
        assert resp.status_code == 403
        assert store.states["ssl"].status == CheckStatus.HEALTHY

    def test_never_issued_rejected(self, store):
        app, _ = _make_test_app(store)
        resp = TestClient(app).post("/externalCheckStatus", json=_report())
        assert resp.status_code == 403

    @pytest.mark.parametrize("content", [
        b"{not json",
        b'{"checkName": "\xff\xfe", "uuid": "abc-123", "status": "healthy"}',
    ])
    def test_malformed_json(self, store, content):
        app, _ = _make_test_app(store)
        resp = TestClient(app).post(
            "/externalCheckStatus",
            content=content,
            headers={"content-type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "malformed payload"
        assert store.calls == []

    def test_rejection_logged_with_check_name(self, store, caplog):
        app, _ = _make_test_app(store)
        with caplog.at_level(logging.WARNING, logger="api.routes"):
            resp = TestClient(app).post("/externalCheckStatus", json=_report(uuid="forged"))
        assert resp.status_code == 403
        messages = [r.getMessage() for r in caplog.records if r.name == "api.routes"]
        assert any("ssl" in m for m in messages)

    @pytest.mark.parametrize("body", [
        {"uuid": "abc-123", "status": "healthy"},
        {"checkName": "ssl", "status": "healthy"},
        {"checkName": "ssl", "uuid": "abc-123", "status": "fine"},
        {"checkName": "ssl", "uuid": "abc-123", "status": "unknown"},
        {"checkName": "ssl", "uuid": "abc-123", "status": "healthy", "details": "nope"},
        ["not", "an", "object"],
    ])
    def test_invalid_payload(self, store, body):
        app, _ = _make_test_app(store)
        resp = TestClient(app).post("/externalCheckStatus", json=body)
        assert resp.status_code == 400
        assert store.calls == []

    def test_store_failure_is_503(self, store):
        app, whitelist = _make_test_app(store)
        asyncio.run(whitelist.issue_token("ssl"))
        store.failing = True

        resp = TestClient(app).post("/externalCheckStatus", json=_report())
        assert resp.status_code == 503


# ============================================================================
# LIVENESS & ORCHESTRATOR STATUS
# ============================================================================

class TestOperational:

    def test_livez(self, store):
        app, _ = _make_test_app(store)
        resp = TestClient(app).get("/livez")
        assert resp.status_code == 200
        assert resp.json()["status"] == "alive"

    def test_orchestrator_status(self, store):
        app, _ = _make_test_app(store)
        resp = TestClient(app).get("/orchestrator/status")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "running"
        assert data["is_master"] is True
        assert data["active_checks"] == ["dns-check"]
        assert data["metrics"]["rescans"] == 2

    def test_missing_components_is_500(self):
        from fastapi import FastAPI
        from api import router

        app = FastAPI()
        app.include_router(router)
        resp = TestClient(app).get("/")
        assert resp.status_code == 500
