# ============================================================================
# TOOL TESTS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tests - Operator and check-process tools
# PURPOSE: Verify manifest parsing and the reporting client
# CREATED: 19 OCT 2026
# ============================================================================
"""
Tool Tests

Run with:
    pytest tests/test_tools.py -v
"""

import asyncio
import json
from unittest.mock import MagicMock

import httpx
import pytest
from fastapi.testclient import TestClient

from conftest import InMemoryClusterState, make_definition
from core.contracts import CheckCategory, CheckStatus
from main import create_app
from orchestrator import UUIDWhitelist
from services import StatusService
from tools.apply_check import ManifestError, load_manifest
from tools.report_status import ReportingError, build_report, report, _parse_details

CHECK_ENV = {
    "KH_CHECK_NAME": "ssl-expiry",
    "KH_RUN_UUID": "abc-123",
    "KH_REPORTING_URL": "http://testserver/externalCheckStatus",
}


# ============================================================================
# MANIFESTS
# ============================================================================

class TestLoadManifest:

    def test_checks_list(self):
        definitions = load_manifest(
            """
checks:
  - name: ssl-expiry
    mandatory: false
    run_interval_seconds: 300
    timeout_seconds: 60
    parameters:
      command: /usr/local/bin/ssl-check --days 14
      env.TARGET_HOST: example.com
  - name: registry-pull
    enabled: false
    parameters:
      command: /usr/local/bin/pull-check
"""
        )
        assert [d.name for d in definitions] == ["ssl-expiry", "registry-pull"]
        ssl = definitions[0]
        assert ssl.category == CheckCategory.EXTERNAL
        assert ssl.mandatory is False
        assert ssl.run_interval_seconds == 300
        params = ssl.typed_parameters()
        assert params.command == ("/usr/local/bin/ssl-check", "--days", "14")
        assert params.env == {"TARGET_HOST": "example.com"}
        assert definitions[1].enabled is False

    def test_multiple_documents_and_shapes(self):
        definitions = load_manifest(
            """
name: one
parameters: {command: /bin/true}
---
- name: two
  parameters: {command: /bin/true}
"""
        )
        assert [d.name for d in definitions] == ["one", "two"]

    def test_parameter_values_stringified(self):
        definitions = load_manifest(
            "name: ports\nparameters: {command: /bin/check, env.PORT: 8443}\n"
        )
        assert definitions[0].parameters["env.PORT"] == "8443"

    def test_builtin_category_rejected(self):
        with pytest.raises(ManifestError, match="environment flags"):
            load_manifest(
                "name: my-dns\ncategory: dns\nparameters: {endpoints: example.com}\n"
            )

    def test_duplicate_names_rejected(self):
        with pytest.raises(ManifestError, match="duplicate"):
            load_manifest(
                "- {name: a, parameters: {command: /bin/true}}\n"
                "- {name: a, parameters: {command: /bin/false}}\n"
            )

    @pytest.mark.parametrize("text", [
        "checks: [\n",
        "just a string\n",
        "- not-a-mapping\n",
        "name: Bad_Name\nparameters: {command: /bin/true}\n",
        "name: no-command\n",
    ])
    def test_invalid_manifests(self, text):
        with pytest.raises(ManifestError):
            load_manifest(text)

    def test_empty_manifest(self):
        assert load_manifest("") == []


# ============================================================================
# REPORTING CLIENT
# ============================================================================

class TestBuildReport:

    def test_from_environment(self):
        payload = build_report(False, errors=["expires in 3 days"], details={"days": 3}, env=CHECK_ENV)
        assert payload == {
            "checkName": "ssl-expiry",
            "uuid": "abc-123",
            "status": "unhealthy",
            "errors": ["expires in 3 days"],
            "details": {"days": 3},
        }

    def test_missing_environment(self):
        with pytest.raises(ReportingError):
            build_report(True, env={"KH_CHECK_NAME": "ssl-expiry"})

    def test_parse_details(self):
        assert _parse_details(["days=3", "host=a=b"]) == {"days": "3", "host": "a=b"}
        with pytest.raises(ReportingError):
            _parse_details(["novalue"])


class TestReport:

    def test_posts_payload(self):
        seen = []

        def handler(request):
            seen.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200, json={"checkName": "ssl-expiry"})

        client = httpx.Client(transport=httpx.MockTransport(handler))
        payload = build_report(True, env=CHECK_ENV)

        resp = report(payload, url=CHECK_ENV["KH_REPORTING_URL"], client=client)

        assert resp.status_code == 200
        assert seen == [(CHECK_ENV["KH_REPORTING_URL"], payload)]

    def test_rejection_is_returned(self):
        client = httpx.Client(transport=httpx.MockTransport(
            lambda request: httpx.Response(403, json={"error": "verification failed"})
        ))
        resp = report(build_report(True, env=CHECK_ENV), url="http://x/", client=client)
        assert resp.status_code == 403

    def test_url_required(self, monkeypatch):
        monkeypatch.delenv("KH_REPORTING_URL", raising=False)
        with pytest.raises(ReportingError):
            report(build_report(True, env=CHECK_ENV))

    def test_end_to_end_against_status_api(self):
        store = InMemoryClusterState()
        store.definitions["ssl-expiry"] = make_definition("ssl-expiry", CheckCategory.EXTERNAL)
        whitelist = UUIDWhitelist(store, token_factory=lambda: "abc-123")
        asyncio.run(whitelist.issue_token("ssl-expiry"))
        app = create_app(StatusService(store, whitelist, instance_id="inst-1"), MagicMock())

        with TestClient(app) as client:
            ok = report(build_report(True, env=CHECK_ENV), url=CHECK_ENV["KH_REPORTING_URL"], client=client)
            stale = report(
                build_report(False, env={**CHECK_ENV, "KH_RUN_UUID": "old-uuid"}),
                url=CHECK_ENV["KH_REPORTING_URL"],
                client=client,
            )

        assert ok.status_code == 200
        assert stale.status_code == 403
        assert store.states["ssl-expiry"].status == CheckStatus.HEALTHY
