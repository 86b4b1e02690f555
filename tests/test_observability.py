# ============================================================================
# OBSERVABILITY TESTS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tests - Check result metrics
# PURPOSE: Verify results from both write paths reach the meter
# CREATED: 19 OCT 2026
# ============================================================================
"""
Observability Tests

Reads instruments back through the SDK's in-memory reader; no collector.

Run with:
    pytest tests/test_observability.py -v
"""

import asyncio

import pytest
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import InMemoryMetricReader

from conftest import InMemoryClusterState, make_definition
from core.config import MetricsDefaults
from core.contracts import CheckCategory, CheckStatus
from core.errors import ClusterStateError, VerificationFailure
from core.models import CheckResult
from core.observability import CheckMetrics, create_meter_provider
from orchestrator import UUIDWhitelist
from services import StatusService


def _points(reader, name):
    """Data points of one metric, keyed by check_name."""
    data = reader.get_metrics_data()
    points = {}
    for resource_metrics in (data.resource_metrics if data else []):
        for scope_metrics in resource_metrics.scope_metrics:
            for metric in scope_metrics.metrics:
                if metric.name == name:
                    for point in metric.data.data_points:
                        points[point.attributes["check_name"]] = point
    return points


@pytest.fixture
def reader():
    return InMemoryMetricReader()


@pytest.fixture
def service(reader):
    store = InMemoryClusterState()
    whitelist = UUIDWhitelist(store, token_factory=lambda: "abc-123")
    metrics = CheckMetrics(MeterProvider(metric_readers=[reader]))
    return StatusService(store, whitelist, instance_id="inst-1", metrics=metrics)


class TestRecordedResults:

    def test_in_process_result_counted_with_duration(self, service, reader):
        definition = make_definition("dns-check", CheckCategory.DNS, mandatory=True)
        result = CheckResult.unhealthy("nxdomain")
        result.duration_ms = 42.0

        asyncio.run(service.record_result(definition, result))
        asyncio.run(service.record_result(definition, result))

        count = _points(reader, "check_results")["dns-check"]
        assert count.value == 2
        assert dict(count.attributes) == {
            "check_name": "dns-check",
            "status": "unhealthy",
            "mandatory": True,
            "source": "probe",
        }
        duration = _points(reader, "check_duration")["dns-check"]
        assert duration.count == 2
        assert duration.sum == pytest.approx(84.0)

    def test_external_report_counted(self, service, reader):
        service.store.definitions["ssl"] = make_definition(
            "ssl", CheckCategory.EXTERNAL, mandatory=False
        )

        async def run():
            await service.whitelist.issue_token("ssl")
            await service.accept_external_report("ssl", "abc-123", CheckStatus.HEALTHY)

        asyncio.run(run())

        count = _points(reader, "check_results")["ssl"]
        assert count.value == 1
        assert count.attributes["source"] == "external"
        assert count.attributes["mandatory"] is False
        assert "ssl" not in _points(reader, "check_duration")

    def test_rejected_report_not_counted(self, service, reader):
        service.store.definitions["ssl"] = make_definition("ssl", CheckCategory.EXTERNAL)

        async def run():
            await service.whitelist.issue_token("ssl")
            with pytest.raises(VerificationFailure):
                await service.accept_external_report("ssl", "forged", CheckStatus.HEALTHY)

        asyncio.run(run())
        assert _points(reader, "check_results") == {}

    def test_failed_write_not_counted(self, service, reader):
        definition = make_definition("dns-check", CheckCategory.DNS)
        service.store.failing = True

        with pytest.raises(ClusterStateError):
            asyncio.run(service.record_result(definition, CheckResult.healthy()))
        assert _points(reader, "check_results") == {}


class TestMeterProvider:

    def test_disabled_records_nothing(self):
        assert create_meter_provider(MetricsDefaults()) is None

        metrics = CheckMetrics(None)
        assert metrics.enabled is False
        metrics.record("dns-check", CheckStatus.HEALTHY, True, "probe", duration_ms=1.0)
        metrics.shutdown()

    def test_enabled_builds_exporting_provider(self):
        config = MetricsDefaults(
            enabled=True,
            otlp_endpoint="http://collector:4318/v1/metrics",
            otlp_headers=(("X-Scope-OrgID", "kh"),),
        )

        provider = create_meter_provider(config, instance_id="inst-1")

        assert isinstance(provider, MeterProvider)
        assert CheckMetrics(provider).enabled is True
        provider.shutdown()
