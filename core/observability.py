# ============================================================================
# OBSERVABILITY
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Check result metrics
# PURPOSE: Forward check results to an OpenTelemetry collector
# CREATED: 19 OCT 2026
# ============================================================================
"""
Observability

Every recorded check result becomes a metric point:

    check_results     counter, one per result
    check_duration    histogram (ms), in-process runs only

Attributes on both: check_name, status, mandatory, source ("probe" for
in-process runs, "external" for submissions).

Export goes over OTLP/HTTP on a periodic reader. With forwarding disabled
the API's no-op provider is used, so callers record unconditionally.

Usage:
    from core.observability import CheckMetrics, create_meter_provider

    metrics = CheckMetrics(create_meter_provider(config.metrics, instance_id))
    metrics.record("dns-check", CheckStatus.HEALTHY, mandatory=True, source="probe")
"""

import logging
from typing import Optional

from opentelemetry import metrics
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from core.config import MetricsDefaults
from core.contracts import CheckStatus

logger = logging.getLogger(__name__)

METER_NAME = "check-orchestrator"

SOURCE_PROBE = "probe"
SOURCE_EXTERNAL = "external"


def create_meter_provider(
    config: MetricsDefaults,
    instance_id: Optional[str] = None,
) -> Optional[MeterProvider]:
    """
    Build an SDK meter provider exporting to the configured collector.

    Returns None when forwarding is disabled.
    """
    if not config.enabled:
        logger.info("Metrics forwarding disabled")
        return None

    exporter = OTLPMetricExporter(
        endpoint=config.otlp_endpoint,
        headers=dict(config.otlp_headers),
    )
    reader = PeriodicExportingMetricReader(
        exporter,
        export_interval_millis=config.export_interval * 1000,
    )
    attributes = {"service.name": config.service_name}
    if instance_id:
        attributes["service.instance.id"] = instance_id

    logger.info(
        f"Metrics forwarding enabled: endpoint={config.otlp_endpoint}, "
        f"interval={config.export_interval}s"
    )
    return MeterProvider(resource=Resource.create(attributes), metric_readers=[reader])


class CheckMetrics:
    """
    Check result instruments.

    Used by:
    - StatusService (both write paths, after the state is stored)
    """

    def __init__(self, meter_provider: Optional[metrics.MeterProvider] = None):
        self._provider = meter_provider or metrics.NoOpMeterProvider()
        meter = self._provider.get_meter(METER_NAME)
        self._results = meter.create_counter(
            "check_results",
            unit="1",
            description="Check results recorded, by check and status",
        )
        self._duration = meter.create_histogram(
            "check_duration",
            unit="ms",
            description="Duration of in-process check runs",
        )

    @property
    def enabled(self) -> bool:
        return isinstance(self._provider, MeterProvider)

    def record(
        self,
        check_name: str,
        status: CheckStatus,
        mandatory: bool,
        source: str,
        duration_ms: Optional[float] = None,
    ) -> None:
        attributes = {
            "check_name": check_name,
            "status": status.value,
            "mandatory": mandatory,
            "source": source,
        }
        self._results.add(1, attributes=attributes)
        if duration_ms is not None:
            self._duration.record(duration_ms, attributes=attributes)

    def shutdown(self) -> None:
        """Flush pending points and stop the exporter."""
        if self.enabled:
            self._provider.shutdown()
            logger.info("Metrics exporter stopped")


__all__ = [
    "CheckMetrics",
    "create_meter_provider",
    "SOURCE_PROBE",
    "SOURCE_EXTERNAL",
]
