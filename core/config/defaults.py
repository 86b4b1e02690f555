# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Default configuration values
# PURPOSE: Enabled checks, loop intervals, shutdown window, listen address
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Defaults

Sensible defaults for the orchestrator, overridable via environment variables.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides via from_env()
- Parse failures raise ConfigurationError (fatal at startup)
"""

import os
from dataclasses import dataclass, field
from typing import Tuple

from core.errors import ConfigurationError

LOG_LEVELS = ("debug", "info", "warning", "error", "critical")

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off", "")


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ConfigurationError(name, raw, "expected a boolean")


def _env_float(name: str, default: float, minimum: float = 0.0) -> float:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ConfigurationError(name, raw, "expected a number") from None
    if value <= minimum:
        raise ConfigurationError(name, raw, f"must be greater than {minimum}")
    return value


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    # A blank value falls back to the default
    raw = os.getenv(name)
    if raw is None:
        return default
    return split_list(raw) or default


def split_list(raw: str) -> Tuple[str, ...]:
    """Split a comma separated value, dropping blanks."""
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_headers(name: str) -> Tuple[Tuple[str, str], ...]:
    raw = os.getenv(name)
    if raw is None:
        return ()
    headers = []
    for pair in split_list(raw):
        key, sep, value = pair.partition("=")
        if not sep or not key.strip():
            raise ConfigurationError(name, "<redacted>", "expected key=value pairs")
        headers.append((key.strip(), value.strip()))
    return tuple(headers)


@dataclass(frozen=True)
class CheckDefaults:
    """
    Which built-in checks are enabled and how they are parameterised.

    Kubernetes-API categories default off: their probes are plugins
    loaded through PROBE_MODULES.
    """
    enable_component_status_checks: bool = False
    enable_daemonset_checks: bool = False
    enable_pod_restart_checks: bool = False
    enable_pod_status_checks: bool = False
    enable_dns_checks: bool = True
    enable_external_checks: bool = True

    pod_check_namespaces: Tuple[str, ...] = ("kube-system",)
    dns_endpoints: Tuple[str, ...] = ("kubernetes.default",)
    ds_pause_container_image_override: str = ""

    run_interval_seconds: float = 60.0
    run_timeout_seconds: float = 30.0

    probe_modules: Tuple[str, ...] = ()

    @classmethod
    def from_env(cls) -> "CheckDefaults":
        """Create from environment variables."""
        return cls(
            enable_component_status_checks=_env_bool("ENABLE_COMPONENT_STATUS_CHECKS", False),
            enable_daemonset_checks=_env_bool("ENABLE_DAEMONSET_CHECKS", False),
            enable_pod_restart_checks=_env_bool("ENABLE_POD_RESTART_CHECKS", False),
            enable_pod_status_checks=_env_bool("ENABLE_POD_STATUS_CHECKS", False),
            enable_dns_checks=_env_bool("ENABLE_DNS_CHECKS", True),
            enable_external_checks=_env_bool("ENABLE_EXTERNAL_CHECKS", True),
            pod_check_namespaces=_env_list("POD_CHECK_NAMESPACES", ("kube-system",)),
            dns_endpoints=_env_list("DNS_ENDPOINTS", ("kubernetes.default",)),
            ds_pause_container_image_override=os.getenv("DS_PAUSE_CONTAINER_IMAGE_OVERRIDE", ""),
            run_interval_seconds=_env_float("CHECK_RUN_INTERVAL_SEC", 60.0),
            run_timeout_seconds=_env_float("CHECK_RUN_TIMEOUT_SEC", 30.0),
            probe_modules=_env_list("PROBE_MODULES", ()),
        )


@dataclass(frozen=True)
class OrchestratorDefaults:
    """
    Loop timing for the orchestrator.

    The master poll and the re-scan are independent timers.
    """
    master_poll_interval: float = 10.0
    rescan_interval: float = 15.0
    stop_timeout: float = 30.0  # Per-check bound, not the shutdown window
    force_master: bool = False

    @classmethod
    def from_env(cls) -> "OrchestratorDefaults":
        """Create from environment variables."""
        return cls(
            master_poll_interval=_env_float("MASTER_POLL_INTERVAL_SEC", 10.0),
            rescan_interval=_env_float("CHECK_RESCAN_INTERVAL_SEC", 15.0),
            stop_timeout=_env_float("CHECK_STOP_TIMEOUT_SEC", 30.0),
            force_master=_env_bool("FORCE_MASTER", False),
        )


@dataclass(frozen=True)
class ShutdownDefaults:
    """
    Shutdown window.

    Keep calibrated with the pod's terminationGracePeriodSeconds so the
    process never outlives its forced-kill deadline.
    """
    grace_period: float = 300.0

    @classmethod
    def from_env(cls) -> "ShutdownDefaults":
        """Create from environment variables."""
        return cls(grace_period=_env_float("TERMINATION_GRACE_PERIOD_SEC", 300.0))


@dataclass(frozen=True)
class ServerDefaults:
    """Status API listen address and logging."""
    listen_address: str = ":8080"
    reporting_url: str = "http://localhost:8080/externalCheckStatus"
    log_level: str = "info"
    json_logs: bool = False
    debug: bool = False

    @property
    def host(self) -> str:
        host = self.listen_address.rpartition(":")[0]
        return host or "0.0.0.0"

    @property
    def port(self) -> int:
        return int(self.listen_address.rpartition(":")[2])

    @classmethod
    def from_env(cls) -> "ServerDefaults":
        """Create from environment variables."""
        listen_address = os.getenv("LISTEN_ADDRESS", ":8080")
        port = listen_address.rpartition(":")[2]
        if not port.isdigit():
            raise ConfigurationError("LISTEN_ADDRESS", listen_address, "expected host:port")

        log_level = os.getenv("LOG_LEVEL", "info").strip().lower()
        if log_level not in LOG_LEVELS:
            raise ConfigurationError(
                "LOG_LEVEL", log_level, f"expected one of {', '.join(LOG_LEVELS)}"
            )

        return cls(
            listen_address=listen_address,
            reporting_url=os.getenv(
                "REPORTING_URL", f"http://localhost:{port}/externalCheckStatus"
            ),
            log_level=log_level,
            json_logs=os.getenv("LOG_FORMAT", "").lower() == "json",
            debug=_env_bool("DEBUG", False),
        )


@dataclass(frozen=True)
class MetricsDefaults:
    """
    Check result forwarding to an OpenTelemetry collector.

    Off by default. Headers carry collector credentials as
    comma separated key=value pairs.
    """
    enabled: bool = False
    otlp_endpoint: str = "http://localhost:4318/v1/metrics"
    otlp_headers: Tuple[Tuple[str, str], ...] = ()
    service_name: str = "check-orchestrator"
    export_interval: float = 60.0

    @classmethod
    def from_env(cls) -> "MetricsDefaults":
        """Create from environment variables."""
        endpoint = os.getenv("METRICS_OTLP_ENDPOINT", "").strip()
        return cls(
            enabled=_env_bool("ENABLE_METRICS", False),
            otlp_endpoint=endpoint or "http://localhost:4318/v1/metrics",
            otlp_headers=_env_headers("METRICS_OTLP_HEADERS"),
            service_name=os.getenv("METRICS_SERVICE_NAME", "").strip() or "check-orchestrator",
            export_interval=_env_float("METRICS_EXPORT_INTERVAL_SEC", 60.0),
        )


# ============================================================================
# DEFAULTS CONTAINER
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    checks: CheckDefaults = field(default_factory=CheckDefaults)
    orchestrator: OrchestratorDefaults = field(default_factory=OrchestratorDefaults)
    shutdown: ShutdownDefaults = field(default_factory=ShutdownDefaults)
    server: ServerDefaults = field(default_factory=ServerDefaults)
    metrics: MetricsDefaults = field(default_factory=MetricsDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            checks=CheckDefaults.from_env(),
            orchestrator=OrchestratorDefaults.from_env(),
            shutdown=ShutdownDefaults.from_env(),
            server=ServerDefaults.from_env(),
            metrics=MetricsDefaults.from_env(),
        )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "LOG_LEVELS",
    "CheckDefaults",
    "OrchestratorDefaults",
    "ShutdownDefaults",
    "ServerDefaults",
    "MetricsDefaults",
    "Defaults",
    "split_list",
]
