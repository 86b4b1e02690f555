# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Errors raised across registry, whitelist, cluster state, config
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator exceptions.

Only ConfigurationError is fatal. Everything else is recovered locally:
activation failures are retried on the next re-scan, stop timeouts are
logged and treated as stopped, cluster state failures are retried on the
next tick, and verification failures are rejected at the HTTP boundary.
"""

from typing import Optional


class OrchestratorError(Exception):
    """Base exception for orchestrator errors."""
    pass


class ConfigurationError(OrchestratorError):
    """Raised when configuration cannot be parsed at startup."""

    def __init__(self, variable: str, value: str, reason: str):
        self.variable = variable
        self.value = value
        super().__init__(f"Invalid {variable}={value!r}: {reason}")


class ActivationError(OrchestratorError):
    """A check failed to start."""

    def __init__(self, check_name: str, reason: str):
        self.check_name = check_name
        self.reason = reason
        super().__init__(f"Failed to activate check {check_name}: {reason}")


class AlreadyActiveError(ActivationError):
    """A RunningCheck already exists for this name."""

    def __init__(self, check_name: str):
        super().__init__(check_name, "already active")


class CheckNotRegisteredError(ActivationError):
    """Activation requested for a name with no registered definition."""

    def __init__(self, check_name: str):
        super().__init__(check_name, "no definition registered")


class ProbeNotFoundError(ActivationError):
    """No runner or probe is available for a check category."""

    def __init__(self, check_name: str, category: str):
        self.category = category
        super().__init__(check_name, f"no probe registered for category '{category}'")


class DeactivationTimeoutError(OrchestratorError):
    """A check did not confirm it stopped within its stop timeout."""

    def __init__(self, check_name: str, timeout: float):
        self.check_name = check_name
        self.timeout = timeout
        super().__init__(
            f"Check {check_name} did not confirm stop within {timeout}s"
        )


class VerificationFailure(OrchestratorError):
    """A submitted UUID did not match the whitelisted token."""

    def __init__(self, check_name: str):
        self.check_name = check_name
        super().__init__(f"UUID verification failed for check {check_name}")


class ClusterStateError(OrchestratorError):
    """Read or write against the cluster state store failed."""

    def __init__(self, operation: str, cause: Optional[BaseException] = None):
        self.operation = operation
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(f"Cluster state {operation} failed{detail}")


__all__ = [
    "OrchestratorError",
    "ConfigurationError",
    "ActivationError",
    "AlreadyActiveError",
    "CheckNotRegisteredError",
    "ProbeNotFoundError",
    "DeactivationTimeoutError",
    "VerificationFailure",
    "ClusterStateError",
]
