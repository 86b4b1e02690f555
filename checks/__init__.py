# ============================================================================
# CHECKS PACKAGE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Check - Runner selection
# PURPOSE: Map check categories to the runner that executes them
# CREATED: 19 OCT 2026
# ============================================================================
"""
Checks package.

Importing this package registers the built-in probes. RunnerSet picks the
runner for a definition: external checks get the process runner, every
other category gets a probe runner wrapping its registered probe.
"""

from typing import Callable, Dict, Optional

from core.contracts import CheckCategory
from core.errors import ProbeNotFoundError
from core.models import CheckDefinition
from .base import CheckRunner, ProbeCheckRunner, ResultRecorder, StopHandle
from .external import ExternalCheckRunner
from .registry import (
    ProbeContext,
    ProbeFunc,
    DuplicateProbeError,
    register_probe,
    get_probe,
    list_probes,
    clear_probes,
    load_probe_modules,
)
from . import dns  # noqa: F401  (registers the DNS probe)


class RunnerSet:
    """Resolves the runner for a check definition."""

    def __init__(
        self,
        recorder: ResultRecorder,
        reporting_url: str,
        probe_lookup: Callable[[CheckCategory], Optional[ProbeFunc]] = get_probe,
    ):
        self._recorder = recorder
        self._probe_lookup = probe_lookup
        self._external = ExternalCheckRunner(recorder, reporting_url)
        self._probe_runners: Dict[CheckCategory, ProbeCheckRunner] = {}

    def runner_for(self, definition: CheckDefinition) -> CheckRunner:
        """
        Raises:
            ProbeNotFoundError: no probe registered for the category
        """
        if definition.is_external:
            return self._external

        runner = self._probe_runners.get(definition.category)
        if runner is None:
            probe = self._probe_lookup(definition.category)
            if probe is None:
                raise ProbeNotFoundError(definition.name, definition.category.value)
            runner = ProbeCheckRunner(probe, self._recorder)
            self._probe_runners[definition.category] = runner
        return runner


__all__ = [
    "CheckRunner",
    "ProbeCheckRunner",
    "ExternalCheckRunner",
    "ResultRecorder",
    "StopHandle",
    "RunnerSet",
    "ProbeContext",
    "ProbeFunc",
    "DuplicateProbeError",
    "register_probe",
    "get_probe",
    "list_probes",
    "clear_probes",
    "load_probe_modules",
]
