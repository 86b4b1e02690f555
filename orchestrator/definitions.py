# ============================================================================
# BUILT-IN CHECK DEFINITIONS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Definitions from configuration flags
# PURPOSE: Translate CheckDefaults into CheckDefinitions
# CREATED: 19 OCT 2026
# ============================================================================
"""
Built-in check definitions.

Built-in checks come from environment flags. Each flag maps to one
definition with a fixed name; disabled flags still produce a definition
(enabled=False) so the re-scan can deactivate a check whose flag flipped.
"""

from typing import List

from core.config import CheckDefaults
from core.contracts import CheckCategory
from core.models import CheckDefinition

COMPONENT_STATUS_CHECK = "component-status"
DAEMONSET_CHECK = "daemonset"
POD_RESTART_CHECK = "pod-restarts"
POD_STATUS_CHECK = "pod-status"
DNS_CHECK = "dns-status-internal"


def build_builtin_definitions(config: CheckDefaults) -> List[CheckDefinition]:
    """Definitions for every built-in category, enabled per its flag."""
    namespaces = ",".join(config.pod_check_namespaces)
    daemonset_params = {}
    if config.ds_pause_container_image_override:
        daemonset_params["pause_image_override"] = config.ds_pause_container_image_override

    specs = [
        (COMPONENT_STATUS_CHECK, CheckCategory.COMPONENT_STATUS,
         config.enable_component_status_checks, {}),
        (DAEMONSET_CHECK, CheckCategory.DAEMONSET,
         config.enable_daemonset_checks, daemonset_params),
        (POD_RESTART_CHECK, CheckCategory.POD_RESTART,
         config.enable_pod_restart_checks, {"namespaces": namespaces}),
        (POD_STATUS_CHECK, CheckCategory.POD_STATUS,
         config.enable_pod_status_checks, {"namespaces": namespaces}),
        (DNS_CHECK, CheckCategory.DNS,
         config.enable_dns_checks, {"endpoints": ",".join(config.dns_endpoints)}),
    ]

    return [
        CheckDefinition(
            name=name,
            category=category,
            enabled=enabled,
            run_interval_seconds=config.run_interval_seconds,
            timeout_seconds=config.run_timeout_seconds,
            parameters=parameters,
        )
        for name, category, enabled, parameters in specs
    ]


__all__ = [
    "COMPONENT_STATUS_CHECK",
    "DAEMONSET_CHECK",
    "POD_RESTART_CHECK",
    "POD_STATUS_CHECK",
    "DNS_CHECK",
    "build_builtin_definitions",
]
