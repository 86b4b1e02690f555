# ============================================================================
# PROBE REGISTRY
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Probe registration and lookup
# PURPOSE: Register in-process probe functions by check category
# CREATED: 19 OCT 2026
# ============================================================================
"""
Probe Registry

Central registry of in-process probes. A probe is an async function that
runs one iteration of a check and returns a CheckResult.

Design:
- Probes are registered at import time via decorator
- One probe per category (category -> probe function)
- Fail-fast on duplicate registration
- Extra probe modules are imported from PROBE_MODULES at startup

Example:
    @register_probe(CheckCategory.POD_STATUS, description="Pods are Running")
    async def pod_status_probe(ctx: ProbeContext) -> CheckResult:
        ...
"""

import importlib
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

from core.contracts import CheckCategory
from core.models import CheckDefinition, CheckParameters, CheckResult

logger = logging.getLogger(__name__)


@dataclass
class ProbeContext:
    """Everything a probe needs for one run."""
    definition: CheckDefinition
    parameters: CheckParameters
    run_uuid: Optional[str] = None

    @property
    def check_name(self) -> str:
        return self.definition.name


ProbeFunc = Callable[[ProbeContext], Awaitable[CheckResult]]


class DuplicateProbeError(Exception):
    """Raised when a category already has a probe."""
    def __init__(self, category: CheckCategory):
        self.category = category
        super().__init__(f"Probe already registered for category: {category.value}")


# Global registry
_probes: Dict[CheckCategory, ProbeFunc] = {}
_probe_metadata: Dict[CheckCategory, Dict[str, Any]] = {}


def register_probe(
    category: CheckCategory,
    *,
    description: str = "",
) -> Callable[[ProbeFunc], ProbeFunc]:
    """
    Decorator to register a probe for a check category.

    Raises:
        DuplicateProbeError: if the category already has a probe
        ValueError: for the external category, which runs out of process
    """
    if category is CheckCategory.EXTERNAL:
        raise ValueError("External checks run out of process and take no probe")

    def decorator(func: ProbeFunc) -> ProbeFunc:
        if category in _probes:
            raise DuplicateProbeError(category)

        _probes[category] = func
        _probe_metadata[category] = {
            "category": category.value,
            "description": description,
            "function": func.__name__,
            "module": func.__module__,
            "registered_at": datetime.now(timezone.utc).isoformat(),
        }
        logger.debug(f"Registered probe: {category.value} ({func.__module__}.{func.__name__})")
        return func

    return decorator


def get_probe(category: CheckCategory) -> Optional[ProbeFunc]:
    """Get the probe for a category, None if not registered."""
    return _probes.get(category)


def list_probes() -> List[Dict[str, Any]]:
    """List registered probes with metadata."""
    return list(_probe_metadata.values())


def clear_probes() -> None:
    """
    Clear all registered probes.

    Primarily for testing.
    """
    _probes.clear()
    _probe_metadata.clear()


def load_probe_modules(modules: Iterable[str]) -> int:
    """
    Import probe modules so their decorators register probes.

    Returns:
        Number of modules loaded
    """
    loaded = 0
    for module_name in modules:
        try:
            importlib.import_module(module_name)
            logger.info(f"Loaded probe module: {module_name}")
            loaded += 1
        except ImportError as e:
            logger.warning(f"Failed to load probe module {module_name}: {e}")
    logger.info(f"Registered probes: {[p['category'] for p in list_probes()]}")
    return loaded


__all__ = [
    "ProbeContext",
    "ProbeFunc",
    "DuplicateProbeError",
    "register_probe",
    "get_probe",
    "list_probes",
    "clear_probes",
    "load_probe_modules",
]
