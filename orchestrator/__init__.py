# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Master state machine and its collaborators
# PURPOSE: Run checks on exactly one instance, drain them on shutdown
# CREATED: 19 OCT 2026
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import CheckRegistry, Orchestrator, ShutdownCoordinator, UUIDWhitelist

    whitelist = UUIDWhitelist(store)
    registry = CheckRegistry(runners, whitelist, stop_timeout=30)
    orchestrator = Orchestrator(registry, monitor, store, builtin_definitions)
    await orchestrator.start()
"""

from .definitions import build_builtin_definitions
from .loop import Orchestrator
from .registry import CheckRegistry
from .shutdown import ShutdownCoordinator
from .whitelist import UUIDWhitelist

__all__ = [
    "Orchestrator",
    "CheckRegistry",
    "ShutdownCoordinator",
    "UUIDWhitelist",
    "build_builtin_definitions",
]
