# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 19 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the check orchestrator.
"""

from core.config.defaults import (
    CheckDefaults,
    OrchestratorDefaults,
    ShutdownDefaults,
    ServerDefaults,
    MetricsDefaults,
    Defaults,
    split_list,
)

__all__ = [
    "CheckDefaults",
    "OrchestratorDefaults",
    "ShutdownDefaults",
    "ServerDefaults",
    "MetricsDefaults",
    "Defaults",
    "split_list",
]
