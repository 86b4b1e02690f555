# ============================================================================
# REPOSITORIES MODULE
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Database access layer
# PURPOSE: Cluster state store access
# CREATED: 19 OCT 2026
# ============================================================================
"""
Repositories Module

Provides access to the cluster state store.
Uses psycopg3 async with connection pooling.

Usage:
    from repositories import create_pool, ClusterStateRepository

    pool = await create_pool()
    cluster_state = ClusterStateRepository(pool)
    definition = await cluster_state.get_check_definition("dns-check")
"""

from .database import create_pool, get_connection_string
from .cluster_state import ClusterStateStore, ClusterStateRepository

__all__ = [
    "create_pool",
    "get_connection_string",
    "ClusterStateStore",
    "ClusterStateRepository",
]
