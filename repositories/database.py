# ============================================================================
# DATABASE CONNECTION POOL
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Async PostgreSQL connection management
# PURPOSE: Connection pooling and schema for the cluster state store
# CREATED: 19 OCT 2026
# ============================================================================
"""
Database Connection Pool

Manages async PostgreSQL connections using psycopg3 and psycopg_pool.
The pool is created explicitly by the application and passed to the
components that need it.

Authentication:
- DATABASE_URL environment variable
- or individual POSTGRES_* components

Usage:
    from repositories.database import create_pool

    pool = await create_pool()
    async with pool.connection() as conn:
        result = await conn.execute("SELECT 1")
"""

import os
import logging
from typing import List, Optional

from psycopg import sql as psycopg_sql
from psycopg_pool import AsyncConnectionPool

logger = logging.getLogger(__name__)


def get_connection_string() -> str:
    """
    Get database connection string from environment.

    Priority:
    1. DATABASE_URL environment variable
    2. Individual POSTGRES_* components

    Returns:
        PostgreSQL connection string
    """
    if url := os.environ.get("DATABASE_URL"):
        return url

    host = os.environ.get("POSTGRES_HOST", "localhost")
    port = os.environ.get("POSTGRES_PORT", "5432")
    name = os.environ.get("POSTGRES_DB", "postgres")
    user = os.environ.get("POSTGRES_USER", "postgres")
    password = os.environ.get("POSTGRES_PASSWORD", "")
    sslmode = os.environ.get("POSTGRES_SSLMODE", "prefer")

    return f"postgresql://{user}:{password}@{host}:{port}/{name}?sslmode={sslmode}"


def mask_conninfo(conninfo: str) -> str:
    """Strip credentials from a connection string for logging."""
    if "@" in conninfo:
        return conninfo.split("@")[-1]
    if "password=" in conninfo:
        return conninfo.split("password=")[0] + "password=***"
    return conninfo


async def create_pool(
    min_size: int = 2,
    max_size: int = 10,
    connection_string: Optional[str] = None,
) -> AsyncConnectionPool:
    """
    Create and open a connection pool.

    Args:
        min_size: Minimum connections to maintain
        max_size: Maximum connections allowed
        connection_string: Override connection string (defaults to env)

    Returns:
        Opened AsyncConnectionPool
    """
    conninfo = connection_string or get_connection_string()
    logger.info(f"Initializing connection pool: {mask_conninfo(conninfo)}")

    pool = AsyncConnectionPool(
        conninfo=conninfo,
        min_size=min_size,
        max_size=max_size,
        open=False,  # Opened explicitly below
    )
    await pool.open()
    logger.info(f"Connection pool opened (min={min_size}, max={max_size})")
    return pool


# ============================================================================
# SCHEMA
# ============================================================================

SCHEMA = "khstate"

# Table identifiers, used with psycopg sql.SQL().format() for injection-safe queries
TABLE_CHECK_DEFINITIONS = psycopg_sql.Identifier(SCHEMA, "check_definitions")
TABLE_CHECK_WHITELIST = psycopg_sql.Identifier(SCHEMA, "check_whitelist")
TABLE_CHECK_STATES = psycopg_sql.Identifier(SCHEMA, "check_states")


def schema_statements() -> List[psycopg_sql.Composed]:
    """DDL for the cluster state schema (idempotent)."""
    return [
        psycopg_sql.SQL("CREATE SCHEMA IF NOT EXISTS {}").format(
            psycopg_sql.Identifier(SCHEMA)
        ),
        psycopg_sql.SQL("""
        CREATE TABLE IF NOT EXISTS {} (
            name VARCHAR(253) PRIMARY KEY,
            category VARCHAR(32) NOT NULL,
            enabled BOOLEAN NOT NULL DEFAULT TRUE,
            mandatory BOOLEAN NOT NULL DEFAULT TRUE,
            run_interval_sec DOUBLE PRECISION NOT NULL DEFAULT 60,
            timeout_sec DOUBLE PRECISION NOT NULL DEFAULT 30,
            parameters JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """).format(TABLE_CHECK_DEFINITIONS),
        psycopg_sql.SQL("""
        CREATE TABLE IF NOT EXISTS {} (
            check_name VARCHAR(253) PRIMARY KEY,
            current_uuid VARCHAR(64) NOT NULL,
            issued_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """).format(TABLE_CHECK_WHITELIST),
        psycopg_sql.SQL("""
        CREATE TABLE IF NOT EXISTS {} (
            check_name VARCHAR(253) PRIMARY KEY,
            status VARCHAR(16) NOT NULL,
            errors JSONB NOT NULL DEFAULT '[]'::jsonb,
            details JSONB NOT NULL DEFAULT '{{}}'::jsonb,
            mandatory BOOLEAN NOT NULL DEFAULT TRUE,
            last_run TIMESTAMPTZ NOT NULL,
            run_uuid VARCHAR(64),
            reported_by VARCHAR(64),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
        """).format(TABLE_CHECK_STATES),
    ]


__all__ = [
    "get_connection_string",
    "mask_conninfo",
    "create_pool",
    "SCHEMA",
    "TABLE_CHECK_DEFINITIONS",
    "TABLE_CHECK_WHITELIST",
    "TABLE_CHECK_STATES",
    "schema_statements",
]
