# ============================================================================
# CLUSTER STATE REPOSITORY
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Cluster state store access
# PURPOSE: Check definitions, whitelist tokens and current check states
# CREATED: 19 OCT 2026
# ============================================================================
"""
Cluster State Repository

The cluster state store is shared by every replica. Access is optimistic:
reads are never cached across calls, and writes are idempotent upserts
that replace whole rows (a new whitelist token supersedes the old one,
it is never merged with it).

All failures surface as ClusterStateError.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import asynccontextmanager
from typing import List, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Json
from psycopg_pool import AsyncConnectionPool

from core.contracts import CheckCategory, CheckStatus
from core.errors import ClusterStateError
from core.models import CheckDefinition, CheckState, UUIDWhitelistEntry, utcnow
from .database import (
    TABLE_CHECK_DEFINITIONS,
    TABLE_CHECK_WHITELIST,
    TABLE_CHECK_STATES,
    schema_statements,
)

logger = logging.getLogger(__name__)


class ClusterStateStore(ABC):
    """Interface of the cluster state store."""

    @abstractmethod
    async def get_check_definition(self, name: str) -> Optional[CheckDefinition]:
        """Fetch one definition, None if it does not exist."""

    @abstractmethod
    async def list_external_check_definitions(self) -> List[CheckDefinition]:
        """All external check definitions, enabled or not."""

    @abstractmethod
    async def put_check_definition(self, definition: CheckDefinition) -> None:
        """Create or replace a definition."""

    @abstractmethod
    async def delete_check_definition(self, name: str) -> bool:
        """Remove a definition. Returns True if one existed."""

    @abstractmethod
    async def put_uuid(self, check_name: str, uuid: str) -> UUIDWhitelistEntry:
        """Replace the whitelisted token for a check."""

    @abstractmethod
    async def get_uuid(self, check_name: str) -> Optional[str]:
        """Current whitelisted token for a check, None if never issued."""

    @abstractmethod
    async def delete_uuid(self, check_name: str) -> bool:
        """Revoke the token of a removed check. Returns True if one existed."""

    @abstractmethod
    async def put_check_state(self, state: CheckState) -> None:
        """Create or replace the current state of a check."""

    @abstractmethod
    async def get_check_state(self, check_name: str) -> Optional[CheckState]:
        """Current state of one check."""

    @abstractmethod
    async def list_check_states(self) -> List[CheckState]:
        """Current state of every check."""

    @abstractmethod
    async def delete_check_state(self, check_name: str) -> bool:
        """Forget the state of a removed check."""


class ClusterStateRepository(ClusterStateStore):
    """PostgreSQL implementation of the cluster state store."""

    def __init__(self, pool: AsyncConnectionPool):
        self.pool = pool

    @asynccontextmanager
    async def _connection(self, operation: str):
        """Pool connection with psycopg errors mapped to ClusterStateError."""
        try:
            async with self.pool.connection() as conn:
                conn.row_factory = dict_row
                yield conn
        except psycopg.Error as e:
            logger.warning(f"Cluster state {operation} failed: {e}")
            raise ClusterStateError(operation, e) from e

    async def ensure_schema(self) -> None:
        """Create the schema and tables if missing."""
        async with self._connection("ensure_schema") as conn:
            for statement in schema_statements():
                await conn.execute(statement)
        logger.info("Cluster state schema ready")

    # =========================================================================
    # CHECK DEFINITIONS
    # =========================================================================

    async def get_check_definition(self, name: str) -> Optional[CheckDefinition]:
        async with self._connection("get_check_definition") as conn:
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE name = %s").format(TABLE_CHECK_DEFINITIONS),
                (name,),
            )
            row = await result.fetchone()

        if row is None:
            return None
        return self._row_to_definition(row)

    async def list_external_check_definitions(self) -> List[CheckDefinition]:
        async with self._connection("list_external_check_definitions") as conn:
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE category = %s ORDER BY name").format(
                    TABLE_CHECK_DEFINITIONS
                ),
                (CheckCategory.EXTERNAL.value,),
            )
            rows = await result.fetchall()

        definitions = []
        for row in rows:
            try:
                definitions.append(self._row_to_definition(row))
            except ValueError as e:
                # One malformed row must not hide the others
                logger.error(f"Skipping invalid check definition {row.get('name')}: {e}")
        return definitions

    async def put_check_definition(self, definition: CheckDefinition) -> None:
        async with self._connection("put_check_definition") as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    name, category, enabled, mandatory,
                    run_interval_sec, timeout_sec, parameters, updated_at
                ) VALUES (
                    %(name)s, %(category)s, %(enabled)s, %(mandatory)s,
                    %(run_interval_sec)s, %(timeout_sec)s, %(parameters)s, NOW()
                )
                ON CONFLICT (name) DO UPDATE SET
                    category = EXCLUDED.category,
                    enabled = EXCLUDED.enabled,
                    mandatory = EXCLUDED.mandatory,
                    run_interval_sec = EXCLUDED.run_interval_sec,
                    timeout_sec = EXCLUDED.timeout_sec,
                    parameters = EXCLUDED.parameters,
                    updated_at = NOW()
                """).format(TABLE_CHECK_DEFINITIONS),
                {
                    "name": definition.name,
                    "category": definition.category.value,
                    "enabled": definition.enabled,
                    "mandatory": definition.mandatory,
                    "run_interval_sec": definition.run_interval_seconds,
                    "timeout_sec": definition.timeout_seconds,
                    "parameters": Json(definition.parameters),
                },
            )
        logger.info(f"Stored check definition {definition.name}")

    async def delete_check_definition(self, name: str) -> bool:
        async with self._connection("delete_check_definition") as conn:
            result = await conn.execute(
                sql.SQL("DELETE FROM {} WHERE name = %s").format(TABLE_CHECK_DEFINITIONS),
                (name,),
            )
            return result.rowcount > 0

    # =========================================================================
    # UUID WHITELIST
    # =========================================================================

    async def put_uuid(self, check_name: str, uuid: str) -> UUIDWhitelistEntry:
        entry = UUIDWhitelistEntry(check_name=check_name, current_uuid=uuid)
        async with self._connection("put_uuid") as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (check_name, current_uuid, issued_at)
                VALUES (%s, %s, %s)
                ON CONFLICT (check_name) DO UPDATE SET
                    current_uuid = EXCLUDED.current_uuid,
                    issued_at = EXCLUDED.issued_at
                """).format(TABLE_CHECK_WHITELIST),
                (entry.check_name, entry.current_uuid, entry.issued_at),
            )
        return entry

    async def get_uuid(self, check_name: str) -> Optional[str]:
        async with self._connection("get_uuid") as conn:
            result = await conn.execute(
                sql.SQL("SELECT current_uuid FROM {} WHERE check_name = %s").format(
                    TABLE_CHECK_WHITELIST
                ),
                (check_name,),
            )
            row = await result.fetchone()
        return row["current_uuid"] if row else None

    async def delete_uuid(self, check_name: str) -> bool:
        async with self._connection("delete_uuid") as conn:
            result = await conn.execute(
                sql.SQL("DELETE FROM {} WHERE check_name = %s").format(TABLE_CHECK_WHITELIST),
                (check_name,),
            )
            return result.rowcount > 0

    # =========================================================================
    # CHECK STATES
    # =========================================================================

    async def put_check_state(self, state: CheckState) -> None:
        async with self._connection("put_check_state") as conn:
            await conn.execute(
                sql.SQL("""
                INSERT INTO {} (
                    check_name, status, errors, details, mandatory,
                    last_run, run_uuid, reported_by, updated_at
                ) VALUES (
                    %(check_name)s, %(status)s, %(errors)s, %(details)s, %(mandatory)s,
                    %(last_run)s, %(run_uuid)s, %(reported_by)s, NOW()
                )
                ON CONFLICT (check_name) DO UPDATE SET
                    status = EXCLUDED.status,
                    errors = EXCLUDED.errors,
                    details = EXCLUDED.details,
                    mandatory = EXCLUDED.mandatory,
                    last_run = EXCLUDED.last_run,
                    run_uuid = EXCLUDED.run_uuid,
                    reported_by = EXCLUDED.reported_by,
                    updated_at = NOW()
                """).format(TABLE_CHECK_STATES),
                {
                    "check_name": state.check_name,
                    "status": state.status.value,
                    "errors": Json(state.errors),
                    "details": Json(state.details),
                    "mandatory": state.mandatory,
                    "last_run": state.last_run,
                    "run_uuid": state.run_uuid,
                    "reported_by": state.reported_by,
                },
            )

    async def get_check_state(self, check_name: str) -> Optional[CheckState]:
        async with self._connection("get_check_state") as conn:
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} WHERE check_name = %s").format(TABLE_CHECK_STATES),
                (check_name,),
            )
            row = await result.fetchone()
        return self._row_to_state(row) if row else None

    async def list_check_states(self) -> List[CheckState]:
        async with self._connection("list_check_states") as conn:
            result = await conn.execute(
                sql.SQL("SELECT * FROM {} ORDER BY check_name").format(TABLE_CHECK_STATES)
            )
            rows = await result.fetchall()
        return [self._row_to_state(row) for row in rows]

    async def delete_check_state(self, check_name: str) -> bool:
        async with self._connection("delete_check_state") as conn:
            result = await conn.execute(
                sql.SQL("DELETE FROM {} WHERE check_name = %s").format(TABLE_CHECK_STATES),
                (check_name,),
            )
            return result.rowcount > 0

    # =========================================================================
    # ROW MAPPING
    # =========================================================================

    @staticmethod
    def _row_to_definition(row: dict) -> CheckDefinition:
        return CheckDefinition(
            name=row["name"],
            category=CheckCategory(row["category"]),
            enabled=row["enabled"],
            mandatory=row["mandatory"],
            run_interval_seconds=row["run_interval_sec"],
            timeout_seconds=row["timeout_sec"],
            parameters={k: str(v) for k, v in (row["parameters"] or {}).items()},
        )

    @staticmethod
    def _row_to_state(row: dict) -> CheckState:
        return CheckState(
            check_name=row["check_name"],
            status=CheckStatus(row["status"]),
            errors=row["errors"] or [],
            details=row["details"] or {},
            mandatory=row["mandatory"],
            last_run=row["last_run"] or utcnow(),
            run_uuid=row["run_uuid"],
            reported_by=row["reported_by"],
        )


__all__ = ["ClusterStateStore", "ClusterStateRepository"]
