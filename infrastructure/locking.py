# ============================================================================
# LEADER ELECTION MONITOR
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Infrastructure - Master election
# PURPOSE: PostgreSQL advisory lock deciding which replica runs checks
# CREATED: 19 OCT 2026
# ============================================================================
"""
Leader Election Monitor

Uses a PostgreSQL session-level advisory lock held on a dedicated
connection. Whoever holds the lock is master.

Advisory locks are:
- Fast (in-memory, no disk I/O)
- Auto-release on disconnect (crash-safe)
- Support non-blocking try_lock semantics

Each is_master() call:
- Forced mode: always True
- Lock held: verify the lock connection is alive (False if it died)
- Lock not held: try to acquire it

An instance that cannot reach the database is never master.

Usage:
    monitor = LeaderElectionMonitor()
    if await monitor.is_master():
        ...
    await monitor.release()
"""

import hashlib
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from psycopg import AsyncConnection
from psycopg.rows import dict_row

from repositories.database import get_connection_string

logger = logging.getLogger(__name__)


class MasterMonitor(ABC):
    """Interface consumed by the orchestration loop."""

    @abstractmethod
    async def is_master(self) -> bool:
        """Whether this instance is currently the master."""

    @abstractmethod
    def force_always_master(self) -> None:
        """Debug override: report master regardless of election."""

    @abstractmethod
    def enable_verbose_logging(self) -> None:
        """Log every election decision."""

    @property
    def forced(self) -> bool:
        return False

    async def release(self) -> None:
        """Give up mastership (shutdown)."""


class LeaderElectionMonitor(MasterMonitor):
    """
    PostgreSQL advisory-lock based master election.

    All replicas use the same lock key; the lock lives as long as the
    holder's dedicated connection.
    """

    LOCK_KEY = "khstate:orchestrator:master"

    def __init__(
        self,
        connection_string: Optional[str] = None,
        connect: Optional[Callable] = None,
    ):
        """
        Args:
            connection_string: Override connection string (defaults to env)
            connect: Connection factory (defaults to AsyncConnection.connect)
        """
        self._conninfo = connection_string
        self._connect = connect or AsyncConnection.connect
        self._lock_id = self._hash_to_lock_id(self.LOCK_KEY)
        self._lock_conn: Optional[AsyncConnection] = None
        self._forced = False

    @staticmethod
    def _hash_to_lock_id(key: str) -> int:
        """
        Convert string key to int64 for PostgreSQL advisory lock.

        Uses first 8 bytes of SHA256, interpreted as signed int64.
        """
        h = hashlib.sha256(key.encode()).digest()[:8]
        return int.from_bytes(h, byteorder='big', signed=True)

    @property
    def forced(self) -> bool:
        return self._forced

    @property
    def holds_lock(self) -> bool:
        return self._lock_conn is not None

    def force_always_master(self) -> None:
        logger.info("Enabling forced master mode")
        self._forced = True

    def enable_verbose_logging(self) -> None:
        logger.setLevel(logging.DEBUG)
        logger.debug("Verbose leader election logging enabled")

    async def is_master(self) -> bool:
        if self._forced:
            return True

        if self._lock_conn is not None:
            if await self._verify_lock():
                logger.debug(f"Still master (lock_id={self._lock_id})")
                return True
            logger.error("Lost master lock connection")
            await self._drop_connection()
            return False

        return await self._try_acquire()

    async def _try_acquire(self) -> bool:
        """Try to take the lock on a fresh dedicated connection."""
        try:
            conn = await self._connect(
                self._conninfo or get_connection_string(),
                autocommit=True,
                row_factory=dict_row,
            )
        except Exception as e:
            logger.warning(f"Leader election: cannot connect: {e}")
            return False

        try:
            result = await conn.execute(
                "SELECT pg_try_advisory_lock(%s) AS acquired",
                (self._lock_id,),
            )
            row = await result.fetchone()
            acquired = bool(row and row["acquired"])
        except Exception as e:
            logger.warning(f"Leader election: lock attempt failed: {e}")
            acquired = False

        if acquired:
            # Keep the connection open, it holds the lock
            self._lock_conn = conn
            logger.info(f"Acquired master lock (lock_id={self._lock_id})")
            return True

        await conn.close()
        logger.debug("Master lock held by another instance")
        return False

    async def _verify_lock(self) -> bool:
        """Lightweight query on the lock connection."""
        try:
            result = await self._lock_conn.execute("SELECT 1 AS alive")
            return await result.fetchone() is not None
        except Exception as e:
            logger.warning(f"Master lock connection check failed: {e}")
            return False

    async def _drop_connection(self) -> None:
        conn, self._lock_conn = self._lock_conn, None
        if conn is None:
            return
        try:
            await conn.close()
        except Exception as e:
            logger.debug(f"Error closing lock connection: {e}")

    async def release(self) -> None:
        """Release the lock by closing the dedicated connection."""
        if self._lock_conn is not None:
            await self._drop_connection()
            logger.info(f"Released master lock (lock_id={self._lock_id})")


__all__ = ["MasterMonitor", "LeaderElectionMonitor"]
