# ============================================================================
# LEADER ELECTION TESTS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tests - Advisory lock master election
# PURPOSE: Verify acquire, hold, loss and release of the master lock
# CREATED: 19 OCT 2026
# ============================================================================
"""
Leader Election Tests

A fake connection factory stands in for psycopg.

Run with:
    pytest tests/test_leader_election.py -v
"""

import asyncio

from infrastructure import LeaderElectionMonitor


class FakeCursor:
    def __init__(self, row):
        self.row = row

    async def fetchone(self):
        return self.row


class FakeConnection:
    def __init__(self, lock_free=True):
        self.lock_free = lock_free
        self.alive = True
        self.closed = False
        self.queries = []

    async def execute(self, query, params=None):
        self.queries.append((query, params))
        if not self.alive:
            raise ConnectionError("server closed the connection unexpectedly")
        if "pg_try_advisory_lock" in query:
            return FakeCursor({"acquired": self.lock_free})
        return FakeCursor({"alive": 1})

    async def close(self):
        self.closed = True


class FakeConnect:
    """Connection factory recording every connection it hands out."""

    def __init__(self, lock_free=True, fail=False):
        self.lock_free = lock_free
        self.fail = fail
        self.connections = []

    async def __call__(self, conninfo, **kwargs):
        if self.fail:
            raise OSError("connection refused")
        conn = FakeConnection(self.lock_free)
        self.connections.append(conn)
        return conn


def _monitor(connect):
    return LeaderElectionMonitor(connection_string="postgresql://test", connect=connect)


class TestLeaderElection:

    def test_acquires_and_keeps_lock(self):
        connect = FakeConnect()
        monitor = _monitor(connect)

        async def run():
            return [await monitor.is_master(), await monitor.is_master()]

        assert asyncio.run(run()) == [True, True]
        assert len(connect.connections) == 1
        assert monitor.holds_lock
        assert connect.connections[0].queries[-1][0] == "SELECT 1 AS alive"

    def test_lock_held_elsewhere(self):
        connect = FakeConnect(lock_free=False)
        monitor = _monitor(connect)

        assert asyncio.run(monitor.is_master()) is False
        assert not monitor.holds_lock
        assert connect.connections[0].closed

    def test_unreachable_database_is_not_master(self):
        monitor = _monitor(FakeConnect(fail=True))
        assert asyncio.run(monitor.is_master()) is False

    def test_lost_connection_drops_mastership(self):
        connect = FakeConnect()
        monitor = _monitor(connect)

        async def run():
            first = await monitor.is_master()
            connect.connections[0].alive = False
            second = await monitor.is_master()
            connect.lock_free = False
            third = await monitor.is_master()
            return first, second, third

        assert asyncio.run(run()) == (True, False, False)
        assert connect.connections[0].closed
        assert not monitor.holds_lock

    def test_forced_master_skips_election(self):
        connect = FakeConnect(fail=True)
        monitor = _monitor(connect)
        monitor.force_always_master()

        assert monitor.forced
        assert asyncio.run(monitor.is_master()) is True
        assert connect.connections == []

    def test_release_closes_lock_connection(self):
        connect = FakeConnect()
        monitor = _monitor(connect)

        async def run():
            await monitor.is_master()
            await monitor.release()
            await monitor.release()

        asyncio.run(run())
        assert connect.connections[0].closed
        assert not monitor.holds_lock

    def test_lock_id_is_stable_int64(self):
        lock_id = LeaderElectionMonitor._hash_to_lock_id(LeaderElectionMonitor.LOCK_KEY)
        assert lock_id == LeaderElectionMonitor._hash_to_lock_id("khstate:orchestrator:master")
        assert -(2 ** 63) <= lock_id < 2 ** 63
