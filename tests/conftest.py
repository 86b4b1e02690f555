# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tests - In-memory collaborators
# PURPOSE: Cluster state, leader election and runner fakes
# CREATED: 19 OCT 2026
# ============================================================================
"""
In-memory fakes for the orchestrator's collaborators.

InMemoryClusterState  - ClusterStateStore backed by dicts, can be told to fail
FakeMonitor           - MasterMonitor whose answer the test sets
FakeRunner            - runner that tracks how many runs of each check are live
"""

import asyncio
from collections import Counter
from typing import Dict, Iterable, List, Optional

import pytest

from checks import CheckRunner, StopHandle
from core.contracts import CheckCategory
from core.errors import ClusterStateError
from core.models import CheckDefinition, CheckState, UUIDWhitelistEntry
from infrastructure import MasterMonitor
from repositories import ClusterStateStore


# ============================================================================
# CLUSTER STATE
# ============================================================================

class InMemoryClusterState(ClusterStateStore):
    """Dict-backed cluster state. Set `failing` to make every call raise."""

    def __init__(self):
        self.definitions: Dict[str, CheckDefinition] = {}
        self.tokens: Dict[str, UUIDWhitelistEntry] = {}
        self.states: Dict[str, CheckState] = {}
        self.failing = False
        self.calls: List[str] = []

    def _op(self, operation: str) -> None:
        self.calls.append(operation)
        if self.failing:
            raise ClusterStateError(operation, ConnectionError("store unavailable"))

    async def get_check_definition(self, name: str) -> Optional[CheckDefinition]:
        self._op("get_check_definition")
        return self.definitions.get(name)

    async def list_external_check_definitions(self) -> List[CheckDefinition]:
        self._op("list_external_check_definitions")
        return [d for d in self.definitions.values() if d.is_external]

    async def put_check_definition(self, definition: CheckDefinition) -> None:
        self._op("put_check_definition")
        self.definitions[definition.name] = definition

    async def delete_check_definition(self, name: str) -> bool:
        self._op("delete_check_definition")
        return self.definitions.pop(name, None) is not None

    async def put_uuid(self, check_name: str, uuid: str) -> UUIDWhitelistEntry:
        self._op("put_uuid")
        entry = UUIDWhitelistEntry(check_name=check_name, current_uuid=uuid)
        self.tokens[check_name] = entry
        return entry

    async def get_uuid(self, check_name: str) -> Optional[str]:
        self._op("get_uuid")
        entry = self.tokens.get(check_name)
        return entry.current_uuid if entry else None

    async def delete_uuid(self, check_name: str) -> bool:
        self._op("delete_uuid")
        return self.tokens.pop(check_name, None) is not None

    async def put_check_state(self, state: CheckState) -> None:
        self._op("put_check_state")
        self.states[state.check_name] = state

    async def get_check_state(self, check_name: str) -> Optional[CheckState]:
        self._op("get_check_state")
        return self.states.get(check_name)

    async def list_check_states(self) -> List[CheckState]:
        self._op("list_check_states")
        return list(self.states.values())

    async def delete_check_state(self, check_name: str) -> bool:
        self._op("delete_check_state")
        return self.states.pop(check_name, None) is not None


# ============================================================================
# LEADER ELECTION
# ============================================================================

class FakeMonitor(MasterMonitor):
    """Leader election monitor answering whatever `master` is set to."""

    def __init__(self, master: bool = False):
        self.master = master
        self._forced = False
        self.verbose = False
        self.released = False
        self.queries = 0

    async def is_master(self) -> bool:
        self.queries += 1
        return self._forced or self.master

    def force_always_master(self) -> None:
        self._forced = True

    def enable_verbose_logging(self) -> None:
        self.verbose = True

    @property
    def forced(self) -> bool:
        return self._forced

    async def release(self) -> None:
        self.released = True


# ============================================================================
# RUNNER
# ============================================================================

async def _no_record(definition, result, run_uuid):
    return None


class FakeRunner(CheckRunner):
    """
    Runner whose checks idle until stopped.

    Also acts as its own runner provider. Checks named in `hang_on_stop`
    ignore the first cancellation for `hang_seconds`; checks named in
    `fail_on_start` raise when started.
    """

    def __init__(
        self,
        hang_on_stop: Iterable[str] = (),
        fail_on_start: Iterable[str] = (),
        hang_seconds: float = 0.5,
    ):
        super().__init__(_no_record)
        self.hang_on_stop = set(hang_on_stop)
        self.fail_on_start = set(fail_on_start)
        self.hang_seconds = hang_seconds

        self.started: List[str] = []
        self.live: Counter = Counter()
        self.max_live: Counter = Counter()
        self.run_uuids: Dict[str, Optional[str]] = {}
        self.tokens_at_start: Dict[str, Optional[str]] = {}
        self.store: Optional[InMemoryClusterState] = None

    def runner_for(self, definition: CheckDefinition) -> CheckRunner:
        return self

    async def start(self, definition: CheckDefinition, run_uuid: Optional[str] = None) -> StopHandle:
        name = definition.name
        if name in self.fail_on_start:
            raise RuntimeError(f"cannot start {name}")

        if self.store is not None:
            entry = self.store.tokens.get(name)
            self.tokens_at_start[name] = entry.current_uuid if entry else None

        self.started.append(name)
        self.run_uuids[name] = run_uuid
        self.live[name] += 1
        self.max_live[name] = max(self.max_live[name], self.live[name])
        task = asyncio.create_task(self._idle(name))
        await asyncio.sleep(0)
        return StopHandle(check_name=name, task=task)

    async def _idle(self, name: str) -> None:
        try:
            await asyncio.sleep(3600)
        except asyncio.CancelledError:
            if name in self.hang_on_stop:
                await asyncio.sleep(self.hang_seconds)
                return
            raise
        finally:
            self.live[name] -= 1

    async def run_once(self, definition, run_uuid):
        return None

    def total_live(self) -> int:
        return sum(self.live.values())


# ============================================================================
# HELPERS & FIXTURES
# ============================================================================

def make_definition(
    name: str = "dns-check",
    category: CheckCategory = CheckCategory.DNS,
    **kwargs,
) -> CheckDefinition:
    """Build a definition with valid parameters for its category."""
    if category is CheckCategory.EXTERNAL:
        kwargs.setdefault("parameters", {"command": "/bin/true"})
    return CheckDefinition(name=name, category=category, **kwargs)


@pytest.fixture
def store():
    return InMemoryClusterState()


@pytest.fixture
def monitor():
    return FakeMonitor()


@pytest.fixture
def runner(store):
    fake = FakeRunner()
    fake.store = store
    return fake
