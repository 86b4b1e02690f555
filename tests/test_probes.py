# ============================================================================
# PROBE TESTS
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Tests - In-process probes and the probe runner
# PURPOSE: Verify probe registration, the DNS probe and periodic runs
# CREATED: 19 OCT 2026
# ============================================================================
"""
Probe Tests

Run with:
    pytest tests/test_probes.py -v
"""

import asyncio
import socket
from unittest.mock import patch

import pytest

import checks.registry as probe_registry
from checks import (
    DuplicateProbeError,
    ProbeCheckRunner,
    ProbeContext,
    RunnerSet,
    get_probe,
    list_probes,
    load_probe_modules,
    register_probe,
)
from checks.dns import dns_probe
from conftest import make_definition
from core.contracts import CheckCategory, CheckStatus
from core.errors import DeactivationTimeoutError, ProbeNotFoundError
from core.models import CheckResult


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def isolated_probes():
    """Empty probe registry for the test, restored afterwards."""
    saved = dict(probe_registry._probes)
    saved_meta = dict(probe_registry._probe_metadata)
    probe_registry.clear_probes()
    yield
    probe_registry.clear_probes()
    probe_registry._probes.update(saved)
    probe_registry._probe_metadata.update(saved_meta)


class _Recorder:
    def __init__(self, fail=False):
        self.results = []
        self.fail = fail

    async def __call__(self, definition, result, run_uuid):
        self.results.append((definition.name, result, run_uuid))
        if self.fail:
            raise RuntimeError("store down")


def _addrinfo(*addresses):
    return [(socket.AF_INET, socket.SOCK_STREAM, 6, "", (a, 0)) for a in addresses]


# ============================================================================
# REGISTRY
# ============================================================================

class TestProbeRegistry:

    def test_dns_probe_registered_on_import(self):
        assert get_probe(CheckCategory.DNS) is dns_probe
        assert any(p["category"] == "dns" for p in list_probes())

    def test_register_and_lookup(self, isolated_probes):
        @register_probe(CheckCategory.POD_STATUS, description="pods running")
        async def pods(ctx):
            return CheckResult.healthy()

        assert get_probe(CheckCategory.POD_STATUS) is pods
        assert list_probes()[0]["description"] == "pods running"

    def test_duplicate_rejected(self, isolated_probes):
        @register_probe(CheckCategory.DAEMONSET)
        async def first(ctx):
            return CheckResult.healthy()

        with pytest.raises(DuplicateProbeError):
            @register_probe(CheckCategory.DAEMONSET)
            async def second(ctx):
                return CheckResult.healthy()

    def test_external_takes_no_probe(self, isolated_probes):
        with pytest.raises(ValueError):
            register_probe(CheckCategory.EXTERNAL)

    def test_load_probe_modules_skips_missing(self, isolated_probes):
        assert load_probe_modules(["json", "no_such_probe_module"]) == 1

    def test_runner_set_selects_runner(self):
        runners = RunnerSet(_Recorder(), "http://localhost:8080/externalCheckStatus")
        dns = make_definition("dns-check")
        ssl = make_definition("ssl", CheckCategory.EXTERNAL)

        assert isinstance(runners.runner_for(dns), ProbeCheckRunner)
        assert runners.runner_for(dns) is runners.runner_for(dns)
        assert runners.runner_for(ssl).reporting_url.endswith("/externalCheckStatus")

    def test_runner_set_missing_probe(self):
        runners = RunnerSet(_Recorder(), "http://x/", probe_lookup=lambda category: None)
        with pytest.raises(ProbeNotFoundError) as exc:
            runners.runner_for(make_definition("daemonset", CheckCategory.DAEMONSET))
        assert exc.value.category == "daemonset"


# ============================================================================
# DNS PROBE
# ============================================================================

class TestDNSProbe:

    def _ctx(self, endpoints):
        definition = make_definition("dns-check", parameters={"endpoints": endpoints})
        return ProbeContext(definition=definition, parameters=definition.typed_parameters())

    def test_all_resolve(self):
        async def fake_getaddrinfo(host, port, **kwargs):
            return _addrinfo("10.0.0.10", "10.0.0.10")

        async def run():
            loop = asyncio.get_running_loop()
            with patch.object(loop, "getaddrinfo", fake_getaddrinfo):
                return await dns_probe(self._ctx("kubernetes.default,example.com"))

        result = asyncio.run(run())
        assert result.status == CheckStatus.HEALTHY
        assert result.details["resolved"] == {
            "kubernetes.default": ["10.0.0.10"],
            "example.com": ["10.0.0.10"],
        }

    def test_one_error_per_failing_endpoint(self):
        async def fake_getaddrinfo(host, port, **kwargs):
            if host.startswith("bad"):
                raise socket.gaierror(socket.EAI_NONAME, "Name or service not known")
            return _addrinfo("10.0.0.10")

        async def run():
            loop = asyncio.get_running_loop()
            with patch.object(loop, "getaddrinfo", fake_getaddrinfo):
                return await dns_probe(self._ctx("bad-one,kubernetes.default,bad-two"))

        result = asyncio.run(run())
        assert result.status == CheckStatus.UNHEALTHY
        assert len(result.errors) == 2
        assert "bad-one" in result.errors[0]
        assert "bad-two" in result.errors[1]


# ============================================================================
# PROBE RUNNER
# ============================================================================

class TestProbeCheckRunner:

    def test_runs_periodically_and_records(self):
        recorder = _Recorder()
        calls = []

        async def probe(ctx):
            calls.append(ctx.check_name)
            return CheckResult.healthy(n=len(calls))

        async def run():
            runner = ProbeCheckRunner(probe, recorder)
            definition = make_definition("dns-check", run_interval_seconds=0.01)
            handle = await runner.start(definition)
            await asyncio.sleep(0.1)
            await runner.stop(handle, timeout=1.0)
            assert handle.task.done()
            count = len(recorder.results)
            await asyncio.sleep(0.05)
            assert len(recorder.results) == count

        asyncio.run(run())
        assert len(recorder.results) >= 2
        name, result, run_uuid = recorder.results[0]
        assert name == "dns-check"
        assert result.status == CheckStatus.HEALTHY
        assert result.duration_ms >= 0
        assert run_uuid is None

    def test_slow_probe_recorded_unhealthy(self):
        recorder = _Recorder()

        async def probe(ctx):
            await asyncio.sleep(10)

        async def run():
            runner = ProbeCheckRunner(probe, recorder)
            definition = make_definition("dns-check", timeout_seconds=0.05, run_interval_seconds=10)
            handle = await runner.start(definition)
            await asyncio.sleep(0.15)
            await runner.stop(handle, timeout=1.0)

        asyncio.run(run())
        assert len(recorder.results) == 1
        result = recorder.results[0][1]
        assert result.status == CheckStatus.UNHEALTHY
        assert "timed out" in result.errors[0]

    def test_probe_exception_recorded_unhealthy(self):
        recorder = _Recorder()

        async def probe(ctx):
            raise ConnectionRefusedError("apiserver refused")

        async def run():
            runner = ProbeCheckRunner(probe, recorder)
            handle = await runner.start(make_definition("dns-check", run_interval_seconds=10))
            await asyncio.sleep(0.05)
            await runner.stop(handle, timeout=1.0)

        asyncio.run(run())
        result = recorder.results[0][1]
        assert result.status == CheckStatus.UNHEALTHY
        assert result.details["exception_type"] == "ConnectionRefusedError"

    def test_recorder_failure_keeps_loop_alive(self):
        recorder = _Recorder(fail=True)

        async def probe(ctx):
            return CheckResult.healthy()

        async def run():
            runner = ProbeCheckRunner(probe, recorder)
            handle = await runner.start(make_definition("dns-check", run_interval_seconds=0.01))
            await asyncio.sleep(0.08)
            assert not handle.task.done()
            await runner.stop(handle, timeout=1.0)

        asyncio.run(run())
        assert len(recorder.results) >= 2

    def test_stop_of_finished_task_is_noop(self):
        async def probe(ctx):
            return CheckResult.healthy()

        async def run():
            runner = ProbeCheckRunner(probe, _Recorder())
            handle = await runner.start(make_definition("dns-check", run_interval_seconds=10))
            await runner.stop(handle, timeout=1.0)
            await runner.stop(handle, timeout=1.0)

        asyncio.run(run())

    def test_stop_times_out_on_stubborn_probe(self):
        release = []

        async def probe(ctx):
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                await asyncio.sleep(0.3)
                release.append(True)
                raise

        async def run():
            runner = ProbeCheckRunner(probe, _Recorder())
            handle = await runner.start(make_definition("dns-check", run_interval_seconds=10, timeout_seconds=20))
            await asyncio.sleep(0.02)
            with pytest.raises(DeactivationTimeoutError):
                await runner.stop(handle, timeout=0.05)
            await asyncio.sleep(0.4)

        asyncio.run(run())
        assert release == [True]
