# ============================================================================
# CHECK ORCHESTRATOR - MAIN APPLICATION
# ============================================================================
# EPOCH: 1 - CHECK ORCHESTRATION
# STATUS: Core - Process entry point
# PURPOSE: Wire components, serve the Status API, own shutdown
# CREATED: 19 OCT 2026
# ============================================================================
"""
Check Orchestrator Main Application

Builds every component explicitly and hands each one what it needs:

    config -> pool -> cluster state -> leader election monitor
           -> whitelist -> metrics -> status service -> runners -> registry
           -> orchestrator -> FastAPI app -> shutdown coordinator

uvicorn serves the Status API with its own signal handling disabled; the
shutdown coordinator owns SIGTERM/SIGINT and decides the exit code.

Usage:
    python main.py
"""

import asyncio
import contextlib
import logging
import sys
import uuid

import uvicorn
from fastapi import FastAPI

from __version__ import __version__, BUILD_DATE, EPOCH
from api import router
from checks import RunnerSet, load_probe_modules
from core.config import Defaults
from core.errors import ClusterStateError, ConfigurationError
from core.logging import configure_logging, get_logger, log_context
from core.observability import CheckMetrics, create_meter_provider
from infrastructure import LeaderElectionMonitor
from orchestrator import (
    CheckRegistry,
    Orchestrator,
    ShutdownCoordinator,
    UUIDWhitelist,
    build_builtin_definitions,
)
from repositories import ClusterStateRepository, create_pool, get_connection_string
from services import StatusService

logger = get_logger(__name__)


def create_app(status_service: StatusService, orchestrator: Orchestrator) -> FastAPI:
    """Create the Status API with its components on app.state."""
    app = FastAPI(
        title="Check Orchestrator",
        description=f"Epoch {EPOCH} cluster health check orchestration",
        version=__version__,
    )
    app.state.status_service = status_service
    app.state.orchestrator = orchestrator
    app.include_router(router)
    return app


class OrchestratorServer(uvicorn.Server):
    """uvicorn server that leaves termination signals to the coordinator."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


async def serve(config: Defaults) -> int:
    """Run until shutdown. Returns the process exit code."""
    instance_id = str(uuid.uuid4())
    conninfo = get_connection_string()

    pool = await create_pool(connection_string=conninfo)
    store = ClusterStateRepository(pool)
    try:
        await store.ensure_schema()
    except ClusterStateError as e:
        logger.warning(f"Schema check failed, continuing: {e}")

    monitor = LeaderElectionMonitor(connection_string=conninfo)
    if config.orchestrator.force_master:
        monitor.force_always_master()
    if config.server.debug:
        monitor.enable_verbose_logging()

    whitelist = UUIDWhitelist(store)
    metrics = CheckMetrics(create_meter_provider(config.metrics, instance_id))
    status_service = StatusService(store, whitelist, instance_id, metrics=metrics)
    runners = RunnerSet(status_service.record_result, config.server.reporting_url)
    registry = CheckRegistry(runners, whitelist, stop_timeout=config.orchestrator.stop_timeout)
    orchestrator = Orchestrator(
        registry,
        monitor,
        store,
        builtin_definitions=build_builtin_definitions(config.checks),
        master_poll_interval=config.orchestrator.master_poll_interval,
        rescan_interval=config.orchestrator.rescan_interval,
        external_checks_enabled=config.checks.enable_external_checks,
        instance_id=instance_id,
    )

    app = create_app(status_service, orchestrator)
    server = OrchestratorServer(uvicorn.Config(
        app,
        host=config.server.host,
        port=config.server.port,
        log_config=None,
        lifespan="off",
    ))
    server_task: asyncio.Task = None

    async def drain() -> None:
        await orchestrator.shutdown()
        server.should_exit = True
        if server_task is not None:
            await server_task

    coordinator = ShutdownCoordinator(drain, grace_period=config.shutdown.grace_period)
    coordinator.install_signal_handlers()

    with log_context(instance_id=instance_id):
        logger.info(
            f"Starting Check Orchestrator v{__version__} (Epoch {EPOCH}, Build {BUILD_DATE}) "
            f"on {config.server.host}:{config.server.port}"
        )

        await orchestrator.start()
        server_task = asyncio.create_task(server.serve(), name="status-api")
        shutdown_task = asyncio.create_task(coordinator.run(), name="shutdown-coordinator")

        done, _ = await asyncio.wait(
            {server_task, shutdown_task}, return_when=asyncio.FIRST_COMPLETED
        )
        if shutdown_task not in done:
            # Server stopped on its own (bind failure or crash)
            logger.error("Status API stopped unexpectedly, shutting down")
            coordinator.notify_signal()

        exit_code = await shutdown_task
        if not server.started:
            exit_code = 1

    metrics.shutdown()
    await pool.close()
    logger.info(f"Check Orchestrator stopped (exit code {exit_code})")
    return exit_code


def main() -> int:
    try:
        config = Defaults.from_env()
    except ConfigurationError as e:
        configure_logging("ERROR")
        logging.getLogger(__name__).critical(f"Configuration error: {e}")
        return 1

    configure_logging(
        level="DEBUG" if config.server.debug else config.server.log_level,
        json_output=config.server.json_logs,
    )
    load_probe_modules(config.checks.probe_modules)

    return asyncio.run(serve(config))


if __name__ == "__main__":
    sys.exit(main())
