"""
Command line entry point

Wires logging, configuration, registry, collectors, commit queue, scheduler
and the HTTP server together.

Usage:
    devops-exporter                      # serve /metrics on EXPORTER_PORT
    devops-exporter --json-logs --port 9100
    devops-exporter --once               # collect once, print exposition, exit
"""

import argparse
import asyncio
import sys
from dataclasses import replace
from pathlib import Path

import uvicorn

from devops_exporter import __version__
from devops_exporter.api.app import create_app
from devops_exporter.collectors import build_collectors
from devops_exporter.collectors.ado_rest_client import AzureDevOpsRESTClient
from devops_exporter.core import (
    CollectorHealth,
    ConfigurationError,
    get_logger,
    setup_logging,
    validate_config_on_startup,
)
from devops_exporter.metrics.commit import CommitQueue
from devops_exporter.metrics.registry import GaugeRegistry
from devops_exporter.scheduler import Scheduler

logger = get_logger(__name__)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments"""
    parser = argparse.ArgumentParser(
        prog="devops-exporter",
        description="Export Azure DevOps build and release state as Prometheus metrics",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Log level (default: INFO)",
    )
    parser.add_argument("--json-logs", action="store_true", help="Emit JSON structured logs")
    parser.add_argument("--log-file", type=Path, help="Also write JSON logs to this file")
    parser.add_argument("--host", help="Bind address (overrides EXPORTER_HOST)")
    parser.add_argument("--port", type=int, help="Bind port (overrides EXPORTER_PORT)")
    parser.add_argument(
        "--once", action="store_true", help="Run every collector once, print the exposition and exit"
    )
    return parser.parse_args(argv)


async def collect_once(scheduler: Scheduler, commits: CommitQueue) -> None:
    """Run one round of every collector and apply all commits."""
    commits.start()
    try:
        await scheduler.run_once()
    finally:
        await commits.stop()


def main(argv: list[str] | None = None) -> int:
    """
    Start the exporter.

    Returns:
        Process exit code (0 success, 2 invalid configuration)
    """
    args = parse_args(argv)
    setup_logging(level=args.log_level, log_file=args.log_file, json_output=args.json_logs)

    try:
        ado_config, settings = validate_config_on_startup()
        if args.host or args.port:
            settings = replace(settings, host=args.host or settings.host, port=args.port or settings.port)
    except ConfigurationError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    client = AzureDevOpsRESTClient(
        organization_url=ado_config.organization_url,
        pat=ado_config.pat,
        max_retries=settings.request_retries,
    )
    health = CollectorHealth()
    registry = GaugeRegistry()
    collectors = build_collectors(client, settings, health)
    for collector in collectors:
        collector.setup(registry)

    commits = CommitQueue(maxsize=settings.commit_queue_size)
    scheduler = Scheduler(client, collectors, commits, settings)

    if args.once:
        asyncio.run(collect_once(scheduler, commits))
        sys.stdout.write(registry.exposition().decode("utf-8"))
        return 0 if health.is_healthy() else 1

    logger.info(
        f"Serving metrics on http://{settings.host}:{settings.port}/metrics",
        extra={"organization": ado_config.organization_url, "collectors": [c.name for c in collectors]},
    )
    app = create_app(registry, health, scheduler=scheduler, commits=commits)
    uvicorn.run(app, host=settings.host, port=settings.port, log_config=None)
    return 0
