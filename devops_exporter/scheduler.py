"""
Collection Scheduler

Drives every collector on its own interval:
    1. Discover projects (include/exclude lists, project limit)
    2. Drop series of projects that left scope
    3. Run one cycle per project concurrently (bounded, with a timeout)

Failures stay contained: a failed discovery skips the round, a failed or timed
out cycle affects only its own project.

Usage:
    scheduler = Scheduler(client, collectors, commits, settings)
    scheduler.start()
    ...
    await scheduler.stop()
"""

import asyncio
from dataclasses import dataclass, field

from devops_exporter.collectors.ado_rest_client import AzureDevOpsFetchError, AzureDevOpsRESTClient
from devops_exporter.collectors.base import BaseCollector
from devops_exporter.collectors.filters import select_projects
from devops_exporter.core import ExporterConfig, get_logger, log_with_context
from devops_exporter.domain.build import Project
from devops_exporter.metrics.commit import CommitQueue
from devops_exporter.utils.error_handling import log_and_continue

logger = get_logger(__name__)


@dataclass
class RoundSummary:
    """Outcome of one collection round of one collector."""

    collector: str
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    removed: list[str] = field(default_factory=list)
    skipped: bool = False


class Scheduler:
    """
    Runs collectors periodically for every in-scope project.

    Attributes:
        client: REST client used for project discovery
        collectors: Collectors to drive
        commits: Commit queue every cycle hands its result to
        settings: Exporter configuration
    """

    def __init__(
        self,
        client: AzureDevOpsRESTClient,
        collectors: list[BaseCollector],
        commits: CommitQueue,
        settings: ExporterConfig,
    ):
        self.client = client
        self.collectors = collectors
        self.commits = commits
        self.settings = settings
        self._semaphore = asyncio.Semaphore(settings.request_concurrency)
        self._scope: dict[str, set[str]] = {}
        self._tasks: list[asyncio.Task[None]] = []
        self._stopping = asyncio.Event()

    async def discover_projects(self) -> list[Project]:
        """
        List projects and apply the configured scope.

        Raises:
            AzureDevOpsFetchError: If the project list cannot be fetched
        """
        projects = await self.client.list_projects(top=self.settings.limit_projects)
        selected = select_projects(
            projects,
            include=self.settings.project_filter,
            exclude=self.settings.project_blacklist,
            limit=self.settings.limit_projects,
        )
        logger.debug(f"Discovered {len(projects)} projects, {len(selected)} in scope")
        return selected

    async def _reconcile_scope(self, collector: BaseCollector, projects: list[Project]) -> list[str]:
        current = {project.id for project in projects}
        previous = self._scope.get(collector.name, set())
        removed = sorted(previous - current)
        for project_id in removed:
            await collector.reset_project(project_id, self.commits)
            logger.info(
                f"Project {project_id} left scope, dropped its {collector.name} series",
                extra={"collector": collector.name, "project_id": project_id},
            )
        self._scope[collector.name] = current
        return removed

    async def _run_cycle(self, collector: BaseCollector, project: Project) -> bool:
        async with self._semaphore:
            return await asyncio.wait_for(
                collector.collect(project, self.commits), timeout=self.settings.scrape_timeout.total_seconds()
            )

    async def run_collector(self, collector: BaseCollector) -> RoundSummary:
        """
        Run one round of a collector over all in-scope projects.

        Returns:
            RoundSummary with per-project outcomes
        """
        summary = RoundSummary(collector=collector.name)

        try:
            projects = await self.discover_projects()
        except AzureDevOpsFetchError as e:
            log_and_continue(logger, e, {"collector": collector.name, "url": e.url}, "Project discovery")
            summary.skipped = True
            return summary

        summary.removed = await self._reconcile_scope(collector, projects)

        results = await asyncio.gather(
            *(self._run_cycle(collector, project) for project in projects), return_exceptions=True
        )

        for project, result in zip(projects, results, strict=True):
            if result is True:
                summary.succeeded.append(project.id)
                continue

            # other exceptions were already logged by the cycle tracker
            summary.failed.append(project.id)
            if isinstance(result, TimeoutError):
                logger.warning(
                    f"{collector.name} cycle for {project.name} timed out",
                    extra={"collector": collector.name, "project_id": project.id},
                )

        log_with_context(
            logger,
            "info",
            f"{collector.name} round complete: {len(summary.succeeded)} succeeded, {len(summary.failed)} failed",
            collector=collector.name,
            succeeded=len(summary.succeeded),
            failed=len(summary.failed),
            removed=len(summary.removed),
        )
        return summary

    async def run_once(self) -> list[RoundSummary]:
        """Run every collector once and wait until their commits are applied."""
        summaries = [await self.run_collector(collector) for collector in self.collectors]
        await self.commits.drain()
        return summaries

    async def _loop(self, collector: BaseCollector) -> None:
        interval = collector.interval.total_seconds()
        logger.info(f"Starting {collector.name} collector (every {interval:.0f}s)")

        while not self._stopping.is_set():
            try:
                await self.run_collector(collector)
            except Exception as e:
                log_and_continue(logger, e, {"collector": collector.name}, "Collection round")

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=interval)
            except TimeoutError:
                pass

    def start(self) -> None:
        """Start one background loop per collector on the running event loop."""
        if self._tasks:
            return
        self._stopping.clear()
        self._tasks = [
            asyncio.create_task(self._loop(collector), name=f"collector-{collector.name}")
            for collector in self.collectors
        ]

    async def stop(self) -> None:
        """Stop all loops, cancelling rounds in progress."""
        self._stopping.set()
        for task in self._tasks:
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
