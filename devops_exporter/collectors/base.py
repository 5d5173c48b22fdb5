"""
Base Collector

Shared cycle logic for every resource-family collector:
- Family registration and reset
- Fetch -> flatten -> commit for one project
- Fail-open error handling (a failed fetch never touches published series)
- Cycle tracking integration

Subclasses declare their families and implement fetch() and flatten().
"""

import logging
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Any

from devops_exporter.collectors.ado_rest_client import AzureDevOpsFetchError, AzureDevOpsRESTClient
from devops_exporter.core import ExporterConfig, get_logger
from devops_exporter.core.collector_metrics import CollectorHealth, CycleState, track_collection_cycle
from devops_exporter.domain.build import Project
from devops_exporter.metrics.commit import CommitQueue
from devops_exporter.metrics.flattener import RecordFlattener
from devops_exporter.metrics.metric_set import MetricSet
from devops_exporter.metrics.registry import GaugeRegistry
from devops_exporter.metrics.schema import FamilySpec
from devops_exporter.utils.error_handling import log_and_continue


class BaseCollector(ABC):
    """Base class for resource-family collectors

    A cycle runs in three phases. Fetching and flattening touch only private
    memory; the only shared mutation is the commit task handed to the commit
    queue, which replaces this collector's families for the project.

    Subclasses must set:
    - name: Collector name used in logs and /health
    - families: Families this collector owns

    Subclasses must implement:
    - interval: How often the scheduler runs the collector
    - fetch(): Retrieve the records of one project
    - flatten(): Turn those records into observations
    """

    name: str = "base"
    families: tuple[FamilySpec, ...] = ()

    def __init__(
        self,
        client: AzureDevOpsRESTClient,
        settings: ExporterConfig,
        health: CollectorHealth | None = None,
    ):
        """Initialize collector

        Args:
            client: REST client used for fetching
            settings: Exporter configuration (limits, intervals)
            health: Optional store receiving every cycle outcome
        """
        self.client = client
        self.settings = settings
        self.health = health
        self.registry: GaugeRegistry | None = None
        self.logger = get_logger(f"devops_exporter.collectors.{self.name}")
        self._flatteners = {spec.name: RecordFlattener(spec) for spec in self.families}

    @property
    @abstractmethod
    def interval(self) -> timedelta:
        """Time between two collection rounds."""

    def flattener(self, spec: FamilySpec) -> RecordFlattener:
        return self._flatteners[spec.name]

    def setup(self, registry: GaugeRegistry) -> None:
        """Register this collector's families with the registry."""
        for spec in self.families:
            registry.register_family(spec)
        self.registry = registry

    def _require_registry(self) -> GaugeRegistry:
        if self.registry is None:
            raise RuntimeError(f"Collector {self.name} used before setup()")
        return self.registry

    async def reset(self, commits: CommitQueue) -> None:
        """Drop every series this collector published.

        The clear is queued behind any commit already waiting, so a cycle
        that finished before the reset cannot bring its series back.
        """
        registry = self._require_registry()

        def clear_all() -> None:
            for spec in self.families:
                registry.clear(spec.name)

        await commits.put(clear_all, f"{self.name}/reset")

    async def reset_project(self, project_id: str, commits: CommitQueue) -> None:
        """Drop the series of one project (e.g. after it left scope)."""
        registry = self._require_registry()

        def clear_project() -> None:
            for spec in self.families:
                registry.clear(spec.name, project_id)

        await commits.put(clear_project, f"{self.name}/{project_id}/reset")
        if self.health is not None:
            self.health.forget(self.name, project_id)

    @abstractmethod
    async def fetch(self, project: Project) -> Any:
        """Fetch the records of one project

        Raises:
            AzureDevOpsFetchError: If any record list cannot be fetched
        """

    @abstractmethod
    def flatten(self, project: Project, records: Any, metric_set: MetricSet) -> None:
        """Flatten fetched records into metric_set"""

    async def collect(self, project: Project, commits: CommitQueue, logger: logging.Logger | None = None) -> bool:
        """Run one cycle for one project

        Args:
            project: Project to collect
            commits: Queue receiving the commit task
            logger: Optional logger carrying caller context

        Returns:
            True if a commit task was queued, False if the fetch failed

        Raises:
            RuntimeError: If setup() was not called
            ValueError: If flattening violates a family schema
        """
        registry = self._require_registry()
        log = logger or self.logger

        with track_collection_cycle(self.name, project.id, self.health) as tracker:
            tracker.transition(CycleState.FETCHING)
            try:
                records = await self.fetch(project)
            except AzureDevOpsFetchError as e:
                log_and_continue(
                    log,
                    e,
                    context={
                        "collector": self.name,
                        "project_id": project.id,
                        "project_name": project.name,
                        "url": e.url,
                        "status_code": e.status_code,
                    },
                    error_type=f"{self.name} fetch",
                )
                tracker.record_failure(e)
                return False

            tracker.transition(CycleState.FLATTENING)
            metric_set = MetricSet(project.id, self.families)
            self.flatten(project, records, metric_set)
            tracker.series_count = len(metric_set)

            tracker.transition(CycleState.COMMITTING)
            await commits.put(lambda: metric_set.commit_all(registry), f"{self.name}/{project.id}")

        log.debug(
            f"Queued commit of {len(metric_set)} series for {project.name}",
            extra={"collector": self.name, "project_id": project.id},
        )
        return True
