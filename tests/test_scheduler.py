"""
Tests for the collection scheduler

Covers project discovery and scope, removal of departed projects, failure
containment (discovery failure, fetch failure, timeout) and the loop lifecycle.
"""

import asyncio
from dataclasses import replace
from datetime import timedelta

import pytest

from devops_exporter.collectors.ado_rest_client import AzureDevOpsFetchError
from devops_exporter.collectors.latest_build import LatestBuildCollector
from devops_exporter.metrics.commit import CommitQueue
from devops_exporter.metrics.schema import BUILD_LATEST_INFO
from devops_exporter.scheduler import Scheduler


@pytest.fixture
def collector(mock_client, settings, health, registry):
    collector = LatestBuildCollector(mock_client, settings, health)
    collector.setup(registry)
    return collector


@pytest.fixture
def scheduler(mock_client, collector, commits, settings):
    return Scheduler(mock_client, [collector], commits, settings)


class TestDiscovery:
    """Test project discovery"""

    @pytest.mark.asyncio
    async def test_discovers_all_projects(self, scheduler, mock_client, settings):
        projects = await scheduler.discover_projects()

        assert [p.id for p in projects] == ["p-aaaa", "p-bbbb"]
        mock_client.list_projects.assert_awaited_once_with(top=settings.limit_projects)

    @pytest.mark.asyncio
    async def test_applies_filter_and_blacklist(self, mock_client, collector, commits, settings):
        scoped = replace(settings, project_filter=["payments", "p-bbbb"], project_blacklist=["Platform"])
        scheduler = Scheduler(mock_client, [collector], commits, scoped)

        projects = await scheduler.discover_projects()

        assert [p.id for p in projects] == ["p-aaaa"]


class TestRunCollector:
    """Test one collection round"""

    @pytest.mark.asyncio
    async def test_round_collects_every_project(self, scheduler, collector, registry, commits):
        summary = await scheduler.run_collector(collector)
        await commits.drain()

        assert summary.succeeded == ["p-aaaa", "p-bbbb"]
        assert summary.failed == []
        assert registry.partitions(BUILD_LATEST_INFO.name) == {"p-aaaa", "p-bbbb"}

    @pytest.mark.asyncio
    async def test_departed_project_series_are_removed(
        self, scheduler, collector, mock_client, registry, health, project_a, commits
    ):
        await scheduler.run_collector(collector)
        await commits.drain()
        mock_client.list_projects.return_value = [project_a]

        summary = await scheduler.run_collector(collector)
        await commits.drain()

        assert summary.removed == ["p-bbbb"]
        assert registry.partitions(BUILD_LATEST_INFO.name) == {"p-aaaa"}
        assert [entry["project_id"] for entry in health.snapshot()] == ["p-aaaa"]

    @pytest.mark.asyncio
    async def test_departed_project_stays_removed_when_commit_was_pending(
        self, mock_client, collector, registry, project_a, settings
    ):
        """Test the reset is applied after the departed project's queued commit"""
        pending = CommitQueue()
        scheduler = Scheduler(mock_client, [collector], pending, settings)
        await scheduler.run_collector(collector)
        mock_client.list_projects.return_value = [project_a]

        summary = await scheduler.run_collector(collector)
        pending.start()
        await pending.drain()
        await pending.stop()

        assert summary.removed == ["p-bbbb"]
        assert registry.partitions(BUILD_LATEST_INFO.name) == {"p-aaaa"}

    @pytest.mark.asyncio
    async def test_discovery_failure_skips_round(self, scheduler, collector, mock_client, registry, commits):
        await scheduler.run_collector(collector)
        await commits.drain()
        mock_client.list_projects.side_effect = AzureDevOpsFetchError("HTTP 503", url="https://x", status_code=503)

        summary = await scheduler.run_collector(collector)

        assert summary.skipped is True
        assert registry.partitions(BUILD_LATEST_INFO.name) == {"p-aaaa", "p-bbbb"}

    @pytest.mark.asyncio
    async def test_failed_project_does_not_affect_others(
        self, scheduler, collector, mock_client, sample_build, commits
    ):
        async def list_latest_builds(project_id, top=None):
            if project_id == "p-bbbb":
                raise AzureDevOpsFetchError("HTTP 500", url="https://x", status_code=500)
            return [sample_build]

        mock_client.list_latest_builds.side_effect = list_latest_builds

        summary = await scheduler.run_collector(collector)

        assert summary.succeeded == ["p-aaaa"]
        assert summary.failed == ["p-bbbb"]

    @pytest.mark.asyncio
    async def test_slow_cycle_times_out(self, mock_client, health, registry, settings, commits):
        async def never_answers(*args, **kwargs):
            await asyncio.sleep(10)

        mock_client.list_latest_builds.side_effect = never_answers
        fast_settings = replace(settings, scrape_timeout=timedelta(milliseconds=50))
        collector = LatestBuildCollector(mock_client, fast_settings, health)
        collector.setup(registry)
        scheduler = Scheduler(mock_client, [collector], commits, fast_settings)

        summary = await scheduler.run_collector(collector)

        assert summary.failed == ["p-aaaa", "p-bbbb"]
        assert health.is_healthy() is False
        assert registry.series(BUILD_LATEST_INFO.name) == {}


class TestLifecycle:
    """Test run_once and background loops"""

    @pytest.mark.asyncio
    async def test_run_once_applies_commits(self, scheduler, registry):
        summaries = await scheduler.run_once()

        assert [s.collector for s in summaries] == ["latest_build"]
        assert len(registry.series(BUILD_LATEST_INFO.name)) == 2

    @pytest.mark.asyncio
    async def test_start_and_stop(self, scheduler, mock_client):
        scheduler.start()
        await asyncio.sleep(0.05)

        await scheduler.stop()

        assert mock_client.list_projects.await_count >= 1
        assert scheduler._tasks == []

    @pytest.mark.asyncio
    async def test_round_errors_do_not_stop_loop(self, scheduler, collector, mock_client):
        mock_client.list_projects.side_effect = RuntimeError("unexpected")

        scheduler.start()
        await asyncio.sleep(0.05)
        running = [not task.done() for task in scheduler._tasks]
        await scheduler.stop()

        assert running == [True]
        assert mock_client.list_projects.await_count >= 1
