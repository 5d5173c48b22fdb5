"""
Tests for LatestBuildCollector

Covers the info and status families for the latest build of each definition,
unset timestamps, signed durations and stale-series removal.
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from devops_exporter.collectors.latest_build import LatestBuildCollector
from devops_exporter.metrics.schema import BUILD_LATEST_INFO, BUILD_LATEST_STATUS

T0 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


@pytest.fixture
def collector(mock_client, settings, health, registry):
    collector = LatestBuildCollector(mock_client, settings, health)
    collector.setup(registry)
    return collector


def status_series(registry):
    return {key[2:]: value for key, value in registry.series(BUILD_LATEST_STATUS.name).items()}


class TestLatestBuildCollector:
    """Test latest build collection"""

    def test_interval_is_live_interval(self, collector, settings):
        assert collector.interval == settings.scrape_interval_live

    @pytest.mark.asyncio
    async def test_fetch_uses_build_limit(self, collector, mock_client, project_a, settings):
        await collector.fetch(project_a)

        mock_client.list_latest_builds.assert_awaited_once_with("p-aaaa", top=settings.limit_builds_per_project)

    @pytest.mark.asyncio
    async def test_info_series(self, collector, registry, project_a, commits):
        await collector.collect(project_a, commits)
        await commits.drain()

        assert registry.series(BUILD_LATEST_INFO.name) == {
            (
                "p-aaaa",
                "Payments",
                "7",
                "42",
                "3",
                "Jane Doe",
                "20240101.1",
                "ci",
                "refs/heads/main",
                "abc123",
                "completed",
                "individualCI",
                "succeeded",
                "https://dev.azure.com/org/Payments/_build/results?buildId=42",
            ): 1.0
        }

    @pytest.mark.asyncio
    async def test_status_series(self, collector, registry, project_a, commits):
        await collector.collect(project_a, commits)
        await commits.drain()

        assert status_series(registry) == {
            ("42", "20240101.1", "started"): T0.timestamp(),
            ("42", "20240101.1", "queued"): (T0 - timedelta(seconds=10)).timestamp(),
            ("42", "20240101.1", "finished"): (T0 + timedelta(seconds=300)).timestamp(),
            ("42", "20240101.1", "jobDuration"): 300.0,
        }

    @pytest.mark.asyncio
    async def test_running_build_has_no_finished_or_duration(
        self, collector, mock_client, registry, sample_build, project_a, commits
    ):
        mock_client.list_latest_builds.return_value = [replace(sample_build, finish_time=None, result="")]

        await collector.collect(project_a, commits)
        await commits.drain()

        assert set(status_series(registry)) == {("42", "20240101.1", "started"), ("42", "20240101.1", "queued")}

    @pytest.mark.asyncio
    async def test_negative_duration_is_published(
        self, collector, mock_client, registry, sample_build, project_a, commits
    ):
        mock_client.list_latest_builds.return_value = [replace(sample_build, finish_time=T0 - timedelta(seconds=5))]

        await collector.collect(project_a, commits)
        await commits.drain()

        assert status_series(registry)[("42", "20240101.1", "jobDuration")] == -5.0

    @pytest.mark.asyncio
    async def test_missing_agent_pool_renders_empty(
        self, collector, mock_client, registry, sample_build, project_a, commits
    ):
        mock_client.list_latest_builds.return_value = [replace(sample_build, agent_pool_id=None)]

        await collector.collect(project_a, commits)
        await commits.drain()

        (labels,) = registry.series(BUILD_LATEST_INFO.name)
        assert labels[BUILD_LATEST_INFO.labels.index("agentPoolID")] == ""

    @pytest.mark.asyncio
    async def test_superseded_build_disappears(
        self, collector, mock_client, registry, sample_build, project_a, commits
    ):
        """Test build 42 replaced by build 43 leaves no series of 42"""
        await collector.collect(project_a, commits)
        mock_client.list_latest_builds.return_value = [replace(sample_build, id=43, build_number="20240101.2")]

        await collector.collect(project_a, commits)
        await commits.drain()

        build_ids = {labels[3] for labels in registry.series(BUILD_LATEST_INFO.name)}
        assert build_ids == {"43"}
        assert all(key[0] == "43" for key in status_series(registry))
