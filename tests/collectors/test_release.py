"""
Tests for ReleaseCollector

Covers release definitions, releases, artifacts, stages, stage status and
human approvals, plus the per-definition limit and fail-open fetching.
"""

from dataclasses import replace
from datetime import UTC, datetime, timedelta

import pytest

from devops_exporter.collectors.ado_rest_client import AzureDevOpsFetchError
from devops_exporter.collectors.release import ReleaseCollector
from devops_exporter.metrics.schema import (
    RELEASE_APPROVAL,
    RELEASE_ARTIFACT,
    RELEASE_DEFINITION_ENVIRONMENT,
    RELEASE_DEFINITION_INFO,
    RELEASE_ENVIRONMENT,
    RELEASE_ENVIRONMENT_STATUS,
    RELEASE_INFO,
)

T0 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)
RELEASE_URL = "https://dev.azure.com/org/Payments/_release?releaseId=101"


@pytest.fixture
def collector(mock_client, settings, health, registry):
    collector = ReleaseCollector(mock_client, settings, health)
    collector.setup(registry)
    return collector


async def run_cycle(collector, project, commits):
    queued = await collector.collect(project, commits)
    await commits.drain()
    return queued


def environment_status(registry):
    """Status series keyed by (environmentID, type)"""
    return {key[4:]: value for key, value in registry.series(RELEASE_ENVIRONMENT_STATUS.name).items()}


class TestFetch:
    """Test record fetching"""

    def test_interval_is_release_interval(self, collector, settings):
        assert collector.interval == settings.scrape_interval

    def test_history_start(self, collector, settings):
        expected = datetime.now(UTC) - settings.release_history_duration

        assert abs((collector.history_start() - expected).total_seconds()) < 5

    @pytest.mark.asyncio
    async def test_fetches_definitions_then_history(self, collector, mock_client, project_a, settings):
        records = await collector.fetch(project_a)

        mock_client.list_release_definitions.assert_awaited_once_with(
            "p-aaaa", top=settings.limit_release_definitions_per_project
        )
        mock_client.list_release_history.assert_awaited_once()
        assert [d.id for d in records.definitions] == [5]
        assert [r.id for r in records.releases] == [101]

    @pytest.mark.asyncio
    async def test_definitions_failure_skips_history(self, collector, mock_client, registry, project_a, commits):
        mock_client.list_release_definitions.side_effect = AzureDevOpsFetchError("HTTP 500", url="https://vsrm")

        queued = await run_cycle(collector, project_a, commits)

        assert queued is False
        mock_client.list_release_history.assert_not_awaited()
        assert registry.series(RELEASE_DEFINITION_INFO.name) == {}


class TestDefinitions:
    """Test release definition families"""

    @pytest.mark.asyncio
    async def test_definition_info(self, collector, registry, project_a, commits):
        await run_cycle(collector, project_a, commits)

        assert registry.series(RELEASE_DEFINITION_INFO.name) == {
            (
                "p-aaaa",
                "Payments",
                "5",
                "Release-$(rev:r)",
                "deploy-web",
                "\\web",
                "https://dev.azure.com/org/Payments/_release?definitionId=5",
            ): 1.0
        }

    @pytest.mark.asyncio
    async def test_definition_environments(self, collector, registry, project_a, commits):
        await run_cycle(collector, project_a, commits)

        assert registry.series(RELEASE_DEFINITION_ENVIRONMENT.name) == {
            ("p-aaaa", "Payments", "5", "11", "staging", "1", "Jane Doe", "101", "https://badge/11"): 1.0,
            ("p-aaaa", "Payments", "5", "12", "production", "2", "Ops Team", "0", ""): 1.0,
        }


class TestReleases:
    """Test release, artifact and stage families"""

    @pytest.mark.asyncio
    async def test_release_info(self, collector, registry, project_a, commits):
        await run_cycle(collector, project_a, commits)

        assert registry.series(RELEASE_INFO.name) == {
            (
                "p-aaaa",
                "Payments",
                "101",
                "5",
                "Jane Doe",
                "Release-12",
                "active",
                "continuousIntegration",
                "true",
                RELEASE_URL,
            ): 1.0
        }

    @pytest.mark.asyncio
    async def test_failed_release_result(self, collector, mock_client, registry, sample_release, project_a, commits):
        mock_client.list_release_history.return_value = [replace(sample_release, result=False)]

        await run_cycle(collector, project_a, commits)

        (labels,) = registry.series(RELEASE_INFO.name)
        assert labels[RELEASE_INFO.labels.index("result")] == "false"

    @pytest.mark.asyncio
    async def test_artifacts(self, collector, registry, project_a, commits):
        await run_cycle(collector, project_a, commits)

        assert registry.series(RELEASE_ARTIFACT.name) == {
            ("p-aaaa", "Payments", "101", "5", "p-aaaa:7", "web", "main", "Build", "_ci", "20240101.1"): 1.0
        }

    @pytest.mark.asyncio
    async def test_environments_use_definition_environment_id(self, collector, registry, project_a, commits):
        await run_cycle(collector, project_a, commits)

        assert registry.series(RELEASE_ENVIRONMENT.name) == {
            ("p-aaaa", "Payments", "101", "5", "11", "staging", "succeeded", "After release", "1"): 1.0,
            ("p-aaaa", "Payments", "101", "5", "12", "production", "notStarted", "", "2"): 1.0,
        }

    @pytest.mark.asyncio
    async def test_environment_status(self, collector, registry, project_a, commits):
        """Test succeeded flag, created time and jobDuration (minutes converted to seconds)"""
        await run_cycle(collector, project_a, commits)

        assert environment_status(registry) == {
            ("11", "succeeded"): 1.0,
            ("11", "created"): (T0 + timedelta(minutes=1)).timestamp(),
            ("11", "jobDuration"): 150.0,
            ("12", "succeeded"): 0.0,
        }

    @pytest.mark.asyncio
    async def test_limit_releases_per_definition(
        self, mock_client, settings, registry, sample_release, project_a, commits
    ):
        collector = ReleaseCollector(mock_client, replace(settings, limit_releases_per_definition=1))
        collector.setup(registry)
        mock_client.list_release_history.return_value = [
            replace(sample_release, id=103),
            replace(sample_release, id=102),
            replace(sample_release, id=104, definition_id=6),
        ]

        await run_cycle(collector, project_a, commits)

        release_ids = {labels[2] for labels in registry.series(RELEASE_INFO.name)}
        assert release_ids == {"103", "104"}


class TestApprovals:
    """Test approval family"""

    @pytest.mark.asyncio
    async def test_only_human_approvals_are_published(self, collector, registry, project_a, commits):
        await run_cycle(collector, project_a, commits)

        assert registry.series(RELEASE_APPROVAL.name) == {
            (
                "p-aaaa",
                "Payments",
                "101",
                "5",
                "11",
                "preDeploy",
                "approved",
                "false",
                "1",
                "1",
                "1",
                "Release Managers",
                "Jane Doe",
            ): (T0 + timedelta(minutes=2)).timestamp()
        }


class TestFailOpen:
    """Test a failing project never disturbs published series"""

    @pytest.mark.asyncio
    async def test_failure_of_one_project_leaves_its_series(
        self, collector, mock_client, registry, sample_release, project_a, project_b, commits
    ):
        await run_cycle(collector, project_a, commits)
        await run_cycle(collector, project_b, commits)
        before_b = registry.series(RELEASE_INFO.name, project_b.id)

        mock_client.list_release_history.side_effect = [
            [replace(sample_release, id=102)],
            AzureDevOpsFetchError("HTTP 503", url="https://vsrm", status_code=503),
        ]
        assert await run_cycle(collector, project_a, commits) is True
        assert await run_cycle(collector, project_b, commits) is False

        assert {labels[2] for labels in registry.series(RELEASE_INFO.name, project_a.id)} == {"102"}
        assert registry.series(RELEASE_INFO.name, project_b.id) == before_b
