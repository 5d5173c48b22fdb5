"""
Pytest configuration and shared fixtures

Provides sample Azure DevOps records, exporter settings, a registry and a
stub REST client for collector and scheduler tests.
"""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock

import pytest
import pytest_asyncio

from devops_exporter.core import CollectorHealth, ExporterConfig
from devops_exporter.domain.build import Build, Project
from devops_exporter.domain.release import (
    Approval,
    Artifact,
    DefinitionEnvironment,
    Release,
    ReleaseDefinition,
    ReleaseEnvironment,
)
from devops_exporter.metrics.commit import CommitQueue
from devops_exporter.metrics.registry import GaugeRegistry

T0 = datetime(2024, 1, 1, 10, 0, 0, tzinfo=UTC)


# ===== Domain Model Fixtures =====


@pytest.fixture
def sample_timestamp():
    """Provide a consistent timestamp for testing"""
    return T0


@pytest.fixture
def project_a():
    return Project(id="p-aaaa", name="Payments")


@pytest.fixture
def project_b():
    return Project(id="p-bbbb", name="Platform")


@pytest.fixture
def sample_build():
    """Completed build: definition 7 "ci", number 20240101.1, 300s runtime"""
    return Build(
        id=42,
        build_number="20240101.1",
        definition_id=7,
        definition_name="ci",
        agent_pool_id=3,
        requested_by="Jane Doe",
        source_branch="refs/heads/main",
        source_version="abc123",
        status="completed",
        reason="individualCI",
        result="succeeded",
        url="https://dev.azure.com/org/Payments/_build/results?buildId=42",
        queue_time=T0 - timedelta(seconds=10),
        start_time=T0,
        finish_time=T0 + timedelta(seconds=300),
    )


@pytest.fixture
def sample_release_definition():
    return ReleaseDefinition(
        id=5,
        name="deploy-web",
        path="\\web",
        release_name_format="Release-$(rev:r)",
        url="https://dev.azure.com/org/Payments/_release?definitionId=5",
        environments=[
            DefinitionEnvironment(
                id=11, name="staging", rank=1, owner="Jane Doe", current_release_id=101, badge_url="https://badge/11"
            ),
            DefinitionEnvironment(id=12, name="production", rank=2, owner="Ops Team", current_release_id=0),
        ],
    )


@pytest.fixture
def sample_release():
    """Release with one artifact and two stages; stage 1 has a human and an automated approval"""
    return Release(
        id=101,
        name="Release-12",
        definition_id=5,
        status="active",
        reason="continuousIntegration",
        result=True,
        requested_by="Jane Doe",
        url="https://dev.azure.com/org/Payments/_release?releaseId=101",
        created_on=T0,
        artifacts=[
            Artifact(
                source_id="p-aaaa:7", type="Build", alias="_ci", repository="web", branch="main", version="20240101.1"
            )
        ],
        environments=[
            ReleaseEnvironment(
                id=201,
                definition_environment_id=11,
                name="staging",
                status="succeeded",
                trigger_reason="After release",
                rank=1,
                created_on=T0 + timedelta(minutes=1),
                time_to_deploy=2.5,
                pre_deploy_approvals=[
                    Approval(
                        approval_type="preDeploy",
                        status="approved",
                        is_automated=False,
                        trial_number=1,
                        attempt=1,
                        rank=1,
                        approver="Release Managers",
                        approved_by="Jane Doe",
                        created_on=T0 + timedelta(minutes=2),
                    )
                ],
                post_deploy_approvals=[
                    Approval(
                        approval_type="postDeploy",
                        status="approved",
                        is_automated=True,
                        trial_number=1,
                        attempt=1,
                        rank=1,
                        created_on=T0 + timedelta(minutes=5),
                    )
                ],
            ),
            ReleaseEnvironment(
                id=202,
                definition_environment_id=12,
                name="production",
                status="notStarted",
                trigger_reason="",
                rank=2,
                created_on=None,
                time_to_deploy=0,
            ),
        ],
    )


# ===== Infrastructure Fixtures =====


@pytest.fixture
def settings():
    """Exporter settings with short timeouts for tests"""
    return ExporterConfig(scrape_timeout=timedelta(seconds=5))


@pytest.fixture
def registry():
    return GaugeRegistry()


@pytest.fixture
def health():
    return CollectorHealth()


@pytest.fixture
def mock_client(sample_build, sample_release_definition, sample_release, project_a, project_b):
    """REST client stub returning the sample records"""
    client = Mock()
    client.list_projects = AsyncMock(return_value=[project_a, project_b])
    client.list_latest_builds = AsyncMock(return_value=[sample_build])
    client.list_release_definitions = AsyncMock(return_value=[sample_release_definition])
    client.list_release_history = AsyncMock(return_value=[sample_release])
    return client


@pytest_asyncio.fixture
async def commits():
    """Running commit queue, stopped (and drained) after the test"""
    queue = CommitQueue()
    queue.start()
    yield queue
    await queue.stop()
