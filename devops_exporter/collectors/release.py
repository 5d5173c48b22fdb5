"""
Release Collector

Publishes release definitions and the recent release history of a project:
    - azure_devops_release_definition_info / _environment: definitions and their stages
    - azure_devops_release_info: one series per release
    - azure_devops_release_artifact: one series per consumed artifact
    - azure_devops_release_environment: one series per deployment stage
    - azure_devops_release_environment_status: succeeded flag, created time, jobDuration
    - azure_devops_release_approval: human approvals, valued by creation time

Both lists are fetched before anything is flattened: if either request fails
the cycle publishes nothing and the previous series stay in place.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from devops_exporter.collectors.base import BaseCollector
from devops_exporter.collectors.filters import human_approvals, limit_per_key
from devops_exporter.domain.build import Project
from devops_exporter.domain.release import Release, ReleaseDefinition, ReleaseEnvironment
from devops_exporter.metrics.metric_set import MetricSet
from devops_exporter.metrics.schema import (
    RELEASE_APPROVAL,
    RELEASE_ARTIFACT,
    RELEASE_DEFINITION_ENVIRONMENT,
    RELEASE_DEFINITION_INFO,
    RELEASE_ENVIRONMENT,
    RELEASE_ENVIRONMENT_STATUS,
    RELEASE_INFO,
)


@dataclass
class ReleaseRecords:
    """Records fetched by one release cycle."""

    definitions: list[ReleaseDefinition]
    releases: list[Release]


class ReleaseCollector(BaseCollector):
    """Collects release definitions and release history for a project."""

    name = "release"
    families = (
        RELEASE_DEFINITION_INFO,
        RELEASE_DEFINITION_ENVIRONMENT,
        RELEASE_INFO,
        RELEASE_ARTIFACT,
        RELEASE_ENVIRONMENT,
        RELEASE_APPROVAL,
        RELEASE_ENVIRONMENT_STATUS,
    )

    @property
    def interval(self) -> timedelta:
        return self.settings.scrape_interval

    def history_start(self) -> datetime:
        """Oldest release creation time included in a cycle."""
        return datetime.now(UTC) - self.settings.release_history_duration

    async def fetch(self, project: Project) -> ReleaseRecords:
        definitions = await self.client.list_release_definitions(
            project.id, top=self.settings.limit_release_definitions_per_project
        )
        releases = await self.client.list_release_history(project.id, self.history_start())
        return ReleaseRecords(definitions=definitions, releases=releases)

    def flatten(self, project: Project, records: ReleaseRecords, metric_set: MetricSet) -> None:
        for definition in records.definitions:
            self._flatten_definition(project, definition, metric_set)

        releases = limit_per_key(
            records.releases,
            key=lambda release: release.definition_id,
            limit=self.settings.limit_releases_per_definition,
        )
        for release in releases:
            self._flatten_release(project, release, metric_set)

    def _flatten_definition(self, project: Project, definition: ReleaseDefinition, metric_set: MetricSet) -> None:
        metric_set.add_observation(
            self.flattener(RELEASE_DEFINITION_INFO).info(
                {
                    "projectID": project.id,
                    "projectName": project.name,
                    "releaseDefinitionID": definition.id,
                    "releaseNameFormat": definition.release_name_format,
                    "releaseDefinitionName": definition.name,
                    "path": definition.path,
                    "url": definition.url,
                }
            )
        )

        stage = self.flattener(RELEASE_DEFINITION_ENVIRONMENT)
        for environment in definition.environments:
            metric_set.add_observation(
                stage.info(
                    {
                        "projectID": project.id,
                        "projectName": project.name,
                        "releaseDefinitionID": definition.id,
                        "environmentID": environment.id,
                        "environmentName": environment.name,
                        "rank": environment.rank,
                        "owner": environment.owner,
                        "releaseID": environment.current_release_id,
                        "badgeUrl": environment.badge_url,
                    }
                )
            )

    def _flatten_release(self, project: Project, release: Release, metric_set: MetricSet) -> None:
        parent = {
            "projectID": project.id,
            "projectName": project.name,
            "releaseID": release.id,
            "releaseDefinitionID": release.definition_id,
        }

        metric_set.add_observation(
            self.flattener(RELEASE_INFO).info(
                {
                    **parent,
                    "requestedBy": release.requested_by,
                    "releaseName": release.name,
                    "status": release.status,
                    "reason": release.reason,
                    "result": release.result,
                    "url": release.url,
                }
            )
        )

        artifact_family = self.flattener(RELEASE_ARTIFACT)
        for artifact in release.artifacts:
            metric_set.add_observation(
                artifact_family.info(
                    {
                        **parent,
                        "sourceId": artifact.source_id,
                        "repositoryID": artifact.repository,
                        "branch": artifact.branch,
                        "type": artifact.type,
                        "alias": artifact.alias,
                        "version": artifact.version,
                    }
                )
            )

        for environment in release.environments:
            self._flatten_environment(parent, environment, metric_set)

    def _flatten_environment(self, parent: dict, environment: ReleaseEnvironment, metric_set: MetricSet) -> None:
        stage = {**parent, "environmentID": environment.definition_environment_id}

        metric_set.add_observation(
            self.flattener(RELEASE_ENVIRONMENT).info(
                {
                    **stage,
                    "environmentName": environment.name,
                    "status": environment.status,
                    "triggerReason": environment.trigger_reason,
                    "rank": environment.rank,
                }
            )
        )

        status = self.flattener(RELEASE_ENVIRONMENT_STATUS)
        metric_set.add_observation(status.boolean(stage, environment.succeeded, "succeeded"))
        metric_set.add_observation(status.timestamp(stage, environment.created_on, "created"))
        metric_set.add_observation(
            status.conditional_numeric(stage, environment.deploy_duration_seconds, type_tag="jobDuration")
        )

        approval_family = self.flattener(RELEASE_APPROVAL)
        for approval in human_approvals(environment.approvals):
            metric_set.add_observation(
                approval_family.timestamp(
                    {
                        **stage,
                        "approvalType": approval.approval_type,
                        "status": approval.status,
                        "isAutomated": approval.is_automated,
                        "trialNumber": approval.trial_number,
                        "attempt": approval.attempt,
                        "rank": approval.rank,
                        "approver": approval.approver,
                        "approvedBy": approval.approved_by,
                    },
                    approval.created_on,
                )
            )
