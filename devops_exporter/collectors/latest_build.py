"""
Latest Build Collector

Publishes the most recent build of every build definition:
    - azure_devops_build_latest_info: one descriptive series per build
    - azure_devops_build_latest_status: started/queued/finished timestamps and jobDuration

Runs on the short "live" interval.
"""

from datetime import timedelta

from devops_exporter.collectors.base import BaseCollector
from devops_exporter.domain.build import Build, Project
from devops_exporter.metrics.metric_set import MetricSet
from devops_exporter.metrics.schema import BUILD_LATEST_INFO, BUILD_LATEST_STATUS


class LatestBuildCollector(BaseCollector):
    """Collects the latest build per definition for a project."""

    name = "latest_build"
    families = (BUILD_LATEST_INFO, BUILD_LATEST_STATUS)

    @property
    def interval(self) -> timedelta:
        return self.settings.scrape_interval_live

    async def fetch(self, project: Project) -> list[Build]:
        return await self.client.list_latest_builds(project.id, top=self.settings.limit_builds_per_project)

    def flatten(self, project: Project, records: list[Build], metric_set: MetricSet) -> None:
        info = self.flattener(BUILD_LATEST_INFO)
        status = self.flattener(BUILD_LATEST_STATUS)

        for build in records:
            metric_set.add_observation(
                info.info(
                    {
                        "projectID": project.id,
                        "projectName": project.name,
                        "buildDefinitionID": build.definition_id,
                        "buildID": build.id,
                        "agentPoolID": build.agent_pool_id,
                        "requestedBy": build.requested_by,
                        "buildNumber": build.build_number,
                        "buildName": build.definition_name,
                        "sourceBranch": build.source_branch,
                        "sourceVersion": build.source_version,
                        "status": build.status,
                        "reason": build.reason,
                        "result": build.result,
                        "url": build.url,
                    }
                )
            )

            labels = {
                "projectID": project.id,
                "projectName": project.name,
                "buildID": build.id,
                "buildNumber": build.build_number,
            }
            metric_set.add_observation(status.timestamp(labels, build.start_time, "started"))
            metric_set.add_observation(status.timestamp(labels, build.queue_time, "queued"))
            metric_set.add_observation(status.timestamp(labels, build.finish_time, "finished"))
            metric_set.add_observation(status.duration(labels, build.start_time, build.finish_time, "jobDuration"))
