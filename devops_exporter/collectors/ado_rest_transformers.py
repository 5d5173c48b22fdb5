"""
Azure DevOps REST API Response Transformers

Converts REST API JSON payloads into the domain records the collectors
flatten. Nested references (definition, requestedBy, _links.web.href, ...)
are resolved here so collectors never touch raw JSON.

Missing or null fields map to empty values; unparsable timestamps are logged
and treated as unset so that one bad field never drops a whole record.

Usage:
    from devops_exporter.collectors.ado_rest_transformers import BuildTransformer

    rest_response = {"count": 1, "value": [{"id": 42, "buildNumber": "20240101.1", ...}]}
    builds = BuildTransformer.transform_builds_response(rest_response)
"""

from datetime import datetime
from typing import Any

from devops_exporter.core.logging_config import get_logger
from devops_exporter.domain.build import Build, Project
from devops_exporter.domain.release import (
    Approval,
    Artifact,
    DefinitionEnvironment,
    Release,
    ReleaseDefinition,
    ReleaseEnvironment,
)
from devops_exporter.utils.datetime_utils import parse_ado_timestamp
from devops_exporter.utils.error_handling import log_and_return_default

logger = get_logger(__name__)


def _nested(payload: dict[str, Any] | None, *path: str, default: Any = None) -> Any:
    """
    Walk nested dictionaries, tolerating missing or null levels.

    Example:
        >>> _nested({"_links": {"web": {"href": "https://..."}}}, "_links", "web", "href")
        'https://...'
    """
    current: Any = payload
    for key in path:
        if not isinstance(current, dict):
            return default
        current = current.get(key)
    return default if current is None else current


def _text(payload: dict[str, Any] | None, *path: str) -> str:
    return str(_nested(payload, *path, default=""))


def _number(payload: dict[str, Any] | None, *path: str) -> int:
    value = _nested(payload, *path, default=0)
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _timestamp(payload: dict[str, Any], field: str, record_id: Any = None) -> datetime | None:
    raw = payload.get(field)
    try:
        return parse_ado_timestamp(raw)
    except ValueError as e:
        return log_and_return_default(
            logger,
            e,
            context={"field": field, "value": raw, "record_id": record_id},
            default_value=None,
            error_type="Timestamp parsing",
        )


def _values(rest_response: dict[str, Any] | list[Any]) -> list[dict[str, Any]]:
    if isinstance(rest_response, list):
        return [item for item in rest_response if isinstance(item, dict)]
    return [item for item in rest_response.get("value", []) or [] if isinstance(item, dict)]


class ProjectTransformer:
    """Transform project REST responses."""

    @staticmethod
    def transform_projects_response(rest_response: dict[str, Any] | list[Any]) -> list[Project]:
        """
        Transform projects REST response to Project records.

        REST Response:
        {
            "count": 1,
            "value": [{"id": "3f2c...", "name": "Payments", "state": "wellFormed"}]
        }
        """
        return [
            Project(id=str(item["id"]), name=_text(item, "name")) for item in _values(rest_response) if item.get("id")
        ]


class BuildTransformer:
    """
    Transform build REST responses to Build records.

    Handles:
    - Latest-build-per-definition query results
    """

    @staticmethod
    def transform_build(item: dict[str, Any]) -> Build:
        """
        Transform one build payload.

        REST Payload:
        {
            "id": 42,
            "buildNumber": "20240101.1",
            "definition": {"id": 7, "name": "ci"},
            "queue": {"pool": {"id": 3}},
            "requestedBy": {"displayName": "Jane Doe"},
            "sourceBranch": "refs/heads/main",
            "sourceVersion": "abc123",
            "status": "completed",
            "reason": "individualCI",
            "result": "succeeded",
            "_links": {"web": {"href": "https://dev.azure.com/org/p/_build/results?buildId=42"}},
            "queueTime": "2024-01-01T10:00:00Z",
            "startTime": "2024-01-01T10:00:05Z",
            "finishTime": "2024-01-01T10:05:05Z"
        }
        """
        build_id = _number(item, "id")
        pool_id = _nested(item, "queue", "pool", "id")
        return Build(
            id=build_id,
            build_number=_text(item, "buildNumber"),
            definition_id=_number(item, "definition", "id"),
            definition_name=_text(item, "definition", "name"),
            agent_pool_id=int(pool_id) if pool_id is not None else None,
            requested_by=_text(item, "requestedBy", "displayName"),
            source_branch=_text(item, "sourceBranch"),
            source_version=_text(item, "sourceVersion"),
            status=_text(item, "status"),
            reason=_text(item, "reason"),
            result=_text(item, "result"),
            url=_text(item, "_links", "web", "href"),
            queue_time=_timestamp(item, "queueTime", build_id),
            start_time=_timestamp(item, "startTime", build_id),
            finish_time=_timestamp(item, "finishTime", build_id),
        )

    @staticmethod
    def transform_builds_response(rest_response: dict[str, Any] | list[Any]) -> list[Build]:
        """
        Transform builds REST response to Build records.

        Args:
            rest_response: Raw REST API response dict (or an already merged list of pages)

        Returns:
            List of Build records
        """
        return [BuildTransformer.transform_build(item) for item in _values(rest_response)]


class ReleaseTransformer:
    """
    Transform release management REST responses.

    Handles:
    - Release definitions with their environments
    - Releases with environments, artifacts and approvals
    """

    @staticmethod
    def transform_approval(item: dict[str, Any]) -> Approval:
        return Approval(
            approval_type=_text(item, "approvalType"),
            status=_text(item, "status"),
            is_automated=bool(item.get("isAutomated", False)),
            trial_number=_number(item, "trialNumber"),
            attempt=_number(item, "attempt"),
            rank=_number(item, "rank"),
            approver=_text(item, "approver", "displayName"),
            approved_by=_text(item, "approvedBy", "displayName"),
            created_on=_timestamp(item, "createdOn", item.get("id")),
        )

    @staticmethod
    def transform_environment(item: dict[str, Any]) -> ReleaseEnvironment:
        """
        Transform one release environment payload.

        timeToDeploy stays in minutes, as reported by Azure DevOps.
        """
        try:
            time_to_deploy = float(item.get("timeToDeploy") or 0)
        except (TypeError, ValueError):
            time_to_deploy = 0.0

        return ReleaseEnvironment(
            id=_number(item, "id"),
            definition_environment_id=_number(item, "definitionEnvironmentId"),
            name=_text(item, "name"),
            status=_text(item, "status"),
            trigger_reason=_text(item, "triggerReason"),
            rank=_number(item, "rank"),
            created_on=_timestamp(item, "createdOn", item.get("id")),
            time_to_deploy=time_to_deploy,
            pre_deploy_approvals=[
                ReleaseTransformer.transform_approval(a) for a in _values(item.get("preDeployApprovals") or [])
            ],
            post_deploy_approvals=[
                ReleaseTransformer.transform_approval(a) for a in _values(item.get("postDeployApprovals") or [])
            ],
        )

    @staticmethod
    def transform_artifact(item: dict[str, Any]) -> Artifact:
        return Artifact(
            source_id=_text(item, "sourceId"),
            type=_text(item, "type"),
            alias=_text(item, "alias"),
            repository=_text(item, "definitionReference", "repository", "name"),
            branch=_text(item, "definitionReference", "branch", "name"),
            version=_text(item, "definitionReference", "version", "name"),
        )

    @staticmethod
    def transform_release(item: dict[str, Any]) -> Release:
        """
        Transform one release payload.

        REST Payload (abridged):
        {
            "id": 101,
            "name": "Release-12",
            "status": "active",
            "reason": "continuousIntegration",
            "result": true,
            "requestedBy": {"displayName": "Jane Doe"},
            "releaseDefinition": {"id": 5},
            "_links": {"web": {"href": "..."}},
            "artifacts": [...],
            "environments": [...]
        }
        """
        release_id = _number(item, "id")
        return Release(
            id=release_id,
            name=_text(item, "name"),
            definition_id=_number(item, "releaseDefinition", "id"),
            status=_text(item, "status"),
            reason=_text(item, "reason"),
            result=item.get("result") is True,
            requested_by=_text(item, "requestedBy", "displayName"),
            url=_text(item, "_links", "web", "href"),
            created_on=_timestamp(item, "createdOn", release_id),
            artifacts=[ReleaseTransformer.transform_artifact(a) for a in _values(item.get("artifacts") or [])],
            environments=[ReleaseTransformer.transform_environment(e) for e in _values(item.get("environments") or [])],
        )

    @staticmethod
    def transform_releases_response(rest_response: dict[str, Any] | list[Any]) -> list[Release]:
        return [ReleaseTransformer.transform_release(item) for item in _values(rest_response)]

    @staticmethod
    def transform_definition(item: dict[str, Any]) -> ReleaseDefinition:
        """
        Transform one release definition payload (fetched with $expand=environments).
        """
        return ReleaseDefinition(
            id=_number(item, "id"),
            name=_text(item, "name"),
            path=_text(item, "path"),
            release_name_format=_text(item, "releaseNameFormat"),
            url=_text(item, "_links", "web", "href"),
            environments=[
                DefinitionEnvironment(
                    id=_number(env, "id"),
                    name=_text(env, "name"),
                    rank=_number(env, "rank"),
                    owner=_text(env, "owner", "displayName"),
                    current_release_id=_number(env, "currentRelease", "id"),
                    badge_url=_text(env, "badgeUrl"),
                )
                for env in _values(item.get("environments") or [])
            ],
        )

    @staticmethod
    def transform_definitions_response(rest_response: dict[str, Any] | list[Any]) -> list[ReleaseDefinition]:
        return [ReleaseTransformer.transform_definition(item) for item in _values(rest_response)]
