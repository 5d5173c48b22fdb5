"""
Published metric families and their ordered label schemas.

Label order is part of the exposition contract: every series of a family
carries exactly these labels, in this order.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class FamilySpec:
    """
    Declaration of one gauge family.

    Attributes:
        name: Metric name as exposed to Prometheus
        help: HELP text
        labels: Ordered label names
    """

    name: str
    help: str
    labels: tuple[str, ...]


BUILD_LATEST_INFO = FamilySpec(
    name="azure_devops_build_latest_info",
    help="Azure DevOps build (latest)",
    labels=(
        "projectID",
        "projectName",
        "buildDefinitionID",
        "buildID",
        "agentPoolID",
        "requestedBy",
        "buildNumber",
        "buildName",
        "sourceBranch",
        "sourceVersion",
        "status",
        "reason",
        "result",
        "url",
    ),
)

BUILD_LATEST_STATUS = FamilySpec(
    name="azure_devops_build_latest_status",
    help="Azure DevOps build (latest)",
    labels=("projectID", "projectName", "buildID", "buildNumber", "type"),
)

RELEASE_INFO = FamilySpec(
    name="azure_devops_release_info",
    help="Azure DevOps release",
    labels=(
        "projectID",
        "projectName",
        "releaseID",
        "releaseDefinitionID",
        "requestedBy",
        "releaseName",
        "status",
        "reason",
        "result",
        "url",
    ),
)

RELEASE_ARTIFACT = FamilySpec(
    name="azure_devops_release_artifact",
    help="Azure DevOps release",
    labels=(
        "projectID",
        "projectName",
        "releaseID",
        "releaseDefinitionID",
        "sourceId",
        "repositoryID",
        "branch",
        "type",
        "alias",
        "version",
    ),
)

RELEASE_ENVIRONMENT = FamilySpec(
    name="azure_devops_release_environment",
    help="Azure DevOps release environment",
    labels=(
        "projectID",
        "projectName",
        "releaseID",
        "releaseDefinitionID",
        "environmentID",
        "environmentName",
        "status",
        "triggerReason",
        "rank",
    ),
)

RELEASE_ENVIRONMENT_STATUS = FamilySpec(
    name="azure_devops_release_environment_status",
    help="Azure DevOps release environment status",
    labels=("projectID", "projectName", "releaseID", "releaseDefinitionID", "environmentID", "type"),
)

RELEASE_APPROVAL = FamilySpec(
    name="azure_devops_release_approval",
    help="Azure DevOps release approval",
    labels=(
        "projectID",
        "projectName",
        "releaseID",
        "releaseDefinitionID",
        "environmentID",
        "approvalType",
        "status",
        "isAutomated",
        "trialNumber",
        "attempt",
        "rank",
        "approver",
        "approvedBy",
    ),
)

RELEASE_DEFINITION_INFO = FamilySpec(
    name="azure_devops_release_definition_info",
    help="Azure DevOps release definition",
    labels=(
        "projectID",
        "projectName",
        "releaseDefinitionID",
        "releaseNameFormat",
        "releaseDefinitionName",
        "path",
        "url",
    ),
)

RELEASE_DEFINITION_ENVIRONMENT = FamilySpec(
    name="azure_devops_release_definition_environment",
    help="Azure DevOps release definition environment",
    labels=(
        "projectID",
        "projectName",
        "releaseDefinitionID",
        "environmentID",
        "environmentName",
        "rank",
        "owner",
        "releaseID",
        "badgeUrl",
    ),
)

ALL_FAMILIES: tuple[FamilySpec, ...] = (
    BUILD_LATEST_INFO,
    BUILD_LATEST_STATUS,
    RELEASE_INFO,
    RELEASE_ARTIFACT,
    RELEASE_ENVIRONMENT,
    RELEASE_ENVIRONMENT_STATUS,
    RELEASE_APPROVAL,
    RELEASE_DEFINITION_INFO,
    RELEASE_DEFINITION_ENVIRONMENT,
)
