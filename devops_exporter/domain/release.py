"""
Release domain models - release definitions, releases and their children

Represents the hierarchical release graph the release collector flattens:
    - ReleaseDefinition with its DefinitionEnvironments
    - Release with its Artifacts and ReleaseEnvironments
    - ReleaseEnvironment with pre/post-deploy Approvals
"""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Approval:
    """
    Pre- or post-deploy approval of a release environment.

    Attributes:
        approval_type: "preDeploy" or "postDeploy"
        status: pending, approved, rejected, skipped, ...
        is_automated: True for approvals Azure DevOps granted on its own
        trial_number: Trial number of the deployment
        attempt: Deployment attempt
        rank: Order among approvals of the environment
        approver: Display name of the assigned approver
        approved_by: Display name of who acted on it
        created_on: When the approval was created
    """

    approval_type: str
    status: str
    is_automated: bool
    trial_number: int = 0
    attempt: int = 0
    rank: int = 0
    approver: str = ""
    approved_by: str = ""
    created_on: datetime | None = None

    @property
    def needs_human(self) -> bool:
        return not self.is_automated


@dataclass
class ReleaseEnvironment:
    """
    Deployment of a release to one stage.

    time_to_deploy is reported by Azure DevOps in minutes; 0 means
    "not deployed".
    """

    id: int
    definition_environment_id: int
    name: str
    status: str = ""
    trigger_reason: str = ""
    rank: int = 0
    created_on: datetime | None = None
    time_to_deploy: float = 0
    pre_deploy_approvals: list[Approval] = field(default_factory=list)
    post_deploy_approvals: list[Approval] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.status == "succeeded"

    @property
    def deploy_duration_seconds(self) -> float:
        """Time to deploy converted from minutes to seconds."""
        return self.time_to_deploy * 60

    @property
    def approvals(self) -> list[Approval]:
        """Pre-deploy approvals followed by post-deploy approvals."""
        return [*self.pre_deploy_approvals, *self.post_deploy_approvals]


@dataclass
class Artifact:
    """
    Artifact consumed by a release.

    Attributes:
        source_id: Source identifier of the artifact
        type: Artifact type (Build, Git, ...)
        alias: Alias within the release
        repository: Repository name from the definition reference
        branch: Branch name from the definition reference
        version: Version name from the definition reference
    """

    source_id: str
    type: str
    alias: str
    repository: str = ""
    branch: str = ""
    version: str = ""


@dataclass
class Release:
    """
    One release of a release definition.

    The Azure DevOps release payload carries a boolean result, exported as
    "true"/"false".
    """

    id: int
    name: str
    definition_id: int
    status: str = ""
    reason: str = ""
    result: bool = False
    requested_by: str = ""
    url: str = ""
    created_on: datetime | None = None
    artifacts: list[Artifact] = field(default_factory=list)
    environments: list[ReleaseEnvironment] = field(default_factory=list)


@dataclass
class DefinitionEnvironment:
    """
    Stage declared by a release definition.

    Attributes:
        id: Definition environment ID
        name: Stage name
        rank: Stage order
        owner: Display name of the stage owner
        current_release_id: Release currently deployed to the stage (0 when none)
        badge_url: Status badge URL
    """

    id: int
    name: str
    rank: int = 0
    owner: str = ""
    current_release_id: int = 0
    badge_url: str = ""


@dataclass
class ReleaseDefinition:
    """
    Release pipeline definition.
    """

    id: int
    name: str
    path: str = ""
    release_name_format: str = ""
    url: str = ""
    environments: list[DefinitionEnvironment] = field(default_factory=list)
