"""
Build domain models - projects and latest builds per definition

Represents the records the latest-build collector flattens:
    - Project: scope unit of every collection cycle
    - Build: most recent build of one build definition
"""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Project:
    """
    Azure DevOps project.

    Attributes:
        id: Project GUID (partition key of every published series)
        name: Display name
    """

    id: str
    name: str

    def matches(self, selector: str) -> bool:
        """
        Check if a filter entry selects this project (by id or case-insensitive name).

        Example:
            >>> Project(id="3f2c", name="Payments").matches("payments")
            True
        """
        return selector == self.id or selector.lower() == self.name.lower()


@dataclass
class Build:
    """
    Latest build of a build definition.

    Attributes:
        id: Build ID
        build_number: Build number (e.g. "20240101.1")
        definition_id: Build definition ID
        definition_name: Build definition name (exported as buildName)
        agent_pool_id: Agent pool of the queue, None when unknown
        requested_by: Display name of the requester
        source_branch: Source branch ref
        source_version: Source commit
        status: Build status (inProgress, completed, ...)
        reason: Build reason (manual, individualCI, ...)
        result: Build result (succeeded, failed, ...), empty while running
        url: Web link to the build
        queue_time: When the build was queued
        start_time: When the build started
        finish_time: When the build finished
    """

    id: int
    build_number: str
    definition_id: int
    definition_name: str
    agent_pool_id: int | None = None
    requested_by: str = ""
    source_branch: str = ""
    source_version: str = ""
    status: str = ""
    reason: str = ""
    result: str = ""
    url: str = ""
    queue_time: datetime | None = None
    start_time: datetime | None = None
    finish_time: datetime | None = None
