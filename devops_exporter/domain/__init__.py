"""
Domain Models - Azure DevOps records consumed by the collectors

Typed views of the REST payloads. Records are fetched fresh every cycle and
never cached.
"""

from .build import Build, Project
from .release import Approval, Artifact, DefinitionEnvironment, Release, ReleaseDefinition, ReleaseEnvironment

__all__ = [
    "Project",
    "Build",
    "Approval",
    "Artifact",
    "DefinitionEnvironment",
    "Release",
    "ReleaseDefinition",
    "ReleaseEnvironment",
]
