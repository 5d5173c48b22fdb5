"""
Inclusion rules applied between fetching and publishing

- Project scope (include list, exclude list, maximum count)
- Human-only approvals (automated approvals are never exported)
- Per-key cardinality limits (e.g. releases per release definition)
"""

from collections import defaultdict
from collections.abc import Callable, Hashable, Iterable, Sequence
from typing import TypeVar

from devops_exporter.domain.build import Project
from devops_exporter.domain.release import Approval

T = TypeVar("T")


def select_projects(
    projects: Iterable[Project],
    include: Sequence[str] = (),
    exclude: Sequence[str] = (),
    limit: int | None = None,
) -> list[Project]:
    """
    Apply project include/exclude lists and the project limit.

    Args:
        projects: Projects as listed by the API
        include: Project ids or names to keep (empty keeps all)
        exclude: Project ids or names to drop (wins over include)
        limit: Maximum number of projects kept

    Returns:
        Selected projects in their original order

    Example:
        >>> select_projects(projects, include=["Payments"], exclude=[])
        [Project(id='3f2c', name='Payments')]
    """
    selected = []
    for project in projects:
        if include and not any(project.matches(selector) for selector in include):
            continue
        if any(project.matches(selector) for selector in exclude):
            continue
        selected.append(project)

    if limit is not None:
        selected = selected[:limit]
    return selected


def human_approvals(approvals: Iterable[Approval]) -> list[Approval]:
    """Drop approvals Azure DevOps granted automatically."""
    return [approval for approval in approvals if approval.needs_human]


def limit_per_key(items: Iterable[T], key: Callable[[T], Hashable], limit: int) -> list[T]:
    """
    Keep at most `limit` items per key, preserving order (first seen wins).

    Example:
        >>> limit_per_key([r1, r2, r3], key=lambda r: r.definition_id, limit=1)
        [r1, r3]  # r2 shared r1's definition
    """
    seen: dict[Hashable, int] = defaultdict(int)
    kept = []
    for item in items:
        bucket = key(item)
        if seen[bucket] < limit:
            seen[bucket] += 1
            kept.append(item)
    return kept
