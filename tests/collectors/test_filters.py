"""
Tests for inclusion rules: project scope, human approvals, per-key limits
"""

from devops_exporter.collectors.filters import human_approvals, limit_per_key, select_projects
from devops_exporter.domain.build import Project
from devops_exporter.domain.release import Approval

PROJECTS = [
    Project(id="p1", name="Payments"),
    Project(id="p2", name="Platform"),
    Project(id="p3", name="Sandbox"),
]


class TestSelectProjects:
    """Test select_projects"""

    def test_no_rules_keeps_all(self):
        assert select_projects(PROJECTS) == PROJECTS

    def test_include_by_id_or_name(self):
        selected = select_projects(PROJECTS, include=["p1", "platform"])

        assert [p.id for p in selected] == ["p1", "p2"]

    def test_exclude_wins_over_include(self):
        selected = select_projects(PROJECTS, include=["Payments", "Platform"], exclude=["Payments"])

        assert [p.id for p in selected] == ["p2"]

    def test_exclude_only(self):
        selected = select_projects(PROJECTS, exclude=["p3"])

        assert [p.id for p in selected] == ["p1", "p2"]

    def test_limit_applies_after_filters(self):
        selected = select_projects(PROJECTS, exclude=["p1"], limit=1)

        assert [p.id for p in selected] == ["p2"]

    def test_limit_zero_selects_nothing(self):
        assert select_projects(PROJECTS, limit=0) == []


class TestHumanApprovals:
    """Test human_approvals"""

    def test_drops_automated(self):
        manual = Approval(approval_type="preDeploy", status="approved", is_automated=False)
        automated = Approval(approval_type="postDeploy", status="approved", is_automated=True)

        assert human_approvals([manual, automated]) == [manual]


class TestLimitPerKey:
    """Test limit_per_key"""

    def test_keeps_first_items_per_key(self):
        items = [("a", 1), ("a", 2), ("b", 3), ("a", 4), ("b", 5)]

        kept = limit_per_key(items, key=lambda item: item[0], limit=2)

        assert kept == [("a", 1), ("a", 2), ("b", 3), ("b", 5)]

    def test_zero_limit_keeps_nothing(self):
        assert limit_per_key([1, 2, 3], key=lambda item: item, limit=0) == []
