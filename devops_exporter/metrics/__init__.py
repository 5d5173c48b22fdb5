"""
Metrics Core - flattening, per-cycle metric sets, commit protocol and registry

Usage:
    from devops_exporter.metrics import GaugeRegistry, MetricSet, RecordFlattener
"""

from .commit import CommitQueue
from .flattener import Observation, RecordFlattener
from .metric_set import MetricSet
from .registry import GaugeRegistry
from .schema import ALL_FAMILIES, FamilySpec

__all__ = [
    "ALL_FAMILIES",
    "CommitQueue",
    "FamilySpec",
    "GaugeRegistry",
    "MetricSet",
    "Observation",
    "RecordFlattener",
]
