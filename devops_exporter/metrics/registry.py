"""
Gauge Registry

The externally visible store of gauge families. Long-lived, shared by every
collector, mutated only through replace()/clear() and read by Prometheus
scrapes through the prometheus_client custom collector protocol.

Series are kept per family and, within a family, per partition (project id).
A replace swaps one partition of one family under that family's lock, and a
scrape copies each family under the same lock, so a reader never sees a
family half way through a commit.

Usage:
    registry = GaugeRegistry()
    registry.register_family(BUILD_LATEST_INFO)
    registry.replace(BUILD_LATEST_INFO.name, project.id, {("p1", ...): 1.0})

    payload = registry.exposition()  # Prometheus text format
"""

import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field

from prometheus_client import CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily, Metric

from devops_exporter.core.logging_config import get_logger
from devops_exporter.metrics.schema import FamilySpec

logger = get_logger(__name__)

LabelTuple = tuple[str, ...]
SeriesMap = dict[LabelTuple, float]


@dataclass
class _FamilyState:
    spec: FamilySpec
    lock: threading.Lock = field(default_factory=threading.Lock)
    partitions: dict[str, SeriesMap] = field(default_factory=dict)


class GaugeRegistry:
    """
    Owns the published gauge families and exposes them to Prometheus.

    Wraps a prometheus_client CollectorRegistry of its own (no process-global
    default registry), registering itself as a custom collector.
    """

    def __init__(self, registry: CollectorRegistry | None = None):
        self._families: dict[str, _FamilyState] = {}
        self._families_lock = threading.Lock()
        self.registry = registry if registry is not None else CollectorRegistry(auto_describe=False)
        self.registry.register(self)

    # ==============================
    # Mutation (commit protocol only)
    # ==============================

    def register_family(self, spec: FamilySpec) -> None:
        """
        Declare a family. Registering the same spec twice is a no-op.

        Raises:
            ValueError: If a different spec is already registered under the name
        """
        with self._families_lock:
            existing = self._families.get(spec.name)
            if existing is None:
                self._families[spec.name] = _FamilyState(spec)
                logger.debug(f"Registered metric family {spec.name}")
            elif existing.spec != spec:
                raise ValueError(f"Metric family {spec.name} already registered with a different schema")

    def _state(self, family: str) -> _FamilyState:
        try:
            return self._families[family]
        except KeyError:
            raise KeyError(f"Metric family {family} is not registered") from None

    def replace(self, family: str, partition: str, series: Mapping[LabelTuple, float]) -> int:
        """
        Atomically replace every series of one partition of a family.

        Series of the partition absent from the new mapping are deleted.

        Args:
            family: Family name
            partition: Partition key (project id)
            series: Label tuple -> value

        Returns:
            Number of series removed by the replace
        """
        state = self._state(family)
        width = len(state.spec.labels)
        for labels in series:
            if len(labels) != width:
                raise ValueError(f"Series of {family} must carry {width} labels, got {len(labels)}")

        new_series = dict(series)
        with state.lock:
            previous = state.partitions.get(partition, {})
            if new_series:
                state.partitions[partition] = new_series
            else:
                state.partitions.pop(partition, None)

        return len(previous.keys() - new_series.keys())

    def clear(self, family: str, partition: str | None = None) -> None:
        """Remove all series of a family, or of one partition of it."""
        state = self._state(family)
        with state.lock:
            if partition is None:
                state.partitions.clear()
            else:
                state.partitions.pop(partition, None)

    # ==============================
    # Reads
    # ==============================

    @property
    def families(self) -> list[FamilySpec]:
        with self._families_lock:
            return [state.spec for state in self._families.values()]

    def series(self, family: str, partition: str | None = None) -> SeriesMap:
        """
        Consistent copy of a family's series.

        Args:
            family: Family name
            partition: Restrict to one partition (default: all)
        """
        state = self._state(family)
        with state.lock:
            if partition is not None:
                return dict(state.partitions.get(partition, {}))
            merged: SeriesMap = {}
            for partition_series in state.partitions.values():
                merged.update(partition_series)
            return merged

    def partitions(self, family: str) -> set[str]:
        state = self._state(family)
        with state.lock:
            return set(state.partitions)

    def describe(self) -> Iterable[Metric]:
        for spec in self.families:
            yield GaugeMetricFamily(spec.name, spec.help, labels=spec.labels)

    def collect(self) -> Iterator[Metric]:
        """Yield one GaugeMetricFamily per registered family (prometheus_client collector protocol)."""
        for spec in self.families:
            gauge = GaugeMetricFamily(spec.name, spec.help, labels=spec.labels)
            for labels, value in self.series(spec.name).items():
                gauge.add_metric(labels, value)
            yield gauge

    def exposition(self) -> bytes:
        """Render the registry in the Prometheus text exposition format."""
        return generate_latest(self.registry)
