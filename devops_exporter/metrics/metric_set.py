"""
MetricSet - per-cycle accumulator of Observations

A MetricSet is created at the start of a collection cycle, owned by that cycle
alone while it fetches and flattens, and handed to the commit queue once
complete. It is never shared between cycles and never reused after commit.
"""

from collections.abc import Iterable, Mapping
from typing import Any

from devops_exporter.core.logging_config import get_logger
from devops_exporter.metrics.flattener import Observation, RecordFlattener
from devops_exporter.metrics.registry import GaugeRegistry, SeriesMap
from devops_exporter.metrics.schema import FamilySpec

logger = get_logger(__name__)


class MetricSet:
    """
    Observations of one cycle, grouped by family, for one partition.

    Duplicate label tuples within a family are accepted; the last one added
    wins when the family is committed.

    Attributes:
        partition: Partition (project id) whose series a commit replaces
    """

    def __init__(self, partition: str, families: Iterable[FamilySpec]):
        self.partition = partition
        self._specs = {spec.name: spec for spec in families}
        self._flatteners = {name: RecordFlattener(spec) for name, spec in self._specs.items()}
        self._observations: dict[str, list[Observation]] = {name: [] for name in self._specs}

    def __len__(self) -> int:
        return sum(len(observations) for observations in self._observations.values())

    @property
    def families(self) -> list[str]:
        return list(self._observations)

    def add(self, family: str, labels: Mapping[str, Any], value: float) -> None:
        """
        Append one observation, with labels put into schema order.

        Raises:
            ValueError: If the family was not declared for this set, or the
                labels do not match its schema
        """
        flattener = self._flatteners.get(family)
        if flattener is None:
            raise ValueError(f"Family {family} is not part of this metric set")
        self.add_observation(Observation(family=family, labels=flattener.labels(labels), value=float(value)))

    def add_observation(self, observation: Observation | None) -> None:
        """
        Append a flattener result; None (an omitted series) is ignored.

        Raises:
            ValueError: If the family was not declared for this set, or the
                observation's labels are not in schema order
        """
        if observation is None:
            return
        bucket = self._observations.get(observation.family)
        if bucket is None:
            raise ValueError(f"Family {observation.family} is not part of this metric set")
        expected = self._specs[observation.family].labels
        if tuple(observation.labels) != expected:
            raise ValueError(f"Labels of {observation.family} must be {list(expected)}, got {list(observation.labels)}")
        bucket.append(observation)

    def observations(self, family: str) -> list[Observation]:
        return list(self._observations.get(family, []))

    def series(self, family: str) -> SeriesMap:
        """Resolve the family's observations into label tuple -> value (last write wins)."""
        resolved: SeriesMap = {}
        for observation in self._observations.get(family, []):
            resolved[observation.label_values] = observation.value
        return resolved

    def commit(self, family: str, registry: GaugeRegistry) -> int:
        """
        Replace the registry's series of this family and partition with this set's.

        Args:
            family: Family to publish
            registry: Target registry

        Returns:
            Number of series published
        """
        series = self.series(family)
        duplicates = len(self._observations.get(family, [])) - len(series)
        if duplicates:
            logger.debug(
                f"{duplicates} duplicate label sets in {family}, last value kept",
                extra={"family": family, "partition": self.partition, "duplicates": duplicates},
            )

        removed = registry.replace(family, self.partition, series)
        if removed:
            logger.debug(
                f"Dropped {removed} stale series from {family}",
                extra={"family": family, "partition": self.partition, "removed": removed},
            )
        return len(series)

    def commit_all(self, registry: GaugeRegistry) -> int:
        """
        Commit every declared family, including empty ones.

        Returns:
            Total number of series published
        """
        return sum(self.commit(family, registry) for family in self._observations)
