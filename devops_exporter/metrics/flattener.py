"""
Record Flattener

Maps hierarchical Azure DevOps records to flat Observations under the ordered
label schema of one family. Pure functions of their inputs: no I/O, no shared
state, safe to run from any number of concurrent cycles.

Value conventions:
    - info: 1
    - timestamp: float seconds since epoch, omitted when unset
    - duration: float seconds (end - start, signed), omitted unless both ends are set
    - boolean: 0 or 1
    - conditional numeric: omitted when zero

Usage:
    from devops_exporter.metrics.flattener import RecordFlattener
    from devops_exporter.metrics.schema import BUILD_LATEST_STATUS

    status = RecordFlattener(BUILD_LATEST_STATUS)
    labels = {"projectID": "p1", "projectName": "Payments", "buildID": 42, "buildNumber": "20240101.1"}
    obs = status.duration(labels, build.start_time, build.finish_time, "jobDuration")
"""

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from devops_exporter.metrics.schema import FamilySpec
from devops_exporter.utils.datetime_utils import is_set, to_epoch_seconds

TYPE_LABEL = "type"


def label_value(value: Any) -> str:
    """
    Render one label value as a string.

    Examples:
        >>> label_value(42)
        '42'
        >>> label_value(False)
        'false'
        >>> label_value(None)
        ''
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class Observation:
    """
    Candidate series produced during a cycle, not yet published.

    Attributes:
        family: Family name
        labels: Label name -> value, ordered by the family schema
        value: Sample value
    """

    family: str
    labels: Mapping[str, str]
    value: float

    @property
    def label_values(self) -> tuple[str, ...]:
        return tuple(self.labels.values())


class RecordFlattener:
    """
    Reusable flattener bound to one family schema.

    Every operation validates that the supplied labels match the schema
    exactly. A mismatch raises ValueError: it is a programming error, not a
    data error.
    """

    def __init__(self, spec: FamilySpec):
        self.spec = spec

    def labels(self, values: Mapping[str, Any], type_tag: str | None = None) -> dict[str, str]:
        """
        Normalize a label mapping into schema order.

        Args:
            values: Label name -> raw value (int, bool, str or None)
            type_tag: Value of the "type" label, for families that carry one

        Returns:
            Ordered mapping of label name -> string value

        Raises:
            ValueError: If a schema label is missing or an unknown label is supplied
        """
        merged = dict(values)
        if type_tag is not None:
            merged[TYPE_LABEL] = type_tag

        expected = set(self.spec.labels)
        supplied = set(merged)
        if supplied != expected:
            missing = sorted(expected - supplied)
            extra = sorted(supplied - expected)
            raise ValueError(f"Labels do not match schema of {self.spec.name}: missing={missing} unexpected={extra}")

        return {name: label_value(merged[name]) for name in self.spec.labels}

    def _observation(self, values: Mapping[str, Any], value: float, type_tag: str | None = None) -> Observation:
        return Observation(family=self.spec.name, labels=self.labels(values, type_tag), value=float(value))

    def info(self, labels: Mapping[str, Any]) -> Observation:
        """Descriptive series with value 1."""
        return self._observation(labels, 1)

    def timestamp(
        self, labels: Mapping[str, Any], moment: datetime | None, type_tag: str | None = None
    ) -> Observation | None:
        """
        Point-in-time series valued in seconds since epoch.

        Returns:
            Observation, or None when moment is unset (absent, zero sentinel or
            not after the epoch)
        """
        if moment is None or not is_set(moment):
            return None
        return self._observation(labels, to_epoch_seconds(moment), type_tag)

    def duration(
        self,
        labels: Mapping[str, Any],
        start: datetime | None,
        end: datetime | None,
        type_tag: str | None = None,
    ) -> Observation | None:
        """
        Elapsed time series, end - start in seconds.

        Negative results are published as-is.

        Returns:
            Observation, or None unless both start and end are set
        """
        if start is None or end is None or not (is_set(start) and is_set(end)):
            return None
        return self._observation(labels, (end - start).total_seconds(), type_tag)

    def boolean(self, labels: Mapping[str, Any], predicate: bool, type_tag: str | None = None) -> Observation:
        """Flag series valued 1 when predicate holds, else 0."""
        return self._observation(labels, 1 if predicate else 0, type_tag)

    def conditional_numeric(
        self,
        labels: Mapping[str, Any],
        value: float,
        skip_if_zero: bool = True,
        type_tag: str | None = None,
    ) -> Observation | None:
        """
        Numeric series where zero means "not applicable".

        Returns:
            Observation, or None when value is 0 and skip_if_zero is set
        """
        if skip_if_zero and value == 0:
            return None
        return self._observation(labels, value, type_tag)
