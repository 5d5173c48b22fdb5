"""
Collection Cycle Tracking Module

Provides performance and health monitoring for collection cycles:
    - CycleState: Idle -> Fetching -> Flattening -> Committing -> Idle
    - CycleTracker: Tracks metrics for a single (collector, project) cycle
    - track_collection_cycle(): Context manager for automatic tracking
    - get_current_tracker(): Access the running cycle's tracker from the REST client
    - CollectorHealth: Latest cycle outcome per collector/project for /health

Cycles run concurrently on one event loop, so the current tracker lives in a
ContextVar: each asyncio task sees only its own cycle.
"""

import asyncio
import threading
import time
from collections.abc import Generator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from devops_exporter.core.logging_config import get_logger

logger = get_logger(__name__)

_current_tracker: ContextVar["CycleTracker | None"] = ContextVar("current_cycle_tracker", default=None)


class CycleState(str, Enum):
    """Phase of a collection cycle."""

    IDLE = "idle"
    FETCHING = "fetching"
    FLATTENING = "flattening"
    COMMITTING = "committing"


class CycleTracker:
    """
    Tracks performance and health metrics for one collection cycle.

    Captures execution time, API usage, rate limiting, the produced series
    count and the failure (if any). The REST client reports API calls through
    get_current_tracker().

    Attributes:
        collector_name: Name of collector (e.g., "latest_build", "release")
        project_id: Project the cycle collects
        state: Current CycleState
        execution_time_ms: Total execution time in milliseconds
        success: Whether the cycle committed without errors
        api_call_count: Number of API requests made
        rate_limit_hits: Number of 429 rate limit responses
        retry_count: Number of transient error retries
        series_count: Number of observations handed to the commit queue
        error_message: Error text if failed (None if successful)
        error_type: Exception class name if failed (None if successful)

    Example:
        >>> tracker = CycleTracker("release", "p1")
        >>> tracker.start()
        >>> tracker.transition(CycleState.FETCHING)
        >>> tracker.record_api_call()
        >>> tracker.end(success=True)
        >>> tracker.state
        <CycleState.IDLE: 'idle'>
    """

    def __init__(self, collector_name: str, project_id: str):
        self.collector_name = collector_name
        self.project_id = project_id
        self.state = CycleState.IDLE
        self.start_time: float | None = None
        self.finished_at: datetime | None = None
        self.execution_time_ms: float = 0
        self.success: bool = False
        self.api_call_count: int = 0
        self.rate_limit_hits: int = 0
        self.retry_count: int = 0
        self.series_count: int = 0
        self.error_message: str | None = None
        self.error_type: str | None = None

    def start(self) -> None:
        """Start tracking execution time."""
        self.start_time = time.monotonic()
        logger.debug(f"Started cycle: {self.collector_name}/{self.project_id}")

    def transition(self, state: CycleState) -> None:
        """Move the cycle to the next phase."""
        logger.debug(
            f"Cycle {self.collector_name}/{self.project_id}: {self.state.value} -> {state.value}",
            extra={"collector": self.collector_name, "project_id": self.project_id},
        )
        self.state = state

    def record_failure(self, error: BaseException) -> None:
        """
        Mark the cycle as failed without raising.

        Used for fail-open errors (fetch failures) that end the cycle early.
        """
        self.error_message = str(error) or type(error).__name__
        self.error_type = type(error).__name__

    def end(self, success: bool, error: BaseException | None = None) -> None:
        """
        End tracking and calculate execution time.

        Args:
            success: Whether the cycle completed successfully
            error: Exception if failed (None if successful)
        """
        if self.start_time is not None:
            self.execution_time_ms = (time.monotonic() - self.start_time) * 1000

        self.finished_at = datetime.now(UTC)
        self.success = success
        self.state = CycleState.IDLE

        if error is not None:
            self.record_failure(error)

    def record_api_call(self) -> None:
        """Record an API call (called by the REST client for each request)."""
        self.api_call_count += 1

    def record_rate_limit_hit(self) -> None:
        """Record a rate limit hit (429 response)."""
        self.rate_limit_hits += 1
        logger.warning(
            f"Rate limit hit for {self.collector_name} collector",
            extra={
                "collector": self.collector_name,
                "project_id": self.project_id,
                "total_rate_limit_hits": self.rate_limit_hits,
            },
        )

    def record_retry(self) -> None:
        """Record a transient error retry."""
        self.retry_count += 1

    def to_dict(self) -> dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Returns:
            Dictionary with all metric fields
        """
        return {
            "timestamp": (self.finished_at or datetime.now(UTC)).isoformat(),
            "collector_name": self.collector_name,
            "project_id": self.project_id,
            "state": self.state.value,
            "execution_time_ms": round(self.execution_time_ms, 2),
            "success": self.success,
            "api_call_count": self.api_call_count,
            "rate_limit_hits": self.rate_limit_hits,
            "retry_count": self.retry_count,
            "series_count": self.series_count,
            "error_message": self.error_message,
            "error_type": self.error_type,
        }


class CollectorHealth:
    """
    Latest cycle outcome per (collector, project).

    Written from the event loop, read by the /health handler which may run in
    a worker thread, hence the lock.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._latest: dict[tuple[str, str], dict[str, Any]] = {}

    def record(self, tracker: CycleTracker) -> None:
        with self._lock:
            self._latest[(tracker.collector_name, tracker.project_id)] = tracker.to_dict()

    def forget(self, collector_name: str, project_id: str) -> None:
        with self._lock:
            self._latest.pop((collector_name, project_id), None)

    def snapshot(self) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(entry) for _, entry in sorted(self._latest.items())]

    def is_healthy(self) -> bool:
        """True when no collector's latest cycle failed."""
        with self._lock:
            return all(entry["success"] for entry in self._latest.values())


def get_current_tracker() -> CycleTracker | None:
    """
    Get the tracker of the cycle running in the current task (for REST client use).

    Returns:
        Active tracker or None if no cycle is being tracked
    """
    return _current_tracker.get()


@contextmanager
def track_collection_cycle(
    collector_name: str, project_id: str, health: CollectorHealth | None = None
) -> Generator[CycleTracker, None, None]:
    """
    Context manager for automatic collection cycle tracking.

    A cycle that calls tracker.record_failure() ends unsuccessful without
    raising. An exception escaping the block (including cancellation) is
    logged, recorded and re-raised.

    Args:
        collector_name: Name of collector
        project_id: Project the cycle collects
        health: Optional health store that receives the final outcome

    Yields:
        CycleTracker instance for phase transitions and counters

    Example:
        >>> with track_collection_cycle("release", project.id, health) as tracker:
        ...     tracker.transition(CycleState.FETCHING)
        ...     releases = await client.list_release_history(project.id, since)
    """
    tracker = CycleTracker(collector_name, project_id)
    token = _current_tracker.set(tracker)
    tracker.start()

    try:
        yield tracker
        tracker.end(success=tracker.error_type is None)

        if tracker.success:
            logger.debug(
                "Cycle completed",
                extra={
                    "collector": collector_name,
                    "project_id": project_id,
                    "execution_time_ms": round(tracker.execution_time_ms, 2),
                    "api_calls": tracker.api_call_count,
                    "series": tracker.series_count,
                },
            )

    except asyncio.CancelledError as e:
        tracker.end(success=False, error=e)
        logger.warning(
            "Cycle cancelled",
            extra={"collector": collector_name, "project_id": project_id},
        )
        raise

    except Exception as e:
        tracker.end(success=False, error=e)
        logger.error(
            "Cycle failed",
            exc_info=True,
            extra={
                "collector": collector_name,
                "project_id": project_id,
                "execution_time_ms": round(tracker.execution_time_ms, 2),
                "error": str(e),
                "error_type": type(e).__name__,
            },
        )
        raise

    finally:
        if health is not None:
            health.record(tracker)
        _current_tracker.reset(token)
