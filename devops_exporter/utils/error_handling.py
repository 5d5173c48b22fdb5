"""
Error Handling Utility Module

Reusable error handling patterns for collection cycles. Every helper logs with
structured context so a failed project, record or commit can be traced without
a debugger.

This module provides two core utilities:
1. log_and_continue() - Log error and continue execution (expected failures)
2. log_and_return_default() - Log error and return a default value
"""

import logging
from typing import Any


def log_and_continue(
    logger: logging.Logger,
    error: Exception,
    context: dict[str, Any],
    error_type: str = "Operation",
) -> None:
    """
    Log an error with structured context and continue execution gracefully.

    Use this when encountering expected errors that should not halt execution
    (e.g., a failed fetch for one project while other projects keep collecting).

    Args:
        logger: Logger instance from logging.getLogger(__name__)
        error: The caught exception
        context: Structured data about what failed (project_id, collector, url)
        error_type: Human-readable description of the operation

    Example:
        try:
            builds = await client.list_latest_builds(project.id)
        except AzureDevOpsFetchError as e:
            log_and_continue(
                logger, e,
                context={"project_id": project.id, "collector": "latest_build"},
                error_type="Build fetch"
            )
            return
    """
    logger.warning(
        f"{error_type} failed: {error}",
        extra={
            "error_type": error_type,
            "exception_class": error.__class__.__name__,
            "context": context,
        },
    )


def log_and_return_default(
    logger: logging.Logger,
    error: Exception,
    context: dict[str, Any],
    default_value: Any = None,
    error_type: str = "Operation",
) -> Any:
    """
    Log an error and return a default value (for functions that need to return something).

    Args:
        logger: Logger instance
        error: The caught exception
        context: Structured data about what failed
        default_value: Value to return on error (None, [], {}, etc.)
        error_type: Human-readable description

    Returns:
        default_value

    Example:
        try:
            return parse_ado_timestamp(raw)
        except ValueError as e:
            return log_and_return_default(
                logger, e,
                context={"field": "finishTime", "value": raw},
                default_value=None,
                error_type="Timestamp parsing"
            )
    """
    logger.warning(
        f"{error_type} failed, returning default value: {error}",
        extra={
            "error_type": error_type,
            "exception_class": error.__class__.__name__,
            "context": context,
            "default_value": str(default_value),
        },
    )
    return default_value

