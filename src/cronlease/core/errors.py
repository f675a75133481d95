"""
Structured error types for cronlease.

Provides a small hierarchy of typed errors carrying a category and a
retry hint, so the polling loop and the error-reporting channel can tell
a malformed schedule apart from a flaky store or an expired lease.

Manifesto:
    - **Typed Error Hierarchy:** Different error types for different failure domains
    - **Explicit Retry Semantics:** Each error knows if it's retryable
    - **Error Chaining:** Preserve original exceptions while adding context

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────────┐
        │                      CronleaseError                              │
        │                 (category, retryable, cause)                     │
        ├─────────────────────────────────────────────────────────────────┤
        │                                                                  │
        │  ConfigError          ScheduleParseError     StoreError          │
        │  (CONFIG)             (SCHEDULE)             (STORE, retryable)  │
        │      │                                           │               │
        │  MissingConfigError                          TaskExistsError     │
        │  InvalidConfigError                                              │
        │                                                                  │
        │  LeaseExpiredError    WorkerNotFoundError                        │
        │  (LEASE)              (CONFIG)                                   │
        └─────────────────────────────────────────────────────────────────┘

Propagation:
    Errors raised on the declaration path reach the caller. Errors raised
    inside a poll cycle are routed to the scheduler's error handler and
    never terminate the loop.

Tags:
    error-handling, exception-hierarchy, retry-logic, cronlease

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing.

    Attributes:
        CONFIG: Missing store, unknown worker, invalid settings
        SCHEDULE: Malformed cron expression or unknown timezone
        STORE: Store I/O failures
        LEASE: Lease expired or lost to another claimant
        WORKER: Failure raised by task worker code
        INTERNAL: Bugs, unexpected state
    """

    CONFIG = "CONFIG"
    SCHEDULE = "SCHEDULE"
    STORE = "STORE"
    LEASE = "LEASE"
    WORKER = "WORKER"
    INTERNAL = "INTERNAL"


class CronleaseError(Exception):
    """
    Base exception for all cronlease errors.

    Every error carries:
    - **category:** ErrorCategory for classification and routing
    - **retryable:** Whether the failed operation may succeed if repeated
    - **cause:** Optional underlying exception for chaining

    Subclasses set ``default_category`` and ``default_retryable``.

    Examples:
        >>> error = CronleaseError("Something went wrong")
        >>> error.category
        <ErrorCategory.INTERNAL: 'INTERNAL'>
        >>> error.to_dict()["retryable"]
        False
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = category or self.default_category
        self.retryable = retryable if retryable is not None else self.default_retryable
        self.cause = cause

        if cause is not None:
            self.__cause__ = cause

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization."""
        result: dict[str, Any] = {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        if self.cause is not None:
            result["cause"] = str(self.cause)
        return result

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================


class ConfigError(CronleaseError):
    """
    Configuration error.

    Never retryable - configuration must be fixed.
    """

    default_category = ErrorCategory.CONFIG
    default_retryable = False


class MissingConfigError(ConfigError):
    """Required configuration is missing."""

    def __init__(self, key: str, message: str | None = None):
        self.key = key
        super().__init__(message or f"Missing required configuration: {key}")


class InvalidConfigError(ConfigError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        self.key = key
        self.value = value
        super().__init__(message or f"Invalid configuration for {key}: {value!r}")


class WorkerNotFoundError(ConfigError):
    """A claimed task has no worker registered in this process."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"No worker registered for scheduled task with id: {task_id}")


# =============================================================================
# SCHEDULE ERRORS
# =============================================================================


class ScheduleParseError(CronleaseError):
    """Cron expression or timezone could not be parsed."""

    default_category = ErrorCategory.SCHEDULE
    default_retryable = False

    def __init__(
        self,
        expression: str,
        message: str | None = None,
        *,
        cause: BaseException | None = None,
    ):
        self.expression = expression
        super().__init__(message or f"Invalid cron expression: {expression!r}", cause=cause)

    def to_dict(self) -> dict[str, Any]:
        result = super().to_dict()
        result["expression"] = self.expression
        return result


# =============================================================================
# STORE ERRORS
# =============================================================================


class StoreError(CronleaseError):
    """Task store I/O error. The next poll cycle retries naturally."""

    default_category = ErrorCategory.STORE
    default_retryable = True


class TaskExistsError(StoreError):
    """Insert of a task id that is already stored."""

    default_retryable = False

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task already exists: {task_id}")


# =============================================================================
# LEASE ERRORS
# =============================================================================


class LeaseExpiredError(CronleaseError):
    """
    Lease renewal matched nothing.

    The lease aged past the processing timeout and may already have been
    reclaimed elsewhere. Workers should stop when they see this.
    """

    default_category = ErrorCategory.LEASE
    default_retryable = False

    def __init__(self, task_id: str, message: str | None = None):
        self.task_id = task_id
        super().__init__(message or f"Task expired or no longer exists: {task_id}")


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================


def error_category(error: BaseException) -> ErrorCategory:
    """Category of a failure; anything cronlease did not raise belongs to the worker."""
    if isinstance(error, CronleaseError):
        return error.category
    return ErrorCategory.WORKER


def is_retryable(error: BaseException) -> bool:
    """Check if an error is retryable."""
    if isinstance(error, CronleaseError):
        return error.retryable
    return False


def error_message(error: BaseException) -> str:
    """Message recorded in task history for a failure."""
    if isinstance(error, CronleaseError):
        return error.message
    return str(error) or error.__class__.__name__


__all__ = [
    "ErrorCategory",
    "CronleaseError",
    "ConfigError",
    "MissingConfigError",
    "InvalidConfigError",
    "WorkerNotFoundError",
    "ScheduleParseError",
    "StoreError",
    "TaskExistsError",
    "LeaseExpiredError",
    "error_category",
    "is_retryable",
    "error_message",
]
