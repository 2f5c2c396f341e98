# mobileauto/exceptions.py
"""
@file exceptions.py
@brief Exception hierarchy for the mobile automation engine.

Interaction failures (timeouts, fallback failures) propagate to the caller and
fail the test. Tracker and screenshot failures are raised inside reporting
steps only and never leave the reporting boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, List, Optional, Tuple


class MobileAutoError(Exception):
    """Base exception for the engine."""
    pass


class ConfigError(MobileAutoError):
    """Raised when YAML configuration is missing or invalid."""
    pass


class TimeoutError(MobileAutoError):
    """
    Raised when a bounded wait runs out of time.

    Attributes:
        original_exception: The last exception raised by the polled condition
        description: Human-readable description of what was being waited for
        timeout: The timeout value in seconds
        attempt_count: Number of polling attempts made
        elapsed_time: Actual elapsed time in seconds
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.original_exception: Optional[BaseException] = None
        self.description: Optional[str] = None
        self.timeout: Optional[float] = None
        self.attempt_count: Optional[int] = None
        self.elapsed_time: Optional[float] = None

    def __str__(self) -> str:
        base_msg = super().__str__()

        details = []
        if self.original_exception is not None:
            details.append(f"Original exception: {type(self.original_exception).__name__}")
        if self.attempt_count is not None:
            details.append(f"Attempts: {self.attempt_count}")
        if self.elapsed_time is not None:
            details.append(f"Elapsed: {self.elapsed_time:.2f}s")

        if details:
            return f"{base_msg} [{', '.join(details)}]"
        return base_msg


class LocatorTimeoutError(TimeoutError):
    """Raised when an interaction on a locator does not complete in time."""

    def __init__(self, operation: str, locator: Any, timeout: float, cause: Optional[TimeoutError] = None):
        self.operation = operation
        self.locator = locator
        super().__init__(
            f"LocatorTimeoutError: {operation} on {format_locator(locator)} "
            f"did not complete within {timeout}s"
        )
        self.timeout = timeout
        if cause is not None:
            self.original_exception = cause.original_exception
            self.description = cause.description
            self.attempt_count = cause.attempt_count
            self.elapsed_time = cause.elapsed_time


@dataclass
class LocatorAttempt:
    """Records a single locator attempt for debugging."""
    kind: str
    locator: Tuple[str, str]
    error: Optional[str] = None


class FallbackResolutionError(MobileAutoError):
    """
    Raised when both the primary and the alternative locator failed.

    Contains both attempts so the message names each locator and its error.
    """

    def __init__(self, attempts: List[LocatorAttempt], timeout: float):
        self.attempts = attempts
        self.timeout = timeout
        super().__init__(self.__str__())

    @property
    def primary(self) -> Optional[Tuple[str, str]]:
        return self.attempts[0].locator if self.attempts else None

    @property
    def alternative(self) -> Optional[Tuple[str, str]]:
        return self.attempts[1].locator if len(self.attempts) > 1 else None

    def __str__(self) -> str:
        lines = [
            f"FallbackResolutionError: element not found with primary locator "
            f"({format_locator(self.primary)}) or alternative locator "
            f"({format_locator(self.alternative)}) timeout={self.timeout}s",
            "Attempts:",
        ]
        for i, a in enumerate(self.attempts, start=1):
            lines.append(f"  {i}. {a.kind}: {format_locator(a.locator)} err={a.error}")
        return "\n".join(lines)


class SessionNotInitializedError(MobileAutoError, RuntimeError):
    """Raised when the session is used before initialize_session() succeeded."""

    def __init__(self, what: str = "Session"):
        super().__init__(f"{what} is not initialized. Call initialize_session() first.")


class SessionInitializationError(MobileAutoError):
    """Raised when the remote automation session cannot be established."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        if cause is not None:
            message = f"{message}: {type(cause).__name__}: {cause}"
        super().__init__(message)


class IssueTrackerError(MobileAutoError):
    """Raised inside reporting steps when the tracker rejects a request."""

    def __init__(self, operation: str, status_code: Optional[int] = None, details: Optional[str] = None):
        self.operation = operation
        self.status_code = status_code
        self.details = details
        super().__init__(self.__str__())

    def __str__(self) -> str:
        base = f"IssueTrackerError: operation='{self.operation}'"
        if self.status_code is not None:
            base += f" status={self.status_code}"
        if self.details:
            base += f" details='{self.details}'"
        return base


class ScreenshotCaptureError(MobileAutoError):
    """Raised when the session cannot produce a screenshot."""
    pass


def format_locator(locator: Any) -> str:
    """Render a (by, value) locator as 'by=value'."""
    if isinstance(locator, tuple) and len(locator) == 2:
        return f"{locator[0]}={locator[1]}"
    return str(locator)
