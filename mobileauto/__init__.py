# mobileauto/__init__.py
"""
mobileauto - Mobile test execution engine on Appium.

This package provides:
- Settings: YAML + environment configuration, schema validated
- SessionManager: Per-worker Appium session lifecycle
- InteractionEngine: Tiered polling waits, locator fallback, popup handling
- TestLifecycleListener: Test events, failure-triggered defect reporting
- FailureReportingPipeline: Screenshot (also to Allure) + Jira issue, attachment and CI link
- plugin: Opt-in pytest integration (``pytest_plugins = ["mobileauto.plugin"]``)
"""

from mobileauto.config import Settings
from mobileauto.session import SessionManager, SessionState
from mobileauto.interactions import InteractionEngine, LocatorPair
from mobileauto.listener import LifecycleEvent, RunSummary, TestEvent, TestLifecycleListener
from mobileauto.reporting import FailureRecord, FailureReportingPipeline, ReportOutcome
from mobileauto.tracker import JiraClient
from mobileauto.timings import WaitTier
from mobileauto.waits import wait_until
from mobileauto.exceptions import (
    MobileAutoError,
    ConfigError,
    TimeoutError,
    LocatorTimeoutError,
    FallbackResolutionError,
    LocatorAttempt,
    SessionNotInitializedError,
    SessionInitializationError,
    IssueTrackerError,
    ScreenshotCaptureError,
)
from mobileauto import artifacts

__all__ = [
    "Settings",
    "SessionManager",
    "SessionState",
    "InteractionEngine",
    "LocatorPair",
    "LifecycleEvent",
    "RunSummary",
    "TestEvent",
    "TestLifecycleListener",
    "FailureRecord",
    "FailureReportingPipeline",
    "ReportOutcome",
    "JiraClient",
    "WaitTier",
    "wait_until",
    "MobileAutoError",
    "ConfigError",
    "TimeoutError",
    "LocatorTimeoutError",
    "FallbackResolutionError",
    "LocatorAttempt",
    "SessionNotInitializedError",
    "SessionInitializationError",
    "IssueTrackerError",
    "ScreenshotCaptureError",
    "artifacts",
]

__version__ = "1.0.0"
