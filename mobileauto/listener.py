# mobileauto/listener.py
"""
@file listener.py
@brief Test lifecycle events and the listener that reacts to them.

Handlers subscribe per event type. Failure events run the reporting
pipeline synchronously before dispatch returns. Nothing raised by a handler
or by the pipeline escapes dispatch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional

from .reporting import FailureReportingPipeline, ReportOutcome


class LifecycleEvent(Enum):
    STARTED = "started"
    PASSED = "passed"
    FAILED = "failed"
    SKIPPED = "skipped"
    CONFIG_FAILED = "config_failed"


FAILURE_EVENTS = (LifecycleEvent.FAILED, LifecycleEvent.CONFIG_FAILED)


@dataclass
class TestEvent:
    kind: LifecycleEvent
    test_name: str
    class_name: str = ""
    error: Optional[BaseException] = None
    timestamp: datetime = field(default_factory=datetime.now)

    # keep pytest from collecting this as a test class
    __test__ = False


Handler = Callable[[TestEvent], None]


@dataclass
class RunSummary:
    total: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    config_failed: int = 0

    def record(self, kind: LifecycleEvent) -> None:
        if kind is LifecycleEvent.STARTED:
            self.total += 1
        elif kind is LifecycleEvent.PASSED:
            self.passed += 1
        elif kind is LifecycleEvent.FAILED:
            self.failed += 1
        elif kind is LifecycleEvent.SKIPPED:
            self.skipped += 1
        elif kind is LifecycleEvent.CONFIG_FAILED:
            self.config_failed += 1

    def __str__(self) -> str:
        return (
            f"Total: {self.total}, Passed: {self.passed}, Failed: {self.failed}, "
            f"Skipped: {self.skipped}, Configuration failures: {self.config_failed}"
        )


class TestLifecycleListener:
    """
    Dispatches lifecycle events to subscribers and hands failures to the
    reporting pipeline.
    """

    __test__ = False

    def __init__(
        self,
        pipeline: Optional[FailureReportingPipeline] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.pipeline = pipeline
        self.log = logger or logging.getLogger("mobileauto.listener")
        self.summary = RunSummary()
        self.reports: List[ReportOutcome] = []
        self._handlers: Dict[LifecycleEvent, List[Handler]] = {kind: [] for kind in LifecycleEvent}

    def subscribe(self, kind: LifecycleEvent, handler: Handler) -> None:
        self._handlers[kind].append(handler)

    def unsubscribe(self, kind: LifecycleEvent, handler: Handler) -> None:
        try:
            self._handlers[kind].remove(handler)
        except ValueError:
            pass

    def dispatch(self, event: TestEvent) -> Optional[ReportOutcome]:
        """
        Run the event through the summary, the subscribers and, for
        failures, the reporting pipeline.

        @return The report outcome for failure events, else None
        """
        self.summary.record(event.kind)
        self._log_event(event)

        for handler in list(self._handlers[event.kind]):
            try:
                handler(event)
            except Exception:
                self.log.error("Lifecycle handler %r failed on %s", handler, event.kind.value, exc_info=True)

        if event.kind in FAILURE_EVENTS:
            return self._report(event)
        return None

    def _log_event(self, event: TestEvent) -> None:
        kind = event.kind
        if kind is LifecycleEvent.STARTED:
            self.log.info("Test started: %s", event.test_name)
        elif kind is LifecycleEvent.PASSED:
            self.log.info("Test passed: %s", event.test_name)
        elif kind is LifecycleEvent.SKIPPED:
            self.log.info("Test skipped: %s", event.test_name)
        elif kind is LifecycleEvent.FAILED:
            self.log.error("Test failed: %s", event.test_name)
        else:
            self.log.error("Configuration failure: %s", event.test_name)
        if event.error is not None:
            self.log.error("Failure reason: %s", event.error)

    def _report(self, event: TestEvent) -> Optional[ReportOutcome]:
        if self.pipeline is None:
            return None
        try:
            outcome = self.pipeline.report_failure(event.test_name, event.class_name, event.error)
        except Exception:
            self.log.error("Defect reporting failed for %s", event.test_name, exc_info=True)
            return None
        self.reports.append(outcome)
        if outcome.issue_key:
            self.log.info("Defect %s reported for %s", outcome.issue_key, event.test_name)
        return outcome

    # --- Convenience entry points ---

    def on_test_start(self, test_name: str, class_name: str = "") -> None:
        self.dispatch(TestEvent(LifecycleEvent.STARTED, test_name, class_name))

    def on_test_success(self, test_name: str, class_name: str = "") -> None:
        self.dispatch(TestEvent(LifecycleEvent.PASSED, test_name, class_name))

    def on_test_failure(
        self, test_name: str, class_name: str = "", error: Optional[BaseException] = None
    ) -> Optional[ReportOutcome]:
        return self.dispatch(TestEvent(LifecycleEvent.FAILED, test_name, class_name, error))

    def on_test_skipped(self, test_name: str, class_name: str = "") -> None:
        self.dispatch(TestEvent(LifecycleEvent.SKIPPED, test_name, class_name))

    def on_configuration_failure(
        self, test_name: str, class_name: str = "", error: Optional[BaseException] = None
    ) -> Optional[ReportOutcome]:
        return self.dispatch(TestEvent(LifecycleEvent.CONFIG_FAILED, test_name, class_name, error))

    def finish(self) -> RunSummary:
        self.log.info("Test execution finished. %s", self.summary)
        return self.summary
