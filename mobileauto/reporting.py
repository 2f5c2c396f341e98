# mobileauto/reporting.py
"""
@file reporting.py
@brief Failure-triggered defect reporting.

On a failing test: capture a screenshot and attach it to the Allure report,
create a Jira issue, attach the screenshot and link the CI build. Every step
is best-effort. Its outcome is recorded, logged, and never raised past this
module, so reporting cannot change a test verdict.
"""

from __future__ import annotations

import logging
import os
import traceback
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Mapping, Optional

from .allure_report import attach_screenshot, screenshot_name
from .artifacts import capture_screenshot
from .config import Settings
from .session import SessionManager
from .tracker import (JiraClient, adf_code_block, adf_document, adf_field,
                      adf_heading, adf_paragraph, adf_text, build_adf)

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class FailureRecord:
    test_name: str
    class_name: str
    timestamp: datetime
    error_message: str = ""
    stack_trace: str = ""
    screenshot_path: Optional[str] = None

    @classmethod
    def from_error(
        cls,
        test_name: str,
        class_name: str,
        error: Optional[BaseException],
        screenshot_path: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> FailureRecord:
        message = ""
        trace = ""
        if error is not None:
            message = str(error) or type(error).__name__
            trace = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return cls(
            test_name=test_name,
            class_name=class_name,
            timestamp=now or datetime.now(),
            error_message=message,
            stack_trace=trace,
            screenshot_path=screenshot_path,
        )


@dataclass
class StepOutcome:
    step: str
    ok: bool
    detail: str = ""


@dataclass
class DefectIssue:
    key: str
    attached: bool = False
    commented: bool = False


@dataclass
class ReportOutcome:
    record: FailureRecord
    issue: Optional[DefectIssue] = None
    steps: List[StepOutcome] = field(default_factory=list)

    @property
    def issue_key(self) -> Optional[str]:
        return self.issue.key if self.issue else None

    def failed_steps(self) -> List[StepOutcome]:
        return [s for s in self.steps if not s.ok]


def discover_build_url(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    CI build URL from BUILD_URL, else assembled from the GitHub Actions
    server, repository and run id. None when neither is available.
    """
    env = os.environ if environ is None else environ
    build_url = env.get("BUILD_URL")
    if build_url:
        return build_url

    server = env.get("GITHUB_SERVER_URL")
    repo = env.get("GITHUB_REPOSITORY")
    run_id = env.get("GITHUB_RUN_ID")
    if server and repo and run_id:
        return f"{server.rstrip('/')}/{repo}/actions/runs/{run_id}"
    return None


def build_description(record: FailureRecord, environment: Optional[str] = None) -> dict:
    blocks = [
        adf_heading("Test Failure Details"),
        adf_field("Test Class", record.class_name),
        adf_field("Test Method", record.test_name),
        adf_field("Execution Time", record.timestamp.strftime(DATE_FORMAT)),
    ]
    if environment:
        blocks.append(adf_field("Environment", environment))
    if record.error_message:
        blocks.append(adf_heading("Error Message", level=4))
        blocks.append(adf_paragraph(adf_text(record.error_message)))
    if record.stack_trace:
        blocks.append(adf_heading("Stack Trace", level=4))
        blocks.append(adf_code_block(record.stack_trace))
    return adf_document(*blocks)


class FailureReportingPipeline:
    """
    Turns a test failure into a screenshot and a Jira defect.
    """

    def __init__(
        self,
        settings: Settings,
        sessions: Optional[SessionManager] = None,
        client: Optional[JiraClient] = None,
        environ: Optional[Mapping[str, str]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings
        self.sessions = sessions
        self._client = client
        self._environ = environ
        self.log = logger or logging.getLogger("mobileauto.reporting")

    @property
    def client(self) -> JiraClient:
        if self._client is None:
            self._client = JiraClient(self.settings.tracker)
        return self._client

    @property
    def enabled(self) -> bool:
        tracker = self.settings.tracker
        return tracker.auto_create_defect and tracker.credentials_present

    def report_failure(self, test_name: str, class_name: str, error: Optional[BaseException]) -> ReportOutcome:
        """Screenshot, then defect. Never raises."""
        steps: List[StepOutcome] = []
        screenshot = self.capture_screenshot(test_name, steps)
        record = FailureRecord.from_error(test_name, class_name, error, screenshot_path=screenshot)
        outcome = ReportOutcome(record=record, steps=steps)
        try:
            outcome.issue = self.create_defect(record, steps)
        except Exception as e:
            self.log.error("Error while creating Jira defect", exc_info=True)
            steps.append(StepOutcome("create_defect", False, f"{type(e).__name__}: {e}"))
        return outcome

    def capture_screenshot(self, test_name: str, steps: Optional[List[StepOutcome]] = None) -> Optional[str]:
        steps = steps if steps is not None else []
        if self.sessions is None:
            steps.append(StepOutcome("screenshot", False, "no session manager"))
            return None
        try:
            driver = self.sessions.get_session()
            path = capture_screenshot(driver, self.settings.artifacts_dir, test_name)
        except Exception as e:
            self.log.error("Failed to capture screenshot: %s", e)
            steps.append(StepOutcome("screenshot", False, f"{type(e).__name__}: {e}"))
            return None
        self.log.info("Screenshot captured: %s", path)
        steps.append(StepOutcome("screenshot", True, path))

        try:
            attach_screenshot(path, test_name)
        except Exception as e:
            self.log.error("Failed to attach screenshot to Allure: %s", e)
            steps.append(StepOutcome("allure_attach", False, f"{type(e).__name__}: {e}"))
        else:
            steps.append(StepOutcome("allure_attach", True, screenshot_name(test_name)))
        return path

    def create_defect(self, record: FailureRecord, steps: Optional[List[StepOutcome]] = None) -> Optional[DefectIssue]:
        """
        Create, attach, comment. Returns None when disabled, unconfigured
        or when the tracker does not create the issue.
        """
        steps = steps if steps is not None else []
        tracker = self.settings.tracker
        if not tracker.auto_create_defect:
            self.log.debug("Defect auto-creation disabled; skipping")
            steps.append(StepOutcome("create_issue", True, "disabled"))
            return None
        if not tracker.credentials_present:
            self.log.debug("Atlassian credentials not configured; skipping defect creation")
            steps.append(StepOutcome("create_issue", True, "not configured"))
            return None

        summary = f"Test Failure - {record.test_name}"
        description = build_description(record, self.settings.environment)
        try:
            key = self.client.create_issue(summary, description)
        except Exception as e:
            self.log.error("Create Jira issue failed: %s", e)
            steps.append(StepOutcome("create_issue", False, str(e)))
            return None
        self.log.info("Jira defect created: %s", key)
        steps.append(StepOutcome("create_issue", True, key))

        issue = DefectIssue(key=key)
        if record.screenshot_path and os.path.exists(record.screenshot_path):
            issue.attached = self._attach(key, record.screenshot_path, steps)
        issue.commented = self._comment_build_link(key, steps)
        return issue

    def _attach(self, key: str, path: str, steps: List[StepOutcome]) -> bool:
        try:
            self.client.attach_file(key, path)
        except Exception as e:
            self.log.warning("Attach screenshot failed (non-blocking): %s", e)
            steps.append(StepOutcome("attach", False, str(e)))
            return False
        self.log.info("Screenshot attached to %s", key)
        steps.append(StepOutcome("attach", True, path))
        return True

    def _comment_build_link(self, key: str, steps: List[StepOutcome]) -> bool:
        try:
            build_url = discover_build_url(self._environ)
            if not build_url:
                self.log.debug("No CI build URL found. Skip adding report link.")
                return False
            self.client.add_comment(key, build_adf(f"Allure report: {build_url.rstrip('/')}/allure/"))
        except Exception as e:
            self.log.warning("Failed to add report link (non-blocking): %s", e)
            steps.append(StepOutcome("comment", False, str(e)))
            return False
        self.log.info("Report link added to %s", key)
        steps.append(StepOutcome("comment", True, build_url))
        return True
