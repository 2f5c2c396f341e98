# mobileauto/plugin.py
"""
pytest integration.

Enable per project with ``pytest_plugins = ["mobileauto.plugin"]`` in a
conftest or ``-p mobileauto.plugin`` on the command line. The plugin turns
runner results into lifecycle events (failures trigger defect reporting
while the session is still open), provides session fixtures and attaches
the run configuration to the Allure report.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Generator, Optional

import pytest

from .allure_report import attach_configuration
from .config import Settings
from .exceptions import ConfigError
from .interactions import InteractionEngine
from .listener import LifecycleEvent, TestEvent, TestLifecycleListener
from .logsetup import setup_logging
from .reporting import FailureReportingPipeline
from .session import SessionManager


@dataclass
class MobileRuntime:
    settings: Settings
    sessions: SessionManager
    pipeline: FailureReportingPipeline
    listener: TestLifecycleListener


RUNTIME_KEY = pytest.StashKey[MobileRuntime]()

log = logging.getLogger("mobileauto.plugin")


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("mobileauto", "mobile test execution")
    group.addoption(
        "--mobileauto-config",
        action="store",
        default=None,
        dest="mobileauto_config",
        help="Settings YAML for device, Appium and Jira (default: env overrides only).",
    )
    group.addoption(
        "--mobileauto-log-file",
        action="store",
        default=None,
        dest="mobileauto_log_file",
        help="Write mobileauto logs to this file.",
    )
    parser.addini("mobileauto_config", "Settings YAML used when --mobileauto-config is not given.", default="")


def pytest_configure(config: pytest.Config) -> None:
    log_file = config.getoption("mobileauto_log_file")
    if log_file:
        setup_logging(log_file=log_file)

    path = config.getoption("mobileauto_config") or config.getini("mobileauto_config") or None
    try:
        settings = Settings.load(path)
    except ConfigError as e:
        raise pytest.UsageError(str(e)) from e

    sessions = SessionManager(settings)
    pipeline = FailureReportingPipeline(settings, sessions)
    config.stash[RUNTIME_KEY] = MobileRuntime(
        settings=settings,
        sessions=sessions,
        pipeline=pipeline,
        listener=TestLifecycleListener(pipeline),
    )


def pytest_unconfigure(config: pytest.Config) -> None:
    runtime = config.stash.get(RUNTIME_KEY, None)
    if runtime is None:
        return
    leftover = runtime.sessions.quit_all()
    if leftover:
        log.warning("Quit %d session(s) left open by workers at shutdown", leftover)
    runtime.listener.finish()


def _names(item: pytest.Item) -> tuple:
    cls = getattr(item, "cls", None)
    if cls is not None:
        return item.name, cls.__name__
    module = getattr(item, "module", None)
    return item.name, module.__name__ if module is not None else ""


def event_for_report(item: pytest.Item, call: pytest.CallInfo, report: pytest.TestReport) -> Optional[TestEvent]:
    """Map one phase report onto a lifecycle event, or None if it has none."""
    test_name, class_name = _names(item)
    error = call.excinfo.value if call.excinfo is not None else None

    if report.when == "call":
        if report.passed:
            return TestEvent(LifecycleEvent.PASSED, test_name, class_name)
        if report.skipped:
            return TestEvent(LifecycleEvent.SKIPPED, test_name, class_name)
        return TestEvent(LifecycleEvent.FAILED, test_name, class_name, error)

    if report.skipped and report.when == "setup":
        return TestEvent(LifecycleEvent.SKIPPED, test_name, class_name)
    if report.failed:
        return TestEvent(LifecycleEvent.CONFIG_FAILED, test_name, class_name, error)
    return None


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_protocol(item: pytest.Item, nextitem: Optional[pytest.Item]) -> None:
    runtime = item.config.stash.get(RUNTIME_KEY, None)
    if runtime is not None:
        test_name, class_name = _names(item)
        runtime.listener.dispatch(TestEvent(LifecycleEvent.STARTED, test_name, class_name))


@pytest.hookimpl(hookwrapper=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo) -> Generator[None, Any, None]:
    outcome = yield
    runtime = item.config.stash.get(RUNTIME_KEY, None)
    if runtime is None:
        return
    event = event_for_report(item, call, outcome.get_result())
    if event is not None:
        runtime.listener.dispatch(event)


# --- Fixtures ---

@pytest.fixture(scope="session")
def mobile_runtime(pytestconfig: pytest.Config) -> MobileRuntime:
    return pytestconfig.stash[RUNTIME_KEY]


@pytest.fixture(scope="session")
def mobile_settings(mobile_runtime: MobileRuntime) -> Settings:
    return mobile_runtime.settings


@pytest.fixture(scope="session")
def session_manager(mobile_runtime: MobileRuntime) -> SessionManager:
    return mobile_runtime.sessions


@pytest.fixture
def mobile_driver(session_manager: SessionManager) -> Generator[Any, None, None]:
    """Session for one test; quit after the test whatever its outcome."""
    driver = session_manager.ensure_session()
    try:
        yield driver
    finally:
        session_manager.quit_session()


@pytest.fixture
def engine(session_manager: SessionManager, mobile_driver: Any) -> InteractionEngine:
    return InteractionEngine(session_manager)


@pytest.fixture(scope="session", autouse=True)
def mobile_test_configuration(pytestconfig: pytest.Config) -> None:
    """Attach environment, platform and device to the Allure report once per run."""
    runtime = pytestconfig.stash.get(RUNTIME_KEY, None)
    if runtime is not None:
        attach_configuration(runtime.settings)
