# mobileauto/session.py
"""
@file session.py
@brief Per-worker Appium session lifecycle.

Each execution worker (thread by default) owns one slot holding its driver.
Workers never share a slot, so session access needs no locking.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generator, Hashable, List, Optional, Tuple

from appium import webdriver
from appium.options.android import UiAutomator2Options
from appium.options.common import AppiumOptions
from appium.options.ios import XCUITestOptions
from selenium.webdriver.support.ui import WebDriverWait

from .adb import DeviceBridge
from .config import Settings
from .exceptions import SessionInitializationError, SessionNotInitializedError

DriverFactory = Callable[[str, Dict[str, Any]], Any]


class SessionState(Enum):
    # CLOSED marks a released slot. The manager no longer holds it, so the
    # worker reads as UNINITIALIZED again.
    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    READY = "ready"
    CLOSED = "closed"


@dataclass
class SessionSlot:
    state: SessionState = SessionState.UNINITIALIZED
    driver: Any = None
    wait: Optional[WebDriverWait] = None
    capabilities: Dict[str, Any] = field(default_factory=dict)


def appium_remote(server_url: str, capabilities: Dict[str, Any]) -> webdriver.Remote:
    """Open a remote Appium session with platform-specific options."""
    platform = str(capabilities.get("platformName", "")).lower()
    if platform == "ios":
        options = XCUITestOptions()
    elif platform == "android":
        options = UiAutomator2Options()
    else:
        options = AppiumOptions()
    options.load_capabilities(capabilities)
    return webdriver.Remote(command_executor=server_url, options=options)


class WorkerToken:
    """Identity of one thread's slot. Lives as long as the thread or its slot."""

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __repr__(self) -> str:
        return f"<worker {self.name}>"


_local = threading.local()


def current_worker() -> Hashable:
    """
    Token for the calling thread, kept in thread-local storage.

    threading.get_ident() values are reused once a thread exits, so they
    cannot key slots that may outlive their thread.
    """
    token = getattr(_local, "token", None)
    if token is None:
        token = _local.token = WorkerToken(threading.current_thread().name)
    return token


class SessionManager:
    """
    Owns the Appium session of every execution worker and resolves how the
    application under test is delivered (fresh artifact or installed package).
    """

    def __init__(
        self,
        settings: Settings,
        bridge: Optional[DeviceBridge] = None,
        driver_factory: Optional[DriverFactory] = None,
        worker_id: Optional[Callable[[], Hashable]] = None,
        base_dir: Optional[str] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.settings = settings
        self.bridge = bridge or DeviceBridge()
        self._driver_factory = driver_factory or appium_remote
        self._worker = worker_id or current_worker
        self.base_dir = base_dir
        self.log = logger or logging.getLogger("mobileauto.session")
        self._slots: Dict[Hashable, SessionSlot] = {}

    # --- Lifecycle ---

    def initialize_session(self) -> Any:
        """
        Establish the session for the calling worker.

        App install problems are logged and never abort; only failure to
        create the remote session raises.

        @return The driver
        @throws SessionInitializationError if the session cannot be created
        """
        worker = self._worker()
        slot = self._slots.get(worker)
        if slot is not None and slot.state is SessionState.INITIALIZING:
            raise SessionInitializationError(f"Session initialization already in progress for worker {worker}")
        if slot is not None and slot.state is SessionState.READY:
            self.log.warning("Worker %s already holds a session; replacing it", worker)
            self.quit_session()

        slot = SessionSlot(state=SessionState.INITIALIZING)
        self._slots[worker] = slot
        self.log.info("Initializing %s session...", self.settings.device.platform)

        driver = None
        try:
            capabilities = self.build_capabilities()
            server_url = self.settings.appium.server_url
            driver = self._driver_factory(server_url, capabilities)
            driver.implicitly_wait(self.settings.waits.implicit)
            wait = WebDriverWait(driver, self.settings.waits.explicit)
        except Exception as e:
            self._slots.pop(worker, None)
            if driver is not None:
                try:
                    driver.quit()
                except Exception:
                    self.log.debug("Discarding half-open session failed", exc_info=True)
            self.log.error("Failed to initialize session", exc_info=True)
            raise SessionInitializationError("Session initialization failed", cause=e) from e

        slot.driver = driver
        slot.wait = wait
        slot.capabilities = capabilities
        slot.state = SessionState.READY
        self.log.info("Session initialized successfully on %s", server_url)
        return driver

    def ensure_session(self) -> Any:
        """Initialize only if the calling worker has no ready session."""
        if not self.is_initialized():
            return self.initialize_session()
        return self.get_session()

    def quit_session(self) -> None:
        """
        Release the calling worker's session and drop its slot. Never raises.
        """
        self._quit_worker(self._worker())

    def quit_all(self) -> int:
        """
        Release every worker's session, e.g. at process shutdown when some
        worker never ran its own teardown. Never raises.

        @return Number of sessions quit
        """
        workers = self.active_workers()
        for worker in workers:
            self._quit_worker(worker)
        return len(workers)

    def _quit_worker(self, worker: Hashable) -> None:
        slot = self._slots.get(worker)
        if slot is None or slot.driver is None:
            return
        del self._slots[worker]

        driver = slot.driver
        slot.driver = None
        slot.wait = None
        slot.state = SessionState.CLOSED
        try:
            self.log.info("Quitting session for worker %s...", worker)
            driver.quit()
            self.log.info("Session quit successfully")
        except Exception:
            self.log.error("Error quitting session", exc_info=True)

    @contextmanager
    def scoped_session(self) -> Generator[Any, None, None]:
        """Hold a session for the duration of a block; teardown always runs."""
        driver = self.ensure_session()
        try:
            yield driver
        finally:
            self.quit_session()

    # --- Accessors ---

    def _ready_slot(self, what: str) -> SessionSlot:
        slot = self._slots.get(self._worker())
        if slot is None or slot.state is not SessionState.READY:
            raise SessionNotInitializedError(what)
        return slot

    def get_session(self) -> Any:
        """@throws SessionNotInitializedError before a successful initialize_session()"""
        return self._ready_slot("Session").driver

    def get_wait(self) -> WebDriverWait:
        """@throws SessionNotInitializedError before a successful initialize_session()"""
        return self._ready_slot("Wait").wait

    def is_initialized(self) -> bool:
        slot = self._slots.get(self._worker())
        return slot is not None and slot.state is SessionState.READY

    def state(self) -> SessionState:
        slot = self._slots.get(self._worker())
        return slot.state if slot is not None else SessionState.UNINITIALIZED

    def active_workers(self) -> List[Hashable]:
        return [w for w, s in list(self._slots.items()) if s.state is SessionState.READY]

    # --- App delivery ---

    def _resolve_app_path(self, app_path: Optional[str]) -> Optional[str]:
        if not app_path:
            return None
        if os.path.isabs(app_path):
            return app_path
        return os.path.abspath(os.path.join(self.base_dir or os.getcwd(), app_path))

    def _ensure_installed(self, udid: str, package: Optional[str], app_file: str) -> bool:
        """
        Make sure the artifact is on the device.

        @return True to launch from the artifact, False to fall back to
                package/activity addressing
        """
        if self.bridge.is_app_installed(udid, package):
            self.log.info("App %s already installed on %s; skipping install", package, udid)
            return True

        self.log.info("App not installed on device. Installing %s...", app_file)
        try:
            self.bridge.install_app(udid, app_file)
        except Exception as e:
            self.log.warning(
                "Failed to install app (may be due to SDK version mismatch): %s. "
                "Using package/activity mode instead", e
            )
            return False
        self.log.info("App installed successfully")
        return True

    def resolve_app_delivery(self) -> Tuple[str, Dict[str, Any]]:
        """
        Decide how the app under test is addressed.

        @return ("artifact" | "package", capability subset)
        """
        device = self.settings.device
        app_file = self._resolve_app_path(device.app_path)

        if app_file is not None:
            if os.path.isfile(app_file):
                self.log.info("App artifact found: %s", app_file)
                if self._ensure_installed(device.udid, device.app_package, app_file):
                    self.log.info("Using app artifact for launch: %s", app_file)
                    return "artifact", {"appium:app": app_file, "appium:noReset": False}
            else:
                self.log.warning("App artifact not found at path: %s. Falling back to package/activity", app_file)

        caps: Dict[str, Any] = {"appium:noReset": True}
        if device.app_package:
            caps["appium:appPackage"] = device.app_package
        if device.app_activity:
            caps["appium:appActivity"] = device.app_activity
        self.log.info("Using app package: %s (activity: %s)", device.app_package, device.app_activity)
        return "package", caps

    def build_capabilities(self) -> Dict[str, Any]:
        device = self.settings.device
        caps: Dict[str, Any] = {
            "platformName": device.platform,
            "appium:deviceName": device.name,
            "appium:udid": device.udid,
            "appium:automationName": device.automation_name,
            "appium:fullReset": False,
            "appium:autoGrantPermissions": True,
            "appium:newCommandTimeout": self.settings.appium.command_timeout_s,
        }
        _, delivery = self.resolve_app_delivery()
        caps.update(delivery)
        return caps
