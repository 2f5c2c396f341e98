# tests/conftest.py
"""
Shared fakes: an in-memory Appium driver, a scripted adb runner, a
recording HTTP session and an Allure attach recorder.
"""

from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import allure
import pytest
from selenium.common.exceptions import NoSuchElementException

from mobileauto.adb import DeviceBridge
from mobileauto.config import Settings
from mobileauto.session import SessionManager

pytest_plugins = ["pytester"]

Locator = Tuple[str, str]
PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


class FakeElement:
    def __init__(self, text: str = "", displayed: bool = True, enabled: bool = True):
        self.text = text
        self.displayed = displayed
        self.enabled = enabled
        self.clicks = 0
        self.cleared = 0
        self.keys: List[str] = []

    def is_displayed(self) -> bool:
        return self.displayed

    def is_enabled(self) -> bool:
        return self.enabled

    def click(self) -> None:
        self.clicks += 1

    def clear(self) -> None:
        self.cleared += 1
        self.text = ""

    def send_keys(self, text: str) -> None:
        self.keys.append(text)
        self.text += text


# A locator maps to an element, or to a callable producing one per lookup
# (None meaning "not there yet").
ElementSource = Union[FakeElement, Callable[[], Optional[FakeElement]]]


class FakeDriver:
    """Enough of the Appium WebDriver surface for the engine and pipeline."""

    def __init__(self, capabilities: Optional[Dict[str, Any]] = None):
        self.capabilities = capabilities or {}
        self.elements: Dict[Locator, ElementSource] = {}
        self.find_calls: Dict[Locator, int] = {}
        self.implicit_waits: List[float] = []
        self.quit_calls = 0
        self.quit_error: Optional[Exception] = None
        self.screenshot: Optional[bytes] = PNG_BYTES
        self.screenshot_error: Optional[Exception] = None

    def add(self, locator: Locator, element: ElementSource) -> None:
        self.elements[locator] = element

    def remove(self, locator: Locator) -> None:
        self.elements.pop(locator, None)

    def _lookup(self, locator: Locator) -> Optional[FakeElement]:
        source = self.elements.get(locator)
        if callable(source) and not isinstance(source, FakeElement):
            return source()
        return source

    def find_element(self, by: str, value: str) -> FakeElement:
        locator = (by, value)
        self.find_calls[locator] = self.find_calls.get(locator, 0) + 1
        element = self._lookup(locator)
        if element is None:
            raise NoSuchElementException(f"no element {by}={value}")
        return element

    def find_elements(self, by: str, value: str) -> List[FakeElement]:
        element = self._lookup((by, value))
        return [element] if element is not None else []

    def implicitly_wait(self, seconds: float) -> None:
        self.implicit_waits.append(seconds)

    def get_screenshot_as_png(self) -> Optional[bytes]:
        if self.screenshot_error is not None:
            raise self.screenshot_error
        return self.screenshot

    def quit(self) -> None:
        self.quit_calls += 1
        if self.quit_error is not None:
            raise self.quit_error


class DriverFactory:
    """Records every session request and hands out FakeDrivers."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.calls: List[Tuple[str, Dict[str, Any]]] = []
        self.drivers: List[FakeDriver] = []

    def __call__(self, server_url: str, capabilities: Dict[str, Any]) -> FakeDriver:
        self.calls.append((server_url, dict(capabilities)))
        if self.error is not None:
            raise self.error
        driver = FakeDriver(capabilities)
        self.drivers.append(driver)
        return driver


class AdbRunner:
    """Scripted adb: exit codes keyed by subcommand ("shell" or "install")."""

    def __init__(self, installed_exit: int = 1, install_exit: int = 0, error: Optional[Exception] = None):
        self.installed_exit = installed_exit
        self.install_exit = install_exit
        self.error = error
        self.commands: List[List[str]] = []

    def __call__(self, cmd: List[str], timeout: float) -> int:
        self.commands.append(list(cmd))
        if self.error is not None:
            raise self.error
        return self.installed_exit if cmd[3] == "shell" else self.install_exit

    def subcommands(self) -> List[str]:
        return [c[3] for c in self.commands]


class FakeResponse:
    def __init__(self, status_code: int, payload: Any = None, text: str = ""):
        self.status_code = status_code
        self._payload = payload
        self.text = text

    def json(self) -> Any:
        if self._payload is None:
            raise ValueError("No JSON object could be decoded")
        return self._payload


class FakeHttp:
    """Stands in for requests.Session; replies by URL suffix."""

    def __init__(self, responses: Optional[Dict[str, FakeResponse]] = None, error: Optional[Exception] = None):
        self.responses = responses or {}
        self.error = error
        self.auth = None
        self.posts: List[Dict[str, Any]] = []

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        files = kwargs.get("files")
        if files:
            # read while the file is still open
            name, handle, mime = files["file"]
            kwargs = dict(kwargs, files={"file": (name, handle.read(), mime)})
        self.posts.append({"url": url, **kwargs})
        if self.error is not None:
            raise self.error
        for suffix, response in self.responses.items():
            if url.endswith(suffix):
                return response
        return FakeResponse(404, text="not found")

    def urls(self) -> List[str]:
        return [p["url"] for p in self.posts]


class AllureRecorder:
    """Stands in for allure.attach; keeps what would reach the report."""

    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.data: List[Dict[str, Any]] = []
        self.files: List[Dict[str, Any]] = []

    def __call__(self, body: Any, name: Optional[str] = None, attachment_type: Any = None, extension: Any = None) -> None:
        if self.error is not None:
            raise self.error
        self.data.append({"body": body, "name": name, "attachment_type": attachment_type})

    def file(self, source: str, name: Optional[str] = None, attachment_type: Any = None, extension: Any = None) -> None:
        if self.error is not None:
            raise self.error
        self.files.append({"source": source, "name": name, "attachment_type": attachment_type})


def make_settings(environ: Optional[Dict[str, str]] = None, **sections: Any) -> Settings:
    """Settings from a nested mapping with fast tiers and no ambient env."""
    data: Dict[str, Any] = {
        "test": {"timeout": {"implicit": 0, "explicit": 0.5, "short": 0.3, "medium": 0.4, "long": 0.5, "interval": 0.05}},
    }
    data.update(sections)
    return Settings.from_mapping(data, environ=environ or {})


@pytest.fixture
def settings(tmp_path) -> Settings:
    return make_settings(artifacts={"dir": str(tmp_path / "screenshots")})


@pytest.fixture
def adb_runner() -> AdbRunner:
    return AdbRunner()


@pytest.fixture
def driver_factory() -> DriverFactory:
    return DriverFactory()


@pytest.fixture
def sessions(settings, adb_runner, driver_factory) -> SessionManager:
    return SessionManager(settings, bridge=DeviceBridge(runner=adb_runner), driver_factory=driver_factory)


@pytest.fixture
def driver(sessions) -> FakeDriver:
    return sessions.initialize_session()


@pytest.fixture
def allure_attach(monkeypatch) -> AllureRecorder:
    recorder = AllureRecorder()
    monkeypatch.setattr(allure, "attach", recorder)
    return recorder
