# mobileauto/interactions.py
"""
@file interactions.py
@brief Tiered, polling-based element operations on top of SessionManager.

Every operation is a bounded poll against the worker's session. Failures of
direct interactions (locate, click, fallback resolution) propagate and fail
the test; existence predicates and popup handling never raise.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generator, List, Optional, Sequence, Tuple, Union

from selenium.common.exceptions import (NoSuchElementException,
                                        StaleElementReferenceException,
                                        WebDriverException)
from selenium.webdriver.support import expected_conditions as EC

from .config import Settings
from .exceptions import (FallbackResolutionError, LocatorAttempt,
                         LocatorTimeoutError, TimeoutError, format_locator)
from .session import SessionManager
from .timings import TimeoutSpec, WaitTier, resolve_tier
from .waits import wait_for_any, wait_until, wait_until_not

Locator = Tuple[str, str]
Condition = Callable[[Any], Any]

# Lookup errors that mean the element is no longer on screen.
GONE_ERRORS = (NoSuchElementException, StaleElementReferenceException)


@dataclass(frozen=True)
class LocatorPair:
    """Two independent ways of addressing one logical element."""
    primary: Locator
    alternative: Locator


class InteractionEngine:
    """
    Element operations for scenario code.

    `timeout` arguments take a tier name ("short", "medium", "long"),
    a number of seconds, or None for the standing (explicit) timeout.
    """

    def __init__(
        self,
        sessions: SessionManager,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.sessions = sessions
        self.settings = settings or sessions.settings
        self.log = logger or logging.getLogger("mobileauto.interactions")

    @property
    def driver(self) -> Any:
        return self.sessions.get_session()

    # --- Tiers ---

    def tier(self, name: str) -> WaitTier:
        return self.settings.waits.tier(name)

    @property
    def short(self) -> WaitTier:
        return self.tier("short")

    @property
    def medium(self) -> WaitTier:
        return self.tier("medium")

    @property
    def long(self) -> WaitTier:
        return self.tier("long")

    def _tier(self, timeout: Union[TimeoutSpec, WaitTier]) -> WaitTier:
        if isinstance(timeout, WaitTier):
            return timeout
        waits = self.settings.waits
        return resolve_tier(timeout, waits.tiers, waits.standing)

    # --- Polling core ---

    @contextmanager
    def _explicit_only(self, driver: Any) -> Generator[None, None, None]:
        """Suspend the implicit wait so find calls inside a poll return at once."""
        implicit = self.settings.waits.implicit
        if not implicit:
            yield
            return
        driver.implicitly_wait(0)
        try:
            yield
        finally:
            driver.implicitly_wait(implicit)

    def _poll(
        self,
        operation: str,
        locator: Locator,
        condition: Condition,
        timeout: Union[TimeoutSpec, WaitTier] = None,
    ) -> Any:
        tier = self._tier(timeout)
        driver = self.driver
        try:
            with self._explicit_only(driver):
                return wait_until(
                    lambda: condition(driver),
                    timeout=tier.timeout,
                    interval=tier.interval,
                    description=f"{operation} on {format_locator(locator)}",
                )
        except TimeoutError as e:
            raise LocatorTimeoutError(operation, locator, tier.timeout, cause=e) from e

    def _displayed(self, driver: Any, locator: Locator) -> bool:
        return bool(driver.find_element(*locator).is_displayed())

    def _until_gone(self, driver: Any, locator: Locator, tier: WaitTier, description: str) -> None:
        wait_until_not(
            lambda: self._displayed(driver, locator),
            timeout=tier.timeout,
            interval=tier.interval,
            description=description,
            gone_on=GONE_ERRORS,
        )

    # --- Lookups ---

    def locate(self, locator: Locator, timeout: TimeoutSpec = None) -> Any:
        """
        Wait for the element to be present.

        @throws LocatorTimeoutError if absent at the deadline
        """
        self.log.debug("Finding element: %s", format_locator(locator))
        return self._poll("locate", locator, EC.presence_of_element_located(locator), timeout)

    def locate_all(self, locator: Locator) -> List[Any]:
        """All matching elements, immediately; empty when none are found."""
        self.log.debug("Finding elements: %s", format_locator(locator))
        driver = self.driver
        try:
            with self._explicit_only(driver):
                return list(driver.find_elements(*locator))
        except WebDriverException as e:
            self.log.debug("Finding elements %s failed: %s", format_locator(locator), e)
            return []

    def wait_for_element(self, locator: Locator, timeout: TimeoutSpec = None) -> Any:
        self.log.debug("Waiting for element: %s", format_locator(locator))
        return self.locate(locator, timeout)

    def wait_for_clickable(self, locator: Locator, timeout: TimeoutSpec = None) -> Any:
        self.log.debug("Waiting for element to be clickable: %s", format_locator(locator))
        return self._poll("wait_for_clickable", locator, EC.element_to_be_clickable(locator), timeout)

    # --- Actions ---

    def click(self, locator: Locator, timeout: TimeoutSpec = None) -> Any:
        """Click once the element is present, displayed and enabled."""
        self.log.info("Clicking element: %s", format_locator(locator))
        element = self._poll("click", locator, EC.element_to_be_clickable(locator), timeout)
        element.click()
        return element

    def type(self, locator: Locator, text: str, timeout: TimeoutSpec = None) -> Any:
        """Replace the element's content with `text`."""
        self.log.info("Sending keys to element %s: %s", format_locator(locator), text)
        element = self.locate(locator, timeout)
        element.clear()
        element.send_keys(text)
        return element

    def read(self, locator: Locator, timeout: TimeoutSpec = None) -> str:
        self.log.debug("Getting text from element: %s", format_locator(locator))
        return self.locate(locator, timeout).text

    # --- Best-effort predicates ---

    def is_visible(self, locator: Locator, timeout: TimeoutSpec = "short") -> bool:
        """True if the element is displayed within `timeout`. Never raises."""
        try:
            self._poll("is_visible", locator, EC.visibility_of_element_located(locator), timeout)
            return True
        except Exception:
            self.log.debug("Element not displayed: %s", format_locator(locator))
            return False

    def is_enabled(self, locator: Locator, timeout: TimeoutSpec = "short") -> bool:
        """True if the element is present and enabled within `timeout`. Never raises."""
        def enabled(driver: Any) -> bool:
            return bool(driver.find_element(*locator).is_enabled())

        try:
            self._poll("is_enabled", locator, enabled, timeout)
            return True
        except Exception:
            self.log.debug("Element not enabled: %s", format_locator(locator))
            return False

    # --- Waits ---

    def wait_for_disappearance(self, locator: Locator, timeout: TimeoutSpec = None) -> None:
        """@throws LocatorTimeoutError if still displayed at the deadline"""
        self.log.debug("Waiting for element to disappear: %s", format_locator(locator))
        tier = self._tier(timeout)
        driver = self.driver
        try:
            with self._explicit_only(driver):
                self._until_gone(driver, locator, tier, f"{format_locator(locator)} to disappear")
        except TimeoutError as e:
            raise LocatorTimeoutError("wait_for_disappearance", locator, tier.timeout, cause=e) from e

    def wait_for_text(self, locator: Locator, text: str, timeout: TimeoutSpec = None) -> None:
        """@throws LocatorTimeoutError unless the element's text contains `text` in time"""
        self.log.debug("Waiting for text '%s' in element: %s", text, format_locator(locator))
        self._poll(f"wait_for_text '{text}'", locator, EC.text_to_be_present_in_element(locator, text), timeout)

    def wait_for_any_visible(self, locators: Sequence[Locator], timeout: TimeoutSpec = None) -> int:
        """
        Wait until one of the locators is displayed.

        @return Index of the first visible locator
        @throws LocatorTimeoutError if none shows up in time
        """
        tier = self._tier(timeout)
        driver = self.driver
        conditions = [EC.visibility_of_element_located(loc) for loc in locators]
        try:
            with self._explicit_only(driver):
                return wait_for_any(
                    [lambda c=c: c(driver) for c in conditions],
                    timeout=tier.timeout,
                    interval=tier.interval,
                    descriptions=[format_locator(loc) for loc in locators],
                )
        except TimeoutError as e:
            raise LocatorTimeoutError("wait_for_any_visible", list(locators), tier.timeout, cause=e) from e

    # --- Fallback resolution ---

    def resolve_with_fallback(self, primary: Locator, alternative: Locator, timeout: TimeoutSpec = None) -> Any:
        """
        Resolve a clickable element by `primary`, else by `alternative`,
        each under the same full timeout.

        @throws FallbackResolutionError naming both locators if both fail
        """
        tier = self._tier(timeout)
        self.log.debug(
            "Waiting for element to be ready - primary: %s, alternative: %s",
            format_locator(primary), format_locator(alternative),
        )
        # missing session is a caller error, not a locator failure
        self.sessions.get_session()

        attempts: List[LocatorAttempt] = []
        last_error: Optional[BaseException] = None
        for kind, locator in (("primary", primary), ("alternative", alternative)):
            try:
                element = self._poll("resolve", locator, EC.element_to_be_clickable(locator), tier)
            except Exception as e:
                last_error = e
                attempts.append(LocatorAttempt(kind=kind, locator=locator, error=f"{type(e).__name__}: {e}"))
                self.log.debug("%s locator failed: %s", kind.capitalize(), e)
                continue
            self.log.debug("Element found using %s locator: %s", kind, format_locator(locator))
            return element

        self.log.error("Both primary and alternative locators failed for element")
        raise FallbackResolutionError(attempts, tier.timeout) from last_error

    def resolve_pair(self, pair: LocatorPair, timeout: TimeoutSpec = None) -> Any:
        return self.resolve_with_fallback(pair.primary, pair.alternative, timeout)

    # --- Transient popups ---

    def dismiss_transient_popup_if_present(self, locator: Locator, timeout: TimeoutSpec = "short") -> bool:
        """
        Let an auto-dismissing popup come and go.

        Waits up to `timeout` for the popup, then up to `timeout` for it to
        close. Never raises.

        @return True if the popup was seen
        """
        seen = False
        try:
            tier = self._tier(timeout)
            driver = self.driver
            with self._explicit_only(driver):
                wait_until(
                    lambda: EC.visibility_of_element_located(locator)(driver),
                    timeout=tier.timeout,
                    interval=tier.interval,
                    description=f"popup {format_locator(locator)}",
                )
                seen = True
                self.log.info("Popup detected, waiting for it to close...")
                self._until_gone(driver, locator, tier, f"popup {format_locator(locator)} to close")
            self.log.info("Popup closed successfully")
        except TimeoutError:
            if seen:
                self.log.debug("Popup %s still open after %ss, continuing flow", format_locator(locator), timeout)
            else:
                self.log.debug("No popup detected within %s, continuing flow", timeout)
        except Exception as e:
            self.log.debug("Error handling popup, continuing flow: %s", e)
        return seen
