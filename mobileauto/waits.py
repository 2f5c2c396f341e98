# mobileauto/waits.py
"""
@file waits.py
@brief Bounded polling utilities. Every wait ends in success or TimeoutError.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Callable, List, Optional, Tuple, TypeVar

from .exceptions import TimeoutError

log = logging.getLogger("mobileauto.waits")

T = TypeVar("T")


def _now() -> float:
    """Monotonic time source for deterministic timeout calculations."""
    return time.monotonic()


def _set_timeout_metadata(
    error: TimeoutError,
    *,
    description: str,
    timeout: float,
    attempt_count: int,
    elapsed: float,
) -> None:
    error.description = description
    error.timeout = timeout
    error.attempt_count = attempt_count
    error.elapsed_time = elapsed


def wait_until(
    predicate: Callable[[], T],
    timeout: float,
    interval: float = 0.2,
    description: str = "condition",
) -> T:
    """
    Repeatedly runs predicate until it returns a truthy value,
    or until timeout. Exceptions raised by the predicate count as
    "not yet" and the last one is kept on the TimeoutError.
    """
    start_time = _now()
    last_exception: Optional[BaseException] = None
    attempt_count = 0

    while True:
        attempt_count += 1
        try:
            result = predicate()
            if result:
                log.debug("Wait for %s succeeded after %d attempt(s)", description, attempt_count)
                return result
        except Exception as e:
            last_exception = e

        elapsed = _now() - start_time
        time_left = timeout - elapsed
        if time_left <= 0:
            break
        time.sleep(min(interval, time_left))

    elapsed = _now() - start_time
    if last_exception:
        error = TimeoutError(
            f"Timed out waiting for {description} after {timeout}s: "
            f"{type(last_exception).__name__}: {last_exception}"
        )
        error.original_exception = last_exception
    else:
        error = TimeoutError(
            f"Timed out waiting for {description} after {timeout}s "
            f"(condition kept returning falsy)"
        )
    _set_timeout_metadata(
        error,
        description=description,
        timeout=timeout,
        attempt_count=attempt_count,
        elapsed=elapsed,
    )
    raise error


def wait_until_not(
    predicate: Callable[[], Any],
    timeout: float,
    interval: float = 0.2,
    description: str = "condition to become false",
    gone_on: Tuple[type, ...] = (Exception,),
) -> None:
    """
    Wait until predicate returns a falsy value.

    An exception listed in `gone_on` means the condition is gone. Any other
    exception counts as "not yet" and is kept on the TimeoutError.
    """
    start_time = _now()
    last_exception: Optional[BaseException] = None
    attempt_count = 0

    while True:
        attempt_count += 1
        try:
            if not predicate():
                return
        except gone_on:
            return
        except Exception as e:
            last_exception = e

        elapsed = _now() - start_time
        time_left = timeout - elapsed
        if time_left <= 0:
            break
        time.sleep(min(interval, time_left))

    elapsed = _now() - start_time
    if last_exception:
        error = TimeoutError(
            f"Timed out waiting for {description} after {timeout}s: "
            f"{type(last_exception).__name__}: {last_exception}"
        )
        error.original_exception = last_exception
    else:
        error = TimeoutError(
            f"Timed out waiting for {description} after {timeout}s "
            f"(condition kept returning truthy)"
        )
    _set_timeout_metadata(
        error,
        description=description,
        timeout=timeout,
        attempt_count=attempt_count,
        elapsed=elapsed,
    )
    raise error


def wait_for_any(
    predicates: List[Callable[[], Any]],
    timeout: float,
    interval: float = 0.2,
    descriptions: Optional[List[str]] = None,
) -> int:
    """
    Wait until any of the predicates returns a truthy value.
    Returns the index of the first predicate that succeeded.
    """
    if descriptions is None:
        descriptions = [f"predicate[{i}]" for i in range(len(predicates))]

    start_time = _now()
    last_exceptions: List[Optional[BaseException]] = [None] * len(predicates)
    attempt_count = 0

    while True:
        attempt_count += 1
        for i, predicate in enumerate(predicates):
            try:
                if predicate():
                    return i
            except Exception as e:
                last_exceptions[i] = e

        elapsed = _now() - start_time
        time_left = timeout - elapsed
        if time_left <= 0:
            break
        time.sleep(min(interval, time_left))

    elapsed = _now() - start_time
    desc_str = ", ".join(descriptions)
    error = TimeoutError(f"Timed out waiting for any of [{desc_str}] after {timeout}s")
    error.original_exception = next((e for e in last_exceptions if e is not None), None)
    _set_timeout_metadata(
        error,
        description=f"any of [{desc_str}]",
        timeout=timeout,
        attempt_count=attempt_count,
        elapsed=elapsed,
    )
    raise error
