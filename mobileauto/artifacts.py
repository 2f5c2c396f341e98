# mobileauto/artifacts.py
from __future__ import annotations
import os
import re
import time
from typing import Any

from .exceptions import ScreenshotCaptureError

_UNSAFE = re.compile(r"[^A-Za-z0-9_.-]+")


def _ts() -> str:
    return time.strftime("%Y-%m-%d_%H-%M-%S")


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def screenshot_path(out_dir: str, name_prefix: str) -> str:
    safe = _UNSAFE.sub("_", name_prefix).strip("_") or "screenshot"
    return os.path.abspath(os.path.join(out_dir, f"{safe}_{_ts()}.png"))


def capture_screenshot(driver: Any, out_dir: str, name_prefix: str) -> str:
    """
    Save a PNG of the device screen.
    Returns the absolute file path.

    @throws ScreenshotCaptureError if the session cannot produce or the
            disk cannot store the image
    """
    ensure_dir(out_dir)
    path = screenshot_path(out_dir, name_prefix)
    try:
        png = driver.get_screenshot_as_png()
    except Exception as e:
        raise ScreenshotCaptureError(f"Session could not capture screenshot: {type(e).__name__}: {e}") from e
    if not png:
        raise ScreenshotCaptureError("Session returned an empty screenshot")
    try:
        with open(path, "wb") as f:
            f.write(png)
    except OSError as e:
        raise ScreenshotCaptureError(f"Could not write screenshot to {path}: {e}") from e
    return path
