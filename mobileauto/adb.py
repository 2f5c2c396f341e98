# mobileauto/adb.py
"""
@file adb.py
@brief Device-control side channel over the adb command line.

Results are process exit codes, not structured responses.
"""

from __future__ import annotations

import logging
import subprocess
from typing import Callable, List, Optional

from .exceptions import MobileAutoError

CommandRunner = Callable[[List[str], float], int]


class DeviceBridgeError(MobileAutoError):
    """Raised when an adb command exits non-zero or cannot be run."""
    pass


def run_command(cmd: List[str], timeout: float) -> int:
    """Run a command and return its exit code. Output is discarded."""
    result = subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
    return result.returncode


class DeviceBridge:
    """
    Thin wrapper over `adb -s <udid> ...` used for app install management.
    """

    def __init__(
        self,
        adb_path: str = "adb",
        runner: Optional[CommandRunner] = None,
        command_timeout: float = 120.0,
        logger: Optional[logging.Logger] = None,
    ):
        self.adb_path = adb_path
        self.command_timeout = float(command_timeout)
        self._run = runner or run_command
        self.log = logger or logging.getLogger("mobileauto.adb")

    def _cmd(self, udid: str, *args: str) -> List[str]:
        return [self.adb_path, "-s", udid, *args]

    def is_app_installed(self, udid: str, package: Optional[str]) -> bool:
        """
        Ask the device whether `package` is installed.

        Installed is inferred from the exit code of `pm list packages`, which
        is 0 even when the listing is empty, so any reachable device reports
        the app as installed. Errors running the command report False.
        """
        if not package:
            return False
        try:
            exit_code = self._run(self._cmd(udid, "shell", "pm", "list", "packages", package), self.command_timeout)
        except (OSError, subprocess.SubprocessError) as e:
            self.log.warning("Error checking if app is installed: %s", e)
            return False
        return exit_code == 0

    def install_app(self, udid: str, apk_path: str) -> None:
        """
        Install an APK with runtime permissions granted.

        @throws DeviceBridgeError on non-zero exit or when adb cannot be run
        """
        try:
            exit_code = self._run(self._cmd(udid, "install", "-g", apk_path), self.command_timeout)
        except (OSError, subprocess.SubprocessError) as e:
            raise DeviceBridgeError(f"APK installation failed: {type(e).__name__}: {e}") from e
        if exit_code != 0:
            raise DeviceBridgeError(f"APK installation failed with exit code: {exit_code}")
