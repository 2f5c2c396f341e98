# mobileauto/allure_report.py
"""
@file allure_report.py
@brief Allure attachments for failure screenshots and the run configuration.

Attachments go through allure-pytest. Without ``--alluredir`` no Allure
listener is registered and every attach call is a no-op.
"""

from __future__ import annotations

import logging
from typing import Optional

import allure

from .config import Settings

log = logging.getLogger("mobileauto.allure")

CONFIGURATION_NAME = "Test Configuration"


def screenshot_name(test_name: str) -> str:
    return f"{test_name} Screenshot"


def attach_screenshot(path: str, test_name: str) -> None:
    """Attach a PNG file to the running Allure test. Errors propagate."""
    allure.attach.file(path, name=screenshot_name(test_name), attachment_type=allure.attachment_type.PNG)
    log.debug("Screenshot attached to Allure: %s", path)


def configuration_text(settings: Settings) -> str:
    device = settings.device
    return "\n".join([
        f"Environment: {settings.environment}",
        f"Platform: {device.platform}",
        f"Device: {device.name}",
    ])


def attach_configuration(settings: Settings, logger: Optional[logging.Logger] = None) -> bool:
    """
    Attach environment, platform and device as a text block. Never raises.

    @return True if the attachment was handed to Allure
    """
    logger = logger or log
    try:
        allure.attach(
            configuration_text(settings),
            name=CONFIGURATION_NAME,
            attachment_type=allure.attachment_type.TEXT,
        )
    except Exception:
        logger.warning("Failed to attach test configuration to Allure", exc_info=True)
        return False
    return True
