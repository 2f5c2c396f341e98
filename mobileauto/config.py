# mobileauto/config.py
"""
@file config.py
@brief Configuration context built once per process and injected into
SessionManager, InteractionEngine and FailureReportingPipeline.

Values come from a YAML file (nested mapping, validated against
schemas/settings.schema.json) and may be overridden per key by environment
variables: ``device.app.path`` is overridden by ``DEVICE_APP_PATH``.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional

import yaml
from jsonschema import Draft202012Validator

from .exceptions import ConfigError
from .timings import TIER_FIELDS, WaitTier, build_tiers

log = logging.getLogger("mobileauto.config")

SCHEMA_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "schemas", "settings.schema.json")

_TRUE_VALUES = {"true", "1", "yes", "on"}


def _load_schema(path: str = SCHEMA_PATH) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def _flatten(data: Mapping[str, Any], prefix: str = "") -> Dict[str, Any]:
    """{"device": {"app": {"path": "x"}}} -> {"device.app.path": "x"}"""
    flat: Dict[str, Any] = {}
    for key, value in data.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(_flatten(value, dotted))
        else:
            flat[dotted] = value
    return flat


def env_key(key: str) -> str:
    return key.replace(".", "_").upper()


class ConfigSource:
    """
    Dotted-key lookup over file values with environment overrides.
    Typed getters fall back to the default on unparsable values.
    """

    def __init__(self, values: Optional[Mapping[str, Any]] = None, environ: Optional[Mapping[str, str]] = None):
        self._values: Dict[str, Any] = dict(values or {})
        self._environ: Mapping[str, str] = os.environ if environ is None else environ

    def get(self, key: str, default: Any = None) -> Any:
        env_value = self._environ.get(env_key(key))
        if env_value is not None:
            return env_value
        value = self._values.get(key)
        return default if value is None else value

    def get_str(self, key: str, default: Optional[str] = None) -> Optional[str]:
        value = self.get(key)
        if value is None:
            return default
        return str(value)

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            log.warning("Invalid integer value for key: %s, using default: %s", key, default)
            return default

    def get_float(self, key: str, default: float) -> float:
        value = self.get(key)
        if value is None:
            return default
        try:
            return float(value)
        except (TypeError, ValueError):
            log.warning("Invalid number value for key: %s, using default: %s", key, default)
            return default

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        return str(value).strip().lower() in _TRUE_VALUES


@dataclass(frozen=True)
class DeviceConfig:
    platform: str = "Android"
    name: str = "Android Emulator"
    udid: str = "emulator-5554"
    app_path: Optional[str] = None
    app_package: Optional[str] = None
    app_activity: Optional[str] = None
    automation_name: str = "UiAutomator2"


@dataclass(frozen=True)
class AppiumConfig:
    server_url: str = "http://localhost:4723"
    # milliseconds, as configured; sessions use whole seconds
    command_timeout_ms: int = 30000

    @property
    def command_timeout_s(self) -> int:
        return self.command_timeout_ms // 1000


@dataclass(frozen=True)
class WaitConfig:
    implicit: float = 10.0
    explicit: float = 30.0
    interval: float = 0.2
    tiers: Dict[str, WaitTier] = field(default_factory=build_tiers)

    @property
    def standing(self) -> WaitTier:
        return WaitTier(name="standing", timeout=self.explicit, interval=self.interval)

    def tier(self, name: str) -> WaitTier:
        try:
            return self.tiers[name]
        except KeyError:
            raise ConfigError(f"Unknown wait tier: {name}") from None


@dataclass(frozen=True)
class TrackerConfig:
    base_url: str = ""
    api_email: str = ""
    api_token: str = ""
    project_key: str = "DEV"
    issue_type: str = "Bug"
    auto_create_defect: bool = True
    request_timeout: float = 30.0

    @property
    def credentials_present(self) -> bool:
        return bool(self.base_url) and bool(self.api_token)


@dataclass(frozen=True)
class Settings:
    device: DeviceConfig = field(default_factory=DeviceConfig)
    appium: AppiumConfig = field(default_factory=AppiumConfig)
    waits: WaitConfig = field(default_factory=WaitConfig)
    tracker: TrackerConfig = field(default_factory=TrackerConfig)
    artifacts_dir: str = "screenshots"
    environment: str = "local"

    @classmethod
    def load(cls, path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
        """
        Load settings from a YAML file. Without a path only defaults and
        environment overrides apply.
        """
        data: Dict[str, Any] = {}
        if path:
            data = _load_yaml(os.path.abspath(path))
            log.info("Configuration loaded from: %s", path)
        return cls.from_mapping(data, environ=environ)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], environ: Optional[Mapping[str, str]] = None) -> Settings:
        validate(data)
        return cls.from_source(ConfigSource(_flatten(data), environ=environ))

    @classmethod
    def from_source(cls, src: ConfigSource) -> Settings:
        device = DeviceConfig(
            platform=src.get_str("device.platform", "Android"),
            name=src.get_str("device.name", "Android Emulator"),
            udid=src.get_str("device.udid", "emulator-5554"),
            app_path=src.get_str("device.app.path"),
            app_package=src.get_str("device.app.package"),
            app_activity=src.get_str("device.app.activity"),
            automation_name=src.get_str("device.automation.name", "UiAutomator2"),
        )
        appium = AppiumConfig(
            server_url=src.get_str("appium.server.url", "http://localhost:4723"),
            command_timeout_ms=src.get_int("appium.server.timeout", 30000),
        )

        interval = src.get_float("test.timeout.interval", 0.2)
        tier_overrides = {}
        for name in ("short", "medium", "long"):
            if src.get(f"test.timeout.{name}") is not None:
                tier_overrides[name] = src.get_float(f"test.timeout.{name}", TIER_FIELDS[name]["timeout"])
        try:
            tiers = build_tiers(src.get_str("test.timeout.preset", "default"), tier_overrides)
        except ValueError as e:
            raise ConfigError(str(e)) from e
        if src.get("test.timeout.interval") is not None:
            tiers = {name: replace(tier, interval=interval) for name, tier in tiers.items()}

        waits = WaitConfig(
            implicit=src.get_float("test.timeout.implicit", 10.0),
            explicit=src.get_float("test.timeout.explicit", 30.0),
            interval=interval,
            tiers=tiers,
        )
        tracker = TrackerConfig(
            base_url=(src.get_str("atlassian.base.url", "") or "").rstrip("/"),
            api_email=src.get_str("atlassian.api.email", ""),
            api_token=src.get_str("atlassian.api.token", ""),
            project_key=src.get_str("atlassian.jira.project.key", "DEV"),
            issue_type=src.get_str("atlassian.jira.issue.type", "Bug"),
            auto_create_defect=src.get_bool("atlassian.auto.create.defect", True),
            request_timeout=src.get_float("atlassian.request.timeout", 30.0),
        )
        if not tracker.credentials_present:
            log.warning("Atlassian credentials not configured. Integration will be skipped.")

        return cls(
            device=device,
            appium=appium,
            waits=waits,
            tracker=tracker,
            artifacts_dir=src.get_str("artifacts.dir", "screenshots"),
            environment=src.get_str("environment", "local"),
        )


def _load_yaml(path: str) -> Dict[str, Any]:
    if not os.path.exists(path):
        raise ConfigError(f"Settings YAML not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Settings YAML must be a mapping at root.")
    return data


def validate(data: Mapping[str, Any]) -> None:
    """Validate a nested settings mapping against the JSON schema."""
    validator = Draft202012Validator(_load_schema())
    errors = sorted(validator.iter_errors(dict(data)), key=lambda e: str(list(e.path)))
    if errors:
        lines = ["Settings schema validation failed:"]
        for e in errors:
            lines.append(f"- {list(e.path)}: {e.message}")
        raise ConfigError("\n".join(lines))
