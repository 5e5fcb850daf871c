"""Launcher configuration loaded from the environment via Pydantic Settings."""

from __future__ import annotations

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

STATE_DIR = Path.home() / ".ios-test-launcher"


class LauncherSettings(BaseSettings):
    """Environment-derived defaults for launching and attaching.

    Variable names match the ones test suites already export
    (``DEVICE_ENDPOINT``, ``APP``, ``QUIT_APP_AFTER_SCENARIO`` ...).
    """

    model_config = SettingsConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Embedded server
    device_endpoint: str = Field(
        default="http://localhost:37265/", validation_alias="DEVICE_ENDPOINT"
    )
    device_target: str | None = Field(default=None, validation_alias="DEVICE_TARGET")
    app: str | None = Field(
        default=None, validation_alias=AliasChoices("APP", "APP_BUNDLE_PATH")
    )

    # Tool selection, passed through to the device-control and launch tools
    simctl: str | None = Field(default=None, validation_alias="SIMCTL")
    instruments: str | None = Field(default=None, validation_alias="INSTRUMENTS")
    xcode: str | None = Field(default=None, validation_alias="XCODE")

    # Scenario lifecycle
    quit_app_after_scenario: bool = Field(
        default=True, validation_alias="QUIT_APP_AFTER_SCENARIO"
    )
    # Running on a hosted device cloud; attach is unavailable there
    xtc: bool = Field(default=False, validation_alias="XTC_PLATFORM")

    # Server/client compatibility check after relaunch (advisory)
    check_server_compatibility: bool = Field(
        default=False, validation_alias="CHECK_SERVER_COMPATIBILITY"
    )

    # Usage reporting
    usage_tracking: bool = Field(default=False, validation_alias="USAGE_TRACKING")
    usage_url: str = Field(
        default="https://usage.ios-test-launcher.invalid/events", validation_alias="USAGE_URL"
    )

    state_dir: Path = Field(default=STATE_DIR, validation_alias="IOS_TEST_LAUNCHER_STATE_DIR")


def get_settings() -> LauncherSettings:
    """Factory - allows overriding in tests."""
    return LauncherSettings()
