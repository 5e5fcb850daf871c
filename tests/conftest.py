"""Pytest configuration and fixtures."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest

from ios_test_launcher.config import LauncherSettings
from ios_test_launcher.errors import launch_timeout_error
from ios_test_launcher.launch.config import LaunchConfig
from ios_test_launcher.launch.invoker import Attachment
from ios_test_launcher.session import reset_launcher
from ios_test_launcher.version import VersionCache

ENDPOINT = "http://localhost:37265/"


class FakeLaunchTool:
    """Launch tool that replays a script of outcomes.

    Each entry is an Attachment to return or an exception to raise. The
    last entry repeats once the script is exhausted.
    """

    def __init__(self, *outcomes: Attachment | BaseException) -> None:
        self.outcomes = list(outcomes) or [Attachment(pid=4242, log_file="/tmp/run_loop.out")]
        self.launch_calls: list[LaunchConfig] = []
        self.stop_calls: list[Attachment] = []
        self.stop_error: BaseException | None = None

    def launch(self, config: LaunchConfig) -> Attachment:
        index = min(len(self.launch_calls), len(self.outcomes) - 1)
        self.launch_calls.append(config)
        outcome = self.outcomes[index]
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def stop(self, attachment: Attachment) -> None:
        self.stop_calls.append(attachment)
        if self.stop_error is not None:
            raise self.stop_error


@pytest.fixture(autouse=True)
def _isolate_launcher() -> Generator[None, None, None]:
    """Each test starts without a shared session."""
    reset_launcher()
    yield
    reset_launcher()


@pytest.fixture
def settings(tmp_path: Path) -> LauncherSettings:
    """Settings pointing the host cache at a temp dir."""
    return LauncherSettings(
        device_endpoint=ENDPOINT,
        state_dir=tmp_path / "state",
        usage_tracking=False,
        quit_app_after_scenario=True,
        xtc=False,
        check_server_compatibility=False,
        app=None,
        device_target=None,
        simctl="simctl-handle",
        instruments="instruments-handle",
        xcode="xcode-handle",
    )


@pytest.fixture
def identity_payload() -> dict[str, Any]:
    """Sample server /version body."""
    return {
        "version": "0.20.0",
        "iOS_version": "17.2",
        "device_name": "iPhone 15",
        "model_identifier": "iPhone15,4",
        "simulator": "CoreSimulator 3.0 - Device: iPhone 15",
        "system": "x86_64",
        "device_udid": "A1B2C3D4-0000-1111-2222-333344445555",
    }


@pytest.fixture
def connectivity(identity_payload: dict[str, Any]) -> MagicMock:
    """Connectivity probe that always answers."""
    probe = MagicMock()
    probe.ensure_connectivity.return_value = (200, identity_payload)
    return probe


@pytest.fixture
def version_cache() -> VersionCache:
    """Fresh cache so tests do not share the process-wide one."""
    return VersionCache()


@pytest.fixture
def timeout() -> Any:
    """Factory for launch timeouts."""
    return lambda: launch_timeout_error("/tmp/MyApp.app", timeout_s=30)


@pytest.fixture
def make_launch_tool() -> type[FakeLaunchTool]:
    """The scripted launch tool class."""
    return FakeLaunchTool


@pytest.fixture
def make_session(
    settings: LauncherSettings, connectivity: MagicMock, version_cache: VersionCache
) -> Any:
    """Build a Session wired to fakes; keyword arguments override the defaults."""
    from ios_test_launcher.session import Session

    def _make(launch_tool: Any = None, **kwargs: Any) -> Session:
        options: dict[str, Any] = {
            "settings": settings,
            "connectivity": connectivity,
            "version_cache": version_cache,
            "usage_reporter": MagicMock(),
        }
        options.update(kwargs)
        return Session(launch_tool, **options)

    return _make
