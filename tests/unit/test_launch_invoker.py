"""Tests for LaunchInvoker, LaunchConfig and HostCache."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any

import pytest
from pydantic import ValidationError

from ios_test_launcher.errors import LaunchTimeoutError
from ios_test_launcher.launch.config import LaunchConfig
from ios_test_launcher.launch.host_cache import HostCache
from ios_test_launcher.launch.invoker import Attachment, LaunchInvoker


class TestLaunchInvoker:
    """Tests for single-attempt launches."""

    def test_launch_records_host_cache(self, make_launch_tool: Any, tmp_path: Path) -> None:
        """Should return the attachment and persist it."""
        cache = HostCache(tmp_path)
        tool = make_launch_tool(Attachment(pid=3, log_file="/tmp/log"))
        invoker = LaunchInvoker(tool, cache)

        attachment = invoker.launch(LaunchConfig(app="/tmp/MyApp.app"))

        assert attachment.pid == 3
        assert cache.read() == attachment
        assert len(tool.launch_calls) == 1

    def test_launch_timeout_passes_through(self, make_launch_tool: Any, timeout: Any) -> None:
        """Should re-raise the typed timeout unchanged."""
        error = timeout()
        invoker = LaunchInvoker(make_launch_tool(error))

        with pytest.raises(LaunchTimeoutError) as exc_info:
            invoker.launch(LaunchConfig())

        assert exc_info.value is error

    @pytest.mark.parametrize(
        "raised",
        [TimeoutError("hung"), subprocess.TimeoutExpired(cmd="instruments", timeout=30)],
    )
    def test_generic_timeouts_become_typed(self, make_launch_tool: Any, raised: Exception) -> None:
        """Should convert tool-level timeouts into LaunchTimeoutError."""
        invoker = LaunchInvoker(make_launch_tool(raised))

        with pytest.raises(LaunchTimeoutError) as exc_info:
            invoker.launch(LaunchConfig(app="/tmp/MyApp.app"))

        assert exc_info.value.__cause__ is raised

    def test_other_errors_propagate(self, make_launch_tool: Any) -> None:
        """Should not touch non-timeout failures."""
        invoker = LaunchInvoker(make_launch_tool(OSError("no such app")))

        with pytest.raises(OSError, match="no such app"):
            invoker.launch(LaunchConfig())

    def test_stop(self, make_launch_tool: Any) -> None:
        """Should forward stop to the tool."""
        tool = make_launch_tool()
        invoker = LaunchInvoker(tool)

        invoker.stop(Attachment(pid=5))

        assert tool.stop_calls == [Attachment(pid=5)]


class TestLaunchConfig:
    """Tests for LaunchConfig."""

    def test_defaults(self) -> None:
        """Should default to five retries and full launches."""
        config = LaunchConfig()

        assert config.launch_retries == 5
        assert config.calabash_lite is False
        assert config.inject_dylib is False

    def test_is_frozen(self) -> None:
        """Should reject mutation."""
        config = LaunchConfig()

        with pytest.raises(ValidationError):
            config.launch_retries = 2  # type: ignore[misc]

    def test_rejects_zero_retries(self) -> None:
        """Should require at least one attempt."""
        with pytest.raises(ValidationError):
            LaunchConfig(launch_retries=0)

    def test_merged_keeps_extras(self) -> None:
        """Should apply overrides and keep unknown options."""
        config = LaunchConfig(app="/a.app", args=["-x"]).merged(launch_retries=2)

        assert config.app == "/a.app"
        assert config.launch_retries == 2
        assert config.model_extra == {"args": ["-x"]}

    def test_with_defaults_only_fills_unset(self) -> None:
        """Should not override values the caller set."""
        config = LaunchConfig(xcode="mine").with_defaults(xcode="env", simctl="env-simctl")

        assert config.xcode == "mine"
        assert config.simctl == "env-simctl"


class TestHostCache:
    """Tests for HostCache."""

    def test_read_missing_is_empty(self, tmp_path: Path) -> None:
        """Should return an attachment without a pid when nothing is cached."""
        assert HostCache(tmp_path).read() == Attachment()

    def test_round_trip(self, tmp_path: Path) -> None:
        """Should read back what was written."""
        cache = HostCache(tmp_path / "nested")
        attachment = Attachment(pid=9, log_file="/tmp/l", details={"udid": "SIM"})

        cache.write(attachment)

        assert cache.read() == attachment

    def test_corrupt_file_is_empty(self, tmp_path: Path) -> None:
        """Should ignore unreadable cache contents."""
        cache = HostCache(tmp_path)
        cache.path.write_text("{not json", encoding="utf-8")

        assert cache.read() == Attachment()
