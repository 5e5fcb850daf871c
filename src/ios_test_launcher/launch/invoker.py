"""Launch invoker - one launch attempt through the instrumentation tool."""

from __future__ import annotations

import subprocess
from dataclasses import asdict, dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from ios_test_launcher.errors import LaunchTimeoutError, launch_timeout_error

if TYPE_CHECKING:
    from ios_test_launcher.interfaces import LaunchTool
    from ios_test_launcher.launch.config import LaunchConfig
    from ios_test_launcher.launch.host_cache import HostCache

logger = structlog.get_logger()


@dataclass
class Attachment:
    """Binding to a running app process.

    ``pid`` is None when the app is reachable but was not started by the
    instrumentation tool.
    """

    pid: int | None = None
    log_file: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Attachment:
        pid = data.get("pid")
        return cls(
            pid=int(pid) if pid is not None else None,
            log_file=data.get("log_file"),
            details=dict(data.get("details") or {}),
        )


class LaunchInvoker:
    """Single-attempt wrapper around a LaunchTool. Retries belong to the caller."""

    def __init__(self, tool: LaunchTool, host_cache: HostCache | None = None) -> None:
        self._tool = tool
        self._host_cache = host_cache

    def launch(self, config: LaunchConfig) -> Attachment:
        """Launch once and record the process in the host cache.

        Raises:
            LaunchTimeoutError: If the tool timed out
        """
        try:
            attachment = self._tool.launch(config)
        except LaunchTimeoutError:
            raise
        except (TimeoutError, subprocess.TimeoutExpired) as exc:
            raise launch_timeout_error(config.app) from exc

        logger.info("app_launched", app=config.app, pid=attachment.pid, log=attachment.log_file)
        if self._host_cache is not None:
            try:
                self._host_cache.write(attachment)
            except OSError:
                logger.warning(
                    "host_cache_write_failed", path=str(self._host_cache.path), exc_info=True
                )
        return attachment

    def stop(self, attachment: Attachment) -> None:
        """Ask the tool to stop a launched process."""
        self._tool.stop(attachment)
        logger.info("app_stopped", pid=attachment.pid)
