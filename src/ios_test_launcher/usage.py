"""Usage reporting - fire-and-forget POST on a background thread."""

from __future__ import annotations

import platform
import threading
from typing import Any

import httpx
import structlog

from ios_test_launcher import __version__

logger = structlog.get_logger()

_POST_TIMEOUT = 1.0


class UsageTracker:
    """Posts one anonymous event per launch. Disabled unless USAGE_TRACKING is set."""

    def __init__(
        self,
        url: str,
        *,
        enabled: bool = False,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.url = url
        self.enabled = enabled
        self._transport = transport
        self._thread: threading.Thread | None = None

    def info(self) -> dict[str, Any]:
        return {
            "event_name": "session",
            "client_version": __version__,
            "python_version": platform.python_version(),
            "os": platform.system(),
        }

    def report_async(self) -> None:
        """Start the POST and return immediately."""
        if not self.enabled:
            return
        self._thread = threading.Thread(target=self._post, name="usage-report", daemon=True)
        self._thread.start()

    def _post(self) -> None:
        try:
            with httpx.Client(timeout=_POST_TIMEOUT, transport=self._transport) as client:
                client.post(self.url, json=self.info())
        except Exception:
            logger.debug("usage_report_failed", url=self.url, exc_info=True)
