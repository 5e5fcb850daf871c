"""Connectivity probe - bounded-retry handshake with the embedded test server."""

from __future__ import annotations

import time
from collections.abc import Callable
from typing import Any

import httpx
import structlog

from ios_test_launcher.errors import server_not_responding_error

logger = structlog.get_logger()

DEFAULT_RETRIES = 10
DEFAULT_TIMEOUT = 60.0
# Minimum spacing between attempts; counted against each attempt's timeout
POLL_INTERVAL = 0.5


class ConnectivityProbe:
    """Polls the server's ``version`` route until it answers."""

    def __init__(
        self,
        endpoint: str,
        *,
        retries: int = DEFAULT_RETRIES,
        timeout: float = DEFAULT_TIMEOUT,
        interval: float = POLL_INTERVAL,
        transport: httpx.BaseTransport | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.endpoint = endpoint
        self.retries = retries
        self.timeout = timeout
        self._interval = interval
        self._transport = transport
        self._sleep = sleep

    def _client(self, timeout: float) -> httpx.Client:
        return httpx.Client(base_url=self.endpoint, timeout=timeout, transport=self._transport)

    def ensure_connectivity(
        self, retries: int | None = None, timeout: float | None = None
    ) -> tuple[int, dict[str, Any]]:
        """Return ``(status, identity payload)`` from the first successful attempt.

        Args:
            retries: Number of attempts (default: probe default)
            timeout: Per-attempt timeout in seconds (default: probe default)

        Raises:
            ServerNotRespondingError: If no attempt got a 2xx response
        """
        attempts = max(1, self.retries if retries is None else retries)
        per_attempt = self.timeout if timeout is None else timeout
        last_reason: str | None = None

        client = self._client(per_attempt)
        try:
            for attempt in range(1, attempts + 1):
                started = time.monotonic()
                try:
                    resp = client.get("version")
                except httpx.HTTPError as exc:
                    last_reason = f"{type(exc).__name__}: {exc}"
                else:
                    if resp.is_success:
                        logger.debug(
                            "server_connected", endpoint=self.endpoint, attempt=attempt
                        )
                        return resp.status_code, _payload(resp)
                    last_reason = f"HTTP {resp.status_code}"

                logger.debug(
                    "server_probe_failed",
                    endpoint=self.endpoint,
                    attempt=attempt,
                    reason=last_reason,
                )
                if attempt < attempts:
                    remaining = self._interval - (time.monotonic() - started)
                    if remaining > 0:
                        self._sleep(remaining)
        finally:
            client.close()

        raise server_not_responding_error(self.endpoint, attempts, per_attempt, last_reason)

    def ping_app(self) -> tuple[int, dict[str, Any]]:
        """Single-attempt liveness check."""
        return self.ensure_connectivity(retries=1, timeout=min(self.timeout, 10.0))


def _payload(resp: httpx.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}
