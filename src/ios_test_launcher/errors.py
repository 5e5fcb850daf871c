"""Error model - Actionable errors with remediation hints."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class AgentError(Exception):
    """
    Base error with context and remediation guidance.

    All errors should be actionable - tell the caller what went wrong
    and what they can do about it.
    """

    code: str
    message: str
    context: dict[str, Any] = field(default_factory=dict)
    remediation: str = ""

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert to JSON-serializable dict."""
        return {
            "code": self.code,
            "message": self.message,
            "context": self.context,
            "remediation": self.remediation,
        }


class LaunchTimeoutError(AgentError):
    """The launch tool did not see the app start in time. Retryable."""


@dataclass
class LaunchError(AgentError):
    """Every launch attempt timed out."""

    cause: BaseException | None = None


class ServerNotRespondingError(AgentError):
    """The embedded test server could not be reached."""


class DeviceNotFoundError(AgentError):
    """No connected device or simulator matched the requested target."""


# Specific error constructors for common cases


def launch_timeout_error(app: str | None, timeout_s: float | None = None) -> LaunchTimeoutError:
    """Create error for a single launch attempt that timed out."""
    return LaunchTimeoutError(
        code="ERR_LAUNCH_TIMEOUT",
        message=f"Timed out waiting for {app or 'app'} to launch",
        context={"app": app, "timeout_s": timeout_s},
        remediation="Retry the launch; check the instrumentation log for details",
    )


def launch_error(cause: BaseException | None, attempts: int) -> LaunchError:
    """Create error for exhausted launch retries."""
    return LaunchError(
        code="ERR_LAUNCH_FAILED",
        message=f"Could not launch the app after {attempts} attempt(s): {cause}",
        context={"attempts": attempts, "cause": str(cause) if cause else None},
        remediation="Check the simulator is booted and the app bundle is valid",
        cause=cause,
    )


def server_not_responding_error(
    endpoint: str, retries: int, timeout_s: float, reason: str | None = None
) -> ServerNotRespondingError:
    """Create error for an unreachable embedded server."""
    return ServerNotRespondingError(
        code="ERR_SERVER_NOT_RESPONDING",
        message=f"Test server did not respond at {endpoint}",
        context={
            "endpoint": endpoint,
            "retries": retries,
            "timeout_s": timeout_s,
            "reason": reason,
        },
        remediation="Check DEVICE_ENDPOINT and that the app links the test server",
    )


def device_not_found_error(target: str | None, reason: str) -> DeviceNotFoundError:
    """Create error for a device target that matches nothing."""
    return DeviceNotFoundError(
        code="ERR_DEVICE_NOT_FOUND",
        message=f"Could not find a matching device: {target or 'default'}",
        context={"target": target, "reason": reason},
        remediation="List available devices with 'xcrun instruments -s devices'",
    )


def not_supported_error(operation: str, reason: str) -> AgentError:
    """Create error for an operation unavailable in this environment."""
    return AgentError(
        code="ERR_NOT_SUPPORTED",
        message=f"{operation} is not available: {reason}",
        context={"operation": operation, "reason": reason},
        remediation="Use relaunch to start the app instead",
    )
