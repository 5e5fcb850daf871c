"""Protocol interfaces for the external tools a Session drives."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from ios_test_launcher.device.probe import Device
    from ios_test_launcher.launch.config import LaunchConfig
    from ios_test_launcher.launch.invoker import Attachment


@runtime_checkable
class DeviceControlTool(Protocol):
    """Protocol for enumerating devices and resetting simulators."""

    def detect_device(
        self,
        options: dict[str, Any],
        xcode: str | None,
        simctl: str | None,
        instruments: str | None,
    ) -> Device:
        """Resolve a device descriptor to a concrete device.

        Args:
            options: Descriptor; ``{"device": <udid | name | "device" | "simulator">}``
            xcode: Xcode tool handle (path or version)
            simctl: simctl tool handle
            instruments: instruments tool handle

        Returns:
            The matching device

        Raises:
            ValueError: If nothing matches the descriptor
        """
        ...

    def erase_simulator(self, device: Device) -> Device:
        """Erase a simulator's content and settings.

        Raises:
            RuntimeError: If the simulator cannot be shut down or erased
        """
        ...


@runtime_checkable
class LaunchTool(Protocol):
    """Protocol for the instrumentation tool that starts the app under test."""

    def launch(self, config: LaunchConfig) -> Attachment:
        """Launch the app once.

        Raises:
            LaunchTimeoutError: If the app did not come up in time
        """
        ...

    def stop(self, attachment: Attachment) -> None:
        """Stop a previously launched process."""
        ...


@runtime_checkable
class ConnectivityChecker(Protocol):
    """Protocol for probing the embedded server."""

    def ensure_connectivity(
        self, retries: int | None = None, timeout: float | None = None
    ) -> tuple[int, dict[str, Any]]:
        """Return ``(status, identity payload)`` once the server answers.

        Raises:
            ServerNotRespondingError: If every attempt failed
        """
        ...


@runtime_checkable
class ActionDispatcher(Protocol):
    """Capability object through which gestures and queries are issued.

    Constructed with no arguments. The gesture and query operations belong to
    the embedding driver, so the launcher requires no members.
    """


@runtime_checkable
class UsageReporter(Protocol):
    """Protocol for fire-and-forget usage reporting."""

    def report_async(self) -> None:
        """Send a usage event. Must not block and must not raise."""
        ...
