"""Device probe - resolve device descriptors and reset simulators."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import structlog

from ios_test_launcher.errors import device_not_found_error

if TYPE_CHECKING:
    from ios_test_launcher.config import LauncherSettings
    from ios_test_launcher.interfaces import DeviceControlTool

logger = structlog.get_logger()

# Host architectures reported by the server when it runs inside a simulator
_SIMULATOR_SYSTEMS = {"x86_64", "i386", "arm64-sim"}


@dataclass
class Device:
    """A simulator or physical device, optionally with live server details."""

    udid: str | None = None
    name: str | None = None
    ios_version: str | None = None
    simulator: bool = True
    endpoint: str | None = None
    server_version: str | None = None
    model_identifier: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    @property
    def physical_device(self) -> bool:
        return not self.simulator

    @classmethod
    def from_payload(cls, endpoint: str, body: dict[str, Any]) -> Device:
        """Build a device from the server's identity payload."""
        system = str(body.get("system") or "")
        simulator = bool(body.get("simulator")) or system in _SIMULATOR_SYSTEMS
        return cls(
            udid=body.get("device_udid") or body.get("udid"),
            name=body.get("device_name"),
            ios_version=body.get("iOS_version") or body.get("ios_version"),
            simulator=simulator,
            endpoint=endpoint,
            server_version=body.get("version"),
            model_identifier=body.get("model_identifier"),
            payload=dict(body),
        )

    def __str__(self) -> str:
        kind = "simulator" if self.simulator else "device"
        return f"{self.name or 'unknown'} ({self.ios_version or '?'}) {kind} {self.udid or ''}".rstrip()


class DeviceProbe:
    """Resolves UDIDs, names, or "device"/"simulator" into a Device."""

    def __init__(self, tool: DeviceControlTool, settings: LauncherSettings) -> None:
        self._tool = tool
        self._settings = settings

    def detect_device(self, options: dict[str, Any] | None = None) -> Device:
        """Resolve a descriptor, falling back to DEVICE_TARGET.

        Raises:
            DeviceNotFoundError: If the tool cannot match the descriptor
        """
        merged = dict(options or {})
        if merged.get("device") is None and self._settings.device_target:
            merged["device"] = self._settings.device_target

        try:
            device = self._tool.detect_device(
                merged,
                self._settings.xcode,
                self._settings.simctl,
                self._settings.instruments,
            )
        except ValueError as exc:
            raise device_not_found_error(merged.get("device"), str(exc)) from exc

        logger.info("device_detected", device=str(device), target=merged.get("device"))
        return device

    def reset_simulator(self, device: Device | str | None = None) -> Device:
        """Erase a simulator, the same as "Reset Content & Settings".

        Args:
            device: A Device, a simulator UDID or name, or None for the default target

        Raises:
            ValueError: If the target is a physical device
            DeviceNotFoundError: If the target cannot be resolved
        """
        target = device if isinstance(device, Device) else self.detect_device({"device": device})

        if target.physical_device:
            raise ValueError(f"Cannot reset: {target}. Resetting physical devices is not supported.")

        self._tool.erase_simulator(target)
        logger.info("simulator_erased", device=str(target))
        return target
