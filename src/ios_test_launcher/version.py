"""Server version cache - resolved at most once per process.

The embedded server version cannot change while a given binary is running,
so the first answer (including "unavailable") is kept for the rest of the
process. Lookups are injectable so the state transitions can be tested
without touching the filesystem or the network.
"""

from __future__ import annotations

import os
import re
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from ios_test_launcher.device.probe import Device

logger = structlog.get_logger()

SERVER_VERSION_NOT_AVAILABLE = "0.0.0"
VERSION_MARKER = re.compile(r"CALABASH VERSION")
# Runs of printable ASCII, as strings(1) reports them
_PRINTABLE_RUN = re.compile(rb"[\t\x20-\x7e]{4,}")


class VersionState(Enum):
    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"


@dataclass(frozen=True)
class VersionRecord:
    """Cached server version and how it was settled."""

    state: VersionState = VersionState.UNRESOLVED
    version: str | None = None

    @property
    def terminal(self) -> bool:
        return self.state is not VersionState.UNRESOLVED

    @property
    def value(self) -> str | None:
        if self.state is VersionState.UNAVAILABLE:
            return SERVER_VERSION_NOT_AVAILABLE
        return self.version


def advance(record: VersionRecord, lookup: Callable[[], str | None]) -> VersionRecord:
    """Settle an unresolved record with ``lookup``; terminal records are returned as-is."""
    if record.terminal:
        return record
    found = lookup()
    if found:
        return VersionRecord(VersionState.RESOLVED, found)
    return VersionRecord(VersionState.UNAVAILABLE)


def extract_strings(path: Path) -> Iterator[str]:
    """Yield printable strings embedded in a binary."""
    data = path.read_bytes()
    for match in _PRINTABLE_RUN.finditer(data):
        yield match.group().decode("ascii")


def executables_in(bundle_path: Path) -> list[Path]:
    """Top-level executable files in an app bundle."""
    if not bundle_path.is_dir():
        return []
    return sorted(
        entry
        for entry in bundle_path.iterdir()
        if not entry.is_dir() and os.access(entry, os.X_OK)
    )


class VersionCache:
    """Memoized embedded-server version lookup."""

    def __init__(
        self, scan_strings: Callable[[Path], Iterator[str]] = extract_strings
    ) -> None:
        self._scan_strings = scan_strings
        self.record = VersionRecord()

    @property
    def value(self) -> str | None:
        return self.record.value

    def from_bundle(self, bundle_path: str | Path) -> str:
        """Read the version from the strings table of the bundle's executables."""
        self.record = advance(self.record, lambda: self._scan_bundle(Path(bundle_path)))
        return self._settled_value()

    def from_server(self, device_provider: Callable[[], Device]) -> str:
        """Read the version reported by the running server.

        Raises:
            ServerNotRespondingError: If the device cannot be resolved from a live server
        """
        self.record = advance(self.record, lambda: device_provider().server_version)
        return self._settled_value()

    def _settled_value(self) -> str:
        if self.record.state is VersionState.UNAVAILABLE:
            return SERVER_VERSION_NOT_AVAILABLE
        return self.record.version or SERVER_VERSION_NOT_AVAILABLE

    def _scan_bundle(self, bundle_path: Path) -> str | None:
        exe_paths = executables_in(bundle_path)
        if not exe_paths:
            logger.warning("no_executable_in_bundle", bundle=str(bundle_path))
            return None

        for path in exe_paths:
            try:
                version = self._version_in(path)
            except OSError as exc:
                logger.warning("executable_unreadable", binary=str(path), error=str(exc))
                continue
            if version:
                logger.info("server_version_found", binary=str(path), version=version)
                return version

        logger.warning("server_version_not_in_strings", bundle=str(bundle_path))
        return None

    def _version_in(self, path: Path) -> str | None:
        for line in self._scan_strings(path):
            if VERSION_MARKER.search(line):
                return line.split()[-1]
        return None


_default_cache: VersionCache | None = None


def default_version_cache() -> VersionCache:
    """Process-wide cache shared by every Session."""
    global _default_cache
    if _default_cache is None:
        _default_cache = VersionCache()
    return _default_cache


def reset_default_version_cache() -> None:
    global _default_cache
    _default_cache = None
