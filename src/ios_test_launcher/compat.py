"""Server/client version compatibility check. Advisory: warns, never raises."""

from __future__ import annotations

import re
from typing import NamedTuple

import structlog

from ios_test_launcher.version import SERVER_VERSION_NOT_AVAILABLE

logger = structlog.get_logger()

# major.minor[.patch][.preN]; a missing patch is treated as 0
VERSION_PATTERN = re.compile(r"^v?(\d+)\.(\d+)(?:\.(\d+))?(?:[.-]?([a-zA-Z]+\d*))?$")

UPDATE_URL = "https://github.com/calabash/calabash-ios/wiki/Updating-your-Calabash-iOS-version"


class SemanticVersion(NamedTuple):
    major: int
    minor: int
    patch: int
    # Releases sort after any pre-release of the same number
    release: int
    pre: str

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.patch}"
        return f"{base}.{self.pre}" if self.pre else base


def parse_version(raw: str) -> SemanticVersion:
    """Parse a version string.

    Raises:
        ValueError: If ``raw`` is not a major.minor[.patch] version
    """
    match = VERSION_PATTERN.match(raw.strip())
    if not match:
        raise ValueError(f"Invalid version: {raw!r}")
    major, minor, patch, pre = match.groups()
    return SemanticVersion(
        major=int(major),
        minor=int(minor),
        patch=int(patch or 0),
        release=0 if pre else 1,
        pre=pre or "",
    )


def check_compatibility(server_version: str, client_version: str, min_server_version: str) -> bool:
    """Warn when the server is older than the client requires.

    Returns:
        False if a mismatch was reported, True otherwise (including skipped checks)
    """
    if server_version == SERVER_VERSION_NOT_AVAILABLE:
        logger.warning(
            "server_version_unavailable",
            message="Server version could not be determined - skipping compatibility check",
        )
        return True

    try:
        server = parse_version(server_version)
        client = parse_version(client_version)
        minimum = parse_version(min_server_version)
    except ValueError as exc:
        logger.warning("compatibility_check_skipped", reason=str(exc))
        return True

    if server < minimum:
        logger.warning(
            "server_version_incompatible",
            message="The server version is not compatible with the client. Please update your server.",
            client_version=str(client),
            min_server_version=str(minimum),
            server_version=str(server),
            help=UPDATE_URL,
        )
        return False
    return True
