"""Launch configuration passed to the instrumentation tool."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_LAUNCH_RETRIES = 5


class LaunchConfig(BaseModel):
    """Immutable per-call launch options.

    Options the launcher does not know about are kept and forwarded to the
    launch tool unchanged.
    """

    model_config = ConfigDict(frozen=True, extra="allow")

    app: str | None = None
    device: str | None = None

    # Tool handles; reusing them speeds up launches
    simctl: Any = None
    instruments: Any = None
    xcode: Any = None

    launch_retries: int = Field(default=DEFAULT_LAUNCH_RETRIES, ge=1)
    reset_app_sandbox: bool = False
    inject_dylib: bool = False
    # Lite mode: skip the server handshake after launch
    calabash_lite: bool = False

    def merged(self, **overrides: Any) -> LaunchConfig:
        """Return a copy with ``overrides`` applied on top."""
        # dict(self) keeps tool handles as the same objects, extras included
        data = dict(self)
        data.update(overrides)
        return LaunchConfig(**data)

    def with_defaults(self, **defaults: Any) -> LaunchConfig:
        """Return a copy where unset (None) fields take ``defaults``."""
        data = dict(self)
        for key, value in defaults.items():
            if data.get(key) is None:
                data[key] = value
        return LaunchConfig(**data)
