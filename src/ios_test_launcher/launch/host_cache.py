"""Host cache - on-disk record of the last launched app process."""

from __future__ import annotations

import json
from pathlib import Path

import structlog

from ios_test_launcher.launch.invoker import Attachment

logger = structlog.get_logger()

CACHE_FILE = "host_cache.json"


class HostCache:
    """Persists the most recent Attachment so later processes can attach to it."""

    def __init__(self, state_dir: Path) -> None:
        self.path = state_dir / CACHE_FILE

    def read(self) -> Attachment:
        """Return the cached attachment, or an empty one if nothing usable is cached."""
        if not self.path.is_file():
            return Attachment()
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError("host cache is not an object")
            return Attachment.from_dict(data)
        except (OSError, TypeError, ValueError):
            logger.warning("host_cache_unreadable", path=str(self.path))
            return Attachment()

    def write(self, attachment: Attachment) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".json.tmp")
        tmp_path.write_text(
            json.dumps(attachment.to_dict(), ensure_ascii=True, sort_keys=True) + "\n",
            encoding="utf-8",
        )
        tmp_path.replace(self.path)
