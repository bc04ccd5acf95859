"""File-based persistence for the usage history.

Snapshots are written as JSON through a temp file and an atomic rename, so a
crash mid-write never leaves a truncated history behind. Writes go through
`aiofiles` and never block the event loop.
"""

import json
import logging
from pathlib import Path
from typing import Optional

import aiofiles
import aiofiles.os

from shopmon.domain.interfaces.storage import UsageHistoryStore
from shopmon.domain.models.throttle import UsageSnapshot

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_FILE = Path.home() / ".shopmon" / "usage_history.json"


class JsonFileHistoryStore(UsageHistoryStore):
    """Stores usage snapshots in a single JSON file."""

    def __init__(self, path: Path = DEFAULT_HISTORY_FILE):
        self.path = Path(path)

    async def save(self, snapshot: UsageSnapshot) -> None:
        await aiofiles.os.makedirs(self.path.parent, exist_ok=True)
        content = json.dumps({"records": snapshot.records, "current_status": snapshot.current_status})
        temp_path = self.path.with_suffix(".tmp")
        try:
            async with aiofiles.open(temp_path, mode="w", encoding="utf-8") as f:
                await f.write(content)
            await aiofiles.os.replace(temp_path, self.path)
        except OSError:
            if await aiofiles.os.path.exists(temp_path):
                await aiofiles.os.remove(temp_path)
            raise
        logger.debug(f"Saved {len(snapshot.records)} usage records to {self.path}")

    def load(self) -> Optional[UsageSnapshot]:
        if not self.path.is_file():
            logger.debug(f"No usage history file at {self.path}")
            return None
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.warning(f"Usage history file {self.path} is corrupted, ignoring it: {e}")
            return None
        if not isinstance(payload, dict):
            logger.warning(f"Usage history file {self.path} did not contain an object.")
            return None
        return UsageSnapshot(
            records=list(payload.get("records") or []),
            current_status=payload.get("current_status"),
        )

    def delete(self) -> None:
        self.path.unlink(missing_ok=True)
