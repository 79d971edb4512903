"""JSON file draft storage implementation.

Stores the whole draft set as one JSON document. Writes go to a sibling
temporary file which then replaces the target, so a crash mid-write
leaves either the old or the new document on disk, never a torn one.
"""

import asyncio
import os
from pathlib import Path
from typing import Optional, Union

import structlog

from pawdiary.domain.shared.errors import StorageError

logger = structlog.get_logger(__name__)


class JsonFileDraftStorage:
    """
    File-backed implementation of IDraftStorage port.

    Blocking file I/O runs in the default executor so the event loop
    keeps serving edits while a draft is written.

    Example:
        >>> storage = JsonFileDraftStorage("~/.pawdiary/activity-drafts.json")
        >>> await storage.write('{"draft-1": {...}}')
    """

    def __init__(self, path: Union[str, Path]) -> None:
        self.path = Path(path).expanduser()

    async def read(self) -> Optional[str]:
        try:
            return await asyncio.to_thread(self._read_sync)
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Cannot read drafts from {self.path}: {e}") from e

    async def write(self, payload: str) -> None:
        try:
            await asyncio.to_thread(self._write_sync, payload)
        except OSError as e:
            raise StorageError(f"Cannot write drafts to {self.path}: {e}") from e

        logger.debug("Drafts written", path=str(self.path), size=len(payload))

    async def clear(self) -> None:
        try:
            await asyncio.to_thread(self.path.unlink, missing_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot remove {self.path}: {e}") from e

    def _read_sync(self) -> Optional[str]:
        if not self.path.exists():
            return None
        return self.path.read_text(encoding="utf-8")

    def _write_sync(self, payload: str) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            f.write(payload)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_path, self.path)
