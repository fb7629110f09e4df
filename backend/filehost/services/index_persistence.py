"""Index persistence strategies for FileStore.

MemoryIndexPersistence keeps nothing across restarts. JsonSnapshotPersistence
mirrors the whole index to one JSON file on every mutation and reloads it at
startup. A missing or unreadable snapshot loads as an empty index.
"""
import json
import logging
from pathlib import Path
from typing import Protocol, Sequence

import aiofiles
import aiofiles.os
from pydantic import TypeAdapter, ValidationError

from filehost.models.file_record import FileRecord

logger = logging.getLogger(__name__)

_RECORD_LIST = TypeAdapter(list[FileRecord])


class IndexPersistence(Protocol):
    async def load(self) -> list[FileRecord]:
        ...

    async def save(self, records: Sequence[FileRecord]) -> None:
        ...


class MemoryIndexPersistence:
    """No-op persistence. Blobs left on disk after a restart become orphans."""

    async def load(self) -> list[FileRecord]:
        return []

    async def save(self, records: Sequence[FileRecord]) -> None:
        return None


class JsonSnapshotPersistence:
    """Whole-index JSON snapshot, replaced atomically on each save."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    @property
    def _tmp_path(self) -> Path:
        return self.path.with_name(f".{self.path.name}.tmp")

    async def load(self) -> list[FileRecord]:
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
        except FileNotFoundError:
            logger.info("No index snapshot at %s, starting empty", self.path)
            return []
        except OSError:
            logger.exception("Could not read index snapshot %s, starting empty", self.path)
            return []

        try:
            items = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.error("Corrupt index snapshot %s (%s), starting empty", self.path, e)
            return []
        if not isinstance(items, list):
            logger.error("Index snapshot %s is not a list, starting empty", self.path)
            return []

        records = []
        for item in items:
            try:
                records.append(FileRecord.model_validate(item))
            except ValidationError as e:
                logger.warning("Skipping invalid record in %s: %s", self.path, e.errors()[:1])
        return records

    async def save(self, records: Sequence[FileRecord]) -> None:
        payload = _RECORD_LIST.dump_json(list(records), by_alias=True, exclude_none=True, indent=2)
        tmp_path = self._tmp_path
        async with aiofiles.open(tmp_path, "wb") as f:
            await f.write(payload)
        # Readers see either the old snapshot or the new one, never a partial write
        await aiofiles.os.replace(tmp_path, self.path)
