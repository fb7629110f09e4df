"""File record store: the index of uploaded files and their on-disk layout.

The store owns the id -> FileRecord mapping. Every mutation (in-memory change
plus persistence) runs under one asyncio.Lock, so interleaved request handlers
never lose a counter update even though the snapshot write suspends. Reads do
not await and always see a consistent index.

Disk layout under the storage root:

    <root>/<id>                     blob
    <root>/thumbnails/<id>_thumb    thumbnail
    <root>/.incoming/<token>        uploads still being received
    <root>/metadata.json            index snapshot (json persistence only)
"""
import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

import aiofiles.os

from filehost.config import Settings
from filehost.exceptions import StorageIOError, UploadValidationError
from filehost.models.file_record import FileMetadata, FileRecord, FileStats
from filehost.services.file_helpers import generate_file_id
from filehost.services.index_persistence import (
    IndexPersistence,
    JsonSnapshotPersistence,
    MemoryIndexPersistence,
)

logger = logging.getLogger(__name__)

INDEX_FILENAME = "metadata.json"
THUMBNAIL_DIRNAME = "thumbnails"
INCOMING_DIRNAME = ".incoming"

# Set at creation, never changed through update()
_PROTECTED_FIELDS = frozenset({"id", "stored_name", "size", "uploaded_at", "views", "downloads"})

# Accept both snake_case names and camelCase aliases in update()
_FIELD_NAMES = {
    **{name: name for name in FileRecord.model_fields},
    **{field.alias: name for name, field in FileRecord.model_fields.items() if field.alias},
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FileStore:
    """Authoritative store of file records, backed by a pluggable index persistence."""

    def __init__(
        self,
        root: str | Path,
        persistence: Optional[IndexPersistence] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.root = Path(root)
        self.thumbs_dir = self.root / THUMBNAIL_DIRNAME
        self.incoming_dir = self.root / INCOMING_DIRNAME
        self._persistence = persistence or MemoryIndexPersistence()
        self._clock = clock or _utcnow
        self._files: dict[str, FileRecord] = {}
        self._lock = asyncio.Lock()

    # ── Path contract ────────────────────────────────────────────

    def ensure_storage_layout(self) -> None:
        """Create the blob, thumbnail and incoming directories. Safe to call repeatedly."""
        for directory in (self.root, self.thumbs_dir, self.incoming_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def blob_path(self, file_id: str) -> Path:
        return self.root / file_id

    def thumbnail_path(self, file_id: str) -> Path:
        return self.thumbs_dir / f"{file_id}_thumb"

    def incoming_path(self) -> Path:
        """Fresh temp path for an upload in flight. Same filesystem as the blobs."""
        return self.incoming_dir / generate_file_id()

    async def discard_incoming(self, path: str | Path) -> None:
        """Best-effort removal of an in-flight upload."""
        try:
            await aiofiles.os.remove(path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.exception("Could not remove temp upload %s", path)

    async def clear_incoming(self) -> int:
        """Remove uploads left in the incoming directory by an interrupted process."""
        if not await aiofiles.os.path.isdir(self.incoming_dir):
            return 0
        leftovers = await aiofiles.os.listdir(self.incoming_dir)
        for name in leftovers:
            await self.discard_incoming(self.incoming_dir / name)
        if leftovers:
            logger.warning("Removed %d interrupted upload(s) from %s", len(leftovers), self.incoming_dir)
        return len(leftovers)

    # ── Index ────────────────────────────────────────────────────

    async def load(self) -> int:
        """Replace the in-memory index with what the persistence strategy holds."""
        records = await self._persistence.load()
        async with self._lock:
            self._files = {record.id: record for record in records}
        logger.info("Loaded %d files from index", len(records))
        return len(records)

    async def _save(self) -> None:
        # The in-memory index stays authoritative; the next successful save catches up.
        try:
            await self._persistence.save(list(self._files.values()))
        except OSError:
            logger.exception("Error saving file index")

    def _new_id(self) -> str:
        file_id = generate_file_id()
        while file_id in self._files:
            file_id = generate_file_id()
        return file_id

    async def create(
        self,
        original_name: str,
        mime_type: str,
        size: int,
        metadata: Optional[FileMetadata] = None,
        stored_name: Optional[str] = None,
        blob_source: Optional[str | Path] = None,
    ) -> FileRecord:
        """Allocate an id and index a new record.

        If `blob_source` is given, that file is moved to blob_path(id) before
        the record is indexed, so an index entry never points at a blob that
        was not fully received.

        Raises:
            UploadValidationError: If size is negative.
            StorageIOError: If the blob cannot be moved into place.
        """
        if size < 0:
            raise UploadValidationError("File size cannot be negative")

        async with self._lock:
            file_id = self._new_id()
            blob_path = self.blob_path(file_id)
            if blob_source is not None:
                try:
                    await aiofiles.os.replace(blob_source, blob_path)
                except OSError as e:
                    logger.exception("Failed to move upload %s -> %s", blob_source, blob_path)
                    raise StorageIOError("Failed to store uploaded file") from e

            record = FileRecord(
                id=file_id,
                original_name=original_name,
                stored_name=stored_name or blob_path.name,
                mime_type=mime_type,
                size=size,
                uploaded_at=self._clock(),
                metadata=metadata or FileMetadata(),
            )
            self._files[file_id] = record
            await self._save()

        logger.info("Created file %s (%s, %d bytes)", file_id, original_name, size)
        return record

    async def get(self, file_id: str) -> Optional[FileRecord]:
        return self._files.get(file_id)

    async def list(self) -> list[FileRecord]:
        """All records, newest first. Equal timestamps keep insertion order."""
        return sorted(self._files.values(), key=lambda r: r.uploaded_at, reverse=True)

    async def update(self, file_id: str, fields: Mapping[str, Any]) -> Optional[FileRecord]:
        """Merge `fields` into a record. Returns None if the id is unknown.

        Protected fields (id, stored name, size, timestamp, counters) are ignored.

        Raises:
            ValueError: If a field name is not a FileRecord field.
            pydantic.ValidationError: If a value does not fit its field.
        """
        changes = {}
        for key, value in fields.items():
            name = _FIELD_NAMES.get(key)
            if name is None:
                raise ValueError(f"Unknown file field: {key}")
            if name in _PROTECTED_FIELDS:
                logger.warning("Ignoring update of protected field '%s' on %s", name, file_id)
                continue
            changes[name] = value

        async with self._lock:
            record = self._files.get(file_id)
            if record is None:
                return None
            updated = FileRecord.model_validate({**record.model_dump(), **changes})
            self._files[file_id] = updated
            await self._save()
        return updated

    async def delete(self, file_id: str) -> bool:
        """Remove a record and, best effort, its blob and thumbnail.

        Returns whether the record existed. Disk errors are logged, not raised.
        """
        async with self._lock:
            record = self._files.pop(file_id, None)
            if record is None:
                return False
            await self._save()

        for path in (self.blob_path(file_id), self.thumbnail_path(file_id)):
            try:
                await aiofiles.os.remove(path)
            except FileNotFoundError:
                pass
            except OSError:
                logger.exception("Error deleting %s from disk", path)

        logger.info("Deleted file %s (%s)", file_id, record.original_name)
        return True

    async def _increment(self, file_id: str, counter: str) -> None:
        async with self._lock:
            record = self._files.get(file_id)
            if record is None:
                # Deleted between lookup and increment
                return
            self._files[file_id] = record.model_copy(update={counter: getattr(record, counter) + 1})
            await self._save()

    async def increment_views(self, file_id: str) -> None:
        await self._increment(file_id, "views")

    async def increment_downloads(self, file_id: str) -> None:
        await self._increment(file_id, "downloads")

    async def stats(self) -> FileStats:
        records = list(self._files.values())
        return FileStats(
            total_files=len(records),
            total_downloads=sum(r.downloads for r in records),
            total_storage_used=sum(r.size for r in records),
        )


def build_index_persistence(settings: Settings) -> IndexPersistence:
    """Pick the index persistence strategy named by INDEX_PERSISTENCE."""
    if settings.INDEX_PERSISTENCE == "memory":
        return MemoryIndexPersistence()
    if settings.INDEX_PERSISTENCE == "json":
        return JsonSnapshotPersistence(Path(settings.FILE_STORAGE_PATH) / INDEX_FILENAME)
    raise ValueError(f"Unknown index persistence: {settings.INDEX_PERSISTENCE}")


def build_file_store(settings: Settings) -> FileStore:
    store = FileStore(settings.FILE_STORAGE_PATH, persistence=build_index_persistence(settings))
    store.ensure_storage_layout()
    return store
