"""Record models. Import from here for convenience."""
from filehost.models.file_record import FileMetadata, FileRecord, FileStats

__all__ = [
    "FileMetadata",
    "FileRecord",
    "FileStats",
]
