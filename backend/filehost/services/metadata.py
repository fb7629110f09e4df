"""Metadata extraction for uploaded files.

One extractor per coarse file type, registered with @register_extractor.
The stock extractors are placeholders that return fixed values; swap in real
introspection (Pillow, ffprobe) by registering a new function for the type.
"""
import logging
from pathlib import Path
from typing import Awaitable, Callable, Optional

from filehost.models.file_record import FileMetadata
from filehost.services.file_helpers import get_file_extension

logger = logging.getLogger(__name__)

Extractor = Callable[[Path, str], Awaitable[FileMetadata]]

# Extractor registry - add new file types here
EXTRACTORS: dict[str, Extractor] = {}


def register_extractor(file_type: str):
    """Decorator to register a metadata extractor for a coarse file type."""
    def decorator(func: Extractor) -> Extractor:
        EXTRACTORS[file_type] = func
        return func
    return decorator


@register_extractor("image")
async def extract_image_metadata(path: Path, fmt: str) -> FileMetadata:
    # Placeholder dimensions
    return FileMetadata(width=1920, height=1080, format=fmt)


@register_extractor("video")
async def extract_video_metadata(path: Path, fmt: str) -> FileMetadata:
    # Placeholder probe result
    return FileMetadata(
        width=1280,
        height=720,
        duration=125.5,
        format=fmt,
        bitrate=2_500_000,
        codec="h264",
    )


async def extract_metadata(
    path: str | Path,
    file_type: str,
    original_name: Optional[str] = None,
) -> FileMetadata:
    """Extract metadata for a file. Never raises.

    `original_name` supplies the format when the path itself has no extension
    (blobs and in-flight uploads are stored without one). Types without a
    registered extractor, and any extractor failure, yield an empty bag.
    """
    extractor = EXTRACTORS.get(file_type)
    if extractor is None:
        return FileMetadata()

    path = Path(path)
    fmt = get_file_extension(original_name or path.name)
    try:
        return await extractor(path, fmt)
    except Exception:
        logger.exception("Metadata extraction failed for %s (type=%s)", path, file_type)
        return FileMetadata()
