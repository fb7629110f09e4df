"""Thumbnail generation.

Placeholder: the "thumbnail" is a byte copy of the source. A real resizer
(Pillow for images, an ffmpeg frame grab for video) replaces _copy_file
without changing generate_thumbnail's contract.
"""
import logging
from pathlib import Path

import aiofiles
import aiofiles.os

from filehost.services.file_helpers import MEDIA_TYPES

logger = logging.getLogger(__name__)

_CHUNK_SIZE = 64 * 1024


async def _copy_file(source: Path, dest: Path) -> None:
    async with aiofiles.open(source, "rb") as src, aiofiles.open(dest, "wb") as dst:
        while chunk := await src.read(_CHUNK_SIZE):
            await dst.write(chunk)


async def generate_thumbnail(source: str | Path, dest: str | Path, file_type: str) -> bool:
    """Write a preview of `source` to `dest`. Returns False when not applicable or on failure.

    Only image and video files get thumbnails. An existing `dest` is overwritten.
    """
    if file_type not in MEDIA_TYPES:
        return False

    source, dest = Path(source), Path(dest)
    try:
        await _copy_file(source, dest)
    except OSError:
        logger.exception("Thumbnail generation failed: %s -> %s", source, dest)
        try:
            await aiofiles.os.remove(dest)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove partial thumbnail %s", dest)
        return False

    logger.info("Generated %s thumbnail %s", file_type, dest.name)
    return True
