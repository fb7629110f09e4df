"""File id generation and coarse type detection."""
import uuid
from pathlib import Path

IMAGE_EXTENSIONS = {"jpg", "jpeg", "png", "gif", "webp", "svg"}
VIDEO_EXTENSIONS = {"mp4", "webm", "ogg", "mov"}
DOCUMENT_EXTENSIONS = {"pdf", "doc", "docx", "xls", "xlsx", "ppt", "pptx", "txt"}
ARCHIVE_EXTENSIONS = {"zip", "rar", "7z", "tar", "gz"}

# Categories that get metadata extraction and thumbnails
MEDIA_TYPES = ("image", "video")


def generate_file_id() -> str:
    """Return an opaque, URL-safe file id (32 hex chars, 122 random bits)."""
    return uuid.uuid4().hex


def get_file_extension(filename: str) -> str:
    """Extension without dot, lowercase. Empty string if there is none."""
    return Path(filename).suffix.lstrip(".").lower()


def get_file_type(filename: str) -> str:
    """Map a filename to image / video / document / archive / other."""
    extension = get_file_extension(filename)
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension in VIDEO_EXTENSIONS:
        return "video"
    if extension in DOCUMENT_EXTENSIONS:
        return "document"
    if extension in ARCHIVE_EXTENSIONS:
        return "archive"
    return "other"
