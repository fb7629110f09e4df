"""FileRecord model - file metadata (actual bytes live on the filesystem)."""
from typing import Optional

from pydantic import AwareDatetime, Field

from filehost.schemas.base import CamelModel


class FileMetadata(CamelModel):
    """Best-effort attribute bag. Extractors may add keys beyond these."""
    width: Optional[int] = None
    height: Optional[int] = None
    duration: Optional[float] = None
    format: Optional[str] = None
    bitrate: Optional[int] = None
    codec: Optional[str] = None

    model_config = {**CamelModel.model_config, "extra": "allow"}


class FileRecord(CamelModel):
    id: str
    original_name: str
    # Clients read the on-disk name as "fileName".
    stored_name: str = Field(alias="fileName")
    mime_type: str
    size: int = Field(ge=0)
    # Naive timestamps are rejected so list() ordering always compares aware values
    uploaded_at: AwareDatetime
    metadata: FileMetadata = Field(default_factory=FileMetadata)
    views: int = Field(default=0, ge=0)
    downloads: int = Field(default=0, ge=0)

    # Records are replaced, never mutated in place
    model_config = {**CamelModel.model_config, "frozen": True}


class FileStats(CamelModel):
    total_files: int = 0
    total_downloads: int = 0
    total_storage_used: int = 0
