"""File request/response schemas."""
from pydantic import BaseModel

from filehost.schemas.base import CamelModel


class UploadResponse(CamelModel):
    success: bool = True
    file_id: str
    file_name: str
    original_name: str
    file_size: int
    url: str
    download_url: str


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    error: str


class HealthResponse(BaseModel):
    status: str = "ok"
    files: int = 0
