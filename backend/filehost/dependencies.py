"""FastAPI dependencies.

Usage in routes:
    from filehost.dependencies import get_file_store

    @router.get("/files")
    async def list_files(store: FileStore = Depends(get_file_store)):
        return await store.list()
"""
from fastapi import Request

from filehost.config import Settings
from filehost.services.file_store import FileStore


def get_file_store(request: Request) -> FileStore:
    """The store built by the app lifespan."""
    return request.app.state.file_store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings
