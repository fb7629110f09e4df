"""FastAPI application entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from filehost import __version__
from filehost.config import Settings, settings as default_settings
from filehost.exceptions import FilehostError, UploadTooLargeError
from filehost.schemas.file import ErrorResponse, HealthResponse
from filehost.services.file_store import build_file_store

logger = logging.getLogger(__name__)

# Allowance for multipart boundaries and form fields on top of the file bytes
_MULTIPART_OVERHEAD = 64 * 1024


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the file store and load its index on startup."""
    settings: Settings = app.state.settings
    store = build_file_store(settings)
    await store.load()
    await store.clear_incoming()
    app.state.file_store = store
    if not settings.UPLOAD_KEY:
        logger.warning("UPLOAD_KEY is not set, uploads are disabled")
    logger.info("Serving files from %s", store.root.resolve())

    yield


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(FilehostError)
    async def filehost_error_handler(request: Request, exc: FilehostError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = "Invalid request"
        if errors:
            location = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
            message = f"Invalid request: {location} {errors[0].get('msg', '')}".strip()
        return JSONResponse(status_code=400, content=ErrorResponse(error=message).model_dump())

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content=ErrorResponse(error="Internal server error").model_dump())


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(
        title="Filehost API",
        version=__version__,
        description="Upload, list, view and download files stored on local disk.",
        lifespan=lifespan,
    )
    app.state.settings = settings

    # CORS
    origins = [o.strip() for o in settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_error_handlers(app)

    @app.middleware("http")
    async def limit_upload_size(request: Request, call_next):
        """Reject oversized uploads by Content-Length before the body is spooled."""
        if request.method == "POST" and request.url.path == "/api/upload":
            content_length = request.headers.get("content-length", "")
            if content_length.isdigit() and int(content_length) > settings.MAX_UPLOAD_BYTES + _MULTIPART_OVERHEAD:
                exc = UploadTooLargeError(settings.MAX_UPLOAD_BYTES)
                return JSONResponse(status_code=exc.status_code, content=ErrorResponse(error=exc.message).model_dump())
        return await call_next(request)

    @app.get("/api/health", response_model=HealthResponse)
    async def health_check(request: Request):
        """Verify the API is up and the index is loaded."""
        stats = await request.app.state.file_store.stats()
        return HealthResponse(status="ok", files=stats.total_files)

    from filehost.routes.files import router as files_router
    app.include_router(files_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("filehost.main:app", host="0.0.0.0", port=default_settings.API_PORT)
