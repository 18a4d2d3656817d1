"""
FastAPI application entry point.

This module creates and configures the FastAPI application.
Using an application factory pattern (create_app function) because:
- Easier to test with different configurations
- Explicit about initialization order

Startup is all-or-nothing: if configuration is incomplete or the bucket,
database or table can't be provisioned, the lifespan raises and the
server exits instead of serving degraded traffic.

For local development:
    uvicorn src.main:app --reload

For production:
    gunicorn src.main:app -w 4 -k uvicorn.workers.UvicornWorker
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .api.middleware import RequestSizeLimitMiddleware
from .api.routes import health, videos
from .config.settings import Settings, get_settings
from .core.videos.errors import VideoServiceError
from .core.videos.models import utc_now_iso
from .core.videos.service import VideoService
from .infrastructure.snowflake.client import create_snowflake_connection
from .infrastructure.snowflake.repositories.videos import (
    SnowflakeConfig,
    VideoDocumentRepository,
)
from .infrastructure.storage.client import StorageConfig, create_storage_client

# Configure logging
logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=logging.INFO,
)

logger = logging.getLogger(__name__)


class StartupError(Exception):
    """Raised when the app can't reach a state where it may serve traffic."""
    pass


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Builds the long-lived store clients once, provisions the bucket and
    the video table, and exposes everything on app.state for the
    dependencies in api/dependencies.py. The Snowflake connection is
    closed on shutdown.
    """
    settings: Settings = app.state.settings

    logger.info(
        "Video API starting",
        extra={
            "version": settings.api_version,
            "mock_mode": {
                "snowflake": settings.snowflake_mock_mode,
                "storage": settings.storage_mock_mode,
            }
        }
    )

    missing_fields = settings.validate_required_fields()
    if missing_fields:
        logger.error(
            "Missing required configuration",
            extra={"missing_fields": missing_fields}
        )
        raise StartupError(
            f"Missing required configuration: {', '.join(missing_fields)}"
        )

    storage = create_storage_client(
        config=StorageConfig(
            access_key_id=settings.storage_access_key_id,
            secret_access_key=settings.storage_secret_access_key,
            bucket_name=settings.storage_bucket_name,
            endpoint_url=settings.storage_endpoint_url,
            region=settings.storage_region,
            public_base_url=settings.storage_public_base_url,
        ),
        mock_mode=settings.storage_mock_mode,
    )

    snowflake_config = SnowflakeConfig(
        account=settings.snowflake_account,
        user=settings.snowflake_user,
        password=settings.snowflake_password or None,
        private_key_path=settings.snowflake_private_key_path,
        database=settings.snowflake_database,
        schema=settings.snowflake_schema,
        container=settings.snowflake_container,
        warehouse=settings.snowflake_warehouse,
        role=settings.snowflake_role,
    )

    with create_snowflake_connection(
        config=snowflake_config,
        mock_mode=settings.snowflake_mock_mode,
    ) as conn:
        documents = VideoDocumentRepository(
            conn,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            container=settings.snowflake_container,
        )

        try:
            await storage.ensure_bucket()
            documents.create_if_absent()
        except Exception as e:
            logger.critical(
                "Startup failed",
                extra={"error": str(e)},
                exc_info=e,
            )
            raise StartupError(f"Could not provision storage: {e}") from e

        app.state.documents = documents
        app.state.video_service = VideoService(
            storage=storage,
            documents=documents,
            comment_write_attempts=settings.comment_write_attempts,
        )

        logger.info("Video API ready")

        yield

    logger.info("Video API shutting down")


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Application factory.

    Tests pass their own Settings (e.g. with mock modes on); the
    module-level app uses the environment.
    """
    if settings is None:
        settings = get_settings()

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="""
        Upload videos and discuss them.

        - `POST /api/videos` uploads a video (multipart) and creates its record
        - `GET /api/videos` lists videos, newest first
        - `GET /api/videos/{id}` returns one video with its comments
        - `POST /api/videos/{id}/comments` adds a comment
        - `DELETE /api/videos/{id}/comments/{commentId}` deletes your own comment

        Comment ownership is based solely on the caller-supplied `userId`.
        """,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_middleware(
        RequestSizeLimitMiddleware,
        max_upload_bytes=settings.max_upload_size_bytes,
        max_json_bytes=settings.max_json_body_bytes,
    )

    # CORS is added last so it wraps everything, including 413 responses
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(
        health.router,
        prefix="/health",
        tags=["Health"],
    )

    app.include_router(
        videos.router,
        prefix="/api/videos",
        tags=["Videos"],
    )

    @app.get("/", include_in_schema=False)
    async def root():
        return {"name": settings.api_title, "ok": True, "time": utc_now_iso()}

    @app.exception_handler(VideoServiceError)
    async def video_service_exception_handler(request: Request, exc: VideoServiceError):
        """
        Single mapping from service errors to HTTP responses.

        The message is always client-safe; store failures carry a
        generic message and the original error stays in the logs.
        """
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            "Request failed",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
                "error_type": type(exc).__name__,
            }
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.message},
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        """
        Framework-level HTTP errors (unknown route, wrong method, body
        over the size limit) in the same {"error": ...} shape.
        """
        logger.info(
            "HTTP error",
            extra={
                "path": request.url.path,
                "method": request.method,
                "status_code": exc.status_code,
            }
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        logger.info(
            "Malformed request",
            extra={"path": request.url.path, "method": request.method}
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Malformed request body."},
        )

    # Global exception handler
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """
        Catch-all exception handler.

        Prevents stack traces from leaking to clients. We log the full
        error server-side but return a generic message.
        """
        logger.error(
            "Unhandled exception",
            extra={
                "path": request.url.path,
                "method": request.method,
                "error": str(exc),
            },
            exc_info=exc,
        )

        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error."},
        )

    logger.info(
        "FastAPI application created",
        extra={
            "title": settings.api_title,
            "version": settings.api_version,
        }
    )

    return app


# Create the application instance
# This is what uvicorn/gunicorn will import
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        lifespan="on",
        log_level=settings.log_level.lower(),
    )
