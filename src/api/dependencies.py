"""
FastAPI dependency injection.

The store clients and the VideoService are built once in the application
lifespan and stored on `app.state`. These dependencies hand them to
route handlers, so routes never construct clients themselves and tests
can swap them by building the app with different settings.
"""

from typing import Annotated

from fastapi import Depends, Request

from ..config.settings import Settings
from ..core.videos.service import VideoDocumentStore, VideoService


def get_app_settings(request: Request) -> Settings:
    """Settings the running app was created with."""
    return request.app.state.settings


def get_video_service(request: Request) -> VideoService:
    """Shared VideoService, created at startup."""
    return request.app.state.video_service


def get_document_store(request: Request) -> VideoDocumentStore:
    return request.app.state.documents


# ---------------------------------------------------------------------------
# Convenience Type Aliases
# ---------------------------------------------------------------------------

# These type aliases make route signatures cleaner
SettingsDep = Annotated[Settings, Depends(get_app_settings)]
VideoServiceDep = Annotated[VideoService, Depends(get_video_service)]
DocumentStoreDep = Annotated[VideoDocumentStore, Depends(get_document_store)]
