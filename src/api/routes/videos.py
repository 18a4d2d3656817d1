"""
Video and comment API endpoints.

Handlers stay thin: they pull fields out of the request, call the
VideoService and shape the response. Validation, not-found, ownership
and store failures are raised as VideoServiceError subclasses and turned
into status codes by the handlers registered in main.create_app.

Request bodies are read loosely (any JSON value per field). A field
that isn't a string is treated as missing, so bad input produces the
same 400 as absent input instead of a schema error.
"""

import logging
from typing import Annotated, Any, Optional

from fastapi import APIRouter, File, Form, UploadFile, status
from pydantic import BaseModel, Field

from ...core.videos.errors import PayloadTooLargeError
from ...core.videos.models import Video
from ..dependencies import SettingsDep, VideoServiceDep

logger = logging.getLogger(__name__)

router = APIRouter()


# ---------------------------------------------------------------------------
# Request/Response Models
# ---------------------------------------------------------------------------

class CommentCreateRequest(BaseModel):
    """Body of POST /api/videos/{id}/comments."""
    userId: Any = Field(default=None, description="Caller identifier, owner of the comment")
    authorName: Any = Field(default=None, description="Display name (default: Anonymous)")
    text: Any = Field(default=None, description="Comment text, up to 800 characters")


class CommentDeleteRequest(BaseModel):
    """Body of DELETE /api/videos/{id}/comments/{commentId}."""
    userId: Any = Field(default=None, description="Must equal the comment's userId")


class CommentResponse(BaseModel):
    id: str
    userId: str
    authorName: str
    text: str
    createdAt: str


class VideoSummaryResponse(BaseModel):
    """A video as listed: no comments."""
    id: str
    title: str
    description: str
    blobUrl: str
    blobName: str
    createdAt: str


class VideoResponse(VideoSummaryResponse):
    """A single video with its comment thread, newest first."""
    comments: list[CommentResponse]


class VideoListResponse(BaseModel):
    items: list[VideoSummaryResponse]


class CommentCreatedResponse(BaseModel):
    ok: bool = True
    comment: CommentResponse


class OkResponse(BaseModel):
    ok: bool = True


def _video_response(video: Video) -> VideoResponse:
    return VideoResponse(**video.to_document())


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.get(
    "",
    response_model=VideoListResponse,
    summary="List videos",
    description="All videos, newest first. Comments are not included.",
)
async def list_videos(service: VideoServiceDep) -> VideoListResponse:
    items = await service.list_videos()
    return VideoListResponse(items=[VideoSummaryResponse(**item) for item in items])


@router.get(
    "/{video_id}",
    response_model=VideoResponse,
    summary="Get one video",
    description="The full video document including comments.",
    responses={404: {"description": "Video not found"}},
)
async def get_video(video_id: str, service: VideoServiceDep) -> VideoResponse:
    video = await service.get_video(video_id)
    return _video_response(video)


@router.post(
    "",
    response_model=VideoResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Upload a video",
    description="Multipart upload: `video` file plus `title` and optional `description`.",
    responses={
        400: {"description": "Missing title or file, or not a video"},
        413: {"description": "File too large"},
    },
)
async def upload_video(
    service: VideoServiceDep,
    settings: SettingsDep,
    video: Annotated[Optional[UploadFile], File(description="Video file (video/* content type)")] = None,
    title: Annotated[Optional[str], Form()] = None,
    description: Annotated[Optional[str], Form()] = None,
) -> VideoResponse:
    """
    Upload a video.

    The file goes to object storage under {id}.{extension}; the returned
    document holds the object URL and an empty comment thread.
    """
    data: Optional[bytes] = None
    filename: Optional[str] = None
    content_type: Optional[str] = None

    if video is not None:
        data = await video.read()
        filename = video.filename
        content_type = video.content_type

        if len(data) > settings.max_upload_size_bytes:
            raise PayloadTooLargeError(settings.max_upload_size_mb)

    logger.info(
        "Video upload received",
        extra={
            "upload_name": filename,
            "content_type": content_type,
            "size_bytes": len(data) if data is not None else 0,
        }
    )

    created = await service.upload_video(
        title=title,
        description=description,
        filename=filename,
        content_type=content_type,
        data=data,
    )
    return _video_response(created)


@router.post(
    "/{video_id}/comments",
    response_model=CommentCreatedResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a comment",
    responses={
        400: {"description": "Missing userId or text"},
        404: {"description": "Video not found"},
        409: {"description": "Video kept changing; retry"},
    },
)
async def add_comment(
    video_id: str,
    service: VideoServiceDep,
    request: Optional[CommentCreateRequest] = None,
) -> CommentCreatedResponse:
    request = request or CommentCreateRequest()

    comment = await service.add_comment(
        video_id,
        user_id=request.userId,
        author_name=request.authorName,
        text=request.text,
    )
    return CommentCreatedResponse(comment=CommentResponse(**comment.to_document()))


@router.delete(
    "/{video_id}/comments/{comment_id}",
    response_model=OkResponse,
    summary="Delete your own comment",
    responses={
        400: {"description": "Missing userId"},
        403: {"description": "Comment belongs to another user"},
        404: {"description": "Video or comment not found"},
        409: {"description": "Video kept changing; retry"},
    },
)
async def delete_comment(
    video_id: str,
    comment_id: str,
    service: VideoServiceDep,
    request: Optional[CommentDeleteRequest] = None,
) -> OkResponse:
    request = request or CommentDeleteRequest()

    await service.delete_comment(video_id, comment_id, user_id=request.userId)
    return OkResponse()
