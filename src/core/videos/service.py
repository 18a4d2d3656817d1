"""
Video service: uploads, reads and comment mutations.

Every comment add or delete is a read-modify-write of the whole video
document:

    read video (with its version) -> change comments in memory -> replace

The replace is conditional on the version that was read. If another
request replaced the document in between, the replace reports a
conflict and the whole cycle runs again with fresh data, up to
`comment_write_attempts` times. After that the caller gets
CommentConflictError (HTTP 409). Two concurrent add-comment calls on the
same video therefore both survive; neither silently overwrites the other.

The service doesn't know which object store or document store it talks
to. Both are reached through the protocols below.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Generator, Optional, Protocol, TypeVar

from .errors import (
    BackingStoreError,
    CommentConflictError,
    CommentForbiddenError,
    CommentNotFoundError,
    InvalidDocumentError,
    VideoNotFoundError,
    VideoServiceError,
    VideoValidationError,
)
from .models import (
    AUTHOR_NAME_MAX_LENGTH,
    COMMENT_TEXT_MAX_LENGTH,
    DEFAULT_AUTHOR_NAME,
    DEFAULT_FILENAME,
    DESCRIPTION_MAX_LENGTH,
    FILENAME_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    USER_ID_MAX_LENGTH,
    Comment,
    Video,
    blob_name_for,
    clean_text,
    new_id,
    summary_from_document,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_CONTENT_TYPE = "application/octet-stream"
VIDEO_CONTENT_TYPE_PREFIX = "video/"
DEFAULT_COMMENT_WRITE_ATTEMPTS = 3


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class ObjectStorage(Protocol):
    """Where uploaded video bytes go."""

    async def ensure_bucket(self) -> None:
        """Create the bucket if it doesn't exist yet."""
        ...

    async def upload_object(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str],
    ) -> str:
        """Store bytes under key and return a durable URL."""
        ...


@dataclass
class StoredDocument:
    """A document as read from the store, with its concurrency token."""
    document: dict[str, Any]
    version: int


class VideoDocumentStore(Protocol):
    """
    Point reads/replaces of video documents keyed (and partitioned) by id.

    `read` returns None when the id doesn't exist; that is an expected
    outcome, not an error. `replace` returns False when `if_version` no
    longer matches the stored version.
    """

    def create_if_absent(self) -> None: ...

    def create(self, document: dict[str, Any]) -> None: ...

    def read(self, video_id: str) -> Optional[StoredDocument]: ...

    def replace(
        self,
        video_id: str,
        document: dict[str, Any],
        if_version: int,
    ) -> bool: ...

    def query_all(self, order_field: str, direction: str) -> list[dict[str, Any]]: ...


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class VideoService:
    """
    Application service behind the /api/videos endpoints.

    Stateless apart from the two store handles, which are created once at
    startup and shared by all requests.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        documents: VideoDocumentStore,
        comment_write_attempts: int = DEFAULT_COMMENT_WRITE_ATTEMPTS,
    ) -> None:
        if comment_write_attempts < 1:
            raise ValueError("comment_write_attempts must be at least 1")
        self._storage = storage
        self._documents = documents
        self._comment_write_attempts = comment_write_attempts

    async def list_videos(self) -> list[dict[str, Any]]:
        """All videos, newest first, without comments."""
        with self._backing_store("Failed to fetch videos."):
            rows = self._documents.query_all("createdAt", "DESC")
            return [summary_from_document(row) for row in rows]

    async def get_video(self, video_id: str) -> Video:
        with self._backing_store("Failed to fetch video.", video_id=video_id):
            stored = self._documents.read(video_id)
            if stored is None:
                raise VideoNotFoundError(video_id)
            return Video.from_document(stored.document)

    async def upload_video(
        self,
        title: Any,
        description: Any,
        filename: Optional[str],
        content_type: Optional[str],
        data: Optional[bytes],
    ) -> Video:
        """
        Store the file in object storage and create its document.

        The object key is derived from a freshly generated video id, so
        uploads never collide.
        """
        title = clean_text(title, TITLE_MAX_LENGTH)
        description = clean_text(description, DESCRIPTION_MAX_LENGTH)

        if not title:
            raise VideoValidationError("Title is required.")
        if data is None or (not filename and not data):
            raise VideoValidationError("Video file is required.")

        mime = content_type or DEFAULT_CONTENT_TYPE
        if not mime.startswith(VIDEO_CONTENT_TYPE_PREFIX):
            raise VideoValidationError("Please upload a valid video file.")

        video_id = new_id()
        original_name = clean_text(filename, FILENAME_MAX_LENGTH) or DEFAULT_FILENAME
        blob_name = blob_name_for(video_id, original_name)

        with self._backing_store("Upload failed.", video_id=video_id):
            blob_url = await self._storage.upload_object(
                blob_name,
                data,
                content_type=mime,
                metadata={"title": title, "originalName": original_name},
            )

            video = Video(
                id=video_id,
                title=title,
                description=description,
                blob_name=blob_name,
                blob_url=blob_url,
            )
            self._documents.create(video.to_document())

        logger.info(
            "Video uploaded",
            extra={
                "video_id": video_id,
                "blob_name": blob_name,
                "size_bytes": len(data),
                "content_type": mime,
            }
        )

        return video

    async def add_comment(
        self,
        video_id: str,
        user_id: Any,
        author_name: Any,
        text: Any,
    ) -> Comment:
        """Prepend a new comment to the video's thread."""
        user_id = clean_text(user_id, USER_ID_MAX_LENGTH)
        author_name = clean_text(author_name, AUTHOR_NAME_MAX_LENGTH) or DEFAULT_AUTHOR_NAME
        text = clean_text(text, COMMENT_TEXT_MAX_LENGTH)

        if not user_id:
            raise VideoValidationError("userId is required.")
        if not text:
            raise VideoValidationError("Comment text is required.")

        # Built once so a retried write stores the same id and timestamp
        comment = Comment(user_id=user_id, author_name=author_name, text=text)

        def prepend(video: Video) -> Comment:
            video.add_comment(comment)
            return comment

        created = self._mutate(video_id, prepend, "Failed to add comment.")

        logger.info(
            "Comment added",
            extra={"video_id": video_id, "comment_id": comment.id, "user_id": user_id}
        )
        return created

    async def delete_comment(
        self,
        video_id: str,
        comment_id: str,
        user_id: Any,
    ) -> None:
        """
        Remove a comment, provided the caller owns it.

        Ownership is plain string equality on userId. A mismatch leaves
        the thread untouched.
        """
        user_id = clean_text(user_id, USER_ID_MAX_LENGTH)
        if not user_id:
            raise VideoValidationError("userId is required.")

        def remove(video: Video) -> None:
            target = video.find_comment(comment_id)
            if target is None:
                raise CommentNotFoundError(video_id, comment_id)
            if target.user_id != user_id:
                logger.warning(
                    "Comment delete refused",
                    extra={"video_id": video_id, "comment_id": comment_id}
                )
                raise CommentForbiddenError()
            video.remove_comment(comment_id)

        self._mutate(video_id, remove, "Failed to delete comment.")

        logger.info(
            "Comment deleted",
            extra={"video_id": video_id, "comment_id": comment_id}
        )

    # -----------------------------------------------------------------------
    # Private Methods
    # -----------------------------------------------------------------------

    def _mutate(
        self,
        video_id: str,
        change: Callable[[Video], T],
        failure_message: str,
    ) -> T:
        """
        Run read -> change -> conditional replace until a replace wins.

        `change` may raise (not found, forbidden); that ends the cycle
        without writing anything.
        """
        for attempt in range(1, self._comment_write_attempts + 1):
            with self._backing_store(failure_message, video_id=video_id):
                stored = self._documents.read(video_id)
                if stored is None:
                    raise VideoNotFoundError(video_id)
                video = Video.from_document(stored.document)

            result = change(video)

            with self._backing_store(failure_message, video_id=video_id):
                replaced = self._documents.replace(
                    video_id,
                    video.to_document(),
                    if_version=stored.version,
                )
            if replaced:
                return result

            logger.warning(
                "Video document changed during update, retrying",
                extra={
                    "video_id": video_id,
                    "attempt": attempt,
                    "max_attempts": self._comment_write_attempts,
                }
            )

        raise CommentConflictError(video_id, self._comment_write_attempts)

    @contextmanager
    def _backing_store(self, message: str, **context: Any) -> Generator[None, None, None]:
        """
        Turn adapter failures and malformed stored documents into
        BackingStoreError(message). The detail goes to the log only.
        """
        try:
            yield
        except InvalidDocumentError as e:
            logger.error(
                message,
                extra={**context, "error": f"Invalid video document: {e.reason}"},
            )
            raise BackingStoreError(message) from e
        except VideoServiceError:
            raise
        except Exception as e:
            logger.error(
                message,
                extra={**context, "error": str(e)},
                exc_info=e,
            )
            raise BackingStoreError(message) from e
