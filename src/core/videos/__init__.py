"""
Video and comment logic.

Contains the domain models, the error taxonomy and the service that
implements uploads and the comment read-modify-write protocol.
"""

from .errors import (
    BackingStoreError,
    CommentConflictError,
    CommentForbiddenError,
    CommentNotFoundError,
    InvalidDocumentError,
    PayloadTooLargeError,
    VideoNotFoundError,
    VideoServiceError,
    VideoValidationError,
)
from .models import Comment, Video
from .service import ObjectStorage, StoredDocument, VideoDocumentStore, VideoService

__all__ = [
    "BackingStoreError",
    "CommentConflictError",
    "CommentForbiddenError",
    "CommentNotFoundError",
    "InvalidDocumentError",
    "PayloadTooLargeError",
    "VideoNotFoundError",
    "VideoServiceError",
    "VideoValidationError",
    "Comment",
    "Video",
    "ObjectStorage",
    "StoredDocument",
    "VideoDocumentStore",
    "VideoService",
]
