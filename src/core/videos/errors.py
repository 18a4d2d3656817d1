"""
Exceptions raised by the video service.

Each class corresponds to one kind of failure a caller can observe.
Route handlers never build error responses themselves: main.create_app
registers a single handler that maps these to HTTP status codes.
"""


class VideoServiceError(Exception):
    """Base class for all video service failures."""

    status_code: int = 500

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class VideoValidationError(VideoServiceError):
    """A required field is missing or malformed."""

    status_code = 400


class VideoNotFoundError(VideoServiceError):
    """Raised when a requested video doesn't exist."""

    status_code = 404

    def __init__(self, video_id: str) -> None:
        self.video_id = video_id
        super().__init__("Video not found.")


class CommentNotFoundError(VideoServiceError):
    """Raised when a comment id is not present on the video."""

    status_code = 404

    def __init__(self, video_id: str, comment_id: str) -> None:
        self.video_id = video_id
        self.comment_id = comment_id
        super().__init__("Comment not found.")


class CommentForbiddenError(VideoServiceError):
    """The caller's userId doesn't own the comment."""

    status_code = 403

    def __init__(self) -> None:
        super().__init__("You can delete only your own comments.")


class CommentConflictError(VideoServiceError):
    """
    Concurrent writers kept replacing the video document.

    Raised after every optimistic-concurrency attempt lost the race.
    The client may simply resend the request.
    """

    status_code = 409

    def __init__(self, video_id: str, attempts: int) -> None:
        self.video_id = video_id
        self.attempts = attempts
        super().__init__("The video was modified concurrently. Please retry.")


class BackingStoreError(VideoServiceError):
    """
    Object or document store failure.

    The message is safe to show to clients. The underlying error is
    logged where it is caught and kept only as __cause__.
    """

    status_code = 500


class InvalidDocumentError(BackingStoreError):
    """
    A stored document is missing required fields.

    `reason` names the offending field for the server log. The message
    stays generic because it can reach clients.
    """

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__("Stored video data is invalid.")


class PayloadTooLargeError(VideoServiceError):
    """Request body or uploaded file exceeds the configured ceiling."""

    status_code = 413

    def __init__(self, limit_mb: int) -> None:
        self.limit_mb = limit_mb
        super().__init__(f"Request too large. Maximum size: {limit_mb}MB")
