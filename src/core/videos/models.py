"""
Domain models for videos and their comments.

A Video is one uploaded object plus one JSON document. Comments live
inside the video document, newest first, and have no existence of their
own. These models have no dependencies on FastAPI, Snowflake or boto3;
the document format (camelCase keys) is owned here so every store sees
the same shape.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional
from uuid import uuid4

from .errors import InvalidDocumentError


TITLE_MAX_LENGTH = 120
DESCRIPTION_MAX_LENGTH = 300
FILENAME_MAX_LENGTH = 120
USER_ID_MAX_LENGTH = 80
AUTHOR_NAME_MAX_LENGTH = 40
COMMENT_TEXT_MAX_LENGTH = 800

DEFAULT_AUTHOR_NAME = "Anonymous"
DEFAULT_EXTENSION = "mp4"
DEFAULT_FILENAME = "video"

# Fields returned by the list endpoint. Comments are left out to keep
# the response small.
SUMMARY_FIELDS = ("id", "title", "description", "blobUrl", "blobName", "createdAt")


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds, e.g. 2026-01-02T03:04:05.678Z"""
    now = datetime.now(timezone.utc)
    return now.strftime("%Y-%m-%dT%H:%M:%S.") + f"{now.microsecond // 1000:03d}Z"


def new_id() -> str:
    return str(uuid4())


def clean_text(value: Any, max_length: int) -> str:
    """
    Normalize untrusted input.

    Non-strings become "", strings are stripped and cut to max_length.
    Truncation is silent; callers decide whether "" is acceptable.
    """
    if not isinstance(value, str):
        return ""
    value = value.strip()
    return value[:max_length]


def blob_name_for(video_id: str, filename: Optional[str]) -> str:
    """
    Build the object key for an upload: {video_id}.{extension}

    The extension is whatever follows the last dot of the original
    filename, or mp4 when the name has no dot.
    """
    original = clean_text(filename, FILENAME_MAX_LENGTH) or DEFAULT_FILENAME
    ext = original.rsplit(".", 1)[-1] if "." in original else DEFAULT_EXTENSION
    return f"{video_id}.{ext}"


def _require_str(document: dict, key: str) -> str:
    value = document.get(key)
    if not isinstance(value, str):
        raise InvalidDocumentError(f"missing or non-string field '{key}'")
    return value


def summary_from_document(document: Any) -> dict[str, Any]:
    """
    Check one row of the list projection and return it in field order.

    Same rules as Video.from_document, minus the comments.
    """
    if not isinstance(document, dict):
        raise InvalidDocumentError("video summary is not an object")

    description = document.get("description")
    summary = {key: _require_str(document, key) for key in SUMMARY_FIELDS if key != "description"}
    summary["description"] = description if isinstance(description, str) else ""
    return {key: summary[key] for key in SUMMARY_FIELDS}


@dataclass
class Comment:
    """A single comment, embedded in exactly one Video."""
    user_id: str
    text: str
    author_name: str = DEFAULT_AUTHOR_NAME
    id: str = field(default_factory=new_id)
    created_at: str = field(default_factory=utc_now_iso)

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "authorName": self.author_name,
            "text": self.text,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_document(cls, document: Any) -> "Comment":
        if not isinstance(document, dict):
            raise InvalidDocumentError("comment is not an object")
        return cls(
            id=_require_str(document, "id"),
            user_id=_require_str(document, "userId"),
            author_name=document.get("authorName") or DEFAULT_AUTHOR_NAME,
            text=_require_str(document, "text"),
            created_at=_require_str(document, "createdAt"),
        )


@dataclass
class Video:
    """
    An uploaded video and its comment thread.

    Everything except `comments` is fixed at creation. The id doubles as
    the document store key, so reads and replaces are point operations.
    """
    id: str
    title: str
    blob_name: str
    blob_url: str
    description: str = ""
    created_at: str = field(default_factory=utc_now_iso)
    comments: list[Comment] = field(default_factory=list)

    def add_comment(self, comment: Comment) -> None:
        """New comments go first so the thread stays newest-first."""
        self.comments.insert(0, comment)

    def find_comment(self, comment_id: str) -> Optional[Comment]:
        for comment in self.comments:
            if comment.id == comment_id:
                return comment
        return None

    def remove_comment(self, comment_id: str) -> None:
        self.comments = [c for c in self.comments if c.id != comment_id]

    def summary(self) -> dict[str, Any]:
        """List projection: the document without comments."""
        document = self.to_document()
        return {key: document[key] for key in SUMMARY_FIELDS}

    def to_document(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "blobName": self.blob_name,
            "blobUrl": self.blob_url,
            "createdAt": self.created_at,
            "comments": [c.to_document() for c in self.comments],
        }

    @classmethod
    def from_document(cls, document: Any) -> "Video":
        """
        Rebuild a Video from its stored JSON form.

        Missing required fields are rejected instead of propagated. A
        missing comments array is read as an empty thread.
        """
        if not isinstance(document, dict):
            raise InvalidDocumentError("video document is not an object")

        raw_comments = document.get("comments")
        if not isinstance(raw_comments, list):
            raw_comments = []

        description = document.get("description")
        return cls(
            id=_require_str(document, "id"),
            title=_require_str(document, "title"),
            description=description if isinstance(description, str) else "",
            blob_name=_require_str(document, "blobName"),
            blob_url=_require_str(document, "blobUrl"),
            created_at=_require_str(document, "createdAt"),
            comments=[Comment.from_document(c) for c in raw_comments],
        )
