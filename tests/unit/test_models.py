"""
Unit tests for the video and comment domain models.

These tests verify the core business rules without touching
external services (no API calls, no database, no object storage).
"""

import pytest

from src.core.videos.errors import InvalidDocumentError
from src.core.videos.models import (
    Comment,
    Video,
    blob_name_for,
    clean_text,
    summary_from_document,
    utc_now_iso,
)


def make_video(**overrides) -> Video:
    fields = dict(
        id="vid-1",
        title="Intro",
        description="First video",
        blob_name="vid-1.mp4",
        blob_url="mock://storage/videos/vid-1.mp4",
        created_at="2026-01-01T00:00:00.000Z",
    )
    fields.update(overrides)
    return Video(**fields)


# ---------------------------------------------------------------------------
# Input Cleaning
# ---------------------------------------------------------------------------

class TestCleanText:
    """Tests for truncation of untrusted strings."""

    def test_strips_and_truncates(self):
        """Whitespace is trimmed before the length cut."""
        assert clean_text("   hello   ", 3) == "hel"

    def test_title_of_200_characters_becomes_120(self):
        assert len(clean_text("x" * 200, 120)) == 120

    def test_non_strings_become_empty(self):
        """Numbers, lists and None are treated as absent."""
        assert clean_text(None, 10) == ""
        assert clean_text(42, 10) == ""
        assert clean_text(["a"], 10) == ""

    def test_short_strings_unchanged(self):
        assert clean_text("ok", 10) == "ok"


class TestBlobName:
    """Tests for object key derivation."""

    def test_uses_original_extension(self):
        assert blob_name_for("abc", "clip.mov") == "abc.mov"

    def test_uses_last_extension(self):
        assert blob_name_for("abc", "archive.tar.webm") == "abc.webm"

    def test_defaults_to_mp4_without_extension(self):
        assert blob_name_for("abc", "clip") == "abc.mp4"

    def test_defaults_to_mp4_without_filename(self):
        """A missing filename is read as 'video', which has no dot."""
        assert blob_name_for("abc", None) == "abc.mp4"
        assert blob_name_for("abc", "") == "abc.mp4"


def test_utc_now_iso_has_millisecond_precision():
    stamp = utc_now_iso()

    assert stamp.endswith("Z")
    assert len(stamp) == len("2026-01-01T00:00:00.000Z")


# ---------------------------------------------------------------------------
# Video Aggregate
# ---------------------------------------------------------------------------

class TestVideoComments:
    """Tests for the embedded comment thread."""

    def test_new_video_has_no_comments(self):
        assert make_video().comments == []

    def test_add_comment_prepends(self):
        """The thread is newest-first."""
        video = make_video()
        first = Comment(user_id="u1", text="first")
        second = Comment(user_id="u2", text="second")

        video.add_comment(first)
        video.add_comment(second)

        assert [c.id for c in video.comments] == [second.id, first.id]

    def test_remove_comment_removes_only_that_comment(self):
        video = make_video()
        keep_a = Comment(user_id="u1", text="a")
        target = Comment(user_id="u1", text="b")
        keep_c = Comment(user_id="u2", text="c")
        for comment in (keep_c, target, keep_a):
            video.add_comment(comment)

        video.remove_comment(target.id)

        assert [c.id for c in video.comments] == [keep_a.id, keep_c.id]

    def test_find_comment_returns_none_when_absent(self):
        assert make_video().find_comment("missing") is None

    def test_comment_defaults(self):
        comment = Comment(user_id="u1", text="hi")

        assert comment.author_name == "Anonymous"
        assert comment.id
        assert comment.created_at.endswith("Z")


class TestVideoDocuments:
    """Tests for the stored JSON form."""

    def test_document_uses_camel_case_keys(self):
        document = make_video().to_document()

        assert set(document) == {
            "id", "title", "description", "blobName", "blobUrl", "createdAt", "comments",
        }

    def test_summary_excludes_comments(self):
        video = make_video()
        video.add_comment(Comment(user_id="u1", text="hi"))

        summary = video.summary()

        assert "comments" not in summary
        assert summary["id"] == "vid-1"

    def test_document_survives_reload(self):
        """from_document(to_document(v)) gives back an equal video."""
        video = make_video()
        video.add_comment(Comment(user_id="u1", author_name="Ann", text="hi"))

        assert Video.from_document(video.to_document()) == video

    def test_missing_comments_read_as_empty(self):
        document = make_video().to_document()
        del document["comments"]

        assert Video.from_document(document).comments == []

    def test_missing_description_read_as_empty(self):
        document = make_video().to_document()
        del document["description"]

        assert Video.from_document(document).description == ""

    @pytest.mark.parametrize("field", ["id", "title", "blobName", "blobUrl", "createdAt"])
    def test_rejects_missing_required_field(self, field):
        document = make_video().to_document()
        del document[field]

        with pytest.raises(InvalidDocumentError) as exc_info:
            Video.from_document(document)

        assert field in exc_info.value.reason
        assert exc_info.value.message == "Stored video data is invalid."

    def test_rejects_comment_without_user(self):
        document = make_video().to_document()
        document["comments"] = [{"id": "c1", "text": "hi", "createdAt": "x"}]

        with pytest.raises(InvalidDocumentError) as exc_info:
            Video.from_document(document)

        assert "userId" in exc_info.value.reason

    def test_rejects_non_object(self):
        with pytest.raises(InvalidDocumentError):
            Video.from_document(["not", "a", "document"])


class TestSummaryFromDocument:

    def test_returns_list_fields_in_order(self):
        document = make_video().summary()

        assert list(summary_from_document(document)) == [
            "id", "title", "description", "blobUrl", "blobName", "createdAt",
        ]

    def test_missing_description_read_as_empty(self):
        document = make_video().summary()
        del document["description"]

        assert summary_from_document(document)["description"] == ""

    def test_rejects_missing_title(self):
        document = make_video().summary()
        del document["title"]

        with pytest.raises(InvalidDocumentError) as exc_info:
            summary_from_document(document)

        assert "title" in exc_info.value.reason
