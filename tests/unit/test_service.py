"""
Unit tests for VideoService.

Uses the in-memory storage client and the real repository on top of the
mock Snowflake connection, so the comment mutation protocol runs with
real version checks.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.core.videos.errors import (
    BackingStoreError,
    CommentConflictError,
    CommentForbiddenError,
    CommentNotFoundError,
    VideoNotFoundError,
    VideoValidationError,
)
from src.core.videos.models import Comment, Video
from src.core.videos.service import VideoService
from src.infrastructure.storage.client import StorageError


async def upload(service: VideoService, **overrides) -> Video:
    fields = dict(
        title="Intro",
        description="First video",
        filename="intro.mp4",
        content_type="video/mp4",
        data=b"\x00\x01video-bytes",
    )
    fields.update(overrides)
    return await service.upload_video(**fields)


class InterleavingStore:
    """
    Repository wrapper where another writer adds a comment right before
    our first replace, i.e. between our read and our write.
    """

    def __init__(self, inner, competing: Comment) -> None:
        self._inner = inner
        self._competing = competing
        self._competitor_done = False
        self.replace_calls = 0

    def __getattr__(self, name):
        return getattr(self._inner, name)

    def replace(self, video_id, document, if_version):
        self.replace_calls += 1
        if not self._competitor_done:
            self._competitor_done = True
            stored = self._inner.read(video_id)
            video = Video.from_document(stored.document)
            video.add_comment(self._competing)
            assert self._inner.replace(video_id, video.to_document(), if_version=stored.version)
        return self._inner.replace(video_id, document, if_version)


# ---------------------------------------------------------------------------
# Upload
# ---------------------------------------------------------------------------

class TestUploadVideo:

    @pytest.mark.asyncio
    async def test_upload_stores_object_and_document(self, service, storage, repository):
        video = await upload(service)

        assert video.blob_name == f"{video.id}.mp4"
        assert video.blob_name in storage.objects
        assert video.blob_url == f"mock://storage/videos/{video.blob_name}"
        assert video.comments == []

        stored = repository.read(video.id)
        assert stored.document == video.to_document()

    @pytest.mark.asyncio
    async def test_upload_sends_content_type_and_metadata(self, service, storage):
        video = await upload(service, filename="  holiday.webm ", content_type="video/webm")

        data, content_type, metadata = storage.objects[video.blob_name]
        assert content_type == "video/webm"
        assert metadata == {"title": "Intro", "originalName": "holiday.webm"}
        assert video.blob_name.endswith(".webm")

    @pytest.mark.asyncio
    async def test_extension_defaults_to_mp4(self, service):
        video = await upload(service, filename="recording")

        assert video.blob_name == f"{video.id}.mp4"

    @pytest.mark.asyncio
    async def test_title_is_truncated_to_120(self, service):
        video = await upload(service, title="t" * 200, description="d" * 400)

        assert len(video.title) == 120
        assert len(video.description) == 300

    @pytest.mark.asyncio
    async def test_missing_title_rejected(self, service, storage):
        with pytest.raises(VideoValidationError, match="Title"):
            await upload(service, title="   ")
        assert storage.objects == {}

    @pytest.mark.asyncio
    async def test_missing_file_rejected(self, service):
        with pytest.raises(VideoValidationError, match="file"):
            await upload(service, filename=None, data=None, content_type=None)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("content_type", ["image/png", "application/json", None])
    async def test_non_video_rejected(self, service, content_type):
        with pytest.raises(VideoValidationError, match="valid video"):
            await upload(service, content_type=content_type)

    @pytest.mark.asyncio
    async def test_storage_failure_is_generic_and_creates_nothing(self, repository):
        storage = MagicMock()
        storage.upload_object = AsyncMock(side_effect=StorageError("AccessDenied: secret detail"))
        service = VideoService(storage=storage, documents=repository)

        with pytest.raises(BackingStoreError) as exc_info:
            await upload(service)

        assert exc_info.value.message == "Upload failed."
        assert "secret" not in str(exc_info.value)
        assert repository.query_all() == []


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

class TestReads:

    @pytest.mark.asyncio
    async def test_get_missing_video(self, service):
        with pytest.raises(VideoNotFoundError):
            await service.get_video("nope")

    @pytest.mark.asyncio
    async def test_list_is_newest_first_without_comments(self, service, repository):
        for i, created_at in enumerate(["2026-01-01T00:00:00.000Z", "2026-03-01T00:00:00.000Z"]):
            video = Video(
                id=f"v{i}", title=f"t{i}", blob_name=f"v{i}.mp4",
                blob_url=f"u{i}", created_at=created_at,
            )
            video.add_comment(Comment(user_id="u", text="hi"))
            repository.create(video.to_document())

        items = await service.list_videos()

        assert [item["id"] for item in items] == ["v1", "v0"]
        assert all("comments" not in item for item in items)

    @pytest.mark.asyncio
    async def test_repeated_reads_are_identical(self, service):
        video = await upload(service)

        first = await service.get_video(video.id)
        second = await service.get_video(video.id)

        assert first.to_document() == second.to_document()

    @pytest.mark.asyncio
    async def test_corrupt_document_is_generic_store_error(self, service, repository):
        video = await upload(service)
        document = video.to_document()
        del document["title"]
        repository.replace(video.id, document, if_version=1)

        with pytest.raises(BackingStoreError) as exc_info:
            await service.get_video(video.id)

        assert exc_info.value.message == "Failed to fetch video."
        assert "title" not in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_corrupt_row_fails_list(self, service, repository):
        video = await upload(service)
        document = video.to_document()
        document["blobUrl"] = None
        repository.replace(video.id, document, if_version=1)

        with pytest.raises(BackingStoreError) as exc_info:
            await service.list_videos()

        assert exc_info.value.message == "Failed to fetch videos."

    @pytest.mark.asyncio
    async def test_corrupt_document_blocks_comment(self, service, repository):
        video = await upload(service)
        document = video.to_document()
        del document["createdAt"]
        repository.replace(video.id, document, if_version=1)

        with pytest.raises(BackingStoreError) as exc_info:
            await service.add_comment(video.id, user_id="u1", author_name=None, text="hi")

        assert exc_info.value.message == "Failed to add comment."


# ---------------------------------------------------------------------------
# Comment Mutations
# ---------------------------------------------------------------------------

class TestAddComment:

    @pytest.mark.asyncio
    async def test_new_comment_is_first(self, service):
        video = await upload(service)

        await service.add_comment(video.id, "u1", "Ann", "first")
        latest = await service.add_comment(video.id, "u2", None, "second")

        reloaded = await service.get_video(video.id)
        assert reloaded.comments[0].id == latest.id
        assert [c.text for c in reloaded.comments] == ["second", "first"]
        assert reloaded.comments[0].author_name == "Anonymous"

    @pytest.mark.asyncio
    async def test_fields_are_truncated(self, service):
        video = await upload(service)

        comment = await service.add_comment(video.id, "u" * 100, "a" * 50, "x" * 900)

        assert len(comment.user_id) == 80
        assert len(comment.author_name) == 40
        assert len(comment.text) == 800

    @pytest.mark.asyncio
    @pytest.mark.parametrize("user_id,text,message", [
        ("", "hi", "userId"),
        (None, "hi", "userId"),
        ("u1", "   ", "text"),
        ("u1", 123, "text"),
    ])
    async def test_required_fields(self, service, user_id, text, message):
        video = await upload(service)

        with pytest.raises(VideoValidationError, match=message):
            await service.add_comment(video.id, user_id, None, text)

    @pytest.mark.asyncio
    async def test_missing_video(self, service):
        with pytest.raises(VideoNotFoundError):
            await service.add_comment("nope", "u1", None, "hi")

    @pytest.mark.asyncio
    async def test_other_fields_untouched(self, service):
        video = await upload(service)

        await service.add_comment(video.id, "u1", None, "hi")

        reloaded = (await service.get_video(video.id)).to_document()
        original = video.to_document()
        for key in ("id", "title", "description", "blobName", "blobUrl", "createdAt"):
            assert reloaded[key] == original[key]


class TestDeleteComment:

    @pytest.mark.asyncio
    async def test_owner_can_delete(self, service):
        video = await upload(service)
        keep = await service.add_comment(video.id, "u2", None, "keep")
        target = await service.add_comment(video.id, "u1", None, "remove me")

        await service.delete_comment(video.id, target.id, "u1")

        reloaded = await service.get_video(video.id)
        assert [c.id for c in reloaded.comments] == [keep.id]

    @pytest.mark.asyncio
    async def test_other_user_is_forbidden(self, service):
        video = await upload(service)
        comment = await service.add_comment(video.id, "u1", None, "mine")
        before = (await service.get_video(video.id)).to_document()

        with pytest.raises(CommentForbiddenError):
            await service.delete_comment(video.id, comment.id, "u2")

        assert (await service.get_video(video.id)).to_document() == before

    @pytest.mark.asyncio
    async def test_user_id_comparison_is_exact(self, service):
        video = await upload(service)
        comment = await service.add_comment(video.id, "User1", None, "mine")

        with pytest.raises(CommentForbiddenError):
            await service.delete_comment(video.id, comment.id, "user1")

    @pytest.mark.asyncio
    async def test_missing_comment(self, service):
        video = await upload(service)

        with pytest.raises(CommentNotFoundError):
            await service.delete_comment(video.id, "nope", "u1")

    @pytest.mark.asyncio
    async def test_missing_video(self, service):
        with pytest.raises(VideoNotFoundError):
            await service.delete_comment("nope", "c1", "u1")

    @pytest.mark.asyncio
    async def test_user_id_required(self, service):
        video = await upload(service)

        with pytest.raises(VideoValidationError, match="userId"):
            await service.delete_comment(video.id, "c1", "  ")


# ---------------------------------------------------------------------------
# Concurrency
# ---------------------------------------------------------------------------

class TestConcurrentMutations:
    """
    Comment writes are conditional on the version that was read, so a
    concurrent writer can't be silently overwritten.
    """

    @pytest.mark.asyncio
    async def test_interleaved_add_keeps_both_comments(self, storage, repository):
        seed = VideoService(storage=storage, documents=repository)
        video = await upload(seed)

        competing = Comment(user_id="u2", text="from another request")
        store = InterleavingStore(repository, competing)
        service = VideoService(storage=storage, documents=store)

        ours = await service.add_comment(video.id, "u1", None, "ours")

        reloaded = await seed.get_video(video.id)
        assert [c.id for c in reloaded.comments] == [ours.id, competing.id]
        assert store.replace_calls == 2

    @pytest.mark.asyncio
    async def test_interleaved_delete_keeps_concurrent_add(self, storage, repository):
        seed = VideoService(storage=storage, documents=repository)
        video = await upload(seed)
        target = await seed.add_comment(video.id, "u1", None, "delete me")

        competing = Comment(user_id="u2", text="added meanwhile")
        service = VideoService(storage=storage, documents=InterleavingStore(repository, competing))

        await service.delete_comment(video.id, target.id, "u1")

        reloaded = await seed.get_video(video.id)
        assert [c.id for c in reloaded.comments] == [competing.id]

    @pytest.mark.asyncio
    async def test_gives_up_after_bounded_attempts(self, storage, repository):
        seed = VideoService(storage=storage, documents=repository)
        video = await upload(seed)

        always_stale = MagicMock(wraps=repository)
        always_stale.replace.return_value = False
        service = VideoService(storage=storage, documents=always_stale, comment_write_attempts=3)

        with pytest.raises(CommentConflictError) as exc_info:
            await service.add_comment(video.id, "u1", None, "hi")

        assert exc_info.value.attempts == 3
        assert always_stale.replace.call_count == 3
        assert (await seed.get_video(video.id)).comments == []

    def test_attempts_must_be_positive(self, storage, repository):
        with pytest.raises(ValueError):
            VideoService(storage=storage, documents=repository, comment_write_attempts=0)
