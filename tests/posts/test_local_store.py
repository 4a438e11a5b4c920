"""Tests for LocalPostStore — JSON-backed post store."""

import asyncio
import json
from pathlib import Path

import pytest
from postdesk.errors import NotFound, StoreRejected, StoreUnavailable
from postdesk.posts.manager import PostCollectionManager
from postdesk.posts.models import NewPost, PostFields, PostStatus
from postdesk.posts.notifications import Notifier, RecordingSink
from postdesk.posts.outcomes import OutcomeKind
from postdesk.posts.session import StaticSession
from postdesk.posts.store import STORE_FILENAME, LocalPostStore, PostStore


def _new(owner: str = "u1", title: str = "Hello", **kwargs: object) -> NewPost:
    return NewPost(owner_id=owner, title=title, content="World", **kwargs)  # type: ignore[arg-type]


class TestInsert:
    def test_assigns_id_and_timestamps(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        post = asyncio.run(store.insert(_new()))

        assert post.id
        assert post.owner_id == "u1"
        assert post.status == PostStatus.DRAFT
        assert post.created_at == post.updated_at

    def test_unique_ids(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        a = asyncio.run(store.insert(_new()))
        b = asyncio.run(store.insert(_new()))
        assert a.id != b.id

    def test_persists_to_disk(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        asyncio.run(store.insert(_new()))

        data = json.loads((tmp_path / STORE_FILENAME).read_text(encoding="utf-8"))
        assert len(data["rows"]) == 1
        assert data["rows"][0]["user_id"] == "u1"
        assert data["rows"][0]["status"] == "draft"

    def test_reloads_from_disk(self, tmp_path: Path):
        asyncio.run(LocalPostStore(tmp_path).insert(_new(title="Saved")))

        posts = asyncio.run(LocalPostStore(tmp_path).list("u1"))

        assert [p.title for p in posts] == ["Saved"]

    def test_requires_owner(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        with pytest.raises(StoreRejected):
            asyncio.run(store.insert(_new(owner="")))


class TestList:
    def test_empty(self, tmp_path: Path):
        assert asyncio.run(LocalPostStore(tmp_path).list("u1")) == []

    def test_newest_first_and_owner_scoped(self, tmp_path: Path, monkeypatch):
        times = iter(f"2025-01-01T00:00:0{i}+00:00" for i in range(3))
        monkeypatch.setattr(LocalPostStore, "_now", staticmethod(lambda: next(times)))
        store = LocalPostStore(tmp_path)
        first = asyncio.run(store.insert(_new(title="first")))
        asyncio.run(store.insert(_new(owner="u2", title="other")))
        second = asyncio.run(store.insert(_new(title="second")))

        posts = asyncio.run(store.list("u1"))

        assert [p.id for p in posts] == [second.id, first.id]

    def test_corrupt_file_starts_fresh(self, tmp_path: Path):
        (tmp_path / STORE_FILENAME).write_text("{not json", encoding="utf-8")
        store = LocalPostStore(tmp_path)
        assert asyncio.run(store.list("u1")) == []


class TestUpdate:
    def test_partial_update_refreshes_timestamp(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        post = asyncio.run(store.insert(_new()))

        updated = asyncio.run(store.update(post.id, PostFields(status=PostStatus.PUBLISHED)))

        assert updated.status == PostStatus.PUBLISHED
        assert updated.title == "Hello"
        assert updated.created_at == post.created_at
        assert updated.updated_at >= post.updated_at

    def test_missing_id(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        with pytest.raises(NotFound):
            asyncio.run(store.update("nope", PostFields(title="x")))


class TestDelete:
    def test_removes_row(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        post = asyncio.run(store.insert(_new()))

        asyncio.run(store.delete(post.id))

        assert asyncio.run(store.list("u1")) == []

    def test_missing_id(self, tmp_path: Path):
        store = LocalPostStore(tmp_path)
        with pytest.raises(NotFound):
            asyncio.run(store.delete("nope"))


class TestMalformedRows:
    def _write_rows(self, tmp_path: Path, rows: list[dict]) -> None:
        (tmp_path / STORE_FILENAME).write_text(json.dumps({"rows": rows}), encoding="utf-8")

    def test_list_rejects_incomplete_row(self, tmp_path: Path):
        self._write_rows(tmp_path, [{"id": "x", "user_id": "u1", "title": "t"}])
        with pytest.raises(StoreRejected, match="'x'"):
            asyncio.run(LocalPostStore(tmp_path).list("u1"))

    def test_other_owners_rows_are_not_parsed(self, tmp_path: Path):
        self._write_rows(tmp_path, [{"id": "x", "user_id": "u2", "title": "t"}])
        assert asyncio.run(LocalPostStore(tmp_path).list("u1")) == []

    def test_manager_load_reports_failure(self, tmp_path: Path):
        self._write_rows(tmp_path, [{"id": "x", "user_id": "u1", "title": "t"}])
        sink = RecordingSink()
        manager = PostCollectionManager(
            LocalPostStore(tmp_path), StaticSession("u1"), Notifier([sink])
        )

        outcome = asyncio.run(manager.load())

        assert outcome.kind == OutcomeKind.LOAD_FAILED
        assert outcome.cause == "store_rejected"
        assert manager.posts == ()
        assert sink.errors == [(OutcomeKind.LOAD_FAILED, "Could not load posts")]


class TestFailedSave:
    @pytest.fixture
    def broken_disk(self, monkeypatch):
        def _fail(self, *args, **kwargs):
            raise OSError("disk full")

        return lambda: monkeypatch.setattr(Path, "write_text", _fail)

    def test_insert_not_visible(self, tmp_path: Path, broken_disk):
        store = LocalPostStore(tmp_path)
        kept = asyncio.run(store.insert(_new(title="kept")))
        broken_disk()

        with pytest.raises(StoreUnavailable):
            asyncio.run(store.insert(_new(title="lost")))

        assert [p.id for p in asyncio.run(store.list("u1"))] == [kept.id]

    def test_update_not_visible(self, tmp_path: Path, broken_disk):
        store = LocalPostStore(tmp_path)
        post = asyncio.run(store.insert(_new()))
        broken_disk()

        with pytest.raises(StoreUnavailable):
            asyncio.run(store.update(post.id, PostFields(title="changed")))

        assert asyncio.run(store.list("u1")) == [post]

    def test_delete_not_applied(self, tmp_path: Path, broken_disk):
        store = LocalPostStore(tmp_path)
        post = asyncio.run(store.insert(_new()))
        broken_disk()

        with pytest.raises(StoreUnavailable):
            asyncio.run(store.delete(post.id))

        assert asyncio.run(store.list("u1")) == [post]


def test_satisfies_protocol(tmp_path: Path):
    assert isinstance(LocalPostStore(tmp_path), PostStore)
