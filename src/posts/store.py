"""Post stores — the remote persisted collection behind the manager.

``PostStore`` is the async capability the collection manager consumes.
``LocalPostStore`` persists every post in a single JSON file, loaded on
init and saved after every write; the Supabase client lives in
``postdesk.integrations.supabase``.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field, ValidationError

from postdesk.errors import NotFound, StoreRejected, StoreUnavailable
from postdesk.posts.models import NewPost, Post, PostFields

logger = logging.getLogger(__name__)

STORE_FILENAME = ".postdesk-posts.json"

# Alias to avoid shadowing by PostStore.list method
_list = list


@runtime_checkable
class PostStore(Protocol):
    """Owner-scoped CRUD over the ``posts`` collection.

    Every method may raise a :class:`~postdesk.errors.StoreError`.
    """

    async def list(self, owner_id: str) -> _list[Post]: ...

    async def insert(self, new_post: NewPost) -> Post: ...

    async def update(self, post_id: str, fields: PostFields) -> Post: ...

    async def delete(self, post_id: str) -> None: ...


class _StoreData(BaseModel):
    """Internal wrapper for JSON serialization."""

    rows: _list[dict[str, Any]] = Field(default_factory=_list)


class LocalPostStore:
    """JSON-backed post store for offline use and tests."""

    def __init__(self, output_dir: Path) -> None:
        self._path = Path(output_dir) / STORE_FILENAME
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    # ── Private helpers ──────────────────────────────────────────

    def _load(self) -> _StoreData:
        if not self._path.exists():
            return _StoreData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _StoreData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError):
            logger.warning("Corrupt post store at %s, starting fresh", self._path)
            return _StoreData()

    def _save(self, rows: _list[dict[str, Any]]) -> None:
        """Write *rows* to disk, then make them the current rows."""
        data = _StoreData(rows=rows)
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(data.model_dump_json(indent=2), encoding="utf-8")
        except OSError as exc:
            raise StoreUnavailable(f"Could not write {self._path}: {exc}") from exc
        self._data = data

    @staticmethod
    def _parse(row: dict[str, Any]) -> Post:
        try:
            return Post.model_validate(row)
        except ValidationError as exc:
            raise StoreRejected(f"Malformed post row {row.get('id')!r}: {exc}") from exc

    def _index(self, post_id: str) -> int:
        for i, row in enumerate(self._data.rows):
            if row.get("id") == post_id:
                return i
        raise NotFound(post_id)

    @staticmethod
    def _now() -> str:
        return datetime.now(tz=UTC).isoformat()

    # ── PostStore ────────────────────────────────────────────────

    async def list(self, owner_id: str) -> _list[Post]:
        """Return the owner's posts, newest first (stable on ties)."""
        posts = [self._parse(row) for row in self._data.rows if row.get("user_id") == owner_id]
        return sorted(posts, key=lambda p: p.created_at, reverse=True)

    async def insert(self, new_post: NewPost) -> Post:
        if not new_post.owner_id:
            raise StoreRejected("user_id is required")
        now = self._now()
        row = {
            "id": str(uuid.uuid4()),
            **new_post.to_row(),
            "created_at": now,
            "updated_at": now,
        }
        post = self._parse(row)
        self._save([*self._data.rows, row])
        return post

    async def update(self, post_id: str, fields: PostFields) -> Post:
        index = self._index(post_id)
        row = {**self._data.rows[index], **fields.as_update(), "updated_at": self._now()}
        post = self._parse(row)
        rows = _list(self._data.rows)
        rows[index] = row
        self._save(rows)
        return post

    async def delete(self, post_id: str) -> None:
        index = self._index(post_id)
        rows = _list(self._data.rows)
        del rows[index]
        self._save(rows)
