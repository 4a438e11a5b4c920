"""Supabase integration — config and PostgREST client for the posts table.

Requests go through urllib on a worker thread so the collection manager
can await them without blocking its event loop.
"""

from __future__ import annotations

import asyncio
import http.client
import json
import logging
import os
import socket
import urllib.error
import urllib.parse
import urllib.request

from pydantic import BaseModel, ValidationError

from postdesk.errors import NotFound, StoreRejected, StoreUnavailable
from postdesk.posts.models import NewPost, Post, PostFields

logger = logging.getLogger(__name__)

POSTS_TABLE = "posts"


class SupabaseConfig(BaseModel):
    """Configuration for the Supabase posts backend."""

    url: str = ""
    anon_key: str = ""
    access_token: str = ""
    jwt_secret: str = ""
    timeout: float = 15.0

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.anon_key)

    @classmethod
    def from_env(cls) -> SupabaseConfig:
        """Create config from environment variables."""
        return cls(
            url=os.environ.get("SUPABASE_URL", ""),
            anon_key=os.environ.get("SUPABASE_ANON_KEY", ""),
            access_token=os.environ.get("SUPABASE_ACCESS_TOKEN", ""),
            jwt_secret=os.environ.get("SUPABASE_JWT_SECRET", ""),
        )


class SupabasePostsClient:
    """Client for the PostgREST ``posts`` resource of a Supabase project.

    Row-level security scopes rows to the bearer of the access token;
    the client additionally filters by ``user_id`` on reads.
    """

    def __init__(self, config: SupabaseConfig) -> None:
        self.config = config
        self.base_url = f"{config.url.rstrip('/')}/rest/v1/{POSTS_TABLE}"

    def _headers(self) -> dict[str, str]:
        bearer = self.config.access_token or self.config.anon_key
        return {
            "apikey": self.config.anon_key,
            "Authorization": f"Bearer {bearer}",
            "Content-Type": "application/json",
            "Accept": "application/json",
            "Prefer": "return=representation",
        }

    def _request(
        self,
        method: str,
        query: dict[str, str],
        data: dict | None = None,
    ) -> list[dict]:
        """Make an authenticated request and return the decoded row list.

        Raises:
            NotFound: On HTTP 404.
            StoreRejected: On any other 4xx or an undecodable body.
            StoreUnavailable: On 5xx, timeouts and transport errors.
        """
        url = f"{self.base_url}?{urllib.parse.urlencode(query)}" if query else self.base_url
        body = json.dumps(data).encode("utf-8") if data is not None else None
        req = urllib.request.Request(url, data=body, method=method, headers=self._headers())

        logger.debug("%s %s", method, url)
        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                raw_bytes = resp.read()
        except urllib.error.HTTPError as exc:
            detail = _error_detail(exc)
            if exc.code == 404:
                raise NotFound(detail) from exc
            if 400 <= exc.code < 500:
                raise StoreRejected(f"HTTP {exc.code}: {detail}") from exc
            raise StoreUnavailable(f"HTTP {exc.code}: {detail}") from exc
        except (
            urllib.error.URLError,
            http.client.HTTPException,
            socket.timeout,
            TimeoutError,
            ConnectionError,
        ) as exc:
            raise StoreUnavailable(f"{method} {self.base_url} failed: {exc}") from exc

        try:
            raw = raw_bytes.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise StoreRejected(f"Undecodable response from {self.base_url}") from exc
        if not raw.strip():
            return []
        try:
            payload = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreRejected(f"Malformed response from {self.base_url}") from exc
        if isinstance(payload, dict):
            payload = [payload]
        if not isinstance(payload, list) or not all(isinstance(row, dict) for row in payload):
            raise StoreRejected(f"Unexpected response shape from {self.base_url}")
        return payload

    @staticmethod
    def _single(rows: list[dict], post_id: str | None = None) -> Post:
        if not rows:
            raise NotFound(post_id or "no row returned")
        try:
            return Post.model_validate(rows[0])
        except ValidationError as exc:
            raise StoreRejected(f"Unexpected post row: {exc}") from exc

    # ── Sync operations ──────────────────────────────────────────

    def list_sync(self, owner_id: str) -> list[Post]:
        rows = self._request(
            "GET",
            {"select": "*", "user_id": f"eq.{owner_id}", "order": "created_at.desc"},
        )
        try:
            return [Post.model_validate(row) for row in rows]
        except ValidationError as exc:
            raise StoreRejected(f"Unexpected post row: {exc}") from exc

    def insert_sync(self, new_post: NewPost) -> Post:
        rows = self._request("POST", {"select": "*"}, new_post.to_row())
        return self._single(rows)

    def update_sync(self, post_id: str, fields: PostFields) -> Post:
        rows = self._request(
            "PATCH", {"id": f"eq.{post_id}", "select": "*"}, fields.as_update()
        )
        return self._single(rows, post_id)

    def delete_sync(self, post_id: str) -> None:
        rows = self._request("DELETE", {"id": f"eq.{post_id}", "select": "id"})
        if not rows:
            raise NotFound(post_id)

    # ── PostStore ────────────────────────────────────────────────

    async def list(self, owner_id: str) -> list[Post]:
        return await asyncio.to_thread(self.list_sync, owner_id)

    async def insert(self, new_post: NewPost) -> Post:
        return await asyncio.to_thread(self.insert_sync, new_post)

    async def update(self, post_id: str, fields: PostFields) -> Post:
        return await asyncio.to_thread(self.update_sync, post_id, fields)

    async def delete(self, post_id: str) -> None:
        await asyncio.to_thread(self.delete_sync, post_id)


def _error_detail(exc: urllib.error.HTTPError) -> str:
    """Pull PostgREST's ``message`` out of an error body, if any."""
    try:
        body = json.loads(exc.read().decode("utf-8"))
    except (OSError, ValueError):
        return exc.reason or ""
    if isinstance(body, dict):
        return str(body.get("message") or body.get("hint") or exc.reason or "")
    return exc.reason or ""
