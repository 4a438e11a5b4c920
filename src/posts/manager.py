"""Post collection manager — the owner-scoped, confirmed list of posts.

The manager is the only writer of the in-memory list.  Every mutation
goes to the store first; the list is patched only with the record the
store returns, and left untouched when the store fails.  Store errors
are converted into outcomes here and never escape to callers.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from postdesk.errors import NotAuthenticated, StoreError, UnknownPostError
from postdesk.posts.editor import CreateRequest, MutationRequest, UpdateRequest
from postdesk.posts.models import NewPost, Post, PostFields, PostStatus
from postdesk.posts.notifications import Notifier
from postdesk.posts.outcomes import Outcome, OutcomeKind
from postdesk.posts.session import SessionProvider
from postdesk.posts.store import PostStore

logger = logging.getLogger(__name__)

QUICK_CREATE_TITLE = "New post"
QUICK_CREATE_CONTENT = "Post content..."


class PostCollectionManager:
    """Owns the authoritative list of posts for the session's owner.

    Args:
        store: Remote store client used for every read and write.
        session: Provides the current owner id.
        notifier: Receives exactly one notification per outcome.
    """

    def __init__(
        self,
        store: PostStore,
        session: SessionProvider,
        notifier: Notifier | None = None,
    ) -> None:
        self._store = store
        self._session = session
        self.notifier = notifier or Notifier()
        self._posts: list[Post] = []
        self._owner_id: str | None = None
        self._loading = False
        self._locks: dict[str, asyncio.Lock] = {}

    # ── Read access ──────────────────────────────────────────────

    @property
    def posts(self) -> tuple[Post, ...]:
        """Snapshot of the current ordered list."""
        return tuple(self._posts)

    @property
    def loading(self) -> bool:
        return self._loading

    @property
    def owner_id(self) -> str | None:
        """Owner whose posts are currently held."""
        return self._owner_id

    def get(self, post_id: str) -> Post | None:
        for post in self._posts:
            if post.id == post_id:
                return post
        return None

    def __len__(self) -> int:
        return len(self._posts)

    # ── Helpers ──────────────────────────────────────────────────

    def _require_owner(self) -> str:
        owner_id = self._session.current_owner_id()
        if not owner_id:
            raise NotAuthenticated("No authenticated owner; sign in first")
        return owner_id

    def _require_held(self, post_id: str) -> None:
        """Fail fast unless *post_id* is held for the signed-in owner."""
        owner_id = self._require_owner()
        self._index_of(post_id)
        if owner_id != self._owner_id:
            raise NotAuthenticated(
                f"Posts were loaded for {self._owner_id!r}, not {owner_id!r}; reload first"
            )

    def _index_of(self, post_id: str) -> int:
        for i, post in enumerate(self._posts):
            if post.id == post_id:
                return i
        raise UnknownPostError(post_id)

    def _lock_for(self, post_id: str) -> asyncio.Lock:
        lock = self._locks.get(post_id)
        if lock is None:
            lock = self._locks[post_id] = asyncio.Lock()
        return lock

    def _report(self, outcome: Outcome, *, posts: list[Post] | None = None) -> Outcome:
        self.notifier.emit(outcome, posts=posts)
        return outcome

    def _failure(
        self, kind: OutcomeKind, exc: StoreError, *, post_id: str | None = None
    ) -> Outcome:
        logger.warning("%s (post=%s): %s", kind, post_id, exc, exc_info=True)
        return self._report(Outcome.of(kind, post_id=post_id, cause=exc.cause))

    def _accept(self, posts: list[Post], owner_id: str) -> list[Post]:
        """Drop foreign-owner rows and duplicate ids, keeping store order."""
        seen: set[str] = set()
        accepted: list[Post] = []
        for post in posts:
            if post.owner_id != owner_id:
                logger.warning("Dropping post %s owned by %s", post.id, post.owner_id)
                continue
            if post.id in seen:
                logger.warning("Dropping duplicate post id %s", post.id)
                continue
            seen.add(post.id)
            accepted.append(post)
        return accepted

    def _prune_locks(self) -> None:
        """Forget locks of ids no longer held, unless a mutation holds them."""
        held = {p.id for p in self._posts}
        self._locks = {
            pid: lock for pid, lock in self._locks.items() if pid in held or lock.locked()
        }

    async def _serialized(self, post_id: str, op: Callable[[], Awaitable[Outcome]]) -> Outcome:
        async with self._lock_for(post_id):
            return await op()

    # ── Operations ───────────────────────────────────────────────

    async def load(self, owner_id: str | None = None) -> Outcome:
        """Replace the list with the owner's posts, newest first.

        On failure the list is cleared; there is no automatic retry.
        """
        session_owner = self._require_owner()
        if owner_id is not None and owner_id != session_owner:
            raise NotAuthenticated(
                f"Cannot load posts for {owner_id!r} while signed in as {session_owner!r}"
            )

        self._loading = True
        try:
            fetched = await self._store.list(session_owner)
        except StoreError as exc:
            self._posts = []
            self._owner_id = session_owner
            self._prune_locks()
            return self._failure(OutcomeKind.LOAD_FAILED, exc)
        finally:
            self._loading = False

        self._posts = self._accept(fetched, session_owner)
        self._owner_id = session_owner
        self._prune_locks()
        logger.debug("Loaded %d posts for %s", len(self._posts), session_owner)
        return self._report(Outcome.of(OutcomeKind.LOADED), posts=list(self._posts))

    async def create(self, fields: PostFields) -> Outcome:
        """Insert a post and prepend the confirmed record."""
        owner_id = self._require_owner()
        new_post = NewPost(
            owner_id=owner_id,
            title=fields.title or "",
            content=fields.content or "",
            status=fields.status or PostStatus.DRAFT,
        )
        try:
            post = await self._store.insert(new_post)
        except StoreError as exc:
            return self._failure(OutcomeKind.CREATE_FAILED, exc)

        if self._owner_id != owner_id:
            # A create for a new owner starts that owner's list fresh.
            self._posts = []
            self._owner_id = owner_id
        self._posts = [post] + [p for p in self._posts if p.id != post.id]
        return self._report(Outcome.of(OutcomeKind.CREATED, post=post, post_id=post.id))

    async def quick_create(self) -> Outcome:
        """Create a placeholder draft, as the dashboard shortcut does."""
        return await self.create(
            PostFields(
                title=QUICK_CREATE_TITLE,
                content=QUICK_CREATE_CONTENT,
                status=PostStatus.DRAFT,
            )
        )

    async def update(self, post_id: str, fields: PostFields) -> Outcome:
        """Update a held post and replace it in place with the store's record.

        Raises:
            UnknownPostError: If *post_id* is not in the list.
        """
        self._require_held(post_id)

        async def _op() -> Outcome:
            try:
                post = await self._store.update(post_id, fields)
            except StoreError as exc:
                return self._failure(OutcomeKind.UPDATE_FAILED, exc, post_id=post_id)
            try:
                index = self._index_of(post_id)
            except UnknownPostError:
                # Deleted while this update was in flight; keep it out.
                logger.info("Post %s was removed before its update resolved", post_id)
                return self._report(Outcome.of(OutcomeKind.UPDATED, post=post, post_id=post_id))
            self._posts[index] = post
            return self._report(Outcome.of(OutcomeKind.UPDATED, post=post, post_id=post_id))

        return await self._serialized(post_id, _op)

    async def set_status(self, post_id: str, status: PostStatus) -> Outcome:
        return await self.update(post_id, PostFields(status=status))

    async def publish(self, post_id: str) -> Outcome:
        return await self.set_status(post_id, PostStatus.PUBLISHED)

    async def unpublish(self, post_id: str) -> Outcome:
        return await self.set_status(post_id, PostStatus.DRAFT)

    async def delete(self, post_id: str) -> Outcome:
        """Delete a held post; the caller has already obtained confirmation.

        Raises:
            UnknownPostError: If *post_id* is not in the list.
        """
        self._require_held(post_id)

        async def _op() -> Outcome:
            try:
                await self._store.delete(post_id)
            except StoreError as exc:
                return self._failure(OutcomeKind.DELETE_FAILED, exc, post_id=post_id)
            self._posts = [p for p in self._posts if p.id != post_id]
            self._locks.pop(post_id, None)
            return self._report(Outcome.of(OutcomeKind.DELETED, post_id=post_id))

        return await self._serialized(post_id, _op)

    async def apply(self, request: MutationRequest) -> Outcome:
        """Execute a mutation request produced by an edit session."""
        if isinstance(request, CreateRequest):
            return await self.create(request.fields)
        if isinstance(request, UpdateRequest):
            return await self.update(request.post_id, request.fields)
        raise TypeError(f"Not a mutation request: {request!r}")
