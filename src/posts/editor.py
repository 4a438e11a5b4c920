"""Post edit sessions — the transient state of one create-or-edit form.

A :class:`PostEditor` holds at most one open :class:`PostEditSession`.
Beginning a new session while one is open cancels the old one
explicitly: it is logged and handed to the ``on_superseded`` hook.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum

from pydantic import ValidationError

from postdesk.errors import EditorStateError
from postdesk.posts.models import EDITABLE_FIELDS, Post, PostFields, PostStatus
from postdesk.posts.notifications import Notifier
from postdesk.posts.outcomes import Outcome, OutcomeKind

logger = logging.getLogger(__name__)


class EditMode(StrEnum):
    CREATE = "create"
    EDIT = "edit"


class SessionState(StrEnum):
    OPEN = "open"
    SUBMITTED = "submitted"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class CreateRequest:
    """Ask the collection manager to create a post."""

    fields: PostFields


@dataclass(frozen=True)
class UpdateRequest:
    """Ask the collection manager to update an existing post."""

    post_id: str
    fields: PostFields


MutationRequest = CreateRequest | UpdateRequest


class PostEditSession:
    """Draft buffer for a single form interaction."""

    def __init__(self, mode: EditMode, target: Post | None = None) -> None:
        if mode == EditMode.EDIT and target is None:
            raise ValueError("An edit session needs a target post")
        if mode == EditMode.CREATE and target is not None:
            raise ValueError("A create session cannot have a target post")
        self.mode = mode
        self.target = target
        self.state = SessionState.OPEN
        self.cancel_reason: str | None = None
        if target is not None:
            self.draft: dict[str, str] = {
                "title": target.title,
                "content": target.content,
                "status": target.status.value,
            }
        else:
            self.draft = {"title": "", "content": "", "status": PostStatus.DRAFT.value}

    @property
    def is_open(self) -> bool:
        return self.state == SessionState.OPEN

    def _require_open(self) -> None:
        if not self.is_open:
            raise EditorStateError(f"Edit session is {self.state}")

    def set_field(self, name: str, value: str) -> None:
        """Update one draft field; validation waits until submit."""
        self._require_open()
        if name not in EDITABLE_FIELDS:
            raise ValueError(f"Unknown field: {name!r}")
        self.draft[name] = value

    def validate(self) -> list[str]:
        """Return the names of the fields that would block a submit."""
        invalid: list[str] = []
        for name in ("title", "content"):
            if not str(self.draft.get(name) or "").strip():
                invalid.append(name)
        if self.draft.get("status") not in {s.value for s in PostStatus}:
            invalid.append("status")
        return invalid

    def submit(self) -> MutationRequest | Outcome:
        """Package the draft into a mutation request.

        Returns a ``validation_failed`` outcome instead when a field is
        invalid; the session stays open so the draft can be corrected.
        """
        self._require_open()
        invalid = self.validate()
        if invalid:
            return Outcome.of(
                OutcomeKind.VALIDATION_FAILED,
                message=f"Please fill in a valid {', '.join(invalid)}",
                fields=invalid,
                post_id=self.target.id if self.target else None,
            )
        try:
            fields = PostFields(**self.draft)
        except ValidationError:
            return Outcome.of(OutcomeKind.VALIDATION_FAILED, fields=list(EDITABLE_FIELDS))

        if self.mode == EditMode.EDIT:
            if self.target is None:
                raise EditorStateError("Edit session has no target post")
            self.state = SessionState.SUBMITTED
            return UpdateRequest(post_id=self.target.id, fields=fields)
        self.state = SessionState.SUBMITTED
        return CreateRequest(fields=fields)

    def cancel(self, reason: str = "cancelled") -> None:
        """Discard the session without producing a mutation."""
        self._require_open()
        self.state = SessionState.CANCELLED
        self.cancel_reason = reason


class PostEditor:
    """Enforces a single open edit session per user interaction."""

    def __init__(
        self,
        notifier: Notifier | None = None,
        on_superseded: Callable[[PostEditSession], None] | None = None,
    ) -> None:
        self.notifier = notifier or Notifier()
        self._on_superseded = on_superseded
        self._active: PostEditSession | None = None

    @property
    def active(self) -> PostEditSession | None:
        """The open session, or None when idle."""
        if self._active is not None and not self._active.is_open:
            self._active = None
        return self._active

    def begin(self, mode: EditMode | str, target: Post | None = None) -> PostEditSession:
        """Open a session, cancelling any session that is still open."""
        mode = EditMode(mode)
        previous = self.active
        if previous is not None:
            previous.cancel(reason="superseded")
            logger.info(
                "Discarding open %s session%s to begin a %s session",
                previous.mode,
                f" for post {previous.target.id}" if previous.target else "",
                mode,
            )
            if self._on_superseded is not None:
                self._on_superseded(previous)
        self._active = PostEditSession(mode, target)
        return self._active

    def submit(self) -> MutationRequest | Outcome:
        """Submit the active session, reporting validation failures."""
        session = self.active
        if session is None:
            raise EditorStateError("No edit session is open")
        result = session.submit()
        if isinstance(result, Outcome):
            self.notifier.emit(result)
        else:
            self._active = None
        return result

    def cancel(self) -> None:
        session = self.active
        if session is None:
            raise EditorStateError("No edit session is open")
        session.cancel()
        self._active = None
