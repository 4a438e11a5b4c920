"""Structured outcomes emitted by the collection manager and the editor."""

from __future__ import annotations

from enum import StrEnum

from pydantic import BaseModel, Field

from postdesk.posts.models import Post


class OutcomeKind(StrEnum):
    """What happened as the result of a post operation."""

    LOADED = "loaded"
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    LOAD_FAILED = "load_failed"
    CREATE_FAILED = "create_failed"
    UPDATE_FAILED = "update_failed"
    DELETE_FAILED = "delete_failed"
    VALIDATION_FAILED = "validation_failed"


FAILURE_KINDS = frozenset(
    {
        OutcomeKind.LOAD_FAILED,
        OutcomeKind.CREATE_FAILED,
        OutcomeKind.UPDATE_FAILED,
        OutcomeKind.DELETE_FAILED,
        OutcomeKind.VALIDATION_FAILED,
    }
)

MESSAGES: dict[OutcomeKind, str] = {
    OutcomeKind.LOADED: "Posts loaded",
    OutcomeKind.CREATED: "The post was created successfully",
    OutcomeKind.UPDATED: "The post was updated successfully",
    OutcomeKind.DELETED: "The post was deleted successfully",
    OutcomeKind.LOAD_FAILED: "Could not load posts",
    OutcomeKind.CREATE_FAILED: "Could not create the post",
    OutcomeKind.UPDATE_FAILED: "Could not update the post",
    OutcomeKind.DELETE_FAILED: "Could not delete the post",
    OutcomeKind.VALIDATION_FAILED: "Please fill in the required fields",
}


class Outcome(BaseModel):
    """A success or failure signal, never a raw transport error.

    ``cause`` names the store-level failure (``not_found``,
    ``store_unavailable``, ``store_rejected``) when there is one.
    """

    kind: OutcomeKind
    message: str = ""
    post: Post | None = None
    post_id: str | None = None
    fields: list[str] = Field(default_factory=list)
    cause: str | None = None

    @property
    def ok(self) -> bool:
        return self.kind not in FAILURE_KINDS

    @classmethod
    def of(cls, kind: OutcomeKind, **kwargs: object) -> Outcome:
        """Build an outcome with the default message for *kind*."""
        kwargs.setdefault("message", MESSAGES[kind])
        return cls(kind=kind, **kwargs)  # type: ignore[arg-type]
