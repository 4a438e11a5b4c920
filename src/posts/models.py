"""Post domain models — pure Pydantic v2 data types.

A Post is the confirmed record as returned by a store.  PostFields is
the partial set of user-editable fields sent with an update, and
NewPost is the complete payload for an insert.
"""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class PostStatus(StrEnum):
    """Lifecycle status of a post."""

    DRAFT = "draft"
    PUBLISHED = "published"


EDITABLE_FIELDS = ("title", "content", "status")


class Post(BaseModel):
    """A post as confirmed by the store.

    Store rows use ``user_id`` for the owner column; both the alias and
    the field name are accepted on input.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: str
    owner_id: str = Field(alias="user_id")
    title: str
    content: str = ""
    status: PostStatus = PostStatus.DRAFT
    created_at: datetime
    updated_at: datetime

    def to_row(self) -> dict[str, Any]:
        """Serialize with store column names."""
        return self.model_dump(mode="json", by_alias=True)


class PostFields(BaseModel):
    """Partial set of editable fields; unset fields are left untouched."""

    title: str | None = None
    content: str | None = None
    status: PostStatus | None = None

    def as_update(self) -> dict[str, Any]:
        """Return only the fields that were explicitly provided."""
        return self.model_dump(mode="json", exclude_unset=True, exclude_none=True)


class NewPost(BaseModel):
    """Insert payload for a new post."""

    owner_id: str
    title: str
    content: str
    status: PostStatus = PostStatus.DRAFT

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.owner_id,
            "title": self.title,
            "content": self.content,
            "status": self.status.value,
        }
