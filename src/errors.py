"""Error hierarchy shared by stores, the collection manager and the editor."""

from __future__ import annotations


class PostdeskError(Exception):
    """Base error for postdesk."""


class StoreError(PostdeskError):
    """A remote or local post store failed to complete a request.

    ``cause`` is the short machine-readable kind carried into outcomes.
    """

    cause: str = "store_error"


class StoreUnavailable(StoreError):
    """The store could not be reached (transport error, timeout, 5xx)."""

    cause = "store_unavailable"


class StoreRejected(StoreError):
    """The store refused the request or returned something unusable."""

    cause = "store_rejected"


class NotFound(StoreError):
    """The targeted post no longer exists in the store."""

    cause = "not_found"


class NotAuthenticated(PostdeskError):
    """No owner identity is available from the session."""


class UnknownPostError(PostdeskError, KeyError):
    """A mutation targeted an id the collection manager does not hold."""

    def __str__(self) -> str:
        return f"Unknown post id: {self.args[0]!r}" if self.args else "Unknown post id"


class EditorStateError(PostdeskError):
    """An edit session was used after it was submitted or cancelled."""
