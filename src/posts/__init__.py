"""Post domain — models, stores, the collection manager and edit sessions."""

from postdesk.posts.editor import (
    CreateRequest,
    EditMode,
    PostEditor,
    PostEditSession,
    SessionState,
    UpdateRequest,
)
from postdesk.posts.manager import PostCollectionManager
from postdesk.posts.models import NewPost, Post, PostFields, PostStatus
from postdesk.posts.notifications import Notifier, RecordingSink
from postdesk.posts.outcomes import Outcome, OutcomeKind
from postdesk.posts.session import StaticSession, TokenSession
from postdesk.posts.store import LocalPostStore, PostStore

__all__ = [
    "CreateRequest",
    "EditMode",
    "LocalPostStore",
    "NewPost",
    "Notifier",
    "Outcome",
    "OutcomeKind",
    "Post",
    "PostCollectionManager",
    "PostEditSession",
    "PostEditor",
    "PostFields",
    "PostStatus",
    "PostStore",
    "RecordingSink",
    "SessionState",
    "StaticSession",
    "TokenSession",
    "UpdateRequest",
]
