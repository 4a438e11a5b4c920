"""Notification sinks for post outcomes.

The collection manager and the editor never format UI; they hand
structured outcomes to a :class:`Notifier`, which dispatches each one to
exactly one callback on every subscribed sink.
"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from typing import Protocol, runtime_checkable

from rich.console import Console

from postdesk.posts.models import Post
from postdesk.posts.outcomes import Outcome, OutcomeKind

logger = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Receives post outcomes."""

    def on_loaded(self, posts: list[Post]) -> None: ...

    def on_created(self, post: Post) -> None: ...

    def on_updated(self, post: Post) -> None: ...

    def on_deleted(self, post_id: str) -> None: ...

    def on_error(self, kind: OutcomeKind, message: str) -> None: ...


class Notifier:
    """Fan-out hub that routes outcomes to subscribed sinks."""

    def __init__(self, sinks: list[NotificationSink] | None = None) -> None:
        self._sinks: list[NotificationSink] = list(sinks or [])

    @property
    def sinks(self) -> list[NotificationSink]:
        return list(self._sinks)

    def subscribe(self, sink: NotificationSink) -> None:
        if sink not in self._sinks:
            self._sinks.append(sink)

    def unsubscribe(self, sink: NotificationSink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    def emit(self, outcome: Outcome, *, posts: list[Post] | None = None) -> None:
        """Dispatch *outcome* to every sink.

        A sink that raises is logged and skipped so that the remaining
        sinks still hear about the outcome.
        """
        for sink in list(self._sinks):
            try:
                _dispatch(sink, outcome, posts)
            except Exception:
                logger.warning(
                    "Notification sink %r failed on %s", sink, outcome.kind, exc_info=True
                )


def _dispatch(sink: NotificationSink, outcome: Outcome, posts: list[Post] | None) -> None:
    if not outcome.ok:
        sink.on_error(outcome.kind, outcome.message)
    elif outcome.kind == OutcomeKind.LOADED:
        sink.on_loaded(list(posts or []))
    elif outcome.kind == OutcomeKind.CREATED and outcome.post is not None:
        sink.on_created(outcome.post)
    elif outcome.kind == OutcomeKind.UPDATED and outcome.post is not None:
        sink.on_updated(outcome.post)
    elif outcome.kind == OutcomeKind.DELETED and outcome.post_id is not None:
        sink.on_deleted(outcome.post_id)
    else:
        raise ValueError(f"Outcome {outcome.kind} is missing its payload")


class RecordingSink:
    """Keeps every notification it receives, in order."""

    def __init__(self) -> None:
        self.events: list[tuple[str, object]] = []

    def on_loaded(self, posts: list[Post]) -> None:
        self.events.append(("loaded", posts))

    def on_created(self, post: Post) -> None:
        self.events.append(("created", post))

    def on_updated(self, post: Post) -> None:
        self.events.append(("updated", post))

    def on_deleted(self, post_id: str) -> None:
        self.events.append(("deleted", post_id))

    def on_error(self, kind: OutcomeKind, message: str) -> None:
        self.events.append(("error", (kind, message)))

    @property
    def errors(self) -> list[tuple[OutcomeKind, str]]:
        return [payload for name, payload in self.events if name == "error"]  # type: ignore[misc]


class LoggingSink:
    """Writes outcomes to the standard logging system."""

    def __init__(self, name: str = "postdesk.notifications") -> None:
        self._log = logging.getLogger(name)

    def on_loaded(self, posts: list[Post]) -> None:
        self._log.debug("Loaded %d posts", len(posts))

    def on_created(self, post: Post) -> None:
        self._log.info("Created post %s '%s'", post.id, post.title)

    def on_updated(self, post: Post) -> None:
        self._log.info("Updated post %s '%s' (%s)", post.id, post.title, post.status)

    def on_deleted(self, post_id: str) -> None:
        self._log.info("Deleted post %s", post_id)

    def on_error(self, kind: OutcomeKind, message: str) -> None:
        self._log.error("%s: %s", kind, message)


class ConsoleSink:
    """Prints toast-style lines to a rich console."""

    def __init__(self, console: Console | None = None) -> None:
        self.console = console or Console()

    def on_loaded(self, posts: list[Post]) -> None:
        pass

    def on_created(self, post: Post) -> None:
        self.console.print(f"[green]Post created[/green] {post.title} ({post.id})")

    def on_updated(self, post: Post) -> None:
        self.console.print(f"[green]Post updated[/green] {post.title} ({post.status})")

    def on_deleted(self, post_id: str) -> None:
        self.console.print(f"[green]Post deleted[/green] {post_id}")

    def on_error(self, kind: OutcomeKind, message: str) -> None:
        self.console.print(f"[red]Error[/red] {message}")


class NtfySink:
    """Pushes a one-line message per outcome to an ntfy topic.

    Delivery failures are logged and never raised.
    """

    def __init__(self, url: str, topic: str = "postdesk", timeout: float = 10.0) -> None:
        self.endpoint = f"{url.rstrip('/')}/{topic}"
        self.timeout = timeout

    def _send(self, title: str, message: str, *, priority: str = "default") -> None:
        req = urllib.request.Request(
            self.endpoint,
            data=message.encode("utf-8"),
            method="POST",
            headers={"Title": title, "Priority": priority},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.timeout):
                pass
        except (urllib.error.URLError, OSError):
            logger.warning("Failed to deliver ntfy notification to %s", self.endpoint, exc_info=True)

    def on_loaded(self, posts: list[Post]) -> None:
        pass

    def on_created(self, post: Post) -> None:
        self._send("Post created", post.title)

    def on_updated(self, post: Post) -> None:
        self._send("Post updated", f"{post.title} ({post.status})")

    def on_deleted(self, post_id: str) -> None:
        self._send("Post deleted", post_id)

    def on_error(self, kind: OutcomeKind, message: str) -> None:
        self._send("Error", message, priority="high")
