"""Tests for the notifier and its sinks."""

import urllib.error
from datetime import UTC, datetime
from io import StringIO
from unittest.mock import MagicMock, patch

from postdesk.posts.models import Post
from postdesk.posts.notifications import (
    ConsoleSink,
    LoggingSink,
    NotificationSink,
    Notifier,
    NtfySink,
    RecordingSink,
)
from postdesk.posts.outcomes import Outcome, OutcomeKind
from rich.console import Console


def _post() -> Post:
    ts = datetime(2025, 1, 1, tzinfo=UTC)
    return Post(id="p1", user_id="u1", title="Hello", content="World",
                created_at=ts, updated_at=ts)


class TestNotifier:
    def test_each_outcome_hits_one_callback(self):
        sink = RecordingSink()
        notifier = Notifier([sink])
        post = _post()

        notifier.emit(Outcome.of(OutcomeKind.CREATED, post=post))
        notifier.emit(Outcome.of(OutcomeKind.UPDATED, post=post))
        notifier.emit(Outcome.of(OutcomeKind.DELETED, post_id="p1"))
        notifier.emit(Outcome.of(OutcomeKind.LOADED), posts=[post])
        notifier.emit(Outcome.of(OutcomeKind.UPDATE_FAILED, cause="not_found"))

        assert [name for name, _ in sink.events] == [
            "created", "updated", "deleted", "loaded", "error",
        ]
        assert sink.errors == [(OutcomeKind.UPDATE_FAILED, "Could not update the post")]

    def test_fans_out_to_all_sinks(self):
        a, b = RecordingSink(), RecordingSink()
        notifier = Notifier([a])
        notifier.subscribe(b)
        notifier.subscribe(b)

        notifier.emit(Outcome.of(OutcomeKind.DELETED, post_id="p1"))

        assert len(a.events) == 1
        assert len(b.events) == 1

    def test_unsubscribe(self):
        sink = RecordingSink()
        notifier = Notifier([sink])
        notifier.unsubscribe(sink)
        notifier.emit(Outcome.of(OutcomeKind.DELETED, post_id="p1"))
        assert sink.events == []

    def test_failing_sink_does_not_block_others(self):
        broken = MagicMock()
        broken.on_deleted.side_effect = RuntimeError("boom")
        sink = RecordingSink()
        notifier = Notifier([broken, sink])

        notifier.emit(Outcome.of(OutcomeKind.DELETED, post_id="p1"))

        assert sink.events == [("deleted", "p1")]

    def test_sinks_match_protocol(self):
        for sink in (RecordingSink(), LoggingSink(), ConsoleSink(), NtfySink("https://ntfy.sh")):
            assert isinstance(sink, NotificationSink)


class TestConsoleSink:
    def test_prints_error(self):
        buf = StringIO()
        sink = ConsoleSink(Console(file=buf, width=120))
        sink.on_error(OutcomeKind.DELETE_FAILED, "Could not delete the post")
        assert "Could not delete the post" in buf.getvalue()

    def test_prints_created(self):
        buf = StringIO()
        ConsoleSink(Console(file=buf, width=120)).on_created(_post())
        assert "Hello" in buf.getvalue()


class TestLoggingSink:
    def test_logs_error(self, caplog):
        with caplog.at_level("ERROR", logger="postdesk.notifications"):
            LoggingSink().on_error(OutcomeKind.LOAD_FAILED, "Could not load posts")
        assert "Could not load posts" in caplog.text


class TestNtfySink:
    def test_posts_to_topic(self):
        sink = NtfySink("https://ntfy.example/", topic="posts")
        with patch("postdesk.posts.notifications.urllib.request.urlopen") as mock_open:
            mock_open.return_value.__enter__ = MagicMock(return_value=MagicMock())
            mock_open.return_value.__exit__ = MagicMock(return_value=False)
            sink.on_created(_post())

        req = mock_open.call_args[0][0]
        assert req.full_url == "https://ntfy.example/posts"
        assert req.data == b"Hello"
        assert req.get_header("Title") == "Post created"

    def test_delivery_failure_is_swallowed(self):
        sink = NtfySink("https://ntfy.example")
        with patch(
            "postdesk.posts.notifications.urllib.request.urlopen",
            side_effect=urllib.error.URLError("offline"),
        ):
            sink.on_error(OutcomeKind.CREATE_FAILED, "Could not create the post")
