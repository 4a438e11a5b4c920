"""CLI interface for postdesk."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from postdesk.config import PostdeskConfig, StoreBackend, load_config, merge_cli_overrides
from postdesk.errors import EditorStateError, NotAuthenticated, UnknownPostError
from postdesk.integrations.supabase import SupabasePostsClient
from postdesk.posts.editor import EditMode, PostEditor
from postdesk.posts.manager import PostCollectionManager
from postdesk.posts.models import PostStatus
from postdesk.posts.notifications import ConsoleSink, LoggingSink, Notifier, NtfySink
from postdesk.posts.outcomes import Outcome
from postdesk.posts.session import SessionProvider, StaticSession, TokenSession
from postdesk.posts.store import LocalPostStore, PostStore

app = typer.Typer(
    name="postdesk",
    help="Manage your posts: create, edit, publish and delete.",
    no_args_is_help=True,
)

console = Console()
err_console = Console(stderr=True)


class _State:
    config: PostdeskConfig = PostdeskConfig()


state = _State()


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        from postdesk import __version__

        console.print(f"postdesk {__version__}")
        raise typer.Exit()


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def main(
    config_path: Annotated[
        Optional[Path],
        typer.Option("--config", "-c", help="Path to a .postdesk.toml file."),
    ] = None,
    owner: Annotated[
        Optional[str],
        typer.Option("--owner", help="Owner id for the local store."),
    ] = None,
    store_dir: Annotated[
        Optional[Path],
        typer.Option("--store-dir", help="Directory of the local post store."),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", help="Enable debug logging."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            "-v",
            help="Show version and exit.",
            callback=version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Postdesk - manage your posts from the terminal."""
    config = load_config(config_path)
    state.config = merge_cli_overrides(
        config,
        owner_id=owner,
        store_directory=str(store_dir) if store_dir else None,
        log_level="DEBUG" if verbose else None,
    )
    _setup_logging(state.config.log.level)


# ── Wiring ──────────────────────────────────────────────────────────────


def build_store(config: PostdeskConfig) -> PostStore:
    """Create the post store selected by the config."""
    if config.store.backend == StoreBackend.SUPABASE:
        supabase = config.to_supabase_config()
        if not supabase.is_configured:
            err_console.print("[red]Supabase backend selected but url/anon_key are not set.[/red]")
            raise typer.Exit(1)
        return SupabasePostsClient(supabase)
    return LocalPostStore(Path(config.store.directory))


def build_session(config: PostdeskConfig) -> SessionProvider:
    """Token session when an access token is configured, else a fixed owner."""
    if config.store.backend == StoreBackend.SUPABASE and config.supabase.access_token:
        return TokenSession(config.supabase.access_token, config.supabase.jwt_secret)
    return StaticSession(config.session.owner_id)


def build_notifier(config: PostdeskConfig) -> Notifier:
    notifier = Notifier([ConsoleSink(console), LoggingSink()])
    if config.notifications.is_configured:
        notifier.subscribe(
            NtfySink(config.notifications.ntfy_url, config.notifications.ntfy_topic)
        )
    return notifier


def build_manager(config: PostdeskConfig) -> PostCollectionManager:
    return PostCollectionManager(
        build_store(config), build_session(config), build_notifier(config)
    )


def _run(op: Callable[[PostCollectionManager], Awaitable[Outcome | None]]) -> None:
    """Load the collection, run *op*, and exit non-zero on failure."""
    manager = build_manager(state.config)

    async def _main() -> Outcome | None:
        loaded = await manager.load()
        if not loaded.ok:
            return loaded
        return await op(manager)

    try:
        outcome = asyncio.run(_main())
    except NotAuthenticated as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc
    except UnknownPostError as exc:
        err_console.print(f"[red]{exc}[/red]")
        raise typer.Exit(1) from exc

    if outcome is not None and not outcome.ok:
        raise typer.Exit(1)


def _render_table(manager: PostCollectionManager, status: PostStatus | None) -> None:
    posts = [p for p in manager.posts if status is None or p.status == status]
    if not posts:
        console.print("No posts yet. Create your first one with [bold]postdesk create[/bold].")
        return
    table = Table(title="My Posts")
    table.add_column("ID", style="dim")
    table.add_column("Title")
    table.add_column("Status")
    table.add_column("Created")
    table.add_column("Updated")
    for post in posts:
        style = "green" if post.status == PostStatus.PUBLISHED else "yellow"
        table.add_row(
            post.id,
            post.title,
            f"[{style}]{post.status}[/{style}]",
            post.created_at.strftime("%Y-%m-%d"),
            post.updated_at.strftime("%Y-%m-%d"),
        )
    console.print(table)


async def _submit_session(
    manager: PostCollectionManager,
    editor: PostEditor,
    values: dict[str, str | None],
) -> Outcome:
    session = editor.active
    if session is None:
        raise EditorStateError("No edit session is open")
    for name, value in values.items():
        if value is not None:
            session.set_field(name, value)
    result = editor.submit()
    if isinstance(result, Outcome):
        return result
    return await manager.apply(result)


# ── Commands ────────────────────────────────────────────────────────────


@app.command(name="list")
def list_cmd(
    status: Annotated[
        Optional[PostStatus],
        typer.Option("--status", "-s", help="Only show posts with this status."),
    ] = None,
) -> None:
    """List your posts, newest first."""

    async def op(manager: PostCollectionManager) -> None:
        _render_table(manager, status)

    _run(op)


@app.command(name="create")
def create_cmd(
    title: Annotated[str, typer.Option("--title", "-t", help="Post title.")],
    content: Annotated[str, typer.Option("--content", help="Post body.")],
    status: Annotated[
        PostStatus, typer.Option("--status", "-s", help="Initial status.")
    ] = PostStatus.DRAFT,
) -> None:
    """Create a new post."""

    async def op(manager: PostCollectionManager) -> Outcome:
        editor = PostEditor(notifier=manager.notifier)
        editor.begin(EditMode.CREATE)
        return await _submit_session(
            manager, editor, {"title": title, "content": content, "status": status.value}
        )

    _run(op)


@app.command(name="new")
def new_cmd() -> None:
    """Create a placeholder draft to fill in later."""

    async def op(manager: PostCollectionManager) -> Outcome:
        return await manager.quick_create()

    _run(op)


@app.command(name="edit")
def edit_cmd(
    post_id: Annotated[str, typer.Argument(help="ID of the post to edit.")],
    title: Annotated[Optional[str], typer.Option("--title", "-t")] = None,
    content: Annotated[Optional[str], typer.Option("--content")] = None,
    status: Annotated[Optional[PostStatus], typer.Option("--status", "-s")] = None,
) -> None:
    """Edit the title, content or status of a post."""

    async def op(manager: PostCollectionManager) -> Outcome:
        target = manager.get(post_id)
        if target is None:
            raise UnknownPostError(post_id)
        editor = PostEditor(notifier=manager.notifier)
        editor.begin(EditMode.EDIT, target)
        return await _submit_session(
            manager,
            editor,
            {"title": title, "content": content, "status": status.value if status else None},
        )

    _run(op)


@app.command(name="publish")
def publish_cmd(post_id: Annotated[str, typer.Argument(help="ID of the post.")]) -> None:
    """Mark a post as published."""

    async def op(manager: PostCollectionManager) -> Outcome:
        return await manager.publish(post_id)

    _run(op)


@app.command(name="unpublish")
def unpublish_cmd(post_id: Annotated[str, typer.Argument(help="ID of the post.")]) -> None:
    """Move a post back to draft."""

    async def op(manager: PostCollectionManager) -> Outcome:
        return await manager.unpublish(post_id)

    _run(op)


@app.command(name="delete")
def delete_cmd(
    post_id: Annotated[str, typer.Argument(help="ID of the post to delete.")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation.")] = False,
) -> None:
    """Delete a post."""
    if not yes and not typer.confirm("Are you sure you want to delete this post?"):
        console.print("Aborted.")
        raise typer.Exit(0)

    async def op(manager: PostCollectionManager) -> Outcome:
        return await manager.delete(post_id)

    _run(op)


if __name__ == "__main__":
    app()
