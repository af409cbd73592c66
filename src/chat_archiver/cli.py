"""CLI interface for chat-archiver."""

from __future__ import annotations

import dataclasses
import json
import logging
import sys
from datetime import datetime, timezone

import click

from . import __version__
from .config import DATA_DIR, LOG_LEVEL, SETTINGS_PATH, SQLITE_PATH


def _open_store():
    from .storage.database import ConversationStore

    return ConversationStore(SQLITE_PATH)


def _build_service(store):
    from .capture.service import CaptureService
    from .capture.settings import CaptureSettingsStore
    from .storage.limits import FileUsageEstimator, StorageGuard

    guard = StorageGuard(FileUsageEstimator(SQLITE_PATH, SETTINGS_PATH))
    return CaptureService(store, guard, CaptureSettingsStore(SETTINGS_PATH))


def _format_ms(ms: int | None) -> str:
    if ms is None:
        return "-"
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _capture_page(page, force: bool) -> None:
    from .capture.pipeline import CapturePipeline
    from .capture.transient import TransientCaptureStore
    from .exceptions import ConfigError
    from .extraction.registry import parser_for

    parser = parser_for(page)
    if parser is None:
        raise click.ClickException(f"No parser supports {page.url}")

    payload = CapturePipeline(parser, page_source=lambda: page, sender=lambda p: p).build_payload(page)
    if payload is None:
        raise click.ClickException("No conversation found on the page")

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    store = _open_store()
    try:
        service = _build_service(store)
        transient = TransientCaptureStore()
        result = transient.capture(service, payload)
        if force and result.decision.decision == "held":
            result = transient.force_archive(service)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    finally:
        store.close()

    click.echo(json.dumps(dataclasses.asdict(result), indent=2, ensure_ascii=False))


@click.group()
@click.version_option(version=__version__, prog_name="chat-archiver")
@click.option("-v", "--verbose", is_flag=True, help="Log at DEBUG level")
def cli(verbose: bool):
    """chat-archiver: keep a local archive of your AI chat conversations.

    Capture saved chat pages (ChatGPT, Claude, Gemini, DeepSeek, Qwen, Doubao)
    into a local SQLite store, de-duplicating recaptures.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


@cli.command()
@click.argument("html_file", type=click.Path(exists=True, dir_okay=False))
@click.option("--url", required=True, help="URL the page was rendered at")
@click.option("--title", default=None, help="Document title, if not in the HTML")
@click.option("--force", is_flag=True, help="Archive even if the capture mode would hold it")
def capture(html_file: str, url: str, title: str | None, force: bool):
    """Capture a saved chat page.

    Example:
        chat-archiver capture page.html --url https://chatgpt.com/c/abc12345
    """
    from .page.snapshot import PageSnapshot

    _capture_page(PageSnapshot.from_file(html_file, url, title=title), force)


@cli.command()
@click.argument("url")
@click.option("--force", is_flag=True, help="Archive even if the capture mode would hold it")
def fetch(url: str, force: bool):
    """Fetch a shared conversation page and capture it."""
    from .exceptions import PageFetchError
    from .page.fetcher import PageFetcher

    try:
        page = PageFetcher().fetch_sync(url)
    except (PageFetchError, ImportError) as e:
        raise click.ClickException(str(e)) from e
    _capture_page(page, force)


@cli.command("list")
@click.option("--platform", default=None, help="Only show one platform")
@click.option("--search", default=None, help="Substring of title or snippet")
def list_cmd(platform: str | None, search: str | None):
    """List archived conversations, most recently updated first."""
    from .capture.metrics import resolve_turn_count

    if not SQLITE_PATH.exists():
        click.echo("No archive found. Capture a conversation first.")
        return

    store = _open_store()
    try:
        conversations = store.list_conversations(platform=platform, search=search)
    finally:
        store.close()

    for c in conversations:
        turns = resolve_turn_count(c.turn_count, c.message_count)
        click.echo(
            f"{c.id:>5}  {c.platform:<9} {_format_ms(c.updated_at)}  "
            f"{c.message_count:>4} msgs {turns:>3} turns  {c.title}"
        )
    if not conversations:
        click.echo("No conversations.")


@cli.command()
@click.argument("conversation_id", type=int)
def messages(conversation_id: int):
    """Print the messages of one conversation."""
    from .capture.metrics import count_ai_turns

    store = _open_store()
    try:
        conversation = store.get_conversation(conversation_id)
        if conversation is None:
            raise click.ClickException(f"Conversation {conversation_id} not found")
        rows = store.list_messages(conversation_id)
    finally:
        store.close()

    click.echo(click.style(conversation.title, bold=True))
    click.echo(f"{len(rows)} messages, {count_ai_turns(rows)} replies from {conversation.platform}")
    click.echo()
    for m in rows:
        label = "You" if m.role == "user" else conversation.platform
        click.echo(click.style(f"{label}:", fg="cyan" if m.role == "user" else "green"))
        click.echo(m.text)
        click.echo()


@cli.command()
@click.argument("conversation_id", type=int)
@click.argument("title")
def rename(conversation_id: int, title: str):
    """Rename a conversation; later recaptures keep the new title."""
    from .exceptions import StorageError

    store = _open_store()
    try:
        updated = store.update_title(conversation_id, title)
    except StorageError as e:
        raise click.ClickException(str(e)) from e
    finally:
        store.close()
    click.echo(f"Renamed {updated.id}: {updated.title}")


@cli.command()
@click.argument("conversation_id", type=int)
@click.confirmation_option(prompt="Delete this conversation?")
def delete(conversation_id: int):
    """Delete a conversation and its messages."""
    store = _open_store()
    try:
        deleted = store.delete_conversation(conversation_id)
    finally:
        store.close()
    if not deleted:
        raise click.ClickException(f"Conversation {conversation_id} not found")
    click.echo(f"Deleted {conversation_id}")


@cli.command()
def usage():
    """Show archive size against the storage limits."""
    from .storage.limits import FileUsageEstimator, StorageGuard

    snapshot = StorageGuard(FileUsageEstimator(SQLITE_PATH, SETTINGS_PATH)).snapshot()
    mib = 1024 * 1024

    click.echo()
    click.echo(click.style("Storage Usage", bold=True))
    click.echo(f"  Used:        {snapshot.origin_used / mib:.1f} MiB")
    click.echo(f"  Soft limit:  {snapshot.soft_limit_bytes / mib:.0f} MiB")
    click.echo(f"  Hard limit:  {snapshot.hard_limit_bytes / mib:.0f} MiB")
    click.echo(f"  Status:      {snapshot.status}")

    if SQLITE_PATH.exists():
        store = _open_store()
        try:
            s = store.get_stats()
        finally:
            store.close()
        click.echo(f"  Conversations: {s['total_conversations']:,}")
        click.echo(f"  Messages:      {s['total_messages']:,}")
        for platform, count in s["platforms"].items():
            click.echo(f"    {platform}: {count:,}")
    click.echo(f"  Location:    {DATA_DIR}")
    click.echo()


@cli.group()
def settings():
    """Show or change the capture policy."""


@settings.command("show")
def settings_show():
    from .capture.settings import CaptureSettingsStore
    from .exceptions import ConfigError

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    try:
        policy = CaptureSettingsStore(SETTINGS_PATH).load()
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(policy.to_dict(), indent=2, ensure_ascii=False))


@settings.command("set")
@click.option("--mode", type=click.Choice(["mirror", "smart", "manual"]), default=None)
@click.option("--min-turns", type=int, default=None, help="Smart mode: minimum turns (1-20)")
@click.option("--blacklist", default=None, help="Smart mode: comma-separated keywords")
def settings_set(mode: str | None, min_turns: int | None, blacklist: str | None):
    from .capture.settings import CaptureSettingsStore
    from .exceptions import ConfigError

    DATA_DIR.mkdir(parents=True, exist_ok=True)
    store = CaptureSettingsStore(SETTINGS_PATH)
    try:
        current = store.load().to_dict()
        if mode is not None:
            current["mode"] = mode
        if min_turns is not None:
            current["smart_config"]["min_turns"] = min_turns
        if blacklist is not None:
            current["smart_config"]["blacklist_keywords"] = blacklist
        policy = store.save(current)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e
    click.echo(json.dumps(policy.to_dict(), indent=2, ensure_ascii=False))


if __name__ == "__main__":
    cli()
