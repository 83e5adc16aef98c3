"""papersync CLI - command-line host for the sync engine.

Usage: papersync <command> [options]

Commands for logging in, syncing, managing articles and inspecting the
local store and offline queue.
"""

import json
import logging
import sys
from datetime import datetime
from pathlib import Path

import click

from .config import load_config
from .engine import Engine
from .errors import PaperSyncError
from .transport import CallResult


def setup_logging(level: str) -> None:
    """Configure logging with the specified level."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)-5s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def build_engine(env_file: Path | None = None) -> Engine:
    """Load configuration and construct an Engine."""
    config = load_config(env_file)
    setup_logging(config.log_level)
    return Engine.from_config(config)


def _engine(ctx: click.Context) -> Engine:
    if "engine" not in ctx.obj:
        try:
            ctx.obj["engine"] = build_engine(ctx.obj.get("env_file"))
        except ValueError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(2)
        ctx.call_on_close(ctx.obj["engine"].close)
    return ctx.obj["engine"]


def _fail(error: Exception, code: int = 1) -> None:
    click.echo(f"Error: {error}", err=True)
    sys.exit(code)


def _format_time(timestamp: int | None) -> str:
    if not timestamp:
        return "never"
    return datetime.fromtimestamp(timestamp).strftime("%Y-%m-%d %H:%M:%S")


def _report_action(result: CallResult, done_message: str) -> None:
    if result.queued:
        click.echo(f"{done_message} (queued, will happen on next sync)")
    elif result.success:
        click.echo(done_message)
    else:
        _fail(result.error_message or "Request failed")


# =============================================================================
# CLI Group
# =============================================================================

@click.group()
@click.version_option(version="0.1.0", prog_name="papersync")
@click.option("--env-file", type=click.Path(dir_okay=False, path_type=Path), default=None,
              help="Read configuration from this .env file")
@click.pass_context
def cli(ctx, env_file):
    """papersync: offline-first reading list client."""
    ctx.ensure_object(dict)
    ctx.obj["env_file"] = env_file


# =============================================================================
# Account Commands
# =============================================================================

@cli.command()
@click.option("--username", prompt=True, help="Account email or username")
@click.option("--password", prompt=True, hide_input=True, help="Account password")
@click.pass_context
def login(ctx, username, password):
    """Log in and store the access token."""
    engine = _engine(ctx)
    try:
        engine.authenticate(username, password)
    except PaperSyncError as e:
        _fail(e, 3)
    click.echo(f"Logged in as {username}.")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation")
@click.pass_context
def logout(ctx, yes):
    """Log out and delete all local data."""
    if not yes:
        click.confirm("This removes all downloaded articles and queued actions. Continue?", abort=True)
    _engine(ctx).logout()
    click.echo("Logged out.")


@cli.command()
@click.pass_context
def status(ctx):
    """Show login state, store contents and queue length."""
    engine = _engine(ctx)
    credentials = engine.state.get_credentials()

    if credentials:
        click.echo(f"Logged in: {credentials.username or 'yes'}")
    else:
        click.echo("Logged in: no")
    click.echo(f"Articles: {engine.store.count_articles()}")
    click.echo(f"Pending highlights: {len(engine.store.get_pending_highlights())}")
    click.echo(f"Queued requests: {len(engine.queue)}")
    click.echo(f"Last sync: {_format_time(engine.get_last_sync_time())}")


# =============================================================================
# Sync Commands
# =============================================================================

@cli.command()
@click.pass_context
def sync(ctx):
    """Run one sync cycle."""
    engine = _engine(ctx)
    try:
        report = engine.sync()
    except PaperSyncError as e:
        _fail(e)

    for error in report.queue_errors:
        click.echo(f"  queued request {error.url} {error.params}: {error.error}", err=True)
    for failure in report.push_failures:
        click.echo(f"  highlight {failure.local_id} ({failure.action}): {failure.error}", err=True)

    if not report.success:
        click.echo(f"Sync failed: {report.pull_error}", err=True)
        sys.exit(1)

    click.echo(
        f"Synced {report.articles_received} articles, {report.highlights_received} highlights, "
        f"removed {report.articles_deleted}."
    )
    if report.error_count:
        click.echo(f"{report.error_count} items will be retried on the next sync.")


# =============================================================================
# Article Commands
# =============================================================================

@cli.command()
@click.argument("url")
@click.option("--title", default=None, help="Title to save with the URL")
@click.pass_context
def add(ctx, url, title):
    """Save URL to the reading list."""
    try:
        result = _engine(ctx).add_article(url, title)
    except PaperSyncError as e:
        _fail(e)
    _report_action(result, f"Added {url}")


def _run_action(ctx: click.Context, method: str, bookmark_id: int, done_message: str) -> None:
    try:
        result = getattr(_engine(ctx), method)(bookmark_id)
    except PaperSyncError as e:
        _fail(e)
    _report_action(result, done_message)


@cli.command()
@click.argument("bookmark_id", type=int)
@click.pass_context
def archive(ctx, bookmark_id):
    """Archive BOOKMARK_ID."""
    _run_action(ctx, "archive_article", bookmark_id, f"Archived {bookmark_id}")


@cli.command()
@click.argument("bookmark_id", type=int)
@click.pass_context
def star(ctx, bookmark_id):
    """Star BOOKMARK_ID."""
    _run_action(ctx, "favorite_article", bookmark_id, f"Starred {bookmark_id}")


@cli.command()
@click.argument("bookmark_id", type=int)
@click.pass_context
def unstar(ctx, bookmark_id):
    """Remove the star from BOOKMARK_ID."""
    _run_action(ctx, "unfavorite_article", bookmark_id, f"Unstarred {bookmark_id}")


@cli.command()
@click.argument("bookmark_id", type=int)
@click.pass_context
def download(ctx, bookmark_id):
    """Download and cache the text of BOOKMARK_ID."""
    try:
        path = _engine(ctx).download_article(bookmark_id)
    except PaperSyncError as e:
        _fail(e)
    click.echo(f"Saved to {path}")


@cli.command()
@click.option("--format", "output_format", type=click.Choice(["table", "json"]), default="table",
              help="Output format")
@click.pass_context
def articles(ctx, output_format):
    """List unarchived articles, newest first."""
    items = _engine(ctx).get_articles()

    if output_format == "json":
        data = [
            {
                "bookmark_id": a.bookmark_id,
                "title": a.title,
                "url": a.url,
                "starred": a.starred,
                "progress": a.progress,
                "downloaded": bool(a.html_filename),
            }
            for a in items
        ]
        click.echo(json.dumps(data, indent=2))
        return

    click.echo(f"{'ID':<12} {'Star':<5} {'Read':<6} {'Title':<60}")
    click.echo("-" * 85)
    for a in items:
        star_mark = "*" if a.starred else ""
        click.echo(f"{a.bookmark_id:<12} {star_mark:<5} {a.progress:<6.0%} {a.title[:60]:<60}")
    click.echo(f"\nTotal: {len(items)} articles")


@cli.command()
@click.argument("bookmark_id", type=int)
@click.option("--refresh", is_flag=True, help="Fetch from the service before listing")
@click.pass_context
def highlights(ctx, bookmark_id, refresh):
    """List highlights of BOOKMARK_ID."""
    engine = _engine(ctx)
    try:
        items = engine.fetch_highlights(bookmark_id) if refresh else engine.get_stored_highlights(bookmark_id)
    except PaperSyncError as e:
        _fail(e)

    for h in items:
        click.echo(f"[{h.position}] {h.text} ({h.sync_status})")
        if h.note:
            click.echo(f"    note: {h.note}")
    click.echo(f"\nTotal: {len(items)} highlights")


@cli.command()
@click.pass_context
def queue(ctx):
    """Show requests waiting for connectivity."""
    pending = _engine(ctx).queue.pending()
    for request in pending:
        click.echo(f"{_format_time(request.timestamp)}  {request.endpoint:<8} {request.params}")
    click.echo(f"\nTotal: {len(pending)} queued requests")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
