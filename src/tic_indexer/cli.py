"""CLI entry point for the TIC indexer."""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click

from tic_indexer.api.query import QueryEngine
from tic_indexer.config import load_config
from tic_indexer.daemon import IndexerDaemon, run_daemon
from tic_indexer.errors import CycleDetectedError
from tic_indexer.feed.jsonl import JsonlEventFeed
from tic_indexer.models.config import IndexerConfig
from tic_indexer.storage.comment_store import CommentStore
from tic_indexer.storage.sqlite import SQLiteCommentRepository
from tic_indexer.tic.topics import classify_topic, normalize_topic


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2))


def _with_query(cfg: IndexerConfig, fn):
    """Load the store from the database and run ``fn(query, repository)``."""

    async def _run():
        repository = SQLiteCommentRepository(cfg.db_path)
        await repository.initialize()
        try:
            store = CommentStore(repository, reorg_window=cfg.reorg_window)
            await store.rebuild()
            query = QueryEngine(store, cfg.limits.max_thread_depth)
            return await fn(query, repository)
        finally:
            await repository.close()

    return asyncio.run(_run())


@click.group()
@click.option("-c", "--config", "config_path", default=None, help="Path to config TOML file")
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, verbose: bool) -> None:
    """tic-indexer - Threaded comment indexer for TIC inscriptions."""
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    cfg = load_config(config_path)
    ctx.obj["config"] = cfg

    level = logging.DEBUG if verbose else getattr(logging, cfg.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


# ── Indexer ────────────────────────────────────────────


@cli.command()
@click.pass_context
def run(ctx: click.Context) -> None:
    """Start the indexer and follow the event feed."""
    cfg = ctx.obj["config"]
    click.echo(f"Starting tic-indexer (feed: {cfg.feed.replay_path or cfg.feed.url})")
    asyncio.run(run_daemon(cfg))


@cli.command()
@click.argument("path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def replay(ctx: click.Context, path: str) -> None:
    """Ingest a JSON-lines event log into the database and exit."""
    cfg = ctx.obj["config"]

    async def _replay():
        feed = JsonlEventFeed(path, cfg.feed.page_size)
        daemon = IndexerDaemon(cfg, feed=feed)
        await daemon.initialize()
        try:
            while not feed.exhausted:
                await daemon.run_once()
        finally:
            await daemon.repository.close()
        return daemon.pipeline.stats, daemon.store.high_water

    stats, high_water = asyncio.run(_replay())
    click.echo(f"Accepted:   {stats.accepted}")
    click.echo(f"Rejected:   {stats.rejected}")
    click.echo(f"Duplicates: {stats.duplicates}")
    click.echo(f"Ignored:    {stats.ignored}")
    click.echo(f"Deletions:  {stats.deletions} (+{stats.buffered_deletions} buffered)")
    click.echo(f"Reorgs:     {stats.reorgs} ({stats.rebuilds} rebuilds)")
    click.echo(f"High water: {high_water or '(none)'}")


# ── Info ───────────────────────────────────────────────


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show configuration and index counters."""
    cfg = ctx.obj["config"]
    click.echo(f"Feed:          {cfg.feed.replay_path or cfg.feed.url}")
    click.echo(f"DB path:       {cfg.db_path}")
    click.echo(f"Reorg window:  {cfg.reorg_window} blocks")
    click.echo(f"Topic parts:   max {cfg.limits.max_topic_parts}")
    click.echo(f"Payload bytes: max {cfg.limits.max_payload_bytes}")

    async def _summary(query, repository):
        return query.get_summary()

    summary = _with_query(cfg, _summary)
    click.echo("")
    click.echo(f"Records:       {summary.total_records} "
               f"({summary.valid_records} valid, {summary.invalid_records} invalid)")
    click.echo(f"Deleted:       {summary.deleted_records}")
    click.echo(f"Replies:       {summary.replies} ({summary.orphans} orphaned)")
    click.echo(f"Pending dels:  {summary.pending_deletions}")
    hw = summary.high_water
    high_water = f"{hw['block']}:{hw['index']}" if hw else "(none)"
    click.echo(f"High water:    {high_water}")


@cli.command()
@click.option("-n", "--limit", type=int, default=20, help="Number of entries")
@click.pass_context
def activity(ctx: click.Context, limit: int) -> None:
    """Show recent indexer activity."""
    cfg = ctx.obj["config"]

    async def _activity(query, repository):
        return await repository.get_recent_activity(limit)

    for entry in _with_query(cfg, _activity):
        target = f" {entry.ethscription_id}" if entry.ethscription_id else ""
        click.echo(f"{entry.created_at}  {entry.event_type:<18}{target}  {entry.message}")


# ── Queries ────────────────────────────────────────────


@cli.command()
@click.argument("topic")
@click.pass_context
def topic(ctx: click.Context, topic: str) -> None:
    """List comments on TOPIC."""

    async def _topic(query, repository):
        return query.get_by_topic(topic)

    _echo_json([r.to_dict() for r in _with_query(ctx.obj["config"], _topic)])


@cli.command()
@click.argument("root_id")
@click.pass_context
def thread(ctx: click.Context, root_id: str) -> None:
    """Print the reply tree under ROOT_ID."""

    async def _thread(query, repository):
        return query.get_thread(root_id)

    try:
        tree = _with_query(ctx.obj["config"], _thread)
    except CycleDetectedError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(1)
    if tree is None:
        click.echo(f"No comment {root_id}", err=True)
        sys.exit(1)
    _echo_json(tree.to_dict())


@cli.command()
@click.argument("address")
@click.pass_context
def author(ctx: click.Context, address: str) -> None:
    """List comments written by ADDRESS."""

    async def _author(query, repository):
        return query.get_by_author(address)

    _echo_json([r.to_dict() for r in _with_query(ctx.obj["config"], _author)])


@cli.command()
@click.argument("record_id")
@click.pass_context
def comment(ctx: click.Context, record_id: str) -> None:
    """Show one record, including rejected ones and their errors."""

    async def _comment(query, repository):
        return query.get_comment(record_id)

    record = _with_query(ctx.obj["config"], _comment)
    if record is None:
        click.echo(f"No record {record_id}", err=True)
        sys.exit(1)
    _echo_json(record.to_dict(include_audit=True))


@cli.command()
@click.argument("topic")
def classify(topic: str) -> None:
    """Advisory reading of what TOPIC points at."""
    _echo_json(classify_topic(normalize_topic(topic)).to_dict())


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
