from __future__ import annotations

import sys
import logging

import click
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn, BarColumn, TaskProgressColumn

from .config import (
    COLLECTION_MODES,
    load_config,
    get_admission_config,
    get_collection_config,
    get_keyword_config,
    get_quota_config,
    get_tracking_config,
    get_youtube_config,
)
from .database.models import CHANNEL_STATUSES
from .database.repository import ORDERABLE_COLUMNS, Repository
from .discovery.keywords import KEYWORD_STRATEGIES, KeywordSource, load_override_keywords
from .discovery.quota import QuotaTracker
from .errors import ConfigurationError
from .ingestion.credentials import CredentialProvider
from .ingestion.pipeline import CollectionPipeline
from .ingestion.tracking import TrackingUpdater
from .ingestion.youtube_client import YouTubeClient
from .utils.logging_config import setup_logging
from .utils.time_utils import utcnow

console = Console()
logger = logging.getLogger(__name__)


def _build_client(config: dict) -> YouTubeClient:
    """Resolve the API key and construct the YouTube client."""
    yt_cfg = get_youtube_config(config)
    api_key = CredentialProvider.default(yt_cfg).resolve()
    return YouTubeClient.from_config(api_key, yt_cfg)


def _build_keyword_source(config: dict) -> KeywordSource:
    kw_cfg = get_keyword_config(config)
    if kw_cfg["override"] or kw_cfg["override_url"]:
        return KeywordSource(override_provider=lambda: load_override_keywords(kw_cfg))
    return KeywordSource()


def _fail(message: str):
    console.print(f"[red]Error:[/red] {message}")
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
@click.pass_context
def cli(ctx, verbose):
    """BGM Scout - Discover and track fast-growing background music channels."""
    ctx.ensure_object(dict)
    config = load_config()
    if verbose:
        config["log_level"] = "DEBUG"
    setup_logging(config.get("log_file"), config["log_level"])
    ctx.obj["config"] = config


@cli.command()
@click.option("--mode", "-m", type=click.Choice(COLLECTION_MODES), default="standard",
              help="Collection preset")
@click.option("--months", type=float, default=None, help="Max channel age in months")
@click.option("--min-subs", type=int, default=None, help="Minimum subscribers")
@click.option("--max-subs", type=int, default=None, help="Maximum subscribers")
@click.option("--min-videos", type=int, default=None, help="Minimum video count")
@click.option("--min-growth", type=int, default=None, help="Minimum growth score")
@click.option("--keywords", "-k", "keyword_count", type=int, default=None,
              help="Number of keywords to search")
@click.option("--shard-index", type=int, default=0, help="This worker's keyword shard")
@click.option("--shard-count", type=int, default=1, help="Total keyword shards")
@click.pass_context
def collect(ctx, mode, months, min_subs, max_subs, min_videos, min_growth,
            keyword_count, shard_index, shard_count):
    """Search YouTube for new BGM channels and store the ones that qualify.

    \b
    Examples:
        bgmscout collect                        # Standard preset
        bgmscout collect --mode smart           # Size the run from remaining quota
        bgmscout collect --min-growth 20 -k 5   # Stricter, fewer keywords
        bgmscout collect --shard-index 1 --shard-count 3
    """
    config = ctx.obj["config"]

    try:
        run_config = get_collection_config(config, mode)
        admission = get_admission_config(config, mode, {
            "months_threshold": months,
            "min_subscribers": min_subs,
            "max_subscribers": max_subs,
            "min_videos": min_videos,
            "min_growth_rate": min_growth,
        })
    except (ValueError, TypeError) as e:
        _fail(f"Invalid collection settings: {e}")

    quota = QuotaTracker(**get_quota_config(config))

    if mode == "smart":
        reset = quota.reset_info()
        if not reset["can_run_today"]:
            console.print(
                f"[yellow]Quota resets in {reset['hours_until_reset']}h; skipping run.[/yellow]"
            )
            return
        params = quota.recommended_params()
        if params["mode"] == "none":
            console.print("[yellow]Not enough quota remaining for a collection run.[/yellow]")
            return
        for key in ("keyword_count", "videos_per_keyword", "max_channels_per_run"):
            run_config[key] = min(run_config[key], params[key])
        console.print(
            f"Smart mode: [bold]{params['mode']}[/bold] band, "
            f"estimated cost {params['estimated_cost']} units"
        )

    if keyword_count is not None:
        run_config["keyword_count"] = keyword_count
    run_config["shard_index"] = shard_index
    run_config["shard_count"] = shard_count

    repo = Repository(config["db_path"])
    started_at = utcnow()
    report = {}

    try:
        client = _build_client(config)
        pipeline = CollectionPipeline(
            client,
            repo,
            quota,
            _build_keyword_source(config),
            admission,
            run_config,
            first_video_max_pages=get_youtube_config(config)["first_video_max_pages"],
        )

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = None

            for event in pipeline.run():
                kind = event["event"]
                if kind == "start":
                    search_total = len(event["keywords"])
                    task = progress.add_task("Searching keywords", total=search_total)

                elif kind == "keyword_searched":
                    progress.advance(task)
                    progress.console.print(
                        f"  [cyan]SEARCH[/cyan] {event['keyword']}: "
                        f"{event['videos']} videos, {event['new_channels']} new channels"
                    )

                elif kind == "keyword_failed":
                    progress.advance(task)
                    progress.console.print(
                        f"  [red]FAIL[/red] {event['keyword']}: {event['error'][:80]}"
                    )

                elif kind == "quota_exhausted":
                    progress.console.print(
                        f"  [bold yellow]QUOTA[/bold yellow] Stopping {event['stage']} "
                        f"({event['remaining']} units left)"
                    )

                elif kind == "deduplicated":
                    progress.update(task, completed=search_total)
                    task = progress.add_task("Checking channels", total=event["queued"])

                elif kind == "channel_admitted":
                    progress.advance(task)
                    progress.console.print(
                        f"  [green]SAVED[/green] {event['title'][:60]} "
                        f"({event['subscribers']} subs, growth {event['growth_rate']})"
                    )

                elif kind == "channel_rejected":
                    progress.advance(task)

                elif kind in ("channel_skipped", "channel_failed"):
                    progress.advance(task)
                    if kind == "channel_failed":
                        progress.console.print(
                            f"  [red]FAIL[/red] {event['channel_id']}: {event['error'][:80]}"
                        )

                elif kind == "complete":
                    report = event["report"]

        repo.record_run("collect", report, started_at, mode=mode, quota_used=report["quota_used"])
    except ConfigurationError as e:
        _fail(str(e))
    except Exception as e:
        logger.exception("Collection run failed")
        _fail(f"Collection run failed: {e}")
    finally:
        repo.close()

    table = Table(title=f"Collection Results ({mode})")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    for key in ("found", "processed", "filtered", "saved", "skipped", "errors",
                "searches", "quota_used"):
        table.add_row(key.replace("_", " ").title(), str(report.get(key, 0)))
    console.print()
    console.print(table)
    if report.get("stopped_early"):
        console.print("[yellow]Run stopped early on quota; partial results were saved.[/yellow]")


@cli.command()
@click.pass_context
def track(ctx):
    """Record today's subscriber snapshot for every tracked channel."""
    config = ctx.obj["config"]
    tracking_cfg = get_tracking_config(config)
    repo = Repository(config["db_path"])
    started_at = utcnow()
    results = {"total": 0, "successful": 0, "failed": 0}
    quota = QuotaTracker(**get_quota_config(config))

    try:
        updater = TrackingUpdater(
            _build_client(config), repo, quota=quota, delay=tracking_cfg["delay"]
        )
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = None
            for event in updater.update_all():
                if event["event"] == "start":
                    if event["total"] == 0:
                        console.print("[yellow]No channels are being tracked.[/yellow]")
                        console.print("Enroll one with: [bold]bgmscout enroll CHANNEL_ID[/bold]")
                        return
                    task = progress.add_task("Updating snapshots", total=event["total"])
                elif event["event"] == "snapshot_recorded":
                    progress.advance(task)
                elif event["event"] == "failed":
                    progress.advance(task)
                    progress.console.print(
                        f"  [red]FAIL[/red] {event['channel_id']}: {event['error'][:80]}"
                    )
                elif event["event"] == "quota_exhausted":
                    progress.console.print("  [bold yellow]QUOTA[/bold yellow] Stopping update")
                elif event["event"] == "complete":
                    results = event["results"]

        repo.record_run("track", results, started_at, quota_used=quota.used)
    except ConfigurationError as e:
        _fail(str(e))
    except Exception as e:
        logger.exception("Tracking update failed")
        _fail(f"Tracking update failed: {e}")
    finally:
        repo.close()

    console.print()
    console.print(
        f"[bold]Results:[/bold] {results['successful']} updated, "
        f"{results['failed']} failed of {results['total']}"
    )


@cli.command()
@click.argument("channel_id")
@click.pass_context
def enroll(ctx, channel_id):
    """Start tracking a stored channel and record its first snapshot."""
    config = ctx.obj["config"]
    repo = Repository(config["db_path"])
    try:
        updater = TrackingUpdater(_build_client(config), repo)
        enrolled = updater.enroll(channel_id)
    except ConfigurationError as e:
        _fail(str(e))
    finally:
        repo.close()

    if not enrolled:
        _fail(f"Could not enroll {channel_id} (unknown channel or details unavailable)")
    console.print(f"[green]Tracking:[/green] {channel_id}")


@cli.command()
@click.argument("channel_ids", nargs=-1, required=True)
@click.option("--status", "-s", type=click.Choice(CHANNEL_STATUSES), required=True)
@click.option("--reason", "-r", default=None, help="Rejection reason (rejected only)")
@click.pass_context
def triage(ctx, channel_ids, status, reason):
    """Set the triage status of one or more channels.

    \b
    Examples:
        bgmscout triage UCxxxx --status non-tracking
        bgmscout triage UCxxxx UCyyyy -s rejected -r "reupload channel"
    """
    config = ctx.obj["config"]
    repo = Repository(config["db_path"])
    try:
        result = repo.bulk_update_status(list(channel_ids), status, reason)
    finally:
        repo.close()

    console.print(f"[green]Updated:[/green] {result['success']}  [red]Unknown:[/red] {result['failed']}")


@cli.command()
@click.option("--status", "-s", type=click.Choice(CHANNEL_STATUSES + ("all",)), default="all")
@click.option("--limit", "-n", type=int, default=50, help="Max channels to list")
@click.option("--order-by", type=click.Choice(sorted(ORDERABLE_COLUMNS)), default="growth_rate")
@click.pass_context
def channels(ctx, status, limit, order_by):
    """List stored channels."""
    config = ctx.obj["config"]
    repo = Repository(config["db_path"])
    try:
        channel_list = repo.get_channels(limit=limit, order_by=order_by, status=status)
    finally:
        repo.close()

    if not channel_list:
        console.print("[yellow]No channels stored yet.[/yellow]")
        console.print("Find some with: [bold]bgmscout collect[/bold]")
        return

    table = Table(title="BGM Channels")
    table.add_column("Channel ID")
    table.add_column("Title")
    table.add_column("Subs", justify="right")
    table.add_column("Videos", justify="right")
    table.add_column("Growth", justify="right")
    table.add_column("Status")
    table.add_column("Added")

    for ch in channel_list:
        table.add_row(
            ch["channel_id"],
            ch["title"][:40],
            f"{ch['subscriber_count']:,}",
            str(ch["video_count"]),
            str(ch["growth_rate"]),
            ch["status"] or "unset",
            (ch.get("created_at") or "")[:10],
        )

    console.print(table)


@cli.command()
@click.pass_context
def stats(ctx):
    """Show channel, triage and run statistics."""
    config = ctx.obj["config"]
    repo = Repository(config["db_path"])
    try:
        channel_stats = repo.get_channel_stats()
        status_stats = repo.get_status_statistics()
        runs = repo.get_recent_runs(5)
    finally:
        repo.close()

    table = Table(title="BGM Scout Status")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Channels", str(channel_stats["total_channels"]))
    table.add_row("Average Subscribers", f"{channel_stats['average_subscribers']:,}")
    table.add_row("Average Growth", str(channel_stats["average_growth_rate"]))
    top = channel_stats["top_channel"]
    if top:
        table.add_row("Top Channel", f"{top['title'][:30]} ({top['subscriber_count']:,})")
    for name in CHANNEL_STATUSES:
        table.add_row(f"  {name}", str(status_stats.get(name, 0)))
    console.print(table)

    if runs:
        run_table = Table(title="Recent Runs")
        run_table.add_column("Type")
        run_table.add_column("Mode")
        run_table.add_column("Finished")
        run_table.add_column("Saved / Updated", justify="right")
        run_table.add_column("Quota", justify="right")
        for run in runs:
            rep = run["report"]
            done = rep.get("saved", rep.get("successful", 0))
            run_table.add_row(
                run["run_type"],
                run["mode"] or "-",
                (run["finished_at"] or "")[:16],
                str(done),
                str(run["quota_used"]),
            )
        console.print(run_table)


@cli.command()
@click.argument("channel_id")
@click.option("--days", "-d", type=int, default=None, help="History window in days")
@click.pass_context
def history(ctx, channel_id, days):
    """Show a channel's snapshot history and trailing growth."""
    config = ctx.obj["config"]
    days = days or get_tracking_config(config)["history_days"]
    repo = Repository(config["db_path"])
    try:
        report = TrackingUpdater(None, repo).growth_report(channel_id, days=days)
    finally:
        repo.close()

    if report is None:
        _fail(f"Unknown channel: {channel_id}")

    table = Table(title=f"{report['title']} - last {days} days")
    table.add_column("Date")
    table.add_column("Subscribers", justify="right")
    table.add_column("Videos", justify="right")
    table.add_column("Views", justify="right")
    for snap in report["snapshots"]:
        table.add_row(
            snap["recorded_at"][:10],
            f"{snap['subscriber_count']:,}",
            str(snap["video_count"]),
            f"{snap['total_views']:,}",
        )
    console.print(table)
    console.print(f"Week-over-week growth: [bold]{report['trailing_growth_rate']}%[/bold]")


@cli.command()
@click.option("--threshold", "-t", type=float, default=None,
              help="Minimum week-over-week growth percent")
@click.pass_context
def surging(ctx, threshold):
    """List tracked channels with a surge in subscribers."""
    config = ctx.obj["config"]
    if threshold is None:
        threshold = get_tracking_config(config)["surge_threshold"]
    repo = Repository(config["db_path"])
    try:
        found = TrackingUpdater(None, repo).detect_surging(threshold)
    finally:
        repo.close()

    if not found:
        console.print(f"[yellow]No tracked channels above {threshold}% growth.[/yellow]")
        return

    table = Table(title=f"Surging Channels (>= {threshold}%)")
    table.add_column("Channel ID")
    table.add_column("Title")
    table.add_column("Subs", justify="right")
    table.add_column("Growth", justify="right")
    for ch in found:
        table.add_row(
            ch["channel_id"], ch["title"][:40],
            f"{ch['subscriber_count']:,}", f"{ch['trailing_growth_rate']}%",
        )
    console.print(table)


@cli.command()
@click.option("--remaining", "-r", type=int, default=None,
              help="Plan for this many remaining units instead of the full budget")
@click.pass_context
def quota(ctx, remaining):
    """Show the daily quota budget, reset time and recommended run shape."""
    config = ctx.obj["config"]
    tracker = QuotaTracker(**get_quota_config(config))
    status = tracker.status()
    params = tracker.recommended_params(remaining)

    table = Table(title="YouTube API Quota")
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Daily Limit", f"{status['daily_limit']:,}")
    table.add_row("Next Reset", status["reset_time"])
    table.add_row("Hours Until Reset", str(status["hours_until_reset"]))
    table.add_row("Can Run Today", "yes" if status["can_run_today"] else "no")
    table.add_row("Band", params["mode"])
    table.add_row("Keywords", str(params["keyword_count"]))
    table.add_row("Videos / Keyword", str(params["videos_per_keyword"]))
    table.add_row("Channel Cap", str(params["max_channels_per_run"]))
    table.add_row("Estimated Cost", f"{params['estimated_cost']:,}")
    console.print(table)


@cli.command()
@click.option("--count", "-n", type=int, default=8, help="Number of keywords")
@click.option("--day", type=int, default=None, help="Day of year (default: today)")
@click.option("--strategy", type=click.Choice(KEYWORD_STRATEGIES), default="rotating")
@click.pass_context
def keywords(ctx, count, day, strategy):
    """Preview the keywords a run would search."""
    source = _build_keyword_source(ctx.obj["config"])
    for i, kw in enumerate(source.select_keywords(count, day=day, strategy=strategy), 1):
        console.print(f"  {i:2d}. {kw}")


@cli.command()
@click.option("--host", default="127.0.0.1", help="Host to bind to")
@click.option("--port", "-p", type=int, default=5000, help="Port to bind to")
@click.option("--debug", is_flag=True, help="Enable debug mode")
@click.pass_context
def serve(ctx, host, port, debug):
    """Start the JSON API used by the triage dashboard.

    \b
    Examples:
        bgmscout serve               # Start on localhost:5000
        bgmscout serve -p 8080       # Start on port 8080
    """
    from .web.app import create_app

    app = create_app(ctx.obj["config"])
    console.print()
    console.print(Panel.fit(
        f"[bold green]BGM Scout API[/bold green]\n"
        f"http://{host}:{port}/api/channels",
        border_style="green",
    ))
    try:
        app.run(host=host, port=port, debug=debug)
    except Exception:
        logger.exception("API server failed")
        _fail("API server failed to start")


if __name__ == "__main__":
    cli()
