"""
Command-line interface for feed-mirror.

This module implements the CLI using Click, providing all commands
for mirroring YouTube channel uploads into one playlist.
rich-click is used for the output colors.

Commands:
    feed-mirror --sync                      Add the newest video of every configured channel
    feed-mirror --sync --channel <id>       Same, for the given channel(s) only
    feed-mirror --auto                      One incremental pass (new videos since last check)
    feed-mirror --watch                     Incremental passes every sync.period_minutes
    feed-mirror --status                    Show the last pass and the schedule
    feed-mirror --subscriptions             Replace the feed list with your subscriptions
    feed-mirror --playlists                 List your playlists
    feed-mirror --use-playlist <id>         Set the destination playlist
    feed-mirror --import <file.json>        Replace the feed list from a channel list
    feed-mirror --export <file.json>        Write the feed list as a channel list
    feed-mirror --reset                     Forget watermarks and the last run summary

Options:
    --config <path>                         Use another config.yaml
    --verbose                               Show DEBUG messages on the console

Configuration:
    The CLI reads config.yaml from the current directory (or --config):
    - YouTube access token (or YOUTUBE_ACCESS_TOKEN in the environment / .env)
    - Destination playlist id
    - Feed list
    - Sync period and throttling delays
    - Storage directory for database.db and logs/

Exit Codes:
    0    success
    1    configuration error
    2    database error
    3    YouTube API / authentication error
    4    other feed-mirror error (including a failed sync pass)
    130  interrupted
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import rich_click as click

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Sync",
            "options": ["--sync", "--channel", "--auto", "--watch", "--status"],
        },
        {
            "name": "Channels and Playlist",
            "options": ["--subscriptions", "--playlists", "--use-playlist", "--import", "--export"],
        },
        {
            "name": "Maintenance",
            "options": ["--reset", "--config", "--verbose"],
        },
        {
            "name": "Info",
            "options": ["--version", "--help"],
        },
    ],
}

from feed_mirror import __version__
from feed_mirror.core import (
    ApiError,
    AuthError,
    Config,
    ConfigError,
    Database,
    DatabaseError,
    FeedConfig,
    FeedMirrorError,
    get_logger,
    load_config,
    save_feeds,
    save_playlist,
    setup_logging,
    shutdown_logging,
)
from feed_mirror.core.config import CONFIG_FILENAME
from feed_mirror.core.progress import AppendProgressBar
from feed_mirror.feeds import FeedFetcher, FeedSource
from feed_mirror.sync import PeriodicTrigger, RunSummary, SyncEngine, SyncResult, setup_schedule
from feed_mirror.utils import ensure_directory, export_channels, import_channels
from feed_mirror.youtube import Channel, YouTubeClient

logger = get_logger(__name__)


ACTIONS = (
    "sync", "auto", "watch", "status", "subscriptions", "playlists",
    "use_playlist", "import_file", "export_file", "reset",
)


@click.command()
@click.option(
    "--sync",
    is_flag=True,
    help="Add the newest video of each channel (on demand)"
)
@click.option(
    "--channel", "channels",
    multiple=True,
    metavar="<channel-id>",
    help="Limit --sync to this channel (repeatable)"
)
@click.option(
    "--auto",
    is_flag=True,
    help="Run one incremental pass: every video published since the last check"
)
@click.option(
    "--watch",
    is_flag=True,
    help="Run incremental passes every sync.period_minutes until interrupted"
)
@click.option(
    "--status",
    is_flag=True,
    help="Show the last sync pass and the schedule"
)
@click.option(
    "--subscriptions",
    is_flag=True,
    help="Replace the feed list with your YouTube subscriptions"
)
@click.option(
    "--playlists",
    is_flag=True,
    help="List your YouTube playlists"
)
@click.option(
    "--use-playlist",
    type=str,
    default=None,
    metavar="<playlist-id>",
    help="Set the destination playlist"
)
@click.option(
    "--import", "import_file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<file.json>",
    help="Replace the feed list from a channel list file"
)
@click.option(
    "--export", "export_file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<file.json>",
    help="Write the feed list to a channel list file"
)
@click.option(
    "--reset",
    is_flag=True,
    help="Forget all watermarks and the last run summary"
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show DEBUG messages on the console"
)
@click.option(
    "--version",
    is_flag=True,
    help="Show version and exit."
)
@click.pass_context
def cli(
    ctx: click.Context,
    sync: bool,
    channels: tuple[str, ...],
    auto: bool,
    watch: bool,
    status: bool,
    subscriptions: bool,
    playlists: bool,
    use_playlist: Optional[str],
    import_file: Optional[Path],
    export_file: Optional[Path],
    reset: bool,
    config_path: Optional[Path],
    verbose: bool,
    version: bool
) -> None:
    """
    feed-mirror: Mirror new YouTube uploads into one playlist.

    Watches the upload feeds of a list of channels and adds their new
    videos to a single playlist of yours.

    \b
    BASIC USAGE:
        feed-mirror --sync                  # Newest video of every channel
        feed-mirror --auto                  # Everything new since the last check
        feed-mirror --watch                 # Keep running, check every period

    \b
    SETUP:
        feed-mirror --playlists             # Find your playlist id
        feed-mirror --use-playlist PL...    # Choose the destination
        feed-mirror --subscriptions         # Mirror every subscribed channel
        feed-mirror --import channels.json  # ...or a curated list
    """
    # Handle --version
    if version:
        click.echo(f"feed-mirror {__version__}")
        ctx.exit(0)

    params = ctx.params
    selected = [name for name in ACTIONS if params[name]]

    if not selected:
        click.echo(ctx.get_help())
        ctx.exit(0)

    if len(selected) > 1:
        raise click.UsageError("Only one action can be used at a time")

    if channels and not sync:
        raise click.UsageError("--channel can only be used with --sync")

    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    # Config-only operations: no logging, no database, no network
    if import_file:
        _handle_import(import_file, config_path)
        ctx.exit(0)

    if use_playlist:
        _handle_use_playlist(use_playlist, config_path)
        ctx.exit(0)

    ctx.ensure_object(dict)
    ctx.obj["action"] = selected[0]
    ctx.obj["channels"] = list(channels)
    ctx.obj["export_file"] = export_file
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose

    _run_action(ctx.obj)


def _run_action(options: dict) -> None:
    """
    Execute the selected action.

    This is the main orchestration function that:
    1. Loads configuration
    2. Sets up logging
    3. Initializes the database
    4. Runs the action
    5. Maps failures to exit codes

    Args:
        options: Dictionary with CLI options from click context.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    database: Database | None = None

    try:
        config = load_config(options["config_path"])

        ensure_directory(config.storage_directory)
        setup_logging(config.storage_directory / "logs", verbose=options["verbose"])
        logger.debug(f"feed-mirror {__version__} starting: {options['action']}")

        database = _initialize_database(config.storage_directory)
        action = options["action"]

        if action == "sync":
            result = asyncio.run(_run_latest(
                config, options["config_path"], database, options["channels"]
            ))
            _report_result(result)
        elif action == "auto":
            result = asyncio.run(_run_incremental(config, options["config_path"], database))
            if result is not None:
                _report_result(result)
        elif action == "watch":
            asyncio.run(_run_watch(config, options["config_path"], database))
        elif action == "status":
            _print_status(config, database)
        elif action == "subscriptions":
            asyncio.run(_load_subscriptions(config, options["config_path"]))
        elif action == "playlists":
            asyncio.run(_list_playlists(config))
        elif action == "export_file":
            _handle_export(config, options["export_file"])
        elif action == "reset":
            database.clear_state()
            logger.info("Watermarks and run summary cleared")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except ApiError as e:
        click.echo(f"YouTube API error: {e.message}", err=True)
        if isinstance(e, AuthError):
            click.echo("Refresh youtube.access_token in config.yaml or YOUTUBE_ACCESS_TOKEN", err=True)
        logger.error(f"YouTube API error: {e.message}", exc_info=True)
        sys.exit(3)

    except FeedMirrorError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        if database is not None:
            database.close()
        shutdown_logging()


def _initialize_database(storage_dir: Path) -> Database:
    """
    Initialize the SQLite database.

    Args:
        storage_dir: Directory where database.db is stored.

    Raises:
        DatabaseError: If database cannot be initialized.
    """
    return Database(storage_dir / "database.db")


def _build_engine(
    config: Config,
    config_path: Path,
    database: Database,
    fetcher: FeedFetcher,
    client: YouTubeClient,
    trigger: PeriodicTrigger | None = None
) -> SyncEngine:
    return SyncEngine(
        feed_source=FeedSource(fetcher),
        collection=client,
        store=database,
        config_loader=lambda: load_config(config_path),
        trigger=trigger,
        progress_factory=AppendProgressBar,
        feed_delay=config.sync.feed_delay,
        append_delay=config.sync.append_delay,
    )


def _require_playlist(config: Config) -> str:
    if not config.playlist.id:
        raise ConfigError(
            "No destination playlist configured. Run --playlists to find one, "
            "then --use-playlist <id>.",
            details={"field": "playlist.id"}
        )
    return config.playlist.id


# =============================================================================
# Sync actions
# =============================================================================

async def _run_latest(
    config: Config,
    config_path: Path,
    database: Database,
    channels: list[str]
) -> SyncResult:
    """Run a latest-only pass over --channel ids or the configured feeds."""
    playlist_id = _require_playlist(config)
    feed_keys = channels or config.feed_keys
    if not feed_keys:
        logger.warning("No feeds configured. Use --subscriptions or --import first.")

    timeout = config.sync.request_timeout
    async with FeedFetcher(timeout=timeout) as fetcher, \
            YouTubeClient(config.access_token, timeout=timeout) as client:
        engine = _build_engine(config, config_path, database, fetcher, client)
        return await engine.run_latest_only(feed_keys, playlist_id)


async def _run_incremental(config: Config, config_path: Path, database: Database) -> SyncResult | None:
    """Run a single incremental pass."""
    timeout = config.sync.request_timeout
    async with FeedFetcher(timeout=timeout) as fetcher, \
            YouTubeClient(config.access_token, timeout=timeout) as client:
        engine = _build_engine(config, config_path, database, fetcher, client)
        return await engine.run_incremental()


async def _run_watch(config: Config, config_path: Path, database: Database) -> None:
    """
    Run incremental passes on a schedule until interrupted.

    After every pass the configuration is re-read; a changed period
    re-arms the trigger, a period of 0 stops watching.
    """
    _require_playlist(config)
    timeout = config.sync.request_timeout

    async with FeedFetcher(timeout=timeout) as fetcher, \
            YouTubeClient(config.access_token, timeout=timeout) as client:

        async def scheduled_pass() -> None:
            result = await engine.run_incremental()
            if result is not None:
                logger.info(result.summary)
            try:
                current = load_config(config_path)
            except ConfigError as e:
                logger.error(f"Cannot reload configuration: {e.message}")
                return
            period = current.sync.period_minutes
            if trigger.is_armed and period > 0 and period != trigger.period_minutes:
                setup_schedule(trigger, current)
            if trigger.next_run_at is not None:
                logger.info(f"Next sync at {trigger.next_run_at:%H:%M}")

        trigger = PeriodicTrigger(scheduled_pass)
        engine = _build_engine(config, config_path, database, fetcher, client, trigger)

        if not setup_schedule(trigger, config):
            click.echo("Scheduled sync is disabled: set sync.period_minutes in config.yaml", err=True)
            return

        # next_run_at is set once the trigger task starts
        await asyncio.sleep(0)
        if trigger.next_run_at is not None:
            logger.info(f"Watching {len(config.feeds)} feed(s). Next sync at {trigger.next_run_at:%H:%M}")

        try:
            await trigger.wait()
        finally:
            trigger.clear()


def _report_result(result: SyncResult) -> None:
    if result.success:
        logger.info(result.summary)
        return
    click.echo(result.summary, err=True)
    sys.exit(4)


# =============================================================================
# Channel and playlist actions
# =============================================================================

async def _load_subscriptions(config: Config, config_path: Path) -> None:
    """Replace the configured feed list with the user's subscriptions."""
    async with YouTubeClient(config.access_token, timeout=config.sync.request_timeout) as client:
        channels = await client.list_subscriptions()

    if not channels:
        logger.warning("No subscriptions found; feed list left unchanged")
        return

    save_feeds(config_path, [FeedConfig(id=c.id, name=c.name) for c in channels])
    logger.info(f"Saved {len(channels)} channel(s) to {config_path}")


async def _list_playlists(config: Config) -> None:
    async with YouTubeClient(config.access_token, timeout=config.sync.request_timeout) as client:
        playlists = await client.list_playlists()

    if not playlists:
        logger.info("No playlists found")
        return

    for playlist in playlists:
        marker = "*" if playlist.id == config.playlist.id else " "
        click.echo(f"{marker} {playlist.id}  {playlist.title}")


def _handle_use_playlist(playlist_id: str, config_path: Path) -> None:
    try:
        save_playlist(config_path, playlist_id.strip())
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Destination playlist set to {playlist_id.strip()}")


def _handle_import(import_file: Path, config_path: Path) -> None:
    try:
        channels = import_channels(import_file)
        if not channels:
            click.echo("No channels found in file; feed list left unchanged", err=True)
            return
        save_feeds(config_path, [FeedConfig(id=c.id, name=c.name) for c in channels])
    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Imported {len(channels)} unique channel(s) into {config_path}")


def _handle_export(config: Config, export_file: Path) -> None:
    if not config.feeds:
        click.echo("No channels configured to export", err=True)
        return
    count = export_channels([Channel(id=f.id, name=f.name) for f in config.feeds], export_file)
    logger.info(f"Exported {count} channel(s) to {export_file}")


# =============================================================================
# Status
# =============================================================================

def _format_ms(value: int | None) -> str:
    if not value:
        return "-"
    return datetime.fromtimestamp(value / 1000).strftime("%Y-%m-%d %H:%M:%S")


def _print_status(config: Config, database: Database) -> None:
    """
    Print the last run summary and the sync settings.

    Output:
        Playlist, feed count, period, number of synced feeds and the
        outcome of the last pass.
    """
    raw_summary = database.load_run_summary()
    watermarks = database.load_watermarks()
    period = config.sync.period_minutes

    logger.info("=" * 60)
    logger.info("FEED-MIRROR STATUS")
    logger.info("=" * 60)
    logger.info(f"Playlist:          {config.playlist.id or '(not set)'}")
    logger.info(f"Feeds:             {len(config.feeds)}")
    logger.info(f"Synced feeds:      {sum(1 for v in watermarks.values() if v > 0)}")
    logger.info(f"Period:            {f'{period} min' if period > 0 else 'disabled'}")

    if raw_summary is None:
        logger.info("Last sync:         never")
    else:
        summary = RunSummary.from_dict(raw_summary)
        logger.info(f"Last sync:         {_format_ms(summary.started_at)} ({summary.mode})")
        logger.info(f"Videos added:      {summary.items_added}")
        if summary.error:
            logger.info(f"Error:             {summary.error}")
    logger.info("=" * 60)


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `feed-mirror` from the command line.
    """
    cli()


if __name__ == "__main__":
    main()
