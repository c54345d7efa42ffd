"""Command line interface for chatan."""

from __future__ import annotations

import logging
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.table import Table

from chatan.config import AppConfig
from chatan.emotes import emote_predicate, load_emote_index
from chatan.errors import ChatanError
from chatan.jobs import TopMode, discover_emotes, rolling_top, write_json
from chatan.logs import ChannelLogs
from chatan.models import CachePolicy
from chatan.remote.client import HttpClient
from chatan.window.slider import as_utc

console = Console()
app = typer.Typer(help="chatan - sliding-window analytics over OverRustle chat logs")

_DATETIME_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(level=level, format="[%(levelname)s] %(message)s")


def _parse_policy(value: str) -> CachePolicy:
    try:
        return CachePolicy.parse(value)
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _open_logs(config: AppConfig) -> Tuple[ChannelLogs, Optional[HttpClient]]:
    client = HttpClient(timeout=config.timeout) if config.policy.uses_remote else None
    logs = ChannelLogs.from_config(config, client=client)
    report = logs.sync()
    if report.failed:
        console.print(f"[yellow]{report.failed} partitions could not be downloaded.[/yellow]")
    return logs, client


def _interval(logs: ChannelLogs, config: AppConfig) -> Tuple[datetime, datetime]:
    """Configured start and end, defaulting to the whole index."""
    first, last = logs.default_interval()
    start = as_utc(config.start) if config.start else first
    end = as_utc(config.end) if config.end else last
    return start, end


@app.command()
def sync(
    channels: List[str] = typer.Argument(..., help="Channels to synchronize."),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Partition cache root"),
    policy: str = typer.Option("prefetch_and_cache", "--policy", help="Cache policy"),
    concurrency: int = typer.Option(AppConfig().concurrency, help="Parallel downloads"),
    timeout: float = typer.Option(AppConfig().timeout, help="HTTP timeout in seconds"),
    progress: bool = typer.Option(False, "--progress", help="Show progress bars"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Discover and download the logs of one or more channels."""
    _setup_logging(verbose)
    for channel in channels:
        config = AppConfig(
            channel=channel,
            cache_dir=cache_dir if cache_dir is not None else AppConfig().cache_dir,
            policy=_parse_policy(policy),
            concurrency=concurrency,
            timeout=timeout,
            show_progress=progress,
        )
        logs, client = _open_logs(config)
        console.print(str(logs))
        if client is not None:
            client.close()


@app.command()
def info(
    channel: str = typer.Option(..., "--channel", help="Channel name"),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Partition cache root"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Describe the locally cached logs of a channel."""
    _setup_logging(verbose)
    config = AppConfig(
        channel=channel,
        cache_dir=cache_dir if cache_dir is not None else AppConfig().cache_dir,
        policy=CachePolicy.LOCAL,
    )
    logs, _ = _open_logs(config)
    bounds = logs.range()
    if bounds is None:
        console.print(f"[yellow]No local logs for {channel}.[/yellow]")
        return

    n_local, _size = logs.local_summary()
    gaps = logs.index.missing_dates()
    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Channel")
    table.add_column("First day")
    table.add_column("Last day")
    table.add_column("Partitions")
    table.add_column("Missing days")
    table.add_row(channel, str(bounds[0]), str(bounds[1]), str(n_local), str(len(gaps)))
    console.print(table)
    console.print(str(logs))


@app.command("rolling-top")
def rolling_top_command(
    channel: str = typer.Option(..., "--channel", help="Channel name"),
    output: Path = typer.Option(..., "--output", help="JSON file to write"),
    mode: TopMode = typer.Option(TopMode.TOKENS, "--mode", help="What to rank per window"),
    emote_index: Optional[Path] = typer.Option(None, "--emote-index", help="Emote index (emotes mode)"),
    start: Optional[datetime] = typer.Option(None, formats=_DATETIME_FORMATS, help="Start (UTC)"),
    end: Optional[datetime] = typer.Option(None, formats=_DATETIME_FORMATS, help="End (UTC)"),
    step: int = typer.Option(86400, help="Window step in seconds"),
    size: int = typer.Option(86400, help="Window size in seconds"),
    top: int = typer.Option(AppConfig().top, help="Entries kept per window"),
    threshold: int = typer.Option(AppConfig().threshold, "--frequency-threshold", help="Minimum count (exclusive)"),
    policy: str = typer.Option(AppConfig().policy.value, "--policy", help="Cache policy"),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Partition cache root"),
    progress: bool = typer.Option(False, "--progress", help="Show progress bars"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Compute a rolling top of tokens, emotes or messages."""
    _setup_logging(verbose)
    predicate = None
    if mode is TopMode.EMOTES:
        if emote_index is None:
            raise typer.BadParameter("--emote-index is required in emotes mode")
        try:
            predicate = emote_predicate(load_emote_index(emote_index))
        except ChatanError as exc:
            raise typer.BadParameter(str(exc)) from exc

    config = AppConfig(
        channel=channel,
        cache_dir=cache_dir if cache_dir is not None else AppConfig().cache_dir,
        policy=_parse_policy(policy),
        start=start,
        end=end,
        step=timedelta(seconds=step),
        size=timedelta(seconds=size),
        top=top,
        threshold=threshold,
        show_progress=progress,
    )
    logs, client = _open_logs(config)
    try:
        t0, t1 = _interval(logs, config)
        console.print(
            f"Window params: start={t0.isoformat()} end={t1.isoformat()} "
            f"step={config.step} size={config.size}; top={top} mode={mode.value}"
        )
        started = time.perf_counter()
        records, report = rolling_top(
            logs,
            t0,
            t1,
            config.step,
            config.size,
            top=config.top,
            threshold=config.threshold,
            mode=mode,
            predicate=predicate,
        )
    except ChatanError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        if client is not None:
            client.close()

    write_json(output, [record.to_dict() for record in records])
    if report.missing_dates:
        console.print(f"[yellow]{len(report.missing_dates)} days had no data.[/yellow]")
    console.print(
        f"Windows: {report.windows}, partitions loaded: {report.loads} "
        f"in {time.perf_counter() - started:.3f}s"
    )


@app.command("discover-emotes")
def discover_emotes_command(
    channel: str = typer.Option(..., "--channel", help="Channel name"),
    output: Path = typer.Option(..., "--output", help="JSON file to write"),
    start: Optional[datetime] = typer.Option(None, formats=_DATETIME_FORMATS, help="Start (UTC)"),
    end: Optional[datetime] = typer.Option(None, formats=_DATETIME_FORMATS, help="End (UTC)"),
    size: int = typer.Option(86400, help="Window size in seconds"),
    top: int = typer.Option(AppConfig().top, help="Tokens kept per window"),
    threshold: int = typer.Option(AppConfig().threshold, help="Minimum count (exclusive)"),
    policy: str = typer.Option(AppConfig().policy.value, "--policy", help="Cache policy"),
    cache_dir: Path = typer.Option(None, "--cache-dir", help="Partition cache root"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose logging"),
) -> None:
    """Discover popular emote-like tokens in a channel's history."""
    _setup_logging(verbose)
    config = AppConfig(
        channel=channel,
        cache_dir=cache_dir if cache_dir is not None else AppConfig().cache_dir,
        policy=_parse_policy(policy),
        start=start,
        end=end,
        size=timedelta(seconds=size),
        top=top,
        threshold=threshold,
    )
    logs, client = _open_logs(config)
    try:
        t0, t1 = _interval(logs, config)
        found = discover_emotes(
            logs, t0, t1, config.size, top=config.top, threshold=config.threshold
        )
    except ChatanError as exc:
        console.print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1)
    finally:
        if client is not None:
            client.close()

    write_json(output, sorted(found))
    console.print(f"{len(found)} popular tokens found")
