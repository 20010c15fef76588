"""stateline command-line interface.

Commands:
    companion -- Run the companion service (WebSocket mirror + REST API).
    summary   -- Print analytics for an exported session file.
    markdown  -- Render an exported session file as Markdown.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import click

from stateline.models.analytics import AnalyticsSnapshot
from stateline.observability.logging import setup_logging
from stateline.timeline.store import TimelineStore


def _load_session(path: Path) -> TimelineStore:
    """Load a session export (or bare records array) into a store sized to fit it."""
    text = path.read_text(encoding="utf-8")
    try:
        decoded = json.loads(text)
    except ValueError as exc:
        raise click.ClickException(f"{path} is not valid JSON: {exc}") from exc

    capacity = 1
    if isinstance(decoded, dict):
        records = decoded.get("records")
        declared = decoded.get("maxRecords")
        if isinstance(records, list):
            capacity = max(capacity, len(records))
        if isinstance(declared, int) and not isinstance(declared, bool):
            capacity = max(capacity, declared)
    elif isinstance(decoded, list):
        capacity = max(capacity, len(decoded))

    store = TimelineStore(max_records=capacity)
    if not isinstance(decoded, dict | list) or not store.import_session(decoded):
        raise click.ClickException(f"{path} is not a session export")
    return store


def _format_seconds(value: float | None) -> str:
    return "-" if value is None else f"{value:.3f}s"


def _echo_summary(analytics: AnalyticsSnapshot, pinned: int, top: int) -> None:
    payload = analytics.to_dict()
    click.echo(f"Records: {analytics.total_records} (pinned: {pinned})")
    click.echo("Kinds: " + ", ".join(f"{kind}={count}" for kind, count in payload["kindCounts"].items()))
    click.echo(f"Average gap: {_format_seconds(payload['averageGapSeconds'])}")
    click.echo(f"Longest gap: {_format_seconds(payload['longestGapSeconds'])}")

    busiest = analytics.top_origins_by_count(top)
    if busiest:
        click.echo("Busiest origins:")
        for stats in busiest:
            click.echo(f"  {stats.origin}: {stats.count}")

    slowest = analytics.slowest_origins(top)
    if slowest:
        click.echo("Slowest origins (longest interval):")
        for stats in slowest:
            longest = stats.longest_interval.total_seconds() if stats.longest_interval else None
            click.echo(f"  {stats.origin}: {_format_seconds(longest)}")


@click.group()
@click.version_option(package_name="stateline")
@click.option(
    "--log-level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default="warning",
    show_default=True,
    help="Log level for stderr output (the companion reads STATELINE_LOG_LEVEL).",
)
def cli(log_level: str) -> None:
    """stateline: state-change timeline capture, diff and broadcast."""
    # stdout carries command output only.
    setup_logging(log_level.lower(), fmt="console")


@cli.command()
@click.option("--host", default=None, help="Bind address (overrides STATELINE_COMPANION_HOST).")
@click.option("--port", type=click.IntRange(1, 65535), default=None, help="Bind port.")
@click.option("--path", "socket_path", default=None, help="WebSocket endpoint path.")
def companion(host: str | None, port: int | None, socket_path: str | None) -> None:
    """Run the companion service until interrupted."""
    from stateline.app import main
    from stateline.config import load_config

    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc
    if host is not None:
        config.companion.host = host
    if port is not None:
        config.companion.port = port
    if socket_path is not None:
        if not socket_path.startswith("/"):
            raise click.BadParameter("must start with '/'", param_hint="--path")
        config.companion.path = socket_path

    asyncio.run(main(config))


@cli.command()
@click.argument("session_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--top", type=click.IntRange(1, 50), default=5, show_default=True, help="Origins to list.")
@click.option("--json", "as_json", is_flag=True, help="Emit the analytics snapshot as JSON.")
def summary(session_file: Path, top: int, as_json: bool) -> None:
    """Print analytics for SESSION_FILE."""
    store = _load_session(session_file)
    if as_json:
        click.echo(json.dumps(store.analytics.to_dict(), indent=2))
        return
    _echo_summary(store.analytics, len(store.pinned), top)


@cli.command()
@click.argument("session_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--limit", type=click.IntRange(min=1), default=20, show_default=True, help="Records to include.")
def markdown(session_file: Path, limit: int) -> None:
    """Render SESSION_FILE as a Markdown report."""
    store = _load_session(session_file)
    click.echo(store.export_markdown(limit=limit), nl=False)
