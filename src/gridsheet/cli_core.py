"""Command-line interface for gridsheet (local browser spreadsheet)."""

from __future__ import annotations

import json
from pathlib import Path

import click

from gridsheet import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gridsheet")
def main() -> None:
    """gridsheet -- a 26 x 99 spreadsheet served to your browser."""


# ---------------------------------------------------------------------------
# Open
# ---------------------------------------------------------------------------


@main.command("open")
@click.argument("file", required=False, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--host", default="127.0.0.1", help="Host to bind to.")
@click.option("--port", type=int, default=None, help="Port (auto-select if omitted).")
@click.option("--no-open", is_flag=True, help="Don't auto-open browser.")
def open_cmd(file: Path | None, host: str, port: int | None, no_open: bool) -> None:
    """Open FILE (or a new spreadsheet) in the browser UI."""
    import socket
    import webbrowser

    import uvicorn

    from gridsheet.errors import PersistenceError
    from gridsheet.ui.server import create_app

    try:
        app = create_app(file)
    except PersistenceError as exc:
        raise click.ClickException(str(exc))
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}")

    if port is None:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.bind((host, 0))
            port = s.getsockname()[1]

    url = f"http://{host}:{port}"
    click.echo(f"Serving {file or 'new spreadsheet'} at {url}")
    click.echo("Press Ctrl+C to stop")

    if not no_open:
        import threading
        threading.Timer(0.8, lambda: webbrowser.open(url)).start()

    try:
        uvicorn.run(app, host=host, port=port, log_level="warning")
    except KeyboardInterrupt:
        click.echo("\nStopped.")


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


@main.command("events")
@click.option("--log-dir", default=None, type=click.Path(file_okay=False, path_type=Path), help="Event log directory (default: from gridsheet.yaml).")
@click.option("--level", default=None, type=click.Choice(["info", "warning", "error"]), help="Filter by level.")
@click.option("--type", "event_type", default=None, help="Filter by event type.")
@click.option("--limit", default=100, type=int, help="Maximum events to show.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def events_cmd(
    log_dir: Path | None,
    level: str | None,
    event_type: str | None,
    limit: int,
    as_json: bool,
) -> None:
    """Show the structured event log, most recent first."""
    from gridsheet.logging.sink import EventSink
    from gridsheet.project import load_config, resolve_log_dir

    if log_dir is None:
        cwd = Path.cwd()
        try:
            config = load_config(cwd)
        except ValueError as exc:
            raise click.ClickException(f"Invalid configuration: {exc}")
        log_dir = resolve_log_dir(config, cwd)
        if log_dir is None:
            raise click.ClickException("Event logging is disabled (log_dir is null)")

    events = EventSink(log_dir).read(level=level, event_type=event_type, limit=limit)

    if as_json:
        click.echo(json.dumps(events, indent=2))
        return

    if not events:
        click.echo("No events found.")
        return

    for evt in events:
        ts = evt.get("ts", "")
        lvl = evt.get("level", "").upper()
        etype = evt.get("event_type", "")
        msg = evt.get("message", "")
        err = evt.get("error_code")
        line = f"[{ts}] {lvl:7s} {etype}: {msg}"
        if err:
            line += f"  ({err})"
        click.echo(line)
