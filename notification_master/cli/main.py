"""
Notification Master CLI entry point.

Commands:
    notification-master poll URL     — Poll a feed until Ctrl-C
    notification-master resume       — Bring back whatever was active
    notification-master stop         — Stop the active service
    notification-master status       — Show persisted state
    notification-master show T M     — Show one notification now
"""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

app = typer.Typer(
    name="notification-master",
    help="Notification Master — poll a feed and deliver what it says.",
    add_completion=False,
)

console = Console()


def _load_config():
    from notification_master.core.config import NotificationMasterConfig
    from notification_master.core.errors import ConfigError

    try:
        return NotificationMasterConfig.load()
    except ConfigError as e:
        console.print(f"[red]{e.message}[/red]")
        raise typer.Exit(1)


def _build_runtime(verbose: bool = False):
    from notification_master.core.runtime import NotificationRuntime
    from notification_master.middleware.logging import EventLogger, setup_logging

    config = _load_config()
    console_level = logging.DEBUG if verbose else getattr(
        logging, config.logging.console_level.upper(), logging.WARNING
    )
    setup_logging(log_dir=config.get_log_dir(), console_level=console_level)

    runtime = NotificationRuntime.create(config, console=console)
    event_logger = EventLogger(log_dir=config.get_log_dir(), log_events=config.logging.log_events)
    runtime.use(event_logger.middleware)
    return runtime


async def _run_until_interrupted(runtime) -> None:
    try:
        await asyncio.Event().wait()
    finally:
        await runtime.stop()


@app.command()
def poll(
    url: str = typer.Argument(..., help="Feed URL returning {\"notifications\": [...]}"),
    interval: int = typer.Option(None, "--interval", "-i", min=1, help="Minutes between polls"),
    foreground: bool = typer.Option(
        False, "--foreground", "-F", help="Run as a foreground session with a status notification"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Start polling URL and keep delivering until Ctrl-C."""
    from notification_master.feed.client import validate_feed_url

    try:
        url = validate_feed_url(url)
    except ValueError as e:
        console.print(f"[red]Invalid URL:[/red] {e}")
        raise typer.Exit(1)

    try:
        asyncio.run(_run_poll(url, interval, foreground, verbose))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped. Run 'notification-master resume' to continue.[/dim]")


async def _run_poll(url: str, interval: int | None, foreground: bool, verbose: bool) -> None:
    from notification_master.core.types import PollingConfiguration

    runtime = _build_runtime(verbose)
    await runtime.start(restore=False)
    config = PollingConfiguration(
        feed_url=url,
        interval_minutes=interval or runtime.config.polling.default_interval_minutes,
    )
    if foreground:
        await runtime.foreground.start(config)
    else:
        await runtime.poller.start(config)

    mode = "foreground session" if foreground else "periodic polling"
    console.print(
        f"[cyan]Started {mode}[/cyan] of {url} every {config.interval_minutes} min "
        f"[dim](Ctrl-C to exit)[/dim]"
    )
    await _run_until_interrupted(runtime)


@app.command()
def resume(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
) -> None:
    """Restore the service that was active when the process last exited."""
    try:
        asyncio.run(_run_resume(verbose))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")


async def _run_resume(verbose: bool) -> None:
    from notification_master.core.types import ActiveService

    runtime = _build_runtime(verbose)
    active = await runtime.start()
    if active not in (ActiveService.POLLING, ActiveService.FOREGROUND) or (
        runtime.poller.config is None and runtime.foreground.config is None
    ):
        console.print(f"[yellow]Nothing to resume[/yellow] [dim](active service: {active.label})[/dim]")
        await runtime.stop()
        raise typer.Exit(1)

    console.print(f"[cyan]Resumed {active.label}[/cyan] [dim](Ctrl-C to exit)[/dim]")
    await _run_until_interrupted(runtime)


@app.command()
def stop() -> None:
    """Stop the active polling or foreground service and clear its state."""
    asyncio.run(_run_stop())


async def _run_stop() -> None:
    from notification_master.core.types import ActiveService

    runtime = _build_runtime()
    await runtime.start(restore=False)
    try:
        active = await runtime.registry.get_active()
        if active is ActiveService.POLLING:
            await runtime.poller.stop()
        elif active is ActiveService.FOREGROUND:
            await runtime.foreground.stop()
        else:
            console.print(f"[dim]Nothing to stop (active service: {active.label})[/dim]")
            return
        console.print(f"[green]Stopped {active.label}[/green]")
    finally:
        await runtime.stop()


@app.command()
def status(
    raw: bool = typer.Option(False, "--raw", help="Dump every stored preference"),
) -> None:
    """Show the active service and the persisted polling configuration."""
    asyncio.run(_run_status(raw))


async def _run_status(raw: bool) -> None:
    runtime = _build_runtime()
    await runtime.start(restore=False)
    try:
        info = await runtime.status()
        stored = await runtime.settings.as_dict() if raw else {}
    finally:
        await runtime.stop()

    if raw:
        for key, value in stored.items():
            console.print(f"{key} = {value!r}", markup=False, highlight=False)
        return

    table = Table(show_header=False, box=None)
    table.add_column(style="bold")
    table.add_column()
    table.add_row("Active service", info["active_service"])
    table.add_row("Polling enabled", "yes" if info["polling_enabled"] else "no")
    table.add_row("Feed URL", info["polling_url"] or "[dim]—[/dim]")
    table.add_row(
        "Interval",
        f"{info['interval_minutes']} min" if info["interval_minutes"] else "[dim]—[/dim]",
    )
    console.print(Panel(table, title="[bold]Notification Master[/bold]", border_style="cyan"))


@app.command()
def show(
    title: str = typer.Argument(..., help="Notification title"),
    message: str = typer.Argument("", help="Notification body"),
    big_text: str = typer.Option(None, "--big-text", "-b", help="Expanded text"),
    image_url: str = typer.Option(None, "--image-url", help="Picture to attach"),
    channel: str = typer.Option(None, "--channel", "-c", help="Channel id"),
) -> None:
    """Show a single notification right away."""
    asyncio.run(_run_show(title, message, big_text, image_url, channel))


async def _run_show(
    title: str,
    message: str,
    big_text: str | None,
    image_url: str | None,
    channel: str | None,
) -> None:
    from notification_master.core.errors import RenderError

    runtime = _build_runtime()
    await runtime.start(restore=False)
    try:
        notification_id = await runtime.dispatcher.show(
            title,
            message,
            channel_id=channel,
            expanded_text=big_text,
            image_url=image_url,
        )
        await runtime.dispatcher.drain()
    except RenderError as e:
        console.print(f"[red]Could not show notification:[/red] {e.message}")
        raise typer.Exit(1)
    finally:
        await runtime.stop()
    console.print(f"[dim]Notification #{notification_id}[/dim]")


@app.command()
def version() -> None:
    """Show Notification Master version."""
    from notification_master import __version__
    console.print(f"Notification Master v{__version__}")


@app.command()
def logs(
    lines: int = typer.Option(50, "--lines", "-n", help="Number of lines to show"),
    events: bool = typer.Option(False, "--events", "-e", help="Show events log instead"),
) -> None:
    """Show recent logs."""
    from notification_master.middleware.logging import events_file_for, log_file_for

    log_dir = _load_config().get_log_dir()
    log_file = events_file_for(log_dir) if events else log_file_for(log_dir)

    if not log_file.exists():
        console.print(f"[dim]No log file for today: {log_file}[/dim]")
        raise typer.Exit(0)

    with open(log_file, "r", encoding="utf-8") as f:
        all_lines = f.readlines()

    for line in all_lines[-lines:]:
        console.print(line.rstrip(), markup=False)


if __name__ == "__main__":
    app()
