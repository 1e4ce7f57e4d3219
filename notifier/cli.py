"""Command-line interface for the notifier service.

Usage:
    notifier serve --port 8787
    notifier trigger "0 3 * * 1"
    notifier job weekly
    notifier digest --period monthly --no-mark-read
    notifier status
    notifier add --name Ana --email ana@example.com --phone 555 --subject Hi --body Hello
    notifier vacuum
"""

from __future__ import annotations

import asyncio
import logging
import sys
from datetime import datetime, timezone
from typing import Optional

import click
import uvicorn
from dateutil.parser import parse as dateparse
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from notifier.api.app import create_app
from notifier.config import DEFAULT_CONFIG_PATH, load_config
from notifier.errors import NotifierError
from notifier.periods import DigestPeriod
from notifier.services import Services
from notifier.storage.models import Notification, NotificationCreate

console = Console()

PERIOD_CHOICES = [p.value for p in DigestPeriod]


def run_async(coro):
    """Run a coroutine to completion on a fresh event loop."""
    return asyncio.run(coro)


def build_services(ctx: click.Context) -> Services:
    config = load_config(ctx.obj["config_path"])
    return Services.from_config(config, db_path=ctx.obj["db_path"])


@click.group()
@click.option("--config", default=DEFAULT_CONFIG_PATH, help="Config file path")
@click.option("--db", default=None, help="Database path (overrides database.path)")
@click.option(
    "--log-level",
    default="INFO",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level",
)
@click.pass_context
def cli(ctx, config: str, db: Optional[str], log_level: str):
    """Notification API with AI digests."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["db_path"] = db


@cli.command()
@click.option("--host", default=None, help="Bind address (default: api.host)")
@click.option("--port", type=int, default=None, help="Port (default: api.port)")
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    services = build_services(ctx)
    api = services.config.api
    uvicorn.run(
        create_app(services),
        host=host or api.host,
        port=port or api.port,
        log_config=None,
    )


@cli.command()
@click.argument("cron")
@click.option("--time", "trigger_time", default=None, help="Trigger time (ISO 8601, default: now)")
@click.pass_context
def trigger(ctx, cron: str, trigger_time: Optional[str]):
    """Dispatch one cron trigger to its digest job (call this from crontab)."""
    when = _parse_time(trigger_time)

    async def _run():
        services = build_services(ctx)
        await services.start()
        try:
            return await services.build_dispatcher().dispatch(cron, when)
        finally:
            await services.stop()

    if not run_async(_run()):
        console.print(f"[yellow]Unrecognized schedule:[/yellow] {escape(cron)}")
        sys.exit(2)


@cli.command()
@click.argument("period", type=click.Choice(PERIOD_CHOICES, case_sensitive=False))
@click.pass_context
def job(ctx, period: str):
    """Run a digest job now (generate and email)."""

    async def _run():
        services = build_services(ctx)
        await services.start()
        try:
            return await services.build_scheduler().run(
                DigestPeriod.parse(period), datetime.now(timezone.utc)
            )
        finally:
            await services.stop()

    outcome = run_async(_run())
    if not outcome.success:
        console.print(f"[red]{escape(outcome.error)}[/red]")
        sys.exit(1)
    console.print(f"[green]{period.capitalize()} digest job finished.[/green]")


@cli.command()
@click.option("--period", "-p", default="daily", type=click.Choice(PERIOD_CHOICES, case_sensitive=False))
@click.option("--mark-read/--no-mark-read", default=False, help="Mark urgent notifications as read")
@click.pass_context
def digest(ctx, period: str, mark_read: bool):
    """Generate a digest and print it (no email)."""

    async def _run():
        services = build_services(ctx)
        await services.start()
        try:
            with console.status(f"[bold green]Generating {period} digest..."):
                return await services.engine.generate_digest(
                    DigestPeriod.parse(period), mark_urgent_as_read=mark_read
                )
        finally:
            await services.stop()

    outcome = run_async(_run())
    if not outcome.success:
        console.print(f"[red]{escape(outcome.error)}[/red]")
        sys.exit(1)

    result = outcome.result
    console.print(Panel(Text(result.digest), title=f"{period.capitalize()} digest {result.start_date} -> {result.end_date}"))

    table = Table(show_header=False)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Notifications in period", str(result.total_notifications))
    table.add_row("Unread", str(result.unread_count))
    table.add_row("Urgent", str(len(result.urgent_notifications)))
    table.add_row("Marked read", str(len(result.processed_notifications)))
    table.add_row("Top senders", ", ".join(result.top_senders) or "-")
    insights = result.insights.to_dict()
    if "categories" in insights:
        table.add_row("Categories", ", ".join(f"{k} ({v})" for k, v in insights["categories"].items()))
    if "most_active_day" in insights:
        table.add_row("Most active day", insights["most_active_day"])
    console.print(table)


@cli.command()
@click.pass_context
def status(ctx):
    """Show database status."""

    async def _run():
        services = build_services(ctx)
        await services.start()
        try:
            return services.db.db_path, await services.db.get_stats()
        finally:
            await services.stop()

    path, stats = run_async(_run())
    console.print("\n[bold]Database Status[/bold]")
    console.print(f"  Path: {path}")
    console.print(f"  Size: {stats['db_size_bytes'] / 1024:.1f} KB")
    console.print(f"  Notifications: {stats['total_notifications']}")
    console.print(f"  Unread: {stats['unread_notifications']}")

    if stats["notifications_by_sender"]:
        table = Table(title="Top Senders")
        table.add_column("Sender", style="cyan")
        table.add_column("Count", justify="right")
        for sender, count in stats["notifications_by_sender"].items():
            table.add_row(sender, str(count))
        console.print(table)


@cli.command()
@click.option("--name", required=True)
@click.option("--email", required=True)
@click.option("--phone", required=True)
@click.option("--subject", required=True)
@click.option("--body", required=True)
@click.pass_context
def add(ctx, name: str, email: str, phone: str, subject: str, body: str):
    """Create a notification."""
    try:
        request = NotificationCreate.from_payload(
            {"name": name, "email": email, "phone": phone, "subject": subject, "body": body}
        )
    except NotifierError as e:
        console.print(f"[red]Error:[/red] {escape(str(e))}")
        sys.exit(1)

    async def _run():
        services = build_services(ctx)
        await services.start()
        try:
            return await services.db.create_notification(
                Notification.from_create(request, services.clock())
            )
        finally:
            await services.stop()

    created = run_async(_run())
    console.print(f"[green]Created notification {created.id}[/green]")


@cli.command()
@click.pass_context
def vacuum(ctx):
    """Vacuum the database."""

    async def _run():
        services = build_services(ctx)
        await services.start()
        try:
            with console.status("[bold green]Vacuuming database..."):
                await services.db.vacuum()
            return await services.db.get_stats()
        finally:
            await services.stop()

    stats = run_async(_run())
    console.print("[green]Database vacuumed successfully")
    console.print(f"Database size: {stats['db_size_bytes'] / 1024:.1f} KB")


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    try:
        parsed = dateparse(value)
    except (ValueError, OverflowError):
        raise click.BadParameter(f"Invalid time: {value}", param_hint="--time") from None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def main():
    cli()


if __name__ == "__main__":
    main()
