"""CLI entry point."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import typer
from rich.console import Console
from rich.table import Table

from scrubjay.app import ScrubJay
from scrubjay.core.config import get_settings
from scrubjay.core.exceptions import ScrubJayError
from scrubjay.core.logging import configure_logging
from scrubjay.models.base import AlertKind
from scrubjay.models.rss import RssSource

app = typer.Typer(
    name="scrubjay",
    help="Deliver eBird and RSS alerts to subscribed channels, never twice",
    no_args_is_help=True,
)
console = Console()

T = TypeVar("T")


def _run(operation: Callable[[ScrubJay], Awaitable[T]]) -> T:
    """Run ``operation`` against an initialized app, mapping errors to exit code 1."""
    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)

    async def main() -> T:
        async with ScrubJay(settings) as scrubjay:
            return await operation(scrubjay)

    try:
        return asyncio.run(main())
    except ScrubJayError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(code=1) from None


@app.command()
def version() -> None:
    """Show version."""
    from scrubjay import __version__

    console.print(f"scrubjay {__version__}")


@app.command()
def run() -> None:
    """Bootstrap, then run ingestion and dispatch on their schedules."""
    _run(lambda s: s.run())


@app.command()
def bootstrap() -> None:
    """Ingest everything and mark current matches as delivered without sending."""
    recorded = _run(lambda s: s.bootstrap())
    for kind, count in recorded.items():
        console.print(f"{kind.value}: marked [bold]{count}[/bold] items as delivered")


@app.command()
def dispatch(
    kind: Optional[AlertKind] = typer.Option(None, "--kind", "-k", help="Only this kind"),
) -> None:
    """Run one dispatch cycle."""
    results = _run(lambda s: s.dispatch(kind))
    table = Table(title="Dispatch")
    for column in ("Kind", "Candidates", "Sent", "Failed", "Recorded"):
        table.add_column(column)
    for k, result in results.items():
        if result is None:
            table.add_row(k.value, "[red]error[/red]", "", "", "")
        elif result.skipped:
            table.add_row(k.value, "[yellow]skipped[/yellow]", "", "", "")
        else:
            table.add_row(
                k.value,
                str(result.candidates),
                str(result.sent),
                str(result.failed),
                str(result.recorded),
            )
    console.print(table)


@app.command("subscribe-ebird")
def subscribe_ebird(channel_id: str, region_code: str) -> None:
    """Subscribe a channel to a state (US-CA) or county (US-CA-037)."""
    scope = _run(lambda s: s.subscriptions.subscribe_ebird(channel_id, region_code))
    console.print(f"[green]✓[/green] {channel_id} subscribed to {scope}")


@app.command("unsubscribe-ebird")
def unsubscribe_ebird(channel_id: str, region_code: str) -> None:
    """Deactivate an eBird subscription."""
    removed = _run(lambda s: s.subscriptions.unsubscribe_ebird(channel_id, region_code))
    if not removed:
        console.print(f"[yellow]{channel_id} was not subscribed to {region_code}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] {channel_id} unsubscribed from {region_code}")


@app.command("add-rss-source")
def add_rss_source(source_id: str, name: str, url: str) -> None:
    """Register (or rename) an RSS source."""
    _run(lambda s: s.rss_repository.upsert_source(RssSource(id=source_id, name=name, url=url)))
    console.print(f"[green]✓[/green] RSS source {source_id} saved")


@app.command("subscribe-rss")
def subscribe_rss(channel_id: str, source_id: str) -> None:
    """Subscribe a channel to a registered RSS source."""
    backfilled = _run(lambda s: s.subscriptions.subscribe_rss(channel_id, source_id))
    console.print(
        f"[green]✓[/green] {channel_id} subscribed to {source_id} ({backfilled} existing items skipped)"
    )


@app.command("unsubscribe-rss")
def unsubscribe_rss(channel_id: str, source_id: str) -> None:
    """Deactivate an RSS subscription."""
    removed = _run(lambda s: s.subscriptions.unsubscribe_rss(channel_id, source_id))
    if not removed:
        console.print(f"[yellow]{channel_id} was not subscribed to {source_id}[/yellow]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓[/green] {channel_id} unsubscribed from {source_id}")


@app.command("filter-add")
def filter_add(channel_id: str, common_name: str) -> None:
    """Stop alerting a channel about one species."""
    added = _run(lambda s: s.filters.add_filter(channel_id, common_name))
    state = "now filtered" if added else "already filtered"
    console.print(f"{common_name} {state} for {channel_id}")


@app.command("filter-remove")
def filter_remove(channel_id: str, common_name: str) -> None:
    """Resume alerting a channel about a species."""
    removed = _run(lambda s: s.filters.remove_filter(channel_id, common_name))
    state = "no longer filtered" if removed else "was not filtered"
    console.print(f"{common_name} {state} for {channel_id}")


@app.command()
def filters(channel_id: str) -> None:
    """List a channel's species filters."""
    names = _run(lambda s: s.filters.list_filters(channel_id))
    if not names:
        console.print(f"No filters for {channel_id}")
        return
    for name in names:
        console.print(f"• {name}")


@app.command()
def subscriptions(
    channel_id: Optional[str] = typer.Option(None, "--channel", "-c", help="Only this channel"),
) -> None:
    """List active subscriptions."""

    async def collect(s: ScrubJay) -> tuple[list[Any], list[Any]]:
        return await s.subscriptions.list_ebird(channel_id), await s.subscriptions.list_rss(channel_id)

    ebird, rss = _run(collect)
    table = Table(title="Subscriptions")
    table.add_column("Channel")
    table.add_column("Kind")
    table.add_column("Scope")
    for channel, scope in ebird:
        table.add_row(channel, AlertKind.EBIRD.value, str(scope))
    for channel, source_id in rss:
        table.add_row(channel, AlertKind.RSS.value, source_id)
    console.print(table)


@app.command()
def prune(
    days: Optional[int] = typer.Option(None, "--days", help="Retention in days (default from settings)"),
) -> None:
    """Delete delivery records older than the retention window."""
    removed = _run(lambda s: s.prune(days))
    console.print(f"Pruned {removed} delivery records")


if __name__ == "__main__":
    app()
