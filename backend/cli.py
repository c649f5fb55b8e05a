"""
Feed Notifier CLI.

Command-line interface for common operations.
"""

import asyncio
import sys

import typer
from rich.console import Console
from rich.table import Table

from shared.config.settings import settings
from shared.config.logging import mask_url

app = typer.Typer(
    name="feed-notifier",
    help="Feed Notifier CLI",
    add_completion=False,
)
console = Console()


# =============================================================================
# Bus Commands
# =============================================================================

@app.command()
def publish(
    feed_id: int = typer.Option(..., "--feed-id", help="Id of the new feed item"),
    influencer_id: int = typer.Option(..., "--influencer-id", help="Id of the publisher"),
    message: str = typer.Option("", "--message", "-m", help="Free text carried with the event"),
    exchange: str = typer.Option(None, help="Stream to publish to (default: BUS_EXCHANGE)"),
):
    """Publish a broadcast event onto the notifications stream."""
    from shared.infrastructure.events import (
        BroadcastEvent,
        close_redis_pool,
        get_redis_pool,
        publish_broadcast,
    )

    event = BroadcastEvent(publisher_id=influencer_id, content_id=feed_id, text=message)
    target = exchange or settings.bus_exchange

    async def _publish() -> str:
        try:
            redis = await get_redis_pool()
            return await publish_broadcast(redis, event, exchange=target)
        finally:
            await close_redis_pool()

    console.print(f"[blue]Publishing to {target} on {mask_url(settings.bus_url)}[/blue]")
    try:
        message_id = asyncio.run(_publish())
    except Exception as e:
        console.print(f"[red]✗ Publish failed: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓ Published {event.to_json()} as {message_id}[/green]")


@app.command()
def dlq_stats(
    count: int = typer.Option(10, help="Most recent entries to show"),
):
    """Show dead-lettered broadcasts."""
    from shared.infrastructure.events import close_redis_pool, get_redis_pool
    from shared.infrastructure.redis.constants import STREAM_DATA_FIELD, get_dead_letter_stream

    stream = get_dead_letter_stream(settings.bus_exchange)

    async def _stats():
        try:
            redis = await get_redis_pool()
            length = await redis.xlen(stream)
            entries = await redis.xrevrange(stream, count=count)
            return length, entries
        finally:
            await close_redis_pool()

    try:
        length, entries = asyncio.run(_stats())
    except Exception as e:
        console.print(f"[red]✗ Cannot read {stream}: {e}[/red]")
        raise typer.Exit(1)

    if not length:
        console.print(f"[green]✓ No entries in {stream}[/green]")
        return

    table = Table(title=f"{stream} ({length} entries)")
    table.add_column("Original Id", style="cyan")
    table.add_column("Deliveries", style="yellow")
    table.add_column("Body", style="white")

    for _entry_id, fields in entries:
        table.add_row(
            fields.get("original_id", "?"),
            fields.get("delivery_count", "?"),
            fields.get(STREAM_DATA_FIELD, ""),
        )

    console.print(table)


# =============================================================================
# Database Commands
# =============================================================================

@app.command()
def init_db():
    """Create the database tables."""
    from shared.infrastructure.db import init_db as create_tables

    console.print(f"[blue]Creating tables on {mask_url(settings.database_url)}[/blue]")
    try:
        create_tables()
    except Exception as e:
        console.print(f"[red]✗ Table creation failed: {e}[/red]")
        raise typer.Exit(1)
    console.print("[green]✓ Tables ready[/green]")


# =============================================================================
# Gateway Commands
# =============================================================================

@app.command()
def serve(
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(None, help="Port (default: WS_GATEWAY_PORT)"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
):
    """Run the WebSocket gateway."""
    import uvicorn

    port = port or settings.ws_gateway_port
    console.print(f"[blue]Starting gateway on {host}:{port}[/blue]")
    uvicorn.run("ws_gateway.main:app", host=host, port=port, reload=reload)


@app.command()
def version():
    """Show version information."""
    table = Table(title="Feed Notifier Version")
    table.add_column("Component", style="cyan")
    table.add_column("Version", style="green")

    table.add_row("Gateway", "0.1.0")
    table.add_row("Python", sys.version.split()[0])

    console.print(table)


if __name__ == "__main__":
    app()
