# Simple CLI for SimuTrade
import asyncio
import click

from app.containers import AppContainer
from core.logging import configure_logging


@click.group()
@click.pass_context
def cli(ctx):
    """SimuTrade paper-trading CLI"""
    container = AppContainer()
    configure_logging(container.settings())
    ctx.obj = container


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API__HOST)")
@click.option("--port", default=None, type=int, help="Port (defaults to API__PORT)")
def api(host, port):
    """Run the API server"""
    click.echo("🚀 Starting SimuTrade API server...")
    from api.main import run as run_api
    run_api(host=host, port=port)


@cli.command("init-db")
@click.pass_obj
def init_db(container: AppContainer):
    """Create tables and the account row in the configured database"""
    settings = container.settings()
    if not settings.uses_persistent_store:
        raise click.ClickException("DATABASE__URL is not set; nothing to initialize")

    async def _init():
        store = container.account_store()
        try:
            await store.initialize()
        finally:
            await store.close()

    asyncio.run(_init())
    click.echo("Database initialized")


@cli.command()
@click.option("--empty", is_flag=True, help="Reset to starting cash with no holdings or trades")
@click.pass_obj
def seed(container: AppContainer, empty):
    """Reset the account to the demo (or empty) snapshot"""
    from services.account_store.demo_data import demo_snapshot, empty_snapshot

    settings = container.settings()
    snapshot = empty_snapshot(settings.account) if empty else demo_snapshot(settings.account)

    async def _seed():
        store = container.account_store()
        try:
            await store.initialize()
            await store.seed(*snapshot)
        finally:
            await store.close()

    click.echo("🌱 Seeding account data...")
    asyncio.run(_seed())
    account, positions, trades = snapshot
    click.echo(f"Cash {account.cash} {account.currency}, "
               f"{len(positions)} positions, {len(trades)} trades")


@cli.command()
@click.argument("symbol")
@click.pass_obj
def quote(container: AppContainer, symbol):
    """Fetch the latest price for SYMBOL"""
    from core.utils.exceptions import QuoteUnavailableError

    async def _quote():
        provider = container.quote_provider()
        try:
            return await provider.quote(symbol)
        finally:
            await provider.close()

    try:
        result = asyncio.run(_quote())
    except QuoteUnavailableError as e:
        raise click.ClickException(f"{e.symbol}: {e.message}")
    click.echo(f"{result.symbol} {result.latest_price} ({result.source}, {len(result.history)} points)")


if __name__ == "__main__":
    cli()
