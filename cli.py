# Command line interface for the Marketplace Ledger
import asyncio
from decimal import Decimal
from typing import Optional

import click

from app.containers import AppContainer
from core.logging import configure_logging
from core.utils.exceptions import AccountExistsError, AccountNotFoundError


def _container() -> AppContainer:
    container = AppContainer()
    configure_logging(container.settings())
    return container


async def _with_database(container: AppContainer, operation):
    db_manager = container.db_manager()
    await db_manager.init()
    try:
        return await operation()
    finally:
        await db_manager.shutdown()


@click.group()
def cli():
    """Marketplace Ledger CLI"""
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (defaults to API__HOST)")
@click.option("--port", default=None, type=int, help="Port (defaults to API__PORT)")
def api(host: Optional[str], port: Optional[int]):
    """Run the API server"""
    click.echo("Starting Marketplace Ledger API server...")
    from api.main import run as run_api
    run_api(host=host, port=port)


@cli.command("init-db")
def init_db():
    """Create the ledger tables"""
    container = _container()
    db_manager = container.db_manager()

    async def _init():
        await db_manager.init()
        await db_manager.shutdown()

    asyncio.run(_init())
    click.echo(f"Database ready at {container.db_manager().describe()}")


@cli.command("open-account")
@click.argument("user_id")
@click.option("--balance", type=Decimal, default=None,
              help="Starting balance (defaults to LEDGER__STARTING_BALANCE)")
def open_account(user_id: str, balance: Optional[Decimal]):
    """Open an account for USER_ID"""
    container = _container()
    starting_balance = balance if balance is not None else container.settings().ledger.starting_balance
    store = container.ledger_store()
    try:
        account = asyncio.run(_with_database(
            container, lambda: store.create_account(user_id, starting_balance)))
    except AccountExistsError as e:
        raise click.ClickException(e.message)
    click.echo(f"Opened account {account.user_id} with balance ${account.balance:.2f}")


@cli.command("close-account")
@click.argument("user_id")
@click.confirmation_option(prompt="This deletes the account with its positions and history. Continue?")
def close_account(user_id: str):
    """Delete USER_ID and everything it owns"""
    container = _container()
    store = container.ledger_store()
    deleted = asyncio.run(_with_database(container, lambda: store.delete_account(user_id)))
    if not deleted:
        raise click.ClickException(f"No account for user {user_id}")
    click.echo(f"Closed account {user_id}")


@cli.command("show-account")
@click.argument("user_id")
@click.option("--limit", type=int, default=None, help="Recent transactions to show")
def show_account(user_id: str, limit: Optional[int]):
    """Print balance, positions and recent transactions for USER_ID"""
    container = _container()
    view = container.account_view()
    try:
        projection = asyncio.run(_with_database(container, lambda: view.project(user_id, limit=limit)))
    except AccountNotFoundError as e:
        raise click.ClickException(e.message)

    click.echo(f"Account {projection.user_id} (opened {projection.created_at:%Y-%m-%d %H:%M})")
    click.echo(f"  Cash:     ${projection.balance:,.2f}")
    click.echo(f"  Holdings: ${projection.holdings_value:,.2f}")
    click.echo(f"  Total:    ${projection.total_value:,.2f}  (gain ${projection.total_gain:,.2f})")

    if projection.positions:
        click.echo("\nPositions")
        for p in projection.positions:
            marker = "" if p.price_available else " (no quote)"
            click.echo(f"  {p.symbol:<6} {p.shares:>6} @ ${p.avg_cost:,.2f}  "
                       f"value ${p.market_value:,.2f}  gain ${p.gain:,.2f}{marker}")

    if projection.transactions:
        click.echo("\nRecent transactions")
        for t in projection.transactions:
            click.echo(f"  {t.timestamp:%Y-%m-%d %H:%M:%S}  {t.side.value:<4} {t.quantity:>6} "
                       f"{t.symbol:<6} @ ${t.price:,.2f}  total ${t.total:,.2f}")

    if projection.favorites:
        click.echo(f"\nFavorites: {', '.join(projection.favorites)}")


if __name__ == "__main__":
    cli()
