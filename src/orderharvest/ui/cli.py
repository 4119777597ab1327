from __future__ import annotations

import asyncio
import sys

from dotenv import load_dotenv
from loguru import logger
import typer

from orderharvest.adapters.db.facade import ItemStore, StoreResetError
from orderharvest.adapters.ozon.client import CredentialsMissingError, OzonClient
from orderharvest.adapters.ozon.credentials import CookieHeaderProvider
from orderharvest.config import (
    HarvestConfig,
    HarvestConfigError,
    load_harvest_config_from_env,
)
from orderharvest.tools.discovery.discovery_tool import (
    DiscoveryResult,
    OrderDiscovery,
    OwnerLocks,
)

# Load environment variables from .env
load_dotenv()

app = typer.Typer(
    help="orderharvest: Ozon purchase history collector.",
    no_args_is_help=True,
)

_owner_locks = OwnerLocks()


def _configure_logging(level: str) -> None:
    logger.remove()
    logger.add(
        sys.stderr,
        format="{time:YYYY-MM-DD HH:mm:ss} [{level}] {name}: {message}",
        level=level,
    )


def _load_config() -> HarvestConfig:
    try:
        config = load_harvest_config_from_env()
    except HarvestConfigError as e:
        typer.echo(f"Configuration error: {e}", err=True)
        raise typer.Exit(1) from None
    _configure_logging(config.log_level)
    return config


def build_store(config: HarvestConfig) -> ItemStore:
    return ItemStore(config.database_url)


def build_client(config: HarvestConfig) -> OzonClient:
    return OzonClient(
        CookieHeaderProvider(config.cookies),
        base_url=config.base_url,
        user_agent=config.user_agent,
        timeout=config.timeout_seconds,
    )


async def _resolve_owner(client: OzonClient, owner_id: int | None) -> int:
    if owner_id is not None:
        return owner_id
    resolved = await client.get_current_owner_id()
    if not resolved:
        typer.echo(
            "Could not determine your Ozon user id; pass it explicitly.", err=True
        )
        raise typer.Exit(1)
    return resolved


async def _scan_impl(
    config: HarvestConfig,
    store: ItemStore,
    owner_id: int | None,
    batch_size: int,
) -> DiscoveryResult:
    async with build_client(config) as client:
        client.ensure_credentials()
        owner = await _resolve_owner(client, owner_id)
        discovery = OrderDiscovery(
            client, store, batch_size=batch_size, owner_locks=_owner_locks
        )
        typer.echo(f"Scanning orders for user {owner}")
        return await discovery.fetch_and_save_new_orders(
            owner,
            lambda order_number: typer.echo(f"Checking order {order_number}..."),
        )


@app.command("scan")
def scan_cmd(
    owner_id: int | None = typer.Argument(
        None, help="Ozon user id; discovered from the order list when omitted"
    ),
    batch_size: int | None = typer.Option(
        None, "--batch-size", min=1, help="Orders fetched concurrently per batch"
    ),
) -> None:
    """Fetch orders newer than the ones already stored and save their items."""
    config = _load_config()
    store = build_store(config)
    try:
        result = asyncio.run(
            _scan_impl(config, store, owner_id, batch_size or config.batch_size)
        )
    except CredentialsMissingError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from None

    typer.echo(f"Found {result.total} new items; last order {result.last_order}")


@app.command("list")
def list_cmd(owner_id: int = typer.Argument(..., help="Ozon user id")) -> None:
    """Print the stored items of a user."""
    config = _load_config()
    items = build_store(config).list_by_owner(owner_id)
    if not items:
        typer.echo(f"No items stored for user {owner_id}.")
        return

    for item in sorted(items, key=lambda i: (i.order_number, i.product_sku)):
        typer.echo(
            f"{item.order_number}  {item.product_sku}  {item.quantity} x "
            f"{item.product_name}  {item.product_price}  ({item.seller_name})"
        )
    typer.echo(f"{len(items)} items")


@app.command("whoami")
def whoami_cmd() -> None:
    """Print the Ozon user id of the configured session."""
    config = _load_config()

    async def _impl() -> int:
        async with build_client(config) as client:
            client.ensure_credentials()
            return await _resolve_owner(client, None)

    try:
        owner_id = asyncio.run(_impl())
    except CredentialsMissingError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from None
    typer.echo(str(owner_id))


@app.command("reset")
def reset_cmd(
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip the confirmation"),
) -> None:
    """Delete every stored item for every user."""
    config = _load_config()
    store = build_store(config)
    if not yes:
        typer.confirm(f"Delete all {store.count()} stored items?", abort=True)

    try:
        store.reset()
    except StoreResetError as e:
        typer.echo(str(e), err=True)
        raise typer.Exit(1) from None
    typer.echo("Item store cleared.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
