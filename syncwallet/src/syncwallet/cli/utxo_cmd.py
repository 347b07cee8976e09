"""
UTXO sync and inspection commands.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Annotated

import httpx
import typer
from loguru import logger
from pydantic import TypeAdapter, ValidationError

from synccore.cli_common import ResolvedIndexerSettings, resolve_indexer_settings, setup_cli
from synccore.paths import get_utxo_state_dir
from synccore.settings import SyncSettings
from syncwallet.cli import app
from syncwallet.utxo.indexer import IndexerError
from syncwallet.utxo.models import ProtocolViolationError, Utxo
from syncwallet.utxo.service import (
    RollbackRetryExhaustedError,
    UtxoService,
    create_utxo_service,
)
from syncwallet.utxo.storage import JsonUtxoStorage

DataDirOption = Annotated[
    Path | None,
    typer.Option(
        "--data-dir",
        help="Data directory (default: ~/.wallet-sync or $WALLET_SYNC_DATA_DIR)",
    ),
]
LogLevelOption = Annotated[
    str | None,
    typer.Option("--log-level", "-l", help="Log level"),
]

_addresses_adapter = TypeAdapter(list[str])


def load_addresses(path: Path) -> list[str]:
    """Read a JSON list of addresses."""
    if not path.exists():
        raise FileNotFoundError(f"Addresses file not found: {path}")
    return _addresses_adapter.validate_json(path.read_bytes())


def _open_service(
    settings: SyncSettings, resolved: ResolvedIndexerSettings
) -> UtxoService:
    storage = JsonUtxoStorage(get_utxo_state_dir(resolved.data_dir))
    return create_utxo_service(storage, settings, indexer_url=resolved.url)


async def _sync(service: UtxoService, addresses: list[str]) -> list[Utxo]:
    try:
        await service.sync_utxo_state(addresses)
        return await service.get_available_utxos()
    finally:
        await service.close()


async def _available(service: UtxoService) -> list[Utxo]:
    try:
        return await service.get_available_utxos()
    finally:
        await service.close()


@app.command()
def sync(
    addresses_file: Annotated[
        Path,
        typer.Option("--addresses-file", "-a", help="JSON file with a list of addresses"),
    ],
    indexer_url: Annotated[
        str | None,
        typer.Option("--indexer-url", help="Chain indexer base URL"),
    ] = None,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Sync UTXO state for the given addresses with the indexer."""
    settings = setup_cli(log_level)

    try:
        addresses = load_addresses(addresses_file)
    except (FileNotFoundError, ValidationError) as e:
        logger.error(f"Invalid addresses file: {e}")
        raise typer.Exit(1)

    resolved = resolve_indexer_settings(settings, indexer_url=indexer_url, data_dir=data_dir)
    service = _open_service(settings, resolved)

    try:
        utxos = asyncio.run(_sync(service, addresses))
    except RollbackRetryExhaustedError as e:
        logger.error(f"Sync aborted: {e}")
        raise typer.Exit(1)
    except (httpx.HTTPError, IndexerError, ProtocolViolationError) as e:
        logger.error(f"Indexer request failed: {e}")
        raise typer.Exit(1)

    total = sum(u.amount for u in utxos)
    typer.echo(f"Synced {len(addresses)} addresses: {len(utxos)} UTXOs, balance {total}")


@app.command()
def balance(
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """Show the balance of the locally stored UTXO set (no network access)."""
    settings = setup_cli(log_level)
    resolved = resolve_indexer_settings(settings, data_dir=data_dir)
    utxos = asyncio.run(_available(_open_service(settings, resolved)))

    total = sum(u.amount for u in utxos)
    typer.echo(f"Balance: {total} ({len(utxos)} UTXOs)")


@app.command()
def utxos(
    json_output: Annotated[bool, typer.Option("--json", help="Output as JSON")] = False,
    data_dir: DataDirOption = None,
    log_level: LogLevelOption = None,
) -> None:
    """List the locally stored available UTXOs (no network access)."""
    settings = setup_cli(log_level)
    resolved = resolve_indexer_settings(settings, data_dir=data_dir)
    available = asyncio.run(_available(_open_service(settings, resolved)))

    if json_output:
        typer.echo(json.dumps([u.model_dump(mode="json") for u in available], indent=2))
        return

    if not available:
        typer.echo("No UTXOs found.")
        return

    typer.echo(f"{'UTXO':<70} {'Amount':>16} {'Block':>10}")
    typer.echo("-" * 98)
    for utxo in available:
        typer.echo(f"{utxo.utxo_id:<70} {utxo.amount:>16,} {utxo.block_num:>10}")
