"""
wallet-sync CLI package.

Commands are organized into submodules and registered via ``@app.command()``
decorators that reference the ``app`` Typer instance defined here.
"""

from __future__ import annotations

import typer

app = typer.Typer(
    name="sync-wallet",
    help="Wallet UTXO sync against a chain indexer",
    add_completion=False,
)


def main() -> None:
    """Entry point for the ``sync-wallet`` console script."""
    app()


# Submodules register their commands on ``app``; they must be imported after it.
from syncwallet.cli import config_cmd, utxo_cmd  # noqa: E402, F401

if __name__ == "__main__":
    main()
