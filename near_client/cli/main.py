"""
near_client.cli.main
====================

`near-client`: command-line access to a NEAR node through the client's RPC
channel and submission engine.

Examples
--------
    $ near-client version
    $ near-client --network-id testnet state alice.testnet
    $ near-client balance alice.testnet
    $ near-client tx 6zgh2u9DqHHiXzdy9ouTP7oGky2T4nugqzqt9wJZwNFm alice.testnet
    $ near-client send alice.testnet bob.testnet 1000000000000000000000000
    $ near-client view guest-book.testnet getMessages --args '{"limit": 5}'

Configuration
-------------
- Node URL     : `--node-url` or env `NEAR_NODE_URL` (default: https://rpc.testnet.near.org)
- Network ID   : `--network-id` or env `NEAR_NETWORK_ID` (default: testnet)
- HTTP Timeout : `--timeout` or env `NEAR_TIMEOUT` seconds (default: 30.0)
- Key dir      : `--key-dir` or env `NEAR_KEY_DIR` (default: ~/.near-credentials)
- Logging      : `--log-format json|text` / `--log-level` (env `NEAR_LOG_FORMAT`, `NEAR_LOG_LEVEL`)

Node errors are printed as ``error[<kind>]: <message>`` with exit code 1.
"""

from __future__ import annotations

import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional

import typer

from .. import logging as near_logging
from ..account import Account
from ..config import ClientConfig
from ..connection import Connection
from ..errors import TypedError
from ..version import __version__ as CLIENT_VERSION

app = typer.Typer(
    name="near-client",
    help="NEAR client CLI: query accounts, inspect transactions, send tokens.",
    no_args_is_help=True,
    add_completion=False,
)

__all__ = ["app", "main", "run"]


@dataclass
class Ctx:
    config: ClientConfig


def _print_json(obj: Any) -> None:
    typer.echo(json.dumps(obj, indent=2, ensure_ascii=False, default=str))


@app.callback()
def _root(
    ctx: typer.Context,
    node_url: Optional[str] = typer.Option(None, "--node-url", help="Node JSON-RPC URL.", envvar="NEAR_NODE_URL"),
    network_id: Optional[str] = typer.Option(None, "--network-id", help="Network id.", envvar="NEAR_NETWORK_ID"),
    timeout: Optional[float] = typer.Option(None, "--timeout", help="HTTP timeout in seconds.", envvar="NEAR_TIMEOUT"),
    key_dir: Optional[str] = typer.Option(None, "--key-dir", help="Credentials directory.", envvar="NEAR_KEY_DIR"),
    log_format: Optional[str] = typer.Option(None, "--log-format", help="json or text.", envvar="NEAR_LOG_FORMAT"),
    log_level: str = typer.Option("WARNING", "--log-level", help="Minimum log level.", envvar="NEAR_LOG_LEVEL"),
) -> None:
    """
    Resolve the effective configuration: flags, then NEAR_* env, then defaults.
    """
    json_logs = None if log_format is None else log_format.strip().lower() == "json"
    near_logging.configure(json=json_logs, level=log_level)

    try:
        cfg = ClientConfig.with_overrides(
            ClientConfig.from_env(),
            node_url=node_url,
            network_id=network_id,
            request_timeout=timeout,
            key_dir=key_dir,
        )
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e
    ctx.obj = Ctx(config=cfg)


def _run(ctx: typer.Context, fn: Callable[[Connection], Awaitable[Any]]) -> Any:
    """Run `fn` against a fresh connection; classified errors exit with code 1."""
    c: Ctx = ctx.obj

    async def go() -> Any:
        async with Connection.from_client_config(c.config) as conn:
            return await fn(conn)

    try:
        return asyncio.run(go())
    except TypedError as e:
        typer.echo(f"error[{e.kind}]: {e.message}", err=True)
        raise typer.Exit(code=1) from e


def _parse_lenient(raw: bytes) -> Any:
    text = raw.decode("utf-8", errors="replace")
    try:
        return json.loads(text)
    except ValueError:
        return text


# --- Commands -----------------------------------------------------------------


@app.command("version")
def version() -> None:
    """Print the client version."""
    typer.echo(f"near-client {CLIENT_VERSION}")


@app.command("env")
def env(ctx: typer.Context) -> None:
    """Show the effective configuration."""
    c: Ctx = ctx.obj
    _print_json({**c.config.to_dict(), "client_version": CLIENT_VERSION})


@app.command("state")
def state(ctx: typer.Context, account_id: str = typer.Argument(..., help="Account id")) -> None:
    """Print `view_account` for an account."""
    _print_json(_run(ctx, lambda conn: Account(conn, account_id).state()))


@app.command("keys")
def keys(ctx: typer.Context, account_id: str = typer.Argument(..., help="Account id")) -> None:
    """List the account's access keys."""
    _print_json(_run(ctx, lambda conn: Account(conn, account_id).get_access_keys()))


@app.command("balance")
def balance(ctx: typer.Context, account_id: str = typer.Argument(..., help="Account id")) -> None:
    """Print total / staked / available balance (yoctoNEAR)."""
    _print_json(_run(ctx, lambda conn: Account(conn, account_id).get_account_balance()))


@app.command("tx")
def tx(
    ctx: typer.Context,
    tx_hash: str = typer.Argument(..., help="Transaction hash (base58)"),
    account_id: str = typer.Argument(..., help="Sender account id"),
) -> None:
    """Look up a transaction's final outcome."""
    _print_json(_run(ctx, lambda conn: conn.provider.tx_status(tx_hash, account_id)))


@app.command("send")
def send(
    ctx: typer.Context,
    sender: str = typer.Argument(..., help="Sender account id (key in the key dir)"),
    receiver: str = typer.Argument(..., help="Receiver account id"),
    amount: str = typer.Argument(..., help="Amount in yoctoNEAR"),
) -> None:
    """Transfer tokens, signing with the file-system key store."""
    try:
        yocto = int(amount)
    except ValueError as e:
        raise typer.BadParameter(f"amount must be an integer number of yoctoNEAR, got {amount!r}") from e

    outcome = _run(ctx, lambda conn: Account(conn, sender).send_money(receiver, yocto))
    _print_json(
        {
            "transaction_hash": outcome.transaction_hash,
            "status": outcome.status,
            "receipts": [
                {
                    "receipt_ids": list(r.receipt_ids),
                    "logs": list(r.logs),
                    "failure": None if r.failure is None else str(r.failure),
                }
                for r in outcome.receipt_reports
            ],
        }
    )


@app.command("view")
def view(
    ctx: typer.Context,
    contract_id: str = typer.Argument(..., help="Contract account id"),
    method: str = typer.Argument(..., help="View method name"),
    args: str = typer.Option("{}", "--args", "-a", help="JSON object of named arguments"),
) -> None:
    """Call a view method and print its decoded result."""
    try:
        parsed = json.loads(args)
    except ValueError as e:
        raise typer.BadParameter(f"--args is not valid JSON: {e}") from e

    _print_json(
        _run(
            ctx,
            lambda conn: Account(conn, contract_id).view_function(contract_id, method, parsed, parse=_parse_lenient),
        )
    )


# --- Entrypoints --------------------------------------------------------------


def main(argv: Optional[list[str]] = None) -> int:
    """
    Run the CLI. Returns an integer exit code.
    """
    try:
        rv = app(prog_name="near-client", standalone_mode=False, args=argv)
    except typer.Abort:
        return 1
    except typer.Exit as e:
        return int(e.exit_code)
    except Exception as e:
        typer.echo(f"error: {e}", err=True)
        return 1
    return rv if isinstance(rv, int) else 0


def run(argv: Optional[list[str]] = None) -> int:
    """Alias for :func:`main`."""
    return main(argv)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
