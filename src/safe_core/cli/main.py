#!/usr/bin/env python3
"""
Safe Core CLI - offline digest and signature tooling

Commands:
- message-hash       digest owners sign to approve a message for an account
- safe-tx-hash       transaction hash of an account operation
- decode-signatures  split a signature blob into its records
- selectors          entry points and magic values of the contracts
"""

from __future__ import annotations

import json
import logging
import sys
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from safe_core.core import typed_signing
from safe_core.core.address_checksum import ZERO_ADDRESS, validate_address
from safe_core.core.config import (
    Config,
    EIP1271_LEGACY_MAGIC_VALUE,
    EIP1271_MAGIC_VALUE,
    ERC721_RECEIVED_VALUE,
    ERC1155_BATCH_RECEIVED_VALUE,
    ERC1155_RECEIVED_VALUE,
)
from safe_core.core.contracts import (
    CompatibilityFallbackHandler,
    Safe,
    SignatureError,
    SignatureKind,
    SignMessageLib,
    SimulateTxAccessor,
    parse_signatures,
)
from safe_core.core.logging_config import setup_logging
from safe_core.core.vm.evm.abi import ERROR_SELECTOR

logger = logging.getLogger(__name__)
console = Console()

CONTRACTS = {
    "Safe": Safe,
    "CompatibilityFallbackHandler": CompatibilityFallbackHandler,
    "SignMessageLib": SignMessageLib,
    "SimulateTxAccessor": SimulateTxAccessor,
}

MAGIC_VALUES = {
    "isValidSignature(bytes,bytes)": EIP1271_LEGACY_MAGIC_VALUE,
    "isValidSignature(bytes32,bytes)": EIP1271_MAGIC_VALUE,
    "onERC1155Received": ERC1155_RECEIVED_VALUE,
    "onERC1155BatchReceived": ERC1155_BATCH_RECEIVED_VALUE,
    "onERC721Received": ERC721_RECEIVED_VALUE,
    "Error(string)": ERROR_SELECTOR,
}


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_hex(value: str, name: str) -> bytes:
    raw = value[2:] if value[:2].lower() == "0x" else value
    try:
        return bytes.fromhex(raw)
    except ValueError:
        raise click.BadParameter(f"{name} must be hex encoded, got {value!r}")


def _parse_address(value: str, name: str) -> str:
    valid, result = validate_address(value)
    if not valid:
        raise click.BadParameter(f"{name}: {result}")
    return result


def _emit(ctx: click.Context, payload: dict[str, Any], title: str) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2))
        return
    table = Table(title=f"[bold cyan]{title}", show_header=False, box=box.ROUNDED)
    for key, value in payload.items():
        table.add_row(f"[bold cyan]{key}", str(value))
    console.print(table)


@click.group()
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option("--log-level", default=None, help="Enable logging to stderr at this level")
@click.pass_context
def cli(ctx: click.Context, json_output: bool, log_level: str | None):
    """Multi-owner account digest and signature tools."""
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    if log_level:
        setup_logging(name="safe_core", level=log_level, json_format=False)


@cli.command("message-hash")
@click.argument("message")
@click.option("--account", required=True, help="Account address the message is signed for")
@click.option("--chain-id", default=Config.CHAIN_ID, type=int, show_default=True, help="Chain id")
@click.option("--text", is_flag=True, help="Treat MESSAGE as UTF-8 text instead of hex")
@click.pass_context
def message_hash(ctx: click.Context, message: str, account: str, chain_id: int, text: bool):
    """
    Compute the digest owners sign to approve MESSAGE.

    Example:
        safe-core message-hash 0xdeadbeef --account 0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed
    """
    try:
        account = _parse_address(account, "--account")
        data = message.encode("utf-8") if text else _parse_hex(message, "MESSAGE")
        payload = {
            "account": account,
            "chain_id": chain_id,
            "domain_separator": "0x" + typed_signing.domain_separator(chain_id, account).hex(),
            "struct_hash": "0x" + typed_signing.safe_message_struct_hash(data).hex(),
            "message_hash": "0x" + typed_signing.safe_message_hash(data, account, chain_id).hex(),
        }
        _emit(ctx, payload, "Message Hash")
    except click.BadParameter as exc:
        _handle_cli_error(exc, exit_code=2)


@cli.command("safe-tx-hash")
@click.option("--account", required=True, help="Account executing the transaction")
@click.option("--chain-id", default=Config.CHAIN_ID, type=int, show_default=True, help="Chain id")
@click.option("--to", "to", required=True, help="Target of the operation")
@click.option("--value", default=0, type=int, help="Value in wei")
@click.option("--data", default="0x", help="Hex-encoded call data")
@click.option(
    "--operation",
    type=click.Choice(["call", "delegatecall"]),
    default="call",
    show_default=True,
)
@click.option("--safe-tx-gas", default=0, type=int)
@click.option("--base-gas", default=0, type=int)
@click.option("--gas-price", default=0, type=int)
@click.option("--gas-token", default=ZERO_ADDRESS)
@click.option("--refund-receiver", default=ZERO_ADDRESS)
@click.option("--nonce", required=True, type=int, help="Account nonce the transaction is bound to")
@click.pass_context
def safe_tx_hash(
    ctx: click.Context,
    account: str,
    chain_id: int,
    to: str,
    value: int,
    data: str,
    operation: str,
    safe_tx_gas: int,
    base_gas: int,
    gas_price: int,
    gas_token: str,
    refund_receiver: str,
    nonce: int,
):
    """Compute the hash owners sign to authorize a transaction."""
    try:
        account = _parse_address(account, "--account")
        args = (
            account,
            chain_id,
            _parse_address(to, "--to"),
            value,
            _parse_hex(data, "--data"),
            1 if operation == "delegatecall" else 0,
            safe_tx_gas,
            base_gas,
            gas_price,
            _parse_address(gas_token, "--gas-token"),
            _parse_address(refund_receiver, "--refund-receiver"),
            nonce,
        )
        payload = {
            "account": account,
            "chain_id": chain_id,
            "nonce": nonce,
            "safe_tx_hash": "0x" + typed_signing.safe_tx_hash(*args).hex(),
        }
        _emit(ctx, payload, "Transaction Hash")
    except click.BadParameter as exc:
        _handle_cli_error(exc, exit_code=2)


@cli.command("decode-signatures")
@click.argument("signatures")
@click.option("--threshold", default=1, type=int, show_default=True, help="Required number of records")
@click.pass_context
def decode_signatures(ctx: click.Context, signatures: str, threshold: int):
    """
    Split a signature blob into its 65-byte records.

    No signature is verified; only the structure of the blob is checked.
    """
    try:
        records = parse_signatures(_parse_hex(signatures, "SIGNATURES"), threshold)
    except SignatureError as exc:
        _handle_cli_error(exc)
        return
    except click.BadParameter as exc:
        _handle_cli_error(exc, exit_code=2)
        return

    rows = []
    for record in records:
        rows.append(
            {
                "index": record.index,
                "kind": record.kind.value,
                "v": record.v,
                "signer": record.declared_signer,
                "r": hex(record.r),
                "s": hex(record.s),
                "contract_signature": "0x" + record.contract_signature.hex()
                if record.kind is SignatureKind.CONTRACT else None,
            }
        )

    if ctx.obj.get("json_output"):
        click.echo(json.dumps(rows, indent=2))
        return

    table = Table(title="[bold cyan]Signature Records", box=box.ROUNDED)
    table.add_column("#", style="cyan")
    table.add_column("Kind", style="green")
    table.add_column("v")
    table.add_column("Signer / r")
    table.add_column("s / offset")
    for row in rows:
        table.add_row(
            str(row["index"]),
            row["kind"],
            str(row["v"]),
            row["signer"] or row["r"][:20],
            row["s"][:20],
        )
    console.print(table)


@cli.command("selectors")
@click.option("--contract", "contract_name", type=click.Choice(sorted(CONTRACTS)), help="Only this contract")
@click.pass_context
def selectors(ctx: click.Context, contract_name: str | None):
    """List entry points with their selectors and the magic return values."""
    names = [contract_name] if contract_name else list(CONTRACTS)
    entries = {
        name: {
            signature: "0x" + spec.selector.hex()
            for signature, spec in sorted(CONTRACTS[name].external_functions().items())
        }
        for name in names
    }
    magic = {name: "0x" + value.hex() for name, value in MAGIC_VALUES.items()}

    if ctx.obj.get("json_output"):
        click.echo(json.dumps({"contracts": entries, "magic_values": magic}, indent=2))
        return

    for name, functions in entries.items():
        table = Table(title=f"[bold cyan]{name}", box=box.SIMPLE)
        table.add_column("Selector", style="cyan")
        table.add_column("Signature", style="white")
        for signature, selector in functions.items():
            table.add_row(selector, signature)
        console.print(table)

    magic_table = Table(title="[bold cyan]Magic values", box=box.SIMPLE)
    magic_table.add_column("Value", style="cyan")
    magic_table.add_column("Returned by", style="white")
    for name, value in magic.items():
        magic_table.add_row(value, name)
    console.print(magic_table)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)


if __name__ == "__main__":
    main()
