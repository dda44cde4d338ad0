"""Rich console tables for holder query results."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..domain import (
    AccountBalance,
    HolderCount,
    HolderRecord,
    TokenBalance,
    TokenHolders,
    TokenMetadata,
    VaultTopology,
)
from ..units import to_decimal


def _truncate_address(address: str) -> str:
    """Truncate address for display."""
    return f"{address[:10]}...{address[-4:]}"


def _format_raw(raw: int) -> str:
    return f"{raw:,}"


def build_holders_table(
    records: list[HolderRecord], base_token: TokenMetadata | None = None
) -> Table:
    table = Table(show_lines=False, header_style="bold")
    table.add_column("Holder", style="cyan", no_wrap=True)
    table.add_column("Balance (raw)", justify="right", style="green")
    if base_token is not None:
        table.add_column(base_token.symbol, justify="right")
    table.add_column("Held via", style="dim")

    for record in records:
        held_via = ", ".join(
            f"{_truncate_address(d.token)}={_format_raw(d.balance)}"
            for d in record.hold_details
        )
        row = [record.holder, _format_raw(record.balance)]
        if base_token is not None:
            row.append(f"{to_decimal(record.balance, base_token.decimals):f}")
        row.append(held_via)
        table.add_row(*row)
    return table


def format_holders(
    records: list[HolderRecord],
    title: str,
    base_token: TokenMetadata | None = None,
    console: Console | None = None,
) -> None:
    """Print normalized holder records as a table."""
    console = console or Console()
    total = sum(r.balance for r in records)
    console.print(
        Panel(
            build_holders_table(records, base_token),
            title=f"[bold]{title}[/]",
            subtitle=f"{len(records)} holders, total {_format_raw(total)}",
            border_style="blue",
        )
    )


def format_token_holders(
    groups: list[TokenHolders], console: Console | None = None
) -> None:
    console = console or Console()
    for group in groups:
        table = Table(header_style="bold")
        table.add_column("Holder", style="cyan", no_wrap=True)
        table.add_column("Balance (raw)", justify="right", style="green")
        table.add_column(group.token.symbol, justify="right")
        for b in group.balances:
            table.add_row(
                b.holder,
                _format_raw(b.balance),
                f"{to_decimal(b.balance, group.token.decimals):f}",
            )
        console.print(
            Panel(
                table,
                title=f"[bold]{group.token.name}[/] ({group.token.address})",
                border_style="green",
            )
        )


def format_balances(rows: list[TokenBalance], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(header_style="bold")
    table.add_column("Account", style="cyan", no_wrap=True)
    table.add_column("Token", style="dim")
    table.add_column("Balance (raw)", justify="right", style="green")
    for row in rows:
        table.add_row(row.account, _truncate_address(row.token), _format_raw(row.balance))
    console.print(table)


def format_holder_counts(
    counts: list[HolderCount], console: Console | None = None
) -> None:
    console = console or Console()
    table = Table(header_style="bold")
    table.add_column("Chain")
    table.add_column("Token", style="cyan", no_wrap=True)
    table.add_column("Holders", justify="right", style="green")
    for count in sorted(counts, key=lambda c: (c.chain, -c.holder_count)):
        table.add_row(count.chain, count.token_address, f"{count.holder_count:,}")
    console.print(table)


def format_account_balances(
    account: str, balances: list[AccountBalance], console: Console | None = None
) -> None:
    """Print the latest balances of ``account``, one row per chain and token."""
    console = console or Console()
    table = Table(header_style="bold")
    table.add_column("Chain")
    table.add_column("Token", style="cyan", no_wrap=True)
    table.add_column("Symbol")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("Balance (raw)", justify="right", style="dim")
    table.add_column("Block", justify="right")
    for balance in balances:
        table.add_row(
            balance.chain,
            _truncate_address(balance.token.address),
            balance.token.symbol or "-",
            f"{to_decimal(balance.raw_amount, balance.token.decimals):f}",
            _format_raw(balance.raw_amount),
            "-" if balance.block_number is None else str(balance.block_number),
        )
    console.print(
        Panel(table, title=f"[bold]Latest balances[/] ({account})", border_style="blue")
    )


def format_vaults(vaults: list[VaultTopology], console: Console | None = None) -> None:
    console = console or Console()
    table = Table(header_style="bold")
    table.add_column("Vault", style="cyan")
    table.add_column("Kind")
    table.add_column("Status")
    table.add_column("Vault address", no_wrap=True)
    table.add_column("Strategy", style="dim", no_wrap=True)
    for vault in vaults:
        status = vault.status if vault.status == "active" else f"[yellow]{vault.status}[/]"
        table.add_row(
            vault.id,
            vault.kind,
            status,
            vault.vault_address,
            _truncate_address(vault.strategy_address),
        )
    console.print(table)
