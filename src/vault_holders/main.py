"""CLI entrypoint for vault-holders."""

from __future__ import annotations

import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Annotated, Any, Coroutine, Optional, TypeVar

import typer

from .clients import fetch_latest_block, get_indexer_client
from .constants import Chain
from .errors import VaultHoldersError
from .logger import setup_logging
from .pipeline import (
    holder_counts,
    holders_for_strategy_address,
    holders_for_vault_address,
    holders_for_vault_id,
    indexer_status,
    latest_balances,
    list_vaults,
    token_balances,
    top_holders,
    vault_token_holders,
)
from .report import (
    account_balances_payload,
    balances_payload,
    format_account_balances,
    format_balances,
    format_holder_counts,
    format_holders,
    format_token_holders,
    format_vaults,
    holder_counts_payload,
    holders_payload,
    token_holders_payload,
    vaults_payload,
)
from .settings import HolderSettings
from .registry import VaultRegistry
from .state import AppState

T = TypeVar("T")

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=True,
    pretty_exceptions_short=True,
    pretty_exceptions_show_locals=False,
    rich_markup_mode="rich",
    help="Historical vault holder balances, normalized to base shares.",
)

ChainOption = Annotated[
    Chain, typer.Option("--chain", "-n", help="Chain the vault or tokens live on.")
]
BlockOption = Annotated[
    Optional[int],
    typer.Option(
        "--block",
        "-b",
        min=0,
        help="Block to reconstruct balances at. Defaults to the chain head.",
    ),
]
JsonOption = Annotated[
    bool, typer.Option("--json", help="Print JSON instead of a table.")
]


def _build_logger() -> logging.Logger:
    """Build a logger instance."""
    return logging.getLogger("vault_holders")


def _state(ctx: typer.Context) -> AppState:
    state = ctx.obj
    if not isinstance(state, AppState):
        raise RuntimeError("CLI state has not been initialised")
    return state


def _registry(state: AppState) -> VaultRegistry:
    try:
        return state.registry
    except VaultHoldersError as exc:
        state.logger.error("%s", exc.message)
        raise typer.Exit(code=1) from exc


def _run(state: AppState, coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro``, turning package errors into a clean exit code."""
    try:
        return asyncio.run(coro)
    except VaultHoldersError as exc:
        state.logger.error("%s", exc.message)
        raise typer.Exit(code=1) from exc


def _resolve_block(state: AppState, chain: Chain, block: int | None) -> int:
    if block is not None:
        return block
    head = _run(state, fetch_latest_block(state.settings, chain))
    state.logger.info("Using chain head block %d on %s", head, chain.value)
    return head


def _echo_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2))


@app.callback()
def main(
    ctx: typer.Context,
    config_path: Annotated[
        Optional[Path],
        typer.Option(
            "--config",
            "-c",
            help="Path to a TOML config file (can include [vault_holders] table).",
        ),
    ] = None,
    indexer_url: Annotated[
        Optional[str],
        typer.Option("--indexer-url", help="GraphQL endpoint of the balance indexer."),
    ] = None,
    registry_path: Annotated[
        Optional[Path],
        typer.Option("--registry", help="Path to the vault registry TOML file."),
    ] = None,
    fetch_delay: Annotated[
        Optional[float],
        typer.Option(
            "--fetch-delay", min=0, help="Seconds to wait between indexer pages."
        ),
    ] = None,
    log_level: Annotated[
        Optional[str],
        typer.Option(
            "--log-level",
            help="Override logging verbosity (TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL).",
        ),
    ] = None,
    show_config: Annotated[
        bool,
        typer.Option(
            "--show-config",
            help="Print effective config (with secrets redacted) and exit.",
        ),
    ] = False,
) -> None:
    """Load configuration and logging shared by every command."""
    if config_path:
        os.environ["VAULT_HOLDERS_CONFIG"] = str(config_path)

    init_kwargs: dict[str, Any] = {}
    if indexer_url is not None:
        init_kwargs["indexer_url"] = indexer_url
    if registry_path is not None:
        init_kwargs["vault_registry_path"] = registry_path
    if fetch_delay is not None:
        init_kwargs["fetch_delay"] = fetch_delay
    if log_level is not None:
        init_kwargs["log_level"] = log_level.upper()

    settings = HolderSettings(**init_kwargs)
    setup_logging(settings.log_level)

    if show_config:
        _echo_json(settings.as_safe_dict())
        raise typer.Exit(code=0)

    get_indexer_client(settings)
    ctx.obj = AppState(settings=settings, logger=_build_logger())


@app.command()
def holders(
    ctx: typer.Context,
    chain: ChainOption,
    vault_id: Annotated[
        Optional[str], typer.Option("--vault-id", help="Vault id in the registry.")
    ] = None,
    vault_address: Annotated[
        Optional[str], typer.Option("--vault-address", help="Vault share token address.")
    ] = None,
    strategy_address: Annotated[
        Optional[str], typer.Option("--strategy-address", help="Vault strategy address.")
    ] = None,
    block: BlockOption = None,
    balance_gt: Annotated[
        int,
        typer.Option("--balance-gt", help="Only report balances above this raw amount."),
    ] = 0,
    json_output: JsonOption = False,
) -> None:
    """Holders of a vault expressed in its base share token."""
    state = _state(ctx)
    selectors = [s for s in (vault_id, vault_address, strategy_address) if s]
    if len(selectors) != 1:
        raise typer.BadParameter(
            "Provide exactly one of --vault-id, --vault-address or --strategy-address"
        )

    registry = _registry(state)

    target_block = _resolve_block(state, chain, block)

    if vault_id:
        coro = holders_for_vault_id(registry, chain, vault_id, target_block, balance_gt)
        label = vault_id
    elif vault_address:
        coro = holders_for_vault_address(
            registry, chain, vault_address, target_block, balance_gt
        )
        label = vault_address
    else:
        assert strategy_address is not None
        coro = holders_for_strategy_address(
            registry, chain, strategy_address, target_block, balance_gt
        )
        label = strategy_address

    result = _run(state, coro)

    if json_output:
        _echo_json(holders_payload(result.holders, result.base_token))
    else:
        format_holders(
            result.holders,
            title=f"{label} @ {chain.value}#{target_block}",
            base_token=result.base_token,
        )


@app.command("token-holders")
def token_holders(
    ctx: typer.Context,
    chain: ChainOption,
    vault_id: Annotated[
        str, typer.Option("--vault-id", help="Vault id prefix in the registry.")
    ],
    block: BlockOption = None,
    balance_gt: Annotated[
        int,
        typer.Option("--balance-gt", help="Only report balances above this raw amount."),
    ] = 0,
    json_output: JsonOption = False,
) -> None:
    """Raw holders of each token of the vaults matching an id prefix."""
    state = _state(ctx)
    registry = _registry(state)

    target_block = _resolve_block(state, chain, block)
    groups = _run(
        state, vault_token_holders(registry, chain, vault_id, target_block, balance_gt)
    )

    if json_output:
        _echo_json(token_holders_payload(groups))
    else:
        format_token_holders(groups)


@app.command()
def balances(
    ctx: typer.Context,
    chain: ChainOption,
    tokens: Annotated[
        list[str], typer.Option("--token", "-t", help="Token address (repeatable).")
    ],
    block: BlockOption = None,
    min_balance: Annotated[
        int,
        typer.Option("--min-balance", help="Only report balances at or above this."),
    ] = 0,
    json_output: JsonOption = False,
) -> None:
    """Balances of arbitrary tokens at a block."""
    state = _state(ctx)
    target_block = _resolve_block(state, chain, block)
    rows = _run(state, token_balances(chain, target_block, tokens, min_balance))

    if json_output:
        _echo_json(balances_payload(rows))
    else:
        format_balances(rows)


@app.command("top-holders")
def top_holders_command(
    ctx: typer.Context,
    chain: ChainOption,
    tokens: Annotated[
        list[str], typer.Option("--token", "-t", help="Token address (repeatable).")
    ],
    limit: Annotated[
        int,
        typer.Option("--limit", min=1, max=1000, help="Holders reported per token."),
    ] = 100,
    json_output: JsonOption = False,
) -> None:
    """Current largest holders of each token."""
    state = _state(ctx)
    groups = _run(state, top_holders(chain, tokens, limit))

    if json_output:
        _echo_json(token_holders_payload(groups))
    else:
        format_token_holders(groups)


@app.command("holder-counts")
def holder_counts_command(
    ctx: typer.Context,
    chain: Annotated[
        Optional[Chain],
        typer.Option("--chain", "-n", help="Only count tokens on this chain."),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Current number of holders of every indexed token."""
    state = _state(ctx)
    counts = _run(state, holder_counts(chain))

    if json_output:
        _echo_json(holder_counts_payload(counts))
    else:
        format_holder_counts(counts)


@app.command("latest-balances")
def latest_balances_command(
    ctx: typer.Context,
    account: Annotated[str, typer.Argument(help="Account address.")],
    chain: Annotated[
        Optional[Chain],
        typer.Option("--chain", "-n", help="Only report balances on this chain."),
    ] = None,
    json_output: JsonOption = False,
) -> None:
    """Latest indexed balances of an account across chains."""
    state = _state(ctx)
    rows = _run(state, latest_balances(account, chain))

    if json_output:
        _echo_json(account_balances_payload(rows))
    else:
        format_account_balances(account.lower(), rows)


@app.command()
def vaults(
    ctx: typer.Context,
    chain: ChainOption,
    include_eol: Annotated[
        bool,
        typer.Option("--include-eol", help="Also list vaults that are not active."),
    ] = False,
    json_output: JsonOption = False,
) -> None:
    """Vaults configured for a chain."""
    state = _state(ctx)
    configured = list_vaults(_registry(state), chain, include_eol)

    if json_output:
        _echo_json(vaults_payload(configured))
    else:
        format_vaults(configured)


@app.command()
def status(ctx: typer.Context, chain: ChainOption) -> None:
    """Highest block indexed for a chain."""
    state = _state(ctx)
    progress = _run(state, indexer_status(chain))
    _echo_json({"chain": chain.value, "progress_block": progress})


def run() -> None:
    """Entrypoint used by the console script."""
    app()


if __name__ == "__main__":
    run()
