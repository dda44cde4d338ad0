from __future__ import annotations

from .holders import (
    holder_counts,
    holders_for_strategy_address,
    holders_for_vault_address,
    holders_for_vault_id,
    indexer_status,
    latest_balances,
    list_vaults,
    resolve_topology,
    token_balances,
    top_holders,
    vault_token_holders,
)

__all__ = [
    "holder_counts",
    "holders_for_strategy_address",
    "holders_for_vault_address",
    "holders_for_vault_id",
    "indexer_status",
    "latest_balances",
    "list_vaults",
    "resolve_topology",
    "token_balances",
    "top_holders",
    "vault_token_holders",
]
