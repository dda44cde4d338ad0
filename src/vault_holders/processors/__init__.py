from __future__ import annotations

from .balance_reconstructor import (
    apply_balance_changes,
    reconstruct_balances,
    token_address_of,
    token_decimals,
    token_metadata_from_row,
)
from .holdings_normalizer import (
    aggregate_by_holder,
    base_share_token,
    constituent_tokens,
    excluded_holders,
    normalize_holders,
    normalize_vault_holders,
    strategy_addresses,
)

__all__ = [
    "apply_balance_changes",
    "reconstruct_balances",
    "token_address_of",
    "token_decimals",
    "token_metadata_from_row",
    "aggregate_by_holder",
    "base_share_token",
    "constituent_tokens",
    "excluded_holders",
    "normalize_holders",
    "normalize_vault_holders",
    "strategy_addresses",
]
