from __future__ import annotations

from .formatter import (
    format_account_balances,
    format_balances,
    format_holder_counts,
    format_holders,
    format_token_holders,
    format_vaults,
)
from .generator import (
    account_balances_payload,
    balances_payload,
    holder_counts_payload,
    holders_payload,
    token_holders_payload,
    vaults_payload,
)

__all__ = [
    "account_balances_payload",
    "balances_payload",
    "format_account_balances",
    "format_balances",
    "format_holder_counts",
    "format_holders",
    "format_token_holders",
    "format_vaults",
    "holder_counts_payload",
    "holders_payload",
    "token_holders_payload",
    "vaults_payload",
]
