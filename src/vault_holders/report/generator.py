from __future__ import annotations

from typing import Any

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


def _amount(raw: int, decimals: int | None) -> str | None:
    if decimals is None:
        return None
    return f"{to_decimal(raw, decimals):f}"


def holders_payload(
    records: list[HolderRecord], base_token: TokenMetadata | None = None
) -> list[dict[str, Any]]:
    """JSON-ready holder records; raw integers are rendered as strings.

    ``amount`` is the human-readable balance when the base token's decimals
    are known, otherwise omitted.
    """
    decimals = base_token.decimals if base_token else None
    payload: list[dict[str, Any]] = []
    for record in records:
        entry: dict[str, Any] = {
            "holder": record.holder,
            "balance": str(record.balance),
            "hold_details": [
                {"token": detail.token, "balance": str(detail.balance)}
                for detail in record.hold_details
            ],
        }
        amount = _amount(record.balance, decimals)
        if amount is not None:
            entry["amount"] = amount
        payload.append(entry)
    return payload


def token_holders_payload(groups: list[TokenHolders]) -> list[dict[str, Any]]:
    return [
        {
            "id": group.token.address,
            "name": group.token.name,
            "symbol": group.token.symbol,
            "decimals": group.token.decimals,
            "balances": [
                {
                    "holder": b.holder,
                    "balance": str(b.balance),
                    "amount": _amount(b.balance, group.token.decimals),
                }
                for b in group.balances
            ],
        }
        for group in groups
    ]


def balances_payload(rows: list[TokenBalance]) -> list[dict[str, Any]]:
    return [
        {
            "user_address": row.account,
            "token_address": row.token,
            "balance": str(row.balance),
        }
        for row in rows
    ]


def holder_counts_payload(counts: list[HolderCount]) -> list[dict[str, Any]]:
    return [
        {
            "chain": count.chain,
            "token_address": count.token_address,
            "holder_count": count.holder_count,
        }
        for count in counts
    ]


def account_balances_payload(balances: list[AccountBalance]) -> dict[str, Any]:
    """Latest balances of one account; ``block`` is null when progress is unknown."""
    return {
        "balances": [
            {
                "chain": balance.chain,
                "token": {
                    "address": balance.token.address,
                    "symbol": balance.token.symbol,
                    "name": balance.token.name,
                    "decimals": balance.token.decimals,
                },
                "amount": _amount(balance.raw_amount, balance.token.decimals),
                "raw_amount": str(balance.raw_amount),
                "block": balance.block_number,
            }
            for balance in balances
        ]
    }


def _vault_entry(vault: VaultTopology) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "id": vault.id,
        "kind": vault.kind,
        "status": vault.status,
        "vault_address": vault.vault_address,
        "strategy_address": vault.strategy_address,
        "reward_pools": list(vault.reward_pools),
        "boosts": list(vault.boosts),
    }
    if vault.kind == "layered":
        entry["manager"] = {
            "vault_address": vault.manager.vault_address,
            "strategy_address": vault.manager.strategy_address,
            "reward_pools": list(vault.manager.reward_pools),
            "boosts": list(vault.manager.boosts),
        }
    return entry


def vaults_payload(vaults: list[VaultTopology]) -> dict[str, Any]:
    return {"vaults": [_vault_entry(vault) for vault in vaults]}
