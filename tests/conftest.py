"""Shared fixtures: an in-memory stand-in for the balance indexer."""

from __future__ import annotations

from typing import Iterable

import pytest

from vault_holders.clients.indexer import TokenRow
from vault_holders.constants import Chain
from vault_holders.domain import BalanceChange, SnapshotBalance


def address(n: int) -> str:
    return f"0x{n:040x}"


class FakeIndexer:
    """Answers the indexer queries from in-memory rows and records every call."""

    def __init__(
        self,
        *,
        snapshot_block: int | None = 100,
        progress_block: int | None = 1_000_000,
        tokens: Iterable[TokenRow] = (),
        snapshot: Iterable[SnapshotBalance] = (),
        changes: Iterable[BalanceChange] = (),
        top_balances: Iterable[dict] = (),
        holder_counts: Iterable[dict] = (),
        account_balances: Iterable[dict] = (),
        progress_blocks: dict[int, int] | None = None,
    ):
        self.snapshot_block = snapshot_block
        self.progress_block = progress_block
        self.tokens = list(tokens)
        self.snapshot = list(snapshot)
        self.changes = list(changes)
        self.top_balances = list(top_balances)
        self.holder_counts = list(holder_counts)
        self.account_balances = list(account_balances)
        self.progress_blocks = progress_blocks or {}
        self.calls: list[tuple] = []

    @classmethod
    def from_balances(
        cls,
        balances: dict[str, dict[str, int]],
        *,
        changes: Iterable[BalanceChange] = (),
        snapshot_block: int | None = 100,
        **kwargs,
    ) -> "FakeIndexer":
        """Snapshot rows from ``balances``; every token gets generic metadata."""
        tokens = [
            TokenRow(
                id=f"8453-{token}",
                address=token,
                name=f"Token {i}",
                symbol=f"TK{i}",
                decimals=18,
            )
            for i, token in enumerate(balances)
        ]
        snapshot = [
            SnapshotBalance(token=token, account=account, amount=amount)
            for token, by_account in balances.items()
            for account, amount in by_account.items()
        ]
        return cls(
            snapshot_block=snapshot_block,
            tokens=tokens,
            snapshot=snapshot,
            changes=changes,
            **kwargs,
        )

    async def fetch_last_snapshot_block(self, chain: Chain, block: int) -> int | None:
        self.calls.append(("last_snapshot", chain, block))
        if self.snapshot_block is None or self.snapshot_block > block:
            return None
        return self.snapshot_block

    async def fetch_progress_block(self, chain: Chain) -> int | None:
        self.calls.append(("progress", chain))
        return self.progress_block

    async def fetch_token_metadata(
        self, chain: Chain, token_addresses: Iterable[str]
    ) -> list[TokenRow]:
        wanted = {a.lower() for a in token_addresses}
        self.calls.append(("tokens", chain, sorted(wanted)))
        return [row for row in self.tokens if row["address"].lower() in wanted]

    async def fetch_snapshot_balances(
        self,
        chain: Chain,
        snapshot_block: int,
        token_addresses: Iterable[str],
        exclude_accounts: Iterable[str],
    ) -> list[SnapshotBalance]:
        tokens = set(token_addresses)
        excluded = set(exclude_accounts)
        self.calls.append(("snapshot", chain, snapshot_block, sorted(excluded)))
        return [
            row
            for row in self.snapshot
            if row.token in tokens and row.account not in excluded
        ]

    async def fetch_balance_changes(
        self,
        chain: Chain,
        from_block: int,
        to_block: int,
        token_addresses: Iterable[str],
        exclude_accounts: Iterable[str],
    ) -> list[BalanceChange]:
        tokens = set(token_addresses)
        excluded = set(exclude_accounts)
        self.calls.append(("changes", chain, from_block, to_block, sorted(excluded)))
        return [
            change
            for change in self.changes
            if change.token in tokens
            and change.account not in excluded
            and from_block < change.block_number <= to_block
        ]

    async def fetch_progress_blocks(self) -> dict[int, int]:
        self.calls.append(("progress_blocks",))
        return dict(self.progress_blocks)

    async def fetch_top_balances(
        self,
        chain: Chain,
        token_addresses: Iterable[str],
        exclude_accounts: Iterable[str],
        limit: int,
    ) -> list[dict]:
        wanted = {a.lower() for a in token_addresses}
        excluded = {a.lower() for a in exclude_accounts}
        self.calls.append(("top", chain, sorted(wanted), sorted(excluded), limit))
        return [
            {
                **row,
                "balances": [
                    b for b in row["balances"] if b["account_id"] not in excluded
                ][:limit],
            }
            for row in self.top_balances
            if row["address"].lower() in wanted
        ]

    async def fetch_holder_counts(self, chain: Chain | None = None) -> list[dict]:
        self.calls.append(("holder_counts", chain))
        return list(self.holder_counts)

    async def fetch_account_balances(self, account: str) -> list[dict]:
        self.calls.append(("account_balances", account))
        return list(self.account_balances)


@pytest.fixture
def fake_indexer_cls() -> type[FakeIndexer]:
    return FakeIndexer
