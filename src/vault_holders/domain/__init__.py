"""Domain models for holder reconstruction."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union


@dataclass(frozen=True)
class TokenMetadata:
    """Token identity as reported by the indexer; address is lower case."""

    address: str
    name: str
    symbol: str
    decimals: int


@dataclass(frozen=True)
class SnapshotBalance:
    """One (token, account) row of a periodic snapshot."""

    token: str
    account: str
    amount: int


@dataclass(frozen=True)
class BalanceChange:
    """One balance transition of ``account`` at ``token``."""

    token: str
    account: str
    block_number: int
    balance_before: int
    balance_after: int

    @property
    def delta(self) -> int:
        return self.balance_after - self.balance_before


@dataclass
class ReconstructedBalances:
    """Point-in-time balances: token -> account -> raw amount."""

    balances: dict[str, dict[str, int]]
    tokens: list[TokenMetadata]

    def for_token(self, token: str) -> dict[str, int]:
        return self.balances.get(token.lower(), {})


@dataclass(frozen=True)
class HoldDetail:
    """Provenance of part of a holder's balance: raw amount held at ``token``."""

    token: str
    balance: int


@dataclass
class HolderRecord:
    """Normalized holder balance with the constituent tokens it came from."""

    holder: str
    balance: int
    hold_details: list[HoldDetail] = field(default_factory=list)


@dataclass(frozen=True)
class HolderBalance:
    holder: str
    balance: int


@dataclass
class TokenHolders:
    """All holders of a single token."""

    token: TokenMetadata
    balances: list[HolderBalance]


@dataclass(frozen=True)
class TokenBalance:
    account: str
    token: str
    balance: int


@dataclass(frozen=True)
class ManagerVault:
    """Underlying vault whose share token is the base denomination of a layered vault."""

    vault_address: str
    strategy_address: str
    reward_pools: tuple[str, ...] = ()
    boosts: tuple[str, ...] = ()


@dataclass(frozen=True)
class SimpleVault:
    id: str
    vault_address: str
    strategy_address: str
    reward_pools: tuple[str, ...] = ()
    boosts: tuple[str, ...] = ()
    status: str = "active"
    kind: Literal["simple"] = "simple"


@dataclass(frozen=True)
class LayeredVault:
    """Vault whose share token is backed by deposits into ``manager``.

    The outer ``strategy_address`` holds the outer vault's aggregate claim on
    the manager share token.
    """

    id: str
    vault_address: str
    strategy_address: str
    manager: ManagerVault
    reward_pools: tuple[str, ...] = ()
    boosts: tuple[str, ...] = ()
    status: str = "active"
    kind: Literal["layered"] = "layered"


VaultTopology = Union[SimpleVault, LayeredVault]


@dataclass
class VaultHolders:
    """Normalized holders of one vault, denominated in ``base_token``."""

    vault_id: str
    base_token: TokenMetadata
    holders: list[HolderRecord]


@dataclass(frozen=True)
class HolderCount:
    chain: str
    token_address: str
    holder_count: int


@dataclass(frozen=True)
class AccountBalance:
    """Current balance of an account at one token, as last indexed.

    ``block_number`` is the indexer progress block of the token's chain.
    """

    chain: str
    token: TokenMetadata
    raw_amount: int
    block_number: int | None
