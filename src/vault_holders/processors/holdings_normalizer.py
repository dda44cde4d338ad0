"""Normalize holdings across a vault's constituent tokens into base shares.

Holders may own a vault's share token directly or through the vault's reward
pools and boosts. For layered vaults the outer share token is itself backed
by the manager vault's share token, held by the outer strategy. Everything is
re-expressed in the base share token (the outer share for simple vaults, the
manager share for layered ones) using integer arithmetic only.
"""

from __future__ import annotations

from collections import defaultdict
from typing import Iterable

from ..clients.indexer import IndexerClient
from ..constants import ZERO_ADDRESS, Chain
from ..domain import (
    HoldDetail,
    HolderRecord,
    LayeredVault,
    ReconstructedBalances,
    SimpleVault,
    VaultHolders,
    VaultTopology,
)
from ..errors import ConfigurationError
from ..logger import get_logger
from .balance_reconstructor import reconstruct_balances

logger = get_logger(__name__)


def _unique_lower(addresses: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(address.lower() for address in addresses))


def share_constituents(
    vault_address: str, reward_pools: Iterable[str], boosts: Iterable[str]
) -> list[str]:
    """Tokens whose balances are denominated in ``vault_address`` shares."""
    return _unique_lower([vault_address, *reward_pools, *boosts])


def constituent_tokens(topology: VaultTopology) -> list[str]:
    """Every token address making up ``topology``, outer vault first."""
    tokens = share_constituents(
        topology.vault_address, topology.reward_pools, topology.boosts
    )
    if topology.kind == "layered":
        manager = topology.manager
        tokens += share_constituents(
            manager.vault_address, manager.reward_pools, manager.boosts
        )
    return _unique_lower(tokens)


def strategy_addresses(topology: VaultTopology) -> list[str]:
    strategies = [topology.strategy_address]
    if topology.kind == "layered":
        strategies.append(topology.manager.strategy_address)
    return _unique_lower(strategies)


def excluded_holders(topology: VaultTopology) -> set[str]:
    """Operational addresses that never count as holders of ``topology``.

    Strategies hold claims on behalf of the vault, and constituent contracts
    hold each other's tokens as part of staking.
    """
    return {
        ZERO_ADDRESS,
        *strategy_addresses(topology),
        *constituent_tokens(topology),
    }


def tagged_holders(
    reconstructed: ReconstructedBalances, tokens: Iterable[str]
) -> list[HolderRecord]:
    """One record per (token, holder) pair, with the token as provenance."""
    records: list[HolderRecord] = []
    for token in tokens:
        for holder, balance in reconstructed.for_token(token).items():
            records.append(
                HolderRecord(
                    holder=holder,
                    balance=balance,
                    hold_details=[HoldDetail(token=token.lower(), balance=balance)],
                )
            )
    return records


def aggregate_by_holder(records: Iterable[HolderRecord]) -> list[HolderRecord]:
    """Group records by holder, summing balances and concatenating provenance."""
    balances: dict[str, int] = defaultdict(int)
    details: dict[str, list[HoldDetail]] = defaultdict(list)
    for record in records:
        holder = record.holder.lower()
        balances[holder] += record.balance
        details[holder].extend(record.hold_details)

    return [
        HolderRecord(holder=holder, balance=balance, hold_details=details[holder])
        for holder, balance in balances.items()
    ]


def _keep(record: HolderRecord, excluded: set[str]) -> bool:
    return record.balance != 0 and record.holder.lower() not in excluded


def normalize_simple_vault(
    topology: SimpleVault, reconstructed: ReconstructedBalances
) -> list[HolderRecord]:
    excluded = excluded_holders(topology)
    holders = tagged_holders(
        reconstructed,
        share_constituents(
            topology.vault_address, topology.reward_pools, topology.boosts
        ),
    )
    return aggregate_by_holder(r for r in holders if _keep(r, excluded))


def aggregate_claim(
    manager_share_holders: Iterable[HolderRecord], strategy_address: str
) -> int:
    """Manager shares held by ``strategy_address`` across the manager's tokens."""
    strategy = strategy_address.lower()
    return sum(r.balance for r in manager_share_holders if r.holder == strategy)


def normalize_layered_vault(
    topology: LayeredVault, reconstructed: ReconstructedBalances
) -> list[HolderRecord]:
    """Express direct manager holders and outer-vault holders in manager shares.

    Outer holders receive ``raw * claim // outer_total_supply`` where claim is
    the outer strategy's manager-share balance. Floor division never credits
    more than the strategy holds.
    """
    excluded = excluded_holders(topology)
    manager = topology.manager

    manager_share_holders = tagged_holders(
        reconstructed,
        share_constituents(manager.vault_address, manager.reward_pools, manager.boosts),
    )

    claim = aggregate_claim(manager_share_holders, topology.strategy_address)
    if claim == 0:
        # No deposit yet and missing indexer data look the same from here
        logger.warning(
            "Strategy %s of vault %s holds no manager shares; "
            "outer holders normalize to zero",
            topology.strategy_address.lower(),
            topology.id,
        )

    outer_total_supply = sum(reconstructed.for_token(topology.vault_address).values())

    outer_share_holders = [
        r
        for r in tagged_holders(
            reconstructed,
            share_constituents(
                topology.vault_address, topology.reward_pools, topology.boosts
            ),
        )
        if r.holder not in excluded
    ]

    if outer_total_supply == 0:
        converted: list[HolderRecord] = []
    else:
        converted = [
            HolderRecord(
                holder=r.holder,
                balance=r.balance * claim // outer_total_supply,
                hold_details=r.hold_details,
            )
            for r in outer_share_holders
        ]

    logger.debug(
        "Vault %s: %d manager-share holder rows, %d outer holder rows, "
        "claim=%d outer_total_supply=%d",
        topology.id,
        len(manager_share_holders),
        len(outer_share_holders),
        claim,
        outer_total_supply,
    )

    return aggregate_by_holder(
        r for r in [*manager_share_holders, *converted] if _keep(r, excluded)
    )


def base_share_token(topology: VaultTopology) -> str:
    """Token every holder balance of ``topology`` is denominated in."""
    if topology.kind == "layered":
        return topology.manager.vault_address.lower()
    return topology.vault_address.lower()


async def normalize_vault_holders(
    chain: Chain,
    topology: VaultTopology,
    target_block: int,
    balance_gt: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> VaultHolders:
    """Per-holder balances of ``topology`` at ``target_block`` in base shares.

    Args:
        chain: Chain the vault lives on
        topology: Resolved vault topology
        target_block: Block to report holdings at
        balance_gt: Only holders with a normalized balance above this are kept
        indexer: Indexer client; the process-wide client when omitted

    Returns:
        The base share token's metadata and the holder records, sorted by
        balance (descending) then holder address.
    """
    tokens = constituent_tokens(topology)

    # Only the zero address is excluded here: the outer strategy's own
    # manager-share balance is the aggregate claim of a layered vault.
    reconstructed = await reconstruct_balances(
        chain, target_block, tokens, [ZERO_ADDRESS], indexer=indexer
    )

    if topology.kind == "simple":
        records = normalize_simple_vault(topology, reconstructed)
    elif topology.kind == "layered":
        records = normalize_layered_vault(topology, reconstructed)
    else:
        raise ConfigurationError(
            f"Vault {topology.id} has unsupported kind {topology.kind!r}"
        )

    result = sorted(
        (r for r in records if r.balance > balance_gt),
        key=lambda r: (-r.balance, r.holder),
    )
    logger.info(
        "Vault %s on %s at block %d: %d holder(s)",
        topology.id,
        chain.value,
        target_block,
        len(result),
    )

    base_token = base_share_token(topology)
    metadata = next(t for t in reconstructed.tokens if t.address == base_token)
    return VaultHolders(vault_id=topology.id, base_token=metadata, holders=result)


async def normalize_holders(
    chain: Chain,
    topology: VaultTopology,
    target_block: int,
    balance_gt: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> list[HolderRecord]:
    """Holder records of :func:`normalize_vault_holders` without the token."""
    vault_holders = await normalize_vault_holders(
        chain, topology, target_block, balance_gt, indexer=indexer
    )
    return vault_holders.holders
