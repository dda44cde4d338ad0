"""Caller-facing holder queries built on the reconstructor and normalizer."""

from __future__ import annotations

import asyncio
from decimal import Decimal, InvalidOperation
from typing import Iterable

from ..addresses import normalize_address, unique_addresses
from ..clients.indexer import IndexerClient, get_indexer_client
from ..constants import NETWORK_IDS, ZERO_ADDRESS, Chain
from ..domain import (
    AccountBalance,
    HolderBalance,
    HolderCount,
    TokenBalance,
    TokenHolders,
    TokenMetadata,
    VaultHolders,
    VaultTopology,
)
from ..errors import (
    AmbiguousVaultError,
    IndexerQueryError,
    InvalidInputError,
    VaultNotFoundError,
)
from ..logger import get_logger
from ..processors import (
    constituent_tokens,
    normalize_vault_holders,
    reconstruct_balances,
    strategy_addresses,
    token_address_of,
    token_decimals,
    token_metadata_from_row,
)
from ..registry import (
    VaultPredicate,
    VaultRegistry,
    by_id,
    by_id_prefix,
    by_strategy_address,
    by_vault_address,
)
from ..units import to_raw

logger = get_logger(__name__)

MAX_TOP_HOLDER_TOKENS = 100
MAX_TOP_HOLDERS = 1000

CHAINS_BY_NETWORK_ID = {network_id: chain for chain, network_id in NETWORK_IDS.items()}


def resolve_topology(
    registry: VaultRegistry,
    chain: Chain,
    predicate: VaultPredicate,
    description: str,
) -> VaultTopology:
    """The single topology matching ``predicate``.

    Raises:
        VaultNotFoundError: Nothing matched
        AmbiguousVaultError: More than one vault matched
    """
    matches = registry.find(chain, predicate)
    if not matches:
        raise VaultNotFoundError(f"Vault with {description} not found on {chain.value}")
    if len(matches) > 1:
        raise AmbiguousVaultError(
            f"Vault with {description} is not unique on {chain.value} "
            f"({len(matches)} matches)"
        )
    return matches[0]


async def holders_for_vault_id(
    registry: VaultRegistry,
    chain: Chain,
    vault_id: str,
    block: int,
    balance_gt: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> VaultHolders:
    topology = resolve_topology(registry, chain, by_id(vault_id), f'"id" {vault_id}')
    return await normalize_vault_holders(
        chain, topology, block, balance_gt, indexer=indexer
    )


async def holders_for_vault_address(
    registry: VaultRegistry,
    chain: Chain,
    vault_address: str,
    block: int,
    balance_gt: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> VaultHolders:
    address = normalize_address(vault_address)
    topology = resolve_topology(
        registry, chain, by_vault_address(address), f'"vault_address" {address}'
    )
    return await normalize_vault_holders(
        chain, topology, block, balance_gt, indexer=indexer
    )


async def holders_for_strategy_address(
    registry: VaultRegistry,
    chain: Chain,
    strategy_address: str,
    block: int,
    balance_gt: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> VaultHolders:
    address = normalize_address(strategy_address)
    topology = resolve_topology(
        registry, chain, by_strategy_address(address), f'"strategy_address" {address}'
    )
    return await normalize_vault_holders(
        chain, topology, block, balance_gt, indexer=indexer
    )


async def vault_token_holders(
    registry: VaultRegistry,
    chain: Chain,
    vault_id_prefix: str,
    block: int,
    balance_gt: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> list[TokenHolders]:
    """Raw holders of every token of every vault whose id starts with the prefix.

    Strategies and the vaults' own contracts are left out as holders, as is
    the zero address. Balances are reported per token, without any conversion.
    """
    topologies = registry.find(chain, by_id_prefix(vault_id_prefix))
    if not topologies:
        raise VaultNotFoundError(
            f'Vault with "id" prefix {vault_id_prefix} not found on {chain.value}'
        )

    tokens = _unique(t for topology in topologies for t in constituent_tokens(topology))
    strategies = _unique(
        s for topology in topologies for s in strategy_addresses(topology)
    )
    excluded = _unique([ZERO_ADDRESS, *strategies, *tokens])

    reconstructed = await reconstruct_balances(
        chain, block, tokens, excluded, indexer=indexer
    )

    result: list[TokenHolders] = []
    for token in reconstructed.tokens:
        balances = [
            HolderBalance(holder=holder, balance=balance)
            for holder, balance in reconstructed.for_token(token.address).items()
            if balance > balance_gt and holder not in excluded
        ]
        balances.sort(key=lambda b: (-b.balance, b.holder))
        result.append(TokenHolders(token=token, balances=balances))
    return result


async def token_balances(
    chain: Chain,
    block: int,
    token_addresses: Iterable[str],
    min_balance: int = 0,
    *,
    indexer: IndexerClient | None = None,
) -> list[TokenBalance]:
    """Flat (account, token, balance) rows with ``balance >= min_balance``."""
    reconstructed = await reconstruct_balances(
        chain, block, token_addresses, indexer=indexer
    )
    rows = [
        TokenBalance(account=account, token=token, balance=balance)
        for token, by_account in reconstructed.balances.items()
        for account, balance in by_account.items()
        if balance >= min_balance
    ]
    logger.debug(
        "Fetched %d balance row(s) on %s at block %d", len(rows), chain.value, block
    )
    return rows


async def indexer_status(
    chain: Chain, *, indexer: IndexerClient | None = None
) -> int | None:
    """Highest block the indexer has processed for ``chain``."""
    indexer = indexer or get_indexer_client()
    return await indexer.fetch_progress_block(chain)


def _raw_amount(token: str, amount: str, decimals: int) -> int:
    """Raw integer amount of a whole-token ``amount`` as the indexer reports it."""
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise IndexerQueryError(
            f"Token {token} has a non-numeric balance {amount!r}"
        ) from exc
    if not value.is_finite():
        raise IndexerQueryError(f"Token {token} has a non-numeric balance {amount!r}")
    return to_raw(value, decimals)


def _chain_of_token_id(value: str) -> Chain | None:
    network_id, sep, _ = value.partition("-")
    if not sep or not network_id.isdigit():
        return None
    return CHAINS_BY_NETWORK_ID.get(int(network_id))


async def top_holders(
    chain: Chain,
    token_addresses: Iterable[str],
    limit: int = 100,
    *,
    indexer: IndexerClient | None = None,
) -> list[TokenHolders]:
    """Current largest holders of each token, ``limit`` per token.

    Balances come from the indexer's live balances, not a reconstruction, and
    are converted back to raw integers using each token's decimals.

    Raises:
        InvalidInputError: No tokens, more than 100 tokens, a bad address or
            ``limit`` outside 1..1000
    """
    tokens = unique_addresses(token_addresses)
    if not tokens:
        raise InvalidInputError("At least one token address is required")
    if len(tokens) > MAX_TOP_HOLDER_TOKENS:
        raise InvalidInputError(
            f"At most {MAX_TOP_HOLDER_TOKENS} token addresses are accepted, "
            f"got {len(tokens)}"
        )
    if not 1 <= limit <= MAX_TOP_HOLDERS:
        raise InvalidInputError(
            f"limit must be between 1 and {MAX_TOP_HOLDERS}, got {limit}"
        )

    indexer = indexer or get_indexer_client()
    rows = await indexer.fetch_top_balances(chain, tokens, [ZERO_ADDRESS], limit)

    result: list[TokenHolders] = []
    for row in rows:
        token = token_metadata_from_row(row)
        balances = [
            HolderBalance(
                holder=balance["account_id"].lower(),
                balance=_raw_amount(token.address, balance["amount"], token.decimals),
            )
            for balance in row.get("balances") or []
        ]
        result.append(TokenHolders(token=token, balances=balances))
    return result


async def holder_counts(
    chain: Chain | None = None, *, indexer: IndexerClient | None = None
) -> list[HolderCount]:
    """Number of current holders of every indexed token.

    Tokens of networks that are not a known :class:`Chain` are skipped.
    """
    indexer = indexer or get_indexer_client()
    rows = await indexer.fetch_holder_counts(chain)

    counts: list[HolderCount] = []
    for row in rows:
        token_chain = _chain_of_token_id(row["id"])
        if token_chain is None:
            logger.debug("Skipping token %s of an unknown network", row["id"])
            continue
        counts.append(
            HolderCount(
                chain=token_chain.value,
                token_address=token_address_of(row),
                holder_count=int(row["holderCount"]),
            )
        )
    return counts


async def latest_balances(
    account: str,
    chain: Chain | None = None,
    *,
    indexer: IndexerClient | None = None,
) -> list[AccountBalance]:
    """Current balances of ``account`` across chains, as far as indexed.

    Missing token names and symbols are reported as empty strings; decimals
    are required to express the raw amount.
    """
    address = normalize_address(account)
    indexer = indexer or get_indexer_client()
    rows, progress = await asyncio.gather(
        indexer.fetch_account_balances(address),
        indexer.fetch_progress_blocks(),
    )

    balances: list[AccountBalance] = []
    for row in rows:
        token_row = row["token"]
        token_chain = _chain_of_token_id(token_row.get("id", ""))
        if token_chain is None or (chain is not None and token_chain != chain):
            continue
        token_address = token_address_of(token_row)
        token = TokenMetadata(
            address=token_address,
            name=str(token_row.get("name") or ""),
            symbol=str(token_row.get("symbol") or ""),
            decimals=token_decimals(token_address, token_row),
        )
        balances.append(
            AccountBalance(
                chain=token_chain.value,
                token=token,
                raw_amount=_raw_amount(token_address, row["amount"], token.decimals),
                block_number=progress.get(NETWORK_IDS[token_chain]),
            )
        )
    logger.debug("Account %s has %d indexed balance(s)", address, len(balances))
    return balances


def list_vaults(
    registry: VaultRegistry, chain: Chain, include_eol: bool = False
) -> list[VaultTopology]:
    """Configured vaults of ``chain``; only active ones unless ``include_eol``."""
    return [
        vault
        for vault in registry.all(chain)
        if include_eol or vault.status == "active"
    ]


def _unique(values: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(v.lower() for v in values))
