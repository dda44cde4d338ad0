"""Point-in-time balance reconstruction from a snapshot plus replayed diffs."""

from __future__ import annotations

import asyncio
from typing import Iterable

from ..addresses import unique_addresses
from ..clients.indexer import (
    IndexerClient,
    TokenRow,
    address_from_token_id,
    get_indexer_client,
)
from ..constants import ZERO_ADDRESS, Chain
from ..domain import (
    BalanceChange,
    ReconstructedBalances,
    SnapshotBalance,
    TokenMetadata,
)
from ..errors import (
    IndexerNotSyncedError,
    InvalidInputError,
    SnapshotNotFoundError,
    TokenMetadataError,
)
from ..logger import get_logger

logger = get_logger(__name__)


def token_address_of(row: TokenRow) -> str:
    return (row.get("address") or address_from_token_id(row.get("id", ""))).lower()


def token_decimals(token: str, row: TokenRow) -> int:
    decimals = row.get("decimals")
    if decimals is None or decimals == "":
        raise TokenMetadataError(f"Token {token} has no decimals")
    try:
        return int(decimals)
    except (TypeError, ValueError) as exc:
        raise TokenMetadataError(
            f"Token {token} has invalid decimals {decimals!r}"
        ) from exc


def token_metadata_from_row(row: TokenRow) -> TokenMetadata:
    """Validated metadata from one indexer token row.

    Raises:
        TokenMetadataError: Name or symbol missing, decimals missing or not
            an integer
    """
    token = token_address_of(row)
    if not row.get("name"):
        raise TokenMetadataError(f"Token {token} has no name")
    if not row.get("symbol"):
        raise TokenMetadataError(f"Token {token} has no symbol")
    return TokenMetadata(
        address=token,
        name=str(row["name"]),
        symbol=str(row["symbol"]),
        decimals=token_decimals(token, row),
    )


def _resolve_token_metadata(
    chain: Chain, tokens: list[str], rows: list[TokenRow]
) -> list[TokenMetadata]:
    """Validated metadata for every requested token, in request order."""
    by_address = {token_address_of(row): row for row in rows}

    resolved: list[TokenMetadata] = []
    for token in tokens:
        row = by_address.get(token)
        if row is None:
            raise TokenMetadataError(f"Token {token} not found on chain {chain.value}")
        resolved.append(token_metadata_from_row(row))
    return resolved


def apply_balance_changes(
    snapshot: Iterable[SnapshotBalance],
    changes: Iterable[BalanceChange],
    tokens: Iterable[str] = (),
) -> dict[str, dict[str, int]]:
    """Seed token -> account -> amount from ``snapshot`` and add every delta.

    Deltas are summed, so the order of ``changes`` does not affect the result.
    Accounts first seen in ``changes`` start from zero.
    """
    balances: dict[str, dict[str, int]] = {token: {} for token in tokens}

    for row in snapshot:
        balances.setdefault(row.token.lower(), {})[row.account.lower()] = row.amount

    for change in changes:
        by_account = balances.setdefault(change.token.lower(), {})
        account = change.account.lower()
        by_account[account] = by_account.get(account, 0) + change.delta

    return balances


async def reconstruct_balances(
    chain: Chain,
    target_block: int,
    token_addresses: Iterable[str],
    exclude_accounts: Iterable[str] | None = None,
    *,
    indexer: IndexerClient | None = None,
) -> ReconstructedBalances:
    """Exact balance of every (token, account) pair at ``target_block``.

    Rebases on the latest snapshot at or before ``target_block`` and replays
    every balance change in ``(snapshot_block, target_block]`` on top.

    Args:
        chain: Chain the tokens live on
        target_block: Block to reconstruct balances at
        token_addresses: Tokens of interest (at least one)
        exclude_accounts: Accounts left out of the result. Defaults to the
            zero address.
        indexer: Indexer client; the process-wide client when omitted

    Returns:
        Balances keyed by lower-case token then account address, plus the
        metadata of every requested token.

    Raises:
        InvalidInputError: Empty token set, negative block or bad address
        SnapshotNotFoundError: No snapshot at or before ``target_block``
        IndexerNotSyncedError: Indexer progress is behind ``target_block``
        TokenMetadataError: A token is unknown or has incomplete metadata
    """
    if target_block < 0:
        raise InvalidInputError(
            f"Block number must be non-negative, got {target_block}"
        )
    tokens = unique_addresses(token_addresses)
    if not tokens:
        raise InvalidInputError("At least one token address is required")
    excluded = unique_addresses(exclude_accounts or []) or [ZERO_ADDRESS]

    indexer = indexer or get_indexer_client()

    snapshot_block, progress_block, token_rows = await asyncio.gather(
        indexer.fetch_last_snapshot_block(chain, target_block),
        indexer.fetch_progress_block(chain),
        indexer.fetch_token_metadata(chain, tokens),
    )

    if snapshot_block is None:
        raise SnapshotNotFoundError(chain.value, target_block)
    if progress_block is None or progress_block < target_block:
        raise IndexerNotSyncedError(chain.value, target_block, progress_block)

    token_metadata = _resolve_token_metadata(chain, tokens, token_rows)

    snapshot_rows, changes = await asyncio.gather(
        indexer.fetch_snapshot_balances(chain, snapshot_block, tokens, excluded),
        indexer.fetch_balance_changes(
            chain, snapshot_block, target_block, tokens, excluded
        ),
    )

    logger.debug(
        "Reconstructing %d token(s) on %s at block %d from snapshot %d: "
        "%d snapshot rows, %d changes",
        len(tokens),
        chain.value,
        target_block,
        snapshot_block,
        len(snapshot_rows),
        len(changes),
    )

    balances = apply_balance_changes(snapshot_rows, changes, tokens)
    return ReconstructedBalances(balances=balances, tokens=token_metadata)
