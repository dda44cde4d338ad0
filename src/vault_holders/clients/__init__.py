from __future__ import annotations

from .indexer import (
    AccountBalanceRow,
    HolderCountRow,
    IndexerClient,
    TokenBalancesRow,
    TokenRow,
    close_indexer_client,
    get_indexer_client,
)
from .rpc import fetch_latest_block, get_web3

__all__ = [
    "AccountBalanceRow",
    "HolderCountRow",
    "IndexerClient",
    "TokenBalancesRow",
    "TokenRow",
    "close_indexer_client",
    "fetch_latest_block",
    "get_indexer_client",
    "get_web3",
]
