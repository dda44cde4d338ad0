"""GraphQL client for the token balance indexer.

One endpoint serves every chain. Token ids are ``<networkId>-<address>`` and
account ids are lower-case addresses. All list queries take ``offset`` and
``limit`` and are paged through :func:`vault_holders.pagination.paginate`.
"""

from __future__ import annotations

import asyncio
import atexit
from typing import Any, Iterable, TypedDict

import requests

from ..constants import NETWORK_IDS, Chain
from ..domain import BalanceChange, SnapshotBalance
from ..errors import IndexerQueryError
from ..logger import get_logger
from ..pagination import paginate
from ..settings import HolderSettings

logger = get_logger(__name__)

TOKEN_METADATA_QUERY = """
query TokenMetadata($token_in: [String!]!) {
  Token(where: {id: {_in: $token_in}}) {
    id
    address
    name
    symbol
    decimals
  }
}
"""

LAST_SNAPSHOT_BLOCK_QUERY = """
query TokenBalanceSnapshotLastDailySnapshotAtBlock($chainId: Int!, $block: numeric!) {
  TokenBalanceSnapshot(
    where: {chainId: {_eq: $chainId}, blockNumber: {_lte: $block}}
    order_by: {blockNumber: desc}
    limit: 1
  ) {
    blockNumber
  }
}
"""

SNAPSHOT_BALANCES_QUERY = """
query TokenBalanceSnapshotAtBlock(
  $chainId: Int!
  $token_in: [String!]!
  $account_not_in: [String!]!
  $snapshotBlock: numeric!
  $offset: Int!
  $limit: Int!
) {
  TokenBalanceSnapshot(
    where: {
      chainId: {_eq: $chainId}
      token_id: {_in: $token_in}
      account_id: {_nin: $account_not_in}
      blockNumber: {_eq: $snapshotBlock}
    }
    order_by: [{token_id: asc}, {account_id: asc}]
    offset: $offset
    limit: $limit
  ) {
    token_id
    account_id
    amount
  }
}
"""

BALANCE_CHANGES_QUERY = """
query TokenBalanceChangesBetweenBlocks(
  $chainId: Int!
  $token_in: [String!]!
  $account_not_in: [String!]!
  $block_gt: numeric!
  $block_lte: numeric!
  $offset: Int!
  $limit: Int!
) {
  TokenBalanceChange(
    where: {
      chainId: {_eq: $chainId}
      token_id: {_in: $token_in}
      account_id: {_nin: $account_not_in}
      blockNumber: {_gt: $block_gt, _lte: $block_lte}
    }
    order_by: [{blockNumber: asc}, {id: asc}]
    offset: $offset
    limit: $limit
  ) {
    token_id
    account_id
    blockNumber
    balanceBefore
    balanceAfter
  }
}
"""

STATUS_QUERY = """
query Status {
  _meta {
    networkId
    progressBlock
  }
}
"""

TOP_BALANCES_QUERY = """
query ContractBalance(
  $token_in: [String!]!
  $account_not_in: [String!]!
  $tokenOffset: Int!
  $tokenLimit: Int!
  $limit: Int!
) {
  Token(
    where: {id: {_in: $token_in}}
    order_by: {id: asc}
    offset: $tokenOffset
    limit: $tokenLimit
  ) {
    id
    address
    name
    symbol
    decimals
    balances(
      where: {account_id: {_nin: $account_not_in}}
      order_by: {amount: desc}
      limit: $limit
    ) {
      account_id
      amount
    }
  }
}
"""

HOLDER_COUNTS_QUERY = """
query TokenHolderCounts($idPattern: String!, $offset: Int!, $limit: Int!) {
  Token(
    where: {id: {_like: $idPattern}}
    order_by: {id: asc}
    offset: $offset
    limit: $limit
  ) {
    id
    address
    holderCount
  }
}
"""

ACCOUNT_BALANCES_QUERY = """
query AccountLatestBalance($account: String!, $offset: Int!, $limit: Int!) {
  TokenBalance(
    where: {account_id: {_eq: $account}}
    order_by: {token_id: asc}
    offset: $offset
    limit: $limit
  ) {
    amount
    token {
      id
      address
      name
      symbol
      decimals
    }
  }
}
"""


class TokenRow(TypedDict, total=False):
    """Raw token metadata row; any field may be null in the indexer."""

    id: str
    address: str
    name: str | None
    symbol: str | None
    decimals: int | str | None


class TokenBalancesRow(TokenRow, total=False):
    """Token row with its largest current balances; ``amount`` is in whole tokens."""

    balances: list[dict[str, Any]]


class HolderCountRow(TypedDict):
    id: str
    address: str
    holderCount: int | str


class AccountBalanceRow(TypedDict):
    """Current balance of one account; ``amount`` is in whole tokens."""

    amount: str
    token: TokenRow


def token_id(chain: Chain, address: str) -> str:
    """Indexer id of the token at ``address`` on ``chain``."""
    return f"{NETWORK_IDS[chain]}-{address.lower()}"


def address_from_token_id(value: str) -> str:
    """Strip the ``<networkId>-`` prefix from a token id."""
    _, sep, address = value.partition("-")
    return (address if sep else value).lower()


class IndexerClient:
    """Client for the balance indexer GraphQL API.

    Requests are plain blocking ``requests`` calls pushed to a worker thread.
    Failures are never retried; they surface as :class:`IndexerQueryError`.
    """

    def __init__(
        self,
        url: str,
        *,
        api_key: str | None = None,
        request_timeout: float = 30.0,
        page_size: int = 10_000,
        fetch_delay: float = 0.0,
        fetch_at_most: int = 1_000_000_000,
    ):
        """Initialize the indexer client.

        Args:
            url: GraphQL endpoint
            api_key: Optional bearer token sent with every request
            request_timeout: HTTP request timeout in seconds
            page_size: Rows requested per page
            fetch_delay: Seconds to wait between page requests
            fetch_at_most: Ceiling on rows fetched by one paginated query
        """
        self.url = url
        self.page_size = page_size
        self.fetch_delay = fetch_delay
        self.fetch_at_most = fetch_at_most
        self._request_timeout = request_timeout
        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        if api_key:
            self._session.headers["Authorization"] = f"Bearer {api_key}"

    @classmethod
    def from_settings(cls, settings: HolderSettings) -> IndexerClient:
        api_key = (
            settings.indexer_api_key.get_secret_value()
            if settings.indexer_api_key
            else None
        )
        return cls(
            settings.indexer_url,
            api_key=api_key,
            request_timeout=settings.request_timeout,
            page_size=settings.page_size,
            fetch_delay=settings.fetch_delay,
            fetch_at_most=settings.fetch_at_most,
        )

    def close(self) -> None:
        self._session.close()

    def _post(self, operation: str, query: str, variables: dict[str, Any]) -> Any:
        try:
            response = self._session.post(
                self.url,
                json={"query": query, "variables": variables},
                timeout=self._request_timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise IndexerQueryError(f"{operation} failed: {exc}") from exc

        if not isinstance(payload, dict):
            raise IndexerQueryError(f"{operation} returned an unexpected payload")

        errors = payload.get("errors")
        if errors:
            messages = ", ".join(
                str(err.get("message", err)) if isinstance(err, dict) else str(err)
                for err in errors
            )
            raise IndexerQueryError(f"{operation} failed: {messages}")

        return payload.get("data") or {}

    async def query(
        self, operation: str, query: str, variables: dict[str, Any] | None = None
    ) -> dict[str, Any]:
        """Run one GraphQL operation and return its ``data`` object."""
        logger.debug("Indexer query %s %s", operation, variables)
        return await asyncio.to_thread(self._post, operation, query, variables or {})

    async def fetch_token_metadata(
        self, chain: Chain, token_addresses: Iterable[str]
    ) -> list[TokenRow]:
        data = await self.query(
            "TokenMetadata",
            TOKEN_METADATA_QUERY,
            {"token_in": [token_id(chain, a) for a in token_addresses]},
        )
        return list(data.get("Token") or [])

    async def fetch_last_snapshot_block(self, chain: Chain, block: int) -> int | None:
        """Block of the latest snapshot at or before ``block``, if any."""
        data = await self.query(
            "TokenBalanceSnapshotLastDailySnapshotAtBlock",
            LAST_SNAPSHOT_BLOCK_QUERY,
            {"chainId": NETWORK_IDS[chain], "block": str(block)},
        )
        rows = data.get("TokenBalanceSnapshot") or []
        if not rows or rows[0].get("blockNumber") is None:
            return None
        return int(rows[0]["blockNumber"])

    async def fetch_progress_blocks(self) -> dict[int, int]:
        """Highest fully processed block per network id."""
        data = await self.query("Status", STATUS_QUERY)
        progress: dict[int, int] = {}
        for meta in data.get("_meta") or []:
            network_id = meta.get("networkId")
            if network_id is None or meta.get("progressBlock") is None:
                continue
            block = int(meta["progressBlock"])
            progress[int(network_id)] = max(block, progress.get(int(network_id), block))
        return progress

    async def fetch_progress_block(self, chain: Chain) -> int | None:
        """Highest block the indexer has fully processed for ``chain``."""
        progress = await self.fetch_progress_blocks()
        return progress.get(NETWORK_IDS[chain])

    async def fetch_snapshot_balances(
        self,
        chain: Chain,
        snapshot_block: int,
        token_addresses: Iterable[str],
        exclude_accounts: Iterable[str],
    ) -> list[SnapshotBalance]:
        """Every snapshot row at ``snapshot_block`` for the given tokens."""
        base_variables = {
            "chainId": NETWORK_IDS[chain],
            "token_in": [token_id(chain, a) for a in token_addresses],
            "account_not_in": [a.lower() for a in exclude_accounts],
            "snapshotBlock": str(snapshot_block),
        }

        async def fetch_page(offset: int, limit: int) -> list[dict[str, Any]]:
            data = await self.query(
                "TokenBalanceSnapshotAtBlock",
                SNAPSHOT_BALANCES_QUERY,
                {**base_variables, "offset": offset, "limit": limit},
            )
            return list(data.get("TokenBalanceSnapshot") or [])

        rows = await self._paginate(fetch_page)
        return [
            SnapshotBalance(
                token=address_from_token_id(row["token_id"]),
                account=row["account_id"].lower(),
                amount=int(row["amount"]),
            )
            for row in rows
        ]

    async def fetch_balance_changes(
        self,
        chain: Chain,
        from_block: int,
        to_block: int,
        token_addresses: Iterable[str],
        exclude_accounts: Iterable[str],
    ) -> list[BalanceChange]:
        """Every balance change with ``from_block < blockNumber <= to_block``."""
        base_variables = {
            "chainId": NETWORK_IDS[chain],
            "token_in": [token_id(chain, a) for a in token_addresses],
            "account_not_in": [a.lower() for a in exclude_accounts],
            "block_gt": str(from_block),
            "block_lte": str(to_block),
        }

        async def fetch_page(offset: int, limit: int) -> list[dict[str, Any]]:
            data = await self.query(
                "TokenBalanceChangesBetweenBlocks",
                BALANCE_CHANGES_QUERY,
                {**base_variables, "offset": offset, "limit": limit},
            )
            return list(data.get("TokenBalanceChange") or [])

        rows = await self._paginate(fetch_page)
        return [
            BalanceChange(
                token=address_from_token_id(row["token_id"]),
                account=row["account_id"].lower(),
                block_number=int(row["blockNumber"]),
                balance_before=int(row["balanceBefore"]),
                balance_after=int(row["balanceAfter"]),
            )
            for row in rows
        ]

    async def fetch_top_balances(
        self,
        chain: Chain,
        token_addresses: Iterable[str],
        exclude_accounts: Iterable[str],
        limit: int,
    ) -> list[TokenBalancesRow]:
        """The ``limit`` largest current balances of each token, paged by token."""
        base_variables = {
            "token_in": [token_id(chain, a) for a in token_addresses],
            "account_not_in": [a.lower() for a in exclude_accounts],
            "limit": limit,
        }

        async def fetch_page(offset: int, page_size: int) -> list[dict[str, Any]]:
            data = await self.query(
                "ContractBalance",
                TOP_BALANCES_QUERY,
                {**base_variables, "tokenOffset": offset, "tokenLimit": page_size},
            )
            return list(data.get("Token") or [])

        return await self._paginate(fetch_page)

    async def fetch_holder_counts(
        self, chain: Chain | None = None
    ) -> list[HolderCountRow]:
        """Holder count of every indexed token, on one chain or all of them."""
        pattern = f"{NETWORK_IDS[chain]}-%" if chain is not None else "%"

        async def fetch_page(offset: int, limit: int) -> list[dict[str, Any]]:
            data = await self.query(
                "TokenHolderCounts",
                HOLDER_COUNTS_QUERY,
                {"idPattern": pattern, "offset": offset, "limit": limit},
            )
            return list(data.get("Token") or [])

        return await self._paginate(fetch_page)

    async def fetch_account_balances(self, account: str) -> list[AccountBalanceRow]:
        """Current balances of ``account`` across every indexed chain."""

        async def fetch_page(offset: int, limit: int) -> list[dict[str, Any]]:
            data = await self.query(
                "AccountLatestBalance",
                ACCOUNT_BALANCES_QUERY,
                {"account": account.lower(), "offset": offset, "limit": limit},
            )
            return list(data.get("TokenBalance") or [])

        return await self._paginate(fetch_page)

    async def _paginate(self, fetch_page: Any) -> list[dict[str, Any]]:
        return await paginate(
            fetch_page,
            count=len,
            merge=lambda a, b: a + b,
            page_size=self.page_size,
            fetch_at_most=self.fetch_at_most,
            delay=self.fetch_delay,
        )


_indexer_client: IndexerClient | None = None
_close_registered = False


def get_indexer_client(settings: HolderSettings | None = None) -> IndexerClient:
    """Process-wide indexer client, built on first use and closed at exit."""
    global _indexer_client, _close_registered
    if _indexer_client is None:
        _indexer_client = IndexerClient.from_settings(settings or HolderSettings())
        if not _close_registered:
            atexit.register(close_indexer_client)
            _close_registered = True
    return _indexer_client


def close_indexer_client() -> None:
    global _indexer_client
    if _indexer_client is not None:
        _indexer_client.close()
        _indexer_client = None
