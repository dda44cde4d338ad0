"""Chain identifiers, endpoints and query limits."""

from enum import Enum
from typing import Optional


class Chain(str, Enum):
    ARBITRUM = "arbitrum"
    AVALANCHE = "avalanche"
    BASE = "base"
    BSC = "bsc"
    ETHEREUM = "ethereum"
    FANTOM = "fantom"
    FRAXTAL = "fraxtal"
    LINEA = "linea"
    MANTA = "manta"
    MANTLE = "mantle"
    MODE = "mode"
    MOONBEAM = "moonbeam"
    OPTIMISM = "optimism"
    POLYGON = "polygon"
    SEI = "sei"
    ZKSYNC = "zksync"


NETWORK_IDS: dict[Chain, int] = {
    Chain.ARBITRUM: 42161,
    Chain.AVALANCHE: 43114,
    Chain.BASE: 8453,
    Chain.BSC: 56,
    Chain.ETHEREUM: 1,
    Chain.FANTOM: 250,
    Chain.FRAXTAL: 252,
    Chain.LINEA: 59144,
    Chain.MANTA: 169,
    Chain.MANTLE: 5000,
    Chain.MODE: 34443,
    Chain.MOONBEAM: 1284,
    Chain.OPTIMISM: 10,
    Chain.POLYGON: 137,
    Chain.SEI: 1329,
    Chain.ZKSYNC: 324,
}

# Public endpoints; anything missing here must come from settings.rpc_urls
DEFAULT_RPC_URLS: dict[Chain, Optional[str]] = {
    Chain.ARBITRUM: "https://arb1.arbitrum.io/rpc",
    Chain.AVALANCHE: "https://api.avax.network/ext/bc/C/rpc",
    Chain.BASE: "https://mainnet.base.org",
    Chain.BSC: "https://bsc-dataseed.bnbchain.org",
    Chain.ETHEREUM: "https://eth.drpc.org",
    Chain.FANTOM: None,
    Chain.FRAXTAL: "https://rpc.frax.com",
    Chain.LINEA: "https://rpc.linea.build",
    Chain.MANTA: "https://pacific-rpc.manta.network/http",
    Chain.MANTLE: "https://rpc.mantle.xyz",
    Chain.MODE: "https://mainnet.mode.network",
    Chain.MOONBEAM: "https://rpc.api.moonbeam.network",
    Chain.OPTIMISM: "https://mainnet.optimism.io",
    Chain.POLYGON: "https://polygon-rpc.com",
    Chain.SEI: "https://evm-rpc.sei-apis.com",
    Chain.ZKSYNC: "https://mainnet.era.zksync.io",
}

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

DEFAULT_INDEXER_URL = "https://indexer.hyperindex.xyz/v1/graphql"

# Hasura caps result sets at 10k rows per query
INDEXER_PAGE_SIZE = 10_000
FETCH_AT_MOST = 1_000_000_000

RPC_REQUEST_TIMEOUT = 15  # seconds
