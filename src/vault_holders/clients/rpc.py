"""Chain RPC access, used only to resolve the current head block."""

from __future__ import annotations

import asyncio
from functools import lru_cache

import backoff
from eth_typing import URI
from web3 import Web3
from web3.exceptions import ProviderConnectionError

from ..constants import RPC_REQUEST_TIMEOUT, Chain
from ..logger import get_logger
from ..settings import HolderSettings

logger = get_logger(__name__)


@lru_cache(maxsize=None)
def _web3_for_url(rpc_url: str) -> Web3:
    return Web3(
        Web3.HTTPProvider(URI(rpc_url), request_kwargs={"timeout": RPC_REQUEST_TIMEOUT})
    )


def get_web3(settings: HolderSettings, chain: Chain) -> Web3:
    """Web3 instance for ``chain``; one provider per endpoint for the process."""
    return _web3_for_url(settings.rpc_url_for(chain))


@backoff.on_exception(
    backoff.expo,
    (ProviderConnectionError,),
    max_time=30,
    jitter=backoff.full_jitter,
)
async def fetch_latest_block(settings: HolderSettings, chain: Chain) -> int:
    """Current head block of ``chain``."""
    w3 = get_web3(settings, chain)
    block_number = await asyncio.to_thread(lambda: w3.eth.block_number)
    logger.debug("Chain %s head block is %d", chain.value, block_number)
    return int(block_number)
