from unittest.mock import AsyncMock, MagicMock, PropertyMock, patch

import pytest
from web3.exceptions import ProviderConnectionError

from vault_holders.clients.rpc import fetch_latest_block, get_web3
from vault_holders.constants import Chain
from vault_holders.settings import HolderSettings


def test_get_web3_reuses_instance_per_endpoint():
    settings = HolderSettings(rpc_urls={"base": "https://base.example"})

    w3 = get_web3(settings, Chain.BASE)

    assert w3 is get_web3(settings, Chain.BASE)
    assert w3.provider.endpoint_uri == "https://base.example"


def test_get_web3_without_endpoint_raises():
    with pytest.raises(ValueError, match="fantom"):
        get_web3(HolderSettings(), Chain.FANTOM)


@pytest.mark.asyncio
async def test_fetch_latest_block():
    w3 = MagicMock()
    w3.eth.block_number = 123

    with patch("vault_holders.clients.rpc.get_web3", return_value=w3):
        assert await fetch_latest_block(HolderSettings(), Chain.BASE) == 123


@pytest.mark.asyncio
async def test_fetch_latest_block_retries_connection_errors():
    w3 = MagicMock()
    type(w3.eth).block_number = PropertyMock(
        side_effect=[ProviderConnectionError("down"), 456]
    )

    with (
        patch("vault_holders.clients.rpc.get_web3", return_value=w3),
        patch("asyncio.sleep", new_callable=AsyncMock),
    ):
        assert await fetch_latest_block(HolderSettings(), Chain.BASE) == 456
