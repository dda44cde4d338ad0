"""CLI tests; pipeline calls are patched at the ``vault_holders.main`` seam."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from typer.testing import CliRunner

from vault_holders.constants import Chain
from vault_holders.domain import (
    AccountBalance,
    HoldDetail,
    HolderBalance,
    HolderCount,
    HolderRecord,
    TokenBalance,
    TokenHolders,
    TokenMetadata,
    VaultHolders,
)
from vault_holders.errors import SnapshotNotFoundError
from vault_holders.main import app
from vault_holders.registry import VaultRegistry

runner = CliRunner()

VAULT = "0x" + "a1" * 20
STRATEGY = "0x" + "a2" * 20
HOLDER = "0x" + "01" * 20

REGISTRY = f"""
[[vaults]]
chain = "base"
id = "aero-weth"
vault_address = "{VAULT}"
strategy_address = "{STRATEGY}"
"""


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    for name in list(os.environ):
        if name.startswith("VAULT_HOLDERS_"):
            monkeypatch.delenv(name)


@pytest.fixture(autouse=True)
def no_indexer():
    with patch("vault_holders.main.get_indexer_client") as mock_client:
        yield mock_client


@pytest.fixture
def registry_path(tmp_path: Path) -> Path:
    path = tmp_path / "vaults.toml"
    path.write_text(REGISTRY)
    return path


BASE_TOKEN = TokenMetadata(address=VAULT, name="Moo Aero", symbol="mooAero", decimals=2)


def _records() -> VaultHolders:
    return VaultHolders(
        vault_id="aero-weth",
        base_token=BASE_TOKEN,
        holders=[
            HolderRecord(
                holder=HOLDER,
                balance=600,
                hold_details=[HoldDetail(token=VAULT, balance=600)],
            )
        ],
    )


def test_holders_json(registry_path):
    with patch(
        "vault_holders.main.holders_for_vault_id",
        new_callable=AsyncMock,
        return_value=_records(),
    ) as mock_holders:
        result = runner.invoke(
            app,
            [
                "--registry", str(registry_path),
                "--log-level", "ERROR",
                "holders", "-n", "base", "--vault-id", "aero-weth", "-b", "200", "--json",
            ],
        )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {
            "holder": HOLDER,
            "balance": "600",
            "hold_details": [{"token": VAULT, "balance": "600"}],
            "amount": "6.00",
        }
    ]
    registry, chain, vault_id, block, balance_gt = mock_holders.call_args.args
    assert isinstance(registry, VaultRegistry)
    assert (chain, vault_id, block, balance_gt) == (Chain.BASE, "aero-weth", 200, 0)


def test_holders_by_strategy_address_uses_chain_head(registry_path):
    with (
        patch(
            "vault_holders.main.fetch_latest_block",
            new_callable=AsyncMock,
            return_value=12345,
        ) as mock_head,
        patch(
            "vault_holders.main.holders_for_strategy_address",
            new_callable=AsyncMock,
            return_value=_records(),
        ) as mock_holders,
    ):
        result = runner.invoke(
            app,
            [
                "--registry", str(registry_path),
                "holders", "-n", "base", "--strategy-address", STRATEGY,
                "--balance-gt", "10",
            ],
            env={"COLUMNS": "200"},
        )

    assert result.exit_code == 0, result.output
    mock_head.assert_awaited_once()
    assert mock_holders.call_args.args[2:] == (STRATEGY, 12345, 10)
    assert HOLDER in result.output
    # amount column titled with the base token symbol
    assert "mooAero" in result.output
    assert "6.00" in result.output


@pytest.mark.parametrize(
    "selectors",
    [
        [],
        ["--vault-id", "aero-weth", "--vault-address", VAULT],
    ],
)
def test_holders_requires_exactly_one_selector(registry_path, selectors):
    result = runner.invoke(
        app,
        ["--registry", str(registry_path), "holders", "-n", "base", "-b", "1", *selectors],
    )

    assert result.exit_code == 2
    assert "exactly one" in result.output


def test_holders_without_registry_fails():
    result = runner.invoke(
        app, ["holders", "-n", "base", "--vault-id", "aero-weth", "-b", "1"]
    )

    assert result.exit_code == 1
    assert "vault_registry_path" in result.output


def test_holders_reports_package_errors(registry_path):
    with patch(
        "vault_holders.main.holders_for_vault_id",
        new_callable=AsyncMock,
        side_effect=SnapshotNotFoundError("base", 5),
    ):
        result = runner.invoke(
            app,
            [
                "--registry", str(registry_path),
                "holders", "-n", "base", "--vault-id", "aero-weth", "-b", "5",
            ],
        )

    assert result.exit_code == 1
    assert "No daily snapshot found for chain base" in result.output


def test_token_holders_json(registry_path):
    token = TokenMetadata(address=VAULT, name="Moo", symbol="MOO", decimals=18)
    groups = [TokenHolders(token=token, balances=[HolderBalance(HOLDER, 5)])]
    with patch(
        "vault_holders.main.vault_token_holders",
        new_callable=AsyncMock,
        return_value=groups,
    ):
        result = runner.invoke(
            app,
            [
                "--registry", str(registry_path),
                "--log-level", "ERROR",
                "token-holders", "-n", "base", "--vault-id", "aero", "-b", "9", "--json",
            ],
        )

    assert result.exit_code == 0, result.output
    payload = json.loads(result.stdout)
    assert payload[0]["symbol"] == "MOO"
    assert payload[0]["balances"] == [
        {"holder": HOLDER, "balance": "5", "amount": "0.000000000000000005"}
    ]


def test_balances_json():
    rows = [TokenBalance(account=HOLDER, token=VAULT, balance=42)]
    with patch(
        "vault_holders.main.token_balances",
        new_callable=AsyncMock,
        return_value=rows,
    ) as mock_balances:
        result = runner.invoke(
            app,
            [
                "--log-level", "ERROR",
                "balances", "-n", "base", "-t", VAULT, "-t", STRATEGY,
                "-b", "7", "--min-balance", "1", "--json",
            ],
        )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {"user_address": HOLDER, "token_address": VAULT, "balance": "42"}
    ]
    assert mock_balances.call_args.args == (Chain.BASE, 7, [VAULT, STRATEGY], 1)


def test_status():
    with patch(
        "vault_holders.main.indexer_status", new_callable=AsyncMock, return_value=999
    ):
        result = runner.invoke(app, ["--log-level", "ERROR", "status", "-n", "base"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == {"chain": "base", "progress_block": 999}


def test_top_holders_json():
    token = TokenMetadata(address=VAULT, name="Moo", symbol="MOO", decimals=18)
    groups = [TokenHolders(token=token, balances=[HolderBalance(HOLDER, 15 * 10**17)])]
    with patch(
        "vault_holders.main.top_holders", new_callable=AsyncMock, return_value=groups
    ) as mock_top:
        result = runner.invoke(
            app,
            [
                "--log-level", "ERROR",
                "top-holders", "-n", "base", "-t", VAULT, "--limit", "5", "--json",
            ],
        )

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout)[0]["balances"] == [
        {
            "holder": HOLDER,
            "balance": "1500000000000000000",
            "amount": "1.500000000000000000",
        }
    ]
    assert mock_top.call_args.args == (Chain.BASE, [VAULT], 5)


def test_top_holders_limit_bounds():
    result = runner.invoke(
        app, ["top-holders", "-n", "base", "-t", VAULT, "--limit", "1001"]
    )

    assert result.exit_code == 2


def test_holder_counts_all_chains():
    counts = [HolderCount(chain="base", token_address=VAULT, holder_count=3)]
    with patch(
        "vault_holders.main.holder_counts", new_callable=AsyncMock, return_value=counts
    ) as mock_counts:
        result = runner.invoke(app, ["--log-level", "ERROR", "holder-counts", "--json"])

    assert result.exit_code == 0, result.output
    assert json.loads(result.stdout) == [
        {"chain": "base", "token_address": VAULT, "holder_count": 3}
    ]
    assert mock_counts.call_args.args == (None,)


def test_latest_balances_json():
    rows = [
        AccountBalance(
            chain="base",
            token=TokenMetadata(address=VAULT, name="Moo", symbol="MOO", decimals=6),
            raw_amount=1_500_000,
            block_number=77,
        )
    ]
    with patch(
        "vault_holders.main.latest_balances", new_callable=AsyncMock, return_value=rows
    ) as mock_latest:
        result = runner.invoke(
            app,
            ["--log-level", "ERROR", "latest-balances", HOLDER, "-n", "base", "--json"],
        )

    assert result.exit_code == 0, result.output
    entry = json.loads(result.stdout)["balances"][0]
    assert (entry["amount"], entry["raw_amount"], entry["block"]) == ("1.500000", "1500000", 77)
    assert mock_latest.call_args.args == (HOLDER, Chain.BASE)


def test_vaults_lists_active_by_default(registry_path):
    registry_path.write_text(
        REGISTRY
        + f"""
[[vaults]]
chain = "base"
id = "old-vault"
vault_address = "{HOLDER}"
strategy_address = "{STRATEGY}"
status = "eol"
"""
    )
    args = [
        "--registry", str(registry_path),
        "--log-level", "ERROR",
        "vaults", "-n", "base", "--json",
    ]

    active = runner.invoke(app, args)
    everything = runner.invoke(app, [*args, "--include-eol"])

    assert active.exit_code == 0, active.output
    assert [v["id"] for v in json.loads(active.stdout)["vaults"]] == ["aero-weth"]
    assert [v["id"] for v in json.loads(everything.stdout)["vaults"]] == [
        "aero-weth",
        "old-vault",
    ]


def test_show_config_redacts_secrets(monkeypatch, no_indexer: MagicMock):
    monkeypatch.setenv("VAULT_HOLDERS_INDEXER_API_KEY", "s3cret")

    result = runner.invoke(
        app, ["--log-level", "ERROR", "--show-config", "status", "-n", "base"]
    )

    assert result.exit_code == 0, result.output
    assert "s3cret" not in result.output
    assert json.loads(result.stdout)["indexer_api_key"] == "***redacted***"
    no_indexer.assert_not_called()
