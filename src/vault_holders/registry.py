"""Vault registry: which vaults exist on which chain and what they are made of.

The registry is loaded from a TOML file:

    [[vaults]]
    chain = "base"
    id = "aerodrome-weth-usdc"
    vault_address = "0x..."
    strategy_address = "0x..."
    reward_pools = ["0x..."]
    boosts = []
    status = "active"         # optional; anything else is end-of-life

    [vaults.manager]          # only for layered vaults
    vault_address = "0x..."
    strategy_address = "0x..."
    reward_pools = []
    boosts = []
"""

from __future__ import annotations

import tomllib
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Iterable

from .addresses import normalize_address
from .constants import Chain
from .domain import LayeredVault, ManagerVault, SimpleVault, VaultTopology
from .errors import InvalidInputError, RegistryError

VaultPredicate = Callable[[VaultTopology], bool]


def by_id(vault_id: str) -> VaultPredicate:
    return lambda vault: vault.id == vault_id


def by_id_prefix(prefix: str) -> VaultPredicate:
    return lambda vault: vault.id.startswith(prefix)


def by_vault_address(address: str) -> VaultPredicate:
    target = address.lower()
    return lambda vault: vault.vault_address.lower() == target


def by_strategy_address(address: str) -> VaultPredicate:
    target = address.lower()
    return lambda vault: vault.strategy_address.lower() == target


class VaultRegistry:
    """In-memory lookup of vault topologies per chain."""

    def __init__(self, vaults: dict[Chain, list[VaultTopology]] | None = None):
        self._vaults: dict[Chain, list[VaultTopology]] = defaultdict(list)
        for chain, topologies in (vaults or {}).items():
            self._vaults[chain].extend(topologies)

    def add(self, chain: Chain, topology: VaultTopology) -> None:
        self._vaults[chain].append(topology)

    def all(self, chain: Chain) -> list[VaultTopology]:
        return list(self._vaults.get(chain, []))

    def find(self, chain: Chain, predicate: VaultPredicate) -> list[VaultTopology]:
        """Every topology on ``chain`` matching ``predicate`` (zero, one or many)."""
        return [vault for vault in self._vaults.get(chain, []) if predicate(vault)]


def _address(raw: dict[str, Any], key: str, where: str) -> str:
    value = raw.get(key)
    if not value:
        raise RegistryError(f"{where}: '{key}' is required")
    try:
        return normalize_address(value)
    except InvalidInputError as exc:
        raise RegistryError(f"{where}: invalid '{key}' {value!r}") from exc


def _addresses(raw: dict[str, Any], key: str, where: str) -> tuple[str, ...]:
    values = raw.get(key, [])
    if not isinstance(values, list):
        raise RegistryError(f"{where}: '{key}' must be a list of addresses")
    try:
        return tuple(normalize_address(v) for v in values)
    except InvalidInputError as exc:
        raise RegistryError(f"{where}: {exc.message} in '{key}'") from exc


def parse_vault(raw: dict[str, Any]) -> tuple[Chain, VaultTopology]:
    """Parse and validate a single ``[[vaults]]`` entry.

    Raises:
        RegistryError: If a field is missing or malformed
    """
    vault_id = raw.get("id")
    if not vault_id or not isinstance(vault_id, str):
        raise RegistryError("[[vaults]] entry is missing a string 'id'")
    where = f"Vault {vault_id!r}"

    chain_name = str(raw.get("chain", "")).lower()
    try:
        chain = Chain(chain_name)
    except ValueError as exc:
        raise RegistryError(
            f"{where}: unknown chain {raw.get('chain')!r}. "
            f"Known chains: {', '.join(c.value for c in Chain)}"
        ) from exc

    vault_address = _address(raw, "vault_address", where)
    strategy_address = _address(raw, "strategy_address", where)
    reward_pools = _addresses(raw, "reward_pools", where)
    boosts = _addresses(raw, "boosts", where)
    status = raw.get("status", "active")
    if not isinstance(status, str) or not status:
        raise RegistryError(f"{where}: 'status' must be a non-empty string")

    manager_raw = raw.get("manager")
    if manager_raw is None:
        return chain, SimpleVault(
            id=vault_id,
            vault_address=vault_address,
            strategy_address=strategy_address,
            reward_pools=reward_pools,
            boosts=boosts,
            status=status,
        )

    if not isinstance(manager_raw, dict):
        raise RegistryError(f"{where}: 'manager' must be a table")
    manager_where = f"{where} manager"
    manager = ManagerVault(
        vault_address=_address(manager_raw, "vault_address", manager_where),
        strategy_address=_address(manager_raw, "strategy_address", manager_where),
        reward_pools=_addresses(manager_raw, "reward_pools", manager_where),
        boosts=_addresses(manager_raw, "boosts", manager_where),
    )
    return chain, LayeredVault(
        id=vault_id,
        vault_address=vault_address,
        strategy_address=strategy_address,
        manager=manager,
        reward_pools=reward_pools,
        boosts=boosts,
        status=status,
    )


def build_registry(raw_vaults: Iterable[dict[str, Any]]) -> VaultRegistry:
    registry = VaultRegistry()
    for raw in raw_vaults:
        if not isinstance(raw, dict):
            raise RegistryError(f"[[vaults]] entries must be tables, got {raw!r}")
        chain, topology = parse_vault(raw)
        registry.add(chain, topology)
    return registry


def load_registry(path: Path) -> VaultRegistry:
    """Load a registry from the TOML file at ``path``."""
    if not path.exists():
        raise RegistryError(f"Vault registry file not found: {path}")
    try:
        with path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise RegistryError(f"Vault registry {path} is not valid TOML: {exc}") from exc

    vaults = data.get("vaults", [])
    if not isinstance(vaults, list):
        raise RegistryError(f"Vault registry {path}: 'vaults' must be an array of tables")
    return build_registry(vaults)
