from __future__ import annotations

from typing import Iterable

from web3 import Web3

from .errors import InvalidInputError


def normalize_address(address: str) -> str:
    """Lower-case form of ``address``; raises InvalidInputError when malformed."""
    if not isinstance(address, str):
        raise InvalidInputError(f"Invalid address: {address!r}")
    lowered = address.strip().lower()
    if not Web3.is_address(lowered):
        raise InvalidInputError(f"Invalid address: {address!r}")
    return lowered


def unique_addresses(addresses: Iterable[str]) -> list[str]:
    """Normalized addresses, first occurrence order kept, duplicates dropped."""
    return list(dict.fromkeys(normalize_address(a) for a in addresses))
