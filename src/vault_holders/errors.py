"""Failure taxonomy for holder reconstruction.

Every error is terminal for the request that raised it. Messages name the
offending chain, vault, token or block so callers can surface them as-is.
"""

from __future__ import annotations


class VaultHoldersError(Exception):
    """Base class for all failures raised by this package."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigurationError(VaultHoldersError):
    """Vault or token configuration is missing, ambiguous or incomplete."""


class VaultNotFoundError(ConfigurationError):
    """No vault topology matched the lookup."""


class AmbiguousVaultError(ConfigurationError):
    """More than one vault topology matched the lookup."""


class TokenMetadataError(ConfigurationError):
    """A requested token is unknown or lacks name, symbol or decimals."""


class RegistryError(ConfigurationError):
    """The vault registry file could not be parsed."""


class DataAvailabilityError(VaultHoldersError):
    """The indexer cannot answer for the requested block."""


class SnapshotNotFoundError(DataAvailabilityError):
    """No periodic snapshot exists at or before the target block."""

    def __init__(self, chain: str, block: int):
        super().__init__(
            f"No daily snapshot found for chain {chain} at or before block {block}"
        )
        self.chain = chain
        self.block = block


class IndexerNotSyncedError(DataAvailabilityError):
    """The indexer has not processed the target block yet."""

    def __init__(self, chain: str, block: int, progress_block: int | None):
        progress = "unknown" if progress_block is None else str(progress_block)
        super().__init__(
            f"Indexer for chain {chain} has not reached block {block} "
            f"(indexed up to {progress})"
        )
        self.chain = chain
        self.block = block
        self.progress_block = progress_block


class InvalidInputError(VaultHoldersError):
    """Caller supplied an empty token set, a negative block or a bad address."""


class IndexerQueryError(VaultHoldersError):
    """The indexing service returned an error or could not be reached."""


class PaginationError(VaultHoldersError):
    """A paginated fetch produced no pages at all."""
