"""Application state container."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .errors import ConfigurationError
from .registry import VaultRegistry, load_registry
from .settings import HolderSettings


@dataclass
class AppState:
    """Container for application-wide state and dependencies.

    Passed to the CLI commands to avoid global state and enable testing.
    """

    settings: HolderSettings
    logger: logging.Logger
    _registry: VaultRegistry | None = field(default=None, repr=False)

    @property
    def registry(self) -> VaultRegistry:
        """Vault registry, loaded from ``vault_registry_path`` on first access."""
        if self._registry is None:
            path = self.settings.vault_registry_path
            if path is None:
                raise ConfigurationError(
                    "vault_registry_path must be configured to look up vaults"
                )
            self._registry = load_registry(path)
        return self._registry
