"""Settings module with unified configuration precedence: CLI > ENV > CONFIG FILE."""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from dotenv import load_dotenv
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from .constants import (
    DEFAULT_INDEXER_URL,
    DEFAULT_RPC_URLS,
    FETCH_AT_MOST,
    INDEXER_PAGE_SIZE,
    Chain,
)

load_dotenv()

SECRET_FIELDS = {"indexer_api_key"}


class TomlConfigSource(PydanticBaseSettingsSource):
    """Lowest-precedence source reading a TOML file.

    The file may hold settings at the top level or under a
    ``[vault_holders]`` table.
    """

    def __init__(self, settings_cls: type[BaseSettings], path: Path | None):
        super().__init__(settings_cls)
        self._path = path

    def get_field_value(self, field: Any, field_name: str) -> tuple[Any, str, bool]:
        return None, "", False

    def _resolve_path(self) -> Path | None:
        if self._path:
            return self._path
        local_config = Path("vault-holders.toml")
        user_config = Path.home() / ".config" / "vault-holders" / "config.toml"
        if local_config.exists():
            return local_config
        if user_config.exists():
            return user_config
        return None

    def __call__(self) -> dict[str, Any]:
        path = self._resolve_path()
        if path is None or not path.exists():
            return {}

        with path.open("rb") as f:
            data = tomllib.load(f)
        body = data.get("vault_holders", data)
        if not isinstance(body, dict):
            return {}

        for key in SECRET_FIELDS:
            if key in body:
                raise ValueError(
                    f"Security violation: '{key}' found in TOML config file. "
                    f"Secrets must only be provided via environment variables or CLI flags."
                )

        return body


class HolderSettings(BaseSettings):
    """Single source of truth for configuration. Values may come from:
    - CLI (init kwargs)
    - ENV / .env (prefixed with VAULT_HOLDERS_)
    - Config file (TOML), lowest precedence

    Do not read os.environ or files elsewhere in the codebase.
    """

    # --- indexer ---
    indexer_url: str = DEFAULT_INDEXER_URL
    indexer_api_key: SecretStr | None = None
    request_timeout: float = Field(default=30.0, gt=0)

    # --- pagination ---
    page_size: int = Field(default=INDEXER_PAGE_SIZE, ge=1, le=INDEXER_PAGE_SIZE)
    fetch_delay: float = Field(
        default=0.0,
        ge=0,
        description="Pause in seconds between page requests to the indexer.",
    )
    fetch_at_most: int = Field(default=FETCH_AT_MOST, gt=0)

    # --- chain access ---
    rpc_urls: dict[str, str] = Field(default_factory=dict)

    # --- vault configuration ---
    vault_registry_path: Path | None = None

    # --- logging ---
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="VAULT_HOLDERS_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("indexer_api_key", mode="before")
    @classmethod
    def wrap_secrets(cls, v: Any) -> SecretStr | None:
        """Wrap string secrets in SecretStr."""
        if v is None or isinstance(v, SecretStr):
            return v
        return SecretStr(v)

    @field_validator("rpc_urls")
    @classmethod
    def validate_rpc_chains(cls, v: dict[str, str]) -> dict[str, str]:
        known = {chain.value for chain in Chain}
        unknown = sorted(set(v) - known)
        if unknown:
            raise ValueError(
                f"rpc_urls contains unknown chain(s): {', '.join(unknown)}. "
                f"Known chains: {', '.join(sorted(known))}"
            )
        return v

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Custom config-file source with explicit precedence: CLI > ENV > FILE."""
        env_cfg = os.environ.get("VAULT_HOLDERS_CONFIG")
        cfg_path = Path(env_cfg) if env_cfg else None
        return (
            init_settings,  # CLI (highest)
            env_settings,  # ENV
            dotenv_settings,  # .env
            TomlConfigSource(settings_cls, cfg_path),  # CONFIG (lowest)
            file_secret_settings,
        )

    def as_safe_dict(self) -> dict[str, Any]:
        """Return the config as a dict with secrets redacted."""
        data = self.model_dump(mode="json")
        if self.indexer_api_key:
            data["indexer_api_key"] = "***redacted***"
        return data

    def rpc_url_for(self, chain: Chain) -> str:
        """RPC endpoint for ``chain``: configured override, else the public default."""
        url = self.rpc_urls.get(chain.value) or DEFAULT_RPC_URLS.get(chain)
        if not url:
            raise ValueError(
                f"No RPC endpoint configured for chain {chain.value}; "
                f"set rpc_urls.{chain.value}"
            )
        return url
