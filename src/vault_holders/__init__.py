"""Point-in-time vault holder balances, normalized to base shares."""

from __future__ import annotations

from .processors import normalize_holders, reconstruct_balances

__all__ = ["normalize_holders", "reconstruct_balances"]
