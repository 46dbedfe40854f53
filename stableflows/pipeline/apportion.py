from __future__ import annotations

import re

from .symbols import is_target_stablecoin

_DELIMITERS = re.compile(r"[-/_]")
_FEE_TIER = re.compile(r"^\d+$")


def split_components(symbol: str | None) -> list[str]:
    """Asset tokens of a pool symbol ("USDC-WETH-0.05" style).

    Pure-numeric tokens are fee tiers, not assets.
    """
    parts = [p.strip() for p in _DELIMITERS.split(symbol or "")]
    return [p for p in parts if p and not _FEE_TIER.match(p)]


def stablecoin_share(symbol: str | None, tvl: float, exposure: str | None, classifier=is_target_stablecoin) -> float:
    """Portion of a pool's TVL attributable to target stablecoins.

    Single-asset pools count all or nothing. Multi-asset pools split TVL
    evenly across listed assets, since the pool feed has no per-asset
    reserves; a USDC-WETH pool contributes half its TVL.
    """
    parts = split_components(symbol)
    if not parts:
        return 0.0

    valid_count = sum(1 for part in parts if classifier(part))
    if valid_count == 0:
        return 0.0

    if exposure == "single" or len(parts) == 1:
        return float(tvl) if classifier(parts[0]) else 0.0

    return float(tvl) * (valid_count / len(parts))
