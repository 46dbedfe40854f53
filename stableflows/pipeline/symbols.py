from __future__ import annotations

import re
from functools import lru_cache

from .constants import TARGET_STABLECOINS

# Bridge prefixes seen on canonical bridged deployments (Axelar, Wormhole,
# Multichain, Stargate, LayerZero).
BRIDGE_PREFIXES = ("axl", "wh", "mul", "star", "lz")

# Only the large two show up with chain suffixes and wrapped forms.
SUFFIXED_TICKERS = ("USDC", "USDT")
WRAPPED_TICKERS = ("WUSDC", "WUSDT")

# Stargate-issued USDT
SYNONYM_TICKERS = ("USDT0", "USD₮0")


def build_stable_patterns(tickers: tuple[str, ...] | list[str]) -> tuple[re.Pattern, ...]:
    """Anchored shapes a target stablecoin symbol may take.

    Every pattern matches the whole symbol. Vault and leveraged wrappers
    (VBUSDC, gtUSDC, yvUSDC, sUSDC, ...) contain a ticker but match none of
    these shapes.
    """
    prefixes = "|".join(BRIDGE_PREFIXES)
    patterns: list[str] = []
    for ticker in tickers:
        t = re.escape(ticker)
        patterns.append(rf"^{t}$")
        patterns.append(rf"^({prefixes})?{t}(\.e)?$")
    for ticker in SUFFIXED_TICKERS:
        if ticker in tickers:
            patterns.append(rf"^{re.escape(ticker)}\.[a-z]+$")
    if "USDT" in tickers:
        patterns.extend(rf"^{re.escape(s)}$" for s in SYNONYM_TICKERS)
    for wrapped in WRAPPED_TICKERS:
        if wrapped[1:] in tickers:
            patterns.append(rf"^{wrapped}$")
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


@lru_cache(maxsize=16)
def _patterns_for(tickers: tuple[str, ...]) -> tuple[re.Pattern, ...]:
    return build_stable_patterns(tickers)


STABLE_PATTERNS = _patterns_for(tuple(TARGET_STABLECOINS))


def is_target_stablecoin(symbol: str | None, patterns: tuple[re.Pattern, ...] = STABLE_PATTERNS) -> bool:
    if not symbol:
        return False
    s = symbol.strip()
    return any(p.match(s) for p in patterns)


def classifier_for(tickers: list[str] | tuple[str, ...]):
    """Classifier bound to a specific ticker set."""
    patterns = _patterns_for(tuple(tickers))

    def _classify(symbol: str | None) -> bool:
        return is_target_stablecoin(symbol, patterns)

    return _classify
