from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field

# Chains to track, in order of expected ranking
TRACKED_CHAINS = [
    "Ethereum",
    "Base",
    "Solana",
    "Arbitrum",
    "Avalanche",
    "BSC",
    "Tron",
    "Hyperliquid",
    "Polygon",
    "Aptos",
    "Sui",
    "Plasma",
]

# Stablecoins counted toward stable TVL and stable supply
TARGET_STABLECOINS = ["USDC", "USDT", "PYUSD"]

# DeFi Llama pegged-asset ids
STABLECOIN_IDS = {
    "USDT": 1,
    "USDC": 2,
    "PYUSD": 115,
}

# Source chain labels that differ from the canonical name
CHAIN_ALIASES = {
    "Binance": "BSC",
    "BNB Chain": "BSC",
    "Hyperliquid L1": "Hyperliquid",
}

# Yields API pool ids with known-corrupt TVL
EXCLUDED_POOLS = [
    "5570b69e-8050-465b-8d09-ca0ef07da195",  # USDC-USD pool reporting ~$20B
]

MAX_POOL_TVL = 5e9  # USD; a single pool above this is a misreport

SNAPSHOT_RETENTION_DAYS = 365
ANALYSIS_KEEP = 52
WEEKLY_TOLERANCE_DAYS = 4

SNAPSHOTS_KEY = "stableflows:snapshots"
ANALYSES_KEY = "stableflows:analyses"

# Chains drawn on trend charts
CHART_CHAINS = ["Ethereum", "Base", "Solana", "Arbitrum", "Tron"]


class TrackingConfig(BaseModel):
    """Tables that decide what gets counted.

    Passed explicitly to the feed reducers and the aggregator so test fixtures
    and alternate deployments can carry their own chain/ticker sets.
    """
    tracked_chains: list[str] = Field(default_factory=lambda: list(TRACKED_CHAINS))
    target_stablecoins: list[str] = Field(default_factory=lambda: list(TARGET_STABLECOINS))
    stablecoin_ids: dict[str, int] = Field(default_factory=lambda: dict(STABLECOIN_IDS))
    chain_aliases: dict[str, str] = Field(default_factory=lambda: dict(CHAIN_ALIASES))
    excluded_pools: list[str] = Field(default_factory=lambda: list(EXCLUDED_POOLS))
    max_pool_tvl: float = MAX_POOL_TVL

    def is_tracked(self, chain: str) -> bool:
        return chain in self.tracked_chains


DEFAULT_TRACKING = TrackingConfig()


def load_tracking(path: str | None = None) -> TrackingConfig:
    """Tracking tables from a JSON override file, or the built-in defaults.

    Keys missing from the file keep their defaults.
    """
    if not path:
        return DEFAULT_TRACKING
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    return TrackingConfig.model_validate(raw)
