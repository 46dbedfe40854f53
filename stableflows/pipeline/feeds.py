"""Reduce the three raw DeFi Llama feeds to per-chain USD mappings.

Upstream payloads are inconsistent: missing or malformed numeric fields read
as zero and records on untracked chains are dropped, never raised on.
"""
from __future__ import annotations

from collections import defaultdict

import structlog

from .apportion import stablecoin_share
from .chains import tracked_chain
from .constants import DEFAULT_TRACKING, TrackingConfig
from .quality import FilterStats, QualityRules, filter_pools
from .symbols import classifier_for

log = structlog.get_logger()


def _coerce_float(val) -> float:
    if val is None or isinstance(val, bool):
        return 0.0
    try:
        out = float(val)
    except (TypeError, ValueError):
        return 0.0
    if out != out or out in (float("inf"), float("-inf")):
        return 0.0
    return out


def normalize_pool(raw: dict) -> dict:
    return {
        "chain": raw.get("chain") or "",
        "pool_id": raw.get("pool") or "",
        "symbol": raw.get("symbol") or "",
        "tvl": _coerce_float(raw.get("tvlUsd")),
        "exposure": raw.get("exposure") or "single",
    }


def stable_tvl_by_chain(raw_pools: list[dict], tracking: TrackingConfig = DEFAULT_TRACKING) -> tuple[dict[str, float], FilterStats]:
    """Apportioned stable TVL per tracked chain from the yields pool feed."""
    classify = classifier_for(tracking.target_stablecoins)
    pools = []
    for raw in raw_pools or []:
        if not isinstance(raw, dict):
            continue
        pool = normalize_pool(raw)
        chain = tracked_chain(pool["chain"], tracking)
        if chain is None:
            continue
        pool["chain"] = chain
        pools.append(pool)

    kept, stats = filter_pools(pools, QualityRules.from_tracking(tracking))

    chain_tvl: dict[str, float] = {chain: 0.0 for chain in tracking.tracked_chains}
    chain_pools: dict[str, int] = defaultdict(int)
    for pool in kept:
        share = stablecoin_share(pool["symbol"], pool["tvl"], pool["exposure"], classifier=classify)
        if share > 0:
            chain_tvl[pool["chain"]] += share
            chain_pools[pool["chain"]] += 1

    log.info("stable_tvl_reduced", pools_total=len(raw_pools or []), **stats.as_dict())
    for chain in tracking.tracked_chains:
        if chain_pools[chain]:
            log.debug(
                "stable_tvl_chain",
                chain=chain,
                stable_tvl_usd_bn=round(chain_tvl[chain] / 1e9, 2),
                pools=chain_pools[chain],
            )
    return chain_tvl, stats


def _circulating_usd(entry) -> float:
    if not isinstance(entry, dict):
        return 0.0
    current = entry.get("current")
    if isinstance(current, dict):
        return _coerce_float(current.get("peggedUSD"))
    return _coerce_float(entry.get("peggedUSD"))


def target_asset_ticker(asset: dict, tracking: TrackingConfig = DEFAULT_TRACKING) -> str | None:
    """Target ticker a pegged asset stands for, or None.

    Known DeFi Llama ids resolve first, so a restyled symbol (USD₮) still
    counts; otherwise the upper-cased symbol must be a target ticker.
    """
    targets = {t.upper() for t in tracking.target_stablecoins}
    by_id = {str(i): t.upper() for t, i in tracking.stablecoin_ids.items() if t.upper() in targets}
    asset_id = str(asset.get("id") or "")
    if asset_id in by_id:
        return by_id[asset_id]
    symbol = str(asset.get("symbol") or "").upper()
    return symbol if symbol in targets else None


def supply_by_chain(pegged_assets: list[dict], tracking: TrackingConfig = DEFAULT_TRACKING) -> dict[str, float]:
    """Circulating supply of the target stablecoins per tracked chain."""
    chain_supply: dict[str, float] = {chain: 0.0 for chain in tracking.tracked_chains}
    matched = []
    for asset in pegged_assets or []:
        if not isinstance(asset, dict):
            continue
        ticker = target_asset_ticker(asset, tracking)
        if ticker is None:
            continue
        matched.append(ticker)
        circulating = asset.get("chainCirculating") or {}
        if not isinstance(circulating, dict):
            continue
        for raw_chain, entry in circulating.items():
            chain = tracked_chain(raw_chain, tracking)
            if chain is None:
                continue
            chain_supply[chain] += _circulating_usd(entry)
    log.info("stable_supply_reduced", assets=sorted(set(matched)))
    return chain_supply


def defi_tvl_by_chain(raw_chains: list[dict], tracking: TrackingConfig = DEFAULT_TRACKING) -> dict[str, float]:
    """Total DeFi TVL per tracked chain from the /chains feed.

    One row per chain upstream; an aliased duplicate overwrites rather than
    adds so the same chain is never counted twice.
    """
    chain_tvl: dict[str, float] = {}
    for row in raw_chains or []:
        if not isinstance(row, dict):
            continue
        chain = tracked_chain(row.get("name"), tracking)
        if chain is None:
            continue
        chain_tvl[chain] = _coerce_float(row.get("tvl"))
    return chain_tvl
