from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

import structlog

from .constants import EXCLUDED_POOLS, MAX_POOL_TVL, TrackingConfig

log = structlog.get_logger()

REASON_NON_POSITIVE = "non_positive_tvl"
REASON_EXCLUDED = "excluded"
REASON_OUTLIER = "outlier"


@dataclass(frozen=True)
class QualityRules:
    excluded_pools: frozenset[str] = frozenset(EXCLUDED_POOLS)
    max_pool_tvl: float = MAX_POOL_TVL

    @classmethod
    def from_tracking(cls, tracking: TrackingConfig) -> "QualityRules":
        return cls(excluded_pools=frozenset(tracking.excluded_pools), max_pool_tvl=float(tracking.max_pool_tvl))


@dataclass
class FilterStats:
    seen: int = 0
    kept: int = 0
    dropped: Counter = field(default_factory=Counter)

    def as_dict(self) -> dict:
        return {"seen": self.seen, "kept": self.kept, **{f"dropped_{k}": v for k, v in sorted(self.dropped.items())}}


def rejection_reason(pool_id: str | None, tvl: float, rules: QualityRules) -> str | None:
    if tvl <= 0:
        return REASON_NON_POSITIVE
    if pool_id and pool_id in rules.excluded_pools:
        return REASON_EXCLUDED
    if tvl > rules.max_pool_tvl:
        return REASON_OUTLIER
    return None


def filter_pools(pools: list[dict], rules: QualityRules | None = None) -> tuple[list[dict], FilterStats]:
    """Drop known-bad and implausible pool records.

    Pools are normalized records (see feeds.normalize_pool). A hard ceiling plus
    an explicit denylist keeps every drop explainable; new bad data means a
    table update, not a code change.
    """
    rules = rules or QualityRules()
    stats = FilterStats()
    kept = []
    for pool in pools:
        stats.seen += 1
        reason = rejection_reason(pool.get("pool_id"), pool.get("tvl", 0.0), rules)
        if reason is None:
            kept.append(pool)
            continue
        stats.dropped[reason] += 1
        if reason == REASON_OUTLIER:
            log.info(
                "pool_outlier_skipped",
                chain=pool.get("chain"),
                symbol=pool.get("symbol"),
                pool_id=pool.get("pool_id"),
                tvl_usd_bn=round(pool.get("tvl", 0.0) / 1e9, 2),
            )
        elif reason == REASON_EXCLUDED:
            log.debug("pool_excluded", pool_id=pool.get("pool_id"), symbol=pool.get("symbol"))
    stats.kept = len(kept)
    return kept, stats
