from __future__ import annotations

from datetime import datetime

from ..utils import to_iso_z, utc_now

BASE_METRICS = ("stable_tvl", "defi_tvl", "stable_supply")


def _pct(numerator: float, denominator: float) -> float:
    return (numerator / denominator) * 100 if denominator > 0 else 0.0


def derive_percents(record: dict) -> dict:
    """Set util_percent and stbl_defi_percent from the record's base metrics."""
    record["util_percent"] = _pct(record["stable_tvl"], record["stable_supply"])
    record["stbl_defi_percent"] = _pct(record["stable_tvl"], record["defi_tvl"])
    return record


def chain_record(chain: str, stable_tvl: float, defi_tvl: float, stable_supply: float, rank: int = 0) -> dict:
    return derive_percents({
        "rank": rank,
        "chain": chain,
        "stable_tvl": float(stable_tvl),
        "defi_tvl": float(defi_tvl),
        "stable_supply": float(stable_supply),
    })


def rank_chains(records: list[dict]) -> list[dict]:
    # sorted() is stable: equal stable_tvl keeps tracked-chain order
    ranked = sorted(records, key=lambda r: r["stable_tvl"], reverse=True)
    for index, record in enumerate(ranked):
        record["rank"] = index + 1
    return ranked


def totals_for(records: list[dict]) -> dict:
    """Summed base metrics with percents derived from the sums.

    Averaging per-chain percentages would weight a tiny chain like a large one.
    """
    totals = {metric: 0.0 for metric in BASE_METRICS}
    for record in records:
        for metric in BASE_METRICS:
            totals[metric] += record[metric]
    return derive_percents(totals)


def aggregate(
    stable_tvl_by_chain: dict[str, float],
    supply_by_chain: dict[str, float],
    defi_tvl_by_chain: dict[str, float],
    tracked_chains: list[str],
    now: datetime | None = None,
) -> dict:
    """One reconciled snapshot across all tracked chains.

    Chains absent from an input get zero for that metric; they are never
    dropped. Pure and total: no lookups can fail.
    """
    records = [
        chain_record(
            chain,
            stable_tvl_by_chain.get(chain) or 0.0,
            defi_tvl_by_chain.get(chain) or 0.0,
            supply_by_chain.get(chain) or 0.0,
        )
        for chain in tracked_chains
    ]
    chains = rank_chains(records)
    return {
        "timestamp": to_iso_z(now or utc_now()),
        "chains": chains,
        "totals": totals_for(chains),
    }
