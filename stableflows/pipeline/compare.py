from __future__ import annotations


def compare(current: dict, previous: dict | None) -> dict | None:
    """Week-over-week change between two records of the same chain (or totals).

    tvl_change_percent is a relative change; util_change_points is a plain
    percentage-point difference. None when there is no usable baseline.
    """
    if previous is None:
        return None
    prev_tvl = previous.get("stable_tvl") or 0.0
    if prev_tvl == 0:
        return None
    return {
        "tvl_change_percent": 100 * (current["stable_tvl"] - prev_tvl) / prev_tvl,
        "util_change_points": current["util_percent"] - previous["util_percent"],
    }


def compare_snapshots(current: dict, previous: dict | None) -> dict:
    """Per-chain and totals comparisons, chains matched by name."""
    prev_by_chain = {}
    if previous:
        prev_by_chain = {c["chain"]: c for c in previous.get("chains") or []}
    chains = []
    for record in current.get("chains") or []:
        chains.append({
            "chain": record["chain"],
            "rank": record["rank"],
            "previous_rank": (prev_by_chain.get(record["chain"]) or {}).get("rank"),
            "change": compare(record, prev_by_chain.get(record["chain"])),
        })
    return {
        "current_timestamp": current.get("timestamp"),
        "previous_timestamp": previous.get("timestamp") if previous else None,
        "chains": chains,
        "totals": compare(current["totals"], previous["totals"] if previous else None),
    }
