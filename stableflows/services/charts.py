from __future__ import annotations

import io

import matplotlib
matplotlib.use("Agg")  # non-interactive backend
import matplotlib.pyplot as plt
import matplotlib.dates as mdates
import numpy as np

import structlog

from ..pipeline.constants import CHART_CHAINS
from ..utils import day_key_date
from .formatting import format_currency

log = structlog.get_logger()

METRIC_TITLES = {
    "stable_tvl": "Stable TVL",
    "util_percent": "Stablecoin Utilization",
    "stbl_defi_percent": "Stablecoins as % of DeFi TVL",
}

CHAIN_COLORS = {
    "Ethereum": "#627EEA",
    "Base": "#0052FF",
    "Solana": "#9945FF",
    "Arbitrum": "#28A0F0",
    "Tron": "#FF0000",
}


def _fig_to_bytes(fig) -> bytes:
    buf = io.BytesIO()
    fig.savefig(buf, format="png", dpi=120, bbox_inches="tight", facecolor="#1e1e2e")
    buf.seek(0)
    plt.close(fig)
    return buf.read()


def _apply_dark_theme(ax):
    """Apply a dark theme to axes."""
    ax.set_facecolor("#1e1e2e")
    ax.tick_params(colors="#cdd6f4")
    ax.xaxis.label.set_color("#cdd6f4")
    ax.yaxis.label.set_color("#cdd6f4")
    ax.title.set_color("#cdd6f4")
    for spine in ax.spines.values():
        spine.set_color("#45475a")
    ax.grid(True, alpha=0.2, color="#45475a")


def metric_series(snapshots: list[dict], metric: str, chains: list[str] | None = None):
    """Dates plus one value array per chain; NaN where a snapshot lacks the chain."""
    chains = chains or CHART_CHAINS
    dates = []
    values = {chain: [] for chain in chains}
    for snap in snapshots:
        d = day_key_date(snap.get("timestamp", ""))
        # adjacent weeks can sample the same entry
        if d is None or (dates and dates[-1] == d):
            continue
        by_chain = {c["chain"]: c for c in snap.get("chains") or []}
        dates.append(d)
        for chain in chains:
            record = by_chain.get(chain)
            values[chain].append(record[metric] if record else np.nan)
    return dates, {chain: np.array(v, dtype=float) for chain, v in values.items()}


def generate_trend_chart(snapshots: list[dict], metric: str = "stable_tvl", chains: list[str] | None = None) -> bytes | None:
    """Weekly trend of one metric for the chart chains, as PNG bytes."""
    if metric not in METRIC_TITLES:
        raise ValueError(f"metric must be one of {', '.join(METRIC_TITLES)}")
    if len(snapshots) < 2:
        return None

    dates, series = metric_series(snapshots, metric, chains)
    if len(dates) < 2:
        return None

    fig, ax = plt.subplots(figsize=(10, 5))
    fig.patch.set_facecolor("#1e1e2e")
    _apply_dark_theme(ax)

    for chain, values in series.items():
        if np.all(np.isnan(values)):
            continue
        ax.plot(dates, values, label=chain, linewidth=2, color=CHAIN_COLORS.get(chain))

    ax.set_title(f"{METRIC_TITLES[metric]} (weekly)", fontsize=14, fontweight="bold")
    if metric == "stable_tvl":
        ax.yaxis.set_major_formatter(plt.FuncFormatter(lambda x, p: format_currency(x)))
    else:
        ax.yaxis.set_major_formatter(plt.FuncFormatter(lambda x, p: f"{x:.1f}%"))
    ax.xaxis.set_major_formatter(mdates.DateFormatter("%b %d"))
    ax.legend(facecolor="#313244", edgecolor="#45475a", labelcolor="#cdd6f4")

    log.debug("trend_chart_rendered", metric=metric, points=len(dates))
    return _fig_to_bytes(fig)
