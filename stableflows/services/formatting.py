from __future__ import annotations

import html

from ..pipeline.compare import compare


def format_currency(value: float | None) -> str:
    if value is None:
        return "n/a"
    if value >= 1e12:
        return f"${value / 1e12:.2f}T"
    if value >= 1e9:
        return f"${value / 1e9:.2f}B"
    if value >= 1e6:
        return f"${value / 1e6:.2f}M"
    if value >= 1e3:
        return f"${value / 1e3:.2f}K"
    return f"${value:.2f}"


def format_percent(value: float | None) -> str:
    if value is None:
        return "n/a"
    return f"{value:.1f}%"


def format_change(value: float | None, suffix: str = "%") -> str:
    if value is None:
        return "n/a"
    sign = "+" if value >= 0 else ""
    return f"{sign}{value:.1f}{suffix}"


def rankings_table(snapshot: dict) -> str:
    """Fixed-width rankings table with a TOTAL row, for scripts and logs."""
    lines = [
        "Rank  Chain         Stable TVL      DeFi TVL        Supply      Util%  Stbl/DeFi",
        "─" * 84,
    ]
    for c in snapshot.get("chains") or []:
        lines.append(
            f"{c['rank']:>2}    {c['chain']:<12}  "
            f"{format_currency(c['stable_tvl']):>12}  "
            f"{format_currency(c['defi_tvl']):>12}  "
            f"{format_currency(c['stable_supply']):>12}  "
            f"{format_percent(c['util_percent']):>7}  "
            f"{format_percent(c['stbl_defi_percent']):>9}"
        )
    totals = snapshot["totals"]
    lines.append("─" * 84)
    lines.append(
        f"      {'TOTAL':<12}  "
        f"{format_currency(totals['stable_tvl']):>12}  "
        f"{format_currency(totals['defi_tvl']):>12}  "
        f"{format_currency(totals['stable_supply']):>12}  "
        f"{format_percent(totals['util_percent']):>7}  "
        f"{format_percent(totals['stbl_defi_percent']):>9}"
    )
    return "\n".join(lines)


def weekly_report_html(snapshot: dict, analysis: dict | None, previous: dict | None = None, top: int = 8) -> str:
    """Telegram-safe HTML weekly update."""
    day = (snapshot.get("timestamp") or "")[:10]
    lines = [f"<b>📊 Weekly Stablecoin Flow Update</b> ({day})", ""]

    bullets = (analysis or {}).get("bullets") or []
    if bullets:
        lines.append("<b>Key Insights</b>")
        for bullet in bullets:
            lines.append(f"• {html.escape(bullet)}")
        lines.append("")

    prev_by_chain = {c["chain"]: c for c in (previous or {}).get("chains") or []}
    lines.append("<b>Chains by Stable TVL</b>")
    for c in (snapshot.get("chains") or [])[:top]:
        line = (
            f"{c['rank']}. {c['chain']}: {format_currency(c['stable_tvl'])}, "
            f"util {format_percent(c['util_percent'])}"
        )
        change = compare(c, prev_by_chain.get(c["chain"]))
        if change:
            line += f" ({format_change(change['tvl_change_percent'])} WoW)"
        lines.append(line)

    totals = snapshot["totals"]
    lines.append("")
    total_line = (
        f"<b>Total</b>: {format_currency(totals['stable_tvl'])} stable TVL, "
        f"util {format_percent(totals['util_percent'])}, "
        f"stbl/DeFi {format_percent(totals['stbl_defi_percent'])}"
    )
    change = compare(totals, (previous or {}).get("totals"))
    if change:
        total_line += f" ({format_change(change['tvl_change_percent'])} WoW)"
    lines.append(total_line)
    return "\n".join(lines)
