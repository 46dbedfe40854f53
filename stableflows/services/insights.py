"""Weekly narrative bullets: Anthropic when configured, rule-based otherwise."""
from __future__ import annotations

import json
import re

import anthropic
import structlog

from ..pipeline.compare import compare
from ..utils import now_utc_iso
from .formatting import format_change, format_currency, format_percent

log = structlog.get_logger()

MAX_BULLETS = 3
SIGNIFICANT_STABLE_TVL = 100_000_000

PROMPT_TEMPLATE = """\
You are an analyst for a newsletter covering capital markets onchain with focus on lending and stablecoins.

Analyze this weekly stablecoin flow data across DeFi protocols. Generate exactly 3 bullet points highlighting the most interesting insights.

Focus on:
1. Week-over-week changes (what moved significantly?)
2. Notable outliers (anything unusual or surprising?)
3. Trend narratives (what's the bigger picture?)

Be specific with numbers. Be declarative and confident. Avoid hype or speculation.

Current Data ({as_of}):
{comparison}

IMPORTANT: Return ONLY a JSON array with exactly 3 strings. No markdown, no explanation, just the JSON array.

Example format:
["First bullet point here.", "Second bullet point here.", "Third bullet point here."]"""


def build_comparison_text(current: dict, previous: dict | None) -> str:
    prev_by_chain = {c["chain"]: c for c in (previous or {}).get("chains") or []}
    lines = ["Chain Rankings by Stable TVL:", ""]
    for c in current.get("chains") or []:
        line = (
            f"{c['rank']}. {c['chain']}: Stable TVL {format_currency(c['stable_tvl'])}, "
            f"Util {format_percent(c['util_percent'])}, "
            f"Stbl/DeFi {format_percent(c['stbl_defi_percent'])}"
        )
        change = compare(c, prev_by_chain.get(c["chain"]))
        if change:
            line += (
                f" | WoW: {format_change(change['tvl_change_percent'])} TVL, "
                f"{format_change(change['util_change_points'], 'pp')} Util"
            )
        lines.append(line)

    totals = current["totals"]
    lines.append("")
    lines.append(
        f"TOTALS: Stable TVL {format_currency(totals['stable_tvl'])}, "
        f"Util {format_percent(totals['util_percent'])}, "
        f"Stbl/DeFi {format_percent(totals['stbl_defi_percent'])}"
    )
    change = compare(totals, (previous or {}).get("totals"))
    if change:
        lines.append(f"Total WoW Change: {format_change(change['tvl_change_percent'])}")
    return "\n".join(lines)


def basic_insights(snapshot: dict) -> list[str]:
    chains = snapshot.get("chains") or []
    totals = snapshot["totals"]
    insights = [
        f"Total stablecoin TVL across tracked chains: {format_currency(totals['stable_tvl'])} "
        f"with {format_percent(totals['util_percent'])} utilization rate."
    ]
    if not chains:
        return insights

    top = chains[0]
    share = (top["stable_tvl"] / totals["stable_tvl"] * 100) if totals["stable_tvl"] > 0 else 0.0
    insights.append(
        f"{top['chain']} leads with {format_currency(top['stable_tvl'])} in stable TVL "
        f"({share:.1f}% of total), maintaining {format_percent(top['util_percent'])} utilization."
    )

    significant = [c for c in chains if c["stable_tvl"] > SIGNIFICANT_STABLE_TVL]
    highest_util = max(significant, key=lambda c: c["util_percent"]) if significant else None
    if highest_util is not None and highest_util["chain"] != top["chain"]:
        insights.append(
            f"{highest_util['chain']} shows highest capital efficiency at "
            f"{format_percent(highest_util['util_percent'])} utilization with "
            f"{format_currency(highest_util['stable_tvl'])} deployed."
        )
    elif len(chains) > 1:
        rising = max(chains[1:5], key=lambda c: c["stable_tvl"])
        insights.append(
            f"{rising['chain']} holds #{rising['rank']} position with {format_currency(rising['stable_tvl'])} "
            f"stable TVL and {format_percent(rising['util_percent'])} utilization."
        )
    return insights[:MAX_BULLETS]


def parse_bullets(text: str) -> list[str]:
    """Bullets from a model reply: JSON array, embedded array, or plain lines."""
    text = (text or "").strip()
    candidates = [text]
    match = re.search(r"\[[\s\S]*\]", text)
    if match:
        candidates.append(match.group(0))
    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except json.JSONDecodeError:
            continue
        if isinstance(parsed, list):
            return [str(b).strip() for b in parsed if str(b).strip()][:MAX_BULLETS]
    return [line.strip() for line in text.splitlines() if line.strip()][:MAX_BULLETS]


def generate_weekly_analysis(
    current: dict,
    previous: dict | None,
    api_key: str | None = None,
    model: str = "claude-sonnet-4-20250514",
) -> dict:
    """WeeklyAnalysis for the current snapshot against last week's."""
    bullets = None
    if api_key:
        prompt = PROMPT_TEMPLATE.format(
            as_of=(current.get("timestamp") or "")[:10],
            comparison=build_comparison_text(current, previous),
        )
        try:
            client = anthropic.Anthropic(api_key=api_key)
            message = client.messages.create(
                model=model,
                max_tokens=1024,
                messages=[{"role": "user", "content": prompt}],
            )
            text = message.content[0].text if message.content and message.content[0].type == "text" else ""
            bullets = parse_bullets(text) or None
        except anthropic.APIError as e:
            log.error("weekly_analysis_api_error", error=str(e))
    else:
        log.info("weekly_analysis_basic", reason="no_api_key")
    if not bullets:
        bullets = basic_insights(current)
    return {"timestamp": now_utc_iso(), "bullets": bullets[:MAX_BULLETS]}
