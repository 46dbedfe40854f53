from __future__ import annotations

from .constants import CHAIN_ALIASES, DEFAULT_TRACKING, TrackingConfig


def normalize_chain_name(raw: str | None, aliases: dict[str, str] | None = None) -> str:
    """Canonical chain label for a source-provided name.

    Exact lookup in the alias table; anything unknown passes through unchanged.
    Alias targets are canonical names themselves, so this is idempotent.
    """
    name = (raw or "").strip()
    table = CHAIN_ALIASES if aliases is None else aliases
    return table.get(name, name)


def is_tracked(name: str, tracking: TrackingConfig = DEFAULT_TRACKING) -> bool:
    return tracking.is_tracked(name)


def tracked_chain(raw: str | None, tracking: TrackingConfig = DEFAULT_TRACKING) -> str | None:
    """Normalized name when the chain is tracked, else None."""
    name = normalize_chain_name(raw, tracking.chain_aliases)
    return name if tracking.is_tracked(name) else None
