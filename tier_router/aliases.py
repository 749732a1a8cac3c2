"""Tier and quality alias resolution. Single source of truth for short names.

Used by ``RouterSettings`` validation and by callers that accept tier names
from users (e.g. a "retry at T1" confirmation).
"""

from __future__ import annotations

import difflib
import re

from tier_router.models import Quality, Tier

# Short name → tier.
# Keep sorted by short name for readability.
TIER_ALIASES: dict[str, Tier] = {
    "elite": Tier.T3,
    "free": Tier.T0,
    "l0": Tier.T0,
    "l1": Tier.T1,
    "l2": Tier.T2,
    "l3": Tier.T3,
    "premium": Tier.T2,
    "standard": Tier.T1,
    "t0": Tier.T0,
    "t1": Tier.T1,
    "t2": Tier.T2,
    "t3": Tier.T3,
}

# Caller vocabularies ("speed|quality|cost" and "normal|high|critical").
QUALITY_ALIASES: dict[str, Quality] = {
    "cost": Quality.NORMAL,
    "critical": Quality.CRITICAL,
    "high": Quality.HIGH,
    "normal": Quality.NORMAL,
    "quality": Quality.HIGH,
    "speed": Quality.NORMAL,
}

_SEPARATORS = re.compile(r"[\s._-]+")


def _squash(s: str) -> str:
    return _SEPARATORS.sub("", s.strip().lower())


def _tier_key(s: str) -> str:
    """Canonical tier spelling: "Tier-2", "tier 2", "2" and "t2" all become "t2"."""
    key = _squash(s).removeprefix("tier")
    return f"t{key}" if key.isdigit() else key


def resolve_tier(raw: str | Tier) -> tuple[Tier | None, str | None]:
    """Resolve a user-typed tier name.

    Returns (tier, matched_alias_key) or (None, suggestion_message).
    """
    if isinstance(raw, Tier):
        return raw, raw.value
    if not raw:
        return None, None

    # 1. Canonical spelling ("T2", "Tier-2", "premium")
    key = _tier_key(raw)
    if key in TIER_ALIASES:
        return TIER_ALIASES[key], key

    # 2. Fuzzy match via difflib ("standrd")
    candidates = difflib.get_close_matches(key, TIER_ALIASES.keys(), n=2, cutoff=0.75)
    if len(candidates) == 1:
        return TIER_ALIASES[candidates[0]], candidates[0]

    if len(candidates) > 1:
        return None, f"Ambiguous tier '{raw}'. Did you mean: {', '.join(candidates)}?"

    # 3. No match
    valid = ", ".join(sorted(TIER_ALIASES.keys()))
    return None, f"Unknown tier '{raw}'. Short names: {valid}"


def resolve_quality(raw: str | Quality) -> Quality | None:
    if isinstance(raw, Quality):
        return raw
    if not raw:
        return None
    return QUALITY_ALIASES.get(_squash(raw))
