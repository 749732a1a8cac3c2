"""Router configuration using Pydantic settings."""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tier_router.aliases import resolve_tier
from tier_router.models import TIERS_IN_ORDER, Tier


def _coerce_tier(value):
    """Accept Tier members or any alias understood by ``resolve_tier``."""
    if isinstance(value, str) and not isinstance(value, Tier):
        tier, hint = resolve_tier(value)
        if tier is None:
            raise ValueError(hint or f"Unknown tier '{value}'")
        return tier
    return value


def _default_tier_flags() -> dict[Tier, bool]:
    return {tier: True for tier in TIERS_IN_ORDER}


class RouterSettings(BaseSettings):
    """Routing knobs. Read once per call, never mutated by the router."""

    default_tier: Tier = Tier.T0
    max_escalation_tier: Tier = Tier.T2
    enable_auto_escalate: bool = True
    enable_cross_check: bool = True
    tier_enabled: dict[Tier, bool] = Field(default_factory=_default_tier_flags)
    free_tiers: list[Tier] = Field(default_factory=lambda: [Tier.T0])
    classifier_max_tokens: int = 10
    call_timeout_s: float | None = None  # per backend call, on top of the caller's deadline

    model_config = SettingsConfigDict(
        env_prefix="TIER_ROUTER_",
        env_nested_delimiter="__",
    )

    @field_validator("default_tier", "max_escalation_tier", mode="before")
    @classmethod
    def _resolve_tier_name(cls, value):
        return _coerce_tier(value)

    @field_validator("free_tiers", mode="before")
    @classmethod
    def _resolve_tier_list(cls, value):
        if isinstance(value, str):
            value = [v.strip() for v in value.split(",") if v.strip()]
        return [_coerce_tier(v) for v in value]

    @field_validator("tier_enabled", mode="before")
    @classmethod
    def _resolve_tier_keys(cls, value):
        if isinstance(value, dict):
            flags = _default_tier_flags()
            for key, enabled in value.items():
                flags[_coerce_tier(key)] = enabled
            return flags
        return value

    def within_escalation_limit(self, tier: Tier) -> bool:
        return tier.rank <= self.max_escalation_tier.rank
