"""Initial tier selection."""

from dataclasses import dataclass

from tier_router.config import RouterSettings
from tier_router.errors import PolicyDenied
from tier_router.models import TIERS_IN_ORDER, Complexity, Quality, RoutingContext, Tier, next_tier
from tier_router.policy import ActionType, PolicyMatch


@dataclass
class TierSelection:
    tier: Tier
    reason: str  # e.g. "preferred", "policy:security-sensitive", "quality:critical", "default"


class TierSelector:
    """Combine caller preference, policy output and complexity/quality.

    Resolution order:
      1. ``context.preferred_tier`` (hard override)
      2. Policy action (deny / route-to / downgrade / escalate)
      3. Quality and complexity defaults
    """

    def __init__(self, settings: RouterSettings):
        self._settings = settings

    def select(
        self,
        context: RoutingContext,
        complexity: Complexity | None,
        match: PolicyMatch | None = None,
    ) -> TierSelection:
        if context.preferred_tier is not None:
            return TierSelection(context.preferred_tier, "preferred")

        default = self.default_for(context, complexity)

        action = match.action if match else None
        if action is None or action.type == ActionType.ALLOW:
            return default

        policy = match.policy
        label = f"policy:{policy.id}" if policy else "policy"

        if action.type == ActionType.DENY:
            raise PolicyDenied(policy.id if policy else "unknown", policy.name if policy else "")
        if action.type == ActionType.ROUTE_TO:
            return TierSelection(action.target_tier or default.tier, label)
        if action.type == ActionType.DOWNGRADE:
            return TierSelection(action.target_tier or TIERS_IN_ORDER[0], label)
        if action.type == ActionType.ESCALATE:
            return TierSelection(next_tier(default.tier) or default.tier, label)
        raise ValueError(f"Unhandled policy action: {action.type}")

    def default_for(self, context: RoutingContext, complexity: Complexity | None) -> TierSelection:
        """Tier chosen when no policy steers the request."""
        if context.quality == Quality.CRITICAL:
            return TierSelection(TIERS_IN_ORDER[-2], "quality:critical")

        base = self._settings.default_tier
        if complexity == Complexity.HIGH and context.quality == Quality.HIGH:
            return TierSelection(next_tier(base) or base, "complexity:high+quality:high")

        return TierSelection(base, "default")
