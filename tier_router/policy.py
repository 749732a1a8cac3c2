"""Policy-based routing rules.

Policies are evaluated highest priority first; inside a policy, rules are
evaluated in order. The first matching rule anywhere wins. A matcher is an
immutable snapshot: the ``with_*`` helpers return a new matcher.
"""

import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any

from loguru import logger

from tier_router.models import Complexity, RoutingContext, TaskType, Tier


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def severity(self) -> int:
        return _RISK_ORDER.index(self)


_RISK_ORDER = [RiskLevel.LOW, RiskLevel.MEDIUM, RiskLevel.HIGH, RiskLevel.CRITICAL]


def max_risk(a: RiskLevel, b: RiskLevel) -> RiskLevel:
    return a if a.severity >= b.severity else b


class ActionType(str, Enum):
    ALLOW = "allow"
    DENY = "deny"
    ESCALATE = "escalate"
    DOWNGRADE = "downgrade"
    ROUTE_TO = "route-to"


@dataclass(frozen=True)
class HourWindow:
    """Hours [start, end) in 0-23. Wraps past midnight when start > end."""

    start: int
    end: int

    def contains(self, hour: int) -> bool:
        if self.start > self.end:
            return hour >= self.start or hour < self.end
        return self.start <= hour < self.end


@dataclass(frozen=True)
class RuleCondition:
    """Conjunctive condition. Omitted fields always match."""

    task_types: frozenset[TaskType] | None = None
    complexity: Complexity | None = None
    file_pattern: str | None = None    # regex, searched in the literal path
    cost_threshold: float | None = None  # matches requests costing at least this
    time_of_day: HourWindow | None = None
    user_roles: frozenset[str] | None = None

    def matches(self, context: RoutingContext, complexity: Complexity | None, hour: int) -> bool:
        if self.task_types is not None and context.task_type not in self.task_types:
            return False

        if self.complexity is not None and complexity != self.complexity:
            return False

        if self.file_pattern is not None:
            if context.file_path is None or not re.search(self.file_pattern, context.file_path):
                return False

        if self.cost_threshold is not None:
            if context.estimated_cost is None or context.estimated_cost < self.cost_threshold:
                return False

        if self.time_of_day is not None and not self.time_of_day.contains(hour):
            return False

        if self.user_roles is not None:
            if context.user_role is None or context.user_role not in self.user_roles:
                return False

        return True


@dataclass(frozen=True)
class RuleAction:
    type: ActionType
    target_tier: Tier | None = None
    require_approval: bool = False


@dataclass(frozen=True)
class PolicyRule:
    condition: RuleCondition
    action: RuleAction
    risk: RiskLevel = RiskLevel.LOW


@dataclass(frozen=True)
class RoutingPolicy:
    id: str
    name: str
    rules: tuple[PolicyRule, ...]
    priority: int = 0
    enabled: bool = True
    description: str = ""


@dataclass
class PolicyMatch:
    """Outcome of matching; ``action`` is None when nothing matched."""

    matched_policies: list[RoutingPolicy] = field(default_factory=list)
    action: RuleAction | None = None
    risk: RiskLevel = RiskLevel.LOW

    @property
    def policy(self) -> RoutingPolicy | None:
        return self.matched_policies[0] if self.matched_policies else None


DEFAULT_POLICIES: tuple[RoutingPolicy, ...] = (
    RoutingPolicy(
        id="cost-control",
        name="Cost Control Policy",
        description="Limit expensive model usage for non-critical tasks",
        priority=100,
        rules=(
            PolicyRule(
                condition=RuleCondition(complexity=Complexity.LOW, cost_threshold=0.01),
                action=RuleAction(ActionType.ROUTE_TO, target_tier=Tier.T0),
                risk=RiskLevel.LOW,
            ),
            PolicyRule(
                condition=RuleCondition(cost_threshold=1.0),
                action=RuleAction(ActionType.ESCALATE, require_approval=True),
                risk=RiskLevel.HIGH,
            ),
        ),
    ),
    RoutingPolicy(
        id="business-hours",
        name="Business Hours Policy",
        description="Route to cheaper models outside business hours",
        priority=80,
        rules=(
            PolicyRule(
                condition=RuleCondition(time_of_day=HourWindow(18, 8), complexity=Complexity.LOW),
                action=RuleAction(ActionType.DOWNGRADE, target_tier=Tier.T0),
                risk=RiskLevel.LOW,
            ),
        ),
    ),
    RoutingPolicy(
        id="security-sensitive",
        name="Security Sensitive Files",
        description="Require high-quality models for security-critical code",
        priority=200,
        rules=(
            PolicyRule(
                condition=RuleCondition(file_pattern=r".*(auth|security|crypto|password).*"),
                action=RuleAction(ActionType.ROUTE_TO, target_tier=Tier.T2),
                risk=RiskLevel.CRITICAL,
            ),
        ),
    ),
    RoutingPolicy(
        id="test-files",
        name="Test File Policy",
        description="Use cheaper models for test file generation",
        priority=50,
        rules=(
            PolicyRule(
                condition=RuleCondition(
                    file_pattern=r".*\.test\.(ts|js)$",
                    task_types=frozenset({TaskType.CODE}),
                ),
                action=RuleAction(ActionType.ROUTE_TO, target_tier=Tier.T1),
                risk=RiskLevel.LOW,
            ),
        ),
    ),
)


class PolicyMatcher:
    """Evaluate enabled policies against a request."""

    def __init__(
        self,
        policies: Iterable[RoutingPolicy] = DEFAULT_POLICIES,
        now: Callable[[], datetime] = datetime.now,
    ):
        self._all = tuple(policies)
        self._now = now
        # sorted() is stable: equal priorities keep insertion order
        self._policies = tuple(sorted(
            (p for p in self._all if p.enabled),
            key=lambda p: p.priority,
            reverse=True,
        ))

    @property
    def policies(self) -> tuple[RoutingPolicy, ...]:
        """Enabled policies in evaluation order."""
        return self._policies

    def match(self, context: RoutingContext, complexity: Complexity | None = None) -> PolicyMatch:
        hour = self._now().hour
        for policy in self._policies:
            for rule in policy.rules:
                if rule.condition.matches(context, complexity, hour):
                    logger.info(
                        f"Policy matched: {policy.id} ({policy.name}) → "
                        f"{rule.action.type.value}, risk={rule.risk.value}"
                    )
                    return PolicyMatch(
                        matched_policies=[policy],
                        action=rule.action,
                        risk=max_risk(RiskLevel.LOW, rule.risk),
                    )
        return PolicyMatch()

    # --- Snapshot derivation ---

    def with_policy(self, policy: RoutingPolicy) -> "PolicyMatcher":
        return PolicyMatcher([*self._all, policy], now=self._now)

    def without_policy(self, policy_id: str) -> "PolicyMatcher":
        return PolicyMatcher([p for p in self._all if p.id != policy_id], now=self._now)

    def with_updated_policy(self, policy_id: str, **updates: Any) -> "PolicyMatcher":
        return PolicyMatcher(
            [replace(p, **updates) if p.id == policy_id else p for p in self._all],
            now=self._now,
        )
