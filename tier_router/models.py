"""Core data models for tier-router."""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum, Flag, auto
from typing import Any


class Tier(str, Enum):
    """Ordered cost/quality bucket of backends. T0 is the cheapest."""

    T0 = "T0"
    T1 = "T1"
    T2 = "T2"
    T3 = "T3"

    @property
    def rank(self) -> int:
        return TIERS_IN_ORDER.index(self)

    def __str__(self) -> str:
        return self.value


TIERS_IN_ORDER: list[Tier] = [Tier.T0, Tier.T1, Tier.T2, Tier.T3]


def next_tier(tier: Tier) -> Tier | None:
    """Tier immediately above ``tier``, or None at the top."""
    idx = tier.rank
    if idx == len(TIERS_IN_ORDER) - 1:
        return None
    return TIERS_IN_ORDER[idx + 1]


class Capability(Flag):
    """What a backend can do. Combine with ``|``."""

    NONE = 0
    CODE = auto()
    GENERAL = auto()
    REASONING = auto()
    VISION = auto()


class TaskType(str, Enum):
    CODE = "code"
    DEBUG = "debug"
    REFACTOR = "refactor"
    TEST = "test"
    GENERAL = "general"
    REASONING = "reasoning"

    @property
    def required_capability(self) -> Capability:
        if self is TaskType.CODE:
            return Capability.CODE
        if self is TaskType.REASONING:
            return Capability.REASONING
        return Capability.GENERAL


class Complexity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Quality(str, Enum):
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


@dataclass(frozen=True)
class BackendDescriptor:
    """One invocable model entry, scoped to a tier."""

    id: str
    provider: str          # e.g. "openrouter", "anthropic", "oss-local"
    tier: Tier
    capabilities: Capability = Capability.GENERAL
    price_per_1k_input: float | None = None   # USD
    price_per_1k_output: float | None = None  # USD
    context_window: int = 8192
    enabled: bool = True
    priority: int = 0          # lower = preferred within the tier
    relative_cost: float = 0.0  # 0 = free, used when prices are absent

    def supports(self, capability: Capability) -> bool:
        return capability in self.capabilities


@dataclass(frozen=True)
class InferenceRequest:
    """An already-assembled chat request."""

    messages: tuple[dict[str, Any], ...]
    max_tokens: int = 4096
    temperature: float = 0.7

    @classmethod
    def from_prompt(cls, prompt: str, system: str | None = None, **kwargs: Any) -> "InferenceRequest":
        messages: list[dict[str, Any]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        return cls(messages=tuple(messages), **kwargs)

    @property
    def prompt(self) -> str:
        """Text of the last user message."""
        for msg in reversed(self.messages):
            if msg.get("role") == "user":
                content = msg.get("content", "")
                if isinstance(content, str):
                    return content
                if isinstance(content, list):
                    return " ".join(
                        part.get("text", "") for part in content
                        if isinstance(part, dict) and part.get("type") == "text"
                    )
        return ""

    def with_prompt(self, prompt: str, **kwargs: Any) -> "InferenceRequest":
        """Copy with the last user message replaced by ``prompt``."""
        messages = [dict(m) for m in self.messages]
        for msg in reversed(messages):
            if msg.get("role") == "user":
                msg["content"] = prompt
                break
        else:
            messages.append({"role": "user", "content": prompt})
        return replace(self, messages=tuple(messages), **kwargs)

    def estimate_input_tokens(self) -> int:
        total = 0
        for msg in self.messages:
            c = msg.get("content", "")
            if isinstance(c, str):
                total += len(c) // 4
            elif isinstance(c, list):
                for part in c:
                    if isinstance(part, dict) and part.get("type") == "text":
                        total += len(part.get("text", "")) // 4
        return total


@dataclass
class BackendResponse:
    """Response from one backend invocation."""

    content: str
    backend_id: str
    provider: str
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float | None = None
    latency_ms: int = 0


class BackendInvoker(ABC):
    """Transport to the actual model providers."""

    @abstractmethod
    async def invoke(self, request: InferenceRequest, backend: BackendDescriptor) -> BackendResponse:
        """Send ``request`` to ``backend``. Raises on transport/provider errors."""
        ...

    @property
    def name(self) -> str:
        return self.__class__.__name__


@dataclass
class QuotaStatus:
    allowed: bool
    remaining_tokens: int = 0
    remaining_cost: float = 0.0
    reset_at: datetime | None = None
    reason: str | None = None


class QuotaGate(ABC):
    """Admission control consulted once before any backend call."""

    @abstractmethod
    async def check_quota(
        self, user_id: str, project_id: str, estimated_tokens: int, estimated_cost: float,
    ) -> QuotaStatus:
        ...


@dataclass
class RoutingContext:
    """Per-request routing facts supplied by the caller."""

    task_type: TaskType = TaskType.GENERAL
    quality: Quality = Quality.NORMAL
    complexity: Complexity | None = None   # classified when None
    preferred_tier: Tier | None = None     # hard override
    preferred_backend: str | None = None   # hard override, by backend id
    file_path: str | None = None
    user_role: str | None = None
    user_id: str = "anonymous"
    project_id: str = "default"
    estimated_cost: float | None = None
    budget: float | None = None            # 0 = free tier only
    enable_cross_check: bool | None = None
    enable_auto_escalate: bool | None = None


@dataclass
class CrossCheckResult:
    primary: BackendResponse
    consensus: str
    tier: Tier
    review: BackendResponse | None = None
    arbitrator: BackendResponse | None = None
    conflicts: list[str] = field(default_factory=list)
    routing_summary: str = ""

    @property
    def has_conflicts(self) -> bool:
        return len(self.conflicts) > 0

    @property
    def responses(self) -> list[BackendResponse]:
        return [r for r in (self.primary, self.review, self.arbitrator) if r is not None]


@dataclass
class RouteOutcome:
    """Final result of one routing decision."""

    content: str
    backend_id: str
    provider: str
    tier: Tier
    input_tokens: int = 0
    output_tokens: int = 0
    cost: float = 0.0
    routing_summary: str = ""
    complexity: Complexity | None = None
    conflicts: list[str] = field(default_factory=list)
    escalated: bool = False
    requires_confirmation: bool = False
    suggested_tier: Tier | None = None
    escalation_reason: str | None = None
    optimized_prompt: str | None = None
    requires_approval: bool = False  # the matched policy rule asks for approval
    calls: list[BackendResponse] = field(default_factory=list)

    def __post_init__(self) -> None:
        if self.escalated and self.requires_confirmation:
            raise ValueError("an outcome cannot be both escalated and awaiting confirmation")

    @property
    def total_cost(self) -> float:
        return sum(c.cost or 0.0 for c in self.calls)

    @classmethod
    def from_response(cls, response: BackendResponse, tier: Tier, summary: str, **kwargs: Any) -> "RouteOutcome":
        fields: dict[str, Any] = {
            "content": response.content,
            "backend_id": response.backend_id,
            "provider": response.provider,
            "tier": tier,
            "input_tokens": response.input_tokens,
            "output_tokens": response.output_tokens,
            "cost": response.cost or 0.0,
            "routing_summary": summary,
        }
        fields.update(kwargs)
        return cls(**fields)
