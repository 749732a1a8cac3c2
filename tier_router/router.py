"""Route one request through selection, cross-check and escalation."""

from dataclasses import dataclass, field, replace

from loguru import logger

from tier_router import cost
from tier_router.catalog import BackendCatalog
from tier_router.classifier import ComplexityClassifier
from tier_router.config import RouterSettings
from tier_router.crosscheck import CrossChecker
from tier_router.errors import PolicyDenied, QuotaExceeded
from tier_router.escalation import EscalationController
from tier_router.heuristics import classify_heuristic
from tier_router.invocation import BackendCall, Deadline
from tier_router.models import (
    BackendInvoker,
    Complexity,
    InferenceRequest,
    QuotaGate,
    RouteOutcome,
    RoutingContext,
    Tier,
)
from tier_router.picker import BackendPicker
from tier_router.policy import PolicyMatcher, RiskLevel, RuleAction
from tier_router.selector import TierSelector


@dataclass
class PolicyPreview:
    """Dry-run of policy matching and tier selection. No backend is called."""

    matched_policies: list[str] = field(default_factory=list)
    action: RuleAction | None = None
    risk: RiskLevel = RiskLevel.LOW
    selected_tier: Tier | None = None
    reasoning: str = ""
    estimated_cost: float = 0.0
    requires_approval: bool = False
    nominal_cost_per_1k: float = 0.0  # 1k input + 1k output on the cheapest backend of the tier


class Router:
    """Routes each request through a decision pipeline over immutable snapshots.

    Pipeline:
      1. Quota gate (before any backend call)
      2. Direct dispatch: zero budget → preferred backend → preferred tier
      3. Complexity classification (free-tier call, heuristic fallback)
      4. Policy matching and tier selection
      5. Single call, or cross-check + escalation for high complexity

    Catalog, policies and settings are captured once at the start of each call;
    ``swap_*`` replaces them for calls that start afterwards.
    """

    def __init__(
        self,
        invoker: BackendInvoker,
        catalog: BackendCatalog,
        *,
        policies: PolicyMatcher | None = None,
        settings: RouterSettings | None = None,
        quota_gate: QuotaGate | None = None,
        classifier: ComplexityClassifier | None = None,
        cross_checker: CrossChecker | None = None,
        picker: BackendPicker | None = None,
    ):
        self._invoker = invoker
        self._catalog = catalog
        self._policies = policies or PolicyMatcher()
        self._settings = settings or RouterSettings()
        self._quota_gate = quota_gate
        self._picker = picker or BackendPicker()
        self._classifier = classifier or ComplexityClassifier(self._settings.classifier_max_tokens)
        self._cross_checker = cross_checker or CrossChecker(self._picker)

    @property
    def catalog(self) -> BackendCatalog:
        return self._catalog

    @property
    def policies(self) -> PolicyMatcher:
        return self._policies

    @property
    def settings(self) -> RouterSettings:
        return self._settings

    def swap_catalog(self, catalog: BackendCatalog) -> None:
        self._catalog = catalog
        logger.info(f"Catalog swapped: {len(catalog)} backends")

    def swap_policies(self, policies: PolicyMatcher) -> None:
        self._policies = policies
        logger.info(f"Policies swapped: {len(policies.policies)} enabled")

    def swap_settings(self, settings: RouterSettings) -> None:
        self._settings = settings

    async def route_request(
        self,
        request: InferenceRequest,
        context: RoutingContext,
        deadline: Deadline | None = None,
    ) -> RouteOutcome:
        """Route one request. Raises ``RouterError`` subclasses on failure."""
        settings = self._settings
        catalog = self._snapshot(settings)
        policies = self._policies
        call = BackendCall(self._invoker, deadline, settings.call_timeout_s)
        call.deadline.check()

        estimated_cost = _estimate_cost(request, context, catalog, settings)
        await self._admit(request, context, estimated_cost)

        outcome = await self._route_direct(request, context, catalog, call)
        if outcome is not None:
            outcome.calls = list(call.calls)
            return outcome

        # --- Routing decision ---
        complexity = context.complexity
        if complexity is None:
            complexity = await self._classifier.classify(request.prompt, catalog, call)

        match = policies.match(replace(context, estimated_cost=estimated_cost), complexity)
        selection = TierSelector(settings).select(context, complexity, match)

        cross_check = settings.enable_cross_check if context.enable_cross_check is None else context.enable_cross_check
        auto_escalate = (
            settings.enable_auto_escalate if context.enable_auto_escalate is None else context.enable_auto_escalate
        )
        should_cross_check = cross_check and complexity == Complexity.HIGH

        logger.info(
            f"Route: {selection.tier} ({selection.reason}) | task={context.task_type.value} "
            f"complexity={complexity.value} quality={context.quality.value} "
            f"risk={match.risk.value} cross_check={should_cross_check}"
        )

        if should_cross_check:
            result = await self._cross_checker.run(request, selection.tier, context.task_type, catalog, call)
            controller = EscalationController(settings, self._cross_checker)
            outcome = await controller.resolve(
                result, request, context.task_type, catalog, call,
                auto_escalate=auto_escalate,
                escalation_allowed=context.budget != 0,
            )
        else:
            backend, tier = self._picker.pick(catalog, selection.tier, context.task_type)
            response = await call(request, backend)
            outcome = RouteOutcome.from_response(response, tier, f"Single backend: {backend.id} (tier {tier})")

        outcome.complexity = complexity
        outcome.requires_approval = bool(match.action and match.action.require_approval)
        outcome.calls = list(call.calls)
        logger.info(
            f"Route done: {outcome.backend_id} ({outcome.tier}) {outcome.routing_summary} "
            f"total={cost.format_cost(outcome.total_cost)}"
        )
        return outcome

    def _snapshot(self, settings: RouterSettings) -> BackendCatalog:
        """Catalog as seen by one call: configured tier switches and free tiers applied."""
        return self._catalog.with_tier_flags(settings.tier_enabled).with_free_tiers(settings.free_tiers)

    async def _admit(self, request: InferenceRequest, context: RoutingContext, estimated_cost: float) -> None:
        """Consult the quota gate once, before any backend call."""
        if self._quota_gate is None:
            return

        estimated_tokens = request.estimate_input_tokens() + request.max_tokens
        status = await self._quota_gate.check_quota(
            context.user_id, context.project_id, estimated_tokens, estimated_cost,
        )
        if not status.allowed:
            logger.warning(f"Quota: rejected {context.user_id}/{context.project_id}: {status.reason}")
            raise QuotaExceeded(
                status.reason or "Quota exceeded",
                remaining_tokens=status.remaining_tokens,
                remaining_cost=status.remaining_cost,
                reset_at=status.reset_at,
            )

    async def _route_direct(
        self,
        request: InferenceRequest,
        context: RoutingContext,
        catalog: BackendCatalog,
        call: BackendCall,
    ) -> RouteOutcome | None:
        """Dispatch paths that skip classification, policy and cross-check."""
        if context.budget == 0:
            backend, tier = self._picker.pick(catalog, catalog.free_tier, context.task_type)
            logger.info(f"Route: {tier} (zero budget) → {backend.id}")
            response = await call(request, backend)
            return RouteOutcome.from_response(
                response, tier, f"Budget enforcement: {backend.id} (tier {tier}, free tier only)",
            )

        if context.preferred_backend:
            backend = catalog.get(context.preferred_backend)
            if backend is None:
                logger.warning(f"Preferred backend {context.preferred_backend} not found, falling back to routing")
            else:
                logger.info(f"Route: {backend.tier} (preferred_backend) → {backend.id}")
                response = await call(request, backend)
                return RouteOutcome.from_response(
                    response, backend.tier, f"Direct backend selection: {backend.id} (tier {backend.tier})",
                )

        if context.preferred_tier is not None:
            backend, tier = self._picker.pick(catalog, context.preferred_tier, context.task_type)
            logger.info(f"Route: {context.preferred_tier} (preferred_tier) → {backend.id}")
            response = await call(request, backend)
            return RouteOutcome.from_response(
                response, tier, f"Direct tier selection: {backend.id} (tier {tier})",
            )

        return None

    # --- Simulation ---

    def preview_policy(self, context: RoutingContext, text: str | None = None) -> PolicyPreview:
        """Policy matching and tier selection without any backend call.

        Complexity comes from ``context.complexity``, else the heuristic on
        ``text`` when given. Cost-threshold rules see the same estimate
        ``route_request`` would compute for a request carrying ``text``.
        """
        settings = self._settings
        catalog = self._snapshot(settings)
        complexity = context.complexity
        if complexity is None and text is not None:
            complexity = classify_heuristic(text)

        request = InferenceRequest.from_prompt(text or "")
        estimated_cost = _estimate_cost(request, context, catalog, settings)
        match = self._policies.match(replace(context, estimated_cost=estimated_cost), complexity)
        preview = PolicyPreview(
            matched_policies=[p.name for p in match.matched_policies],
            action=match.action,
            risk=match.risk,
            estimated_cost=estimated_cost,
            requires_approval=bool(match.action and match.action.require_approval),
        )
        try:
            selection = TierSelector(settings).select(context, complexity, match)
        except PolicyDenied as e:
            preview.reasoning = e.reason
            return preview

        preview.selected_tier = selection.tier
        preview.reasoning = _describe_selection(selection.reason, selection.tier, match.action)
        backend = cost.cheapest(catalog.backends_for_tier(selection.tier))
        if backend:
            preview.nominal_cost_per_1k = cost.estimate(1000, 1000, backend)
        return preview

    def batch_preview(self, scenarios: list[tuple[str, RoutingContext]]) -> list[tuple[str, PolicyPreview]]:
        return [(name, self.preview_policy(ctx)) for name, ctx in scenarios]


def _estimate_cost(
    request: InferenceRequest,
    context: RoutingContext,
    catalog: BackendCatalog,
    settings: RouterSettings,
) -> float:
    """Cost fact shared by the quota gate and policy matching.

    ``context.estimated_cost`` when given, else input estimate plus
    ``max_tokens`` on the cheapest backend of the tier the request starts in.
    """
    if context.estimated_cost is not None:
        return context.estimated_cost
    if context.budget == 0:
        tier = catalog.free_tier
    else:
        tier = context.preferred_tier or settings.default_tier
    backend = cost.cheapest(catalog.backends_for_tier(tier))
    if backend is None:
        return 0.0
    return cost.estimate(request.estimate_input_tokens(), request.max_tokens, backend)


def _describe_selection(reason: str, tier: Tier, action: RuleAction | None) -> str:
    if reason.startswith("policy") and action is not None:
        return f"Policy {action.type.value} to {tier}"
    if reason == "preferred":
        return f"Caller pinned {tier}"
    if reason == "default":
        return f"Default routing to {tier}"
    return f"Routing to {tier} ({reason})"
