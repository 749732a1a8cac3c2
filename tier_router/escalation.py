"""Escalation decisions after a cross-check.

States:
  RESOLVED: answer is final (with or without conflicts)
  CONFLICT_DETECTED: transient, reviewer disagreed
  AUTO_ESCALATING: re-run the cross-check one tier up, exactly once
  AWAITING_CONFIRMATION: return the lower-tier answer and ask the caller

AUTO_ESCALATING and AWAITING_CONFIRMATION are mutually exclusive: the second
never makes the escalated call, the caller does by routing again with the
suggested tier pinned as ``preferred_tier``.
"""

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from tier_router.catalog import BackendCatalog
from tier_router.config import RouterSettings
from tier_router.crosscheck import CrossChecker
from tier_router.invocation import BackendCall
from tier_router.models import CrossCheckResult, InferenceRequest, RouteOutcome, TaskType, Tier


class EscalationState(str, Enum):
    RESOLVED = "resolved"
    CONFLICT_DETECTED = "conflict_detected"
    AUTO_ESCALATING = "auto_escalating"
    AWAITING_CONFIRMATION = "awaiting_confirmation"


@dataclass(frozen=True)
class EscalationStep:
    state: EscalationState
    target_tier: Tier | None = None
    reason: str = ""


def build_escalation_prompt(request: InferenceRequest, result: CrossCheckResult, target: Tier) -> str:
    """Prompt bundling the request, the lower-tier answer and the conflicts."""
    conflicts = "\n".join(f"- {c}" for c in result.conflicts)
    return (
        f"[ESCALATED FROM {result.tier} TO {target}]\n\n"
        f"ORIGINAL REQUEST:\n{request.prompt or 'N/A'}\n\n"
        f"CONTEXT FROM {result.tier}:\n{result.consensus}\n\n"
        f"CONFLICTS DETECTED:\n{conflicts}\n\n"
        "PLEASE PROVIDE:\n"
        "- A more accurate and detailed response\n"
        "- Clear resolution of the conflicts\n"
        f"- Higher quality output suitable for {target} tier"
    )


class EscalationController:
    def __init__(self, settings: RouterSettings, cross_checker: CrossChecker):
        self._settings = settings
        self._cross_checker = cross_checker

    def decide(
        self,
        result: CrossCheckResult,
        catalog: BackendCatalog,
        auto_escalate: bool,
        escalation_allowed: bool = True,
    ) -> EscalationStep:
        """Pure transition out of the post-cross-check state.

        A next tier that is disabled or has no enabled backend in ``catalog``
        counts as absent.
        """
        if not result.has_conflicts:
            return EscalationStep(EscalationState.RESOLVED, reason="no conflicts")

        target = catalog.next_tier(result.tier)
        available = target is not None and catalog.has_backends(target)
        can_escalate = (
            available
            and self._settings.within_escalation_limit(target)
            and escalation_allowed
        )

        if can_escalate and auto_escalate:
            return EscalationStep(
                EscalationState.AUTO_ESCALATING, target,
                f"Conflicts detected in {result.tier}, escalating to {target}",
            )
        if can_escalate and not catalog.is_free(target):
            return EscalationStep(
                EscalationState.AWAITING_CONFIRMATION, target,
                f"Conflicts detected in {result.tier} tier. Escalating to {target} "
                "may provide better results (paid tier).",
            )

        if target is None:
            reason = f"{result.tier} is the top tier"
        elif not available:
            reason = f"{target} has no enabled backend"
        elif not escalation_allowed:
            reason = "escalation blocked by zero budget"
        elif not self._settings.within_escalation_limit(target):
            reason = f"{target} is above the escalation limit {self._settings.max_escalation_tier}"
        else:
            reason = f"{target} is a free tier and auto-escalation is disabled"
        return EscalationStep(EscalationState.RESOLVED, reason=reason)

    async def resolve(
        self,
        result: CrossCheckResult,
        request: InferenceRequest,
        task_type: TaskType,
        catalog: BackendCatalog,
        call: BackendCall,
        auto_escalate: bool,
        escalation_allowed: bool = True,
    ) -> RouteOutcome:
        step = self.decide(result, catalog, auto_escalate, escalation_allowed)

        if step.state == EscalationState.RESOLVED and not result.has_conflicts:
            return RouteOutcome.from_response(
                result.primary, result.tier, result.routing_summary + " (no conflicts)",
                content=result.consensus,
            )

        logger.warning(f"Escalation: {EscalationState.CONFLICT_DETECTED.value} in {result.tier}: {result.conflicts}")

        if step.state == EscalationState.AUTO_ESCALATING:
            logger.info(f"Escalation: auto-escalating {result.tier} → {step.target_tier}")
            escalated = await self._cross_checker.run(request, step.target_tier, task_type, catalog, call)
            return RouteOutcome.from_response(
                escalated.primary, escalated.tier,
                escalated.routing_summary + f" (escalated from {result.tier})",
                content=escalated.consensus,
                conflicts=list(escalated.conflicts),
                escalated=True,
            )

        if step.state == EscalationState.AWAITING_CONFIRMATION:
            logger.info(f"Escalation: {result.tier} → {step.target_tier} requires confirmation")
            return RouteOutcome.from_response(
                result.primary, result.tier,
                result.routing_summary + " (conflicts detected - escalation available)",
                content=result.consensus,
                conflicts=list(result.conflicts),
                requires_confirmation=True,
                suggested_tier=step.target_tier,
                escalation_reason=step.reason,
                optimized_prompt=build_escalation_prompt(request, result, step.target_tier),
            )

        logger.info(f"Escalation: resolved in {result.tier} ({step.reason})")
        if result.arbitrator is not None:
            return RouteOutcome.from_response(
                result.primary, result.tier,
                result.routing_summary + " (conflicts resolved with arbitrator)",
                content=result.consensus,
                conflicts=list(result.conflicts),
            )
        return RouteOutcome.from_response(
            result.primary, result.tier,
            result.routing_summary + " (conflicts unresolved)",
            conflicts=list(result.conflicts),
        )
