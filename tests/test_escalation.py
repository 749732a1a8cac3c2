"""Tests for the escalation state machine."""

import pytest

from conftest import FakeInvoker
from tier_router.config import RouterSettings
from tier_router.crosscheck import CrossChecker
from tier_router.escalation import (
    EscalationController,
    EscalationState,
    build_escalation_prompt,
)
from tier_router.invocation import BackendCall
from tier_router.models import BackendResponse, CrossCheckResult, InferenceRequest, TaskType, Tier

REQUEST = InferenceRequest.from_prompt("summarize the design")


def result_at(tier, conflicts=("reviewer flagged the answer as incorrect",), arbitrated=False):
    primary = BackendResponse("primary answer", "p", "fake", 10, 10, cost=0.0)
    arbitrator = BackendResponse("arbitrated answer", "a", "fake", 10, 10, cost=0.0) if arbitrated else None
    return CrossCheckResult(
        primary=primary,
        consensus=arbitrator.content if arbitrator else primary.content,
        tier=tier,
        review=BackendResponse("review", "r", "fake"),
        arbitrator=arbitrator,
        conflicts=list(conflicts),
        routing_summary=f"Cross-check (2 backends): p, r (tier {tier})",
    )


def controller(**settings):
    return EscalationController(RouterSettings(**settings), CrossChecker())


class TestDecide:

    def test_no_conflicts_resolves(self, two_tier_catalog):
        step = controller().decide(result_at(Tier.T0, conflicts=()), two_tier_catalog, auto_escalate=True)
        assert step.state == EscalationState.RESOLVED

    def test_auto_escalates_one_tier(self, two_tier_catalog):
        step = controller().decide(result_at(Tier.T0), two_tier_catalog, auto_escalate=True)
        assert step.state == EscalationState.AUTO_ESCALATING
        assert step.target_tier == Tier.T1

    def test_paid_next_tier_needs_confirmation(self, two_tier_catalog):
        step = controller().decide(result_at(Tier.T0), two_tier_catalog, auto_escalate=False)
        assert step.state == EscalationState.AWAITING_CONFIRMATION
        assert step.target_tier == Tier.T1
        assert "paid tier" in step.reason

    def test_free_next_tier_without_auto_resolves(self, two_tier_catalog):
        catalog = two_tier_catalog.with_free_tiers([Tier.T0, Tier.T1])
        step = controller().decide(result_at(Tier.T0), catalog, auto_escalate=False)
        assert step.state == EscalationState.RESOLVED
        assert "free tier" in step.reason

    def test_top_tier_resolves(self, two_tier_catalog):
        step = controller(max_escalation_tier=Tier.T3).decide(result_at(Tier.T3), two_tier_catalog, auto_escalate=True)
        assert step.state == EscalationState.RESOLVED
        assert "top tier" in step.reason

    def test_escalation_limit(self, two_tier_catalog):
        step = controller(max_escalation_tier=Tier.T1).decide(result_at(Tier.T1), two_tier_catalog, auto_escalate=True)
        assert step.state == EscalationState.RESOLVED
        assert "escalation limit" in step.reason

    def test_blocked_escalation(self, two_tier_catalog):
        step = controller().decide(
            result_at(Tier.T0), two_tier_catalog, auto_escalate=True, escalation_allowed=False,
        )
        assert step.state == EscalationState.RESOLVED

    @pytest.mark.parametrize("auto_escalate", [True, False])
    def test_disabled_next_tier_counts_as_absent(self, two_tier_catalog, auto_escalate):
        catalog = two_tier_catalog.with_tier_enabled(Tier.T1, False)
        step = controller().decide(result_at(Tier.T0), catalog, auto_escalate=auto_escalate)
        assert step.state == EscalationState.RESOLVED
        assert step.target_tier is None
        assert "T1 has no enabled backend" in step.reason

    def test_next_tier_without_backends_counts_as_absent(self, two_tier_catalog):
        catalog = two_tier_catalog.with_backend_enabled("prem-a", False)
        step = controller(max_escalation_tier=Tier.T3).decide(result_at(Tier.T1), catalog, auto_escalate=True)
        assert step.state == EscalationState.RESOLVED
        assert "T2 has no enabled backend" in step.reason


class TestResolve:

    @pytest.mark.asyncio
    async def test_auto_escalation_reruns_cross_check(self, two_tier_catalog):
        invoker = FakeInvoker({"std-a": "better answer", "std-b": "looks good"})
        call = BackendCall(invoker)
        outcome = await controller().resolve(
            result_at(Tier.T0), REQUEST, TaskType.GENERAL, two_tier_catalog, call, auto_escalate=True,
        )
        assert outcome.escalated
        assert not outcome.requires_confirmation
        assert outcome.tier == Tier.T1
        assert outcome.content == "better answer"
        assert outcome.routing_summary.endswith("(escalated from T0)")
        assert invoker.called_ids == ["std-a", "std-b"]

    @pytest.mark.asyncio
    async def test_awaiting_confirmation_makes_no_call(self, two_tier_catalog):
        invoker = FakeInvoker()
        outcome = await controller().resolve(
            result_at(Tier.T0), REQUEST, TaskType.GENERAL, two_tier_catalog, BackendCall(invoker),
            auto_escalate=False,
        )
        assert invoker.calls == []
        assert outcome.requires_confirmation
        assert not outcome.escalated
        assert outcome.suggested_tier == Tier.T1
        assert outcome.content == "primary answer"
        assert outcome.optimized_prompt.startswith("[ESCALATED FROM T0 TO T1]")
        assert outcome.routing_summary.endswith("(conflicts detected - escalation available)")

    @pytest.mark.asyncio
    async def test_top_tier_conflicts_unresolved(self, two_tier_catalog):
        outcome = await controller(max_escalation_tier=Tier.T3).resolve(
            result_at(Tier.T3), REQUEST, TaskType.GENERAL, two_tier_catalog, BackendCall(FakeInvoker()),
            auto_escalate=True,
        )
        assert outcome.tier == Tier.T3
        assert outcome.content == "primary answer"
        assert outcome.conflicts
        assert outcome.routing_summary.endswith("(conflicts unresolved)")

    @pytest.mark.asyncio
    async def test_arbitrated_conflicts(self, two_tier_catalog):
        outcome = await controller(max_escalation_tier=Tier.T1).resolve(
            result_at(Tier.T1, arbitrated=True), REQUEST, TaskType.GENERAL, two_tier_catalog,
            BackendCall(FakeInvoker()), auto_escalate=True,
        )
        assert outcome.content == "arbitrated answer"
        assert outcome.routing_summary.endswith("(conflicts resolved with arbitrator)")

    @pytest.mark.asyncio
    async def test_no_conflicts(self, two_tier_catalog):
        outcome = await controller().resolve(
            result_at(Tier.T0, conflicts=()), REQUEST, TaskType.GENERAL, two_tier_catalog,
            BackendCall(FakeInvoker()), auto_escalate=True,
        )
        assert outcome.routing_summary.endswith("(no conflicts)")
        assert outcome.conflicts == []


def test_escalation_prompt_contents():
    prompt = build_escalation_prompt(REQUEST, result_at(Tier.T1), Tier.T2)
    assert prompt.startswith("[ESCALATED FROM T1 TO T2]")
    assert "summarize the design" in prompt
    assert "primary answer" in prompt
    assert "- reviewer flagged the answer as incorrect" in prompt
