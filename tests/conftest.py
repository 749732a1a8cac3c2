"""Shared fakes for tier_router tests."""

import asyncio

import pytest

from tier_router.catalog import BackendCatalog
from tier_router.models import (
    BackendDescriptor,
    BackendInvoker,
    BackendResponse,
    Capability,
    InferenceRequest,
    QuotaGate,
    QuotaStatus,
    Tier,
)

ALL_CAPS = Capability.CODE | Capability.GENERAL | Capability.REASONING


def make_backend(
    backend_id: str,
    tier: Tier = Tier.T0,
    *,
    caps: Capability = ALL_CAPS,
    relative_cost: float = 1.0,
    priority: int = 0,
    price_in: float | None = None,
    price_out: float | None = None,
    enabled: bool = True,
) -> BackendDescriptor:
    return BackendDescriptor(
        id=backend_id,
        provider="fake",
        tier=tier,
        capabilities=caps,
        relative_cost=relative_cost,
        priority=priority,
        price_per_1k_input=price_in,
        price_per_1k_output=price_out,
        enabled=enabled,
    )


class FakeInvoker(BackendInvoker):
    """Scripted backend: ``replies[backend_id]`` is a string, an exception, or a callable(prompt)."""

    def __init__(self, replies: dict[str, object] | None = None, default: str = "ok", delay: float = 0.0):
        self.replies = replies or {}
        self.default = default
        self.delay = delay
        self.calls: list[tuple[str, str]] = []  # (backend_id, prompt)

    async def invoke(self, request: InferenceRequest, backend: BackendDescriptor) -> BackendResponse:
        self.calls.append((backend.id, request.prompt))
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies.get(backend.id, self.default)
        if isinstance(reply, BaseException):
            raise reply
        if callable(reply):
            reply = reply(request.prompt)
        return BackendResponse(
            content=reply,
            backend_id=backend.id,
            provider=backend.provider,
            input_tokens=100,
            output_tokens=50,
        )

    @property
    def called_ids(self) -> list[str]:
        return [backend_id for backend_id, _ in self.calls]


class FakeQuota(QuotaGate):
    def __init__(self, allowed: bool = True, reason: str | None = None):
        self.allowed = allowed
        self.reason = reason
        self.checks: list[tuple[str, str, int, float]] = []

    async def check_quota(self, user_id, project_id, estimated_tokens, estimated_cost):
        self.checks.append((user_id, project_id, estimated_tokens, estimated_cost))
        return QuotaStatus(
            allowed=self.allowed,
            remaining_tokens=0 if not self.allowed else 1_000_000,
            remaining_cost=0.0 if not self.allowed else 10.0,
            reason=self.reason,
        )


@pytest.fixture
def two_tier_catalog() -> BackendCatalog:
    """T0 with two backends (no arbitrator), T1 paid with three."""
    return BackendCatalog([
        make_backend("free-a", Tier.T0, priority=0, relative_cost=0),
        make_backend("free-b", Tier.T0, priority=1, relative_cost=0),
        make_backend("std-a", Tier.T1, priority=0, relative_cost=2, price_in=0.00015, price_out=0.0006),
        make_backend("std-b", Tier.T1, priority=1, relative_cost=3, price_in=0.00015, price_out=0.0006),
        make_backend("std-c", Tier.T1, priority=2, relative_cost=3, price_in=0.00015, price_out=0.0006),
        make_backend("prem-a", Tier.T2, priority=0, relative_cost=10, price_in=0.0025, price_out=0.01),
    ])


@pytest.fixture
def inference_request() -> InferenceRequest:
    return InferenceRequest.from_prompt("explain the algorithm implementation", system="be brief")
