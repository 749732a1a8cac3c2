"""tier-router: cost-tiered LLM routing with cross-check and escalation."""

from loguru import logger

from tier_router.catalog import BackendCatalog
from tier_router.config import RouterSettings
from tier_router.errors import (
    BackendInvocationFailed,
    NoBackendAvailable,
    PolicyDenied,
    QuotaExceeded,
    RouteCancelled,
    RouterError,
)
from tier_router.invocation import CancelToken, Deadline
from tier_router.models import (
    BackendDescriptor,
    BackendInvoker,
    BackendResponse,
    Capability,
    Complexity,
    InferenceRequest,
    Quality,
    QuotaGate,
    QuotaStatus,
    RouteOutcome,
    RoutingContext,
    TaskType,
    Tier,
)
from tier_router.policy import PolicyMatcher, RoutingPolicy
from tier_router.router import PolicyPreview, Router

# Library logging is opt-in: logger.enable("tier_router")
logger.disable("tier_router")

__all__ = [
    "BackendCatalog",
    "BackendDescriptor",
    "BackendInvocationFailed",
    "BackendInvoker",
    "BackendResponse",
    "CancelToken",
    "Capability",
    "Complexity",
    "Deadline",
    "InferenceRequest",
    "NoBackendAvailable",
    "PolicyDenied",
    "PolicyMatcher",
    "PolicyPreview",
    "Quality",
    "QuotaExceeded",
    "QuotaGate",
    "QuotaStatus",
    "RouteCancelled",
    "RouteOutcome",
    "Router",
    "RouterError",
    "RouterSettings",
    "RoutingContext",
    "RoutingPolicy",
    "TaskType",
    "Tier",
]
