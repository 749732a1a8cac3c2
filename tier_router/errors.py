"""Routing errors.

Every fatal outcome of ``Router.route_request`` is a ``RouterError`` subclass
carrying a stable ``kind``, a human-readable ``reason`` and, where relevant,
the tier and backend involved. A route that needs human confirmation is not
an error and is returned as a ``RouteOutcome`` instead.
"""

from datetime import datetime

from tier_router.models import TaskType, Tier


class RouterError(Exception):
    """Base class for all routing failures."""

    kind = "router_error"

    def __init__(self, reason: str, tier: Tier | None = None, backend_id: str | None = None):
        super().__init__(reason)
        self.reason = reason
        self.tier = tier
        self.backend_id = backend_id


class NoBackendAvailable(RouterError):
    """The catalog has nothing to offer, even after the free-tier fallback."""

    kind = "no_backend_available"

    def __init__(self, tier: Tier, task_type: TaskType | None = None):
        task = f" for {task_type.value} tasks" if task_type else ""
        super().__init__(f"No backend available in tier {tier} or the free fallback{task}", tier=tier)
        self.task_type = task_type


class BackendInvocationFailed(RouterError):
    """Transport or provider error. Not retried here."""

    kind = "backend_invocation_failed"

    def __init__(self, backend_id: str, tier: Tier, cause: BaseException):
        super().__init__(f"Backend {backend_id} ({tier}) failed: {cause}", tier=tier, backend_id=backend_id)
        self.cause = cause


class QuotaExceeded(RouterError):
    kind = "quota_exceeded"

    def __init__(
        self,
        reason: str,
        remaining_tokens: int = 0,
        remaining_cost: float = 0.0,
        reset_at: datetime | None = None,
    ):
        super().__init__(reason)
        self.remaining_tokens = remaining_tokens
        self.remaining_cost = remaining_cost
        self.reset_at = reset_at


class PolicyDenied(RouterError):
    kind = "policy_denied"

    def __init__(self, policy_id: str, policy_name: str = ""):
        super().__init__(f"Request denied by policy '{policy_name or policy_id}'")
        self.policy_id = policy_id
        self.policy_name = policy_name


class RouteCancelled(RouterError):
    """Caller cancelled the route or its deadline passed."""

    kind = "cancelled"
