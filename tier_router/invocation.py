"""Deadline-aware backend invocation.

Each route builds one ``BackendCall``. It issues every backend call of that
route under the caller's ``Deadline``, converts provider errors into
``BackendInvocationFailed``, and keeps a ledger of the responses for cost
auditing. No retries: the caller re-runs the route.
"""

import asyncio
import time
from dataclasses import dataclass, field

from loguru import logger

from tier_router import cost
from tier_router.errors import BackendInvocationFailed, RouteCancelled
from tier_router.models import BackendDescriptor, BackendInvoker, BackendResponse, InferenceRequest


class CancelToken:
    """Cooperative cancellation flag shared between caller and router."""

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason = ""

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class Deadline:
    """Absolute time budget for one route, plus an optional cancel token."""

    timeout_s: float | None = None
    token: CancelToken | None = None
    started_at: float = field(default_factory=time.monotonic)

    @classmethod
    def after(cls, seconds: float, token: CancelToken | None = None) -> "Deadline":
        return cls(timeout_s=seconds, token=token)

    def remaining(self) -> float | None:
        if self.timeout_s is None:
            return None
        return max(0.0, self.timeout_s - (time.monotonic() - self.started_at))

    @property
    def expired(self) -> bool:
        remaining = self.remaining()
        return remaining is not None and remaining <= 0

    def check(self) -> None:
        """Raise ``RouteCancelled`` if the route must stop now."""
        if self.token and self.token.cancelled:
            raise RouteCancelled(self.token.reason or "cancelled by caller")
        if self.expired:
            raise RouteCancelled(f"deadline of {self.timeout_s}s exceeded")


class BackendCall:
    """Invoke backends for a single route."""

    def __init__(
        self,
        invoker: BackendInvoker,
        deadline: Deadline | None = None,
        call_timeout_s: float | None = None,
    ):
        self._invoker = invoker
        self._deadline = deadline or Deadline()
        self._call_timeout_s = call_timeout_s
        self.calls: list[BackendResponse] = []

    @property
    def deadline(self) -> Deadline:
        return self._deadline

    def _timeout(self) -> tuple[float | None, bool]:
        """Effective wait and whether the caller's deadline is what bounds it."""
        left = self._deadline.remaining()
        if left is not None and (self._call_timeout_s is None or left <= self._call_timeout_s):
            return left, True
        return self._call_timeout_s, False

    async def __call__(self, request: InferenceRequest, backend: BackendDescriptor) -> BackendResponse:
        self._deadline.check()

        timeout, bound_by_deadline = self._timeout()
        start = time.monotonic()
        call = asyncio.ensure_future(self._invoker.invoke(request, backend))
        waiters = {call}
        if self._deadline.token is not None:
            waiters.add(asyncio.ensure_future(self._deadline.token.wait()))

        try:
            done, _ = await asyncio.wait(waiters, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for task in waiters:
                if not task.done():
                    task.cancel()

        latency_ms = int((time.monotonic() - start) * 1000)

        if call not in done:
            self._deadline.check()
            if bound_by_deadline:
                raise RouteCancelled(
                    f"deadline of {self._deadline.timeout_s}s exceeded", tier=backend.tier, backend_id=backend.id,
                )
            logger.warning(f"Backend {backend.id} ({backend.tier}) timed out after {latency_ms}ms")
            raise BackendInvocationFailed(backend.id, backend.tier, TimeoutError(f"no answer after {latency_ms}ms"))

        try:
            response = call.result()
        except asyncio.CancelledError:
            raise RouteCancelled(f"call to {backend.id} was cancelled", tier=backend.tier, backend_id=backend.id)
        except Exception as e:
            logger.warning(f"Backend {backend.id} ({backend.tier}) failed in {latency_ms}ms: {e}")
            raise BackendInvocationFailed(backend.id, backend.tier, e) from e

        if response.cost is None:
            response.cost = cost.estimate(response.input_tokens, response.output_tokens, backend)
        response.latency_ms = latency_ms
        self.calls.append(response)
        logger.debug(
            f"Backend {backend.id} ({backend.tier}) answered in {latency_ms}ms, "
            f"{response.input_tokens}+{response.output_tokens} tokens, {cost.format_cost(response.cost)}"
        )
        return response
