"""Cost estimation and ranking for backends. Pure functions, no side effects."""

from collections.abc import Iterable

from tier_router.models import BackendDescriptor


def estimate(input_tokens: int, output_tokens: int, backend: BackendDescriptor) -> float:
    """USD cost of a call. Unknown prices count as free, never as an error."""
    if backend.price_per_1k_input is None or backend.price_per_1k_output is None:
        return 0.0
    input_cost = (input_tokens / 1000) * backend.price_per_1k_input
    output_cost = (output_tokens / 1000) * backend.price_per_1k_output
    return input_cost + output_cost


def compare_costs(a: BackendDescriptor, b: BackendDescriptor) -> float:
    """Negative when ``a`` ranks cheaper than ``b``."""
    return a.relative_cost - b.relative_cost


def cheapest(backends: Iterable[BackendDescriptor]) -> BackendDescriptor | None:
    """Backend with the lowest relative cost; ties keep catalog order."""
    best: BackendDescriptor | None = None
    for backend in backends:
        if best is None or backend.relative_cost < best.relative_cost:
            best = backend
    return best


def format_cost(cost: float) -> str:
    if cost == 0:
        return "Free"
    if cost < 0.001:
        return f"${cost:.6f}"
    if cost < 0.01:
        return f"${cost:.4f}"
    return f"${cost:.2f}"
