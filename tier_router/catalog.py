"""Read-only snapshot of the backend catalog.

The catalog collaborator (database, admin dashboard, upstream free-model
discovery) owns the data. The router only ever sees an immutable snapshot:
administrative changes build a new ``BackendCatalog`` that is swapped in
between routing calls, so no decision observes a backend flipping mid-flight.
"""

from collections.abc import Iterable, Mapping
from dataclasses import replace
from types import MappingProxyType

from tier_router.models import TIERS_IN_ORDER, BackendDescriptor, Tier, next_tier


class BackendCatalog:
    """Enabled backends per tier, in catalog order."""

    def __init__(
        self,
        backends: Iterable[BackendDescriptor] = (),
        tier_enabled: Mapping[Tier, bool] | None = None,
        free_tiers: Iterable[Tier] | None = None,
    ):
        self._backends: tuple[BackendDescriptor, ...] = tuple(backends)
        if free_tiers is None:
            free_tiers = (TIERS_IN_ORDER[0],)
        self._free_tiers: frozenset[Tier] = frozenset(free_tiers)
        flags = {tier: True for tier in TIERS_IN_ORDER}
        flags.update(tier_enabled or {})
        self._tier_enabled = MappingProxyType(flags)

    def __len__(self) -> int:
        return len(self._backends)

    def __repr__(self) -> str:
        return f"BackendCatalog({len(self._backends)} backends)"

    @property
    def backends(self) -> tuple[BackendDescriptor, ...]:
        return self._backends

    @property
    def free_tiers(self) -> frozenset[Tier]:
        return self._free_tiers

    @property
    def free_tier(self) -> Tier:
        """Cheapest free tier: target of every free-tier fallback. T0 when none is configured."""
        if not self._free_tiers:
            return TIERS_IN_ORDER[0]
        return min(self._free_tiers, key=lambda t: t.rank)

    def is_free(self, tier: Tier) -> bool:
        return tier in self._free_tiers

    def is_tier_enabled(self, tier: Tier) -> bool:
        return self._tier_enabled.get(tier, True)

    def next_tier(self, tier: Tier) -> Tier | None:
        return next_tier(tier)

    def has_backends(self, tier: Tier) -> bool:
        """True when ``tier`` is enabled and has at least one enabled backend."""
        return bool(self.backends_for_tier(tier))

    def backends_for_tier(self, tier: Tier) -> list[BackendDescriptor]:
        """Enabled backends of an enabled tier, sorted by priority ascending."""
        if not self.is_tier_enabled(tier):
            return []
        models = [b for b in self._backends if b.tier == tier and b.enabled]
        # sorted() is stable: equal priorities keep catalog order
        return sorted(models, key=lambda b: b.priority)

    def get(self, backend_id: str) -> BackendDescriptor | None:
        for backend in self._backends:
            if backend.id == backend_id:
                return backend
        return None

    # --- Snapshot derivation ---

    def with_backend_enabled(self, backend_id: str, enabled: bool) -> "BackendCatalog":
        backends = [
            replace(b, enabled=enabled) if b.id == backend_id else b
            for b in self._backends
        ]
        return BackendCatalog(backends, self._tier_enabled, self._free_tiers)

    def with_tier_enabled(self, tier: Tier, enabled: bool) -> "BackendCatalog":
        flags = dict(self._tier_enabled)
        flags[tier] = enabled
        return BackendCatalog(self._backends, flags, self._free_tiers)

    def with_tier_flags(self, flags: Mapping[Tier, bool]) -> "BackendCatalog":
        """Apply configured per-tier switches; a tier stays on only if both agree."""
        merged = {tier: self.is_tier_enabled(tier) and flags.get(tier, True) for tier in TIERS_IN_ORDER}
        if merged == dict(self._tier_enabled):
            return self
        return BackendCatalog(self._backends, merged, self._free_tiers)

    def with_free_tiers(self, free_tiers: Iterable[Tier]) -> "BackendCatalog":
        tiers = frozenset(free_tiers)
        if tiers == self._free_tiers:
            return self
        return BackendCatalog(self._backends, self._tier_enabled, tiers)

    def with_free_entries(self, entries: Iterable[BackendDescriptor]) -> "BackendCatalog":
        """Append upstream-discovered free models to the free tier."""
        known = {b.id for b in self._backends}
        extra = [
            replace(e, tier=self.free_tier)
            for e in entries
            if e.id not in known
        ]
        return BackendCatalog([*self._backends, *extra], self._tier_enabled, self._free_tiers)
