"""Pick one backend inside a tier."""

from loguru import logger

from tier_router import cost
from tier_router.catalog import BackendCatalog
from tier_router.errors import NoBackendAvailable
from tier_router.models import BackendDescriptor, TaskType, Tier


class BackendPicker:
    """Cheapest capable backend of a tier, falling back to the free tier.

    Order of preference:
      1. Capable backends of ``tier``
      2. Any backend of ``tier``
      3. Capable backends of the catalog's free tier
      4. Any backend of the free tier
    """

    def pick(self, catalog: BackendCatalog, tier: Tier, task_type: TaskType) -> tuple[BackendDescriptor, Tier]:
        """Return the chosen backend and the tier it was actually taken from."""
        chosen = self._pick_in_tier(catalog, tier, task_type)
        if chosen:
            return chosen, tier

        free = catalog.free_tier
        if tier != free:
            logger.info(f"Picker: tier {tier} unavailable, falling back to {free} (free tier)")
            chosen = self._pick_in_tier(catalog, free, task_type)
            if chosen:
                return chosen, free

        logger.warning(f"Picker: no backend in {tier} or {free} for {task_type.value}")
        raise NoBackendAvailable(tier, task_type)

    @staticmethod
    def _pick_in_tier(catalog: BackendCatalog, tier: Tier, task_type: TaskType) -> BackendDescriptor | None:
        backends = catalog.backends_for_tier(tier)
        if not backends:
            return None

        required = task_type.required_capability
        capable = [b for b in backends if b.supports(required)]
        if not capable:
            logger.warning(f"Picker: no {task_type.value}-capable backend in {tier}, using any")
            capable = backends

        selected = cost.cheapest(capable)
        logger.debug(
            f"Picker: {selected.id} from {tier} "
            f"(relative_cost={selected.relative_cost}, {len(capable)} candidates)"
        )
        return selected
