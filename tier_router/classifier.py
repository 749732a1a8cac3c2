"""Complexity classification: one tiny free-tier call, heuristic fallback."""

from loguru import logger

from tier_router import cost
from tier_router.catalog import BackendCatalog
from tier_router.errors import RouteCancelled
from tier_router.heuristics import classify_heuristic
from tier_router.invocation import BackendCall
from tier_router.models import Capability, Complexity, InferenceRequest

CLASSIFICATION_PROMPT = """Analyze this user message and classify its complexity level.

USER MESSAGE: "{message}"

Classify as:
- "low": Simple greetings, short questions (5 words or fewer), casual chat
- "medium": General questions, explanations, standard requests
- "high": Complex analysis, code tasks, multi-step reasoning, technical deep-dives

Respond with ONLY ONE WORD: low, medium, or high"""


class ComplexityClassifier:
    def __init__(self, max_tokens: int = 10):
        self.max_tokens = max_tokens

    async def classify(self, text: str, catalog: BackendCatalog, call: BackendCall) -> Complexity:
        """Ask the cheapest general backend of the free tier; never raises except on cancel."""
        candidates = [
            b for b in catalog.backends_for_tier(catalog.free_tier)
            if b.supports(Capability.GENERAL)
        ]
        backend = cost.cheapest(candidates)
        if backend is None:
            logger.warning("Classifier: no free-tier backend, using heuristics")
            return classify_heuristic(text)

        request = InferenceRequest.from_prompt(
            CLASSIFICATION_PROMPT.format(message=text),
            max_tokens=self.max_tokens,
            temperature=0.0,
        )
        try:
            response = await call(request, backend)
        except RouteCancelled:
            raise
        except Exception as e:
            logger.warning(f"Classifier: {backend.id} failed ({e}), using heuristics")
            return classify_heuristic(text)

        answer = response.content.strip().lower()
        try:
            complexity = Complexity(answer)
        except ValueError:
            logger.warning(f"Classifier: invalid answer {answer[:40]!r} from {backend.id}, using heuristics")
            return classify_heuristic(text)

        logger.info(f"Classifier: {complexity.value} by {backend.id} for {text[:50]!r}")
        return complexity
