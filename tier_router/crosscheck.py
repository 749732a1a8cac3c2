"""Primary → reviewer → arbitrator cross-check inside one tier."""

from loguru import logger

from tier_router.catalog import BackendCatalog
from tier_router.heuristics import ConflictDetector, KeywordConflictDetector
from tier_router.invocation import BackendCall
from tier_router.models import CrossCheckResult, InferenceRequest, TaskType, Tier
from tier_router.picker import BackendPicker

REVIEW_PROMPT = """Review the following solution and identify any issues, bugs, or improvements:

SOLUTION TO REVIEW:
{solution}

ORIGINAL TASK:
{task}

Please provide:
1. Overall assessment (good/acceptable/needs-improvement)
2. Specific issues found (if any)
3. Suggestions for improvement (if any)
"""

ARBITRATOR_PROMPT = """You are an arbitrator. Review these two solutions and decide which is better, or provide an improved solution.

SOLUTION A:
{solution}

REVIEW OF SOLUTION A:
{review}

ORIGINAL TASK:
{task}

Provide the best solution:"""


class CrossChecker:
    """Validate an answer with a second (and maybe third) backend of the same tier.

    Calls are strictly sequential: each prompt embeds the previous output.
    Any call failure propagates; no partial result is ever returned.
    """

    def __init__(
        self,
        picker: BackendPicker | None = None,
        detector: ConflictDetector | None = None,
    ):
        self._picker = picker or BackendPicker()
        self._detector = detector or KeywordConflictDetector()

    async def run(
        self,
        request: InferenceRequest,
        tier: Tier,
        task_type: TaskType,
        catalog: BackendCatalog,
        call: BackendCall,
    ) -> CrossCheckResult:
        backends = catalog.backends_for_tier(tier)

        if len(backends) < 2:
            backend, used_tier = self._picker.pick(catalog, tier, task_type)
            logger.info(f"Cross-check: fewer than 2 backends in {tier}, single call to {backend.id}")
            response = await call(request, backend)
            return CrossCheckResult(
                primary=response,
                consensus=response.content,
                tier=used_tier,
                routing_summary=f"Single backend: {backend.id} (tier {used_tier})",
            )

        primary_backend, review_backend = backends[0], backends[1]
        logger.info(f"Cross-check: primary={primary_backend.id} reviewer={review_backend.id} tier={tier}")

        primary = await call(request, primary_backend)

        review_request = request.with_prompt(
            REVIEW_PROMPT.format(solution=primary.content, task=request.prompt)
        )
        review = await call(review_request, review_backend)

        conflicts = self._detector.detect(review.content)
        consensus = primary.content
        arbitrator = None

        if conflicts and len(backends) >= 3:
            arbitrator_backend = backends[2]
            logger.info(f"Cross-check: conflicts detected, calling arbitrator {arbitrator_backend.id}")
            arbitrator_request = request.with_prompt(
                ARBITRATOR_PROMPT.format(solution=primary.content, review=review.content, task=request.prompt)
            )
            arbitrator = await call(arbitrator_request, arbitrator_backend)
            consensus = arbitrator.content
        elif conflicts:
            logger.warning(f"Cross-check: conflicts in {tier} and no arbitrator available")

        if arbitrator:
            summary = (
                f"Cross-check (3 backends): {primary_backend.id}, {review_backend.id}, "
                f"{arbitrator.backend_id} (tier {tier})"
            )
        else:
            summary = f"Cross-check (2 backends): {primary_backend.id}, {review_backend.id} (tier {tier})"

        return CrossCheckResult(
            primary=primary,
            consensus=consensus,
            tier=tier,
            review=review,
            arbitrator=arbitrator,
            conflicts=conflicts,
            routing_summary=summary,
        )
