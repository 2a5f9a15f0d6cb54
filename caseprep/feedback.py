import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends
from pymongo.errors import ConnectionFailure

from .cache import Cache, get_cache
from .config import CACHE_TTL, FEEDBACK_MAX_RETRIES, FEEDBACK_RETRY_DELAY
from .database import get_db
from .drills.evaluator import DrillEvaluator
from .errors import AuthorizationError, NotFoundError, ValidationError
from .llm import LLMClient, get_llm
from .models import (
    Drill,
    DrillAttempt,
    DrillStatus,
    Feedback,
    FeedbackContent,
    FeedbackMetric,
    FeedbackType,
    FeedbackUpdate,
    SimulationAttempt,
)
from .simulation import EcosystemSimulation, SimulationEvaluator, SimulationStatus
from .simulation.models import SimulationEvaluation

logger = logging.getLogger(__name__)

FINISHED_SIMULATION_STATUSES = {SimulationStatus.COMPLETED, SimulationStatus.FAILED}


def drill_feedback(attempt: DrillAttempt, evaluation: dict) -> Feedback:
    return Feedback(
        attempt_id=attempt.id,
        user_id=attempt.user_id,
        type=FeedbackType.DRILL,
        content=evaluation["content"],
        score=evaluation["score"],
        metrics=evaluation["metrics"],
        source=evaluation["source"],
    )


def simulation_feedback(attempt: SimulationAttempt, evaluation: SimulationEvaluation, metrics) -> Feedback:
    result = evaluation.result
    strengths = []
    improvements = []
    if result.ecosystem_stability >= 60:
        strengths.append("The ecosystem held a stable configuration")
    else:
        improvements.append("Rebalance species so stability stays above 60")
    if metrics.species_diversity >= 50:
        strengths.append("Good species diversity")
    else:
        improvements.append("Add more species to increase diversity")
    if evaluation.configuration_issue:
        improvements.append(evaluation.configuration_issue["message"])

    return Feedback(
        attempt_id=attempt.id,
        user_id=attempt.user_id,
        type=FeedbackType.SIMULATION,
        content=FeedbackContent(
            summary=" ".join(result.feedback),
            strengths=strengths,
            improvements=improvements,
            detailed_analysis=evaluation.narrative or "",
        ),
        score=evaluation.final_score,
        metrics=[
            FeedbackMetric(name="species_diversity", score=metrics.species_diversity, category="ecosystem"),
            FeedbackMetric(name="trophic_efficiency", score=metrics.trophic_efficiency, category="ecosystem"),
            FeedbackMetric(name="environmental_stress", score=metrics.environmental_stress, category="environment"),
            FeedbackMetric(name="stability", score=result.ecosystem_stability, category="ecosystem"),
        ],
        source="openai" if evaluation.narrative else "local",
    )


class FeedbackService:
    """Creates, caches and updates feedback records for drill and simulation attempts."""

    def __init__(
        self,
        db,
        cache: Cache,
        llm: Optional[LLMClient] = None,
        max_retries: int = FEEDBACK_MAX_RETRIES,
        retry_delay: float = FEEDBACK_RETRY_DELAY,
    ):
        self.db = db
        self.cache = cache
        self.llm = llm
        self.max_retries = max_retries
        self.retry_delay = retry_delay

    @staticmethod
    def _cache_key(feedback_id: str) -> str:
        return f"feedback:{feedback_id}"

    async def save_feedback(self, feedback: Feedback) -> Feedback:
        document = feedback.model_dump(mode="json")
        for attempt in range(1, self.max_retries + 1):
            try:
                await self.db.feedback.insert_one(dict(document))
                break
            except ConnectionFailure as e:
                if attempt == self.max_retries:
                    logger.error(f"Giving up on feedback {feedback.id} after {attempt} attempts: {e}")
                    raise
                logger.warning(f"Saving feedback {feedback.id} failed (attempt {attempt}/{self.max_retries}): {e}")
                await asyncio.sleep(self.retry_delay * attempt)
        await self.cache.set_json(self._cache_key(feedback.id), document, CACHE_TTL["feedback"])
        logger.info(f"Stored {feedback.type.value} feedback {feedback.id} for attempt {feedback.attempt_id}")
        return feedback

    async def generate_feedback(self, attempt_id: str, feedback_type: FeedbackType, user_id: str) -> Feedback:
        """Evaluate a finished attempt again and store the new feedback."""
        if feedback_type == FeedbackType.DRILL:
            feedback = await self._generate_drill_feedback(attempt_id, user_id)
            collection, score_field = self.db.drill_attempts, "score"
        else:
            feedback = await self._generate_simulation_feedback(attempt_id, user_id)
            collection, score_field = self.db.simulation_attempts, "final_score"

        await self.save_feedback(feedback)
        # The attempt score always matches its latest feedback
        await collection.update_one(
            {"id": attempt_id},
            {"$set": {"feedback_id": feedback.id, score_field: feedback.score}},
        )
        if feedback_type == FeedbackType.SIMULATION:
            await self.cache.delete(f"simulation:{attempt_id}")
        await self.cache.delete(f"progress:{user_id}")
        return feedback

    async def _load_attempt(self, collection, attempt_id: str, user_id: str) -> dict:
        document = await collection.find_one({"id": attempt_id}, {"_id": 0})
        if not document:
            raise NotFoundError("Attempt not found", {"attempt_id": attempt_id})
        if document["user_id"] != user_id:
            raise AuthorizationError("You do not have access to this attempt")
        return document

    async def _generate_drill_feedback(self, attempt_id: str, user_id: str) -> Feedback:
        attempt = DrillAttempt(**await self._load_attempt(self.db.drill_attempts, attempt_id, user_id))
        if attempt.status not in (DrillStatus.COMPLETED, DrillStatus.EVALUATED):
            raise ValidationError("Drill attempt has not been submitted yet", {"status": attempt.status.value})

        drill_doc = await self.db.drills.find_one({"id": attempt.drill_id}, {"_id": 0})
        if not drill_doc:
            raise NotFoundError("Drill not found", {"drill_id": attempt.drill_id})

        evaluation = await DrillEvaluator(self.llm).evaluate(Drill(**drill_doc), attempt.response, attempt.time_spent)
        return drill_feedback(attempt, evaluation)

    async def _generate_simulation_feedback(self, attempt_id: str, user_id: str) -> Feedback:
        document = await self._load_attempt(self.db.simulation_attempts, attempt_id, user_id)
        attempt = SimulationAttempt(**{k: v for k, v in document.items() if k != "engine"})
        if attempt.status not in FINISHED_SIMULATION_STATUSES:
            raise ValidationError("Simulation has not finished yet", {"status": attempt.status.value})

        simulation = EcosystemSimulation.from_document(document["engine"])
        evaluation = await SimulationEvaluator(self.llm).evaluate(simulation)
        return simulation_feedback(attempt, evaluation, simulation.metrics)

    async def get_feedback(self, feedback_id: str) -> Feedback:
        cached = await self.cache.get_json(self._cache_key(feedback_id))
        if cached:
            return Feedback(**cached)

        document = await self.db.feedback.find_one({"id": feedback_id}, {"_id": 0})
        if not document:
            raise NotFoundError("Feedback not found", {"feedback_id": feedback_id})
        await self.cache.set_json(self._cache_key(feedback_id), document, CACHE_TTL["feedback"])
        return Feedback(**document)

    async def get_attempt_feedback(self, attempt_id: str) -> List[Feedback]:
        documents = await self.db.feedback.find(
            {"attempt_id": attempt_id}, {"_id": 0}
        ).sort("created_at", -1).to_list(100)
        return [Feedback(**d) for d in documents]

    async def update_feedback(self, feedback_id: str, update: FeedbackUpdate) -> Feedback:
        feedback = await self.get_feedback(feedback_id)

        changes = {}
        if update.content is not None:
            content = feedback.content.model_copy(update=update.content.model_dump(exclude_none=True))
            changes["content"] = content.model_dump(mode="json")
        if update.score is not None:
            changes["score"] = update.score
        if update.metrics is not None:
            changes["metrics"] = [m.model_dump(mode="json") for m in update.metrics]
        if not changes:
            return feedback

        changes["updated_at"] = datetime.now(timezone.utc).isoformat()
        await self.db.feedback.update_one({"id": feedback_id}, {"$set": changes})
        await self.cache.delete(self._cache_key(feedback_id))
        return await self.get_feedback(feedback_id)


def get_feedback_service(
    db=Depends(get_db),
    cache: Cache = Depends(get_cache),
    llm: LLMClient = Depends(get_llm),
) -> FeedbackService:
    return FeedbackService(db, cache, llm)
