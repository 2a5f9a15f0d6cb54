import logging
import time
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from fastapi import Depends

from ..cache import Cache, get_cache
from ..config import CACHE_TTL
from ..database import get_db
from ..errors import AuthorizationError, NotFoundError, ValidationError
from ..feedback import FeedbackService, simulation_feedback
from ..llm import LLMClient, get_llm
from ..models import SimulationAttempt, SimulationStart, User
from ..subscriptions import enforce_daily_limit, require_active_subscription, utc_day
from .ecosystem import EcosystemSimulation
from .evaluator import SimulationEvaluator
from .models import Environment, SimulationStatus, SpeciesInput
from .presets import ENVIRONMENT_PRESETS, get_environment_preset

logger = logging.getLogger(__name__)

DEFAULT_ENVIRONMENT_PRESET = "coastal-waters"


class SimulationService:
    """Attempt lifecycle: SETUP -> RUNNING -> COMPLETED | FAILED, persisted after every change."""

    def __init__(self, db, cache: Cache, llm: Optional[LLMClient] = None, clock: Callable[[], float] = time.time):
        self.db = db
        self.cache = cache
        self.llm = llm
        self.clock = clock

    @staticmethod
    def _cache_key(attempt_id: str) -> str:
        return f"simulation:{attempt_id}"

    async def _save(self, attempt: SimulationAttempt, simulation: EcosystemSimulation) -> None:
        document = attempt.model_dump(mode="json")
        await self.db.simulation_attempts.replace_one(
            {"id": attempt.id},
            dict(document, engine=simulation.to_document()),
            upsert=True,
        )
        await self.cache.set_json(self._cache_key(attempt.id), document, CACHE_TTL["simulation"])

    async def _load(self, user: User, attempt_id: str) -> Tuple[SimulationAttempt, EcosystemSimulation]:
        document = await self.db.simulation_attempts.find_one({"id": attempt_id}, {"_id": 0})
        if not document:
            raise NotFoundError("Simulation attempt not found", {"attempt_id": attempt_id})
        if document["user_id"] != user.id:
            raise AuthorizationError("You do not have access to this simulation")
        engine = document.pop("engine")
        return SimulationAttempt(**document), EcosystemSimulation.from_document(engine, clock=self.clock)

    @staticmethod
    def _require_setup(attempt: SimulationAttempt) -> None:
        if attempt.status != SimulationStatus.SETUP:
            raise ValidationError(
                "Simulation can only be configured before the first step",
                {"status": attempt.status.value},
            )

    async def start(self, user: User, payload: SimulationStart) -> SimulationAttempt:
        require_active_subscription(user)
        await enforce_daily_limit(self.db, user, "simulation_attempts_per_day")

        preset_id = payload.environment_preset or DEFAULT_ENVIRONMENT_PRESET
        preset = get_environment_preset(preset_id)
        if preset is None:
            raise ValidationError(
                f"Unknown environment preset '{preset_id}'",
                {"available": [p["id"] for p in ENVIRONMENT_PRESETS]},
            )

        attempt = SimulationAttempt(
            user_id=user.id,
            time_limit=payload.time_limit,
            environment=Environment(**preset["environment"]),
            day=utc_day(),
        )
        simulation = EcosystemSimulation(attempt.id, attempt.time_limit, clock=self.clock)
        await self._save(attempt, simulation)
        logger.info(f"User {user.id} started simulation {attempt.id} ({preset_id})")
        return attempt

    async def update_species(self, user: User, attempt_id: str, species: List[SpeciesInput]) -> SimulationAttempt:
        attempt, simulation = await self._load(user, attempt_id)
        self._require_setup(attempt)

        simulation.initialize(species, attempt.environment)
        attempt.state = simulation.state
        attempt.metrics = simulation.metrics
        await self._save(attempt, simulation)
        return attempt

    async def update_environment(self, user: User, attempt_id: str, environment: Environment) -> SimulationAttempt:
        attempt, simulation = await self._load(user, attempt_id)
        self._require_setup(attempt)

        attempt.environment = environment
        if simulation.initialized:
            simulation.initialize(simulation.state.species, environment)
            attempt.state = simulation.state
            attempt.metrics = simulation.metrics
        await self._save(attempt, simulation)
        return attempt

    async def step(self, user: User, attempt_id: str) -> Tuple[SimulationAttempt, bool]:
        attempt, simulation = await self._load(user, attempt_id)
        if attempt.status not in (SimulationStatus.SETUP, SimulationStatus.RUNNING):
            raise ValidationError("Simulation has already finished", {"status": attempt.status.value})
        if not simulation.initialized:
            raise ValidationError("Add species before running the simulation")

        if attempt.status == SimulationStatus.SETUP:
            attempt.status = SimulationStatus.RUNNING

        finished = simulation.step()
        attempt.steps += 1
        attempt.state = simulation.state
        attempt.metrics = simulation.metrics
        if finished:
            self._finish(attempt, simulation)
            logger.info(f"Simulation {attempt.id} finished after {attempt.steps} steps: {attempt.status.value}")

        await self._save(attempt, simulation)
        return attempt, finished

    @staticmethod
    def _finish(attempt: SimulationAttempt, simulation: EcosystemSimulation) -> None:
        simulation.finish()
        attempt.status = SimulationStatus.FAILED if simulation.collapsed else SimulationStatus.COMPLETED
        attempt.result = simulation.result()
        attempt.completed_at = datetime.fromtimestamp(simulation.finished_at, tz=timezone.utc)

    async def complete(self, user: User, attempt_id: str, feedback_service: FeedbackService) -> SimulationAttempt:
        """Evaluate a running or finished attempt and store its score and feedback."""
        attempt, simulation = await self._load(user, attempt_id)
        if attempt.status == SimulationStatus.SETUP:
            raise ValidationError("Simulation has not started yet")
        if attempt.feedback_id:
            return attempt

        if attempt.status == SimulationStatus.RUNNING:
            self._finish(attempt, simulation)

        evaluation = await SimulationEvaluator(self.llm).evaluate(simulation)
        attempt.result = evaluation.result
        attempt.final_score = evaluation.final_score

        feedback = await feedback_service.save_feedback(
            simulation_feedback(attempt, evaluation, simulation.metrics)
        )
        attempt.feedback_id = feedback.id
        await self._save(attempt, simulation)
        await self.cache.delete(f"progress:{user.id}")
        logger.info(f"Simulation {attempt.id} scored {attempt.final_score}")
        return attempt

    async def get(self, user: User, attempt_id: str) -> SimulationAttempt:
        cached = await self.cache.get_json(self._cache_key(attempt_id))
        if cached:
            if cached["user_id"] != user.id:
                raise AuthorizationError("You do not have access to this simulation")
            return SimulationAttempt(**cached)
        attempt, _ = await self._load(user, attempt_id)
        return attempt

    async def list_attempts(self, user: User) -> List[SimulationAttempt]:
        documents = await self.db.simulation_attempts.find(
            {"user_id": user.id}, {"_id": 0, "engine": 0}
        ).sort("started_at", -1).to_list(1000)
        return [SimulationAttempt(**d) for d in documents]


def get_simulation_service(
    db=Depends(get_db),
    cache: Cache = Depends(get_cache),
    llm: LLMClient = Depends(get_llm),
) -> SimulationService:
    return SimulationService(db, cache, llm)
