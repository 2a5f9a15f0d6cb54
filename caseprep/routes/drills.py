import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..cache import Cache, get_cache
from ..config import CACHE_TTL, DRILL_TIME_LIMITS, MAX_CONCURRENT_DRILL_ATTEMPTS
from ..database import get_db
from ..drills import DrillEvaluator
from ..errors import AuthorizationError, NotFoundError, RateLimitError, ValidationError
from ..feedback import FeedbackService, drill_feedback, get_feedback_service
from ..llm import LLMClient, get_llm
from ..models import (
    Drill,
    DrillAttempt,
    DrillCategory,
    DrillDifficulty,
    DrillPublic,
    DrillResult,
    DrillStatus,
    DrillSubmission,
    DrillType,
    User,
)
from ..subscriptions import enforce_daily_limit, require_active_subscription, utc_day

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/drills", tags=["drills"])


async def _get_drill(drill_id: str, db, cache: Cache) -> Drill:
    cache_key = f"drill:{drill_id}"
    cached = await cache.get_json(cache_key)
    if cached:
        return Drill(**cached)

    drill = await db.drills.find_one({"id": drill_id}, {"_id": 0})
    if not drill:
        raise NotFoundError("Drill not found", {"drill_id": drill_id})
    await cache.set_json(cache_key, drill, CACHE_TTL["drill"])
    return Drill(**drill)


async def _get_own_attempt(attempt_id: str, current_user: User, db) -> DrillAttempt:
    attempt = await db.drill_attempts.find_one({"id": attempt_id}, {"_id": 0})
    if not attempt:
        raise NotFoundError("Drill attempt not found", {"attempt_id": attempt_id})
    if attempt["user_id"] != current_user.id:
        raise AuthorizationError("You do not have access to this attempt")
    return DrillAttempt(**attempt)


@router.get("", response_model=List[DrillPublic])
async def list_drills(
    type: Optional[DrillType] = None,
    difficulty: Optional[DrillDifficulty] = None,
    industry: Optional[str] = None,
    db=Depends(get_db),
):
    query = {}
    if type:
        query["type"] = type.value
    if difficulty:
        query["difficulty"] = difficulty.value
    if industry:
        query["industry"] = industry
    drills = await db.drills.find(query, {"_id": 0}).to_list(1000)
    return [DrillPublic(**drill) for drill in drills]


@router.get("/categories", response_model=List[DrillCategory])
async def list_categories(db=Depends(get_db)):
    categories = []
    for drill_type in DrillType:
        count = await db.drills.count_documents({"type": drill_type.value})
        categories.append(DrillCategory(
            type=drill_type,
            name=drill_type.value.replace("_", " ").title(),
            time_limit=DRILL_TIME_LIMITS[drill_type.value],
            drill_count=count,
        ))
    return categories


@router.get("/attempts/history", response_model=List[DrillAttempt])
async def attempt_history(current_user: User = Depends(get_current_user), db=Depends(get_db)):
    attempts = await db.drill_attempts.find(
        {"user_id": current_user.id}, {"_id": 0}
    ).sort("started_at", -1).to_list(1000)
    return [DrillAttempt(**attempt) for attempt in attempts]


@router.get("/attempts/{attempt_id}", response_model=DrillAttempt)
async def get_attempt(attempt_id: str, current_user: User = Depends(get_current_user), db=Depends(get_db)):
    return await _get_own_attempt(attempt_id, current_user, db)


@router.post("/attempts/{attempt_id}/submit", response_model=DrillResult)
async def submit_attempt(
    attempt_id: str,
    submission: DrillSubmission,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
    cache: Cache = Depends(get_cache),
    llm: LLMClient = Depends(get_llm),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    attempt = await _get_own_attempt(attempt_id, current_user, db)
    if attempt.status != DrillStatus.IN_PROGRESS:
        raise ValidationError("Drill attempt is not in progress", {"status": attempt.status.value})

    drill = await _get_drill(attempt.drill_id, db, cache)

    completed_at = datetime.now(timezone.utc)
    time_spent = max(0.0, (completed_at - attempt.started_at).total_seconds())
    evaluation = await DrillEvaluator(llm).evaluate(drill, submission.response, time_spent)

    attempt.response = submission.response
    attempt.time_spent = round(time_spent, 1)
    attempt.completed_at = completed_at
    attempt.score = evaluation["score"]
    feedback = await feedback_service.save_feedback(drill_feedback(attempt, evaluation))
    attempt.feedback_id = feedback.id
    attempt.status = DrillStatus.EVALUATED

    await db.drill_attempts.replace_one({"id": attempt.id}, attempt.model_dump(mode="json"))
    await cache.delete(f"progress:{current_user.id}")
    logger.info(f"Drill attempt {attempt.id} evaluated: {attempt.score} ({feedback.source})")

    return DrillResult(attempt=attempt, feedback=feedback)


@router.get("/{drill_id}", response_model=DrillPublic)
async def get_drill(drill_id: str, db=Depends(get_db), cache: Cache = Depends(get_cache)):
    drill = await _get_drill(drill_id, db, cache)
    return DrillPublic(**drill.model_dump())


@router.post("/{drill_id}/attempts", response_model=DrillAttempt)
async def start_attempt(
    drill_id: str,
    current_user: User = Depends(get_current_user),
    db=Depends(get_db),
    cache: Cache = Depends(get_cache),
):
    require_active_subscription(current_user)
    drill = await _get_drill(drill_id, db, cache)

    in_progress = await db.drill_attempts.count_documents(
        {"user_id": current_user.id, "status": DrillStatus.IN_PROGRESS.value}
    )
    if in_progress >= MAX_CONCURRENT_DRILL_ATTEMPTS:
        raise RateLimitError(
            f"At most {MAX_CONCURRENT_DRILL_ATTEMPTS} drill attempts can be in progress",
            details={"in_progress": in_progress},
        )
    await enforce_daily_limit(db, current_user, "drill_attempts_per_day")

    attempt = DrillAttempt(
        user_id=current_user.id,
        drill_id=drill.id,
        drill_type=drill.type,
        day=utc_day(),
    )
    await db.drill_attempts.insert_one(attempt.model_dump(mode="json"))
    return attempt
