from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..errors import AuthorizationError, NotFoundError
from ..feedback import FeedbackService, get_feedback_service
from ..models import Feedback, FeedbackRequest, FeedbackUpdate, User

router = APIRouter(prefix="/feedback", tags=["feedback"])


async def _get_own_feedback(feedback_id: str, current_user: User, service: FeedbackService) -> Feedback:
    feedback = await service.get_feedback(feedback_id)
    if feedback.user_id != current_user.id:
        raise AuthorizationError("You do not have access to this feedback")
    return feedback


@router.post("", response_model=Feedback)
async def generate_feedback(
    request: FeedbackRequest,
    current_user: User = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    """Re-evaluate a finished attempt and store new feedback for it"""
    return await service.generate_feedback(request.attempt_id, request.type, current_user.id)


@router.get("/attempts/{attempt_id}", response_model=List[Feedback])
async def get_attempt_feedback(
    attempt_id: str,
    current_user: User = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    feedback = await service.get_attempt_feedback(attempt_id)
    if not feedback:
        raise NotFoundError("No feedback for this attempt", {"attempt_id": attempt_id})
    if any(f.user_id != current_user.id for f in feedback):
        raise AuthorizationError("You do not have access to this feedback")
    return feedback


@router.get("/{feedback_id}", response_model=Feedback)
async def get_feedback(
    feedback_id: str,
    current_user: User = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    return await _get_own_feedback(feedback_id, current_user, service)


@router.patch("/{feedback_id}", response_model=Feedback)
async def update_feedback(
    feedback_id: str,
    update: FeedbackUpdate,
    current_user: User = Depends(get_current_user),
    service: FeedbackService = Depends(get_feedback_service),
):
    await _get_own_feedback(feedback_id, current_user, service)
    return await service.update_feedback(feedback_id, update)
