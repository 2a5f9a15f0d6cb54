from typing import List

from fastapi import APIRouter, Depends

from ..auth import get_current_user
from ..feedback import FeedbackService, get_feedback_service
from ..models import (
    EnvironmentUpdate,
    SimulationAttempt,
    SimulationStart,
    SpeciesUpdate,
    StepResponse,
    User,
)
from ..simulation.presets import ENVIRONMENT_PRESETS, SPECIES_CATALOG
from ..simulation.service import SimulationService, get_simulation_service

router = APIRouter(prefix="/simulations", tags=["simulations"])


@router.get("/species")
async def list_species():
    return SPECIES_CATALOG


@router.get("/environments")
async def list_environments():
    return ENVIRONMENT_PRESETS


@router.post("", response_model=SimulationAttempt)
async def start_simulation(
    payload: SimulationStart,
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
):
    return await service.start(current_user, payload)


@router.get("", response_model=List[SimulationAttempt])
async def list_simulations(
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
):
    return await service.list_attempts(current_user)


@router.get("/{attempt_id}", response_model=SimulationAttempt)
async def get_simulation(
    attempt_id: str,
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
):
    return await service.get(current_user, attempt_id)


@router.put("/{attempt_id}/species", response_model=SimulationAttempt)
async def update_species(
    attempt_id: str,
    payload: SpeciesUpdate,
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
):
    return await service.update_species(current_user, attempt_id, payload.species)


@router.put("/{attempt_id}/environment", response_model=SimulationAttempt)
async def update_environment(
    attempt_id: str,
    payload: EnvironmentUpdate,
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
):
    return await service.update_environment(current_user, attempt_id, payload.environment)


@router.post("/{attempt_id}/step", response_model=StepResponse)
async def step_simulation(
    attempt_id: str,
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
):
    attempt, finished = await service.step(current_user, attempt_id)
    return StepResponse(attempt=attempt, finished=finished)


@router.post("/{attempt_id}/complete", response_model=SimulationAttempt)
async def complete_simulation(
    attempt_id: str,
    current_user: User = Depends(get_current_user),
    service: SimulationService = Depends(get_simulation_service),
    feedback_service: FeedbackService = Depends(get_feedback_service),
):
    """Evaluate the attempt and store its final score and feedback"""
    return await service.complete(current_user, attempt_id, feedback_service)
