from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class SpeciesType(str, Enum):
    PRODUCER = "PRODUCER"
    CONSUMER = "CONSUMER"


class InteractionType(str, Enum):
    PREDATION = "PREDATION"
    COMPETITION = "COMPETITION"
    SYMBIOSIS = "SYMBIOSIS"


class SimulationStatus(str, Enum):
    SETUP = "SETUP"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class Species(BaseModel):
    id: str = Field(min_length=1, max_length=64)
    name: str = Field(min_length=1, max_length=100)
    type: SpeciesType
    # Mutated every step; input is validated separately by SpeciesInput
    energy_requirement: float = Field(ge=0, le=1000)
    reproduction_rate: float = Field(ge=0, le=1)


class SpeciesInput(Species):
    energy_requirement: float = Field(gt=0, le=1000)


class Environment(BaseModel):
    temperature: float = Field(ge=-10, le=40)
    depth: float = Field(ge=0, le=1000)
    salinity: float = Field(ge=0, le=50)
    light_level: float = Field(ge=0, le=100)


class SpeciesInteraction(BaseModel):
    source_species: str
    target_species: str
    interaction_type: InteractionType
    strength: float = Field(ge=0, le=1)


class EcosystemState(BaseModel):
    species: List[Species] = Field(default_factory=list)
    environment: Environment
    interactions: List[SpeciesInteraction] = Field(default_factory=list)
    stability_score: float = Field(default=0, ge=0, le=100)
    timestamp: float


class SimulationMetrics(BaseModel):
    species_diversity: float = Field(default=0, ge=0, le=100)
    trophic_efficiency: float = Field(default=0, ge=0, le=100)
    environmental_stress: float = Field(default=0, ge=0, le=100)
    stability_history: List[float] = Field(default_factory=list)


class SimulationResult(BaseModel):
    simulation_id: str
    score: float = Field(ge=0, le=100)
    ecosystem_stability: float = Field(ge=0, le=100)
    species_balance: float = Field(ge=0, le=100)
    feedback: List[str] = Field(default_factory=list)
    completed_at: str


class SimulationEvaluation(BaseModel):
    result: SimulationResult
    final_score: int = Field(ge=0, le=100)
    stability_index: float = Field(ge=0, le=1)
    configuration_issue: Optional[Dict[str, Any]] = None
    narrative: Optional[str] = None
