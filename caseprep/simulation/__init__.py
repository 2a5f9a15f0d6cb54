from .ecosystem import EcosystemSimulation
from .evaluator import SimulationEvaluator
from .models import (
    Environment,
    SimulationResult,
    SimulationStatus,
    Species,
    SpeciesType,
)

__all__ = [
    "EcosystemSimulation",
    "SimulationEvaluator",
    "Environment",
    "SimulationResult",
    "SimulationStatus",
    "Species",
    "SpeciesType",
]
