import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from ..config import SIMULATION_MAX_SPECIES, SIMULATION_MIN_SPECIES
from ..errors import ValidationError
from .models import (
    EcosystemState,
    Environment,
    InteractionType,
    SimulationMetrics,
    SimulationResult,
    Species,
    SpeciesInput,
    SpeciesInteraction,
    SpeciesType,
)

logger = logging.getLogger(__name__)

# Interaction rule table: strength per classification
PREDATION_STRENGTH = 0.7
COMPETITION_STRENGTH = 0.3
SYMBIOSIS_STRENGTH = 0.5

# Conditions the environment is scored against, with the deviation scale for each
OPTIMAL_CONDITIONS = {
    "temperature": (20, 30),
    "depth": (500, 500),
    "salinity": (25, 25),
    "light_level": (50, 50),
}

STABILITY_WEIGHTS = {
    "diversity": 0.3,
    "trophic": 0.3,
    "environmental": 0.4,
}

MAX_ENERGY = 1000
COMPLETION_STABILITY = 95


def round_half_up(value: float) -> int:
    # Half-up rounding; round() would round half to even
    return int(math.floor(value + 0.5))


def _clamp(value: float, low: float = 0, high: float = 100) -> float:
    return max(low, min(high, value))


def classify_interaction(source: Species, target: Species) -> SpeciesInteraction:
    if source.type == SpeciesType.PRODUCER and target.type == SpeciesType.CONSUMER:
        interaction_type, strength = InteractionType.PREDATION, PREDATION_STRENGTH
    elif source.type == target.type:
        interaction_type, strength = InteractionType.COMPETITION, COMPETITION_STRENGTH
    else:
        interaction_type, strength = InteractionType.SYMBIOSIS, SYMBIOSIS_STRENGTH
    return SpeciesInteraction(
        source_species=source.id,
        target_species=target.id,
        interaction_type=interaction_type,
        strength=strength,
    )


def build_interactions(species: List[Species]) -> List[SpeciesInteraction]:
    """One interaction per ordered pair of distinct species."""
    return [
        classify_interaction(source, target)
        for source in species
        for target in species
        if source.id != target.id
    ]


def _mean_deviation(environment: Environment) -> float:
    deviations = [
        abs(getattr(environment, name) - optimum) / scale
        for name, (optimum, scale) in OPTIMAL_CONDITIONS.items()
    ]
    return sum(deviations) / len(deviations)


def environmental_score(environment: Environment) -> float:
    return _clamp(100 - _mean_deviation(environment) * 100)


def environmental_stress(environment: Environment) -> float:
    return _clamp(_mean_deviation(environment) * 100)


def species_diversity(species: List[Species]) -> float:
    return min(100, len(species) / 10 * 100)


def _energy_by_type(species: Iterable[Species]) -> Dict[SpeciesType, float]:
    totals = {SpeciesType.PRODUCER: 0.0, SpeciesType.CONSUMER: 0.0}
    for s in species:
        totals[s.type] += s.energy_requirement
    return totals


def trophic_efficiency(species: List[Species]) -> float:
    totals = _energy_by_type(species)
    producer_energy = totals[SpeciesType.PRODUCER]
    if producer_energy <= 0:
        return 0
    return min(100, totals[SpeciesType.CONSUMER] / producer_energy * 100)


def species_balance(species: List[Species]) -> float:
    totals = _energy_by_type(species)
    producer_energy = totals[SpeciesType.PRODUCER]
    ratio = totals[SpeciesType.CONSUMER] / producer_energy if producer_energy > 0 else 0
    return min(100, abs(1 - ratio) * 100)


def generate_feedback(score: float, balance: float, stress: float) -> List[str]:
    feedback = []
    if score >= 80:
        feedback.append("Excellent ecosystem management! The system shows high stability and balance.")
    elif score >= 60:
        feedback.append("Good ecosystem balance, but there's room for improvement in species interactions.")
    else:
        feedback.append("The ecosystem needs attention to achieve better stability.")

    if balance < 50:
        feedback.append("Producer-consumer ratio is suboptimal. Consider adjusting species populations.")

    if stress > 70:
        feedback.append("High environmental stress detected. Review environmental parameters.")

    return feedback


class EcosystemSimulation:
    """
    Per-attempt ecosystem model.

    ``initialize`` sets up species, environment and interactions; ``step``
    advances one tick and returns True once an end condition is reached;
    ``result`` scores the current state.
    """

    def __init__(
        self,
        simulation_id: str,
        time_limit: float,
        max_species: int = SIMULATION_MAX_SPECIES,
        clock: Callable[[], float] = time.time,
    ):
        self.simulation_id = simulation_id
        self.time_limit = time_limit
        self.max_species = max_species
        self.clock = clock
        self.started_at = clock()
        self.finished_at: Optional[float] = None
        self.state: Optional[EcosystemState] = None
        self.metrics = SimulationMetrics()

    @property
    def initialized(self) -> bool:
        return self.state is not None

    def initialize(
        self,
        species: List[Union[Species, Dict[str, Any]]],
        environment: Union[Environment, Dict[str, Any]],
    ) -> EcosystemState:
        try:
            validated_species = [SpeciesInput.model_validate(_as_dict(s)) for s in species]
            validated_environment = Environment.model_validate(_as_dict(environment))
        except PydanticValidationError as e:
            errors = [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
            raise ValidationError("Invalid simulation setup", {"errors": errors})

        count = len(validated_species)
        if count < SIMULATION_MIN_SPECIES:
            raise ValidationError(
                f"Minimum of {SIMULATION_MIN_SPECIES} species required for simulation",
                {"species_count": count},
            )
        if count > self.max_species:
            raise ValidationError(
                f"Maximum of {self.max_species} species allowed in a simulation",
                {"species_count": count},
            )
        ids = [s.id for s in validated_species]
        if len(set(ids)) != len(ids):
            raise ValidationError("Species ids must be unique", {"species_ids": ids})

        current = [Species.model_validate(s.model_dump()) for s in validated_species]
        initial_score = _clamp(
            round_half_up((species_diversity(current) + environmental_score(validated_environment)) / 2)
        )
        self.state = EcosystemState(
            species=current,
            environment=validated_environment,
            interactions=build_interactions(current),
            stability_score=initial_score,
            timestamp=self.clock(),
        )
        self.metrics = SimulationMetrics(
            species_diversity=species_diversity(current),
            trophic_efficiency=trophic_efficiency(current),
            environmental_stress=environmental_stress(validated_environment),
            stability_history=[initial_score],
        )
        return self.state

    def require_state(self) -> EcosystemState:
        if self.state is None:
            raise ValidationError("Simulation has not been initialized")
        return self.state

    def population_change(self, species: Species) -> float:
        state = self.require_state()
        base_change = species.reproduction_rate * 0.1
        interaction_effect = sum(
            i.strength * 0.05 for i in state.interactions if i.source_species == species.id
        )
        stress = environmental_stress(state.environment) / 100
        return base_change + interaction_effect - stress

    def step(self) -> bool:
        state = self.require_state()

        changes = {s.id: self.population_change(s) for s in state.species}
        for s in state.species:
            s.energy_requirement = _clamp(s.energy_requirement + changes[s.id], 0, MAX_ENERGY)

        survivors = [s for s in state.species if s.energy_requirement > 0]
        if len(survivors) != len(state.species):
            extinct = [s.name for s in state.species if s.energy_requirement <= 0]
            logger.info(f"Simulation {self.simulation_id}: extinct species {extinct}")
            state.species = survivors
            state.interactions = build_interactions(survivors)

        self.metrics.species_diversity = species_diversity(state.species)
        self.metrics.trophic_efficiency = trophic_efficiency(state.species)
        self.metrics.environmental_stress = environmental_stress(state.environment)

        score = self.calculate_stability_score()
        state.stability_score = score
        self.metrics.stability_history.append(score)
        state.timestamp = self.clock()

        return self.should_end()

    def calculate_stability_score(self) -> int:
        return int(_clamp(round_half_up(
            STABILITY_WEIGHTS["diversity"] * self.metrics.species_diversity
            + STABILITY_WEIGHTS["trophic"] * self.metrics.trophic_efficiency
            + STABILITY_WEIGHTS["environmental"] * (100 - self.metrics.environmental_stress)
        )))

    def finish(self) -> None:
        """Record when the run ended. Elapsed time stops counting from here."""
        if self.finished_at is None:
            self.finished_at = self.clock()

    @property
    def elapsed(self) -> float:
        end = self.finished_at if self.finished_at is not None else self.clock()
        return end - self.started_at

    @property
    def collapsed(self) -> bool:
        state = self.require_state()
        return all(s.energy_requirement <= 0 for s in state.species)

    def should_end(self) -> bool:
        state = self.require_state()
        return (
            self.elapsed >= self.time_limit
            or state.stability_score >= COMPLETION_STABILITY
            or self.collapsed
        )

    def result(self) -> SimulationResult:
        state = self.require_state()
        score = self.calculate_stability_score()
        balance = species_balance(state.species)
        return SimulationResult(
            simulation_id=self.simulation_id,
            score=score,
            ecosystem_stability=state.stability_score,
            species_balance=balance,
            feedback=generate_feedback(score, balance, self.metrics.environmental_stress),
            completed_at=_utc_iso(self.finished_at if self.finished_at is not None else self.clock()),
        )

    def to_document(self) -> Dict[str, Any]:
        return {
            "simulation_id": self.simulation_id,
            "time_limit": self.time_limit,
            "max_species": self.max_species,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "state": self.state.model_dump(mode="json") if self.state else None,
            "metrics": self.metrics.model_dump(mode="json"),
        }

    @classmethod
    def from_document(cls, document: Dict[str, Any], clock: Callable[[], float] = time.time):
        simulation = cls(
            document["simulation_id"],
            document["time_limit"],
            max_species=document.get("max_species", SIMULATION_MAX_SPECIES),
            clock=clock,
        )
        simulation.started_at = document["started_at"]
        simulation.finished_at = document.get("finished_at")
        if document.get("state"):
            simulation.state = EcosystemState.model_validate(document["state"])
        simulation.metrics = SimulationMetrics.model_validate(document.get("metrics") or {})
        return simulation


def _as_dict(value: Any) -> Any:
    if hasattr(value, "model_dump"):
        return value.model_dump()
    return value


def _utc_iso(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()
