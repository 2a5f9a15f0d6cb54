import logging
import math
from typing import Any, Dict, List, Optional

from .ecosystem import EcosystemSimulation, environmental_stress, round_half_up
from .models import (
    EcosystemState,
    Environment,
    InteractionType,
    SimulationMetrics,
    SimulationEvaluation,
    Species,
    SpeciesType,
)

logger = logging.getLogger(__name__)

MIN_SPECIES_DIVERSITY = 3
MAX_ENVIRONMENTAL_STRESS = 0.8

# Scoring weights for the final evaluation
WEIGHTS = {
    "stability": 0.4,
    "diversity": 0.3,
    "efficiency": 0.2,
    "complexity": 0.1,
}

INTERACTION_MULTIPLIERS = {
    InteractionType.PREDATION: 1.2,
    InteractionType.SYMBIOSIS: 1.1,
    InteractionType.COMPETITION: 0.8,
}


def evaluate_ecosystem_stability(state: EcosystemState) -> float:
    """Stability of a state as a value between 0 and 1."""
    diversity_score = len(state.species) / MIN_SPECIES_DIVERSITY

    if state.interactions:
        trophic_score = sum(
            i.strength * INTERACTION_MULTIPLIERS.get(i.interaction_type, 1.0)
            for i in state.interactions
        ) / len(state.interactions)
    else:
        trophic_score = 0

    stress = environmental_stress(state.environment) / 100
    stress_score = 1 - stress / MAX_ENVIRONMENTAL_STRESS

    raw_score = diversity_score * 0.3 + trophic_score * 0.4 + stress_score * 0.3
    return min(max(raw_score, 0), 1)


def validate_species_configuration(
    species: List[Species], environment: Environment
) -> Optional[Dict[str, Any]]:
    if len(species) < MIN_SPECIES_DIVERSITY:
        return {
            "code": "INSUFFICIENT_DIVERSITY",
            "message": f"Minimum of {MIN_SPECIES_DIVERSITY} species required",
            "details": {"current": len(species), "required": MIN_SPECIES_DIVERSITY},
        }

    producers = [s for s in species if s.type == SpeciesType.PRODUCER]
    consumers = [s for s in species if s.type == SpeciesType.CONSUMER]
    if not producers or not consumers:
        return {
            "code": "INVALID_TROPHIC_BALANCE",
            "message": "Ecosystem must contain both producers and consumers",
            "details": {"producers": len(producers), "consumers": len(consumers)},
        }

    return None


def calculate_score(
    metrics: SimulationMetrics,
    state: EcosystemState,
    time_limit: float,
    elapsed: float,
) -> int:
    stability_component = state.stability_score / 100 * WEIGHTS["stability"]
    diversity_component = metrics.species_diversity / 100 * WEIGHTS["diversity"]

    time_efficiency = max(0, time_limit - elapsed) / time_limit if time_limit > 0 else 0
    efficiency_component = time_efficiency * WEIGHTS["efficiency"]

    if state.species:
        complexity = math.log10(len(state.species)) / math.log10(MIN_SPECIES_DIVERSITY)
    else:
        complexity = 0
    complexity_component = min(complexity, 1) * WEIGHTS["complexity"]

    raw_score = (
        stability_component + diversity_component + efficiency_component + complexity_component
    ) * 100
    return int(round_half_up(min(max(raw_score, 0), 100)))


def build_feedback_prompt(metrics: SimulationMetrics, state: EcosystemState) -> str:
    trend = metrics.stability_history[-3:]
    direction = "Improving" if len(trend) > 1 and trend[-1] - trend[0] > 0 else "Declining"
    critical = [
        f"{i.interaction_type.value} {i.source_species}->{i.target_species}"
        for i in state.interactions
        if i.strength >= 0.7
    ]
    return (
        "Analyze ecosystem simulation results:\n"
        f"- Species Diversity: {metrics.species_diversity:.1f}\n"
        f"- Trophic Efficiency: {metrics.trophic_efficiency:.1f}\n"
        f"- Environmental Stress: {metrics.environmental_stress:.1f}\n"
        f"- Stability Trend: {direction}\n"
        f"- Critical Interactions: {', '.join(critical) or 'none'}\n\n"
        "Provide concise feedback on ecosystem balance and stability, species "
        "interaction effectiveness, environmental adaptation and specific improvements."
    )


class SimulationEvaluator:
    def __init__(self, llm=None):
        self.llm = llm

    async def evaluate(self, simulation: EcosystemSimulation) -> SimulationEvaluation:
        state = simulation.require_state()
        result = simulation.result()

        narrative = None
        if self.llm is not None and self.llm.enabled:
            narrative = await self.llm.complete_text(
                build_feedback_prompt(simulation.metrics, state), temperature=0.7
            )
            if narrative is None:
                logger.warning(f"Simulation {simulation.simulation_id}: narrative feedback unavailable")

        return SimulationEvaluation(
            result=result,
            final_score=calculate_score(
                simulation.metrics, state, simulation.time_limit, simulation.elapsed
            ),
            stability_index=evaluate_ecosystem_stability(state),
            configuration_issue=validate_species_configuration(state.species, state.environment),
            narrative=narrative,
        )
