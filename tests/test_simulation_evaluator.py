import asyncio

import pytest

from caseprep.simulation import EcosystemSimulation, SimulationEvaluator, evaluator
from caseprep.simulation.evaluator import (
    calculate_score,
    evaluate_ecosystem_stability,
    validate_species_configuration,
)
from caseprep.simulation.models import EcosystemState, Environment, SimulationMetrics, Species

OPTIMAL = Environment(temperature=20, depth=500, salinity=25, light_level=50)


def make_species(id, type):
    return Species(id=id, name=id, type=type, energy_requirement=50, reproduction_rate=0.5)


class FakeLLM:
    def __init__(self, reply):
        self.reply = reply
        self.prompts = []

    @property
    def enabled(self):
        return True

    async def complete_text(self, prompt, temperature=0.7):
        self.prompts.append(prompt)
        return self.reply


def test_configuration_needs_three_species():
    issue = validate_species_configuration(
        [make_species("a", "PRODUCER"), make_species("b", "CONSUMER")], OPTIMAL
    )
    assert issue["code"] == "INSUFFICIENT_DIVERSITY"
    assert issue["details"] == {"current": 2, "required": 3}


def test_configuration_needs_both_trophic_levels():
    issue = validate_species_configuration(
        [make_species(s, "PRODUCER") for s in ("a", "b", "c")], OPTIMAL
    )
    assert issue["code"] == "INVALID_TROPHIC_BALANCE"


def test_valid_configuration_has_no_issue():
    members = [make_species("a", "PRODUCER"), make_species("b", "PRODUCER"), make_species("c", "CONSUMER")]
    assert validate_species_configuration(members, OPTIMAL) is None


def test_stability_index_is_between_zero_and_one(clock):
    sim = EcosystemSimulation("sim", 300, clock=clock)
    sim.initialize([make_species(s, t) for s, t in [("a", "PRODUCER"), ("b", "CONSUMER"), ("c", "CONSUMER")]], OPTIMAL)
    assert 0 <= evaluate_ecosystem_stability(sim.state) <= 1

    empty = EcosystemState(environment=OPTIMAL, timestamp=0)
    assert evaluate_ecosystem_stability(empty) == pytest.approx(0.3)


def test_calculate_score_weights():
    state = EcosystemState(
        species=[make_species(s, "PRODUCER") for s in ("a", "b", "c")],
        environment=OPTIMAL,
        stability_score=60,
        timestamp=0,
    )
    metrics = SimulationMetrics(species_diversity=30)
    # 0.6 * 0.4 + 0.3 * 0.3 + 0.5 * 0.2 + 1 * 0.1
    assert calculate_score(metrics, state, time_limit=600, elapsed=300) == 53


def test_calculate_score_is_clamped():
    state = EcosystemState(species=[], environment=OPTIMAL, stability_score=0, timestamp=0)
    assert calculate_score(SimulationMetrics(), state, time_limit=600, elapsed=900) == 0


def test_calculate_score_rounds_half_up(monkeypatch):
    for name, weight in {"stability": 0, "diversity": 0, "efficiency": 0.25, "complexity": 0}.items():
        monkeypatch.setitem(evaluator.WEIGHTS, name, weight)
    state = EcosystemState(species=[], environment=OPTIMAL, stability_score=0, timestamp=0)

    # 0.5 * 0.25 * 100 = 12.5
    assert calculate_score(SimulationMetrics(), state, time_limit=2, elapsed=1) == 13


def _simulation(clock):
    sim = EcosystemSimulation("sim", 600, clock=clock)
    sim.initialize(
        [make_species("a", "PRODUCER"), make_species("b", "CONSUMER"), make_species("c", "CONSUMER")],
        OPTIMAL,
    )
    sim.step()
    return sim


def test_evaluator_without_llm_uses_rule_feedback(clock):
    evaluation = asyncio.run(SimulationEvaluator().evaluate(_simulation(clock)))

    assert evaluation.narrative is None
    assert evaluation.result.feedback
    assert 0 <= evaluation.final_score <= 100
    assert evaluation.configuration_issue is None


def test_evaluator_adds_llm_narrative(clock):
    llm = FakeLLM("Balanced reef, add a second producer.")
    evaluation = asyncio.run(SimulationEvaluator(llm).evaluate(_simulation(clock)))

    assert evaluation.narrative == "Balanced reef, add a second producer."
    assert "Species Diversity" in llm.prompts[0]


def test_evaluator_tolerates_llm_failure(clock):
    evaluation = asyncio.run(SimulationEvaluator(FakeLLM(None)).evaluate(_simulation(clock)))
    assert evaluation.narrative is None
