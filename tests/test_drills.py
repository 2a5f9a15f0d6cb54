import asyncio

import pytest

from caseprep.drills import DrillEvaluator, MAX_RESPONSE_LENGTH, calculate_metrics, evaluate_calculation, validate_calculation
from caseprep.drills.calculator import parse_numeric_answer
from caseprep.errors import ValidationError
from caseprep.models import Drill


def make_drill(**overrides):
    data = {
        "id": "drill-1",
        "type": "CASE_PROMPT",
        "difficulty": "BEGINNER",
        "title": "Coffee Chain Profitability",
        "content": "Profits are down. Why?",
        "time_limit": 30,
        "industry": "Retail",
        "evaluation_criteria": ["Structure"],
    }
    data.update(overrides)
    return Drill(**data)


class FakeLLM:
    enabled = True

    def __init__(self, evaluation):
        self.evaluation = evaluation
        self.calls = 0

    async def evaluate_response(self, drill_type, prompt, response, criteria):
        self.calls += 1
        return self.evaluation


@pytest.mark.parametrize("value, kwargs, expected", [
    ("12 * 4", {}, True),
    ("(48 - 30) / 48", {}, True),
    ("twelve", {}, False),
    ("", {}, False),
    ("123456", {"max_digits": 5}, False),
    ("3.14159", {"decimal_places": 2}, False),
    ("3.14", {"decimal_places": 2}, True),
    ("10 / 2", {"allowed_operators": ["+", "-"]}, False),
    ("10 + 2", {"allowed_operators": ["+", "-"]}, True),
])
def test_validate_calculation(value, kwargs, expected):
    assert validate_calculation(value, **kwargs) is expected


def test_parse_numeric_answer():
    assert parse_numeric_answer("17.5%") == 17.5
    assert parse_numeric_answer("$1,250") == 1250
    assert parse_numeric_answer("about 80,000 units") == 80000
    assert parse_numeric_answer("no idea") is None


def test_exact_answer_scores_full_marks():
    result = evaluate_calculation("80000", 80000)
    assert result["score"] == 100
    assert "Excellent accuracy in calculation" in result["strengths"]


def test_score_drops_with_percentage_error():
    # 0.5% error against a 1% tolerance
    assert evaluate_calculation("100.5", 100, tolerance=0.01)["score"] == 50
    assert evaluate_calculation("150", 100, tolerance=0.01)["score"] == 0


def test_invalid_answer_scores_zero():
    result = evaluate_calculation("not a number", 100)
    assert result["score"] == 0
    assert result["feedback"] == "Invalid numerical input"


def test_exact_match_required():
    assert evaluate_calculation("100.01", 100, require_exact_match=True)["score"] == 0
    assert evaluate_calculation("100", 100, require_exact_match=True)["score"] == 100


def test_calculate_metrics():
    fast = calculate_metrics(time_spent=0, accuracy=100)
    assert fast["speed_score"] == 100
    assert fast["performance"] == "Excellent"

    slow = calculate_metrics(time_spent=300, accuracy=50)
    assert slow["speed_score"] == 0
    assert slow["efficiency"] == 25
    assert slow["performance"] == "Needs Improvement"


def test_numeric_drill_is_graded_by_calculator():
    drill = make_drill(type="CALCULATION", expected_answer=17.5, tolerance=0.05)
    llm = FakeLLM({"score": 10})

    result = asyncio.run(DrillEvaluator(llm).evaluate(drill, "17.5%", time_spent=60))

    assert result["score"] == 100
    assert result["source"] == "local"
    assert llm.calls == 0
    assert {m.name for m in result["metrics"]} >= {"completeness", "speed", "accuracy"}


def test_text_drill_uses_llm_evaluation():
    llm = FakeLLM({
        "score": 82,
        "feedback": "Solid structure.",
        "strengths": ["Clear framework"],
        "improvements": ["Quantify the drivers"],
        "criteria_scores": {"Structure": 85},
    })

    result = asyncio.run(DrillEvaluator(llm).evaluate(make_drill(), "My framework is...", time_spent=120))

    assert result["source"] == "openai"
    assert result["score"] == 82
    assert result["content"].summary == "Solid structure."
    assert "Structure: 85" in result["content"].detailed_analysis


def test_text_drill_falls_back_to_local_rules():
    response = "I would use a profitability framework. In conclusion, costs drove the decline."
    result = asyncio.run(DrillEvaluator(FakeLLM(None)).evaluate(make_drill(), response, time_spent=120))

    assert result["source"] == "local"
    assert 0 <= result["score"] <= 100
    assert result["content"].strengths


def test_response_length_is_limited():
    with pytest.raises(ValidationError):
        asyncio.run(DrillEvaluator().evaluate(make_drill(), "x" * (MAX_RESPONSE_LENGTH + 1), time_spent=10))
