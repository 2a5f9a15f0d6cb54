import logging
import re
from typing import Any, Dict, List, Optional

from ..errors import ValidationError
from ..models import Drill, DrillType, FeedbackContent, FeedbackMetric
from .calculator import calculate_metrics, calculation_feedback, evaluate_calculation

logger = logging.getLogger(__name__)

MAX_RESPONSE_LENGTH = 8000

NUMERIC_DRILL_TYPES = {DrillType.CALCULATION, DrillType.CASE_MATH}


# Local heuristics used when no language model is available
def _calculation_accuracy(response: str) -> float:
    has_numbers = bool(re.search(r"\d+\.?\d*", response))
    has_steps = len(response.split("\n")) > 3
    return 85 if has_numbers and has_steps else 60


def _market_sizing_accuracy(response: str) -> float:
    has_assumptions = "assum" in response.lower()
    has_numbers = bool(re.search(r"\d+\.?\d*", response))
    return 90 if has_assumptions and has_numbers else 70


def _case_prompt_accuracy(response: str) -> float:
    text = response.lower()
    has_framework = bool(re.search(r"(framework|structure|approach)", text))
    has_conclusion = "conclusion" in text or "recommend" in text
    return 95 if has_framework and has_conclusion else 75


def _brainstorming_accuracy(response: str) -> float:
    ideas = [part for part in re.split(r"[.,\n]", response) if part.strip()]
    return min(len(ideas) * 10, 100)


ACCURACY_HEURISTICS = {
    DrillType.CALCULATION: _calculation_accuracy,
    DrillType.CASE_MATH: _calculation_accuracy,
    DrillType.MARKET_SIZING: _market_sizing_accuracy,
    DrillType.CASE_PROMPT: _case_prompt_accuracy,
    DrillType.SYNTHESIZING: _case_prompt_accuracy,
    DrillType.BRAINSTORMING: _brainstorming_accuracy,
}


def check_response_length(response: str) -> None:
    if len(response) > MAX_RESPONSE_LENGTH:
        raise ValidationError(
            f"Response exceeds maximum length of {MAX_RESPONSE_LENGTH} characters",
            {"length": len(response), "max_length": MAX_RESPONSE_LENGTH},
        )


def calculate_drill_metrics(drill: Drill, response: str, time_spent: float) -> Dict[str, float]:
    expected_seconds = drill.time_limit * 60
    completeness = min(len(response) / MAX_RESPONSE_LENGTH * 100, 100)
    speed = max(0, min((expected_seconds - time_spent) / expected_seconds * 100, 100))
    accuracy = ACCURACY_HEURISTICS.get(drill.type, lambda _: 75)(response)
    return {
        "completeness": round(completeness, 1),
        "speed": round(speed, 1),
        "accuracy": float(accuracy),
        "time_spent": round(time_spent, 1),
    }


def _metric_list(metrics: Dict[str, float]) -> List[FeedbackMetric]:
    return [
        FeedbackMetric(name="completeness", score=metrics["completeness"], category="response"),
        FeedbackMetric(name="speed", score=metrics["speed"], category="time"),
        FeedbackMetric(name="accuracy", score=metrics["accuracy"], category="quality"),
    ]


def local_evaluation(drill: Drill, response: str, metrics: Dict[str, float]) -> Dict[str, Any]:
    """Rule-based evaluation for text drills."""
    accuracy = metrics["accuracy"]
    word_count = len(response.split())
    depth = min(word_count / 150 * 100, 100)
    score = max(0, min(100, int(round(accuracy * 0.6 + depth * 0.25 + metrics["speed"] * 0.15))))

    strengths = []
    improvements = []
    if accuracy >= 85:
        strengths.append("Clear structure that covers the key elements of the prompt")
    else:
        improvements.append("Lay out a clear framework before diving into details")
    if word_count >= 150:
        strengths.append("Thorough answer with supporting detail")
    else:
        improvements.append("Develop each point further with numbers or examples")
    if metrics["speed"] >= 50:
        strengths.append("Completed well within the time limit")
    else:
        improvements.append("Practice reaching a structured answer faster")

    for criterion in drill.evaluation_criteria:
        if criterion.lower() not in response.lower():
            improvements.append(f"Address {criterion.lower()} explicitly")

    return {
        "score": score,
        "summary": f"{drill.title}: scored {score}/100 on structure, depth and pace.",
        "strengths": strengths,
        "improvements": improvements,
        "detailed_analysis": "",
    }


class DrillEvaluator:
    """Grades numeric drills with the calculator and text drills with the LLM or local rules."""

    def __init__(self, llm=None):
        self.llm = llm

    async def evaluate(self, drill: Drill, response: str, time_spent: float) -> Dict[str, Any]:
        check_response_length(response)
        metrics = calculate_drill_metrics(drill, response, time_spent)

        if drill.type in NUMERIC_DRILL_TYPES and drill.expected_answer is not None:
            return self._evaluate_numeric(drill, response, time_spent, metrics)

        source = "local"
        evaluation = None
        if self.llm is not None and self.llm.enabled:
            evaluation = await self.llm.evaluate_response(
                drill.type.value, drill.content, response, drill.evaluation_criteria
            )
            if evaluation is None:
                logger.warning(f"Drill {drill.id}: LLM evaluation unavailable, using local rules")
        if evaluation is not None:
            source = "openai"
            result = {
                "score": evaluation["score"],
                "summary": str(evaluation["feedback"]),
                "strengths": evaluation["strengths"],
                "improvements": evaluation["improvements"],
                "detailed_analysis": _criteria_analysis(evaluation.get("criteria_scores")),
            }
        else:
            result = local_evaluation(drill, response, metrics)

        return {
            "score": result["score"],
            "content": FeedbackContent(
                summary=result["summary"],
                strengths=result["strengths"],
                improvements=result["improvements"],
                detailed_analysis=result["detailed_analysis"],
            ),
            "metrics": _metric_list(metrics),
            "source": source,
        }

    def _evaluate_numeric(
        self, drill: Drill, response: str, time_spent: float, metrics: Dict[str, float]
    ) -> Dict[str, Any]:
        evaluation = evaluate_calculation(response, drill.expected_answer, drill.tolerance)
        performance = calculate_metrics(time_spent, evaluation["score"])
        summary, strengths, improvements = calculation_feedback(
            evaluation, performance, case_math=drill.type == DrillType.CASE_MATH
        )
        metrics = dict(metrics, accuracy=float(evaluation["score"]))
        return {
            "score": evaluation["score"],
            "content": FeedbackContent(
                summary=summary,
                strengths=strengths,
                improvements=improvements,
                detailed_analysis=evaluation["feedback"],
            ),
            "metrics": _metric_list(metrics)
            + [FeedbackMetric(name="efficiency", score=performance["efficiency"], category="time")],
            "source": "local",
        }


def _criteria_analysis(criteria_scores: Optional[Dict[str, Any]]) -> str:
    if not isinstance(criteria_scores, dict):
        return ""
    return "\n".join(f"{name}: {value}" for name, value in criteria_scores.items())
