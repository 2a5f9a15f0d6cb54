import re
from typing import Any, Dict, Iterable, Optional

CALCULATION_TOLERANCE = 0.01
MAX_CALCULATION_TIME = 300  # seconds

ALLOWED_OPERATORS = ("+", "-", "*", "/", "%")

_NUMERIC_EXPRESSION = re.compile(r"^[\d\s+\-*/%.()]*$")
_OPERATOR = re.compile(r"[+\-*/%]")
_NUMBER = re.compile(r"-?\d[\d,]*\.?\d*")


def validate_calculation(
    value: str,
    max_digits: Optional[int] = None,
    decimal_places: Optional[int] = None,
    allowed_operators: Optional[Iterable[str]] = None,
) -> bool:
    """Check that an answer is a plain arithmetic expression within the given limits."""
    if not value or not value.strip():
        return False
    if not _NUMERIC_EXPRESSION.match(value):
        return False

    if max_digits:
        digits = re.sub(r"[^\d]", "", value)
        if len(digits) > max_digits:
            return False

    if decimal_places is not None:
        parts = value.split(".")
        if len(parts) > 1:
            decimals = re.match(r"\d*", parts[1]).group(0)
            if len(decimals) > decimal_places:
                return False

    if allowed_operators is not None:
        allowed = set(allowed_operators)
        return all(op in allowed for op in _OPERATOR.findall(value))

    return True


def parse_numeric_answer(answer: str) -> Optional[float]:
    """Pull the last number out of a free-text answer ("roughly $1,250k" -> 1250)."""
    if answer is None:
        return None
    cleaned = str(answer).strip().replace("%", "").replace("$", "")
    try:
        return float(cleaned.replace(",", ""))
    except ValueError:
        pass
    matches = _NUMBER.findall(cleaned)
    if not matches:
        return None
    try:
        return float(matches[-1].replace(",", ""))
    except ValueError:
        return None


def evaluate_calculation(
    answer: str,
    correct_answer: float,
    tolerance: Optional[float] = None,
    require_exact_match: bool = False,
) -> Dict[str, Any]:
    tolerance = tolerance or CALCULATION_TOLERANCE
    value = parse_numeric_answer(answer)

    if value is None:
        return {
            "score": 0,
            "feedback": "Invalid numerical input",
            "strengths": [],
            "improvements": ["Ensure your answer is a valid number"],
        }

    difference = abs(value - correct_answer)
    if require_exact_match:
        score = 100 if difference == 0 else 0
    elif correct_answer == 0:
        score = 100 if difference == 0 else 0
    else:
        percentage_error = difference / abs(correct_answer) * 100
        score = max(0, 100 - percentage_error / tolerance)

    strengths = []
    improvements = []
    if score >= 95:
        strengths.append("Excellent accuracy in calculation")
    elif score >= 80:
        strengths.append("Good approximation within acceptable range")
        improvements.append("Minor refinement needed for perfect accuracy")
    else:
        improvements.append("Review calculation methodology for better accuracy")
        improvements.append(f"Expected {correct_answer:g}, received {value:g}")

    return {
        "score": int(round(score)),
        "feedback": f"Calculation evaluated with {tolerance * 100:g}% tolerance",
        "strengths": strengths,
        "improvements": improvements,
    }


def performance_rating(efficiency: float) -> str:
    if efficiency >= 90:
        return "Excellent"
    if efficiency >= 75:
        return "Good"
    if efficiency >= 60:
        return "Satisfactory"
    return "Needs Improvement"


def calculate_metrics(
    time_spent: float,
    accuracy: float,
    target_time: float = MAX_CALCULATION_TIME / 2,
    target_accuracy: float = 90,
) -> Dict[str, Any]:
    # time_spent is in seconds
    speed_score = max(0, 100 * (1 - time_spent / MAX_CALCULATION_TIME))
    efficiency = (speed_score + accuracy) / 2
    return {
        "speed_score": int(round(speed_score)),
        "accuracy_score": int(round(accuracy)),
        "efficiency": int(round(efficiency)),
        "performance": performance_rating(efficiency),
        "met_time_target": time_spent <= target_time,
        "met_accuracy_target": accuracy >= target_accuracy,
    }


def calculation_feedback(evaluation: Dict[str, Any], metrics: Dict[str, Any], case_math: bool = False):
    """Summary plus extra strengths/improvements derived from speed and accuracy."""
    strengths = list(evaluation["strengths"])
    improvements = list(evaluation["improvements"])

    if metrics["speed_score"] >= 90:
        strengths.append("Excellent calculation speed")
    elif metrics["speed_score"] < 60:
        improvements.append("Work on improving calculation speed")

    if metrics["efficiency"] >= 85:
        strengths.append("Strong balance of speed and accuracy")
    elif metrics["accuracy_score"] < metrics["speed_score"]:
        improvements.append("Focus on accuracy over speed")
    else:
        improvements.append("Practice mental math techniques for faster calculations")

    if case_math:
        strengths.append("Applied case math principles effectively")

    summary = (
        f"{metrics['performance']} performance with {metrics['accuracy_score']}% accuracy "
        f"and {metrics['speed_score']}% speed efficiency."
    )
    return summary, strengths, improvements
