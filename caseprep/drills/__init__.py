from .calculator import calculate_metrics, evaluate_calculation, validate_calculation
from .evaluator import DrillEvaluator, MAX_RESPONSE_LENGTH

__all__ = [
    "calculate_metrics",
    "evaluate_calculation",
    "validate_calculation",
    "DrillEvaluator",
    "MAX_RESPONSE_LENGTH",
]
