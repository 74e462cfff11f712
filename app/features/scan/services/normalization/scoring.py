import math
from typing import Iterable, Optional, Union

Number = Union[int, float]


def round_score(value: Number) -> int:
    """Round half up, so 74.5 becomes 75 rather than Python's banker's 74."""
    return int(math.floor(value + 0.5))


def clamp_score(value: Number, low: int = 0, high: int = 100) -> int:
    return max(low, min(high, round_score(value)))


def calculate_overall_score(*scores: Optional[Number]) -> int:
    """
    Mean of the dimension scores that are present.

    Missing (None) dimensions drop out of both numerator and denominator;
    with nothing present the overall score is 0.
    """
    present = [score for score in scores if score is not None]
    if not present:
        return 0
    return round_score(sum(present) / len(present))


def letter_grade(score: Optional[Number]) -> str:
    if score is None:
        return "F"
    for threshold, grade in ((90, "A"), (80, "B"), (70, "C"), (50, "D")):
        if score >= threshold:
            return grade
    return "F"


def mean_score(values: Iterable[Number]) -> Optional[int]:
    values = list(values)
    if not values:
        return None
    return round_score(sum(values) / len(values))
