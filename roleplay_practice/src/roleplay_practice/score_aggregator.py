"""
Score Aggregation

Running and final scores computed from recorded per-step results.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Mapping, Optional

MIN_STEP_SCORE = 0.0
MAX_STEP_SCORE = 5.0


def clamp_score(score: float) -> float:
    """Clamp a step score into [0, 5]."""
    return min(MAX_STEP_SCORE, max(MIN_STEP_SCORE, float(score)))


def _round_one_decimal(value: float) -> float:
    # Half-up, not Python's round-half-to-even
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def final_score(step_scores: Mapping[int, float], total_steps: int) -> float:
    """
    Mean of all step scores, rounded to one decimal.

    Only defined once every step 1..total_steps has been graded.

    Raises:
        ValueError: if any step is still ungraded
    """
    missing = [step for step in range(1, total_steps + 1) if step not in step_scores]
    if total_steps < 1 or missing:
        raise ValueError(f"Final score needs all {total_steps} steps graded (missing {missing})")
    scores = [step_scores[step] for step in range(1, total_steps + 1)]
    return _round_one_decimal(sum(scores) / total_steps)


def running_score(step_scores: Mapping[int, float]) -> Optional[float]:
    """Mean over the steps graded so far, or None before the first grade."""
    if not step_scores:
        return None
    return _round_one_decimal(sum(step_scores.values()) / len(step_scores))
