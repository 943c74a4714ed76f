#!/usr/bin/env python3
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from constants import EXECUTION_QUALITY_EXCELLENT, EXECUTION_QUALITY_GOOD

EXCELLENT = 'Excellent'
GOOD = 'Good'
REVIEW = 'Review'

_TWO_PLACES = Decimal('0.01')


@dataclass(frozen=True)
class ExecutionQuality:
    score: float
    label: str
    variance_pct: float


def _to_decimal(value) -> Decimal:
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal('NaN')
    return number


def quality_label(score: float) -> str:
    if score >= EXECUTION_QUALITY_EXCELLENT:
        return EXCELLENT
    if score >= EXECUTION_QUALITY_GOOD:
        return GOOD
    return REVIEW


def derive_execution_quality(predicted, actual) -> ExecutionQuality:
    """Scores an executed swap by how much of the predicted output it delivered.

    score = actual / predicted * 100, variance = (actual - predicted) / predicted * 100,
    both rounded to two places. An unusable prediction scores 0 and needs review.
    """
    predicted_value = _to_decimal(predicted)
    actual_value = _to_decimal(actual)
    if not predicted_value.is_finite() or predicted_value <= 0 or not actual_value.is_finite():
        return ExecutionQuality(score=0.0, label=REVIEW, variance_pct=0.0)

    ratio = actual_value / predicted_value * 100
    score = float(ratio.quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))
    variance = float((ratio - 100).quantize(_TWO_PLACES, rounding=ROUND_HALF_UP))
    return ExecutionQuality(score=score, label=quality_label(score), variance_pct=variance)
