"""
Accuracy Evaluator for Caller Trust Lab.

Compares calculated trust scores with the scores each simulated actor was
designed to earn.
"""
import logging
from typing import Iterable, Mapping, TypedDict

import numpy as np

logger = logging.getLogger(__name__)


class AccuracyMetrics(TypedDict):
    mae: float
    rmse: float
    correlation: float
    ranking_accuracy: float


WORST_CASE_ACCURACY = AccuracyMetrics(mae=100.0, rmse=100.0, correlation=0.0, ranking_accuracy=0.0)


def pearson_correlation(x: np.ndarray, y: np.ndarray) -> float:
    """Pearson's r, or 0.0 with fewer than two points or zero variance in either vector."""
    if x.size < 2 or x.size != y.size:
        return 0.0
    dx = x - x.mean()
    dy = y - y.mean()
    denominator = np.sqrt(np.sum(dx * dx) * np.sum(dy * dy))
    if denominator == 0 or not np.isfinite(denominator):
        return 0.0
    return float(np.sum(dx * dy) / denominator)


def ranking_accuracy(calculated: np.ndarray, expected: np.ndarray) -> float:
    """Fraction of unordered pairs whose relative order, or tie, agrees between the two vectors."""
    n = calculated.size
    if n < 2:
        return 0.0
    correct = 0
    total = 0
    for i in range(n):
        for j in range(i + 1, n):
            calc_sign = np.sign(calculated[i] - calculated[j])
            exp_sign = np.sign(expected[i] - expected[j])
            if calc_sign == exp_sign:
                correct += 1
            total += 1
    return correct / total


def evaluate_accuracy(scores: Iterable[Mapping[str, float]]) -> AccuracyMetrics:
    """
    Computes MAE, RMSE, correlation and ranking accuracy of calculated versus expected scores.

    Args:
        scores: Records with 'calculated_score' and 'expected_score'.

    Returns:
        AccuracyMetrics: The record; WORST_CASE_ACCURACY for empty input.
    """
    records = list(scores)
    if not records:
        logger.warning("Accuracy evaluation on an empty score list; returning worst-case record.")
        return AccuracyMetrics(**WORST_CASE_ACCURACY)

    calculated = np.asarray([r['calculated_score'] for r in records], dtype=float)
    expected = np.asarray([r['expected_score'] for r in records], dtype=float)
    errors = calculated - expected

    return AccuracyMetrics(
        mae=float(np.mean(np.abs(errors))),
        rmse=float(np.sqrt(np.mean(errors ** 2))),
        correlation=pearson_correlation(calculated, expected),
        ranking_accuracy=ranking_accuracy(calculated, expected),
    )
