import logging

import numpy as np
import pytest

from caller_trust.accuracy import evaluate_accuracy, pearson_correlation, ranking_accuracy


def scores(pairs):
    return [{'calculated_score': c, 'expected_score': e} for c, e in pairs]


def test_empty_input_is_worst_case(caplog):
    with caplog.at_level(logging.WARNING):
        result = evaluate_accuracy([])
    assert result == {'mae': 100.0, 'rmse': 100.0, 'correlation': 0.0, 'ranking_accuracy': 0.0}
    assert "empty" in caplog.text


def test_perfect_scores():
    result = evaluate_accuracy(scores([(95, 95), (60, 60), (10, 10)]))
    assert result['mae'] == 0.0
    assert result['rmse'] == 0.0
    assert result['correlation'] == pytest.approx(1.0)
    assert result['ranking_accuracy'] == pytest.approx(1.0)


def test_errors():
    result = evaluate_accuracy(scores([(90, 80), (50, 60), (20, 20)]))
    assert result['mae'] == pytest.approx(20 / 3)
    assert result['rmse'] == pytest.approx(np.sqrt(200 / 3))


def test_reversed_ranking():
    result = evaluate_accuracy(scores([(10, 90), (50, 50), (90, 10)]))
    assert result['ranking_accuracy'] == 0.0
    assert result['correlation'] == pytest.approx(-1.0)


def test_shifted_scores_keep_perfect_ranking():
    result = evaluate_accuracy(scores([(80, 95), (45, 60), (0, 10)]))
    assert result['ranking_accuracy'] == 1.0
    assert result['mae'] > 0


def test_ties_count_only_when_both_tie():
    calculated = np.array([50.0, 50.0, 10.0])
    expected = np.array([60.0, 60.0, 20.0])
    assert ranking_accuracy(calculated, expected) == 1.0
    assert ranking_accuracy(np.array([50.0, 50.0]), np.array([60.0, 40.0])) == 0.0


def test_single_record():
    result = evaluate_accuracy(scores([(70, 60)]))
    assert result['mae'] == pytest.approx(10.0)
    assert result['correlation'] == 0.0
    assert result['ranking_accuracy'] == 0.0


def test_zero_variance_correlation_is_zero():
    assert pearson_correlation(np.array([5.0, 5.0, 5.0]), np.array([1.0, 2.0, 3.0])) == 0.0
