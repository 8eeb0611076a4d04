import unittest
from types import SimpleNamespace
from typing import List, Optional

import numpy as np

from caller_trust.utils.performance_metrics_utils import (
    calculate_actor_metrics,
    calculate_consistency,
    calculate_market_return,
    calculate_sharpe_ratio,
    calculate_std,
    calculate_volume_penalty,
    count_call_quality,
    summarize_profits_by_archetype,
)


def make_call(profit: Optional[float], sentiment: str = 'positive', scenario: str = 'mediocre',
              archetype: str = 'newbie') -> SimpleNamespace:
    return SimpleNamespace(
        sentiment=sentiment,
        metadata=SimpleNamespace(
            actual_profit=profit,
            token_scenario=SimpleNamespace(value=scenario),
            actor_archetype=archetype,
        ),
    )


def make_history(prices: List[float]) -> List[SimpleNamespace]:
    return [SimpleNamespace(price=p) for p in prices]


class TestPerformanceMetricsUtils(unittest.TestCase):
    """
    Test suite for the call performance metric helpers.
    """

    # --- Sharpe ratio ---
    def test_sharpe_ratio_normal_case(self) -> None:
        profits = [10.0, -5.0, 20.0, 5.0]
        expected = np.mean(profits) / np.std(profits)
        self.assertAlmostEqual(calculate_sharpe_ratio(profits), expected, places=9)

    def test_sharpe_ratio_insufficient_data(self) -> None:
        self.assertEqual(calculate_sharpe_ratio([]), 0.0)
        self.assertEqual(calculate_sharpe_ratio([12.0]), 0.0)

    def test_sharpe_ratio_no_std_dev(self) -> None:
        self.assertEqual(calculate_sharpe_ratio([5.0, 5.0, 5.0]), 0.0)

    def test_sharpe_ratio_all_losses(self) -> None:
        self.assertLess(calculate_sharpe_ratio([-10.0, -20.0, -5.0]), 0)

    # --- Consistency and std ---
    def test_consistency(self) -> None:
        self.assertEqual(calculate_consistency([1.0, -1.0]), 0.0)
        self.assertAlmostEqual(calculate_consistency([1.0, -1.0, 2.0, 3.0]), 0.75)

    def test_std(self) -> None:
        self.assertEqual(calculate_std([]), 0.0)
        self.assertAlmostEqual(calculate_std([1.0, 3.0]), 1.0)

    # --- Market return ---
    def test_market_return_averages_token_returns(self) -> None:
        histories = [make_history([1.0, 2.0]), make_history([2.0, 1.0]), make_history([4.0, 5.0, 6.0])]
        self.assertAlmostEqual(calculate_market_return(histories), (100 - 50 + 50) / 3)

    def test_market_return_ignores_short_and_zero_histories(self) -> None:
        histories = [make_history([1.0]), make_history([0.0, 5.0]), []]
        self.assertEqual(calculate_market_return(histories), 0.0)

    # --- Volume penalty ---
    def test_volume_penalty(self) -> None:
        self.assertEqual(calculate_volume_penalty(0, 50), 1.0)
        self.assertAlmostEqual(calculate_volume_penalty(25, 50), 0.5)
        self.assertEqual(calculate_volume_penalty(80, 50), 0.0)
        self.assertEqual(calculate_volume_penalty(10, 0), 0.0)

    # --- Call quality ---
    def test_count_call_quality(self) -> None:
        calls = [
            make_call(-90.0, 'positive', 'rug_fast'),
            make_call(-50.0, 'positive', 'scam'),
            make_call(30.0, 'negative', 'rug_slow'),
            make_call(-5.0, 'negative', 'rug_slow'),
            make_call(25.0, 'positive', 'successful'),
            make_call(10.0, 'positive', 'bluechip'),
            make_call(80.0, 'positive', 'runner_steady'),
            make_call(None, 'neutral', 'rug_fast'),
        ]
        self.assertEqual(count_call_quality(calls), (2, 2))

    # --- Actor metrics ---
    def test_actor_metrics(self) -> None:
        calls = [make_call(300.0), make_call(-20.0), make_call(0.0), make_call(None), make_call(40.0)]
        metrics = calculate_actor_metrics(calls, market_return=10.0, volume_penalty_threshold=50)
        self.assertEqual(metrics['total_calls'], 5)
        self.assertEqual(metrics['profitable_calls'], 2)
        # 300 is capped to 200; zero and missing profits are left out
        self.assertAlmostEqual(metrics['average_profit'], (200 - 20 + 40) / 3)
        self.assertAlmostEqual(metrics['win_rate'], 0.4)
        self.assertAlmostEqual(metrics['alpha'], (200 - 20 + 40) / 3 - 10.0)
        self.assertAlmostEqual(metrics['volume_penalty'], 0.9)
        self.assertAlmostEqual(metrics['consistency'], 2 / 3)
        capped = [200.0, -20.0, 40.0]
        self.assertAlmostEqual(metrics['sharpe_ratio'], np.mean(capped) / np.std(capped))

    def test_actor_metrics_without_profits(self) -> None:
        metrics = calculate_actor_metrics([make_call(None)], market_return=5.0, volume_penalty_threshold=50)
        self.assertEqual(metrics['average_profit'], 0.0)
        self.assertEqual(metrics['win_rate'], 0.0)
        self.assertEqual(metrics['sharpe_ratio'], 0.0)
        self.assertEqual(metrics['alpha'], -5.0)

    def test_summarize_profits_by_archetype(self) -> None:
        calls = [make_call(10.0, archetype='newbie'), make_call(-30.0, archetype='newbie'),
                 make_call(50.0, archetype='elite_analyst')]
        summary = summarize_profits_by_archetype(calls)
        self.assertEqual(summary['newbie'], {'calls': 2.0, 'average_profit': -10.0})
        self.assertEqual(summary['elite_analyst']['average_profit'], 50.0)


if __name__ == '__main__':
    unittest.main()
