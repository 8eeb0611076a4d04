import numpy as np
import logging
from typing import Dict, Iterable, List, Sequence, Tuple, TypedDict

logger = logging.getLogger(__name__)

GOOD_CALL_SCENARIOS = frozenset({'successful', 'runner_moon', 'bluechip'})
RUG_CALL_SCENARIOS = frozenset({'rug_fast', 'rug_slow', 'scam'})
GOOD_CALL_MIN_PROFIT = 20.0


class ActorMetrics(TypedDict):
    total_calls: int
    profitable_calls: int
    average_profit: float
    win_rate: float
    sharpe_ratio: float
    alpha: float
    volume_penalty: float
    consistency: float


# --- Metric Calculation Functions ---

def calculate_std(values: Sequence[float]) -> float:
    """Population standard deviation, 0.0 for empty input."""
    if len(values) == 0:
        return 0.0
    return float(np.std(np.asarray(values, dtype=float)))


def calculate_sharpe_ratio(profits: Sequence[float]) -> float:
    """
    Calculates a per-call Sharpe ratio: mean profit over its population standard deviation.

    Args:
        profits (Sequence[float]): Profit percentages of individual calls.

    Returns:
        float: The ratio, or 0.0 with fewer than two values or zero variance.
    """
    if len(profits) < 2:
        return 0.0
    profit_array = np.asarray(profits, dtype=float)
    std_dev = np.std(profit_array)
    if std_dev == 0 or not np.isfinite(std_dev):
        return 0.0
    return float(np.mean(profit_array) / std_dev)


def calculate_consistency(profits: Sequence[float]) -> float:
    """Share of profitable calls; 0.0 with fewer than three calls."""
    if len(profits) < 3:
        return 0.0
    profit_array = np.asarray(profits, dtype=float)
    return float(np.count_nonzero(profit_array > 0) / len(profit_array))


def calculate_market_return(price_histories: Iterable[Sequence[object]]) -> float:
    """
    Average first-to-last percentage return across tokens.

    Tokens with fewer than two price points or a non-positive first price are ignored.
    Returns 0.0 when no token qualifies.
    """
    returns: List[float] = []
    for history in price_histories:
        if len(history) < 2:
            continue
        first_price = history[0].price
        last_price = history[-1].price
        if first_price <= 0:
            continue
        returns.append((last_price - first_price) / first_price * 100)
    if not returns:
        return 0.0
    return float(np.mean(returns))


def calculate_volume_penalty(total_calls: int, volume_penalty_threshold: float) -> float:
    if volume_penalty_threshold <= 0:
        return 0.0
    return max(0.0, 1 - total_calls / volume_penalty_threshold)


def count_call_quality(calls: Iterable[object]) -> Tuple[int, int]:
    """
    Counts rug promotions and good calls in a simulated call log.

    A rug promotion is a positive call on a rug or scam token. A good call is a
    profitable warning on a rug or scam token, or a positive call on a good token
    that made more than GOOD_CALL_MIN_PROFIT percent.

    Returns:
        Tuple[int, int]: (rug_promotions, good_calls)
    """
    rug_promotions = 0
    good_calls = 0
    for call in calls:
        scenario = call.metadata.token_scenario.value
        profit = call.metadata.actual_profit or 0.0
        if scenario in RUG_CALL_SCENARIOS:
            if call.sentiment == 'positive':
                rug_promotions += 1
            elif call.sentiment == 'negative' and profit > 0:
                good_calls += 1
        elif scenario in GOOD_CALL_SCENARIOS and call.sentiment == 'positive' and profit > GOOD_CALL_MIN_PROFIT:
            good_calls += 1
    return rug_promotions, good_calls


def calculate_actor_metrics(
    calls: Sequence[object],
    market_return: float,
    volume_penalty_threshold: float,
    profit_cap: Tuple[float, float] = (-100.0, 200.0),
) -> ActorMetrics:
    """
    Aggregates one actor's calls into the metrics the trust score consumes.

    Calls without a realized move (profit 0 or missing) count toward the call
    total but not toward the profit statistics. Profits are capped to
    `profit_cap` before averaging.

    Args:
        calls (Sequence): The actor's simulated calls.
        market_return (float): Average token return of the run, see calculate_market_return.
        volume_penalty_threshold (float): Call count at which the volume penalty reaches 0.
        profit_cap (Tuple[float, float]): Lower and upper bound applied to each profit.

    Returns:
        ActorMetrics: Aggregated metrics.
    """
    profits = [p for p in ((call.metadata.actual_profit or 0.0) for call in calls) if p != 0]
    total_calls = len(calls)
    profitable_calls = sum(1 for p in profits if p > 0)

    low, high = profit_cap
    capped = np.clip(np.asarray(profits, dtype=float), low, high) if profits else np.asarray([], dtype=float)
    average_profit = float(np.mean(capped)) if capped.size > 0 else 0.0

    return ActorMetrics(
        total_calls=total_calls,
        profitable_calls=profitable_calls,
        average_profit=average_profit,
        win_rate=profitable_calls / total_calls if total_calls > 0 else 0.0,
        sharpe_ratio=calculate_sharpe_ratio(capped.tolist()),
        alpha=average_profit - market_return,
        volume_penalty=calculate_volume_penalty(total_calls, volume_penalty_threshold),
        consistency=calculate_consistency(capped.tolist()),
    )


def summarize_profits_by_archetype(calls: Iterable[object]) -> Dict[str, Dict[str, float]]:
    """Call count and mean realized profit per archetype, for reports."""
    buckets: Dict[str, List[float]] = {}
    for call in calls:
        buckets.setdefault(call.metadata.actor_archetype, []).append(call.metadata.actual_profit or 0.0)
    return {
        archetype: {'calls': float(len(values)), 'average_profit': float(np.mean(values))}
        for archetype, values in buckets.items()
    }
