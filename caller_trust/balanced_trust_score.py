"""
Balanced Trust Score Calculator for Caller Trust Lab.

Turns an actor's aggregated call metrics into a bounded trust score. The
score mixes a fixed archetype prior with six weighted performance components,
then applies archetype scaling, a multiplicative volume adjustment and a
minimum-data reduction before clamping to [0, 100].

Key Components:
- TrustScoreParameters: immutable weights and volume thresholds.
- BalancedTrustScoreCalculator: the scoring pipeline and its components.
- score_caller_history: scores a list of resolved real-world calls.
"""
import dataclasses
import logging
import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, TypedDict

from caller_trust.utils.performance_metrics_utils import (
    ActorMetrics,
    calculate_sharpe_ratio,
    calculate_std,
)
from settings import TRUST_SCORE_SETTINGS

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_TOLERANCE: Dict[str, float] = {
    'elite_analyst': 2.0,
    'skilled_trader': 1.5,
    'technical_analyst': 1.3,
    'contrarian': 1.0,
    'newbie': 0.8,
    'fomo_trader': 0.6,
    'pump_chaser': 0.5,
    'bot_spammer': 0.3,
    'rug_promoter': 0.3,
}

ARCHETYPE_BASE_SCORES: Dict[str, float] = {
    'elite_analyst': 85,
    'skilled_trader': 65,
    'technical_analyst': 55,
    'contrarian': 50,
    'newbie': 35,
    'fomo_trader': 25,
    'pump_chaser': 20,
    'bot_spammer': 10,
    'rug_promoter': 5,
}
DEFAULT_BASE_SCORE = 30.0

ARCHETYPE_SCALING: Dict[str, float] = {
    'elite_analyst': 1.15,
    'skilled_trader': 1.1,
    'technical_analyst': 1.05,
    'contrarian': 1.0,
    'newbie': 0.95,
    'fomo_trader': 0.85,
    'pump_chaser': 0.75,
    'bot_spammer': 0.6,
    'rug_promoter': 0.5,
}
DEFAULT_SCALING = 0.9

WEIGHT_FIELDS: Tuple[str, ...] = (
    'profit_weight', 'win_rate_weight', 'sharpe_weight', 'alpha_weight', 'consistency_weight', 'quality_weight',
)


@dataclass(frozen=True)
class TrustScoreParameters:
    """Weights and thresholds of the balanced score. Create variants with with_updates()."""
    profit_weight: float = TRUST_SCORE_SETTINGS['PROFIT_WEIGHT']
    win_rate_weight: float = TRUST_SCORE_SETTINGS['WIN_RATE_WEIGHT']
    sharpe_weight: float = TRUST_SCORE_SETTINGS['SHARPE_WEIGHT']
    alpha_weight: float = TRUST_SCORE_SETTINGS['ALPHA_WEIGHT']
    consistency_weight: float = TRUST_SCORE_SETTINGS['CONSISTENCY_WEIGHT']
    quality_weight: float = TRUST_SCORE_SETTINGS['QUALITY_WEIGHT']
    normal_volume_threshold: float = TRUST_SCORE_SETTINGS['NORMAL_VOLUME_THRESHOLD']
    high_volume_threshold: float = TRUST_SCORE_SETTINGS['HIGH_VOLUME_THRESHOLD']
    extreme_volume_threshold: float = TRUST_SCORE_SETTINGS['EXTREME_VOLUME_THRESHOLD']
    volume_penalty_threshold: float = TRUST_SCORE_SETTINGS['VOLUME_PENALTY_THRESHOLD']
    volume_tolerance_by_archetype: Mapping[str, float] = field(
        default_factory=lambda: dict(DEFAULT_VOLUME_TOLERANCE), hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, 'volume_tolerance_by_archetype',
                           MappingProxyType(dict(self.volume_tolerance_by_archetype)))
        if not (0 <= self.normal_volume_threshold < self.high_volume_threshold < self.extreme_volume_threshold):
            raise ValueError(
                "Volume thresholds must satisfy 0 <= normal < high < extreme, got "
                f"{self.normal_volume_threshold}/{self.high_volume_threshold}/{self.extreme_volume_threshold}"
            )

    @classmethod
    def tunable_fields(cls) -> List[str]:
        """Scalar parameters a grid search may vary."""
        return [f.name for f in dataclasses.fields(cls) if f.name != 'volume_tolerance_by_archetype']

    def with_updates(self, **changes: Any) -> 'TrustScoreParameters':
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = {name: getattr(self, name) for name in self.tunable_fields()}
        data['volume_tolerance_by_archetype'] = dict(self.volume_tolerance_by_archetype)
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> 'TrustScoreParameters':
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown trust score parameters: {sorted(unknown)}")
        return cls(**dict(data))


class ComponentBreakdown(TypedDict):
    profit: float
    win_rate: float
    sharpe: float
    alpha: float
    consistency: float
    quality: float


def profit_component(average_profit: float) -> float:
    if average_profit > 50:
        return 90 + min(10.0, (average_profit - 50) * 0.1)
    if average_profit > 20:
        return 70 + (average_profit - 20) * 0.67
    if average_profit > 0:
        return 50 + average_profit
    if average_profit > -30:
        return 30 + (average_profit / 30) * 20
    return max(0.0, 30 + average_profit * 0.3)


def win_rate_component(win_rate: float) -> float:
    if win_rate >= 0.8:
        return 85 + (win_rate - 0.8) * 75
    if win_rate >= 0.6:
        return 70 + (win_rate - 0.6) * 75
    if win_rate >= 0.5:
        return 50 + (win_rate - 0.5) * 200
    if win_rate >= 0.3:
        return 20 + (win_rate - 0.3) * 150
    return max(0.0, win_rate * 66.67)


def sharpe_component(sharpe: float) -> float:
    if sharpe > 1.5:
        return 90 + min(10.0, (sharpe - 1.5) * 10)
    if sharpe > 0.5:
        return 60 + (sharpe - 0.5) * 30
    if sharpe > 0:
        return 50 + sharpe * 20
    if sharpe > -1:
        return 30 + sharpe * 20
    return max(0.0, 30 + sharpe * 10)


def alpha_component(alpha: float) -> float:
    # 0 alpha is neutral (50)
    if alpha > 20:
        return 80 + min(20.0, (alpha - 20) * 0.5)
    if alpha > -20:
        return 50 + alpha * 1.5
    return max(0.0, 50 + alpha * 0.5)


def quality_component(rug_promotions: int, good_calls: int, total_calls: int) -> float:
    if total_calls <= 0:
        return 50.0
    good_ratio = good_calls / total_calls
    rug_ratio = rug_promotions / total_calls
    quality = good_ratio * 100 - rug_ratio * 200
    if good_ratio > 0.5:
        quality += 20
    return max(0.0, min(100.0, quality))


class BalancedTrustScoreCalculator:
    """
    Scores one actor from aggregated metrics.

    The calculator holds a TrustScoreParameters instance; set_parameters swaps in
    a new instance and never edits the current one.
    """

    def __init__(self, parameters: Optional[TrustScoreParameters] = None) -> None:
        self._params = parameters or TrustScoreParameters()

    def get_parameters(self) -> TrustScoreParameters:
        return self._params

    def set_parameters(self, parameters: Optional[TrustScoreParameters] = None, **changes: Any) -> TrustScoreParameters:
        base = parameters or self._params
        self._params = base.with_updates(**changes) if changes else base
        logger.debug(f"Trust score parameters set: {self._params.to_dict()}")
        return self._params

    @staticmethod
    def archetype_base(archetype: str) -> float:
        return ARCHETYPE_BASE_SCORES.get(archetype, DEFAULT_BASE_SCORE)

    @staticmethod
    def archetype_scaling(archetype: str) -> float:
        return ARCHETYPE_SCALING.get(archetype, DEFAULT_SCALING)

    def volume_adjustment(self, total_calls: int, archetype: str) -> float:
        """Multiplier falling from 1.0 to 0.8 to 0.5 across the tolerance-scaled thresholds."""
        params = self._params
        tolerance = params.volume_tolerance_by_archetype.get(archetype, 1.0)
        normal = params.normal_volume_threshold * tolerance
        high = params.high_volume_threshold * tolerance
        extreme = params.extreme_volume_threshold * tolerance

        if total_calls <= normal:
            return 1.0
        if total_calls <= high:
            return 1.0 - (total_calls - normal) / (high - normal) * 0.2
        if total_calls <= extreme:
            return 0.8 - (total_calls - high) / (extreme - high) * 0.3
        return 0.5

    def component_breakdown(self, metrics: ActorMetrics, rug_promotions: int, good_calls: int,
                            total_calls: int) -> ComponentBreakdown:
        """Weighted contribution of each performance component, before archetype scaling."""
        params = self._params
        return ComponentBreakdown(
            profit=profit_component(metrics['average_profit']) * params.profit_weight,
            win_rate=win_rate_component(metrics['win_rate']) * params.win_rate_weight,
            sharpe=sharpe_component(metrics['sharpe_ratio']) * params.sharpe_weight,
            alpha=alpha_component(metrics['alpha']) * params.alpha_weight,
            consistency=metrics['consistency'] * 100 * params.consistency_weight,
            quality=quality_component(rug_promotions, good_calls, total_calls) * params.quality_weight,
        )

    def calculate(self, metrics: ActorMetrics, archetype: str, rug_promotions: int, good_calls: int,
                  total_calls: int) -> float:
        """
        Computes the balanced trust score.

        Args:
            metrics (ActorMetrics): Aggregated call metrics of the actor.
            archetype (str): Actor archetype; unknown archetypes use neutral defaults.
            rug_promotions (int): Positive calls on rug or scam tokens.
            good_calls (int): Correct warnings and profitable calls on good tokens.
            total_calls (int): All calls of the actor.

        Returns:
            float: Score in [0, 100].
        """
        components = self.component_breakdown(metrics, rug_promotions, good_calls, total_calls)
        performance = sum(components.values()) * self.archetype_scaling(archetype)

        score = (self.archetype_base(archetype) * TRUST_SCORE_SETTINGS['BASE_SCORE_WEIGHT']
                 + performance * TRUST_SCORE_SETTINGS['PERFORMANCE_SCORE_WEIGHT'])
        score *= self.volume_adjustment(total_calls, archetype)

        if total_calls < 5:
            score *= 0.8
        elif total_calls < 10:
            score *= 0.9

        if not math.isfinite(score):
            logger.warning(f"Non-finite trust score for archetype {archetype}; metrics={dict(metrics)}")
            return 0.0
        return min(100.0, max(0.0, score))


def score_caller_history(
    calls: Sequence[Mapping[str, Any]],
    archetype: Optional[str] = None,
    calculator: Optional[BalancedTrustScoreCalculator] = None,
) -> Optional[Dict[str, Any]]:
    """
    Scores a caller from resolved real-world calls.

    Each call is a mapping with `profit` (percent), and optional boolean
    `is_rug_promotion` / `is_good_call` flags. Alpha is approximated by the
    average profit since no market baseline is available here.

    Returns:
        Optional[Dict[str, Any]]: {'score', 'metrics', 'breakdown'}, or None when there are no calls.
    """
    if not calls:
        return None
    calculator = calculator or BalancedTrustScoreCalculator()

    profits = [float(call.get('profit') or 0.0) for call in calls]
    total_calls = len(profits)
    profitable_calls = sum(1 for p in profits if p > 0)
    average_profit = sum(profits) / total_calls
    std_dev = calculate_std(profits)
    rug_promotions = sum(1 for call in calls if call.get('is_rug_promotion'))
    good_calls = sum(1 for call in calls if call.get('is_good_call'))

    metrics = ActorMetrics(
        total_calls=total_calls,
        profitable_calls=profitable_calls,
        average_profit=average_profit,
        win_rate=profitable_calls / total_calls,
        sharpe_ratio=calculate_sharpe_ratio(profits),
        alpha=average_profit,
        volume_penalty=0.0,
        consistency=max(0.0, 1 - std_dev / 100) if std_dev > 0 else 1.0,
    )
    archetype = archetype or 'unknown'
    return {
        'score': calculator.calculate(metrics, archetype, rug_promotions, good_calls, total_calls),
        'metrics': metrics,
        'breakdown': calculator.component_breakdown(metrics, rug_promotions, good_calls, total_calls),
    }
