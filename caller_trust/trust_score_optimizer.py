"""
Parameter Optimizer for Caller Trust Lab.

Scores every simulated actor with the balanced trust score, measures how well
the scores reproduce the archetype-expected scores, and grid-searches the
score's weights for the configuration with the lowest mean absolute error.

Key Components:
- TrustScoreOptimizer.run_optimization_cycle: simulate (or load), score, evaluate, suggest, report.
- TrustScoreOptimizer.optimize_parameters: exhaustive grid search over supplied ranges.
- TrustScoreOptimizer.sensitivity_analysis: per-parameter MAE spread over the search history.
"""
import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypedDict

import numpy as np
import pandas as pd

from caller_trust.accuracy import AccuracyMetrics, evaluate_accuracy
from caller_trust.actor_behavior import ActorConfig, SimulatedCallData, default_actors
from caller_trust.balanced_trust_score import BalancedTrustScoreCalculator, TrustScoreParameters
from caller_trust.simulation_cache import load_cached_simulation, resolve_cache_dir
from caller_trust.simulation_runner import SimulationConfig, SimulationResult, SimulationRunner
from caller_trust.utils.performance_metrics_utils import (
    ActorMetrics,
    calculate_actor_metrics,
    calculate_market_return,
    count_call_quality,
)
from settings import OPTIMIZER_SETTINGS, SIMULATION_SETTINGS, TRUST_SCORE_SETTINGS

logger = logging.getLogger(__name__)


def check_settings_dict(settings_dict: Dict[str, Any], required_keys: List[str], dict_name: str) -> None:
    missing = [k for k in required_keys if k not in settings_dict]
    if missing:
        logger.error(f"CRITICAL: Missing keys in {dict_name}: {missing}")
        raise RuntimeError(f"CRITICAL: Missing keys in {dict_name}: {missing}")


class TrustScoreResult(TypedDict):
    user_id: str
    username: str
    archetype: str
    calculated_score: float
    expected_score: float
    difference: float
    rug_promotions: int
    good_calls: int
    metrics: ActorMetrics


@dataclass
class OptimizationResult:
    scores: List[TrustScoreResult]
    accuracy: AccuracyMetrics
    suggestions: List[str]
    parameters: TrustScoreParameters
    report_paths: Optional[Dict[str, str]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'scores': [dict(s, metrics=dict(s['metrics'])) for s in self.scores],
            'accuracy': dict(self.accuracy),
            'suggestions': list(self.suggestions),
            'parameters': self.parameters.to_dict(),
        }


@dataclass(frozen=True)
class CandidateEvaluation:
    parameters: TrustScoreParameters
    mae: float
    accuracy: AccuracyMetrics = field(compare=False)


def generate_parameter_combinations(
    base: TrustScoreParameters,
    parameter_ranges: Mapping[str, Sequence[float]],
) -> List[TrustScoreParameters]:
    """
    Cartesian product of the supplied ranges applied on top of `base`.

    Parameters absent from the ranges keep their value in `base`; an empty mapping
    yields the single candidate `base`. Combinations that violate the volume
    threshold ordering are skipped.

    Raises:
        ValueError: For a parameter name that cannot be tuned, an empty value list, or
            when no combination is valid.
    """
    tunable = set(TrustScoreParameters.tunable_fields())
    unknown = [name for name in parameter_ranges if name not in tunable]
    if unknown:
        raise ValueError(f"Unknown or non-tunable trust score parameters: {unknown}. Tunable: {sorted(tunable)}")
    empty = [name for name, values in parameter_ranges.items() if len(values) == 0]
    if empty:
        raise ValueError(f"Parameter ranges must not be empty: {empty}")

    names = list(parameter_ranges.keys())
    combinations: List[TrustScoreParameters] = []
    for values in itertools.product(*(parameter_ranges[name] for name in names)):
        try:
            combinations.append(base.with_updates(**dict(zip(names, values))))
        except ValueError as e:
            logger.warning(f"Skipping invalid parameter combination {dict(zip(names, values))}: {e}")
    if not combinations:
        raise ValueError("No valid parameter combination in the supplied ranges")
    return combinations


class TrustScoreOptimizer:
    """
    Validates and tunes the balanced trust score against simulated ground truth.
    """

    def __init__(
        self,
        parameters: Optional[TrustScoreParameters] = None,
        runner: Optional[SimulationRunner] = None,
        cache_dir: Optional[str] = None,
        report_dir: Optional[str] = None,
        write_reports: bool = True,
    ) -> None:
        check_settings_dict(OPTIMIZER_SETTINGS, [
            'MAE_SUGGESTION_THRESHOLD', 'CORRELATION_SUGGESTION_THRESHOLD', 'RANKING_SUGGESTION_THRESHOLD',
            'ARCHETYPE_ERROR_SUGGESTION_THRESHOLD', 'DEFAULT_EXPECTED_SCORE',
        ], 'OPTIMIZER_SETTINGS')
        self.calculator = BalancedTrustScoreCalculator(parameters)
        self.runner = runner or SimulationRunner()
        self.cache_dir = resolve_cache_dir(cache_dir)
        self.report_dir = report_dir
        self.write_reports = write_reports
        self.search_history: List[CandidateEvaluation] = []
        self.search_ranges: Dict[str, List[float]] = {}

    @property
    def parameters(self) -> TrustScoreParameters:
        return self.calculator.get_parameters()

    # --- Simulation data ---

    def default_simulation_config(self, days: int = SIMULATION_SETTINGS['DEFAULT_DAYS'],
                                  **overrides: Any) -> SimulationConfig:
        settings = dict(
            time_step_minutes=SIMULATION_SETTINGS['DEFAULT_TIME_STEP_MINUTES'],
            token_count=SIMULATION_SETTINGS['DEFAULT_TOKEN_COUNT'],
            actors=default_actors(),
            output_dir=self.cache_dir,
            cache_results=True,
        )
        settings.update(overrides)
        return SimulationConfig.for_days(days, **settings)

    def get_simulation_data(self, simulation_config: Optional[SimulationConfig] = None,
                            use_cache: bool = True) -> SimulationResult:
        """Loads the cached run when allowed and available, otherwise simulates a new one."""
        if use_cache:
            cache_dir = simulation_config.output_dir if simulation_config else self.cache_dir
            cached = load_cached_simulation(cache_dir)
            if cached is not None:
                logger.info("Loaded cached simulation data")
                return cached
        logger.info("Generating new simulation data...")
        return self.runner.run(simulation_config or self.default_simulation_config())

    # --- Scoring ---

    @staticmethod
    def _actor_lookup(result: SimulationResult) -> Dict[str, ActorConfig]:
        actors = {actor.id: actor for actor in default_actors()}
        actors.update({actor.id: actor for actor in result.actors})
        return actors

    def calculate_trust_scores(
        self,
        result: SimulationResult,
        parameters: Optional[TrustScoreParameters] = None,
    ) -> List[TrustScoreResult]:
        """
        Scores every actor with at least one call.

        Args:
            result (SimulationResult): Simulation to score. It is only read.
            parameters (TrustScoreParameters, optional): Parameters to score with instead of the current ones.

        Returns:
            List[TrustScoreResult]: Sorted by calculated score, best first.
        """
        params = parameters or self.parameters
        calculator = BalancedTrustScoreCalculator(params)
        actors = self._actor_lookup(result)
        market_return = calculate_market_return(result.price_history.values())
        profit_cap = TRUST_SCORE_SETTINGS['PROFIT_CAP']

        calls_by_actor: Dict[str, List[SimulatedCallData]] = {}
        for call in result.calls:
            calls_by_actor.setdefault(call.user_id, []).append(call)

        scores: List[TrustScoreResult] = []
        unknown_callers: List[str] = []
        for user_id, calls in calls_by_actor.items():
            actor = actors.get(user_id)
            if actor is None:
                unknown_callers.append(user_id)
            archetype = actor.archetype if actor else calls[0].metadata.actor_archetype
            expected = actor.expected_trust_score if actor else OPTIMIZER_SETTINGS['DEFAULT_EXPECTED_SCORE']

            metrics = calculate_actor_metrics(calls, market_return, params.volume_penalty_threshold, profit_cap)
            rug_promotions, good_calls = count_call_quality(calls)
            calculated = calculator.calculate(metrics, archetype, rug_promotions, good_calls, len(calls))

            scores.append(TrustScoreResult(
                user_id=user_id,
                username=calls[0].username,
                archetype=archetype,
                calculated_score=calculated,
                expected_score=float(expected),
                difference=abs(calculated - expected),
                rug_promotions=rug_promotions,
                good_calls=good_calls,
                metrics=metrics,
            ))

        if unknown_callers:
            logger.warning(f"No actor config for callers {sorted(unknown_callers)}; scoring them against the default "
                           f"expected score {OPTIMIZER_SETTINGS['DEFAULT_EXPECTED_SCORE']}")
        scores.sort(key=lambda s: s['calculated_score'], reverse=True)
        return scores

    # --- Suggestions ---

    def generate_suggestions(self, scores: Sequence[TrustScoreResult], accuracy: AccuracyMetrics) -> List[str]:
        """Free-text improvement hints from threshold checks on the accuracy record."""
        if not scores:
            return ["No scores generated. Check simulation data generation."]

        suggestions: List[str] = []
        if accuracy['mae'] > OPTIMIZER_SETTINGS['MAE_SUGGESTION_THRESHOLD']:
            suggestions.append(
                f"High mean absolute error (>{OPTIMIZER_SETTINGS['MAE_SUGGESTION_THRESHOLD']}). "
                "Consider adjusting component weights.")
        if accuracy['correlation'] < OPTIMIZER_SETTINGS['CORRELATION_SUGGESTION_THRESHOLD']:
            suggestions.append(
                f"Low correlation (<{OPTIMIZER_SETTINGS['CORRELATION_SUGGESTION_THRESHOLD']}). "
                "The scoring algorithm may need fundamental changes.")
        if accuracy['ranking_accuracy'] < OPTIMIZER_SETTINGS['RANKING_SUGGESTION_THRESHOLD']:
            suggestions.append(
                f"Low ranking accuracy (<{OPTIMIZER_SETTINGS['RANKING_SUGGESTION_THRESHOLD'] * 100:.0f}%). "
                "Focus on relative scoring improvements.")

        errors_by_archetype: Dict[str, List[float]] = {}
        for score in scores:
            errors_by_archetype.setdefault(score['archetype'], []).append(score['difference'])
        for archetype, errors in errors_by_archetype.items():
            average_error = float(np.mean(errors))
            if average_error > OPTIMIZER_SETTINGS['ARCHETYPE_ERROR_SUGGESTION_THRESHOLD']:
                suggestions.append(
                    f"{archetype} actors have high error ({average_error:.1f}). "
                    "May need archetype-specific adjustments.")

        if scores[0]['archetype'] != 'elite_analyst':
            suggestions.append(
                "Elite analysts should rank highest. Consider increasing weight on alpha or Sharpe ratio.")
        if scores[-1]['archetype'] not in ('rug_promoter', 'bot_spammer'):
            suggestions.append(
                "Rug promoters/bots should rank lowest. Consider stronger penalties for promoting scams.")

        for score in scores:
            if score['metrics']['volume_penalty'] < 0.5 and score['calculated_score'] > score['expected_score']:
                suggestions.append(
                    f"{score['username']}: High volume causing overestimation. "
                    "Consider adjusting volume penalty threshold.")
                break

        if not suggestions:
            suggestions.append("Trust scoring algorithm is performing well. Minor tweaks may still improve accuracy.")
        return suggestions

    # --- Full cycle ---

    def run_optimization_cycle(self, simulation_config: Optional[SimulationConfig] = None,
                               use_cache: bool = True,
                               simulation_data: Optional[SimulationResult] = None) -> OptimizationResult:
        logger.info("Starting trust score optimization cycle...")
        if simulation_data is None:
            simulation_data = self.get_simulation_data(simulation_config, use_cache)
        scores = self.calculate_trust_scores(simulation_data)
        accuracy = evaluate_accuracy(scores)
        suggestions = self.generate_suggestions(scores, accuracy)
        result = OptimizationResult(scores=scores, accuracy=accuracy, suggestions=suggestions,
                                    parameters=self.parameters)

        logger.info(f"Optimization cycle: MAE={accuracy['mae']:.2f} RMSE={accuracy['rmse']:.2f} "
                    f"r={accuracy['correlation']:.3f} ranking={accuracy['ranking_accuracy'] * 100:.1f}%")
        if self.write_reports:
            from caller_trust.optimization_report import write_optimization_report
            result.report_paths = write_optimization_report(result, self.report_dir)
        return result

    # --- Grid search ---

    def evaluate_candidate(self, simulation_data: SimulationResult,
                           parameters: TrustScoreParameters) -> CandidateEvaluation:
        accuracy = evaluate_accuracy(self.calculate_trust_scores(simulation_data, parameters))
        return CandidateEvaluation(parameters=parameters, mae=accuracy['mae'], accuracy=accuracy)

    def optimize_parameters(
        self,
        parameter_ranges: Mapping[str, Sequence[float]],
        simulation_data: Optional[SimulationResult] = None,
        simulation_config: Optional[SimulationConfig] = None,
    ) -> TrustScoreParameters:
        """
        Exhaustive grid search for the parameters with the lowest MAE.

        Every candidate is scored against the same simulation result. The best
        candidate is chosen after all evaluations; on equal MAE the first
        candidate in enumeration order wins. The winner is installed on the
        calculator and returned.

        Args:
            parameter_ranges (Mapping[str, Sequence[float]]): Candidate values per parameter name.
            simulation_data (SimulationResult, optional): Data to score. Loaded or simulated if omitted.
            simulation_config (SimulationConfig, optional): Used when data has to be simulated.

        Returns:
            TrustScoreParameters: The best parameters.
        """
        candidates = generate_parameter_combinations(self.parameters, parameter_ranges)
        if simulation_data is None:
            simulation_data = self.get_simulation_data(simulation_config, use_cache=True)

        logger.info(f"Testing {len(candidates)} parameter combinations...")
        started = time.perf_counter()
        evaluations = [self.evaluate_candidate(simulation_data, candidate) for candidate in candidates]
        elapsed = time.perf_counter() - started

        best = evaluations[0]
        for evaluation in evaluations[1:]:
            if evaluation.mae < best.mae:
                best = evaluation

        self.search_history = evaluations
        self.search_ranges = {name: list(values) for name, values in parameter_ranges.items()}
        self.calculator.set_parameters(best.parameters)
        logger.info(f"Optimization complete in {elapsed:.2f}s. Best MAE: {best.mae:.2f}; "
                    f"parameters: {best.parameters.to_dict()}")
        return best.parameters

    def sensitivity_analysis(self, history: Optional[Sequence[CandidateEvaluation]] = None,
                             parameter_names: Optional[Sequence[str]] = None) -> pd.DataFrame:
        """
        MAE spread per tested value of each searched parameter.

        Returns:
            pd.DataFrame: Columns parameter, value, mean_mae, min_mae, max_mae, impact, where impact
            is the spread of mean_mae across the values of that parameter. Empty if there is no history.
        """
        history = self.search_history if history is None else history
        names = list(parameter_names if parameter_names is not None else self.search_ranges.keys())
        columns = ['parameter', 'value', 'mean_mae', 'min_mae', 'max_mae', 'impact']
        if not history or not names:
            return pd.DataFrame(columns=columns)

        rows = [
            {'parameter': name, 'value': getattr(evaluation.parameters, name), 'mae': evaluation.mae}
            for evaluation in history
            for name in names
        ]
        frame = pd.DataFrame(rows)
        summary = (
            frame.groupby(['parameter', 'value'])['mae']
            .agg(mean_mae='mean', min_mae='min', max_mae='max')
            .reset_index()
        )
        impact = summary.groupby('parameter')['mean_mae'].agg(lambda s: s.max() - s.min()).rename('impact')
        summary = summary.merge(impact, left_on='parameter', right_index=True)
        return summary.sort_values(['impact', 'parameter', 'value'], ascending=[False, True, True])[columns] \
            .reset_index(drop=True)
