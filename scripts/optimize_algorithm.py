"""
Optimize the trust score algorithm.

Runs an optimization cycle on simulated callers, grid-searches the score
weights, and writes the search report, the best parameters and a parameter
sensitivity table to the output directory.

Usage:
    python scripts/optimize_algorithm.py [--mode quick|full] [--output DIR] [--no-cache] [--seed N]
"""
import argparse
import json
import logging
import os
import time
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence

from caller_trust.trust_score_optimizer import TrustScoreOptimizer
from caller_trust.utils.logging_utils import setup_global_logging
from settings import OPTIMIZER_SETTINGS, SIMULATION_SETTINGS

logger: logging.Logger = logging.getLogger(__name__)

PARAMETER_RANGES: Dict[str, Dict[str, List[float]]] = {
    'quick': {
        'profit_weight': [0.2, 0.25, 0.3],
        'win_rate_weight': [0.2, 0.25],
        'sharpe_weight': [0.1, 0.15],
        'alpha_weight': [0.1],
        'consistency_weight': [0.1],
        'quality_weight': [0.15, 0.2],
    },
    'full': {
        'profit_weight': [0.15, 0.2, 0.25, 0.3, 0.35],
        'win_rate_weight': [0.15, 0.2, 0.25, 0.3],
        'sharpe_weight': [0.05, 0.1, 0.15, 0.2],
        'alpha_weight': [0.05, 0.1, 0.15],
        'consistency_weight': [0.05, 0.1, 0.15],
        'quality_weight': [0.1, 0.15, 0.2, 0.25],
    },
}
TOP_CONFIGURATIONS = 10


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Optimize the caller trust score parameters on simulated callers.")
    parser.add_argument('--mode', choices=sorted(PARAMETER_RANGES), default='full',
                        help="Parameter grid to search.")
    parser.add_argument('--output', type=str, default=OPTIMIZER_SETTINGS['DEFAULT_REPORT_DIR'],
                        help="Directory for reports and best parameters.")
    parser.add_argument('--no-cache', action='store_true', help="Ignore cached simulation data and simulate anew.")
    parser.add_argument('--seed', type=int, default=None, help="Seed for the simulation.")
    parser.add_argument('--cache-dir', type=str, default=None, help="Simulation cache directory.")
    parser.add_argument('--days', type=int, default=SIMULATION_SETTINGS['DEFAULT_DAYS'],
                        help="Simulated days when a new simulation is run.")
    parser.add_argument('--tokens', type=int, default=SIMULATION_SETTINGS['DEFAULT_TOKEN_COUNT'],
                        help="Simulated tokens when a new simulation is run.")
    parser.add_argument('--config', type=str, default='config.ini', help="Path to config.ini for logging.")
    return parser.parse_args(argv)


def write_json(path: str, payload: object) -> None:
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, indent=2)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    setup_global_logging(args.config)

    parameter_ranges = PARAMETER_RANGES[args.mode]
    total_combinations = 1
    for values in parameter_ranges.values():
        total_combinations *= len(values)
    logger.info(f"Starting trust score optimization. Mode: {args.mode}. Cache: {not args.no_cache}. "
                f"Output: {args.output}. Combinations: {total_combinations}")

    try:
        os.makedirs(args.output, exist_ok=True)
        optimizer = TrustScoreOptimizer(cache_dir=args.cache_dir, report_dir=args.output)
        config = optimizer.default_simulation_config(days=args.days, seed=args.seed, token_count=args.tokens)
        simulation_data = optimizer.get_simulation_data(config, use_cache=not args.no_cache)

        baseline = optimizer.run_optimization_cycle(simulation_data=simulation_data)
        for suggestion in baseline.suggestions:
            logger.info(f"Suggestion: {suggestion}")

        started = time.perf_counter()
        best_parameters = optimizer.optimize_parameters(parameter_ranges, simulation_data=simulation_data)
        duration = time.perf_counter() - started

        best = min(optimizer.search_history, key=lambda evaluation: evaluation.mae)
        ranked = sorted(optimizer.search_history, key=lambda evaluation: evaluation.mae)[:TOP_CONFIGURATIONS]
        report = {
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'mode': args.mode,
            'totalCombinations': total_combinations,
            'duration': duration,
            'baselineAccuracy': dict(baseline.accuracy),
            'bestParameters': best_parameters.to_dict(),
            'bestScore': best.mae,
            'accuracy': dict(best.accuracy),
            'parameterRanges': parameter_ranges,
            'topConfigurations': [
                {'parameters': e.parameters.to_dict(), 'score': e.mae, 'accuracy': dict(e.accuracy)} for e in ranked
            ],
        }
        write_json(os.path.join(args.output, 'optimization_report.json'), report)
        write_json(os.path.join(args.output, 'best_parameters.json'), best_parameters.to_dict())

        sensitivity = optimizer.sensitivity_analysis()
        sensitivity.to_json(os.path.join(args.output, 'sensitivity_analysis.json'), orient='records', indent=2)
    except (OSError, ValueError) as e:
        logger.error(f"Error during optimization: {e}", exc_info=True)
        return 1

    logger.info(f"Best MAE {best.mae:.2f} (baseline {baseline.accuracy['mae']:.2f}), "
                f"ranking accuracy {best.accuracy['ranking_accuracy'] * 100:.1f}%")
    for name, value in best_parameters.to_dict().items():
        logger.info(f"   {name}: {value}")
    impact = sensitivity.drop_duplicates('parameter')[['parameter', 'impact']]
    for rank, row in enumerate(impact.itertuples(index=False), start=1):
        logger.info(f"   {rank}. {row.parameter}: {row.impact:.3f}")
    logger.info(f"Optimization complete. Results saved to {args.output}")
    return 0


if __name__ == '__main__':
    raise SystemExit(main())
