"""
JSON cache of simulation runs for Caller Trust Lab.

A cached run is four co-located files: the call log, the token registry, the
price-history registry and the per-actor aggregates. Registries are stored as
arrays of [key, value] pairs. A run is only considered cached when all four
files exist and parse.
"""
import configparser
import json
import logging
import os
from typing import Any, Dict, List, Optional

from caller_trust.actor_behavior import ActorId, SimulatedCallData
from caller_trust.simulation_runner import ActorPerformance, SimulationResult
from caller_trust.token_scenarios import PricePoint, SimulatedToken, TokenId
from settings import SIMULATION_SETTINGS

logger = logging.getLogger(__name__)

CALLS_FILE = 'simulated_calls.json'
TOKENS_FILE = 'simulated_tokens.json'
PRICE_HISTORY_FILE = 'price_history.json'
ACTOR_PERFORMANCE_FILE = 'actor_performance.json'
CACHE_FILES = (CALLS_FILE, TOKENS_FILE, PRICE_HISTORY_FILE, ACTOR_PERFORMANCE_FILE)


def resolve_cache_dir(cache_dir: Optional[str] = None, config_path: Optional[str] = None) -> str:
    """
    Returns the cache directory: the explicit argument, else [SimulationCache] cache_dir
    from config.ini, else the settings default.
    """
    if cache_dir:
        return cache_dir
    default_dir = SIMULATION_SETTINGS['DEFAULT_CACHE_DIR']
    config_path = config_path or os.path.join(os.path.dirname(__file__), '..', 'config.ini')
    if not os.path.exists(config_path):
        logger.debug(f"config.ini not found at {config_path}. Using default cache dir: {default_dir}")
        return default_dir
    config = configparser.ConfigParser()
    try:
        config.read(config_path)
        configured = config.get('SimulationCache', 'cache_dir', fallback=None)
    except configparser.Error as e:
        logger.warning(f"Error reading cache settings from {config_path}: {e}. Using default: {default_dir}")
        return default_dir
    if configured and configured.strip():
        return configured.strip()
    return default_dir


def _performance_to_dict(perf: ActorPerformance) -> Dict[str, Any]:
    return {
        'totalCalls': perf['total_calls'],
        'profitableCalls': perf['profitable_calls'],
        'totalProfit': perf['total_profit'],
        'averageProfit': perf['average_profit'],
    }


def _performance_from_dict(data: Dict[str, Any]) -> ActorPerformance:
    return ActorPerformance(
        total_calls=int(data['totalCalls']),
        profitable_calls=int(data['profitableCalls']),
        total_profit=float(data['totalProfit']),
        average_profit=float(data['averageProfit']),
    )


def save_simulation(result: SimulationResult, output_dir: Optional[str] = None) -> str:
    """
    Writes the four cache files of a run.

    Returns:
        str: The directory written to.

    Raises:
        OSError: If the directory or a file cannot be written. The error is logged first.
    """
    output_dir = resolve_cache_dir(output_dir)
    payloads: Dict[str, List[Any]] = {
        CALLS_FILE: [call.to_dict() for call in result.calls],
        TOKENS_FILE: [[address, token.to_dict()] for address, token in result.tokens.items()],
        PRICE_HISTORY_FILE: [
            [address, [point.to_dict() for point in points]] for address, points in result.price_history.items()
        ],
        ACTOR_PERFORMANCE_FILE: [
            [actor_id, _performance_to_dict(perf)] for actor_id, perf in result.actor_performance.items()
        ],
    }
    try:
        os.makedirs(output_dir, exist_ok=True)
        for filename, payload in payloads.items():
            with open(os.path.join(output_dir, filename), 'w', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
    except OSError as e:
        logger.error(f"Failed to write simulation cache to {output_dir}: {e}", exc_info=True)
        raise
    logger.info(f"Results cached to {output_dir}")
    return output_dir


def load_cached_simulation(output_dir: Optional[str] = None) -> Optional[SimulationResult]:
    """
    Loads a cached run.

    Returns:
        Optional[SimulationResult]: The run, or None if any file is missing or malformed.
    """
    output_dir = resolve_cache_dir(output_dir)
    missing = [name for name in CACHE_FILES if not os.path.exists(os.path.join(output_dir, name))]
    if missing:
        logger.warning(f"No usable simulation cache in {output_dir}: missing {missing}")
        return None

    try:
        raw: Dict[str, Any] = {}
        for filename in CACHE_FILES:
            with open(os.path.join(output_dir, filename), 'r', encoding='utf-8') as f:
                raw[filename] = json.load(f)

        calls = [SimulatedCallData.from_dict(item) for item in raw[CALLS_FILE]]
        tokens = {TokenId(address): SimulatedToken.from_dict(data) for address, data in raw[TOKENS_FILE]}
        price_history = {
            TokenId(address): [PricePoint.from_dict(p) for p in points] for address, points in raw[PRICE_HISTORY_FILE]
        }
        actor_performance = {
            ActorId(actor_id): _performance_from_dict(data) for actor_id, data in raw[ACTOR_PERFORMANCE_FILE]
        }
    except (OSError, ValueError, KeyError, TypeError) as e:
        logger.warning(f"Failed to load cached simulation from {output_dir}: {e}")
        return None

    logger.info(f"Loaded cached simulation from {output_dir}: {len(calls)} calls, {len(tokens)} tokens")
    return SimulationResult(
        calls=calls,
        tokens=tokens,
        price_history=price_history,
        actor_performance=actor_performance,
    )
