"""
Simulation Runner for Caller Trust Lab.

Owns the discrete time loop of a synthetic market: tokens are generated and
priced step by step, every actor is asked for calls at every step, and once the
run ends each call's realized profit is back-filled from the recorded price
history. The run is the single owner of its token and price arenas.

Key Components:
- SimulationConfig: validated run parameters.
- SimulationRunner.run: Initializing -> Stepping -> Finalizing -> Done.
- backfill_profits: realized profit per call, archetype exit and slippage rules.
- compute_actor_performance: per-actor aggregates derived from the call log.
"""
import dataclasses
import logging
import math
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, TypedDict

from caller_trust.actor_behavior import ActorBehaviorEngine, ActorConfig, ActorId, SimulatedCallData, default_actors
from caller_trust.price_trajectories import ScenarioType, price_at
from caller_trust.token_scenarios import (
    DEFAULT_DISTRIBUTION,
    RUG_SCENARIOS,
    PricePoint,
    SimulatedToken,
    TokenId,
    generate_tokens,
    to_epoch_ms,
)
from settings import BACKFILL_SETTINGS, SIMULATION_SETTINGS

logger = logging.getLogger(__name__)

MOMENTUM_ARCHETYPES = frozenset({'pump_chaser', 'fomo_trader'})
PANIC_SELL_ARCHETYPES = frozenset({'pump_chaser', 'fomo_trader', 'rug_promoter'})


class ActorPerformance(TypedDict):
    total_calls: int
    profitable_calls: int
    total_profit: float
    average_profit: float


class SimulationPhase(str, Enum):
    INITIALIZING = 'initializing'
    STEPPING = 'stepping'
    FINALIZING = 'finalizing'
    DONE = 'done'


@dataclass(frozen=True)
class SimulationConfig:
    start_time: datetime
    end_time: datetime
    time_step_minutes: int = SIMULATION_SETTINGS['DEFAULT_TIME_STEP_MINUTES']
    token_count: int = SIMULATION_SETTINGS['DEFAULT_TOKEN_COUNT']
    actors: Sequence[ActorConfig] = field(default_factory=default_actors)
    token_distribution: Optional[Mapping[ScenarioType, float]] = None
    output_dir: str = SIMULATION_SETTINGS['DEFAULT_CACHE_DIR']
    cache_results: bool = False
    seed: Optional[int] = None
    launch_window_fraction: float = SIMULATION_SETTINGS['LAUNCH_WINDOW_FRACTION']

    @classmethod
    def for_days(cls, days: int = SIMULATION_SETTINGS['DEFAULT_DAYS'], end_time: Optional[datetime] = None,
                 **kwargs: Any) -> 'SimulationConfig':
        """A run covering the `days` before `end_time` (now, UTC, if omitted)."""
        end_time = end_time or datetime.now(timezone.utc).replace(microsecond=0)
        return cls(start_time=end_time - timedelta(days=days), end_time=end_time, **kwargs)

    @property
    def time_step(self) -> timedelta:
        return timedelta(minutes=self.time_step_minutes)

    @property
    def total_steps(self) -> int:
        return int((self.end_time - self.start_time) // self.time_step) + 1

    def validate(self) -> None:
        """
        Raises:
            ValueError: If a field has the wrong type or an out-of-range value.
        """
        rules = {
            'start_time': (datetime, None),
            'end_time': (datetime, lambda x: x >= self.start_time),
            'time_step_minutes': (int, lambda x: x > 0),
            'token_count': (int, lambda x: x > 0),
            'launch_window_fraction': ((int, float), lambda x: 0.0 <= x <= 1.0),
            'actors': ((list, tuple), lambda x: len({a.id for a in x}) == len(x)),
        }
        for key, (expected_type, condition) in rules.items():
            value = getattr(self, key)
            if not isinstance(value, expected_type):
                msg = f"Config Error: 'simulation.{key}' has type {type(value).__name__} ({value})"
                logger.critical(msg)
                raise ValueError(msg)
            if condition and not condition(value):
                msg = f"Config Error: 'simulation.{key}' value {value} is not valid (e.g., out of range or duplicated)."
                logger.critical(msg)
                raise ValueError(msg)


@dataclass
class SimulationResult:
    calls: List[SimulatedCallData]
    tokens: Dict[TokenId, SimulatedToken]
    price_history: Dict[TokenId, List[PricePoint]]
    actor_performance: Dict[ActorId, ActorPerformance]
    actors: List[ActorConfig] = field(default_factory=list)


@dataclass
class SimulationContext:
    """Everything one run owns. Built fresh by SimulationRunner.run."""
    config: SimulationConfig
    rng: random.Random
    tokens: Dict[TokenId, SimulatedToken] = field(default_factory=dict)
    price_history: Dict[TokenId, List[PricePoint]] = field(default_factory=dict)
    calls: List[SimulatedCallData] = field(default_factory=list)
    step_index: int = 0

    @classmethod
    def create(cls, config: SimulationConfig) -> 'SimulationContext':
        return cls(config=config, rng=random.Random(config.seed))


def trajectory_step(token: SimulatedToken, now: datetime) -> int:
    hours = (now - token.launch_time).total_seconds() / 3600.0
    return int(math.floor(hours / SIMULATION_SETTINGS['TRAJECTORY_STEP_HOURS']))


def price_point_for(token: SimulatedToken, now: datetime, rng: random.Random) -> PricePoint:
    price = price_at(token.trajectory, trajectory_step(token, now), rng)
    ratio = price / token.initial_price if token.initial_price > 0 else 0.0
    market_cap = token.initial_market_cap * ratio
    return PricePoint(
        timestamp=to_epoch_ms(now),
        price=price,
        volume=market_cap * SIMULATION_SETTINGS['VOLUME_TO_MARKET_CAP'] * (1 + rng.random() * 0.5),
        liquidity=token.initial_liquidity * math.sqrt(ratio),
        market_cap=market_cap,
    )


def active_tokens(tokens: Mapping[TokenId, SimulatedToken], price_history: Mapping[TokenId, Sequence[PricePoint]],
                  now: datetime) -> List[SimulatedToken]:
    """Tokens that have launched and whose latest price is not below the dead-token floor."""
    dead_ratio = SIMULATION_SETTINGS['DEAD_TOKEN_PRICE_RATIO']
    active = []
    for address, token in tokens.items():
        if token.launch_time > now:
            continue
        history = price_history.get(address) or []
        if history and history[-1].price < token.initial_price * dead_ratio:
            continue
        active.append(token)
    return active


def _find_call_index(history: Sequence[PricePoint], timestamp: int) -> int:
    for i, point in enumerate(history):
        if point.timestamp == timestamp:
            return i
    return -1


def compute_call_profit(call: SimulatedCallData, token: SimulatedToken, history: Sequence[PricePoint]) -> float:
    """
    Realized profit percentage of one call, replaying the token's history from the call point.

    Negative calls are scored as a short over a fixed window. Positive and neutral
    calls exit at a detected rug or dump for those scenarios, otherwise after an
    archetype holding period. Archetype slippage is applied to entry and to forced exits.
    """
    call_index = _find_call_index(history, call.timestamp)
    last_index = len(history) - 1
    if call_index == -1 or call_index == last_index:
        return 0.0

    entry_price = history[call_index].price
    if entry_price <= 0:
        return 0.0
    archetype = call.metadata.actor_archetype

    if call.sentiment == 'negative':
        exit_index = min(call_index + BACKFILL_SETTINGS['SHORT_HOLD_STEPS'], last_index)
        return (entry_price - history[exit_index].price) / entry_price * 100

    forced_exit = False
    if token.scenario in RUG_SCENARIOS:
        exit_index = call_index
        rug_floor = entry_price * BACKFILL_SETTINGS['RUG_DETECTION_RATIO']
        for i in range(call_index + 1, len(history)):
            if history[i].price < rug_floor:
                exit_index = i
                forced_exit = True
                break
    elif token.scenario == ScenarioType.PUMP_DUMP:
        exit_index = last_index
        peak = entry_price
        for i in range(call_index + 1, len(history)):
            price = history[i].price
            if price > peak:
                peak = price
            elif price < peak * BACKFILL_SETTINGS['DUMP_DETECTION_RATIO']:
                exit_index = i
                forced_exit = True
                break
    else:
        hold = BACKFILL_SETTINGS['HOLD_STEPS_BY_ARCHETYPE'].get(archetype, BACKFILL_SETTINGS['DEFAULT_HOLD_STEPS'])
        exit_index = min(call_index + hold, last_index)

    effective_entry = entry_price
    if archetype in MOMENTUM_ARCHETYPES:
        effective_entry = entry_price * BACKFILL_SETTINGS['MOMENTUM_ENTRY_SLIPPAGE']
    elif archetype == 'rug_promoter':
        if token.scenario in RUG_SCENARIOS:
            effective_entry = entry_price * BACKFILL_SETTINGS['RUG_PROMOTER_ENTRY_SLIPPAGE']
    elif archetype == 'elite_analyst':
        effective_entry = entry_price * BACKFILL_SETTINGS['ELITE_ENTRY_SLIPPAGE']

    effective_exit = history[exit_index].price
    if forced_exit and archetype in PANIC_SELL_ARCHETYPES:
        effective_exit *= BACKFILL_SETTINGS['FORCED_EXIT_SLIPPAGE']

    return (effective_exit - effective_entry) / effective_entry * 100


def backfill_profits(
    calls: Sequence[SimulatedCallData],
    tokens: Mapping[TokenId, SimulatedToken],
    price_history: Mapping[TokenId, Sequence[PricePoint]],
) -> List[SimulatedCallData]:
    """
    Returns the call log with `actual_profit` filled in.

    Input records are not modified. Calls that already carry a profit are passed
    through unchanged; calls about unknown tokens keep no profit and are logged.
    """
    filled: List[SimulatedCallData] = []
    unresolved = 0
    for call in calls:
        if call.metadata.actual_profit is not None:
            filled.append(call)
            continue
        token = tokens.get(call.ca_mentioned)
        if token is None:
            unresolved += 1
            filled.append(call)
            continue
        profit = compute_call_profit(call, token, price_history.get(token.address, []))
        filled.append(dataclasses.replace(call, metadata=dataclasses.replace(call.metadata, actual_profit=profit)))
    if unresolved:
        logger.warning(f"Skipped profit back-fill for {unresolved} calls with unknown tokens")
    return filled


def compute_actor_performance(
    calls: Sequence[SimulatedCallData],
    actors: Sequence[ActorConfig] = (),
) -> Dict[ActorId, ActorPerformance]:
    """Aggregates calls per actor. Actors without calls get zeroed entries."""
    performance: Dict[ActorId, ActorPerformance] = {
        actor.id: ActorPerformance(total_calls=0, profitable_calls=0, total_profit=0.0, average_profit=0.0)
        for actor in actors
    }
    for call in calls:
        perf = performance.setdefault(
            call.user_id,
            ActorPerformance(total_calls=0, profitable_calls=0, total_profit=0.0, average_profit=0.0),
        )
        profit = call.metadata.actual_profit or 0.0
        perf['total_calls'] += 1
        if profit > 0:
            perf['profitable_calls'] += 1
        perf['total_profit'] += profit
    for perf in performance.values():
        perf['average_profit'] = perf['total_profit'] / perf['total_calls'] if perf['total_calls'] > 0 else 0.0
    return performance


class SimulationRunner:
    """
    Runs synthetic markets. Each call to run() builds a new SimulationContext,
    so nothing leaks from one run into the next.
    """

    def __init__(self) -> None:
        self.phase: Optional[SimulationPhase] = None

    def _enter(self, phase: SimulationPhase) -> None:
        logger.debug(f"Simulation phase: {self.phase.value if self.phase else 'none'} -> {phase.value}")
        self.phase = phase

    def run(self, config: SimulationConfig) -> SimulationResult:
        config.validate()

        self._enter(SimulationPhase.INITIALIZING)
        context = self._initialize(config)

        self._enter(SimulationPhase.STEPPING)
        engine = ActorBehaviorEngine(context.rng)
        total_steps = config.total_steps
        now = config.start_time
        while now <= config.end_time:
            self._step(context, engine, now, total_steps)
            context.step_index += 1
            now = now + config.time_step
        logger.info(f"Simulation complete: {context.step_index} time steps, {len(context.calls)} calls generated")

        self._enter(SimulationPhase.FINALIZING)
        result = self._finalize(context)

        self._enter(SimulationPhase.DONE)
        return result

    def _initialize(self, config: SimulationConfig) -> SimulationContext:
        context = SimulationContext.create(config)
        distribution = config.token_distribution if config.token_distribution is not None else DEFAULT_DISTRIBUTION
        tokens = generate_tokens(
            config.token_count,
            config.start_time,
            config.end_time,
            context.rng,
            distribution=distribution,
            launch_window_fraction=config.launch_window_fraction,
        )
        for token in tokens:
            context.tokens[token.address] = token
            context.price_history[token.address] = []
        logger.info(f"Initialized simulation with {len(config.actors)} actors and {len(tokens)} tokens "
                    f"over {config.total_steps} steps")
        return context

    def _step(self, context: SimulationContext, engine: ActorBehaviorEngine, now: datetime, total_steps: int) -> None:
        for address, token in context.tokens.items():
            if token.launch_time <= now:
                context.price_history[address].append(price_point_for(token, now, context.rng))

        candidates = active_tokens(context.tokens, context.price_history, now)
        if not candidates:
            return

        for actor in context.config.actors:
            if not engine.should_call(actor, context.step_index, total_steps):
                continue
            for token in engine.select_tokens(actor, candidates, context.price_history, now):
                call = engine.generate_call(actor, token, context.price_history[token.address], now)
                if call is not None:
                    context.calls.append(call)

    def _finalize(self, context: SimulationContext) -> SimulationResult:
        calls = backfill_profits(context.calls, context.tokens, context.price_history)
        result = SimulationResult(
            calls=calls,
            tokens=context.tokens,
            price_history=context.price_history,
            actor_performance=compute_actor_performance(calls, context.config.actors),
            actors=list(context.config.actors),
        )
        if context.config.cache_results:
            from caller_trust.simulation_cache import save_simulation
            save_simulation(result, context.config.output_dir)
        return result
