"""
Token Scenario Generator for Caller Trust Lab.

Builds the population of simulated tokens: a fixed catalog of scenario
archetypes, weighted random selection over a scenario distribution, and
creation of concrete tokens with a launch time and starting market figures.
"""
import logging
import random
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Mapping, NewType, Optional

from caller_trust.price_trajectories import ScenarioType, TrajectoryKind, TrajectoryParams
from settings import SIMULATION_SETTINGS

logger = logging.getLogger(__name__)

TokenId = NewType('TokenId', str)

DISTRIBUTION_TOLERANCE = 1e-6


@dataclass(frozen=True)
class TokenScenario:
    scenario_type: ScenarioType
    kind: TrajectoryKind
    name: str
    symbol: str
    description: str
    initial_price: float
    initial_liquidity: float
    initial_market_cap: float
    rug_step: Optional[int] = None
    pump_step: Optional[int] = None
    dump_step: Optional[int] = None
    drift: float = 0.0

    def trajectory(self, initial_price: Optional[float] = None) -> TrajectoryParams:
        return TrajectoryParams(
            kind=self.kind,
            initial_price=self.initial_price if initial_price is None else initial_price,
            rug_step=self.rug_step,
            pump_step=self.pump_step,
            dump_step=self.dump_step,
            drift=self.drift,
        )


@dataclass(frozen=True)
class SimulatedToken:
    """A scenario instance owned by one simulation run."""
    address: TokenId
    symbol: str
    name: str
    scenario: ScenarioType
    launch_time: datetime
    initial_price: float
    initial_market_cap: float
    initial_liquidity: float
    trajectory: TrajectoryParams

    def to_dict(self) -> Dict[str, object]:
        return {
            'address': self.address,
            'symbol': self.symbol,
            'name': self.name,
            'scenario': self.scenario.value,
            'launchTime': self.launch_time.isoformat(),
            'initialPrice': self.initial_price,
            'initialMarketCap': self.initial_market_cap,
            'initialLiquidity': self.initial_liquidity,
            'priceTrajectory': self.trajectory.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> 'SimulatedToken':
        return cls(
            address=TokenId(data['address']),
            symbol=data['symbol'],
            name=data['name'],
            scenario=ScenarioType(data['scenario']),
            launch_time=datetime.fromisoformat(data['launchTime']),
            initial_price=float(data['initialPrice']),
            initial_market_cap=float(data['initialMarketCap']),
            initial_liquidity=float(data['initialLiquidity']),
            trajectory=TrajectoryParams.from_dict(data['priceTrajectory']),
        )


@dataclass(frozen=True)
class PricePoint:
    timestamp: int  # epoch milliseconds
    price: float
    volume: float
    liquidity: float
    market_cap: float

    def to_dict(self) -> Dict[str, float]:
        return {
            'timestamp': self.timestamp,
            'price': self.price,
            'volume': self.volume,
            'liquidity': self.liquidity,
            'marketCap': self.market_cap,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, float]) -> 'PricePoint':
        return cls(
            timestamp=int(data['timestamp']),
            price=float(data['price']),
            volume=float(data['volume']),
            liquidity=float(data['liquidity']),
            market_cap=float(data['marketCap']),
        )


def to_epoch_ms(moment: datetime) -> int:
    return int(round(moment.timestamp() * 1000))


SCENARIO_CATALOG: Dict[ScenarioType, TokenScenario] = {
    ScenarioType.RUG_FAST: TokenScenario(
        ScenarioType.RUG_FAST, TrajectoryKind.RUG, 'FastRug Token', 'FRUG', 'Rugs within 2 days',
        initial_price=0.00001, initial_liquidity=5000, initial_market_cap=10000, rug_step=2),
    ScenarioType.RUG_SLOW: TokenScenario(
        ScenarioType.RUG_SLOW, TrajectoryKind.RUG, 'SlowRug Token', 'SRUG', 'Builds trust then rugs',
        initial_price=0.00005, initial_liquidity=20000, initial_market_cap=50000, rug_step=10),
    ScenarioType.SCAM: TokenScenario(
        ScenarioType.SCAM, TrajectoryKind.SCAM, 'Scam Token', 'SCAM', 'Low liquidity scam',
        initial_price=0.001, initial_liquidity=500, initial_market_cap=5000),
    ScenarioType.RUNNER_MOON: TokenScenario(
        ScenarioType.RUNNER_MOON, TrajectoryKind.RUNNER, 'MoonShot Token', 'MOON', '50x growth potential',
        initial_price=0.00001, initial_liquidity=50000, initial_market_cap=100000, drift=0.15),
    ScenarioType.RUNNER_STEADY: TokenScenario(
        ScenarioType.RUNNER_STEADY, TrajectoryKind.RUNNER, 'SteadyGains Token', 'GAIN', '10x steady growth',
        initial_price=0.0001, initial_liquidity=30000, initial_market_cap=200000, drift=0.08),
    ScenarioType.SUCCESSFUL: TokenScenario(
        ScenarioType.SUCCESSFUL, TrajectoryKind.SUCCESSFUL, 'Solid Project', 'SOLID', '3x growth',
        initial_price=0.001, initial_liquidity=100000, initial_market_cap=500000),
    ScenarioType.MEDIOCRE: TokenScenario(
        ScenarioType.MEDIOCRE, TrajectoryKind.MEDIOCRE, 'Crabwalk Token', 'CRAB', 'Sideways movement',
        initial_price=0.01, initial_liquidity=50000, initial_market_cap=300000),
    ScenarioType.STAGNANT: TokenScenario(
        ScenarioType.STAGNANT, TrajectoryKind.STAGNANT, 'Dead Project', 'DEAD', 'No volume',
        initial_price=0.005, initial_liquidity=10000, initial_market_cap=50000),
    ScenarioType.BLUECHIP: TokenScenario(
        ScenarioType.BLUECHIP, TrajectoryKind.BLUECHIP, 'Established Token', 'BLUE', 'Stable growth',
        initial_price=10.0, initial_liquidity=5000000, initial_market_cap=100000000),
    ScenarioType.PUMP_DUMP: TokenScenario(
        ScenarioType.PUMP_DUMP, TrajectoryKind.PUMP_DUMP, 'PumpDump Token', 'PUMP', '20x then dump',
        initial_price=0.00001, initial_liquidity=15000, initial_market_cap=20000, pump_step=3, dump_step=5),
    ScenarioType.SLOW_BLEED: TokenScenario(
        ScenarioType.SLOW_BLEED, TrajectoryKind.SLOW_BLEED, 'BleedOut Token', 'BLEED', 'Slow decline',
        initial_price=0.01, initial_liquidity=40000, initial_market_cap=200000),
}

DEFAULT_DISTRIBUTION: Dict[ScenarioType, float] = {
    ScenarioType.RUG_FAST: 0.15,
    ScenarioType.RUG_SLOW: 0.10,
    ScenarioType.SCAM: 0.10,
    ScenarioType.PUMP_DUMP: 0.15,
    ScenarioType.MEDIOCRE: 0.20,
    ScenarioType.SUCCESSFUL: 0.15,
    ScenarioType.RUNNER_MOON: 0.05,
    ScenarioType.BLUECHIP: 0.05,
    ScenarioType.SLOW_BLEED: 0.05,
}

GOOD_SCENARIOS = frozenset({
    ScenarioType.SUCCESSFUL, ScenarioType.RUNNER_MOON, ScenarioType.RUNNER_STEADY, ScenarioType.BLUECHIP,
})
RUG_SCENARIOS = frozenset({ScenarioType.RUG_FAST, ScenarioType.RUG_SLOW, ScenarioType.SCAM})
BAD_KINDS = frozenset({TrajectoryKind.RUG, TrajectoryKind.SCAM, TrajectoryKind.PUMP_DUMP, TrajectoryKind.SLOW_BLEED})
GOOD_KINDS = frozenset({TrajectoryKind.RUNNER, TrajectoryKind.SUCCESSFUL, TrajectoryKind.BLUECHIP})


def performance_type(scenario: ScenarioType) -> str:
    """Classifies a scenario as 'good', 'bad' or 'neutral'."""
    kind = SCENARIO_CATALOG[scenario].kind
    if kind in BAD_KINDS:
        return 'bad'
    if kind in GOOD_KINDS:
        return 'good'
    return 'neutral'


def validate_distribution(distribution: Mapping[ScenarioType, float]) -> None:
    """
    Checks that a scenario distribution is usable for token generation.

    Raises:
        ValueError: If a weight is negative, every weight is zero, or the weights do not sum to 1.
    """
    if not distribution:
        raise ValueError("Scenario distribution is empty.")
    negative = {str(k): w for k, w in distribution.items() if w < 0}
    if negative:
        raise ValueError(f"Scenario distribution has negative weights: {negative}")
    total = sum(distribution.values())
    if total <= 0:
        raise ValueError("Scenario distribution has no positive weight.")
    if abs(total - 1.0) > DISTRIBUTION_TOLERANCE:
        raise ValueError(f"Scenario distribution weights must sum to 1, got {total:.6f}")


def select_scenario(distribution: Mapping[ScenarioType, float], rng: random.Random) -> ScenarioType:
    """Weighted draw over the distribution; MEDIOCRE when rounding leaves no match."""
    total_weight = sum(distribution.values())
    remaining = rng.random() * total_weight
    for scenario, weight in distribution.items():
        remaining -= weight
        if remaining <= 0:
            return ScenarioType(scenario)
    return ScenarioType.MEDIOCRE


def create_token(
    scenario: ScenarioType,
    index: int,
    start_time: datetime,
    end_time: datetime,
    rng: random.Random,
    launch_window_fraction: float = SIMULATION_SETTINGS['LAUNCH_WINDOW_FRACTION'],
) -> SimulatedToken:
    """
    Creates one token for a run with a randomized launch offset and starting figures.

    Args:
        scenario (ScenarioType): Scenario the token follows.
        index (int): Position of the token in the run, used for its symbol and address.
        start_time (datetime): Start of the simulation window.
        end_time (datetime): End of the simulation window.
        rng (random.Random): Random source of the run.
        launch_window_fraction (float): Fraction of the window in which launches happen.

    Returns:
        SimulatedToken: Token bound to the scenario's trajectory shape.
    """
    window = end_time - start_time
    launch_time = start_time + window * (rng.random() * launch_window_fraction)

    price_min, price_span = SIMULATION_SETTINGS['INITIAL_PRICE_RANGE']
    mcap_min, mcap_span = SIMULATION_SETTINGS['INITIAL_MARKET_CAP_RANGE']
    liq_min, liq_span = SIMULATION_SETTINGS['INITIAL_LIQUIDITY_RANGE']
    initial_price = price_min + rng.random() * price_span
    initial_market_cap = mcap_min + rng.random() * mcap_span
    initial_liquidity = liq_min + rng.random() * liq_span

    address = TokenId(f"0x{uuid.UUID(int=rng.getrandbits(128)).hex}{index:08d}")
    return SimulatedToken(
        address=address,
        symbol=f"SIM{scenario.value[:3].upper()}{index}",
        name=f"Simulated {scenario.value.replace('_', ' ')} Token {index}",
        scenario=scenario,
        launch_time=launch_time,
        initial_price=initial_price,
        initial_market_cap=initial_market_cap,
        initial_liquidity=initial_liquidity,
        trajectory=SCENARIO_CATALOG[scenario].trajectory(initial_price),
    )


def generate_tokens(
    count: int,
    start_time: datetime,
    end_time: datetime,
    rng: random.Random,
    distribution: Optional[Mapping[ScenarioType, float]] = None,
    launch_window_fraction: float = SIMULATION_SETTINGS['LAUNCH_WINDOW_FRACTION'],
) -> List[SimulatedToken]:
    """Draws `count` tokens from the distribution (DEFAULT_DISTRIBUTION if omitted)."""
    distribution = DEFAULT_DISTRIBUTION if distribution is None else distribution
    validate_distribution(distribution)

    tokens = [
        create_token(select_scenario(distribution, rng), i, start_time, end_time, rng, launch_window_fraction)
        for i in range(count)
    ]
    counts = Counter(token.scenario.value for token in tokens)
    logger.info(f"Generated {len(tokens)} tokens with scenarios: {dict(counts)}")
    return tokens


def generate_diverse_token_set(rng: random.Random) -> List[TokenScenario]:
    """
    Returns one to three variants of every catalog scenario (exactly one bluechip).

    Variants after the first have their starting figures scaled by a random factor in [0.5, 1.5).
    """
    scenarios: List[TokenScenario] = []
    for scenario_type, base in SCENARIO_CATALOG.items():
        instances = 1 if scenario_type == ScenarioType.BLUECHIP else rng.randint(1, 3)
        for i in range(instances):
            if i == 0:
                scenarios.append(base)
                continue
            scenarios.append(TokenScenario(
                scenario_type=base.scenario_type,
                kind=base.kind,
                name=f"{base.name} {i + 1}",
                symbol=f"{base.symbol}{i + 1}",
                description=base.description,
                initial_price=base.initial_price * (0.5 + rng.random()),
                initial_liquidity=base.initial_liquidity * (0.5 + rng.random()),
                initial_market_cap=base.initial_market_cap * (0.5 + rng.random()),
                rug_step=base.rug_step,
                pump_step=base.pump_step,
                dump_step=base.dump_step,
                drift=base.drift,
            ))
    logger.debug(f"Generated diverse token set with {len(scenarios)} scenarios")
    return scenarios
