"""
Price Trajectory Library for Caller Trust Lab.

Each token scenario follows one trajectory shape: a deterministic drift
combined with bounded uniform noise, or a scripted event (rug pull, pump and
dump). Trajectories are identified by a TrajectoryKind and evaluated through
the TRAJECTORY_FUNCTIONS table so that a token's price curve stays plain,
serializable data.

Key Functions:
- price_at: price of a scenario at a given trajectory step.
"""
import math
import random
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional


class ScenarioType(str, Enum):
    RUG_FAST = 'rug_fast'
    RUG_SLOW = 'rug_slow'
    SCAM = 'scam'
    RUNNER_MOON = 'runner_moon'
    RUNNER_STEADY = 'runner_steady'
    SUCCESSFUL = 'successful'
    MEDIOCRE = 'mediocre'
    STAGNANT = 'stagnant'
    BLUECHIP = 'bluechip'
    PUMP_DUMP = 'pump_dump'
    SLOW_BLEED = 'slow_bleed'


class TrajectoryKind(str, Enum):
    RUG = 'rug'
    SCAM = 'scam'
    RUNNER = 'runner'
    SUCCESSFUL = 'successful'
    MEDIOCRE = 'mediocre'
    STAGNANT = 'stagnant'
    BLUECHIP = 'bluechip'
    PUMP_DUMP = 'pump_dump'
    SLOW_BLEED = 'slow_bleed'


@dataclass(frozen=True)
class TrajectoryParams:
    """Shape parameters of one price curve."""
    kind: TrajectoryKind
    initial_price: float
    rug_step: Optional[int] = None
    pump_step: Optional[int] = None
    dump_step: Optional[int] = None
    drift: float = 0.0

    def to_dict(self) -> Dict[str, object]:
        return {
            'type': self.kind.value,
            'initialPrice': self.initial_price,
            'rugTiming': self.rug_step,
            'pumpTiming': self.pump_step,
            'dumpTiming': self.dump_step,
            'drift': self.drift,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> 'TrajectoryParams':
        return cls(
            kind=TrajectoryKind(data['type']),
            initial_price=float(data['initialPrice']),
            rug_step=data.get('rugTiming'),
            pump_step=data.get('pumpTiming'),
            dump_step=data.get('dumpTiming'),
            drift=float(data.get('drift') or 0.0),
        )


def _noise(rng: random.Random) -> float:
    # Uniform in [-0.5, 0.5)
    return rng.random() - 0.5


def _rug_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    rug_step = params.rug_step if params.rug_step is not None else 5
    if step < rug_step:
        return params.initial_price * math.pow(1.5, step)
    return params.initial_price * 0.001


def _scam_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    decay = -0.1
    return params.initial_price * math.pow(1 + decay + _noise(rng) * 0.5, step)


def _runner_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    # Two flat steps out of every five model consolidation
    growth = 0.0 if step % 5 < 2 else params.drift
    return params.initial_price * math.pow(1 + growth + _noise(rng) * 0.1, step)


def _successful_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    return params.initial_price * math.pow(1.03 + _noise(rng) * 0.05, step)


def _mediocre_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    return params.initial_price * (1 + _noise(rng) * 0.1)


def _stagnant_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    amplitude = 0.02 * math.exp(-0.1 * step)
    return params.initial_price * math.pow(1 - 0.02 + _noise(rng) * amplitude, step)


def _bluechip_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    return params.initial_price * math.pow(1.01 + _noise(rng) * 0.03, step)


def _pump_dump_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    pump_step = params.pump_step if params.pump_step is not None else 3
    dump_step = params.dump_step if params.dump_step is not None else 5
    if step < pump_step:
        return params.initial_price * (1 + _noise(rng) * 0.1)
    if step < dump_step:
        return params.initial_price * math.pow(5, step - pump_step + 1)
    peak = params.initial_price * math.pow(5, dump_step - pump_step)
    return peak * 0.05


def _slow_bleed_price(params: TrajectoryParams, step: int, rng: random.Random) -> float:
    movement = 0.05 if rng.random() < 0.2 else -0.03
    return params.initial_price * math.pow(1 + movement + _noise(rng) * 0.05, step)


TRAJECTORY_FUNCTIONS: Dict[TrajectoryKind, Callable[[TrajectoryParams, int, random.Random], float]] = {
    TrajectoryKind.RUG: _rug_price,
    TrajectoryKind.SCAM: _scam_price,
    TrajectoryKind.RUNNER: _runner_price,
    TrajectoryKind.SUCCESSFUL: _successful_price,
    TrajectoryKind.MEDIOCRE: _mediocre_price,
    TrajectoryKind.STAGNANT: _stagnant_price,
    TrajectoryKind.BLUECHIP: _bluechip_price,
    TrajectoryKind.PUMP_DUMP: _pump_dump_price,
    TrajectoryKind.SLOW_BLEED: _slow_bleed_price,
}

_missing_kinds = [kind for kind in TrajectoryKind if kind not in TRAJECTORY_FUNCTIONS]
if _missing_kinds:
    raise RuntimeError(f"CRITICAL: No trajectory function for kinds: {_missing_kinds}")


def price_at(params: TrajectoryParams, step: int, rng: Optional[random.Random] = None) -> float:
    """
    Returns the price of a trajectory at a discrete step.

    Args:
        params (TrajectoryParams): Shape of the curve.
        step (int): Whole trajectory steps elapsed since launch. Negative steps are treated as 0.
        rng (random.Random, optional): Noise source. A fresh unseeded generator is used if omitted.

    Returns:
        float: A non-negative price.
    """
    if rng is None:
        rng = random.Random()
    try:
        price = TRAJECTORY_FUNCTIONS[params.kind](params, max(0, int(step)), rng)
    except OverflowError:
        return 0.0
    if not math.isfinite(price):
        return 0.0
    return max(0.0, price)
