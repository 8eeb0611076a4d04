"""
Actor Behavior Engine for Caller Trust Lab.

Decides, for every simulated caller and time step, whether the caller posts,
which tokens they talk about, the sentiment and conviction they express and
the message text. Behavior is keyed by archetype; all randomness comes from
the generator handed to ActorBehaviorEngine by the simulation run.
"""
import logging
import random
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Mapping, NewType, Optional, Sequence, Tuple

from caller_trust.price_trajectories import ScenarioType
from caller_trust.token_scenarios import GOOD_SCENARIOS, RUG_SCENARIOS, PricePoint, SimulatedToken, to_epoch_ms
from settings import ACTOR_SETTINGS, SIMULATION_SETTINGS

logger = logging.getLogger(__name__)

ActorId = NewType('ActorId', str)

ARCHETYPES: Tuple[str, ...] = (
    'elite_analyst',
    'skilled_trader',
    'pump_chaser',
    'rug_promoter',
    'fomo_trader',
    'contrarian',
    'technical_analyst',
    'newbie',
    'bot_spammer',
)
CALL_FREQUENCIES: Tuple[str, ...] = ('high', 'medium', 'low')
TIMING_BIASES: Tuple[str, ...] = ('early', 'middle', 'late', 'random')


class Conviction(str, Enum):
    NONE = 'NONE'
    LOW = 'LOW'
    MEDIUM = 'MEDIUM'
    HIGH = 'HIGH'
    VERY_HIGH = 'VERY_HIGH'


def check_settings_dict(settings_dict: Dict[str, object], required_keys: List[str], dict_name: str) -> None:
    missing = [k for k in required_keys if k not in settings_dict]
    if missing:
        logger.error(f"CRITICAL: Missing keys in {dict_name}: {missing}")
        raise RuntimeError(f"CRITICAL: Missing keys in {dict_name}: {missing}")


check_settings_dict(ACTOR_SETTINGS, [
    'CALL_PROBABILITY', 'ELITE_MAX_TOKEN_AGE_HOURS', 'SKILLED_MAX_TOKEN_AGE_HOURS',
    'FOMO_LOOKBACK_POINTS', 'FOMO_MIN_GAIN', 'PUMP_CHASER_LOOKBACK_POINTS',
    'PUMP_CHASER_MIN_GAIN', 'SKILLED_SCAM_DETECTION_RATE',
], 'ACTOR_SETTINGS')

CALL_PROBABILITY: Dict[str, float] = dict(ACTOR_SETTINGS['CALL_PROBABILITY'])
if not CALL_PROBABILITY['high'] > CALL_PROBABILITY['medium'] > CALL_PROBABILITY['low'] >= 0:
    raise RuntimeError(f"CRITICAL: Call probabilities must satisfy high > medium > low: {CALL_PROBABILITY}")


@dataclass(frozen=True)
class ActorConfig:
    id: ActorId
    username: str
    archetype: str
    expected_trust_score: float
    token_preferences: Tuple[ScenarioType, ...] = field(default_factory=tuple)
    call_frequency: str = 'medium'
    timing_bias: str = 'random'

    def __post_init__(self) -> None:
        if self.archetype not in ARCHETYPES:
            raise ValueError(f"Unknown archetype '{self.archetype}' for actor {self.username}")
        if self.call_frequency not in CALL_FREQUENCIES:
            raise ValueError(f"Unknown call frequency '{self.call_frequency}' for actor {self.username}")
        if self.timing_bias not in TIMING_BIASES:
            raise ValueError(f"Unknown timing bias '{self.timing_bias}' for actor {self.username}")
        object.__setattr__(self, 'token_preferences', tuple(ScenarioType(s) for s in self.token_preferences))

    def to_dict(self) -> Dict[str, object]:
        return {
            'id': self.id,
            'username': self.username,
            'archetype': self.archetype,
            'expectedTrustScore': self.expected_trust_score,
            'tokenPreferences': [s.value for s in self.token_preferences],
            'callFrequency': self.call_frequency,
            'timingBias': self.timing_bias,
        }


@dataclass(frozen=True)
class CallMetadata:
    token_scenario: ScenarioType
    actor_archetype: str
    price_at_call: float
    market_cap_at_call: float
    liquidity_at_call: float
    expected_outcome: str
    actual_profit: Optional[float] = None

    def to_dict(self) -> Dict[str, object]:
        data = {
            'tokenScenario': self.token_scenario.value,
            'actorArchetype': self.actor_archetype,
            'priceAtCall': self.price_at_call,
            'marketCapAtCall': self.market_cap_at_call,
            'liquidityAtCall': self.liquidity_at_call,
            'expectedOutcome': self.expected_outcome,
        }
        if self.actual_profit is not None:
            data['actualProfit'] = self.actual_profit
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> 'CallMetadata':
        actual_profit = data.get('actualProfit')
        return cls(
            token_scenario=ScenarioType(data['tokenScenario']),
            actor_archetype=data['actorArchetype'],
            price_at_call=float(data['priceAtCall']),
            market_cap_at_call=float(data['marketCapAtCall']),
            liquidity_at_call=float(data['liquidityAtCall']),
            expected_outcome=data['expectedOutcome'],
            actual_profit=None if actual_profit is None else float(actual_profit),
        )


@dataclass(frozen=True)
class SimulatedCallData:
    call_id: str
    original_message_id: str
    user_id: ActorId
    username: str
    timestamp: int  # epoch milliseconds
    content: str
    token_mentioned: str
    name_mentioned: str
    ca_mentioned: str
    chain: str
    sentiment: str
    conviction: Conviction
    reasoning: str
    certainty: str
    metadata: CallMetadata
    file_source: str = 'simulation'

    def to_dict(self) -> Dict[str, object]:
        return {
            'callId': self.call_id,
            'originalMessageId': self.original_message_id,
            'userId': self.user_id,
            'username': self.username,
            'timestamp': self.timestamp,
            'content': self.content,
            'tokenMentioned': self.token_mentioned,
            'nameMentioned': self.name_mentioned,
            'caMentioned': self.ca_mentioned,
            'chain': self.chain,
            'sentiment': self.sentiment,
            'conviction': self.conviction.value,
            'llmReasoning': self.reasoning,
            'certainty': self.certainty,
            'fileSource': self.file_source,
            'simulationMetadata': self.metadata.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, object]) -> 'SimulatedCallData':
        return cls(
            call_id=data['callId'],
            original_message_id=data['originalMessageId'],
            user_id=ActorId(data['userId']),
            username=data['username'],
            timestamp=int(data['timestamp']),
            content=data['content'],
            token_mentioned=data['tokenMentioned'],
            name_mentioned=data['nameMentioned'],
            ca_mentioned=data['caMentioned'],
            chain=data['chain'],
            sentiment=data['sentiment'],
            conviction=Conviction(data['conviction']),
            reasoning=data.get('llmReasoning', ''),
            certainty=data.get('certainty', 'medium'),
            file_source=data.get('fileSource', 'simulation'),
            metadata=CallMetadata.from_dict(data['simulationMetadata']),
        )


def default_actors() -> List[ActorConfig]:
    """The reference population used by optimization runs, one actor per archetype."""
    return [
        ActorConfig(ActorId('elite-1'), 'EliteTrader', 'elite_analyst', 95,
                    (ScenarioType.SUCCESSFUL, ScenarioType.RUNNER_MOON, ScenarioType.BLUECHIP),
                    'medium', 'early'),
        ActorConfig(ActorId('skilled-1'), 'ProfitMaker', 'skilled_trader', 75,
                    (ScenarioType.SUCCESSFUL, ScenarioType.RUNNER_STEADY, ScenarioType.PUMP_DUMP),
                    'medium', 'early'),
        ActorConfig(ActorId('pump-1'), 'MoonChaser', 'pump_chaser', 25,
                    (ScenarioType.PUMP_DUMP, ScenarioType.RUG_FAST, ScenarioType.SCAM),
                    'high', 'late'),
        ActorConfig(ActorId('rug-1'), 'RugPromotoor', 'rug_promoter', 10,
                    (ScenarioType.RUG_FAST, ScenarioType.RUG_SLOW, ScenarioType.SCAM),
                    'high', 'early'),
        ActorConfig(ActorId('fomo-1'), 'FomoFollower', 'fomo_trader', 30,
                    (ScenarioType.RUNNER_MOON, ScenarioType.PUMP_DUMP),
                    'high', 'late'),
        ActorConfig(ActorId('contrarian-1'), 'Contrarian', 'contrarian', 60,
                    (ScenarioType.MEDIOCRE, ScenarioType.STAGNANT, ScenarioType.SLOW_BLEED),
                    'medium', 'random'),
        ActorConfig(ActorId('ta-1'), 'ChartGuru', 'technical_analyst', 65,
                    (ScenarioType.BLUECHIP, ScenarioType.SUCCESSFUL, ScenarioType.RUNNER_STEADY),
                    'low', 'middle'),
        ActorConfig(ActorId('newbie-1'), 'CryptoNewb', 'newbie', 40, (), 'medium', 'random'),
        ActorConfig(ActorId('bot-1'), 'SpamBot9000', 'bot_spammer', 15,
                    (ScenarioType.SCAM, ScenarioType.RUG_FAST, ScenarioType.PUMP_DUMP),
                    'high', 'random'),
    ]


def expected_rankings(actors: Sequence[ActorConfig]) -> List[Tuple[str, float]]:
    """Usernames ordered by expected trust score, best first."""
    return sorted(((a.username, a.expected_trust_score) for a in actors), key=lambda x: x[1], reverse=True)


# Templates are formatted with `symbol`, `price`, `target` and `breakout`.
MESSAGE_TEMPLATES: Dict[str, Dict[str, List[str]]] = {
    'elite_analyst': {
        'positive': [
            "${symbol} showing strong fundamentals. This is a long-term hold.",
            "Been researching ${symbol} - solid team and roadmap. Accumulating here.",
            "${symbol} is undervalued at current levels. Target: {target}",
        ],
        'negative': [
            "Warning: ${symbol} showing red flags. Low liquidity, suspicious wallet activity.",
            "Avoid ${symbol} - classic rug setup. Dev wallets hold 40%+",
            "${symbol} is a clear scam. Don't fall for it.",
        ],
        'neutral': [
            "Watching ${symbol} closely. Need more data before making a call.",
            "${symbol} on my radar. Waiting for better entry.",
        ],
    },
    'skilled_trader': {
        'positive': [
            "${symbol} looking strong here. Adding to position.",
            "Good entry point for ${symbol}. Risk/reward favorable.",
        ],
        'negative': [
            "Taking profits on ${symbol}. Distribution pattern forming.",
            "${symbol} looks like exit liquidity from here. Staying out.",
        ],
    },
    'pump_chaser': {
        'positive': [
            "${symbol} is pumping hard! Just aped in!",
            "Holy shit ${symbol} is flying! This is going to $1!",
            "Everyone talking about ${symbol}! Don't miss out!",
        ],
        'negative': [
            "Fuck, ${symbol} dumping. Should have sold earlier.",
            "${symbol} rugged. Lost everything. Stay away.",
        ],
    },
    'rug_promoter': {
        'positive': [
            "\U0001F680\U0001F680 ${symbol} TO THE MOON! 1000X GEM! GET IN NOW! \U0001F680\U0001F680",
            "${symbol} NEXT 100X!!! DEV DOXXED! LIQUIDITY LOCKED! SAFU! \U0001F48E\U0001F48E",
            "BREAKING: ${symbol} ABOUT TO EXPLODE! WHALES ACCUMULATING! \U0001F40B",
        ],
    },
    'fomo_trader': {
        'positive': [
            "Everyone buying ${symbol}! I'm in!",
            "${symbol} trending everywhere! Don't want to miss this!",
        ],
    },
    'contrarian': {
        'positive': [
            "Everyone's bearish on ${symbol}. That's my signal to buy.",
            "${symbol} washed out. Taking the other side here.",
        ],
        'negative': [
            "${symbol} overhyped. Taking opposite position.",
            "While everyone's bullish on ${symbol}, I see weakness.",
        ],
    },
    'technical_analyst': {
        'positive': [
            "${symbol} breaking key resistance at {price}. Next target: {breakout}",
            "Bullish divergence on ${symbol} 4H chart. Accumulation zone.",
            "${symbol} forming cup and handle. Breakout imminent.",
        ],
        'negative': [
            "${symbol} lost critical support. Expecting further downside.",
            "Death cross forming on ${symbol}. Time to exit.",
        ],
        'neutral': [
            "${symbol} consolidating. Waiting for breakout direction.",
            "${symbol} at key level. Could go either way.",
        ],
    },
    'newbie': {
        'positive': [
            "Is ${symbol} a good buy? Thinking about getting some.",
            "Just bought my first ${symbol}! Hope it goes up!",
        ],
    },
    'bot_spammer': {
        'positive': [
            "\U0001F48E ${symbol} \U0001F48E BUY NOW \U0001F48E",
            "${symbol} ${symbol} ${symbol} \U0001F680\U0001F680\U0001F680",
        ],
    },
}

DEFAULT_TEMPLATES: Dict[str, List[str]] = {
    'positive': ["I think ${symbol} looks good"],
    'negative': ["${symbol} doesn't look great"],
    'neutral': ["Watching ${symbol}"],
}

BASE_CONVICTION: Dict[str, Conviction] = {
    'elite_analyst': Conviction.HIGH,
    'skilled_trader': Conviction.MEDIUM,
    'pump_chaser': Conviction.HIGH,
    'rug_promoter': Conviction.VERY_HIGH,
    'fomo_trader': Conviction.MEDIUM,
    'contrarian': Conviction.MEDIUM,
    'technical_analyst': Conviction.MEDIUM,
    'newbie': Conviction.LOW,
    'bot_spammer': Conviction.LOW,
}

CERTAINTY: Dict[str, str] = {
    'elite_analyst': 'high',
    'skilled_trader': 'medium',
    'technical_analyst': 'medium',
    'newbie': 'low',
    'pump_chaser': 'low',
}

SKILLED_ARCHETYPES = frozenset({'elite_analyst', 'skilled_trader', 'contrarian'})
PROFITABLE_SCENARIOS = frozenset({ScenarioType.SUCCESSFUL, ScenarioType.RUNNER_MOON, ScenarioType.BLUECHIP})


def _recent_gain(history: Sequence[PricePoint], lookback: int) -> Optional[float]:
    """Relative gain between the latest point and the point `lookback` entries from the end."""
    if len(history) < lookback:
        return None
    base = history[-lookback].price
    if base <= 0:
        return None
    return history[-1].price / base - 1


class ActorBehaviorEngine:
    """
    Archetype-driven call generation for one simulation run.

    The engine holds no per-run state besides the random generator, so the same
    instance can serve every actor of a run.
    """

    def __init__(self, rng: random.Random) -> None:
        self.rng = rng

    def should_call(self, actor: ActorConfig, step_index: int, total_steps: int) -> bool:
        """
        Draws whether the actor posts at this step.

        The call probability grows with the frequency class and the draw only
        counts inside the actor's timing window over the elapsed fraction of the run.
        """
        if not self.in_timing_window(actor.timing_bias, step_index, total_steps):
            return False
        return self.rng.random() < CALL_PROBABILITY[actor.call_frequency]

    def in_timing_window(self, timing_bias: str, step_index: int, total_steps: int) -> bool:
        phase = step_index / total_steps if total_steps > 0 else 0.0
        if timing_bias == 'early':
            return phase < 0.4 or (phase < 0.6 and self.rng.random() < 0.5)
        if timing_bias == 'middle':
            return 0.2 <= phase <= 0.8
        if timing_bias == 'late':
            return phase > 0.6 or (phase > 0.4 and self.rng.random() < 0.5)
        return True

    def select_tokens(
        self,
        actor: ActorConfig,
        active_tokens: Sequence[SimulatedToken],
        price_history: Mapping[str, Sequence[PricePoint]],
        now: datetime,
    ) -> List[SimulatedToken]:
        """Picks the tokens the actor talks about at this step (possibly none)."""
        def age_hours(token: SimulatedToken) -> float:
            return (now - token.launch_time).total_seconds() / 3600.0

        archetype = actor.archetype
        candidates: List[SimulatedToken]
        if archetype == 'elite_analyst':
            candidates = [
                t for t in active_tokens
                if t.scenario not in RUG_SCENARIOS
                and t.scenario in GOOD_SCENARIOS
                and age_hours(t) < ACTOR_SETTINGS['ELITE_MAX_TOKEN_AGE_HOURS']
            ]
        elif archetype == 'skilled_trader':
            candidates = [
                t for t in active_tokens
                if t.scenario != ScenarioType.SCAM
                and age_hours(t) < ACTOR_SETTINGS['SKILLED_MAX_TOKEN_AGE_HOURS']
            ]
        elif archetype == 'fomo_trader':
            candidates = self._momentum_candidates(
                active_tokens, price_history,
                ACTOR_SETTINGS['FOMO_LOOKBACK_POINTS'], ACTOR_SETTINGS['FOMO_MIN_GAIN'])
        elif archetype == 'pump_chaser':
            candidates = self._momentum_candidates(
                active_tokens, price_history,
                ACTOR_SETTINGS['PUMP_CHASER_LOOKBACK_POINTS'], ACTOR_SETTINGS['PUMP_CHASER_MIN_GAIN'])
        elif archetype == 'rug_promoter':
            candidates = [
                t for t in active_tokens
                if t.scenario in actor.token_preferences and t.scenario != ScenarioType.BLUECHIP
            ]
        else:
            candidates = list(active_tokens)

        if not candidates:
            candidates = [t for t in active_tokens if t.scenario in actor.token_preferences]
        if not candidates:
            return []

        timed = [t for t in candidates if self._fits_launch_age(actor.timing_bias, age_hours(t))]
        final = timed if timed else candidates

        max_tokens = 1 if archetype == 'elite_analyst' else 2
        count = min(len(final), self.rng.randint(1, max_tokens))
        return self.rng.sample(final, count)

    @staticmethod
    def _momentum_candidates(tokens, price_history, lookback: int, min_gain: float) -> List[SimulatedToken]:
        selected = []
        for token in tokens:
            gain = _recent_gain(price_history.get(token.address, []), lookback)
            if gain is not None and gain > min_gain:
                selected.append(token)
        return selected

    @staticmethod
    def _fits_launch_age(timing_bias: str, hours: float) -> bool:
        if timing_bias == 'early':
            return hours < 24
        if timing_bias == 'middle':
            return 24 <= hours < 120
        if timing_bias == 'late':
            return hours >= 72
        return True

    def determine_sentiment(self, actor: ActorConfig, token: SimulatedToken, history: Sequence[PricePoint]) -> str:
        archetype = actor.archetype
        scenario = token.scenario

        if archetype == 'elite_analyst':
            if scenario in GOOD_SCENARIOS:
                return 'positive'
            if scenario in RUG_SCENARIOS:
                return 'negative'
            return 'neutral'

        if archetype == 'skilled_trader':
            if scenario in (ScenarioType.SUCCESSFUL, ScenarioType.RUNNER_MOON, ScenarioType.RUNNER_STEADY):
                return 'positive'
            if scenario in (ScenarioType.RUG_FAST, ScenarioType.SCAM):
                return 'negative' if self.rng.random() < ACTOR_SETTINGS['SKILLED_SCAM_DETECTION_RATE'] else 'positive'
            if scenario == ScenarioType.PUMP_DUMP:
                # Early on the pump looks like a breakout
                return 'positive' if len(history) < 5 else 'negative'
            return 'neutral'

        if archetype == 'rug_promoter':
            return 'positive' if scenario in RUG_SCENARIOS else 'neutral'

        if archetype == 'fomo_trader':
            return 'positive'

        if archetype == 'pump_chaser':
            gain = _recent_gain(history, 5) if len(history) > 5 else None
            return 'positive' if gain is not None and gain > 0.1 else 'neutral'

        if archetype == 'contrarian':
            change = _recent_gain(history, 10) if len(history) > 10 else None
            return 'negative' if change is not None and change > 0.2 else 'positive'

        return 'positive' if scenario in actor.token_preferences else 'neutral'

    def determine_conviction(self, actor: ActorConfig, history: Sequence[PricePoint]) -> Conviction:
        if actor.archetype in ('pump_chaser', 'fomo_trader') and len(history) > 5:
            gain = _recent_gain(history, 5)
            if gain is not None and gain > 0.5:
                return Conviction.VERY_HIGH
        return BASE_CONVICTION.get(actor.archetype, Conviction.MEDIUM)

    def generate_message(self, actor: ActorConfig, token: SimulatedToken, sentiment: str, price: float) -> str:
        """Fills an archetype template for the final sentiment."""
        archetype_templates = MESSAGE_TEMPLATES.get(actor.archetype, {})
        templates = archetype_templates.get(sentiment) or DEFAULT_TEMPLATES.get(sentiment) or DEFAULT_TEMPLATES['neutral']
        template = templates[self.rng.randrange(len(templates))]
        return template.format(
            symbol=token.symbol,
            price=f"{price:.6f}",
            target=f"{price * 5:.6f}",
            breakout=f"{price * 1.5:.6f}",
        )

    @staticmethod
    def predict_outcome(actor: ActorConfig, token: SimulatedToken) -> str:
        is_good_token = token.scenario in PROFITABLE_SCENARIOS
        is_skilled = actor.archetype in SKILLED_ARCHETYPES
        if is_skilled and is_good_token:
            return 'profit'
        if not is_skilled and not is_good_token:
            return 'loss'
        return 'neutral'

    @staticmethod
    def certainty(actor: ActorConfig) -> str:
        return CERTAINTY.get(actor.archetype, 'medium')

    @staticmethod
    def reasoning(actor: ActorConfig, token: SimulatedToken, sentiment: str, conviction: Conviction) -> str:
        return (f"{actor.username} ({actor.archetype}) is {sentiment} on {token.symbol} "
                f"with {conviction.value.lower()} conviction")

    def generate_call(
        self,
        actor: ActorConfig,
        token: SimulatedToken,
        history: Sequence[PricePoint],
        now: datetime,
    ) -> Optional[SimulatedCallData]:
        """Builds one call about `token` from its latest recorded price point."""
        if not history:
            return None
        latest = history[-1]

        sentiment = self.determine_sentiment(actor, token, history)
        conviction = self.determine_conviction(actor, history)
        content = self.generate_message(actor, token, sentiment, latest.price)

        return SimulatedCallData(
            call_id=str(uuid.UUID(int=self.rng.getrandbits(128))),
            original_message_id=f"sim_msg_{uuid.UUID(int=self.rng.getrandbits(128)).hex}",
            user_id=actor.id,
            username=actor.username,
            timestamp=to_epoch_ms(now),
            content=content,
            token_mentioned=token.symbol,
            name_mentioned=token.name,
            ca_mentioned=token.address,
            chain=SIMULATION_SETTINGS['CHAIN'],
            sentiment=sentiment,
            conviction=conviction,
            reasoning=self.reasoning(actor, token, sentiment, conviction),
            certainty=self.certainty(actor),
            metadata=CallMetadata(
                token_scenario=token.scenario,
                actor_archetype=actor.archetype,
                price_at_call=latest.price,
                market_cap_at_call=latest.market_cap,
                liquidity_at_call=latest.liquidity,
                expected_outcome=self.predict_outcome(actor, token),
            ),
        )
