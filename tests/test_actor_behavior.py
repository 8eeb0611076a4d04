import random
from datetime import datetime, timedelta, timezone

import pytest

from caller_trust.actor_behavior import (
    ActorBehaviorEngine,
    ActorConfig,
    ActorId,
    Conviction,
    SimulatedCallData,
    default_actors,
    expected_rankings,
)
from caller_trust.price_trajectories import ScenarioType
from caller_trust.token_scenarios import SCENARIO_CATALOG, PricePoint, SimulatedToken, TokenId, to_epoch_ms

NOW = datetime(2024, 3, 1, 12, tzinfo=timezone.utc)


def make_token(scenario, age_hours=10.0, index=0, price=0.00005):
    return SimulatedToken(
        address=TokenId(f"0xtoken{index}"),
        symbol=f"TK{index}",
        name=f"Token {index}",
        scenario=scenario,
        launch_time=NOW - timedelta(hours=age_hours),
        initial_price=price,
        initial_market_cap=50000.0,
        initial_liquidity=20000.0,
        trajectory=SCENARIO_CATALOG[scenario].trajectory(price),
    )


def make_history(prices):
    start = NOW - timedelta(hours=len(prices) - 1)
    return [
        PricePoint(timestamp=to_epoch_ms(start + timedelta(hours=i)), price=p, volume=1.0, liquidity=1.0,
                   market_cap=p * 1e9)
        for i, p in enumerate(prices)
    ]


def actor(archetype, preferences=(), frequency='medium', timing='random', actor_id='a-1'):
    return ActorConfig(ActorId(actor_id), f"user_{archetype}", archetype, 50, preferences, frequency, timing)


@pytest.fixture
def engine():
    return ActorBehaviorEngine(random.Random(2024))


def test_actor_config_validation():
    with pytest.raises(ValueError):
        actor('whale')
    with pytest.raises(ValueError):
        actor('newbie', frequency='sometimes')
    with pytest.raises(ValueError):
        actor('newbie', timing='never')


def test_actor_preferences_are_coerced_to_scenarios():
    config = actor('newbie', preferences=['scam', 'bluechip'])
    assert config.token_preferences == (ScenarioType.SCAM, ScenarioType.BLUECHIP)
    assert config.to_dict()['tokenPreferences'] == ['scam', 'bluechip']


def test_default_actors_cover_every_archetype_once():
    actors = default_actors()
    assert len(actors) == 9
    assert len({a.id for a in actors}) == 9
    assert len({a.archetype for a in actors}) == 9
    scores = {a.archetype: a.expected_trust_score for a in actors}
    assert scores['elite_analyst'] == 95
    assert scores['rug_promoter'] == 10


def test_expected_rankings_orders_best_first():
    ranking = expected_rankings(default_actors())
    assert ranking[0] == ('EliteTrader', 95)
    assert ranking[-1] == ('RugPromotoor', 10)


def test_timing_windows(engine):
    assert engine.in_timing_window('early', 10, 100)
    assert not engine.in_timing_window('late', 10, 100)
    assert engine.in_timing_window('late', 90, 100)
    assert not engine.in_timing_window('middle', 10, 100)
    assert engine.in_timing_window('middle', 50, 100)
    assert engine.in_timing_window('random', 0, 100)


def test_should_call_respects_timing_window(engine):
    middle_actor = actor('technical_analyst', frequency='high', timing='middle')
    assert not any(engine.should_call(middle_actor, 5, 100) for _ in range(200))


def test_call_frequency_orders_call_rates(engine):
    rates = {}
    for frequency in ('high', 'medium', 'low'):
        config = actor('newbie', frequency=frequency)
        rates[frequency] = sum(engine.should_call(config, 50, 100) for _ in range(4000)) / 4000
    assert rates['high'] > rates['medium'] > rates['low']
    assert rates['high'] == pytest.approx(0.7, abs=0.05)
    assert rates['low'] == pytest.approx(0.15, abs=0.05)


def test_elite_picks_one_young_good_token(engine):
    elite = actor('elite_analyst', preferences=(ScenarioType.SUCCESSFUL,), timing='early')
    young = make_token(ScenarioType.SUCCESSFUL, age_hours=10, index=1)
    old = make_token(ScenarioType.SUCCESSFUL, age_hours=100, index=2)
    rug = make_token(ScenarioType.RUG_FAST, age_hours=5, index=3)
    for _ in range(20):
        assert engine.select_tokens(elite, [young, old, rug], {}, NOW) == [young]


def test_elite_falls_back_to_preferences(engine):
    elite = actor('elite_analyst', preferences=(ScenarioType.SUCCESSFUL,), timing='early')
    old = make_token(ScenarioType.SUCCESSFUL, age_hours=100, index=2)
    assert engine.select_tokens(elite, [old], {}, NOW) == [old]


def test_no_candidates_gives_no_selection(engine):
    elite = actor('elite_analyst', preferences=(ScenarioType.BLUECHIP,))
    rug = make_token(ScenarioType.RUG_FAST, index=3)
    assert engine.select_tokens(elite, [rug], {}, NOW) == []


def test_rug_promoter_only_selects_preferred_rugs(engine):
    promoter = actor('rug_promoter', preferences=(ScenarioType.RUG_FAST, ScenarioType.SCAM))
    tokens = [
        make_token(ScenarioType.RUG_FAST, index=1),
        make_token(ScenarioType.SUCCESSFUL, index=2),
        make_token(ScenarioType.SCAM, index=3),
    ]
    for _ in range(20):
        picked = engine.select_tokens(promoter, tokens, {}, NOW)
        assert 1 <= len(picked) <= 2
        assert all(t.scenario in (ScenarioType.RUG_FAST, ScenarioType.SCAM) for t in picked)


def test_fomo_trader_chases_recent_gains(engine):
    fomo = actor('fomo_trader')
    pumping = make_token(ScenarioType.PUMP_DUMP, index=1)
    flat = make_token(ScenarioType.MEDIOCRE, index=2)
    history = {
        pumping.address: make_history([1.0] * 5 + [1.2, 1.4, 1.6, 1.8, 2.0]),
        flat.address: make_history([1.0] * 10),
    }
    for _ in range(20):
        assert engine.select_tokens(fomo, [pumping, flat], history, NOW) == [pumping]


def test_sentiment_by_archetype(engine):
    elite = actor('elite_analyst')
    assert engine.determine_sentiment(elite, make_token(ScenarioType.BLUECHIP), []) == 'positive'
    assert engine.determine_sentiment(elite, make_token(ScenarioType.SCAM), []) == 'negative'
    assert engine.determine_sentiment(elite, make_token(ScenarioType.MEDIOCRE), []) == 'neutral'

    promoter = actor('rug_promoter')
    assert engine.determine_sentiment(promoter, make_token(ScenarioType.RUG_SLOW), []) == 'positive'
    assert engine.determine_sentiment(promoter, make_token(ScenarioType.MEDIOCRE), []) == 'neutral'

    skilled = actor('skilled_trader')
    pump = make_token(ScenarioType.PUMP_DUMP)
    assert engine.determine_sentiment(skilled, pump, make_history([1.0] * 3)) == 'positive'
    assert engine.determine_sentiment(skilled, pump, make_history([1.0] * 6)) == 'negative'

    contrarian = actor('contrarian')
    rally = make_history([1.0] * 5 + [1.1, 1.2, 1.3, 1.4, 1.5, 1.6])
    assert engine.determine_sentiment(contrarian, make_token(ScenarioType.MEDIOCRE), rally) == 'negative'
    assert engine.determine_sentiment(contrarian, make_token(ScenarioType.MEDIOCRE), []) == 'positive'

    newbie = actor('newbie')
    assert engine.determine_sentiment(newbie, make_token(ScenarioType.SCAM), []) == 'neutral'
    assert engine.determine_sentiment(actor('fomo_trader'), make_token(ScenarioType.SCAM), []) == 'positive'


def test_skilled_trader_usually_detects_scams():
    engine = ActorBehaviorEngine(random.Random(8))
    skilled = actor('skilled_trader')
    scam = make_token(ScenarioType.SCAM)
    negatives = sum(engine.determine_sentiment(skilled, scam, []) == 'negative' for _ in range(2000))
    assert negatives / 2000 == pytest.approx(0.7, abs=0.05)


def test_conviction(engine):
    surge = make_history([1.0, 1.0, 1.0, 1.0, 1.0, 2.0])
    assert engine.determine_conviction(actor('pump_chaser'), surge) == Conviction.VERY_HIGH
    assert engine.determine_conviction(actor('pump_chaser'), []) == Conviction.HIGH
    assert engine.determine_conviction(actor('rug_promoter'), []) == Conviction.VERY_HIGH
    assert engine.determine_conviction(actor('newbie'), surge) == Conviction.LOW


def test_messages_mention_symbol(engine):
    token = make_token(ScenarioType.SUCCESSFUL, index=4)
    for archetype in ('elite_analyst', 'technical_analyst', 'bot_spammer', 'newbie'):
        message = engine.generate_message(actor(archetype), token, 'positive', 0.0001)
        assert '$TK4' in message
        assert '{' not in message


def test_missing_sentiment_template_uses_default(engine):
    token = make_token(ScenarioType.SUCCESSFUL, index=4)
    assert engine.generate_message(actor('rug_promoter'), token, 'negative', 1.0) == "$TK4 doesn't look great"


def test_predict_outcome():
    good = make_token(ScenarioType.SUCCESSFUL)
    bad = make_token(ScenarioType.RUG_FAST)
    assert ActorBehaviorEngine.predict_outcome(actor('elite_analyst'), good) == 'profit'
    assert ActorBehaviorEngine.predict_outcome(actor('newbie'), bad) == 'loss'
    assert ActorBehaviorEngine.predict_outcome(actor('elite_analyst'), bad) == 'neutral'
    assert ActorBehaviorEngine.predict_outcome(actor('newbie'), good) == 'neutral'


def test_generate_call_uses_latest_price_point(engine):
    elite = actor('elite_analyst', actor_id='elite-x')
    token = make_token(ScenarioType.BLUECHIP, index=9)
    history = make_history([1.0, 2.0, 3.0])
    call = engine.generate_call(elite, token, history, NOW)

    assert isinstance(call, SimulatedCallData)
    assert call.user_id == 'elite-x'
    assert call.ca_mentioned == token.address
    assert call.token_mentioned == 'TK9'
    assert call.sentiment == 'positive'
    assert call.timestamp == to_epoch_ms(NOW)
    assert call.metadata.price_at_call == 3.0
    assert call.metadata.token_scenario == ScenarioType.BLUECHIP
    assert call.metadata.actor_archetype == 'elite_analyst'
    assert call.metadata.actual_profit is None
    assert call.chain == 'solana'


def test_generate_call_without_history(engine):
    assert engine.generate_call(actor('newbie'), make_token(ScenarioType.SCAM), [], NOW) is None


def test_call_serialization_uses_camel_case(engine):
    call = engine.generate_call(actor('newbie'), make_token(ScenarioType.SCAM), make_history([1.0]), NOW)
    data = call.to_dict()
    assert data['caMentioned'] == call.ca_mentioned
    assert data['simulationMetadata']['priceAtCall'] == 1.0
    assert 'actualProfit' not in data['simulationMetadata']
    assert SimulatedCallData.from_dict(data) == call
