import logging
from datetime import datetime, timedelta, timezone

import pytest

from caller_trust.price_data import PriceDataProvider, SimulatedPriceDataProvider, resolve_call_outcomes
from caller_trust.simulation_runner import SimulationConfig, SimulationRunner

START = datetime(2024, 4, 1, tzinfo=timezone.utc)


@pytest.fixture(scope='module')
def simulation_result():
    config = SimulationConfig(start_time=START, end_time=START + timedelta(hours=48), token_count=12, seed=17)
    return SimulationRunner().run(config)


def test_provider_is_abstract():
    with pytest.raises(TypeError):
        PriceDataProvider()


def test_token_data_from_simulation(simulation_result):
    provider = SimulatedPriceDataProvider(simulation_result)
    address, history = next((a, h) for a, h in simulation_result.price_history.items() if h)
    data = provider.get_token_data(address, 'solana')
    prices = [p.price for p in history]
    assert data['current_price'] == history[-1].price
    assert data['ath'] == max(prices)
    assert data['atl'] == min(prices)
    assert data['market_cap'] == history[-1].market_cap
    assert len(data['price_history']) == len(history)


def test_token_data_as_of_step(simulation_result):
    provider = SimulatedPriceDataProvider(simulation_result)
    address, history = next((a, h) for a, h in simulation_result.price_history.items() if len(h) > 3)
    data = provider.get_token_data(address, 'solana', step=2)
    assert data['current_price'] == history[2].price
    assert len(data['price_history']) == 3


def test_scam_flag_follows_scenario(simulation_result):
    provider = SimulatedPriceDataProvider(simulation_result)
    for address, token in simulation_result.tokens.items():
        data = provider.get_token_data(address, 'solana')
        if data is None:
            continue
        assert data['is_known_scam'] == (token.scenario.value in ('rug_fast', 'rug_slow', 'scam'))


def test_unknown_token_and_chain(simulation_result):
    provider = SimulatedPriceDataProvider(simulation_result)
    assert provider.get_token_data('0xunknown', 'solana') is None
    address = next(iter(simulation_result.tokens))
    assert provider.get_token_data(address, 'ethereum') is None


def test_resolve_call_outcomes(simulation_result, caplog):
    provider = SimulatedPriceDataProvider(simulation_result)
    outcomes = resolve_call_outcomes(simulation_result.calls, provider)
    assert set(outcomes) == {c.call_id for c in simulation_result.calls if c.metadata.price_at_call > 0}
    call = simulation_result.calls[0]
    current = simulation_result.price_history[call.ca_mentioned][-1].price
    expected = (current - call.metadata.price_at_call) / call.metadata.price_at_call * 100
    assert outcomes[call.call_id] == pytest.approx(expected)


class EmptyProvider(PriceDataProvider):
    def get_token_data(self, address, chain, step=None):
        return None


def test_unresolved_calls_are_skipped(simulation_result, caplog):
    with caplog.at_level(logging.WARNING):
        outcomes = resolve_call_outcomes(simulation_result.calls, EmptyProvider())
    assert outcomes == {}
    assert "Could not resolve outcomes" in caplog.text
