"""
Price data collaborators for Caller Trust Lab.

A PriceDataProvider answers token market-data lookups. The simulated provider
answers from a finished simulation run, optionally as of an earlier step, so
call outcomes can be resolved without any network access.
"""
import logging
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, TypedDict

from caller_trust.actor_behavior import SimulatedCallData
from caller_trust.simulation_runner import SimulationResult
from caller_trust.token_scenarios import RUG_SCENARIOS, PricePoint
from settings import SIMULATION_SETTINGS

logger = logging.getLogger(__name__)


class TokenData(TypedDict):
    current_price: float
    price_history: List[PricePoint]
    liquidity: float
    market_cap: float
    ath: float
    atl: float
    is_known_scam: bool


class PriceDataProvider(ABC):
    """Source of token market data."""

    @abstractmethod
    def get_token_data(self, address: str, chain: str, step: Optional[int] = None) -> Optional[TokenData]:
        """
        Args:
            address (str): Token contract address.
            chain (str): Chain the token lives on.
            step (int, optional): Answer as of this price point index. Latest if omitted.

        Returns:
            Optional[TokenData]: None if the token is unknown.
        """
        raise NotImplementedError


class SimulatedPriceDataProvider(PriceDataProvider):
    def __init__(self, result: SimulationResult, chain: str = SIMULATION_SETTINGS['CHAIN']) -> None:
        self.result = result
        self.chain = chain

    def get_token_data(self, address: str, chain: str, step: Optional[int] = None) -> Optional[TokenData]:
        if chain != self.chain:
            logger.debug(f"Chain {chain} not served by simulated provider ({self.chain})")
            return None
        token = self.result.tokens.get(address)
        history = self.result.price_history.get(address)
        if token is None or not history:
            return None

        visible: Sequence[PricePoint] = history if step is None else history[:max(0, step) + 1]
        prices = [point.price for point in visible]
        latest = visible[-1]
        return TokenData(
            current_price=latest.price,
            price_history=list(visible),
            liquidity=latest.liquidity,
            market_cap=latest.market_cap,
            ath=max(prices),
            atl=min(prices),
            is_known_scam=token.scenario in RUG_SCENARIOS,
        )


def resolve_call_outcomes(calls: Sequence[SimulatedCallData], provider: PriceDataProvider,
                          step: Optional[int] = None) -> Dict[str, float]:
    """
    Percentage move from each call's price to the provider's current price.

    Calls whose token cannot be resolved, or whose call price is not positive,
    are skipped.

    Returns:
        Dict[str, float]: Outcome per call_id.
    """
    outcomes: Dict[str, float] = {}
    skipped = 0
    for call in calls:
        data = provider.get_token_data(call.ca_mentioned, call.chain, step)
        price_at_call = call.metadata.price_at_call
        if data is None or price_at_call <= 0:
            skipped += 1
            continue
        outcomes[call.call_id] = (data['current_price'] - price_at_call) / price_at_call * 100
    if skipped:
        logger.warning(f"Could not resolve outcomes for {skipped} of {len(calls)} calls")
    return outcomes
