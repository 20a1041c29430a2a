import asyncio

import pytest

from pump_sniper.config import Settings
from pump_sniper.config.strategy_config import StrategyConfig
from pump_sniper.core.models import Quote, SellOutcome, SellStatus

MINT = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


class FakeClock:
    """Wall clock that only moves when the code under test sleeps."""

    def __init__(self, start: float = 1_000.0):
        self.now = start
        self.sleeps = []

    def __call__(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


class FakeFeed:
    """Returns scripted quotes in order, then keeps repeating `default`."""

    def __init__(self, quotes=(), default=None, listings=()):
        self.quotes = list(quotes)
        self.default = default
        self.listings = list(listings)
        self.requested = []

    async def await_quote(self, mint, timeout=None):
        self.requested.append(mint)
        if self.quotes:
            return self.quotes.pop(0)
        return self.default

    async def stream_new_listings(self):
        for event in self.listings:
            yield event


class FakeSeller:
    def __init__(self, outcomes=None):
        self.calls = []
        self.outcomes = list(outcomes or [])

    async def sell_tokens(self, mint, fraction):
        self.calls.append((mint, fraction))
        if self.outcomes:
            return self.outcomes.pop(0)
        return SellOutcome(SellStatus.SOLD, amount=1000 * fraction, tx_hash=f"tx{len(self.calls)}")

    @property
    def fractions(self):
        return [fraction for _, fraction in self.calls]


def quote(market_cap: float, bonding_curve: float = 5.0, mint: str = MINT) -> Quote:
    return Quote(mint=mint, symbol="TEST", market_cap=market_cap, bonding_curve=bonding_curve)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        LOG_DIR=str(tmp_path / "logs"),
        STATUS_SNAPSHOT_PATH=str(tmp_path / "logs" / "status.json"),
        COMMAND_FILE=str(tmp_path / "dashboard_commands.json"),
        KEYBOARD_OVERRIDES=False,
        strategy=StrategyConfig(),
    )


@pytest.fixture
def clock():
    return FakeClock()
