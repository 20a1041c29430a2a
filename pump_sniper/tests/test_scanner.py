import asyncio

from conftest import MINT, FakeFeed, quote
from pump_sniper.core.models import NewListingEvent, SlotState
from pump_sniper.core.scanner import OpportunityScanner

OTHER_MINT = "So11111111111111111111111111111111111111112"


class FakeBuyer:
    def __init__(self, tx_hash="buysig"):
        self.tx_hash = tx_hash
        self.calls = []

    async def buy(self, mint, amount_sol):
        self.calls.append((mint, amount_sol))
        return self.tx_hash


class FakeMonitor:
    def __init__(self, hold=None):
        self.runs = []
        self.hold = hold

    async def run(self, entry_quote):
        self.runs.append(entry_quote)
        if self.hold is not None:
            await self.hold.wait()
        return "position"


def listing(mint=MINT):
    return NewListingEvent(mint=mint)


def make_scanner(settings, feed, buyer=None, monitor=None, states=None):
    return OpportunityScanner(
        settings,
        feed,
        buyer or FakeBuyer(),
        monitor or FakeMonitor(),
        on_state_change=states.append if states is not None else None,
    )


class TestEligibility:
    def test_accepts_listing_below_threshold(self, settings):
        feed = FakeFeed([quote(5_000, bonding_curve=9.99)])
        buyer, monitor = FakeBuyer(), FakeMonitor()
        scanner = make_scanner(settings, feed, buyer, monitor)

        result = asyncio.run(scanner.handle_listing(listing()))

        assert result == "position"
        assert buyer.calls == [(MINT, settings.strategy.entry.buy_amount_sol)]
        assert monitor.runs[0].bonding_curve == 9.99
        assert scanner.positions_opened == 1
        assert scanner.last_position == "position"

    def test_rejects_listing_at_threshold(self, settings):
        feed = FakeFeed([quote(5_000, bonding_curve=10.0)])
        buyer, monitor = FakeBuyer(), FakeMonitor()
        scanner = make_scanner(settings, feed, buyer, monitor)

        assert asyncio.run(scanner.handle_listing(listing())) is None
        assert buyer.calls == []
        assert monitor.runs == []

    def test_rejects_listing_without_quote(self, settings):
        buyer = FakeBuyer()
        scanner = make_scanner(settings, FakeFeed(), buyer)

        assert asyncio.run(scanner.handle_listing(listing())) is None
        assert buyer.calls == []

    def test_failed_buy_skips_monitoring(self, settings):
        states = []
        monitor = FakeMonitor()
        scanner = make_scanner(settings, FakeFeed([quote(5_000)]), FakeBuyer(tx_hash=None), monitor, states)

        assert asyncio.run(scanner.handle_listing(listing())) is None
        assert monitor.runs == []
        assert scanner.positions_opened == 0
        assert states == [SlotState.MONITORING, SlotState.SEARCHING]
        assert scanner.state is SlotState.SEARCHING

    def test_errors_while_evaluating_are_contained(self, settings):
        class BrokenFeed(FakeFeed):
            async def await_quote(self, mint):
                raise RuntimeError("feed exploded")

        scanner = make_scanner(settings, BrokenFeed())

        assert asyncio.run(scanner.handle_listing(listing())) is None
        assert scanner.state is SlotState.SEARCHING


class TestStateTransitions:
    def test_state_is_monitoring_for_the_whole_monitor_run(self, settings):
        states = []
        seen = []

        class RecordingMonitor(FakeMonitor):
            async def run(self, entry_quote):
                seen.append(scanner.state)
                return await super().run(entry_quote)

        scanner = make_scanner(settings, FakeFeed([quote(5_000)]), monitor=RecordingMonitor(), states=states)

        asyncio.run(scanner.handle_listing(listing()))

        assert seen == [SlotState.MONITORING]
        assert states == [SlotState.MONITORING, SlotState.SEARCHING]

    def test_listing_ignored_while_monitoring(self, settings):
        settings.strategy.timing.cooldown_sec = 0.0
        feed = FakeFeed([quote(5_000), quote(6_000, mint=OTHER_MINT)])

        async def scenario():
            hold = asyncio.Event()
            monitor = FakeMonitor(hold)
            scanner = make_scanner(settings, feed, monitor=monitor)
            first = asyncio.create_task(scanner.handle_listing(listing()))
            await asyncio.sleep(0.01)
            assert scanner.state is SlotState.MONITORING

            second = await scanner.handle_listing(listing(OTHER_MINT))
            hold.set()
            await first
            scanner.stop()
            return second, monitor

        second, monitor = asyncio.run(scenario())

        assert second is None
        assert feed.requested == [MINT]
        assert len(monitor.runs) == 1


class TestCooldown:
    def test_listing_ignored_during_cooldown(self, settings):
        feed = FakeFeed([quote(5_000, bonding_curve=50.0), quote(5_000)])

        async def scenario():
            scanner = make_scanner(settings, feed)
            await scanner.handle_listing(listing())
            assert scanner.cooldown_active
            result = await scanner.handle_listing(listing(OTHER_MINT))
            scanner.stop()
            return result

        assert asyncio.run(scenario()) is None
        assert feed.requested == [MINT]

    def test_cooldown_starts_even_when_listing_is_rejected(self, settings):
        async def scenario():
            scanner = make_scanner(settings, FakeFeed())
            await scanner.handle_listing(listing())
            active = scanner.cooldown_active
            scanner.stop()
            return active

        assert asyncio.run(scenario()) is True

    def test_cooldown_expires(self, settings):
        settings.strategy.timing.cooldown_sec = 0.01
        feed = FakeFeed([quote(5_000, bonding_curve=50.0), quote(5_000, bonding_curve=50.0, mint=OTHER_MINT)])

        async def scenario():
            scanner = make_scanner(settings, feed)
            await scanner.handle_listing(listing())
            await asyncio.sleep(0.05)
            assert not scanner.cooldown_active
            await scanner.handle_listing(listing(OTHER_MINT))
            scanner.stop()

        asyncio.run(scenario())

        assert feed.requested == [MINT, OTHER_MINT]

    def test_stop_clears_pending_cooldown(self, settings):
        async def scenario():
            scanner = make_scanner(settings, FakeFeed())
            await scanner.handle_listing(listing())
            scanner.stop()
            return scanner.cooldown_active

        assert asyncio.run(scenario()) is False


def test_run_consumes_listing_stream(settings):
    settings.strategy.timing.cooldown_sec = 0.0

    class SpacedFeed(FakeFeed):
        async def stream_new_listings(self):
            for event in self.listings:
                await asyncio.sleep(0.01)
                yield event

    feed = SpacedFeed(
        [quote(5_000, bonding_curve=50.0), quote(5_000, bonding_curve=50.0, mint=OTHER_MINT)],
        listings=[listing(), listing(OTHER_MINT)],
    )

    async def scenario():
        scanner = make_scanner(settings, feed)
        await scanner.run()
        scanner.stop()

    asyncio.run(scenario())

    assert feed.requested == [MINT, OTHER_MINT]


class TestRunGating:
    def test_listing_arriving_while_monitoring_is_dropped(self, settings):
        settings.strategy.timing.cooldown_sec = 0.0
        hold = asyncio.Event()
        seen_states = []

        class LiveFeed(FakeFeed):
            async def stream_new_listings(self):
                yield listing()
                await asyncio.sleep(0.01)
                seen_states.append(scanner.state)
                yield listing(OTHER_MINT)
                await asyncio.sleep(0.01)
                hold.set()

        feed = LiveFeed([quote(5_000), quote(6_000, mint=OTHER_MINT)])
        monitor = FakeMonitor(hold)
        scanner = make_scanner(settings, feed, monitor=monitor)

        asyncio.run(scanner.run())

        assert seen_states == [SlotState.MONITORING]
        assert feed.requested == [MINT]
        assert len(monitor.runs) == 1
        assert scanner.state is SlotState.SEARCHING

    def test_listing_arriving_during_cooldown_is_never_evaluated_later(self, settings):
        settings.strategy.timing.cooldown_sec = 0.02

        class LiveFeed(FakeFeed):
            async def stream_new_listings(self):
                yield listing()
                await asyncio.sleep(0.005)
                yield listing(OTHER_MINT)
                await asyncio.sleep(0.05)

        feed = LiveFeed([quote(5_000, bonding_curve=50.0), quote(5_000, mint=OTHER_MINT)])

        async def scenario():
            scanner = make_scanner(settings, feed)
            await scanner.run()
            scanner.stop()

        asyncio.run(scenario())

        assert feed.requested == [MINT]
