"""Opportunity Scanner - picks new listings and hands them to the position monitor."""
from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, AsyncIterator, Callable, Protocol

from pump_sniper.core.models import NewListingEvent, Position, Quote, SlotState

if TYPE_CHECKING:
    from pump_sniper.config import Settings
    from pump_sniper.core.position_monitor import PositionMonitor


class ListingFeed(Protocol):
    def stream_new_listings(self) -> AsyncIterator[NewListingEvent]: ...

    async def await_quote(self, mint: str) -> Quote | None: ...


class TokenBuyer(Protocol):
    async def buy(self, mint: str, amount_sol: float) -> str | None: ...


class OpportunityScanner:
    """Trading slot with two states, SEARCHING and MONITORING.

    A listing is only evaluated while SEARCHING and outside the cooldown
    window, judged at the moment it arrives. Evaluating one starts the
    cooldown, whatever the outcome. The slot switches to MONITORING for the
    buy and the whole monitor run, and back to SEARCHING once the monitor
    returns. The listing stream keeps being read during an evaluation, so
    listings that arrive meanwhile are dropped instead of queueing up.
    """

    def __init__(
        self,
        settings: "Settings",
        feed: ListingFeed,
        buyer: TokenBuyer,
        monitor: "PositionMonitor",
        on_state_change: Callable[[SlotState], None] | None = None,
    ) -> None:
        self.settings = settings
        self.feed = feed
        self.buyer = buyer
        self.monitor = monitor
        self.on_state_change = on_state_change
        self.logger = logging.getLogger("pump_sniper.scanner")
        self.state = SlotState.SEARCHING
        self.cooldown_active = False
        self._cooldown_handle: asyncio.TimerHandle | None = None
        self._busy = False
        self._evaluation: asyncio.Task | None = None
        self.positions_opened = 0
        self.last_position: Position | None = None

    async def run(self) -> None:
        self.logger.info("Scanner searching for new listings...")
        try:
            async for event in self.feed.stream_new_listings():
                if self._admit(event):
                    self._evaluation = asyncio.create_task(self._evaluate_admitted(event.mint), name="evaluate")
            if self._evaluation is not None:
                await self._evaluation
        finally:
            if self._evaluation is not None and not self._evaluation.done():
                self._evaluation.cancel()

    async def handle_listing(self, event: NewListingEvent) -> Position | None:
        if not self._admit(event):
            return None
        return await self._evaluate_admitted(event.mint)

    def _admit(self, event: NewListingEvent) -> bool:
        """Gate a listing as it arrives; an admitted one starts the cooldown."""
        if self.cooldown_active or self._busy or self.state is SlotState.MONITORING:
            self.logger.debug("SKIP listing %s (cooldown or position open)", event.mint)
            return False
        self._busy = True
        self._start_cooldown()
        return True

    async def _evaluate_admitted(self, mint: str) -> Position | None:
        try:
            return await self._evaluate(mint)
        except Exception:
            self.logger.exception("Error while handling listing %s", mint)
            return None
        finally:
            self._busy = False

    async def _evaluate(self, mint: str) -> Position | None:
        entry = self.settings.strategy.entry
        quote = await self.feed.await_quote(mint)
        if quote is None:
            self.logger.info("REJECT %s: no quote", mint)
            return None
        if quote.bonding_curve >= entry.max_bonding_curve_progress:
            self.logger.info(
                "REJECT %s (%s): bonding curve %.2f%% >= %.2f%%",
                quote.symbol, mint, quote.bonding_curve, entry.max_bonding_curve_progress,
            )
            return None

        self.logger.info("NEW TOKEN: Found new token %s (%s)", quote.symbol, mint)
        self._set_state(SlotState.MONITORING)
        try:
            tx_hash = await self.buyer.buy(mint, entry.buy_amount_sol)
            if not tx_hash:
                self.logger.warning("Buy failed for %s, skipping monitoring", mint)
                return None

            self.positions_opened += 1
            position = await self.monitor.run(quote)
            self.last_position = position
            return position
        finally:
            self._set_state(SlotState.SEARCHING)

    def _start_cooldown(self) -> None:
        self.cooldown_active = True
        loop = asyncio.get_running_loop()
        self._cooldown_handle = loop.call_later(self.settings.strategy.timing.cooldown_sec, self._clear_cooldown)

    def _clear_cooldown(self) -> None:
        self.cooldown_active = False
        self._cooldown_handle = None

    def _set_state(self, state: SlotState) -> None:
        if state is self.state:
            return
        self.state = state
        self.logger.info("Mode: %s", "trading" if state is SlotState.MONITORING else "searching")
        if self.on_state_change:
            self.on_state_change(state)

    def stop(self) -> None:
        if self._cooldown_handle is not None:
            self._cooldown_handle.cancel()
            self._clear_cooldown()
