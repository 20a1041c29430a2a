"""Position Monitor - manages one open position from entry to exit.

Every poll interval a fresh quote is evaluated against, in order:

1. Primary branch (first match wins):
   - market cap up >= TAKE_PROFIT_PCT from entry -> sell 50%, keep monitoring
   - market cap down <= STOP_LOSS_PCT from entry -> sell 100%, close
   - bonding curve >= SELL_BONDING_CURVE_PROGRESS -> sell 75%, close
2. Milestone: market cap > last milestone * PROFIT_TARGET -> sell 75%
3. Operator overrides: reset timer, continue (close without selling),
   sell now (sell 75%, close)

If the deadline passes while still active, 75% is sold and the position
closes. A tick without a quote evaluates nothing.
"""
from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Awaitable, Callable, Protocol

from pump_sniper.constants import PUMP_FUN_TOKEN_URL
from pump_sniper.core.models import (
    ExitReason,
    MonitorState,
    Position,
    Quote,
    SellOutcome,
    SellRecord,
    SellStatus,
)
from pump_sniper.core.overrides import OverrideChannel, OverrideKind

if TYPE_CHECKING:
    from pump_sniper.config import Settings


class QuoteSource(Protocol):
    async def await_quote(self, mint: str, timeout: float | None = None) -> Quote | None: ...


class TokenSeller(Protocol):
    async def sell_tokens(self, mint: str, fraction: float) -> SellOutcome: ...


class PositionMonitor:
    def __init__(
        self,
        settings: "Settings",
        feed: QuoteSource,
        seller: TokenSeller,
        overrides: OverrideChannel,
        clock: Callable[[], float] = time.time,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.feed = feed
        self.seller = seller
        self.overrides = overrides
        self.logger = logging.getLogger("pump_sniper.positions")
        self._clock = clock
        self._sleep = sleep
        self.position: Position | None = None

    def open_position(self, quote: Quote) -> Position:
        now = self._clock()
        return Position(
            mint=quote.mint,
            symbol=quote.symbol,
            entry_market_cap=quote.market_cap,
            entry_bonding_curve=quote.bonding_curve,
            last_milestone_market_cap=quote.market_cap,
            opened_at=now,
            deadline=now + self.settings.strategy.timing.sell_timeout_sec,
            last_market_cap=quote.market_cap,
            last_bonding_curve=quote.bonding_curve,
        )

    async def run(self, entry_quote: Quote) -> Position:
        """Monitor the position bought at `entry_quote` until it is no longer active."""
        position = self.open_position(entry_quote)
        # Signals given while no position was open must not hit this one
        self.overrides.clear()
        self.position = position
        self.logger.info(
            "ENTRY %s (%s) at market cap $%.2f, bonding curve %.2f%%",
            position.symbol, position.mint, position.entry_market_cap, position.entry_bonding_curve,
        )

        try:
            while position.is_active:
                if self._clock() >= position.deadline:
                    await self._timeout_exit(position)
                    break

                # The quote wait never runs past the deadline
                quote = await self.feed.await_quote(position.mint, timeout=position.deadline - self._clock())
                if self._clock() >= position.deadline:
                    continue
                if quote is not None:
                    await self.evaluate(position, quote)

                if position.is_active:
                    await self._sleep(self.settings.strategy.timing.poll_interval_sec)
        finally:
            self.position = None

        self.logger.info(
            "EXIT %s: %s (%s) after %d sell attempt(s)",
            position.symbol, position.state.value,
            position.exit_reason.value if position.exit_reason else "-", len(position.sells),
        )
        return position

    async def evaluate(self, position: Position, quote: Quote) -> None:
        """Apply one tick's decisions for `quote`."""
        rules = self.settings.strategy.exit
        change_pct = position.market_cap_change_pct(quote.market_cap)
        position.last_market_cap = quote.market_cap
        position.last_bonding_curve = quote.bonding_curve

        self.logger.info(
            "Ticker: %s | Market Cap: $%.2f | Change: %.2f%% | Bonding Curve: %.2f%% | Time remaining: %.0fs | %s",
            quote.symbol, quote.market_cap, change_pct, quote.bonding_curve,
            max(0.0, position.deadline - self._clock()), PUMP_FUN_TOKEN_URL.format(mint=position.mint),
        )

        if change_pct >= rules.take_profit_pct:
            self.logger.info(
                "Market cap increased by %.0f%%. SELL %.0f%% of %s",
                rules.take_profit_pct, rules.take_profit_sell_fraction * 100, position.mint,
            )
            await self._sell(position, rules.take_profit_sell_fraction, "TAKE_PROFIT")
            position.last_milestone_market_cap = quote.market_cap
        elif change_pct <= rules.stop_loss_pct:
            self.logger.info(
                "Market cap fell by more than %.0f%%. SELL all of %s",
                abs(rules.stop_loss_pct), position.mint,
            )
            await self._sell_and_close(position, 1.0, ExitReason.STOP_LOSS)
        elif quote.bonding_curve >= rules.sell_bonding_curve_progress:
            self.logger.info(
                "Bonding curve reached %.0f%%. SELL %.0f%% of %s",
                rules.sell_bonding_curve_progress, rules.bonding_curve_sell_fraction * 100, position.mint,
            )
            await self._sell_and_close(position, rules.bonding_curve_sell_fraction, ExitReason.BONDING_CURVE)

        if position.is_active and quote.market_cap > position.last_milestone_market_cap * rules.profit_target:
            self.logger.info(
                "Market cap up another %.0f%% from last milestone. SELL %.0f%% of remaining %s",
                (rules.profit_target - 1) * 100, rules.milestone_sell_fraction * 100, position.mint,
            )
            await self._sell(position, rules.milestone_sell_fraction, "MILESTONE")
            position.last_milestone_market_cap = quote.market_cap

        await self._apply_overrides(position)

    async def _apply_overrides(self, position: Position) -> None:
        # Every queue is drained each tick, a closed position just ignores them
        if self.overrides.drain(OverrideKind.RESET_TIMER) and position.is_active:
            position.deadline = self._clock() + self.settings.strategy.timing.sell_timeout_sec
            self.logger.info("OVERRIDE: Resetting timer for %s", position.mint)

        if self.overrides.drain(OverrideKind.CONTINUE) and position.is_active:
            self.logger.warning(
                "OVERRIDE: Continuing to the next trade. Any unsold %s balance is no longer managed",
                position.mint,
            )
            self._close(position, MonitorState.CLOSED, ExitReason.CONTINUE)

        if self.overrides.drain(OverrideKind.SELL_NOW) and position.is_active:
            fraction = self.settings.strategy.exit.manual_sell_fraction
            self.logger.info("OVERRIDE: SELL %.0f%% of %s immediately", fraction * 100, position.mint)
            await self._sell_and_close(position, fraction, ExitReason.SELL_NOW)

    async def _timeout_exit(self, position: Position) -> None:
        rules = self.settings.strategy.exit
        self.logger.info(
            "Market cap did not increase by %.0f%% within the set time. SELL %.0f%% of %s",
            rules.take_profit_pct, rules.timeout_sell_fraction * 100, position.mint,
        )
        await self._sell_and_close(position, rules.timeout_sell_fraction, ExitReason.TIMEOUT)

    async def _sell(self, position: Position, fraction: float, reason: str) -> SellOutcome:
        outcome = await self.seller.sell_tokens(position.mint, fraction)
        if outcome.status != SellStatus.SKIPPED:
            position.sells.append(
                SellRecord(
                    reason=reason,
                    fraction=fraction,
                    amount=outcome.amount,
                    tx_hash=outcome.tx_hash,
                    ts=self._clock(),
                )
            )
        return outcome

    async def _sell_and_close(self, position: Position, fraction: float, reason: ExitReason) -> None:
        outcome = await self._sell(position, fraction, reason.value)
        if outcome.failed:
            self.logger.error(
                "%s exit sell FAILED for %s - position needs operator attention",
                reason.value, position.mint,
            )
            self._close(position, MonitorState.SELL_FAILED, reason)
        else:
            self._close(position, MonitorState.CLOSED, reason)

    @staticmethod
    def _close(position: Position, state: MonitorState, reason: ExitReason) -> None:
        position.state = state
        position.exit_reason = reason
