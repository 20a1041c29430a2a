"""Pump.fun buy/sell execution through the trade API."""
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

from pump_sniper.constants import PUMP_FUN_TOKEN_URL
from pump_sniper.core.models import SellOutcome, SellStatus
from pump_sniper.exceptions import RequestFailure, TradeExecutionFailure, WalletException

if TYPE_CHECKING:
    from pump_sniper.config import Settings
    from pump_sniper.core.trade_client import TradeApiClient

# Smallest amount worth submitting, in display units
MIN_SELL_AMOUNT = 1.0


class TokenInventory(Protocol):
    private_key_b58: str

    async def get_token_balance(self, mint: str) -> float: ...


class PumpTrader:
    """Submits buy/sell instructions and sizes partial sells from holdings."""

    def __init__(self, settings: "Settings", api: "TradeApiClient", wallet: TokenInventory) -> None:
        self.settings = settings
        self.api = api
        self.wallet = wallet
        self.logger = logging.getLogger("pump_sniper.trader")

    def _payload(self, trade_type: str, mint: str, amount: Any) -> dict[str, Any]:
        execution = self.settings.strategy.execution
        return {
            "trade_type": trade_type,
            "mint": mint,
            "amount": amount,
            "slippage": execution.slippage_pct,
            "priorityFee": execution.priority_fee,
            "userPrivateKey": self.wallet.private_key_b58,
        }

    async def _submit(self, trade_type: str, mint: str, amount: Any) -> str | None:
        try:
            result = await self.api.request(self.settings.TRADE_API_URL, self._payload(trade_type, mint, amount))
            tx_hash = result.get("tx_hash") if isinstance(result, dict) else None
            if not tx_hash:
                raise TradeExecutionFailure("No transaction hash in response", side=trade_type, mint=mint)
            return str(tx_hash)
        except (RequestFailure, TradeExecutionFailure) as e:
            self.logger.error("%s transaction failed: %s", trade_type.capitalize(), e)
            return None

    async def buy(self, mint: str, amount_sol: float) -> str | None:
        """Buy `amount_sol` SOL worth of `mint`. Returns the tx hash or None."""
        self.logger.info("BUY %s for %.4f SOL | %s", mint, amount_sol, PUMP_FUN_TOKEN_URL.format(mint=mint))
        tx_hash = await self._submit("buy", mint, amount_sol)
        if tx_hash:
            self.logger.info("BUY confirmed for %s: %s", mint, tx_hash)
        return tx_hash

    async def sell(self, mint: str, amount: float) -> str | None:
        """Sell `amount` tokens of `mint`. Returns the tx hash or None."""
        return await self._submit("sell", mint, str(amount))

    async def sell_tokens(self, mint: str, fraction: float) -> SellOutcome:
        """Sell `fraction` of the currently held balance of `mint`.

        Amounts below one display unit are skipped instead of being
        submitted as dust orders. A failed sell is not retried here.
        """
        try:
            held = await self.wallet.get_token_balance(mint)
        except WalletException as e:
            self.logger.error("Cannot size sell of %s: %s", mint, e)
            return SellOutcome(SellStatus.FAILED)
        amount_to_sell = held * fraction

        if amount_to_sell < MIN_SELL_AMOUNT:
            self.logger.info(
                "SKIP sell of %s: amount %.4f is less than %.0f (held %.4f)",
                mint, amount_to_sell, MIN_SELL_AMOUNT, held,
            )
            return SellOutcome(SellStatus.SKIPPED, amount=amount_to_sell)

        self.logger.info("SELL %.4f of token %s (%.0f%% of %.4f)", amount_to_sell, mint, fraction * 100, held)
        tx_hash = await self.sell(mint, amount_to_sell)
        if tx_hash:
            self.logger.info("SOLD %.4f of token %s with transaction hash: %s", amount_to_sell, mint, tx_hash)
            return SellOutcome(SellStatus.SOLD, amount=amount_to_sell, tx_hash=tx_hash)

        self.logger.error("Failed to sell token %s (%.4f)", mint, amount_to_sell)
        return SellOutcome(SellStatus.FAILED, amount=amount_to_sell)
