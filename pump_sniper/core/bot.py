"""SniperBot - wires the feed, trader, scanner, monitor and operator overrides together."""
from __future__ import annotations

import asyncio
import logging

from solana.rpc.async_api import AsyncClient

from pump_sniper.config import Settings
from pump_sniper.core.account_monitor import AccountMonitor
from pump_sniper.core.models import SlotState
from pump_sniper.core.overrides import CommandFileSource, KeyboardOverrideSource, OverrideChannel
from pump_sniper.core.position_monitor import PositionMonitor
from pump_sniper.core.pumpportal_client import PumpPortalClient
from pump_sniper.core.scanner import OpportunityScanner
from pump_sniper.core.trade_client import TradeApiClient
from pump_sniper.core.trader import PumpTrader
from pump_sniper.core.wallet import WalletManager, load_keypair
from pump_sniper.exceptions import WalletException


class SniperBot:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or Settings.from_env()
        self.logger = logging.getLogger("pump_sniper.bot")
        self.is_running = False
        self.client: AsyncClient | None = None
        self._tasks: list[asyncio.Task] = []

    def setup(self) -> None:
        """Build every component. Raises WalletException if no keypair can be loaded."""
        settings = self.settings
        keypair = load_keypair(settings.SOLANA_WALLET_PATH, settings.SOLANA_PRIVATE_KEY)
        self.logger.info("Private key loaded, wallet %s", str(keypair.pubkey())[:12] + "...")

        self.client = AsyncClient(settings.RPC_URL)
        self.wallet = WalletManager(self.client, keypair)
        self.api = TradeApiClient(settings)
        self.trader = PumpTrader(settings, self.api, self.wallet)
        self.feed = PumpPortalClient(settings)
        self.overrides = OverrideChannel()
        self.monitor = PositionMonitor(settings, self.feed, self.trader, self.overrides)
        self.scanner = OpportunityScanner(
            settings, self.feed, self.trader, self.monitor,
            on_state_change=self._on_state_change,
        )
        self.account_monitor = AccountMonitor(settings, self.wallet, self.scanner, self.monitor)
        self.command_source = CommandFileSource(self.overrides, settings.COMMAND_FILE)

    async def check_preconditions(self) -> None:
        """Refuse to start without enough SOL for one entry plus fees."""
        balance = await self.wallet.get_sol_balance()
        required = self.settings.strategy.entry.buy_amount_sol
        self.logger.info("Current balance: %.4f SOL", balance)
        if balance < required:
            raise WalletException(
                "Insufficient balance to cover transaction and fees",
                balance=balance, required=required,
            )
        self.logger.info("Sufficient balance detected. Starting the bot...")

    def _on_state_change(self, state: SlotState) -> None:
        self.account_monitor.write_snapshot()

    async def start(self) -> None:
        self.setup()
        await self.check_preconditions()

        self.is_running = True
        self.logger.info("Starting live trading mode...")
        await self.account_monitor.refresh()
        self.account_monitor.write_snapshot()

        if self.settings.KEYBOARD_OVERRIDES:
            KeyboardOverrideSource(self.overrides).start(asyncio.get_running_loop())

        self._tasks = [
            asyncio.create_task(self.scanner.run(), name="scanner"),
            asyncio.create_task(self.account_monitor.run(), name="account"),
            asyncio.create_task(self.command_source.run(), name="commands"),
        ]
        await asyncio.gather(*self._tasks)

    async def stop(self) -> None:
        self.is_running = False
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []

        if hasattr(self, "scanner"):
            self.scanner.stop()
            await self.feed.stop()
            await self.api.close()
        if self.client:
            await self.client.close()
            self.client = None
        self.logger.info("Bot stopped")
