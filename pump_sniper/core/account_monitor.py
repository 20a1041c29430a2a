from __future__ import annotations

import asyncio
import json
import logging
import time
from pathlib import Path
from typing import TYPE_CHECKING, Callable, Protocol

from pump_sniper.core.models import AccountSnapshot

if TYPE_CHECKING:
    from pump_sniper.config import Settings
    from pump_sniper.core.position_monitor import PositionMonitor
    from pump_sniper.core.scanner import OpportunityScanner

# Holdings at or below one display unit are dust
MIN_DISPLAY_AMOUNT = 1.0


class AccountSource(Protocol):
    address: str

    async def get_sol_balance(self) -> float: ...

    async def get_token_holdings(self) -> dict[str, float]: ...


class AccountMonitor:
    """Refreshes account info and writes the status snapshot read by the dashboard.

    Only reads scanner and position state; never changes it.
    """

    def __init__(
        self,
        settings: "Settings",
        wallet: AccountSource,
        scanner: "OpportunityScanner | None" = None,
        monitor: "PositionMonitor | None" = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.settings = settings
        self.wallet = wallet
        self.scanner = scanner
        self.monitor = monitor
        self.logger = logging.getLogger("pump_sniper.account")
        self.snapshot_path = Path(settings.STATUS_SNAPSHOT_PATH)
        self._clock = clock
        self.account: AccountSnapshot | None = None

    async def refresh(self) -> AccountSnapshot:
        balance = await self.wallet.get_sol_balance()
        holdings = await self.wallet.get_token_holdings()
        self.account = AccountSnapshot(
            address=self.wallet.address,
            sol_balance=balance,
            holdings={mint: amount for mint, amount in holdings.items() if amount > MIN_DISPLAY_AMOUNT},
            ts=self._clock(),
        )
        self.logger.debug("Current balance: %.4f SOL, %d token(s)", balance, len(self.account.holdings))
        return self.account

    async def run(self) -> None:
        interval = self.settings.strategy.timing.account_refresh_sec
        while True:
            try:
                await self.refresh()
                self.write_snapshot()
            except Exception as e:
                self.logger.warning("Account refresh failed: %s", e)
            await asyncio.sleep(interval)

    def build_payload(self) -> dict:
        now = self._clock()
        position = self.monitor.position if self.monitor else None
        payload = {
            "ts": now,
            "mode": self.scanner.state.value if self.scanner else "SEARCHING",
            "cooldown_active": self.scanner.cooldown_active if self.scanner else False,
            "position": position.to_dict(now) if position else None,
            "account": None,
        }
        if self.account:
            payload["account"] = {
                "address": self.account.address,
                "sol_balance": self.account.sol_balance,
                "holdings": self.account.holdings,
                "updated_at": self.account.ts,
            }
        return payload

    def write_snapshot(self) -> None:
        self.snapshot_path.parent.mkdir(parents=True, exist_ok=True)
        self.snapshot_path.write_text(json.dumps(self.build_payload(), indent=2), encoding="utf-8")
