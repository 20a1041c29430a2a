from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pump_sniper.constants import NEW_PAIRS_CHANNEL


class SlotState(str, Enum):
    SEARCHING = "SEARCHING"
    MONITORING = "MONITORING"


class MonitorState(str, Enum):
    ACTIVE = "ACTIVE"
    CLOSED = "CLOSED"
    SELL_FAILED = "SELL_FAILED"


class ExitReason(str, Enum):
    STOP_LOSS = "STOP_LOSS"
    BONDING_CURVE = "BONDING_CURVE"
    TIMEOUT = "TIMEOUT"
    CONTINUE = "CONTINUE"
    SELL_NOW = "SELL_NOW"


class SellStatus(str, Enum):
    SOLD = "SOLD"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"


@dataclass(frozen=True)
class Quote:
    """Point-in-time market observation for one token."""
    mint: str
    symbol: str
    market_cap: float
    bonding_curve: float


@dataclass(frozen=True)
class NewListingEvent:
    mint: str
    channel: str = NEW_PAIRS_CHANNEL


FeedMessage = Quote | NewListingEvent


def _as_number(value: Any) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def parse_feed_message(data: Any) -> FeedMessage | None:
    """Turn a raw feed payload into a Quote or NewListingEvent.

    Returns None for anything that is neither, including quotes with a
    negative market cap or a bonding curve outside [0, 100].
    """
    if not isinstance(data, dict):
        return None

    mint = data.get("mint")
    if not mint or not isinstance(mint, str):
        return None

    if data.get("channel") == NEW_PAIRS_CHANNEL:
        return NewListingEvent(mint=mint)

    market_cap = _as_number(data.get("marketcap"))
    bonding_curve = _as_number(data.get("bondingCurve"))
    if market_cap is None or bonding_curve is None:
        return None
    if market_cap < 0 or not 0 <= bonding_curve <= 100:
        return None

    return Quote(
        mint=mint,
        symbol=str(data.get("ticker") or "???"),
        market_cap=market_cap,
        bonding_curve=bonding_curve,
    )


@dataclass
class SellOutcome:
    status: SellStatus
    amount: float = 0.0
    tx_hash: str | None = None

    @property
    def failed(self) -> bool:
        return self.status == SellStatus.FAILED


@dataclass
class SellRecord:
    reason: str
    fraction: float
    amount: float
    tx_hash: str | None
    ts: float


@dataclass
class Position:
    mint: str
    symbol: str
    entry_market_cap: float
    entry_bonding_curve: float
    last_milestone_market_cap: float
    opened_at: float
    deadline: float
    state: MonitorState = MonitorState.ACTIVE
    exit_reason: ExitReason | None = None
    last_market_cap: float = 0.0
    last_bonding_curve: float = 0.0
    sells: list[SellRecord] = field(default_factory=list)

    @property
    def is_active(self) -> bool:
        return self.state == MonitorState.ACTIVE

    def market_cap_change_pct(self, market_cap: float) -> float:
        if self.entry_market_cap <= 0:
            return 0.0
        return (market_cap - self.entry_market_cap) / self.entry_market_cap * 100

    def to_dict(self, now: float) -> dict[str, Any]:
        return {
            "mint": self.mint,
            "symbol": self.symbol,
            "state": self.state.value,
            "exit_reason": self.exit_reason.value if self.exit_reason else None,
            "entry_market_cap": self.entry_market_cap,
            "entry_bonding_curve": self.entry_bonding_curve,
            "last_market_cap": self.last_market_cap,
            "last_bonding_curve": self.last_bonding_curve,
            "last_milestone_market_cap": self.last_milestone_market_cap,
            "change_pct": self.market_cap_change_pct(self.last_market_cap) if self.last_market_cap else 0.0,
            "time_remaining_sec": max(0.0, self.deadline - now),
            "sells": len(self.sells),
        }


@dataclass
class AccountSnapshot:
    address: str
    sol_balance: float
    holdings: dict[str, float] = field(default_factory=dict)
    ts: float = 0.0
