"""Config package"""
from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

from ..exceptions import ConfigurationException
from ..constants import (
    PUMPPORTAL_WS_URL,
    PUMP_TRADE_API_URL,
    DEFAULT_RPC_URL,
)
from .strategy_config import (
    StrategyConfig,
    EntryRules,
    ExitRules,
    TimingConfig,
    ExecutionConfig,
    load_strategy_config,
)


# Unparseable env values, reported by Settings.from_env()
ENV_ERRORS: list[str] = []


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return cast(raw)
    except ValueError:
        ENV_ERRORS.append(f"{name}={raw!r} is not a valid {cast.__name__}")
        return default


def _env_float(name: str, default: float) -> float:
    return _env_number(name, float(default), float)


def _env_int(name: str, default: int) -> int:
    return _env_number(name, int(default), int)


# ============================================
# CREDENTIALS & ENDPOINTS
# ============================================
SOLANA_WALLET_PATH = os.getenv("SOLANA_WALLET_PATH", "")
SOLANA_PRIVATE_KEY = os.getenv("SOLANA_PRIVATE_KEY", "")
SESSION_ID = os.getenv("SESSION_ID", "")
RPC_URL = os.getenv("RPC_URL", DEFAULT_RPC_URL)
FEED_WS_URL = os.getenv("FEED_WS_URL", PUMPPORTAL_WS_URL)
TRADE_API_URL = os.getenv("TRADE_API_URL", PUMP_TRADE_API_URL)

# ============================================
# ENTRY
# ============================================
MINIMUM_BUY_AMOUNT = _env_float("MINIMUM_BUY_AMOUNT", 0.015)    # SOL per entry
MAX_BONDING_CURVE_PROGRESS = _env_float("MAX_BONDING_CURVE_PROGRESS", 10)  # Only buy early tokens

# ============================================
# EXIT
# ============================================
SELL_BONDING_CURVE_PROGRESS = _env_float("SELL_BONDING_CURVE_PROGRESS", 15)
TAKE_PROFIT_PCT = _env_float("TAKE_PROFIT_PCT", 25.0)     # Sell 50% at +25%
STOP_LOSS_PCT = _env_float("STOP_LOSS_PCT", -10.0)        # Sell all at -10%
PROFIT_TARGET = _env_float("PROFIT_TARGET", 1.25)         # Milestone multiplier

# ============================================
# TIMING
# ============================================
MONITOR_INTERVAL_SEC = _env_float("MONITOR_INTERVAL_SEC", 5.0)
SELL_TIMEOUT_SEC = _env_float("SELL_TIMEOUT_SEC", 120.0)   # 2 min
COOLDOWN_SEC = _env_float("COOLDOWN_SEC", 15.0)
QUOTE_TIMEOUT_SEC = _env_float("QUOTE_TIMEOUT_SEC", 10.0)
ACCOUNT_REFRESH_SEC = _env_float("ACCOUNT_REFRESH_SEC", 10.0)

# ============================================
# EXECUTION
# ============================================
SLIPPAGE_PCT = _env_float("SLIPPAGE_PCT", 5)
PRIORITY_FEE = _env_float("PRIORITY_FEE", 0.0003)
API_RETRY_LIMIT = _env_int("API_RETRY_LIMIT", 5)
BASE_API_DELAY_SEC = _env_float("BASE_API_DELAY_SEC", 1.0)

# ============================================
# RUNTIME
# ============================================
LOG_DIR = os.getenv("LOG_DIR", "logs")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
STATUS_SNAPSHOT_PATH = os.getenv("STATUS_SNAPSHOT_PATH", os.path.join(LOG_DIR, "status.json"))
COMMAND_FILE = os.getenv("COMMAND_FILE", "dashboard_commands.json")
STRATEGY_CONFIG_PATH = os.getenv("STRATEGY_CONFIG_PATH", "")
KEYBOARD_OVERRIDES = os.getenv("KEYBOARD_OVERRIDES", "True").lower() == "true"


def default_strategy() -> StrategyConfig:
    """Strategy thresholds as set by the environment."""
    return StrategyConfig(
        entry=EntryRules(
            buy_amount_sol=MINIMUM_BUY_AMOUNT,
            max_bonding_curve_progress=MAX_BONDING_CURVE_PROGRESS,
        ),
        exit=ExitRules(
            take_profit_pct=TAKE_PROFIT_PCT,
            stop_loss_pct=STOP_LOSS_PCT,
            sell_bonding_curve_progress=SELL_BONDING_CURVE_PROGRESS,
            profit_target=PROFIT_TARGET,
        ),
        timing=TimingConfig(
            poll_interval_sec=MONITOR_INTERVAL_SEC,
            sell_timeout_sec=SELL_TIMEOUT_SEC,
            cooldown_sec=COOLDOWN_SEC,
            quote_timeout_sec=QUOTE_TIMEOUT_SEC,
            account_refresh_sec=ACCOUNT_REFRESH_SEC,
        ),
        execution=ExecutionConfig(
            slippage_pct=SLIPPAGE_PCT,
            priority_fee=PRIORITY_FEE,
            api_retry_limit=API_RETRY_LIMIT,
            base_api_delay_sec=BASE_API_DELAY_SEC,
        ),
    )


@dataclass
class Settings:
    """Runtime settings handed to every component."""
    SOLANA_WALLET_PATH: str = ""
    SOLANA_PRIVATE_KEY: str = ""
    SESSION_ID: str = ""
    RPC_URL: str = DEFAULT_RPC_URL
    FEED_WS_URL: str = PUMPPORTAL_WS_URL
    TRADE_API_URL: str = PUMP_TRADE_API_URL
    LOG_DIR: str = "logs"
    LOG_LEVEL: str = "INFO"
    STATUS_SNAPSHOT_PATH: str = "logs/status.json"
    COMMAND_FILE: str = "dashboard_commands.json"
    KEYBOARD_OVERRIDES: bool = True
    strategy: StrategyConfig = field(default_factory=StrategyConfig)

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the environment.

        Raises:
            ConfigurationException: an env value does not parse, or the
                resulting strategy fails validation
        """
        if ENV_ERRORS:
            raise ConfigurationException("Invalid environment: " + "; ".join(ENV_ERRORS))

        if STRATEGY_CONFIG_PATH:
            strategy = load_strategy_config(STRATEGY_CONFIG_PATH, defaults=default_strategy())
        else:
            strategy = default_strategy()
            errors = strategy.validate()
            if errors:
                raise ConfigurationException("Invalid strategy settings: " + "; ".join(errors))
        return cls(
            SOLANA_WALLET_PATH=SOLANA_WALLET_PATH,
            SOLANA_PRIVATE_KEY=SOLANA_PRIVATE_KEY,
            SESSION_ID=SESSION_ID,
            RPC_URL=RPC_URL,
            FEED_WS_URL=FEED_WS_URL,
            TRADE_API_URL=TRADE_API_URL,
            LOG_DIR=LOG_DIR,
            LOG_LEVEL=LOG_LEVEL,
            STATUS_SNAPSHOT_PATH=STATUS_SNAPSHOT_PATH,
            COMMAND_FILE=COMMAND_FILE,
            KEYBOARD_OVERRIDES=KEYBOARD_OVERRIDES,
            strategy=strategy,
        )
