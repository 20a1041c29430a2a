"""
Strategy Configuration

Entry/exit thresholds, timing windows and execution parameters.
Defaults come from the environment; an optional YAML/JSON file can override
any subset of them.
"""

import json
import yaml
import logging
from typing import Dict, Any, Optional, List
from dataclasses import dataclass, field, asdict, fields, replace
from pathlib import Path

from ..exceptions import ConfigurationException

logger = logging.getLogger(__name__)


@dataclass
class EntryRules:
    """When to buy a new listing"""
    buy_amount_sol: float = 0.015
    max_bonding_curve_progress: float = 10.0  # Only tokens still early on the curve


@dataclass
class ExitRules:
    """When and how much to sell"""
    take_profit_pct: float = 25.0     # +25% from entry = sell 50%
    take_profit_sell_fraction: float = 0.50
    stop_loss_pct: float = -10.0      # -10% from entry = sell everything
    sell_bonding_curve_progress: float = 15.0
    bonding_curve_sell_fraction: float = 0.75
    profit_target: float = 1.25       # Next milestone = last milestone * 1.25
    milestone_sell_fraction: float = 0.75
    timeout_sell_fraction: float = 0.75
    manual_sell_fraction: float = 0.75


@dataclass
class TimingConfig:
    """Polling and waiting windows (seconds)"""
    poll_interval_sec: float = 5.0
    sell_timeout_sec: float = 120.0
    cooldown_sec: float = 15.0
    quote_timeout_sec: float = 10.0
    account_refresh_sec: float = 10.0


@dataclass
class ExecutionConfig:
    """Trade API parameters"""
    slippage_pct: float = 5.0
    priority_fee: float = 0.0003
    api_retry_limit: int = 5
    base_api_delay_sec: float = 1.0


@dataclass
class StrategyConfig:
    """Complete strategy configuration"""
    entry: EntryRules = field(default_factory=EntryRules)
    exit: ExitRules = field(default_factory=ExitRules)
    timing: TimingConfig = field(default_factory=TimingConfig)
    execution: ExecutionConfig = field(default_factory=ExecutionConfig)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary"""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], defaults: Optional["StrategyConfig"] = None) -> "StrategyConfig":
        """Create from dictionary, keeping `defaults` for any missing key"""
        base = defaults or cls()
        return cls(
            entry=_overlay(base.entry, data.get("entry")),
            exit=_overlay(base.exit, data.get("exit")),
            timing=_overlay(base.timing, data.get("timing")),
            execution=_overlay(base.execution, data.get("execution")),
        )

    def validate(self) -> List[str]:
        """Validate config, return list of errors"""
        errors = []

        if self.entry.buy_amount_sol <= 0:
            errors.append("buy_amount_sol must be > 0")

        if not 0 < self.entry.max_bonding_curve_progress <= 100:
            errors.append("max_bonding_curve_progress must be between 0 and 100")

        if not 0 < self.exit.sell_bonding_curve_progress <= 100:
            errors.append("sell_bonding_curve_progress must be between 0 and 100")

        if self.exit.take_profit_pct <= 0:
            errors.append("take_profit_pct must be > 0")

        if self.exit.stop_loss_pct >= 0:
            errors.append("stop_loss_pct must be < 0")

        if self.exit.profit_target <= 1:
            errors.append("profit_target must be > 1")

        for name in (
            "take_profit_sell_fraction",
            "bonding_curve_sell_fraction",
            "milestone_sell_fraction",
            "timeout_sell_fraction",
            "manual_sell_fraction",
        ):
            value = getattr(self.exit, name)
            if not 0 < value <= 1:
                errors.append(f"{name} must be in (0, 1]")

        for item in fields(self.timing):
            if getattr(self.timing, item.name) <= 0:
                errors.append(f"{item.name} must be > 0")

        if self.execution.api_retry_limit < 1:
            errors.append("api_retry_limit must be >= 1")

        if self.execution.base_api_delay_sec < 0:
            errors.append("base_api_delay_sec must be >= 0")

        return errors


def _overlay(section, overrides: Optional[Dict[str, Any]]):
    if not overrides:
        return section
    known = {f.name for f in fields(section)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationException(
            "Unknown strategy keys", section=type(section).__name__, keys=sorted(unknown)
        )
    return replace(section, **overrides)


def save_strategy_config(config: StrategyConfig, path: Path) -> None:
    """Save config to a YAML or JSON file"""
    data = config.to_dict()
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        if path.suffix in ['.yaml', '.yml']:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False, allow_unicode=True)
        else:
            json.dump(data, f, indent=2, ensure_ascii=False)
    logger.info(f"Strategy config saved to {path}")


def load_strategy_config(config_path: str, defaults: Optional[StrategyConfig] = None) -> StrategyConfig:
    """
    Load strategy config from YAML or JSON, creating the file from
    `defaults` when it does not exist yet.

    Raises:
        ConfigurationException: file is unreadable or values are invalid
    """
    path = Path(config_path)
    defaults = defaults or StrategyConfig()

    if not path.exists():
        save_strategy_config(defaults, path)
        logger.info(f"Default strategy config created at {path}")
        config = defaults
    else:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                if path.suffix in ['.yaml', '.yml']:
                    data = yaml.safe_load(f)
                else:
                    data = json.load(f)
        except (OSError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationException("Cannot read strategy config", path=str(path), error=str(e)) from e

        config = StrategyConfig.from_dict(data or {}, defaults=defaults)
        logger.info(f"Strategy config loaded from {path}")

    errors = config.validate()
    if errors:
        raise ConfigurationException("Invalid strategy config: " + "; ".join(errors), path=str(path))
    return config
