import json

import pytest
import yaml

import pump_sniper.config as settings_module
from pump_sniper.config.strategy_config import (
    EntryRules,
    StrategyConfig,
    load_strategy_config,
)
from pump_sniper.exceptions import ConfigurationException


def test_defaults_are_valid():
    config = StrategyConfig()

    assert config.validate() == []
    assert config.entry.max_bonding_curve_progress == 10.0
    assert config.exit.take_profit_pct == 25.0
    assert config.exit.stop_loss_pct == -10.0
    assert config.exit.profit_target == 1.25
    assert config.timing.sell_timeout_sec == 120.0
    assert config.timing.cooldown_sec == 15.0


def test_missing_file_is_created_from_defaults(tmp_path):
    path = tmp_path / "strategy.yaml"
    defaults = StrategyConfig(entry=EntryRules(buy_amount_sol=0.5))

    config = load_strategy_config(str(path), defaults=defaults)

    assert config.entry.buy_amount_sol == 0.5
    assert yaml.safe_load(path.read_text(encoding="utf-8"))["entry"]["buy_amount_sol"] == 0.5


def test_yaml_overrides_only_given_keys(tmp_path):
    path = tmp_path / "strategy.yaml"
    path.write_text(yaml.safe_dump({"exit": {"stop_loss_pct": -20}, "timing": {"cooldown_sec": 30}}))

    config = load_strategy_config(str(path))

    assert config.exit.stop_loss_pct == -20
    assert config.exit.take_profit_pct == 25.0
    assert config.timing.cooldown_sec == 30
    assert config.timing.sell_timeout_sec == 120.0


def test_json_file_is_supported(tmp_path):
    path = tmp_path / "strategy.json"
    path.write_text(json.dumps({"execution": {"api_retry_limit": 3}}))

    assert load_strategy_config(str(path)).execution.api_retry_limit == 3


def test_invalid_value_is_rejected(tmp_path):
    path = tmp_path / "strategy.yaml"
    path.write_text(yaml.safe_dump({"exit": {"stop_loss_pct": 5}}))

    with pytest.raises(ConfigurationException, match="stop_loss_pct"):
        load_strategy_config(str(path))


def test_unknown_key_is_rejected(tmp_path):
    path = tmp_path / "strategy.yaml"
    path.write_text(yaml.safe_dump({"entry": {"buy_amount": 1}}))

    with pytest.raises(ConfigurationException):
        load_strategy_config(str(path))


def test_unreadable_file_is_rejected(tmp_path):
    path = tmp_path / "strategy.yaml"
    path.write_text("entry: [unclosed")

    with pytest.raises(ConfigurationException):
        load_strategy_config(str(path))


@pytest.mark.parametrize("section,key,value", [
    ("entry", "max_bonding_curve_progress", 0),
    ("exit", "profit_target", 1.0),
    ("exit", "milestone_sell_fraction", 1.5),
    ("timing", "poll_interval_sec", 0),
    ("execution", "api_retry_limit", 0),
])
def test_validate_reports_bad_values(section, key, value):
    config = StrategyConfig.from_dict({section: {key: value}})

    errors = config.validate()

    assert any(key in error for error in errors)


class TestSettingsFromEnv:
    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        monkeypatch.setattr(settings_module, "STRATEGY_CONFIG_PATH", "")
        monkeypatch.setattr(settings_module, "ENV_ERRORS", [])

    def test_env_defaults_are_accepted(self):
        settings = settings_module.Settings.from_env()

        assert settings.strategy.validate() == []

    def test_positive_stop_loss_from_env_is_rejected(self, monkeypatch):
        monkeypatch.setattr(settings_module, "STOP_LOSS_PCT", 10.0)

        with pytest.raises(ConfigurationException, match="stop_loss_pct"):
            settings_module.Settings.from_env()

    def test_zero_poll_interval_from_env_is_rejected(self, monkeypatch):
        monkeypatch.setattr(settings_module, "MONITOR_INTERVAL_SEC", 0.0)

        with pytest.raises(ConfigurationException, match="poll_interval_sec"):
            settings_module.Settings.from_env()

    def test_unparseable_env_value_is_reported(self, monkeypatch):
        monkeypatch.setenv("TAKE_PROFIT_PCT", "lots")

        assert settings_module._env_float("TAKE_PROFIT_PCT", 25.0) == 25.0
        with pytest.raises(ConfigurationException, match="TAKE_PROFIT_PCT"):
            settings_module.Settings.from_env()

    def test_blank_env_value_uses_default(self, monkeypatch):
        monkeypatch.setenv("API_RETRY_LIMIT", " ")

        assert settings_module._env_int("API_RETRY_LIMIT", 5) == 5
        assert settings_module.ENV_ERRORS == []
