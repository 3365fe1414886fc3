from pathlib import Path
from types import SimpleNamespace

import pytest

from config import ConfigurationError, ConfigurationManager, get_config
from price_forecaster_src import config_utils
from price_forecaster_src.config_utils import get_config_value, initialize_config


def test_packaged_defaults():
    cfg = get_config()
    assert cfg.get("model.train_fraction") == 0.8
    assert cfg.get("model.arima.order") == [1, 1, 0]
    assert cfg.get("model.garch.dist") == "normal"
    assert cfg.get("forecast.horizon") == 365
    assert cfg.get("alignment.min_retained_fraction") == 0.5
    assert cfg.get("no.such.key", "fallback") == "fallback"
    assert cfg.validate_configuration() == {}


def test_get_returns_copies():
    cfg = get_config()
    order = cfg.get("model.arima.order")
    order.append(9)
    assert cfg.get("model.arima.order") == [1, 1, 0]


def test_user_file_is_merged_over_defaults(tmp_path: Path):
    user = tmp_path / "user.yaml"
    user.write_text("model:\n  garch:\n    p: 2\nforecast:\n  horizon: 30\n", encoding="utf-8")
    cfg = ConfigurationManager(user)

    assert cfg.get("model.garch.p") == 2
    assert cfg.get("model.garch.q") == 1
    assert cfg.get("forecast.horizon") == 30
    assert cfg.get("forecast.frequency") == "B"
    assert cfg.get_configuration_summary()["loaded_configs"][-1] == str(user)


def test_invalid_values_are_reported(tmp_path: Path):
    user = tmp_path / "bad.yaml"
    user.write_text(
        "model:\n  train_fraction: 1.5\n  arima:\n    order: [1, 1]\n"
        "data:\n  climate:\n    temperature_gap_policy: ffill\n",
        encoding="utf-8",
    )
    errors = ConfigurationManager(user).validate_configuration()
    assert len(errors["model"]) == 2
    assert "temperature_gap_policy" in errors["data"][0]


def test_unreadable_files(tmp_path: Path):
    with pytest.raises(ConfigurationError):
        ConfigurationManager(tmp_path / "missing.yaml")
    not_a_mapping = tmp_path / "list.yaml"
    not_a_mapping.write_text("- 1\n- 2\n", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        ConfigurationManager(not_a_mapping)


def test_cli_value_beats_config_beats_default(tmp_path: Path):
    user = tmp_path / "user.yaml"
    user.write_text("forecast:\n  horizon: 90\n", encoding="utf-8")
    initialize_config(user)

    args = SimpleNamespace(horizon=10, train_fraction=None)
    assert get_config_value("forecast.horizon", 365, args, "horizon") == 10
    assert get_config_value("forecast.horizon", 365, SimpleNamespace(horizon=None), "horizon") == 90
    assert get_config_value("model.train_fraction", 0.5, args, "train_fraction") == 0.8
    assert get_config_value("not.configured", "default") == "default"


def test_initialize_config_is_lazy():
    assert config_utils.config_manager is None
    assert get_config_value("report.dpi") == 150
    assert config_utils.config_manager is not None


def test_initialize_config_logs_loaded_files(tmp_path: Path, caplog):
    user = tmp_path / "user.yaml"
    user.write_text("report:\n  dpi: 90\n", encoding="utf-8")
    with caplog.at_level("INFO", logger="price_forecaster_src.config_utils"):
        cfg = initialize_config(user)
    assert cfg.get("report.dpi") == 90
    assert str(user) in caplog.text
