"""YAML configuration manager for the price/climate report.

The packaged ``defaults.yaml`` is always loaded first; an optional user file
is deep-merged on top of it. Values are read with dot notation, e.g.
``config.get("model.garch.p")``.
"""

import copy
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

logger = logging.getLogger(__name__)

DEFAULTS_PATH = Path(__file__).resolve().parent / "defaults.yaml"


class ConfigurationError(Exception):
    """Raised when a configuration file cannot be read or is malformed."""


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise ConfigurationError(f"Failed to read configuration file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Configuration file {path} must contain a mapping at top level.")
    return data


class ConfigurationManager:
    """Holds the merged configuration tree and answers dot-notation lookups."""

    def __init__(self, config_path: Optional[Union[str, Path]] = None):
        self.config_path = Path(config_path) if config_path else None
        self._config = _read_yaml(DEFAULTS_PATH)
        self.loaded_configs: List[str] = [str(DEFAULTS_PATH)]
        if self.config_path is not None:
            if not self.config_path.is_file():
                raise ConfigurationError(f"Configuration file not found: {self.config_path}")
            self._config = _deep_merge(self._config, _read_yaml(self.config_path))
            self.loaded_configs.append(str(self.config_path))
        logger.debug("Loaded configuration from %s", ", ".join(self.loaded_configs))

    def get(self, key_path: str, default: Any = None) -> Any:
        """Return the value at ``key_path`` (dot separated) or ``default``."""
        node: Any = self._config
        for part in key_path.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return copy.deepcopy(node)

    def validate_configuration(self) -> Dict[str, List[str]]:
        """Check value ranges; returns a mapping of section -> error messages."""
        errors: Dict[str, List[str]] = {}

        def _add(section: str, msg: str) -> None:
            errors.setdefault(section, []).append(msg)

        train_fraction = self.get("model.train_fraction")
        if not isinstance(train_fraction, (int, float)) or not 0.0 < float(train_fraction) < 1.0:
            _add("model", f"train_fraction must be in (0, 1), got {train_fraction!r}")

        order = self.get("model.arima.order")
        if not (isinstance(order, list) and len(order) == 3 and all(isinstance(v, int) and v >= 0 for v in order)):
            _add("model", f"arima.order must be three non-negative integers, got {order!r}")

        for key in ("ar_lags", "p", "q"):
            value = self.get(f"model.garch.{key}")
            if not isinstance(value, int) or value < 0:
                _add("model", f"garch.{key} must be a non-negative integer, got {value!r}")

        retained = self.get("alignment.min_retained_fraction")
        if not isinstance(retained, (int, float)) or not 0.0 <= float(retained) <= 1.0:
            _add("alignment", f"min_retained_fraction must be in [0, 1], got {retained!r}")

        policy = self.get("data.climate.temperature_gap_policy")
        if policy not in ("drop", "interpolate"):
            _add("data", f"temperature_gap_policy must be 'drop' or 'interpolate', got {policy!r}")

        horizon = self.get("forecast.horizon")
        if not isinstance(horizon, int) or horizon <= 0:
            _add("forecast", f"horizon must be a positive integer, got {horizon!r}")

        max_lag = self.get("diagnostics.max_lag")
        if not isinstance(max_lag, int) or max_lag <= 0:
            _add("diagnostics", f"max_lag must be a positive integer, got {max_lag!r}")

        return errors

    def get_configuration_summary(self) -> Dict[str, Any]:
        return {
            "loaded_configs": list(self.loaded_configs),
            "sections": sorted(self._config.keys()),
        }
