# price_forecaster_src/plotting_utils.py

import logging
from pathlib import Path
from typing import Dict, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from .config_utils import get_config_value
from .file_utils import ensure_dir
from .records import ForecastResult, MatchedSeries

logger = logging.getLogger(__name__)

COLORS = ["tab:red", "tab:blue", "tab:green", "tab:orange", "tab:purple"]


def _dpi() -> int:
    return int(get_config_value("report.dpi", 150))


def _save(fig, out_path: Path) -> Path:
    ensure_dir(out_path.parent)
    fig.tight_layout()
    fig.savefig(out_path, dpi=_dpi())
    plt.close(fig)
    logger.debug("Saved figure %s", out_path)
    return out_path


def plot_price_series(matched: MatchedSeries, out_path: Path) -> Path:
    """
    Render the matched daily price series.

    Parameters
    ----------
    matched : MatchedSeries
        Aligned price and temperature
    out_path : Path
        File path to save the rendered PNG (parents are created if missing)
    """
    fig, ax = plt.subplots(figsize=(11, 4))
    ax.plot(matched.dates, matched.price.to_numpy(), color="black", linewidth=1.0)
    ax.set_title("Daily futures price")
    ax.set_ylabel("Price")
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()
    return _save(fig, out_path)


def plot_temperature_series(matched: MatchedSeries, out_path: Path) -> Path:
    """Render the national daily average temperature on matched dates."""
    fig, ax = plt.subplots(figsize=(11, 4))
    ax.plot(matched.dates, matched.avg_temp.to_numpy(), color="tab:orange", linewidth=0.8)
    ax.set_title("Daily average temperature (mean across stations)")
    ax.set_ylabel("Temperature")
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()
    return _save(fig, out_path)


def plot_acf_pacf_panels(acf_pacf: Dict[str, np.ndarray], out_path: Path,
                         title: str = "Differenced price") -> Path:
    """
    Bar panels of ACF and PACF with the 95% white-noise band.

    Parameters
    ----------
    acf_pacf : dict
        Output of ``diagnostics_utils.compute_acf_pacf``
    out_path : Path
        Output file path for the plot
    title : str
        Series label for the panel titles
    """
    lags = acf_pacf["lags"][1:]
    bound = float(acf_pacf["bound"])
    fig, axes = plt.subplots(2, 1, figsize=(10, 7), sharex=True)
    for ax, key, label in ((axes[0], "acf", "ACF"), (axes[1], "pacf", "PACF")):
        ax.bar(lags, acf_pacf[key][1:], width=0.4, color="tab:blue")
        ax.axhline(bound, color="tab:red", linestyle="--", linewidth=0.8)
        ax.axhline(-bound, color="tab:red", linestyle="--", linewidth=0.8)
        ax.axhline(0, color="black", linewidth=0.6)
        ax.set_title(f"{title} {label}")
        ax.set_ylabel(label)
        ax.grid(True, alpha=0.3)
    axes[1].set_xlabel("Lag")
    return _save(fig, out_path)


def plot_cross_correlation(ccf: pd.Series, out_path: Path, n_obs: Optional[int] = None) -> Path:
    """
    Bar chart of temperature/price-change cross-correlation by lag.

    Positive lags mean temperature leads the price change.
    """
    fig, ax = plt.subplots(figsize=(10, 4))
    ax.bar(ccf.index, ccf.to_numpy(), width=0.6, color="tab:green")
    if n_obs:
        bound = 1.96 / np.sqrt(n_obs)
        ax.axhline(bound, color="tab:red", linestyle="--", linewidth=0.8)
        ax.axhline(-bound, color="tab:red", linestyle="--", linewidth=0.8)
    ax.axhline(0, color="black", linewidth=0.6)
    ax.set_title("Cross-correlation: temperature(t) vs price change(t+k)")
    ax.set_xlabel("Lag k")
    ax.set_ylabel("Correlation")
    ax.grid(True, alpha=0.3)
    return _save(fig, out_path)


def _band(ax, fc: ForecastResult, color: str) -> None:
    ax.fill_between(fc.index, fc.lower[95], fc.upper[95], color=color, alpha=0.12, linewidth=0)
    ax.fill_between(fc.index, fc.lower[80], fc.upper[80], color=color, alpha=0.25, linewidth=0)


def plot_holdout_comparison(test: MatchedSeries, forecasts: Dict[str, ForecastResult], out_path: Path,
                            train_tail: Optional[pd.Series] = None) -> Path:
    """
    Actual held-out prices against each finalist's forecast with interval bands.

    Parameters
    ----------
    test : MatchedSeries
        Held-out suffix
    forecasts : Dict[str, ForecastResult]
        Holdout forecasts keyed by model name
    out_path : Path
        Output file path for the plot
    train_tail : pd.Series, optional
        Last training prices, drawn for context
    """
    fig, ax = plt.subplots(figsize=(11, 5))
    if train_tail is not None:
        ax.plot(train_tail.index, train_tail.to_numpy(), color="grey", linewidth=1.0, label="train")
    ax.plot(test.dates, test.price.to_numpy(), color="black", linewidth=1.5, label="actual")
    for i, (name, fc) in enumerate(forecasts.items()):
        color = COLORS[i % len(COLORS)]
        _band(ax, fc, color)
        ax.plot(fc.index, fc.mean, color=color, linestyle="--", label=name)
    ax.set_title("Holdout forecasts of the family finalists (80% / 95% bands)")
    ax.set_ylabel("Price")
    ax.legend()
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()
    return _save(fig, out_path)


def plot_final_forecast(history: pd.Series, forecast: ForecastResult, out_path: Path,
                        history_days: int = 500) -> Path:
    """
    Recent price history followed by the final forecast with shaded 80% and 95% bands.
    """
    recent = history.iloc[-history_days:]
    fig, ax = plt.subplots(figsize=(11, 5))
    ax.plot(recent.index, recent.to_numpy(), color="black", linewidth=1.0, label="observed")
    _band(ax, forecast, "tab:blue")
    ax.plot(forecast.index, forecast.mean, color="tab:blue", linewidth=1.5,
            label=f"{forecast.model_name} forecast")
    ax.set_title(f"{forecast.horizon}-step price forecast: {forecast.model_name}")
    ax.set_ylabel("Price")
    ax.legend(loc="upper left")
    ax.grid(True, alpha=0.3)
    fig.autofmt_xdate()
    return _save(fig, out_path)
