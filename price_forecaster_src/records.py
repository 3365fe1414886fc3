# price_forecaster_src/records.py

"""
Immutable records passed between pipeline stages.

Stages never mutate their inputs: each one receives the records produced by
the previous stage and returns new ones. DataFrames and arrays held by these
records are copied at construction time.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import numpy as np
import pandas as pd

from .transform_utils import split_train_test

COVERAGE_LEVELS: Tuple[int, int] = (80, 95)

FAMILY_ARIMA = "arima"
FAMILY_GARCH = "garch"


@dataclass(frozen=True, eq=False)
class MatchedSeries:
    """
    Inner join of daily prices and national daily average temperature.

    Parameters
    ----------
    frame : pd.DataFrame
        DatetimeIndex named 'date' (strictly increasing) with columns
        ['price', 'avg_temp'] and no missing values.
    """

    frame: pd.DataFrame

    def __post_init__(self):
        missing = {"price", "avg_temp"} - set(self.frame.columns)
        if missing:
            raise ValueError(f"MatchedSeries requires columns 'price' and 'avg_temp'; missing {sorted(missing)}")
        frame = self.frame.loc[:, ["price", "avg_temp"]].astype(float).copy()
        if frame.isna().any().any():
            raise ValueError("MatchedSeries rows must all carry both a price and a temperature")
        if not isinstance(frame.index, pd.DatetimeIndex):
            raise ValueError("MatchedSeries requires a DatetimeIndex")
        if not frame.index.is_monotonic_increasing or frame.index.has_duplicates:
            raise ValueError("MatchedSeries dates must be strictly increasing")
        frame.index.name = "date"
        object.__setattr__(self, "frame", frame)

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def price(self) -> pd.Series:
        return self.frame["price"].copy()

    @property
    def avg_temp(self) -> pd.Series:
        return self.frame["avg_temp"].copy()

    @property
    def dates(self) -> pd.DatetimeIndex:
        return self.frame.index.copy()

    def split(self, train_fraction: float) -> Tuple["MatchedSeries", "MatchedSeries"]:
        """Split into an in-order training prefix and held-out suffix (never shuffled)."""
        train, test = split_train_test(self.frame, train_fraction)
        return MatchedSeries(train), MatchedSeries(test)


@dataclass(frozen=True)
class ModelVariant:
    """One of the four candidate model specifications.

    ``order`` is ``(p, d, q)`` for the ARIMA family and
    ``(ar_lags, p, q)`` for the GARCH family.
    """

    name: str
    family: str
    uses_exog: bool
    order: Tuple[int, int, int] = (1, 1, 0)


@dataclass(frozen=True, eq=False)
class FittedModel:
    """
    A fitted model variant with its estimates and information criteria.

    ``last_level`` and ``last_date`` describe the final observation of the
    price series the model was trained on; forecasts continue from there.
    """

    variant: ModelVariant
    order: Dict[str, int]
    params: Dict[str, float]
    loglikelihood: float
    aic: float
    bic: float
    n_obs: int
    last_level: float
    last_date: Optional[pd.Timestamp] = None
    result: Any = field(default=None, repr=False)

    @property
    def name(self) -> str:
        return self.variant.name

    @property
    def family(self) -> str:
        return self.variant.family

    @property
    def uses_exog(self) -> bool:
        return self.variant.uses_exog

    def summary_row(self) -> Dict[str, Any]:
        return {
            "model": self.name,
            "family": self.family,
            "exog": self.uses_exog,
            "n_obs": self.n_obs,
            "loglik": self.loglikelihood,
            "AIC": self.aic,
            "BIC": self.bic,
        }


@dataclass(frozen=True, eq=False)
class ForecastResult:
    """
    Multi-step point forecasts with 80% and 95% interval bounds.

    Construction enforces ``len(mean) == horizon`` and, at every step,
    lower95 <= lower80 <= mean <= upper80 <= upper95.
    """

    model_name: str
    horizon: int
    index: pd.Index
    mean: np.ndarray
    lower: Dict[int, np.ndarray]
    upper: Dict[int, np.ndarray]

    def __post_init__(self):
        mean = np.asarray(self.mean, dtype=float).ravel()
        lower = {int(k): np.asarray(v, dtype=float).ravel() for k, v in self.lower.items()}
        upper = {int(k): np.asarray(v, dtype=float).ravel() for k, v in self.upper.items()}
        if len(mean) != self.horizon:
            raise ValueError(f"Forecast length {len(mean)} does not match horizon {self.horizon}")
        if len(self.index) != self.horizon:
            raise ValueError(f"Forecast index length {len(self.index)} does not match horizon {self.horizon}")
        for lvl in COVERAGE_LEVELS:
            if lvl not in lower or lvl not in upper:
                raise ValueError(f"Forecast is missing the {lvl}% interval")
            if len(lower[lvl]) != self.horizon or len(upper[lvl]) != self.horizon:
                raise ValueError(f"{lvl}% interval length does not match horizon {self.horizon}")
        if not np.all(np.isfinite(mean)):
            raise ValueError("Point forecasts must be finite")

        lo80, lo95 = lower[80], lower[95]
        hi80, hi95 = upper[80], upper[95]
        tol = 1e-9 * max(1.0, float(np.nanmax(np.abs(mean))) if len(mean) else 1.0)
        ordered = (
            np.all(lo95 <= lo80 + tol)
            and np.all(lo80 <= mean + tol)
            and np.all(mean <= hi80 + tol)
            and np.all(hi80 <= hi95 + tol)
        )
        if not ordered:
            raise ValueError("Forecast bounds are not ordered lower95 <= lower80 <= mean <= upper80 <= upper95")

        object.__setattr__(self, "mean", mean)
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)

    def to_frame(self) -> pd.DataFrame:
        data = {"mean": self.mean}
        for lvl in COVERAGE_LEVELS:
            data[f"lower_{lvl}"] = self.lower[lvl]
            data[f"upper_{lvl}"] = self.upper[lvl]
        return pd.DataFrame(data, index=self.index)


@dataclass(frozen=True)
class StationarityResult:
    """Augmented Dickey-Fuller outcome for one series."""

    series_name: str
    statistic: float
    p_value: float
    used_lag: int
    n_obs: int
    critical_values: Dict[str, float]
    alpha: float = 0.05

    @property
    def is_stationary(self) -> bool:
        return self.p_value < self.alpha

    @property
    def interpretation(self) -> str:
        verdict = "stationary" if self.is_stationary else "non-stationary (unit root not rejected)"
        return f"{self.series_name}: ADF={self.statistic:.3f}, p={self.p_value:.4f} -> {verdict}"
