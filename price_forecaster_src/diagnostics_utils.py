# price_forecaster_src/diagnostics_utils.py

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

import numpy as np
import pandas as pd
from statsmodels.tsa.stattools import acf, adfuller, pacf

from diagnostics import HeteroskedasticityResult, HeteroskedasticityTester, VarianceSplitResult

from .config_utils import get_config_value
from .exceptions import DegenerateSeries
from .records import MatchedSeries, StationarityResult
from .transform_utils import first_difference

logger = logging.getLogger(__name__)

# Fewest observations for which an ADF regression is attempted
MIN_ADF_OBS = 12


def _clean_series(series, name: str, min_obs: int = 2) -> pd.Series:
    """Drop missing values and reject empty, too-short or constant input."""
    s = pd.Series(series, dtype=float).replace([np.inf, -np.inf], np.nan).dropna()
    if s.empty:
        raise DegenerateSeries(f"Series '{name}' is empty")
    if len(s) < min_obs:
        raise DegenerateSeries(f"Series '{name}' has {len(s)} observations, at least {min_obs} required")
    if float(s.max() - s.min()) == 0.0:
        raise DegenerateSeries(f"Series '{name}' is constant")
    return s


def check_stationarity(series: pd.Series, alpha: Optional[float] = None,
                       name: Optional[str] = None) -> StationarityResult:
    """
    Run the Augmented Dickey-Fuller (ADF) test for unit roots.

    Parameters
    ----------
    series : pd.Series
        Input series. NaNs are dropped prior to testing.
    alpha : float, optional
        Significance level; defaults to ``diagnostics.significance_level``.
    name : str, optional
        Label used in logs and the report (defaults to ``series.name``).

    Returns
    -------
    StationarityResult
        Statistic, p-value, lags used, observations, critical values and the
        ``is_stationary`` verdict (p < alpha).

    Raises
    ------
    DegenerateSeries
        If the series is empty, constant or shorter than 12 observations.

    Notes
    -----
    - ADF null hypothesis: the series has a unit root (non-stationary)
    - Lag length is chosen by AIC
    """
    if alpha is None:
        alpha = float(get_config_value("diagnostics.significance_level", 0.05))
    label = name or (series.name if getattr(series, "name", None) is not None else "series")
    s = _clean_series(series, label, MIN_ADF_OBS)

    stat, pvalue, used_lag, nobs, crit, _ = adfuller(s.to_numpy(), autolag="AIC")
    result = StationarityResult(
        series_name=str(label),
        statistic=float(stat),
        p_value=float(pvalue),
        used_lag=int(used_lag),
        n_obs=int(nobs),
        critical_values={k: float(v) for k, v in crit.items()},
        alpha=float(alpha),
    )
    logger.info("ADF %s", result.interpretation)
    return result


def compute_acf_pacf(series: pd.Series, max_lag: Optional[int] = None) -> Dict[str, np.ndarray]:
    """
    Empirical ACF and PACF with 95% confidence intervals.

    Parameters
    ----------
    series : pd.Series
        Stationary series, typically the differenced price.
    max_lag : int, optional
        Requested number of lags (default ``diagnostics.max_lag``, 50). It is
        capped below half the sample size, which PACF estimation requires.

    Returns
    -------
    dict
        ``lags``, ``acf``, ``pacf``, ``acf_confint``, ``pacf_confint`` (arrays
        of length ``nlags + 1`` including lag 0) and ``bound``, the
        white-noise band 1.96/sqrt(n).
    """
    if max_lag is None:
        max_lag = int(get_config_value("diagnostics.max_lag", 50))
    s = _clean_series(series, str(getattr(series, "name", None) or "series"), 4)
    nlags = max(1, min(int(max_lag), len(s) // 2 - 1))
    if nlags < max_lag:
        logger.debug("ACF/PACF lags capped at %d for %d observations", nlags, len(s))

    acf_vals, acf_confint = acf(s.to_numpy(), nlags=nlags, alpha=0.05, fft=True)
    pacf_vals, pacf_confint = pacf(s.to_numpy(), nlags=nlags, alpha=0.05, method="ywm")
    return {
        "lags": np.arange(nlags + 1),
        "acf": acf_vals,
        "pacf": pacf_vals,
        "acf_confint": acf_confint,
        "pacf_confint": pacf_confint,
        "bound": 1.96 / np.sqrt(len(s)),
    }


def cross_correlation(x: pd.Series, y: pd.Series, max_lag: Optional[int] = None) -> pd.Series:
    """
    Lagged Pearson correlation corr(x_t, y_{t+k}) for k in [-max_lag, max_lag].

    A peak at a positive lag k means movements in ``x`` precede movements
    in ``y`` by k observations.

    Parameters
    ----------
    x, y : pd.Series
        Series on a shared index; only common index labels are used.
    max_lag : int, optional
        Largest absolute lag (default ``diagnostics.cross_correlation_max_lag``).

    Returns
    -------
    pd.Series
        Correlations indexed by integer lag, named ``ccf``.

    Examples
    --------
    >>> x = pd.Series(np.random.default_rng(0).normal(size=200))
    >>> int(cross_correlation(x, x.shift(3), 5).idxmax())
    3
    """
    if max_lag is None:
        max_lag = int(get_config_value("diagnostics.cross_correlation_max_lag", 30))
    frame = pd.concat([pd.Series(x, name="x"), pd.Series(y, name="y")], axis=1, join="inner")
    _clean_series(frame["x"], "x", 3)
    _clean_series(frame["y"], "y", 3)
    # Position-based lags on the common rows
    xs = frame["x"].reset_index(drop=True).astype(float)
    ys = frame["y"].reset_index(drop=True).astype(float)

    max_lag = max(0, min(int(max_lag), len(xs) - 3))
    lags = range(-max_lag, max_lag + 1)
    values = [xs.corr(ys.shift(-k)) for k in lags]
    return pd.Series(values, index=pd.Index(list(lags), name="lag"), name="ccf")


def peak_lag(ccf: pd.Series) -> int:
    """Lag with the largest absolute cross-correlation (ties go to the smallest |lag|)."""
    magnitude = ccf.abs().dropna()
    if magnitude.empty:
        raise DegenerateSeries("Cross-correlation is undefined at every lag")
    best = magnitude[magnitude == magnitude.max()]
    return int(min(best.index, key=lambda k: (abs(k), k)))


@dataclass(frozen=True, eq=False)
class SeriesDiagnostics:
    """Exploratory diagnostics on the matched series, rendered for the analyst."""

    price_stationarity: StationarityResult
    diff_stationarity: StationarityResult
    acf_pacf: Dict[str, np.ndarray]
    variance_split: VarianceSplitResult
    arch_lm: HeteroskedasticityResult
    cross_correlation: pd.Series
    notes: Dict[str, str] = field(default_factory=dict)

    @property
    def peak_lag(self) -> int:
        return peak_lag(self.cross_correlation)

    def summary_frame(self) -> pd.DataFrame:
        rows = [
            {"check": "ADF price", "statistic": self.price_stationarity.statistic,
             "p_value": self.price_stationarity.p_value,
             "verdict": "stationary" if self.price_stationarity.is_stationary else "non-stationary"},
            {"check": "ADF differenced price", "statistic": self.diff_stationarity.statistic,
             "p_value": self.diff_stationarity.p_value,
             "verdict": "stationary" if self.diff_stationarity.is_stationary else "non-stationary"},
            {"check": "Variance split ratio", "statistic": self.variance_split.ratio,
             "p_value": self.variance_split.f_p_value,
             "verdict": "flagged" if self.variance_split.flagged else "not flagged"},
            {"check": "ARCH-LM differenced price", "statistic": self.arch_lm.test_statistic,
             "p_value": self.arch_lm.p_value,
             "verdict": "ARCH effects" if self.arch_lm.is_heteroskedastic else "no ARCH effects"},
            {"check": "Temperature/price-change CCF peak", "statistic": float(self.cross_correlation.loc[self.peak_lag]),
             "p_value": np.nan, "verdict": f"lag {self.peak_lag}"},
        ]
        return pd.DataFrame(rows)


def run_series_diagnostics(matched: MatchedSeries, alpha: Optional[float] = None,
                           max_lag: Optional[int] = None, ccf_max_lag: Optional[int] = None,
                           ratio_threshold: Optional[float] = None,
                           arch_lags: Optional[int] = None) -> SeriesDiagnostics:
    """
    Exploratory diagnostics on the matched price/temperature series.

    Runs ADF on the price level and on its first difference, ACF/PACF of
    the differenced price, the variance-split heuristic and ARCH-LM test on
    the differenced price, and the cross-correlation between temperature and
    the daily price change. Nothing here feeds model selection; the results
    inform the analyst's choice of model families.

    Parameters
    ----------
    matched : MatchedSeries
        Output of ``align_price_and_climate``.
    alpha, max_lag, ccf_max_lag, ratio_threshold, arch_lags : optional
        Overrides for the ``diagnostics.*`` configuration values.

    Returns
    -------
    SeriesDiagnostics

    Raises
    ------
    DegenerateSeries
        If the price, its difference or the temperature is empty, constant
        or too short.
    """
    if alpha is None:
        alpha = float(get_config_value("diagnostics.significance_level", 0.05))
    if ratio_threshold is None:
        ratio_threshold = float(get_config_value("diagnostics.variance_ratio_threshold", 2.0))
    if arch_lags is None:
        arch_lags = int(get_config_value("diagnostics.arch_lm_lags", 10))

    price = matched.price
    diff = first_difference(price)
    diff.name = "price_diff"
    _clean_series(diff, "price_diff", MIN_ADF_OBS)
    _clean_series(matched.avg_temp, "avg_temp", MIN_ADF_OBS)

    price_adf = check_stationarity(price, alpha, name="price")
    diff_adf = check_stationarity(diff, alpha, name="price_diff")
    acf_pacf = compute_acf_pacf(diff, max_lag)

    tester = HeteroskedasticityTester(alpha, ratio_threshold=ratio_threshold)
    split = tester.variance_split(diff)
    arch = tester.test_arch_lm(diff, min(int(arch_lags), max(1, len(diff) // 4)))
    logger.info("%s", split.interpretation)
    logger.info("ARCH-LM on price changes: %s", arch.interpretation)

    ccf = cross_correlation(matched.avg_temp.loc[diff.index], diff, ccf_max_lag)
    best = peak_lag(ccf)
    logger.info("Temperature/price-change cross-correlation peaks at lag %d (r=%.3f)", best, ccf.loc[best])

    notes = {}
    if price_adf.is_stationary:
        notes["price"] = "Price level already looks stationary; differencing may be unnecessary."
    if not diff_adf.is_stationary:
        notes["price_diff"] = "Differenced price still looks non-stationary."
    if split.flagged or arch.is_heteroskedastic:
        notes["volatility"] = "Price-change variance is not constant; conditional-volatility models are warranted."

    return SeriesDiagnostics(
        price_stationarity=price_adf,
        diff_stationarity=diff_adf,
        acf_pacf=acf_pacf,
        variance_split=split,
        arch_lm=arch,
        cross_correlation=ccf,
        notes=notes,
    )
