# price_forecaster_src/forecasting_utils.py

import logging
from typing import Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from arch import arch_model
from scipy.stats import norm
from statsmodels.tsa.statespace.sarimax import SARIMAX
from tqdm.auto import tqdm

from helpers.temporal import future_index

from .config_utils import get_config_value
from .exceptions import DegenerateSeries, NonConvergence
from .records import (
    COVERAGE_LEVELS,
    FAMILY_ARIMA,
    FAMILY_GARCH,
    FittedModel,
    ForecastResult,
    MatchedSeries,
    ModelVariant,
)
from .transform_utils import first_difference, integrate_forecast

logger = logging.getLogger(__name__)

# Name given to the differenced price inside the GARCH mean equation
DIFF_NAME = "price_diff"
EXOG_NAME = "avg_temp"
MIN_FIT_OBS = 30


def build_variants(arima_order: Optional[Sequence[int]] = None, ar_lags: Optional[int] = None,
                   garch_p: Optional[int] = None, garch_q: Optional[int] = None) -> List[ModelVariant]:
    """
    The four candidate specifications, in reporting order.

    Parameters
    ----------
    arima_order : sequence of int, optional
        ``(p, d, q)`` for both ARIMA variants (default ``model.arima.order``).
    ar_lags, garch_p, garch_q : int, optional
        AR order of the GARCH mean equation and the GARCH orders (defaults
        from ``model.garch.*``).

    Returns
    -------
    List[ModelVariant]
        ARIMA, ARIMAX, AR-GARCH, ARX-GARCH.
    """
    p, d, q = tuple(int(v) for v in (arima_order or get_config_value("model.arima.order", [1, 1, 0])))
    ar = int(ar_lags if ar_lags is not None else get_config_value("model.garch.ar_lags", 1))
    gp = int(garch_p if garch_p is not None else get_config_value("model.garch.p", 1))
    gq = int(garch_q if garch_q is not None else get_config_value("model.garch.q", 1))
    return [
        ModelVariant(f"ARIMA({p},{d},{q})", FAMILY_ARIMA, False, (p, d, q)),
        ModelVariant(f"ARIMAX({p},{d},{q})", FAMILY_ARIMA, True, (p, d, q)),
        ModelVariant(f"AR({ar})-GARCH({gp},{gq})", FAMILY_GARCH, False, (ar, gp, gq)),
        ModelVariant(f"ARX({ar})-GARCH({gp},{gq})", FAMILY_GARCH, True, (ar, gp, gq)),
    ]


def _check_training_data(series: pd.Series, variant: ModelVariant) -> None:
    values = pd.Series(series, dtype=float)
    if values.isna().any():
        raise DegenerateSeries(f"{variant.name}: training data contains missing values")
    if len(values) < MIN_FIT_OBS:
        raise DegenerateSeries(f"{variant.name}: {len(values)} observations, at least {MIN_FIT_OBS} required")
    if float(values.max() - values.min()) == 0.0:
        raise DegenerateSeries(f"{variant.name}: training price is constant")


def check_convergence(result, variant_name: str) -> None:
    """
    Raise NonConvergence when a fit reports optimizer failure.

    Understands statsmodels results (``mle_retvals["converged"]``) and arch
    results (``convergence_flag``, 0 on success).
    """
    flag = getattr(result, "convergence_flag", None)
    if flag is not None:
        if int(flag) != 0:
            raise NonConvergence(f"{variant_name}: optimizer did not converge (flag={flag})", variant=variant_name)
        return
    retvals = getattr(result, "mle_retvals", None) or {}
    if retvals.get("converged") is False:
        raise NonConvergence(f"{variant_name}: optimizer did not converge after "
                             f"{retvals.get('iterations', '?')} iterations", variant=variant_name)


def fit_arima_variant(variant: ModelVariant, matched: MatchedSeries) -> FittedModel:
    """
    Fit an ARIMA or ARIMAX variant by exact Gaussian maximum likelihood.

    Parameters
    ----------
    variant : ModelVariant
        ARIMA-family specification; ``uses_exog`` adds daily temperature as a
        linear regressor in the mean equation.
    matched : MatchedSeries
        Training data (price levels; differencing is handled by the model).

    Returns
    -------
    FittedModel

    Raises
    ------
    NonConvergence
        If the optimizer reports failure.
    """
    price = matched.price
    _check_training_data(price, variant)
    exog = matched.avg_temp.to_numpy().reshape(-1, 1) if variant.uses_exog else None

    model = SARIMAX(price.to_numpy(), exog=exog, order=variant.order, simple_differencing=False)
    res = model.fit(disp=False)
    check_convergence(res, variant.name)

    names = list(model.param_names)
    if variant.uses_exog:
        names = [EXOG_NAME if n == "x1" else n for n in names]
    p, d, q = variant.order
    fitted = FittedModel(
        variant=variant,
        order={"p": p, "d": d, "q": q},
        params={n: float(v) for n, v in zip(names, np.asarray(res.params))},
        loglikelihood=float(res.llf),
        aic=float(res.aic),
        bic=float(res.bic),
        n_obs=int(res.nobs),
        last_level=float(price.iloc[-1]),
        last_date=price.index[-1],
        result=res,
    )
    logger.debug("%s fitted: AIC=%.3f BIC=%.3f params=%s", variant.name, fitted.aic, fitted.bic, fitted.params)
    return fitted


def fit_garch_variant(variant: ModelVariant, matched: MatchedSeries) -> FittedModel:
    """
    Fit an AR-GARCH or ARX-GARCH variant to the daily price change.

    Mean equation: constant plus ``ar_lags`` autoregressive terms of the
    differenced price (plus temperature for the ARX variant). Variance
    equation: GARCH(p, q) with normal innovations. Fitting the differenced
    price lets forecasts be integrated back to price level, so both model
    families are compared on the same target.

    Parameters
    ----------
    variant : ModelVariant
        GARCH-family specification with ``order == (ar_lags, p, q)``.
    matched : MatchedSeries
        Training data.

    Returns
    -------
    FittedModel

    Raises
    ------
    NonConvergence
        If the optimizer reports failure.
    """
    price = matched.price
    _check_training_data(price, variant)
    ar_lags, p, q = variant.order
    dist = get_config_value("model.garch.dist", "normal")

    diff = first_difference(price).reset_index(drop=True)
    diff.name = DIFF_NAME
    x = None
    if variant.uses_exog:
        x = matched.avg_temp.iloc[1:].reset_index(drop=True).to_frame(EXOG_NAME)

    am = arch_model(
        diff,
        x=x,
        mean="ARX" if variant.uses_exog else "AR",
        lags=ar_lags,
        vol="GARCH",
        p=p,
        q=q,
        dist=dist,
        rescale=False,
    )
    res = am.fit(disp="off", show_warning=False)
    check_convergence(res, variant.name)

    fitted = FittedModel(
        variant=variant,
        order={"ar_lags": ar_lags, "garch_p": p, "garch_q": q},
        params={str(n): float(v) for n, v in res.params.items()},
        loglikelihood=float(res.loglikelihood),
        aic=float(res.aic),
        bic=float(res.bic),
        n_obs=int(res.nobs),
        last_level=float(price.iloc[-1]),
        last_date=price.index[-1],
        result=res,
    )
    logger.debug("%s fitted: AIC=%.3f BIC=%.3f params=%s", variant.name, fitted.aic, fitted.bic, fitted.params)
    return fitted


def fit_variant(variant: ModelVariant, matched: MatchedSeries) -> FittedModel:
    """Dispatch to the fitting routine of the variant's family."""
    if variant.family == FAMILY_ARIMA:
        return fit_arima_variant(variant, matched)
    if variant.family == FAMILY_GARCH:
        return fit_garch_variant(variant, matched)
    raise ValueError(f"Unknown model family '{variant.family}'")


def fit_all_variants(train: MatchedSeries, variants: Optional[List[ModelVariant]] = None) -> List[FittedModel]:
    """
    Fit every candidate variant on the training prefix.

    There is no retry or fallback: the first NonConvergence aborts the run.
    Progress is displayed via tqdm progress bar.
    """
    variants = variants if variants is not None else build_variants()
    fitted: List[FittedModel] = []
    for variant in tqdm(variants, desc="Fitting model variants"):
        fitted.append(fit_variant(variant, train))
        logger.info("Fitted %s on %d observations (AIC=%.2f, BIC=%.2f)", variant.name,
                    fitted[-1].n_obs, fitted[-1].aic, fitted[-1].bic)
    return fitted


def ic_table(models: List[FittedModel]) -> pd.DataFrame:
    """Information-criterion comparison table, one row per fitted model."""
    return pd.DataFrame([m.summary_row() for m in models])


def _future_exog_array(fitted: FittedModel, horizon: int, future_exog) -> Optional[np.ndarray]:
    if not fitted.uses_exog:
        return None
    if future_exog is None:
        raise ValueError(f"{fitted.name} uses temperature; future_exog of length {horizon} is required")
    values = np.asarray(future_exog, dtype=float).ravel()
    if len(values) != horizon:
        raise ValueError(f"future_exog has {len(values)} values, expected {horizon}")
    if not np.all(np.isfinite(values)):
        raise ValueError("future_exog must be finite")
    return values


def _ar_coefficients(fitted: FittedModel) -> np.ndarray:
    lags = fitted.order["ar_lags"]
    return np.array([fitted.params[f"{DIFF_NAME}[{i}]"] for i in range(1, lags + 1)])


def _integrated_variance(residual_variance: np.ndarray, phi: np.ndarray) -> np.ndarray:
    """
    Variance of the cumulative price forecast error at each step.

    With psi the MA(inf) weights of the AR mean equation and
    c_m = psi_0 + ... + psi_m, Var(P_{T+h}) = sum_{j=1..h} sigma2_{T+j} * c_{h-j}^2.
    """
    h = len(residual_variance)
    psi = np.zeros(h)
    psi[0] = 1.0
    for m in range(1, h):
        for i, coef in enumerate(phi, start=1):
            if m - i >= 0:
                psi[m] += coef * psi[m - i]
    cum = np.cumsum(psi)
    out = np.empty(h)
    for step in range(1, h + 1):
        weights = cum[step - np.arange(1, step + 1)]
        out[step - 1] = float(np.sum(residual_variance[:step] * weights ** 2))
    return out


def _forecast_arima(fitted: FittedModel, horizon: int, exog: Optional[np.ndarray]):
    fc = fitted.result.get_forecast(steps=horizon, exog=None if exog is None else exog.reshape(-1, 1))
    mean = np.asarray(fc.predicted_mean, dtype=float)
    lower, upper = {}, {}
    for lvl in COVERAGE_LEVELS:
        ci = np.asarray(fc.conf_int(alpha=1.0 - lvl / 100.0), dtype=float)
        lower[lvl], upper[lvl] = ci[:, 0], ci[:, 1]
    return mean, lower, upper


def _forecast_garch(fitted: FittedModel, horizon: int, exog: Optional[np.ndarray]):
    kwargs = {"horizon": horizon, "reindex": False}
    if exog is not None:
        kwargs["x"] = exog.reshape(1, horizon)
    fc = fitted.result.forecast(**kwargs)
    mean_diff = np.asarray(fc.mean.iloc[-1], dtype=float)
    resid_var = np.asarray(fc.residual_variance.iloc[-1], dtype=float)

    mean = integrate_forecast(fitted.last_level, mean_diff)
    sd = np.sqrt(_integrated_variance(resid_var, _ar_coefficients(fitted)))
    lower, upper = {}, {}
    for lvl in COVERAGE_LEVELS:
        z = float(norm.ppf(0.5 + lvl / 200.0))
        lower[lvl], upper[lvl] = mean - z * sd, mean + z * sd
    return mean, lower, upper


def forecast_model(fitted: FittedModel, horizon: int, future_exog=None,
                   index: Optional[pd.Index] = None) -> ForecastResult:
    """
    Multi-step price forecasts with 80% and 95% intervals from one fitted model.

    Parameters
    ----------
    fitted : FittedModel
        Model to forecast from; forecasts start after its last training date.
    horizon : int
        Number of steps ahead.
    future_exog : array-like, optional
        Temperature for each forecast step; required by exogenous variants.
    index : pd.Index, optional
        Index of the forecast steps. Defaults to the ``forecast.frequency``
        calendar following the last training date.

    Returns
    -------
    ForecastResult

    Notes
    -----
    - ARIMA-family intervals are the state-space prediction intervals.
    - GARCH-family intervals use the conditional variance forecasts of the
      daily change, accumulated through the AR mean equation to price
      level, with normal quantiles.
    """
    if horizon <= 0:
        raise ValueError(f"horizon must be positive, got {horizon}")
    exog = _future_exog_array(fitted, horizon, future_exog)

    if fitted.family == FAMILY_ARIMA:
        mean, lower, upper = _forecast_arima(fitted, horizon, exog)
    elif fitted.family == FAMILY_GARCH:
        mean, lower, upper = _forecast_garch(fitted, horizon, exog)
    else:
        raise ValueError(f"Unknown model family '{fitted.family}'")

    if index is None:
        if fitted.last_date is not None:
            index = future_index(fitted.last_date, horizon, get_config_value("forecast.frequency", "B"))
        else:
            index = pd.RangeIndex(1, horizon + 1, name="step")
    return ForecastResult(model_name=fitted.name, horizon=horizon, index=index,
                          mean=mean, lower=lower, upper=upper)


def model_residuals(fitted: FittedModel) -> pd.Series:
    """
    In-sample residuals suitable for diagnostics.

    ARIMA-family residuals drop the first ``d`` diffuse-initialisation
    values; GARCH-family residuals are standardized by the conditional
    volatility.
    """
    if fitted.family == FAMILY_ARIMA:
        resid = np.asarray(fitted.result.resid, dtype=float)[fitted.order["d"]:]
    else:
        resid = np.asarray(fitted.result.std_resid, dtype=float)
    resid = resid[np.isfinite(resid)]
    return pd.Series(resid, name=f"{fitted.name} residuals")


def collect_forecasts(forecasts: Dict[str, ForecastResult]) -> pd.DataFrame:
    """Stack several forecasts into one long frame with a ``model`` column."""
    frames = []
    for name, fc in forecasts.items():
        frame = fc.to_frame()
        frame.insert(0, "model", name)
        frames.append(frame)
    return pd.concat(frames) if frames else pd.DataFrame()
