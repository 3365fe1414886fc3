# price_forecaster_src/selection_utils.py

"""
Two-stage model selection.

Stage 1 prunes within each model family by information criteria (AIC, then
BIC). Information criteria are never compared across families, since the
GARCH family is fitted to price changes and the ARIMA family to price
levels. Stage 2 picks between the two family finalists by out-of-sample
RMSE on the held-out suffix.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from .exceptions import PipelineError
from .forecasting_utils import forecast_model, ic_table
from .metrics_utils import compute_metrics, interval_coverage
from .records import COVERAGE_LEVELS, FAMILY_ARIMA, FAMILY_GARCH, FittedModel, ForecastResult, MatchedSeries

logger = logging.getLogger(__name__)

FAMILY_ORDER = (FAMILY_ARIMA, FAMILY_GARCH)


@dataclass(frozen=True, eq=False)
class SelectionResult:
    """Outcome of both selection stages."""

    candidates: List[FittedModel]
    finalists: Dict[str, FittedModel]
    holdout_forecasts: Dict[str, ForecastResult]
    error_table: pd.DataFrame
    winner: FittedModel
    notes: List[str] = field(default_factory=list)

    @property
    def ic_table(self) -> pd.DataFrame:
        table = ic_table(self.candidates)
        finalist_names = {m.name for m in self.finalists.values()}
        table["finalist"] = table["model"].isin(finalist_names)
        return table


def _stage1_key(model: FittedModel):
    # Lower AIC, then lower BIC, then the plain (no exogenous) variant
    return (model.aic, model.bic, model.uses_exog, model.name)


def select_finalists(candidates: List[FittedModel]) -> Dict[str, FittedModel]:
    """
    Keep one variant per family by information criteria.

    Parameters
    ----------
    candidates : List[FittedModel]
        Fitted variants; each family must be represented at least once.

    Returns
    -------
    Dict[str, FittedModel]
        Finalist per family, keyed ``'arima'`` then ``'garch'``.

    Raises
    ------
    PipelineError
        If a family has no fitted candidate.

    Notes
    -----
    Deterministic: the same candidates always give the same finalists,
    whatever their input order.
    """
    finalists: Dict[str, FittedModel] = {}
    for family in FAMILY_ORDER:
        members = [m for m in candidates if m.family == family]
        if not members:
            raise PipelineError(f"No fitted candidate for model family '{family}'", stage="select")
        best = min(members, key=_stage1_key)
        finalists[family] = best
        others = ", ".join(f"{m.name} (AIC={m.aic:.2f}, BIC={m.bic:.2f})" for m in members if m is not best)
        logger.info("Stage 1 [%s]: kept %s (AIC=%.2f, BIC=%.2f) over %s", family, best.name, best.aic,
                    best.bic, others or "no other variant")
    return finalists


def select_final_model(finalists: Dict[str, FittedModel], train: MatchedSeries, test: MatchedSeries,
                       candidates: Optional[List[FittedModel]] = None) -> SelectionResult:
    """
    Choose between family finalists by holdout RMSE.

    Each finalist, fitted on ``train``, forecasts the whole ``test`` suffix
    (exogenous variants use the actual held-out temperature). The lower RMSE
    against actual held-out prices wins; an exact tie keeps the ARIMA
    family. The forecast-error ranking always overrides information
    criteria.

    Parameters
    ----------
    finalists : Dict[str, FittedModel]
        Output of :func:`select_finalists`.
    train, test : MatchedSeries
        Training prefix and held-out suffix.
    candidates : List[FittedModel], optional
        All stage-1 candidates, kept for the report.

    Returns
    -------
    SelectionResult
    """
    horizon = len(test)
    actual = test.price.to_numpy()
    naive = np.full(horizon, float(train.price.iloc[-1]))

    forecasts: Dict[str, ForecastResult] = {}
    rows = []
    for family in FAMILY_ORDER:
        model = finalists[family]
        fc = forecast_model(model, horizon, future_exog=test.avg_temp.to_numpy(), index=test.dates)
        forecasts[model.name] = fc
        row = {"model": model.name, "family": family}
        row.update(compute_metrics(actual, fc.mean, naive, train.price.to_numpy()))
        for lvl in COVERAGE_LEVELS:
            row[f"coverage_{lvl}"] = interval_coverage(actual, fc.lower[lvl], fc.upper[lvl])
        rows.append(row)
        logger.info("Stage 2: %s holdout RMSE=%.4f over %d steps", model.name, row["RMSE"], horizon)

    error_table = pd.DataFrame(rows)
    ranked = sorted(rows, key=lambda r: (r["RMSE"], r["family"] != FAMILY_ARIMA))
    winner = finalists[ranked[0]["family"]]

    notes = []
    by_aic = min(finalists.values(), key=lambda m: m.aic)
    if by_aic is not winner:
        notes.append(f"{winner.name} wins on holdout RMSE although {by_aic.name} has the lower AIC; "
                     "AIC values of the two families are not comparable.")
    logger.info("Stage 2: selected %s", winner.name)

    return SelectionResult(
        candidates=list(candidates) if candidates is not None else list(finalists.values()),
        finalists=dict(finalists),
        holdout_forecasts=forecasts,
        error_table=error_table,
        winner=winner,
        notes=notes,
    )
