import random

import numpy as np
import pandas as pd
import pytest

from price_forecaster_src import selection_utils
from price_forecaster_src.exceptions import PipelineError
from price_forecaster_src.records import FAMILY_ARIMA, FAMILY_GARCH, FittedModel, ForecastResult, MatchedSeries, ModelVariant
from price_forecaster_src.selection_utils import select_final_model, select_finalists


def _model(name, family, uses_exog, aic, bic):
    return FittedModel(
        variant=ModelVariant(name, family, uses_exog),
        order={}, params={}, loglikelihood=-aic / 2, aic=aic, bic=bic, n_obs=100, last_level=100.0,
    )


def _candidates(arima=(500.0, 510.0), arimax=(498.0, 512.0), garch=(300.0, 320.0), argarch=(305.0, 330.0)):
    return [
        _model("ARIMA(1,1,0)", FAMILY_ARIMA, False, *arima),
        _model("ARIMAX(1,1,0)", FAMILY_ARIMA, True, *arimax),
        _model("AR(1)-GARCH(1,1)", FAMILY_GARCH, False, *garch),
        _model("ARX(1)-GARCH(1,1)", FAMILY_GARCH, True, *argarch),
    ]


def test_one_finalist_per_family_by_aic():
    finalists = select_finalists(_candidates())
    assert list(finalists) == [FAMILY_ARIMA, FAMILY_GARCH]
    assert finalists[FAMILY_ARIMA].name == "ARIMAX(1,1,0)"
    assert finalists[FAMILY_GARCH].name == "AR(1)-GARCH(1,1)"


def test_finalists_do_not_depend_on_input_order():
    candidates = _candidates()
    expected = {k: m.name for k, m in select_finalists(candidates).items()}
    rng = random.Random(0)
    for _ in range(10):
        shuffled = candidates[:]
        rng.shuffle(shuffled)
        assert {k: m.name for k, m in select_finalists(shuffled).items()} == expected


def test_aic_tie_falls_back_to_bic():
    finalists = select_finalists(_candidates(arima=(500.0, 515.0), arimax=(500.0, 512.0)))
    assert finalists[FAMILY_ARIMA].name == "ARIMAX(1,1,0)"


def test_full_tie_keeps_plain_variant():
    finalists = select_finalists(_candidates(arima=(500.0, 510.0), arimax=(500.0, 510.0),
                                             garch=(300.0, 320.0), argarch=(300.0, 320.0)))
    assert finalists[FAMILY_ARIMA].name == "ARIMA(1,1,0)"
    assert finalists[FAMILY_GARCH].name == "AR(1)-GARCH(1,1)"


def test_missing_family_is_an_error():
    with pytest.raises(PipelineError) as exc:
        select_finalists(_candidates()[:2])
    assert exc.value.stage == "select"


def _split(n_train=80, n_test=20):
    idx = pd.date_range("2021-01-01", periods=n_train + n_test, freq="D")
    price = np.concatenate([np.full(n_train, 100.0), np.full(n_test, 110.0)])
    matched = MatchedSeries(pd.DataFrame({"price": price, "avg_temp": np.linspace(0, 10, n_train + n_test)},
                                         index=idx))
    return matched.split(n_train / (n_train + n_test))


def _patch_forecasts(monkeypatch, level_by_name):
    calls = []

    def fake_forecast(model, horizon, future_exog=None, index=None):
        calls.append({"model": model.name, "horizon": horizon, "future_exog": future_exog, "index": index})
        mean = np.full(horizon, level_by_name[model.name])
        return ForecastResult(model.name, horizon, index, mean,
                              {80: mean - 1, 95: mean - 2}, {80: mean + 1, 95: mean + 2})

    monkeypatch.setattr(selection_utils, "forecast_model", fake_forecast)
    return calls


def test_holdout_rmse_overrides_information_criteria(monkeypatch):
    train, test = _split()
    finalists = select_finalists(_candidates())
    # the GARCH finalist has the lower AIC but the worse holdout forecast
    calls = _patch_forecasts(monkeypatch, {"ARIMAX(1,1,0)": 109.0, "AR(1)-GARCH(1,1)": 100.0})

    result = select_final_model(finalists, train, test, _candidates())
    assert result.winner.name == "ARIMAX(1,1,0)"
    assert result.notes and "lower AIC" in result.notes[0]

    errors = result.error_table.set_index("model")
    assert errors.loc["ARIMAX(1,1,0)", "RMSE"] == pytest.approx(1.0)
    assert errors.loc["AR(1)-GARCH(1,1)", "RMSE"] == pytest.approx(10.0)
    assert errors.loc["ARIMAX(1,1,0)", "coverage_95"] == pytest.approx(1.0)
    assert errors.loc["AR(1)-GARCH(1,1)", "coverage_95"] == pytest.approx(0.0)

    # every finalist forecasts the whole holdout with the held-out temperature
    assert all(c["horizon"] == len(test) for c in calls)
    np.testing.assert_allclose(calls[0]["future_exog"], test.avg_temp.to_numpy())
    assert list(calls[0]["index"]) == list(test.dates)

    ic = result.ic_table
    assert ic["finalist"].sum() == 2
    assert len(ic) == 4


def test_rmse_tie_keeps_arima(monkeypatch):
    train, test = _split()
    finalists = select_finalists(_candidates())
    _patch_forecasts(monkeypatch, {"ARIMAX(1,1,0)": 105.0, "AR(1)-GARCH(1,1)": 105.0})

    result = select_final_model(finalists, train, test)
    assert result.winner.family == FAMILY_ARIMA


def test_garch_wins_on_lower_rmse(monkeypatch):
    train, test = _split()
    finalists = select_finalists(_candidates())
    _patch_forecasts(monkeypatch, {"ARIMAX(1,1,0)": 100.0, "AR(1)-GARCH(1,1)": 110.0})

    result = select_final_model(finalists, train, test)
    assert result.winner.name == "AR(1)-GARCH(1,1)"
    assert result.notes == []
    assert set(result.holdout_forecasts) == {"ARIMAX(1,1,0)", "AR(1)-GARCH(1,1)"}
