import numpy as np
import pytest

from price_forecaster_src.metrics_utils import (
    compute_metrics, interval_coverage, mae, mape_eps, paired_arrays, rmse, theil_u2
)


def test_compute_metrics_keys_and_values():
    y = np.array([100.0, 102.0, 101.0, 105.0])
    yhat = np.array([101.0, 101.0, 103.0, 104.0])
    naive = np.full(4, 100.0)

    m = compute_metrics(y, yhat, naive, y_train=np.array([95.0, 98.0, 100.0]))
    assert set(m) == {"ME", "MAE", "RMSE", "MAPE", "TheilU2"}
    assert m["ME"] == pytest.approx(0.25)
    assert m["MAE"] == pytest.approx(1.25)
    assert m["RMSE"] == pytest.approx(np.sqrt(7.0 / 4.0))
    assert m["TheilU2"] < 1.0


def test_metrics_without_naive_forecast():
    m = compute_metrics([1.0, 2.0], [1.0, 2.0])
    assert m["RMSE"] == 0.0
    assert np.isnan(m["TheilU2"])


def test_rmse_penalizes_large_errors():
    assert rmse([0.0, 0.0], [0.0, 2.0]) > rmse([0.0, 0.0], [1.0, 1.0])


def test_theil_u2_undefined_for_perfect_naive():
    assert np.isnan(theil_u2([1.0, 1.0], [1.0, 2.0], [1.0, 1.0]))


def test_mape_uses_floor():
    assert mape_eps([0.0], [1.0], eps=1.0) == pytest.approx(100.0)


def test_interval_coverage():
    assert interval_coverage([1.0, 5.0, 10.0], [0.0, 0.0, 0.0], [2.0, 6.0, 8.0]) == pytest.approx(2.0 / 3.0)


def test_missing_value_drops_only_its_own_pair():
    y = [100.0, np.nan, 102.0, 104.0]
    yhat = [101.0, 250.0, 102.0, 104.0]
    assert rmse(y, yhat) == pytest.approx(np.sqrt(1.0 / 3.0))
    assert mae(y, yhat) == pytest.approx(1.0 / 3.0)
    assert mape_eps(y, yhat) == pytest.approx(100.0 / 300.0)

    m = compute_metrics(y, [np.nan, 101.0, 103.0, 104.0])
    assert m["ME"] == pytest.approx(0.5)
    assert m["RMSE"] == pytest.approx(np.sqrt(0.5))


def test_paired_arrays_truncates_then_masks():
    yt, yh = paired_arrays([1.0, np.inf, 3.0, 4.0], [1.5, 2.0, np.nan])
    assert yt.tolist() == [1.0]
    assert yh.tolist() == [1.5]
