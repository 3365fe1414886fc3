import numpy as np
import pandas as pd
import pytest

from price_forecaster_src.records import MatchedSeries
from price_forecaster_src.transform_utils import (
    first_difference, integrate_forecast, invert_first_difference, split_train_test, train_test_split_point
)


def test_first_difference_inverts():
    rng = np.random.default_rng(3)
    idx = pd.date_range("2020-01-01", periods=50, freq="D")
    x = pd.Series(100 + np.cumsum(rng.normal(size=50)), index=idx, name="price")

    d = first_difference(x)
    assert len(d) == len(x) - 1
    assert d.name == "price_diff"
    assert d.index[0] == idx[1]

    rebuilt = invert_first_difference(d, x.iloc[0], index=x.index)
    np.testing.assert_allclose(rebuilt.to_numpy(), x.to_numpy(), rtol=0, atol=1e-9)


def test_invert_rejects_wrong_index_length():
    with pytest.raises(ValueError):
        invert_first_difference([1.0, 2.0], 0.0, index=pd.RangeIndex(2))


def test_integrate_forecast_excludes_last_level():
    np.testing.assert_allclose(integrate_forecast(10.0, [1.0, -2.0, 0.5]), [11.0, 9.0, 9.5])


def test_split_is_in_order_and_complete():
    s = pd.Series(np.arange(10.0))
    train, test = split_train_test(s, 0.8)
    assert len(train) == 8 and len(test) == 2
    assert train.tolist() + test.tolist() == s.tolist()
    assert train.index.max() < test.index.min()


def test_split_uses_floor():
    assert train_test_split_point(1000, 0.8) == 800
    assert train_test_split_point(11, 0.8) == 8


@pytest.mark.parametrize("fraction", [0.0, 1.0, -0.2, 1.5])
def test_split_rejects_fraction_outside_unit_interval(fraction):
    with pytest.raises(ValueError):
        train_test_split_point(100, fraction)


def test_split_rejects_empty_side():
    with pytest.raises(ValueError):
        train_test_split_point(2, 0.3)


def test_matched_series_split():
    idx = pd.date_range("2021-01-01", periods=20, freq="D")
    m = MatchedSeries(pd.DataFrame({"price": np.arange(20.0) + 1, "avg_temp": np.zeros(20)}, index=idx))
    train, test = m.split(0.75)
    assert len(train) == 15 and len(test) == 5
    assert train.dates[-1] < test.dates[0]
    assert isinstance(train, MatchedSeries) and isinstance(test, MatchedSeries)


def test_matched_series_split_matches_frame_split():
    idx = pd.date_range("2021-01-01", periods=33, freq="D")
    m = MatchedSeries(pd.DataFrame({"price": np.arange(33.0) + 1, "avg_temp": np.ones(33)}, index=idx))
    train, test = m.split(0.8)
    frame_train, frame_test = split_train_test(m.frame, 0.8)
    pd.testing.assert_frame_equal(train.frame, frame_train, check_freq=False)
    pd.testing.assert_frame_equal(test.frame, frame_test, check_freq=False)
