import numpy as np
import pandas as pd
import pytest

from helpers.temporal import climatology_for_dates, future_index, seasonal_climatology


def test_future_index_business_days():
    idx = future_index(pd.Timestamp("2021-01-08"), 3, "B")  # Friday
    assert list(idx) == list(pd.to_datetime(["2021-01-11", "2021-01-12", "2021-01-13"]))
    assert idx.name == "date"


def test_future_index_calendar_days_and_time_of_day():
    idx = future_index(pd.Timestamp("2021-12-30 15:00"), 3, "D")
    assert list(idx) == list(pd.to_datetime(["2021-12-31", "2022-01-01", "2022-01-02"]))


def test_future_index_rejects_empty_horizon():
    with pytest.raises(ValueError):
        future_index(pd.Timestamp("2021-01-08"), 0)


def test_seasonal_climatology_tracks_annual_cycle():
    idx = pd.date_range("2015-01-01", "2019-12-31", freq="D")
    temp = pd.Series(15 + 10 * np.sin(2 * np.pi * (idx.dayofyear - 80) / 365.25), index=idx, name="avg_temp")
    clim = seasonal_climatology(temp, window=7)

    assert list(clim.index) == list(range(1, 367))
    assert clim.name == "avg_temp"
    assert not clim.isna().any()
    # peak near day 171, trough near day 354
    assert clim.loc[171] == pytest.approx(25.0, abs=0.5)
    assert clim.loc[354] == pytest.approx(5.0, abs=0.5)


def test_climatology_fills_unobserved_days():
    idx = pd.date_range("2020-01-01", periods=60, freq="D")
    clim = seasonal_climatology(pd.Series(np.full(60, 3.0), index=idx), window=15)
    assert not clim.isna().any()
    assert clim.loc[200] == pytest.approx(3.0)


def test_climatology_for_dates():
    clim = pd.Series(np.arange(1.0, 367.0), index=pd.RangeIndex(1, 367), name="avg_temp")
    dates = pd.to_datetime(["2021-01-01", "2021-02-01", "2020-12-31"])
    out = climatology_for_dates(clim, dates)
    assert out.tolist() == [1.0, 32.0, 366.0]
    assert list(out.index) == list(dates)


def test_climatology_requires_datetime_index():
    with pytest.raises(TypeError):
        seasonal_climatology(pd.Series([1.0, 2.0]))
