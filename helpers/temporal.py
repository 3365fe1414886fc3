# -*- coding: utf-8 -*-
"""
Calendar utilities for daily series.

Functions
---------
- future_index(last_date, horizon, freq): the ``horizon`` calendar steps that
  follow ``last_date``.
- seasonal_climatology(series): day-of-year mean of a daily series, used to
  project temperature over a forecast horizon.
- climatology_for_dates(climatology, dates): look up a climatology on
  arbitrary dates.
"""

from __future__ import annotations

from typing import Optional

import numpy as np
import pandas as pd
from pandas.tseries.frequencies import to_offset


def _ensure_datetime_index(s: pd.Series) -> pd.Series:
    """
    Ensure a DatetimeIndex for the input series.

    - If PeriodIndex, convert to Timestamp index at period start.
    - Leaves DatetimeIndex unchanged.
    """
    if isinstance(s.index, pd.PeriodIndex):
        s = s.copy()
        s.index = s.index.to_timestamp()
    elif not isinstance(s.index, pd.DatetimeIndex):
        raise TypeError("Expected a Series with DatetimeIndex or PeriodIndex.")
    return s


def future_index(last_date: pd.Timestamp, horizon: int, freq: str = "B") -> pd.DatetimeIndex:
    """
    Dates of the ``horizon`` steps following ``last_date``.

    Parameters
    ----------
    last_date : pd.Timestamp
        Final observed date (excluded from the result).
    horizon : int
        Number of future steps.
    freq : str, default="B"
        Pandas offset alias; business days match exchange trading calendars.

    Returns
    -------
    pd.DatetimeIndex
        Strictly increasing index of length ``horizon`` named ``date``.
    """
    if horizon <= 0:
        raise ValueError(f"horizon must be positive, got {horizon}")
    offset = to_offset(freq)
    start = pd.Timestamp(last_date).normalize() + offset
    return pd.date_range(start=start, periods=horizon, freq=offset, name="date")


def seasonal_climatology(series: pd.Series, window: int = 15, name: Optional[str] = None) -> pd.Series:
    """
    Day-of-year mean of a daily series with circular smoothing.

    Parameters
    ----------
    series : pd.Series
        Daily observations with DatetimeIndex (or PeriodIndex).
    window : int, default=15
        Width, in days, of the centred circular rolling mean applied across
        the 366 day-of-year slots. Days never observed are filled from their
        neighbours by the same smoothing.
    name : Optional[str]
        Name of the returned series. Defaults to series.name.

    Returns
    -------
    pd.Series
        Values indexed by day of year 1..366.

    Notes
    -----
    - Uses only the observations passed in; callers pass the in-sample
      history so the projection never looks ahead.
    """
    if not isinstance(series, pd.Series):
        raise TypeError("series must be a pandas Series")
    s = _ensure_datetime_index(series.dropna())
    if s.empty:
        raise ValueError("Cannot build a climatology from an empty series")

    by_doy = s.groupby(s.index.dayofyear).mean().reindex(range(1, 367))
    if window > 1:
        # Wrap around the year end so late December borrows from early January
        pad = window // 2
        values = by_doy.to_numpy()
        wrapped = pd.Series(np.concatenate([values[-pad:], values, values[:pad]]))
        smoothed = wrapped.rolling(window, center=True, min_periods=1).mean().to_numpy()[pad:pad + 366]
        by_doy = pd.Series(smoothed, index=by_doy.index)
    if by_doy.isna().any():
        by_doy = by_doy.fillna(float(s.mean()))
    by_doy.index.name = "dayofyear"
    by_doy.name = name if name is not None else series.name
    return by_doy


def climatology_for_dates(climatology: pd.Series, dates: pd.DatetimeIndex) -> pd.Series:
    """Look up day-of-year climatology values for ``dates``."""
    dates = pd.DatetimeIndex(dates)
    values = climatology.reindex(dates.dayofyear).to_numpy()
    return pd.Series(values, index=dates, name=climatology.name)
