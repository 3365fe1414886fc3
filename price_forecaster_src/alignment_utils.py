# price_forecaster_src/alignment_utils.py

import logging
from typing import Optional

import pandas as pd

from .config_utils import get_config_value
from .exceptions import JoinMismatch
from .records import MatchedSeries

logger = logging.getLogger(__name__)

GAP_POLICIES = ("drop", "interpolate")


def aggregate_daily_temperature(climate: pd.DataFrame, gap_policy: Optional[str] = None) -> pd.Series:
    """
    National daily average temperature from multi-station observations.

    Parameters
    ----------
    climate : pd.DataFrame
        Normalized climate rows with ``date`` and ``avg_temp`` columns (see
        ``data_utils.normalize_climate_frame``).
    gap_policy : {'drop', 'interpolate'}, optional
        Treatment of dates on which no station reported a temperature.
        ``drop`` (default) removes them; ``interpolate`` fills them by time
        interpolation between the surrounding reported dates (leading and
        trailing gaps are still dropped).

    Returns
    -------
    pd.Series
        ``avg_temp`` per date (mean across stations, ignoring absent values),
        indexed by a strictly increasing DatetimeIndex named ``date``.
    """
    gap_policy = gap_policy or get_config_value("data.climate.temperature_gap_policy", "drop")
    if gap_policy not in GAP_POLICIES:
        raise ValueError(f"Unknown temperature gap policy '{gap_policy}'. Must be one of: {GAP_POLICIES}")

    daily = climate.groupby("date", sort=True)["avg_temp"].mean()
    daily.index = pd.DatetimeIndex(daily.index, name="date")
    daily.name = "avg_temp"

    n_gaps = int(daily.isna().sum())
    if n_gaps:
        if gap_policy == "interpolate":
            daily = daily.interpolate(method="time", limit_area="inside")
            logger.info("Interpolated temperature on %d date(s) with no station report",
                        n_gaps - int(daily.isna().sum()))
        daily = daily.dropna()
        logger.info("Daily temperature: %d date(s) without any station report handled with policy '%s'",
                    n_gaps, gap_policy)
    return daily


def align_price_and_climate(prices: pd.Series, daily_temp: pd.Series,
                            min_retained_fraction: Optional[float] = None) -> MatchedSeries:
    """
    Inner-join daily prices with daily temperature on date.

    Only dates present in both inputs survive; nothing is forward-filled.

    Parameters
    ----------
    prices : pd.Series
        Price series indexed by normalized date.
    daily_temp : pd.Series
        Daily average temperature indexed by normalized date.
    min_retained_fraction : float, optional
        Minimum share of ``min(len(prices), len(daily_temp))`` the join must
        keep. Defaults to ``alignment.min_retained_fraction`` (0.5).

    Returns
    -------
    MatchedSeries
        Ascending matched rows with both ``price`` and ``avg_temp``.

    Raises
    ------
    JoinMismatch
        If the join is empty or keeps fewer rows than the threshold, which
        usually means the date formats of the two sources disagree.
    """
    if min_retained_fraction is None:
        min_retained_fraction = float(get_config_value("alignment.min_retained_fraction", 0.5))

    left = pd.Series(prices, name="price").dropna()
    right = pd.Series(daily_temp, name="avg_temp").dropna()
    joined = pd.concat([left, right], axis=1, join="inner").sort_index()
    joined.index.name = "date"

    expected = min(len(left), len(right))
    retained = len(joined)
    if retained == 0:
        raise JoinMismatch(
            f"No common dates between prices ({len(left)} rows) and temperature ({len(right)} rows)",
            retained=0, expected=expected,
        )
    if retained < min_retained_fraction * expected:
        raise JoinMismatch(
            f"Join kept {retained} of {expected} possible rows, below the minimum fraction "
            f"{min_retained_fraction:.2f}",
            retained=retained, expected=expected,
        )
    logger.info("Aligned %d matched rows (%.1f%% of %d possible), %s to %s", retained,
                100.0 * retained / expected, expected, joined.index[0].date(), joined.index[-1].date())
    return MatchedSeries(joined)
