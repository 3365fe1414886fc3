# price_forecaster_src/transform_utils.py

import logging
import math
from typing import Tuple

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def first_difference(series: pd.Series) -> pd.Series:
    """
    Compute successive differences d_t = x_t - x_{t-1}.

    The first observation has no predecessor and is dropped, so the result is
    one element shorter than the input and indexed by the later date of each
    pair.

    Parameters
    ----------
    series : pd.Series
        Input series in chronological order.

    Returns
    -------
    pd.Series
        Differenced series named ``f"{series.name}_diff"`` (or ``"diff"``).

    Examples
    --------
    >>> first_difference(pd.Series([1.0, 3.0, 6.0])).tolist()
    [2.0, 3.0]
    """
    s = pd.Series(series, dtype=float)
    diffs = s.diff().iloc[1:]
    diffs.name = f"{s.name}_diff" if s.name is not None else "diff"
    return diffs


def invert_first_difference(diffs, first_value: float, index=None) -> pd.Series:
    """
    Rebuild a level series from its first differences.

    ``invert_first_difference(first_difference(x), x.iloc[0])`` reproduces
    ``x`` (up to floating point accumulation).

    Parameters
    ----------
    diffs : array-like or pd.Series
        Successive differences.
    first_value : float
        Level of the observation preceding the first difference.
    index : pd.Index, optional
        Index for the rebuilt series; must have ``len(diffs) + 1`` entries.
        Defaults to a RangeIndex.

    Returns
    -------
    pd.Series
        Level series of length ``len(diffs) + 1`` starting at ``first_value``.
    """
    d = np.asarray(diffs, dtype=float).ravel()
    levels = np.concatenate(([float(first_value)], float(first_value) + np.cumsum(d)))
    if index is not None and len(index) != len(levels):
        raise ValueError(f"Index length {len(index)} does not match rebuilt length {len(levels)}")
    return pd.Series(levels, index=index)


def integrate_forecast(last_level: float, diffs) -> np.ndarray:
    """Accumulate forecast differences onto the last observed level (excluding it)."""
    return float(last_level) + np.cumsum(np.asarray(diffs, dtype=float).ravel())


def train_test_split_point(n_obs: int, train_fraction: float) -> int:
    """
    Number of leading observations that form the training prefix.

    Raises
    ------
    ValueError
        If the fraction is outside (0, 1) or either side would be empty.
    """
    if not 0.0 < float(train_fraction) < 1.0:
        raise ValueError(f"train_fraction must be in (0, 1), got {train_fraction}")
    cut = int(math.floor(n_obs * float(train_fraction)))
    if cut < 1 or cut >= n_obs:
        raise ValueError(f"Cannot split {n_obs} observations with train_fraction={train_fraction}")
    return cut


def split_train_test(data, train_fraction: float = 0.8) -> Tuple:
    """
    Split a Series or DataFrame into an in-order training prefix and test suffix.

    The split is positional and never shuffles: the training set is the first
    ``floor(n * train_fraction)`` rows.

    Parameters
    ----------
    data : pd.Series or pd.DataFrame
        Chronologically ordered data.
    train_fraction : float, default=0.8
        Fraction of observations kept for training.

    Returns
    -------
    Tuple
        ``(train, test)`` slices of the same type as ``data``.
    """
    cut = train_test_split_point(len(data), train_fraction)
    logger.debug("Split %d observations into %d train / %d test", len(data), cut, len(data) - cut)
    return data.iloc[:cut], data.iloc[cut:]
