# price_forecaster_src/metrics_utils.py

import math
import logging
from typing import Dict, List, Optional, Tuple, Union

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

ArrayLike = Union[List[float], np.ndarray, pd.Series]


def to_1d_array(x: ArrayLike) -> np.ndarray:
    """
    Convert input to 1D numpy array, filtering out non-finite values.

    Parameters
    ----------
    x : Union[List[float], np.ndarray, pd.Series]
        Input data to convert

    Returns
    -------
    np.ndarray
        1D array containing only finite values
    """
    arr = np.asarray(x, dtype=float).ravel()
    return arr[np.isfinite(arr)]


def paired_arrays(*series: ArrayLike) -> Tuple[np.ndarray, ...]:
    """
    Align several inputs position by position and keep the finite positions.

    Inputs are truncated to the shortest length first; a position is dropped
    from every array when any of them is non-finite there.
    """
    arrs = [np.asarray(s, dtype=float).ravel() for s in series]
    n = min(len(a) for a in arrs)
    arrs = [a[:n] for a in arrs]
    mask = np.logical_and.reduce([np.isfinite(a) for a in arrs])
    return tuple(a[mask] for a in arrs)


def mape_epsilon_from_train(y_train: ArrayLike) -> float:
    """
    Calculate epsilon value for stabilized MAPE computation from training data.

    Uses the 10th percentile of absolute training values, with a floor of 1e-8.
    """
    arr = to_1d_array(y_train)
    if arr.size == 0:
        return 1e-8
    return float(max(1e-8, np.percentile(np.abs(arr), 10.0)))


def mape_eps(y_true: ArrayLike, y_hat: ArrayLike, eps: float = 1e-8) -> float:
    """
    Calculate Mean Absolute Percentage Error with epsilon stabilization.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values
    eps : float, default=1e-8
        Minimum denominator

    Returns
    -------
    float
        MAPE as percentage (0-100+), or NaN if no valid data
    """
    yt, yh = paired_arrays(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    denom = np.maximum(np.abs(yt), eps)
    return float(np.mean(np.abs(yh - yt) / denom) * 100.0)


def mae(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Mean Absolute Error.

    Returns
    -------
    float
        Mean absolute error, or NaN if no valid data
    """
    yt, yh = paired_arrays(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.mean(np.abs(yh - yt)))


def rmse(y_true: ArrayLike, y_hat: ArrayLike) -> float:
    """
    Calculate Root Mean Square Error.

    RMSE penalizes large errors more heavily than MAE; it is the criterion
    used to choose between model families on the holdout.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values

    Returns
    -------
    float
        Root mean square error, or NaN if no valid data

    Examples
    --------
    >>> rmse([1.0, 2.0], [1.0, 4.0])
    1.4142135623730951
    """
    yt, yh = paired_arrays(y_true, y_hat)
    if yt.size == 0:
        return float("nan")
    return float(np.sqrt(np.mean((yh - yt) ** 2)))


def theil_u2(y_true: ArrayLike, y_hat: ArrayLike, y_hat_naive: ArrayLike) -> float:
    """
    Calculate Theil's U2 statistic (relative forecast accuracy).

    U2 compares forecast accuracy against a naive forecast. Values < 1 indicate
    the forecast is better than the naive benchmark.
    """
    yt, yh, yn = paired_arrays(y_true, y_hat, y_hat_naive)
    if yt.size == 0:
        return float("nan")

    rmse_f = math.sqrt(float(np.mean((yh - yt) ** 2)))
    rmse_n = math.sqrt(float(np.mean((yn - yt) ** 2)))
    if rmse_n == 0.0:
        return float("nan")
    return float(rmse_f / rmse_n)


def interval_coverage(y_true: ArrayLike, lower: ArrayLike, upper: ArrayLike) -> float:
    """Share of actual values falling inside [lower, upper]."""
    yt, lo, hi = paired_arrays(y_true, lower, upper)
    if yt.size == 0:
        return float("nan")
    return float(np.mean((yt >= lo) & (yt <= hi)))


def compute_metrics(y_true: ArrayLike, y_hat: ArrayLike, y_hat_naive: Optional[ArrayLike] = None,
                    y_train: Optional[ArrayLike] = None) -> Dict[str, float]:
    """
    Compute the forecast-error comparison metrics for one model.

    Parameters
    ----------
    y_true : Union[List[float], np.ndarray, pd.Series]
        True values
    y_hat : Union[List[float], np.ndarray, pd.Series]
        Predicted values
    y_hat_naive : Union[List[float], np.ndarray, pd.Series], optional
        Naive (last value) forecast for Theil's U2
    y_train : Union[List[float], np.ndarray, pd.Series], optional
        Training data for the MAPE epsilon

    Returns
    -------
    Dict[str, float]
        ME, MAE, RMSE, MAPE and TheilU2 (NaN without a naive forecast)
    """
    yt, yh = paired_arrays(y_true, y_hat)
    err = yh - yt
    eps = mape_epsilon_from_train(y_train) if y_train is not None else 1e-8

    return {
        "ME": float(np.mean(err)) if err.size > 0 else float("nan"),
        "MAE": mae(y_true, y_hat),
        "RMSE": rmse(y_true, y_hat),
        "MAPE": mape_eps(y_true, y_hat, eps),
        "TheilU2": theil_u2(y_true, y_hat, y_hat_naive) if y_hat_naive is not None else float("nan"),
    }
