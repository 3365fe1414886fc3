# price_forecaster_src/parsing_utils.py

import logging
import math
from datetime import date, datetime
from typing import Optional, Union

import numpy as np
import pandas as pd

from .exceptions import MalformedRecord

logger = logging.getLogger(__name__)

CANONICAL_DATE_FORMAT = "%Y-%m-%d"


def parse_price_value(raw, thousands_separator: str = ",", dataset: str = "prices",
                      row: Optional[int] = None, column: str = "price") -> float:
    """
    Parse one formatted price string into a positive finite float.

    Thousands separators and surrounding whitespace are removed before
    parsing, so ``"1,234.50"`` becomes ``1234.5``.

    Parameters
    ----------
    raw : str or number
        Raw cell value.
    thousands_separator : str, default=","
        Grouping character to strip.
    dataset, row, column : optional
        Location reported in the error when the value cannot be parsed.

    Returns
    -------
    float
        Parsed price.

    Raises
    ------
    MalformedRecord
        If the value is empty, non-numeric, non-finite or not positive.

    Examples
    --------
    >>> parse_price_value("1,234.50")
    1234.5
    >>> parse_price_value(" 98.1 ")
    98.1
    """
    if raw is None or (isinstance(raw, float) and math.isnan(raw)):
        raise MalformedRecord("Missing price", dataset, row, column, raw)
    text = str(raw).strip()
    if thousands_separator:
        text = text.replace(thousands_separator, "")
    text = "".join(text.split())
    try:
        value = float(text)
    except ValueError:
        raise MalformedRecord("Unparseable price", dataset, row, column, raw) from None
    if not math.isfinite(value):
        raise MalformedRecord("Non-finite price", dataset, row, column, raw)
    if value <= 0:
        raise MalformedRecord("Non-positive price", dataset, row, column, raw)
    return value


def parse_price_column(values: pd.Series, thousands_separator: str = ",",
                       dataset: str = "prices", column: str = "price") -> pd.Series:
    """
    Vectorized counterpart of :func:`parse_price_value`.

    The first offending row aborts the whole column; the error names the
    1-based data row (header excluded).
    """
    text = values.astype(str).str.strip()
    if thousands_separator:
        text = text.str.replace(thousands_separator, "", regex=False)
    text = text.str.replace(r"\s+", "", regex=True)
    parsed = pd.to_numeric(text, errors="coerce").astype(float)
    bad = ~np.isfinite(parsed.to_numpy()) | (parsed.to_numpy() <= 0)
    if bad.any():
        pos = int(np.flatnonzero(bad)[0])
        raw = values.iloc[pos]
        # Reuse the scalar parser for a precise message
        parse_price_value(raw, thousands_separator, dataset, pos + 1, column)
        raise MalformedRecord("Invalid price", dataset, pos + 1, column, raw)
    return parsed


def normalize_dates(values: pd.Series, dayfirst: bool = False, dataset: str = "data",
                    column: str = "date") -> pd.Series:
    """
    Parse heterogeneous date strings into midnight-normalized timestamps.

    Each element is parsed individually (``format="mixed"``), so a single
    column may mix ``2021-03-04``, ``03/04/2021`` and ``Mar 4, 2021``. Time
    components are discarded.

    Parameters
    ----------
    values : pd.Series
        Raw date cells.
    dayfirst : bool, default=False
        Interpret ambiguous ``a/b/yyyy`` dates as day/month.
    dataset, column : str
        Location reported in the error.

    Returns
    -------
    pd.Series
        ``datetime64[ns]`` series aligned with ``values``.

    Raises
    ------
    MalformedRecord
        If any date is empty or unparseable.
    """
    text = values.astype(str).str.strip()
    parsed = pd.to_datetime(text, format="mixed", dayfirst=dayfirst, errors="coerce")
    if parsed.isna().any():
        pos = int(np.flatnonzero(parsed.isna().to_numpy())[0])
        raise MalformedRecord("Unparseable date", dataset, pos + 1, column, values.iloc[pos])
    if getattr(parsed.dt, "tz", None) is not None:
        parsed = parsed.dt.tz_localize(None)
    return parsed.dt.normalize()


def format_canonical_date(value: Union[pd.Timestamp, datetime, date]) -> str:
    """Format a date as ISO ``YYYY-MM-DD``."""
    return pd.Timestamp(value).strftime(CANONICAL_DATE_FORMAT)


def parse_canonical_date(text: str) -> pd.Timestamp:
    """Inverse of :func:`format_canonical_date`."""
    return pd.Timestamp(datetime.strptime(text.strip(), CANONICAL_DATE_FORMAT))


def validate_log_level(log_level: str) -> str:
    """
    Validate and normalize logging level specification.

    Parameters
    ----------
    log_level : str
        Logging level to validate

    Returns
    -------
    str
        Validated logging level

    Raises
    ------
    ValueError
        If the logging level is not supported
    """
    valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
    level_upper = log_level.upper()
    if level_upper not in valid_levels:
        raise ValueError(f"Invalid log level '{log_level}'. Must be one of: {valid_levels}")
    return level_upper


def validate_train_fraction(value) -> float:
    """Parse a CLI train fraction and check it lies strictly between 0 and 1."""
    fraction = float(value)
    if not 0.0 < fraction < 1.0:
        raise ValueError(f"Invalid train fraction {value!r}. Must be strictly between 0 and 1.")
    return fraction
