# price_forecaster_src/data_utils.py

import logging
from pathlib import Path
from typing import Optional, Union

import numpy as np
import pandas as pd

from .config_utils import get_config_value
from .exceptions import MalformedRecord
from .parsing_utils import normalize_dates, parse_price_column

logger = logging.getLogger(__name__)

PRICE_DATASET = "prices"
CLIMATE_DATASET = "climate"
CLIMATE_FIELDS = ("max_temp", "min_temp", "avg_temp", "precipitation")


def _read_raw_csv(path: Union[str, Path], dataset: str) -> pd.DataFrame:
    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f"{dataset} CSV not found: {path}")
    logger.info("Loading %s from: %s", dataset, path)
    # Read everything as text so number and date parsing stays under our control
    return pd.read_csv(path, dtype=str, keep_default_na=False, na_values=[""], skipinitialspace=True)


def _require_columns(df: pd.DataFrame, columns, dataset: str) -> None:
    missing = [c for c in columns if c not in df.columns]
    if missing:
        raise MalformedRecord(f"Missing required column(s) {missing}", dataset=dataset)


def normalize_price_frame(df: pd.DataFrame, date_column: Optional[str] = None,
                          price_column: Optional[str] = None,
                          thousands_separator: Optional[str] = None,
                          dayfirst: Optional[bool] = None) -> pd.Series:
    """
    Turn raw price rows into a clean daily price series.

    Parameters
    ----------
    df : pd.DataFrame
        Raw rows with a formatted date column and a formatted price column
        (e.g. ``"1,234.50"``).
    date_column, price_column : str, optional
        Column names; default to ``data.price.*`` configuration values.
    thousands_separator : str, optional
        Grouping character stripped from prices (default ``","``).
    dayfirst : bool, optional
        Date parsing convention for ambiguous day/month strings.

    Returns
    -------
    pd.Series
        Prices named ``price``, indexed by a midnight-normalized, strictly
        increasing DatetimeIndex named ``date``.

    Raises
    ------
    MalformedRecord
        On a missing column, unparseable date, unparseable or non-positive
        price, or a date that appears more than once. One bad row aborts the
        whole load.
    """
    date_column = date_column or get_config_value("data.price.date_column", "date")
    price_column = price_column or get_config_value("data.price.price_column", "price")
    if thousands_separator is None:
        thousands_separator = get_config_value("data.price.thousands_separator", ",")
    if dayfirst is None:
        dayfirst = bool(get_config_value("data.price.dayfirst", False))

    _require_columns(df, [date_column, price_column], PRICE_DATASET)
    df = df.reset_index(drop=True)
    dates = normalize_dates(df[date_column], dayfirst=dayfirst, dataset=PRICE_DATASET, column=date_column)
    prices = parse_price_column(df[price_column], thousands_separator, dataset=PRICE_DATASET, column=price_column)

    dup = dates.duplicated(keep="first")
    if dup.any():
        pos = int(np.flatnonzero(dup.to_numpy())[0])
        raise MalformedRecord("Duplicate price date", PRICE_DATASET, pos + 1, date_column, df[date_column].iloc[pos])

    series = pd.Series(prices.to_numpy(), index=pd.DatetimeIndex(dates.to_numpy(), name="date"), name="price")
    series = series.sort_index()
    logger.info("Loaded %d price observations (%s to %s)", len(series),
                series.index.min().date() if len(series) else None,
                series.index.max().date() if len(series) else None)
    return series


def load_price_csv(path: Union[str, Path], **kwargs) -> pd.Series:
    """
    Load and normalize a price CSV.

    See :func:`normalize_price_frame` for the parsing rules and keyword
    arguments.
    """
    return normalize_price_frame(_read_raw_csv(path, PRICE_DATASET), **kwargs)


def _parse_numeric_cells(values: pd.Series, column: str) -> pd.Series:
    text = values.astype(str).str.strip()
    empty = values.isna().to_numpy() | (text == "").to_numpy()
    parsed = pd.to_numeric(text.where(~empty), errors="coerce").astype(float)
    bad = parsed.isna().to_numpy() & ~empty
    if bad.any():
        pos = int(np.flatnonzero(bad)[0])
        raise MalformedRecord("Non-numeric climate value", CLIMATE_DATASET, pos + 1, column, values.iloc[pos])
    return parsed


def normalize_climate_frame(df: pd.DataFrame, columns: Optional[dict] = None,
                            dayfirst: Optional[bool] = None) -> pd.DataFrame:
    """
    Normalize raw multi-station climate rows.

    Absent precipitation is treated as zero. Absent temperatures are kept as
    NaN at the station level and are only dealt with during daily
    aggregation.

    Parameters
    ----------
    df : pd.DataFrame
        Raw rows with date, station, max/min/avg temperature and
        precipitation columns.
    columns : dict, optional
        Mapping from canonical field name (``date``, ``station``,
        ``max_temp``, ``min_temp``, ``avg_temp``, ``precipitation``) to the
        CSV column name. Defaults to the ``data.climate.*_column`` settings.
    dayfirst : bool, optional
        Date parsing convention.

    Returns
    -------
    pd.DataFrame
        Columns ``[date, station, max_temp, min_temp, avg_temp,
        precipitation]`` sorted by date then station.

    Raises
    ------
    MalformedRecord
        On a missing column, unparseable date or non-numeric value.
    """
    canonical = ("date", "station") + CLIMATE_FIELDS
    mapping = {name: get_config_value(f"data.climate.{name}_column", name) for name in canonical}
    if columns:
        mapping.update(columns)
    if dayfirst is None:
        dayfirst = bool(get_config_value("data.climate.dayfirst", False))

    _require_columns(df, [mapping[name] for name in canonical], CLIMATE_DATASET)
    df = df.reset_index(drop=True)

    out = pd.DataFrame({
        "date": normalize_dates(df[mapping["date"]], dayfirst=dayfirst, dataset=CLIMATE_DATASET,
                                column=mapping["date"]),
        "station": df[mapping["station"]].astype(str).str.strip(),
    })
    for name in CLIMATE_FIELDS:
        out[name] = _parse_numeric_cells(df[mapping[name]], mapping[name])

    n_precip_gaps = int(out["precipitation"].isna().sum())
    out["precipitation"] = out["precipitation"].fillna(0.0)
    n_temp_gaps = int(out["avg_temp"].isna().sum())
    if n_precip_gaps or n_temp_gaps:
        logger.info("Climate gaps: %d precipitation filled with 0, %d avg_temp left absent",
                    n_precip_gaps, n_temp_gaps)

    out = out.sort_values(["date", "station"], kind="mergesort").reset_index(drop=True)
    logger.info("Loaded %d climate rows from %d stations over %d dates", len(out),
                out["station"].nunique(), out["date"].nunique())
    return out


def load_climate_csv(path: Union[str, Path], **kwargs) -> pd.DataFrame:
    """Load and normalize a climate CSV (see :func:`normalize_climate_frame`)."""
    return normalize_climate_frame(_read_raw_csv(path, CLIMATE_DATASET), **kwargs)
