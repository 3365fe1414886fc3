# price_forecaster_src/file_utils.py

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)


def ensure_dir(path: Path) -> None:
    """
    Create directory if it doesn't exist, including all parent directories.

    Parameters
    ----------
    path : Path
        Directory path to create
    """
    Path(path).mkdir(parents=True, exist_ok=True)


def resolve_path(path_str: str, base_dir: Path) -> Path:
    """
    Resolve a path string relative to a base directory if not absolute.

    Examples
    --------
    >>> resolve_path("data/file.csv", Path("/project"))
    PosixPath('/project/data/file.csv')
    >>> resolve_path("/absolute/path.csv", Path("/project"))
    PosixPath('/absolute/path.csv')
    """
    path = Path(path_str)
    return path if path.is_absolute() else (base_dir / path)


def _format_cell(value, float_digits: int) -> str:
    if isinstance(value, (float, np.floating)):
        if np.isnan(value):
            return ""
        return f"{value:.{float_digits}f}"
    if isinstance(value, pd.Timestamp):
        return value.strftime("%Y-%m-%d")
    return str(value)


def md_table_from_df(df: pd.DataFrame, max_rows: Optional[int] = 10,
                     columns: Optional[List[str]] = None, float_digits: int = 4,
                     include_index: bool = False) -> str:
    """
    Convert a DataFrame to markdown table format.

    Parameters
    ----------
    df : pd.DataFrame
        DataFrame to convert
    max_rows : int or None, default=10
        Maximum number of rows to include (None for all)
    columns : Optional[List[str]]
        Specific columns to include (None for all); unknown names are ignored
    float_digits : int, default=4
        Decimal places for floating point cells
    include_index : bool, default=False
        Render the index as the first column

    Returns
    -------
    str
        Markdown table string, empty for a frame without columns
    """
    if columns is not None:
        keep = [c for c in columns if c in df.columns]
        if keep:
            df = df.loc[:, keep]
    df_disp = df if max_rows is None else df.head(max_rows)
    if include_index:
        df_disp = df_disp.reset_index()

    cols = list(df_disp.columns)
    if not cols:
        return ""

    header = "| " + " | ".join(str(c) for c in cols) + " |"
    separator = "| " + " | ".join("---" for _ in cols) + " |"
    rows = []
    for values in df_disp.itertuples(index=False, name=None):
        rows.append("| " + " | ".join(_format_cell(v, float_digits) for v in values) + " |")
    return "\n".join([header, separator] + rows)


def start_report_md(report_path: Path, title: str) -> None:
    """Create (or overwrite) the Markdown report with a title and UTC timestamp."""
    report_path = Path(report_path)
    ensure_dir(report_path.parent)
    ts = datetime.now(timezone.utc).isoformat(timespec="seconds")
    with report_path.open("w", encoding="utf-8") as f:
        f.write(f"# {title}\n\n_generated: {ts}_\n")


def append_report_md(report_path: Path, title: str, body: str) -> None:
    """
    Append a section to the Markdown report.

    Parameters
    ----------
    report_path : Path
        Path to markdown file
    title : str
        Section title (level 2 heading)
    body : str
        Section content
    """
    with Path(report_path).open("a", encoding="utf-8") as f:
        f.write(f"\n## {title}\n\n")
        f.write(body.strip() + "\n")


def save_table_csv(df: pd.DataFrame, csv_path: Path, index: bool = False) -> Path:
    """Write a table to CSV, creating parent directories."""
    csv_path = Path(csv_path)
    ensure_dir(csv_path.parent)
    df.to_csv(csv_path, index=index)
    logger.debug("Wrote %d rows to %s", len(df), csv_path)
    return csv_path
