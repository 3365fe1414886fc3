# price_forecaster_src/__init__.py

"""
Price Forecaster - Futures Price vs. Climate Time-Series Report

This package loads daily futures prices and multi-station climate records,
aligns them on date, runs exploratory time-series diagnostics and compares
ARIMA-family and GARCH-family models before producing a final forecast.

Key Components
--------------
- config_utils: Configuration management and CLI override support
- parsing_utils: Price, date and CLI value parsing
- data_utils: CSV loading and normalization of both datasets
- alignment_utils: National temperature aggregation and the date join
- transform_utils: First differencing and in-order train/test splitting
- diagnostics_utils: ADF, ACF/PACF, variance split, ARCH-LM, cross-correlation
- forecasting_utils: ARIMA/ARIMAX and AR-GARCH/ARX-GARCH fitting and forecasting
- selection_utils: Two-stage model selection (information criteria, holdout RMSE)
- metrics_utils: Forecast evaluation metrics
- plotting_utils: Figures for the report
- file_utils: Markdown report and CSV table output
- main: Main entry point and workflow orchestration

Usage
-----
    # Command-line usage
    python -m price_forecaster_src.main --price-csv data/prices.csv --climate-csv data/climate.csv

    # Programmatic usage
    from price_forecaster_src import run_pipeline, load_price_csv, load_climate_csv
"""

__version__ = "1.0.0"
__author__ = "Price Forecaster Development Team"

# Import key functions for easy access
from .config_utils import initialize_config, get_config_value
from .exceptions import DegenerateSeries, JoinMismatch, MalformedRecord, NonConvergence, PipelineError
from .data_utils import load_price_csv, load_climate_csv
from .alignment_utils import aggregate_daily_temperature, align_price_and_climate
from .diagnostics_utils import run_series_diagnostics
from .forecasting_utils import fit_all_variants, forecast_model
from .selection_utils import select_finalists, select_final_model
from .metrics_utils import compute_metrics
from .main import main, run_pipeline

__all__ = [
    # Core functionality
    "main",
    "run_pipeline",
    "initialize_config",
    "get_config_value",
    "load_price_csv",
    "load_climate_csv",
    "aggregate_daily_temperature",
    "align_price_and_climate",
    "run_series_diagnostics",
    "fit_all_variants",
    "forecast_model",
    "select_finalists",
    "select_final_model",
    "compute_metrics",
    # Errors
    "PipelineError",
    "MalformedRecord",
    "JoinMismatch",
    "NonConvergence",
    "DegenerateSeries",
    # Version info
    "__version__",
    "__author__",
]
