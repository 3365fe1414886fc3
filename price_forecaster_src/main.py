# price_forecaster_src/main.py

"""
Commodity futures price vs. climate time-series report.

This is the main entry point of the analysis. It runs one synchronous batch:
each stage consumes the full output of the previous one, and the first
failure aborts the run.

Purpose
-------
- Load daily futures prices and multi-station climate observations from CSV
- Aggregate station temperatures to a national daily mean and inner-join
  them with prices on date
- Run exploratory diagnostics (ADF on levels and first differences, ACF/PACF,
  variance split and ARCH-LM, temperature/price cross-correlation)
- Fit ARIMA, ARIMAX, AR-GARCH and ARX-GARCH on the first 80% of the data
- Keep one finalist per family by AIC/BIC, then choose between the two by
  holdout RMSE
- Refit the winner on all data and forecast with 80% / 95% intervals;
  write figures, CSV tables and a Markdown report

Configuration-Driven Workflow
-----------------------------
Model orders, thresholds and output settings live in config/defaults.yaml
and can be overridden with a user YAML file (--config). CLI arguments
override configuration values where applicable.
"""

import argparse
import logging
import sys
import warnings
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

import numpy as np
import pandas as pd

from config import ConfigurationError
from diagnostics import ResidualDiagnostics, ResidualReport
from helpers.temporal import climatology_for_dates, future_index, seasonal_climatology
from validation import DataValidationError, ValidationResult, create_validation_report, run_validation_pipeline

from .alignment_utils import aggregate_daily_temperature, align_price_and_climate
from .config_utils import get_config_value, initialize_config
from .data_utils import load_climate_csv, load_price_csv
from .diagnostics_utils import SeriesDiagnostics, run_series_diagnostics
from .exceptions import PipelineError
from .file_utils import append_report_md, ensure_dir, md_table_from_df, resolve_path, save_table_csv, start_report_md
from .forecasting_utils import collect_forecasts, fit_all_variants, fit_variant, forecast_model, model_residuals
from .parsing_utils import validate_log_level, validate_train_fraction
from .plotting_utils import (
    plot_acf_pacf_panels, plot_cross_correlation, plot_final_forecast, plot_holdout_comparison,
    plot_price_series, plot_temperature_series
)
from .records import COVERAGE_LEVELS, FittedModel, ForecastResult, MatchedSeries
from .selection_utils import SelectionResult, select_final_model, select_finalists

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class AnalysisResult:
    """Everything one run produces, before rendering."""

    n_prices: int
    n_days: int
    matched: MatchedSeries
    train: MatchedSeries
    test: MatchedSeries
    validation: ValidationResult
    diagnostics: SeriesDiagnostics
    selection: SelectionResult
    final_model: FittedModel
    forecast: ForecastResult
    future_exog: Optional[pd.Series]
    residual_diagnostics: ResidualReport


def run_pipeline(prices: pd.Series, climate: pd.DataFrame, horizon: Optional[int] = None,
                 train_fraction: Optional[float] = None, future_exog=None,
                 frequency: Optional[str] = None, figures_dir: Optional[Path] = None) -> AnalysisResult:
    """
    Run every analysis stage on already-loaded data.

    Parameters
    ----------
    prices : pd.Series
        Normalized price series (``data_utils.normalize_price_frame``).
    climate : pd.DataFrame
        Normalized climate rows (``data_utils.normalize_climate_frame``).
    horizon : int, optional
        Final forecast length (default ``forecast.horizon``).
    train_fraction : float, optional
        Training share for model selection (default ``model.train_fraction``).
    future_exog : array-like, optional
        Temperature over the forecast horizon. When omitted, a day-of-year
        climatology of the observed temperature is used.
    frequency : str, optional
        Calendar of the forecast dates (default ``forecast.frequency``).
    figures_dir : Path, optional
        Where the residual diagnostics figure is written.

    Returns
    -------
    AnalysisResult

    Raises
    ------
    PipelineError
        Subclasses name the failing stage; nothing partial is returned.
    DataValidationError
        If the matched series fails an error-level validation check.
    """
    horizon = int(horizon if horizon is not None else get_config_value("forecast.horizon", 365))
    train_fraction = float(train_fraction if train_fraction is not None
                           else get_config_value("model.train_fraction", 0.8))
    frequency = frequency or get_config_value("forecast.frequency", "B")
    alpha = float(get_config_value("diagnostics.significance_level", 0.05))

    daily_temp = aggregate_daily_temperature(climate)
    matched = align_price_and_climate(prices, daily_temp)
    validation = run_validation_pipeline(matched, len(prices), len(daily_temp), raise_on_error=True)

    diagnostics = run_series_diagnostics(matched)
    for note in diagnostics.notes.values():
        logger.info("Diagnostics note: %s", note)

    train, test = matched.split(train_fraction)
    logger.info("Training on %d observations, holding out %d", len(train), len(test))
    candidates = fit_all_variants(train)
    finalists = select_finalists(candidates)
    selection = select_final_model(finalists, train, test, candidates)

    logger.info("Refitting %s on all %d observations", selection.winner.name, len(matched))
    final_model = fit_variant(selection.winner.variant, matched)
    index = future_index(matched.dates[-1], horizon, frequency)

    exog_path = None
    if final_model.uses_exog:
        if future_exog is not None:
            exog_path = pd.Series(np.asarray(future_exog, dtype=float).ravel(), index=index, name="avg_temp")
        else:
            climatology = seasonal_climatology(matched.avg_temp)
            exog_path = climatology_for_dates(climatology, index)
            logger.info("Projected temperature over the horizon from the day-of-year climatology")
    forecast = forecast_model(final_model, horizon,
                              future_exog=None if exog_path is None else exog_path.to_numpy(), index=index)

    residual_report = ResidualDiagnostics(alpha).run_comprehensive_diagnostics(
        model_residuals(final_model), final_model.name, output_dir=figures_dir
    )

    return AnalysisResult(
        n_prices=len(prices),
        n_days=len(daily_temp),
        matched=matched,
        train=train,
        test=test,
        validation=validation,
        diagnostics=diagnostics,
        selection=selection,
        final_model=final_model,
        forecast=forecast,
        future_exog=exog_path,
        residual_diagnostics=residual_report,
    )


def _ci_sample(forecast: ForecastResult, rows: int) -> pd.DataFrame:
    frame = forecast.to_frame()
    if len(frame) <= 2 * rows:
        return frame
    return pd.concat([frame.head(rows), frame.tail(rows)])


def render_report(result: AnalysisResult, figures_dir: Path, report_md: Path,
                  tables_dir: Optional[Path] = None) -> Dict[str, Path]:
    """
    Write figures, CSV tables and the Markdown report for one run.

    Returns
    -------
    dict
        Figure and table paths keyed by name.
    """
    figures_dir = Path(figures_dir)
    report_md = Path(report_md)
    tables_dir = Path(tables_dir) if tables_dir is not None else report_md.parent / "tables"
    ensure_dir(figures_dir)
    ensure_dir(tables_dir)
    sample_rows = int(get_config_value("report.ci_sample_rows", 5))
    sel = result.selection

    paths: Dict[str, Path] = {
        "price": plot_price_series(result.matched, figures_dir / "price_series.png"),
        "temperature": plot_temperature_series(result.matched, figures_dir / "temperature_series.png"),
        "acf_pacf": plot_acf_pacf_panels(result.diagnostics.acf_pacf, figures_dir / "acf_pacf_price_diff.png"),
        "ccf": plot_cross_correlation(result.diagnostics.cross_correlation, figures_dir / "cross_correlation.png",
                                      n_obs=len(result.matched) - 1),
        "holdout": plot_holdout_comparison(result.test, sel.holdout_forecasts, figures_dir / "holdout_comparison.png",
                                           train_tail=result.train.price.iloc[-3 * len(result.test):]),
        "forecast": plot_final_forecast(result.matched.price, result.forecast, figures_dir / "final_forecast.png"),
    }
    paths.update(result.residual_diagnostics.plots)

    diag_table = result.diagnostics.summary_frame()
    ic = sel.ic_table
    errors = sel.error_table
    forecast_frame = result.forecast.to_frame()
    if result.future_exog is not None:
        forecast_frame["avg_temp"] = result.future_exog.to_numpy()
    paths["diagnostics_csv"] = save_table_csv(diag_table, tables_dir / "diagnostics.csv")
    paths["ic_csv"] = save_table_csv(ic, tables_dir / "information_criteria.csv")
    paths["errors_csv"] = save_table_csv(errors, tables_dir / "holdout_errors.csv")
    paths["holdout_csv"] = save_table_csv(collect_forecasts(sel.holdout_forecasts), tables_dir / "holdout_forecasts.csv",
                                          index=True)
    paths["forecast_csv"] = save_table_csv(forecast_frame, tables_dir / "final_forecast.csv", index=True)

    logger.info("Information criteria:\n%s", ic.to_string(index=False))
    logger.info("Holdout forecast errors:\n%s", errors.to_string(index=False))
    logger.info("Forecast intervals (head/tail):\n%s", _ci_sample(result.forecast, sample_rows).to_string())

    m = result.matched
    start_report_md(report_md, "Futures price vs. temperature: time-series report")
    append_report_md(report_md, "Data", "\n".join([
        f"- Price observations: {result.n_prices}",
        f"- Dates with a national temperature: {result.n_days}",
        f"- Matched rows: {len(m)} ({m.dates[0].date()} to {m.dates[-1].date()})",
        f"- Training / holdout split: {len(result.train)} / {len(result.test)}",
    ]))
    append_report_md(report_md, "Validation", create_validation_report(result.validation))

    notes = "\n".join(f"- {n}" for n in result.diagnostics.notes.values())
    append_report_md(report_md, "Diagnostics", md_table_from_df(diag_table, max_rows=None) + ("\n\n" + notes if notes else ""))
    append_report_md(report_md, "Information criteria (stage 1, within family)", md_table_from_df(ic, max_rows=None))
    append_report_md(report_md, "Holdout forecast errors (stage 2)", md_table_from_df(errors, max_rows=None))

    params = pd.DataFrame({"parameter": list(result.final_model.params),
                           "estimate": list(result.final_model.params.values())})
    selected = [f"**Selected model:** {result.final_model.name} (refit on {result.final_model.n_obs} observations)"]
    selected += [f"- {n}" for n in sel.notes]
    append_report_md(report_md, "Selected model", "\n".join(selected) + "\n\n" + md_table_from_df(params, max_rows=None))

    resid = result.residual_diagnostics
    verdict = ("Residual checks passed." if resid.adequate
               else "Residual checks failed: " + "; ".join(resid.issues) + ".")
    verdict += "".join(f" Note: {w}." for w in resid.warnings)
    append_report_md(report_md, f"Residual diagnostics ({resid.model_name}, {resid.n_residuals} residuals)",
                     verdict + "\n\n" + md_table_from_df(resid.to_frame(), max_rows=None))

    levels = " / ".join(f"{lvl}%" for lvl in COVERAGE_LEVELS)
    append_report_md(report_md, f"Forecast ({result.forecast.horizon} steps, {levels} intervals)",
                     md_table_from_df(_ci_sample(result.forecast, sample_rows), max_rows=None, include_index=True))

    figure_lines = []
    for name, path in paths.items():
        if Path(path).suffix == ".png":
            rel = Path(path).resolve()
            try:
                rel = rel.relative_to(report_md.parent.resolve())
            except ValueError:
                pass
            figure_lines.append(f"- {name}: ![{name}]({rel.as_posix()})")
    append_report_md(report_md, "Figures", "\n".join(figure_lines))

    logger.info("Report written to %s", report_md)
    return paths


def run_analysis_workflow(price_csv: Path, climate_csv: Path, figures_dir: Path, report_md: Path,
                          args: Optional[argparse.Namespace] = None) -> AnalysisResult:
    """
    Load both CSVs, run the pipeline and render the report.

    A malformed row in either file aborts the run before any model is
    fitted.
    """
    prices = load_price_csv(price_csv)
    climate = load_climate_csv(climate_csv)

    horizon = get_config_value("forecast.horizon", 365, args, "horizon")
    train_fraction = get_config_value("model.train_fraction", 0.8, args, "train_fraction")
    result = run_pipeline(prices, climate, horizon=horizon, train_fraction=train_fraction,
                          figures_dir=figures_dir)
    render_report(result, figures_dir, report_md)
    logger.info("Analysis workflow completed successfully: selected %s", result.final_model.name)
    return result


def setup_cli_parser() -> argparse.ArgumentParser:
    """
    Set up the command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description="Time-series report on daily futures prices and national average temperature."
    )

    # Data and output arguments
    parser.add_argument(
        "--price-csv", type=str, default="data/prices.csv",
        help="CSV with formatted 'date' and 'price' columns (resolved relative to the project root if not absolute)."
    )
    parser.add_argument(
        "--climate-csv", type=str, default="data/climate.csv",
        help="CSV with 'date', 'station', 'max_temp', 'min_temp', 'avg_temp' and 'precipitation' columns."
    )
    parser.add_argument(
        "--figures-dir", type=str, default="figures",
        help="Directory to write figure files."
    )
    parser.add_argument(
        "--report-md", type=str, default="analysis/report.md",
        help="Markdown report path; CSV tables are written to a 'tables' directory beside it."
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Optional YAML file merged over config/defaults.yaml."
    )

    # Model and forecast controls
    parser.add_argument(
        "--horizon", type=int, default=None,
        help="Final forecast horizon in steps. Uses config default if not specified."
    )
    parser.add_argument(
        "--train-fraction", type=validate_train_fraction, default=None,
        help="Share of observations used for model selection. Uses config default if not specified."
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging verbosity level."
    )
    return parser


def setup_logging(log_level: str) -> None:
    """
    Configure logging with specified level and warning filters.

    Parameters
    ----------
    log_level : str
        Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    """
    level = validate_log_level(log_level)
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    # Configure warnings based on log level
    if level == "DEBUG":
        warnings.resetwarnings()
        warnings.filterwarnings("default")
    else:
        from arch.utility.exceptions import DataScaleWarning
        from statsmodels.tools.sm_exceptions import ConvergenceWarning, ValueWarning
        # Convergence is checked explicitly after every fit
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        warnings.filterwarnings("ignore", category=ValueWarning)
        warnings.filterwarnings("ignore", category=DataScaleWarning)
        warnings.filterwarnings("ignore", category=FutureWarning)
        warnings.filterwarnings("ignore", category=UserWarning, module="statsmodels")


def main(argv=None) -> None:
    """
    Main entry point for the price/climate report.

    Exits with status 1 when any stage fails, after logging the stage and
    the reason.
    """
    parser = setup_cli_parser()
    args = parser.parse_args(argv)

    # Setup logging
    setup_logging(args.log_level)

    # Resolve paths
    base_dir = Path(__file__).resolve().parent.parent  # Go up from price_forecaster_src to project root
    price_csv = resolve_path(args.price_csv, base_dir)
    climate_csv = resolve_path(args.climate_csv, base_dir)
    figures_dir = resolve_path(args.figures_dir, base_dir)
    report_md = resolve_path(args.report_md, base_dir)

    try:
        initialize_config(resolve_path(args.config, base_dir) if args.config else None)
    except ConfigurationError as e:
        logger.error("Run aborted at stage 'config': %s", e)
        sys.exit(1)

    try:
        run_analysis_workflow(price_csv, climate_csv, figures_dir, report_md, args)
    except PipelineError as e:
        logger.error("Run aborted at stage '%s': %s", e.stage, e)
        sys.exit(1)
    except DataValidationError as e:
        logger.error("Run aborted at stage 'validate': %s", e)
        sys.exit(1)
    except FileNotFoundError as e:
        logger.error("Run aborted at stage 'load': %s", e)
        sys.exit(1)


if __name__ == "__main__":
    main()
