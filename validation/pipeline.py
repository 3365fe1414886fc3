"""Validation pipeline for the matched price/temperature series.

This module runs quality checks on the aligned data before any model is
fitted and reports them as structured issues.

Features:
- Structured validation result reporting with severities
- Minimum sample size, join retention and calendar-gap checks
- Plausible temperature range and price-jump checks
- Integration with configuration system
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd

from config import get_config

logger = logging.getLogger(__name__)


class ValidationSeverity(Enum):
    """Validation issue severity levels."""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


@dataclass
class ValidationIssue:
    """Individual validation issue."""
    severity: ValidationSeverity
    message: str
    component: str
    details: Optional[Dict[str, Any]] = None


@dataclass
class ValidationResult:
    """Complete validation result with all issues and metrics."""
    is_valid: bool
    issues: List[ValidationIssue]
    metrics: Dict[str, Any]

    @property
    def has_errors(self) -> bool:
        """Check if result has any errors or critical issues."""
        return any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                   for issue in self.issues)

    def get_issues_by_severity(self, severity: ValidationSeverity) -> List[ValidationIssue]:
        """Get all issues of a specific severity."""
        return [issue for issue in self.issues if issue.severity == severity]

    def summary(self) -> str:
        """Get a summary string of the validation result."""
        total_issues = len(self.issues)
        errors = len(self.get_issues_by_severity(ValidationSeverity.ERROR))
        criticals = len(self.get_issues_by_severity(ValidationSeverity.CRITICAL))
        warnings = len(self.get_issues_by_severity(ValidationSeverity.WARNING))

        status = "PASS" if self.is_valid and not self.has_errors else "FAIL"
        return f"Validation {status}: {total_issues} issues ({criticals} critical, {errors} error, {warnings} warning)"


class DataValidationError(Exception):
    """Exception raised for critical data validation failures."""

    def __init__(self, message: str, validation_result: Optional[ValidationResult] = None):
        super().__init__(message)
        self.validation_result = validation_result


def _as_frame(matched) -> pd.DataFrame:
    frame = getattr(matched, "frame", matched)
    if not isinstance(frame, pd.DataFrame):
        raise TypeError("Expected a MatchedSeries or a DataFrame with 'price' and 'avg_temp' columns")
    return frame


class MatchedSeriesValidator:
    """Quality checks on the aligned price/temperature series."""

    def __init__(self, config_manager=None):
        """Initialize validator; thresholds come from the ``validation.*`` settings."""
        self.config_manager = config_manager or get_config()
        self.issues: List[ValidationIssue] = []
        self.metrics: Dict[str, Any] = {}

    def _setting(self, key: str, default):
        return self.config_manager.get(key, default)

    def validate(self, matched, n_prices: Optional[int] = None, n_days: Optional[int] = None) -> ValidationResult:
        """Run every check on the matched series.

        Parameters
        ----------
        matched : MatchedSeries or pd.DataFrame
            Aligned data with ``price`` and ``avg_temp`` columns
        n_prices, n_days : int, optional
            Row counts of the price series and daily temperature series before
            the join, used for the retention check

        Returns
        -------
        ValidationResult
        """
        frame = _as_frame(matched)
        logger.info("Validating matched series with %d rows", len(frame))
        self.issues = []
        self.metrics = {'n_matched': len(frame)}

        self._validate_size(frame)
        self._validate_retention(frame, n_prices, n_days)
        self._validate_calendar(frame)
        self._validate_values(frame)

        is_valid = not any(issue.severity in [ValidationSeverity.ERROR, ValidationSeverity.CRITICAL]
                           for issue in self.issues)
        result = ValidationResult(is_valid=is_valid, issues=list(self.issues), metrics=dict(self.metrics))
        logger.info("Validation completed: %s", result.summary())
        return result

    def _validate_size(self, frame: pd.DataFrame) -> None:
        min_obs = int(self._setting('validation.min_observations', 100))
        if len(frame) < min_obs:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.ERROR,
                message=f"Matched series has only {len(frame)} observations (minimum: {min_obs})",
                component="size",
                details={'observations': len(frame), 'minimum': min_obs}
            ))

    def _validate_retention(self, frame: pd.DataFrame, n_prices: Optional[int], n_days: Optional[int]) -> None:
        if not n_prices or not n_days:
            return
        expected = min(n_prices, n_days)
        ratio = len(frame) / expected
        self.metrics.update({'n_prices': n_prices, 'n_days': n_days, 'retention': ratio})
        if len(frame) > expected:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.CRITICAL,
                message=f"Matched series has {len(frame)} rows, more than either input ({expected})",
                component="retention"
            ))
        elif ratio < 0.8:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                message=f"Join retained {ratio:.1%} of the possible rows",
                component="retention",
                details={'retention': ratio}
            ))

    def _validate_calendar(self, frame: pd.DataFrame) -> None:
        if len(frame) < 2:
            return
        gaps = np.diff(frame.index.values).astype("timedelta64[D]").astype(int)
        max_gap = int(gaps.max())
        limit = int(self._setting('validation.max_calendar_gap_days', 10))
        self.metrics.update({
            'start_date': frame.index[0].date().isoformat(),
            'end_date': frame.index[-1].date().isoformat(),
            'max_gap_days': max_gap,
        })
        if max_gap > limit:
            where = frame.index[int(np.argmax(gaps)) + 1]
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                message=f"Calendar gap of {max_gap} days ending {where.date()} (limit: {limit})",
                component="calendar",
                details={'max_gap_days': max_gap, 'limit': limit}
            ))

    def _validate_values(self, frame: pd.DataFrame) -> None:
        lo, hi = self._setting('validation.temperature_range', [-60.0, 60.0])
        temp = frame['avg_temp']
        outside = int(((temp < lo) | (temp > hi)).sum())
        self.metrics['temperature_min'] = float(temp.min())
        self.metrics['temperature_max'] = float(temp.max())
        if outside:
            self.issues.append(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                message=f"{outside} temperature value(s) outside the expected range [{lo}, {hi}]; check the units",
                component="values",
                details={'count': outside}
            ))

        # Outlier detection on daily price changes (simple IQR method)
        changes = frame['price'].diff().dropna()
        if len(changes) > 0:
            q1, q3 = changes.quantile(0.25), changes.quantile(0.75)
            fence = 3.0 * (q3 - q1)
            jumps = int(((changes < q1 - fence) | (changes > q3 + fence)).sum())
            self.metrics['price_jump_count'] = jumps
            if jumps:
                self.issues.append(ValidationIssue(
                    severity=ValidationSeverity.INFO,
                    message=f"{jumps} unusually large daily price change(s)",
                    component="values",
                    details={'count': jumps}
                ))


def run_validation_pipeline(matched, n_prices: Optional[int] = None, n_days: Optional[int] = None,
                            config_manager=None, raise_on_error: bool = False) -> ValidationResult:
    """Run the matched-series validation suite.

    Parameters
    ----------
    matched : MatchedSeries or pd.DataFrame
        Aligned data
    n_prices, n_days : int, optional
        Input sizes before the join
    config_manager : ConfigurationManager, optional
        Configuration manager for validation settings
    raise_on_error : bool, default False
        Whether to raise exception on validation errors

    Returns
    -------
    ValidationResult

    Raises
    ------
    DataValidationError
        If raise_on_error=True and validation fails
    """
    validator = MatchedSeriesValidator(config_manager)
    result = validator.validate(matched, n_prices, n_days)

    for issue in result.issues:
        if issue.severity == ValidationSeverity.CRITICAL:
            logger.critical("CRITICAL [%s]: %s", issue.component, issue.message)
        elif issue.severity == ValidationSeverity.ERROR:
            logger.error("ERROR [%s]: %s", issue.component, issue.message)
        elif issue.severity == ValidationSeverity.WARNING:
            logger.warning("WARNING [%s]: %s", issue.component, issue.message)
        else:
            logger.info("INFO [%s]: %s", issue.component, issue.message)

    if raise_on_error and result.has_errors:
        raise DataValidationError(f"Data validation failed: {result.summary()}", result)

    return result


def create_validation_report(result: ValidationResult, output_path: Optional[Path] = None) -> str:
    """Render a validation result as Markdown, optionally saving it.

    Parameters
    ----------
    result : ValidationResult
        Validation result to report on
    output_path : Path, optional
        Path to save the report to

    Returns
    -------
    str
        Report content as string
    """
    lines = [f"**Status:** {'PASS' if result.is_valid and not result.has_errors else 'FAIL'} "
             f"({len(result.issues)} issues)", ""]

    if result.metrics:
        lines.append("| metric | value |")
        lines.append("| --- | --- |")
        for key, value in result.metrics.items():
            shown = f"{value:.4f}" if isinstance(value, float) else str(value)
            lines.append(f"| {key} | {shown} |")
        lines.append("")

    for issue in result.issues:
        lines.append(f"- [{issue.severity.value.upper()}] {issue.component}: {issue.message}")

    report_content = "\n".join(lines)

    if output_path:
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(report_content, encoding="utf-8")
        logger.info("Validation report saved to: %s", output_path)

    return report_content
