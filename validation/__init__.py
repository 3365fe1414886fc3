"""Data validation for the price/climate report.

This package checks the aligned price/temperature series before modelling:
- Minimum sample size and join retention
- Calendar gaps between matched dates
- Plausible temperature values and unusual price jumps
"""

from .pipeline import (
    ValidationSeverity,
    ValidationIssue,
    ValidationResult,
    DataValidationError,
    MatchedSeriesValidator,
    run_validation_pipeline,
    create_validation_report
)

__all__ = [
    'ValidationSeverity',
    'ValidationIssue',
    'ValidationResult',
    'DataValidationError',
    'MatchedSeriesValidator',
    'run_validation_pipeline',
    'create_validation_report'
]
