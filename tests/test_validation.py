from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from price_forecaster_src.records import MatchedSeries
from validation import (
    DataValidationError, MatchedSeriesValidator, ValidationSeverity, create_validation_report, run_validation_pipeline
)


def _matched(n=300, seed=2, freq="D"):
    rng = np.random.default_rng(seed)
    idx = pd.date_range("2020-01-01", periods=n, freq=freq)
    price = 100 + np.cumsum(rng.normal(size=n))
    temp = 15 + 5 * np.sin(2 * np.pi * np.arange(n) / 365)
    return MatchedSeries(pd.DataFrame({"price": price, "avg_temp": temp}, index=idx))


def test_clean_series_passes():
    result = run_validation_pipeline(_matched(), n_prices=310, n_days=305)
    assert result.is_valid
    assert not result.has_errors
    assert result.metrics["n_matched"] == 300
    assert result.metrics["retention"] == pytest.approx(300 / 305)
    assert result.summary().startswith("Validation PASS")


def test_too_few_observations_is_an_error():
    result = MatchedSeriesValidator().validate(_matched(n=50))
    assert not result.is_valid
    assert [i.component for i in result.get_issues_by_severity(ValidationSeverity.ERROR)] == ["size"]

    with pytest.raises(DataValidationError) as exc:
        run_validation_pipeline(_matched(n=50), raise_on_error=True)
    assert exc.value.validation_result is not None


def test_low_retention_and_calendar_gap_warn():
    m = _matched()
    frame = m.frame.drop(m.frame.index[100:130])
    result = run_validation_pipeline(MatchedSeries(frame), n_prices=400, n_days=400)

    components = {i.component for i in result.get_issues_by_severity(ValidationSeverity.WARNING)}
    assert components == {"retention", "calendar"}
    assert result.metrics["max_gap_days"] == 31
    assert result.is_valid


def test_more_rows_than_inputs_is_critical():
    result = run_validation_pipeline(_matched(), n_prices=200, n_days=250)
    assert result.get_issues_by_severity(ValidationSeverity.CRITICAL)
    assert not result.is_valid


def test_temperature_outside_range_is_a_warning():
    m = _matched()
    frame = m.frame.copy()
    frame.iloc[5, frame.columns.get_loc("avg_temp")] = 99.0
    result = run_validation_pipeline(MatchedSeries(frame), raise_on_error=True)
    assert not result.has_errors
    assert [i.component for i in result.get_issues_by_severity(ValidationSeverity.WARNING)] == ["values"]
    assert result.metrics["temperature_max"] == 99.0


def test_validation_report_markdown(tmp_path: Path):
    result = run_validation_pipeline(_matched(n=50))
    out = tmp_path / "validation.md"
    text = create_validation_report(result, out)
    assert text.startswith("**Status:** FAIL")
    assert "[ERROR] size" in text
    assert out.read_text(encoding="utf-8") == text
