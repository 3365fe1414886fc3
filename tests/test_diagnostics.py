from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from diagnostics import HeteroskedasticityTester, ResidualDiagnostics
from price_forecaster_src.diagnostics_utils import (
    check_stationarity, compute_acf_pacf, cross_correlation, peak_lag, run_series_diagnostics
)
from price_forecaster_src.exceptions import DegenerateSeries
from price_forecaster_src.records import MatchedSeries
from price_forecaster_src.transform_utils import first_difference


def _random_walk(n=600, seed=42, drift=0.5):
    rng = np.random.default_rng(seed)
    idx = pd.date_range("2018-01-01", periods=n, freq="D")
    return pd.Series(200 + np.cumsum(drift + rng.normal(size=n)), index=idx, name="price")


def test_adf_random_walk_vs_difference():
    walk = _random_walk()
    level = check_stationarity(walk, alpha=0.05)
    diff = check_stationarity(first_difference(walk), alpha=0.05)

    assert not level.is_stationary
    assert diff.is_stationary
    assert diff.p_value < 0.01
    assert set(level.critical_values) == {"1%", "5%", "10%"}
    assert "non-stationary" in level.interpretation


def test_adf_rejects_degenerate_input():
    idx = pd.date_range("2020-01-01", periods=40, freq="D")
    with pytest.raises(DegenerateSeries):
        check_stationarity(pd.Series(5.0, index=idx))
    with pytest.raises(DegenerateSeries):
        check_stationarity(pd.Series([1.0, 2.0, 3.0]))
    with pytest.raises(DegenerateSeries):
        check_stationarity(pd.Series([], dtype=float))


def test_acf_pacf_lags_capped_by_sample_size():
    rng = np.random.default_rng(0)
    out = compute_acf_pacf(pd.Series(rng.normal(size=40)), max_lag=50)
    assert len(out["lags"]) == len(out["acf"]) == len(out["pacf"]) == 20
    assert out["acf"][0] == pytest.approx(1.0)
    assert out["acf_confint"].shape == (20, 2)
    assert out["bound"] == pytest.approx(1.96 / np.sqrt(40))


def test_cross_correlation_peaks_at_shift():
    rng = np.random.default_rng(7)
    x = pd.Series(rng.normal(size=400))
    y = x.shift(3) + rng.normal(scale=0.1, size=400)

    ccf = cross_correlation(x, y, max_lag=10)
    assert list(ccf.index) == list(range(-10, 11))
    assert peak_lag(ccf) == 3
    assert ccf.loc[3] > 0.9
    assert abs(ccf.loc[0]) < 0.2


def test_cross_correlation_of_constant_series_is_degenerate():
    with pytest.raises(DegenerateSeries):
        cross_correlation(pd.Series(np.ones(50)), pd.Series(np.arange(50.0)), max_lag=5)


def test_peak_lag_tie_prefers_smaller_absolute_lag():
    ccf = pd.Series([0.5, 0.1, -0.5], index=pd.Index([-4, 0, 2], name="lag"))
    assert peak_lag(ccf) == 2


def test_variance_split_flags_volatility_shift():
    rng = np.random.default_rng(1)
    calm = rng.normal(scale=1.0, size=500)
    wild = rng.normal(scale=3.0, size=500)
    tester = HeteroskedasticityTester(ratio_threshold=2.0)

    flagged = tester.variance_split(pd.Series(np.concatenate([calm, wild])))
    assert flagged.flagged
    assert flagged.ratio > 5
    assert flagged.f_p_value < 0.001
    assert flagged.n_first == flagged.n_second == 500

    steady = tester.variance_split(pd.Series(rng.normal(size=1000)))
    assert not steady.flagged
    assert steady.ratio < 1.5


def test_variance_split_edge_cases():
    tester = HeteroskedasticityTester(ratio_threshold=2.0)
    with pytest.raises(ValueError):
        tester.variance_split(pd.Series([1.0, 2.0, 3.0]))
    with pytest.raises(ValueError):
        tester.variance_split(pd.Series(np.ones(10)))
    half_constant = tester.variance_split(pd.Series([1.0] * 5 + [1.0, 2.0, 3.0, 4.0, 5.0]))
    assert half_constant.ratio == float("inf")
    assert half_constant.flagged


def test_arch_lm_detects_clustering():
    rng = np.random.default_rng(5)
    n = 1500
    eps = np.zeros(n)
    for t in range(1, n):
        eps[t] = np.sqrt(0.2 + 0.7 * eps[t - 1] ** 2) * rng.standard_normal()
    tester = HeteroskedasticityTester()
    assert tester.test_arch_lm(pd.Series(eps), lags=5).is_heteroskedastic
    assert not tester.test_arch_lm(pd.Series(rng.normal(size=n)), lags=5).p_value < 0.001


def test_run_series_diagnostics_on_matched_series():
    rng = np.random.default_rng(9)
    n = 400
    idx = pd.date_range("2020-01-01", periods=n, freq="D")
    temp = 15 + 5 * np.sin(2 * np.pi * np.arange(n) / 365) + rng.normal(size=n)
    price = 300 + np.cumsum(0.3 + rng.normal(size=n))
    matched = MatchedSeries(pd.DataFrame({"price": price, "avg_temp": temp}, index=idx))

    diag = run_series_diagnostics(matched, max_lag=20, ccf_max_lag=10)
    assert not diag.price_stationarity.is_stationary
    assert diag.diff_stationarity.is_stationary
    assert diag.diff_stationarity.series_name == "price_diff"
    assert len(diag.acf_pacf["lags"]) == 21
    assert list(diag.cross_correlation.index) == list(range(-10, 11))
    assert -10 <= diag.peak_lag <= 10

    table = diag.summary_frame()
    assert list(table.columns) == ["check", "statistic", "p_value", "verdict"]
    assert len(table) == 5


def test_run_series_diagnostics_constant_price():
    idx = pd.date_range("2020-01-01", periods=60, freq="D")
    matched = MatchedSeries(pd.DataFrame({"price": np.full(60, 10.0), "avg_temp": np.arange(60.0)}, index=idx))
    with pytest.raises(DegenerateSeries):
        run_series_diagnostics(matched)


def test_residual_diagnostics_report(tmp_path: Path):
    rng = np.random.default_rng(11)
    resid = pd.Series(rng.normal(size=300))
    report = ResidualDiagnostics(0.05).run_comprehensive_diagnostics(resid, "ARIMA(1,1,0)", output_dir=tmp_path)

    assert set(report.tests) == {"ljung_box", "jarque_bera", "arch_lm"}
    assert report.n_residuals == 300
    assert report.adequate
    assert report.tests["ljung_box"].lags == 20
    plot = report.plots["residuals"]
    assert plot == tmp_path / "residuals_arima_1_1_0.png"
    assert plot.exists()
    assert list(report.to_frame()["test"]) == ["Ljung-Box", "Jarque-Bera", "ARCH-LM"]


def test_residual_diagnostics_flags_autocorrelation():
    rng = np.random.default_rng(12)
    e = rng.normal(size=500)
    ar = np.zeros(500)
    for t in range(1, 500):
        ar[t] = 0.8 * ar[t - 1] + e[t]
    report = ResidualDiagnostics(0.05).run_comprehensive_diagnostics(ar, "bad model")
    assert not report.adequate
    assert report.tests["ljung_box"].is_significant
    assert report.plots == {}
