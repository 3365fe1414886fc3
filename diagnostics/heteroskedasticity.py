"""Heteroskedasticity testing for daily price changes.

This module checks whether the variance of a (differenced) price series is
stable over time, which decides whether a conditional-volatility model is
worth fitting alongside the ARIMA family.

Features:
- Variance-split heuristic: ratio of the variances of the two halves of the
  series, with a two-sided F-test p-value reported alongside
- ARCH-LM test (Engle) as the formal counterpart
- Configuration-driven thresholds
"""

import logging
from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy import stats
from statsmodels.stats.diagnostic import het_arch

from config import get_config

logger = logging.getLogger(__name__)


@dataclass
class HeteroskedasticityResult:
    """Results from heteroskedasticity testing."""

    test_name: str
    test_statistic: float
    p_value: float
    significance_level: float = 0.05

    # Additional test information
    degrees_of_freedom: Optional[int] = None
    test_description: Optional[str] = None

    @property
    def is_heteroskedastic(self) -> bool:
        """Check if heteroskedasticity is detected."""
        return self.p_value < self.significance_level

    @property
    def interpretation(self) -> str:
        """Get interpretation of test result."""
        if self.is_heteroskedastic:
            return f"Heteroskedasticity detected (p={self.p_value:.4f} < {self.significance_level})"
        else:
            return f"No heteroskedasticity detected (p={self.p_value:.4f} >= {self.significance_level})"


@dataclass
class VarianceSplitResult:
    """Variance comparison of the first and second half of a series.

    ``flagged`` follows the ratio heuristic (max/min variance above the
    threshold); ``f_p_value`` is the two-sided F-test p-value for equal
    variances and is reported for information only.
    """

    first_half_variance: float
    second_half_variance: float
    ratio: float
    ratio_threshold: float
    f_statistic: float
    f_p_value: float
    n_first: int
    n_second: int

    @property
    def flagged(self) -> bool:
        return self.ratio > self.ratio_threshold

    @property
    def interpretation(self) -> str:
        verdict = "unstable variance" if self.flagged else "stable variance"
        return (f"Variance ratio {self.ratio:.3f} vs threshold {self.ratio_threshold:.2f} -> {verdict} "
                f"(F-test p={self.f_p_value:.4f})")


class HeteroskedasticityTester:
    """Heteroskedasticity tests for a single time series."""

    def __init__(self, significance_level: float = 0.05, ratio_threshold: Optional[float] = None):
        """Initialize the heteroskedasticity tester.

        Parameters
        ----------
        significance_level : float, default 0.05
            Significance level for hypothesis tests
        ratio_threshold : float, optional
            Variance-ratio cut-off for the split heuristic. Defaults to
            ``diagnostics.variance_ratio_threshold`` (2.0).
        """
        self.significance_level = significance_level
        if ratio_threshold is None:
            ratio_threshold = float(get_config().get("diagnostics.variance_ratio_threshold", 2.0))
        self.ratio_threshold = ratio_threshold

    def variance_split(self, series: pd.Series, ratio_threshold: Optional[float] = None) -> VarianceSplitResult:
        """Compare the sample variances of the two halves of a series.

        The split is at the midpoint index; with an odd length the extra
        observation goes to the second half.

        Parameters
        ----------
        series : pd.Series
            Usually the first-differenced price.
        ratio_threshold : float, optional
            Overrides the tester's threshold for this call.

        Returns
        -------
        VarianceSplitResult

        Raises
        ------
        ValueError
            If either half has fewer than two observations or the whole
            series is constant.
        """
        threshold = self.ratio_threshold if ratio_threshold is None else ratio_threshold
        values = pd.Series(series, dtype=float).dropna().to_numpy()
        mid = len(values) // 2
        first, second = values[:mid], values[mid:]
        if len(first) < 2 or len(second) < 2:
            raise ValueError(f"Variance split needs at least 4 observations, got {len(values)}")

        v1 = float(np.var(first, ddof=1))
        v2 = float(np.var(second, ddof=1))
        lo, hi = min(v1, v2), max(v1, v2)
        if hi == 0.0:
            raise ValueError("Variance split is undefined for a constant series")

        if lo == 0.0:
            ratio, f_stat, f_p = float("inf"), float("inf"), 0.0
        else:
            ratio = hi / lo
            f_stat = v1 / v2
            cdf = stats.f.cdf(f_stat, len(first) - 1, len(second) - 1)
            f_p = float(min(1.0, 2.0 * min(cdf, 1.0 - cdf)))

        result = VarianceSplitResult(
            first_half_variance=v1,
            second_half_variance=v2,
            ratio=ratio,
            ratio_threshold=float(threshold),
            f_statistic=float(f_stat),
            f_p_value=f_p,
            n_first=len(first),
            n_second=len(second),
        )
        logger.debug("Variance split: %s", result.interpretation)
        return result

    def test_arch_lm(self, residuals: pd.Series, lags: int = 10) -> HeteroskedasticityResult:
        """Test for ARCH effects using Lagrange Multiplier test.

        Parameters
        ----------
        residuals : pd.Series
            Model residuals or demeaned returns
        lags : int, default 10
            Number of lags to include in the test

        Returns
        -------
        HeteroskedasticityResult
            ARCH-LM test results
        """
        logger.debug("Running ARCH-LM test with %d lags", lags)
        values = pd.Series(residuals, dtype=float).dropna()
        lm_stat, lm_pval, _, _ = het_arch(values - values.mean(), nlags=lags)

        return HeteroskedasticityResult(
            test_name="ARCH-LM Test",
            test_statistic=float(lm_stat),
            p_value=float(lm_pval),
            degrees_of_freedom=lags,
            significance_level=self.significance_level,
            test_description=f"Test for ARCH effects (H0: No ARCH effects, lags={lags})"
        )
