"""Residual checks for the selected forecasting model.

The 80% / 95% bands of both model families assume uncorrelated, normally
distributed innovations, with any volatility clustering captured by the
model. This module tests those assumptions on the final model's in-sample
residuals so the report can say how far the bands can be trusted.

Features:
- Ljung-Box portmanteau test (leftover autocorrelation)
- Jarque-Bera test (normal innovations)
- ARCH-LM test (leftover volatility clustering)
- Residual path and ACF/PACF figure
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from statsmodels.graphics.tsaplots import plot_acf, plot_pacf
from statsmodels.stats.diagnostic import acorr_ljungbox
from statsmodels.stats.stattools import jarque_bera

from config import get_config

from .heteroskedasticity import HeteroskedasticityTester

logger = logging.getLogger(__name__)


class DiagnosticTest(Enum):
    """Residual assumptions checked for the final model."""
    LJUNG_BOX = "ljung_box"
    JARQUE_BERA = "jarque_bera"
    ARCH_LM = "arch_lm"


_VERDICTS = {
    DiagnosticTest.LJUNG_BOX: ("autocorrelation left in residuals", "residuals look uncorrelated"),
    DiagnosticTest.JARQUE_BERA: ("innovations are not normal; bands may be too narrow in the tails",
                                 "innovations look normal"),
    DiagnosticTest.ARCH_LM: ("volatility clustering left in residuals", "no volatility clustering left"),
}


@dataclass
class DiagnosticResult:
    """Outcome of one residual test."""

    test_type: DiagnosticTest
    test_statistic: float
    p_value: float
    significance_level: float = 0.05
    lags: Optional[int] = None
    extra: Dict[str, float] = field(default_factory=dict)

    @property
    def test_name(self) -> str:
        return {
            DiagnosticTest.LJUNG_BOX: "Ljung-Box",
            DiagnosticTest.JARQUE_BERA: "Jarque-Bera",
            DiagnosticTest.ARCH_LM: "ARCH-LM",
        }[self.test_type]

    @property
    def is_significant(self) -> bool:
        """True when the test rejects its null hypothesis."""
        return self.p_value < self.significance_level

    @property
    def interpretation(self) -> str:
        rejected, accepted = _VERDICTS[self.test_type]
        return rejected if self.is_significant else accepted


@dataclass
class ResidualReport:
    """Residual test results of one fitted model."""

    model_name: str
    n_residuals: int
    mean: float
    std: float
    tests: Dict[str, DiagnosticResult]
    plots: Dict[str, Path] = field(default_factory=dict)

    @property
    def issues(self) -> List[str]:
        """Failed checks that undermine the forecast bands."""
        return [r.interpretation for r in self.tests.values()
                if r.is_significant and r.test_type != DiagnosticTest.JARQUE_BERA]

    @property
    def warnings(self) -> List[str]:
        jb = self.tests.get("jarque_bera")
        return [jb.interpretation] if jb is not None and jb.is_significant else []

    @property
    def adequate(self) -> bool:
        """No autocorrelation and no volatility clustering left over."""
        return not self.issues

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {"test": r.test_name, "lags": "" if r.lags is None else r.lags, "statistic": r.test_statistic,
             "p_value": r.p_value, "verdict": r.interpretation}
            for r in self.tests.values()
        ])


class ResidualDiagnostics:
    """Runs the residual checks with lag settings from the configuration."""

    def __init__(self, significance_level: float = 0.05):
        """
        Parameters
        ----------
        significance_level : float, default 0.05
            Rejection level shared by the three tests. Lags come from
            ``diagnostics.ljung_box_lags`` and ``diagnostics.arch_lm_lags``.
        """
        self.significance_level = significance_level
        config = get_config()
        self.ljung_box_lags = int(config.get("diagnostics.ljung_box_lags", 20))
        self.arch_lm_lags = int(config.get("diagnostics.arch_lm_lags", 10))
        self.dpi = int(config.get("report.dpi", 150))

    @staticmethod
    def _finite(residuals) -> pd.Series:
        return pd.Series(residuals, dtype=float).replace([np.inf, -np.inf], np.nan).dropna()

    def _max_lags(self, resid: pd.Series, requested: int) -> int:
        return max(1, min(int(requested), len(resid) // 2 - 1))

    def ljung_box_test(self, residuals, lags: Optional[int] = None) -> DiagnosticResult:
        """Ljung-Box Q statistic at ``lags`` (capped below n/2)."""
        resid = self._finite(residuals)
        lags = self._max_lags(resid, self.ljung_box_lags if lags is None else lags)
        table = acorr_ljungbox(resid, lags=[lags], return_df=True)
        return DiagnosticResult(
            test_type=DiagnosticTest.LJUNG_BOX,
            test_statistic=float(table["lb_stat"].iloc[-1]),
            p_value=float(table["lb_pvalue"].iloc[-1]),
            significance_level=self.significance_level,
            lags=lags,
        )

    def jarque_bera_test(self, residuals) -> DiagnosticResult:
        """Jarque-Bera normality test; skewness and kurtosis kept in ``extra``."""
        stat, pval, skew, kurt = jarque_bera(self._finite(residuals).to_numpy())
        return DiagnosticResult(
            test_type=DiagnosticTest.JARQUE_BERA,
            test_statistic=float(stat),
            p_value=float(pval),
            significance_level=self.significance_level,
            extra={"skewness": float(skew), "kurtosis": float(kurt)},
        )

    def arch_lm_test(self, residuals, lags: Optional[int] = None) -> DiagnosticResult:
        """Engle's ARCH-LM test on the residuals."""
        resid = self._finite(residuals)
        lags = self._max_lags(resid, self.arch_lm_lags if lags is None else lags)
        tester = HeteroskedasticityTester(self.significance_level, ratio_threshold=float("inf"))
        arch = tester.test_arch_lm(resid, lags)
        return DiagnosticResult(
            test_type=DiagnosticTest.ARCH_LM,
            test_statistic=arch.test_statistic,
            p_value=arch.p_value,
            significance_level=self.significance_level,
            lags=lags,
        )

    def create_diagnostic_plots(self, residuals, output_dir: Path, model_name: str = "model") -> Dict[str, Path]:
        """Residual path with ACF and PACF panels, saved as ``residuals_<model>.png``."""
        resid = self._finite(residuals)
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)
        slug = "".join(ch if ch.isalnum() else "_" for ch in model_name).strip("_").lower()
        lags = self._max_lags(resid, 40)

        fig, axes = plt.subplots(3, 1, figsize=(11, 9))
        axes[0].plot(np.arange(len(resid)), resid.to_numpy(), color="tab:blue", linewidth=0.7)
        axes[0].axhline(0, color="black", linewidth=0.6)
        axes[0].set_title(f"{model_name}: in-sample residuals")
        axes[0].grid(True, alpha=0.3)
        plot_acf(resid.to_numpy(), lags=lags, ax=axes[1], title="Residual ACF")
        plot_pacf(resid.to_numpy(), lags=lags, ax=axes[2], method="ywm", title="Residual PACF")
        fig.tight_layout()

        path = output_dir / f"residuals_{slug}.png"
        fig.savefig(path, dpi=self.dpi)
        plt.close(fig)
        logger.info("Saved residual diagnostics figure to %s", path)
        return {"residuals": path}

    def run_comprehensive_diagnostics(self, residuals, model_name: str = "model",
                                      output_dir: Optional[Path] = None) -> ResidualReport:
        """
        Run all three tests and, when ``output_dir`` is given, save the figure.

        Parameters
        ----------
        residuals : array-like
            In-sample residuals (standardized residuals for GARCH models).
        model_name : str
            Used in logs, titles and the figure file name.
        output_dir : Path, optional
            Directory for the figure.

        Returns
        -------
        ResidualReport
        """
        resid = self._finite(residuals)
        report = ResidualReport(
            model_name=model_name,
            n_residuals=len(resid),
            mean=float(resid.mean()),
            std=float(resid.std()),
            tests={
                "ljung_box": self.ljung_box_test(resid),
                "jarque_bera": self.jarque_bera_test(resid),
                "arch_lm": self.arch_lm_test(resid),
            },
        )
        for result in report.tests.values():
            logger.info("%s residuals, %s: %s (p=%.4f)", model_name, result.test_name,
                        result.interpretation, result.p_value)
        if output_dir is not None:
            report.plots = self.create_diagnostic_plots(resid, output_dir, model_name)
        if not report.adequate:
            logger.warning("%s residual checks failed: %s", model_name, "; ".join(report.issues))
        return report
