"""Diagnostic testing for the price/climate report.

This package provides the statistical checks run on the price series and on
the selected model's residuals:
- Heteroskedasticity detection (variance split, ARCH-LM)
- Residual diagnostics (Ljung-Box, Jarque-Bera, ARCH-LM, ACF/PACF figure)
"""

from .heteroskedasticity import (
    HeteroskedasticityResult,
    HeteroskedasticityTester,
    VarianceSplitResult,
)

from .residual_diagnostics import (
    DiagnosticResult,
    DiagnosticTest,
    ResidualReport,
    ResidualDiagnostics,
)

__all__ = [
    # Heteroskedasticity testing
    'HeteroskedasticityTester',
    'HeteroskedasticityResult',
    'VarianceSplitResult',

    # Residual diagnostics
    'ResidualDiagnostics',
    'DiagnosticResult',
    'DiagnosticTest',
    'ResidualReport',
]
