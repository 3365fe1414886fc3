# price_forecaster_src/exceptions.py

"""Error taxonomy for the analysis pipeline.

Every failure aborts the run at the stage that raised it; there is no
partial-results mode.
"""

from typing import Any, Optional


class PipelineError(Exception):
    """Base class for failures raised by a pipeline stage."""

    stage = "pipeline"

    def __init__(self, message: str, stage: Optional[str] = None):
        super().__init__(message)
        if stage is not None:
            self.stage = stage


class MalformedRecord(PipelineError):
    """A row's date or numeric field cannot be parsed."""

    stage = "load"

    def __init__(self, message: str, dataset: Optional[str] = None, row: Optional[int] = None,
                 column: Optional[str] = None, value: Any = None):
        details = []
        if dataset is not None:
            details.append(f"dataset={dataset}")
        if row is not None:
            details.append(f"row={row}")
        if column is not None:
            details.append(f"column={column}")
        if value is not None:
            details.append(f"value={value!r}")
        full = f"{message} ({', '.join(details)})" if details else message
        super().__init__(full)
        self.dataset = dataset
        self.row = row
        self.column = column
        self.value = value


class JoinMismatch(PipelineError):
    """The matched series is empty or unexpectedly small after joining."""

    stage = "align"

    def __init__(self, message: str, retained: int = 0, expected: int = 0):
        super().__init__(message)
        self.retained = retained
        self.expected = expected


class NonConvergence(PipelineError):
    """A maximum-likelihood fit reported that the optimizer did not converge."""

    stage = "fit"

    def __init__(self, message: str, variant: Optional[str] = None):
        super().__init__(message)
        self.variant = variant


class DegenerateSeries(PipelineError):
    """A series is empty, constant or too short for the requested computation."""

    stage = "diagnostics"
