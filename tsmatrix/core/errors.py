"""
Error hierarchy.

Per-cell evaluation problems are recovered locally and only ever show up
as quality codes. The exceptions below are for conditions that must stop
the caller: bad configuration, a broken catalog, an inconsistent store,
or a curation run that would empty a whole dimension.
"""

from typing import Optional


class TsMatrixError(Exception):
    """Base class for all tsmatrix errors."""


class ConfigError(TsMatrixError):
    """Raised when configuration values are out of range."""


class CatalogError(TsMatrixError):
    """Raised when operations or master operations cannot be resolved."""


class StoreShapeError(TsMatrixError):
    """Raised when matrices and metadata disagree on shape."""


class SnapshotNotFound(TsMatrixError):
    """Raised when loading a snapshot name that was never saved."""


class EvaluationFailure(TsMatrixError):
    """
    A master computation raised.

    Never propagates out of the evaluator; it is converted into a
    ``Failed`` result bundle carrying the message.
    """

    def __init__(self, label: str, cause: BaseException):
        self.label = label
        self.cause = cause
        super().__init__(f"{label}: {type(cause).__name__}: {cause}")


class NotApplicableSignal(Exception):
    """
    Raised by a master computation to report that it has no output for
    this input (e.g. series too short). Not an error.
    """


class CurationError(TsMatrixError):
    """Base class for fatal curation outcomes."""

    def __init__(self, message: str, stage: str, threshold: Optional[float] = None):
        self.stage = stage
        self.threshold = threshold
        super().__init__(message)


class AllRowsFiltered(CurationError):
    """A curation stage would remove every time series."""


class AllColumnsFiltered(CurationError):
    """A curation stage would remove every operation."""


class NoGoodValuesAfterNormalization(CurationError):
    """Normalization degenerated the whole matrix."""
