"""
Data Model
==========

Row metadata, column metadata, master computations and the result
bundles they produce.

    TimeSeries        one row of the matrix (immutable sample sequence)
    MasterOperation   one expensive computation run once per series
    Operation         one column: a pointer into a master's output
    Transform         closed set of extraction rules (WholeOutput,
                      SelectField, SelectFieldApply), resolved once when
                      the operation is loaded
    ResultBundle      NotApplicable | Failed | Bundle
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple, Union

import numpy as np


# =============================================================================
# ROW / COLUMN METADATA
# =============================================================================

@dataclass(frozen=True)
class TimeSeries:
    """A time series: stable ID, name, keyword tags and the samples."""
    ts_id: int
    name: str
    data: np.ndarray = field(repr=False, compare=False)
    keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        data = np.array(self.data, dtype=np.float64).ravel()
        if data.size == 0:
            raise ValueError(f"TimeSeries {self.ts_id} ({self.name}) has no samples")
        data.setflags(write=False)
        object.__setattr__(self, 'data', data)
        object.__setattr__(self, 'ts_id', int(self.ts_id))
        object.__setattr__(self, 'keywords', tuple(self.keywords))

    @property
    def length(self) -> int:
        return int(self.data.size)


@dataclass(frozen=True)
class MasterOperation:
    """
    A shared computation evaluated once per time series.

    ``func`` is the opaque executable: ``func(y) -> output``. ``function``
    and ``params`` describe it so it can be persisted and rebuilt from the
    master-function registry. ``func`` may be None for a master loaded from
    a snapshot whose function is not registered; evaluating it fails.
    """
    mop_id: int
    label: str
    function: str = ''
    params: Dict[str, Any] = field(default_factory=dict, compare=False)
    func: Optional[Callable[[np.ndarray], Any]] = field(default=None, repr=False, compare=False)

    @property
    def code(self) -> str:
        """Human-readable call signature, e.g. ``autocorr(max_lag=40)``."""
        args = ', '.join(f"{k}={v!r}" for k, v in sorted(self.params.items()))
        return f"{self.function or self.label}({args})"


# =============================================================================
# TRANSFORMS
# =============================================================================

@dataclass(frozen=True)
class WholeOutput:
    """Master returns a bare scalar; use it directly."""

    def __str__(self) -> str:
        return ''


@dataclass(frozen=True)
class SelectField:
    """Select one (possibly dotted) field of the master's output mapping."""
    name: str

    def __str__(self) -> str:
        return self.name


@dataclass(frozen=True)
class SelectFieldApply:
    """Select a field, then apply a named scalar function to it."""
    name: str
    fn_name: str
    fn: Callable[[Any], Any] = field(repr=False, compare=False)

    def __str__(self) -> str:
        return f"{self.name}|{self.fn_name}"


Transform = Union[WholeOutput, SelectField, SelectFieldApply]


@dataclass(frozen=True)
class Operation:
    """A pointer operation: one column of the matrix."""
    op_id: int
    name: str
    mop_id: int
    transform: Transform
    keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'op_id', int(self.op_id))
        object.__setattr__(self, 'mop_id', int(self.mop_id))
        object.__setattr__(self, 'keywords', tuple(self.keywords))

    def code(self, master_label: str) -> str:
        """Catalog code string for this operation, e.g. ``ami.fmmi|log``."""
        suffix = str(self.transform)
        return f"{master_label}.{suffix}" if suffix else master_label


# =============================================================================
# RESULT BUNDLES
# =============================================================================

@dataclass(frozen=True)
class NotApplicable:
    """The master has no output for this input. Not an error."""
    reason: str = ''


@dataclass(frozen=True)
class Failed:
    """The master raised while evaluating."""
    message: str
    error_type: str = 'Exception'


@dataclass(frozen=True, eq=False)
class Bundle:
    """
    Successful master output: a mapping of field name to sub-result, or a
    bare scalar. Compared by identity so all dependents of one evaluation
    can be checked to share the same instance.
    """
    output: Any


ResultBundle = Union[NotApplicable, Failed, Bundle]
