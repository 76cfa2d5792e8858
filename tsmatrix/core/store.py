"""
Value Store
===========

The one shared mutable structure: three parallel matrices of shape
[n_time_series x n_operations] plus the row and column metadata.

    values     float64, NaN = unset / invalid
    quality    int8 quality code (see ``tsmatrix.core.quality``)
    calc_time  float64 seconds, NaN = not computed

Row i <-> time_series[i], column j <-> operations[j]. Every row or column
deletion goes through ``take``, which slices all five together and returns
a new store, so the matrices and metadata can never drift apart.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np

from tsmatrix.core.errors import StoreShapeError
from tsmatrix.core.models import MasterOperation, Operation, TimeSeries
from tsmatrix.core.quality import QUALITY_DTYPE, Quality, count_codes


def _as_index(selector, n: int) -> np.ndarray:
    """Normalise a boolean mask or integer index list into integer indices."""
    if selector is None:
        return np.arange(n)
    idx = np.asarray(selector)
    if idx.dtype == bool:
        if idx.shape != (n,):
            raise StoreShapeError(f"Boolean mask of length {idx.size} for dimension of size {n}")
        return np.flatnonzero(idx)
    idx = idx.astype(np.intp).ravel()
    if idx.size and (idx.min() < -n or idx.max() >= n):
        raise StoreShapeError(f"Index out of range for dimension of size {n}")
    return idx


@dataclass
class ValueStore:
    """Values, quality codes and calculation times with their metadata."""

    values: np.ndarray
    quality: np.ndarray
    calc_time: np.ndarray
    time_series: List[TimeSeries]
    operations: List[Operation]
    masters: Dict[int, MasterOperation] = field(default_factory=dict)

    def __post_init__(self):
        self.values = np.asarray(self.values, dtype=np.float64)
        self.quality = np.asarray(self.quality, dtype=QUALITY_DTYPE)
        self.calc_time = np.asarray(self.calc_time, dtype=np.float64)
        self.time_series = list(self.time_series)
        self.operations = list(self.operations)
        self.masters = dict(self.masters)
        self.check_shape()

    # -------------------------------------------------------------------------
    # Construction
    # -------------------------------------------------------------------------

    @classmethod
    def empty(
        cls,
        time_series: Sequence[TimeSeries],
        operations: Sequence[Operation],
        masters: Optional[Dict[int, MasterOperation]] = None,
    ) -> 'ValueStore':
        """All cells NOT_COMPUTED: value NaN, time NaN."""
        shape = (len(time_series), len(operations))
        return cls(
            values=np.full(shape, np.nan),
            quality=np.full(shape, Quality.NOT_COMPUTED, dtype=QUALITY_DTYPE),
            calc_time=np.full(shape, np.nan),
            time_series=list(time_series),
            operations=list(operations),
            masters=dict(masters or {}),
        )

    def copy(self) -> 'ValueStore':
        return ValueStore(
            values=self.values.copy(),
            quality=self.quality.copy(),
            calc_time=self.calc_time.copy(),
            time_series=list(self.time_series),
            operations=list(self.operations),
            masters=dict(self.masters),
        )

    # -------------------------------------------------------------------------
    # Shape bookkeeping
    # -------------------------------------------------------------------------

    def check_shape(self) -> None:
        """Raise StoreShapeError unless all five parts agree."""
        expected = (len(self.time_series), len(self.operations))
        for name in ('values', 'quality', 'calc_time'):
            arr = getattr(self, name)
            if arr.ndim != 2 or arr.shape != expected:
                raise StoreShapeError(
                    f"{name} has shape {arr.shape}, metadata implies {expected}"
                )

    @property
    def shape(self):
        return self.values.shape

    @property
    def n_rows(self) -> int:
        return self.values.shape[0]

    @property
    def n_cols(self) -> int:
        return self.values.shape[1]

    @property
    def ts_ids(self) -> List[int]:
        return [ts.ts_id for ts in self.time_series]

    @property
    def op_ids(self) -> List[int]:
        return [op.op_id for op in self.operations]

    # -------------------------------------------------------------------------
    # Atomic row / column selection
    # -------------------------------------------------------------------------

    def take(self, rows=None, cols=None) -> 'ValueStore':
        """
        New store restricted to ``rows`` and ``cols`` (boolean masks or
        integer indices, None = all). Applied to all three matrices and
        both metadata lists at once.
        """
        r = _as_index(rows, self.n_rows)
        c = _as_index(cols, self.n_cols)
        grid = np.ix_(r, c)
        return ValueStore(
            values=self.values[grid].copy(),
            quality=self.quality[grid].copy(),
            calc_time=self.calc_time[grid].copy(),
            time_series=[self.time_series[i] for i in r],
            operations=[self.operations[j] for j in c],
            masters=dict(self.masters),
        )

    def drop_rows(self, rows) -> 'ValueStore':
        keep = np.ones(self.n_rows, dtype=bool)
        keep[_as_index(rows, self.n_rows)] = False
        return self.take(rows=keep)

    def drop_columns(self, cols) -> 'ValueStore':
        keep = np.ones(self.n_cols, dtype=bool)
        keep[_as_index(cols, self.n_cols)] = False
        return self.take(cols=keep)

    def with_values(self, values: np.ndarray) -> 'ValueStore':
        """Same store with the value matrix replaced (shape must match)."""
        out = self.copy()
        out.values = np.asarray(values, dtype=np.float64)
        out.check_shape()
        return out

    # -------------------------------------------------------------------------
    # Cell writes
    # -------------------------------------------------------------------------

    def set_cell(self, i: int, j: int, value: float, quality: Quality, calc_time: float) -> None:
        """Write one cell; value is forced to NaN unless quality is GOOD."""
        self.quality[i, j] = quality
        self.values[i, j] = value if quality == Quality.GOOD else np.nan
        self.calc_time[i, j] = calc_time

    def write_row(self, i: int, cols: Sequence[int], values, quality, calc_time) -> None:
        """Write a slice of row ``i`` (used to merge worker results)."""
        cols = np.asarray(cols, dtype=np.intp)
        quality = np.asarray(quality, dtype=QUALITY_DTYPE)
        values = np.where(quality == Quality.GOOD, values, np.nan)
        self.values[i, cols] = values
        self.quality[i, cols] = quality
        self.calc_time[i, cols] = calc_time

    # -------------------------------------------------------------------------
    # Summaries
    # -------------------------------------------------------------------------

    def bad_mask(self) -> np.ndarray:
        """Cells that are non-finite or carry a non-GOOD quality code."""
        return ~np.isfinite(self.values) | (self.quality != Quality.GOOD)

    def quality_counts(self) -> Dict[str, int]:
        return count_codes(self.quality)

    def referenced_masters(self) -> Iterable[int]:
        return sorted({op.mop_id for op in self.operations})

    def prune_masters(self) -> 'ValueStore':
        """Drop master operations no surviving operation points to."""
        out = self.copy()
        used = set(self.referenced_masters())
        out.masters = {k: v for k, v in self.masters.items() if k in used}
        return out
