"""
Matrix Curation
===============

Trim and normalize a computed ValueStore for downstream analysis.

Stages, each consuming the previous stage's output:

    1. subset              restrict to explicit row / column indices
    2. canonicalize        non-finite values and non-GOOD cells -> NaN;
                           GOOD cells with non-finite values -> ERROR
    3. filter_rows         drop rows with good fraction < row_thresh
    4. filter_columns      drop columns with good fraction < col_thresh
    5. constant_columns    drop columns whose finite range is < eps
    6. constant_rows       drop rows whose finite range is < eps
    7. normalize           column-wise transform, optionally fit on a
                           training subset of rows
    8. revalidate          drop columns that normalization turned all-NaN
                           or constant

Each stage is a pure function ``ValueStore -> ValueStore``; the input
store is never modified. A stage that would empty a dimension raises a
CurationError and nothing is returned, so a failed run cannot leave a
partial snapshot behind.
"""

import logging
import warnings
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from tsmatrix.config import CurationConfig
from tsmatrix.core.errors import (
    AllColumnsFiltered,
    AllRowsFiltered,
    NoGoodValuesAfterNormalization,
)
from tsmatrix.core.normalization import canonical_method, normalize
from tsmatrix.core.quality import Quality
from tsmatrix.core.store import ValueStore


logger = logging.getLogger(__name__)

# Range below which a row / column counts as constant
EPS = np.finfo(np.float64).eps

# Slack for comparing good-value fractions against thresholds
_FRACTION_TOL = 1e-12


# =============================================================================
# RECORDS
# =============================================================================

@dataclass
class StageResult:
    """Row / column removal counts for one stage."""
    stage: str
    rows_in: int
    cols_in: int
    rows_removed: int = 0
    cols_removed: int = 0


@dataclass
class NormalizationInfo:
    """What was applied to produce a curated snapshot."""
    norm_function: str
    row_thresh: float
    col_thresh: float
    training_rows: Optional[List[int]] = None
    training_rows_used: Optional[List[int]] = None
    prune_masters: bool = False
    stages: List[StageResult] = field(default_factory=list)
    code_to_run: str = ''

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> 'NormalizationInfo':
        raw = dict(raw)
        raw['stages'] = [StageResult(**s) for s in raw.get('stages', [])]
        return cls(**raw)


@dataclass
class CurationResult:
    """Curated store plus the record of how it was made."""
    store: ValueStore
    info: NormalizationInfo

    @property
    def stages(self) -> List[StageResult]:
        return self.info.stages


# =============================================================================
# PREDICATES
# =============================================================================

def good_fraction(values: np.ndarray, axis: int) -> np.ndarray:
    """Fraction of non-NaN cells per row (axis=1) or column (axis=0)."""
    n = values.shape[axis]
    if n == 0:
        return np.zeros(values.shape[1 - axis])
    return np.sum(~np.isnan(values), axis=axis) / n


def constant_mask(values: np.ndarray, axis: int) -> np.ndarray:
    """
    True for rows (axis=1) / columns (axis=0) whose non-NaN range is below
    machine epsilon. An all-NaN line carries no information either and
    counts as constant.
    """
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        spread = np.nanmax(values, axis=axis) - np.nanmin(values, axis=axis)
    return ~(spread >= EPS)


def demote_non_finite(store: ValueStore) -> ValueStore:
    """GOOD cells holding a non-finite value become ERROR."""
    demote = ~np.isfinite(store.values) & (store.quality == Quality.GOOD)
    if not demote.any():
        return store
    out = store.copy()
    out.quality[demote] = Quality.ERROR
    return out


# =============================================================================
# STAGES
# =============================================================================

def subset(store: ValueStore, rows: Optional[Sequence[int]] = None,
           cols: Optional[Sequence[int]] = None) -> ValueStore:
    """Stage 1: restrict to the given row / column indices (empty or None = all)."""
    rows = rows if rows is not None and len(rows) else None
    cols = cols if cols is not None and len(cols) else None
    out = store.take(rows=rows, cols=cols)
    if rows is not None:
        logger.info(f"Filtered down time series by given subset; from {store.n_rows} to {out.n_rows}")
    if cols is not None:
        logger.info(f"Filtered down operations by given subset; from {store.n_cols} to {out.n_cols}")
    if out.n_rows == 0:
        raise AllRowsFiltered("Row subset selects no time series", stage='subset')
    if out.n_cols == 0:
        raise AllColumnsFiltered("Column subset selects no operations", stage='subset')
    return out


def canonicalize(store: ValueStore) -> ValueStore:
    """
    Stage 2: every non-finite value or non-GOOD cell becomes NaN, and a
    GOOD cell that held a non-finite value is marked ERROR.
    """
    bad = store.bad_mask()
    logger.info(f"There are {int(bad.sum())} special values in the data matrix")
    store = demote_non_finite(store)
    values = store.values.copy()
    values[bad] = np.nan
    return store.with_values(values)


def filter_rows(store: ValueStore, thresh: float) -> ValueStore:
    """Stage 3: drop time series with fewer than ``thresh`` good values."""
    if thresh <= 0:
        return store
    keep = good_fraction(store.values, axis=1) >= thresh - _FRACTION_TOL
    if not keep.any():
        raise AllRowsFiltered(
            f"No time series had at least {thresh * 100:.2f}% good values",
            stage='filter_rows', threshold=thresh,
        )
    if keep.all():
        logger.info(f"All {store.n_rows} time series had at least {thresh * 100:.2f}% good values; keeping them all")
        return store
    removed = [store.time_series[i].name for i in np.flatnonzero(~keep)]
    logger.info(f"Removed {len(removed)} time series with fewer than {thresh * 100:.2f}% good values: "
                f"from {store.n_rows} to {int(keep.sum())}")
    logger.debug(f"Time series removed: {', '.join(removed)}")
    return store.take(rows=keep)


def filter_columns(store: ValueStore, thresh: float) -> ValueStore:
    """Stage 4: drop operations with fewer than ``thresh`` good values."""
    if thresh <= 0:
        return store
    keep = good_fraction(store.values, axis=0) >= thresh - _FRACTION_TOL
    if not keep.any():
        raise AllColumnsFiltered(
            f"No operations had at least {thresh * 100:.2f}% good values",
            stage='filter_columns', threshold=thresh,
        )
    if keep.all():
        logger.info(f"All {store.n_cols} operations had at least {thresh * 100:.2f}% good values; keeping them all")
        return store
    removed = [store.operations[j].name for j in np.flatnonzero(~keep)]
    logger.info(f"Removed {len(removed)} operations with fewer than {thresh * 100:.2f}% good values: "
                f"from {store.n_cols} to {int(keep.sum())}")
    logger.debug(f"Operations removed: {', '.join(removed)}")
    return store.take(cols=keep)


def drop_constant_columns(store: ValueStore) -> ValueStore:
    """
    Stage 5: drop operations with (near-)constant output across time
    series. Skipped when a single time series remains, since every column
    is then trivially constant.
    """
    if store.n_rows < 2:
        return store
    constant = constant_mask(store.values, axis=0)
    if constant.all():
        raise AllColumnsFiltered(
            f"All {store.n_cols} operations produced constant outputs on the {store.n_rows} time series",
            stage='constant_columns', threshold=float(EPS),
        )
    if constant.any():
        logger.info(f"Removed {int(constant.sum())} operations with near-constant outputs: "
                    f"from {store.n_cols} to {int((~constant).sum())}")
        return store.take(cols=~constant)
    return store


def drop_constant_rows(store: ValueStore) -> ValueStore:
    """
    Stage 6: drop time series whose feature vector is constant. Skipped
    when a single row or a single column remains.
    """
    if store.n_rows < 2 or store.n_cols < 2:
        return store
    constant = constant_mask(store.values, axis=1)
    if constant.all():
        raise AllRowsFiltered(
            "All time series have constant feature vectors",
            stage='constant_rows', threshold=float(EPS),
        )
    if constant.any():
        logger.info(f"Removed time series with constant feature vectors: "
                    f"from {store.n_rows} to {int((~constant).sum())}")
        return store.take(rows=~constant)
    return store


def training_indices(store: ValueStore, training_rows) -> Optional[List[int]]:
    """Positions of the surviving training time series (None = use all)."""
    if not training_rows:
        return None
    wanted = set(training_rows)
    idx = [i for i, ts in enumerate(store.time_series) if ts.ts_id in wanted]
    if not idx:
        logger.warning("None of the training time series survived trimming; "
                       "fitting normalization on all rows")
        return None
    return idx


def apply_normalization(store: ValueStore, norm_function: str,
                        train_rows: Optional[Sequence[int]] = None) -> ValueStore:
    """Stage 7: apply the named transform column-wise."""
    if canonical_method(norm_function).value == 'none':
        logger.info(f"You specified '{norm_function}', so NO NORMALIZING IS ACTUALLY BEING DONE")
        return store

    if train_rows is None:
        logger.info(f"Normalizing a {store.n_rows} x {store.n_cols} object with '{norm_function}'")
    else:
        logger.info(f"Normalizing a {store.n_rows} x {store.n_cols} object with '{norm_function}' "
                    f"using {len(train_rows)} training time series")
    normalized, _ = normalize(store.values, method=norm_function, train_rows=train_rows)
    out = store.with_values(normalized)
    logger.info(f"Normalized; the data matrix contains {int(np.isnan(normalized).sum())} special-valued elements")
    return out


def revalidate(store: ValueStore) -> ValueStore:
    """
    Stage 8: drop columns normalization made all-NaN, then re-run the
    constant-column check. Any GOOD cell left non-finite becomes ERROR.
    """
    nan_cols = np.all(np.isnan(store.values), axis=0)
    if nan_cols.all():
        raise NoGoodValuesAfterNormalization(
            "After normalization, all columns were bad values", stage='revalidate',
        )
    if nan_cols.any():
        logger.info(f"Removed {int(nan_cols.sum())} all-NaN columns after normalization")
        store = store.take(cols=~nan_cols)

    if store.n_rows >= 2:
        constant = constant_mask(store.values, axis=0)
        if constant.all():
            raise NoGoodValuesAfterNormalization(
                "After normalization, all columns were constant", stage='revalidate',
            )
        if constant.any():
            logger.info(f"Post-normalization filtering of {int(constant.sum())} operations with constant outputs: "
                        f"from {store.n_cols} to {int((~constant).sum())}")
            store = store.take(cols=~constant)
    return demote_non_finite(store)


# =============================================================================
# PIPELINE
# =============================================================================

class MatrixCurator:
    """
    Run the curation stages in order.

    Args:
        config: CurationConfig (defaults if None)
    """

    def __init__(self, config: Optional[CurationConfig] = None):
        self.config = config or CurationConfig()
        self.training_rows_used: Optional[List[int]] = None

    def _normalize(self, store: ValueStore) -> ValueStore:
        idx = training_indices(store, self.config.training_rows)
        self.training_rows_used = None if idx is None else [store.time_series[i].ts_id for i in idx]
        return apply_normalization(store, self.config.norm_function, idx)

    def _stages(self) -> List[Tuple[str, Callable[[ValueStore], ValueStore]]]:
        cfg = self.config
        return [
            ('subset', lambda s: subset(s, cfg.row_subset, cfg.col_subset)),
            ('canonicalize', canonicalize),
            ('filter_rows', lambda s: filter_rows(s, cfg.row_thresh)),
            ('filter_columns', lambda s: filter_columns(s, cfg.col_thresh)),
            ('constant_columns', drop_constant_columns),
            ('constant_rows', drop_constant_rows),
            ('normalize', self._normalize),
            ('revalidate', revalidate),
        ]

    def code_to_run(self) -> str:
        cfg = self.config
        return (f"curate(norm_function={cfg.norm_function!r}, "
                f"filter_options=[{cfg.row_thresh:f}, {cfg.col_thresh:f}])")

    def curate(self, store: ValueStore) -> CurationResult:
        """
        Curate ``store``.

        Raises:
            AllRowsFiltered, AllColumnsFiltered, NoGoodValuesAfterNormalization
        """
        cfg = self.config
        logger.info(f"Removing time series with more than {(1 - cfg.row_thresh) * 100:.2f}% special-valued outputs")
        logger.info(f"Removing operations with more than {(1 - cfg.col_thresh) * 100:.2f}% special-valued outputs")

        stages: List[StageResult] = []
        current = store
        self.training_rows_used = None
        for name, stage in self._stages():
            record = StageResult(stage=name, rows_in=current.n_rows, cols_in=current.n_cols)
            current = stage(current)
            record.rows_removed = record.rows_in - current.n_rows
            record.cols_removed = record.cols_in - current.n_cols
            stages.append(record)

        if cfg.prune_masters:
            n_before = len(current.masters)
            current = current.prune_masters()
            logger.info(f"Pruned {n_before - len(current.masters)} unreferenced master operations")

        n_bad = int(np.isnan(current.values).sum())
        total = max(current.values.size, 1)
        logger.info(f"We now have {current.n_rows} time series and {current.n_cols} operations in play; "
                    f"{n_bad} bad entries ({n_bad / total * 100:.2f}%)")

        info = NormalizationInfo(
            norm_function=cfg.norm_function,
            row_thresh=cfg.row_thresh,
            col_thresh=cfg.col_thresh,
            training_rows=sorted(cfg.training_rows) if cfg.training_rows else None,
            training_rows_used=self.training_rows_used,
            prune_masters=cfg.prune_masters,
            stages=stages,
            code_to_run=self.code_to_run(),
        )
        return CurationResult(store=current, info=info)


def curate(store: ValueStore, config: Optional[CurationConfig] = None, **kwargs) -> CurationResult:
    """
    Convenience wrapper.

        curate(store, norm_function='none', row_thresh=0.8, col_thresh=1.0)
    """
    if config is None:
        config = CurationConfig(**kwargs)
    elif kwargs:
        raise TypeError("Pass either a CurationConfig or keyword settings, not both")
    return MatrixCurator(config).curate(store)
