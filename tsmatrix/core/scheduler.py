"""
Batch Scheduler
===============

Populates a ValueStore for a set of time series x operations.

For each time series, every master referenced by at least one pending
operation is evaluated exactly once; the bundle is cached for that row
and shared by all dependent operations. Cells are written as
(value, quality, calc_time).

Time attribution:
    The full master cost is charged to the first dependent cell of that
    row (in column order); the remaining dependents are cache hits and get
    0.0. Summing calc_time over a master's columns therefore gives the true
    one-off cost. A failed master reports 0.0 everywhere.

Parallelism:
    n_jobs > 1 partitions rows across joblib workers. Each worker owns
    whole rows, so no two tasks write the same cell; results are merged by
    the parent.
"""

import logging
import time
from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from joblib import Parallel, delayed

from tsmatrix.core.errors import CatalogError, StoreShapeError
from tsmatrix.core.evaluator import MasterEvaluator
from tsmatrix.core.models import Failed, MasterOperation, Operation, TimeSeries
from tsmatrix.core.quality import QUALITY_DTYPE, Quality
from tsmatrix.core.resolver import OperationResolver
from tsmatrix.core.store import ValueStore


logger = logging.getLogger(__name__)


@dataclass
class RowResult:
    """Cells computed for one row, as returned by a worker."""
    row: int
    cols: np.ndarray
    values: np.ndarray
    quality: np.ndarray
    calc_time: np.ndarray
    evaluations: Dict[int, int] = field(default_factory=dict)
    failures: List[Tuple[int, int, str]] = field(default_factory=list)


@dataclass
class BatchReport:
    """Aggregate outcome of one batch run."""
    n_series: int = 0
    n_operations: int = 0
    n_masters: int = 0
    master_evaluations: int = 0
    cells_written: int = 0
    quality_counts: Dict[str, int] = field(default_factory=dict)
    failures: List[Tuple[int, int, str]] = field(default_factory=list)
    elapsed: float = 0.0

    def summary(self) -> str:
        counts = ', '.join(f"{k}={v}" for k, v in self.quality_counts.items())
        return (
            f"{self.n_series} time series x {self.n_operations} operations "
            f"({self.n_masters} masters, {self.master_evaluations} evaluations, "
            f"{self.cells_written} cells) in {self.elapsed:.2f}s: {counts}; "
            f"{len(self.failures)} master failures"
        )


def group_operations(
    operations: Sequence[Operation],
    masters: Mapping[int, MasterOperation],
) -> 'OrderedDict[int, List[int]]':
    """
    Map mop_id -> column indices of the operations depending on it, in
    first-appearance order.

    Raises:
        CatalogError: An operation references an unknown master
    """
    groups: 'OrderedDict[int, List[int]]' = OrderedDict()
    for j, op in enumerate(operations):
        if op.mop_id not in masters:
            raise CatalogError(
                f"Operation {op.op_id} ({op.name}) references unknown master {op.mop_id}"
            )
        groups.setdefault(op.mop_id, []).append(j)
    return groups


def compute_row(
    row: int,
    series: TimeSeries,
    operations: Sequence[Operation],
    masters: Mapping[int, MasterOperation],
    groups: Mapping[int, List[int]],
    pending: np.ndarray,
    evaluator: MasterEvaluator,
    resolver: OperationResolver,
) -> RowResult:
    """
    Compute all pending cells of one row.

    Runs in a worker process when the scheduler is parallel.
    """
    cols: List[int] = []
    values: List[float] = []
    quality: List[int] = []
    times: List[float] = []
    evaluations: Dict[int, int] = {}
    failures: List[Tuple[int, int, str]] = []

    for mop_id, dependents in groups.items():
        todo = [j for j in dependents if pending[j]]
        if not todo:
            continue

        # One evaluation per (series, master); the bundle is shared below
        bundle, elapsed = evaluator.evaluate(series, masters[mop_id])
        evaluations[mop_id] = evaluations.get(mop_id, 0) + 1
        if isinstance(bundle, Failed):
            failures.append((series.ts_id, mop_id, bundle.message))

        for k, j in enumerate(todo):
            value, q = resolver.resolve(bundle, operations[j].transform)
            cols.append(j)
            values.append(value)
            quality.append(int(q))
            times.append(elapsed if k == 0 else 0.0)

    return RowResult(
        row=row,
        cols=np.asarray(cols, dtype=np.intp),
        values=np.asarray(values, dtype=np.float64),
        quality=np.asarray(quality, dtype=QUALITY_DTYPE),
        calc_time=np.asarray(times, dtype=np.float64),
        evaluations=evaluations,
        failures=failures,
    )


class BatchScheduler:
    """
    Drive MasterEvaluator and OperationResolver over a whole batch.

    Args:
        masters: mop_id -> MasterOperation
        evaluator: MasterEvaluator (default constructed if None)
        resolver: OperationResolver (default constructed if None)
        n_jobs: 1 = serial; >1 or -1 = joblib processes across rows
        verbose: Print a progress line and a summary
    """

    def __init__(
        self,
        masters: Mapping[int, MasterOperation],
        evaluator: Optional[MasterEvaluator] = None,
        resolver: Optional[OperationResolver] = None,
        n_jobs: int = 1,
        verbose: bool = False,
    ):
        self.masters = dict(masters)
        self.evaluator = evaluator or MasterEvaluator(n_masters=len(self.masters))
        self.resolver = resolver or OperationResolver()
        self.n_jobs = n_jobs
        self.verbose = verbose

    def run(
        self,
        series: Sequence[TimeSeries],
        operations: Sequence[Operation],
        store: Optional[ValueStore] = None,
    ) -> Tuple[ValueStore, BatchReport]:
        """
        Fill every NOT_COMPUTED cell of the store.

        Args:
            series: Rows to compute
            operations: Columns to compute
            store: Existing store to resume (must have the same rows and
                columns); cells already computed are skipped

        Returns:
            (store, report)
        """
        t0 = time.perf_counter()
        groups = group_operations(operations, self.masters)

        if store is None:
            store = ValueStore.empty(series, operations, self.masters)
        else:
            if store.ts_ids != [ts.ts_id for ts in series] or store.op_ids != [op.op_id for op in operations]:
                raise StoreShapeError("Resumed store does not match the requested series/operations")
            store = store.copy()
            store.masters.update(self.masters)

        pending = store.quality == Quality.NOT_COMPUTED
        tasks = [i for i in range(len(series)) if pending[i].any()]

        n_workers = self.n_jobs if len(tasks) > 1 else 1
        if self.verbose:
            print(f"Computing {int(pending.sum()):,} cells across {len(tasks)} time series "
                  f"and {len(groups)} masters using {n_workers} worker(s)...", flush=True)

        if n_workers == 1:
            results = [
                compute_row(i, series[i], operations, self.masters, groups,
                            pending[i], self.evaluator, self.resolver)
                for i in tasks
            ]
        else:
            results = Parallel(n_jobs=n_workers, prefer="processes")(
                delayed(compute_row)(
                    i, series[i], operations, self.masters, groups,
                    pending[i], self.evaluator, self.resolver,
                )
                for i in tasks
            )

        report = BatchReport(
            n_series=len(series),
            n_operations=len(operations),
            n_masters=len(groups),
        )
        for result in results:
            store.write_row(result.row, result.cols, result.values, result.quality, result.calc_time)
            report.master_evaluations += sum(result.evaluations.values())
            report.cells_written += len(result.cols)
            report.failures.extend(result.failures)

        report.quality_counts = store.quality_counts()
        report.elapsed = time.perf_counter() - t0

        logger.info(f"Batch complete: {report.summary()}")
        if self.verbose:
            print(f"  {report.summary()}", flush=True)

        return store, report


def compute(
    series: Sequence[TimeSeries],
    operations: Sequence[Operation],
    masters: Mapping[int, MasterOperation],
    n_jobs: int = 1,
    verbose: bool = False,
) -> Tuple[ValueStore, BatchReport]:
    """Convenience wrapper: build a scheduler and run one batch."""
    return BatchScheduler(masters, n_jobs=n_jobs, verbose=verbose).run(series, operations)
