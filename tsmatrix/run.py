"""
tsmatrix Sequencer
==================

Compute a feature matrix, curate it, and inspect snapshots.
Orchestration only: computation lives in ``tsmatrix.core``.

A data directory holds:

    catalog.yaml            master operations + pointer operations
    timeseries.parquet      long-format samples (or timeseries.csv)
    tsmatrix.yaml           optional configuration overrides
    snapshots/<name>/       persisted snapshots (written here)

Usage:
    tsmatrix compute  data/my_set
    tsmatrix normalize data/my_set --norm zscore --row-thresh 0.7
    tsmatrix inspect  data/my_set --snapshot normalized
    python -m tsmatrix compute data/my_set
"""

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Tuple

from tsmatrix.config import ComputeConfig, CurationConfig, load_config
from tsmatrix.core.curation import CurationResult, MatrixCurator
from tsmatrix.core.errors import CurationError, TsMatrixError
from tsmatrix.core.scheduler import BatchReport, BatchScheduler
from tsmatrix.core.store import ValueStore
from tsmatrix.io.catalog import load_catalog
from tsmatrix.io.reader import load_time_series
from tsmatrix.io.snapshot import SnapshotStore
from tsmatrix.validation import StoreValidationReport, validate_store


logger = logging.getLogger(__name__)

SNAPSHOT_DIR = 'snapshots'


def _n_jobs(cfg: ComputeConfig) -> int:
    """TSMATRIX_WORKERS overrides the configured worker count (0 = all cores)."""
    env = os.environ.get("TSMATRIX_WORKERS", "")
    if env:
        return int(env) or -1
    return cfg.n_jobs


def snapshot_store(data_dir) -> SnapshotStore:
    return SnapshotStore(Path(data_dir) / SNAPSHOT_DIR)


def run_compute(
    data_dir,
    compute_config: Optional[ComputeConfig] = None,
    resume: bool = False,
    verbose: Optional[bool] = None,
) -> Tuple[ValueStore, BatchReport]:
    """
    Load the catalog and time series from ``data_dir``, compute every cell
    and save the result as the raw snapshot.

    Args:
        data_dir: Data directory
        compute_config: Overrides tsmatrix.yaml when given
        resume: Continue from an existing raw snapshot, computing only
            NOT_COMPUTED cells
        verbose: Print progress (None = ComputeConfig.verbose)
    """
    data_dir = Path(data_dir)
    cfg = compute_config or load_config(data_dir)[0]
    verbose = cfg.verbose if verbose is None else verbose
    n_jobs = _n_jobs(cfg)

    catalog = load_catalog(data_dir / cfg.catalog)
    series = load_time_series(data_dir / cfg.timeseries if (data_dir / cfg.timeseries).exists() else data_dir)
    snapshots = snapshot_store(data_dir)

    if verbose:
        print("=" * 70)
        print("TSMATRIX COMPUTE")
        print("=" * 70)
        print(f"Data:        {data_dir}")
        print(f"Time series: {len(series)}")
        print(f"Operations:  {len(catalog.operations)} ({len(catalog.masters)} masters)")
        print(f"Workers:     {n_jobs} ({'parallel' if n_jobs != 1 else 'sequential'})")
        print()

    existing = None
    if resume and snapshots.exists(cfg.snapshot_name):
        existing = snapshots.load(cfg.snapshot_name)
        if verbose:
            print(f"Resuming from snapshot '{cfg.snapshot_name}'")

    scheduler = BatchScheduler(catalog.masters, n_jobs=n_jobs, verbose=verbose)
    store, report = scheduler.run(series, catalog.operations, store=existing)
    snapshots.save(cfg.snapshot_name, store)

    if verbose:
        print(f"  -> snapshot '{cfg.snapshot_name}'")
    return store, report


def run_normalize(
    data_dir,
    curation_config: Optional[CurationConfig] = None,
    compute_config: Optional[ComputeConfig] = None,
    verbose: Optional[bool] = None,
) -> CurationResult:
    """
    Curate the raw snapshot and save it as the normalized snapshot.

    Nothing is written when curation fails.
    """
    data_dir = Path(data_dir)
    file_compute, file_curation = load_config(data_dir)
    compute_cfg = compute_config or file_compute
    cfg = curation_config or file_curation
    verbose = compute_cfg.verbose if verbose is None else verbose

    snapshots = snapshot_store(data_dir)
    store = snapshots.load(compute_cfg.snapshot_name)

    if verbose:
        print("=" * 70)
        print("TSMATRIX NORMALIZE")
        print("=" * 70)
        print(f"Input:      '{compute_cfg.snapshot_name}' ({store.n_rows} x {store.n_cols})")
        print(f"Transform:  {cfg.norm_function}")
        print(f"Thresholds: rows {cfg.row_thresh:.2f}, columns {cfg.col_thresh:.2f}")
        print()

    result = MatrixCurator(cfg).curate(store)
    snapshots.save(compute_cfg.curated_name, result.store, info=result.info)

    if verbose:
        for stage in result.stages:
            if stage.rows_removed or stage.cols_removed:
                print(f"  {stage.stage:<18} -{stage.rows_removed} rows, -{stage.cols_removed} columns")
        print(f"  -> snapshot '{compute_cfg.curated_name}' ({result.store.n_rows} x {result.store.n_cols})")
    return result


def run_inspect(data_dir, snapshot: Optional[str] = None) -> StoreValidationReport:
    """Validate a snapshot (default: the raw one)."""
    data_dir = Path(data_dir)
    compute_cfg, _ = load_config(data_dir)
    store = snapshot_store(data_dir).load(snapshot or compute_cfg.snapshot_name)
    return validate_store(store)


def main(argv=None):
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog='tsmatrix',
        description="Time-series feature matrix",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Usage:
  tsmatrix compute   ~/data/my_set
  tsmatrix normalize ~/data/my_set --norm scaled_robust_sigmoid --row-thresh 0.8 --col-thresh 1.0
  tsmatrix inspect   ~/data/my_set --snapshot normalized
"""
    )
    parser.add_argument('-q', '--quiet', action='store_true', help='Suppress output')
    sub = parser.add_subparsers(dest='command', required=True)

    p_compute = sub.add_parser('compute', help='Compute the raw matrix')
    p_compute.add_argument('data_dir', help='Data directory (catalog.yaml + timeseries.parquet)')
    p_compute.add_argument('--n-jobs', type=int, help='Worker processes (-1 = all cores)')
    p_compute.add_argument('--resume', action='store_true', help='Only compute cells not yet computed')

    p_norm = sub.add_parser('normalize', help='Curate and normalize the raw matrix')
    p_norm.add_argument('data_dir', help='Data directory')
    p_norm.add_argument('--norm', help='Normalization function (e.g. zscore, scaled_robust_sigmoid, none)')
    p_norm.add_argument('--row-thresh', type=float, help='Minimum good-value fraction per time series')
    p_norm.add_argument('--col-thresh', type=float, help='Minimum good-value fraction per operation')

    p_inspect = sub.add_parser('inspect', help='Print a validation report for a snapshot')
    p_inspect.add_argument('data_dir', help='Data directory')
    p_inspect.add_argument('--snapshot', help='Snapshot name (default: raw)')

    args = parser.parse_args(argv)
    verbose = False if args.quiet else None

    logging.basicConfig(
        level=logging.WARNING if args.quiet else logging.INFO,
        format='%(asctime)s %(name)s %(levelname)s: %(message)s',
    )

    try:
        if args.command == 'compute':
            compute_cfg, _ = load_config(args.data_dir)
            if args.n_jobs is not None:
                compute_cfg = replace(compute_cfg, n_jobs=args.n_jobs)
            run_compute(args.data_dir, compute_cfg, resume=args.resume, verbose=verbose)
            return 0

        if args.command == 'normalize':
            _, curation_cfg = load_config(args.data_dir)
            overrides = {}
            if args.norm is not None:
                overrides['norm_function'] = args.norm
            if args.row_thresh is not None:
                overrides['row_thresh'] = args.row_thresh
            if args.col_thresh is not None:
                overrides['col_thresh'] = args.col_thresh
            run_normalize(args.data_dir, replace(curation_cfg, **overrides), verbose=verbose)
            return 0

        report = run_inspect(args.data_dir, args.snapshot)
        print(report.summary())
        return 0 if report.valid else 1

    except CurationError as e:
        logger.error(f"Curation failed at stage '{e.stage}': {e}")
        return 2
    except (TsMatrixError, FileNotFoundError) as e:
        logger.error(str(e))
        return 1


if __name__ == '__main__':
    sys.exit(main())
