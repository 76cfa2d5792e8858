"""
tsmatrix: time-series feature matrix computation and curation.

Public API:
    from tsmatrix import compute, curate

    store, report = compute(series, operations, masters, n_jobs=4)
    result = curate(store, norm_function='scaled_robust_sigmoid')

Layers:
    tsmatrix.core         Data model, master evaluation, resolution,
                          scheduling, value store, normalization, curation
    tsmatrix.io           Catalog YAML, time series ingestion, snapshots
    tsmatrix.validation   Store consistency reports
    tsmatrix.run          Sequencer + CLI (tsmatrix compute|normalize|inspect)
"""

from tsmatrix.core.curation import MatrixCurator, curate
from tsmatrix.core.scheduler import BatchScheduler, compute
from tsmatrix.core.store import ValueStore

__version__ = "0.1.0"

__all__ = ["compute", "curate", "BatchScheduler", "MatrixCurator", "ValueStore"]
