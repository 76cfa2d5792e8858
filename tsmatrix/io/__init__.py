"""
tsmatrix I/O: catalogs, time series ingestion and snapshot persistence.
"""

from tsmatrix.io.catalog import Catalog, build_catalog, load_catalog, save_catalog
from tsmatrix.io.reader import load_time_series, time_series_frame
from tsmatrix.io.snapshot import SnapshotStore

__all__ = [
    'Catalog',
    'build_catalog',
    'load_catalog',
    'save_catalog',
    'load_time_series',
    'time_series_frame',
    'SnapshotStore',
]
