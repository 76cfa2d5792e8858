"""
Reader: time series ingestion.

Time series arrive in long format, one sample per row:

    ts_id   name        keywords        t   value
    1       sine_01     periodic,test   0   0.00
    1       sine_01     periodic,test   1   0.31
    ...

Only ``ts_id`` and ``value`` are required. Series keep the order in which
their ts_id first appears; samples within a series are ordered by ``t``
when present.
"""

import logging
from pathlib import Path
from typing import List, Sequence

import numpy as np
import polars as pl

from tsmatrix.core.models import TimeSeries


logger = logging.getLogger(__name__)

TIMESERIES_FILENAMES = ('timeseries.parquet', 'timeseries.csv')
REQUIRED_COLUMNS = ('ts_id', 'value')

TIMESERIES_SCHEMA = {
    'ts_id': pl.Int64,
    'name': pl.Utf8,
    'keywords': pl.Utf8,
    't': pl.Int64,
    'value': pl.Float64,
}


def _resolve(path) -> Path:
    p = Path(path)
    if p.is_dir():
        for filename in TIMESERIES_FILENAMES:
            if (p / filename).exists():
                return p / filename
        raise FileNotFoundError(f"No {' or '.join(TIMESERIES_FILENAMES)} in {path}")
    if not p.exists():
        raise FileNotFoundError(f"No time series file at {path}")
    return p


def read_frame(path) -> pl.DataFrame:
    """Read a parquet or CSV time series file into a DataFrame."""
    p = _resolve(path)
    if p.suffix == '.parquet':
        return pl.read_parquet(str(p))
    if p.suffix == '.csv':
        return pl.read_csv(str(p))
    raise ValueError(f"Unsupported time series format: {p.suffix}")


def frame_to_time_series(df: pl.DataFrame) -> List[TimeSeries]:
    """Group a long-format frame into TimeSeries objects."""
    missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
    if missing:
        raise ValueError(f"Time series frame missing required columns: {missing}")

    series = []
    for group in df.partition_by('ts_id', maintain_order=True):
        if 't' in group.columns:
            group = group.sort('t', maintain_order=True)
        ts_id = int(group['ts_id'][0])
        name = group['name'][0] if 'name' in group.columns else None
        keywords = group['keywords'][0] if 'keywords' in group.columns else None
        data = group['value'].cast(pl.Float64).fill_null(np.nan).to_numpy()
        series.append(TimeSeries(
            ts_id=ts_id,
            name=str(name) if name is not None else f"ts_{ts_id}",
            data=data,
            keywords=tuple(k.strip() for k in str(keywords).split(',') if k.strip()) if keywords else (),
        ))
    return series


def time_series_frame(series: Sequence[TimeSeries]) -> pl.DataFrame:
    """Long-format frame for ``series`` (inverse of ``frame_to_time_series``)."""
    cols = {name: [] for name in TIMESERIES_SCHEMA}
    for ts in series:
        n = ts.length
        cols['ts_id'].extend([ts.ts_id] * n)
        cols['name'].extend([ts.name] * n)
        cols['keywords'].extend([','.join(ts.keywords)] * n)
        cols['t'].extend(range(n))
        cols['value'].extend(ts.data.tolist())
    return pl.DataFrame(cols, schema=TIMESERIES_SCHEMA)


def load_time_series(path) -> List[TimeSeries]:
    """
    Load time series from a parquet / CSV file, or from
    ``timeseries.parquet`` / ``timeseries.csv`` inside a directory.
    """
    series = frame_to_time_series(read_frame(path))
    logger.info(f"Loaded {len(series)} time series from {path}")
    return series
