"""
Shared fixtures: small synthetic time series, catalogs and stores.
"""

import numpy as np
import pytest

from tsmatrix.core.models import MasterOperation, Operation, SelectField, TimeSeries
from tsmatrix.core.quality import QUALITY_DTYPE, Quality
from tsmatrix.core.registry import reset_registry
from tsmatrix.core.store import ValueStore


def make_series(n_series=4, length=200, seed=42):
    """Mix of sines, noise and a random walk."""
    rng = np.random.default_rng(seed)
    t = np.arange(length)
    series = []
    for i in range(n_series):
        if i % 3 == 0:
            y = np.sin(2 * np.pi * t / (20 + 5 * i)) + 0.1 * rng.standard_normal(length)
        elif i % 3 == 1:
            y = rng.standard_normal(length)
        else:
            y = np.cumsum(rng.standard_normal(length))
        series.append(TimeSeries(ts_id=i + 1, name=f"ts_{i + 1}", data=y, keywords=('synthetic',)))
    return series


def make_store(values, quality=None):
    """
    Store from a value matrix. Quality defaults to GOOD where the value is
    finite and ERROR elsewhere. All operations point at master 1.
    """
    values = np.asarray(values, dtype=np.float64)
    n_rows, n_cols = values.shape
    if quality is None:
        quality = np.where(np.isfinite(values), Quality.GOOD, Quality.ERROR).astype(QUALITY_DTYPE)
    series = [TimeSeries(ts_id=i + 1, name=f"ts_{i + 1}", data=np.arange(5.0) + i) for i in range(n_rows)]
    ops = [Operation(op_id=j + 1, name=f"op_{j + 1}", mop_id=1, transform=SelectField(f"f{j + 1}"))
           for j in range(n_cols)]
    masters = {1: MasterOperation(mop_id=1, label='m', function='distribution')}
    return ValueStore(
        values=np.where(quality == Quality.GOOD, values, np.nan),
        quality=quality,
        calc_time=np.zeros_like(values),
        time_series=series,
        operations=ops,
        masters=masters,
    )


CATALOG = {
    'masters': [
        {'id': 1, 'label': 'dist', 'function': 'distribution'},
        {'id': 2, 'label': 'ac', 'function': 'autocorr', 'params': {'max_lag': 5}},
        {'id': 3, 'label': 'fmin', 'function': 'first_min', 'params': {'method': 'ac'}},
    ],
    'operations': [
        {'id': 1, 'name': 'DN_mean', 'code': 'dist.mean', 'keywords': ['distribution']},
        {'id': 2, 'name': 'DN_std', 'code': 'dist.std'},
        {'id': 3, 'name': 'DN_std_log', 'code': 'dist.std|log'},
        {'id': 4, 'name': 'CO_ac1', 'code': 'ac.ac1', 'keywords': 'correlation,lag'},
        {'id': 5, 'name': 'CO_firstzero', 'code': 'ac.first_zero'},
        {'id': 6, 'name': 'CO_firstmin', 'code': 'fmin'},
    ],
}


@pytest.fixture(autouse=True)
def fresh_registry():
    """Each test sees an untouched global master-function registry."""
    reset_registry()
    yield
    reset_registry()


@pytest.fixture
def series():
    return make_series()


@pytest.fixture
def catalog_dict():
    return {'masters': [dict(m) for m in CATALOG['masters']],
            'operations': [dict(o) for o in CATALOG['operations']]}
