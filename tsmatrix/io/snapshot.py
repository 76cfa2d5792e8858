"""
Snapshot Store: all snapshot reads and writes go through here.

A snapshot is one consistent ValueStore persisted under a name:

    <root>/<name>/
        values.parquet              wide: ts_id + one column per op_id
        quality.parquet             wide, Int8 quality codes
        calc_time.parquet           wide, seconds
        time_series.parquet         long: ts_id, name, keywords, t, value
        operations.parquet          op_id, name, mop_id, code, keywords
        master_operations.parquet   mop_id, label, function, params
        normalization.yaml          only for curated snapshots
        snapshot.yaml               shape, quality counts, file list

Files are written into a hidden temporary directory which is then
renamed into place, so a reader never sees a half-written snapshot.
"""

import logging
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import numpy as np
import polars as pl
import yaml

from tsmatrix.core.curation import NormalizationInfo
from tsmatrix.core.errors import CatalogError, SnapshotNotFound, StoreShapeError
from tsmatrix.core.models import MasterOperation, Operation
from tsmatrix.core.quality import QUALITY_DTYPE
from tsmatrix.core.registry import MasterFunctionRegistry, get_registry
from tsmatrix.core.resolver import parse_transform
from tsmatrix.core.store import ValueStore
from tsmatrix.io.reader import frame_to_time_series, time_series_frame


logger = logging.getLogger(__name__)

MANIFEST_FILENAME = 'snapshot.yaml'
NORMALIZATION_FILENAME = 'normalization.yaml'

MATRIX_FILES = {
    'values': ('values.parquet', pl.Float64),
    'quality': ('quality.parquet', pl.Int8),
    'calc_time': ('calc_time.parquet', pl.Float64),
}


# =============================================================================
# FRAME CONVERSION
# =============================================================================

def matrix_frame(ts_ids: Sequence[int], op_ids: Sequence[int], matrix: np.ndarray, dtype) -> pl.DataFrame:
    """Wide frame: ts_id column, then one column per op_id."""
    columns = [pl.Series('ts_id', list(ts_ids), dtype=pl.Int64)]
    columns += [pl.Series(str(op_id), matrix[:, j], dtype=dtype) for j, op_id in enumerate(op_ids)]
    return pl.DataFrame(columns)


def frame_matrix(df: pl.DataFrame, op_ids: Sequence[int], dtype) -> np.ndarray:
    """Inverse of ``matrix_frame``, columns ordered by ``op_ids``."""
    if not op_ids:
        return np.empty((df.height, 0), dtype=dtype)
    names = [str(op_id) for op_id in op_ids]
    missing = [c for c in names if c not in df.columns]
    if missing:
        raise StoreShapeError(f"Matrix file is missing operation columns: {missing}")
    return df.select(names).to_numpy().astype(dtype)


def operations_frame(operations: Sequence[Operation], masters: Dict[int, MasterOperation]) -> pl.DataFrame:
    rows = {'op_id': [], 'name': [], 'mop_id': [], 'code': [], 'keywords': []}
    for op in operations:
        if op.mop_id not in masters:
            raise CatalogError(f"Operation {op.op_id} ({op.name}) references unknown master {op.mop_id}")
        rows['op_id'].append(op.op_id)
        rows['name'].append(op.name)
        rows['mop_id'].append(op.mop_id)
        rows['code'].append(op.code(masters[op.mop_id].label))
        rows['keywords'].append(','.join(op.keywords))
    return pl.DataFrame(rows, schema={
        'op_id': pl.Int64, 'name': pl.Utf8, 'mop_id': pl.Int64, 'code': pl.Utf8, 'keywords': pl.Utf8,
    })


def masters_frame(masters: Dict[int, MasterOperation]) -> pl.DataFrame:
    rows = {'mop_id': [], 'label': [], 'function': [], 'params': []}
    for mop_id, m in masters.items():
        rows['mop_id'].append(mop_id)
        rows['label'].append(m.label)
        rows['function'].append(m.function)
        rows['params'].append(yaml.safe_dump(dict(m.params), default_flow_style=True).strip())
    return pl.DataFrame(rows, schema={
        'mop_id': pl.Int64, 'label': pl.Utf8, 'function': pl.Utf8, 'params': pl.Utf8,
    })


def frame_masters(df: pl.DataFrame, registry: MasterFunctionRegistry) -> Dict[int, MasterOperation]:
    """
    Rebuild master operations from the registry. A master whose function is
    not registered is kept without an executable (evaluating it fails).
    """
    masters = {}
    for row in df.iter_rows(named=True):
        mop_id = int(row['mop_id'])
        params = yaml.safe_load(row['params'] or '{}') or {}
        function = row['function'] or row['label']
        if registry.has_function(function):
            masters[mop_id] = registry.build_master(mop_id, row['label'], function, params)
        else:
            logger.warning(f"Master {mop_id} ({row['label']}): function '{function}' is not registered; "
                           f"it will fail if evaluated")
            masters[mop_id] = MasterOperation(mop_id=mop_id, label=row['label'], function=function, params=params)
    return masters


def frame_operations(df: pl.DataFrame) -> List[Operation]:
    operations = []
    for row in df.iter_rows(named=True):
        _, transform = parse_transform(row['code'])
        keywords = row['keywords'] or ''
        operations.append(Operation(
            op_id=row['op_id'],
            name=row['name'],
            mop_id=row['mop_id'],
            transform=transform,
            keywords=tuple(k for k in keywords.split(',') if k),
        ))
    return operations


# =============================================================================
# STORE
# =============================================================================

def _check_name(name: str) -> str:
    if not name or '/' in name or '\\' in name or name.startswith('.'):
        raise ValueError(f"Invalid snapshot name: {name!r}")
    return name


class SnapshotStore:
    """
    Save and load named snapshots under ``root``.

    Args:
        root: Directory holding one subdirectory per snapshot
        registry: Master-function registry used to rebuild masters on load
        verbose: Print written paths
    """

    def __init__(self, root, registry: Optional[MasterFunctionRegistry] = None, verbose: bool = False):
        self.root = Path(root)
        self.registry = registry or get_registry()
        self.verbose = verbose

    def path(self, name: str) -> Path:
        return self.root / _check_name(name)

    def exists(self, name: str) -> bool:
        return (self.path(name) / MANIFEST_FILENAME).exists()

    def list_snapshots(self) -> List[str]:
        if not self.root.exists():
            return []
        return sorted(
            p.name for p in self.root.iterdir()
            if p.is_dir() and not p.name.startswith('.') and (p / MANIFEST_FILENAME).exists()
        )

    def save(self, name: str, store: ValueStore, info: Optional[NormalizationInfo] = None) -> Path:
        """
        Persist ``store`` (and the normalization record, if any) as ``name``,
        replacing any existing snapshot of that name.
        """
        store.check_shape()
        op_ids = store.op_ids
        if len(set(op_ids)) != len(op_ids):
            raise StoreShapeError("Duplicate op_id in store; cannot persist")

        target = self.path(name)
        self.root.mkdir(parents=True, exist_ok=True)
        tmp = Path(tempfile.mkdtemp(prefix=f".{name}-", dir=self.root))
        try:
            ts_ids = store.ts_ids
            for attr, (filename, dtype) in MATRIX_FILES.items():
                matrix_frame(ts_ids, op_ids, getattr(store, attr), dtype).write_parquet(str(tmp / filename))
            time_series_frame(store.time_series).write_parquet(str(tmp / 'time_series.parquet'))
            operations_frame(store.operations, store.masters).write_parquet(str(tmp / 'operations.parquet'))
            masters_frame(store.masters).write_parquet(str(tmp / 'master_operations.parquet'))

            if info is not None:
                with open(tmp / NORMALIZATION_FILENAME, 'w') as f:
                    yaml.safe_dump(info.to_dict(), f, default_flow_style=False, sort_keys=False)

            manifest = {
                'name': name,
                'created': datetime.now(timezone.utc).isoformat(),
                'n_time_series': store.n_rows,
                'n_operations': store.n_cols,
                'n_masters': len(store.masters),
                'quality_counts': store.quality_counts(),
                'normalized': info is not None,
                'files': sorted(p.name for p in tmp.iterdir()),
            }
            with open(tmp / MANIFEST_FILENAME, 'w') as f:
                yaml.safe_dump(manifest, f, default_flow_style=False, sort_keys=False)

            if target.exists():
                old = target.with_name(f".{name}-old")
                if old.exists():
                    shutil.rmtree(old)
                target.rename(old)
                tmp.rename(target)
                shutil.rmtree(old)
            else:
                tmp.rename(target)
        except BaseException:
            shutil.rmtree(tmp, ignore_errors=True)
            raise

        logger.info(f"Saved snapshot '{name}' ({store.n_rows} x {store.n_cols}) to {target}")
        if self.verbose:
            print(f"  -> {target} ({store.n_rows} x {store.n_cols})")
        return target

    def load(self, name: str) -> ValueStore:
        """
        Load snapshot ``name``.

        Raises:
            SnapshotNotFound: No snapshot of that name
        """
        if not self.exists(name):
            available = ", ".join(self.list_snapshots()) or "none"
            raise SnapshotNotFound(f"No snapshot '{name}' in {self.root}. Available: {available}")

        d = self.path(name)
        operations = frame_operations(pl.read_parquet(str(d / 'operations.parquet')))
        masters = frame_masters(pl.read_parquet(str(d / 'master_operations.parquet')), self.registry)
        series = {ts.ts_id: ts for ts in frame_to_time_series(pl.read_parquet(str(d / 'time_series.parquet')))}

        op_ids = [op.op_id for op in operations]
        matrices = {}
        row_ids = None
        for attr, (filename, _) in MATRIX_FILES.items():
            df = pl.read_parquet(str(d / filename))
            ids = df['ts_id'].to_list()
            if row_ids is None:
                row_ids = ids
            elif ids != row_ids:
                raise StoreShapeError(f"{filename} rows disagree with values.parquet")
            dtype = QUALITY_DTYPE if attr == 'quality' else np.float64
            matrices[attr] = frame_matrix(df, op_ids, dtype)

        missing = [i for i in row_ids if i not in series]
        if missing:
            raise StoreShapeError(f"time_series.parquet is missing ts_ids {missing}")

        store = ValueStore(
            values=matrices['values'],
            quality=matrices['quality'],
            calc_time=matrices['calc_time'],
            time_series=[series[i] for i in row_ids],
            operations=operations,
            masters=masters,
        )
        logger.info(f"Loaded snapshot '{name}' ({store.n_rows} x {store.n_cols}) from {d}")
        return store

    def load_info(self, name: str) -> Optional[NormalizationInfo]:
        """Normalization record of a curated snapshot (None for raw ones)."""
        if not self.exists(name):
            raise SnapshotNotFound(f"No snapshot '{name}' in {self.root}")
        p = self.path(name) / NORMALIZATION_FILENAME
        if not p.exists():
            return None
        with open(p) as f:
            return NormalizationInfo.from_dict(yaml.safe_load(f))

    def manifest(self, name: str) -> Dict:
        if not self.exists(name):
            raise SnapshotNotFound(f"No snapshot '{name}' in {self.root}")
        with open(self.path(name) / MANIFEST_FILENAME) as f:
            return yaml.safe_load(f)
