"""
tsmatrix core: data model, master evaluation, operation resolution, batch
scheduling, the value store and normalization.

Curation lives in ``tsmatrix.core.curation`` and is imported from there
(it depends on ``tsmatrix.config``).
"""

from tsmatrix.core.errors import (
    AllColumnsFiltered,
    AllRowsFiltered,
    CatalogError,
    ConfigError,
    CurationError,
    EvaluationFailure,
    NoGoodValuesAfterNormalization,
    NotApplicableSignal,
    SnapshotNotFound,
    StoreShapeError,
    TsMatrixError,
)
from tsmatrix.core.evaluator import MasterEvaluator, evaluate_master
from tsmatrix.core.models import (
    Bundle,
    Failed,
    MasterOperation,
    NotApplicable,
    Operation,
    ResultBundle,
    SelectField,
    SelectFieldApply,
    TimeSeries,
    Transform,
    WholeOutput,
)
from tsmatrix.core.quality import QUALITY_DTYPE, Quality
from tsmatrix.core.registry import MasterFunctionRegistry, get_registry
from tsmatrix.core.resolver import POST_FUNCTIONS, OperationResolver, parse_transform
from tsmatrix.core.scheduler import BatchReport, BatchScheduler, compute
from tsmatrix.core.store import ValueStore

__all__ = [
    # Errors
    'TsMatrixError',
    'ConfigError',
    'CatalogError',
    'StoreShapeError',
    'SnapshotNotFound',
    'EvaluationFailure',
    'NotApplicableSignal',
    'CurationError',
    'AllRowsFiltered',
    'AllColumnsFiltered',
    'NoGoodValuesAfterNormalization',
    # Model
    'TimeSeries',
    'MasterOperation',
    'Operation',
    'Transform',
    'WholeOutput',
    'SelectField',
    'SelectFieldApply',
    'ResultBundle',
    'NotApplicable',
    'Failed',
    'Bundle',
    'Quality',
    'QUALITY_DTYPE',
    # Computation
    'MasterFunctionRegistry',
    'get_registry',
    'MasterEvaluator',
    'evaluate_master',
    'OperationResolver',
    'parse_transform',
    'POST_FUNCTIONS',
    'BatchScheduler',
    'BatchReport',
    'compute',
    'ValueStore',
]
