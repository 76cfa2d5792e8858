"""
Tests for the batch scheduler: master fan-out, time attribution, failure
isolation, resumability and parallel execution.
"""

import itertools

import numpy as np
import pytest

from tsmatrix.core.errors import CatalogError, StoreShapeError
from tsmatrix.core.evaluator import MasterEvaluator
from tsmatrix.core.models import Bundle, MasterOperation, Operation, SelectField, TimeSeries, WholeOutput
from tsmatrix.core.quality import Quality
from tsmatrix.core.registry import get_registry
from tsmatrix.core.resolver import OperationResolver
from tsmatrix.core.scheduler import BatchScheduler, compute, group_operations
from tsmatrix.io.catalog import build_catalog


class RecordingResolver(OperationResolver):
    """Remembers every bundle it was asked to resolve."""

    def __init__(self):
        self.seen = []

    def resolve(self, bundle, transform):
        self.seen.append(bundle)
        return super().resolve(bundle, transform)


def counting_master(mop_id, label, counter):
    def func(y):
        counter[label] = counter.get(label, 0) + 1
        return {'mean': float(np.mean(y)), 'max': float(np.max(y)), 'min': float(np.min(y))}
    return MasterOperation(mop_id, label, func=func)


def fields_ops(mop_id, names, start=1):
    return [Operation(start + k, f"{mop_id}_{n}", mop_id, SelectField(n)) for k, n in enumerate(names)]


def two_series():
    return [TimeSeries(1, 'a', np.arange(10.0)), TimeSeries(2, 'b', np.arange(10.0) ** 2)]


class TestMasterFanOut:
    """Each (series, master) pair is evaluated exactly once."""

    def test_one_evaluation_per_series_and_master(self):
        counter = {}
        masters = {1: counting_master(1, 'm1', counter), 2: counting_master(2, 'm2', counter)}
        ops = fields_ops(1, ['mean', 'max', 'min']) + fields_ops(2, ['mean', 'max'], start=4)
        store, report = BatchScheduler(masters).run(two_series(), ops)

        assert counter == {'m1': 2, 'm2': 2}
        assert report.master_evaluations == 4
        assert report.cells_written == 10
        assert (store.quality == Quality.GOOD).all()
        assert store.values[1, 1] == 81.0

    def test_dependents_share_one_bundle(self):
        masters = {1: counting_master(1, 'm1', {})}
        ops = fields_ops(1, ['mean', 'max', 'min'])
        resolver = RecordingResolver()
        BatchScheduler(masters, resolver=resolver).run(two_series()[:1], ops)

        assert len(resolver.seen) == 3
        assert all(isinstance(b, Bundle) for b in resolver.seen)
        assert resolver.seen[0] is resolver.seen[1] is resolver.seen[2]

    def test_unreferenced_master_never_evaluated(self):
        counter = {}
        masters = {1: counting_master(1, 'used', counter), 2: counting_master(2, 'orphan', counter)}
        BatchScheduler(masters).run(two_series(), fields_ops(1, ['mean']))
        assert 'orphan' not in counter

    def test_unknown_master_rejected(self):
        with pytest.raises(CatalogError):
            group_operations(fields_ops(9, ['mean']), {})


class TestTimeAttribution:
    """Full master cost on the first dependent, zero on the rest."""

    def test_first_dependent_carries_cost(self):
        counter = itertools.count()
        evaluator = MasterEvaluator(clock=lambda: next(counter) * 0.25)
        masters = {1: counting_master(1, 'm1', {})}
        ops = fields_ops(1, ['mean', 'max', 'min'])
        store, _ = BatchScheduler(masters, evaluator=evaluator).run(two_series()[:1], ops)

        assert store.calc_time[0].tolist() == [0.25, 0.0, 0.0]
        assert store.calc_time[0].sum() == 0.25

    def test_interleaved_columns(self):
        counter = itertools.count()
        evaluator = MasterEvaluator(clock=lambda: next(counter) * 1.0)
        masters = {1: counting_master(1, 'm1', {}), 2: counting_master(2, 'm2', {})}
        ops = [
            Operation(1, 'a', 2, SelectField('mean')),
            Operation(2, 'b', 1, SelectField('mean')),
            Operation(3, 'c', 2, SelectField('max')),
            Operation(4, 'd', 1, SelectField('max')),
        ]
        store, _ = BatchScheduler(masters, evaluator=evaluator).run(two_series()[:1], ops)
        assert store.calc_time[0].tolist() == [1.0, 1.0, 0.0, 0.0]


class TestFailureIsolation:
    """A raising master degrades only its own dependents."""

    def test_failed_master_marks_dependents_error(self):
        def flaky(y):
            if y[-1] > 50:
                raise RuntimeError("diverged")
            return {'mean': float(np.mean(y))}

        masters = {1: MasterOperation(1, 'flaky', func=flaky), 2: counting_master(2, 'ok', {})}
        ops = [
            Operation(1, 'f_mean', 1, SelectField('mean')),
            Operation(2, 'f_mean2', 1, SelectField('mean')),
            Operation(3, 'ok_mean', 2, SelectField('mean')),
        ]
        store, report = BatchScheduler(masters).run(two_series(), ops)

        # Row 0 (max 9) is fine, row 1 (max 81) fails
        assert (store.quality[0] == Quality.GOOD).all()
        assert store.quality[1].tolist() == [Quality.ERROR, Quality.ERROR, Quality.GOOD]
        assert np.isnan(store.values[1, :2]).all()
        assert store.calc_time[1, :2].tolist() == [0.0, 0.0]
        assert store.values[1, 2] == pytest.approx(28.5)
        assert len(report.failures) == 1
        assert report.failures[0][:2] == (2, 1)

    def test_not_applicable_master(self):
        masters = {1: MasterOperation(1, 'na', func=lambda y: None)}
        ops = [Operation(1, 'x', 1, SelectField('x')), Operation(2, 'whole', 1, WholeOutput())]
        store, report = BatchScheduler(masters).run(two_series(), ops)
        assert (store.quality == Quality.NOT_APPLICABLE).all()
        assert np.isnan(store.values).all()
        assert report.quality_counts['not_applicable'] == 4


class TestResume:
    """Only NOT_COMPUTED cells are recomputed."""

    def test_resume_skips_computed_cells(self):
        counter = {}
        masters = {1: counting_master(1, 'm1', counter), 2: counting_master(2, 'm2', counter)}
        ops = fields_ops(1, ['mean']) + fields_ops(2, ['max'], start=2)
        series = two_series()
        store, _ = BatchScheduler(masters).run(series, ops)

        store.set_cell(1, 1, np.nan, Quality.NOT_COMPUTED, np.nan)
        counter.clear()
        resumed, report = BatchScheduler(masters).run(series, ops, store=store)

        assert counter == {'m2': 1}
        assert report.cells_written == 1
        assert resumed.values[1, 1] == 81.0
        assert (resumed.quality == Quality.GOOD).all()
        # Input store untouched
        assert store.quality[1, 1] == Quality.NOT_COMPUTED

    def test_resume_rejects_mismatched_store(self):
        masters = {1: counting_master(1, 'm1', {})}
        ops = fields_ops(1, ['mean'])
        store, _ = BatchScheduler(masters).run(two_series(), ops)
        with pytest.raises(StoreShapeError):
            BatchScheduler(masters).run(two_series()[:1], ops, store=store)


class TestParallel:
    """joblib row partitioning gives the serial result."""

    def test_parallel_matches_serial(self, series, catalog_dict):
        catalog = build_catalog(catalog_dict, registry=get_registry())
        serial, _ = compute(series, catalog.operations, catalog.masters, n_jobs=1)
        parallel, report = compute(series, catalog.operations, catalog.masters, n_jobs=2)

        np.testing.assert_array_equal(serial.quality, parallel.quality)
        np.testing.assert_allclose(serial.values, parallel.values, equal_nan=True)
        assert report.master_evaluations == len(series) * 3
        assert parallel.ts_ids == [ts.ts_id for ts in series]


class TestBuiltinCatalog:
    """A realistic batch over the built-in masters."""

    def test_quality_and_values(self, series, catalog_dict):
        catalog = build_catalog(catalog_dict)
        store, report = compute(series, catalog.operations, catalog.masters)

        assert store.shape == (len(series), len(catalog.operations))
        assert report.quality_counts['not_computed'] == 0
        for i, ts in enumerate(series):
            assert store.values[i, 0] == pytest.approx(np.mean(ts.data))
            assert store.values[i, 2] == pytest.approx(np.log(np.std(ts.data, ddof=1)))
        assert 'cells' in report.summary()
