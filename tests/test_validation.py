"""
Tests for store validation reports.
"""

import numpy as np
import pytest

from tsmatrix.core.models import MasterOperation, Operation, SelectField
from tsmatrix.core.quality import Quality
from tsmatrix.validation import StoreValidationReport, ValidationError, validate_store

from conftest import make_store


def good_store():
    return make_store(np.random.default_rng(1).normal(size=(4, 3)))


class TestValidStore:

    def test_passes(self):
        report = validate_store(good_store())
        assert isinstance(report, StoreValidationReport)
        assert report.valid
        assert report.errors == []
        assert report.n_time_series == 4
        assert report.n_operations == 3
        assert report.quality_counts['good'] == 12

    def test_summary_and_dict(self):
        report = validate_store(good_store())
        assert 'Status: PASSED' in report.summary()
        d = report.to_dict()
        assert d['valid'] is True
        assert d['n_masters'] == 1


class TestErrors:

    def test_value_in_bad_cell(self):
        store = good_store()
        store.quality[0, 0] = Quality.ERROR
        report = validate_store(store)
        assert not report.valid
        assert any('bad cell' in e for e in report.errors)

    def test_non_finite_good_cell(self):
        store = good_store()
        store.values[1, 1] = np.inf
        assert not validate_store(store).valid

    def test_dangling_master(self):
        store = good_store()
        store.operations[0] = Operation(1, 'op_1', 42, SelectField('x'))
        report = validate_store(store)
        assert any('unknown masters' in e for e in report.errors)

    def test_duplicate_ids(self):
        store = good_store()
        store.operations[1] = Operation(1, 'dup', 1, SelectField('x'))
        report = validate_store(store)
        assert any('Duplicate op_id' in e for e in report.errors)

    def test_unknown_quality_code(self):
        store = good_store()
        store.quality[0, 0] = 9
        store.values[0, 0] = np.nan
        assert any('unknown quality' in e for e in validate_store(store).errors)

    def test_shape_mismatch(self):
        store = good_store()
        store.calc_time = np.zeros((2, 2))
        report = validate_store(store)
        assert not report.valid
        assert 'calc_time' in report.errors[0]

    def test_raise_on_error(self):
        store = good_store()
        store.quality[0, 0] = Quality.NOT_APPLICABLE
        with pytest.raises(ValidationError) as exc:
            validate_store(store, raise_on_error=True)
        assert exc.value.errors

    def test_explicit_masters(self):
        report = validate_store(good_store(), masters={})
        assert not report.valid


class TestWarnings:

    def test_not_computed(self):
        store = good_store()
        store.set_cell(0, 0, np.nan, Quality.NOT_COMPUTED, np.nan)
        report = validate_store(store)
        assert report.valid
        assert any('not computed' in w for w in report.warnings)

    def test_orphaned_and_non_executable_masters(self):
        store = good_store()
        store.masters[2] = MasterOperation(2, 'orphan')
        report = validate_store(store)
        assert report.orphaned_master_ids == [2]
        assert any('no executable' in w for w in report.warnings)

    def test_constant_operation(self):
        values = np.random.default_rng(2).normal(size=(4, 2))
        values[:, 1] = 3.0
        report = validate_store(make_store(values))
        assert report.valid
        assert report.constant_operation_ids == [2]
