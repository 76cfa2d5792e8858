"""
Tests for quality codes and the data model.
"""

import numpy as np
import pytest

from tsmatrix.core.models import (
    Bundle,
    Failed,
    MasterOperation,
    NotApplicable,
    Operation,
    SelectField,
    SelectFieldApply,
    TimeSeries,
    WholeOutput,
)
from tsmatrix.core.quality import Quality, count_codes, is_good


class TestQuality:
    """Quality code taxonomy."""

    def test_code_values(self):
        assert Quality.GOOD == 0
        assert Quality.ERROR == 1
        assert Quality.NOT_APPLICABLE == 2
        assert Quality.NOT_COMPUTED == 3

    def test_is_good(self):
        codes = np.array([0, 1, 2, 3, 0], dtype=np.int8)
        assert is_good(codes).tolist() == [True, False, False, False, True]

    def test_count_codes(self):
        codes = np.array([[0, 0, 1], [2, 3, 3]], dtype=np.int8)
        assert count_codes(codes) == {'good': 2, 'error': 1, 'not_applicable': 1, 'not_computed': 2}


class TestTimeSeries:
    """Row metadata."""

    def test_data_is_read_only_float(self):
        ts = TimeSeries(ts_id=1, name='a', data=[1, 2, 3])
        assert ts.data.dtype == np.float64
        assert ts.length == 3
        with pytest.raises(ValueError):
            ts.data[0] = 10.0

    def test_source_array_not_aliased(self):
        src = np.arange(4.0)
        ts = TimeSeries(ts_id=1, name='a', data=src)
        src[0] = 99.0
        assert ts.data[0] == 0.0

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            TimeSeries(ts_id=1, name='empty', data=[])

    def test_keywords_tuple(self):
        ts = TimeSeries(ts_id='7', name='a', data=[1.0], keywords=['x', 'y'])
        assert ts.ts_id == 7
        assert ts.keywords == ('x', 'y')


class TestOperations:
    """Masters, transforms and operation code strings."""

    def test_master_code(self):
        m = MasterOperation(mop_id=1, label='ac', function='autocorr', params={'max_lag': 20})
        assert m.code == "autocorr(max_lag=20)"

    def test_operation_code_round_trip(self):
        assert Operation(1, 'a', 2, WholeOutput()).code('fmin') == 'fmin'
        assert Operation(1, 'a', 2, SelectField('ac1')).code('ac') == 'ac.ac1'
        assert Operation(1, 'a', 2, SelectFieldApply('std', 'log', np.log)).code('dist') == 'dist.std|log'

    def test_transform_equality_ignores_callable(self):
        assert SelectFieldApply('x', 'log', np.log) == SelectFieldApply('x', 'log', lambda v: v)


class TestResultBundles:
    """Result bundle variants."""

    def test_bundle_identity(self):
        out = {'a': 1.0}
        b1, b2 = Bundle(out), Bundle(out)
        assert b1 is not b2
        assert b1 != b2
        assert b1 == b1

    def test_value_variants(self):
        assert NotApplicable() == NotApplicable('')
        assert Failed('boom').error_type == 'Exception'
