"""
Tests for column-wise normalization transforms.
"""

import numpy as np
import pytest

from tsmatrix.core.normalization import NormMethod, canonical_method, normalize


@pytest.fixture
def data():
    rng = np.random.default_rng(0)
    x = rng.normal(loc=[0.0, 10.0, -5.0], scale=[1.0, 3.0, 0.5], size=(50, 3))
    x[3, 1] = np.nan
    return x


class TestAliases:

    @pytest.mark.parametrize('name,expected', [
        ('none', NormMethod.NONE),
        ('nothing', NormMethod.NONE),
        ('zscore', NormMethod.ZSCORE),
        ('scaledSQzscore', NormMethod.SCALED_ROBUST_SIGMOID),
        ('scaled_robust_sigmoid', NormMethod.SCALED_ROBUST_SIGMOID),
        ('mixedSigmoid', NormMethod.MIXED_SIGMOID),
    ])
    def test_canonical(self, name, expected):
        assert canonical_method(name) is expected

    def test_unknown(self):
        with pytest.raises(ValueError):
            canonical_method('wavelet')


class TestLinear:

    def test_none_is_identity_copy(self, data):
        out, params = normalize(data, 'none')
        np.testing.assert_array_equal(out, data)
        assert out is not data
        assert params['method'] == 'none'

    def test_zscore(self, data):
        out, _ = normalize(data, 'zscore')
        np.testing.assert_allclose(np.nanmean(out, axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(np.nanstd(out, axis=0), 1.0, atol=1e-12)
        assert np.isnan(out[3, 1])

    def test_minmax(self, data):
        out, _ = normalize(data, 'minmax')
        np.testing.assert_allclose(np.nanmin(out, axis=0), 0.0)
        np.testing.assert_allclose(np.nanmax(out, axis=0), 1.0)

    def test_zero_spread_column(self):
        x = np.column_stack([np.ones(5), np.arange(5.0)])
        out, _ = normalize(x, 'zscore')
        assert np.isfinite(out).all()
        np.testing.assert_allclose(out[:, 0], 0.0)

    def test_train_rows(self, data):
        out, params = normalize(data, 'zscore', train_rows=list(range(10)))
        np.testing.assert_allclose(np.mean(out[:10, 0]), 0.0, atol=1e-12)
        np.testing.assert_allclose(params['mean'][0], np.mean(data[:10, 0]))


class TestSigmoid:

    @pytest.mark.parametrize('method', ['sigmoid', 'robust_sigmoid'])
    def test_in_unit_interval(self, data, method):
        out, _ = normalize(data, method)
        finite = out[np.isfinite(out)]
        assert ((finite > 0) & (finite < 1)).all()

    @pytest.mark.parametrize('method', ['scaled_sigmoid', 'scaled_robust_sigmoid', 'mixed_sigmoid'])
    def test_scaled_spans_unit_interval(self, data, method):
        out, _ = normalize(data, method)
        np.testing.assert_allclose(np.nanmin(out, axis=0), 0.0, atol=1e-12)
        np.testing.assert_allclose(np.nanmax(out, axis=0), 1.0, atol=1e-12)

    def test_zero_iqr_saturates(self):
        x = np.column_stack([[0.0, 0.0, 0.0, 0.0, 1.0], np.arange(5.0)])
        out, _ = normalize(x, 'scaled_robust_sigmoid')
        assert np.isnan(out[:, 0]).all()
        assert np.isfinite(out[:, 1]).all()

    def test_mixed_falls_back_to_sigmoid(self):
        x = np.column_stack([[0.0, 0.0, 0.0, 0.0, 1.0], np.arange(5.0)])
        out, params = normalize(x, 'mixed_sigmoid')
        assert np.isfinite(out).all()
        assert params['robust_columns'].tolist() == [False, True]

    def test_monotone(self, data):
        out, _ = normalize(data, 'scaled_robust_sigmoid')
        order = np.argsort(data[:, 0])
        assert np.all(np.diff(out[order, 0]) >= 0)
