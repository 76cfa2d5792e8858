"""
Tests for the built-in master computations and the function registry.
"""

import numpy as np
import pytest

from tsmatrix.core.errors import CatalogError
from tsmatrix.core.registry import BUILTIN_FUNCTIONS, MasterFunctionRegistry, get_registry
from tsmatrix.core.signal import automutual, autocorr, distribution, first_min


class TestDistribution:

    def test_known_values(self):
        y = np.array([1.0, 2.0, 3.0, 4.0, 5.0])
        out = distribution.compute(y)
        assert out['mean'] == 3.0
        assert out['median'] == 3.0
        assert out['range'] == 4.0
        assert out['iqr'] == 2.0
        assert out['std'] == pytest.approx(np.sqrt(2.5))
        assert out['skewness'] == pytest.approx(0.0)
        assert out['rms'] == pytest.approx(np.sqrt(11.0))

    def test_too_short(self):
        assert distribution.compute(np.array([1.0, 2.0])) is None

    def test_ignores_non_finite(self):
        out = distribution.compute(np.array([1.0, np.nan, 2.0, 3.0, np.inf, 4.0]))
        assert out['mean'] == 2.5


class TestAutocorr:

    def test_sine(self):
        t = np.arange(400)
        out = autocorr.compute(np.sin(2 * np.pi * t / 40), max_lag=3)
        assert out['ac1'] == pytest.approx(np.cos(2 * np.pi / 40), abs=0.02)
        assert out['first_zero'] == pytest.approx(10, abs=1)
        assert set(out) >= {'ac1', 'ac2', 'ac3', 'first_zero', 'first_1e', 'sum_sq', 'acf'}
        assert out['acf'].shape == (4,)

    def test_short(self):
        assert autocorr.compute(np.array([1.0, 2.0])) is None

    def test_constant_raises(self):
        with pytest.raises(ValueError):
            autocorr.compute(np.ones(50))


class TestFirstMin:

    def test_sine_ac(self):
        t = np.arange(1000)
        lag = first_min.compute(np.sin(2 * np.pi * t / 50), method='ac')
        assert lag == pytest.approx(25, abs=2)

    def test_sine_mi(self):
        t = np.arange(1000)
        lag = first_min.compute(np.sin(2 * np.pi * t / 50), method='mi')
        assert 10 <= lag <= 15

    def test_monotone_is_nan(self):
        assert np.isnan(first_min.compute(np.array([1.0, 2.0, 4.0]), method='ac'))

    def test_default_is_mutual_information(self):
        y = np.sin(2 * np.pi * np.arange(1000) / 50)
        assert first_min.compute(y) == first_min.compute(y, method='mi')
        assert first_min.compute(y) != first_min.compute(y, method='ac')

    def test_unknown_method(self):
        with pytest.raises(ValueError):
            first_min.compute(np.arange(10.0), method='xcorr')


class TestAutomutual:

    def test_fields(self):
        rng = np.random.default_rng(3)
        out = automutual.compute(rng.standard_normal(200), max_tau=10)
        for key in ('ami1', 'ami10', 'mami', 'stdami', 'pextrema', 'fmmi', 'pcrossmean', 'pcrossmedian', 'amiac1',
                    'pmaxima', 'modeperiodmax', 'pmodeperiodmax', 'pminima', 'modeperiodmin',
                    'pmodeperiodmin', 'pcrossq10', 'pcrossq90'):
            assert key in out
        assert 0.0 <= out['pextrema'] <= 1.0
        assert out['ami1'] >= 0.0

    def test_periodicity_of_sine(self):
        y = np.sin(2 * np.pi * np.arange(2000) / 20)
        out = automutual.compute(y, max_tau=100)
        assert out['modeperiodmax'] == 10.0
        assert out['pmodeperiodmax'] == 1.0
        assert out['modeperiodmin'] == 10.0
        assert out['pmaxima'] == pytest.approx(8 / 50)
        assert 0.0 < out['pcrossq10'] <= 1.0
        assert 0.0 < out['pcrossq90'] <= 1.0

    def test_no_repeated_peaks(self):
        rng = np.random.default_rng(5)
        out = automutual.compute(rng.standard_normal(100), max_tau=3)
        assert out['pmaxima'] == 0.0
        assert np.isnan(out['modeperiodmax'])
        assert np.isnan(out['pmodeperiodmin'])

    def test_requested_beyond_half_length(self):
        out = automutual.compute(np.sin(np.arange(20) / 2.0), max_tau=15)
        assert np.isnan(out['ami15'])
        assert np.isfinite(out['ami10'])

    def test_too_short(self):
        assert automutual.compute(np.arange(4.0)) is None


class TestRegistry:

    def test_builtins_listed(self):
        assert set(BUILTIN_FUNCTIONS) <= set(get_registry().list_functions())

    def test_lazy_compute(self):
        assert get_registry().get_compute_func('distribution') is distribution.compute

    def test_unknown(self):
        with pytest.raises(CatalogError):
            get_registry().get_compute_func('wavelet')

    def test_register_decorator(self):
        registry = MasterFunctionRegistry(builtins=False)

        @registry.register('peak')
        def peak(y, scale=1.0):
            return float(np.max(y)) * scale

        master = registry.build_master(5, 'pk', 'peak', {'scale': 2.0})
        assert master.func(np.array([1.0, 3.0])) == 6.0
        assert master.code == "peak(scale=2.0)"
        assert registry.list_functions() == ['peak']
