"""Inline basic statistics shared by the built-in master computations."""

from scipy.stats import kurtosis as _scipy_kurtosis, skew as _scipy_skew
import numpy as np


def finite(y):
    """Flatten to float64 and drop non-finite samples."""
    y = np.asarray(y, dtype=np.float64).ravel()
    return y[np.isfinite(y)]


def kurtosis(y, fisher=True):
    """Kurtosis. fisher=True (default) returns excess kurtosis."""
    y = finite(y)
    if len(y) < 4:
        return np.nan
    return float(_scipy_kurtosis(y, fisher=fisher, nan_policy="omit"))


def skewness(y):
    """Sample skewness."""
    y = finite(y)
    if len(y) < 3:
        return np.nan
    return float(_scipy_skew(y, nan_policy="omit"))


def rms(y):
    """Root mean square."""
    y = finite(y)
    if len(y) == 0:
        return np.nan
    return float(np.sqrt(np.mean(y**2)))


def autocorrelation(y, max_lag=None):
    """
    Autocorrelation function via FFT, lags 0..max_lag.

    Returns an all-NaN vector for a constant series.
    """
    y = finite(y)
    n = len(y)
    if max_lag is None:
        max_lag = n - 1
    max_lag = int(min(max_lag, n - 1))

    if n == 0:
        return np.full(max(max_lag + 1, 0), np.nan)

    centered = y - np.mean(y)
    var = np.dot(centered, centered)
    if var < 1e-15:
        return np.full(max_lag + 1, np.nan)

    size = 1 << int(np.ceil(np.log2(2 * n - 1)))
    spectrum = np.fft.rfft(centered, size)
    acf = np.fft.irfft(spectrum * np.conj(spectrum), size)[:max_lag + 1]
    return acf / var


def sign_changes(y):
    """Number of sign changes in a sequence."""
    y = np.asarray(y, dtype=np.float64)
    if len(y) < 2:
        return 0
    return int(np.sum(y[1:] * y[:-1] < 0))
