"""
First Minimum Engine.

Lag of the first local minimum of a correlation function, searched
incrementally from lag 1. Returns a bare scalar, so pointer operations
reference it without a field (``first_min_ac``).

Methods:
- ac: linear autocorrelation
- mi: gaussian automutual information, -0.5 * log(1 - r^2)
"""

import numpy as np

from tsmatrix.core._stats import autocorrelation, finite


def gaussian_ami(acf: np.ndarray) -> np.ndarray:
    """Automutual information of a gaussian process from its ACF."""
    r2 = np.clip(acf ** 2, 0.0, 1.0 - 1e-12)
    return -0.5 * np.log(1.0 - r2)


def compute(y: np.ndarray, method: str = 'mi') -> float:
    """
    Find the first minimum of the chosen correlation function.

    Args:
        y: Signal values
        method: 'mi' (default) or 'ac'

    Returns:
        Lag of the first minimum, or NaN (not applicable) when the
        function is still decreasing at the end of the series.

    Raises:
        ValueError: Unknown method
    """
    if method not in ('ac', 'mi'):
        raise ValueError(f"Unknown correlation type: {method!r}")

    y = finite(y)
    if len(y) < 3:
        return np.nan

    corr = autocorrelation(y)
    if method == 'mi':
        corr = gaussian_ami(corr)

    # corr[0] is lag 0 and is maximal, so a rise from lag 1 to 2 is a minimum at 1
    for lag in range(2, len(corr)):
        if lag == 2 and corr[2] > corr[1]:
            return 1.0
        if lag > 2 and corr[lag - 2] > corr[lag - 1] < corr[lag]:
            return float(lag - 1)

    return np.nan
