"""
Autocorrelation Engine.

Linear autocorrelation structure: raw ACF values at the first lags plus
the usual decay markers (first zero crossing, first 1/e crossing).
"""

import numpy as np
from typing import Dict, Any, Optional

from tsmatrix.core._stats import autocorrelation, finite


def _first_crossing(acf: np.ndarray, level: float) -> float:
    """First lag at which the ACF drops below ``level``; NaN if never."""
    below = np.where(acf[1:] < level)[0]
    if len(below) == 0:
        return np.nan
    return float(below[0] + 1)


def compute(y: np.ndarray, max_lag: int = 10) -> Optional[Dict[str, Any]]:
    """
    Compute autocorrelation features.

    Args:
        y: Signal values
        max_lag: Number of raw lags reported as ``ac1`` .. ``ac<max_lag>``

    Returns:
        dict with ac1..acN, first_zero, first_1e, sum_sq (sum of squared
        ACF over the reported lags). None for series shorter than 3 samples.

    Raises:
        ValueError: For a constant series (ACF undefined)
    """
    y = finite(y)
    n = len(y)
    if n < 3:
        return None

    acf = autocorrelation(y)
    if np.all(np.isnan(acf)):
        raise ValueError("autocorrelation undefined for constant series")

    out: Dict[str, Any] = {}
    for lag in range(1, max_lag + 1):
        out[f'ac{lag}'] = float(acf[lag]) if lag < len(acf) else np.nan

    out['first_zero'] = _first_crossing(acf, 0.0)
    out['first_1e'] = _first_crossing(acf, 1.0 / np.e)
    reported = acf[1:max_lag + 1]
    out['sum_sq'] = float(np.sum(reported ** 2))
    out['acf'] = acf[:max_lag + 1]
    return out
