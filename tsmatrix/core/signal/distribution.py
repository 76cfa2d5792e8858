"""
Distribution Engine.

Location, spread and shape of the sample distribution, ignoring time
ordering.
"""

import numpy as np
from typing import Dict, Optional

from tsmatrix.core._stats import finite, kurtosis, skewness, rms


def compute(y: np.ndarray, min_samples: int = 4) -> Optional[Dict[str, float]]:
    """
    Compute distribution statistics.

    Args:
        y: Signal values
        min_samples: Below this many finite samples the master is not applicable

    Returns:
        dict with mean, median, std, iqr, range, skewness, kurtosis, rms,
        or None if too few samples
    """
    y = finite(y)
    if len(y) < min_samples:
        return None

    q1, q3 = np.percentile(y, [25, 75])

    return {
        'mean': float(np.mean(y)),
        'median': float(np.median(y)),
        'std': float(np.std(y, ddof=1)),
        'iqr': float(q3 - q1),
        'range': float(np.max(y) - np.min(y)),
        'skewness': skewness(y),
        'kurtosis': kurtosis(y, fisher=True),
        'rms': rms(y),
    }
