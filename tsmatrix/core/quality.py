"""
Quality Codes
=============

Every cell of the value matrix carries a small integer quality code.
The code alone decides whether the value is trustworthy:

    GOOD            value is a finite real scalar
    ERROR           master failed, field missing, or transform misbehaved
    NOT_APPLICABLE  master legitimately has no output for this series
    NOT_COMPUTED    cell has not been evaluated yet

Anything other than GOOD is a bad cell and its value must be NaN.
"""

from enum import IntEnum
from typing import Dict

import numpy as np


class Quality(IntEnum):
    """Cell quality taxonomy."""
    GOOD = 0
    ERROR = 1
    NOT_APPLICABLE = 2
    NOT_COMPUTED = 3


# Storage dtype for quality matrices
QUALITY_DTYPE = np.int8


def is_good(codes: np.ndarray) -> np.ndarray:
    """Boolean mask of GOOD cells."""
    return np.asarray(codes) == Quality.GOOD


def count_codes(codes: np.ndarray) -> Dict[str, int]:
    """Count cells per quality code, keyed by lower-case code name."""
    codes = np.asarray(codes)
    return {q.name.lower(): int(np.sum(codes == q)) for q in Quality}
