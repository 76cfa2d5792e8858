"""
Built-in master computations.

Each module exposes ``compute(y, **params)`` returning either a mapping of
field name to sub-result, a bare scalar, or None / NaN for "not
applicable". They are looked up by module name through the master-function
registry and referenced from catalogs as ``function: <module>``.
"""

from . import distribution   # mean, std, skewness, kurtosis, iqr, ...
from . import autocorr       # acf lags, first zero, first 1/e crossing
from . import first_min      # first minimum of ACF or gaussian AMI
from . import automutual     # gaussian automutual information statistics

__all__ = [
    'distribution',
    'autocorr',
    'first_min',
    'automutual',
]
