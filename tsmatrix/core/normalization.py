"""
Normalization Engine
====================

Column-wise normalization of the curated feature matrix (rows = time
series, columns = operations). Every method is NaN-aware and supports a
train/apply split: parameters are estimated on the training rows only and
then applied to every row.

Methods:
- none: identity (the curator skips the stage entirely)
- zscore: (x - mean) / std
- robust: (x - median) / IQR
- mad: (x - median) / (1.4826 * MAD)
- minmax: scale to [0, 1]
- sigmoid: 1 / (1 + exp(-(x - mean) / std))
- scaled_sigmoid: sigmoid, then rescaled to [0, 1]
- robust_sigmoid: 1 / (1 + exp(-(x - median) / (IQR / 1.35)))
- scaled_robust_sigmoid: robust_sigmoid, then rescaled to [0, 1]
- mixed_sigmoid: robust_sigmoid where IQR > 0, sigmoid otherwise, rescaled

Linear methods keep a zero-spread column's values centred (scale 1.0).
Sigmoid methods saturate instead: a column with zero spread becomes NaN,
which post-normalization re-validation removes.
"""

import warnings
from enum import Enum
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np


class NormMethod(str, Enum):
    """Normalization methods."""
    NONE = "none"
    ZSCORE = "zscore"
    ROBUST = "robust"
    MAD = "mad"
    MINMAX = "minmax"
    SIGMOID = "sigmoid"
    SCALED_SIGMOID = "scaled_sigmoid"
    ROBUST_SIGMOID = "robust_sigmoid"
    SCALED_ROBUST_SIGMOID = "scaled_robust_sigmoid"
    MIXED_SIGMOID = "mixed_sigmoid"


# Legacy spellings accepted on input
ALIASES = {
    'nothing': 'none',
    'identity': 'none',
    'maxmin': 'minmax',
    'scaledsqzscore': 'scaled_robust_sigmoid',
    'scaledrobustsigmoid': 'scaled_robust_sigmoid',
    'robustsigmoid': 'robust_sigmoid',
    'scaledsigmoid': 'scaled_sigmoid',
    'mixedsigmoid': 'mixed_sigmoid',
}

# MAD scale factor for consistency with std (assuming Gaussian)
MAD_SCALE_FACTOR = 1.4826

# IQR of a standard normal; robust sigmoids divide the IQR by this
IQR_NORMAL = 1.35

# Spread below this is treated as zero
SPREAD_EPS = 1e-10


def canonical_method(method: str) -> NormMethod:
    """
    Resolve a method name or alias.

    Raises:
        ValueError: Unknown method
    """
    key = str(method).strip().lower()
    key = ALIASES.get(key, key)
    try:
        return NormMethod(key)
    except ValueError:
        known = ', '.join(m.value for m in NormMethod)
        raise ValueError(f"Unknown normalization method: {method}. Use one of: {known}")


def _train(data: np.ndarray, train_rows: Optional[Sequence[int]]) -> np.ndarray:
    if train_rows is None:
        return data
    return data[np.asarray(train_rows, dtype=np.intp), :]


def _nan_stats(func, data, **kwargs):
    # all-NaN columns legitimately give NaN parameters
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        return func(data, axis=0, keepdims=True, **kwargs)


def _sigmoid(z: np.ndarray) -> np.ndarray:
    with np.errstate(over='ignore'):
        return 1.0 / (1.0 + np.exp(-z))


def _rescale(normalized: np.ndarray, train_rows) -> Tuple[np.ndarray, Dict[str, Any]]:
    """Min-max rescale to [0, 1] using the training rows' range."""
    out, params = compute_minmax(normalized, train_rows=train_rows)
    return out, {'rescale_min': params['data_min'], 'rescale_max': params['data_max']}


# =============================================================================
# LINEAR METHODS
# =============================================================================

def compute_zscore(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
    ddof: int = 0,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Z-score normalization: (x - mean) / std

    Sensitive to outliers; assumes roughly Gaussian columns.

    Args:
        data: N x D matrix, columns normalized independently
        train_rows: Row indices used to estimate mean/std (None = all)
        ddof: Degrees of freedom for std

    Returns:
        Tuple of (normalized_data, params_dict)
    """
    data = np.asarray(data, dtype=np.float64)
    train = _train(data, train_rows)

    mean = _nan_stats(np.nanmean, train)
    std = _nan_stats(np.nanstd, train, ddof=ddof)

    # Constant columns divide by 1.0 and keep their centred values
    std = np.where(std < SPREAD_EPS, 1.0, std)

    normalized = (data - mean) / std
    return normalized, {'method': 'zscore', 'mean': np.squeeze(mean, 0), 'std': np.squeeze(std, 0)}


def compute_robust(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
    quantile_range: Tuple[float, float] = (25.0, 75.0),
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Robust normalization: (x - median) / IQR

    Median and IQR ignore extreme tails, so outliers do not compress the
    scale of the bulk of the column.
    """
    data = np.asarray(data, dtype=np.float64)
    train = _train(data, train_rows)

    median = _nan_stats(np.nanmedian, train)
    q_low, q_high = quantile_range
    q1 = _nan_stats(np.nanpercentile, train, q=q_low)
    q3 = _nan_stats(np.nanpercentile, train, q=q_high)
    iqr = q3 - q1
    iqr = np.where(iqr < SPREAD_EPS, 1.0, iqr)

    normalized = (data - median) / iqr
    return normalized, {'method': 'robust', 'median': np.squeeze(median, 0), 'iqr': np.squeeze(iqr, 0)}


def compute_mad(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
    scale: bool = True,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    MAD normalization: (x - median) / MAD

    MAD = median(|x - median(x)|), scaled by 1.4826 to match the std of a
    Gaussian. 50% breakdown point; MAD is zero for columns where more than
    half the values coincide (falls back to scale 1.0).
    """
    data = np.asarray(data, dtype=np.float64)
    train = _train(data, train_rows)

    median = _nan_stats(np.nanmedian, train)
    mad = _nan_stats(np.nanmedian, np.abs(train - median))
    if scale:
        mad = mad * MAD_SCALE_FACTOR
    mad = np.where(mad < SPREAD_EPS, 1.0, mad)

    normalized = (data - median) / mad
    return normalized, {'method': 'mad', 'median': np.squeeze(median, 0), 'mad': np.squeeze(mad, 0)}


def compute_minmax(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
    feature_range: Tuple[float, float] = (0.0, 1.0),
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Min-max normalization to ``feature_range``.

    Extremely sensitive to outliers. Rows outside the training range map
    outside ``feature_range``.
    """
    data = np.asarray(data, dtype=np.float64)
    train = _train(data, train_rows)
    new_min, new_max = feature_range

    data_min = _nan_stats(np.nanmin, train)
    data_max = _nan_stats(np.nanmax, train)
    data_range = data_max - data_min
    data_range = np.where(data_range < SPREAD_EPS, 1.0, data_range)

    normalized = (data - data_min) / data_range
    normalized = normalized * (new_max - new_min) + new_min

    return normalized, {
        'method': 'minmax',
        'data_min': np.squeeze(data_min, 0),
        'data_max': np.squeeze(data_max, 0),
        'feature_range': feature_range,
    }


# =============================================================================
# SIGMOID METHODS
# =============================================================================

def compute_sigmoid(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
    rescale: bool = False,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Standard sigmoid: 1 / (1 + exp(-(x - mean) / std)).

    Columns with zero std saturate to NaN.
    """
    data = np.asarray(data, dtype=np.float64)
    train = _train(data, train_rows)

    mean = _nan_stats(np.nanmean, train)
    std = _nan_stats(np.nanstd, train, ddof=1)
    std = np.where(std < SPREAD_EPS, np.nan, std)

    normalized = _sigmoid((data - mean) / std)
    params: Dict[str, Any] = {'method': 'sigmoid', 'mean': np.squeeze(mean, 0), 'std': np.squeeze(std, 0)}

    if rescale:
        normalized, extra = _rescale(normalized, train_rows)
        params.update(extra, method='scaled_sigmoid')
    return normalized, params


def compute_robust_sigmoid(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
    rescale: bool = False,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Outlier-robust sigmoid: 1 / (1 + exp(-(x - median) / (IQR / 1.35))).

    Columns with zero IQR saturate to NaN.
    """
    data = np.asarray(data, dtype=np.float64)
    train = _train(data, train_rows)

    median = _nan_stats(np.nanmedian, train)
    iqr = _nan_stats(np.nanpercentile, train, q=75.0) - _nan_stats(np.nanpercentile, train, q=25.0)
    iqr = np.where(iqr < SPREAD_EPS, np.nan, iqr)

    normalized = _sigmoid((data - median) / (iqr / IQR_NORMAL))
    params: Dict[str, Any] = {'method': 'robust_sigmoid', 'median': np.squeeze(median, 0), 'iqr': np.squeeze(iqr, 0)}

    if rescale:
        normalized, extra = _rescale(normalized, train_rows)
        params.update(extra, method='scaled_robust_sigmoid')
    return normalized, params


def compute_mixed_sigmoid(
    data: np.ndarray,
    train_rows: Optional[Sequence[int]] = None,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Robust sigmoid for columns with IQR > 0, standard sigmoid for the rest
    (e.g. mostly-constant columns with a few outliers), rescaled to [0, 1].
    """
    data = np.asarray(data, dtype=np.float64)
    robust, robust_params = compute_robust_sigmoid(data, train_rows)
    standard, _ = compute_sigmoid(data, train_rows)

    use_robust = np.isfinite(robust_params['iqr'])
    mixed = np.where(use_robust[np.newaxis, :], robust, standard)
    mixed, extra = _rescale(mixed, train_rows)

    params = {'method': 'mixed_sigmoid', 'robust_columns': use_robust}
    params.update(extra)
    return mixed, params


# =============================================================================
# DISPATCH
# =============================================================================

def normalize(
    data: np.ndarray,
    method: str = "scaled_robust_sigmoid",
    train_rows: Optional[Sequence[int]] = None,
    **kwargs,
) -> Tuple[np.ndarray, Dict[str, Any]]:
    """
    Unified normalization interface.

    Args:
        data: N x D matrix (rows = time series, columns = operations)
        method: Method name or alias (see module docstring)
        train_rows: Row indices used to fit parameters (None = all rows)
        **kwargs: Method-specific parameters

    Returns:
        Tuple of (normalized_data, params_dict)

    Example:
        >>> data = np.array([[1, 2], [3, 100], [5, 6]])  # Note outlier in col 2
        >>> norm_z, _ = normalize(data, method='zscore')  # Outlier compresses scale
        >>> norm_r, _ = normalize(data, method='robust')  # Robust to outlier
    """
    m = canonical_method(method)
    data = np.asarray(data, dtype=np.float64)

    if m is NormMethod.NONE:
        return data.copy(), {'method': 'none'}
    elif m is NormMethod.ZSCORE:
        return compute_zscore(data, train_rows, **kwargs)
    elif m is NormMethod.ROBUST:
        return compute_robust(data, train_rows, **kwargs)
    elif m is NormMethod.MAD:
        return compute_mad(data, train_rows, **kwargs)
    elif m is NormMethod.MINMAX:
        return compute_minmax(data, train_rows, **kwargs)
    elif m is NormMethod.SIGMOID:
        return compute_sigmoid(data, train_rows)
    elif m is NormMethod.SCALED_SIGMOID:
        return compute_sigmoid(data, train_rows, rescale=True)
    elif m is NormMethod.ROBUST_SIGMOID:
        return compute_robust_sigmoid(data, train_rows)
    elif m is NormMethod.SCALED_ROBUST_SIGMOID:
        return compute_robust_sigmoid(data, train_rows, rescale=True)
    else:
        return compute_mixed_sigmoid(data, train_rows)
