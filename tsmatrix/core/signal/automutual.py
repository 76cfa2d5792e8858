"""
Automutual Information Engine.

Statistics on the gaussian automutual information (AMI) curve over a range
of time delays:

- ami1 .. amiN: raw AMI values (NaN beyond half the series length)
- mami, stdami: mean and std over the computed delays
- fmmi: lag of the first extremum (or the number of delays if none)
- pextrema: proportion of delays at an extremum
- pmaxima, modeperiodmax, pmodeperiodmax: spacing of local maxima and
  how regular it is (same for minima: pminima, modeperiodmin, pmodeperiodmin)
- pcrossmean, pcrossmedian, pcrossq10, pcrossq90: proportion of level
  crossings at the mean, median and 10th / 90th percentiles
- amiac1: lag-1 autocorrelation of the AMI curve
"""

import numpy as np
from typing import Dict, Any, Optional

from tsmatrix.core._stats import autocorrelation, finite, sign_changes
from tsmatrix.core.signal.first_min import gaussian_ami


def _periodicity(peaks: np.ndarray, n_ami: int):
    """Proportion of peak spacings, modal spacing and its share."""
    spacing = np.diff(peaks)
    if len(spacing) == 0:
        return 0.0, np.nan, np.nan
    values, counts = np.unique(spacing, return_counts=True)
    mode = values[np.argmax(counts)]
    return (len(spacing) / (n_ami // 2), float(mode),
            float(np.sum(spacing == mode)) / len(spacing))


def compute(y: np.ndarray, max_tau: Optional[int] = None) -> Optional[Dict[str, Any]]:
    """
    Compute automutual information statistics.

    Args:
        y: Signal values
        max_tau: Maximum delay (default ceil(N/4)); trimmed to ceil(N/2)

    Returns:
        dict of AMI statistics, or None for series too short to give at
        least three delays
    """
    y = finite(y)
    n = len(y)
    if max_tau is None:
        max_tau = int(np.ceil(n / 4))
    requested = int(max_tau)
    max_tau = min(requested, int(np.ceil(n / 2)), n - 1)

    if max_tau < 3:
        return None

    acf = autocorrelation(y, max_lag=max_tau)
    if np.all(np.isnan(acf)):
        raise ValueError("automutual information undefined for constant series")

    ami = gaussian_ami(acf[1:max_tau + 1])
    n_ami = len(ami)

    out: Dict[str, Any] = {}
    for tau in range(1, requested + 1):
        out[f'ami{tau}'] = float(ami[tau - 1]) if tau <= n_ami else np.nan

    out['mami'] = float(np.mean(ami))
    out['stdami'] = float(np.std(ami, ddof=1))

    dami = np.diff(ami)
    extrema = np.where(dami[:-1] * dami[1:] < 0)[0]
    out['pextrema'] = len(extrema) / (n_ami - 1)
    out['fmmi'] = float(n_ami if len(extrema) == 0 else extrema[0] + 1)

    maxima = np.where((dami[:-1] > 0) & (dami[1:] < 0))[0] + 1
    out['pmaxima'], out['modeperiodmax'], out['pmodeperiodmax'] = _periodicity(maxima, n_ami)
    minima = np.where((dami[:-1] < 0) & (dami[1:] > 0))[0] + 1
    out['pminima'], out['modeperiodmin'], out['pmodeperiodmin'] = _periodicity(minima, n_ami)

    out['pcrossmean'] = sign_changes(ami - np.mean(ami)) / (n_ami - 1)
    out['pcrossmedian'] = sign_changes(ami - np.median(ami)) / (n_ami - 1)
    out['pcrossq10'] = sign_changes(ami - np.quantile(ami, 0.1)) / (n_ami - 1)
    out['pcrossq90'] = sign_changes(ami - np.quantile(ami, 0.9)) / (n_ami - 1)

    ami_acf = autocorrelation(ami, max_lag=1)
    out['amiac1'] = float(ami_acf[1]) if len(ami_acf) > 1 else np.nan
    return out
