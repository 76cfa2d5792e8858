"""
Master Evaluator
================

Runs one master computation on one time series and classifies the
outcome:

    NotApplicable   output is None or a bare NaN, or the computation
                    raised NotApplicableSignal
    Bundle          anything else the computation returned
    Failed          the computation raised; elapsed time reported as 0

Nothing raised by the master escapes ``evaluate``: a failing master only
degrades the quality of its dependent cells.
"""

import logging
import math
import numbers
import time
from typing import Any, Callable, Tuple

from tsmatrix.core.errors import EvaluationFailure, NotApplicableSignal
from tsmatrix.core.models import (
    Bundle,
    Failed,
    MasterOperation,
    NotApplicable,
    ResultBundle,
    TimeSeries,
)


logger = logging.getLogger(__name__)


def _is_not_applicable(output: Any) -> bool:
    """None or a bare real NaN means 'no output for this input'."""
    if output is None:
        return True
    if isinstance(output, numbers.Real) and not isinstance(output, bool):
        return math.isnan(float(output))
    return False


class MasterEvaluator:
    """
    Evaluate master operations with failure isolation and timing.

    Args:
        clock: Monotonic clock returning seconds (injectable for tests)
        n_masters: Total number of masters, only used in progress messages
    """

    def __init__(self, clock: Callable[[], float] = time.perf_counter, n_masters: int = 0):
        self.clock = clock
        self.n_masters = n_masters

    def evaluate(self, series: TimeSeries, master: MasterOperation) -> Tuple[ResultBundle, float]:
        """
        Evaluate ``master`` on ``series``.

        Returns:
            (result bundle, elapsed seconds)
        """
        logger.debug(
            f"[ts_id={series.ts_id}, mop_id={master.mop_id}/{self.n_masters}] {master.code}..."
        )

        if master.func is None:
            message = f"master '{master.label}' has no executable function"
            logger.warning(f"---Error evaluating {master.label} on ts_id={series.ts_id}: {message}")
            return Failed(message=message, error_type='CatalogError'), 0.0

        start = self.clock()
        try:
            output = master.func(series.data)
        except NotApplicableSignal as e:
            elapsed = self.clock() - start
            logger.debug(f"{master.label} not applicable to ts_id={series.ts_id}: {e}")
            return NotApplicable(reason=str(e)), elapsed
        except Exception as e:
            failure = EvaluationFailure(master.label, e)
            logger.warning(f"---Error evaluating {master.code} on ts_id={series.ts_id}: {failure}")
            return Failed(message=str(failure), error_type=type(e).__name__), 0.0
        elapsed = self.clock() - start

        if _is_not_applicable(output):
            logger.debug(f"{master.label} not applicable to ts_id={series.ts_id}")
            return NotApplicable(), elapsed

        logger.debug(f"{master.label} evaluated ({elapsed:.3f}s)")
        return Bundle(output), elapsed


def evaluate_master(series: TimeSeries, master: MasterOperation) -> Tuple[ResultBundle, float]:
    """Convenience wrapper around a default MasterEvaluator."""
    return MasterEvaluator().evaluate(series, master)
