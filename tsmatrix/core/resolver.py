"""
Operation Resolver
==================

Turns a master's result bundle into one (value, quality) cell for a
pointer operation.

Precedence:
    1. Failed                                   -> (NaN, ERROR)
    2. NotApplicable                            -> (NaN, NOT_APPLICABLE)
    3. field missing / transform raised /
       result not a finite real scalar          -> (NaN, ERROR)
    4. otherwise                                -> (value, GOOD)

Operation code strings are parsed into transform variants once, when the
catalog is loaded:

    "label"            WholeOutput()
    "label.field"      SelectField("field")
    "label.a.b|log"    SelectFieldApply("a.b", "log", np.log)
"""

import logging
import math
import numbers
from collections.abc import Mapping
from typing import Any, Callable, Dict, Tuple

import numpy as np

from tsmatrix.core.errors import CatalogError
from tsmatrix.core.models import (
    Bundle,
    Failed,
    NotApplicable,
    ResultBundle,
    SelectField,
    SelectFieldApply,
    Transform,
    WholeOutput,
)
from tsmatrix.core.quality import Quality


logger = logging.getLogger(__name__)


def _reciprocal(x):
    return 1.0 / np.asarray(x, dtype=np.float64)


# Scalar post-functions available to "field|fn" operation codes
POST_FUNCTIONS: Dict[str, Callable[[Any], Any]] = {
    'abs': np.abs,
    'neg': np.negative,
    'log': np.log,
    'log10': np.log10,
    'sqrt': np.sqrt,
    'exp': np.exp,
    'square': np.square,
    'reciprocal': _reciprocal,
}


class _MissingField(LookupError):
    pass


# =============================================================================
# PARSING
# =============================================================================

def parse_transform(code: str) -> Tuple[str, Transform]:
    """
    Split an operation code into (master label, transform).

    Raises:
        CatalogError: Empty label or field, or unknown post-function
    """
    if not isinstance(code, str) or not code.strip():
        raise CatalogError(f"Empty operation code: {code!r}")

    code = code.strip()
    selector, sep, fn_name = code.partition('|')
    label, dot, field_path = selector.partition('.')

    if not label:
        raise CatalogError(f"Operation code {code!r} has no master label")

    if not dot:
        if sep:
            raise CatalogError(f"Operation code {code!r} applies a function without a field")
        return label, WholeOutput()

    if not field_path or any(not part for part in field_path.split('.')):
        raise CatalogError(f"Operation code {code!r} has an empty field name")

    if not sep:
        return label, SelectField(field_path)

    fn_name = fn_name.strip()
    if fn_name not in POST_FUNCTIONS:
        available = ", ".join(sorted(POST_FUNCTIONS))
        raise CatalogError(f"Unknown post-function {fn_name!r} in {code!r}. Available: {available}")
    return label, SelectFieldApply(field_path, fn_name, POST_FUNCTIONS[fn_name])


# =============================================================================
# RESOLUTION
# =============================================================================

def _lookup(output: Any, path: str) -> Any:
    """Walk a dotted path through nested mappings."""
    node = output
    for part in path.split('.'):
        if not isinstance(node, Mapping) or part not in node:
            raise _MissingField(path)
        node = node[part]
    return node


def _as_real_scalar(value: Any) -> float:
    """
    Coerce to a finite real float, or raise ValueError.

    Accepts Python / numpy real scalars and size-1 real arrays.
    """
    if isinstance(value, (bool, np.bool_)):
        return float(value)
    if isinstance(value, np.ndarray):
        if value.size != 1:
            raise ValueError(f"expected a scalar, got array of shape {value.shape}")
        if np.iscomplexobj(value):
            raise ValueError("complex result")
        value = value.reshape(()).item()
    if isinstance(value, numbers.Complex) and not isinstance(value, numbers.Real):
        raise ValueError("complex result")
    if not isinstance(value, numbers.Real):
        raise ValueError(f"expected a real scalar, got {type(value).__name__}")
    value = float(value)
    if not math.isfinite(value):
        raise ValueError("non-finite result")
    return value


class OperationResolver:
    """Resolve (bundle, transform) pairs into (value, quality) cells."""

    def extract(self, output: Any, transform: Transform) -> Any:
        """Apply the transform to a successful master output."""
        if isinstance(transform, WholeOutput):
            if isinstance(output, Mapping):
                raise _MissingField('<whole output is a mapping>')
            return output
        if isinstance(transform, SelectField):
            return _lookup(output, transform.name)
        if isinstance(transform, SelectFieldApply):
            with np.errstate(all='ignore'):
                return transform.fn(_lookup(output, transform.name))
        raise TypeError(f"Unknown transform type: {type(transform).__name__}")

    def resolve(self, bundle: ResultBundle, transform: Transform) -> Tuple[float, Quality]:
        """Total mapping from (bundle, transform) to (value, quality)."""
        if isinstance(bundle, Failed):
            return np.nan, Quality.ERROR
        if isinstance(bundle, NotApplicable):
            return np.nan, Quality.NOT_APPLICABLE
        if not isinstance(bundle, Bundle):
            logger.warning(f"Unrecognised result bundle {type(bundle).__name__}; marking ERROR")
            return np.nan, Quality.ERROR

        try:
            value = _as_real_scalar(self.extract(bundle.output, transform))
        except _MissingField as e:
            logger.debug(f"Field {e} missing from master output")
            return np.nan, Quality.ERROR
        except Exception as e:
            logger.debug(f"Transform {transform!r} failed: {e}")
            return np.nan, Quality.ERROR

        return value, Quality.GOOD
