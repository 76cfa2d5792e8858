"""
Store Validation

Consistency checks for a ValueStore before it is curated or persisted.

Errors (the store is unusable):
    - matrices and metadata disagree on shape
    - duplicate ts_id / op_id
    - an operation points to a master that does not exist
    - a bad cell (quality != GOOD) holds a value, or a GOOD cell holds a
      non-finite one
    - unknown quality codes, negative calculation times

Warnings (the store is usable):
    - cells still NOT_COMPUTED
    - masters with no executable or no dependent operations
    - operations whose GOOD values are constant across time series

Usage:
    from tsmatrix.validation import validate_store

    report = validate_store(store)
    print(report.summary())

    validate_store(store, raise_on_error=True)   # ValidationError if invalid
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import numpy as np

from tsmatrix.core.errors import StoreShapeError, TsMatrixError
from tsmatrix.core.models import MasterOperation
from tsmatrix.core.quality import Quality
from tsmatrix.core.store import ValueStore


class ValidationError(TsMatrixError):
    """Raised when store validation fails."""

    def __init__(self, errors: List[str], warnings: List[str] = None):
        self.errors = errors
        self.warnings = warnings or []

        message = "Store validation failed:\n" + "\n".join(
            f"  ERROR: {e}" for e in errors
        )
        if warnings:
            message += "\n" + "\n".join(f"  WARNING: {w}" for w in warnings)

        super().__init__(message)


@dataclass
class StoreValidationReport:
    """Report from store validation."""

    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    # Counts
    n_time_series: int = 0
    n_operations: int = 0
    n_masters: int = 0
    quality_counts: Dict[str, int] = field(default_factory=dict)

    # ID lists
    orphaned_master_ids: List[int] = field(default_factory=list)
    constant_operation_ids: List[int] = field(default_factory=list)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            "=" * 60,
            "STORE VALIDATION REPORT",
            "=" * 60,
            "",
            f"Time series: {self.n_time_series}",
            f"Operations: {self.n_operations}",
            f"Master operations: {self.n_masters}",
        ]
        if self.quality_counts:
            total = max(sum(self.quality_counts.values()), 1)
            lines.append("Cells:")
            for name, count in self.quality_counts.items():
                lines.append(f"  {name}: {count:,} ({count / total * 100:.1f}%)")
        lines.append("")

        if self.errors:
            lines.append("ERRORS:")
            for e in self.errors:
                lines.append(f"  - {e}")
            lines.append("")

        if self.warnings:
            lines.append("WARNINGS:")
            for w in self.warnings:
                lines.append(f"  - {w}")
            lines.append("")

        status = "PASSED" if self.valid else "FAILED"
        lines.append(f"Status: {status}")
        lines.append("=" * 60)

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to serializable dict."""
        return {
            'valid': self.valid,
            'errors': self.errors,
            'warnings': self.warnings,
            'n_time_series': self.n_time_series,
            'n_operations': self.n_operations,
            'n_masters': self.n_masters,
            'quality_counts': self.quality_counts,
            'orphaned_master_ids': self.orphaned_master_ids,
            'constant_operation_ids': self.constant_operation_ids,
        }


def _duplicates(ids: List[int]) -> List[int]:
    seen, dup = set(), set()
    for i in ids:
        if i in seen:
            dup.add(i)
        seen.add(i)
    return sorted(dup)


def validate_store(
    store: ValueStore,
    masters: Optional[Mapping[int, MasterOperation]] = None,
    raise_on_error: bool = False,
) -> StoreValidationReport:
    """
    Validate a ValueStore.

    Args:
        store: Store to check
        masters: Master operations to resolve against (default: store.masters)
        raise_on_error: Raise ValidationError instead of returning an
            invalid report

    Returns:
        StoreValidationReport
    """
    report = StoreValidationReport()
    masters = dict(store.masters if masters is None else masters)

    report.n_time_series = len(store.time_series)
    report.n_operations = len(store.operations)
    report.n_masters = len(masters)

    # Shape
    try:
        store.check_shape()
    except StoreShapeError as e:
        report.errors.append(str(e))
        report.valid = False
        if raise_on_error:
            raise ValidationError(report.errors, report.warnings)
        return report

    report.quality_counts = store.quality_counts()

    # IDs
    dup_ts = _duplicates(store.ts_ids)
    if dup_ts:
        report.errors.append(f"Duplicate ts_id: {dup_ts}")
    dup_ops = _duplicates(store.op_ids)
    if dup_ops:
        report.errors.append(f"Duplicate op_id: {dup_ops}")
    labels = [m.label for m in masters.values()]
    if len(set(labels)) != len(labels):
        report.errors.append("Duplicate master labels")

    # Operation -> master resolution
    dangling = sorted({op.op_id for op in store.operations if op.mop_id not in masters})
    if dangling:
        report.errors.append(f"{len(dangling)} operation(s) reference unknown masters: {dangling[:10]}")

    referenced = set(store.referenced_masters())
    report.orphaned_master_ids = sorted(set(masters) - referenced)
    if report.orphaned_master_ids:
        report.warnings.append(
            f"{len(report.orphaned_master_ids)} master(s) have no dependent operations: "
            f"{report.orphaned_master_ids[:10]}"
        )
    no_func = sorted(mop_id for mop_id, m in masters.items() if m.func is None and mop_id in referenced)
    if no_func:
        report.warnings.append(f"{len(no_func)} master(s) have no executable function: {no_func[:10]}")

    # Cell invariants
    known = np.isin(store.quality, [int(q) for q in Quality])
    if not known.all():
        report.errors.append(f"{int((~known).sum())} cell(s) carry unknown quality codes")

    good = store.quality == Quality.GOOD
    if np.any(~good & ~np.isnan(store.values)):
        report.errors.append(f"{int(np.sum(~good & ~np.isnan(store.values)))} bad cell(s) hold a value")
    if np.any(good & ~np.isfinite(store.values)):
        report.errors.append(f"{int(np.sum(good & ~np.isfinite(store.values)))} GOOD cell(s) hold a non-finite value")

    with np.errstate(invalid='ignore'):
        negative = store.calc_time < 0
    if negative.any():
        report.errors.append(f"{int(negative.sum())} cell(s) have a negative calculation time")

    not_computed = report.quality_counts.get('not_computed', 0)
    if not_computed:
        report.warnings.append(f"{not_computed} cell(s) are not computed yet")

    # Constant operations
    if store.n_rows > 1:
        for j, op in enumerate(store.operations):
            col = store.values[good[:, j], j]
            if col.size > 1 and np.ptp(col) < np.finfo(np.float64).eps:
                report.constant_operation_ids.append(op.op_id)
        if report.constant_operation_ids:
            report.warnings.append(
                f"{len(report.constant_operation_ids)} operation(s) are constant across time series: "
                f"{report.constant_operation_ids[:10]}"
            )

    report.valid = len(report.errors) == 0

    if raise_on_error and not report.valid:
        raise ValidationError(report.errors, report.warnings)

    return report
