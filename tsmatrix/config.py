"""
Configuration
=============

Load run configuration from ``tsmatrix.yaml`` and merge it over the
built-in defaults.

Usage:
    from tsmatrix.config import load_config

    compute_cfg, curation_cfg = load_config('/path/to/data')

File layout (every key optional):

    compute:
      n_jobs: 4
      snapshot_name: raw
    curation:
      norm_function: scaled_robust_sigmoid
      row_thresh: 0.8
      col_thresh: 1.0
      training_rows: [1, 2, 3]     # TimeSeries IDs
      prune_masters: false
"""

from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, FrozenSet, Optional, Sequence, Tuple

import yaml

from tsmatrix.core.errors import ConfigError
from tsmatrix.core.normalization import canonical_method


CONFIG_FILENAME = 'tsmatrix.yaml'


@dataclass(frozen=True)
class CurationConfig:
    """
    Settings consumed by the matrix curator.

    row_thresh / col_thresh are the minimum proportion of good values a
    row / column must have to survive. 0 disables the filter; 1 keeps only
    rows / columns with no bad values at all.
    """
    norm_function: str = 'scaled_robust_sigmoid'
    row_thresh: float = 0.80
    col_thresh: float = 1.0
    training_rows: Optional[FrozenSet[int]] = None
    prune_masters: bool = False
    row_subset: Optional[Tuple[int, ...]] = None
    col_subset: Optional[Tuple[int, ...]] = None

    def __post_init__(self):
        for name in ('row_thresh', 'col_thresh'):
            value = getattr(self, name)
            try:
                value = float(value)
            except (TypeError, ValueError):
                raise ConfigError(f"{name} must be a number, got {value!r}")
            if not 0.0 <= value <= 1.0:
                raise ConfigError(f"{name} must lie in [0, 1], got {value}")
            object.__setattr__(self, name, value)

        try:
            canonical_method(self.norm_function)
        except ValueError as e:
            raise ConfigError(str(e))

        if self.training_rows is not None:
            object.__setattr__(self, 'training_rows', frozenset(int(i) for i in self.training_rows))
        for name in ('row_subset', 'col_subset'):
            value = getattr(self, name)
            if value is not None:
                object.__setattr__(self, name, tuple(int(i) for i in value))

    @property
    def is_identity(self) -> bool:
        return canonical_method(self.norm_function).value == 'none'


@dataclass(frozen=True)
class ComputeConfig:
    """Settings consumed by the batch scheduler and the CLI."""
    n_jobs: int = 1
    verbose: bool = True
    snapshot_name: str = 'raw'
    curated_name: str = 'normalized'
    catalog: str = 'catalog.yaml'
    timeseries: str = 'timeseries.parquet'

    def __post_init__(self):
        if int(self.n_jobs) == 0:
            raise ConfigError("n_jobs must be non-zero (-1 = all cores)")


def get_default_config() -> Dict[str, Dict[str, Any]]:
    """Defaults as plain dicts, the shape of ``tsmatrix.yaml``."""
    return {
        'compute': {f.name: f.default for f in fields(ComputeConfig)},
        'curation': {f.name: f.default for f in fields(CurationConfig)},
    }


def _known(section: Dict[str, Any], cls, where: str) -> Dict[str, Any]:
    names = {f.name for f in fields(cls)}
    unknown = set(section) - names
    if unknown:
        raise ConfigError(f"Unknown keys in '{where}' section: {sorted(unknown)}")
    return section


def load_config(path=None) -> Tuple[ComputeConfig, CurationConfig]:
    """
    Load configuration.

    Args:
        path: Directory containing tsmatrix.yaml, or the yaml file itself.
              None or a missing file gives the defaults.

    Returns:
        (ComputeConfig, CurationConfig)
    """
    merged = get_default_config()

    if path is not None:
        p = Path(path)
        config_file = p if p.suffix in ('.yaml', '.yml') else p / CONFIG_FILENAME
        if config_file.exists():
            with open(config_file) as f:
                raw = yaml.safe_load(f) or {}
            if not isinstance(raw, dict):
                raise ConfigError(f"{config_file} must contain a mapping")
            for section in ('compute', 'curation'):
                user = raw.get(section) or {}
                # Merge: file overrides defaults
                merged[section] = {**merged[section], **user}

    compute_cfg = ComputeConfig(**_known(merged['compute'], ComputeConfig, 'compute'))
    curation_cfg = CurationConfig(**_known(merged['curation'], CurationConfig, 'curation'))
    return compute_cfg, curation_cfg


def curation_config(
    norm_function: str = 'scaled_robust_sigmoid',
    filter_options: Sequence[float] = (0.80, 1.0),
    **kwargs,
) -> CurationConfig:
    """Build a CurationConfig from a norm function and [row, col] thresholds."""
    row_thresh, col_thresh = filter_options
    return CurationConfig(
        norm_function=norm_function,
        row_thresh=row_thresh,
        col_thresh=col_thresh,
        **kwargs,
    )
