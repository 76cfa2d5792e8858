"""
Catalog: master operations and pointer operations from YAML.

    masters:
      - id: 1
        label: dist
        function: distribution
      - id: 2
        label: ac
        function: autocorr
        params: {max_lag: 20}
    operations:
      - id: 1
        name: DN_mean
        code: dist.mean
        keywords: [distribution, location]
      - id: 2
        name: CO_ac1_log
        code: ac.ac1|abs

Operation codes are parsed into transform variants here, once; the
master label in each code is resolved to its mop_id.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from tsmatrix.core.errors import CatalogError
from tsmatrix.core.models import MasterOperation, Operation
from tsmatrix.core.registry import MasterFunctionRegistry, get_registry
from tsmatrix.core.resolver import parse_transform


logger = logging.getLogger(__name__)

CATALOG_FILENAME = 'catalog.yaml'


@dataclass
class Catalog:
    """Masters keyed by mop_id plus the operations in column order."""
    masters: Dict[int, MasterOperation] = field(default_factory=dict)
    operations: List[Operation] = field(default_factory=list)

    @property
    def labels(self) -> Dict[str, int]:
        return {m.label: mop_id for mop_id, m in self.masters.items()}

    def code_of(self, op: Operation) -> str:
        return op.code(self.masters[op.mop_id].label)

    def to_dict(self) -> Dict[str, Any]:
        """Inverse of ``build_catalog``."""
        return {
            'masters': [
                {'id': m.mop_id, 'label': m.label, 'function': m.function, 'params': dict(m.params)}
                for m in self.masters.values()
            ],
            'operations': [
                {'id': op.op_id, 'name': op.name, 'code': self.code_of(op), 'keywords': list(op.keywords)}
                for op in self.operations
            ],
        }


def _keywords(raw) -> tuple:
    if raw is None:
        return ()
    if isinstance(raw, str):
        return tuple(k.strip() for k in raw.split(',') if k.strip())
    return tuple(str(k) for k in raw)


def _require(entry: Mapping[str, Any], key: str, where: str) -> Any:
    if key not in entry or entry[key] is None:
        raise CatalogError(f"{where} entry is missing '{key}': {dict(entry)}")
    return entry[key]


def build_operation(
    op_id: int,
    name: str,
    code: str,
    labels: Mapping[str, int],
    keywords=(),
) -> Operation:
    """
    Parse ``code`` and resolve its master label.

    Raises:
        CatalogError: Malformed code or unknown master label
    """
    label, transform = parse_transform(code)
    if label not in labels:
        raise CatalogError(f"Operation {op_id} ({name}) references unknown master '{label}'")
    return Operation(
        op_id=op_id,
        name=name,
        mop_id=labels[label],
        transform=transform,
        keywords=_keywords(keywords),
    )


def build_catalog(raw: Mapping[str, Any], registry: Optional[MasterFunctionRegistry] = None) -> Catalog:
    """
    Build a Catalog from a parsed YAML mapping.

    Raises:
        CatalogError: Duplicate IDs or labels, unknown master function,
            unknown master label, malformed operation code
    """
    registry = registry or get_registry()
    if not isinstance(raw, Mapping):
        raise CatalogError("Catalog must be a mapping with 'masters' and 'operations'")

    masters: Dict[int, MasterOperation] = {}
    labels: Dict[str, int] = {}
    for entry in raw.get('masters') or []:
        mop_id = int(_require(entry, 'id', 'Master'))
        label = str(_require(entry, 'label', 'Master'))
        function = str(entry.get('function') or label)
        if mop_id in masters:
            raise CatalogError(f"Duplicate master id {mop_id}")
        if label in labels:
            raise CatalogError(f"Duplicate master label '{label}'")
        masters[mop_id] = registry.build_master(mop_id, label, function, entry.get('params'))
        labels[label] = mop_id

    operations: List[Operation] = []
    seen = set()
    for entry in raw.get('operations') or []:
        op_id = int(_require(entry, 'id', 'Operation'))
        if op_id in seen:
            raise CatalogError(f"Duplicate operation id {op_id}")
        seen.add(op_id)
        code = str(_require(entry, 'code', 'Operation'))
        name = str(entry.get('name') or code)
        operations.append(build_operation(op_id, name, code, labels, entry.get('keywords')))

    unused = set(masters) - {op.mop_id for op in operations}
    if unused:
        logger.info(f"{len(unused)} master operation(s) have no dependent operations: {sorted(unused)}")

    return Catalog(masters=masters, operations=operations)


def load_catalog(path, registry: Optional[MasterFunctionRegistry] = None) -> Catalog:
    """
    Load a catalog YAML file (or ``catalog.yaml`` inside a directory).

    Raises:
        FileNotFoundError: No catalog at ``path``
        CatalogError: Invalid catalog contents
    """
    p = Path(path)
    if p.is_dir():
        p = p / CATALOG_FILENAME
    if not p.exists():
        raise FileNotFoundError(f"No catalog at {p}")

    with open(p) as f:
        raw = yaml.safe_load(f) or {}

    catalog = build_catalog(raw, registry=registry)
    logger.info(f"Loaded {len(catalog.masters)} masters and {len(catalog.operations)} operations from {p}")
    return catalog


def save_catalog(catalog: Catalog, path) -> Path:
    """Write ``catalog`` as YAML."""
    p = Path(path)
    if p.is_dir():
        p = p / CATALOG_FILENAME
    p.parent.mkdir(parents=True, exist_ok=True)
    with open(p, 'w') as f:
        yaml.safe_dump(catalog.to_dict(), f, default_flow_style=False, sort_keys=False)
    return p
