"""
Master Function Registry - resolves master computation names to callables.

The registry provides:
1. Lazy loading of built-in engines from ``tsmatrix.core.signal``
2. Registration of user-supplied callables under a name
3. Construction of MasterOperation objects with bound parameters
"""

import functools
import importlib
from typing import Any, Callable, Dict, List, Optional

from tsmatrix.core.errors import CatalogError
from tsmatrix.core.models import MasterOperation


BUILTIN_FUNCTIONS = ('distribution', 'autocorr', 'first_min', 'automutual')


class MasterFunctionRegistry:
    """
    Registry of functions a MasterOperation can execute.

    Built-ins are imported on first access; user functions are added with
    ``register``.
    """

    def __init__(self, builtins: bool = True):
        self._names = set(BUILTIN_FUNCTIONS) if builtins else set()
        self._compute_funcs: Dict[str, Callable] = {}

    def register(self, name: str, func: Optional[Callable] = None):
        """
        Register ``func`` under ``name``. Usable as a decorator:

            @registry.register('my_master')
            def compute(y): ...
        """
        def _add(f: Callable) -> Callable:
            self._names.add(name)
            self._compute_funcs[name] = f
            return f

        if func is not None:
            return _add(func)
        return _add

    def list_functions(self) -> List[str]:
        """List all available function names."""
        return sorted(self._names)

    def has_function(self, name: str) -> bool:
        """Check if a function exists in the registry."""
        return name in self._names

    def get_compute_func(self, name: str) -> Callable:
        """
        Get the compute function for ``name``.

        Lazily imports built-in engine modules on first access.
        """
        if name not in self._names:
            available = ", ".join(self.list_functions())
            raise CatalogError(
                f"Unknown master function: '{name}'. Available: {available}"
            )

        if name not in self._compute_funcs:
            try:
                module = importlib.import_module(f"tsmatrix.core.signal.{name}")
                self._compute_funcs[name] = module.compute
            except (ImportError, AttributeError) as e:
                raise CatalogError(
                    f"Could not load compute function for '{name}': {e}"
                )

        return self._compute_funcs[name]

    def build_master(
        self,
        mop_id: int,
        label: str,
        function: str,
        params: Optional[Dict[str, Any]] = None,
    ) -> MasterOperation:
        """Create a MasterOperation whose callable has ``params`` bound."""
        params = dict(params or {})
        compute = self.get_compute_func(function)
        func = functools.partial(compute, **params) if params else compute
        return MasterOperation(
            mop_id=int(mop_id),
            label=label,
            function=function,
            params=params,
            func=func,
        )


# Global registry instance (lazy initialized)
_registry: Optional[MasterFunctionRegistry] = None


def get_registry() -> MasterFunctionRegistry:
    """Get or create global master function registry."""
    global _registry
    if _registry is None:
        _registry = MasterFunctionRegistry()
    return _registry


def reset_registry():
    """Reset the global registry (for testing)."""
    global _registry
    _registry = None
