
from __future__ import annotations
import logging
from typing import Dict, Any, Callable, List, Optional

from .errors import UnsupportedAlgorithm

log = logging.getLogger(__name__)

# A backend factory takes an algorithm identifier and returns an object
# implementing kemex.interfaces.KEM, or raises UnsupportedAlgorithm.
BackendFactory = Callable[[str], Any]


class _BackendRegistry:
    def __init__(self) -> None:
        self._items: Dict[str, BackendFactory] = {}

    def register(self, name: str) -> Callable[[BackendFactory], BackendFactory]:
        def _inner(factory: BackendFactory) -> BackendFactory:
            self._items[name] = factory
            return factory
        return _inner

    def get(self, name: str) -> BackendFactory:
        return self._items[name]

    def list(self) -> Dict[str, BackendFactory]:
        return dict(self._items)

    def open(self, algorithm: str, backend: Optional[str] = None) -> Any:
        """Instantiate a backend for ``algorithm``.

        With ``backend`` set only that factory is tried. Otherwise factories
        are tried in registration order and the first one that accepts the
        identifier wins.
        """
        if backend is not None:
            if backend not in self._items:
                raise UnsupportedAlgorithm(algorithm, f"backend {backend!r} is not available")
            return self._items[backend](algorithm)
        if not self._items:
            raise UnsupportedAlgorithm(algorithm, "no KEM backends are available")
        reasons: List[str] = []
        for name, factory in self._items.items():
            try:
                kem = factory(algorithm)
            except UnsupportedAlgorithm as exc:
                log.debug("backend %s rejected %s: %s", name, algorithm, exc)
                reasons.append(name)
                continue
            log.debug("backend %s selected for %s", name, algorithm)
            return kem
        raise UnsupportedAlgorithm(algorithm, f"rejected by {', '.join(reasons)}")


registry = _BackendRegistry()
