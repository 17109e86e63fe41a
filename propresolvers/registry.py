"""propresolvers/registry.py – run-time fallback lookup by property name.

Generated resolvers cover every type known at generation time.  For
anything else a :class:`ResolverRegistry` maps a property name to a
hand-written extractor.  The registry is an ordinary object: create one,
pass it where it is needed, and it is safe to share between threads.
"""

from __future__ import annotations

import threading
from typing import Any, Callable, Dict, List, Optional, Tuple

from propresolvers.model import casefold_key

__all__ = ["Extractor", "ResolverRegistry"]

Extractor = Callable[[Any], Optional[str]]


class ResolverRegistry:
    """Case-insensitive ``property name -> extractor`` table."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._extractors: Dict[str, Tuple[str, Extractor]] = {}

    def register(self, name: str, extractor: Extractor) -> None:
        """Register (or replace) the extractor for *name*."""
        if not isinstance(name, str) or not name.strip():
            raise ValueError("property name must be a non-empty string")
        if not callable(extractor):
            raise TypeError(f"extractor for {name!r} is not callable")
        with self._lock:
            self._extractors[casefold_key(name)] = (name, extractor)

    def unregister(self, name: str) -> bool:
        with self._lock:
            return self._extractors.pop(casefold_key(name), None) is not None

    def try_resolve(self, name: str, source: Any) -> Tuple[bool, Optional[str]]:
        """``(True, value)`` if an extractor is registered, else ``(False, None)``."""
        with self._lock:
            entry = self._extractors.get(casefold_key(name))
        if entry is None:
            return False, None
        # Extractors run outside the lock; they may call back into the registry.
        return True, entry[1](source)

    def resolve(self, name: str, source: Any) -> Optional[str]:
        return self.try_resolve(name, source)[1]

    def names(self) -> List[str]:
        """Registered names in their registered casing, in registration order."""
        with self._lock:
            return [display for display, _ in self._extractors.values()]

    def __contains__(self, name: object) -> bool:
        if not isinstance(name, str):
            return False
        with self._lock:
            return casefold_key(name) in self._extractors

    def __len__(self) -> int:
        with self._lock:
            return len(self._extractors)
