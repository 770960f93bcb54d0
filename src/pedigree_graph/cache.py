"""Keyed result cache for expensive traversals.

No TTL and no size bound: callers invalidate explicitly after writes that
change a cached shape. Storage is injectable so tests can inspect it and
deployments can swap in a shared mapping.
"""
from __future__ import annotations

from collections.abc import MutableMapping
from typing import Any

from .logging import get_logger

logger = get_logger(__name__)


def pedigree_key(person_id: str, generations: int) -> str:
    return f"pedigree:{person_id}:{generations}"


def descendants_key(person_id: str, generations: int) -> str:
    return f"descendants:{person_id}:{generations}"


NOTABLE_RELATIVES_PREFIX = "notable_relatives:"


def notable_relatives_key(person_id: str) -> str:
    return f"{NOTABLE_RELATIVES_PREFIX}{person_id}"


def _mentions(value: Any, person_id: str) -> bool:
    """True when a cached tree contains the person as a node or spouse."""
    if not hasattr(value, "iter_nodes"):
        return False
    for node in value.iter_nodes():
        spouse = getattr(node, "spouse", None)
        if node.id == person_id or (spouse is not None and spouse.id == person_id):
            return True
    return False


class ResultCache:
    """Process-wide map of derived results.

    Example:
        >>> cache = ResultCache()
        >>> cache.set("pedigree:p1:3", tree)
        >>> cache.clear("p1")  # drop every key mentioning p1
    """

    def __init__(self, backend: MutableMapping[str, Any] | None = None) -> None:
        self._backend: MutableMapping[str, Any] = backend if backend is not None else {}

    def get(self, key: str) -> Any | None:
        return self._backend.get(key)

    def set(self, key: str, value: Any) -> None:
        self._backend[key] = value

    def clear(self, pattern: str | None = None) -> int:
        """Remove every key, or only keys containing ``pattern``.

        Returns:
            Number of entries removed
        """
        if pattern is None:
            removed = len(self._backend)
            self._backend.clear()
        else:
            doomed = [key for key in self._backend if pattern in key]
            for key in doomed:
                del self._backend[key]
            removed = len(doomed)
        logger.info("cache_cleared", pattern=pattern, removed=removed)
        return removed

    def invalidate_person(self, person_id: str) -> int:
        """Drop every cached shape that involves a person.

        A pedigree or descendant tree goes when the person is rooted at, or
        appears anywhere inside, it (spouses included). Notable-relative
        lists are all dropped: they also depend on ancestors and siblings
        that never appear in the list itself.

        Returns:
            Number of entries removed
        """
        # Exact segment match so "p1" does not also drop "p10".
        doomed = [
            key
            for key, value in self._backend.items()
            if key.split(":")[1:2] == [person_id]
            or key.startswith(NOTABLE_RELATIVES_PREFIX)
            or _mentions(value, person_id)
        ]
        for key in doomed:
            del self._backend[key]
        logger.info("cache_invalidated", person_id=person_id, removed=len(doomed))
        return len(doomed)

    def keys(self) -> list[str]:
        return list(self._backend)

    def __contains__(self, key: object) -> bool:
        return key in self._backend

    def __len__(self) -> int:
        return len(self._backend)


_default_cache: ResultCache | None = None


def get_result_cache() -> ResultCache:
    """Return the process-wide default cache."""
    global _default_cache
    if _default_cache is None:
        _default_cache = ResultCache()
    return _default_cache
