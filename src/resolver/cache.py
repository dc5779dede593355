"""Per-resolver memo of upstream dependency answers."""

from __future__ import annotations

from typing import Any, Dict, Iterable, Iterator, Optional, Tuple

from registry.models import DependencyRecord

Records = Tuple[DependencyRecord, ...]


class ResolverCache:
    """Grow-only map from gem name to the records upstream returned for it.

    Presence of a name is what marks it as resolved: an empty tuple is the
    final answer "upstream does not have this gem". Entries are never
    expired or invalidated; the cache lives as long as its resolver.
    """

    def __init__(self) -> None:
        self._cache: Dict[str, Records] = {}
        self._hits = 0
        self._misses = 0

    def __contains__(self, name: object) -> bool:
        return name in self._cache

    def __len__(self) -> int:
        return len(self._cache)

    def __iter__(self) -> Iterator[str]:
        return iter(self._cache)

    def get(self, name: str) -> Optional[Records]:
        """Get the cached records for ``name``.

        Returns:
            The records (possibly empty) or None if ``name`` was never resolved.
        """
        records = self._cache.get(name)
        if records is None:
            self._misses += 1
        else:
            self._hits += 1
        return records

    def set(self, name: str, records: Iterable[DependencyRecord]) -> None:
        """Record the upstream answer for ``name``.

        Raises:
            ValueError: If ``name`` already has an answer.
        """
        if name in self._cache:
            raise ValueError(f"{name} is already cached")
        self._cache[name] = tuple(records)

    def missing(self, names: Iterable[str]) -> set:
        """Return the subset of ``names`` without a cached answer."""
        return {name for name in names if name not in self._cache}

    def stats(self) -> Dict[str, Any]:
        """Get cache statistics."""
        empty = sum(1 for records in self._cache.values() if not records)
        return {
            "total_entries": len(self._cache),
            "not_found_entries": empty,
            "hits": self._hits,
            "misses": self._misses,
        }
