"""Dependency lookup merging the local catalog with the upstream registry."""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from codec import ruby_marshal
from codec.ruby_marshal import Symbol
from common.errors import DependencyFetchError, MarshalError, TransportError
from common.logging_utils import Timer, extra_context, is_debug_enabled
from registry.models import DependencyRecord

from .cache import ResolverCache

logger = logging.getLogger(__name__)


class DependencyResolver:
    """Answers dependency queries for a set of gem names.

    Gems hosted in the local catalog are always read fresh from it and never
    sent upstream. Every other name is resolved with the upstream registry at
    most once per resolver; the answer, including "not found", is kept in
    the resolver's cache. One resolver is meant for one logical session and
    is not safe for concurrent ``fetch`` calls.
    """

    def __init__(self, registry_client, local_repository=None, cache: Optional[ResolverCache] = None):
        """Initialize the resolver.

        Args:
            registry_client: Object with ``fetch(names) -> list[DependencyRecord]``.
            local_repository: Object with ``find(name) -> list[LocalVersion]``;
                None means nothing is hosted locally.
            cache: Cache to use; a fresh one is created when omitted.
        """
        self._registry_client = registry_client
        self._local_repository = local_repository
        self._cache = cache if cache is not None else ResolverCache()

    @property
    def cache(self) -> ResolverCache:
        return self._cache

    def fetch(self, requested: Iterable[str]) -> List[DependencyRecord]:
        """Return the dependency records of every known name in ``requested``.

        The result order is not significant. Names unknown to both catalogs
        contribute nothing.

        Raises:
            DependencyFetchError: If the upstream call fails. Nothing is cached
                in that case, so a later ``fetch`` tries again.
        """
        names = set(requested)
        local_records, remote_names = self._partition(names)

        if self._cache.missing(remote_names):
            self._fetch_remote(remote_names)

        results: List[DependencyRecord] = []
        for name in sorted(remote_names):
            results.extend(self._cache.get(name) or ())
        for name in sorted(local_records):
            results.extend(local_records[name])
        return results

    def fetch_marshaled(self, requested: Iterable[str]) -> bytes:
        """Like ``fetch`` but encoded in the registry's dependency API format."""
        payload = [
            {Symbol(key): value for key, value in record.to_dict().items()}
            for record in self.fetch(requested)
        ]
        return ruby_marshal.dumps(payload)

    def cache_stats(self) -> Dict[str, Any]:
        return self._cache.stats()

    def _partition(self, names: Set[str]) -> Tuple[Dict[str, List[DependencyRecord]], Set[str]]:
        """Split ``names`` into locally hosted (with their records) and remote candidates."""
        local_records: Dict[str, List[DependencyRecord]] = {}
        remote_names: Set[str] = set()
        for name in names:
            records = self._local_records(name)
            if records:
                local_records[name] = records
            else:
                remote_names.add(name)
        return local_records, remote_names

    def _local_records(self, name: str) -> List[DependencyRecord]:
        if self._local_repository is None:
            return []
        return [
            DependencyRecord(
                name=name,
                version=stored.version,
                platform=stored.platform,
                dependencies=stored.dependencies,
            )
            for stored in self._local_repository.find(name)
        ]

    def _fetch_remote(self, names: Set[str]) -> None:
        """Resolve ``names`` upstream in one call and cache every one of them."""
        with Timer() as t:
            try:
                records = self._registry_client.fetch(names)
            except (TransportError, MarshalError) as exc:
                logger.error("Upstream dependency query for %d gems failed: %s", len(names), exc)
                raise DependencyFetchError(
                    f"failed to fetch dependencies for {', '.join(sorted(names))}: {exc}",
                    names,
                ) from exc

        grouped: Dict[str, List[DependencyRecord]] = defaultdict(list)
        for record in records:
            if record.name in names:
                grouped[record.name].append(record)

        for name in names:
            if name not in self._cache:
                self._cache.set(name, grouped.get(name, ()))

        if is_debug_enabled(logger):
            logger.debug(
                "Upstream dependencies cached",
                extra=extra_context(
                    event="cache_fill",
                    component="resolver",
                    action="fetch_remote",
                    requested=len(names),
                    found=len(grouped),
                    duration_ms=t.duration_ms(),
                ),
            )
