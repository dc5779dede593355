"""Upstream registry client for the dependency API."""
from __future__ import annotations

import logging
from typing import Iterable, List

from codec import ruby_marshal
from common.errors import MarshalError
from common.logging_utils import extra_context, is_debug_enabled
from constants import Constants

from .models import DependencyRecord

logger = logging.getLogger(__name__)


class RegistryClient:
    """Queries ``/api/v1/dependencies`` on the upstream registry.

    One call per ``fetch``; the registry omits names it does not know.
    """

    def __init__(self, http_client):
        """Initialize the client.

        Args:
            http_client: Object providing ``get(path) -> bytes`` bound to the registry.
        """
        self._http_client = http_client

    @staticmethod
    def dependencies_path(names: Iterable[str]) -> str:
        """Request path for ``names``, joined in sorted order."""
        return f"{Constants.DEPENDENCIES_PATH}?gems={','.join(sorted(names))}"

    def fetch(self, names: Iterable[str]) -> List[DependencyRecord]:
        """Fetch the dependency records the registry has for ``names``.

        Raises:
            TransportError: If the HTTP call fails.
            MarshalError: If the response is not a Marshal array of dependency hashes.
        """
        unique = set(names)
        if not unique:
            return []

        path = self.dependencies_path(unique)
        if is_debug_enabled(logger):
            logger.debug(
                "Querying upstream dependencies",
                extra=extra_context(
                    event="registry_query",
                    component="registry_client",
                    action="fetch",
                    count=len(unique),
                ),
            )
        payload = ruby_marshal.loads(self._http_client.get(path))
        return self._parse(payload)

    @staticmethod
    def _parse(payload) -> List[DependencyRecord]:
        if not isinstance(payload, list):
            raise MarshalError(
                f"dependency response must be an array, got {type(payload).__name__}"
            )
        records = []
        for item in payload:
            if not isinstance(item, dict):
                raise MarshalError("dependency response item is not a hash")
            try:
                records.append(DependencyRecord.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                raise MarshalError(f"malformed dependency record: {exc}") from exc
        return records
