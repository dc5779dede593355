"""Fetch and decode the registry's gem index snapshots."""
from __future__ import annotations

import gzip
import logging
import zlib
from typing import Any, List

from codec import ruby_marshal
from codec.ruby_marshal import RubyObject
from common.errors import MarshalError, SpecsDecodeError
from constants import Constants, SpecsIndex
from registry.models import IndexEntry

logger = logging.getLogger(__name__)


def specs_resource(index: SpecsIndex) -> str:
    """File name of an index snapshot, e.g. ``specs.4.8.gz``."""
    return f"{index.value}.{Constants.SPECS_API_VERSION}.gz"


def _as_text(value: Any, field: str) -> str:
    if isinstance(value, str):
        return str(value)
    # Gem::Version marshals as [version_string]
    if isinstance(value, RubyObject) and isinstance(value.data, list) and value.data:
        if isinstance(value.data[0], str):
            return str(value.data[0])
    raise SpecsDecodeError(f"index entry {field} is not a string: {value!r}")


def decode_specs(payload: bytes) -> List[IndexEntry]:
    """Decode a gzip-compressed Marshal index into ordered entries.

    Raises:
        SpecsDecodeError: If the payload is not gzip data or not an array of
            (name, version, platform) triples.
    """
    try:
        raw = gzip.decompress(payload)
    except (OSError, EOFError, zlib.error) as exc:
        raise SpecsDecodeError(f"index snapshot is not valid gzip data: {exc}") from exc

    try:
        specs = ruby_marshal.loads(raw)
    except SpecsDecodeError:
        raise
    except MarshalError as exc:
        raise SpecsDecodeError(f"index snapshot could not be decoded: {exc}") from exc

    if not isinstance(specs, list):
        raise SpecsDecodeError("index snapshot must be an array")

    entries = []
    for position, spec in enumerate(specs):
        if not isinstance(spec, list) or len(spec) != 3:
            raise SpecsDecodeError(f"index entry {position} is not a (name, version, platform) triple")
        name, version, platform = spec
        entries.append(
            IndexEntry(
                name=_as_text(name, "name"),
                version=_as_text(version, "version"),
                platform=_as_text(platform, "platform"),
            )
        )
    return entries


class GemSpecs:
    """Downloads one index snapshot and returns its entries in order."""

    def __init__(self, http_client, latest: bool = False, prerelease: bool = False):
        """Initialize the fetcher.

        Args:
            http_client: Object providing ``get(path) -> bytes``.
            latest: Fetch the latest-versions-only snapshot.
            prerelease: Fetch the prerelease snapshot (ignored when ``latest``).
        """
        self._http_client = http_client
        if latest:
            self._index = SpecsIndex.LATEST
        elif prerelease:
            self._index = SpecsIndex.PRERELEASE
        else:
            self._index = SpecsIndex.FULL

    @property
    def resource(self) -> str:
        return specs_resource(self._index)

    def fetch(self) -> List[IndexEntry]:
        """Fetch and decode the snapshot.

        Raises:
            TransportError: If the download fails.
            SpecsDecodeError: If the snapshot is malformed.
        """
        entries = decode_specs(self._http_client.get(self.resource))
        logger.info("Fetched %s with %d gems", self.resource, len(entries))
        return entries
