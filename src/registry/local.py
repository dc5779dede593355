"""Local (privately hosted) gem catalog.

The production catalog lives in a relational store owned by the serving
layer; anything with a ``find(name)`` method returning ``LocalVersion``
objects can stand in for it. ``MemoryRepository`` is the in-process
implementation used by the CLI and the tests.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional, Protocol, Sequence

from common.errors import ConfigError
from constants import Constants

from .models import LocalVersion

logger = logging.getLogger(__name__)


class LocalRepository(Protocol):
    """Lookup interface of the local catalog."""

    def find(self, name: str) -> Sequence[LocalVersion]:
        """Return the indexed versions stored for ``name`` (empty if none)."""


class MemoryRepository:
    """Dictionary-backed local catalog."""

    def __init__(self) -> None:
        self._gems: Dict[str, List[LocalVersion]] = {}

    def add_gem(self, name: str) -> None:
        """Register ``name`` with no versions yet."""
        self._gems.setdefault(name, [])

    def add_version(
        self,
        name: str,
        version: str,
        platform: str = Constants.DEFAULT_PLATFORM,
        indexed: bool = True,
    ) -> LocalVersion:
        """Store a version of ``name`` and return it for adding dependencies."""
        entry = LocalVersion(version=version, platform=platform, indexed=indexed)
        self._gems.setdefault(name, []).append(entry)
        return entry

    def add_dependency(
        self,
        name: str,
        version: str,
        dependency: str,
        requirement: str,
        platform: str = Constants.DEFAULT_PLATFORM,
    ) -> None:
        """Append a dependency to an existing version.

        Raises:
            KeyError: If the version is not stored.
        """
        entry = self._lookup(name, version, platform)
        if entry is None:
            raise KeyError(f"{name}-{version} ({platform}) is not stored")
        entry.dependencies.append((dependency, requirement))

    def yank(self, name: str, version: str, platform: str = Constants.DEFAULT_PLATFORM) -> bool:
        """Hide a version from lookups. Returns False if it is not stored."""
        entry = self._lookup(name, version, platform)
        if entry is None:
            return False
        entry.indexed = False
        return True

    def find(self, name: str) -> List[LocalVersion]:
        return [entry for entry in self._gems.get(name, []) if entry.indexed]

    def names(self) -> List[str]:
        return sorted(self._gems)

    def _lookup(self, name: str, version: str, platform: str) -> Optional[LocalVersion]:
        for entry in self._gems.get(name, []):
            if entry.version == version and entry.platform == platform:
                return entry
        return None

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "MemoryRepository":
        """Build a catalog from the ``private_gems`` configuration section.

        Expected shape::

            custom:
              - version: 0.0.1
                platform: ruby          # optional
                dependencies:
                  - [foo, "~> 1.0"]

        Raises:
            ConfigError: If the section does not have that shape.
        """
        repo = cls()
        if not data:
            return repo
        if not isinstance(data, Mapping):
            raise ConfigError("private_gems must be a mapping of gem name to versions")

        for name, versions in data.items():
            if not isinstance(versions, list):
                raise ConfigError(f"private_gems.{name} must be a list of versions")
            repo.add_gem(str(name))
            for spec in versions:
                if not isinstance(spec, Mapping) or "version" not in spec:
                    raise ConfigError(f"private_gems.{name} entries need a 'version' key")
                # YAML reads an unquoted 1.10 as the float 1.1
                if not isinstance(spec["version"], str):
                    raise ConfigError(
                        f"private_gems.{name}: version {spec['version']!r} must be a quoted string"
                    )
                platform = str(spec.get("platform") or Constants.DEFAULT_PLATFORM)
                entry = repo.add_version(str(name), spec["version"], platform)
                for dep in spec.get("dependencies") or []:
                    if not isinstance(dep, (list, tuple)) or len(dep) != 2:
                        raise ConfigError(
                            f"private_gems.{name} {spec['version']}: dependency must be [name, requirement]"
                        )
                    if not all(isinstance(part, str) for part in dep):
                        raise ConfigError(
                            f"private_gems.{name} {spec['version']}: dependency {list(dep)!r} "
                            "must be quoted strings"
                        )
                    entry.dependencies.append((dep[0], dep[1]))
        logger.debug("Loaded %d private gems", len(repo.names()))
        return repo
