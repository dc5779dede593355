"""Data models for dependency records and index entries."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from constants import Constants

# (dependency name, requirement string) e.g. ("rack", "~> 2.0")
Requirement = Tuple[str, str]


def _requirements(pairs: Iterable[Iterable[Any]]) -> Tuple[Requirement, ...]:
    result = []
    for pair in pairs:
        name, requirement = pair
        result.append((str(name), str(requirement)))
    return tuple(result)


@dataclass(frozen=True)
class DependencyRecord:
    """Direct dependencies of one published (name, version, platform)."""

    name: str
    version: str
    platform: str = Constants.DEFAULT_PLATFORM
    dependencies: Tuple[Requirement, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept lists of lists from callers and decoders; store an immutable copy.
        object.__setattr__(self, "dependencies", _requirements(self.dependencies))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "DependencyRecord":
        """Build a record from the registry's wire form.

        The registry names the version ``number``; ``version`` is accepted too.
        """
        version = data["number"] if "number" in data else data["version"]
        return cls(
            name=str(data["name"]),
            version=str(version),
            platform=str(data.get("platform") or Constants.DEFAULT_PLATFORM),
            dependencies=data.get("dependencies") or (),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Registry wire form: ``name``, ``number``, ``platform``, ``dependencies``."""
        return {
            "name": self.name,
            "number": self.version,
            "platform": self.platform,
            "dependencies": [list(dep) for dep in self.dependencies],
        }


@dataclass(frozen=True)
class IndexEntry:
    """One (name, version, platform) triple from an index snapshot."""

    name: str
    version: str
    platform: str = Constants.DEFAULT_PLATFORM

    def __str__(self) -> str:
        prefix = f"{self.name}-{self.version}"
        if self.platform == Constants.DEFAULT_PLATFORM:
            return prefix
        return f"{prefix}-{self.platform}"

    @property
    def gem_path(self) -> str:
        """Path of the package file relative to the server root."""
        return f"gems/{self}.gem"


@dataclass
class LocalVersion:
    """A version stored in the local (private) catalog."""

    version: str
    platform: str = Constants.DEFAULT_PLATFORM
    dependencies: List[Requirement] = field(default_factory=list)
    indexed: bool = True
