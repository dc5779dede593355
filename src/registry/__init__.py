"""Registry access: upstream dependency API client and the local catalog."""

from .client import RegistryClient
from .local import LocalRepository, MemoryRepository
from .models import DependencyRecord, IndexEntry, LocalVersion

__all__ = [
    "RegistryClient",
    "LocalRepository",
    "MemoryRepository",
    "DependencyRecord",
    "IndexEntry",
    "LocalVersion",
]
