"""Dependency resolution with a per-resolver upstream cache."""

from .cache import ResolverCache
from .dependencies import DependencyResolver

__all__ = ["ResolverCache", "DependencyResolver"]
