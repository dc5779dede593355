"""Cache warming from the registry's index snapshots."""

from .preloader import GemPreloader, PreloadResult, PreloadWindow, ProgressCounter
from .specs import GemSpecs, decode_specs, specs_resource

__all__ = [
    "GemPreloader",
    "PreloadResult",
    "PreloadWindow",
    "ProgressCounter",
    "GemSpecs",
    "decode_specs",
    "specs_resource",
]
