"""yadt - Layer nix packages onto a dev image and run it interactively."""

__version__ = "0.1.0"

from .config import Settings, load_settings
from .exceptions import (
    BuildError,
    BuildFailedError,
    BuildOutputEmptyError,
    BuildProcessError,
    ConfigParseError,
    LaunchError,
    LineDecodeError,
    PathResolutionError,
    YadtError,
)
from .models import BuildTarget, FromRecipe, FromReference, PackageSet

__all__ = [
    "BuildTarget",
    "FromRecipe",
    "FromReference",
    "PackageSet",
    "Settings",
    "load_settings",
    "YadtError",
    "BuildError",
    "BuildFailedError",
    "BuildOutputEmptyError",
    "BuildProcessError",
    "ConfigParseError",
    "LaunchError",
    "LineDecodeError",
    "PathResolutionError",
]
