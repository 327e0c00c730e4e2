"""Domain models for yadt."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

# Flake namespace every package name is resolved against
NIXPKGS_NAMESPACE = "nixpkgs"

# Default container paths
WORKSPACE_MOUNT = "/workspace"
# Nix-installed binaries are copied here by the layered build recipe
NIX_BIN_DIR = "/yadt-bin"
DEFAULT_SHELL = "/bin/bash"

CONTAINER_NAME_PREFIX = "yadt"


@dataclass(frozen=True)
class PackageSet:
    """Deduplicated set of nixpkgs package names."""

    names: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def union(cls, *groups: Iterable[str]) -> "PackageSet":
        """Merge several groups of package names into one set."""
        merged: set[str] = set()
        for group in groups:
            merged.update(group)
        return cls(names=frozenset(merged))

    def render(self) -> str:
        """Return the set as a space separated list of flake installables.

        Names are sorted so identical sets always render identically,
        which keeps build arguments (and build cache keys) stable.

        Examples:
            >>> PackageSet.union(["git", "bash"]).render()
            'nixpkgs#bash nixpkgs#git'
            >>> PackageSet().render()
            ''
        """
        return " ".join(f"{NIXPKGS_NAMESPACE}#{name}" for name in sorted(self.names))

    def __len__(self) -> int:
        return len(self.names)

    def __contains__(self, name: object) -> bool:
        return name in self.names


@dataclass(frozen=True)
class FromRecipe:
    """Build the dev image from a local Containerfile."""

    path: Path


@dataclass(frozen=True)
class FromReference:
    """Use an existing (or pullable) image as the dev image."""

    name: str


# Where the dev image comes from
BuildTarget = FromRecipe | FromReference
