"""Core functionality for the layered nix build inputs."""

from collections.abc import Iterable
from importlib.resources import files

from .models import PackageSet
from .utils import expand_flagged_options

# Containerfile used to build the nix packages and copy them into the dev image
CONTAINERFILE: bytes = files(__package__).joinpath("Containerfile").read_bytes()

# Build argument names understood by CONTAINERFILE
NIX_IMAGE_ARG = "NIX_IMAGE"
DEV_IMAGE_ARG = "DEV_IMAGE"
PACKAGES_STRING_ARG = "PACKAGES_STRING"


def resolve_packages(base: Iterable[str], additional: Iterable[str]) -> str:
    """Merge base and additional packages into a PACKAGES_STRING value.

    Args:
        base: Default package names
        additional: User specified package names

    Returns:
        Sorted, deduplicated ``nixpkgs#<name>`` tokens joined by spaces,
        or an empty string if both groups are empty
    """
    return PackageSet.union(base, additional).render()


def layered_build_args(nix_image: str, dev_image: str, packages_string: str) -> list[str]:
    """Generate the --build-arg flags for the layered build."""
    return expand_flagged_options(
        "--build-arg",
        [
            f"{NIX_IMAGE_ARG}={nix_image}",
            f"{DEV_IMAGE_ARG}={dev_image}",
            f"{PACKAGES_STRING_ARG}={packages_string}",
        ],
    )
