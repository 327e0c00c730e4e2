"""Configuration file parsing for yadt."""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import click

from .exceptions import ConfigParseError
from .models import PackageSet

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

APP_NAME = "yadt"
CONFIG_FILE_NAME = "config.toml"

DEFAULT_DOCKER_NAME = "podman"
DEFAULT_NIX_IMAGE = "docker.io/nixos/nix:latest"

# Adapted from distrobox-init and the devcontainers common-utils feature
DEFAULT_BASE_PACKAGES = frozenset(
    {
        "bash",
        "bash-completion",
        "bc",
        "curl",
        "diffutils",
        "findutils",
        "glibc",
        "gnupg",
        "iputils",
        "inetutils",
        "keyutils",
        "less",
        "lsof",
        "man",
        "mlocate",
        "mtr",
        "ncurses",
        "nssmdns",
        "openssh",
        "pigz",
        "pinentry-tty",
        "procps",
        "rsync",
        "shadow",
        "sudo",
        "tcpdump",
        "time",
        "traceroute",
        "tree",
        "tzdata",
        "unzip",
        "util-linux",
        "wget",
        "zip",
    }
)

_KNOWN_KEYS = frozenset(
    {"docker_name", "nix_image", "base_packages", "additional_packages"}
)


@dataclass(frozen=True)
class Settings:
    """Values used to configure a yadt run."""

    # Docker-compatible cli; the launch options (--userns keep-id,
    # --env-merge) need podman
    docker_name: str = DEFAULT_DOCKER_NAME
    # Image with the nix cli that builds the package set
    nix_image: str = DEFAULT_NIX_IMAGE
    base_packages: frozenset[str] = DEFAULT_BASE_PACKAGES
    additional_packages: frozenset[str] = field(default_factory=frozenset)

    @property
    def packages(self) -> PackageSet:
        """Return the merged base and additional packages."""
        return PackageSet.union(self.base_packages, self.additional_packages)

    @classmethod
    def from_file(cls, path: Path | str) -> Settings:
        """Load settings from a TOML file.

        Args:
            path: Path to the TOML configuration file

        Returns:
            Settings instance

        Raises:
            ConfigParseError: If the file cannot be read or is malformed
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeError) as exc:
            raise ConfigParseError(f"Failed to read config file {path}: {exc}") from exc

        try:
            data = tomllib.loads(text)
        except tomllib.TOMLDecodeError as exc:
            raise ConfigParseError(f"Failed to parse config file {path}: {exc}") from exc

        try:
            return cls.from_dict(data)
        except ConfigParseError as exc:
            raise ConfigParseError(f"Invalid config file {path}: {exc}") from exc

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """Create settings from a dictionary, applying defaults for missing keys."""
        for key in sorted(set(data) - _KNOWN_KEYS):
            logger.warning("Ignoring unknown config key %r", key)

        return cls(
            docker_name=_parse_string(data, "docker_name", DEFAULT_DOCKER_NAME),
            nix_image=_parse_string(data, "nix_image", DEFAULT_NIX_IMAGE),
            base_packages=_parse_packages(
                data, "base_packages", DEFAULT_BASE_PACKAGES
            ),
            additional_packages=_parse_packages(
                data, "additional_packages", frozenset()
            ),
        )


def _parse_string(data: dict[str, Any], key: str, default: str) -> str:
    """Read a non-empty string value."""
    value = data.get(key, default)
    if not isinstance(value, str) or not value.strip():
        raise ConfigParseError(f"'{key}' must be a non-empty string")
    return value


def _parse_packages(
    data: dict[str, Any], key: str, default: frozenset[str]
) -> frozenset[str]:
    """Read a list of package names.

    Names are joined with spaces into PACKAGES_STRING, so a name holding
    whitespace would silently turn into several packages.
    """
    if key not in data:
        return default

    value = data[key]
    if not isinstance(value, list):
        raise ConfigParseError(f"'{key}' must be a list of package names")

    for name in value:
        if not isinstance(name, str) or not name or name != "".join(name.split()):
            raise ConfigParseError(f"'{key}' contains an invalid package name: {name!r}")

    return frozenset(value)


def default_config_path() -> Path:
    """Return the per-user config file location."""
    return Path(click.get_app_dir(APP_NAME)) / CONFIG_FILE_NAME


def load_settings(config_override: Path | str | None = None) -> Settings:
    """Return settings for this run.

    If an override file is given it must exist and parse. Otherwise the
    per-user config file is used if present, falling back to defaults.

    Raises:
        ConfigParseError: If the selected file cannot be read or parsed
    """
    if config_override is not None:
        logger.debug("Loading config override %s", config_override)
        return Settings.from_file(config_override)

    path = default_config_path()
    if path.is_file():
        logger.debug("Loading config %s", path)
        return Settings.from_file(path)

    logger.debug("No config file at %s, using defaults", path)
    return Settings()
