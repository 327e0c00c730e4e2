"""Utility functions shared across modules."""

import re


def expand_flagged_options(flag: str, items: list[str]) -> list[str]:
    """Expand a list of items into flag-value pairs.

    Args:
        flag: The flag to use (e.g., "--build-arg", "--volume")
        items: List of values to pair with the flag

    Returns:
        List of [flag, value, flag, value, ...] pairs

    Examples:
        >>> expand_flagged_options("--build-arg", ["A=1", "B=2"])
        ['--build-arg', 'A=1', '--build-arg', 'B=2']
        >>> expand_flagged_options("--volume", [])
        []
    """
    return [pair for item in items for pair in (flag, item)]


def sanitize_container_name(value: str, fallback: str = "workspace") -> str:
    """Sanitize a string for use in a container name.

    Container names may only contain alphanumeric characters, hyphens,
    underscores and periods, and must start with an alphanumeric.

    Examples:
        >>> sanitize_container_name("My Project!")
        'my-project'
        >>> sanitize_container_name("...")
        'workspace'
    """
    sanitized = re.sub(r"[^a-z0-9_.]+", "-", value.lower()).strip("-_.")
    return sanitized or fallback
