"""Custom exceptions for yadt."""


class YadtError(Exception):
    """Base exception for all yadt errors.

    ``stage`` names the pipeline stage the error escaped from and is
    filled in by the CLI when the error crosses a stage boundary.
    """

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.stage = stage

    def __str__(self) -> str:
        if self.stage:
            return f"{self.stage}: {self.message}"
        return self.message


class PathResolutionError(YadtError):
    """Raised when a workspace or recipe path cannot be made absolute."""

    pass


class ConfigParseError(YadtError):
    """Raised when the configuration file cannot be read or parsed."""

    pass


class BuildError(YadtError):
    """Base class for container build failures."""

    pass


class BuildProcessError(BuildError):
    """Raised when the build process cannot be spawned or its pipes captured."""

    pass


class BuildOutputEmptyError(BuildError):
    """Raised when a build writes no lines, so no image id can be captured."""

    pass


class LineDecodeError(BuildError):
    """Raised when a line of build output is not valid text."""

    pass


class BuildFailedError(BuildError):
    """Raised when the build process exits with a non-zero status."""

    pass


class LaunchError(YadtError):
    """Raised when the interactive container cannot be exec'd."""

    pass
