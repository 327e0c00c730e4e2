"""Container image building and container running functionality."""

import logging
import os
import shlex
import subprocess
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import IO, NoReturn

import click

from .core import CONTAINERFILE, layered_build_args
from .exceptions import (
    BuildFailedError,
    BuildOutputEmptyError,
    BuildProcessError,
    LaunchError,
    LineDecodeError,
    PathResolutionError,
)
from .models import (
    CONTAINER_NAME_PREFIX,
    DEFAULT_SHELL,
    NIX_BIN_DIR,
    WORKSPACE_MOUNT,
    BuildTarget,
    FromRecipe,
    FromReference,
)
from .utils import sanitize_container_name

logger = logging.getLogger(__name__)
# Add null handler to avoid "No handler found" warnings
logger.addHandler(logging.NullHandler())

PROGRESS_PREFIX = ">>> "
# Read the build recipe from stdin
STDIN_RECIPE = "-"


def resolve_path(path: Path | str, what: str) -> Path:
    """Return the absolute, symlink-free form of an existing path.

    Raises:
        PathResolutionError: If the path does not exist or cannot be resolved
    """
    try:
        return Path(path).resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise PathResolutionError(f"Could not resolve {what} path {path}: {exc}") from exc


def _echo_progress(line: str) -> None:
    click.echo(f"{PROGRESS_PREFIX}{line}")


def capture_last_line(
    lines: Iterable[bytes],
    echo: Callable[[str], None] | None = None,
) -> str:
    """Consume a build output stream and return its last non-blank line.

    Every line is passed to ``echo`` as soon as it is read, so progress
    stays visible while the stream is captured.

    Args:
        lines: Raw output lines, in order, including line terminators
        echo: Called with each decoded line

    Returns:
        The last non-blank line, without its line terminator

    Raises:
        LineDecodeError: If a line is not valid UTF-8
        BuildOutputEmptyError: If the stream holds no non-blank line
    """
    last_line: str | None = None
    for lineno, raw in enumerate(lines, 1):
        try:
            line = raw.decode("utf-8").rstrip("\r\n")
        except UnicodeDecodeError as exc:
            raise LineDecodeError(
                f"Could not decode line {lineno} of build output: {exc}"
            ) from exc

        if echo is not None:
            echo(line)
        if line.strip():
            last_line = line

    if last_line is None:
        raise BuildOutputEmptyError("Build command did not write an image id to stdout")
    return last_line


def _write_recipe(stdin: IO[bytes], recipe: bytes) -> None:
    """Write the recipe to the build process and close its stdin.

    Runs on its own thread. Write errors (usually a broken pipe because
    the build exited early) are only logged: the reader sees EOF either
    way and the exit status tells whether the build worked.
    """
    try:
        stdin.write(recipe)
        stdin.flush()
    except OSError as exc:
        logger.warning("Could not write build recipe to build process: %s", exc)
    finally:
        try:
            stdin.close()
        except OSError as exc:
            logger.debug("Closing build process stdin failed: %s", exc)


def stream_build(cmd: list[str], recipe: bytes | None = None) -> str:
    """Run a build command and capture the image id it prints last.

    Stdout is forwarded line by line with a progress prefix; stderr stays
    attached to the terminal. When ``recipe`` is given it is fed to the
    process's stdin from a background thread while stdout is read here,
    so neither side can fill a pipe buffer and block the other.

    Args:
        cmd: Build command line
        recipe: Build recipe to send on stdin, or None to leave stdin alone

    Returns:
        The last non-blank line of stdout

    Raises:
        BuildProcessError: If the process cannot be started or its pipes captured
        BuildOutputEmptyError: If the process printed nothing
        LineDecodeError: If the output is not valid UTF-8
        BuildFailedError: If the process exits with a non-zero status
    """
    logger.info("Executing command: %s", shlex.join(cmd))
    try:
        process = subprocess.Popen(
            cmd,
            stdin=subprocess.PIPE if recipe is not None else None,
            stdout=subprocess.PIPE,
        )
    except OSError as exc:
        raise BuildProcessError(f"Could not start {cmd[0]}: {exc}") from exc

    if process.stdout is None or (recipe is not None and process.stdin is None):
        process.kill()
        process.wait()
        raise BuildProcessError("Could not capture build process stdin/stdout")

    if recipe is not None:
        writer = threading.Thread(
            target=_write_recipe,
            args=(process.stdin, recipe),
            name="recipe-writer",
            daemon=True,
        )
        writer.start()

    try:
        with process.stdout:
            image_id = capture_last_line(process.stdout, echo=_echo_progress)
    except BaseException:
        process.kill()
        process.wait()
        raise

    returncode = process.wait()
    if returncode != 0:
        raise BuildFailedError(f"{cmd[0]} build failed (exit code {returncode})")

    logger.debug("Captured image id %s", image_id)
    return image_id


def acquire_dev_image(docker_name: str, target: BuildTarget) -> str:
    """
    Return the reference of the dev image the packages are layered onto.

    Args:
        docker_name: Docker-compatible cli to build with
        target: Existing image reference, or Containerfile to build

    Returns:
        The image reference, unchanged for FromReference, else the built image id

    Raises:
        PathResolutionError: If the Containerfile cannot be found
        BuildError: If building the Containerfile fails
    """
    if isinstance(target, FromReference):
        return target.name

    if isinstance(target, FromRecipe):
        recipe_path = resolve_path(target.path, "containerfile")
        click.echo(f"Building dev image from {recipe_path}...")
        cmd = [docker_name, "build", "-f", str(recipe_path), str(recipe_path.parent)]
        return stream_build(cmd)

    raise TypeError(f"Unsupported build target: {target!r}")


def build_layered_image(
    docker_name: str,
    nix_image: str,
    dev_image: str,
    packages_string: str,
    recipe: bytes = CONTAINERFILE,
) -> str:
    """
    Build the nix package set into the dev image.

    Args:
        docker_name: Docker-compatible cli to build with
        nix_image: Image providing the nix cli
        dev_image: Image the packages are copied into
        packages_string: Rendered PACKAGES_STRING build argument
        recipe: Build recipe sent on stdin

    Returns:
        The id of the built image. Unlike a plain "last line" rule, a
        trailing whitespace-only line is never taken as the id; the last
        non-blank line is used and an all-blank output is an error.

    Raises:
        BuildError: If the build fails
    """
    cmd = [
        docker_name,
        "build",
        "-f",
        STDIN_RECIPE,
        *layered_build_args(nix_image, dev_image, packages_string),
    ]
    return stream_build(cmd, recipe=recipe)


def container_name_for(workspace: Path) -> str:
    """Return the container name used for a workspace."""
    return f"{CONTAINER_NAME_PREFIX}-{sanitize_container_name(workspace.name)}"


def build_run_command(docker_name: str, image_id: str, workspace: Path) -> list[str]:
    """Build the interactive run command line for a resolved workspace."""
    return [
        docker_name,
        "run",
        "--rm",
        "--tty",
        "--interactive",
        "--volume",
        f"{workspace}:{WORKSPACE_MOUNT}:rw",
        "--workdir",
        WORKSPACE_MOUNT,
        "--userns",
        "keep-id",
        "--name",
        container_name_for(workspace),
        "--network",
        "host",
        # ${PATH} is expanded by the container cli against the image env
        "--env-merge",
        f"PATH=${{PATH}}:{NIX_BIN_DIR}",
        image_id,
        DEFAULT_SHELL,
    ]


def exec_container(docker_name: str, image_id: str, workspace: Path | str) -> NoReturn:
    """
    Replace this process with an interactive container run.

    Args:
        docker_name: Docker-compatible cli to run with
        image_id: Image to run
        workspace: Host directory mounted at /workspace

    Raises:
        PathResolutionError: If the workspace cannot be resolved
        LaunchError: If the container cli cannot be exec'd
    """
    resolved = resolve_path(workspace, "workspace")
    cmd = build_run_command(docker_name, image_id, resolved)
    logger.info("Executing command: %s", shlex.join(cmd))
    try:
        os.execvp(cmd[0], cmd)
    except OSError as exc:
        raise LaunchError(f"Could not execute {cmd[0]}: {exc}") from exc
    raise AssertionError("execvp() returned")
