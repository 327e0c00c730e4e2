"""CLI interface using Click."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click

from . import __version__ as VERSION
from .builder import acquire_dev_image, build_layered_image, exec_container
from .config import Settings, load_settings
from .core import resolve_packages
from .exceptions import YadtError
from .models import BuildTarget, FromRecipe, FromReference

if TYPE_CHECKING:
    from click import Context


# Stage labels used in error messages
STAGE_CONFIG = "config"
STAGE_ACQUIRE = "image acquisition"
STAGE_LAYERED_BUILD = "layered build"
STAGE_LAUNCH = "launch"

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


@contextmanager
def _stage(name: str) -> Iterator[None]:
    """Tag yadt errors escaping the block with the stage they came from."""
    try:
        yield
    except YadtError as exc:
        if exc.stage is None:
            exc.stage = name
        raise


def launch(settings: Settings, target: BuildTarget, workspace: Path) -> NoReturn:
    """
    Build the dev environment image and exec into it.

    Runs image acquisition, the layered nix build and the interactive
    launch strictly in order. Does not return on success.

    Raises:
        YadtError: Tagged with the stage that failed
    """
    with _stage(STAGE_ACQUIRE):
        dev_image = acquire_dev_image(settings.docker_name, target)

    with _stage(STAGE_LAYERED_BUILD):
        packages_string = resolve_packages(
            settings.base_packages, settings.additional_packages
        )
        click.echo(f"Installing {len(settings.packages)} nix packages into {dev_image}...")
        image_id = build_layered_image(
            settings.docker_name,
            settings.nix_image,
            dev_image,
            packages_string,
        )
        click.echo()
        click.secho(f"✅ Image built successfully: {image_id}", fg="green")

    with _stage(STAGE_LAUNCH):
        exec_container(settings.docker_name, image_id, workspace)


def _run(ctx: "Context", target: BuildTarget, workspace: Path) -> None:
    """Load settings from the group options and launch."""
    try:
        with _stage(STAGE_CONFIG):
            settings = load_settings(ctx.obj.get("config"))
        launch(settings, target, workspace)
    except YadtError as exc:
        raise click.ClickException(str(exc)) from exc


_workspace_argument = click.argument(
    "workspace",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
)


@click.group()
@click.option(
    "-c",
    "--config",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="YADT_CONFIG",
    help="Override the default config file",
    metavar="FILE",
)
@click.option("-v", "--verbose", is_flag=True, help="Show verbose output")
@click.version_option(version=VERSION, prog_name="yadt")
@click.pass_context
def cli(ctx: "Context", config: Path | None, verbose: bool) -> None:
    """
    yadt - Layer nix packages onto a dev image and open a shell in it

    \b
    Usage examples:
        # Use an existing image
        yadt image docker.io/library/ubuntu:latest .

        # Build a Containerfile first
        yadt containerfile ./Containerfile ~/src/project

    \b
    WORKSPACE is given after the image source of each subcommand, e.g.
    "yadt image NAME WORKSPACE" rather than "yadt WORKSPACE image NAME".
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=_LOG_FORMAT)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.command()
@click.argument(
    "containerfile",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@_workspace_argument
@click.pass_context
def containerfile(ctx: "Context", containerfile: Path, workspace: Path) -> None:
    """Build CONTAINERFILE and use it as the dev image.

    The directory holding CONTAINERFILE is the build context, so COPY and
    ADD paths resolve relative to it, not to the current directory.
    """
    _run(ctx, FromRecipe(containerfile), workspace)


@cli.command()
@click.argument("image", metavar="IMAGE_NAME")
@_workspace_argument
@click.pass_context
def image(ctx: "Context", image: str, workspace: Path) -> None:
    """Pull or use an existing image as the dev image."""
    _run(ctx, FromReference(image), workspace)


if __name__ == "__main__":
    cli()
