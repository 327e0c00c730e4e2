"""Tests for the CLI and stage sequencing."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from yadt import __version__
from yadt.cli import cli
from yadt.core import resolve_packages

BUILD_ID = "sha256:4f53cda18c2baa0c0354bb5f9a3ecbe5ed12ab4d8e11ba873c2f11161202b945"


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def execvp():
    with patch("yadt.builder.os.execvp", side_effect=SystemExit(0)) as mock:
        yield mock


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(
        'nix_image = "docker.io/nixos/nix:latest"\n'
        'base_packages = ["bash"]\n'
        'additional_packages = ["git"]\n'
    )
    return path


@pytest.fixture
def workspace(tmp_path):
    path = tmp_path / "project"
    path.mkdir()
    return path


class TestImageCommand:
    """Tests for the image subcommand."""

    def test_end_to_end(self, runner, fake_docker, execvp, config_file, workspace):
        fake_docker.queue(f"step 1/2\n{BUILD_ID}\n".encode())

        result = runner.invoke(
            cli,
            ["--config", str(config_file), "image", "docker.io/library/ubuntu:latest", str(workspace)],
        )

        assert result.exit_code == 0, result.output
        assert len(fake_docker.commands) == 1
        build_cmd = fake_docker.commands[0]
        assert build_cmd[:4] == ["podman", "build", "-f", "-"]
        assert "NIX_IMAGE=docker.io/nixos/nix:latest" in build_cmd
        assert "DEV_IMAGE=docker.io/library/ubuntu:latest" in build_cmd
        packages_arg = next(a for a in build_cmd if a.startswith("PACKAGES_STRING="))
        tokens = packages_arg.removeprefix("PACKAGES_STRING=").split(" ")
        assert sorted(tokens) == ["nixpkgs#bash", "nixpkgs#git"]

        _, argv = execvp.call_args.args
        assert argv[-2] == BUILD_ID
        assert f"{workspace.resolve()}:/workspace:rw" in argv
        assert ">>> step 1/2" in result.output

    def test_empty_build_output_names_stage(self, runner, fake_docker, execvp, config_file, workspace):
        fake_docker.queue(b"")

        result = runner.invoke(
            cli, ["--config", str(config_file), "image", "ubuntu", str(workspace)]
        )

        assert result.exit_code == 1
        assert "layered build:" in result.output
        assert not execvp.called

    def test_launch_failure_names_stage(self, runner, fake_docker, config_file, workspace):
        fake_docker.queue(f"{BUILD_ID}\n".encode())

        with patch("yadt.builder.os.execvp", side_effect=FileNotFoundError("podman")):
            result = runner.invoke(
                cli, ["--config", str(config_file), "image", "ubuntu", str(workspace)]
            )

        assert result.exit_code == 1
        assert "launch:" in result.output

    def test_docker_name_from_config(self, runner, fake_docker, execvp, tmp_path, workspace):
        config = tmp_path / "docker.toml"
        config.write_text('docker_name = "docker"\n')
        fake_docker.queue(f"{BUILD_ID}\n".encode())

        result = runner.invoke(cli, ["-c", str(config), "image", "ubuntu", str(workspace)])

        assert result.exit_code == 0, result.output
        assert fake_docker.commands[0][0] == "docker"
        assert execvp.call_args.args[0] == "docker"

    def test_missing_workspace_rejected(self, runner, fake_docker, config_file, tmp_path):
        result = runner.invoke(
            cli, ["--config", str(config_file), "image", "ubuntu", str(tmp_path / "nope")]
        )
        assert result.exit_code == 2
        assert not fake_docker.popen.called


    def test_packages_string_resolved_from_settings(
        self, runner, fake_docker, execvp, config_file, workspace
    ):
        fake_docker.queue(f"{BUILD_ID}\n".encode())

        with patch("yadt.cli.resolve_packages", wraps=resolve_packages) as resolver:
            result = runner.invoke(
                cli, ["--config", str(config_file), "image", "ubuntu", str(workspace)]
            )

        assert result.exit_code == 0, result.output
        resolver.assert_called_once_with(frozenset({"bash"}), frozenset({"git"}))
        assert "PACKAGES_STRING=nixpkgs#bash nixpkgs#git" in fake_docker.commands[0]


class TestContainerfileCommand:
    """Tests for the containerfile subcommand."""

    def test_two_stage_build(self, runner, fake_docker, execvp, config_file, workspace):
        recipe = workspace / "Containerfile"
        recipe.write_text("FROM docker.io/library/fedora\n")
        fake_docker.queue(b"STEP 1/1: FROM fedora\nabc123\n")
        fake_docker.queue(f"step 1/2\n{BUILD_ID}\n".encode())

        result = runner.invoke(
            cli, ["--config", str(config_file), "containerfile", str(recipe), str(workspace)]
        )

        assert result.exit_code == 0, result.output
        dev_build, layered_build = fake_docker.commands
        assert dev_build[:4] == ["podman", "build", "-f", str(recipe.resolve())]
        assert "DEV_IMAGE=abc123" in layered_build
        assert execvp.call_args.args[1][-2] == BUILD_ID

    def test_failed_dev_build_names_stage(self, runner, fake_docker, execvp, config_file, workspace):
        recipe = workspace / "Containerfile"
        recipe.write_text("FROM nowhere\n")
        fake_docker.queue(b"Error: no such image\n", returncode=125)

        result = runner.invoke(
            cli, ["--config", str(config_file), "containerfile", str(recipe), str(workspace)]
        )

        assert result.exit_code == 1
        assert "image acquisition:" in result.output
        assert len(fake_docker.commands) == 1
        assert not execvp.called


class TestGroup:
    """Tests for group level options."""

    def test_help_describes_argument_order(self, runner):
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "yadt image NAME WORKSPACE" in " ".join(result.output.split())

    def test_containerfile_help_describes_build_context(self, runner):
        result = runner.invoke(cli, ["containerfile", "--help"])
        assert result.exit_code == 0
        assert "is the build context" in " ".join(result.output.split())

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_bad_config_fails_before_build(self, runner, fake_docker, tmp_path, workspace):
        config = tmp_path / "bad.toml"
        config.write_text("base_packages = [\n")

        result = runner.invoke(cli, ["--config", str(config), "image", "ubuntu", str(workspace)])

        assert result.exit_code == 1
        assert "config:" in result.output
        assert not fake_docker.popen.called

    def test_config_from_env(self, runner, fake_docker, execvp, tmp_path, workspace):
        config = tmp_path / "env.toml"
        config.write_text('docker_name = "docker"\n')
        fake_docker.queue(f"{BUILD_ID}\n".encode())

        result = runner.invoke(
            cli, ["image", "ubuntu", str(workspace)], env={"YADT_CONFIG": str(config)}
        )

        assert result.exit_code == 0, result.output
        assert fake_docker.commands[0][0] == "docker"
