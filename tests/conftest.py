"""Shared fixtures for yadt tests."""

import io
import subprocess
import threading
from unittest.mock import patch

import pytest


class RecordingStdin(io.BytesIO):
    """In-memory stdin that keeps its contents after being closed."""

    def __init__(self):
        super().__init__()
        self.written = b""
        self.closed_event = threading.Event()

    def close(self):
        if not self.closed:
            self.written = self.getvalue()
        super().close()
        self.closed_event.set()


class FakeProcess:
    """Stand-in for subprocess.Popen with canned stdout."""

    def __init__(self, args, stdout_data, returncode, stdin, missing=None):
        self.args = args
        self.stdin = RecordingStdin() if stdin == subprocess.PIPE and missing != "stdin" else None
        self.stdout = io.BytesIO(stdout_data) if missing != "stdout" else None
        self.returncode = None
        self.killed = False
        self._exit_code = returncode

    def wait(self, timeout=None):
        self.returncode = self._exit_code
        return self.returncode

    def kill(self):
        self.killed = True


class FakeDocker:
    """Replays queued build outputs, one per spawned process."""

    def __init__(self):
        self.processes: list[FakeProcess] = []
        self._results: list[tuple[bytes, int, str | None]] = []

    def queue(
        self, stdout: bytes, returncode: int = 0, missing: str | None = None
    ) -> None:
        """Queue a result; missing="stdin" or "stdout" leaves that handle unset."""
        self._results.append((stdout, returncode, missing))

    @property
    def commands(self) -> list[list[str]]:
        return [proc.args for proc in self.processes]

    def __call__(self, args, stdin=None, stdout=None, **kwargs):
        stdout_data, returncode, missing = self._results.pop(0)
        proc = FakeProcess(list(args), stdout_data, returncode, stdin, missing)
        self.processes.append(proc)
        return proc


@pytest.fixture
def fake_docker():
    """Patch subprocess.Popen in the builder with a FakeDocker."""
    docker = FakeDocker()
    with patch("yadt.builder.subprocess.Popen", side_effect=docker) as popen:
        docker.popen = popen
        yield docker
