"""Shared fixtures: a local stand-in for a remote session and a log recorder."""

from __future__ import annotations

import io
import os
import subprocess
import threading
from typing import Any, Callable

import pytest

from sshrunner.errors import ExecutionError, StreamSetupError


class RecordingLog:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.records: list[tuple[str, str]] = []

    def __call__(self, level: str, message: str) -> None:
        with self.lock:
            self.records.append((level, message))

    def messages(self, level: str | None = None) -> list[str]:
        with self.lock:
            return [msg for lvl, msg in self.records if level is None or lvl == level]


class _FdReader:
    def __init__(self, fd: int) -> None:
        self.fd = fd

    def read(self, size: int) -> bytes:
        return os.read(self.fd, size)


class _FdWriter:
    def __init__(self, session: LocalSession) -> None:
        self.session = session

    def write(self, data: bytes) -> int:
        self.session.started_event.wait()
        view = memoryview(data)
        while view:
            written = os.write(self.session.in_w, view)
            view = view[written:]
        return len(data)

    def close(self) -> None:
        self.session.started_event.wait()
        self.session.close_stdin()


class LocalSession:
    """Runs the command with ``sh -c`` over real OS pipes.

    ``override`` replaces the command actually executed while the requested
    one is still recorded, so copy and remove commands can be observed
    without root or a remote host.
    """

    def __init__(self, override: str | None = None) -> None:
        self.override = override
        self.command: str | None = None
        self.proc: subprocess.Popen | None = None
        self.started_event = threading.Event()
        self.closed = False
        self.stdin_taken = False
        self._stdin_open = True
        self._lock = threading.Lock()
        self.out_r, self.out_w = os.pipe()
        self.err_r, self.err_w = os.pipe()
        self.in_r, self.in_w = os.pipe()

    def _check_pipe(self, name: str) -> None:
        if self.command is not None:
            raise StreamSetupError(f"{name}: command already started")

    def stdout_pipe(self) -> _FdReader:
        self._check_pipe("stdout")
        return _FdReader(self.out_r)

    def stderr_pipe(self) -> _FdReader:
        self._check_pipe("stderr")
        return _FdReader(self.err_r)

    def stdin_pipe(self) -> _FdWriter:
        self._check_pipe("stdin")
        self.stdin_taken = True
        return _FdWriter(self)

    def close_stdin(self) -> None:
        with self._lock:
            if self._stdin_open:
                self._stdin_open = False
                os.close(self.in_w)

    def start(self, command: str) -> None:
        self.command = command
        if not self.stdin_taken:
            self.close_stdin()
        try:
            self.proc = subprocess.Popen(
                ["sh", "-c", self.override or command],
                stdin=self.in_r,
                stdout=self.out_w,
                stderr=self.err_w,
            )
        finally:
            for fd in (self.in_r, self.out_w, self.err_w):
                os.close(fd)
            self.started_event.set()

    def wait(self) -> None:
        assert self.proc is not None
        status = self.proc.wait()
        if status != 0:
            raise ExecutionError(self.command or "", f"Process exited with status {status}", exit_status=status)

    def run(self, command: str) -> None:
        self.start(command)
        self.wait()

    def close(self) -> None:
        self.started_event.set()
        if self.closed:
            raise EOFError("session already closed")
        self.closed = True
        if self.command is None:
            for fd in (self.in_r, self.out_w, self.err_w):
                os.close(fd)
        self.close_stdin()
        os.close(self.out_r)
        os.close(self.err_r)


class FakeChannel:
    """Just enough of ``paramiko.Channel`` for ``RemoteSession``."""

    def __init__(
        self,
        stdout: bytes = b"",
        stderr: bytes = b"",
        exit_status: int = 0,
        exec_error: Exception | None = None,
    ) -> None:
        self._out = io.BytesIO(stdout)
        self._err = io.BytesIO(stderr)
        self.exit_status = exit_status
        self.exec_error = exec_error
        self.commands: list[str] = []
        self.sent = bytearray()
        self.write_shut = False
        self.closed = False
        self.close_calls = 0

    def recv(self, size: int) -> bytes:
        return self._out.read(size)

    def recv_stderr(self, size: int) -> bytes:
        return self._err.read(size)

    def exec_command(self, command: str) -> None:
        if self.exec_error is not None:
            raise self.exec_error
        self.commands.append(command)

    def recv_exit_status(self) -> int:
        return self.exit_status

    def sendall(self, data: bytes) -> None:
        if self.closed:
            raise OSError("Socket is closed")
        self.sent += data

    def shutdown_write(self) -> None:
        self.write_shut = True

    def close(self) -> None:
        self.close_calls += 1
        self.closed = True


@pytest.fixture
def log() -> RecordingLog:
    return RecordingLog()


@pytest.fixture
def sessions() -> list[Any]:
    """Every session handed out by ``local_factory`` during the test."""

    return []


@pytest.fixture
def local_factory(sessions: list[Any]) -> Callable[..., Callable[[], LocalSession]]:
    def make(override: str | None = None) -> Callable[[], LocalSession]:
        def factory() -> LocalSession:
            session = LocalSession(override)
            sessions.append(session)
            return session

        return factory

    return make


@pytest.fixture
def fake_channel() -> type[FakeChannel]:
    return FakeChannel
