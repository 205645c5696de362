import threading
from typing import Any, Callable, List, Optional

import paramiko

from sshrunner.config import BUFFER_SIZE, OUT_PREFIX, ERR_PREFIX
from sshrunner.errors import ExecutionError, SessionCreationError, StreamSetupError
from sshrunner.utils import INFO, ERROR, LogFunc, split_lines, to_text


class SyncBuffer:
    """Byte sink shared by the stdout and stderr tees in combined-output mode.

    Appends are serialized, so every chunk lands whole. The relative order of
    chunks from the two streams is whatever order they arrived in.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._data = bytearray()

    def write(self, chunk: bytes) -> int:
        with self._lock:
            self._data += chunk
        return len(chunk)

    def getvalue(self) -> bytes:
        with self._lock:
            return bytes(self._data)

    def text(self) -> str:
        return to_text(self.getvalue())

    def __len__(self) -> int:
        with self._lock:
            return len(self._data)


class ChannelReader:
    def __init__(self, recv):
        self._recv = recv

    def read(self, size: int = BUFFER_SIZE) -> bytes:
        return self._recv(size)


class ChannelWriter:
    """Input side of a session; blocks until the command has been started."""

    def __init__(self, session: "RemoteSession"):
        self.session = session

    def write(self, data: bytes) -> int:
        self.session.started_event.wait()
        self.session.channel.sendall(data)
        return len(data)

    def close(self) -> None:
        self.session.started_event.wait()
        if not self.session.channel.closed:
            self.session.channel.shutdown_write()


class RemoteSession:
    """One remote command invocation over a dedicated paramiko channel.

    Pipes must be taken before ``start``; ``wait`` raises ``ExecutionError``
    for a non-zero (or missing) exit status. ``close`` raises ``EOFError`` if
    the channel has already ended, which callers treat as benign.
    """

    def __init__(self, channel: paramiko.Channel):
        self.channel = channel
        self.command: Optional[str] = None
        self.closed = False
        self.started_event = threading.Event()

    @property
    def started(self) -> bool:
        return self.command is not None

    def _check_pipe(self, name: str) -> None:
        if self.started:
            raise StreamSetupError(f"{name}: command already started")
        if self.channel.closed:
            raise StreamSetupError(f"{name}: channel is closed")

    def stdout_pipe(self) -> ChannelReader:
        self._check_pipe("stdout")
        return ChannelReader(self.channel.recv)

    def stderr_pipe(self) -> ChannelReader:
        self._check_pipe("stderr")
        return ChannelReader(self.channel.recv_stderr)

    def stdin_pipe(self) -> ChannelWriter:
        self._check_pipe("stdin")
        return ChannelWriter(self)

    def start(self, command: str) -> None:
        if self.started:
            raise ExecutionError(command, "session already started")
        self.command = command
        try:
            self.channel.exec_command(command)
        except (paramiko.SSHException, OSError) as exc:
            # Unblock any reader or writer waiting on this channel.
            self.channel.close()
            raise ExecutionError(command, str(exc)) from exc
        finally:
            self.started_event.set()

    def wait(self) -> None:
        status = self.channel.recv_exit_status()
        if status == -1:
            raise ExecutionError(self.command or "", "remote command exited without exit status")
        if status != 0:
            raise ExecutionError(self.command or "", f"Process exited with status {status}", exit_status=status)

    def run(self, command: str) -> None:
        self.start(command)
        self.wait()

    def close(self) -> None:
        self.started_event.set()
        if self.closed or self.channel.closed:
            self.closed = True
            raise EOFError("session already closed")
        self.closed = True
        self.channel.close()


def open_session(client: paramiko.SSHClient) -> RemoteSession:
    transport = client.get_transport()
    if transport is None or not transport.is_active():
        raise SessionCreationError("getting ssh session: transport is not active")
    try:
        channel = transport.open_session()
    except (paramiko.SSHException, OSError) as exc:
        raise SessionCreationError(f"getting ssh session: {exc}") from exc
    return RemoteSession(channel)


def tee_prefix(prefix: str, pipe: Any, sink: Any, log: LogFunc) -> None:
    """Copy ``pipe`` into ``sink`` until end of stream, logging each line.

    The sink gets the raw chunks; only the log sees them split into lines.
    """
    pending = b""
    while True:
        chunk = pipe.read(BUFFER_SIZE)
        if not chunk:
            break
        sink.write(chunk)
        lines, pending = split_lines(pending, chunk)
        for line in lines:
            log(INFO, prefix + to_text(line))
    if pending:
        log(INFO, prefix + to_text(pending))


class StreamTee(threading.Thread):
    def __init__(self, name: str, prefix: str, pipe: Any, sink: Any, log: LogFunc):
        super().__init__(name=f"tee-{name}", daemon=True)
        self.prefix = prefix
        self.pipe = pipe
        self.sink = sink
        self.log = log
        self.error: Optional[BaseException] = None

    def run(self) -> None:
        try:
            tee_prefix(self.prefix, self.pipe, self.sink, self.log)
        except Exception as exc:
            self.error = exc


def tee_ssh(
    session: Any,
    command: str,
    out_sink: Any,
    err_sink: Any,
    log: LogFunc,
    before_run: Optional[Callable[[], None]] = None,
) -> None:
    """Run ``command`` on ``session`` while draining stdout and stderr.

    The tees drain both pipes while the run call blocks. Returns only after
    both tees have seen end of stream. ``before_run`` is
    called once the pipes are in place, just before the command starts.
    """
    out_pipe = session.stdout_pipe()
    err_pipe = session.stderr_pipe()

    tees = [
        StreamTee("stderr", ERR_PREFIX, err_pipe, err_sink, log),
        StreamTee("stdout", OUT_PREFIX, out_pipe, out_sink, log),
    ]
    for tee in tees:
        tee.start()

    error: Optional[ExecutionError] = None
    try:
        if before_run is not None:
            before_run()
        session.run(command)
    except ExecutionError as exc:
        error = exc
    finally:
        for tee in tees:
            tee.join()

    stream_errors: List[BaseException] = []
    for tee in tees:
        if tee.error is not None:
            log(ERROR, f"{tee.name}: {tee.error}")
            stream_errors.append(tee.error)

    if error is not None:
        error.stream_errors.extend(stream_errors)
        raise error
