"""Minimal scp sink protocol: push a single file to ``scp -t <dir>``.

Wire format, byte for byte::

    C<perm> <length> <name>\\n
    <exactly length bytes>
    \\x00

A zero-length file gets the header and the terminator only.
"""

import threading
from dataclasses import dataclass
from typing import Any, Optional

from sshrunner.assets import CopyableFile
from sshrunner.config import BUFFER_SIZE, SINK_PROGRAM, SINK_TERMINATOR
from sshrunner.errors import ExecutionError, ReadError, TransferSizeMismatchError
from sshrunner.utils import INFO, WARNING, ERROR, LogFunc, quote, sudo_prefix


@dataclass
class TransferOutcome:
    name: str
    expected: int
    copied: int = 0
    error: Optional[BaseException] = None


def sink_header(permissions: str, length: int, name: str) -> bytes:
    return f"C{permissions} {length} {name}\n".encode("utf-8")


def sink_command(target_dir: str, use_sudo: bool = True) -> str:
    target = quote(target_dir)
    mkdir = sudo_prefix(f"mkdir -p {target}", use_sudo)
    receive = sudo_prefix(f"{SINK_PROGRAM} -t {target}", use_sudo)
    return f"{mkdir} && {receive}"


def _send(stdin: Any, data: bytes, command: str) -> None:
    try:
        stdin.write(data)
    except OSError as exc:
        raise ExecutionError(command, f"writing to remote input: {exc}") from exc


def _read(source: Any, size: int, name: str) -> bytes:
    try:
        return source.read(size)
    except OSError as exc:
        raise ReadError(f"{name}: reading content: {exc}") from exc


def copy_exact(source: Any, stdin: Any, length: int, name: str, command: str) -> int:
    """Send at most ``length`` bytes of ``source``; return how many it held.

    A source longer than ``length`` is read to the end so the surplus can be
    counted, but nothing past ``length`` is sent.
    """
    copied = 0
    while copied < length:
        chunk = _read(source, min(BUFFER_SIZE, length - copied), name)
        if not chunk:
            return copied
        _send(stdin, chunk, command)
        copied += len(chunk)
    while True:
        surplus = _read(source, BUFFER_SIZE, name)
        if not surplus:
            return copied
        copied += len(surplus)


def write_sink(stdin: Any, f: CopyableFile, command: str, log: LogFunc) -> int:
    """Write one file to ``stdin`` in sink format and close it.

    ``stdin`` is closed on every path; the receiver waits on it.
    """
    name = f.get_target_name()
    length = f.get_length()
    try:
        _send(stdin, sink_header(f.get_permissions(), length, name), command)
        if length == 0:
            log(WARNING, f"{name} is a 0 byte asset!")
            _send(stdin, SINK_TERMINATOR, command)
            return 0

        copied = copy_exact(f, stdin, length, name, command)
        if copied != length:
            raise TransferSizeMismatchError(name, length, copied)
        log(INFO, f"{name}: copied {copied} bytes")
        _send(stdin, SINK_TERMINATOR, command)
        return copied
    finally:
        try:
            stdin.close()
        except OSError as exc:
            log(ERROR, f"{name}: closing remote input: {exc}")


class SinkWriter(threading.Thread):
    def __init__(self, stdin: Any, f: CopyableFile, command: str, log: LogFunc):
        super().__init__(name="scp-sink", daemon=True)
        self.stdin = stdin
        self.file = f
        self.command = command
        self.log = log
        self.outcome = TransferOutcome(name=f.get_target_name(), expected=f.get_length())

    def run(self) -> None:
        try:
            self.outcome.copied = write_sink(self.stdin, self.file, self.command, self.log)
        except TransferSizeMismatchError as exc:
            self.outcome.copied = exc.copied
            self.outcome.error = exc
        except Exception as exc:
            self.outcome.error = exc
