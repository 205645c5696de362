import sys
import shlex
import posixpath
from typing import Callable, List

INFO = "info"
WARNING = "warning"
ERROR = "error"

# A logging capability: receives a severity level and one line of text.
LogFunc = Callable[[str, str], None]

def log_line(level: str, message: str) -> None:
    print(f"[ssh-runner] {level.upper()} {message}", file=sys.stderr, flush=True)

def to_text(data: bytes) -> str:
    return data.decode("utf-8", errors="replace")

def split_lines(pending: bytes, chunk: bytes):
    """Split ``pending + chunk`` into complete lines and an unterminated tail.

    Lines are returned without their ``\\n`` (and without a trailing ``\\r``).
    """
    data = pending + chunk
    if b"\n" not in data:
        return [], data
    parts = data.split(b"\n")
    tail = parts.pop()
    lines: List[bytes] = [part[:-1] if part.endswith(b"\r") else part for part in parts]
    return lines, tail

def sudo_prefix(command: str, use_sudo: bool) -> str:
    return f"sudo {command}" if use_sudo else command

def remote_join(directory: str, name: str) -> str:
    return posixpath.join(directory, name)

def quote(value: str) -> str:
    return shlex.quote(value)
