from typing import List, Optional


class RunnerError(Exception):
    """Base class for every failure raised by the runner."""


class SessionCreationError(RunnerError):
    """A new remote execution channel could not be opened."""


class StreamSetupError(RunnerError):
    """A pipe could not be acquired before the command started."""


class ExecutionError(RunnerError):
    """The remote command failed, or the transport failed while it ran.

    ``exit_status`` is ``None`` when the failure came from the transport
    rather than from the command itself. Captured output is attached by the
    runner so the failure can be diagnosed without running it again.
    """

    def __init__(
        self,
        command: str,
        reason: str,
        exit_status: Optional[int] = None,
        stdout: Optional[str] = None,
        stderr: Optional[str] = None,
        output: Optional[str] = None,
    ):
        super().__init__(reason)
        self.command = command
        self.reason = reason
        self.exit_status = exit_status
        self.stdout = stdout
        self.stderr = stderr
        self.output = output
        self.stream_errors: List[BaseException] = []

    def __str__(self) -> str:
        lines = [f"command failed: {self.command}: {self.reason}"]
        if self.stdout is not None:
            lines.append(f"stdout: {self.stdout}")
        if self.stderr is not None:
            lines.append(f"stderr: {self.stderr}")
        if self.output is not None:
            lines.append(f"output: {self.output}")
        for exc in self.stream_errors:
            lines.append(f"stream error: {exc}")
        return "\n".join(lines)


class TransferSizeMismatchError(RunnerError):
    def __init__(self, name: str, expected: int, copied: int):
        super().__init__(f"{name}: expected to copy {expected} bytes, but copied {copied} instead")
        self.name = name
        self.expected = expected
        self.copied = copied


class ReadError(RunnerError):
    """The local content source failed part way through a copy."""
