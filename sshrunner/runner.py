import io
from functools import partial
from typing import Any, Callable, Optional, TextIO

import paramiko

from sshrunner.assets import CopyableFile
from sshrunner.config import config
from sshrunner.errors import ExecutionError, ReadError, SessionCreationError, TransferSizeMismatchError
from sshrunner.scp import SinkWriter, TransferOutcome, sink_command
from sshrunner.ssh import SyncBuffer, open_session, tee_ssh
from sshrunner.utils import (
    INFO, ERROR, LogFunc, log_line, quote, remote_join, sudo_prefix, to_text
)


def delete_file_command(f: CopyableFile, use_sudo: bool = True) -> str:
    return sudo_prefix(f"rm {quote(remote_join(f.get_target_dir(), f.get_target_name()))}", use_sudo)


class SSHRunner:
    """Runs commands and copies files through an established SSH client.

    Every call opens its own session and closes it before returning; nothing
    is pooled, retried or timed out here. ``session_factory`` replaces the
    paramiko channel with any object offering the same pipe/run/close surface.
    """

    def __init__(
        self,
        client: Optional[paramiko.SSHClient] = None,
        log: LogFunc = log_line,
        session_factory: Optional[Callable[[], Any]] = None,
        use_sudo: Optional[bool] = None,
        delete_command: Optional[Callable[[CopyableFile], str]] = None,
    ):
        if session_factory is None:
            if client is None:
                raise ValueError("either client or session_factory is required")
            session_factory = partial(open_session, client)
        self.client = client
        self.log = log
        self.session_factory = session_factory
        self.use_sudo = config.USE_SUDO if use_sudo is None else use_sudo
        self.delete_command = delete_command or partial(delete_file_command, use_sudo=self.use_sudo)

    def _new_session(self) -> Any:
        try:
            return self.session_factory()
        except SessionCreationError:
            raise
        except (paramiko.SSHException, OSError) as exc:
            raise SessionCreationError(f"NewSession: {exc}") from exc

    def _close_session(self, session: Any) -> None:
        try:
            session.close()
        except EOFError:
            return
        except (paramiko.SSHException, OSError) as exc:
            self.log(ERROR, f"session close: {exc}")

    def run(self, cmd: str) -> None:
        """Run ``cmd`` and wait for it; raises ``ExecutionError`` with its output on failure."""
        self.log(INFO, f"SSH: {cmd}")
        session = self._new_session()
        try:
            out_b = io.BytesIO()
            err_b = io.BytesIO()
            try:
                tee_ssh(session, cmd, out_b, err_b, self.log)
            except ExecutionError as exc:
                exc.stdout = to_text(out_b.getvalue())
                exc.stderr = to_text(err_b.getvalue())
                raise
        finally:
            self._close_session(session)

    def combined_output(self, cmd: str) -> str:
        """Run ``cmd`` and return stdout and stderr merged in arrival order.

        On failure the merged text is still available as ``exc.output``.
        """
        self.log(INFO, f"Run with output: {cmd}")
        session = self._new_session()
        try:
            combined = SyncBuffer()
            try:
                tee_ssh(session, cmd, combined, combined, self.log)
            except ExecutionError as exc:
                exc.output = combined.text()
                raise
            return combined.text()
        finally:
            self._close_session(session)

    def combined_output_to(self, cmd: str, destination: TextIO) -> None:
        out = self.combined_output(cmd)
        destination.write(out)

    def copy(self, f: CopyableFile) -> TransferOutcome:
        """Push ``f`` into its target directory with ``scp -t``.

        The content writer and the receiver command run together; both have
        finished before this returns. A size mismatch or source read failure
        is raised with the receiver's ``ExecutionError`` (and its output) as
        the cause. Otherwise a receiver failure is raised, then any failure
        writing to the remote input.
        """
        session = self._new_session()
        try:
            stdin = session.stdin_pipe()
            dst = remote_join(f.get_target_dir(), f.get_target_name())
            self.log(INFO, f"Transferring {f.get_length()} bytes to {dst}")

            scp = sink_command(f.get_target_dir(), self.use_sudo)
            writer = SinkWriter(stdin, f, scp, self.log)
            output = SyncBuffer()
            receiver_error: Optional[ExecutionError] = None
            try:
                tee_ssh(session, scp, output, output, self.log, before_run=writer.start)
            except ExecutionError as exc:
                exc.output = output.text()
                receiver_error = exc
            finally:
                if writer.is_alive():
                    writer.join()

            writer_error = writer.outcome.error
            if isinstance(writer_error, (TransferSizeMismatchError, ReadError)):
                raise writer_error from receiver_error
            if receiver_error is not None:
                raise receiver_error
            if writer_error is not None:
                raise writer_error
            return writer.outcome
        finally:
            self._close_session(session)

    def remove(self, f: CopyableFile) -> None:
        self.run(self.delete_command(f))
