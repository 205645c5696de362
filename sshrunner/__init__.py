from sshrunner.assets import CopyableFile, FileAsset, MemoryAsset
from sshrunner.config import RunnerConfig, config
from sshrunner.errors import (
    ExecutionError, ReadError, RunnerError, SessionCreationError,
    StreamSetupError, TransferSizeMismatchError,
)
from sshrunner.runner import SSHRunner
from sshrunner.ssh import RemoteSession, open_session

__version__ = "0.1.0"
