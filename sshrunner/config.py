import os

# ========= Static config =========
BUFFER_SIZE = 32768

# ========= Stream tee =========
OUT_PREFIX = "> "
ERR_PREFIX = "! "

# ========= Sink protocol =========
SINK_TERMINATOR = b"\x00"
SINK_PROGRAM = "scp"

# ========= Runtime Configuration =========
class RunnerConfig:
    def __init__(self):
        # Target directories for copy/remove are usually root-owned.
        self.USE_SUDO: bool = True

    def load_from_env(self):
        sudo_env = os.environ.get("SSH_RUNNER_SUDO")
        if sudo_env is not None:
            self.USE_SUDO = sudo_env.lower() in ("true", "1", "yes")
        return self

# Global instance
config = RunnerConfig()
