"""Files that can be pushed to a remote host with ``SSHRunner.copy``."""

import io
import os
import stat
from typing import BinaryIO, Optional, Protocol


class CopyableFile(Protocol):
    """What the runner needs to know about a file it copies or removes."""

    def get_length(self) -> int: ...

    def get_permissions(self) -> str:
        """Octal permission string, e.g. ``"0644"``."""

    def get_target_dir(self) -> str: ...

    def get_target_name(self) -> str: ...

    def read(self, size: int = -1) -> bytes:
        """Read from the content source, starting at the beginning of the content."""


class BaseAsset:
    def __init__(self, target_dir: str, target_name: str, permissions: str):
        if "/" in target_name:
            raise ValueError(f"target name must not contain a path separator: {target_name!r}")
        self.target_dir = target_dir
        self.target_name = target_name
        self.permissions = permissions

    def get_permissions(self) -> str:
        return self.permissions

    def get_target_dir(self) -> str:
        return self.target_dir

    def get_target_name(self) -> str:
        return self.target_name


class MemoryAsset(BaseAsset):
    def __init__(self, data: bytes, target_dir: str, target_name: str, permissions: str = "0644"):
        super().__init__(target_dir, target_name, permissions)
        self.length = len(data)
        self.reader: BinaryIO = io.BytesIO(data)

    def get_length(self) -> int:
        return self.length

    def read(self, size: int = -1) -> bytes:
        return self.reader.read(size)


class FileAsset(BaseAsset):
    """A local file; length and permissions are taken from ``os.stat``."""

    def __init__(self, source_path: str, target_dir: str, target_name: str, permissions: str = ""):
        st = os.stat(source_path)
        super().__init__(target_dir, target_name, permissions or "%04o" % stat.S_IMODE(st.st_mode))
        self.source_path = source_path
        self.length = st.st_size
        # Opened on first read.
        self.reader: Optional[BinaryIO] = None

    def get_length(self) -> int:
        return self.length

    def read(self, size: int = -1) -> bytes:
        if self.reader is None:
            self.reader = open(self.source_path, "rb")
        return self.reader.read(size)

    def close(self) -> None:
        if self.reader is not None:
            self.reader.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()
