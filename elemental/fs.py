"""Filesystem access, either on the host or under a root directory."""

from __future__ import annotations

import os
import posixpath
import shutil
import tempfile


class SourceNotFound(Exception):
    """No source could be found for an install or upgrade."""

    def __str__(self) -> str:
        return "could not find source"


class OSFS:
    """Filesystem operations on the host, with paths used as given."""

    def raw_path(self, name: str) -> str:
        return name

    def _temp_dir(self) -> str:
        return tempfile.gettempdir()

    def stat(self, name: str) -> os.stat_result:
        return os.stat(self.raw_path(name))

    def lstat(self, name: str) -> os.stat_result:
        return os.lstat(self.raw_path(name))

    def readlink(self, name: str) -> str:
        return os.readlink(self.raw_path(name))

    def exists(self, name: str) -> bool:
        return os.path.exists(self.raw_path(name))

    def read_file(self, name: str) -> bytes:
        with open(self.raw_path(name), "rb") as handle:
            return handle.read()

    def write_file(self, name: str, data: bytes | str, mode: int = 0o644) -> None:
        if isinstance(data, str):
            data = data.encode()
        fd = os.open(self.raw_path(name), os.O_WRONLY | os.O_CREAT | os.O_TRUNC, mode)
        with os.fdopen(fd, "wb") as handle:
            handle.write(data)

    def mkdir(self, name: str, mode: int = 0o755) -> None:
        os.mkdir(self.raw_path(name), mode)

    def makedirs(self, name: str, mode: int = 0o755) -> None:
        os.makedirs(self.raw_path(name), mode, exist_ok=True)

    def remove(self, name: str) -> None:
        os.remove(self.raw_path(name))

    def remove_all(self, name: str) -> None:
        """Remove a file or a whole tree; a missing path is not an error."""
        path = self.raw_path(name)
        if os.path.isdir(path) and not os.path.islink(path):
            shutil.rmtree(path)
        elif os.path.lexists(path):
            os.remove(path)

    def read_dir(self, name: str) -> list[str]:
        """Entry names of a directory, sorted."""
        return sorted(os.listdir(self.raw_path(name)))

    def mkdtemp(self, prefix: str = "") -> str:
        """Create a new temporary directory and return its path."""
        base = self._temp_dir()
        self.makedirs(base)
        real = tempfile.mkdtemp(prefix=prefix, dir=self.raw_path(base))
        return posixpath.join(base, os.path.basename(real))


class RootedFS(OSFS):
    """Filesystem whose absolute paths all live under a root directory."""

    def __init__(self, root: str | os.PathLike[str]) -> None:
        self.root = os.fspath(root)

    def raw_path(self, name: str) -> str:
        relative = posixpath.normpath("/" + name).lstrip("/")
        return os.path.join(self.root, relative) if relative else self.root

    def _temp_dir(self) -> str:
        return "/tmp"