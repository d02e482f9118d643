"""Thin access to process level system calls."""

from __future__ import annotations

import os


class RealSyscall:
    """Changes the root or working directory of the current process."""

    def chroot(self, path: str) -> None:
        os.chroot(path)

    def chdir(self, path: str) -> None:
        os.chdir(path)