"""Creating filesystems with the mkfs tools."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from elemental.runner import Runner

_LINUX_FS = re.compile("ext[2-4]|xfs")
_FAT_FS = re.compile("fat|vfat")


class MkfsError(ValueError):
    """The requested filesystem is not supported."""


@dataclass
class MkfsCall:
    """A mkfs invocation for one device."""

    dev: str
    file_system: str
    label: str
    runner: Runner
    custom_opts: list[str] = field(default_factory=list)

    def build_options(self) -> list[str]:
        """Arguments for the mkfs tool of this filesystem."""
        if _LINUX_FS.search(self.file_system):
            label_flag = "-L"
        elif _FAT_FS.search(self.file_system):
            label_flag = "-n"
        else:
            raise MkfsError(f"unsupported filesystem: {self.file_system}")
        opts = [label_flag, self.label] if self.label else []
        return [*opts, *self.custom_opts, self.dev]

    def apply(self) -> str:
        """Create the filesystem and return the tool's output."""
        opts = self.build_options()
        out = self.runner.run(f"mkfs.{self.file_system}", *opts)
        return out.decode(errors="replace")


def format_device(runner: Runner, device: str, file_system: str, label: str, *args: str) -> None:
    """Format a block device with the given filesystem, label and extra options."""
    MkfsCall(device, file_system, label, runner, list(args)).apply()