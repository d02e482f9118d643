"""Building and running parted commands, and parsing parted's machine output."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

from elemental.partitions import GPT, MSDOS
from elemental.runner import Runner

_VALID_LABEL = re.compile(f"{MSDOS}|{GPT}")
_FAT = re.compile("fat|vfat")
_HEADER = re.compile(r"(.*):(\d+)s:(.*):(\d+):(\d+):(.*):(.*):(.*);")
_PARTITION = re.compile(r"(\d+):(\d+)s:(\d+)s:(\d+)s:(.*):(.*):(.*);")

_LAST_SECTOR_FIELD = 2
_SECTOR_SIZE_FIELD = 4
_TABLE_LABEL_FIELD = 6


class PartedError(ValueError):
    """The output of parted could not be parsed."""


@dataclass
class Partition:
    """A partition as parted sees it; start and size are in sectors.

    The filesystem is only used by parted to pick the partition type.
    """

    number: int = 0
    start_s: int = 0
    size_s: int = 0
    p_label: str = ""
    file_system: str = ""


@dataclass
class _Flag:
    number: int
    flag: str
    active: bool


def _lines(text: str) -> list[str]:
    return [line.strip() for line in text.strip().splitlines()]


@dataclass
class PartedCall:
    """Collects partition table changes for one device and applies them with parted."""

    dev: str
    runner: Runner
    label: str = ""
    wipe: bool = False
    parts: list[Partition] = field(default_factory=list)
    deletions: list[int] = field(default_factory=list)
    flags: list[_Flag] = field(default_factory=list)

    def _options(self) -> list[str]:
        label = self.label if _VALID_LABEL.search(self.label) else GPT
        opts: list[str] = []

        if self.wipe:
            opts += ["mklabel", label]

        for number in self.deletions:
            opts += ["rm", str(number)]

        for part in self.parts:
            if label == GPT:
                p_label = part.p_label or f"part{part.number}"
            else:
                p_label = "primary"
            file_system = "fat32" if _FAT.search(part.file_system) else part.file_system
            opts += ["mkpart", p_label, file_system, str(part.start_s)]
            if part.size_s == 0:
                # A size of zero takes all the remaining space.
                opts.append("100%")
            else:
                opts.append(str(part.start_s + part.size_s - 1))

        for flag in self.flags:
            opts += ["set", str(flag.number), flag.flag, "on" if flag.active else "off"]

        if not opts:
            return []
        return ["--script", "--machine", "--", self.dev, "unit", "s", *opts]

    def write_changes(self) -> str:
        """Apply the collected changes; return parted's output, or '' if there was nothing to do."""
        opts = self._options()
        if not opts:
            return ""
        try:
            out = self.runner.run("parted", *opts)
        finally:
            self.wipe = False
            self.parts = []
            self.deletions = []
        return out.decode(errors="replace")

    def set_partition_table_label(self, label: str) -> None:
        self.label = label

    def create_partition(self, partition: Partition) -> None:
        self.parts.append(partition)

    def delete_partition(self, number: int) -> None:
        self.deletions.append(number)

    def set_partition_flag(self, number: int, flag: str, active: bool) -> None:
        self.flags.append(_Flag(number=number, flag=flag, active=active))

    def wipe_table(self, wipe: bool) -> None:
        self.wipe = wipe

    def print_table(self) -> str:
        """Return parted's machine readable description of the device."""
        out = self.runner.run(
            "parted", "--script", "--machine", "--", self.dev, "unit", "s", "print"
        )
        return out.decode(errors="replace")

    def _header_field(self, print_out: str, index: int, what: str) -> str:
        for line in _lines(print_out):
            match = _HEADER.fullmatch(line)
            if match:
                return match.group(index)
        raise PartedError(f"failed parsing {what}")

    def get_last_sector(self, print_out: str) -> int:
        return int(self._header_field(print_out, _LAST_SECTOR_FIELD, "last sector"))

    def get_sector_size(self, print_out: str) -> int:
        return int(self._header_field(print_out, _SECTOR_SIZE_FIELD, "sector size"))

    def get_partition_table_label(self, print_out: str) -> str:
        return self._header_field(print_out, _TABLE_LABEL_FIELD, "partition table label")

    def get_partitions(self, print_out: str) -> list[Partition]:
        """Partitions listed in parted's output, in order."""
        partitions = []
        for line in _lines(print_out):
            match = _PARTITION.fullmatch(line)
            if match is None:
                continue
            start = int(match.group(2))
            end = int(match.group(3))
            partitions.append(
                Partition(
                    number=int(match.group(1)),
                    start_s=start,
                    size_s=end - start + 1,
                    p_label=match.group(6),
                    file_system="",
                )
            )
        return partitions