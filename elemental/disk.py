"""Inspecting and modifying the partition table of a block device."""

from __future__ import annotations

import os
import re
import stat
import time

from elemental.fs import OSFS
from elemental.logger import Logger, new_logger
from elemental.mkfs import MkfsCall
from elemental.parted import PartedCall, Partition
from elemental.runner import CommandError, RealRunner, Runner

PARTITION_TRIES = 10
# Parted warning for disks that grew without their GPT headers being moved.
_PARTED_UNALLOCATED_WARNING = "Not all of the space available"
_VALID_TABLE_LABEL = re.compile("msdos|gpt")
_ENDS_WITH_DIGIT = re.compile(r"\d\Z")
_MIB = 1024 * 1024
_EXPAND_MIN_MIB = 10


class DiskError(ValueError):
    """A disk operation cannot be carried out."""


def mib_to_sectors(size: int, sector_size: int) -> int:
    """Number of sectors of the given size that make up ``size`` MiB."""
    return size * _MIB // sector_size


class Disk:
    """A block device and the partition table read from it with parted."""

    def __init__(
        self,
        device: str,
        *,
        runner: Runner | None = None,
        fs: OSFS | None = None,
        logger: Logger | None = None,
        retry_delay: float = 1.0,
    ) -> None:
        self.device = device
        self.runner: Runner = runner if runner is not None else RealRunner()
        self.fs: OSFS = fs if fs is not None else OSFS()
        self.logger: Logger = logger if logger is not None else new_logger()
        self.retry_delay = retry_delay
        self.sector_size = 0
        self.last_sector = 0
        self.label = ""
        self.partitions: list[Partition] = []

    def __str__(self) -> str:
        return self.device

    def _parted(self) -> PartedCall:
        return PartedCall(self.device, self.runner)

    def exists(self) -> bool:
        """Whether the device exists; a symlinked device is replaced by its target."""
        try:
            self.fs.stat(self.device)
        except OSError:
            return False
        try:
            is_link = stat.S_ISLNK(self.fs.lstat(self.device).st_mode)
        except OSError:
            return False
        if is_link:
            try:
                self.device = self.fs.readlink(self.device)
            except OSError:
                return False
        return True

    def reload(self) -> None:
        """Read the partition table of the device again."""
        pc = self._parted()
        printed = pc.print_table()

        # When the disk was expanded the GPT headers do not match its size any
        # more; sgdisk moves them to the end of the disk.
        if _PARTED_UNALLOCATED_WARNING in printed:
            self.runner.run("sgdisk", "-e", self.device)
            printed = pc.print_table()

        sector_size = pc.get_sector_size(printed)
        last_sector = pc.get_last_sector(printed)
        label = pc.get_partition_table_label(printed)
        partitions = pc.get_partitions(printed)
        self.sector_size = sector_size
        self.last_sector = last_sector
        self.label = label
        self.partitions = partitions

    def _ensure_loaded(self) -> None:
        if self.sector_size == 0:
            try:
                self.reload()
            except Exception as exc:
                self.logger.error(f"Failed analyzing disk: {exc}")
                raise

    def check_disk_free_space_mib(self, min_space: int) -> bool:
        """Whether at least ``min_space`` MiB are left after the last partition."""
        try:
            free = self.get_free_space()
        except Exception:
            self.logger.warn("Could not calculate disk free space")
            return False
        return free >= mib_to_sectors(min_space, self.sector_size)

    def get_free_space(self) -> int:
        """Free sectors after the last partition, reading the table if needed."""
        self._ensure_loaded()
        return self._compute_free_space()

    def _compute_free_space(self) -> int:
        if self.partitions:
            last = self.partitions[-1]
            return self.last_sector - (last.start_s + last.size_s - 1)
        # The first partition starts at a 1 MiB offset.
        return self.last_sector - (_MIB // self.sector_size - 1)

    def new_partition_table(self, label: str) -> str:
        """Wipe the device with a new msdos or gpt table; return parted's output."""
        if not _VALID_TABLE_LABEL.search(label):
            raise DiskError("Invalid partition table type, only msdos and gpt are supported")
        pc = self._parted()
        pc.set_partition_table_label(label)
        pc.wipe_table(True)
        out = pc.write_changes()
        try:
            self.reload()
        except Exception as exc:
            self.logger.error(f"Failed analyzing disk: {exc}")
            raise
        return out

    def add_partition(self, size: int, file_system: str, p_label: str, *args: str) -> int:
        """Append a partition of ``size`` MiB (0 takes the rest) with the given flags.

        Returns the number of the new partition.
        """
        self._ensure_loaded()
        pc = self._parted()
        pc.set_partition_table_label(self.label)

        if self.partitions:
            last = self.partitions[-1]
            number = last.number
            start = last.start_s + last.size_s
        else:
            number = 0
            start = _MIB // self.sector_size

        sectors = mib_to_sectors(size, self.sector_size)
        free = self._compute_free_space()
        if sectors > free:
            raise DiskError(
                f"not enough free space in disk. Required: {sectors} sectors; "
                f"Available {free} sectors"
            )

        number += 1
        pc.create_partition(
            Partition(
                number=number,
                start_s=start,
                size_s=sectors,
                p_label=p_label,
                file_system=file_system,
            )
        )
        for flag in args:
            pc.set_partition_flag(number, flag, True)

        try:
            out = pc.write_changes()
        except Exception as exc:
            self.logger.error(f"Failed creating partition: {exc}")
            raise
        self.logger.debug(f"partitioner output: {out}")

        try:
            self.reload()
        except Exception as exc:
            self.logger.error(f"Failed analyzing disk: {exc}")
            raise
        return number

    def format_partition(self, part_num: int, file_system: str, label: str) -> str:
        """Create a filesystem on a partition; return the mkfs output."""
        device = self.find_partition_device(part_num)
        return MkfsCall(device, file_system, label, self.runner, []).apply()

    def wipe_fs_on_partition(self, device: str) -> None:
        """Erase every filesystem signature on the device."""
        self.runner.run("wipefs", "--all", device)

    def find_partition_device(self, part_num: int) -> str:
        """Device node of a partition, waiting for udev to create it."""
        if _ENDS_WITH_DIGIT.search(self.device):
            device = f"{self.device}p{part_num}"
        else:
            device = f"{self.device}{part_num}"

        for attempt in range(1, PARTITION_TRIES + 2):
            self.logger.debug(
                f"Trying to find the partition device {part_num} of device "
                f"{self.device} (try number {attempt})"
            )
            try:
                self.runner.run("udevadm", "settle")
            except CommandError:
                pass
            if self.fs.exists(device):
                return device
            time.sleep(self.retry_delay)
        raise DiskError(f"could not find partition device '{device}' for partition {part_num}")


def _is_symlink(path: str) -> bool:
    return os.path.islink(path)