"""Partition descriptions and the default elemental partition layout."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

GPT = "gpt"
BIOS = "bios"
MSDOS = "msdos"
EFI = "efi"

_ESP_FLAG = "esp"
_BIOS_FLAG = "bios_grub"
_BOOT_FLAG = "boot"

EFI_LABEL = "COS_GRUB"
EFI_SIZE = 64
EFI_PART_NAME = "efi"
EFI_FS = "vfat"
EFI_DIR = "/run/cos/efi"
BIOS_SIZE = 1
BIOS_PART_NAME = "bios"
OEM_PART_NAME = "oem"
OEM_LABEL = "COS_OEM"
RECOVERY_PART_NAME = "recovery"
RECOVERY_LABEL = "COS_RECOVERY"
STATE_PART_NAME = "state"
STATE_LABEL = "COS_STATE"
PERSISTENT_PART_NAME = "persistent"
PERSISTENT_LABEL = "COS_PERSISTENT"


class PartitionError(ValueError):
    """The partition layout is inconsistent."""


@dataclass
class Partition:
    """A partition with its commonly configurable values; size in MiB."""

    name: str = ""
    filesystem_label: str = ""
    size: int = 0
    fs: str = ""
    flags: list[str] = field(default_factory=list)
    mount_point: str = ""
    path: str = ""
    disk: str = ""


class PartitionList(list):
    """A list of partitions with lookups by name and filesystem label."""

    def _find(self, matches) -> Partition | None:
        found = None
        for partition in self:
            if matches(partition):
                found = partition
                if partition.mount_point:
                    return partition
        return found

    def get_by_name(self, name: str) -> Partition | None:
        """Last partition with that name, preferring the first one that is mounted."""
        return self._find(lambda p: p.name == name)

    def get_by_label(self, label: str) -> Partition | None:
        """Last partition with that label, preferring the first one that is mounted."""
        return self._find(lambda p: p.filesystem_label == label)


def _excluded(partition: Partition, excludes: tuple[Partition, ...]) -> bool:
    return any(partition is other for other in excludes)


@dataclass
class ElementalPartitions:
    """The partitions of an elemental system layout."""

    bios: Partition | None = None
    efi: Partition | None = None
    oem: Partition | None = None
    recovery: Partition | None = None
    state: Partition | None = None
    persistent: Partition | None = None

    def set_firmware_partitions(self, firmware: str, part_table: str) -> None:
        """Set the firmware partitions required by a firmware and partition table type."""
        if firmware == EFI and part_table == GPT:
            self.efi = Partition(
                name=EFI_PART_NAME,
                filesystem_label=EFI_LABEL,
                size=EFI_SIZE,
                fs=EFI_FS,
                mount_point=EFI_DIR,
                flags=[_ESP_FLAG],
            )
            self.bios = None
        elif firmware == BIOS and part_table == GPT:
            self.bios = Partition(
                name=BIOS_PART_NAME,
                size=BIOS_SIZE,
                flags=[_BIOS_FLAG],
            )
            self.efi = None
        else:
            if self.state is None:
                raise PartitionError("nil state partition")
            self.state.flags = [_BOOT_FLAG]
            self.efi = None
            self.bios = None

    @classmethod
    def from_list(cls, partitions: Iterable[Partition]) -> "ElementalPartitions":
        """Pick the layout's partitions by partition name, falling back to default labels."""
        plist = PartitionList(partitions)

        def pick(name: str, label: str) -> Partition | None:
            found = plist.get_by_name(name)
            return found if found is not None else plist.get_by_label(label)

        return cls(
            bios=plist.get_by_name(BIOS_PART_NAME),
            efi=pick(EFI_PART_NAME, EFI_LABEL),
            oem=pick(OEM_PART_NAME, OEM_LABEL),
            recovery=pick(RECOVERY_PART_NAME, RECOVERY_LABEL),
            state=pick(STATE_PART_NAME, STATE_LABEL),
            persistent=pick(PERSISTENT_PART_NAME, PERSISTENT_LABEL),
        )

    def partitions_by_install_order(
        self, extra_partitions: Iterable[Partition] | None, *args: Partition
    ) -> PartitionList:
        """Partitions in install order; the single partition of size 0 goes last.

        Missing partitions and those in ``args`` are left out.
        """
        result = PartitionList()
        last: Partition | None = None

        for partition in (self.bios, self.efi, self.oem, self.recovery, self.state):
            if partition is not None and not _excluded(partition, args):
                result.append(partition)

        persistent = self.persistent
        if persistent is not None and not _excluded(persistent, args):
            if persistent.size == 0:
                last = persistent
            else:
                result.append(persistent)

        for partition in extra_partitions or ():
            if partition.size == 0:
                if last is not None:
                    continue
                last = partition
            else:
                result.append(partition)

        if last is not None:
            result.append(last)
        return result

    def partitions_by_mount_point(self, descending: bool, *args: Partition) -> PartitionList:
        """Mounted partitions sorted by mount point."""
        by_mount: dict[str, Partition] = {}
        mount_points: list[str] = []
        for partition in self.partitions_by_install_order([], *args):
            if partition.mount_point:
                by_mount[partition.mount_point] = partition
                mount_points.append(partition.mount_point)
        mount_points.sort(reverse=descending)
        return PartitionList(by_mount[mnt] for mnt in mount_points)