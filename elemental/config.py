"""Runtime configuration, action specifications and installation state."""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field
from typing import Any

import yaml

from elemental.fs import OSFS
from elemental.image_source import ImageSource
from elemental.logger import Logger, new_logger
from elemental.partitions import ElementalPartitions, PartitionList
from elemental.runner import RealRunner, Runner
from elemental.syscall import RealSyscall

FILE_PERM = 0o666
RUNNING_STATE_DIR = "/run/initramfs/elemental-state"
INSTALL_STATE_FILE = "state.yaml"
LUET_MTREE_PLUGIN = "luet-mtree"
RECOVERY_DIR = "/run/cos/recovery"
SQUASH_FS = "squashfs"
LINUX_IMG_FS = "ext2"
RECOVERY_SQUASH_FILE = "recovery.squashfs"
RECOVERY_IMG_FILE = "recovery.img"

_STATE_HEADER = "# Autogenerated file by elemental client, do not edit\n\n"


class SpecError(ValueError):
    """A configuration or specification is inconsistent."""


def _non_empty(data: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in data.items() if value not in (None, "", 0, [], {})}


@dataclass
class Repository:
    """Basic configuration of a package repository."""

    name: str = ""
    priority: int = 0
    uri: str = ""
    type: str = ""
    arch: str = ""
    reference_id: str = ""

    def to_dict(self) -> dict[str, Any]:
        return _non_empty(
            {
                "name": self.name,
                "priority": self.priority,
                "uri": self.uri,
                "type": self.type,
                "arch": self.arch,
                "reference": self.reference_id,
            }
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Repository":
        return cls(
            name=data.get("name", "") or "",
            priority=int(data.get("priority", 0) or 0),
            uri=data.get("uri", "") or "",
            type=data.get("type", "") or "",
            arch=data.get("arch", "") or "",
            reference_id=data.get("reference", "") or "",
        )


@dataclass
class Image:
    """A filesystem image with its commonly configurable values; size in MiB."""

    file: str = ""
    label: str = ""
    size: int = 0
    fs: str = ""
    source: ImageSource = field(default_factory=ImageSource)
    mount_point: str = ""
    loop_device: str = ""


@dataclass
class DockerImageMeta:
    """Metadata of a container image."""

    digest: str = ""
    size: int = 0

    def to_dict(self) -> dict[str, Any]:
        return _non_empty({"digest": self.digest, "size": self.size})


@dataclass
class ChannelImageMeta:
    """Metadata of a channel package."""

    category: str = ""
    name: str = ""
    version: str = ""
    finger_print: str = ""
    repos: list[Repository] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return _non_empty(
            {
                "category": self.category,
                "name": self.name,
                "version": self.version,
                "finger-print": self.finger_print,
                "repositories": [repo.to_dict() for repo in self.repos],
            }
        )


@dataclass
class ImageState:
    """Data of a deployed image."""

    source: ImageSource | None = None
    source_metadata: DockerImageMeta | ChannelImageMeta | None = None
    label: str = ""
    fs: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.source is not None and not self.source.is_empty():
            data["source"] = str(self.source)
        if self.source_metadata is not None:
            meta = self.source_metadata.to_dict()
            if meta:
                data["source-metadata"] = meta
        data.update(_non_empty({"label": self.label, "fs": self.fs}))
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImageState":
        data = data or {}
        source = None
        if data.get("source"):
            source = ImageSource.from_uri(str(data["source"]))
        metadata: DockerImageMeta | ChannelImageMeta | None = None
        raw_meta = data.get("source-metadata")
        if isinstance(raw_meta, dict):
            digest = str(raw_meta.get("digest", "") or "")
            size = int(raw_meta.get("size", 0) or 0)
            if digest or size:
                metadata = DockerImageMeta(digest=digest, size=size)
            elif raw_meta.get("name"):
                metadata = ChannelImageMeta(
                    category=str(raw_meta.get("category", "") or ""),
                    name=str(raw_meta["name"]),
                    version=str(raw_meta.get("version", "") or ""),
                    finger_print=str(raw_meta.get("finger-print", "") or ""),
                    repos=[
                        Repository.from_dict(repo)
                        for repo in raw_meta.get("repositories") or []
                    ],
                )
        return cls(
            source=source,
            source_metadata=metadata,
            label=str(data.get("label", "") or ""),
            fs=str(data.get("fs", "") or ""),
        )


@dataclass
class PartitionState:
    """Installation data of a partition: its label and the images deployed on it."""

    fs_label: str = ""
    images: dict[str, ImageState] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.fs_label:
            data["label"] = self.fs_label
        for name in sorted(self.images):
            data[name] = self.images[name].to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PartitionState":
        data = data or {}
        return cls(
            fs_label=str(data.get("label", "") or ""),
            images={
                str(name): ImageState.from_dict(value)
                for name, value in data.items()
                if name != "label"
            },
        )


@dataclass
class InstallState:
    """Installation data of the whole system."""

    date: str = ""
    partitions: dict[str, PartitionState] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.date:
            data["date"] = self.date
        for name in sorted(self.partitions):
            data[name] = self.partitions[name].to_dict()
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "InstallState":
        data = data or {}
        date = data.get("date")
        return cls(
            date="" if date is None else str(date),
            partitions={
                str(name): PartitionState.from_dict(value)
                for name, value in data.items()
                if name != "date"
            },
        )


@dataclass
class Config:
    """Generic runtime configuration and the collaborators used by actions."""

    logger: Logger = field(default_factory=new_logger)
    fs: OSFS = field(default_factory=OSFS)
    mounter: Any = None
    runner: Runner = field(default_factory=RealRunner)
    syscall: Any = field(default_factory=RealSyscall)
    cloud_init_runner: Any = None
    luet: Any = None
    client: Any = None
    cosign: bool = False
    verify: bool = False
    cosign_pub_key: str = ""
    local_image: bool = False
    repos: list[Repository] = field(default_factory=list)
    arch: str = ""
    squash_fs_compression_config: list[str] = field(default_factory=list)
    squash_fs_no_compression: bool = False

    def write_install_state(
        self, state: InstallState, state_path: str, recovery_path: str
    ) -> None:
        """Write the installation state file to both the state and recovery paths."""
        body = yaml.safe_dump(state.to_dict(), default_flow_style=False, sort_keys=False)
        data = (_STATE_HEADER + body).encode()
        self.fs.write_file(state_path, data, FILE_PERM)
        self.fs.write_file(recovery_path, data, FILE_PERM)

    def load_install_state(self) -> InstallState:
        """Load the installation state file of the running system."""
        raw = self.fs.read_file(posixpath.join(RUNNING_STATE_DIR, INSTALL_STATE_FILE))
        data = yaml.safe_load(raw)
        if data is not None and not isinstance(data, dict):
            raise SpecError("invalid install state file")
        return InstallState.from_dict(data or {})

    def sanitize(self) -> None:
        """Make the configuration consistent."""
        if self.verify and self.luet is not None:
            self.luet.plugins = [LUET_MTREE_PLUGIN]
        if self.squash_fs_no_compression:
            self.squash_fs_compression_config = []
        if self.luet is not None:
            self.luet.arch = self.arch


@dataclass
class RunConfig(Config):
    """Configuration for actions run on a live system."""

    strict: bool = False
    reboot: bool = False
    power_off: bool = False
    cloud_init_paths: list[str] = field(default_factory=list)
    eject_cd: bool = False


@dataclass
class BuildConfig(Config):
    """Configuration for building ISOs, raw images and artifacts."""

    date: bool = False
    name: str = ""
    out_dir: str = ""


@dataclass
class InstallSpec:
    """All details of an install action."""

    target: str = ""
    firmware: str = ""
    part_table: str = ""
    partitions: ElementalPartitions = field(default_factory=ElementalPartitions)
    extra_partitions: PartitionList = field(default_factory=PartitionList)
    no_format: bool = False
    force: bool = False
    cloud_init: list[str] = field(default_factory=list)
    iso: str = ""
    grub_def_entry: str = ""
    tty: str = ""
    active: Image = field(default_factory=Image)
    recovery: Image = field(default_factory=Image)
    passive: Image = field(default_factory=Image)
    grub_conf: str = ""

    def sanitize(self) -> None:
        if self.active.source.is_empty() and not self.iso:
            raise SpecError("undefined system source to install")
        state = self.partitions.state
        if state is None or not state.mount_point:
            raise SpecError("undefined state partition")

        recovery_mnt = RECOVERY_DIR
        recovery = self.partitions.recovery
        if recovery is not None and recovery.mount_point:
            recovery_mnt = recovery.mount_point
        image_file = RECOVERY_SQUASH_FILE if self.recovery.fs == SQUASH_FS else RECOVERY_IMG_FILE
        self.recovery.file = posixpath.join(recovery_mnt, "cOS", image_file)

        zero_sized = sum(1 for part in self.extra_partitions if part.size == 0)
        if zero_sized > 1:
            raise SpecError(
                "more than one extra partition has its size set to 0. Only one partition "
                "can have its size set to 0 which means that it will take all the "
                "available disk space in the device"
            )
        persistent = self.partitions.persistent
        if zero_sized == 1 and persistent is not None and persistent.size == 0:
            raise SpecError(
                "both persistent partition and extra partitions have size set to 0. "
                "Only one partition can have its size set to 0 which means that it "
                "will take all the available disk space in the device"
            )
        self.partitions.set_firmware_partitions(self.firmware, self.part_table)


@dataclass
class ResetSpec:
    """All details of a reset action."""

    format_persistent: bool = False
    format_oem: bool = False
    grub_def_entry: str = ""
    tty: str = ""
    active: Image = field(default_factory=Image)
    passive: Image = field(default_factory=Image)
    partitions: ElementalPartitions = field(default_factory=ElementalPartitions)
    target: str = ""
    efi: bool = False
    grub_conf: str = ""
    state: InstallState | None = None

    def sanitize(self) -> None:
        if self.active.source.is_empty():
            raise SpecError("undefined system source to reset to")
        state = self.partitions.state
        if state is None or not state.mount_point:
            raise SpecError("undefined state partition")


@dataclass
class UpgradeSpec:
    """All details of an upgrade action."""

    recovery_upgrade: bool = False
    active: Image = field(default_factory=Image)
    recovery: Image = field(default_factory=Image)
    grub_def_entry: str = ""
    passive: Image = field(default_factory=Image)
    partitions: ElementalPartitions = field(default_factory=ElementalPartitions)
    state: InstallState | None = None

    def sanitize(self) -> None:
        if self.recovery_upgrade:
            recovery = self.partitions.recovery
            if recovery is None or not recovery.mount_point:
                raise SpecError("undefined recovery partition")
            if self.recovery.source.is_empty():
                raise SpecError("undefined upgrade source")
        else:
            state = self.partitions.state
            if state is None or not state.mount_point:
                raise SpecError("undefined state partition")
            if self.active.source.is_empty():
                raise SpecError("undefined upgrade source")


@dataclass
class LiveISO:
    """Configuration of a live ISO image."""

    rootfs: list[ImageSource | None] = field(default_factory=list)
    uefi: list[ImageSource | None] = field(default_factory=list)
    image: list[ImageSource | None] = field(default_factory=list)
    label: str = ""
    grub_entry: str = ""
    bootloader_in_rootfs: bool = False

    def sanitize(self) -> None:
        for kind, sources in (("rootfs", self.rootfs), ("uefi", self.uefi), ("image", self.image)):
            if any(src is None for src in sources):
                raise SpecError(f"wrong name of source package for {kind}")


@dataclass
class RawDiskPackage:
    """A package to install into a raw disk, and where."""

    name: str = ""
    target: str = ""


@dataclass
class RawDiskArchEntry:
    """The packages of a raw disk for one architecture."""

    packages: list[RawDiskPackage] = field(default_factory=list)


@dataclass
class RawDisk:
    """Raw disk package lists per architecture."""

    x86_64: RawDiskArchEntry | None = None
    arm64: RawDiskArchEntry | None = None

    def sanitize(self) -> None:
        """No consistency checks apply to raw disks."""