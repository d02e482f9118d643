# elemental

Building blocks for installing an immutable Linux system onto a disk:
partition tables, filesystems and the configuration types that describe
an installation.

The package drives the usual command line tools (`parted`, `sgdisk`,
`mkfs.*`, `wipefs`, `udevadm`) through a runner object, so every step can be
observed or replaced in tests.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Modules

- `elemental.logger` — a leveled `Logger` that writes one text line per
  record and strips `:emoji:` markers from messages, plus `new_logger()`
  (standard error), `new_null_logger()` (discards everything),
  `new_buffer_logger(buffer)`, `debug_level()` and `is_debug_level(logger)`.
  `Logger.ask()` reads a `y`/`yes` confirmation.
- `elemental.runner` — `RealRunner`, which runs an external command, returns
  its combined stdout and stderr, and raises `CommandError` when the command
  cannot be started or exits with a non-zero status.
- `elemental.syscall` — `RealSyscall` with `chroot` and `chdir`.
- `elemental.fs` — `OSFS`, a small filesystem facade over the host, and
  `RootedFS`, which maps every absolute path under a root directory; also
  the `SourceNotFound` exception.
- `elemental.interfaces` — protocols for an HTTP downloader, a package
  unpacker and a cloud-init runner.
- `elemental.image_source` — `ImageSource`, parsed from URIs such as
  `oci://registry.example.com/image:tag`, `docker://...`, `dir:///some/path`,
  `file://image.img` or `channel://category/package`. A string without a
  known scheme is taken as a container image reference and gets `:latest`
  when it has no tag or digest.
- `elemental.partitions` — `Partition`, `PartitionList` (lookup by name or
  filesystem label) and `ElementalPartitions`, which sets firmware
  partitions and orders partitions for install or by mount point.
- `elemental.config` — `Config`, `RunConfig`, `BuildConfig`, `InstallSpec`,
  `ResetSpec`, `UpgradeSpec`, `LiveISO`, `RawDisk`, and `InstallState`,
  which `Config.write_install_state` stores as YAML and
  `Config.load_install_state` reads back. Inconsistent specs raise
  `SpecError` from `sanitize()`.
- `elemental.parted` — `PartedCall`, which collects table changes (new
  label, deletions, new partitions, flags), runs them as one `parted`
  script, and parses `parted --machine` output.
- `elemental.mkfs` — `MkfsCall` for ext2–4, xfs and fat filesystems, and
  `format_device`.
- `elemental.disk` — `Disk`, which reads a disk's layout (fixing GPT headers
  with `sgdisk -e` on an expanded disk), reports free space, writes a new
  partition table, appends partitions, formats them and wipes filesystem
  signatures; plus `mib_to_sectors`.

## Example

```python
from elemental.disk import Disk
from elemental.image_source import ImageSource
from elemental.parted import PartedCall, Partition
from elemental.runner import RealRunner

src = ImageSource.from_uri("registry.example.com/os/image")
print(src)  # oci://registry.example.com/os/image:latest

pc = PartedCall("/dev/sdX", RealRunner())
pc.wipe_table(True)
pc.create_partition(Partition(number=1, start_s=2048, size_s=0, p_label="root", file_system="ext4"))
pc.write_changes()

disk = Disk("/dev/sdX")
number = disk.add_partition(0, "ext4", "data", "boot")
disk.format_partition(number, "ext4", "DATA")
```

Every operation that changes a disk needs root privileges and acts on the
device it is given; point it at a scratch or loop device when trying it out.

## What it does not do

- There is no command-line program; the package is a library.
- `Disk` does not grow an existing partition or resize the filesystem on
  it; it only appends new partitions after the last one.
- The install, reset, upgrade and build actions themselves are not here:
  the package holds their configuration and checks it, but does not mount,
  unpack images or install a bootloader.