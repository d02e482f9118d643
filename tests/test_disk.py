import os

import pytest

from elemental.disk import PARTITION_TRIES, Disk, DiskError, mib_to_sectors
from elemental.fs import RootedFS
from elemental.logger import new_null_logger
from elemental.runner import CommandError, Runner

PRINT_OUTPUT = """BYT;
/dev/loop0:50593792s:loopback:512:512:msdos:Loopback device:;
1:2048s:98303s:96256s:ext4::type=83;
2:98304s:29394943s:29296640s:ext4::boot, type=83;
3:29394944s:45019135s:15624192s:ext4::type=83;
4:45019136s:50331647s:5312512s:ext4::type=83;"""

EMPTY_GPT_OUTPUT = """BYT;
/dev/loop0:50593792s:loopback:512:512:gpt:Loopback device:;"""

PRINT_CMD = ["parted", "--script", "--machine", "--", "/dev/device", "unit", "s", "print"]


class FakeRunner(Runner):
    def __init__(self):
        self.logger = None
        self.cmds = []
        self.return_value = b""
        self.return_error = None
        self.side_effect = None

    def run(self, command, *args):
        self.cmds.append([command, *args])
        if self.side_effect is not None:
            return self.side_effect(command, *args)
        if self.return_error is not None:
            raise self.return_error
        return self.return_value


@pytest.fixture
def runner():
    return FakeRunner()


@pytest.fixture
def fs(tmp_path):
    (tmp_path / "dev").mkdir()
    (tmp_path / "dev" / "device").touch()
    return RootedFS(tmp_path)


@pytest.fixture
def disk(runner, fs):
    return Disk("/dev/device", runner=runner, fs=fs, logger=new_null_logger(), retry_delay=0)


def test_mib_to_sectors():
    assert mib_to_sectors(1, 512) == 2048
    assert mib_to_sectors(10, 4096) == 2560


def test_default_disk():
    dev = Disk("/dev/device")
    assert str(dev) == "/dev/device"
    assert dev.sector_size == 0


def test_loads_disk_layout(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    disk.reload()
    assert str(disk) == "/dev/device"
    assert disk.sector_size == 512
    assert disk.last_sector == 50593792
    assert len(disk.partitions) == 4
    assert runner.cmds == [PRINT_CMD]


def test_partition_label(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    disk.reload()
    assert disk.label == "msdos"


def test_computes_free_space(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    assert disk.get_free_space() == 262145
    assert runner.cmds == [PRINT_CMD]


def test_has_128mb_free(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    assert disk.check_disk_free_space_mib(128) is True
    assert runner.cmds == [PRINT_CMD]


def test_has_less_than_130mb_free(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    assert disk.check_disk_free_space_mib(130) is False
    assert runner.cmds == [PRINT_CMD]


def test_free_space_check_false_on_failure(disk, runner):
    runner.return_error = CommandError("parted", (), reason="some error")
    assert disk.check_disk_free_space_mib(1) is False


def test_get_free_space_raises_on_failure(disk, runner):
    runner.return_error = CommandError("parted", (), reason="some error")
    with pytest.raises(CommandError):
        disk.get_free_space()


def test_fixes_gpt_headers_of_expanded_disk(disk, runner):
    runner.return_value = (
        "Warning: Not all of the space available to /dev/loop0...\n" + PRINT_OUTPUT
    ).encode()
    disk.reload()
    assert runner.cmds == [PRINT_CMD, ["sgdisk", "-e", "/dev/device"], PRINT_CMD]
    assert disk.last_sector == 50593792


def test_invalid_partition_table_label(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    with pytest.raises(DiskError):
        disk.new_partition_table("invalidLabel")
    assert runner.cmds == []


def test_creates_new_partition_table(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    assert disk.new_partition_table("gpt") == PRINT_OUTPUT
    assert runner.cmds == [
        ["parted", "--script", "--machine", "--", "/dev/device", "unit", "s", "mklabel", "gpt"],
        PRINT_CMD,
    ]


def test_adds_a_new_partition(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    num = disk.add_partition(0, "ext4", "ignored", "boot")
    assert num == 5
    assert runner.cmds == [
        PRINT_CMD,
        [
            "parted", "--script", "--machine", "--", "/dev/device",
            "unit", "s", "mkpart", "primary", "ext4", "50331648", "100%",
            "set", "5", "boot", "on",
        ],
        PRINT_CMD,
    ]


def test_first_partition_aligned_at_one_mib(disk, runner):
    runner.return_value = EMPTY_GPT_OUTPUT.encode()
    num = disk.add_partition(0, "ext4", "data")
    assert num == 1
    assert runner.cmds[1] == [
        "parted", "--script", "--machine", "--", "/dev/device",
        "unit", "s", "mkpart", "data", "ext4", "2048", "100%",
    ]


def test_add_partition_without_space(disk, runner):
    runner.return_value = PRINT_OUTPUT.encode()
    with pytest.raises(DiskError):
        disk.add_partition(130, "ext4", "ignored")
    assert runner.cmds == [PRINT_CMD]


def test_finds_partition_device(disk, runner, tmp_path):
    (tmp_path / "dev" / "device4").touch()
    assert disk.find_partition_device(4) == "/dev/device4"
    assert runner.cmds == [["udevadm", "settle"]]


def test_finds_partition_device_of_numbered_disk(runner, fs, tmp_path):
    (tmp_path / "dev" / "loop0p1").touch()
    dev = Disk("/dev/loop0", runner=runner, fs=fs, logger=new_null_logger(), retry_delay=0)
    assert dev.find_partition_device(1) == "/dev/loop0p1"


def test_does_not_find_partition_device(runner, fs):
    dev = Disk("/dev/lp0", runner=runner, fs=fs, logger=new_null_logger(), retry_delay=0)
    with pytest.raises(DiskError):
        dev.find_partition_device(4)
    assert len(runner.cmds) == PARTITION_TRIES + 1


def test_formats_a_partition(disk, runner, tmp_path):
    (tmp_path / "dev" / "device4").touch()
    runner.return_value = b"formatted"
    assert disk.format_partition(4, "xfs", "OEM") == "formatted"
    assert runner.cmds == [
        ["udevadm", "settle"],
        ["mkfs.xfs", "-L", "OEM", "/dev/device4"],
    ]


def test_wipes_filesystem_header(disk, runner):
    disk.wipe_fs_on_partition("/dev/device1")
    runner.return_error = CommandError("wipefs", (), reason="some error")
    with pytest.raises(CommandError):
        disk.wipe_fs_on_partition("/dev/device1")
    assert runner.cmds == [
        ["wipefs", "--all", "/dev/device1"],
        ["wipefs", "--all", "/dev/device1"],
    ]


def test_exists(disk, runner, fs):
    assert disk.exists() is True
    missing = Disk("/dev/missing", runner=runner, fs=fs, logger=new_null_logger())
    assert missing.exists() is False


def test_exists_resolves_symlink(runner, fs, tmp_path):
    os.symlink("device", tmp_path / "dev" / "link")
    dev = Disk("/dev/link", runner=runner, fs=fs, logger=new_null_logger())
    assert dev.exists() is True
    assert str(dev) == "device"