import pytest

from elemental.mkfs import MkfsCall, MkfsError, format_device
from elemental.runner import CommandError, Runner


class FakeRunner(Runner):
    def __init__(self, output=b"", error=None):
        self.cmds = []
        self.output = output
        self.error = error

    def run(self, command, *args):
        self.cmds.append([command, *args])
        if self.error is not None:
            raise self.error
        return self.output


@pytest.fixture
def runner():
    return FakeRunner()


def test_formats_xfs(runner):
    MkfsCall("/dev/device", "xfs", "OEM", runner).apply()
    assert runner.cmds == [["mkfs.xfs", "-L", "OEM", "/dev/device"]]


def test_formats_vfat(runner):
    MkfsCall("/dev/device", "vfat", "EFI", runner).apply()
    assert runner.cmds == [["mkfs.vfat", "-n", "EFI", "/dev/device"]]


def test_fails_for_unsupported_filesystem(runner):
    with pytest.raises(MkfsError):
        MkfsCall("/dev/device", "btrfs", "OEM", runner).apply()
    assert runner.cmds == []


def test_options_without_label_with_custom_opts(runner):
    call = MkfsCall("/dev/sda1", "ext4", "", runner, ["-F", "-q"])
    assert call.build_options() == ["-F", "-q", "/dev/sda1"]


def test_apply_returns_output():
    runner = FakeRunner(output=b"created")
    assert MkfsCall("/dev/device", "ext2", "L", runner).apply() == "created"


def test_apply_propagates_runner_failure():
    runner = FakeRunner(error=CommandError("mkfs.ext4", (), reason="boom"))
    with pytest.raises(CommandError):
        MkfsCall("/dev/device", "ext4", "L", runner).apply()


def test_format_device(runner):
    format_device(runner, "/dev/device1", "ext4", "MY_LABEL")
    assert runner.cmds == [["mkfs.ext4", "-L", "MY_LABEL", "/dev/device1"]]


def test_format_device_with_extra_options(runner):
    format_device(runner, "/dev/device1", "fat", "EFI", "-F", "32")
    assert runner.cmds == [["mkfs.fat", "-n", "EFI", "-F", "32", "/dev/device1"]]