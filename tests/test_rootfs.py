import os
import stat
from pathlib import Path

import pytest

from ocirt.rootfs import (
    MountFlags,
    create_devices,
    default_devices,
    makedev,
    mknod_dev,
    parse_mount,
    setup_default_symlinks,
    setup_ptmx,
)
from ocirt.spec import LinuxDevice, LinuxDeviceType, Mount


@pytest.fixture
def rootfs(tmp_path):
    (tmp_path / "dev").mkdir()
    return tmp_path


def test_parse_mount_flags_only():
    mount = Mount(destination=Path("/proc"), options=["nosuid", "noexec", "nodev"])
    flags, data = parse_mount(mount)
    assert flags == MountFlags.MS_NOSUID | MountFlags.MS_NOEXEC | MountFlags.MS_NODEV
    assert data == ""


def test_parse_mount_keeps_unknown_options_as_data():
    mount = Mount(destination=Path("/dev"), options=["mode=755", "size=65536k", "ro"])
    flags, data = parse_mount(mount)
    assert flags == MountFlags.MS_RDONLY
    assert data == "mode=755,size=65536k"


def test_parse_mount_clear_undoes_set():
    mount = Mount(destination=Path("/data"), options=["ro", "rw"])
    flags, _ = parse_mount(mount)
    assert flags == MountFlags(0)


def test_parse_mount_rbind():
    mount = Mount(destination=Path("/data"), options=["rbind"])
    flags, _ = parse_mount(mount)
    assert flags == MountFlags.MS_BIND | MountFlags.MS_REC


def test_parse_mount_without_options():
    assert parse_mount(Mount(destination=Path("/tmp"))) == (MountFlags(0), "")


def test_default_devices():
    devices = default_devices()
    assert [str(d.path) for d in devices] == [
        "/dev/null",
        "/dev/zero",
        "/dev/full",
        "/dev/tty",
        "/dev/urandom",
        "/dev/random",
    ]
    assert all(d.typ is LinuxDeviceType.C for d in devices)
    assert all(d.file_mode == 0o066 for d in devices)
    assert (devices[0].major, devices[0].minor) == (1, 3)


@pytest.mark.parametrize("major,minor", [(1, 3), (5, 0), (1, 9), (259, 70000), (4096, 300)])
def test_makedev_matches_system_encoding(major, minor):
    dev = makedev(major, minor)
    assert dev == os.makedev(major, minor)
    assert os.major(dev) == major
    assert os.minor(dev) == minor


def test_setup_default_symlinks(rootfs):
    setup_default_symlinks(rootfs)
    assert os.readlink(rootfs / "dev/fd") == "/proc/self/fd"
    assert os.readlink(rootfs / "dev/stdin") == "/proc/self/fd/0"
    assert os.readlink(rootfs / "dev/stdout") == "/proc/self/fd/1"
    assert os.readlink(rootfs / "dev/stderr") == "/proc/self/fd/2"
    assert (rootfs / "dev/kcore").is_symlink() == Path("/proc/kcore").exists()


def test_setup_default_symlinks_fails_when_present(rootfs):
    (rootfs / "dev/fd").write_text("")
    with pytest.raises(FileExistsError):
        setup_default_symlinks(rootfs)


def test_setup_ptmx_replaces_existing_file(rootfs):
    (rootfs / "dev/ptmx").write_text("x")
    setup_ptmx(rootfs)
    assert os.readlink(rootfs / "dev/ptmx") == "pts/ptmx"


def test_setup_ptmx_without_existing_file(rootfs):
    setup_ptmx(rootfs)
    assert os.readlink(rootfs / "dev/ptmx") == "pts/ptmx"


def test_setup_ptmx_cannot_delete_directory(rootfs):
    (rootfs / "dev/ptmx").mkdir()
    (rootfs / "dev/ptmx/inner").write_text("")
    with pytest.raises(OSError, match="could not delete /dev/ptmx"):
        setup_ptmx(rootfs)


def test_mknod_dev_creates_fifo(rootfs):
    dev = LinuxDevice(path=Path("/dev/fifo0"), typ=LinuxDeviceType.P, file_mode=0o600)
    old = os.umask(0)
    try:
        mknod_dev(rootfs, dev)
    finally:
        os.umask(old)
    info = os.stat(rootfs / "dev/fifo0")
    assert stat.S_ISFIFO(info.st_mode)
    assert stat.S_IMODE(info.st_mode) == 0o600


def test_mknod_dev_rejects_any_type(rootfs):
    dev = LinuxDevice(path=Path("/dev/any"), typ=LinuxDeviceType.A)
    with pytest.raises(ValueError):
        mknod_dev(rootfs, dev)


def test_mknod_dev_rejects_relative_path(rootfs):
    dev = LinuxDevice(path=Path("dev/fifo"), typ=LinuxDeviceType.P)
    with pytest.raises(ValueError):
        mknod_dev(rootfs, dev)


def test_create_devices_restores_umask(rootfs):
    devices = [
        LinuxDevice(path=Path("/dev/fifo1"), typ=LinuxDeviceType.P, file_mode=0o640),
        LinuxDevice(path=Path("/dev/fifo2"), typ=LinuxDeviceType.P, file_mode=0o606),
    ]
    previous = os.umask(0o022)
    try:
        create_devices(rootfs, devices)
        current = os.umask(0o022)
    finally:
        os.umask(previous)
    assert current == 0o022
    assert stat.S_IMODE(os.stat(rootfs / "dev/fifo1").st_mode) == 0o640
    assert stat.S_IMODE(os.stat(rootfs / "dev/fifo2").st_mode) == 0o606


def test_create_devices_rejects_path_outside_dev(rootfs):
    devices = [LinuxDevice(path=Path("/tmp/fifo"), typ=LinuxDeviceType.P)]
    with pytest.raises(ValueError, match="is not a valid device path"):
        create_devices(rootfs, devices)
    assert not (rootfs / "tmp/fifo").exists()