"""Preparing the root filesystem of a container: mount options, devices and links."""

import logging
import os
import stat
from collections.abc import Iterable
from enum import IntFlag
from pathlib import Path

from ocirt.spec import LinuxDevice, LinuxDeviceType, Mount
from ocirt.utils import as_in_container

log = logging.getLogger(__name__)


class MountFlags(IntFlag):
    """Flags understood by mount(2)."""

    MS_RDONLY = 1
    MS_NOSUID = 2
    MS_NODEV = 4
    MS_NOEXEC = 8
    MS_SYNCHRONOUS = 16
    MS_REMOUNT = 32
    MS_MANDLOCK = 64
    MS_DIRSYNC = 128
    MS_NOATIME = 1024
    MS_NODIRATIME = 2048
    MS_BIND = 4096
    MS_MOVE = 8192
    MS_REC = 16384
    MS_SILENT = 32768
    MS_POSIXACL = 1 << 16
    MS_UNBINDABLE = 1 << 17
    MS_PRIVATE = 1 << 18
    MS_SLAVE = 1 << 19
    MS_SHARED = 1 << 20
    MS_RELATIME = 1 << 21
    MS_KERNMOUNT = 1 << 22
    MS_I_VERSION = 1 << 23
    MS_STRICTATIME = 1 << 24


_NONE = MountFlags(0)

# option -> (clears the flag, flag)
_MOUNT_OPTIONS: dict[str, tuple[bool, MountFlags]] = {
    "defaults": (False, _NONE),
    "ro": (False, MountFlags.MS_RDONLY),
    "rw": (True, MountFlags.MS_RDONLY),
    "suid": (True, MountFlags.MS_NOSUID),
    "nosuid": (False, MountFlags.MS_NOSUID),
    "dev": (True, MountFlags.MS_NODEV),
    "nodev": (False, MountFlags.MS_NODEV),
    "exec": (True, MountFlags.MS_NOEXEC),
    "noexec": (False, MountFlags.MS_NOEXEC),
    "sync": (False, MountFlags.MS_SYNCHRONOUS),
    "async": (True, MountFlags.MS_SYNCHRONOUS),
    "dirsync": (False, MountFlags.MS_DIRSYNC),
    "remount": (False, MountFlags.MS_REMOUNT),
    "mand": (False, MountFlags.MS_MANDLOCK),
    "nomand": (True, MountFlags.MS_MANDLOCK),
    "atime": (True, MountFlags.MS_NOATIME),
    "noatime": (False, MountFlags.MS_NOATIME),
    "diratime": (True, MountFlags.MS_NODIRATIME),
    "nodiratime": (False, MountFlags.MS_NODIRATIME),
    "bind": (False, MountFlags.MS_BIND),
    "rbind": (False, MountFlags.MS_BIND | MountFlags.MS_REC),
    "unbindable": (False, MountFlags.MS_UNBINDABLE),
    "runbindable": (False, MountFlags.MS_UNBINDABLE | MountFlags.MS_REC),
    "private": (True, MountFlags.MS_PRIVATE),
    "rprivate": (True, MountFlags.MS_PRIVATE | MountFlags.MS_REC),
    "shared": (True, MountFlags.MS_SHARED),
    "rshared": (True, MountFlags.MS_SHARED | MountFlags.MS_REC),
    "slave": (True, MountFlags.MS_SLAVE),
    "rslave": (True, MountFlags.MS_SLAVE | MountFlags.MS_REC),
    "relatime": (True, MountFlags.MS_RELATIME),
    "norelatime": (True, MountFlags.MS_RELATIME),
    "strictatime": (True, MountFlags.MS_STRICTATIME),
    "nostrictatime": (True, MountFlags.MS_STRICTATIME),
}

_DEFAULT_SYMLINKS = (
    ("/proc/self/fd", "dev/fd"),
    ("/proc/self/fd/0", "dev/stdin"),
    ("/proc/self/fd/1", "dev/stdout"),
    ("/proc/self/fd/2", "dev/stderr"),
)

_DEVICE_FILE_TYPES: dict[LinuxDeviceType, int] = {
    LinuxDeviceType.B: stat.S_IFBLK,
    LinuxDeviceType.C: stat.S_IFCHR,
    LinuxDeviceType.U: stat.S_IFCHR,
    LinuxDeviceType.P: stat.S_IFIFO,
}


def parse_mount(mount: Mount) -> tuple[MountFlags, str]:
    """Split a mount's options into mount flags and the comma-joined remaining data."""
    flags = _NONE
    data: list[str] = []
    for option in mount.options or ():
        known = _MOUNT_OPTIONS.get(option)
        if known is None:
            data.append(option)
            continue
        is_clear, flag = known
        if is_clear:
            flags &= ~flag
        else:
            flags |= flag
    return flags, ",".join(data)


def default_devices() -> list[LinuxDevice]:
    """The devices every container gets."""
    numbers = [
        ("/dev/null", 1, 3),
        ("/dev/zero", 1, 5),
        ("/dev/full", 1, 7),
        ("/dev/tty", 5, 0),
        ("/dev/urandom", 1, 9),
        ("/dev/random", 1, 8),
    ]
    return [
        LinuxDevice(
            path=Path(path),
            typ=LinuxDeviceType.C,
            major=major,
            minor=minor,
            file_mode=0o066,
        )
        for path, major, minor in numbers
    ]


def makedev(major: int, minor: int) -> int:
    """Combine major and minor numbers into a device number."""
    value = (
        (minor & 0xFF)
        | ((major & 0xFFF) << 8)
        | ((minor & ~0xFF) << 12)
        | ((major & ~0xFFF) << 32)
    )
    return value & 0xFFFF_FFFF_FFFF_FFFF


def setup_default_symlinks(rootfs: str | os.PathLike) -> None:
    """Create the standard /dev symbolic links inside ``rootfs``."""
    root = Path(rootfs)
    if Path("/proc/kcore").exists():
        try:
            os.symlink("/proc/kcore", root / "dev/kcore")
        except OSError as exc:
            exc.add_note("Failed to symlink kcore")
            raise

    for src, dst in _DEFAULT_SYMLINKS:
        try:
            os.symlink(src, root / dst)
        except OSError as exc:
            exc.add_note("Fail to symlink defaults")
            raise


def setup_ptmx(rootfs: str | os.PathLike) -> None:
    """Replace ``dev/ptmx`` in ``rootfs`` with a link to ``pts/ptmx``."""
    ptmx = Path(rootfs) / "dev/ptmx"
    try:
        os.remove(ptmx)
    except FileNotFoundError:
        pass
    except OSError as exc:
        raise OSError("could not delete /dev/ptmx") from exc

    try:
        os.symlink("pts/ptmx", ptmx)
    except OSError as exc:
        exc.add_note("failed to symlink ptmx")
        raise


def create_devices(rootfs: str | os.PathLike, devices: Iterable[LinuxDevice]) -> None:
    """Create device nodes for ``devices`` under ``rootfs`` with a cleared umask."""
    old_mask = os.umask(0)
    try:
        for dev in devices:
            if not Path(dev.path).is_relative_to("/dev"):
                raise ValueError(f"{dev.path} is not a valid device path")
            mknod_dev(rootfs, dev)
    finally:
        os.umask(old_mask)


def mknod_dev(rootfs: str | os.PathLike, dev: LinuxDevice) -> None:
    """Create one device node inside ``rootfs`` and give it the requested owner."""
    target = Path(rootfs) / as_in_container(dev.path)
    try:
        file_type = _DEVICE_FILE_TYPES[LinuxDeviceType(dev.typ)]
    except KeyError:
        raise ValueError(f"device type {dev.typ!r} cannot be created as a node") from None

    mode = file_type | ((dev.file_mode or 0) & 0o7777)
    os.mknod(target, mode, makedev(dev.major, dev.minor))
    os.chown(
        target,
        -1 if dev.uid is None else dev.uid,
        -1 if dev.gid is None else dev.gid,
    )