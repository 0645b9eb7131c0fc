"""A uniform interface to the system calls used for container management."""

import os
import pwd
import resource
import socket
from abc import ABC, abstractmethod
from enum import IntFlag

from ocirt.spec import LinuxRlimit


class CloneFlags(IntFlag):
    """Namespace flags for unshare and setns."""

    CLONE_NEWNS = 0x00020000
    CLONE_NEWCGROUP = 0x02000000
    CLONE_NEWUTS = 0x04000000
    CLONE_NEWIPC = 0x08000000
    CLONE_NEWUSER = 0x10000000
    CLONE_NEWPID = 0x20000000
    CLONE_NEWNET = 0x40000000


_RLIMITS: dict[str, int] = {
    name: getattr(resource, name) for name in dir(resource) if name.startswith("RLIMIT_")
}


def _rlimit_resource(rlimit: LinuxRlimit) -> int:
    try:
        return _RLIMITS[rlimit.typ]
    except KeyError:
        raise ValueError(f"unknown rlimit type {rlimit.typ!r}") from None


class Syscall(ABC):
    """Operating-system primitives needed to set up a container process."""

    @abstractmethod
    def chroot(self, path: str | os.PathLike) -> None: ...

    @abstractmethod
    def set_ns(self, fd: int, nstype: CloneFlags) -> None: ...

    @abstractmethod
    def set_id(self, uid: int, gid: int) -> None: ...

    @abstractmethod
    def unshare(self, flags: CloneFlags) -> None: ...

    @abstractmethod
    def set_hostname(self, hostname: str) -> None: ...

    @abstractmethod
    def set_rlimit(self, rlimit: LinuxRlimit) -> None: ...

    @abstractmethod
    def get_pwuid(self, uid: int) -> str | None: ...


class LinuxSyscall(Syscall):
    """Performs the calls against the running Linux kernel."""

    def chroot(self, path: str | os.PathLike) -> None:
        os.chroot(path)

    def set_ns(self, fd: int, nstype: CloneFlags) -> None:
        os.setns(fd, int(nstype))

    def set_id(self, uid: int, gid: int) -> None:
        """Set real, effective and saved ids; group first, while still allowed."""
        os.setresgid(gid, gid, gid)
        os.setresuid(uid, uid, uid)

    def unshare(self, flags: CloneFlags) -> None:
        os.unshare(int(flags))

    def set_hostname(self, hostname: str) -> None:
        try:
            socket.sethostname(hostname)
        except OSError as exc:
            exc.add_note(f"Failed to set {hostname} as hostname")
            raise

    def set_rlimit(self, rlimit: LinuxRlimit) -> None:
        kind = _rlimit_resource(rlimit)
        try:
            resource.setrlimit(kind, (rlimit.soft, rlimit.hard))
        except (OSError, ValueError) as exc:
            exc.add_note(f"Failed to set {rlimit.typ}")
            raise

    def get_pwuid(self, uid: int) -> str | None:
        """The user name for ``uid``, or None if there is no such user."""
        try:
            return pwd.getpwuid(uid).pw_name
        except KeyError:
            return None


class RecordingSyscall(Syscall):
    """Records every call instead of touching the system."""

    def __init__(self):
        self.chroot_args: list[str] = []
        self.set_ns_args: list[tuple[int, CloneFlags]] = []
        self.set_id_args: list[tuple[int, int]] = []
        self.unshare_args: list[CloneFlags] = []
        self.hostname_args: list[str] = []
        self.rlimit_args: list[LinuxRlimit] = []
        self.users: dict[int, str] = {}

    def chroot(self, path: str | os.PathLike) -> None:
        self.chroot_args.append(os.fspath(path))

    def set_ns(self, fd: int, nstype: CloneFlags) -> None:
        self.set_ns_args.append((fd, nstype))

    def set_id(self, uid: int, gid: int) -> None:
        self.set_id_args.append((uid, gid))

    def unshare(self, flags: CloneFlags) -> None:
        self.unshare_args.append(flags)

    def set_hostname(self, hostname: str) -> None:
        self.hostname_args.append(hostname)

    def set_rlimit(self, rlimit: LinuxRlimit) -> None:
        self.rlimit_args.append(rlimit)

    def get_pwuid(self, uid: int) -> str | None:
        return self.users.get(uid)


def create_syscall() -> Syscall:
    """The syscall implementation for the running system."""
    return LinuxSyscall()