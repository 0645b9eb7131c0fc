"""Entering or creating the namespaces a container runs in."""

import logging
import os
from collections.abc import Callable, Iterable

from ocirt.spec import LinuxNamespace, LinuxNamespaceType
from ocirt.syscall import CloneFlags, Syscall, create_syscall

log = logging.getLogger(__name__)

_CLONE_FLAGS: dict[LinuxNamespaceType, CloneFlags] = {
    LinuxNamespaceType.PID: CloneFlags.CLONE_NEWPID,
    LinuxNamespaceType.USER: CloneFlags.CLONE_NEWUSER,
    LinuxNamespaceType.UTS: CloneFlags.CLONE_NEWUTS,
    LinuxNamespaceType.CGROUP: CloneFlags.CLONE_NEWCGROUP,
    LinuxNamespaceType.IPC: CloneFlags.CLONE_NEWIPC,
    LinuxNamespaceType.NETWORK: CloneFlags.CLONE_NEWNET,
    LinuxNamespaceType.MOUNT: CloneFlags.CLONE_NEWNS,
}


def get_clone_flag(namespace_type: LinuxNamespaceType) -> CloneFlags:
    """The clone flag that creates or joins a namespace of ``namespace_type``."""
    return _CLONE_FLAGS[LinuxNamespaceType(namespace_type)]


class Namespaces:
    """The namespaces of a container, keyed by their clone flag."""

    def __init__(
        self,
        namespaces: Iterable[LinuxNamespace] | None = None,
        syscall: Syscall | None = None,
    ):
        self.syscall = syscall if syscall is not None else create_syscall()
        self._by_flag: dict[CloneFlags, LinuxNamespace] = {
            get_clone_flag(ns.typ): ns for ns in namespaces or ()
        }

    def apply_namespaces(self, filter: Callable[[CloneFlags], bool]) -> None:
        """Enter every namespace whose clone flag passes ``filter``."""
        for flag, namespace in list(self._by_flag.items()):
            if not filter(flag):
                continue
            try:
                self.unshare_or_setns(namespace)
            except Exception as exc:
                exc.add_note(f"Failed to enter {flag!r} namespace: {namespace!r}")
                raise

    def unshare_or_setns(self, namespace: LinuxNamespace) -> None:
        """Create a new namespace, or join the one at ``namespace.path``."""
        log.debug("unshare or setns: %r", namespace)
        flag = get_clone_flag(namespace.typ)
        if namespace.path is None:
            self.syscall.unshare(flag)
            return

        try:
            fd = os.open(namespace.path, os.O_RDONLY)
        except OSError as exc:
            exc.add_note(f"Failed to open namespace fd: {os.fspath(namespace.path)!r}")
            raise
        try:
            self.syscall.set_ns(fd, flag)
        except Exception as exc:
            exc.add_note("Failed to set namespace")
            raise
        finally:
            os.close(fd)

    def get(self, namespace_type: LinuxNamespaceType) -> LinuxNamespace | None:
        """The configured namespace of ``namespace_type``, if any."""
        return self._by_flag.get(get_clone_flag(namespace_type))