from pathlib import Path

import pytest

from ocirt.namespaces import Namespaces, get_clone_flag
from ocirt.spec import LinuxNamespace, LinuxNamespaceType
from ocirt.syscall import CloneFlags, RecordingSyscall


def sample_namespaces():
    return [
        LinuxNamespace(LinuxNamespaceType.MOUNT, Path("/dev/null")),
        LinuxNamespace(LinuxNamespaceType.NETWORK, Path("/dev/null")),
        LinuxNamespace(LinuxNamespaceType.PID, None),
        LinuxNamespace(LinuxNamespaceType.USER, None),
        LinuxNamespace(LinuxNamespaceType.IPC, None),
    ]


def test_apply_namespaces():
    syscall = RecordingSyscall()
    namespaces = Namespaces(sample_namespaces(), syscall)
    namespaces.apply_namespaces(lambda flag: flag != CloneFlags.CLONE_NEWIPC)

    setns_flags = sorted(flag for _fd, flag in syscall.set_ns_args)
    assert setns_flags == sorted([CloneFlags.CLONE_NEWNS, CloneFlags.CLONE_NEWNET])
    assert sorted(syscall.unshare_args) == sorted(
        [CloneFlags.CLONE_NEWUSER, CloneFlags.CLONE_NEWPID]
    )


def test_filter_rejecting_everything_enters_nothing():
    syscall = RecordingSyscall()
    Namespaces(sample_namespaces(), syscall).apply_namespaces(lambda flag: False)
    assert syscall.set_ns_args == []
    assert syscall.unshare_args == []


@pytest.mark.parametrize(
    "ns_type, flag",
    [
        (LinuxNamespaceType.PID, CloneFlags.CLONE_NEWPID),
        (LinuxNamespaceType.USER, CloneFlags.CLONE_NEWUSER),
        (LinuxNamespaceType.UTS, CloneFlags.CLONE_NEWUTS),
        (LinuxNamespaceType.CGROUP, CloneFlags.CLONE_NEWCGROUP),
        (LinuxNamespaceType.IPC, CloneFlags.CLONE_NEWIPC),
        (LinuxNamespaceType.NETWORK, CloneFlags.CLONE_NEWNET),
        (LinuxNamespaceType.MOUNT, CloneFlags.CLONE_NEWNS),
    ],
)
def test_get_clone_flag(ns_type, flag):
    assert get_clone_flag(ns_type) == flag


def test_get_returns_configured_namespace():
    namespaces = Namespaces(sample_namespaces(), RecordingSyscall())
    mount = namespaces.get(LinuxNamespaceType.MOUNT)
    assert mount == LinuxNamespace(LinuxNamespaceType.MOUNT, Path("/dev/null"))
    assert namespaces.get(LinuxNamespaceType.UTS) is None


def test_no_namespaces_configured():
    namespaces = Namespaces(None, RecordingSyscall())
    assert namespaces.get(LinuxNamespaceType.PID) is None


def test_setns_passes_open_descriptor():
    syscall = RecordingSyscall()
    namespaces = Namespaces(None, syscall)
    namespaces.unshare_or_setns(LinuxNamespace(LinuxNamespaceType.NETWORK, Path("/dev/null")))
    [(fd, flag)] = syscall.set_ns_args
    assert fd >= 0
    assert flag == CloneFlags.CLONE_NEWNET


def test_missing_namespace_path_fails(tmp_path):
    syscall = RecordingSyscall()
    namespaces = Namespaces(
        [LinuxNamespace(LinuxNamespaceType.NETWORK, tmp_path / "missing")], syscall
    )
    with pytest.raises(FileNotFoundError):
        namespaces.apply_namespaces(lambda flag: True)
    assert syscall.set_ns_args == []