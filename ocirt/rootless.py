"""Rootless containers: validation and user/group id mappings."""

import logging
import os
import subprocess
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from pathlib import Path

from ocirt.namespaces import Namespaces
from ocirt.spec import Linux, LinuxIdMapping, LinuxNamespace, LinuxNamespaceType, Mount, Spec
from ocirt.utils import write_file

log = logging.getLogger(__name__)


@dataclass
class Rootless:
    """Settings for running a container inside a new user namespace."""

    newuidmap: Path | None = None
    newgidmap: Path | None = None
    uid_mappings: list[LinuxIdMapping] | None = None
    gid_mappings: list[LinuxIdMapping] | None = None
    user_namespace: LinuxNamespace | None = None
    privileged: bool = False

    @classmethod
    def from_linux(cls, linux: Linux) -> "Rootless":
        """Rootless settings taken from the linux section of a spec."""
        user_namespace = Namespaces(linux.namespaces).get(LinuxNamespaceType.USER)
        return cls(
            uid_mappings=linux.uid_mappings,
            gid_mappings=linux.gid_mappings,
            user_namespace=user_namespace,
            privileged=os.geteuid() == 0,
        )

    @classmethod
    def from_spec(cls, spec: Spec) -> "Rootless | None":
        """Rootless settings if ``spec`` asks for a new user namespace, else None."""
        linux = spec.linux
        if linux is None:
            raise ValueError("no linux in spec")
        user_namespace = Namespaces(linux.namespaces).get(LinuxNamespaceType.USER)

        if rootless_required() and user_namespace is None:
            raise ValueError("rootless container requires valid user namespace definition")

        if user_namespace is not None and user_namespace.path is None:
            log.debug("rootless container should be created")
            log.warning(
                "resource constraints and multi id mapping is unimplemented for rootless containers"
            )
            try:
                validate(spec)
            except ValueError as exc:
                exc.add_note("The spec failed to comply to rootless requirement")
                raise
            rootless = cls.from_linux(linux)
            binaries = lookup_map_binaries(linux)
            if binaries is not None:
                rootless.newuidmap, rootless.newgidmap = binaries
            return rootless

        log.debug("This is NOT a rootless container")
        return None


def rootless_required() -> bool:
    """Whether rootless mode must be used."""
    if os.geteuid() != 0:
        return True
    return os.environ.get("YOUKI_USE_ROOTLESS") == "true"


def validate(spec: Spec) -> None:
    """Check that ``spec`` holds what a rootless container needs."""
    linux = spec.linux
    if linux is None:
        raise ValueError("no linux in spec")
    if Namespaces(linux.namespaces).get(LinuxNamespaceType.USER) is None:
        raise ValueError("rootless containers require the specification of a user namespace")

    gid_mappings = linux.gid_mappings
    if gid_mappings is None:
        raise ValueError("rootless containers require gid_mappings in spec")
    uid_mappings = linux.uid_mappings
    if uid_mappings is None:
        raise ValueError("rootless containers require LinuxIdMapping in spec")
    if not uid_mappings:
        raise ValueError("rootless containers require at least one uid mapping")
    if not gid_mappings:
        raise ValueError("rootless containers require at least one gid mapping")

    if spec.mounts is None:
        raise ValueError("no mounts in spec")
    validate_mounts(spec.mounts, uid_mappings, gid_mappings)

    if spec.process is None:
        return
    additional_gids = spec.process.user.additional_gids
    if not additional_gids:
        return
    euid = os.geteuid()
    if euid == 0:
        for gid in additional_gids:
            if not is_id_mapped(gid, gid_mappings):
                raise ValueError(
                    f"gid {gid} is specified as supplementary group, "
                    "but is not mapped in the user namespace"
                )
    else:
        raise ValueError(
            f"user is {euid} (unprivileged). Supplementary groups cannot be set in "
            "a rootless container for this user due to CVE-2014-8989"
        )


def validate_mounts(
    mounts: Iterable[Mount],
    uid_mappings: Sequence[LinuxIdMapping],
    gid_mappings: Sequence[LinuxIdMapping],
) -> None:
    """Check that every uid= and gid= mount option names a mapped id."""
    for mount in mounts:
        for opt in mount.options or ():
            for prefix, mappings in (("uid=", uid_mappings), ("gid=", gid_mappings)):
                if opt.startswith(prefix) and not is_id_mapped(int(opt[4:]), mappings):
                    raise ValueError(
                        f"Mount {mount!r} specifies option {opt} "
                        "which is not mapped inside the rootless container"
                    )


def is_id_mapped(id: int, mappings: Iterable[LinuxIdMapping]) -> bool:
    """Whether ``id`` falls inside one of the container-side ranges of ``mappings``."""
    return any(m.container_id <= id <= m.container_id + m.size for m in mappings)


def lookup_map_binaries(linux: Linux) -> tuple[Path, Path] | None:
    """Locate newuidmap and newgidmap when more than one mapping must be written."""
    uid_mappings = linux.uid_mappings
    if uid_mappings is None or len(uid_mappings) == 1:
        return None

    uidmap = lookup_map_binary("newuidmap")
    gidmap = lookup_map_binary("newgidmap")
    if uidmap is None or gidmap is None:
        raise ValueError(
            "newuidmap/newgidmap binaries could not be found in path. "
            "This is required if multiple id mappings are specified"
        )
    return uidmap, gidmap


def lookup_map_binary(binary: str) -> Path | None:
    """The first directory on PATH that holds ``binary``, or None."""
    try:
        paths = os.environ["PATH"]
    except KeyError:
        raise ValueError("environment variable PATH is not set") from None
    entries = paths.split(":")
    if entries and entries[-1] == "":
        entries.pop()
    return next((Path(p) for p in entries if (Path(p) / binary).exists()), None)


def write_uid_mapping(target_pid: int, rootless: Rootless | None) -> None:
    """Write the uid mapping of process ``target_pid``."""
    log.debug("Write UID mapping for %s", target_pid)
    if rootless is not None and rootless.uid_mappings is not None:
        write_id_mapping(f"/proc/{target_pid}/uid_map", rootless.uid_mappings, rootless.newuidmap)


def write_gid_mapping(target_pid: int, rootless: Rootless | None) -> None:
    """Write the gid mapping of process ``target_pid``."""
    log.debug("Write GID mapping for %s", target_pid)
    if rootless is not None and rootless.gid_mappings is not None:
        write_id_mapping(f"/proc/{target_pid}/gid_map", rootless.gid_mappings, rootless.newgidmap)


def write_id_mapping(
    map_file: str | os.PathLike,
    mappings: Sequence[LinuxIdMapping],
    map_binary: str | os.PathLike | None,
) -> None:
    """Write a single mapping into ``map_file``, or hand several to ``map_binary``."""
    lines = [f"{m.container_id} {m.host_id} {m.size}" for m in mappings]
    log.debug("Write ID mapping: %r", lines)
    if len(lines) == 1:
        write_file(map_file, lines[0])
        return

    if map_binary is None:
        raise ValueError("a map binary is required to write multiple id mappings")
    try:
        subprocess.run([os.fspath(map_binary), *lines], capture_output=True, check=False)
    except OSError as exc:
        exc.add_note(f"failed to execute {os.fspath(map_binary)!r}")
        raise