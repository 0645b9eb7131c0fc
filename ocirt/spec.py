"""The parts of the OCI runtime configuration used by the runtime."""

import json
import os
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path
from typing import Any


def _compact(items: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in items.items() if value is not None}


def _opt_path(value: Any) -> Path | None:
    return None if value is None else Path(value)


def _opt_str(value: Path | None) -> str | None:
    return None if value is None else str(value)


def _opt_list(value: Any) -> list | None:
    return None if value is None else list(value)


def _opt_dict(value: Any) -> dict | None:
    return None if value is None else dict(value)


class LinuxNamespaceType(StrEnum):
    PID = "pid"
    NETWORK = "network"
    MOUNT = "mount"
    IPC = "ipc"
    UTS = "uts"
    USER = "user"
    CGROUP = "cgroup"


@dataclass
class LinuxNamespace:
    typ: LinuxNamespaceType
    path: Path | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "LinuxNamespace":
        return cls(typ=LinuxNamespaceType(data["type"]), path=_opt_path(data.get("path")))

    def _to_dict(self) -> dict:
        return _compact({"type": str(self.typ), "path": _opt_str(self.path)})


@dataclass
class LinuxIdMapping:
    container_id: int
    host_id: int
    size: int

    @classmethod
    def _from_dict(cls, data: dict) -> "LinuxIdMapping":
        return cls(container_id=data["containerID"], host_id=data["hostID"], size=data["size"])

    def _to_dict(self) -> dict:
        return {"containerID": self.container_id, "hostID": self.host_id, "size": self.size}


class LinuxDeviceType(StrEnum):
    B = "b"
    C = "c"
    U = "u"
    P = "p"
    A = "a"


@dataclass
class LinuxDevice:
    path: Path
    typ: LinuxDeviceType
    major: int = 0
    minor: int = 0
    file_mode: int | None = None
    uid: int | None = None
    gid: int | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "LinuxDevice":
        return cls(
            path=Path(data["path"]),
            typ=LinuxDeviceType(data["type"]),
            major=data.get("major", 0),
            minor=data.get("minor", 0),
            file_mode=data.get("fileMode"),
            uid=data.get("uid"),
            gid=data.get("gid"),
        )

    def _to_dict(self) -> dict:
        return _compact(
            {
                "type": str(self.typ),
                "path": str(self.path),
                "major": self.major,
                "minor": self.minor,
                "fileMode": self.file_mode,
                "uid": self.uid,
                "gid": self.gid,
            }
        )


@dataclass
class LinuxRlimit:
    typ: str
    hard: int
    soft: int

    @classmethod
    def _from_dict(cls, data: dict) -> "LinuxRlimit":
        return cls(typ=data["type"], hard=data["hard"], soft=data["soft"])

    def _to_dict(self) -> dict:
        return {"type": self.typ, "hard": self.hard, "soft": self.soft}


@dataclass
class Mount:
    destination: Path
    typ: str | None = None
    source: Path | None = None
    options: list[str] | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "Mount":
        return cls(
            destination=Path(data["destination"]),
            typ=data.get("type"),
            source=_opt_path(data.get("source")),
            options=_opt_list(data.get("options")),
        )

    def _to_dict(self) -> dict:
        return _compact(
            {
                "destination": str(self.destination),
                "type": self.typ,
                "source": _opt_str(self.source),
                "options": _opt_list(self.options),
            }
        )


@dataclass
class Hook:
    path: Path
    args: list[str] | None = None
    env: list[str] | None = None
    timeout: int | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "Hook":
        return cls(
            path=Path(data["path"]),
            args=_opt_list(data.get("args")),
            env=_opt_list(data.get("env")),
            timeout=data.get("timeout"),
        )

    def _to_dict(self) -> dict:
        return _compact(
            {
                "path": str(self.path),
                "args": _opt_list(self.args),
                "env": _opt_list(self.env),
                "timeout": self.timeout,
            }
        )


_HOOK_KEYS = {
    "prestart": "prestart",
    "create_runtime": "createRuntime",
    "create_container": "createContainer",
    "start_container": "startContainer",
    "poststart": "poststart",
    "poststop": "poststop",
}


@dataclass
class Hooks:
    prestart: list[Hook] | None = None
    create_runtime: list[Hook] | None = None
    create_container: list[Hook] | None = None
    start_container: list[Hook] | None = None
    poststart: list[Hook] | None = None
    poststop: list[Hook] | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "Hooks":
        values = {
            attr: [Hook._from_dict(h) for h in data[key]]
            for attr, key in _HOOK_KEYS.items()
            if data.get(key) is not None
        }
        return cls(**values)

    def _to_dict(self) -> dict:
        result = {}
        for attr, key in _HOOK_KEYS.items():
            hooks = getattr(self, attr)
            if hooks is not None:
                result[key] = [hook._to_dict() for hook in hooks]
        return result


@dataclass
class User:
    uid: int = 0
    gid: int = 0
    additional_gids: list[int] | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "User":
        return cls(
            uid=data.get("uid", 0),
            gid=data.get("gid", 0),
            additional_gids=_opt_list(data.get("additionalGids")),
        )

    def _to_dict(self) -> dict:
        return _compact(
            {"uid": self.uid, "gid": self.gid, "additionalGids": _opt_list(self.additional_gids)}
        )


@dataclass
class Process:
    user: User = field(default_factory=User)
    args: list[str] | None = None
    env: list[str] | None = None
    cwd: str = ""
    terminal: bool | None = None
    capabilities: dict[str, list[str]] | None = None
    rlimits: list[LinuxRlimit] | None = None
    no_new_privileges: bool | None = None
    oom_score_adj: int | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "Process":
        rlimits = data.get("rlimits")
        user = data.get("user")
        return cls(
            user=User() if user is None else User._from_dict(user),
            args=_opt_list(data.get("args")),
            env=_opt_list(data.get("env")),
            cwd=data.get("cwd", ""),
            terminal=data.get("terminal"),
            capabilities=_opt_dict(data.get("capabilities")),
            rlimits=None if rlimits is None else [LinuxRlimit._from_dict(r) for r in rlimits],
            no_new_privileges=data.get("noNewPrivileges"),
            oom_score_adj=data.get("oomScoreAdj"),
        )

    def _to_dict(self) -> dict:
        return _compact(
            {
                "terminal": self.terminal,
                "user": self.user._to_dict(),
                "args": _opt_list(self.args),
                "env": _opt_list(self.env),
                "cwd": self.cwd,
                "capabilities": _opt_dict(self.capabilities),
                "rlimits": None
                if self.rlimits is None
                else [r._to_dict() for r in self.rlimits],
                "noNewPrivileges": self.no_new_privileges,
                "oomScoreAdj": self.oom_score_adj,
            }
        )


@dataclass
class Root:
    path: Path
    readonly: bool | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "Root":
        return cls(path=Path(data["path"]), readonly=data.get("readonly"))

    def _to_dict(self) -> dict:
        return _compact({"path": str(self.path), "readonly": self.readonly})


@dataclass
class Linux:
    uid_mappings: list[LinuxIdMapping] | None = None
    gid_mappings: list[LinuxIdMapping] | None = None
    sysctl: dict[str, str] | None = None
    resources: dict[str, Any] | None = None
    cgroups_path: Path | None = None
    namespaces: list[LinuxNamespace] | None = None
    devices: list[LinuxDevice] | None = None
    rootfs_propagation: str | None = None
    masked_paths: list[str] | None = None
    readonly_paths: list[str] | None = None
    mount_label: str | None = None

    @classmethod
    def _from_dict(cls, data: dict) -> "Linux":
        def mapped(key, item_cls):
            items = data.get(key)
            return None if items is None else [item_cls._from_dict(i) for i in items]

        return cls(
            uid_mappings=mapped("uidMappings", LinuxIdMapping),
            gid_mappings=mapped("gidMappings", LinuxIdMapping),
            sysctl=_opt_dict(data.get("sysctl")),
            resources=_opt_dict(data.get("resources")),
            cgroups_path=_opt_path(data.get("cgroupsPath")),
            namespaces=mapped("namespaces", LinuxNamespace),
            devices=mapped("devices", LinuxDevice),
            rootfs_propagation=data.get("rootfsPropagation"),
            masked_paths=_opt_list(data.get("maskedPaths")),
            readonly_paths=_opt_list(data.get("readonlyPaths")),
            mount_label=data.get("mountLabel"),
        )

    def _to_dict(self) -> dict:
        def dumped(items):
            return None if items is None else [item._to_dict() for item in items]

        return _compact(
            {
                "uidMappings": dumped(self.uid_mappings),
                "gidMappings": dumped(self.gid_mappings),
                "sysctl": _opt_dict(self.sysctl),
                "resources": _opt_dict(self.resources),
                "cgroupsPath": _opt_str(self.cgroups_path),
                "namespaces": dumped(self.namespaces),
                "devices": dumped(self.devices),
                "rootfsPropagation": self.rootfs_propagation,
                "maskedPaths": _opt_list(self.masked_paths),
                "readonlyPaths": _opt_list(self.readonly_paths),
                "mountLabel": self.mount_label,
            }
        )


@dataclass
class Spec:
    """A container configuration as found in a bundle's config.json."""

    version: str
    process: Process | None = None
    root: Root | None = None
    hostname: str | None = None
    mounts: list[Mount] | None = None
    hooks: Hooks | None = None
    annotations: dict[str, str] | None = None
    linux: Linux | None = None

    @classmethod
    def from_dict(cls, data: dict) -> "Spec":
        """Build a spec from decoded JSON, failing with ValueError on missing fields."""
        try:
            mounts = data.get("mounts")
            return cls(
                version=data["ociVersion"],
                process=None if data.get("process") is None else Process._from_dict(data["process"]),
                root=None if data.get("root") is None else Root._from_dict(data["root"]),
                hostname=data.get("hostname"),
                mounts=None if mounts is None else [Mount._from_dict(m) for m in mounts],
                hooks=None if data.get("hooks") is None else Hooks._from_dict(data["hooks"]),
                annotations=_opt_dict(data.get("annotations")),
                linux=None if data.get("linux") is None else Linux._from_dict(data["linux"]),
            )
        except KeyError as exc:
            raise ValueError(f"missing field in spec: {exc.args[0]}") from exc

    def to_dict(self) -> dict:
        """Encode the spec as JSON-ready data, leaving out unset fields."""
        return _compact(
            {
                "ociVersion": self.version,
                "process": None if self.process is None else self.process._to_dict(),
                "root": None if self.root is None else self.root._to_dict(),
                "hostname": self.hostname,
                "mounts": None if self.mounts is None else [m._to_dict() for m in self.mounts],
                "hooks": None if self.hooks is None else self.hooks._to_dict(),
                "annotations": _opt_dict(self.annotations),
                "linux": None if self.linux is None else self.linux._to_dict(),
            }
        )

    @classmethod
    def load(cls, path: str | os.PathLike) -> "Spec":
        """Read a spec from a JSON file."""
        with open(path, encoding="utf-8") as handle:
            return cls.from_dict(json.load(handle))

    def save(self, path: str | os.PathLike) -> None:
        """Write the spec as JSON to ``path``."""
        with open(path, "w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle)

    def canonicalize_rootfs(self, bundle: str | os.PathLike) -> None:
        """Make the root path absolute, resolving it against ``bundle`` if relative."""
        if self.root is None:
            raise ValueError("no root in spec")
        root_path = self.root.path
        if not root_path.is_absolute():
            root_path = Path(bundle) / root_path
        self.root.path = root_path.resolve(strict=True)


def load_spec(bundle: str | os.PathLike) -> Spec:
    """Load ``config.json`` from a bundle, check its version and resolve its rootfs."""
    spec = Spec.load(Path(bundle) / "config.json")
    if not spec.version.startswith("1.0"):
        raise ValueError(
            f"runtime spec has incompatible version '{spec.version}'. Only 1.0.X is supported"
        )
    spec.canonicalize_rootfs(bundle)
    return spec