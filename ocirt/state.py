"""Status and persisted state of a container."""

import json
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

OCI_VERSION = "v1.0.2"
STATE_FILE_PATH = "state.json"


class ContainerStatus(Enum):
    """Lifecycle status of a container."""

    CREATING = "creating"
    CREATED = "created"
    RUNNING = "running"
    STOPPED = "stopped"
    PAUSED = "paused"

    def __str__(self) -> str:
        return self.value.capitalize()

    def can_start(self) -> bool:
        return self is ContainerStatus.CREATED

    def can_kill(self) -> bool:
        return self in (ContainerStatus.CREATED, ContainerStatus.RUNNING, ContainerStatus.PAUSED)

    def can_delete(self) -> bool:
        return self is ContainerStatus.STOPPED

    def can_pause(self) -> bool:
        return self is ContainerStatus.RUNNING

    def can_resume(self) -> bool:
        return self is ContainerStatus.PAUSED


def _format_time(moment: datetime) -> str:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_time(text: str) -> datetime:
    return datetime.fromisoformat(text).astimezone(timezone.utc)


@dataclass
class State:
    """The state information of a container as stored in ``state.json``."""

    oci_version: str = ""
    id: str = ""
    status: ContainerStatus = ContainerStatus.CREATING
    pid: int | None = None
    bundle: Path = Path("")
    annotations: dict[str, str] | None = None
    created: datetime | None = None
    creator: int | None = None
    use_systemd: bool | None = None

    def to_dict(self) -> dict[str, Any]:
        """Encode as JSON-ready data; optional fields that are unset are left out."""
        result: dict[str, Any] = {
            "ociVersion": self.oci_version,
            "id": self.id,
            "status": self.status.value,
        }
        if self.pid is not None:
            result["pid"] = self.pid
        result["bundle"] = os.fspath(self.bundle)
        if self.annotations is not None:
            result["annotations"] = dict(self.annotations)
        if self.created is not None:
            result["created"] = _format_time(self.created)
        if self.creator is not None:
            result["creator"] = self.creator
        result["useSystemd"] = self.use_systemd
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "State":
        """Decode state data, failing with ValueError on missing or bad fields."""
        try:
            annotations = data.get("annotations")
            created = data.get("created")
            return cls(
                oci_version=data["ociVersion"],
                id=data["id"],
                status=ContainerStatus(data["status"]),
                pid=data.get("pid"),
                bundle=Path(data["bundle"]),
                annotations=None if annotations is None else dict(annotations),
                created=None if created is None else _parse_time(created),
                creator=data.get("creator"),
                use_systemd=data.get("useSystemd"),
            )
        except KeyError as exc:
            raise ValueError(f"missing field in state: {exc.args[0]}") from exc

    def save(self, container_root: str | os.PathLike) -> None:
        """Write the state into ``container_root``, replacing any earlier file."""
        with open(self.file_path(container_root), "w", encoding="utf-8") as handle:
            json.dump(self.to_dict(), handle)

    @classmethod
    def load(cls, container_root: str | os.PathLike) -> "State":
        """Read the state stored in ``container_root``."""
        path = cls.file_path(container_root)
        try:
            handle = open(path, encoding="utf-8")
        except OSError as exc:
            exc.add_note(f"failed to open container state file {os.fspath(path)!r}")
            raise
        with handle:
            return cls.from_dict(json.load(handle))

    @staticmethod
    def file_path(container_root: str | os.PathLike) -> Path:
        """Path of the state file for ``container_root``."""
        return Path(container_root) / STATE_FILE_PATH