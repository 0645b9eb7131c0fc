"""A container: its persisted state and the directory holding it."""

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from ocirt.spec import Spec
from ocirt.state import OCI_VERSION, ContainerStatus, State
from ocirt.syscall import create_syscall

log = logging.getLogger(__name__)

_FINISHED_STATES = {"Z", "X", "x"}


def _process_state(pid: int) -> str | None:
    """The one-letter state of process ``pid`` from procfs, or None if it is gone."""
    try:
        text = Path(f"/proc/{pid}/stat").read_text()
    except OSError:
        return None
    _, _, rest = text.rpartition(")")
    fields = rest.split()
    return fields[0] if fields else None


@dataclass
class Container:
    """Container state together with the container's root directory."""

    state: State = field(default_factory=State)
    root: Path = field(default_factory=lambda: Path("/run/youki"))

    @classmethod
    def create(
        cls,
        container_id: str,
        status: ContainerStatus,
        pid: int | None,
        bundle: str | os.PathLike,
        container_root: str | os.PathLike,
    ) -> "Container":
        """A new container whose root is ``container_root`` made absolute."""
        root = Path(container_root).resolve(strict=True)
        state = State(
            oci_version=OCI_VERSION,
            id=container_id,
            status=status,
            pid=pid,
            bundle=Path(bundle),
            annotations={},
        )
        return cls(state=state, root=root)

    @classmethod
    def load(cls, container_root: str | os.PathLike) -> "Container":
        """Read the container stored in ``container_root``."""
        root = Path(container_root)
        return cls(state=State.load(root), root=root)

    @property
    def id(self) -> str:
        return self.state.id

    @property
    def status(self) -> ContainerStatus:
        return self.state.status

    @property
    def pid(self) -> int | None:
        return self.state.pid

    @property
    def bundle(self) -> Path:
        return self.state.bundle

    @property
    def created(self) -> datetime | None:
        return self.state.created

    @property
    def systemd(self) -> bool | None:
        return self.state.use_systemd

    def _with_state(self, **changes) -> "Container":
        return Container(state=dataclasses.replace(self.state, **changes), root=self.root)

    def refresh_status(self) -> "Container":
        """A copy whose status reflects whether the container process still runs."""
        if self.pid is None:
            new_status = ContainerStatus.STOPPED
        else:
            proc_state = _process_state(self.pid)
            if proc_state is None or proc_state in _FINISHED_STATES:
                new_status = ContainerStatus.STOPPED
            elif self.status in (
                ContainerStatus.CREATING,
                ContainerStatus.CREATED,
                ContainerStatus.PAUSED,
            ):
                new_status = self.status
            else:
                new_status = ContainerStatus.RUNNING
        return self.update_status(new_status)

    def refresh_state(self) -> "Container":
        """A copy with the state re-read from disk."""
        return Container(state=State.load(self.root), root=self.root)

    def save(self) -> None:
        """Persist the state into the container root."""
        log.debug("Save container status: %r in %s", self, self.root)
        self.state.save(self.root)

    def can_start(self) -> bool:
        return self.status.can_start()

    def can_kill(self) -> bool:
        return self.status.can_kill()

    def can_delete(self) -> bool:
        return self.status.can_delete()

    def can_exec(self) -> bool:
        return self.status is ContainerStatus.RUNNING

    def can_pause(self) -> bool:
        return self.status.can_pause()

    def can_resume(self) -> bool:
        return self.status.can_resume()

    def with_pid(self, pid: int) -> "Container":
        return self._with_state(pid=pid)

    def with_creator(self, uid: int) -> "Container":
        return self._with_state(creator=uid)

    def with_systemd(self, should_use: bool) -> "Container":
        return self._with_state(use_systemd=should_use)

    def with_annotations(self, annotations: dict[str, str] | None) -> "Container":
        return self._with_state(annotations=None if annotations is None else dict(annotations))

    def creator(self) -> str | None:
        """The name of the user that created the container, if known."""
        if self.state.creator is None:
            return None
        return create_syscall().get_pwuid(self.state.creator)

    def update_status(self, status: ContainerStatus) -> "Container":
        """A copy with ``status``; the creation time is stamped on first reaching Created."""
        created = self.state.created
        if status is ContainerStatus.CREATED and created is None:
            created = datetime.now(timezone.utc)
        return self._with_state(status=status, created=created)

    def spec(self) -> Spec:
        """The spec saved in the container root."""
        return Spec.load(self.root / "config.json")