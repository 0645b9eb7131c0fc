"""A Unix socket on which the container init process waits for the start command."""

import logging
import os
import socket
from contextlib import contextmanager
from pathlib import Path

log = logging.getLogger(__name__)

NOTIFY_FILE = "notify.sock"


@contextmanager
def _working_directory(path: Path):
    # Unix socket paths are limited to 108 bytes, so the socket is addressed
    # by its bare name from inside its directory.
    previous = os.getcwd()
    try:
        os.chdir(path)
    except OSError as exc:
        exc.add_note(f"Failed to chdir into {path}")
        raise
    try:
        yield
    finally:
        os.chdir(previous)


def _split(socket_path: str | os.PathLike) -> tuple[Path, str]:
    path = Path(socket_path)
    return path.parent, path.name


class NotifyListener:
    """The listening end, created before the container process changes its root."""

    def __init__(self, socket_path: str | os.PathLike):
        workdir, name = _split(socket_path)
        self._socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            with _working_directory(workdir):
                try:
                    self._socket.bind(name)
                except OSError as exc:
                    exc.add_note(f"Failed to bind {name}")
                    raise
            self._socket.listen()
        except BaseException:
            self._socket.close()
            raise

    def wait_for_container_start(self) -> str:
        """Block until a notifier connects; return what it sent."""
        try:
            conn, _ = self._socket.accept()
        except OSError as exc:
            raise OSError(exc.errno, f"accept function failed: {exc!r}") from exc
        with conn:
            chunks = []
            while chunk := conn.recv(4096):
                chunks.append(chunk)
        response = b"".join(chunks).decode()
        log.debug("received: %s", response)
        return response

    def close(self) -> None:
        """Close the listening socket."""
        self._socket.close()

    def __enter__(self) -> "NotifyListener":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class NotifySocket:
    """The connecting end, used to tell a waiting container to start."""

    def __init__(self, socket_path: str | os.PathLike):
        self.path = Path(socket_path)

    def notify_container_start(self) -> None:
        """Connect to the listener and send the start command."""
        log.debug("notify container start")
        workdir, name = _split(self.path)
        with _working_directory(workdir):
            with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as stream:
                stream.connect(name)
                stream.sendall(b"start container")
        log.debug("notify finished")

    def notify_container_finish(self) -> None:
        """Nothing is sent when the container finishes."""
        return None