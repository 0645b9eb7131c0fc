"""Filesystem, path and environment helpers."""

import os
import shutil
import stat
import tempfile
import time
import weakref
from pathlib import Path
from typing import BinaryIO


def as_in_container(path: str | os.PathLike) -> Path:
    """Strip the leading slash of an absolute path so it can be joined under a rootfs."""
    text = os.fspath(path)
    if not os.path.isabs(text):
        raise ValueError("Relative path cannot be converted to the path in the container.")
    return Path(text[1:])


def join_absolute_path(base: str | os.PathLike, path: str | os.PathLike) -> Path:
    """Concatenate an absolute (or empty) ``path`` onto ``base``."""
    tail = os.fspath(path)
    if tail and not os.path.isabs(tail):
        raise ValueError(f"cannot join {tail!r} because it is not the absolute path.")
    return Path(f"{os.fspath(base)}{tail}")


def parse_env(envs: list[str]) -> dict[str, str]:
    """Turn ``KEY=VALUE`` strings into a mapping; the value keeps any further ``=``."""
    result: dict[str, str] = {}
    for entry in envs:
        key, _, value = entry.partition("=")
        result[key] = value
    return result


def do_exec(path: str | os.PathLike, args: list[str]) -> None:
    """Replace the current process with ``path``, searching PATH like execvp."""
    os.execvp(os.fspath(path), list(args))


def get_cgroup_path(cgroups_path: str | os.PathLike | None, container_id: str) -> Path:
    """Return the configured cgroup path, or the default one for ``container_id``."""
    if cgroups_path is not None:
        return Path(cgroups_path)
    return Path(f"/youki/{container_id}")


def delete_with_retry(path: str | os.PathLike) -> None:
    """Remove an empty directory, retrying a few times with growing delays."""
    delay = 0.01
    for _ in range(5):
        try:
            os.rmdir(path)
            return
        except OSError:
            time.sleep(delay)
            delay *= 2
    raise OSError(f"could not delete {os.fspath(path)!r}")


def write_file(path: str | os.PathLike, contents: str | bytes) -> None:
    """Write ``contents`` to ``path``, replacing what was there."""
    data = contents.encode() if isinstance(contents, str) else contents
    try:
        Path(path).write_bytes(data)
    except OSError as exc:
        exc.add_note(f"failed to write to {os.fspath(path)!r}")
        raise


def create_dir_all(path: str | os.PathLike) -> None:
    """Create a directory and all its parents."""
    try:
        os.makedirs(path, exist_ok=True)
    except OSError as exc:
        exc.add_note(f"failed to create directory {os.fspath(path)!r}")
        raise


def open_file(path: str | os.PathLike) -> BinaryIO:
    """Open ``path`` for reading in binary mode."""
    try:
        return open(path, "rb")
    except OSError as exc:
        exc.add_note(f"failed to open {os.fspath(path)!r}")
        raise


def create_dir_all_with_mode(path: str | os.PathLike, owner: int, mode: int) -> None:
    """Create a directory tree with ``mode`` and check its owner and permission bits."""
    target = Path(path)
    if not target.exists():
        try:
            os.makedirs(target, mode=mode)
        except OSError as exc:
            exc.add_note(f"failed to create directory {target}")
            raise

    info = target.stat()
    if stat.S_ISDIR(info.st_mode) and info.st_uid == owner and info.st_mode & mode == mode:
        return
    raise PermissionError(f"metadata for {target} does not possess the expected attributes")


class TempDir:
    """A directory that is removed again by ``remove``, on exit or when collected."""

    def __init__(self, path: str | os.PathLike):
        target = Path(path)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            exc.add_note(f"failed to create directory {target}")
            raise
        self._path: Path | None = target
        self._finalizer = weakref.finalize(self, shutil.rmtree, target, ignore_errors=True)

    def path(self) -> Path:
        """The directory's path; fails once it has been removed."""
        if self._path is None:
            raise RuntimeError("temp dir has already been removed")
        return self._path

    def remove(self) -> None:
        """Delete the directory and everything in it."""
        if self._path is not None:
            self._finalizer()
            self._path = None

    def __fspath__(self) -> str:
        return os.fspath(self.path())

    def __truediv__(self, other: str | os.PathLike) -> Path:
        return self.path() / other

    def __enter__(self) -> "TempDir":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.remove()


def create_temp_dir(test_name: str) -> TempDir:
    """Create a named directory under the system temporary directory."""
    return TempDir(Path(tempfile.gettempdir()) / test_name)