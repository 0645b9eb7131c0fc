"""Choosing the directory where container state is kept."""

import os
from pathlib import Path

from ocirt.rootless import rootless_required
from ocirt.utils import create_dir_all, create_dir_all_with_mode

DEFAULT_ROOT = Path("/run/youki")
_OWNER_ONLY = 0o700


def _try_dir(path: Path, uid: int) -> bool:
    try:
        create_dir_all_with_mode(path, uid, _OWNER_ONLY)
    except OSError:
        return False
    return True


def determine_root_path(root_path: str | os.PathLike | None = None) -> Path:
    """The state directory: the given one, the system default, or a per-user location."""
    if root_path is not None:
        return Path(root_path)

    if not rootless_required():
        create_dir_all(DEFAULT_ROOT)
        return DEFAULT_ROOT

    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir is not None:
        return Path(runtime_dir)

    uid = os.getuid()
    user_run = Path(f"/run/user/{uid}")
    if _try_dir(user_run, uid):
        return user_run

    home = os.environ.get("HOME")
    if home is not None:
        try:
            resolved = Path(home).resolve(strict=True)
        except OSError:
            resolved = None
        if resolved is not None:
            run_dir = resolved / ".youki/run"
            if _try_dir(run_dir, uid):
                return run_dir

    tmp_dir = Path(f"/tmp/youki/{uid}")
    if _try_dir(tmp_dir, uid):
        return tmp_dir

    raise RuntimeError(
        "could not find a storage location with suitable permissions for the current user"
    )