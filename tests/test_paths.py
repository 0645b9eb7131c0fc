import os
import shutil
from pathlib import Path
from unittest.mock import patch

import pytest

from ocirt.paths import determine_root_path

FAKE_UID = 3_987_654


def test_explicit_root_is_returned_unchanged(tmp_path):
    target = tmp_path / "state"
    assert determine_root_path(target) == target
    assert not target.exists()


def test_explicit_root_accepts_string(tmp_path):
    assert determine_root_path(str(tmp_path)) == tmp_path


def test_rootless_uses_xdg_runtime_dir(tmp_path, monkeypatch):
    monkeypatch.setenv("YOUKI_USE_ROOTLESS", "true")
    xdg = tmp_path / "xdg"
    monkeypatch.setenv("XDG_RUNTIME_DIR", str(xdg))
    assert determine_root_path(None) == xdg


def test_no_suitable_location_raises(tmp_path, monkeypatch):
    monkeypatch.setenv("YOUKI_USE_ROOTLESS", "true")
    monkeypatch.delenv("XDG_RUNTIME_DIR", raising=False)
    monkeypatch.setenv("HOME", str(tmp_path))
    leftovers = [Path(f"/tmp/youki/{FAKE_UID}"), Path(f"/run/user/{FAKE_UID}")]
    existed = {p: p.exists() for p in leftovers}
    try:
        with patch("os.getuid", return_value=FAKE_UID):
            with pytest.raises(RuntimeError, match="could not find a storage location"):
                determine_root_path()
        # The home fallback was tried and created, but is owned by someone else.
        assert (tmp_path / ".youki" / "run").is_dir()
        assert os.stat(tmp_path / ".youki" / "run").st_uid != FAKE_UID
    finally:
        for path, was_there in existed.items():
            if not was_there and path.exists():
                shutil.rmtree(path, ignore_errors=True)