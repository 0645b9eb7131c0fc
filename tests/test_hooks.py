import json
import shutil
from pathlib import Path

import pytest

from ocirt.container import Container
from ocirt.hooks import HookError, HookTimeoutError, run_hooks
from ocirt.spec import Hook
from ocirt.state import ContainerStatus, State

SH = Path(shutil.which("sh") or "/bin/sh")


def sample_container():
    state = State(id="hooked", status=ContainerStatus.CREATED, bundle=Path("/bundle"))
    return Container(state=state)


def test_true_hook_runs(tmp_path):
    marker = tmp_path / "ran"
    hook = Hook(path=SH, args=["sh", "-c", f"touch {marker}"])
    run_hooks([hook], sample_container())
    assert marker.exists()


def test_hook_environment_is_set(tmp_path):
    out = tmp_path / "env"
    hook = Hook(
        path=SH,
        args=["sh", "-c", f'printf %s "$key" > {out}'],
        env=["key=value"],
    )
    run_hooks([hook], sample_container())
    assert out.read_text() == "value"


def test_hook_environment_is_cleared(tmp_path, monkeypatch):
    monkeypatch.setenv("LEAKED", "yes")
    out = tmp_path / "env"
    hook = Hook(path=SH, args=["sh", "-c", f'printf %s "${{LEAKED:-none}}" > {out}'])
    run_hooks([hook], sample_container())
    assert out.read_text() == "none"


def test_hook_receives_state_on_stdin(tmp_path):
    out = tmp_path / "state"
    hook = Hook(path=SH, args=["sh", "-c", f"cat > {out}"])
    run_hooks([hook], sample_container())
    data = json.loads(out.read_text())
    assert data["id"] == "hooked"
    assert data["status"] == "created"
    assert data["bundle"] == "/bundle"


def test_hooks_run_in_order(tmp_path):
    out = tmp_path / "order"
    hooks = [
        Hook(path=SH, args=["sh", "-c", f"echo first >> {out}"]),
        Hook(path=SH, args=["sh", "-c", f"echo second >> {out}"]),
    ]
    run_hooks(hooks, sample_container())
    assert out.read_text().split() == ["first", "second"]


def test_missing_container_fails():
    with pytest.raises(HookError, match="container state is required"):
        run_hooks(None, None)


def test_non_zero_exit_fails():
    hook = Hook(path=SH, args=["sh", "-c", "exit 3"])
    with pytest.raises(HookError, match="Non-zero return code. 3"):
        run_hooks([hook], sample_container())


def test_killed_by_signal_fails():
    hook = Hook(path=SH, args=["sh", "-c", "kill -9 $$"])
    with pytest.raises(HookError, match="killed by signal"):
        run_hooks([hook], sample_container())


def test_missing_executable_fails(tmp_path):
    hook = Hook(path=tmp_path / "no-such-hook")
    with pytest.raises(HookError, match="Failed to execute hook"):
        run_hooks([hook], sample_container())


def test_failure_stops_later_hooks(tmp_path):
    marker = tmp_path / "later"
    hooks = [
        Hook(path=SH, args=["sh", "-c", "exit 1"]),
        Hook(path=SH, args=["sh", "-c", f"touch {marker}"]),
    ]
    with pytest.raises(HookError):
        run_hooks(hooks, sample_container())
    assert not marker.exists()


def test_run_hook_timeout():
    hook = Hook(path=SH, args=["sh", "-c", "sleep 30"], timeout=1)
    with pytest.raises(HookTimeoutError, match="hook command timeout"):
        run_hooks([hook], sample_container())