"""Running the lifecycle hooks declared in a container spec."""

import json
import logging
import os
import subprocess
from collections.abc import Iterable

from ocirt.container import Container
from ocirt.spec import Hook
from ocirt.utils import parse_env

log = logging.getLogger(__name__)


class HookError(Exception):
    """A hook could not be run or did not succeed."""


class HookTimeoutError(HookError):
    """A hook did not finish within its timeout."""

    def __init__(self, message: str = "hook command timeout"):
        super().__init__(message)


def _run_hook(hook: Hook, payload: bytes) -> None:
    if hook.args:
        argv = list(hook.args)
    else:
        argv = [os.fspath(hook.path)]
    env = parse_env(hook.env or [])
    log.debug("run_hooks argv: %r, envs: %r", argv, env)

    try:
        process = subprocess.Popen(
            argv,
            executable=os.fspath(hook.path),
            env=env,
            stdin=subprocess.PIPE,
        )
    except OSError as exc:
        raise HookError("Failed to execute hook") from exc

    # The container state is piped to the hook through stdin.
    try:
        process.stdin.write(payload)
        process.stdin.close()
    except BrokenPipeError:
        pass

    try:
        code = process.wait(timeout=hook.timeout)
    except subprocess.TimeoutExpired:
        process.kill()
        process.wait()
        raise HookTimeoutError() from None

    if code > 0:
        raise HookError(f"Failed to execute hook command. Non-zero return code. {code}")
    if code < 0:
        raise HookError("Process is killed by signal")


def run_hooks(hooks: Iterable[Hook] | None, container: Container | None) -> None:
    """Run ``hooks`` in order, feeding each the container state as JSON."""
    if container is None:
        raise HookError("container state is required to run hook")
    if hooks is None:
        return
    payload = json.dumps(container.state.to_dict()).encode()
    for hook in hooks:
        _run_hook(hook, payload)