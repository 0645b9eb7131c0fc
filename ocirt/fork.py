"""Run a callback in a forked child process."""

import logging
import os
import sys
from collections.abc import Callable

log = logging.getLogger(__name__)


def container_fork(callback: Callable[[], object]) -> int:
    """Fork; the child runs ``callback`` and exits, the parent gets the child's pid.

    The child exits with status 0 when the callback returns and 255 when it raises.
    """
    pid = os.fork()
    if pid:
        return pid

    code = 255
    try:
        callback()
        code = 0
    except BaseException as error:  # the child must never return into the caller
        log.debug("failed to run fork: %r", error)
    finally:
        for stream in (sys.stdout, sys.stderr):
            try:
                stream.flush()
            except Exception:
                pass
        os._exit(code)