"""Pseudo terminal setup for the container process."""

import errno
import fcntl
import logging
import os
import socket
import termios
from pathlib import Path

log = logging.getLogger(__name__)

STDIN = 0
STDOUT = 1
STDERR = 2


def setup_console_socket(
    container_dir: str | os.PathLike,
    console_socket_path: str | os.PathLike,
    socket_name: str,
) -> int:
    """Link the console socket into ``container_dir`` and connect to ``socket_name``.

    Returns the connected socket's file descriptor, or -1 if nothing listens there.
    """
    linked = Path(container_dir) / socket_name
    os.symlink(console_socket_path, linked)

    sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    try:
        sock.connect(socket_name)
    except FileNotFoundError:
        sock.close()
        return -1
    except OSError as exc:
        sock.close()
        raise OSError(exc.errno or errno.EIO, f"failed to open {socket_name}") from exc
    return sock.detach()


def setup_console(console_fd: int) -> None:
    """Create a pty, send its master over ``console_fd`` and make its slave the stdio."""
    try:
        master, slave = os.openpty()
    except OSError as exc:
        exc.add_note("could not create pseudo terminal")
        raise

    sock = socket.socket(fileno=console_fd)
    try:
        socket.send_fds(sock, [b"/dev/ptmx"], [master])
    except OSError as exc:
        exc.add_note("failed to send pty master")
        raise
    finally:
        sock.detach()

    os.setsid()
    try:
        fcntl.ioctl(slave, termios.TIOCSCTTY, 0)
    except OSError:
        log.warning("could not TIOCSCTTY")

    try:
        connect_stdio(slave, slave, slave)
    except OSError as exc:
        exc.add_note("could not dup tty to stderr")
        raise
    try:
        os.close(console_fd)
    except OSError as exc:
        exc.add_note("could not close console socket")
        raise


def connect_stdio(stdin: int, stdout: int, stderr: int) -> None:
    """Duplicate the given descriptors onto the standard input, output and error."""
    os.dup2(stdin, STDIN)
    os.dup2(stdout, STDOUT)
    os.dup2(stderr, STDERR)