"""One-way pipes that carry messages between the runtime processes."""

import logging
import os
import struct

from ocirt.message import Message

log = logging.getLogger(__name__)

_PID_FORMAT = ">i"
_PID_SIZE = struct.calcsize(_PID_FORMAT)


class ChannelError(Exception):
    """A message could not be sent or an unexpected one was received."""


class _PipeEnd:
    """One end of a pipe, owned by a single process after a fork."""

    def __init__(self, fd: int):
        self._fd = fd

    def fileno(self) -> int:
        return self._fd

    def _close(self) -> None:
        if self._fd >= 0:
            fd, self._fd = self._fd, -1
            os.close(fd)


class _Sender(_PipeEnd):
    def _write(self, data: bytes) -> None:
        view = memoryview(data)
        try:
            while view:
                written = os.write(self._fd, view)
                view = view[written:]
        except OSError as exc:
            raise ChannelError(f"Failed to write message {data!r} to the pipe") from exc

    def _write_message(self, message: Message) -> None:
        self._write(bytes([message]))


class _Receiver(_PipeEnd):
    def _read_exact(self, size: int, peer: str) -> bytes:
        chunks = bytearray()
        try:
            while len(chunks) < size:
                chunk = os.read(self._fd, size - len(chunks))
                if not chunk:
                    raise ChannelError(f"Failed to receive a message from the {peer}.")
                chunks += chunk
        except OSError as exc:
            raise ChannelError(f"Failed to receive a message from the {peer}.") from exc
        return bytes(chunks)

    def _read_message(self, peer: str) -> Message:
        (code,) = self._read_exact(1, peer)
        try:
            return Message.from_byte(code)
        except ValueError as exc:
            raise ChannelError(f"unknown message {code:#04x} from the {peer}") from exc

    def _expect(self, expected: Message, peer: str, waiting_for: str) -> None:
        message = self._read_message(peer)
        if message is not expected:
            raise ChannelError(f"receive unexpected message {message!r} {waiting_for}")


def _new_pipe() -> tuple[int, int]:
    # Pipes from os.pipe are blocking, so a receiver waits for its message.
    read_fd, write_fd = os.pipe()
    return write_fd, read_fd


class SenderMainToIntermediate(_Sender):
    """Main process side of the main-to-intermediate channel."""

    def mapping_written(self) -> None:
        """Tell the intermediate process that its id mappings are in place."""
        log.debug("identifier mapping written")
        self._write_message(Message.MAPPING_WRITTEN)

    def close(self) -> None:
        """Close this end of the pipe; closing twice does nothing."""
        self._close()


class ReceiverFromMain(_Receiver):
    """Intermediate process side of the main-to-intermediate channel."""

    def wait_for_mapping_ack(self) -> None:
        """Block until the main process has written the id mappings."""
        log.debug("waiting for mapping ack")
        self._expect(Message.MAPPING_WRITTEN, "main process", "in waiting for mapping ack")

    def close(self) -> None:
        """Close this end of the pipe; closing twice does nothing."""
        self._close()


def main_to_intermediate() -> tuple[SenderMainToIntermediate, ReceiverFromMain]:
    """A channel from the main process to the intermediate process."""
    write_fd, read_fd = _new_pipe()
    return SenderMainToIntermediate(write_fd), ReceiverFromMain(read_fd)


class SenderIntermediateToMain(_Sender):
    """Intermediate process side of the intermediate-to-main channel."""

    def identifier_mapping_request(self) -> None:
        """Ask the main process to write the id mappings of this process."""
        log.debug("send identifier mapping request")
        self._write_message(Message.WRITE_MAPPING)

    def intermediate_ready(self, pid: int) -> None:
        """Report readiness followed by the pid of the container init process."""
        log.debug("sending init pid (%s)", pid)
        self._write_message(Message.INTERMEDIATE_READY)
        self._write(struct.pack(_PID_FORMAT, pid))

    def close(self) -> None:
        """Close this end of the pipe; closing twice does nothing."""
        self._close()


class ReceiverFromIntermediate(_Receiver):
    """Main process side of the intermediate-to-main channel."""

    def wait_for_mapping_request(self) -> None:
        """Block until the intermediate process asks for its id mappings."""
        self._expect(Message.WRITE_MAPPING, "child process", "waiting for mapping request")

    def wait_for_intermediate_ready(self) -> int:
        """Block until the intermediate process is ready; return the init pid it sends."""
        peer = "intermediate process"
        self._expect(Message.INTERMEDIATE_READY, peer, "waiting for intermediate ready")
        log.debug("received intermediate ready message")
        (pid,) = struct.unpack(_PID_FORMAT, self._read_exact(_PID_SIZE, peer))
        return pid

    def close(self) -> None:
        """Close this end of the pipe; closing twice does nothing."""
        self._close()


def intermediate_to_main() -> tuple[SenderIntermediateToMain, ReceiverFromIntermediate]:
    """A channel from the intermediate process to the main process."""
    write_fd, read_fd = _new_pipe()
    return SenderIntermediateToMain(write_fd), ReceiverFromIntermediate(read_fd)


class SenderInitToIntermediate(_Sender):
    """Init process side of the init-to-intermediate channel."""

    def init_ready(self) -> None:
        """Tell the intermediate process that the init process is ready."""
        self._write_message(Message.INIT_READY)

    def close(self) -> None:
        """Close this end of the pipe; closing twice does nothing."""
        self._close()


class ReceiverFromInit(_Receiver):
    """Intermediate process side of the init-to-intermediate channel."""

    def wait_for_init_ready(self) -> None:
        """Block until the init process reports that it is ready."""
        self._expect(Message.INIT_READY, "init process", "waiting for init ready")

    def close(self) -> None:
        """Close this end of the pipe; closing twice does nothing."""
        self._close()


def init_to_intermediate() -> tuple[SenderInitToIntermediate, ReceiverFromInit]:
    """A channel from the init process to the intermediate process."""
    write_fd, read_fd = _new_pipe()
    return SenderInitToIntermediate(write_fd), ReceiverFromInit(read_fd)