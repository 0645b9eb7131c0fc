"""Messages exchanged between the runtime processes over pipes."""

from enum import IntEnum


class Message(IntEnum):
    """One-byte message codes."""

    INTERMEDIATE_READY = 0x00
    INIT_READY = 0x01
    WRITE_MAPPING = 0x02
    MAPPING_WRITTEN = 0x03

    @classmethod
    def from_byte(cls, value: int) -> "Message":
        """Decode a message byte, failing on unknown codes."""
        try:
            return cls(value)
        except ValueError:
            raise ValueError("unknown message.") from None