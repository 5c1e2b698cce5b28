"""
Shared pieces for byte-stream transports.

Both transports return ``b""`` from ``readline()`` while the link is alive
but no complete line has arrived, and raise ``OSError`` once the link is
gone.  Partial lines are kept until their newline shows up.
"""


class ConnectionClosedError(ConnectionError):
    """The peer closed the stream."""


class LineBuffer:
    """Accumulates raw chunks and hands back complete ``\\n``-terminated lines."""

    def __init__(self) -> None:
        self._buf = bytearray()

    def feed(self, data: bytes) -> None:
        self._buf.extend(data)

    def pop_line(self) -> bytes:
        """Return the next complete line, or ``b""`` if there is none yet."""
        idx = self._buf.find(b"\n")
        if idx < 0:
            return b""
        line = bytes(self._buf[: idx + 1])
        del self._buf[: idx + 1]
        return line

    def __len__(self) -> int:
        return len(self._buf)
