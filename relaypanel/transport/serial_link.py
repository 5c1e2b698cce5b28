"""
Serial transport for a relay board on a USB/UART port (pyserial).
"""

import logging

import serial

from relaypanel.transport.base import LineBuffer

logger = logging.getLogger(__name__)


class SerialConnection:
    """
    Wraps a ``serial.Serial`` opened with a read timeout.

    ``read_until`` returns whatever arrived before the timeout, which may be
    nothing or half a line; both count as "no line yet".  A vanished port
    raises ``serial.SerialException`` (an ``OSError``), which the reader
    treats as fatal for the link.
    """

    def __init__(self, port: serial.Serial) -> None:
        self._port = port
        self._lines = LineBuffer()

    @property
    def name(self) -> str:
        return self._port.port

    def readline(self) -> bytes:
        line = self._lines.pop_line()
        if line:
            return line
        self._lines.feed(self._port.read_until(b"\n"))
        return self._lines.pop_line()

    def write(self, data: bytes) -> int | None:
        written = self._port.write(data)
        self._port.flush()
        return written

    def close(self) -> None:
        self._port.close()


def open_serial(port: str, baudrate: int, read_timeout: float = 1.0) -> SerialConnection:
    """Open ``port`` at ``baudrate``.  Raises ``serial.SerialException`` on failure."""
    logger.info("Opening serial %s @ %d baud", port, baudrate)
    conn = SerialConnection(serial.Serial(port, baudrate, timeout=read_timeout))
    logger.info("Opened serial %s", port)
    return conn
