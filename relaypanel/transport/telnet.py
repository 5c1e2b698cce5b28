"""
Raw TCP ("telnet") transport for ESP32 boards running a line server.

The dialer tries the address as given first.  mDNS names such as
``esp32-1.local`` sometimes fail through the default path while a plain
lookup still resolves, so on failure every resolved address is tried in turn.
"""

import logging
import socket
import time

from relaypanel.transport.base import ConnectionClosedError, LineBuffer

logger = logging.getLogger(__name__)

DEFAULT_TELNET_PORT: int = 23

_RECV_SIZE: int = 1024


class TelnetConnection:
    """A connected TCP socket exposed as a line stream."""

    def __init__(self, sock: socket.socket, read_timeout: float = 1.0) -> None:
        self._sock = sock
        self._sock.settimeout(read_timeout)
        self._lines = LineBuffer()

    def readline(self) -> bytes:
        line = self._lines.pop_line()
        if line:
            return line
        try:
            chunk = self._sock.recv(_RECV_SIZE)
        except socket.timeout:
            return b""
        if not chunk:
            raise ConnectionClosedError("connection closed by peer")
        self._lines.feed(chunk)
        return self._lines.pop_line()

    def write(self, data: bytes) -> int | None:
        self._sock.sendall(data)
        return len(data)

    def close(self) -> None:
        self._sock.close()


def split_host_port(addr: str, default_port: int = DEFAULT_TELNET_PORT) -> tuple[str, int]:
    """Split ``host[:port]``; a missing or unparsable port falls back to ``default_port``."""
    if addr.startswith("["):
        host, _, rest = addr[1:].partition("]")
        port = rest.lstrip(":")
    elif addr.count(":") == 1:
        host, _, port = addr.partition(":")
    else:
        host, port = addr, ""
    try:
        return host, int(port)
    except ValueError:
        return host, default_port


def _resolve(host: str, port: int) -> list[str]:
    infos = socket.getaddrinfo(host, port, type=socket.SOCK_STREAM)
    ips: list[str] = []
    for info in infos:
        ip = info[4][0]
        if ip not in ips:
            ips.append(ip)
    return ips


def dial_telnet(addr: str, timeout: float = 5.0) -> TelnetConnection:
    """
    Connect to ``addr`` (``host[:port]``, default port 23).

    Raises the last ``OSError`` if neither the direct dial nor any resolved
    address connects within ``timeout``.
    """
    host, port = split_host_port(addr)
    logger.info("Telnet dialing %s:%d", host, port)
    start = time.perf_counter()
    try:
        sock = socket.create_connection((host, port), timeout=timeout)
        logger.info("Telnet connected %s:%d (%.2fs)", host, port, time.perf_counter() - start)
        return TelnetConnection(sock)
    except OSError as exc:
        err = exc
        logger.warning("Telnet primary dial to %s:%d failed: %s — trying DNS fallbacks", host, port, exc)

    try:
        ips = _resolve(host, port)
    except OSError as exc:
        logger.warning("Telnet lookup for %s failed: %s", host, exc)
        raise err

    logger.info("Telnet resolved %s -> %s", host, ", ".join(ips))
    for ip in ips:
        start = time.perf_counter()
        try:
            sock = socket.create_connection((ip, port), timeout=timeout)
        except OSError as exc:
            err = exc
            logger.warning(
                "Telnet dial to %s:%d failed (%.2fs): %s", ip, port, time.perf_counter() - start, exc
            )
            continue
        logger.info("Telnet connected %s:%d (%.2fs)", ip, port, time.perf_counter() - start)
        return TelnetConnection(sock)
    raise err
