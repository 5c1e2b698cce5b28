# Byte-stream transports handed to the device manager by dialers
from relaypanel.transport.base import ConnectionClosedError, LineBuffer
from relaypanel.transport.serial_link import SerialConnection, open_serial
from relaypanel.transport.telnet import TelnetConnection, dial_telnet, split_host_port

__all__ = [
    "ConnectionClosedError",
    "LineBuffer",
    "SerialConnection",
    "TelnetConnection",
    "dial_telnet",
    "open_serial",
    "split_host_port",
]
