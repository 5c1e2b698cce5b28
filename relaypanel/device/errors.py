"""
Exceptions raised by the device connection manager.

Routes map these onto HTTP status codes; background loops only log them.
"""


class DeviceError(Exception):
    """Base class for every device-layer error."""


class UnknownDeviceError(DeviceError, KeyError):
    """A device name outside the fixed set was used."""

    def __init__(self, name: str) -> None:
        super().__init__(f"unknown device: {name!r}")
        self.name = name

    def __str__(self) -> str:
        return self.args[0]


class InvalidRelayIdError(DeviceError, ValueError):
    """A relay id was not a single digit in ``'1'..'8'``."""


class DeviceNotConnectedError(DeviceError):
    """The target device has no live connection right now."""

    def __init__(self, name: str) -> None:
        super().__init__(f"{name} not connected")
        self.name = name


class DeviceWriteError(DeviceError):
    """A command write failed; the connection has been torn down."""

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(f"{name} write failed: {cause}")
        self.name = name
        self.cause = cause


class NoDialerError(DeviceError):
    """Reconnection was needed but no dialer is registered for the device."""

    def __init__(self, name: str) -> None:
        super().__init__(f"no dialer registered for {name}")
        self.name = name


class ProtocolError(DeviceError, ValueError):
    """An inbound status line could not be decoded."""
