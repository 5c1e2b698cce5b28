# Device connection manager and relay line protocol
from relaypanel.device.errors import (
    DeviceError,
    DeviceNotConnectedError,
    DeviceWriteError,
    InvalidRelayIdError,
    NoDialerError,
    ProtocolError,
    UnknownDeviceError,
)
from relaypanel.device.manager import (
    BUZZER,
    DEVICE_NAMES,
    RELAYS,
    Connection,
    DeviceManager,
    Dialer,
    backoff_delays,
)
from relaypanel.device.state import RelayState, RelayStateTable

__all__ = [
    "BUZZER",
    "DEVICE_NAMES",
    "RELAYS",
    "Connection",
    "DeviceError",
    "DeviceManager",
    "DeviceNotConnectedError",
    "DeviceWriteError",
    "Dialer",
    "InvalidRelayIdError",
    "NoDialerError",
    "ProtocolError",
    "RelayState",
    "RelayStateTable",
    "UnknownDeviceError",
    "backoff_delays",
]
