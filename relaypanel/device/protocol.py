"""
Line protocol spoken by the relay board and the buzzer.

Inbound (device -> server), one ASCII line per message, ``\\n`` terminated:

    HB:<anything>           heartbeat, ignored
    RELAYS:[0x]<hex-byte>   relay bitmask, bit i = relay i+1 (1 = on)

Outbound (server -> device) is a single ASCII character with no framing:
``'1'..'8'`` toggles that relay, ``'1'`` on the buzzer link buzzes the door.
Commands are never acknowledged; their effect shows up in the next
``RELAYS:`` line.
"""

import re
from dataclasses import dataclass
from enum import Enum

from relaypanel.device.errors import InvalidRelayIdError, ProtocolError

RELAY_COUNT: int = 8

HEARTBEAT_PREFIX = "HB:"
RELAYS_PREFIX = "RELAYS:"
BUZZ_COMMAND = "1"

_HEX_RE = re.compile(r"[0-9a-fA-F]+")


class LineKind(Enum):
    HEARTBEAT = "heartbeat"
    RELAYS = "relays"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class DecodedLine:
    """One classified inbound line. ``mask`` is set only for RELAYS lines."""

    kind: LineKind
    text: str
    mask: int | None = None


def parse_relay_mask(payload: str) -> int:
    """
    Parse the payload of a ``RELAYS:`` line into an 8-bit mask.

    Accepts an optional ``0x``/``0X`` prefix.  Raises ``ProtocolError`` for
    empty, non-hex or out-of-range payloads.
    """
    value = payload.strip()
    if value[:2] in ("0x", "0X"):
        value = value[2:]
    if not _HEX_RE.fullmatch(value):
        raise ProtocolError(f"invalid relay bitmask: {payload!r}")
    mask = int(value, 16)
    if mask > 0xFF:
        raise ProtocolError(f"relay bitmask out of range: {payload!r}")
    return mask


def mask_to_states(mask: int) -> list[bool]:
    """Expand an 8-bit mask into relay on/off flags, relay 1 first."""
    return [bool((mask >> bit) & 1) for bit in range(RELAY_COUNT)]


def decode_line(raw: bytes | str) -> DecodedLine:
    """
    Classify one inbound line.

    Trailing whitespace and the newline are stripped first.  A malformed
    ``RELAYS:`` payload raises ``ProtocolError``; anything unrecognised comes
    back as ``LineKind.UNKNOWN`` so newer firmware can add line types.
    """
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    text = raw.strip()

    if text.startswith(HEARTBEAT_PREFIX):
        return DecodedLine(LineKind.HEARTBEAT, text)
    if text.startswith(RELAYS_PREFIX):
        mask = parse_relay_mask(text[len(RELAYS_PREFIX):])
        return DecodedLine(LineKind.RELAYS, text, mask)
    return DecodedLine(LineKind.UNKNOWN, text)


def validate_relay_id(relay_id: str) -> int:
    """
    Check a relay id taken from a request path.

    Returns the relay number (1-8).  Only a single ASCII digit is accepted,
    so ``"01"``, ``"12"`` and non-ASCII digits are all rejected.
    """
    if len(relay_id) != 1 or not "1" <= relay_id <= str(RELAY_COUNT):
        raise InvalidRelayIdError(f"invalid relay id: {relay_id!r}")
    return int(relay_id)
