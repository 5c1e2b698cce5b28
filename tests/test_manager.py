"""
Tests for the device connection manager: registry, reader loop, reconnect
loop and command writer.  Fake in-memory connections stand in for hardware.
"""

import itertools
import threading
from unittest.mock import patch

import pytest

from relaypanel.device.errors import (
    DeviceNotConnectedError,
    DeviceWriteError,
    InvalidRelayIdError,
    NoDialerError,
    UnknownDeviceError,
)
from relaypanel.device.manager import BUZZER, RELAYS, DeviceManager, backoff_delays
from relaypanel.device.state import RelayState

_LABELS = {i + 1: label for i, label in enumerate("abcdefgh")}


# ── Registry ──────────────────────────────────────────────────────────────────


def test_set_device_returns_previous_without_closing(manager, fake_connection_cls):
    first, second = fake_connection_cls(), fake_connection_cls()
    assert manager.set_device(RELAYS, first) is None
    assert manager.set_device(RELAYS, second) is first
    assert not first.closed.is_set()
    assert manager.get_device(RELAYS) is second


def test_unknown_device_name_rejected(manager):
    with pytest.raises(UnknownDeviceError):
        manager.get_device("toaster")
    with pytest.raises(UnknownDeviceError):
        manager.set_dialer("toaster", lambda: None)


def test_start_reader_without_connection_is_noop(manager):
    assert manager.start_reader(RELAYS) is False


def test_device_connected_reflects_slot(manager, fake_connection_cls):
    assert manager.device_connected(BUZZER) is False
    manager.set_device(BUZZER, fake_connection_cls())
    assert manager.device_connected(BUZZER) is True


# ── Reader loop ───────────────────────────────────────────────────────────────


def test_relays_line_updates_state_table(manager, fake_connection_cls, wait_until):
    manager.set_labels(_LABELS)
    conn = fake_connection_cls()
    manager.set_device(RELAYS, conn)
    assert manager.start_reader(RELAYS)

    conn.feed(b"RELAYS:0x05\n")

    expected = [
        RelayState("a", True),
        RelayState("b", False),
        RelayState("c", True),
        RelayState("d", False),
        RelayState("e", False),
        RelayState("f", False),
        RelayState("g", False),
        RelayState("h", False),
    ]
    assert wait_until(lambda: manager.relay_states() == expected)


def test_heartbeat_and_malformed_lines_leave_state_and_link_alone(
    manager, fake_connection_cls, wait_until
):
    conn = fake_connection_cls()
    manager.set_device(RELAYS, conn)
    manager.start_reader(RELAYS)

    conn.feed(b"RELAYS:0x81\n")
    assert wait_until(lambda: manager.relay_states()[0].on)
    before = manager.relay_states()

    conn.feed(b"HB:12345\n")
    conn.feed(b"RELAYS:zz\n")
    conn.feed(b"HELLO\n")
    assert wait_until(lambda: conn.reads == 4)

    assert manager.relay_states() == before
    assert manager.get_device(RELAYS) is conn
    assert not conn.closed.is_set()
    assert not manager.is_reconnecting(RELAYS)


def test_decoding_same_line_twice_is_idempotent(manager):
    manager.handle_line(RELAYS, b"RELAYS:0x3C\n")
    once = manager.relay_states()
    manager.handle_line(RELAYS, b"RELAYS:0x3C\n")
    assert manager.relay_states() == once
    assert [s.on for s in once] == [False, False, True, True, True, True, False, False]


def test_bitmask_overwrites_every_relay(manager):
    manager.handle_line(RELAYS, "RELAYS:ff")
    manager.handle_line(RELAYS, "RELAYS:0x02")
    assert [s.on for s in manager.relay_states()] == [
        False, True, False, False, False, False, False, False,
    ]


def test_read_error_tears_down_and_reconnects(manager, fake_connection_cls, wait_until):
    """Hard read error → slot cleared, reconnect loop runs until the dialer succeeds."""
    allow = threading.Event()
    replacement = fake_connection_cls()
    dial_attempts = []

    def dial():
        dial_attempts.append(1)
        if not allow.is_set():
            raise ConnectionRefusedError("board offline")
        return replacement

    first = fake_connection_cls()
    manager.set_dialer(RELAYS, dial)
    manager.set_device(RELAYS, first)
    manager.start_reader(RELAYS)

    first.fail()

    assert wait_until(lambda: manager.get_device(RELAYS) is None)
    assert first.closed.is_set()
    assert wait_until(lambda: manager.is_reconnecting(RELAYS))
    assert wait_until(lambda: len(dial_attempts) >= 2)
    assert manager.device_connected(RELAYS) is False

    allow.set()

    assert wait_until(lambda: manager.get_device(RELAYS) is replacement)
    assert wait_until(lambda: not manager.is_reconnecting(RELAYS))

    # A fresh reader is consuming the new connection.
    replacement.feed(b"RELAYS:0x01\n")
    assert wait_until(lambda: manager.relay_states()[0].on)


def test_read_error_without_dialer_only_clears_slot(manager, fake_connection_cls, wait_until):
    conn = fake_connection_cls()
    manager.set_device(RELAYS, conn)
    manager.start_reader(RELAYS)

    conn.fail()

    assert wait_until(lambda: manager.get_device(RELAYS) is None)
    assert manager.is_reconnecting(RELAYS) is False


# ── Reconnect loop ────────────────────────────────────────────────────────────


def test_backoff_delays_double_and_cap():
    delays = list(itertools.islice(backoff_delays(), 8))
    assert delays == [1, 2, 4, 8, 16, 30, 30, 30]


def test_reconnect_loop_waits_backoff_between_failures(fake_connection_cls, wait_until):
    mgr = DeviceManager()
    conn = fake_connection_cls()
    outcomes = iter([OSError("down")] * 7 + [conn])

    def dial():
        outcome = next(outcomes)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    slept: list[float] = []

    def fake_sleep(seconds):
        slept.append(seconds)
        return False

    mgr.set_dialer(RELAYS, dial)
    try:
        with patch.object(mgr, "_sleep", side_effect=fake_sleep):
            assert mgr.start_reconnect(RELAYS) is True
            assert wait_until(lambda: mgr.get_device(RELAYS) is conn)
            assert wait_until(lambda: not mgr.is_reconnecting(RELAYS))
        assert slept == [1, 2, 4, 8, 16, 30, 30]
    finally:
        mgr.close()


def test_second_reconnect_trigger_is_noop(manager, fake_connection_cls, wait_until):
    release = threading.Event()
    calls = []

    def dial():
        calls.append(1)
        release.wait(2)
        return fake_connection_cls()

    manager.set_dialer(RELAYS, dial)
    assert manager.start_reconnect(RELAYS) is True
    assert wait_until(lambda: len(calls) == 1)
    assert manager.start_reconnect(RELAYS) is False
    assert manager.start_reconnect(RELAYS) is False

    release.set()
    assert wait_until(lambda: manager.device_connected(RELAYS))
    assert len(calls) == 1


def test_link_failing_right_after_reconnect_is_redialed(
    manager, fake_connection_cls, wait_until
):
    broken, healthy = fake_connection_cls(), fake_connection_cls()
    broken.fail()
    links = iter([broken, healthy])
    manager.set_dialer(RELAYS, lambda: next(links))

    spawn = manager._spawn_reader

    def spawn_reader(name, conn):
        if conn is broken:
            # Read on the reconnect thread so the failure lands before the
            # loop that installed the link has returned.
            manager._read_loop(name, conn)
        else:
            spawn(name, conn)

    with patch.object(manager, "_spawn_reader", side_effect=spawn_reader):
        assert manager.start_reconnect(RELAYS) is True
        assert wait_until(lambda: manager.get_device(RELAYS) is healthy)

    assert broken.closed.is_set()
    assert wait_until(lambda: not manager.is_reconnecting(RELAYS))
    assert manager.device_connected(RELAYS)


def test_reconnect_flag_cleared_before_reader_starts(manager, fake_connection_cls, wait_until):
    conn = fake_connection_cls()
    manager.set_dialer(RELAYS, lambda: conn)
    seen = []

    with patch.object(
        manager,
        "_spawn_reader",
        side_effect=lambda name, c: seen.append(manager.is_reconnecting(name)),
    ):
        manager.start_reconnect(RELAYS)
        assert wait_until(lambda: seen)

    assert seen == [False]
    assert manager.get_device(RELAYS) is conn


def test_close_during_dial_discards_new_link(fake_connection_cls, wait_until):
    mgr = DeviceManager()
    conn = fake_connection_cls()

    def dial():
        mgr.close()
        return conn

    mgr.set_dialer(RELAYS, dial)
    mgr.start_reconnect(RELAYS)

    assert wait_until(lambda: not mgr.is_reconnecting(RELAYS))
    assert conn.closed.is_set()
    assert mgr.get_device(RELAYS) is None


def test_reconnect_without_dialer_raises(manager):
    with pytest.raises(NoDialerError):
        manager.start_reconnect(BUZZER)


def test_close_stops_reconnect_loop(wait_until):
    mgr = DeviceManager(backoff_base=10.0, backoff_max=10.0)

    def dial():
        raise OSError("down")

    mgr.set_dialer(RELAYS, dial)
    mgr.start_reconnect(RELAYS)
    assert mgr.is_reconnecting(RELAYS)

    mgr.close()
    assert wait_until(lambda: not mgr.is_reconnecting(RELAYS))


# ── Command writer ────────────────────────────────────────────────────────────


def test_toggle_writes_relay_digit_without_touching_state(manager, fake_connection_cls):
    conn = fake_connection_cls()
    manager.set_device(RELAYS, conn)
    before = manager.relay_states()

    manager.toggle_relay("3")

    assert conn.written == [b"3"]
    assert manager.relay_states() == before


@pytest.mark.parametrize("relay_id", ["0", "9", "12", "", "x"])
def test_toggle_invalid_id_writes_nothing(manager, fake_connection_cls, relay_id):
    conn = fake_connection_cls()
    manager.set_device(RELAYS, conn)

    with pytest.raises(InvalidRelayIdError):
        manager.toggle_relay(relay_id)
    assert conn.written == []


def test_toggle_when_disconnected(manager):
    with pytest.raises(DeviceNotConnectedError):
        manager.toggle_relay("1")


def test_buzz_writes_one_to_buzzer(manager, fake_connection_cls):
    relays, buzzer = fake_connection_cls(), fake_connection_cls()
    manager.set_device(RELAYS, relays)
    manager.set_device(BUZZER, buzzer)

    manager.buzz_door()

    assert buzzer.written == [b"1"]
    assert relays.written == []


def test_buzz_when_disconnected(manager):
    with pytest.raises(DeviceNotConnectedError):
        manager.buzz_door()


def test_write_failure_clears_slot_and_starts_one_reconnect(
    manager, fake_connection_cls, wait_until
):
    release = threading.Event()
    calls = []

    def dial():
        calls.append(1)
        release.wait(2)
        raise OSError("still down")

    conn = fake_connection_cls(write_error=BrokenPipeError("broken pipe"))
    manager.set_dialer(RELAYS, dial)
    manager.set_device(RELAYS, conn)

    with pytest.raises(DeviceWriteError) as exc_info:
        manager.toggle_relay("2")

    assert isinstance(exc_info.value.cause, BrokenPipeError)
    assert manager.get_device(RELAYS) is None
    assert conn.closed.is_set()
    assert manager.is_reconnecting(RELAYS)
    assert manager.start_reconnect(RELAYS) is False
    assert wait_until(lambda: len(calls) == 1)
    release.set()


def test_write_failure_without_dialer_still_reports_error(manager, fake_connection_cls):
    conn = fake_connection_cls(write_error=OSError("gone"))
    manager.set_device(BUZZER, conn)

    with pytest.raises(DeviceWriteError):
        manager.buzz_door()

    assert manager.get_device(BUZZER) is None
    assert manager.is_reconnecting(BUZZER) is False


# ── Shutdown ──────────────────────────────────────────────────────────────────


def test_close_closes_live_connections(fake_connection_cls):
    mgr = DeviceManager()
    relays, buzzer = fake_connection_cls(), fake_connection_cls()
    mgr.set_device(RELAYS, relays)
    mgr.set_device(BUZZER, buzzer)

    mgr.close()

    assert relays.closed.is_set() and buzzer.closed.is_set()
    assert mgr.get_device(RELAYS) is None
    assert mgr.get_device(BUZZER) is None
