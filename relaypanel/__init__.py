"""Relay panel: HTTP control for a relay board, a door buzzer and a TV remote."""

__version__ = "0.1.0"
