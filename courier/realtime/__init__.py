"""Realtime presence and event relay."""

from courier.realtime.presence import Connection, PresenceHub

__all__ = ["Connection", "PresenceHub"]
