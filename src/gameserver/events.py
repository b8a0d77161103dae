"""
Connection events.

The transport turns raw selector readiness into one of these tagged events
and the session consumes them. Handles are opaque to the session: in the
server they are Connection objects, in tests any hashable value will do.
"""

from dataclasses import dataclass
from typing import Any, Union

from .game.packet import Packet


@dataclass(frozen=True)
class NewConnection:
    handle: Any


@dataclass(frozen=True)
class DataReceived:
    handle: Any
    packet: Packet


@dataclass(frozen=True)
class Disconnected:
    handle: Any


ConnectionEvent = Union[NewConnection, DataReceived, Disconnected]
