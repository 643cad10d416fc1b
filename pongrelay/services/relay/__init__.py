"""Room relay services: registries, dispatcher and cleanup sweeper.

Nothing in this package imports Flask or Socket.IO. Outbound delivery goes
through a transport object with a ``send(connection_id, event, payload)``
method, so the relay core can be driven by the Socket.IO handlers in
production and by a recording fake in tests.
"""

from .dispatcher import RelayDispatcher
from .events import InvalidEvent, parse_event
from .rooms import Room, RoomRegistry
from .sessions import Session, SessionRegistry
from .sweeper import CleanupSweeper

__all__ = [
    'CleanupSweeper',
    'InvalidEvent',
    'RelayDispatcher',
    'Room',
    'RoomRegistry',
    'Session',
    'SessionRegistry',
    'parse_event',
]
