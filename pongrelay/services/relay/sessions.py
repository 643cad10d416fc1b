import threading
from typing import Dict, NamedTuple, Optional


class Session(NamedTuple):
    player_id: str
    room_id: str


class SessionRegistry:
    """Maps a transport connection id to the (player, room) it joined as.

    Purely a lookup aid for events that only carry a connection id; the
    Room stays the source of truth for player data.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def bind(self, connection_id: str, player_id: str, room_id: str) -> Session:
        session = Session(player_id, room_id)
        with self._lock:
            self._sessions[connection_id] = session
        return session

    def lookup(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.get(connection_id)

    def unbind(self, connection_id: str) -> Optional[Session]:
        with self._lock:
            return self._sessions.pop(connection_id, None)

    def unbind_if(self, connection_id: str, player_id: str, room_id: str) -> bool:
        """Unbind only when the connection still points at this player/room."""
        with self._lock:
            if self._sessions.get(connection_id) != (player_id, room_id):
                return False
            del self._sessions[connection_id]
            return True

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)
