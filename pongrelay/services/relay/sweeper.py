import threading
from typing import Callable, Optional

from .events import PLAYER_TIMEOUT
from .rooms import Room, RoomRegistry, now_ms
from .sessions import SessionRegistry


class CleanupSweeper:
    """Periodically evicts silent players and deletes abandoned rooms.

    This is the only path that reclaims players whose clients vanished
    without a disconnect. ``sweep`` can be called directly; ``start`` runs
    it every ``interval_sec`` on a Socket.IO background task until
    ``stop`` is called.
    """

    def __init__(self, rooms: RoomRegistry, sessions: SessionRegistry, logger,
                 interval_sec: int = 60, room_timeout_sec: int = 1800, player_timeout_sec: int = 300,
                 clock: Callable[[], int] = now_ms):
        self.rooms = rooms
        self.sessions = sessions
        self.interval_sec = interval_sec
        self.room_timeout_ms = room_timeout_sec * 1000
        self.player_timeout_ms = player_timeout_sec * 1000
        self._logger = logger
        self._clock = clock
        self._stop = threading.Event()
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._stop.is_set()

    def start(self, socketio) -> None:
        if self.running:
            return
        self._stop.clear()
        self._task = socketio.start_background_task(self._run)
        self._logger.info(f"[sweeper-start] interval={self.interval_sec}s")

    def stop(self) -> None:
        if self._task is None:
            return
        self._stop.set()
        self._task = None
        self._logger.info("[sweeper-stop]")

    def _run(self) -> None:
        while not self._stop.wait(self.interval_sec):
            try:
                self.sweep()
            except Exception:
                self._logger.exception("[sweeper-error]")

    def sweep(self, now: Optional[int] = None) -> dict:
        """Run one cleanup pass; returns counts of evicted players and deleted rooms."""
        now = self._clock() if now is None else now
        evicted = deleted = 0
        for room in self.rooms.rooms():
            with room.lock:
                if room.closed:
                    continue
                removed = self._evict_stale_players(room, now)
                evicted += removed
                if room.players:
                    continue
                if removed or now - room.created_at > self.room_timeout_ms:
                    if self.rooms.discard(room):
                        deleted += 1
                        self._logger.info(f"[sweep-room] room={room.id} age={(now - room.created_at) // 1000}s")
        if evicted or deleted:
            self._logger.info(f"[sweep] evicted={evicted} deleted={deleted} rooms={len(self.rooms)}")
        return {'evicted': evicted, 'deleted': deleted}

    def _evict_stale_players(self, room: Room, now: int) -> int:
        stale = [p for p in room.players.values() if now - p.last_seen > self.player_timeout_ms]
        for player in stale:
            room.remove_player(player.id)
            self.sessions.unbind_if(player.connection_id, player.id, room.id)
            self._logger.info(f"[sweep-player] room={room.id} player={player.id} idle={(now - player.last_seen) // 1000}s")
            room.broadcast(PLAYER_TIMEOUT, {'playerId': player.id})
        return len(stale)
