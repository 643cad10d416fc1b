import random
from typing import Any, Callable, Dict, Optional

from . import events as ev
from .rooms import ACTIVE, ENDED, Room, RoomRegistry, generate_player_id, now_ms
from .sessions import SessionRegistry


class RelayDispatcher:
    """Routes inbound relay events to room and session operations.

    Every Room mutation happens under that room's lock, so events for one
    room are applied one at a time while different rooms proceed
    independently. ``handle`` never raises.
    """

    def __init__(self, rooms: RoomRegistry, sessions: SessionRegistry, transport, logger,
                 stats_sink: Optional[Callable[[Dict[str, Any]], None]] = None,
                 clock: Callable[[], int] = now_ms, rng: Optional[random.Random] = None):
        self.rooms = rooms
        self.sessions = sessions
        self._transport = transport
        self._logger = logger
        self._stats_sink = stats_sink
        self._clock = clock
        self._rng = rng or random.Random()
        self._handlers = {
            ev.JoinRoom: self._on_join,
            ev.PlayerReady: self._on_ready,
            ev.PositionUpdate: self._on_game_update,
            ev.BallHit: self._on_game_update,
            ev.ScoreUpdate: self._on_game_update,
            ev.Disconnect: self._on_disconnect,
            ev.ListRooms: self._on_list_rooms,
            ev.Ping: self._on_ping,
        }

    def handle(self, connection_id: str, name: str, data: Any = None) -> None:
        try:
            event = ev.parse_event(name, data)
        except ev.InvalidEvent as exc:
            self._logger.warning(f"[invalid-event] conn={connection_id} {exc}")
            if exc.event == ev.JOIN_ROOM:
                self._reply(connection_id, ev.ROOM_JOIN_FAILED, {'error': f'Invalid join request: {exc.reason}'})
            return
        try:
            self._handlers[type(event)](connection_id, event)
        except Exception:
            self._logger.exception(f"[dispatch-error] conn={connection_id} event={name}")

    def _reply(self, connection_id: str, event: str, payload: Any) -> None:
        try:
            self._transport.send(connection_id, event, payload)
        except Exception as exc:
            self._logger.debug(f"[reply-drop] conn={connection_id} event={event} err={exc}")

    def _session_room(self, connection_id: str):
        session = self.sessions.lookup(connection_id)
        if session is None:
            self._logger.debug(f"[stale-session] conn={connection_id}")
            return None, None
        room = self.rooms.get_room(session.room_id)
        if room is None:
            self._logger.debug(f"[stale-session] conn={connection_id} room={session.room_id} gone")
            self.sessions.unbind(connection_id)
            return None, None
        return session, room

    # ---- join / leave ----

    def _on_join(self, connection_id: str, event: ev.JoinRoom) -> None:
        previous = self.sessions.lookup(connection_id)
        if previous and previous.room_id == event.room_id and event.player_id is None:
            player_id = previous.player_id
        else:
            player_id = event.player_id or generate_player_id()
        moving = previous is not None and previous.room_id != event.room_id
        if previous and not moving and previous.player_id != player_id:
            self._leave(connection_id)

        while True:
            room = self.rooms.get_or_create_room(event.room_id)
            with room.lock:
                if room.closed:
                    # Deleted between lookup and lock; resolve the id again
                    continue
                joined = self._join_locked(room, connection_id, player_id, event)
                break
        # The old seat is given up only once the new one is held
        if joined and moving:
            self._vacate(connection_id, previous)

    def _join_locked(self, room: Room, connection_id: str, player_id: str, event: ev.JoinRoom) -> bool:
        stale = room.get_player(player_id)
        if stale is not None:
            # Reconnect: the same player id replaces its old entry and session
            self._logger.info(f"[reconnect] room={room.id} player={player_id} replacing conn={stale.connection_id}")
            room.remove_player(player_id)
            if stale.connection_id != connection_id:
                self.sessions.unbind_if(stale.connection_id, player_id, room.id)

        if not room.add_player(player_id, connection_id, event.player_info):
            self._logger.info(f"[join-full] room={room.id} player={player_id}")
            self._reply(connection_id, ev.ROOM_JOIN_FAILED, {'error': 'Room is full or unavailable'})
            return False

        self.sessions.bind(connection_id, player_id, room.id)
        self._reply(connection_id, ev.ROOM_JOINED, {
            'success': True,
            'playerId': player_id,
            'roomId': room.id,
            'players': room.players_list(),
            'gameState': room.snapshot(),
        })
        room.broadcast(ev.PLAYER_JOINED, {
            'player': room.get_player(player_id).to_dict(),
            'totalPlayers': len(room.players),
        }, exclude_player_id=player_id)
        self._logger.info(f"[join] room={room.id} player={player_id} players={len(room.players)}")
        return True

    def _leave(self, connection_id: str) -> None:
        session = self.sessions.unbind(connection_id)
        if session is None:
            return
        self._vacate(connection_id, session)

    def _vacate(self, connection_id: str, session) -> None:
        room = self.rooms.get_room(session.room_id)
        if room is None:
            return
        with room.lock:
            player = room.get_player(session.player_id)
            # A reconnect may already have moved this player to a new connection
            if player is None or player.connection_id != connection_id:
                return
            room.remove_player(session.player_id)
            room.broadcast(ev.PLAYER_LEFT, {
                'playerId': session.player_id,
                'remainingPlayers': room.players_list(),
            })
            self._logger.info(f"[leave] room={room.id} player={session.player_id} remaining={len(room.players)}")
            if not room.players:
                self.rooms.discard(room)

    def _on_disconnect(self, connection_id: str, event: ev.Disconnect) -> None:
        self._leave(connection_id)

    # ---- game flow ----

    def _on_ready(self, connection_id: str, event: ev.PlayerReady) -> None:
        session, room = self._session_room(connection_id)
        if room is None:
            return
        with room.lock:
            player = room.get_player(session.player_id)
            if player is None:
                return
            player.is_ready = True
            room.touch(player.id)
            all_ready = room.is_ready()
            room.broadcast(ev.PLAYER_READY_OUT, {'playerId': player.id, 'allReady': all_ready})
            if all_ready and room.phase != ACTIVE:
                self._start_game(room)

    def _start_game(self, room: Room) -> None:
        room.start_game(self._rng)
        room.broadcast(ev.GAME_STARTED, {
            'gameState': room.snapshot(),
            'players': room.players_list(),
        })
        self._logger.info(f"[game-start] room={room.id}")

    def _on_game_update(self, connection_id: str, event) -> None:
        session, room = self._session_room(connection_id)
        if room is None:
            return
        with room.lock:
            player = room.get_player(session.player_id)
            if player is not None:
                room.touch(player.id)
                if event.player_position is not None:
                    player.position = dict(event.player_position)

            if isinstance(event, ev.BallHit):
                room.merge_game_state({
                    'ball': {'position': dict(event.ball_position), 'velocity': dict(event.ball_velocity)},
                })
                if player is not None:
                    player.stats['hits'] += 1
                room.broadcast(ev.BALL_UPDATE, {
                    'ball': room.snapshot()['ball'],
                    'gameState': room.snapshot(),
                    'hitBy': session.player_id,
                    'timestamp': self._clock(),
                }, exclude_player_id=session.player_id)

            elif isinstance(event, ev.ScoreUpdate):
                room.merge_game_state({'scores': dict(event.scores)})
                room.broadcast(ev.SCORE_UPDATE, {
                    'scores': dict(event.scores),
                    'gameState': room.snapshot(),
                    'scoredBy': session.player_id,
                }, exclude_player_id=session.player_id)
                if max(event.scores.values()) >= room.max_score and room.phase != ENDED:
                    self._end_game(room)

    def _end_game(self, room: Room) -> None:
        result = room.end_game()
        room.broadcast(ev.GAME_ENDED, result)
        self._logger.info(f"[game-end] room={room.id} scores={result['finalScores']} winner={result['winner']}")
        if self._stats_sink is None:
            return
        record = {
            'roomId': room.id,
            'duration': result['gameStats']['duration'],
            'finalScores': result['finalScores'],
            'winner': result['winner'],
            'totalHits': result['gameStats']['totalHits'],
            'players': [{'id': p.id, 'name': p.name, 'stats': dict(p.stats)} for p in room.players.values()],
            'timestamp': self._clock(),
        }
        try:
            self._stats_sink(record)
        except Exception:
            self._logger.exception(f"[stats-error] room={room.id}")

    # ---- direct replies ----

    def _on_list_rooms(self, connection_id: str, event: ev.ListRooms) -> None:
        self._reply(connection_id, ev.ROOM_LIST, self.rooms.list_joinable_rooms())

    def _on_ping(self, connection_id: str, event: ev.Ping) -> None:
        payload = {'timestamp': event.timestamp} if event.wrapped else event.timestamp
        self._reply(connection_id, ev.PONG, payload)

    # ---- signalling pass-through ----

    def forward_signal(self, room_id: str, event: str, payload: Dict[str, Any], from_player_id: Optional[str],
                       target_player_id: Optional[str] = None) -> bool:
        """Relay an opaque peer-negotiation payload; False if the room is unknown.

        With a target, only that player receives it (silently dropped if the
        target is not in the room); otherwise every player but the sender.
        """
        room = self.rooms.get_room(room_id)
        if room is None:
            return False
        with room.lock:
            if target_player_id is None:
                room.broadcast(event, payload, exclude_player_id=from_player_id)
                return True
            target = room.get_player(target_player_id)
            if target is not None:
                self._reply(target.connection_id, event, payload)
        return True
