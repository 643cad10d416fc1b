import copy
import random
import string
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

# Room lifecycle phases
EMPTY = 'empty'
FILLING = 'filling'
READY = 'ready'
ACTIVE = 'active'
ENDED = 'ended'

MAX_PLAYERS = 2
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
PLAYER_ID_ALPHABET = string.ascii_lowercase + string.digits
MAX_CODE_ATTEMPTS = 100

SERVE_SPEED = 0.03
SERVE_SPREAD = 0.02

DEFAULT_SETTINGS = {
    'maxPlayers': MAX_PLAYERS,
    'gameMode': 'pong',
    'roomDimensions': {'width': 4, 'depth': 6, 'height': 3},
    'maxScore': 11,
}


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_room_code(length: int = 6) -> str:
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=length))


def generate_player_id() -> str:
    return 'player_' + ''.join(random.choices(PLAYER_ID_ALPHABET, k=9))


def _vector(x=0.0, y=0.0, z=0.0) -> Dict[str, float]:
    return {'x': x, 'y': y, 'z': z}


def _initial_game_state(now: int) -> Dict[str, Any]:
    return {
        'ball': {'position': _vector(0, 1, 0), 'velocity': _vector(0, 0, SERVE_SPEED)},
        'scores': {'player1': 0, 'player2': 0},
        'isActive': False,
        'lastUpdate': now,
    }


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def normalize_settings(overrides: Optional[Dict[str, Any]], max_score: int = 11) -> Dict[str, Any]:
    """Overlay validated overrides on the default room settings.

    Raises ValueError on an unknown key or a value of the wrong shape.
    A match is always two players, so ``maxPlayers`` may only restate 2.
    """
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    settings['maxScore'] = max_score
    if not overrides:
        return settings
    if not isinstance(overrides, dict):
        raise ValueError('settings must be an object')

    for key, value in overrides.items():
        if key == 'maxPlayers':
            if not isinstance(value, int) or isinstance(value, bool):
                raise ValueError('maxPlayers must be an integer')
            if value != MAX_PLAYERS:
                raise ValueError(f'maxPlayers must be {MAX_PLAYERS}')
        elif key == 'maxScore':
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise ValueError('maxScore must be a positive integer')
            settings['maxScore'] = value
        elif key == 'gameMode':
            if not isinstance(value, str) or not value:
                raise ValueError('gameMode must be a non-empty string')
            settings['gameMode'] = value
        elif key == 'roomDimensions':
            if not isinstance(value, dict):
                raise ValueError('roomDimensions must be an object')
            for dim, size in value.items():
                if dim not in ('width', 'depth', 'height') or not _is_number(size) or size <= 0:
                    raise ValueError(f'invalid room dimension: {dim}')
                settings['roomDimensions'][dim] = size
        else:
            raise ValueError(f'unknown setting: {key}')
    return settings


@dataclass
class Player:
    id: str
    connection_id: str
    name: str
    position: Dict[str, float]
    last_seen: int
    is_ready: bool = False
    stats: Dict[str, int] = field(default_factory=lambda: {'hits': 0, 'misses': 0, 'gameTime': 0})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'position': dict(self.position),
            'isReady': self.is_ready,
            'lastSeen': self.last_seen,
            'stats': dict(self.stats),
        }


class Room:
    """Up to two players plus the shared snapshot the relay merges.

    Methods do not lock on their own; callers hold ``room.lock`` around any
    sequence that reads or mutates the room.
    """

    def __init__(self, room_id: str, transport, settings: Optional[Dict[str, Any]] = None,
                 clock: Callable[[], int] = now_ms, logger=None):
        self.id = room_id
        self.settings = settings or normalize_settings(None)
        self.players: Dict[str, Player] = {}
        self.created_at = clock()
        self.game_state = _initial_game_state(self.created_at)
        self.lock = threading.RLock()
        self.closed = False
        self._ended = False
        self._transport = transport
        self._clock = clock
        self._logger = logger

    @property
    def max_players(self) -> int:
        return self.settings['maxPlayers']

    @property
    def max_score(self) -> int:
        return self.settings['maxScore']

    @property
    def phase(self) -> str:
        if not self.players:
            return EMPTY
        if self.game_state.get('isActive'):
            return ACTIVE
        if self._ended:
            return ENDED
        if self.is_ready():
            return READY
        return FILLING

    def get_player(self, player_id: str) -> Optional[Player]:
        return self.players.get(player_id)

    def add_player(self, player_id: str, connection_id: str, info: Optional[Dict[str, Any]] = None) -> bool:
        if len(self.players) >= self.max_players:
            return False
        info = info or {}
        slot = len(self.players)
        half_depth = self.settings['roomDimensions']['depth'] / 2
        self.players[player_id] = Player(
            id=player_id,
            connection_id=connection_id,
            name=info.get('name') or f'Player {slot + 1}',
            # Opposite ends of the court
            position=_vector(0, 1.6, half_depth if slot == 0 else -half_depth),
            last_seen=self._clock(),
        )
        return True

    def remove_player(self, player_id: str) -> bool:
        if self.players.pop(player_id, None) is None:
            return False
        if self.game_state.get('isActive'):
            # A match cannot continue one-sided
            self.game_state['isActive'] = False
        return True

    def is_ready(self) -> bool:
        return len(self.players) == MAX_PLAYERS and all(p.is_ready for p in self.players.values())

    def touch(self, player_id: str) -> None:
        player = self.players.get(player_id)
        if player:
            player.last_seen = self._clock()

    def merge_game_state(self, patch: Dict[str, Any]) -> None:
        self.game_state.update(patch)
        self.game_state['lastUpdate'] = self._clock()

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self.game_state)

    def players_list(self) -> List[Dict[str, Any]]:
        return [p.to_dict() for p in self.players.values()]

    def start_game(self, rng: Optional[random.Random] = None) -> None:
        """Enter ACTIVE: reset scores and serve the ball toward a random side."""
        rng = rng or random
        self._ended = False
        self.merge_game_state({
            'isActive': True,
            'startTime': self._clock(),
            'scores': {'player1': 0, 'player2': 0},
            'ball': {
                'position': _vector(0, 1, 0),
                'velocity': _vector(
                    (rng.random() - 0.5) * SERVE_SPREAD,
                    0,
                    SERVE_SPEED if rng.random() > 0.5 else -SERVE_SPEED,
                ),
            },
        })
        for player in self.players.values():
            player.stats['gameTime'] = 0

    def end_game(self) -> Dict[str, Any]:
        """Enter ENDED and return the ``game-ended`` payload.

        Ready flags are cleared so a rematch needs both players to ready up
        again. Equal scores produce ``winner: None`` with ``isTie: True``.
        """
        now = self._clock()
        scores = dict(self.game_state['scores'])
        started = self.game_state.get('startTime')
        duration = now - started if started is not None else 0
        self.merge_game_state({'isActive': False, 'endTime': now, 'duration': duration})
        self._ended = True
        for player in self.players.values():
            player.is_ready = False
            player.stats['gameTime'] += duration

        p1, p2 = scores.get('player1', 0), scores.get('player2', 0)
        if p1 == p2:
            winner = None
        else:
            winner = 'player1' if p1 > p2 else 'player2'
        return {
            'finalScores': scores,
            'winner': winner,
            'isTie': winner is None,
            'gameStats': {
                'duration': duration,
                'totalHits': sum(p.stats['hits'] for p in self.players.values()),
            },
        }

    def broadcast(self, event: str, payload: Any, exclude_player_id: Optional[str] = None) -> int:
        """Send to every player except ``exclude_player_id``; returns deliveries.

        Delivery is best-effort per recipient: a gone connection or a
        transport error drops the event for that player only.
        """
        delivered = 0
        for player_id, player in list(self.players.items()):
            if player_id == exclude_player_id:
                continue
            try:
                sent = self._transport.send(player.connection_id, event, payload)
            except Exception as exc:
                sent = False
                if self._logger:
                    self._logger.debug(f"[broadcast-error] room={self.id} player={player_id} event={event} err={exc}")
            if sent:
                delivered += 1
            elif self._logger:
                self._logger.debug(f"[broadcast-drop] room={self.id} player={player_id} event={event}")
        return delivered

    def summary(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'playerCount': len(self.players),
            'maxPlayers': self.max_players,
            'gameMode': self.settings['gameMode'],
            'isActive': bool(self.game_state.get('isActive')),
            'createdAt': self.created_at,
        }

    def describe(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'playerCount': len(self.players),
            'maxPlayers': self.max_players,
            'isActive': bool(self.game_state.get('isActive')),
            'isReady': self.is_ready(),
            'phase': self.phase,
            'players': [{'id': p.id, 'name': p.name, 'isReady': p.is_ready} for p in self.players.values()],
        }


class RoomRegistry:
    """Owns every live Room, keyed by room id.

    Lock order: a caller may hold a Room lock while calling into the
    registry, never the other way round.
    """

    def __init__(self, transport, clock: Callable[[], int] = now_ms, logger=None,
                 code_length: int = 6, max_score: int = 11):
        self._rooms: Dict[str, Room] = {}
        self._lock = threading.Lock()
        self._transport = transport
        self._clock = clock
        self._logger = logger
        self._code_length = code_length
        self._max_score = max_score

    def _new_room(self, room_id: str, settings: Optional[Dict[str, Any]] = None) -> Room:
        return Room(room_id, self._transport, settings or normalize_settings(None, self._max_score),
                    clock=self._clock, logger=self._logger)

    def create_room(self, settings: Optional[Dict[str, Any]] = None) -> str:
        normalized = normalize_settings(settings, self._max_score)
        with self._lock:
            for _ in range(MAX_CODE_ATTEMPTS):
                code = generate_room_code(self._code_length)
                if code not in self._rooms:
                    self._rooms[code] = self._new_room(code, normalized)
                    break
            else:
                raise RuntimeError('room code space exhausted')
        if self._logger:
            self._logger.info(f"[room-create] room={code} settings={normalized}")
        return code

    def get_or_create_room(self, room_id: str) -> Room:
        with self._lock:
            room = self._rooms.get(room_id)
            if room is None:
                room = self._rooms[room_id] = self._new_room(room_id)
                created = True
            else:
                created = False
        if created and self._logger:
            self._logger.info(f"[room-create] room={room_id} on join")
        return room

    def get_room(self, room_id: str) -> Optional[Room]:
        with self._lock:
            return self._rooms.get(room_id)

    def delete_room(self, room_id: str) -> None:
        with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is not None:
            room.closed = True
            if self._logger:
                self._logger.info(f"[room-delete] room={room_id}")

    def discard(self, room: Room) -> bool:
        """Delete ``room`` only if the registry still maps its id to it."""
        with self._lock:
            if self._rooms.get(room.id) is not room:
                return False
            del self._rooms[room.id]
        room.closed = True
        if self._logger:
            self._logger.info(f"[room-delete] room={room.id}")
        return True

    def rooms(self) -> List[Room]:
        with self._lock:
            return list(self._rooms.values())

    def list_rooms(self) -> List[Dict[str, Any]]:
        summaries = []
        for room in self.rooms():
            with room.lock:
                summary = room.summary()
            summary.pop('gameMode')
            summaries.append(summary)
        return summaries

    def list_joinable_rooms(self) -> List[Dict[str, Any]]:
        summaries = []
        for room in self.rooms():
            with room.lock:
                if room.closed or len(room.players) >= room.max_players:
                    continue
                summary = room.summary()
            summary.pop('isActive')
            summaries.append(summary)
        return summaries

    def active_game_count(self) -> int:
        count = 0
        for room in self.rooms():
            with room.lock:
                count += bool(room.game_state.get('isActive'))
        return count

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)

    def __contains__(self, room_id: str) -> bool:
        with self._lock:
            return room_id in self._rooms
