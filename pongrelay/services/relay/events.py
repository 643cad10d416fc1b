"""Inbound relay events as a closed set of validated variants.

``parse_event`` turns a raw Socket.IO (event name, payload) pair into one of
the dataclasses below or raises ``InvalidEvent``. Handlers never see raw
payload dicts.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

# Inbound event names
JOIN_ROOM = 'join-room'
PLAYER_READY = 'player-ready'
GAME_UPDATE = 'game-update'
DISCONNECT = 'disconnect'
LIST_ROOMS = 'list-rooms'
PING = 'ping'

# Outbound event names
ROOM_JOINED = 'room-joined'
ROOM_JOIN_FAILED = 'room-join-failed'
PLAYER_JOINED = 'player-joined'
PLAYER_READY_OUT = 'player-ready'
GAME_STARTED = 'game-started'
BALL_UPDATE = 'ball-update'
SCORE_UPDATE = 'score-update'
GAME_ENDED = 'game-ended'
PLAYER_LEFT = 'player-left'
PLAYER_TIMEOUT = 'player-timeout'
ROOM_LIST = 'room-list'
PONG = 'pong'

MAX_ROOM_ID_LENGTH = 64
MAX_NAME_LENGTH = 64
MAX_PLAYER_ID_LENGTH = 64


class InvalidEvent(ValueError):
    """Raised when an inbound payload does not match its event's shape."""

    def __init__(self, event: str, reason: str):
        super().__init__(f'{event}: {reason}')
        self.event = event
        self.reason = reason


@dataclass(frozen=True)
class JoinRoom:
    room_id: str
    player_id: Optional[str] = None
    player_info: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PlayerReady:
    pass


@dataclass(frozen=True)
class PositionUpdate:
    player_position: Dict[str, float]


@dataclass(frozen=True)
class BallHit:
    ball_position: Dict[str, float]
    ball_velocity: Dict[str, float]
    player_position: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class ScoreUpdate:
    scores: Dict[str, int]
    player_position: Optional[Dict[str, float]] = None


@dataclass(frozen=True)
class Disconnect:
    pass


@dataclass(frozen=True)
class ListRooms:
    pass


@dataclass(frozen=True)
class Ping:
    timestamp: int
    # True when the client sent {"timestamp": ...} rather than a bare value
    wrapped: bool = False


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _vector(event: str, name: str, value) -> Dict[str, float]:
    if not isinstance(value, dict):
        raise InvalidEvent(event, f'{name} must be an object')
    try:
        vec = {axis: value[axis] for axis in ('x', 'y', 'z')}
    except KeyError as exc:
        raise InvalidEvent(event, f'{name} is missing {exc.args[0]}') from None
    if not all(_is_number(v) for v in vec.values()):
        raise InvalidEvent(event, f'{name} components must be numbers')
    return vec


def _scores(event: str, value) -> Dict[str, int]:
    if not isinstance(value, dict):
        raise InvalidEvent(event, 'scores must be an object')
    scores = {}
    for side in ('player1', 'player2'):
        score = value.get(side)
        if not isinstance(score, int) or isinstance(score, bool) or score < 0:
            raise InvalidEvent(event, f'scores.{side} must be a non-negative integer')
        scores[side] = score
    return scores


def _optional_vector(event: str, name: str, data: Dict[str, Any]) -> Optional[Dict[str, float]]:
    value = data.get(name)
    return None if value is None else _vector(event, name, value)


def _parse_join(data) -> JoinRoom:
    if not isinstance(data, dict):
        raise InvalidEvent(JOIN_ROOM, 'payload must be an object')
    room_id = data.get('roomId')
    if not isinstance(room_id, str) or not room_id.strip():
        raise InvalidEvent(JOIN_ROOM, 'roomId is required')
    if len(room_id) > MAX_ROOM_ID_LENGTH:
        raise InvalidEvent(JOIN_ROOM, 'roomId is too long')
    player_id = data.get('playerId')
    if player_id is not None and (not isinstance(player_id, str) or not player_id):
        raise InvalidEvent(JOIN_ROOM, 'playerId must be a non-empty string')
    if player_id is not None and len(player_id) > MAX_PLAYER_ID_LENGTH:
        raise InvalidEvent(JOIN_ROOM, 'playerId is too long')
    info = data.get('playerInfo') or {}
    if not isinstance(info, dict):
        raise InvalidEvent(JOIN_ROOM, 'playerInfo must be an object')
    name = info.get('name')
    if name is not None and not isinstance(name, str):
        raise InvalidEvent(JOIN_ROOM, 'playerInfo.name must be a string')
    player_info = {'name': name[:MAX_NAME_LENGTH]} if name else {}
    return JoinRoom(room_id=room_id.strip(), player_id=player_id, player_info=player_info)


def _parse_game_update(data):
    if not isinstance(data, dict):
        raise InvalidEvent(GAME_UPDATE, 'payload must be an object')
    kind = data.get('type')
    position = _optional_vector(GAME_UPDATE, 'playerPosition', data)
    if kind == 'ball-hit':
        return BallHit(
            ball_position=_vector(GAME_UPDATE, 'ballPosition', data.get('ballPosition')),
            ball_velocity=_vector(GAME_UPDATE, 'ballVelocity', data.get('ballVelocity')),
            player_position=position,
        )
    if kind == 'score-update':
        return ScoreUpdate(scores=_scores(GAME_UPDATE, data.get('scores')), player_position=position)
    if kind is not None and kind != 'position':
        raise InvalidEvent(GAME_UPDATE, f'unknown update type {kind!r}')
    if position is None:
        raise InvalidEvent(GAME_UPDATE, 'playerPosition is required')
    return PositionUpdate(player_position=position)


def _parse_ping(data) -> Ping:
    wrapped = isinstance(data, dict)
    timestamp = data.get('timestamp') if wrapped else data
    if not isinstance(timestamp, int) or isinstance(timestamp, bool):
        raise InvalidEvent(PING, 'timestamp must be an integer')
    return Ping(timestamp=timestamp, wrapped=wrapped)


def parse_event(name: str, data=None):
    """Validate ``data`` for the inbound event ``name`` and return its variant."""
    if name == JOIN_ROOM:
        return _parse_join(data)
    if name == GAME_UPDATE:
        return _parse_game_update(data)
    if name == PING:
        return _parse_ping(data)
    if name == PLAYER_READY:
        return PlayerReady()
    if name == LIST_ROOMS:
        return ListRooms()
    if name == DISCONNECT:
        return Disconnect()
    raise InvalidEvent(name, 'unknown event')
