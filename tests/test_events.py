import pytest

from pongrelay.services.relay.events import (
    BallHit, Disconnect, InvalidEvent, JoinRoom, ListRooms, Ping, PlayerReady,
    PositionUpdate, ScoreUpdate, parse_event,
)

VEC = {'x': 0.5, 'y': 1, 'z': -2.25}


def test_join_room_defaults():
    event = parse_event('join-room', {'roomId': ' ABC123 ', 'playerInfo': {'name': 'Alice'}})
    assert event == JoinRoom(room_id='ABC123', player_id=None, player_info={'name': 'Alice'})


@pytest.mark.parametrize('payload', [
    None,
    {},
    {'roomId': ''},
    {'roomId': 42},
    {'roomId': 'R' * 65},
    {'roomId': 'ABC', 'playerId': 7},
    {'roomId': 'ABC', 'playerId': 'p' * 65},
    {'roomId': 'ABC', 'playerInfo': 'Alice'},
    {'roomId': 'ABC', 'playerInfo': {'name': ['Alice']}},
])
def test_join_room_rejects_bad_shapes(payload):
    with pytest.raises(InvalidEvent) as excinfo:
        parse_event('join-room', payload)
    assert excinfo.value.event == 'join-room'


def test_game_update_variants():
    hit = parse_event('game-update', {'type': 'ball-hit', 'ballPosition': VEC, 'ballVelocity': VEC, 'playerPosition': VEC})
    assert hit == BallHit(ball_position=VEC, ball_velocity=VEC, player_position=VEC)

    score = parse_event('game-update', {'type': 'score-update', 'scores': {'player1': 3, 'player2': 0}})
    assert score == ScoreUpdate(scores={'player1': 3, 'player2': 0})

    move = parse_event('game-update', {'playerPosition': VEC})
    assert move == PositionUpdate(player_position=VEC)


@pytest.mark.parametrize('payload', [
    {'type': 'ball-hit', 'ballPosition': VEC},
    {'type': 'ball-hit', 'ballPosition': {'x': 1, 'y': 2}, 'ballVelocity': VEC},
    {'type': 'ball-hit', 'ballPosition': {'x': 'a', 'y': 2, 'z': 3}, 'ballVelocity': VEC},
    {'type': 'ball-hit', 'ballPosition': {'x': True, 'y': 2, 'z': 3}, 'ballVelocity': VEC},
    {'type': 'score-update', 'scores': {'player1': -1, 'player2': 0}},
    {'type': 'score-update', 'scores': {'player1': 1.5, 'player2': 0}},
    {'type': 'score-update'},
    {'type': 'teleport', 'playerPosition': VEC},
    {},
    [1, 2, 3],
])
def test_game_update_rejects_bad_shapes(payload):
    with pytest.raises(InvalidEvent):
        parse_event('game-update', payload)


def test_ping_accepts_bare_and_wrapped_timestamps():
    assert parse_event('ping', 1700000000000) == Ping(timestamp=1700000000000, wrapped=False)
    assert parse_event('ping', {'timestamp': 5}) == Ping(timestamp=5, wrapped=True)
    with pytest.raises(InvalidEvent):
        parse_event('ping', '1700000000000')
    with pytest.raises(InvalidEvent):
        parse_event('ping', None)


def test_payloadless_events():
    assert parse_event('player-ready', {'anything': 1}) == PlayerReady()
    assert parse_event('list-rooms') == ListRooms()
    assert parse_event('disconnect') == Disconnect()


def test_unknown_event():
    with pytest.raises(InvalidEvent):
        parse_event('shutdown-server', {})
