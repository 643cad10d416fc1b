def join(dispatcher, conn, player_id, room_id='ABC123'):
    dispatcher.handle(conn, 'join-room', {'roomId': room_id, 'playerId': player_id, 'playerInfo': {'name': player_id}})


def test_silent_player_times_out(dispatcher, sweeper, rooms, sessions, transport, clock):
    join(dispatcher, 'c1', 'P1')
    join(dispatcher, 'c2', 'P2')
    transport.clear()

    # P1 keeps sending positions; P2 vanished without a disconnect
    for _ in range(6):
        clock.advance(60)
        dispatcher.handle('c1', 'game-update', {'playerPosition': {'x': 0, 'y': 1.6, 'z': 3}})
        sweeper.sweep()

    room = rooms.get_room('ABC123')
    assert room is not None
    assert list(room.players) == ['P1']
    assert transport.events('c1', 'player-timeout') == [{'playerId': 'P2'}]
    assert sessions.lookup('c2') is None
    assert sessions.lookup('c1') == ('P1', 'ABC123')


def test_player_within_timeout_is_kept(dispatcher, sweeper, rooms, clock):
    join(dispatcher, 'c1', 'P1')
    clock.advance(299)
    assert sweeper.sweep() == {'evicted': 0, 'deleted': 0}
    assert 'P1' in rooms.get_room('ABC123').players


def test_room_emptied_by_timeouts_is_deleted(dispatcher, sweeper, rooms, sessions, clock):
    join(dispatcher, 'c1', 'P1')
    join(dispatcher, 'c2', 'P2')
    clock.advance(301)
    assert sweeper.sweep() == {'evicted': 2, 'deleted': 1}
    assert 'ABC123' not in rooms
    assert len(sessions) == 0


def test_empty_room_deleted_only_after_room_timeout(sweeper, rooms, clock):
    room_id = rooms.create_room()
    clock.advance(29 * 60)
    sweeper.sweep()
    assert room_id in rooms
    clock.advance(2 * 60)
    sweeper.sweep()
    assert room_id not in rooms


def test_old_occupied_room_survives(dispatcher, sweeper, rooms, clock):
    join(dispatcher, 'c1', 'P1')
    for _ in range(40):
        clock.advance(60)
        dispatcher.handle('c1', 'ping', 1)
        dispatcher.handle('c1', 'player-ready', {})
        sweeper.sweep()
    assert 'ABC123' in rooms


def test_start_and_stop(sweeper):
    class FakeSocketIO:
        def __init__(self):
            self.tasks = []

        def start_background_task(self, target, *args):
            self.tasks.append(target)
            return object()

    sio = FakeSocketIO()
    sweeper.start(sio)
    sweeper.start(sio)
    assert sweeper.running
    assert len(sio.tasks) == 1
    sweeper.stop()
    assert not sweeper.running
    # The loop exits immediately once stopped
    sio.tasks[0]()
