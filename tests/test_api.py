from pongrelay.models import ClientGameData, GameRecord


def test_health(client):
    res = client.get('/api/health')
    assert res.status_code == 200
    data = res.get_json()
    assert data['status'] == 'healthy'
    assert data['activeRooms'] == 0
    assert data['connectedPlayers'] == 0


def test_create_room_and_fetch(client):
    res = client.post('/api/create-room', json={})
    assert res.status_code == 200
    data = res.get_json()
    assert data['success'] is True
    room_id = data['roomId']
    assert len(room_id) == 6
    assert data['room']['settings']['maxPlayers'] == 2
    assert data['room']['settings']['maxScore'] == 11

    res = client.get(f'/api/room/{room_id}')
    assert res.status_code == 200
    room = res.get_json()
    assert room['id'] == room_id
    assert room['playerCount'] == 0
    assert room['isReady'] is False
    assert room['players'] == []

    rooms = client.get('/api/rooms').get_json()
    assert [r['id'] for r in rooms] == [room_id]
    assert rooms[0]['isActive'] is False


def test_create_room_with_settings(client):
    res = client.post('/api/create-room', json={'settings': {'gameMode': 'practice', 'maxScore': 5}})
    settings = res.get_json()['room']['settings']
    assert settings['gameMode'] == 'practice'
    assert settings['maxScore'] == 5


def test_create_room_rejects_bad_settings(client):
    res = client.post('/api/create-room', json={'settings': {'maxPlayers': 'two'}})
    assert res.status_code == 400
    assert 'maxPlayers' in res.get_json()['error']


def test_create_room_rejects_other_player_counts(client):
    for players in (1, 3):
        res = client.post('/api/create-room', json={'settings': {'maxPlayers': players}})
        assert res.status_code == 400
        assert res.get_json()['error'] == 'maxPlayers must be 2'
    assert client.get('/api/rooms').get_json() == []


def test_unknown_room_is_404(client):
    res = client.get('/api/room/NOPE42')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Room not found'}


def test_sync_game_data_stores_rows(client, flask_app):
    res = client.post('/api/sync-game-data', json=[{'type': 'match', 'score': 3}, {'type': 'practice'}])
    assert res.status_code == 200
    assert res.get_json() == {'success': True, 'processed': 2}
    with flask_app.app_context():
        assert ClientGameData.query.count() == 2


def test_sync_game_data_rejects_non_list(client):
    assert client.post('/api/sync-game-data', json={'type': 'match'}).status_code == 400
    assert client.post('/api/sync-game-data', json=[{'score': 1}]).status_code == 400


def test_webrtc_endpoints_require_room(client):
    res = client.post('/api/webrtc/offer', json={'roomId': 'NOPE', 'offer': 'sdp', 'playerId': 'P1'})
    assert res.status_code == 404
    res = client.post('/api/webrtc/answer', json={'roomId': 'NOPE'})
    assert res.status_code == 400


def test_stats(client, flask_app):
    client.post('/api/create-room', json={})
    relay = flask_app.extensions['relay']
    relay.dispatcher.handle('c1', 'join-room', {'roomId': 'ABC123', 'playerId': 'P1'})
    relay.dispatcher.handle('c1', 'game-update', {'type': 'score-update', 'scores': {'player1': 11, 'player2': 4}})

    data = client.get('/api/stats').get_json()
    assert data['totalRooms'] == 2
    assert data['activeGames'] == 0
    assert data['totalPlayers'] == 1
    assert data['serverUptime'] >= 0
    assert data['recordedGames'] == 1
    with flask_app.app_context():
        record = GameRecord.query.one()
        assert record.room_id == 'ABC123'
        assert record.winner == 'player1'
        assert record.to_dict()['finalScores'] == {'player1': 11, 'player2': 4}


def test_unknown_route_is_json_404(client):
    res = client.get('/api/does-not-exist')
    assert res.status_code == 404
    assert res.get_json() == {'error': 'Not found'}


def test_api_is_rate_limited_per_client(client):
    for _ in range(100):
        assert client.get('/api/health').status_code == 200
    res = client.get('/api/rooms')
    assert res.status_code == 429
    assert 'error' in res.get_json()
