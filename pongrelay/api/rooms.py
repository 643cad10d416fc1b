from flask import Blueprint, jsonify, request, current_app
from pongrelay import db, limiter
from pongrelay.models import ClientGameData, GameRecord
import json
import time


api = Blueprint('api', __name__)
limiter.limit(lambda: current_app.config.get('API_RATE_LIMIT', '100 per 15 minutes'))(api)


def _relay():
    return current_app.extensions['relay']


def _now_ms() -> int:
    return int(time.time() * 1000)


def _room_not_found():
    return jsonify({'error': 'Room not found'}), 404


@api.route('/health', methods=['GET'])
def health():
    relay = _relay()
    return jsonify({
        'status': 'healthy',
        'timestamp': _now_ms(),
        'activeRooms': len(relay.rooms),
        'connectedPlayers': len(relay.sessions),
    })


@api.route('/rooms', methods=['GET'])
def list_rooms():
    return jsonify(_relay().rooms.list_rooms())


@api.route('/create-room', methods=['POST'])
def create_room():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    try:
        room_id = _relay().rooms.create_room(data.get('settings'))
    except ValueError as exc:
        return jsonify({'error': str(exc)}), 400
    room = _relay().rooms.get_room(room_id)
    with room.lock:
        payload = {
            'success': True,
            'roomId': room_id,
            'room': {
                'id': room.id,
                'settings': room.settings,
                'createdAt': room.created_at,
            },
        }
        return jsonify(payload)


@api.route('/room/<string:room_id>', methods=['GET'])
def get_room(room_id):
    room = _relay().rooms.get_room(room_id)
    if room is None:
        return _room_not_found()
    with room.lock:
        return jsonify(room.describe())


@api.route('/sync-game-data', methods=['POST'])
def sync_game_data():
    batch = request.get_json(silent=True)
    if not isinstance(batch, list) or not all(isinstance(d, dict) and isinstance(d.get('type'), str) for d in batch):
        return jsonify({'error': 'Expected a JSON array of objects with a string type'}), 400
    for data in batch:
        db.session.add(ClientGameData(type=data['type'][:64], payload=json.dumps(data)))
    db.session.commit()
    current_app.logger.info(f"[sync] stored {len(batch)} client game data rows")
    return jsonify({'success': True, 'processed': len(batch)})


def _signal_body(*required):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}
    missing = [name for name in required if data.get(name) is None]
    return data, missing


@api.route('/webrtc/offer', methods=['POST'])
def webrtc_offer():
    data, missing = _signal_body('roomId', 'offer', 'playerId')
    if missing:
        return jsonify({'error': f"Missing fields: {', '.join(missing)}"}), 400
    if not _relay().dispatcher.forward_signal(
        data['roomId'], 'webrtc-offer', {'offer': data['offer'], 'from': data['playerId']}, data['playerId'],
    ):
        return _room_not_found()
    return jsonify({'success': True})


@api.route('/webrtc/answer', methods=['POST'])
def webrtc_answer():
    data, missing = _signal_body('roomId', 'answer', 'playerId', 'targetPlayerId')
    if missing:
        return jsonify({'error': f"Missing fields: {', '.join(missing)}"}), 400
    if not _relay().dispatcher.forward_signal(
        data['roomId'], 'webrtc-answer', {'answer': data['answer'], 'from': data['playerId']},
        data['playerId'], target_player_id=data['targetPlayerId'],
    ):
        return _room_not_found()
    return jsonify({'success': True})


@api.route('/webrtc/ice-candidate', methods=['POST'])
def webrtc_ice_candidate():
    data, missing = _signal_body('roomId', 'candidate', 'playerId')
    if missing:
        return jsonify({'error': f"Missing fields: {', '.join(missing)}"}), 400
    # Without a target the candidate goes to every other player
    if not _relay().dispatcher.forward_signal(
        data['roomId'], 'webrtc-ice-candidate', {'candidate': data['candidate'], 'from': data['playerId']},
        data['playerId'], target_player_id=data.get('targetPlayerId'),
    ):
        return _room_not_found()
    return jsonify({'success': True})


@api.route('/stats', methods=['GET'])
def stats():
    relay = _relay()
    try:
        recorded = GameRecord.query.count()
    except Exception:
        db.session.rollback()
        current_app.logger.exception("[stats-error] could not count game records")
        recorded = None
    return jsonify({
        'totalRooms': len(relay.rooms),
        'activeGames': relay.rooms.active_game_count(),
        'totalPlayers': len(relay.sessions),
        'serverUptime': round(time.time() - relay.started_at, 3),
        'recordedGames': recorded,
    })
