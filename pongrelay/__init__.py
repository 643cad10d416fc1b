from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from werkzeug.exceptions import HTTPException
import atexit
import time
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
# Handle each connection's events in arrival order
socketio = SocketIO(async_mode=None, async_handlers=False)
limiter = Limiter(key_func=get_remote_address)


class RelayState:
    """Per-app relay wiring, stored under ``app.extensions['relay']``."""

    def __init__(self, rooms, sessions, dispatcher, sweeper, transport):
        self.rooms = rooms
        self.sessions = sessions
        self.dispatcher = dispatcher
        self.sweeper = sweeper
        self.transport = transport
        self.started_at = time.time()


def _cors_origins(value):
    if not value or value.strip() == '*':
        return '*'
    return [origin.strip() for origin in value.split(',') if origin.strip()]


def build_relay(flask_app, transport) -> RelayState:
    from pongrelay.services.relay import CleanupSweeper, RelayDispatcher, RoomRegistry, SessionRegistry
    from pongrelay.services.stats import GameStatsRecorder

    cfg = flask_app.config
    rooms = RoomRegistry(
        transport,
        logger=flask_app.logger,
        code_length=int(cfg.get('ROOM_CODE_LENGTH', 6)),
        max_score=int(cfg.get('RELAY_MAX_SCORE', 11)),
    )
    sessions = SessionRegistry()
    dispatcher = RelayDispatcher(rooms, sessions, transport, flask_app.logger,
                                 stats_sink=GameStatsRecorder(flask_app))
    sweeper = CleanupSweeper(
        rooms, sessions, flask_app.logger,
        interval_sec=int(cfg.get('CLEANUP_INTERVAL_SEC', 60)),
        room_timeout_sec=int(cfg.get('ROOM_TIMEOUT_SEC', 1800)),
        player_timeout_sec=int(cfg.get('PLAYER_TIMEOUT_SEC', 300)),
    )
    return RelayState(rooms, sessions, dispatcher, sweeper, transport)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    limiter.init_app(flask_app)
    origins = _cors_origins(flask_app.config.get('CORS_ORIGINS', '*'))
    CORS(flask_app, origins=origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=origins)

    from pongrelay import models  # noqa: F401
    from pongrelay.api.rooms import api
    flask_app.register_blueprint(api, url_prefix='/api')

    namespace = flask_app.config.get('RELAY_NAMESPACE', '/')
    from pongrelay.socketio_events import SocketIOTransport, register_socketio_handlers
    relay = build_relay(flask_app, SocketIOTransport(socketio, namespace))
    flask_app.extensions['relay'] = relay
    register_socketio_handlers(socketio, namespace)

    @flask_app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    @flask_app.errorhandler(Exception)
    def internal_error(error):
        if isinstance(error, HTTPException):
            return jsonify({'error': error.description}), error.code
        flask_app.logger.exception(f"[http-error] {error}")
        return jsonify({
            'error': 'Internal server error',
            'message': str(error) if flask_app.debug else 'Something went wrong',
        }), 500

    sweeper_wanted = flask_app.config.get('ENABLE_SWEEPER', True)
    if flask_app.config.get('TESTING'):
        sweeper_wanted = flask_app.config.get('ENABLE_SWEEPER_IN_TESTS', False)
    if sweeper_wanted:
        relay.sweeper.start(socketio)
        atexit.register(relay.sweeper.stop)

    @click.command('stats-reset')
    def stats_reset_command():
        """Drops and recreates the game statistics tables."""
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Statistics database has been reset!')

    flask_app.cli.add_command(stats_reset_command)

    return flask_app
