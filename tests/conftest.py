import copy
import logging
import os
import random
import sys
import pytest

# Ensure the project root (containing the `pongrelay` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
PROJECT_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

from pongrelay import create_app, db, socketio
from pongrelay.services.relay import CleanupSweeper, RelayDispatcher, RoomRegistry, SessionRegistry


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    RELAY_NAMESPACE = '/'
    RELAY_MAX_SCORE = 11
    ROOM_CODE_LENGTH = 6
    API_RATE_LIMIT = '100 per 15 minutes'
    RATELIMIT_STORAGE_URI = 'memory://'


class FakeTransport:
    """Records outbound events; connections in ``dead`` refuse delivery."""

    def __init__(self):
        self.sent = []
        self.dead = set()

    def send(self, connection_id, event, payload):
        if connection_id in self.dead:
            return False
        self.sent.append((connection_id, event, copy.deepcopy(payload)))
        return True

    def events(self, connection_id, name=None):
        return [
            payload for conn, event, payload in self.sent
            if conn == connection_id and (name is None or event == name)
        ]

    def names(self, connection_id):
        return [event for conn, event, _ in self.sent if conn == connection_id]

    def clear(self):
        self.sent.clear()


class FakeClock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += int(seconds * 1000)


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(flask_app, flask_test_client=flask_app.test_client())
    yield test_client
    try:
        test_client.disconnect()
    except Exception:
        pass


@pytest.fixture()
def logger():
    return logging.getLogger('pongrelay.tests')


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def rooms(transport, clock, logger):
    return RoomRegistry(transport, clock=clock, logger=logger)


@pytest.fixture()
def sessions():
    return SessionRegistry()


@pytest.fixture()
def recorded_stats():
    return []


@pytest.fixture()
def dispatcher(rooms, sessions, transport, clock, logger, recorded_stats):
    return RelayDispatcher(rooms, sessions, transport, logger, stats_sink=recorded_stats.append,
                           clock=clock, rng=random.Random(7))


@pytest.fixture()
def sweeper(rooms, sessions, clock, logger):
    return CleanupSweeper(rooms, sessions, logger, clock=clock)
