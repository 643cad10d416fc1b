from flask import current_app, request
from flask_socketio import emit
from pongrelay.services.relay.events import (
    DISCONNECT, GAME_UPDATE, JOIN_ROOM, LIST_ROOMS, PING, PLAYER_READY,
)


class SocketIOTransport:
    """Outbound delivery to a single Socket.IO connection.

    ``send`` reports False instead of emitting when the connection is no
    longer known to the server, so broadcasts can skip it.
    """

    def __init__(self, sio, namespace: str = '/'):
        self._sio = sio
        self._namespace = namespace

    def send(self, connection_id: str, event: str, payload) -> bool:
        server = self._sio.server
        if server is None or not server.manager.is_connected(connection_id, self._namespace):
            return False
        self._sio.emit(event, payload, to=connection_id, namespace=self._namespace)
        return True


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _dispatch(name: str, data=None) -> None:
    current_app.extensions['relay'].dispatcher.handle(_get_sid(), name, data)


def handle_connect(auth=None):
    emit('connected', {'sid': _get_sid()})


def handle_disconnect(reason=None):
    _dispatch(DISCONNECT)


def handle_join_room(data=None):
    _dispatch(JOIN_ROOM, data)


def handle_player_ready(data=None):
    _dispatch(PLAYER_READY, data)


def handle_game_update(data=None):
    _dispatch(GAME_UPDATE, data)


def handle_list_rooms(data=None):
    _dispatch(LIST_ROOMS, data)


def handle_ping(data=None):
    _dispatch(PING, data)


def register_socketio_handlers(sio, namespace: str = '/') -> None:
    """Register the relay's Socket.IO event handlers on ``namespace``."""
    sio.on_event('connect', handle_connect, namespace=namespace)
    sio.on_event('disconnect', handle_disconnect, namespace=namespace)
    sio.on_event(JOIN_ROOM, handle_join_room, namespace=namespace)
    sio.on_event(PLAYER_READY, handle_player_ready, namespace=namespace)
    sio.on_event(GAME_UPDATE, handle_game_update, namespace=namespace)
    sio.on_event(LIST_ROOMS, handle_list_rooms, namespace=namespace)
    sio.on_event(PING, handle_ping, namespace=namespace)
