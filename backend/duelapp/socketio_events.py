from flask_socketio import join_room, leave_room, emit

from duelapp import socketio
from duelapp.auth import principal_from_token
from duelapp.services.duels.notifications import dueliste_room


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_subscribe(data):
    """Join the caller's own room so duel_update events reach them."""
    principal = principal_from_token((data or {}).get('token'))
    if principal is None:
        emit('error', {'message': 'A valid token is required'})
        return
    room = dueliste_room(principal.id)
    join_room(room)
    emit('subscribed', {'room': room})


def handle_unsubscribe(data):
    principal = principal_from_token((data or {}).get('token'))
    if principal is None:
        emit('error', {'message': 'A valid token is required'})
        return
    room = dueliste_room(principal.id)
    leave_room(room)
    emit('unsubscribed', {'room': room})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    handlers = {
        'connect': handle_connect,
        'subscribe': handle_subscribe,
        'unsubscribe': handle_unsubscribe,
        'ping': handle_ping,
    }
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        for event, handler in handlers.items():
            socketio.on_event(event, handler, namespace=namespace)
