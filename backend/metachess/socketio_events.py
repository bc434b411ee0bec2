from flask import current_app, request
from flask_socketio import emit

from metachess import socketio
from metachess.errors import GameError, TransportFailure
from metachess.intents import IntentType, parse_intent

NAMESPACE = '/ws'


def _coordinator():
    return current_app.extensions['metachess']


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def send_to(sid: str, event: str, payload: dict) -> None:
    """Transport used by the coordinator: one event to one connection."""
    try:
        socketio.emit(event, payload, to=sid, namespace=NAMESPACE)
    except Exception as exc:
        raise TransportFailure(str(exc)) from exc


def handle_connect(auth=None):
    emit('connected', {'type': 'connected', 'message': f'Connected to {NAMESPACE}'})


def handle_disconnect(reason=None):
    sid = _get_sid()
    current_app.logger.info(f"[socket-close] sid={sid} reason={reason}")
    _coordinator().disconnect(sid)


def _dispatch(kind, data) -> None:
    sid = _get_sid()
    try:
        intent = parse_intent(kind, data)
        _coordinator().handle(sid, intent)
    except GameError as exc:
        current_app.logger.info(f"[rejected] sid={sid} type={kind} code={exc.code} message={exc.message}")
        emit('error', dict(exc.to_dict(), type='error'))
    except Exception:
        current_app.logger.exception(f"[handler-error] sid={sid} type={kind}")
        emit('error', {'type': 'error', 'message': 'Invalid message format'})


def handle_message(data=None):
    """Tagged-record entry point: ``{type: ..., ...}`` on the plain message event."""
    kind = data.get('type') if isinstance(data, dict) else None
    _dispatch(kind, data)


def _intent_handler(kind: IntentType):
    def handler(data=None):
        _dispatch(kind.value, data)
    handler.__name__ = f'handle_{kind.value}'
    return handler


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'.

    Each intent type gets its own event name; ``message`` accepts any of them
    as a tagged record.
    """
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('message', handle_message, namespace=NAMESPACE)
    for kind in IntentType:
        socketio.on_event(kind.value, _intent_handler(kind), namespace=NAMESPACE)
