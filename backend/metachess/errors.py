"""Error taxonomy for session operations.

Every error carries a short machine ``code`` and a human ``message``; the
socket layer turns them into ``error`` replies for the offending connection.
"""


class GameError(Exception):
    code = 'game_error'

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {'message': self.message, 'code': self.code}


class NotFound(GameError):
    code = 'not_found'


class SessionNotFound(NotFound):
    def __init__(self, game_id=None):
        super().__init__('Game not found')
        self.game_id = game_id


class Forbidden(GameError):
    code = 'forbidden'


class SessionFull(Forbidden):
    code = 'session_full'

    def __init__(self, game_id=None):
        super().__init__('Game is full')
        self.game_id = game_id


class InvalidState(GameError):
    code = 'invalid_state'


class RulesRejected(GameError):
    code = 'rules_rejected'


class TransportFailure(GameError):
    code = 'transport_failure'


class MalformedMessage(GameError):
    code = 'bad_request'
