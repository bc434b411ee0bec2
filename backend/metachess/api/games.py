from flask import Blueprint, current_app, jsonify


games = Blueprint('games', __name__)


def _coordinator():
    return current_app.extensions['metachess']


@games.route('', methods=['GET'])
def list_games():
    """Session counts by phase; individual games are only reachable by id."""
    return jsonify(_coordinator().stats())


@games.route('/<string:game_id>', methods=['GET'])
def get_game(game_id):
    """Public summary of one game: phase, seats, deck/hand counts and clocks.

    Card identities never leave the socket channel.
    """
    session = _coordinator().registry.get(game_id)
    if session is None:
        return jsonify({'error': 'Game not found', 'gameId': game_id, 'exists': False}), 404
    with session.lock:
        if session.evicted:
            return jsonify({'error': 'Game not found', 'gameId': game_id, 'exists': False}), 404
        payload = session.to_dict()
    payload['exists'] = True
    return jsonify(payload)
