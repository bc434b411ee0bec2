import pytest

from metachess.coordinator import GameCoordinator
from metachess.errors import MalformedMessage
from metachess.intents import (
    _PARSERS,
    CheckGame,
    Heartbeat,
    IntentType,
    JoinGame,
    Move,
    MoveRequest,
    Pass,
    parse_intent,
)
from metachess.models import Color


def test_every_intent_has_parser_and_handler():
    assert set(_PARSERS) == set(IntentType)
    assert set(GameCoordinator().handlers) == set(IntentType)


def test_parse_move():
    intent = parse_intent('move', {
        'gameId': 'g1',
        'player': 'White',
        'move': {'from': 'E7', 'to': 'e8', 'handIndex': 2, 'promotion': 'N', 'pieceType': 'P'},
    })
    assert intent == Move('g1', Color.WHITE, MoveRequest('e7', 'e8', 2, promotion='n', piece_type='p'))
    assert intent.type is IntentType.MOVE


def test_parse_simple_intents():
    assert parse_intent('join_game', {'gameId': 'g1', 'playerId': 'p1'}) == JoinGame('g1', 'p1')
    assert parse_intent('pass', {'gameId': 'g1'}) == Pass('g1')
    assert parse_intent('heartbeat', None) == Heartbeat()
    assert parse_intent('check_game', {'gameId': ' g1 '}) == CheckGame('g1')


@pytest.mark.parametrize('kind,data', [
    ('teleport', {}),
    (None, {}),
    ('join_game', {}),
    ('join_game', ['g1']),
    ('reconnect', {'gameId': 'g1'}),
    ('pass', {'gameId': 'g1', 'player': 'red'}),
    ('move', {'gameId': 'g1'}),
    ('move', {'gameId': 'g1', 'move': {'from': 'e2', 'to': 'e9', 'handIndex': 0}}),
    ('move', {'gameId': 'g1', 'move': {'from': 'e2', 'to': 'e4', 'handIndex': True}}),
    ('move', {'gameId': 'g1', 'move': {'from': 'e2', 'to': 'e4', 'handIndex': '0'}}),
    ('move', {'gameId': 'g1', 'move': {'from': 'e2', 'to': 'e4', 'handIndex': 0, 'promotion': 'k'}}),
    ('move', {'gameId': 'g1', 'move': {'from': 'e2', 'to': 'e4', 'handIndex': 0, 'pieceType': 'x'}}),
    ('identify_player', {'playerId': 42}),
])
def test_malformed_payloads(kind, data):
    with pytest.raises(MalformedMessage) as info:
        parse_intent(kind, data)
    assert info.value.code == 'bad_request'
