import pytest

from metachess.errors import InvalidState
from metachess.intents import RematchOffer, Resign
from metachess.models import Color, Phase

WHITE, BLACK = Color.WHITE, Color.BLACK


def test_rematch_swaps_colors(match, recorder):
    coordinator = match.coordinator
    white_player = match.side(WHITE).player_id
    match.send(WHITE, Resign(match.id))

    match.send(WHITE, RematchOffer(match.id))
    assert recorder.last('rematch_offer_received', match.sid(BLACK))['from'] == 'white'
    assert recorder.payloads('rematch_start') == []

    match.send(BLACK, RematchOffer(match.id))
    started = recorder.last('rematch_start', match.sid(WHITE))
    new_id = started['newGameId']
    assert started['previousGameId'] == match.id
    assert started['playerColor'] == 'black'
    assert recorder.last('rematch_start', match.sid(BLACK))['playerColor'] == 'white'

    rematch = coordinator.registry.lookup(new_id)
    assert rematch.phase is Phase.ACTIVE
    assert rematch.turn is WHITE
    assert rematch.side(BLACK).player_id == white_player
    assert not rematch.clock.started
    assert coordinator.check_game(match.id)['exists'] is False

    # Old white now plays black in the new game
    binding = coordinator.connections.binding(match.sid(WHITE))
    assert (binding.game_id, binding.color) == (new_id, BLACK)


def test_rematch_requires_finished_game(match):
    with pytest.raises(InvalidState):
        match.send(WHITE, RematchOffer(match.id))


def test_rematch_for_missing_game(coordinator, recorder):
    coordinator.handle('sid-1', RematchOffer('gone'))
    assert recorder.last('rematch_failed', 'sid-1')['message'] == 'Game no longer exists'


def test_rematch_needs_connected_opponent(match, recorder):
    white_sid = match.sid(WHITE)
    match.send(WHITE, Resign(match.id))
    match.send(BLACK, RematchOffer(match.id))
    match.coordinator.disconnect(match.sid(BLACK))

    match.send(WHITE, RematchOffer(match.id))
    assert recorder.last('rematch_failed', white_sid)['message'] == 'Opponent is not connected'
    assert recorder.payloads('rematch_start') == []
    assert match.coordinator.check_game(match.id)['exists'] is True
