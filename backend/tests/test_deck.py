from collections import Counter
from random import Random

import pytest

from metachess.models import Color, SideState
from metachess.services.games.deck import (
    DECK_DISTRIBUTION,
    build_deck,
    card_kind,
    deal,
    discard_and_redraw,
    draw,
    play_card,
    playable_indices,
)


def test_build_deck_uses_distribution():
    deck = build_deck(Random(1))
    assert len(deck) == 71
    assert Counter(deck) == Counter(DECK_DISTRIBUTION)


def test_build_deck_is_reproducible_with_seed():
    assert build_deck(Random(5)) == build_deck(Random(5))


def test_draw_pops_from_end_and_stops_when_empty():
    deck = ['p', 'n', 'q']
    assert draw(deck, 2) == ['q', 'n']
    assert draw(deck, 5) == ['p']
    assert deck == []


def test_deal_fills_hand():
    side = SideState(color=Color.WHITE)
    deal(side, build_deck(Random(2)))
    assert len(side.hand) == 5
    assert len(side.deck) == 66


def test_play_card_draws_replacement():
    side = SideState(color=Color.WHITE, hand=['p', 'n', 'b', 'r', 'q'], deck=['k', 'p'])
    assert play_card(side, 1) == 'n'
    assert side.hand == ['p', 'b', 'r', 'q', 'p']
    assert side.deck == ['k']


def test_play_card_with_empty_deck_shrinks_hand():
    side = SideState(color=Color.WHITE, hand=['p', 'n'], deck=[])
    play_card(side, 0)
    assert side.hand == ['n']


def test_play_card_rejects_bad_index():
    side = SideState(color=Color.WHITE, hand=['p'])
    with pytest.raises(IndexError):
        play_card(side, 3)
    with pytest.raises(IndexError):
        play_card(side, -1)
    assert side.hand == ['p']


def test_discard_and_redraw_throws_cards_away():
    side = SideState(color=Color.BLACK, hand=['q', 'q', 'r', 'b', 'k'], deck=list('pppnnnn'))
    total = len(side.hand) + len(side.deck)
    discarded = discard_and_redraw(side)
    assert discarded == ['q', 'q', 'r', 'b', 'k']
    assert len(side.hand) == 5
    assert len(side.hand) + len(side.deck) == total - 5
    assert 'q' not in side.deck


def test_discard_and_redraw_short_deck():
    side = SideState(color=Color.WHITE, hand=['q', 'r', 'b', 'k', 'q'], deck=['b', 'r', 'q'])
    discard_and_redraw(side)
    assert sorted(side.hand) == ['b', 'q', 'r']
    assert side.deck == []


def test_card_kind():
    assert card_kind('P') == 'p'
    assert card_kind(' n ') == 'n'
    with pytest.raises(ValueError):
        card_kind('x')
    with pytest.raises(ValueError):
        card_kind('')


def test_playable_indices():
    assert playable_indices(['q', 'p', 'k', 'n'], {'p', 'n'}) == [1, 3]
    assert playable_indices(['q', 'r'], {'p', 'n'}) == []


def test_black_hand_travels_uppercase():
    side = SideState(color=Color.BLACK, hand=['p', 'q'])
    assert side.hand_tokens() == ['P', 'Q']
    assert SideState(color=Color.WHITE, hand=['p']).hand_tokens() == ['p']
