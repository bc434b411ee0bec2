"""Deck and hand management.

Cards are piece kinds (``p n b r q k``). A deck is a shuffled list used as a
stack: drawing pops from the end. Hands are topped up to ``hand_size`` while
the deck has cards left; discarded cards never return to the deck.
"""

from random import Random
from typing import Dict, Iterable, List, Optional

from metachess.models import SideState

PIECE_KINDS = ('p', 'n', 'b', 'r', 'q', 'k')
DECK_DISTRIBUTION: Dict[str, int] = {
    'p': 35,
    'n': 9,
    'b': 8,
    'r': 8,
    'q': 5,
    'k': 6,
}
HAND_SIZE = 5


def build_deck(rng: Optional[Random] = None, distribution: Optional[Dict[str, int]] = None) -> List[str]:
    """Return a freshly shuffled deck."""
    counts = distribution or DECK_DISTRIBUTION
    deck = [kind for kind, count in counts.items() for _ in range(count)]
    (rng or Random()).shuffle(deck)
    return deck


def draw(deck: List[str], count: int = 1) -> List[str]:
    drawn = []
    while deck and len(drawn) < count:
        drawn.append(deck.pop())
    return drawn


def top_up(side: SideState, hand_size: int = HAND_SIZE) -> List[str]:
    drawn = draw(side.deck, max(0, hand_size - len(side.hand)))
    side.hand.extend(drawn)
    return drawn


def deal(side: SideState, deck: List[str], hand_size: int = HAND_SIZE) -> None:
    side.deck = deck
    side.hand = []
    top_up(side, hand_size)


def card_kind(token: str) -> str:
    kind = (token or '').strip().lower()[:1]
    if kind not in PIECE_KINDS:
        raise ValueError(f'unknown card {token!r}')
    return kind


def play_card(side: SideState, index: int, hand_size: int = HAND_SIZE) -> str:
    """Remove the card at ``index`` from the hand and draw its replacement."""
    if not 0 <= index < len(side.hand):
        raise IndexError(index)
    card = side.hand.pop(index)
    top_up(side, hand_size)
    return card


def discard_and_redraw(side: SideState, hand_size: int = HAND_SIZE) -> List[str]:
    """Throw away the whole hand and draw a fresh one; returns the discards."""
    discarded = side.hand
    side.hand = []
    top_up(side, hand_size)
    return discarded


def playable_indices(hand: Iterable[str], movable_kinds: Iterable[str]) -> List[int]:
    kinds = set(movable_kinds)
    return [i for i, card in enumerate(hand) if card in kinds]
