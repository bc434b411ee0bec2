import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class Color(str, Enum):
    WHITE = 'white'
    BLACK = 'black'

    @property
    def opposite(self) -> 'Color':
        return Color.BLACK if self is Color.WHITE else Color.WHITE


class Phase(str, Enum):
    WAITING = 'waiting'
    ACTIVE = 'active'
    OVER = 'over'


class GameOverReason(str, Enum):
    CHECKMATE = 'checkmate'
    KING_CAPTURE = 'king_capture'
    RESIGNATION = 'resignation'
    TIME_OUT = 'time_out'
    NO_VALID_MOVES = 'no_valid_moves'
    NO_CARDS = 'no_cards'


@dataclass
class SideState:
    """One color's seat: who holds it, where they are connected, and their cards."""
    color: Color
    player_id: Optional[str] = None
    sid: Optional[str] = None
    deck: List[str] = field(default_factory=list)
    hand: List[str] = field(default_factory=list)
    disconnected_at: Optional[float] = None

    @property
    def connected(self) -> bool:
        return self.sid is not None

    def hand_tokens(self) -> List[str]:
        # White cards travel lowercase, black uppercase
        if self.color is Color.BLACK:
            return [card.upper() for card in self.hand]
        return list(self.hand)


@dataclass
class ClockState:
    white: float
    black: float
    started: bool = False
    last_tick: float = 0.0

    def remaining(self, color: Color) -> float:
        return self.white if color is Color.WHITE else self.black

    def set_remaining(self, color: Color, seconds: float) -> None:
        if color is Color.WHITE:
            self.white = seconds
        else:
            self.black = seconds

    def to_dict(self):
        return {
            'white': round(self.white, 3),
            'black': round(self.black, 3),
            'started': self.started,
        }


@dataclass(frozen=True)
class GameResult:
    reason: GameOverReason
    winner: Color

    @property
    def loser(self) -> Color:
        return self.winner.opposite

    def to_dict(self):
        return {
            'reason': self.reason.value,
            'winner': self.winner.value,
            'loser': self.loser.value,
        }


@dataclass(eq=False)
class Session:
    """Authoritative state of one match.

    The registry owns sessions; ``SideState.sid`` is only a back-reference to
    whichever connection currently sits in that seat. All mutation happens
    while holding ``lock``.
    """
    id: str
    board: str
    sides: Dict[Color, SideState]
    clock: ClockState
    created_at: float
    last_activity_at: float
    phase: Phase = Phase.WAITING
    turn: Color = Color.WHITE
    rematch_offers: Dict[Color, bool] = field(
        default_factory=lambda: {Color.WHITE: False, Color.BLACK: False}
    )
    result: Optional[GameResult] = None
    over_at: Optional[float] = None
    eviction_deadline: Optional[float] = None
    evicted: bool = False
    creator_color: Optional[Color] = None
    previous_id: Optional[str] = None
    lock: Any = field(default_factory=threading.RLock, repr=False)

    def side(self, color: Color) -> SideState:
        return self.sides[color]

    def side_for_player(self, player_id: str) -> Optional[SideState]:
        for side in self.sides.values():
            if side.player_id is not None and side.player_id == player_id:
                return side
        return None

    def side_for_sid(self, sid: str) -> Optional[SideState]:
        for side in self.sides.values():
            if side.sid is not None and side.sid == sid:
                return side
        return None

    def open_color(self) -> Optional[Color]:
        for color in (Color.WHITE, Color.BLACK):
            if self.sides[color].player_id is None:
                return color
        return None

    def view_for(self, color: Color) -> Dict[str, Any]:
        """Snapshot as seen by ``color``: deck counts for both, only its own hand."""
        white = self.sides[Color.WHITE]
        black = self.sides[Color.BLACK]
        view = {
            'gameId': self.id,
            'playerColor': color.value,
            'phase': self.phase.value,
            'fen': self.board,
            'currentTurn': self.turn.value,
            'whiteDeck': len(white.deck),
            'blackDeck': len(black.deck),
            'whiteHand': white.hand_tokens() if color is Color.WHITE else [],
            'blackHand': black.hand_tokens() if color is Color.BLACK else [],
            'whiteHandCount': len(white.hand),
            'blackHandCount': len(black.hand),
            'timeControl': self.clock.to_dict(),
            'opponentConnected': self.sides[color.opposite].connected,
        }
        if self.result:
            view['result'] = self.result.to_dict()
        return view

    def to_dict(self):
        """Public summary; never includes card identities."""
        return {
            'gameId': self.id,
            'phase': self.phase.value,
            'currentTurn': self.turn.value,
            'players': {
                color.value: {
                    'joined': side.player_id is not None,
                    'connected': side.connected,
                    'deck': len(side.deck),
                    'hand': len(side.hand),
                }
                for color, side in self.sides.items()
            },
            'timeControl': self.clock.to_dict(),
            'result': self.result.to_dict() if self.result else None,
        }
