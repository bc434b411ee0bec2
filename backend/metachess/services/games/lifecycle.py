"""Turn state machine for an in-progress session.

Every public method expects the caller to hold ``session.lock`` and to have
checked that the session is still registered. Methods validate first and only
then touch session fields; they return the outbound messages to deliver once
the lock is released.
"""

import logging
from typing import List, Optional, Tuple

from metachess.errors import Forbidden, InvalidState, RulesRejected
from metachess.intents import MoveRequest
from metachess.messages import Outbound, to_both, to_side
from metachess.models import Color, GameOverReason, GameResult, Phase, Session
from metachess.settings import GameSettings

from . import clock as game_clock
from .deck import discard_and_redraw, play_card, playable_indices
from .rules import BoardMove, RulesOracle

logger = logging.getLogger(__name__)


class LifecycleHandler:

    def __init__(self, oracle: RulesOracle, settings: GameSettings):
        self.oracle = oracle
        self.settings = settings

    # ---- guards ----

    def _require_active(self, session: Session) -> None:
        if session.phase is Phase.WAITING:
            raise InvalidState('Waiting for an opponent to join')
        if session.phase is Phase.OVER:
            raise InvalidState('Game is already over')

    def _require_turn(self, session: Session, color: Color) -> None:
        self._require_active(session)
        if session.turn is not color:
            raise Forbidden('Not your turn')

    # ---- phase transitions ----

    def activate(self, session: Session, now: float) -> None:
        if session.phase is not Phase.WAITING:
            raise InvalidState('Game has already started')
        session.phase = Phase.ACTIVE
        session.last_activity_at = now
        logger.info(f"[game-start] game={session.id}")

    def finish(self, session: Session, reason: GameOverReason, winner: Color, now: float) -> List[Outbound]:
        if session.phase is Phase.OVER:
            return []
        session.phase = Phase.OVER
        session.result = GameResult(reason, winner)
        session.over_at = now
        logger.info(f"[game-over] game={session.id} reason={reason.value} winner={winner.value}")
        payload = dict(session.result.to_dict(), gameId=session.id, timeControl=session.clock.to_dict())
        return to_both(session, 'game_over', lambda color: payload)

    # ---- clock ----

    def _charge_action(self, session: Session, color: Color, now: float) -> bool:
        """Settle the acting side's clock; True when its flag fell."""
        if not session.clock.started:
            # The first committed action (always white's) starts the clock
            game_clock.start(session.clock, now)
            return False
        game_clock.debit(session.clock, color, now)
        return game_clock.flag_fallen(session.clock, color)

    def _flag_fall(self, session: Session, color: Color, now: float) -> List[Outbound]:
        session.clock.set_remaining(color, 0.0)
        logger.info(f"[time-out] game={session.id} player={color.value}")
        payload = {
            'gameId': session.id,
            'player': color.value,
            'winner': color.opposite.value,
            'timeControl': session.clock.to_dict(),
        }
        out = to_both(session, 'time_out', lambda c: payload)
        return out + self.finish(session, GameOverReason.TIME_OUT, color.opposite, now)

    def tick(self, session: Session, now: float) -> Tuple[List[Outbound], bool]:
        """One clock cycle. Returns the messages and whether ticking should go on."""
        if session.phase is not Phase.ACTIVE or not session.clock.started:
            return [], False
        color = session.turn
        game_clock.debit(session.clock, color, now)
        payload = {
            'gameId': session.id,
            'white': round(session.clock.white, 3),
            'black': round(session.clock.black, 3),
            'currentTurn': session.turn.value,
        }
        out = to_both(session, 'time_update', lambda c: payload)
        if game_clock.flag_fallen(session.clock, color):
            return out + self._flag_fall(session, color, now), False
        return out, True

    # ---- intents ----

    def _find_move(self, board: str, kind: str, request: MoveRequest) -> Optional[BoardMove]:
        candidates = [
            m for m in self.oracle.legal_moves(board)
            if m.from_square == request.from_square
            and m.to_square == request.to_square
            and m.piece == kind
        ]
        if request.promotion:
            candidates = [m for m in candidates if m.promotion == request.promotion]
        elif any(m.promotion for m in candidates):
            # Promotion left unspecified: queen
            candidates = [m for m in candidates if m.promotion == 'q']
        return candidates[0] if candidates else None

    def move(self, session: Session, color: Color, request: MoveRequest, now: float) -> List[Outbound]:
        self._require_turn(session, color)
        side = session.side(color)
        if not 0 <= request.hand_index < len(side.hand):
            raise InvalidState('Invalid card selection')
        kind = side.hand[request.hand_index]
        if request.piece_type and request.piece_type != kind:
            raise InvalidState('Selected card does not match the piece type')
        candidate = self._find_move(session.board, kind, request)
        if candidate is None:
            raise RulesRejected(f'Illegal move {request.from_square}{request.to_square} for card {kind}')
        outcome = self.oracle.apply_move(session.board, candidate)

        if self._charge_action(session, color, now):
            return self._flag_fall(session, color, now)

        session.board = outcome.board
        play_card(side, request.hand_index, self.settings.hand_size)
        session.turn = color.opposite
        game_clock.credit_increment(session.clock, color, self.settings.increment)
        session.last_activity_at = now
        logger.info(f"[move] game={session.id} player={color.value} move={candidate.uci} card={kind}")

        def payload(c: Color):
            return dict(session.view_for(c), move=candidate.to_dict(), isCheck=outcome.is_check)

        out = to_side(session, color.opposite, 'opponent_move', payload(color.opposite))
        out += to_side(session, color, 'hand_update', payload(color))
        if candidate.captures_king:
            return out + self.finish(session, GameOverReason.KING_CAPTURE, color, now)
        if outcome.is_checkmate:
            return out + self.finish(session, GameOverReason.CHECKMATE, color, now)
        return out

    def pass_turn(self, session: Session, color: Color, now: float) -> List[Outbound]:
        self._require_turn(session, color)
        side = session.side(color)
        if not side.deck:
            raise InvalidState('Cannot pass with an empty deck')
        board = self.oracle.with_turn(session.board, color.opposite)

        if self._charge_action(session, color, now):
            return self._flag_fall(session, color, now)

        discard_and_redraw(side, self.settings.hand_size)
        session.board = board
        session.turn = color.opposite
        game_clock.credit_increment(session.clock, color, self.settings.increment)
        session.last_activity_at = now
        logger.info(f"[pass] game={session.id} player={color.value} deck={len(side.deck)}")
        return to_both(
            session, 'pass_update',
            lambda c: dict(session.view_for(c), passingPlayer=color.value),
        )

    def check_valid_moves(self, session: Session, color: Color, now: float) -> List[Outbound]:
        """Redraw while no card in hand can move; lose once the deck cannot help."""
        self._require_turn(session, color)
        side = session.side(color)
        movable = {m.piece for m in self.oracle.legal_moves(session.board)}
        out: List[Outbound] = []
        redraws = 0
        while not playable_indices(side.hand, movable) and side.deck:
            discard_and_redraw(side, self.settings.hand_size)
            redraws += 1
            out += to_both(
                session, 'redraw_update',
                lambda c: dict(session.view_for(c), redrawingPlayer=color.value, needToCheckAgain=False),
            )
        if redraws:
            session.last_activity_at = now
            logger.info(f"[redraw] game={session.id} player={color.value} times={redraws} deck={len(side.deck)}")
        playable = playable_indices(side.hand, movable)
        if playable:
            return out + to_side(session, color, 'valid_moves', {
                'gameId': session.id,
                'player': color.value,
                'playable': playable,
                'redraws': redraws,
            })
        reason = GameOverReason.NO_CARDS if not side.hand else GameOverReason.NO_VALID_MOVES
        return out + self.finish(session, reason, color.opposite, now)

    def resign(self, session: Session, color: Color, now: float) -> List[Outbound]:
        self._require_active(session)
        return self.finish(session, GameOverReason.RESIGNATION, color.opposite, now)

    def offer_rematch(self, session: Session, color: Color) -> Tuple[List[Outbound], bool]:
        """Record an offer. True once both sides want a rematch."""
        if session.phase is not Phase.OVER:
            raise InvalidState('Rematch is only available after the game is over')
        session.rematch_offers[color] = True
        if all(session.rematch_offers.values()):
            return [], True
        logger.info(f"[rematch-offer] game={session.id} player={color.value}")
        return to_side(session, color.opposite, 'rematch_offer_received', {
            'gameId': session.id,
            'from': color.value,
        }), False
