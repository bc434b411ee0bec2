"""Rules Oracle: chess legality behind a small black-box interface.

The core only relies on ``legal_moves(board)`` and
``apply_move(board, move) -> (board', is_check, is_checkmate)``. Boards are
opaque values owned by the oracle; the default implementation uses FEN
strings and python-chess.

MetaChess leaves king safety to the players: a move may leave or put one's own
king in check, and the opposing king may be captured. Moves are therefore
generated pseudo-legally.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import NamedTuple, Optional, Set

import chess

from metachess.models import Color


@dataclass(frozen=True)
class BoardMove:
    from_square: str
    to_square: str
    promotion: Optional[str] = None
    # Kind of the moving piece and of the piece standing on the target square
    piece: Optional[str] = None
    captured: Optional[str] = None

    @property
    def uci(self) -> str:
        return f"{self.from_square}{self.to_square}{self.promotion or ''}"

    @property
    def captures_king(self) -> bool:
        return self.captured == 'k'

    def to_dict(self):
        return {
            'from': self.from_square,
            'to': self.to_square,
            'promotion': self.promotion,
            'pieceType': self.piece,
        }


class MoveOutcome(NamedTuple):
    board: str
    is_check: bool
    is_checkmate: bool


class RulesOracle(ABC):

    @abstractmethod
    def initial_board(self) -> str:
        ...

    @abstractmethod
    def legal_moves(self, board: str) -> Set[BoardMove]:
        """All moves available to the side to move on ``board``."""

    @abstractmethod
    def apply_move(self, board: str, move: BoardMove) -> MoveOutcome:
        ...

    @abstractmethod
    def with_turn(self, board: str, color: Color) -> str:
        """Same position with ``color`` to move (used when a turn is passed)."""


class ChessRulesOracle(RulesOracle):

    def initial_board(self) -> str:
        return chess.STARTING_FEN

    def legal_moves(self, board: str) -> Set[BoardMove]:
        position = chess.Board(board)
        moves = set()
        for move in position.pseudo_legal_moves:
            piece = position.piece_at(move.from_square)
            target = position.piece_at(move.to_square)
            moves.add(BoardMove(
                from_square=chess.square_name(move.from_square),
                to_square=chess.square_name(move.to_square),
                promotion=chess.piece_symbol(move.promotion) if move.promotion else None,
                piece=piece.symbol().lower() if piece else None,
                captured=target.symbol().lower() if target else None,
            ))
        return moves

    def apply_move(self, board: str, move: BoardMove) -> MoveOutcome:
        position = chess.Board(board)
        position.push(chess.Move.from_uci(move.uci))
        return MoveOutcome(position.fen(), position.is_check(), position.is_checkmate())

    def with_turn(self, board: str, color: Color) -> str:
        position = chess.Board(board)
        position.turn = chess.WHITE if color is Color.WHITE else chess.BLACK
        position.ep_square = None
        return position.fen()
