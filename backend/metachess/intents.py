"""Inbound intents.

Every message a client may send is one of the frozen dataclasses below,
identified by its ``IntentType``. ``parse_intent`` is the only place raw
payloads are inspected; everything past it works with typed intents.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, ClassVar, Dict, Optional, Union

from metachess.errors import MalformedMessage
from metachess.models import Color
from metachess.services.games.deck import card_kind


class IntentType(str, Enum):
    IDENTIFY_PLAYER = 'identify_player'
    CREATE_GAME = 'create_game'
    JOIN_GAME = 'join_game'
    RECONNECT = 'reconnect'
    MOVE = 'move'
    PASS = 'pass'
    CHECK_VALID_MOVES = 'check_valid_moves'
    RESIGN = 'resign'
    REMATCH_OFFER = 'rematch_offer'
    HEARTBEAT = 'heartbeat'
    CHECK_GAME = 'check_game'


@dataclass(frozen=True)
class IdentifyPlayer:
    player_id: str
    type: ClassVar[IntentType] = IntentType.IDENTIFY_PLAYER


@dataclass(frozen=True)
class CreateGame:
    player_id: Optional[str] = None
    type: ClassVar[IntentType] = IntentType.CREATE_GAME


@dataclass(frozen=True)
class JoinGame:
    game_id: str
    player_id: Optional[str] = None
    type: ClassVar[IntentType] = IntentType.JOIN_GAME


@dataclass(frozen=True)
class Reconnect:
    game_id: str
    player_id: str
    type: ClassVar[IntentType] = IntentType.RECONNECT


@dataclass(frozen=True)
class MoveRequest:
    from_square: str
    to_square: str
    hand_index: int
    promotion: Optional[str] = None
    piece_type: Optional[str] = None


@dataclass(frozen=True)
class Move:
    game_id: str
    player: Optional[Color]
    move: MoveRequest
    type: ClassVar[IntentType] = IntentType.MOVE


@dataclass(frozen=True)
class Pass:
    game_id: str
    player: Optional[Color] = None
    type: ClassVar[IntentType] = IntentType.PASS


@dataclass(frozen=True)
class CheckValidMoves:
    game_id: str
    player: Optional[Color] = None
    type: ClassVar[IntentType] = IntentType.CHECK_VALID_MOVES


@dataclass(frozen=True)
class Resign:
    game_id: str
    player: Optional[Color] = None
    type: ClassVar[IntentType] = IntentType.RESIGN


@dataclass(frozen=True)
class RematchOffer:
    game_id: str
    player: Optional[Color] = None
    type: ClassVar[IntentType] = IntentType.REMATCH_OFFER


@dataclass(frozen=True)
class Heartbeat:
    game_id: Optional[str] = None
    type: ClassVar[IntentType] = IntentType.HEARTBEAT


@dataclass(frozen=True)
class CheckGame:
    game_id: str
    type: ClassVar[IntentType] = IntentType.CHECK_GAME


Intent = Union[
    IdentifyPlayer, CreateGame, JoinGame, Reconnect, Move, Pass,
    CheckValidMoves, Resign, RematchOffer, Heartbeat, CheckGame,
]

_SQUARE = re.compile(r'^[a-h][1-8]$')


def _optional_str(data: Dict[str, Any], key: str) -> Optional[str]:
    value = data.get(key)
    if value is None or value == '':
        return None
    if not isinstance(value, str):
        raise MalformedMessage(f'{key} must be a string')
    return value.strip()


def _require_str(data: Dict[str, Any], key: str) -> str:
    value = _optional_str(data, key)
    if not value:
        raise MalformedMessage(f'{key} is required')
    return value


def _optional_color(data: Dict[str, Any], key: str = 'player') -> Optional[Color]:
    value = _optional_str(data, key)
    if value is None:
        return None
    try:
        return Color(value.lower())
    except ValueError:
        raise MalformedMessage(f'{key} must be white or black')


def _square(data: Dict[str, Any], key: str) -> str:
    value = _require_str(data, key).lower()
    if not _SQUARE.match(value):
        raise MalformedMessage(f'{key} is not a board square')
    return value


def _parse_move_request(data: Dict[str, Any]) -> MoveRequest:
    raw = data.get('move')
    if not isinstance(raw, dict):
        raise MalformedMessage('move is required')
    hand_index = raw.get('handIndex')
    if isinstance(hand_index, bool) or not isinstance(hand_index, int):
        raise MalformedMessage('move.handIndex must be an integer')
    promotion = _optional_str(raw, 'promotion')
    if promotion is not None:
        promotion = promotion.lower()
        if promotion not in ('q', 'r', 'b', 'n'):
            raise MalformedMessage(f'invalid promotion piece: {promotion}')
    piece_type = _optional_str(raw, 'pieceType')
    if piece_type is not None:
        try:
            piece_type = card_kind(piece_type)
        except ValueError as exc:
            raise MalformedMessage(str(exc))
    return MoveRequest(
        from_square=_square(raw, 'from'),
        to_square=_square(raw, 'to'),
        hand_index=hand_index,
        promotion=promotion,
        piece_type=piece_type,
    )


_PARSERS: Dict[IntentType, Callable[[Dict[str, Any]], Any]] = {
    IntentType.IDENTIFY_PLAYER: lambda d: IdentifyPlayer(player_id=_require_str(d, 'playerId')),
    IntentType.CREATE_GAME: lambda d: CreateGame(player_id=_optional_str(d, 'playerId')),
    IntentType.JOIN_GAME: lambda d: JoinGame(
        game_id=_require_str(d, 'gameId'), player_id=_optional_str(d, 'playerId')),
    IntentType.RECONNECT: lambda d: Reconnect(
        game_id=_require_str(d, 'gameId'), player_id=_require_str(d, 'playerId')),
    IntentType.MOVE: lambda d: Move(
        game_id=_require_str(d, 'gameId'), player=_optional_color(d), move=_parse_move_request(d)),
    IntentType.PASS: lambda d: Pass(game_id=_require_str(d, 'gameId'), player=_optional_color(d)),
    IntentType.CHECK_VALID_MOVES: lambda d: CheckValidMoves(
        game_id=_require_str(d, 'gameId'), player=_optional_color(d)),
    IntentType.RESIGN: lambda d: Resign(game_id=_require_str(d, 'gameId'), player=_optional_color(d)),
    IntentType.REMATCH_OFFER: lambda d: RematchOffer(
        game_id=_require_str(d, 'gameId'), player=_optional_color(d)),
    IntentType.HEARTBEAT: lambda d: Heartbeat(game_id=_optional_str(d, 'gameId')),
    IntentType.CHECK_GAME: lambda d: CheckGame(game_id=_require_str(d, 'gameId')),
}


def parse_intent(kind: Optional[str], data: Any) -> Intent:
    """Turn a raw ``{type, ...}`` payload into a typed intent.

    Raises MalformedMessage for unknown types or missing/invalid fields.
    """
    try:
        intent_type = IntentType(kind)
    except ValueError:
        raise MalformedMessage(f'Unknown message type: {kind}')
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise MalformedMessage('Message must be an object')
    return _PARSERS[intent_type](data)
