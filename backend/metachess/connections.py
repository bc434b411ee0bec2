"""Connection manager: which live connection sits in which (session, color) seat.

Players are identified by a durable ``playerId`` kept client-side, so a new
connection can take its old seat back after a drop. A seat that loses its
connection is held for ``reconnect_grace`` seconds; the session's
``eviction_deadline`` is the earliest such expiry among empty seats.
"""

import logging
import threading
import uuid
from dataclasses import dataclass
from typing import Dict, List, NamedTuple, Optional, Tuple

from metachess.errors import Forbidden, SessionNotFound
from metachess.messages import Outbound, to_side, to_sid
from metachess.models import Color, Phase, Session, SideState
from metachess.registry import SessionRegistry
from metachess.services.games.lifecycle import LifecycleHandler
from metachess.settings import GameSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Binding:
    game_id: str
    color: Color


class Vacated(NamedTuple):
    """A seat left empty in another game, with that game's eviction deadline."""
    game_id: str
    deadline: Optional[float]


class ConnectionManager:

    def __init__(self, registry: SessionRegistry, lifecycle: LifecycleHandler, settings: GameSettings):
        self.registry = registry
        self.lifecycle = lifecycle
        self.settings = settings
        self._lock = threading.Lock()
        self._bindings: Dict[str, Binding] = {}
        self._players: Dict[str, str] = {}

    # ---- bookkeeping ----

    def bind(self, sid: str, game_id: str, color: Color) -> None:
        with self._lock:
            self._bindings[sid] = Binding(game_id, color)

    def unbind(self, sid: str, game_id: Optional[str] = None) -> Optional[Binding]:
        with self._lock:
            binding = self._bindings.get(sid)
            if binding is None or (game_id is not None and binding.game_id != game_id):
                return None
            return self._bindings.pop(sid)

    def binding(self, sid: str) -> Optional[Binding]:
        with self._lock:
            return self._bindings.get(sid)

    def player_id_for(self, sid: str) -> Optional[str]:
        with self._lock:
            return self._players.get(sid)

    def require_binding(self, sid: str, game_id: str, claimed: Optional[Color] = None) -> Binding:
        binding = self.binding(sid)
        if binding is None or binding.game_id != game_id:
            if self.registry.get(game_id) is None:
                raise SessionNotFound(game_id)
            raise Forbidden('You are not a player in this game')
        if claimed is not None and claimed is not binding.color:
            raise Forbidden('Player does not match this connection')
        return binding

    def _player_for(self, sid: str, player_id: Optional[str]) -> str:
        return player_id or self.player_id_for(sid) or f"player_{uuid.uuid4().hex[:12]}"

    def _remember_player(self, sid: str, player_id: str) -> None:
        with self._lock:
            self._players[sid] = player_id

    def _check_previous(self, sid: str) -> None:
        """Refuse a second game while this connection's current one is still running."""
        binding = self.binding(sid)
        if binding is None:
            return
        session = self.registry.get(binding.game_id)
        if session is None:
            return
        with session.lock:
            if not session.evicted and session.phase is not Phase.OVER:
                raise Forbidden('Already playing in another game')

    def _vacate_previous(self, sid: str, now: float) -> Tuple[List[Outbound], Optional[Vacated]]:
        """Leave the finished game ``sid`` sits in; the opponent sees a disconnect."""
        binding = self.unbind(sid)
        if binding is None:
            return [], None
        session = self.registry.get(binding.game_id)
        if session is None:
            return [], None
        with session.lock:
            side = session.side(binding.color)
            if session.evicted or side.sid != sid:
                return [], None
            out, deadline = self._drop_seat(session, side, now)
        return out, Vacated(session.id, deadline)

    def _drop_seat(self, session: Session, side: SideState, now: float) -> Tuple[List[Outbound], Optional[float]]:
        side.sid = None
        side.disconnected_at = now
        deadline = self._rearm(session)
        logger.info(
            f"[disconnect] game={session.id} player={side.player_id} color={side.color.value} evict_at={deadline}"
        )
        out = to_side(session, side.color.opposite, 'opponent_disconnected', {
            'gameId': session.id,
            'player': side.color.value,
            'graceSeconds': self.settings.reconnect_grace,
        })
        return out, deadline

    def _rearm(self, session: Session) -> Optional[float]:
        deadlines = [
            side.disconnected_at + self.settings.reconnect_grace
            for side in session.sides.values()
            if side.player_id is not None and side.sid is None and side.disconnected_at is not None
        ]
        session.eviction_deadline = min(deadlines) if deadlines else None
        return session.eviction_deadline

    # ---- identity ----

    def identify(self, sid: str, player_id: str) -> List[Outbound]:
        self._remember_player(sid, player_id)
        logger.debug(f"[identify] sid={sid} player={player_id}")
        return to_sid(sid, 'player_identified', {'playerId': player_id})

    # ---- create / join / reconnect ----

    def create_game(self, sid: str, player_id: Optional[str], now: float) -> Tuple[List[Outbound], Optional[Vacated]]:
        self._check_previous(sid)
        player_id = self._player_for(sid, player_id)
        out, vacated = self._vacate_previous(sid, now)
        self._remember_player(sid, player_id)
        session = self.registry.create(player_id, sid, now)
        with session.lock:
            color = session.creator_color
            self.bind(sid, session.id, color)
            out += to_sid(sid, 'game_created', dict(session.view_for(color), playerId=player_id))
        return out, vacated

    def join_game(
        self, sid: str, game_id: str, player_id: Optional[str], now: float
    ) -> Tuple[List[Outbound], Optional[Vacated]]:
        self._check_previous(sid)
        player_id = self._player_for(sid, player_id)
        session = self.registry.lookup(game_id)
        with session.lock:
            self.registry.seat_for(session, player_id)
            # Only a join that is going to succeed gives up the old seat
            out, vacated = self._vacate_previous(sid, now)
            color = self.registry.join(game_id, player_id, sid)
            self.lifecycle.activate(session, now)
            self.bind(sid, game_id, color)
            self._remember_player(sid, player_id)
            out += to_sid(sid, 'game_joined', dict(session.view_for(color), playerId=player_id))
            out += to_side(session, color.opposite, 'opponent_joined', {
                'gameId': game_id,
                'opponentColor': color.value,
                'creatorColor': color.opposite.value,
                'currentTurn': session.turn.value,
                'timeControl': session.clock.to_dict(),
            })
        return out, vacated

    def reconnect(self, sid: str, game_id: str, player_id: str, now: float) -> Tuple[List[Outbound], Optional[float]]:
        session = self.registry.lookup(game_id)
        with session.lock:
            if session.evicted:
                raise SessionNotFound(game_id)
            side = session.side_for_player(player_id)
            if side is None:
                raise Forbidden('Player is not part of this game')
            if side.sid == sid:
                # Same connection asking again: same answer, nothing else changes
                return to_sid(sid, 'reconnection_successful', session.view_for(side.color)), session.eviction_deadline
            if side.sid is not None:
                raise Forbidden('Player slot is already connected')
            existing = self.binding(sid)
            if existing is not None and existing.game_id != game_id:
                raise Forbidden('Already playing in another game')

            side.sid = sid
            side.disconnected_at = None
            deadline = self._rearm(session)
            self.bind(sid, game_id, side.color)
            self._remember_player(sid, player_id)
            logger.info(f"[reconnect] game={game_id} player={player_id} color={side.color.value}")
            out = to_sid(sid, 'reconnection_successful', session.view_for(side.color))
            out += to_side(session, side.color.opposite, 'opponent_reconnected', {
                'gameId': game_id,
                'player': side.color.value,
            })
            return out, deadline

    # ---- disconnect ----

    def disconnect(self, sid: str, now: float) -> Tuple[List[Outbound], Optional[str], Optional[float]]:
        """Free the seat held by ``sid``; returns messages and the armed eviction deadline."""
        with self._lock:
            self._players.pop(sid, None)
        binding = self.unbind(sid)
        if binding is None:
            return [], None, None
        session = self.registry.get(binding.game_id)
        if session is None:
            return [], None, None
        with session.lock:
            if session.evicted:
                return [], None, None
            side = session.side(binding.color)
            if side.sid != sid:
                return [], None, None
            out, deadline = self._drop_seat(session, side, now)
            return out, session.id, deadline

    def release_game(self, session: Session) -> List[str]:
        """Drop every binding that still points at ``session``; returns those sids."""
        released = []
        for side in session.sides.values():
            if side.sid is not None and self.unbind(side.sid, session.id) is not None:
                released.append(side.sid)
        return released
