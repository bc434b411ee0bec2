"""Session registry: the single owner of every live session.

The registry lock only guards the id -> session table. Seat assignment runs
under the session's own lock, so two players racing to join the same waiting
game are serialized and exactly one of them gets the seat.
"""

import logging
import threading
import uuid
from random import Random
from typing import Dict, List, Optional

from metachess.errors import Forbidden, SessionFull, SessionNotFound
from metachess.models import Color, Phase, Session, SideState
from metachess.services.games import clock as game_clock
from metachess.services.games.deck import build_deck, deal
from metachess.services.games.rules import RulesOracle
from metachess.settings import GameSettings

logger = logging.getLogger(__name__)


class SessionRegistry:

    def __init__(self, oracle: RulesOracle, settings: GameSettings, rng: Optional[Random] = None):
        self.oracle = oracle
        self.settings = settings
        self._rng = rng or Random()
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def _new_session(self, now: float) -> Session:
        sides = {}
        for color in (Color.WHITE, Color.BLACK):
            side = SideState(color=color)
            deal(side, build_deck(self._rng), self.settings.hand_size)
            sides[color] = side
        return Session(
            id=str(uuid.uuid4()),
            board=self.oracle.initial_board(),
            sides=sides,
            clock=game_clock.new_clock(self.settings.initial_time),
            created_at=now,
            last_activity_at=now,
        )

    def _insert(self, session: Session) -> None:
        with self._lock:
            self._sessions[session.id] = session

    def create(self, player_id: str, sid: str, now: float) -> Session:
        """New waiting session with the creator seated on a coin-flip color."""
        color = Color.WHITE if self._rng.random() < 0.5 else Color.BLACK
        session = self._new_session(now)
        seat = session.side(color)
        seat.player_id = player_id
        seat.sid = sid
        session.creator_color = color
        self._insert(session)
        logger.info(f"[session-create] game={session.id} player={player_id} color={color.value}")
        return session

    def seat_for(self, session: Session, player_id: str) -> Color:
        """Color ``player_id`` would get by joining ``session``; raises if it cannot join.

        Caller holds ``session.lock``. Nothing is changed.
        """
        if session.evicted:
            raise SessionNotFound(session.id)
        color = session.open_color()
        if session.phase is not Phase.WAITING or color is None:
            raise SessionFull(session.id)
        if session.side_for_player(player_id) is not None:
            raise Forbidden('You are already in this game')
        return color

    def join(self, game_id: str, player_id: str, sid: str) -> Color:
        session = self.lookup(game_id)
        with session.lock:
            color = self.seat_for(session, player_id)
            seat = session.side(color)
            seat.player_id = player_id
            seat.sid = sid
        logger.info(f"[session-join] game={game_id} player={player_id} color={color.value}")
        return color

    def create_rematch(self, previous: Session, now: float) -> Session:
        """Fresh session for the same two players with colors swapped."""
        session = self._new_session(now)
        for color, old_side in previous.sides.items():
            seat = session.side(color.opposite)
            seat.player_id = old_side.player_id
            seat.sid = old_side.sid
        session.previous_id = previous.id
        self._insert(session)
        logger.info(f"[session-rematch] game={session.id} previous={previous.id}")
        return session

    def get(self, game_id: Optional[str]) -> Optional[Session]:
        if not game_id:
            return None
        with self._lock:
            return self._sessions.get(game_id)

    def lookup(self, game_id: Optional[str]) -> Session:
        session = self.get(game_id)
        if session is None:
            raise SessionNotFound(game_id)
        return session

    def evict(self, game_id: str) -> Optional[Session]:
        """Remove a session for good. Returns it, or None if already gone."""
        session = self.get(game_id)
        if session is None:
            return None
        with session.lock:
            with self._lock:
                if self._sessions.get(game_id) is not session:
                    return None
                del self._sessions[game_id]
            session.evicted = True
            session.eviction_deadline = None
        return session

    def sessions(self) -> List[Session]:
        with self._lock:
            return list(self._sessions.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, game_id) -> bool:
        return self.get(game_id) is not None
