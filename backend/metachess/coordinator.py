"""GameCoordinator: one instance per app, owning registry, connections and rules.

Socket handlers hand it typed intents together with the connection id; it
resolves the session, applies the intent under the session lock and delivers
the resulting messages after the lock is released. Timers (clock ticks,
eviction deadlines, the janitor sweep) call back into ``tick``, ``expire`` and
``sweep``.
"""

import logging
import time
from random import Random
from typing import Callable, Dict, List, Optional

from metachess import intents
from metachess.connections import ConnectionManager
from metachess.errors import SessionNotFound, TransportFailure
from metachess.intents import IntentType
from metachess.messages import Outbound, to_sid
from metachess.models import Color, Phase, Session
from metachess.registry import SessionRegistry
from metachess.services.games.lifecycle import LifecycleHandler
from metachess.services.games.rules import ChessRulesOracle, RulesOracle
from metachess.settings import GameSettings

logger = logging.getLogger(__name__)

Transport = Callable[[str, str, dict], None]


class GameCoordinator:

    def __init__(
        self,
        settings: Optional[GameSettings] = None,
        oracle: Optional[RulesOracle] = None,
        transport: Optional[Transport] = None,
        clock: Optional[Callable[[], float]] = None,
        rng: Optional[Random] = None,
        scheduler=None,
    ):
        self.settings = settings or GameSettings()
        self.oracle = oracle or ChessRulesOracle()
        self.now = clock or time.monotonic
        self.transport = transport
        self.scheduler = scheduler
        self.registry = SessionRegistry(self.oracle, self.settings, rng)
        self.lifecycle = LifecycleHandler(self.oracle, self.settings)
        self.connections = ConnectionManager(self.registry, self.lifecycle, self.settings)
        self.handlers: Dict[IntentType, Callable[[str, object], None]] = {
            IntentType.IDENTIFY_PLAYER: self._identify_player,
            IntentType.CREATE_GAME: self._create_game,
            IntentType.JOIN_GAME: self._join_game,
            IntentType.RECONNECT: self._reconnect,
            IntentType.MOVE: self._move,
            IntentType.PASS: self._pass,
            IntentType.CHECK_VALID_MOVES: self._check_valid_moves,
            IntentType.RESIGN: self._resign,
            IntentType.REMATCH_OFFER: self._rematch_offer,
            IntentType.HEARTBEAT: self._heartbeat,
            IntentType.CHECK_GAME: self._check_game,
        }

    # ---- delivery ----

    def _deliver(self, messages: List[Outbound]) -> None:
        if self.transport is None:
            return
        for message in messages:
            payload = dict(message.payload, type=message.event)
            try:
                self.transport(message.sid, message.event, payload)
            except TransportFailure as exc:
                logger.warning(f"[send-failed] sid={message.sid} event={message.event} error={exc.message}")

    # ---- entry points ----

    def handle(self, sid: str, intent) -> None:
        """Apply one inbound intent for connection ``sid``.

        GameError subclasses propagate to the caller, which answers the
        offending connection; nothing has been committed at that point.
        """
        self.handlers[intent.type](sid, intent)

    def disconnect(self, sid: str) -> None:
        out, game_id, deadline = self.connections.disconnect(sid, self.now())
        self._deliver(out)
        if game_id and deadline is not None and self.scheduler:
            self.scheduler.schedule_eviction(self, game_id, deadline)

    # ---- lobby ----

    def _identify_player(self, sid: str, intent: intents.IdentifyPlayer) -> None:
        self._deliver(self.connections.identify(sid, intent.player_id))

    def _seated(self, out: List[Outbound], vacated) -> None:
        self._deliver(out)
        if vacated is not None and vacated.deadline is not None and self.scheduler:
            self.scheduler.schedule_eviction(self, vacated.game_id, vacated.deadline)

    def _create_game(self, sid: str, intent: intents.CreateGame) -> None:
        self._seated(*self.connections.create_game(sid, intent.player_id, self.now()))

    def _join_game(self, sid: str, intent: intents.JoinGame) -> None:
        self._seated(*self.connections.join_game(sid, intent.game_id, intent.player_id, self.now()))

    def _reconnect(self, sid: str, intent: intents.Reconnect) -> None:
        out, deadline = self.connections.reconnect(sid, intent.game_id, intent.player_id, self.now())
        self._deliver(out)
        if deadline is not None and self.scheduler:
            self.scheduler.schedule_eviction(self, intent.game_id, deadline)

    # ---- in-game ----

    def _apply(self, sid: str, game_id: str, claimed: Optional[Color], action) -> None:
        binding = self.connections.require_binding(sid, game_id, claimed)
        session = self.registry.lookup(game_id)
        with session.lock:
            if session.evicted:
                raise SessionNotFound(game_id)
            was_started = session.clock.started
            out = action(session, binding.color, self.now())
            clock_started = session.clock.started and not was_started and session.phase is Phase.ACTIVE
        self._deliver(out)
        if clock_started and self.scheduler:
            self.scheduler.start_clock(self, game_id)

    def _move(self, sid: str, intent: intents.Move) -> None:
        self._apply(sid, intent.game_id, intent.player,
                    lambda session, color, now: self.lifecycle.move(session, color, intent.move, now))

    def _pass(self, sid: str, intent: intents.Pass) -> None:
        self._apply(sid, intent.game_id, intent.player, self.lifecycle.pass_turn)

    def _check_valid_moves(self, sid: str, intent: intents.CheckValidMoves) -> None:
        self._apply(sid, intent.game_id, intent.player, self.lifecycle.check_valid_moves)

    def _resign(self, sid: str, intent: intents.Resign) -> None:
        self._apply(sid, intent.game_id, intent.player, self.lifecycle.resign)

    # ---- rematch ----

    def _rematch_failed(self, sid: str, game_id: str, message: str) -> None:
        self._deliver(to_sid(sid, 'rematch_failed', {'gameId': game_id, 'message': message}))

    def _rematch_offer(self, sid: str, intent: intents.RematchOffer) -> None:
        session = self.registry.get(intent.game_id)
        if session is None:
            self._rematch_failed(sid, intent.game_id, 'Game no longer exists')
            return
        binding = self.connections.require_binding(sid, intent.game_id, intent.player)
        now = self.now()
        with session.lock:
            if session.evicted:
                out, ready = to_sid(sid, 'rematch_failed', {
                    'gameId': intent.game_id,
                    'message': 'Game no longer exists',
                }), False
            else:
                out, ready = self.lifecycle.offer_rematch(session, binding.color)
            if ready and not all(side.connected for side in session.sides.values()):
                session.rematch_offers[binding.color.opposite] = False
                out = to_sid(sid, 'rematch_failed', {
                    'gameId': session.id,
                    'message': 'Opponent is not connected',
                })
                ready = False
            if ready:
                rematch = self.registry.create_rematch(session, now)
                with rematch.lock:
                    self.lifecycle.activate(rematch, now)
                    for color, side in rematch.sides.items():
                        self.connections.bind(side.sid, rematch.id, color)
                    out = [
                        Outbound(side.sid, 'rematch_start', dict(
                            rematch.view_for(color),
                            newGameId=rematch.id,
                            previousGameId=session.id,
                        ))
                        for color, side in rematch.sides.items()
                    ]
                self.registry.evict(session.id)
                logger.info(f"[evict] game={session.id} reason=rematch")
        self._deliver(out)

    # ---- misc ----

    def _heartbeat(self, sid: str, intent: intents.Heartbeat) -> None:
        session = self.registry.get(intent.game_id)
        if session is not None:
            logger.debug(f"[heartbeat] game={intent.game_id} sid={sid} phase={session.phase.value}")
        self._deliver(to_sid(sid, 'heartbeat_ack', {
            'gameId': intent.game_id,
            'exists': session is not None,
        }))

    def _check_game(self, sid: str, intent: intents.CheckGame) -> None:
        self._deliver(to_sid(sid, 'game_check', self.check_game(intent.game_id)))

    def check_game(self, game_id: str) -> dict:
        session = self.registry.get(game_id)
        if session is None:
            return {'gameId': game_id, 'exists': False}
        with session.lock:
            return {
                'gameId': game_id,
                'exists': not session.evicted,
                'phase': session.phase.value,
                'waitingForOpponent': session.phase is Phase.WAITING,
            }

    # ---- timers ----

    def tick(self, game_id: str) -> bool:
        """One clock cycle for ``game_id``; False once ticking should stop."""
        session = self.registry.get(game_id)
        if session is None:
            return False
        with session.lock:
            if session.evicted:
                return False
            out, running = self.lifecycle.tick(session, self.now())
        self._deliver(out)
        return running

    def _evict_locked(self, session: Session, reason: str) -> Optional[List[Outbound]]:
        """Evict ``session`` while its lock is held; returns the farewells to send."""
        if self.registry.evict(session.id) is None:
            return None
        released = self.connections.release_game(session)
        logger.info(f"[evict] game={session.id} reason={reason} phase={session.phase.value}")
        return [
            Outbound(sid, 'session_ended', {'gameId': session.id, 'reason': reason})
            for sid in released
        ]

    def evict(self, game_id: str, reason: str) -> bool:
        session = self.registry.get(game_id)
        if session is None:
            return False
        with session.lock:
            out = self._evict_locked(session, reason)
        if out is None:
            return False
        self._deliver(out)
        return True

    def expire(self, game_id: str, deadline: float) -> bool:
        """Fire a reconnection deadline armed earlier; ignored if it was re-armed or cancelled."""
        session = self.registry.get(game_id)
        if session is None:
            return False
        # Check and evict under one hold of the lock: no reconnect in between
        with session.lock:
            if session.evicted or session.eviction_deadline is None or session.eviction_deadline != deadline:
                return False
            if self.now() < deadline:
                return False
            out = self._evict_locked(session, 'disconnect')
        if out is None:
            return False
        self._deliver(out)
        return True

    def _expiry_reason(self, session: Session, now: float) -> Optional[str]:
        if session.eviction_deadline is not None and now >= session.eviction_deadline:
            return 'disconnect'
        if session.phase is Phase.WAITING and now - session.created_at > self.settings.waiting_timeout:
            return 'waiting_timeout'
        if session.phase is Phase.OVER and session.over_at is not None \
                and now - session.over_at > self.settings.rematch_grace:
            return 'rematch_grace'
        if session.phase is Phase.ACTIVE and now - session.last_activity_at > self.settings.idle_timeout:
            return 'idle'
        return None

    def sweep(self) -> List[str]:
        """Evict every session past one of its timeouts; returns the evicted ids."""
        now = self.now()
        evicted = []
        for session in self.registry.sessions():
            out = None
            with session.lock:
                reason = None if session.evicted else self._expiry_reason(session, now)
                if reason:
                    out = self._evict_locked(session, reason)
            if out is not None:
                self._deliver(out)
                evicted.append(session.id)
        return evicted

    def stats(self) -> dict:
        counts = {phase.value: 0 for phase in Phase}
        for session in self.registry.sessions():
            counts[session.phase.value] += 1
        return {'sessions': sum(counts.values()), 'byPhase': counts}
