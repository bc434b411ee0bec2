import threading
import time
from typing import FrozenSet, Set


class Scheduler:
    """Background timers for the coordinator, run as Socket.IO background tasks.

    - No-ops in TESTING mode (unless ENABLE_TIMERS_IN_TESTS)
    - One clock loop per session; a second start for the same game is skipped
    - Eviction runners carry the deadline they were armed with and only fire
      if the session still has that same deadline
    - A periodic sweep evicts waiting, finished and idle sessions
    """

    def __init__(self, app, socketio):
        self.app = app
        self.socketio = socketio
        self._clock_games: Set[str] = set()
        self._lock = threading.Lock()

    @property
    def enabled(self) -> bool:
        cfg = self.app.config
        return not cfg.get('TESTING') or bool(cfg.get('ENABLE_TIMERS_IN_TESTS'))

    def running_clocks(self) -> FrozenSet[str]:
        with self._lock:
            return frozenset(self._clock_games)

    def start_clock(self, coordinator, game_id: str) -> None:
        if not self.enabled:
            return
        with self._lock:
            if game_id in self._clock_games:
                self.app.logger.info(f"[timer-skip] game={game_id} clock already running")
                return
            self._clock_games.add(game_id)
        interval = coordinator.settings.tick_interval
        self.app.logger.info(f"[timer-set] game={game_id} clock interval={interval}s")

        def _worker(gid: str, delay: float):
            try:
                while True:
                    self.socketio.sleep(delay)
                    if not coordinator.tick(gid):
                        break
            except Exception:
                self.app.logger.exception(f"[timer-error] game={gid} clock loop crashed")
            finally:
                with self._lock:
                    self._clock_games.discard(gid)
                self.app.logger.info(f"[timer-stop] game={gid} clock")

        self.socketio.start_background_task(_worker, game_id, interval)

    def schedule_eviction(self, coordinator, game_id: str, deadline: float) -> None:
        if not self.enabled:
            return
        self.app.logger.info(f"[timer-set] game={game_id} evict_at={deadline}")

        def _runner(gid: str, expected_deadline: float):
            while True:
                sleep_for = expected_deadline - coordinator.now()
                if sleep_for <= 0:
                    break
                self.socketio.sleep(sleep_for)
            if coordinator.expire(gid, expected_deadline):
                self.app.logger.info(f"[timer-fire] game={gid} evicted after reconnect grace")
            else:
                self.app.logger.info(f"[timer-abort] game={gid} deadline re-armed, cancelled or already gone")

        self.socketio.start_background_task(_runner, game_id, deadline)

    def start_sweeper(self, coordinator) -> None:
        interval = coordinator.settings.sweep_interval
        if not self.enabled or interval <= 0:
            return

        def _sweeper(delay: float):
            while True:
                self.socketio.sleep(delay)
                started = time.time()
                try:
                    evicted = coordinator.sweep()
                except Exception:
                    self.app.logger.exception("[sweep-error] janitor pass failed")
                    continue
                if evicted:
                    self.app.logger.info(
                        f"[sweep] evicted={len(evicted)} took={time.time() - started:.3f}s"
                    )

        self.socketio.start_background_task(_sweeper, interval)
