from dataclasses import dataclass


@dataclass(frozen=True)
class GameSettings:
    """Game timing knobs, copied out of the Flask config for the core."""
    initial_time: float = 180.0
    increment: float = 1.0
    tick_interval: float = 1.0
    hand_size: int = 5
    reconnect_grace: float = 60.0
    waiting_timeout: float = 600.0
    rematch_grace: float = 120.0
    idle_timeout: float = 1800.0
    sweep_interval: float = 10.0

    @classmethod
    def from_config(cls, config) -> 'GameSettings':
        return cls(
            initial_time=float(config.get('INITIAL_TIME_SEC', cls.initial_time)),
            increment=float(config.get('INCREMENT_SEC', cls.increment)),
            tick_interval=float(config.get('CLOCK_TICK_SEC', cls.tick_interval)),
            hand_size=int(config.get('HAND_SIZE', cls.hand_size)),
            reconnect_grace=float(config.get('RECONNECT_GRACE_SEC', cls.reconnect_grace)),
            waiting_timeout=float(config.get('WAITING_TIMEOUT_SEC', cls.waiting_timeout)),
            rematch_grace=float(config.get('REMATCH_GRACE_SEC', cls.rematch_grace)),
            idle_timeout=float(config.get('IDLE_TIMEOUT_SEC', cls.idle_timeout)),
            sweep_interval=float(config.get('SWEEP_INTERVAL_SEC', cls.sweep_interval)),
        )
