"""Chess clock arithmetic with Fischer increment.

Pure functions over ``ClockState``; callers hold the session lock and pass in
the current time so a tick and a move can never both consume the same
interval.
"""

from metachess.models import ClockState, Color


def new_clock(initial_seconds: float) -> ClockState:
    return ClockState(white=float(initial_seconds), black=float(initial_seconds))


def start(clock: ClockState, now: float) -> None:
    clock.started = True
    clock.last_tick = now


def debit(clock: ClockState, color: Color, now: float) -> float:
    """Charge the time elapsed since the last tick to ``color``.

    Returns the remaining time, clamped at zero. A stopped clock is left
    untouched.
    """
    if not clock.started:
        return clock.remaining(color)
    elapsed = max(0.0, now - clock.last_tick)
    remaining = max(0.0, clock.remaining(color) - elapsed)
    clock.set_remaining(color, remaining)
    clock.last_tick = now
    return remaining


def credit_increment(clock: ClockState, color: Color, increment: float) -> None:
    clock.set_remaining(color, clock.remaining(color) + increment)


def flag_fallen(clock: ClockState, color: Color) -> bool:
    return clock.remaining(color) <= 0.0
