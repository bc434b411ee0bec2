"""Game domain services: deck, clock, rules oracle, turn lifecycle and timers.

This package contains pure(ish) domain logic that is driven by the
coordinator, keeping transport concerns separated from core game mechanics.
"""
