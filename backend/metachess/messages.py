from typing import Any, Callable, Dict, List, NamedTuple

from metachess.models import Color, Session


class Outbound(NamedTuple):
    sid: str
    event: str
    payload: Dict[str, Any]


def to_sid(sid, event: str, payload: Dict[str, Any]) -> List[Outbound]:
    if sid is None:
        return []
    return [Outbound(sid, event, payload)]


def to_side(session: Session, color: Color, event: str, payload: Dict[str, Any]) -> List[Outbound]:
    return to_sid(session.side(color).sid, event, payload)


def to_both(session: Session, event: str, payload_for: Callable[[Color], Dict[str, Any]]) -> List[Outbound]:
    """One message per connected side; ``payload_for`` builds each side's copy."""
    out = []
    for color in (Color.WHITE, Color.BLACK):
        out.extend(to_side(session, color, event, payload_for(color)))
    return out
