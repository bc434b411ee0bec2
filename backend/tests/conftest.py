import os
import sys
from random import Random

import pytest

# Ensure the backend root (containing the `metachess` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from metachess import create_app, socketio
from metachess.coordinator import GameCoordinator
from metachess.intents import CreateGame, JoinGame
from metachess.models import Color
from metachess.settings import GameSettings


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    ALLOWED_ORIGINS = '*'
    LOG_LEVEL = 'DEBUG'
    INITIAL_TIME_SEC = 180
    INCREMENT_SEC = 1
    CLOCK_TICK_SEC = 1
    HAND_SIZE = 5
    RECONNECT_GRACE_SEC = 60
    WAITING_TIMEOUT_SEC = 600
    REMATCH_GRACE_SEC = 120
    IDLE_TIMEOUT_SEC = 1800
    SWEEP_INTERVAL_SEC = 0


class FakeClock:
    """Stands in for time.monotonic so tests decide when time passes."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class Recorder:
    """Transport that keeps every (sid, event, payload) it is asked to send."""

    def __init__(self):
        self.sent = []

    def __call__(self, sid, event, payload):
        self.sent.append((sid, event, payload))

    def payloads(self, event=None, sid=None):
        return [
            payload for to, name, payload in self.sent
            if (event is None or name == event) and (sid is None or to == sid)
        ]

    def events(self, sid=None):
        return [name for to, name, _ in self.sent if sid is None or to == sid]

    def last(self, event, sid=None):
        found = self.payloads(event, sid)
        assert found, f'no {event} sent to {sid}'
        return found[-1]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def recorder():
    return Recorder()


@pytest.fixture()
def coordinator(clock, recorder):
    return GameCoordinator(
        settings=GameSettings(),
        transport=recorder,
        clock=clock,
        rng=Random(1234),
    )


class Match:
    """An active two-player game driven straight through the coordinator."""

    def __init__(self, coordinator, session):
        self.coordinator = coordinator
        self.session = session
        self.sids = {color: session.side(color).sid for color in Color}

    @property
    def id(self):
        return self.session.id

    def sid(self, color):
        return self.sids[color]

    def side(self, color):
        return self.session.side(color)

    def send(self, color, intent):
        self.coordinator.handle(self.sids[color], intent)


@pytest.fixture()
def match(coordinator, recorder):
    coordinator.handle('sid-alice', CreateGame(player_id='alice'))
    game_id = recorder.last('game_created', 'sid-alice')['gameId']
    coordinator.handle('sid-bob', JoinGame(game_id=game_id, player_id='bob'))
    session = coordinator.registry.lookup(game_id)
    recorder.clear()
    return Match(coordinator, session)


@pytest.fixture()
def flask_app(clock):
    application = create_app(TestConfig, clock=clock, rng=Random(99))
    with application.app_context():
        yield application


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_factory(flask_app):
    created = []

    def _make():
        test_client = socketio.test_client(
            flask_app,
            flask_test_client=flask_app.test_client(),
            namespace='/ws'
        )
        created.append(test_client)
        return test_client

    yield _make
    for test_client in created:
        try:
            if test_client.is_connected('/ws'):
                test_client.disconnect(namespace='/ws')
        except Exception:
            pass
