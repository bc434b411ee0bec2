from metachess.models import ClockState, Color, Phase
from metachess.services.games import clock as game_clock
from metachess.intents import Move, MoveRequest


def test_debit_ignored_before_start():
    clock = game_clock.new_clock(180)
    assert game_clock.debit(clock, Color.WHITE, 50.0) == 180.0
    assert clock.white == 180.0


def test_debit_clamps_at_zero():
    clock = ClockState(white=2.0, black=10.0)
    game_clock.start(clock, 100.0)
    assert game_clock.debit(clock, Color.WHITE, 105.0) == 0.0
    assert game_clock.flag_fallen(clock, Color.WHITE)
    assert clock.black == 10.0


def test_increment():
    clock = ClockState(white=10.0, black=10.0)
    game_clock.credit_increment(clock, Color.BLACK, 1.0)
    assert clock.black == 11.0


def test_flag_fall_on_tick(match, clock, recorder):
    """White at one second, 1.5 seconds pass: white loses on time."""
    session = match.session
    session.clock.white = 1.0
    session.clock.started = True
    session.clock.last_tick = clock.now
    clock.advance(1.5)

    assert match.coordinator.tick(match.id) is False
    assert session.clock.white == 0.0
    assert session.phase is Phase.OVER
    assert session.result.reason.value == 'time_out'
    assert session.result.winner is Color.BLACK

    time_out = recorder.last('time_out', match.sid(Color.BLACK))
    assert time_out['player'] == 'white'
    assert time_out['winner'] == 'black'
    game_over = recorder.last('game_over', match.sid(Color.WHITE))
    assert game_over['reason'] == 'time_out'

    recorder.clear()
    assert match.coordinator.tick(match.id) is False
    assert recorder.sent == []


def test_tick_before_first_move_does_nothing(match, clock, recorder):
    clock.advance(30)
    assert match.coordinator.tick(match.id) is False
    assert match.session.clock.white == 180.0
    assert recorder.sent == []


def test_tick_charges_side_to_move(match, clock, recorder):
    session = match.session
    session.clock.started = True
    session.clock.last_tick = clock.now
    clock.advance(3)
    assert match.coordinator.tick(match.id) is True
    assert session.clock.white == 177.0
    assert session.clock.black == 180.0
    update = recorder.last('time_update', match.sid(Color.WHITE))
    assert update['white'] == 177.0
    assert update['currentTurn'] == 'white'

    # Remaining time never goes up between moves
    clock.advance(2)
    match.coordinator.tick(match.id)
    assert session.clock.white == 175.0


def test_first_move_starts_clock_and_increments(match, clock):
    session = match.session
    match.side(Color.WHITE).hand = ['p', 'q', 'q', 'q', 'q']
    match.send(Color.WHITE, Move(match.id, None, MoveRequest('e2', 'e4', 0)))
    assert session.clock.started
    assert session.clock.white == 181.0

    clock.advance(5)
    match.side(Color.BLACK).hand = ['p', 'q', 'q', 'q', 'q']
    match.send(Color.BLACK, Move(match.id, None, MoveRequest('e7', 'e5', 0)))
    assert session.clock.black == 176.0
    assert session.clock.white == 181.0


def test_move_after_flag_fell_loses_on_time(match, clock, recorder):
    session = match.session
    session.clock.started = True
    session.clock.last_tick = clock.now
    session.clock.white = 2.0
    board = session.board
    clock.advance(3)
    match.side(Color.WHITE).hand = ['p', 'q', 'q', 'q', 'q']
    match.send(Color.WHITE, Move(match.id, None, MoveRequest('e2', 'e4', 0)))
    assert session.board == board
    assert session.result.reason.value == 'time_out'
    assert session.result.winner is Color.BLACK
    assert recorder.payloads('opponent_move') == []
