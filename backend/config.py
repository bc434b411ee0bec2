import os

class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    ALLOWED_ORIGINS = os.environ.get('ALLOWED_ORIGINS', 'http://localhost:8080,http://127.0.0.1:8080').split(',')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    # Time control (seconds): 3 minutes + 1 second increment
    INITIAL_TIME_SEC = float(os.environ.get('INITIAL_TIME_SEC', '180'))
    INCREMENT_SEC = float(os.environ.get('INCREMENT_SEC', '1'))
    CLOCK_TICK_SEC = float(os.environ.get('CLOCK_TICK_SEC', '1'))
    HAND_SIZE = int(os.environ.get('HAND_SIZE', '5'))
    # Eviction windows (seconds)
    RECONNECT_GRACE_SEC = float(os.environ.get('RECONNECT_GRACE_SEC', '60'))
    WAITING_TIMEOUT_SEC = float(os.environ.get('WAITING_TIMEOUT_SEC', '600'))
    REMATCH_GRACE_SEC = float(os.environ.get('REMATCH_GRACE_SEC', '120'))
    IDLE_TIMEOUT_SEC = float(os.environ.get('IDLE_TIMEOUT_SEC', '1800'))
    # How often the janitor looks for expired sessions. 0 disables.
    SWEEP_INTERVAL_SEC = float(os.environ.get('SWEEP_INTERVAL_SEC', '10'))
    # Background timers are off under TESTING unless this is set
    ENABLE_TIMERS_IN_TESTS = False
