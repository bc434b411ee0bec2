import logging

from flask import Flask
from flask_cors import CORS
from flask_socketio import SocketIO
from config import Config

socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, oracle=None, clock=None, rng=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    flask_app.logger.setLevel(getattr(logging, str(flask_app.config.get('LOG_LEVEL', 'INFO')).upper(), logging.INFO))

    allowed_origins = flask_app.config.get('ALLOWED_ORIGINS') or '*'
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Import and register blueprints here
    from metachess.routes import main
    flask_app.register_blueprint(main)

    from metachess.api.games import games
    flask_app.register_blueprint(games, url_prefix='/api/games')

    # One coordinator per app; handlers reach it through current_app.extensions
    from metachess.coordinator import GameCoordinator
    from metachess.services.games.scheduler import Scheduler
    from metachess.settings import GameSettings
    from metachess.socketio_events import register_socketio_handlers, send_to

    scheduler = Scheduler(flask_app, socketio)
    coordinator = GameCoordinator(
        settings=GameSettings.from_config(flask_app.config),
        oracle=oracle,
        transport=send_to,
        clock=clock,
        rng=rng,
        scheduler=scheduler,
    )
    flask_app.extensions['metachess'] = coordinator

    register_socketio_handlers()
    scheduler.start_sweeper(coordinator)

    return flask_app
