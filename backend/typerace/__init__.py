from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config, broadcaster=None, passages=None):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or '*'

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Race collaborators; tests swap in an in-memory broadcaster and a fixed passage
    from typerace.realtime.broadcaster import SocketIOBroadcaster
    from typerace.services.countdown import CountdownScheduler
    from typerace.services.passages import PassageProvider

    if passages is None:
        timeout = float(flask_app.config.get('QUOTE_API_TIMEOUT_SEC', 5))
        passages = PassageProvider(flask_app.config.get('QUOTE_API_URL'), timeout=(timeout, timeout))
    flask_app.extensions['typerace'] = {
        'broadcaster': broadcaster or SocketIOBroadcaster(socketio),
        'passages': passages,
        'countdown': CountdownScheduler(socketio),
    }

    # Import and register blueprints here
    from typerace.routes import main
    flask_app.register_blueprint(main)

    from typerace.api.rooms import rooms
    flask_app.register_blueprint(rooms, url_prefix='/api/rooms')

    from typerace.api.stats import stats
    flask_app.register_blueprint(stats, url_prefix='/api')

    from typerace.api.practice import practice
    flask_app.register_blueprint(practice, url_prefix='/api/practice')

    from typerace.api.errors import register_error_handlers
    register_error_handlers(flask_app)

    # Register Socket.IO event handlers
    from typerace.realtime.handlers import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops and recreates the database."""
        import typerace.models  # noqa: F401
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            print('Database has been reset!')

    flask_app.cli.add_command(db_reset_command)

    return flask_app
