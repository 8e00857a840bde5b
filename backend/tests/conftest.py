import os
import sys
import pytest

# Ensure the backend root (containing the `typerace` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from typerace import create_app, db, socketio
from typerace.realtime.broadcaster import InMemoryBroadcaster
from typerace.services.passages import Passage, StaticPassageProvider


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = '*'
    ROOM_CAPACITY = 2
    MIN_PLAYERS = 2
    COUNTDOWN_SEC = 0
    RACE_TIME_LIMIT_SEC = 60
    STATS_RECENT_LIMIT = 5
    QUOTE_API_URL = ''
    QUOTE_API_TIMEOUT_SEC = 1


class DeferredCountdownConfig(TestConfig):
    # Countdowns stay pending until the test fires them
    COUNTDOWN_DEFERRED_IN_TESTS = True


def _build_app(config_class, broadcaster):
    application = create_app(
        config_class,
        broadcaster=broadcaster,
        passages=StaticPassageProvider(Passage(content='cat dog', author='Tester')),
    )
    return application


@pytest.fixture()
def broadcaster():
    return InMemoryBroadcaster()


@pytest.fixture()
def flask_app(broadcaster):
    application = _build_app(TestConfig, broadcaster)
    with application.app_context():
        # Ensure models are imported so tables are created
        import typerace.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def deferred_app(broadcaster):
    application = _build_app(DeferredCountdownConfig, broadcaster)
    with application.app_context():
        import typerace.models  # noqa: F401
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def race(flask_app):
    from typerace.services.race import get_race_service
    return get_race_service(flask_app)


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
