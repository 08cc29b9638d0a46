import os
import sys
import pytest

# Ensure the backend root (containing the `escaperoom` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from escaperoom import create_app, db, socketio
from escaperoom.services.engine import timers


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:3000']
    FINAL_STATION_KEY = 'master_reset'
    KEY_FRAGMENT_LENGTH = 4
    MASTER_BONUS_BASE = 40
    MASTER_BONUS_PER_FRAGMENT = 15
    MASTER_BONUS_FAST_MAX = 20
    MASTER_BONUS_CAP = 100
    UNNAMED_TEAM = 'Unnamed team'


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        # Ensure models are imported so tables are created
        import escaperoom.models  # noqa: F401
        from escaperoom.services.engine.catalog import seed_stations
        db.create_all()
        seed_stations()
        yield application
        db.session.remove()
        db.drop_all()
    timers._attempts.clear()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=flask_app.test_client(),
        namespace='/ws'
    )
    yield test_client
    if test_client.is_connected('/ws'):
        test_client.disconnect(namespace='/ws')


@pytest.fixture()
def session():
    from escaperoom.services.engine.session import Session
    return Session(run_id='run-r', team_name='Orion')
