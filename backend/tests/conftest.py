import os
import sys
import pytest

# Ensure the backend root (containing the `duelapp` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from duelapp import create_app, db, socketio


ADMIN_ID = 900


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = ['http://localhost:5173']
    TOKEN_MAX_AGE_SEC = 3600
    SCORE_MIN = 0
    SCORE_MAX = 50
    SCORE_ESCALATION_THRESHOLD = 0
    ALLOW_FORCED_DRAW = False
    AUTO_SCHEDULE_ON_ACCEPT = True
    DUELS_PAGE_LIMIT = 20
    DUELS_PAGE_MAX = 100


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    # No context stays pushed: every request needs its own `g`
    with application.app_context():
        # Ensure models are imported so tables are created
        import duelapp.models  # noqa: F401
        db.create_all()
    yield application
    with application.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def app_ctx(flask_app):
    """App context for tests that call the services directly."""
    with flask_app.app_context():
        yield flask_app
        db.session.remove()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def roster(flask_app):
    """Athos=1, Porthos=2, Aramis=3 (active) and Mordaunt=4 (inactive)."""
    from duelapp.models import Dueliste
    members = [
        Dueliste(pseudo='Athos'),
        Dueliste(pseudo='Porthos'),
        Dueliste(pseudo='Aramis'),
        Dueliste(pseudo='Mordaunt', statut=Dueliste.INACTIF),
    ]
    with flask_app.app_context():
        db.session.add_all(members)
        db.session.commit()
        ids = {m.pseudo: m.id for m in members}
        db.session.remove()
    return ids


@pytest.fixture()
def token_for(flask_app):
    from duelapp.auth import issue_token

    def _make(dueliste_id, admin=False):
        with flask_app.app_context():
            return issue_token(dueliste_id, is_admin=admin)
    return _make


@pytest.fixture()
def auth_headers(token_for):
    def _make(dueliste_id, admin=False):
        return {'Authorization': f'Bearer {token_for(dueliste_id, admin=admin)}'}
    return _make


@pytest.fixture()
def admin_headers(auth_headers):
    return auth_headers(ADMIN_ID, admin=True)


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
