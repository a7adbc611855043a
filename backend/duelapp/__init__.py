from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_login import LoginManager
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
import click
from config import Config

db = SQLAlchemy()
login_manager = LoginManager()
migrate = Migrate()
socketio = SocketIO(async_mode=None)

ROSTER_SEED = ['Athos', 'Porthos', 'Aramis', "d'Artagnan"]


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    login_manager.init_app(flask_app)
    migrate.init_app(flask_app, db)
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Registers the Flask-Login request loader
    from duelapp import auth  # noqa: F401

    from duelapp.errors import register_error_handlers
    register_error_handlers(flask_app, db)

    from duelapp.main import main
    flask_app.register_blueprint(main)

    from duelapp.api.duels import duels
    flask_app.register_blueprint(duels, url_prefix='/api/duels')

    from duelapp.api.admin import admin
    flask_app.register_blueprint(admin, url_prefix='/api/admin')

    from duelapp.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the database."""
        from duelapp.models import Dueliste
        with flask_app.app_context():
            db.drop_all()
            db.create_all()

            for pseudo in ROSTER_SEED:
                db.session.add(Dueliste(pseudo=pseudo))

            db.session.commit()
            print('Database has been reset and seeded!')

    @click.command('issue-token')
    @click.argument('dueliste_id', type=int)
    @click.option('--admin', is_flag=True, help='Grant the administrator capability.')
    def issue_token_command(dueliste_id, admin):
        """Prints a bearer token for local testing."""
        from duelapp.auth import issue_token
        with flask_app.app_context():
            print(issue_token(dueliste_id, is_admin=admin))

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(issue_token_command)

    return flask_app
