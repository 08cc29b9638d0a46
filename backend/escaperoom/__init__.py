from flask import Flask, jsonify
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_socketio import SocketIO
from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
import click
from config import Config

db = SQLAlchemy()
socketio = SocketIO(async_mode=None)


@event.listens_for(Engine, 'connect')
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    # SQLite ignores FOREIGN KEY clauses unless asked per connection
    if type(dbapi_connection).__module__.startswith('sqlite3'):
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)

    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []
    db.init_app(flask_app)
    CORS(flask_app, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    from escaperoom.main import main
    flask_app.register_blueprint(main)

    from escaperoom.api.runs import runs
    flask_app.register_blueprint(runs, url_prefix='/api/runs')

    from escaperoom.api.board import board
    flask_app.register_blueprint(board, url_prefix='/api')

    from escaperoom.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from escaperoom.services.engine.errors import UnknownStationError

    @flask_app.errorhandler(UnknownStationError)
    def unknown_station(exc):
        return jsonify({'error': str(exc)}), 404

    @flask_app.errorhandler(ValueError)
    def bad_value(exc):
        return jsonify({'error': str(exc)}), 400

    @flask_app.errorhandler(SQLAlchemyError)
    def store_unavailable(exc):
        db.session.rollback()
        flask_app.logger.error(f"[store-error] {type(exc).__name__}: {exc}")
        return jsonify({'error': str(exc)}), 503

    @click.command('db-reset')
    def db_reset_command():
        """Drops, recreates, and seeds the station catalog."""
        from escaperoom.services.engine.catalog import seed_stations
        with flask_app.app_context():
            db.drop_all()
            db.create_all()
            created = seed_stations()
            print(f'Database has been reset and seeded with {created} stations!')

    @click.command('seed-stations')
    def seed_stations_command():
        """Inserts the default station catalog, keeping existing rows."""
        from escaperoom.services.engine.catalog import seed_stations
        with flask_app.app_context():
            db.create_all()
            created = seed_stations()
            print(f'{created} stations added.')

    @click.command('leaderboard')
    @click.option('--query', '-q', default=None, help='Filter by team name.')
    def leaderboard_command(query):
        """Prints the current ranking."""
        from escaperoom.services.engine.leaderboard import build_leaderboard
        with flask_app.app_context():
            for entry in build_leaderboard(query=query):
                master = 'yes' if entry.has_master else '-'
                print(f'{entry.rank:>3}  {entry.team_name:<30} {entry.total_score:>5}  '
                      f'{entry.tier.short_label:<10} stations={entry.stations_done} master={master}')

    flask_app.cli.add_command(db_reset_command)
    flask_app.cli.add_command(seed_stations_command)
    flask_app.cli.add_command(leaderboard_command)

    return flask_app
