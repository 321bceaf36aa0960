from flask import Flask
from flask_sqlalchemy import SQLAlchemy
from flask_cors import CORS
from flask_migrate import Migrate
from flask_socketio import SocketIO
from config import Config

db = SQLAlchemy()
migrate = Migrate()
socketio = SocketIO(async_mode=None)


def create_app(config_class=Config):
    flask_app = Flask(__name__)
    flask_app.config.from_object(config_class)
    allowed_origins = flask_app.config.get('CORS_ORIGINS') or []

    db.init_app(flask_app)
    migrate.init_app(flask_app, db)
    from streakquiz import models  # noqa: F401
    CORS(flask_app, supports_credentials=True, origins=allowed_origins)

    # Initialize Socket.IO after app is created
    socketio.init_app(flask_app, cors_allowed_origins=allowed_origins)

    # Question bank and local record cache live for the whole process
    from streakquiz.services.quiz.deck import load_questions
    from streakquiz.services.quiz.records import LocalRecordCache
    flask_app.extensions['question_bank'] = load_questions(flask_app.config['QUESTIONS_PATH'])
    flask_app.extensions['local_records'] = LocalRecordCache(flask_app.config.get('LOCAL_RECORD_DIR'))

    from streakquiz.main import main
    flask_app.register_blueprint(main)

    from streakquiz.api.leaderboard import leaderboard
    flask_app.register_blueprint(leaderboard, url_prefix='/api/leaderboard')

    # Register Socket.IO event handlers
    from streakquiz.socketio_events import register_socketio_handlers
    register_socketio_handlers(testing=flask_app.config.get('TESTING', False))

    from streakquiz.cli import register_commands
    register_commands(flask_app)

    return flask_app
