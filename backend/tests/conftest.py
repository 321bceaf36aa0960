import os
import sys
import pytest

# Ensure the backend root (containing the `streakquiz` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from config import Config
from streakquiz import create_app, db, socketio
from streakquiz.services.quiz.deck import Question


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_DATABASE_URI = 'sqlite://'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = []
    QUESTIONS_PATH = Config.QUESTIONS_PATH
    ROUND_SIZE = 5
    MAX_LIVES = 3
    POINTS_PER_CORRECT = 10
    TIME_PER_QUESTION_SEC = 3
    LOCAL_RECORD_DIR = None
    LEADERBOARD_DEFAULT_LIMIT = 10
    LEADERBOARD_MAX_LIMIT = 50
    ENABLE_COUNTDOWN_IN_TESTS = False


def make_question(qid, correct=('A',), labels=('A', 'B', 'C', 'D')):
    return Question(
        id=str(qid),
        prompt=f"Question {qid}?",
        choices=tuple((label, f"choice {label}") for label in labels),
        correct_labels=frozenset(correct),
    )


@pytest.fixture()
def questions():
    # Alternate single- and multi-answer questions
    return [
        make_question(i, correct=('A',) if i % 2 else ('A', 'C'))
        for i in range(1, 11)
    ]


@pytest.fixture()
def flask_app():
    application = create_app(TestConfig)
    with application.app_context():
        db.create_all()
        yield application
        db.session.remove()
        db.drop_all()


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
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass
