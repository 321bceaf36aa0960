import os

_HERE = os.path.dirname(os.path.abspath(__file__))


def _env_flag(name, default='0'):
    return os.environ.get(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'you-will-never-guess'
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL') or 'sqlite:///streakquiz.db'
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    CORS_ORIGINS = [
        o.strip() for o in os.environ.get(
            'CORS_ORIGINS',
            'http://localhost:5173,http://127.0.0.1:5173,http://localhost:5174,http://127.0.0.1:5174',
        ).split(',') if o.strip()
    ]
    # Question bank (JSON list of question records)
    QUESTIONS_PATH = os.environ.get('QUESTIONS_PATH') or os.path.join(_HERE, 'streakquiz', 'data', 'questions.json')
    # Run rules
    ROUND_SIZE = int(os.environ.get('ROUND_SIZE', '25'))
    MAX_LIVES = int(os.environ.get('MAX_LIVES', '3'))
    POINTS_PER_CORRECT = int(os.environ.get('POINTS_PER_CORRECT', '10'))
    PRACTICE_LOSES_LIVES = _env_flag('PRACTICE_LOSES_LIVES')
    # TimeAttack countdown (seconds)
    TIME_PER_QUESTION_SEC = int(os.environ.get('TIME_PER_QUESTION_SEC', '20'))
    # Local record cache: one JSON file per user. Unset keeps the cache in memory.
    LOCAL_RECORD_DIR = os.environ.get('LOCAL_RECORD_DIR') or None
    # Leaderboard query bounds
    LEADERBOARD_DEFAULT_LIMIT = int(os.environ.get('LEADERBOARD_DEFAULT_LIMIT', '10'))
    LEADERBOARD_MAX_LIMIT = int(os.environ.get('LEADERBOARD_MAX_LIMIT', '100'))
    # Optional: heartbeat interval for countdown logs (sec). 0 disables.
    TIMER_HEARTBEAT_SEC = int(os.environ.get('TIMER_HEARTBEAT_SEC', '0'))
    # Under TESTING the countdown is off unless this is set; it then runs on real background tasks
    ENABLE_COUNTDOWN_IN_TESTS = _env_flag('ENABLE_COUNTDOWN_IN_TESTS')
