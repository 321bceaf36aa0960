from flask import Blueprint, jsonify, request, current_app
from streakquiz.services.quiz import remote_store
from streakquiz.services.quiz.records import BestRecord, MAX_RECORD_VALUE, MAX_USER_ID_LENGTH, RecordStoreError
from streakquiz.services.quiz.reconciler import leaderboard as top_records


leaderboard = Blueprint('leaderboard', __name__)


def _limit_from_request() -> int:
    cfg = current_app.config
    default = int(cfg.get('LEADERBOARD_DEFAULT_LIMIT', 10))
    ceiling = int(cfg.get('LEADERBOARD_MAX_LIMIT', 100))
    try:
        limit = int(request.args.get('limit', default))
    except (TypeError, ValueError):
        limit = default
    return min(max(1, limit), ceiling)


def _non_negative_int(value):
    if value is None:
        return 0
    # bool is an int subclass; floats would be truncated silently
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise ValueError(f"not an integer: {value!r}")
    number = int(value)
    if not 0 <= number <= MAX_RECORD_VALUE:
        raise ValueError(f"out of range: {number}")
    return number


@leaderboard.route('', methods=['GET'])
def get_leaderboard():
    limit = _limit_from_request()
    try:
        payload = top_records(remote_store(), limit)
    except RecordStoreError as exc:
        current_app.logger.warning(f"[leaderboard-failed] limit={limit} error={exc}")
        return jsonify({'error': 'Leaderboard unavailable'}), 503
    payload['limit'] = limit
    return jsonify(payload)


@leaderboard.route('/records/<string:user_id>', methods=['GET'])
def get_record(user_id):
    try:
        record = remote_store().get(user_id)
    except RecordStoreError as exc:
        current_app.logger.warning(f"[record-read-failed] user={user_id} error={exc}")
        return jsonify({'error': 'Record store unavailable'}), 503
    if record is None:
        return jsonify({'error': 'Record not found'}), 404
    return jsonify(record.to_dict())


@leaderboard.route('/upsert', methods=['POST'])
def upsert_record():
    data = request.get_json(silent=True) or {}
    user_id = str(data.get('user_id') or data.get('name') or '').strip()
    if not user_id:
        return jsonify({'error': 'user_id (or name) is required'}), 400
    if len(user_id) > MAX_USER_ID_LENGTH:
        return jsonify({'error': f'user_id must be at most {MAX_USER_ID_LENGTH} characters'}), 400
    try:
        score = _non_negative_int(data.get('best_score', data.get('bestPoints')))
        streak = _non_negative_int(data.get('best_streak', data.get('bestStreak')))
    except (TypeError, ValueError):
        return jsonify({'error': f'best_score and best_streak must be integers between 0 and {MAX_RECORD_VALUE}'}), 400

    store = remote_store()
    try:
        current = store.get(user_id) or BestRecord(user_id=user_id)
    except RecordStoreError as exc:
        current_app.logger.warning(f"[upsert-read-failed] user={user_id} error={exc}")
        return jsonify({'error': 'Record store unavailable'}), 503
    record = current.merge(score, streak)
    if not store.put(user_id, record):
        return jsonify({'error': 'Record store unavailable'}), 503
    current_app.logger.info(f"[upsert] user={user_id} best_score={record.best_score} best_streak={record.best_streak}")
    return jsonify({'ok': True, 'record': record.to_dict()})
