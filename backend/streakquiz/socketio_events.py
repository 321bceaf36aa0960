from flask import current_app, request
from flask_socketio import emit
from streakquiz import socketio
from streakquiz.services.quiz import local_store, make_reconciler, question_bank
from streakquiz.services.quiz.records import MAX_USER_ID_LENGTH, RecordStoreError
from streakquiz.services.quiz.session import QuizSession, SessionSettings
from typing import Dict, Optional


# One quiz session per connected socket
_sid_to_session: Dict[str, QuizSession] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _run_inline(fn, *args, **kwargs):
    return fn(*args, **kwargs)


def _new_session(sid: str, namespace: str) -> QuizSession:
    app = current_app._get_current_object()
    testing = bool(app.config.get('TESTING'))

    def _emit(event, payload):
        # socketio.emit since this may be called from a background task
        socketio.emit(event, payload, to=sid, namespace=namespace)

    def _reconcile(user_id, score, best_streak):
        with app.app_context():
            return make_reconciler(app).reconcile(user_id, score, best_streak)

    return QuizSession(
        question_bank(app),
        emit=_emit,
        reconcile=_reconcile,
        settings=SessionSettings.from_config(app.config),
        # In tests, run reconciliation inline for determinism
        spawn=_run_inline if testing else socketio.start_background_task,
        timer_spawn=socketio.start_background_task,
        sleep=socketio.sleep,
        countdown_enabled=not testing or bool(app.config.get('ENABLE_COUNTDOWN_IN_TESTS')),
        label=sid[:8],
    )


def _session(create: bool = False) -> Optional[QuizSession]:
    sid = _get_sid()
    session = _sid_to_session.get(sid)
    if session is None and create:
        session = _new_session(sid, request.namespace)
        _sid_to_session[sid] = session
    return session


def _end_session(sid: str) -> bool:
    session = _sid_to_session.pop(sid, None)
    if session is None:
        return False
    session.teardown()
    return True


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Abandoned runs are dropped, never reconciled
    _end_session(_get_sid())


def handle_change_user(data):
    user_id = str((data or {}).get('user_id') or '').strip()
    if not user_id:
        emit('error', {'message': 'user_id is required'})
        return
    if len(user_id) > MAX_USER_ID_LENGTH:
        emit('error', {'message': f'user_id must be at most {MAX_USER_ID_LENGTH} characters'})
        return
    session = _session(create=True)
    session.change_user(user_id)
    try:
        record = local_store().get(user_id)
    except RecordStoreError as exc:
        current_app.logger.warning(f"[local-read-failed] user={user_id} error={exc}")
        record = None
    emit('user_changed', {'user_id': user_id, 'record': record.to_dict() if record else None})


def handle_start_round(data):
    data = data or {}
    session = _session(create=True)
    try:
        session.start_round(data.get('mode') or 'classic', review=bool(data.get('review')))
    except ValueError as exc:
        emit('error', {'message': f"Cannot start round: {exc}"})


def handle_select(data):
    data = data or {}
    session = _session()
    if session is None:
        emit('error', {'message': 'No active session'})
        return
    if data.get('label') is not None:
        session.select(str(data['label']))
    elif data.get('key') is not None:
        session.select_key(data['key'])
    else:
        emit('error', {'message': 'label or key is required'})


def handle_submit(data=None):
    session = _session()
    if session is None:
        emit('error', {'message': 'No active session'})
        return
    session.submit()


def handle_next(data=None):
    session = _session()
    if session is None:
        emit('error', {'message': 'No active session'})
        return
    session.next()


def handle_get_state(data=None):
    session = _session()
    emit('state_update', session.snapshot() if session else None)


def handle_leave_session(data=None):
    if _end_session(_get_sid()):
        emit('session_ended', {})


def handle_ping(data):
    emit('pong', data or {})


_HANDLERS = {
    'connect': handle_connect,
    'disconnect': handle_disconnect,
    'change_user': handle_change_user,
    'start_round': handle_start_round,
    'select': handle_select,
    'submit': handle_submit,
    'next': handle_next,
    'get_state': handle_get_state,
    'leave_session': handle_leave_session,
    'ping': handle_ping,
}


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    for event, handler in _HANDLERS.items():
        socketio.on_event(event, handler, namespace='/ws')

    if testing:
        for event, handler in _HANDLERS.items():
            socketio.on_event(event, handler, namespace='/')
