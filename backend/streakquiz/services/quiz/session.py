"""Session boundary for one player.

A ``QuizSession`` owns the current run, its countdown and the user it plays
for. Transport code (Socket.IO handlers) translates raw input into calls on
this object and forwards the events it emits; nothing else mutates the run.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Sequence

from .countdown import Countdown
from .deck import Question, build_round
from .records import BestRecord
from .run_state import (
    DEFAULT_MODE_RULES,
    Mode,
    ModeRules,
    RunStateMachine,
    RunSummary,
)

log = logging.getLogger(__name__)

Emit = Callable[[str, Dict[str, Any]], None]


def _run_inline(fn, *args, **kwargs):
    return fn(*args, **kwargs)


@dataclass(frozen=True)
class SessionSettings:
    round_size: int = 25
    max_lives: int = 3
    time_per_question: int = 20
    points_per_correct: int = 10
    rules: Dict[Mode, ModeRules] = field(default_factory=lambda: dict(DEFAULT_MODE_RULES))
    heartbeat_sec: int = 0

    @classmethod
    def from_config(cls, config) -> 'SessionSettings':
        rules = dict(DEFAULT_MODE_RULES)
        if config.get('PRACTICE_LOSES_LIVES'):
            rules[Mode.PRACTICE] = ModeRules(loses_lives=True, timed=False)
        return cls(
            round_size=int(config.get('ROUND_SIZE', 25)),
            max_lives=int(config.get('MAX_LIVES', 3)),
            time_per_question=int(config.get('TIME_PER_QUESTION_SEC', 20)),
            points_per_correct=int(config.get('POINTS_PER_CORRECT', 10)),
            rules=rules,
            heartbeat_sec=int(config.get('TIMER_HEARTBEAT_SEC', 0)),
        )


class QuizSession:
    """Plays rounds for one user and hands finished runs to the reconciler.

    ``reconcile(user_id, score, best_streak)`` is run through ``spawn`` so a
    slow or failing record store never holds up gameplay. Countdown workers
    go through ``timer_spawn`` (``spawn`` when not given).
    """

    def __init__(self, questions: Sequence[Question], *,
                 emit: Emit,
                 reconcile: Optional[Callable[[str, int, int], BestRecord]] = None,
                 settings: Optional[SessionSettings] = None,
                 spawn: Callable = _run_inline,
                 timer_spawn: Optional[Callable] = None,
                 sleep: Callable[[float], None] = time.sleep,
                 countdown_enabled: bool = True,
                 rng=None,
                 label: str = ''):
        if not questions:
            raise ValueError('a session needs a non-empty question bank')
        self.questions = list(questions)
        self.settings = settings or SessionSettings()
        self.user_id: Optional[str] = None
        self.machine: Optional[RunStateMachine] = None
        self._emit = emit
        self._reconcile = reconcile
        self._spawn = spawn
        self._rng = rng
        self._label = label
        self._countdown_enabled = countdown_enabled
        self._closed_run: Optional[str] = None
        self._review_pool: Sequence[Question] = ()
        self._lock = threading.RLock()
        self._torn_down = False
        self.countdown = Countdown(
            spawn=timer_spawn or spawn,
            sleep=sleep,
            on_tick=self._timer_tick,
            label=label,
            heartbeat_sec=self.settings.heartbeat_sec,
        )

    # ---- inputs ----

    def change_user(self, user_id: str) -> None:
        user_id = (user_id or '').strip()
        if not user_id:
            raise ValueError('user_id is required')
        with self._lock:
            if user_id == self.user_id:
                return
            if self.machine is not None:
                # Abandoned runs are discarded without reconciliation
                log.info(f"[run-abandoned] session={self._label} user={self.user_id} run={self.machine.state.run_id}")
                self._discard_run()
            self.user_id = user_id
            self._review_pool = ()
            log.info(f"[user-changed] session={self._label} user={user_id}")

    def start_round(self, mode=Mode.CLASSIC, review: bool = False) -> Dict[str, Any]:
        mode = Mode.parse(mode)
        with self._lock:
            if self._torn_down:
                raise RuntimeError('session has been torn down')
            self._discard_run()
            pool = self.questions
            if review and self._review_pool:
                pool = self._review_pool
            self._review_pool = ()
            self._start_run(mode, pool)
            return self.machine.snapshot()

    def select(self, label: str) -> bool:
        with self._lock:
            if self.machine is None:
                return False
            changed = self.machine.select(str(label))
            if changed:
                self._emit_state()
            return changed

    def select_key(self, key) -> bool:
        """Digit shortcut: ``1`` picks the first choice, ``2`` the second, ..."""
        with self._lock:
            q = self.machine.current_question if self.machine else None
            try:
                position = int(key) - 1
            except (TypeError, ValueError):
                return False
            if q is None or not 0 <= position < len(q.choices):
                return False
            return self.select(q.choices[position][0])

    def submit(self) -> Optional[bool]:
        with self._lock:
            if self.machine is None:
                return None
            machine = self.machine
            result = machine.submit()
            if result is not None and self.machine is machine:
                self._emit_state()
            return result

    def next(self) -> bool:
        with self._lock:
            if self.machine is None:
                return False
            advanced = self.machine.next()
            if advanced:
                self._emit_state()
            return advanced

    def tick(self) -> Optional[int]:
        with self._lock:
            if self.machine is None:
                return None
            machine = self.machine
            remaining = machine.tick()
            if remaining is None:
                return None
            self._emit('tick', {'remaining_seconds': remaining})
            if remaining == 0 and self.machine is machine:
                self._emit_state()
            return remaining

    def teardown(self) -> None:
        with self._lock:
            self._discard_run()
            self._torn_down = True
            log.info(f"[session-ended] session={self._label} user={self.user_id}")

    # ---- queries ----

    def snapshot(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            return self.machine.snapshot() if self.machine else None

    # ---- internals ----

    def _start_run(self, mode: Mode, pool: Sequence[Question]) -> None:
        s = self.settings
        machine = RunStateMachine(
            build_round(pool, s.round_size, self._rng),
            mode,
            max_lives=s.max_lives,
            time_per_question=s.time_per_question,
            points_per_correct=s.points_per_correct,
            rules=s.rules,
        )
        machine.on('answered', self._on_answered)
        machine.on('heart_lost', self._on_heart_lost)
        machine.on('run_over', self._on_run_over)
        machine.on('round_finished', self._on_round_finished)
        machine.on('question_started', self._on_question_started)
        self.machine = machine
        log.info(f"[round-start] session={self._label} user={self.user_id} mode={mode.value} size={len(machine.state.questions)}")
        self._emit_state()
        self._on_question_started(machine.state)

    def _discard_run(self) -> None:
        self.countdown.cancel()
        self.machine = None

    def _emit_state(self) -> None:
        if self.machine is not None:
            self._emit('state_update', self.machine.snapshot())

    def _timer_tick(self, generation: int) -> Optional[int]:
        with self._lock:
            if not self.countdown.is_current(generation):
                return None
            return self.tick()

    def _on_question_started(self, state) -> None:
        if self.machine and self.machine.rules.timed and self._countdown_enabled:
            self.countdown.start(state.remaining_seconds)

    def _on_answered(self, state, correct: bool) -> None:
        self.countdown.cancel()
        q = state.current_question
        self._emit('answer_result', {
            'correct': correct,
            'correct_labels': sorted(q.correct_labels) if q else [],
            'score': state.score,
            'streak': state.streak,
            'lives': state.lives,
        })

    def _on_heart_lost(self) -> None:
        self._emit('heart_lost', {})

    def _close_run(self, summary: RunSummary) -> bool:
        """Mark the current run closed; False for a repeat or a stale run."""
        if self.machine is None or summary.run_id != self.machine.state.run_id:
            return False
        if summary.run_id == self._closed_run:
            return False
        self._closed_run = summary.run_id
        return True

    def _on_run_over(self, summary: RunSummary) -> None:
        if not self._close_run(summary):
            return
        self._emit('run_over', summary.to_dict())
        self._schedule_reconcile(summary)
        # Fresh run: full lives, new round, same mode
        self._discard_run()
        self._start_run(summary.mode, self.questions)

    def _on_round_finished(self, summary: RunSummary) -> None:
        if not self._close_run(summary):
            return
        self._review_pool = tuple(self.machine.state.missed)
        payload = summary.to_dict()
        payload['review_available'] = bool(self._review_pool)
        self._emit('round_finished', payload)
        self._schedule_reconcile(summary)

    def _schedule_reconcile(self, summary: RunSummary) -> None:
        if self._reconcile is None or not self.user_id:
            log.info(f"[reconcile-skip] session={self._label} run={summary.run_id} no user")
            return
        self._spawn(self._reconcile_task, self.user_id, summary.score, summary.best_streak)

    def _reconcile_task(self, user_id: str, score: int, best_streak: int) -> None:
        try:
            record = self._reconcile(user_id, score, best_streak)
        except Exception as exc:
            # Background boundary: a failed sync must not reach gameplay
            log.warning(f"[reconcile-failed] session={self._label} user={user_id} error={exc}")
            return
        if record is not None:
            self._emit('record_updated', record.to_dict())
