"""Run state machine for a single play session.

The machine is driven by discrete events (select, submit, tick, next) and is
total over them: an event that does not apply to the current phase or mode
is a no-op. ``submit`` is the only place score, streak and lives change.
"""

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Set

from .deck import Question
from .evaluator import is_correct

log = logging.getLogger(__name__)

DEFAULT_MAX_LIVES = 3
DEFAULT_TIME_PER_QUESTION = 20
DEFAULT_POINTS_PER_CORRECT = 10


class Phase(str, Enum):
    ANSWERING = 'answering'
    REVIEWING = 'reviewing'


class Mode(str, Enum):
    CLASSIC = 'classic'
    TIME_ATTACK = 'time_attack'
    PRACTICE = 'practice'

    @classmethod
    def parse(cls, value) -> 'Mode':
        if isinstance(value, Mode):
            return value
        normalized = str(value or '').strip().lower().replace('-', '_').replace(' ', '_')
        if normalized == 'timeattack':
            normalized = 'time_attack'
        return cls(normalized)


@dataclass(frozen=True)
class ModeRules:
    loses_lives: bool = True
    timed: bool = False


DEFAULT_MODE_RULES: Dict[Mode, ModeRules] = {
    Mode.CLASSIC: ModeRules(loses_lives=True, timed=False),
    Mode.TIME_ATTACK: ModeRules(loses_lives=True, timed=True),
    Mode.PRACTICE: ModeRules(loses_lives=False, timed=False),
}


@dataclass(frozen=True)
class RunSummary:
    run_id: str
    mode: Mode
    score: int
    seen: int
    correct: int
    best_streak: int
    lives: int
    missed: int

    @property
    def accuracy(self) -> float:
        return self.correct / self.seen if self.seen else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'run_id': self.run_id,
            'mode': self.mode.value,
            'score': self.score,
            'seen': self.seen,
            'correct': self.correct,
            'accuracy': round(self.accuracy, 4),
            'best_streak': self.best_streak,
            'lives': self.lives,
            'missed': self.missed,
        }


@dataclass
class RunState:
    questions: Sequence[Question]
    mode: Mode
    lives: int
    remaining_seconds: int = 0
    index: int = 0
    phase: Phase = Phase.ANSWERING
    selection: Set[str] = field(default_factory=set)
    score: int = 0
    streak: int = 0
    best_streak: int = 0
    seen: int = 0
    correct: int = 0
    last_correct: Optional[bool] = None
    finished: bool = False
    missed: List[Question] = field(default_factory=list)
    run_id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def current_question(self) -> Optional[Question]:
        if 0 <= self.index < len(self.questions):
            return self.questions[self.index]
        return None

    def summary(self) -> RunSummary:
        return RunSummary(
            run_id=self.run_id,
            mode=self.mode,
            score=self.score,
            seen=self.seen,
            correct=self.correct,
            best_streak=self.best_streak,
            lives=self.lives,
            missed=len(self.missed),
        )


Listener = Callable[..., None]


class RunStateMachine:
    """Owns one RunState and the transitions over it.

    Events emitted to listeners registered with :meth:`on`:

    - ``heart_lost()`` when a wrong answer costs a life
    - ``run_over(summary)`` once, the instant lives reach zero
    - ``round_finished(summary)`` once, on ``next`` past the last question
    - ``question_started(state)`` whenever a question enters Answering
    - ``answered(state, correct)`` after every submit, timed-out or not
    """

    def __init__(self, questions: Sequence[Question], mode=Mode.CLASSIC, *,
                 max_lives: int = DEFAULT_MAX_LIVES,
                 time_per_question: int = DEFAULT_TIME_PER_QUESTION,
                 points_per_correct: int = DEFAULT_POINTS_PER_CORRECT,
                 rules: Optional[Dict[Mode, ModeRules]] = None):
        if not questions:
            raise ValueError('a run needs at least one question')
        if max_lives < 1:
            raise ValueError('max_lives must be at least 1')
        self.mode = Mode.parse(mode)
        self.rules = (rules or DEFAULT_MODE_RULES).get(self.mode, ModeRules())
        self.max_lives = max_lives
        self.time_per_question = time_per_question
        self.points_per_correct = points_per_correct
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self.state = RunState(
            questions=tuple(questions),
            mode=self.mode,
            lives=max_lives,
            remaining_seconds=time_per_question if self.rules.timed else 0,
        )

    # ---- listeners ----

    def on(self, event: str, callback: Listener) -> None:
        self._listeners[event].append(callback)

    def _emit(self, event: str, *args) -> None:
        for callback in list(self._listeners.get(event, ())):
            callback(*args)

    # ---- queries ----

    @property
    def current_question(self) -> Optional[Question]:
        return self.state.current_question

    @property
    def is_over(self) -> bool:
        return self.state.lives == 0

    def snapshot(self) -> Dict[str, Any]:
        st = self.state
        q = st.current_question
        reviewing = st.phase == Phase.REVIEWING
        return {
            'run_id': st.run_id,
            'mode': st.mode.value,
            'phase': st.phase.value,
            'index': st.index,
            'round_size': len(st.questions),
            'question': q.to_dict(reveal=reviewing) if q else None,
            'selection': sorted(st.selection),
            'score': st.score,
            'streak': st.streak,
            'best_streak': st.best_streak,
            'lives': st.lives,
            'max_lives': self.max_lives,
            'seen': st.seen,
            'correct': st.correct,
            'last_correct': st.last_correct if reviewing else None,
            'remaining_seconds': st.remaining_seconds if self.rules.timed else None,
            'finished': st.finished,
        }

    # ---- transitions ----

    def select(self, label: str) -> bool:
        """Toggle ``label`` in the selection; returns whether it changed."""
        st = self.state
        q = st.current_question
        if st.phase != Phase.ANSWERING or q is None or label not in q.labels:
            return False
        if label in st.selection:
            st.selection.discard(label)
            return True
        if len(q.correct_labels) <= 1:
            st.selection = {label}
            return True
        # Multi-answer selection is capped by the number of correct labels
        if len(st.selection) < len(q.correct_labels):
            st.selection.add(label)
            return True
        return False

    def submit(self, expired: bool = False) -> Optional[bool]:
        """Evaluate the selection; returns correctness, or None when ignored."""
        st = self.state
        q = st.current_question
        if st.phase != Phase.ANSWERING or q is None:
            return None
        if expired:
            if not self.rules.timed:
                return None
            st.selection = set()
            correct = False
        else:
            if not st.selection:
                return None
            correct = is_correct(st.selection, q.correct_labels)

        st.seen += 1
        st.last_correct = correct
        lost_life = False
        if correct:
            st.correct += 1
            st.score += self.points_per_correct
            st.streak += 1
            st.best_streak = max(st.best_streak, st.streak)
        else:
            st.streak = 0
            st.missed.append(q)
            if self.rules.loses_lives and st.lives > 0:
                st.lives -= 1
                lost_life = True
        st.phase = Phase.REVIEWING

        self._emit('answered', st, correct)
        if lost_life:
            self._emit('heart_lost')
            if st.lives == 0:
                log.info(f"[run-over] run={st.run_id} mode={st.mode.value} score={st.score} best_streak={st.best_streak}")
                self._emit('run_over', st.summary())
        return correct

    def tick(self) -> Optional[int]:
        """Advance the countdown one second; returns the remaining seconds."""
        st = self.state
        if not self.rules.timed or st.phase != Phase.ANSWERING or st.current_question is None:
            return None
        st.remaining_seconds = max(0, st.remaining_seconds - 1)
        if st.remaining_seconds == 0:
            log.info(f"[timer-expired] run={st.run_id} index={st.index}")
            self.submit(expired=True)
        return st.remaining_seconds

    def next(self) -> bool:
        """Move past the reviewed question; returns whether a new question started."""
        st = self.state
        if st.phase != Phase.REVIEWING or st.lives == 0 or st.finished:
            return False
        if st.index + 1 < len(st.questions):
            st.index += 1
            st.selection = set()
            st.last_correct = None
            if self.rules.timed:
                st.remaining_seconds = self.time_per_question
            st.phase = Phase.ANSWERING
            self._emit('question_started', st)
            return True
        st.finished = True
        log.info(f"[round-finished] run={st.run_id} score={st.score} seen={st.seen} correct={st.correct}")
        self._emit('round_finished', st.summary())
        return False
