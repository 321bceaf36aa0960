"""Question Source loading and round building."""

import json
import logging
import random
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

log = logging.getLogger(__name__)


class QuestionBankError(ValueError):
    """The question file is unreadable or structurally invalid."""


@dataclass(frozen=True)
class Question:
    id: str
    prompt: str
    choices: Tuple[Tuple[str, str], ...]
    correct_labels: frozenset

    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.choices]

    @property
    def is_multi(self) -> bool:
        return len(self.correct_labels) > 1

    def problems(self) -> List[str]:
        """Data-contract violations for this question (empty when well formed)."""
        found = []
        if not self.correct_labels:
            found.append('no correct labels')
        unknown = self.correct_labels - set(self.labels)
        if unknown:
            found.append(f"correct labels not among choices: {sorted(unknown)}")
        if len(set(self.labels)) != len(self.labels):
            found.append('duplicate choice labels')
        return found

    def to_dict(self, reveal: bool = False) -> Dict[str, Any]:
        data = {
            'id': self.id,
            'prompt': self.prompt,
            'choices': [[label, text] for label, text in self.choices],
            'is_multi': self.is_multi,
            'max_selectable': max(1, len(self.correct_labels)),
        }
        if reveal:
            data['correct_labels'] = sorted(self.correct_labels)
        return data


def question_from_dict(raw: Dict[str, Any], position: int) -> Question:
    """Build a Question from a bank entry.

    Accepts both the bundled format (``q``/``answers``) and the explicit one
    (``prompt``/``correct_labels``). A missing id defaults to the 1-based
    position in the bank.
    """
    if not isinstance(raw, dict):
        raise QuestionBankError(f"question #{position} is not an object")
    prompt = raw.get('prompt', raw.get('q'))
    if not isinstance(prompt, str) or not prompt.strip():
        raise QuestionBankError(f"question #{position} has no prompt")
    choices = []
    for entry in raw.get('choices') or []:
        if not isinstance(entry, (list, tuple)) or len(entry) != 2:
            raise QuestionBankError(f"question #{position} has a malformed choice: {entry!r}")
        choices.append((str(entry[0]), str(entry[1])))
    if not choices:
        raise QuestionBankError(f"question #{position} has no choices")
    answers = raw.get('correct_labels', raw.get('answers')) or []
    qid = raw.get('id')
    return Question(
        id=str(qid) if qid is not None else str(position),
        prompt=prompt,
        choices=tuple(choices),
        correct_labels=frozenset(str(a) for a in answers),
    )


def load_questions(path: str) -> List[Question]:
    """Read the question bank once; malformed entries are logged, not dropped."""
    try:
        with open(path, encoding='utf-8') as fh:
            raw = json.load(fh)
    except (OSError, json.JSONDecodeError) as exc:
        raise QuestionBankError(f"cannot read question bank {path}: {exc}") from exc
    if not isinstance(raw, list):
        raise QuestionBankError(f"question bank {path} must be a JSON list")

    questions = [question_from_dict(item, pos) for pos, item in enumerate(raw, start=1)]
    for q in questions:
        for problem in q.problems():
            log.warning(f"[malformed-question] id={q.id} {problem}")
    log.info(f"[questions-loaded] path={path} count={len(questions)}")
    return questions


def build_round(questions: Sequence[Question], round_size: int, rng: Optional[random.Random] = None) -> Tuple[Question, ...]:
    """Draw a shuffled round without replacement.

    A bank smaller than ``round_size`` yields the whole bank shuffled; no
    padding and no repeats.
    """
    if not questions:
        raise ValueError('cannot build a round from an empty question bank')
    if round_size < 1:
        raise ValueError('round_size must be at least 1')
    rng = rng or random.Random()
    pool = list(questions)
    if len(pool) <= round_size:
        rng.shuffle(pool)
        return tuple(pool)
    return tuple(rng.sample(pool, round_size))
