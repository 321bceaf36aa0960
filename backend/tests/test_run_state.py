import pytest

from conftest import make_question
from streakquiz.services.quiz.run_state import Mode, ModeRules, Phase, RunStateMachine


def _recorder(machine):
    events = []
    for name in ('heart_lost', 'run_over', 'round_finished', 'question_started'):
        machine.on(name, lambda *args, _name=name: events.append((_name, args)))
    return events


def _answer_wrong(machine):
    q = machine.current_question
    wrong = next(label for label in q.labels if label not in q.correct_labels)
    machine.select(wrong)
    return machine.submit()


def _answer_right(machine):
    q = machine.current_question
    for label in sorted(q.correct_labels):
        machine.select(label)
    return machine.submit()


def test_single_answer_selection_replaces():
    m = RunStateMachine([make_question(1)], Mode.CLASSIC)
    assert m.select('A')
    assert m.select('B')
    assert m.state.selection == {'B'}
    assert m.select('D')
    assert m.state.selection == {'D'}
    # Selecting again toggles off
    assert m.select('D')
    assert m.state.selection == set()


def test_multi_answer_selection_is_capped_by_correct_count():
    m = RunStateMachine([make_question(1, correct=('A', 'C'))], Mode.CLASSIC)
    assert m.select('A')
    assert m.select('B')
    # Third distinct pick is a no-op
    assert not m.select('D')
    assert m.state.selection == {'A', 'B'}
    # Freeing a slot allows a new pick
    assert m.select('B')
    assert m.select('C')
    assert m.state.selection == {'A', 'C'}


def test_unknown_label_is_ignored():
    m = RunStateMachine([make_question(1)], Mode.CLASSIC)
    assert not m.select('Z')
    assert m.state.selection == set()


def test_submit_requires_selection():
    m = RunStateMachine([make_question(1)], Mode.CLASSIC)
    assert m.submit() is None
    assert m.state.phase == Phase.ANSWERING
    assert m.state.seen == 0


def test_correct_submit_scores_and_builds_streak(questions):
    m = RunStateMachine(questions, Mode.CLASSIC)
    assert _answer_right(m) is True
    assert m.state.phase == Phase.REVIEWING
    assert (m.state.score, m.state.streak, m.state.best_streak) == (10, 1, 1)
    m.next()
    assert _answer_right(m) is True
    assert (m.state.score, m.state.streak, m.state.best_streak) == (20, 2, 2)
    m.next()
    assert _answer_wrong(m) is False
    assert (m.state.score, m.state.streak, m.state.best_streak) == (20, 0, 2)
    assert m.state.lives == 2
    assert m.state.seen == 3 and m.state.correct == 2


def test_input_is_ignored_while_reviewing(questions):
    m = RunStateMachine(questions, Mode.CLASSIC)
    _answer_right(m)
    before = m.snapshot()
    assert not m.select('B')
    assert m.submit() is None
    assert m.tick() is None
    assert m.snapshot() == before


def test_score_never_decreases(questions):
    m = RunStateMachine(questions, Mode.PRACTICE)
    last = 0
    for i in range(len(questions)):
        if i % 3 == 0:
            _answer_wrong(m)
        else:
            _answer_right(m)
        assert m.state.score >= last
        last = m.state.score
        m.next()


def test_life_exhaustion_fires_run_over_once(questions):
    m = RunStateMachine(questions, Mode.CLASSIC, max_lives=3)
    events = _recorder(m)
    for _ in range(3):
        _answer_wrong(m)
        m.next()
    assert m.state.lives == 0
    assert [e for e, _ in events].count('heart_lost') == 3
    run_overs = [args for e, args in events if e == 'run_over']
    assert len(run_overs) == 1
    summary = run_overs[0][0]
    assert summary.seen == 3 and summary.correct == 0 and summary.lives == 0
    # Further input does not fire again and next is a no-op at zero lives
    assert m.next() is False
    assert m.submit() is None
    assert len([e for e, _ in events if e == 'run_over']) == 1


def test_next_is_noop_at_zero_lives(questions):
    m = RunStateMachine(questions, Mode.CLASSIC, max_lives=1)
    _answer_wrong(m)
    assert m.state.lives == 0
    assert m.next() is False
    assert m.state.index == 0
    assert m.state.phase == Phase.REVIEWING


def test_practice_never_loses_lives():
    pool = [make_question(i) for i in range(12)]
    m = RunStateMachine(pool, Mode.PRACTICE, max_lives=3)
    events = _recorder(m)
    for _ in range(10):
        _answer_wrong(m)
        assert m.state.streak == 0
        m.next()
    assert m.state.lives == 3
    assert m.state.seen == 10
    assert not [e for e, _ in events if e in ('run_over', 'heart_lost')]


def test_mode_rules_are_configurable():
    pool = [make_question(i) for i in range(3)]
    rules = {Mode.PRACTICE: ModeRules(loses_lives=True, timed=False)}
    m = RunStateMachine(pool, Mode.PRACTICE, max_lives=2, rules=rules)
    _answer_wrong(m)
    assert m.state.lives == 1


def test_next_advances_and_clears_selection(questions):
    m = RunStateMachine(questions, Mode.CLASSIC)
    events = _recorder(m)
    _answer_right(m)
    assert m.next() is True
    assert m.state.index == 1
    assert m.state.phase == Phase.ANSWERING
    assert m.state.selection == set()
    assert m.state.last_correct is None
    assert events[-1][0] == 'question_started'


def test_round_finished_fires_once_with_summary():
    pool = [make_question(i) for i in range(3)]
    m = RunStateMachine(pool, Mode.CLASSIC)
    events = _recorder(m)
    _answer_right(m)
    m.next()
    _answer_wrong(m)
    m.next()
    _answer_right(m)
    assert m.next() is False
    assert m.next() is False
    finished = [args[0] for e, args in events if e == 'round_finished']
    assert len(finished) == 1
    summary = finished[0]
    assert summary.score == 20
    assert summary.seen == 3 and summary.correct == 2
    assert summary.accuracy == pytest.approx(2 / 3)
    assert summary.best_streak == 1
    assert summary.missed == 1
    # RunState does not restart on its own
    assert m.state.finished and m.state.index == 2


def test_time_attack_expiry_counts_as_wrong():
    pool = [make_question(i) for i in range(3)]
    m = RunStateMachine(pool, Mode.TIME_ATTACK, max_lives=3, time_per_question=3)
    events = _recorder(m)
    _answer_right(m)
    m.next()
    assert m.state.streak == 1
    assert m.state.remaining_seconds == 3
    assert m.tick() == 2
    assert m.tick() == 1
    assert m.tick() == 0
    assert m.state.phase == Phase.REVIEWING
    assert m.state.streak == 0
    assert m.state.lives == 2
    assert m.state.last_correct is False
    assert m.state.seen == 2
    assert ('heart_lost', ()) in events
    # Ticks after leaving Answering are no-ops
    assert m.tick() is None
    assert m.state.lives == 2


def test_expiry_discards_partial_selection():
    m = RunStateMachine([make_question(1)], Mode.TIME_ATTACK, time_per_question=1)
    m.select('A')
    assert m.tick() == 0
    assert m.state.selection == set()
    assert m.state.last_correct is False
    assert m.state.score == 0


def test_countdown_resets_for_each_question():
    pool = [make_question(i) for i in range(3)]
    m = RunStateMachine(pool, Mode.TIME_ATTACK, time_per_question=5)
    m.tick()
    m.tick()
    _answer_right(m)
    m.next()
    assert m.state.remaining_seconds == 5


def test_tick_ignored_outside_time_attack(questions):
    m = RunStateMachine(questions, Mode.CLASSIC)
    assert m.tick() is None
    assert m.submit(expired=True) is None
    assert m.state.phase == Phase.ANSWERING


def test_snapshot_reveals_answers_only_when_reviewing():
    m = RunStateMachine([make_question(1, correct=('B',))], Mode.CLASSIC)
    snap = m.snapshot()
    assert snap['phase'] == 'answering'
    assert 'correct_labels' not in snap['question']
    assert snap['remaining_seconds'] is None
    m.select('B')
    m.submit()
    snap = m.snapshot()
    assert snap['question']['correct_labels'] == ['B']
    assert snap['last_correct'] is True


def test_mode_parse_accepts_variants():
    assert Mode.parse('TimeAttack') is Mode.TIME_ATTACK
    assert Mode.parse('time-attack') is Mode.TIME_ATTACK
    assert Mode.parse('Practice') is Mode.PRACTICE
    with pytest.raises(ValueError):
        Mode.parse('survival')


def test_empty_round_rejected():
    with pytest.raises(ValueError):
        RunStateMachine([], Mode.CLASSIC)
