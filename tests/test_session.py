"""
Test TaskState, Session, the lock rule and the task catalog

Run with: pytest tests/test_session.py -v
"""

import json
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from cogniplay.contracts import TaskDefinition, TutorialStep
from cogniplay.core.session import Session, TaskState, compute_task_locks, is_task_eligible
from cogniplay.core.task_catalog import (
    DEFAULT_TASK_DEFINITIONS,
    create_default_tasks,
    get_definition,
    validate_definitions,
)
from cogniplay.scores import AnyScore, SpeechScore, SRTTScore


A = TaskDefinition(id="A", name="Task A", duration="(0:30)")
B = TaskDefinition(id="B", name="Task B", duration="(0:30)", prerequisite_task_ids={"A"})
C = TaskDefinition(id="C", name="Task C", duration="(1:00)", prerequisite_task_ids={"A", "B"})
OPT = TaskDefinition(id="watch", name="Link Watch Data", duration="",
                     prerequisite_task_ids={"C"}, is_optional=True)


# ========== Catalog ==========

def test_default_catalog_order():
    assert [d.id for d in DEFAULT_TASK_DEFINITIONS] == ["speech", "srtt", "corsi", "clock"]
    validate_definitions(DEFAULT_TASK_DEFINITIONS)


def test_create_default_tasks_mirrors_catalog():
    tasks = create_default_tasks()

    assert [t.id for t in tasks] == [d.id for d in DEFAULT_TASK_DEFINITIONS]
    assert all(not t.is_completed for t in tasks)
    assert all(t.score is None for t in tasks)
    # No prerequisites in the default battery: everything starts open
    assert all(not t.is_locked for t in tasks)


def test_create_default_tasks_with_prerequisites():
    tasks = create_default_tasks((A, B, C, OPT))
    locks = {t.id: t.is_locked for t in tasks}
    assert locks == {"A": False, "B": True, "C": True, "watch": False}


def test_get_definition():
    assert get_definition("clock").name == "Clock Drawing"
    assert get_definition("nonexistent") is None


def test_validate_definitions_rejects_duplicates():
    with pytest.raises(ValueError, match="Duplicate"):
        validate_definitions((A, A))


def test_validate_definitions_rejects_dangling_prerequisite():
    with pytest.raises(ValueError, match="unknown prerequisites"):
        validate_definitions((B,))


# ========== TaskState ==========

def test_mark_completed_is_idempotent():
    state = TaskState(definition=A)
    once = state.mark_completed()
    twice = once.mark_completed()

    assert once.is_completed is True
    assert once == twice
    assert state.is_completed is False  # original untouched


def test_attach_score_does_not_complete():
    state = TaskState(definition=A).attach_score(SpeechScore(0.4))

    assert state.is_completed is False
    assert state.get_score(SpeechScore) == SpeechScore(0.4)
    assert state.get_score(SRTTScore) is None


def test_attach_score_replaces_previous():
    state = TaskState(definition=A).attach_score(SpeechScore(0.4)).attach_score(SpeechScore(0.9))
    assert state.get_score(SpeechScore) == SpeechScore(0.9)


def test_optional_flag_copied_from_definition():
    assert TaskState(definition=OPT).is_optional is True
    assert TaskState(definition=A).is_optional is False


def test_task_state_json_round_trip():
    state = TaskState(definition=C, is_completed=True, is_locked=False,
                      score=AnyScore.wrap(SRTTScore(1.0, 2.0, 3.0, 0.1)))
    restored = TaskState.from_json(json.loads(json.dumps(state.to_json())))

    assert restored == state


def test_task_state_record_layout():
    record = TaskState(definition=B).to_json()
    assert record['prerequisiteTaskIDs'] == ["A"]
    assert record['isCompleted'] is False
    assert record['isLocked'] is True
    assert record['isOptional'] is False
    assert 'score' not in record


def test_task_state_from_json_rejects_garbage():
    with pytest.raises(ValueError):
        TaskState.from_json({'name': 'no id'})
    with pytest.raises(ValueError):
        TaskState.from_json("speech")


# ========== Lock rule ==========

def test_lock_rule_follows_prerequisites():
    tasks = [TaskState(definition=d) for d in (A, B, C)]
    tasks = compute_task_locks(tasks)
    assert [t.is_locked for t in tasks] == [False, True, True]

    tasks[0] = tasks[0].mark_completed()
    tasks = compute_task_locks(tasks)
    assert [t.is_locked for t in tasks] == [False, False, True]

    tasks[1] = tasks[1].mark_completed()
    tasks = compute_task_locks(tasks)
    assert [t.is_locked for t in tasks] == [False, False, False]


def test_lock_rule_never_locks_optional():
    assert is_task_eligible(TaskState(definition=OPT), completed_ids=()) is True


def test_lock_rule_ignores_stale_flags():
    """Recomputation starts from scratch, whatever the flags said before"""
    stale = [TaskState(definition=A, is_locked=True), TaskState(definition=B, is_locked=False)]
    fixed = compute_task_locks(stale)
    assert [t.is_locked for t in fixed] == [False, True]


def test_missing_prerequisite_counts_as_incomplete():
    assert is_task_eligible(TaskState(definition=B), completed_ids=()) is False


# ========== Session ==========

def test_new_session_has_unique_ids():
    first = Session.new(create_default_tasks())
    second = Session.new(create_default_tasks())
    assert first.id != second.id
    assert first.date.tzinfo is not None


def test_session_is_completed_ignores_optional():
    session = Session.new(compute_task_locks([TaskState(definition=d) for d in (A, OPT)]))
    assert session.is_completed is False

    session = session.with_task(0, session.tasks[0].mark_completed())
    assert session.is_completed is True
    assert session.completed_count == 1
    assert session.required_count == 1


def test_session_title_format():
    session = Session(id="x", date=datetime(2025, 3, 7, 14, 0, tzinfo=timezone.utc), tasks=())
    assert session.session_title == "Session 03/07/25"


def test_with_task_keeps_order():
    session = Session.new(create_default_tasks((A, B)))
    with pytest.raises(ValueError):
        session.with_task(0, session.tasks[1])


def test_has_progress():
    session = Session.new(create_default_tasks((A, B)))
    assert session.has_progress is False

    scored = session.with_task(1, session.tasks[1].attach_score(SpeechScore(0.5)))
    assert scored.has_progress is True


def test_session_json_round_trip():
    session = Session.new(create_default_tasks())
    index = session.task_index("srtt")
    session = session.with_task(
        index, session.tasks[index].attach_score(SRTTScore(450.0, 400.0, 500.0, 0.2)).mark_completed()
    ).with_recomputed_locks()

    restored = Session.from_json(json.loads(json.dumps(session.to_json())))

    assert restored == session
    assert restored.task("srtt").get_score(SRTTScore) == SRTTScore(450.0, 400.0, 500.0, 0.2)


def test_session_from_json_keeps_stored_definitions():
    """Stored prerequisites come back even if they aren't in the current catalog"""
    session = Session.new(create_default_tasks((A, B)))
    restored = Session.from_json(session.to_json())
    assert restored.task("B").prerequisite_task_ids == frozenset({"A"})


def test_session_from_json_naive_date_becomes_utc():
    record = {'id': 'abc', 'date': '2025-01-02T03:04:05', 'tasks': []}
    assert Session.from_json(record).date.tzinfo == timezone.utc


def test_session_from_json_rejects_malformed():
    with pytest.raises(ValueError):
        Session.from_json({'id': 'abc', 'tasks': []})
    with pytest.raises(ValueError):
        Session.from_json({'id': 'abc', 'date': 'yesterday', 'tasks': []})
    with pytest.raises(ValueError):
        Session.from_json({'id': 1, 'date': '2025-01-02T03:04:05', 'tasks': []})


def test_tutorial_steps_survive_round_trip():
    step = TutorialStep(title="Tap", description="Tap it", icon="hand.tap.fill")
    assert step.id
    assert TutorialStep.from_json(step.to_json()) == step


@pytest.mark.parametrize("key,value", [
    ('isCompleted', "false"),
    ('isCompleted', 1),
    ('isLocked', "true"),
    ('isOptional', None),
])
def test_task_state_from_json_requires_boolean_flags(key, value):
    record = TaskState(definition=A).to_json()
    record[key] = value
    with pytest.raises(ValueError, match=key):
        TaskState.from_json(record)
