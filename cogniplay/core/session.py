"""
Session and per-task runtime state.

Responsibilities:
- TaskState: runtime record of one task inside one session
- Session: ordered task states plus identity and creation time
- Lock rule: which tasks are eligible given what has been completed

Design principles:
- Immutable values; every mutation returns a new copy
- Task order and ids never change after session creation
- Lock state is always recomputed from scratch, never patched
- Serialization is lossless for everything the session owns
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from cogniplay.contracts import TaskDefinition
from cogniplay.scores import AnyScore, TaskScore
from cogniplay.utils.helpers import format_session_title, generate_session_id, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TaskState:
    """
    Runtime state of one task within a session.

    Attributes:
        definition: Static task contract the state was created from
        is_completed: False -> True only
        is_locked: Derived; recomputed by compute_task_locks()
        score: Attached score envelope, None until a score is reported
    """
    definition: TaskDefinition
    is_completed: bool = False
    is_locked: bool = True
    score: Optional[AnyScore] = None

    # Flattened accessors so callers don't reach into the definition

    @property
    def id(self) -> str:
        return self.definition.id

    @property
    def name(self) -> str:
        return self.definition.name

    @property
    def duration(self) -> str:
        return self.definition.duration

    @property
    def is_optional(self) -> bool:
        return self.definition.is_optional

    @property
    def prerequisite_task_ids(self):
        return self.definition.prerequisite_task_ids

    # ========================
    # Mutation primitives
    # ========================

    def mark_completed(self) -> "TaskState":
        """Return a completed copy. Idempotent."""
        return replace(self, is_completed=True)

    def attach_score(self, score: TaskScore) -> "TaskState":
        """Return a copy carrying `score`, replacing any previous score."""
        return replace(self, score=AnyScore.wrap(score))

    def with_lock(self, is_locked: bool) -> "TaskState":
        if is_locked == self.is_locked:
            return self
        return replace(self, is_locked=is_locked)

    def get_score(self, score_type):
        if self.score is None:
            return None
        return self.score.decode(score_type)

    # ========================
    # Serialization
    # ========================

    def to_json(self) -> Dict[str, Any]:
        data = self.definition.to_json()
        data.update({
            'isCompleted': self.is_completed,
            'isLocked': self.is_locked,
            'isOptional': self.is_optional,
        })
        if self.score is not None:
            data['score'] = self.score.to_json()
        return data

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "TaskState":
        """
        Rebuild a task state from its stored record.

        The definition is rebuilt from the record itself, so a session keeps
        the prerequisites it was created with.

        Raises:
            ValueError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Task record must be an object, got {type(data).__name__}")
        try:
            definition = TaskDefinition.from_json(data, is_optional=_flag(data, 'isOptional', False))
            score_data = data.get('score')
            return TaskState(
                definition=definition,
                is_completed=_flag(data, 'isCompleted', False),
                is_locked=_flag(data, 'isLocked', True),
                score=AnyScore.from_json(score_data) if score_data is not None else None,
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed task record: {e}") from e


def _flag(data: Dict[str, Any], key: str, default: bool) -> bool:
    # Only real JSON booleans; "false" or 0 must not pass as a flag
    value = data.get(key, default)
    if not isinstance(value, bool):
        raise ValueError(f"{key} must be a boolean, got {value!r}")
    return value


# ========================
# Lock rule
# ========================

def is_task_eligible(task: TaskState, completed_ids: Iterable[str]) -> bool:
    """
    Lock predicate for a single task.

    A task is eligible (unlocked) when it is optional or every prerequisite
    id is in `completed_ids`. Prerequisites missing from the session count
    as not completed.
    """
    if task.is_optional:
        return True
    return task.prerequisite_task_ids <= frozenset(completed_ids)


def compute_task_locks(tasks: Sequence[TaskState]) -> List[TaskState]:
    """
    Recompute every task's lock flag from scratch.

    Args:
        tasks: Task states in session order

    Returns:
        list[TaskState]: Same tasks, same order, with is_locked rewritten
    """
    completed_ids = frozenset(t.id for t in tasks if t.is_completed)
    updated = [t.with_lock(not is_task_eligible(t, completed_ids)) for t in tasks]

    locked = [t.id for t in updated if t.is_locked]
    logger.debug(f"Recomputed locks for {len(updated)} tasks, locked: {locked}")
    return updated


# ========================
# Session
# ========================

@dataclass(frozen=True)
class Session:
    """
    One guided pass through the task battery.

    Attributes:
        id: Unique identifier generated at creation
        date: Creation timestamp (UTC, timezone-aware)
        tasks: Task states in catalog order (fixed at creation)
    """
    id: str
    date: datetime
    tasks: Tuple[TaskState, ...] = field(default_factory=tuple)

    def __post_init__(self):
        object.__setattr__(self, 'tasks', tuple(self.tasks))

    @staticmethod
    def new(tasks: Sequence[TaskState], now: Optional[datetime] = None) -> "Session":
        """Create a session with a fresh id and the current timestamp."""
        return Session(id=generate_session_id(), date=now or utc_now(), tasks=tuple(tasks))

    # ========================
    # Derived values
    # ========================

    @property
    def is_completed(self) -> bool:
        """All non-optional tasks completed."""
        return all(t.is_completed for t in self.tasks if not t.is_optional)

    @property
    def session_title(self) -> str:
        return format_session_title(self.date)

    @property
    def completed_count(self) -> int:
        return sum(1 for t in self.tasks if t.is_completed and not t.is_optional)

    @property
    def required_count(self) -> int:
        return sum(1 for t in self.tasks if not t.is_optional)

    @property
    def has_progress(self) -> bool:
        return any(t.is_completed or t.score is not None for t in self.tasks)

    def task(self, task_id: str) -> Optional[TaskState]:
        for t in self.tasks:
            if t.id == task_id:
                return t
        return None

    def task_index(self, task_id: str) -> Optional[int]:
        for index, t in enumerate(self.tasks):
            if t.id == task_id:
                return index
        return None

    # ========================
    # Copy-on-write updates
    # ========================

    def with_task(self, index: int, task: TaskState) -> "Session":
        if self.tasks[index].id != task.id:
            raise ValueError(
                f"Task order is fixed: slot {index} holds '{self.tasks[index].id}', not '{task.id}'"
            )
        tasks = list(self.tasks)
        tasks[index] = task
        return replace(self, tasks=tuple(tasks))

    def with_recomputed_locks(self) -> "Session":
        return replace(self, tasks=tuple(compute_task_locks(self.tasks)))

    # ========================
    # Serialization
    # ========================

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'date': self.date.isoformat(),
            'tasks': [t.to_json() for t in self.tasks],
        }

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "Session":
        """
        Raises:
            ValueError: If the record is malformed
        """
        if not isinstance(data, dict):
            raise ValueError(f"Session record must be an object, got {type(data).__name__}")
        try:
            session_id = data['id']
            date = datetime.fromisoformat(data['date'])
            tasks = data['tasks']
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed session record: {e}") from e

        if not isinstance(session_id, str) or not isinstance(tasks, list):
            raise ValueError("Session record requires string 'id' and list 'tasks'")
        if date.tzinfo is None:
            date = date.replace(tzinfo=timezone.utc)

        return Session(id=session_id, date=date, tasks=tuple(TaskState.from_json(t) for t in tasks))
