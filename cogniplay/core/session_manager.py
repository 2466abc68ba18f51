"""
Session Manager - guided screening session orchestration

Responsibilities:
- Own the current session and the append-only session history
- Create sessions from the task catalog
- Record task completion and scores
- Recompute task locks after every completion
- Persist after every mutation, restore on load
- Aggregate per-task scores into the combined MMSE-like score

Design principles:
- Single owner: the UI layer never mutates sessions directly
- Sessions are immutable values; the manager swaps whole copies, so the
  current session and its history entry are always the same object
- Unknown task ids are silent no-ops (stale UI snapshots are expected)
- Corrupt stored data loads as "no prior data"
- One re-entrant lock around every read-modify-write sequence

CRITICAL: current session vs history
- current_session, when present, is always an element of sessions
- Every mutator replaces the history entry and the current pointer
  in one step under the lock
- NEVER hold on to a Session returned by a reader and expect it to update
"""

import logging
import threading
from typing import Callable, List, Optional, Sequence, Type, TypeVar

from cogniplay.contracts import TaskDefinition
from cogniplay.core.session import Session, TaskState, is_task_eligible
from cogniplay.core.task_catalog import (
    DEFAULT_TASK_DEFINITIONS,
    create_default_tasks,
    validate_definitions,
)
from cogniplay.persistence import SessionPersistence
from cogniplay.scores import MMSE_MAX, MMSE_MIN, TaskScore, clamp_mmse

logger = logging.getLogger(__name__)

S = TypeVar("S", bound=TaskScore)

MMSEPolicy = Callable[[TaskScore], int]


def default_mmse_policy(score: TaskScore) -> int:
    """Use each variant's own placeholder conversion."""
    return score.to_mmse()


class SessionManager:
    """Manages the current screening session and its history"""

    def __init__(self, persistence: SessionPersistence,
                 task_definitions: Sequence[TaskDefinition] = DEFAULT_TASK_DEFINITIONS,
                 mmse_policy: Optional[MMSEPolicy] = None):
        """
        Initialize an empty manager. Call initialize() or load_sessions()
        to restore stored state.

        Args:
            persistence: Session persistence collaborator
            task_definitions: Ordered task battery for new sessions
            mmse_policy: Score -> 0..30 conversion (defaults to each
                variant's to_mmse())

        Raises:
            ValueError: If task_definitions has duplicate ids or dangling
                prerequisites
        """
        validate_definitions(task_definitions)

        self.persistence = persistence
        self.task_definitions = tuple(task_definitions)
        self.mmse_policy = mmse_policy or default_mmse_policy

        self._sessions: List[Session] = []
        self._current_index: Optional[int] = None
        self._lock = threading.RLock()

        logger.info(f"Session Manager initialized ({len(self.task_definitions)} tasks in battery)")

    # ========================
    # Read access
    # ========================

    @property
    def current_session(self) -> Optional[Session]:
        with self._lock:
            if self._current_index is None:
                return None
            return self._sessions[self._current_index]

    @property
    def sessions(self) -> List[Session]:
        """Session history, oldest first (copy of the list)."""
        with self._lock:
            return list(self._sessions)

    # ========================
    # Private Helpers
    # ========================

    def _persist(self) -> None:
        try:
            self.persistence.save(self.current_session, self._sessions)
        except OSError as e:
            # In-memory state is already consistent; only durability is lost
            logger.error(f"Failed to persist sessions: {e}")

    def _locate_task(self, task_id: str):
        """
        Find a task in the current session.

        Returns:
            (session, index) or (None, None) when there is no current
            session or the id is unknown
        """
        session = self.current_session
        if session is None:
            logger.warning(f"No current session; ignoring task '{task_id}'")
            return None, None

        index = session.task_index(task_id)
        if index is None:
            logger.warning(f"Task '{task_id}' not in session {session.id}; ignoring")
            return None, None
        return session, index

    def _commit(self, session: Session) -> None:
        """Replace the current session in history and persist."""
        self._sessions[self._current_index] = session
        self._persist()

    def _apply_mmse_policy(self, state: TaskState) -> Optional[int]:
        if state.score is None:
            return None
        score = state.score.unwrap()
        if score is None:
            # Unknown or unreadable variant still counts as a score of 0
            return 0
        return clamp_mmse(self.mmse_policy(score))

    # ========================
    # Session lifecycle
    # ========================

    def create_new_session(self) -> Session:
        """
        Start a new session from the task battery and make it current.

        Returns:
            Session: The new current session
        """
        with self._lock:
            session = Session.new(create_default_tasks(self.task_definitions))
            session = session.with_recomputed_locks()
            self._sessions.append(session)
            self._current_index = len(self._sessions) - 1
            self._persist()

        logger.info(f"Created session {session.id} ({len(session.tasks)} tasks)")
        return session

    def ensure_current_session(self) -> Session:
        """Create a session if none is current; return the current session."""
        with self._lock:
            if self._current_index is None:
                return self.create_new_session()
            return self.current_session

    def initialize(self) -> Session:
        """
        Startup sequence: restore stored state, then guarantee a current
        session exists.

        Returns:
            Session: The current session after startup
        """
        with self._lock:
            loaded = self.load_sessions()
            if not loaded or self._current_index is None:
                return self.create_new_session()
            return self.current_session

    def load_sessions(self) -> bool:
        """
        Restore history and current session from storage.

        If the stored current session is missing from the stored history it
        is appended. If both are present, the current-session record wins
        over the history copy with the same id.

        Returns:
            bool: True if any prior data was found
        """
        with self._lock:
            stored_sessions, stored_current = self.persistence.load()
            did_load = False

            if stored_sessions:
                self._sessions = list(stored_sessions)
                self._current_index = None
                did_load = True

            if stored_current is not None:
                did_load = True
                index = next(
                    (i for i, s in enumerate(self._sessions) if s.id == stored_current.id),
                    None,
                )
                if index is None:
                    logger.warning(f"Current session {stored_current.id} missing from history; repairing")
                    self._sessions.append(stored_current)
                    index = len(self._sessions) - 1
                else:
                    self._sessions[index] = stored_current
                self._current_index = index

            if did_load:
                logger.info(
                    f"Loaded {len(self._sessions)} session(s), "
                    f"current={self.current_session.id if self.current_session else None}"
                )
            else:
                logger.info("No stored session data found")
            return did_load

    def clear_all_data(self) -> None:
        """
        Forget every session in memory and in storage.

        A storage failure is logged; memory is cleared either way.
        """
        with self._lock:
            self._sessions = []
            self._current_index = None
            try:
                self.persistence.clear()
            except OSError as e:
                logger.error(f"Failed to clear stored sessions: {e}")
                return
        logger.info("All session data cleared")

    def has_session_with_progress(self) -> bool:
        """
        Reload from storage and report whether the current session has any
        completed task or any attached score.
        """
        with self._lock:
            self.load_sessions()
            session = self.current_session
            return session is not None and session.has_progress

    # ========================
    # Task completion
    # ========================

    def complete_task(self, task_id: str, score: Optional[TaskScore] = None) -> None:
        """
        Mark a task completed, optionally attaching its score.

        Score attachment and completion land in the same committed copy,
        so no reader or stored state ever shows one without the other.
        Unknown task ids are ignored. Re-completing a task is allowed; a new
        score replaces the previous one.

        Args:
            task_id: Task identifier (e.g. 'srtt')
            score: Optional concrete score variant
        """
        with self._lock:
            session, index = self._locate_task(task_id)
            if session is None:
                return

            state = session.tasks[index]
            if score is not None:
                state = state.attach_score(score)
            state = state.mark_completed()

            self._commit(session.with_task(index, state).with_recomputed_locks())

        logger.info(
            f"Completed task '{task_id}'"
            + (f" with {score.type_name()}" if score is not None else "")
        )

    def update_task_score(self, task_id: str, score: TaskScore) -> None:
        """
        Attach or replace a task's score without completing it.

        Completion is unchanged, so locks are not recomputed.
        """
        with self._lock:
            session, index = self._locate_task(task_id)
            if session is None:
                return

            state = session.tasks[index].attach_score(score)
            self._commit(session.with_task(index, state))

        logger.debug(f"Updated score for task '{task_id}' ({score.type_name()})")

    def is_task_unlocked(self, task_id: str) -> bool:
        """
        Evaluate the lock rule for one task without mutating anything.

        Returns:
            bool: False when there is no current session or the id is unknown
        """
        session = self.current_session
        if session is None:
            return False
        state = session.task(task_id)
        if state is None:
            return False
        completed_ids = frozenset(t.id for t in session.tasks if t.is_completed)
        return is_task_eligible(state, completed_ids)

    # ========================
    # Scores
    # ========================

    def get_task_score(self, task_id: str, score_type: Type[S]) -> Optional[S]:
        """
        Read a task's score as a specific variant.

        Returns:
            The score, or None if the task, the score, or the variant
            doesn't match
        """
        session = self.current_session
        if session is None:
            return None
        state = session.task(task_id)
        if state is None:
            return None
        return state.get_score(score_type)

    def get_task_mmse_score(self, task_id: str) -> Optional[int]:
        """
        MMSE-scale value of a task's score, whatever its variant.

        Returns:
            int in [0, 30], or None if the task has no score
        """
        session = self.current_session
        if session is None:
            return None
        state = session.task(task_id)
        if state is None:
            return None
        return self._apply_mmse_policy(state)

    def get_combined_mmse_score(self) -> int:
        """
        Sum of MMSE values over completed, scored tasks, clamped to [0, 30].

        Tasks completed without a score contribute nothing. No weighting is
        applied.
        """
        session = self.current_session
        if session is None:
            return 0

        total = 0
        for state in session.tasks:
            if not state.is_completed:
                continue
            value = self._apply_mmse_policy(state)
            if value is not None:
                total += value

        return max(MMSE_MIN, min(MMSE_MAX, total))
