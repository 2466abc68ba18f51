"""
Result types for the session results screen.

Built by cogniplay.utils.display_helpers.build_session_results().
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple


@dataclass(frozen=True)
class TaskResultRow:
    """
    One task line on the results screen.

    Attributes:
        task_id: Task identifier
        name: Display name
        is_completed: Completion flag
        is_optional: Optional tasks are listed but don't gate completion
        mmse_score: Task's MMSE value, None when no score is attached
        score_type: Discriminator of the attached score, None if absent
        details: Human-readable (label, value) pairs for the score
    """
    task_id: str
    name: str
    is_completed: bool
    is_optional: bool
    mmse_score: Optional[int]
    score_type: Optional[str]
    details: Tuple[Tuple[str, str], ...] = ()

    def to_json(self) -> Dict[str, Any]:
        return {
            'task_id': self.task_id,
            'name': self.name,
            'is_completed': self.is_completed,
            'is_optional': self.is_optional,
            'mmse_score': self.mmse_score,
            'score_type': self.score_type,
            'details': [{'label': label, 'value': value} for label, value in self.details],
        }


@dataclass(frozen=True)
class SessionResults:
    """
    Results screen contents for one session.

    Attributes:
        session_id: Session identifier
        title: Display title ('Session MM/DD/YY')
        combined_mmse: Clamped aggregate score
        interpretation: Band label for combined_mmse
        is_completed: All required tasks done
        completed_count: Required tasks completed
        required_count: Required tasks in the session
        tasks: Per-task rows in session order
    """
    session_id: str
    title: str
    combined_mmse: int
    interpretation: str
    is_completed: bool
    completed_count: int
    required_count: int
    tasks: Tuple[TaskResultRow, ...]

    def to_json(self) -> Dict[str, Any]:
        return {
            'session_id': self.session_id,
            'title': self.title,
            'combined_mmse': self.combined_mmse,
            'interpretation': self.interpretation,
            'is_completed': self.is_completed,
            'completed_count': self.completed_count,
            'required_count': self.required_count,
            'tasks': [row.to_json() for row in self.tasks],
        }
