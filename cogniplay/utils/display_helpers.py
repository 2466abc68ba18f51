"""
Display Helpers - Convert session state to human-readable format

Used by the web API and the console harness to build results views.
"""

from typing import List, Optional, Tuple

from cogniplay.results import SessionResults, TaskResultRow
from cogniplay.scores import (
    AnyScore,
    ClockScore,
    CorsiScore,
    GenericScore,
    SpeechScore,
    SRTTScore,
    TaskScore,
)


# Lower bound of each band -> label, checked top-down
MMSE_BANDS = (
    (24, 'Normal cognitive function'),
    (18, 'Mild cognitive impairment'),
    (10, 'Moderate cognitive impairment'),
    (0, 'Severe cognitive impairment'),
)


def interpret_mmse(score: int) -> str:
    """
    Band label for a combined score

    Args:
        score: Combined MMSE-like score (0-30)

    Returns:
        str: Interpretation label

    Examples:
        >>> interpret_mmse(26)
        'Normal cognitive function'
        >>> interpret_mmse(12)
        'Moderate cognitive impairment'
    """
    for lower, label in MMSE_BANDS:
        if score >= lower:
            return label
    return MMSE_BANDS[-1][1]


def format_clock_time(hour: int, minute: int) -> str:
    return f"{hour}:{minute:02d}"


def describe_score(score: TaskScore) -> List[Tuple[str, str]]:
    """
    Human-readable (label, value) rows for a score variant

    Args:
        score: Any concrete score

    Returns:
        list: (label, value) pairs in display order
    """
    if isinstance(score, SpeechScore):
        return [('Probability', f"{score.probability * 100:.1f}%")]

    if isinstance(score, SRTTScore):
        rows = [
            ('Average Reaction Time', f"{score.average_rt:.0f} ms"),
            ('Pattern Phase RT', f"{score.pattern_rt:.0f} ms"),
            ('Random Phase RT', f"{score.random_rt:.0f} ms"),
        ]
        if score.pattern_rt > 0 and score.random_rt > 0:
            rows.append(('Learning Effect', f"{score.learning_effect * 100:.1f}%"))
        return rows

    if isinstance(score, CorsiScore):
        return [
            ('Corsi Span', f"{score.span_score} blocks"),
            ('Highest Level', str(score.highest_level)),
            ('Correct Trials', f"{score.correct_trials}/{score.total_trials}"),
            ('Success Rate', f"{score.success_rate * 100:.0f}%"),
        ]

    if isinstance(score, ClockScore):
        return [
            ('Target Time', format_clock_time(score.target_hour, score.target_minute)),
            ('Completion Time', f"{score.completion_time:.1f} seconds"),
        ]

    if isinstance(score, GenericScore):
        rows = [('Raw Score', str(score.value))]
        rows.extend(score.details or ())
        return rows

    return []


def describe_any_score(score: Optional[AnyScore]) -> List[Tuple[str, str]]:
    if score is None:
        return []
    if not score.is_known_type:
        return [('Score', f"Unsupported score format ({score.type_name})")]
    unwrapped = score.unwrap()
    if unwrapped is None:
        return [('Score', f"Unreadable score data ({score.type_name})")]
    return describe_score(unwrapped)


def build_session_results(manager) -> Optional[SessionResults]:
    """
    Assemble the results view for the manager's current session

    Args:
        manager: SessionManager instance

    Returns:
        SessionResults, or None when there is no current session
    """
    session = manager.current_session
    if session is None:
        return None

    rows = tuple(
        TaskResultRow(
            task_id=state.id,
            name=state.name,
            is_completed=state.is_completed,
            is_optional=state.is_optional,
            mmse_score=manager.get_task_mmse_score(state.id),
            score_type=state.score.type_name if state.score is not None else None,
            details=tuple(describe_any_score(state.score)),
        )
        for state in session.tasks
    )

    combined = manager.get_combined_mmse_score()
    return SessionResults(
        session_id=session.id,
        title=session.session_title,
        combined_mmse=combined,
        interpretation=interpret_mmse(combined),
        is_completed=session.is_completed,
        completed_count=session.completed_count,
        required_count=session.required_count,
        tasks=rows,
    )
