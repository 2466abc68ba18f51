"""
Static task contracts for the screening battery.

This module defines immutable data structures describing *what* a task is.
Runtime progress (completion, lock state, scores) lives in TaskState; these
contracts never change after the app is built.

Design principles:
- Frozen dataclasses (immutable after creation)
- Tuples instead of lists so definitions stay hashable and immutable
- No dependencies on other cogniplay modules
- Definition layer only (no enforcement)

Contents:
- TutorialStep: One instruction card shown before a task starts
- TaskDefinition: Identity, display metadata and prerequisites of a task

Usage:
    from cogniplay.contracts import TaskDefinition, TutorialStep
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Tuple


@dataclass(frozen=True)
class TutorialStep:
    """
    One instruction card in a task tutorial.

    Attributes:
        title: Short heading (e.g. 'Tap Quickly')
        description: One-sentence instruction
        icon: Icon reference understood by the presentation layer
        id: Stable identifier; generated when omitted
    """
    title: str
    description: str
    icon: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()).upper())

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'description': self.description,
            'icon': self.icon,
        }

    @staticmethod
    def from_json(data: Dict[str, Any]) -> "TutorialStep":
        return TutorialStep(
            id=str(data['id']),
            title=str(data['title']),
            description=str(data['description']),
            icon=str(data['icon']),
        )


@dataclass(frozen=True)
class TaskDefinition:
    """
    Static description of one task in the battery.

    Attributes:
        id: Unique, app-wide stable identifier (e.g. 'srtt')
        name: Display name (e.g. 'Serial Reaction Time')
        duration: Display string such as '(0:30)'. Not used for timing.
        tutorial_steps: Ordered instruction cards
        prerequisite_task_ids: Ids that must be completed before this task
            unlocks. Empty means the task is eligible as soon as a session
            exists.
        is_optional: Optional tasks never lock and do not count towards
            session completion.

    Examples:
        >>> speech = TaskDefinition(id='speech', name='Describe Image', duration='(0:30)')
        >>> speech.prerequisite_task_ids
        frozenset()
    """
    id: str
    name: str
    duration: str
    tutorial_steps: Tuple[TutorialStep, ...] = ()
    prerequisite_task_ids: FrozenSet[str] = frozenset()
    is_optional: bool = False

    def __post_init__(self):
        # Accept lists/sets from callers, store immutable containers
        object.__setattr__(self, 'tutorial_steps', tuple(self.tutorial_steps))
        object.__setattr__(self, 'prerequisite_task_ids', frozenset(self.prerequisite_task_ids))

    def to_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'duration': self.duration,
            'tutorialSteps': [step.to_json() for step in self.tutorial_steps],
            'prerequisiteTaskIDs': sorted(self.prerequisite_task_ids),
        }

    @staticmethod
    def from_json(data: Dict[str, Any], is_optional: bool = False) -> "TaskDefinition":
        prerequisites = data.get('prerequisiteTaskIDs', [])
        if not isinstance(prerequisites, list):
            raise ValueError("prerequisiteTaskIDs must be a list")
        return TaskDefinition(
            id=str(data['id']),
            name=str(data['name']),
            duration=str(data.get('duration', '')),
            tutorial_steps=tuple(TutorialStep.from_json(s) for s in data.get('tutorialSteps', [])),
            prerequisite_task_ids=frozenset(str(p) for p in prerequisites),
            is_optional=is_optional,
        )
