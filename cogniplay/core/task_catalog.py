"""
Canonical task battery.

DEFAULT_TASK_DEFINITIONS is the single source of truth for which tasks a
new session contains and in what order. Changing it only affects sessions
created afterwards; stored sessions keep the definitions they were created
with.
"""

import logging
from typing import List, Optional, Sequence

from cogniplay.contracts import TaskDefinition, TutorialStep
from cogniplay.core.session import TaskState, compute_task_locks

logger = logging.getLogger(__name__)


DEFAULT_TASK_DEFINITIONS = (
    TaskDefinition(
        id="speech",
        name="Describe Image",
        duration="(0:30)",
        tutorial_steps=(
            TutorialStep(
                id="speech-1",
                title="Record Your Description",
                description="Tap the microphone button to start recording",
                icon="mic.fill",
            ),
            TutorialStep(
                id="speech-2",
                title="Speak Clearly",
                description="Describe what you see in the image for at least 30 seconds",
                icon="waveform",
            ),
            TutorialStep(
                id="speech-3",
                title="Analysis",
                description="Your speech will be analyzed for clarity and coherence",
                icon="chart.bar.fill",
            ),
        ),
    ),
    TaskDefinition(
        id="srtt",
        name="Serial Reaction Time",
        duration="(0:30)",
        tutorial_steps=(
            TutorialStep(
                id="srtt-1",
                title="Tap Quickly",
                description="Tap the square that lights up as quickly as possible",
                icon="hand.tap.fill",
            ),
            TutorialStep(
                id="srtt-2",
                title="Speed Matters",
                description="Respond as fast and accurately as you can",
                icon="speedometer",
            ),
            TutorialStep(
                id="srtt-3",
                title="Complete Rounds",
                description="Complete 12 rounds to finish the task",
                icon="arrow.clockwise",
            ),
        ),
    ),
    TaskDefinition(
        id="corsi",
        name="Corsi Block",
        duration="(0:30)",
        tutorial_steps=(
            TutorialStep(
                id="corsi-1",
                title="Watch the Sequence",
                description="Blocks will light up one at a time in a specific order",
                icon="eye.fill",
            ),
            TutorialStep(
                id="corsi-2",
                title="Remember the Pattern",
                description="Memorize which blocks light up and in what order",
                icon="brain.head.profile",
            ),
            TutorialStep(
                id="corsi-3",
                title="Tap to Repeat",
                description="After the sequence ends, tap the blocks in the same order",
                icon="hand.tap.fill",
            ),
            TutorialStep(
                id="corsi-4",
                title="Sequences Get Longer",
                description="Start with 2 blocks and progress to longer sequences",
                icon="arrow.up.forward",
            ),
            TutorialStep(
                id="corsi-5",
                title="Two Chances Per Level",
                description="You get 2 attempts at each sequence length before advancing",
                icon="arrow.clockwise",
            ),
        ),
    ),
    TaskDefinition(
        id="clock",
        name="Clock Drawing",
        duration="(3:00)",
        tutorial_steps=(
            TutorialStep(
                id="clock-1",
                title="Draw the Circle",
                description="Start by drawing a circle to represent the clock face",
                icon="circle",
            ),
            TutorialStep(
                id="clock-2",
                title="Add All Numbers",
                description="Place all 12 numbers (1-12) around the clock in their correct positions",
                icon="textformat.123",
            ),
            TutorialStep(
                id="clock-3",
                title="Draw the Hands",
                description="Add both the hour hand and minute hand to show the requested time",
                icon="clock.fill",
            ),
            TutorialStep(
                id="clock-4",
                title="Check Your Time",
                description="Make sure the hands point to the time shown above the canvas",
                icon="checkmark.circle.fill",
            ),
            TutorialStep(
                id="clock-5",
                title="Take Your Time",
                description="You have up to 3 minutes - focus on accuracy over speed",
                icon="timer",
            ),
        ),
    ),
)


def validate_definitions(definitions: Sequence[TaskDefinition]) -> None:
    """
    Check a battery for duplicate ids and dangling prerequisites.

    Raises:
        ValueError: If two definitions share an id or a prerequisite names
            a task that is not in the battery
    """
    seen = set()
    for definition in definitions:
        if definition.id in seen:
            raise ValueError(f"Duplicate task id: {definition.id}")
        seen.add(definition.id)

    for definition in definitions:
        missing = definition.prerequisite_task_ids - seen
        if missing:
            raise ValueError(
                f"Task '{definition.id}' has unknown prerequisites: {sorted(missing)}"
            )


def get_definition(task_id: str,
                   definitions: Sequence[TaskDefinition] = DEFAULT_TASK_DEFINITIONS
                   ) -> Optional[TaskDefinition]:
    for definition in definitions:
        if definition.id == task_id:
            return definition
    return None


def create_default_tasks(definitions: Sequence[TaskDefinition] = DEFAULT_TASK_DEFINITIONS
                         ) -> List[TaskState]:
    """
    Materialize fresh task states for a new session.

    One TaskState per definition, in catalog order, none completed.
    Lock flags come from the same rule used after every mutation, applied
    to an empty completion set, so prerequisite-free tasks start unlocked.

    Args:
        definitions: Ordered battery (defaults to DEFAULT_TASK_DEFINITIONS)

    Returns:
        list[TaskState]: Fresh task states
    """
    tasks = [TaskState(definition=d) for d in definitions]
    return compute_task_locks(tasks)
