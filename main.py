"""
Console Test Harness for the SessionManager

Simple console loop to walk a screening session without the mobile UI:
list the checklist, complete tasks with sample scores, show results.
"""

import logging
import random
import sys

from cogniplay.config import Settings, configure_logging
from cogniplay.core.session_manager import SessionManager
from cogniplay.persistence import JSONFileStore, SessionPersistence
from cogniplay.scores import ClockScore, CorsiScore, GenericScore, SpeechScore, SRTTScore
from cogniplay.utils.display_helpers import build_session_results

logger = logging.getLogger(__name__)


def print_separator(char="=", length=60):
    """Print a separator line"""
    print(char * length)


def sample_score(task_id, rng):
    """Plausible score for a task, standing in for the mini-game"""
    if task_id == "speech":
        return SpeechScore(probability=round(rng.random(), 3))
    if task_id == "srtt":
        times = [rng.uniform(350, 650) for _ in range(12)]
        return SRTTScore.from_reaction_times(times)
    if task_id == "corsi":
        total = 8
        correct = rng.randint(2, total)
        return CorsiScore.from_trials(
            span_score=2 + correct // 2,
            highest_level=2 + correct // 2,
            correct_trials=correct,
            total_trials=total,
        )
    if task_id == "clock":
        hour, minute = ClockScore.random_target(rng)
        return ClockScore(completion_time=round(rng.uniform(40, 180), 1),
                          target_hour=hour, target_minute=minute)
    return GenericScore.create(rng.randint(0, 5), {"source": "console"})


def print_checklist(manager):
    session = manager.current_session
    if session is None:
        print("No current session.")
        return

    print(f"\n{session.session_title}  ({session.completed_count}/{session.required_count} done)")
    print_separator("-")
    for index, task in enumerate(session.tasks, start=1):
        if task.is_completed:
            status = "done"
        elif task.is_locked:
            status = "locked"
        else:
            status = "ready"
        optional = " (optional)" if task.is_optional else ""
        print(f"{index}. {task.name:<24} {task.duration:<8} [{status}]{optional}")
    print_separator("-")


def print_results(manager):
    results = build_session_results(manager)
    if results is None:
        print("No current session.")
        return

    print_separator()
    print(f"RESULTS - {results.title}")
    print_separator()
    print(f"Combined score: {results.combined_mmse}/30 ({results.interpretation})")
    for row in results.tasks:
        print(f"\n{row.name}: {'completed' if row.is_completed else 'not completed'}")
        for label, value in row.details:
            print(f"  {label}: {value}")
    print_separator()


def main():
    """Run console session"""
    settings = Settings.from_env()
    configure_logging(settings)

    print_separator()
    print("COGNIPLAY - CONSOLE SESSION")
    print_separator()

    manager = SessionManager(SessionPersistence(JSONFileStore(settings.data_dir)))
    if manager.has_session_with_progress():
        answer = input("Continue previous session? [Y/n] ").strip().lower()
        if answer in ("n", "no"):
            manager.create_new_session()
    manager.ensure_current_session()

    rng = random.Random()
    print("\nCommands: <number> complete task, 'r' results, 'n' new session, "
          "'c' clear data, 'q' quit")

    while True:
        print_checklist(manager)
        try:
            command = input("> ").strip().lower()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if command in ("q", "quit", "exit"):
            break
        if command == "r":
            print_results(manager)
            continue
        if command == "n":
            manager.create_new_session()
            continue
        if command == "c":
            manager.clear_all_data()
            manager.ensure_current_session()
            continue
        if not command.isdigit():
            print("Unknown command")
            continue

        tasks = manager.current_session.tasks
        index = int(command) - 1
        if not 0 <= index < len(tasks):
            print("No task with that number")
            continue

        task = tasks[index]
        if not manager.is_task_unlocked(task.id):
            print(f"'{task.name}' is locked")
            continue

        score = sample_score(task.id, rng)
        manager.complete_task(task.id, score)
        print(f"Completed '{task.name}' with {score}")

        if manager.current_session.is_completed:
            print("\nAll required tasks completed.")
            print_results(manager)

    return 0


if __name__ == "__main__":
    sys.exit(main())
