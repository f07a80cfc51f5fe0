"""
Example usage of the courtplan scheduling core

This script demonstrates how to build a problem description, generate an
optimized schedule, re-optimize it around locked games, and submit the same
work as a Celery job that can be aborted.
"""

import sys
import os
from datetime import datetime, timedelta

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan import generate, reoptimize
from courtplan.core.logging_config import setup_logging
from courtplan.models import Participant, ProblemDescription, ScheduleMode, Slot, SolveConfig
from courtplan.models.schemas import serialize_solution


def build_problem():
    """Eight teams, two courts, hourly slots over two days."""
    participants = [
        Participant(id=f"Team {i + 1}", skill_rating=float(i % 4), seed=i + 1)
        for i in range(8)
    ]
    slots = []
    for day in range(2):
        for hour in range(8, 18):
            start = datetime(2025, 3, 1 + day, hour)
            for court in ("Court 1", "Court 2"):
                slots.append(Slot(court=court, start=start, end=start + timedelta(hours=1)))
    return ProblemDescription(
        participants=participants,
        slots=slots,
        weights={"opponent_repetition": 1.0, "rest_variance": 0.8},
    )


def example_generate():
    """Example: Generate an optimized schedule with progress output."""
    problem = build_problem()
    config = SolveConfig(max_iterations=2000, random_seed=42, progress_interval=500)

    def on_progress(update):
        print(f"  iteration {update.iteration}: best cost {update.best_cost:.4f}")

    result = generate(problem, ScheduleMode.OPTIMIZE, config, progress=on_progress)
    print(result.explanation.get_summary())
    return problem, result


def example_reoptimize(problem, result):
    """Example: Keep round 1 in place and re-optimize the rest."""
    config = SolveConfig(max_iterations=1000, random_seed=7)
    outcome = reoptimize(problem, result.solution, frozenset(), config, locked_rounds=[1])
    print(f"Moved {len(outcome.diff)} game(s):")
    for change in outcome.diff:
        print(f"  {change.game_id}: {change.old_slot} -> {change.new_slot}")


def example_celery_job():
    """Example: Submit a solve to a Celery worker and abort it (requires Redis)."""
    from celery.contrib.abortable import AbortableAsyncResult
    from courtplan.tasks.solve_tasks import generate_schedule

    problem = build_problem()
    payload = {
        "problem": {
            "participants": [{"id": p.id, "skill_rating": p.skill_rating, "seed": p.seed}
                             for p in problem.participants],
            "slots": [{"court": s.court, "start": s.start.isoformat(), "end": s.end.isoformat()}
                      for s in problem.slots],
            "weights": problem.weights,
        },
        "mode": "optimize",
        "config": {"max_iterations": 100000, "random_seed": 1},
    }
    task = generate_schedule.delay(payload)
    print(f"Submitted task {task.id}")

    # Stop early; the worker returns its best schedule so far
    AbortableAsyncResult(task.id).abort()
    print(task.get(timeout=120)["status"])


if __name__ == "__main__":
    setup_logging()
    problem, result = example_generate()
    for game in serialize_solution(result.solution)[:4]:
        print(game)
    example_reoptimize(problem, result)
