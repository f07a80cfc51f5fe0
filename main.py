"""
Command line entry point for the courtplan scheduling core.
Loads a problem JSON file, builds (or re-optimizes) a schedule and prints
the schedule, its conflicts and the cost breakdown.
"""

import sys
import json
import argparse
import logging
from datetime import datetime

from pydantic import ValidationError

from courtplan.core.exceptions import SchedulingError
from courtplan.core.logging_config import setup_logging
from courtplan.models import ScheduleMode, SolveConfig
from courtplan.models.schemas import ProblemPayload, SchedulePayload, serialize_result
from courtplan.services.engine import generate, reoptimize


def _print_schedule(solution):
    current_day = None
    for game in solution.ordered_games():
        slot = solution.slot_of(game.id)
        if slot.day != current_day:
            current_day = slot.day
            print(f"\n{current_day:%A, %Y-%m-%d}")
            print("-" * 80)
        lock = " [locked]" if game.locked else ""
        print(
            f"  {slot.start:%H:%M}-{slot.end:%H:%M}  {slot.court:<12} "
            f"R{game.round:<3} {'/'.join(game.side_a)} vs {'/'.join(game.side_b)}  ({game.id}){lock}"
        )


def main():
    """
    Main function to run the scheduling core from the command line.
    Coordinates problem loading, solving, validation and output.
    """
    parser = argparse.ArgumentParser(
        description='courtplan - Assign games to courts and time slots'
    )
    parser.add_argument('--problem', required=True, help='Problem description JSON file')
    parser.add_argument(
        '--mode',
        choices=[mode.value for mode in ScheduleMode],
        default=ScheduleMode.OPTIMIZE.value,
        help='fast: deterministic baseline only; optimize: baseline plus annealing'
    )
    parser.add_argument('--seed', type=int, default=None, help='Random seed for a reproducible run')
    parser.add_argument('--iterations', type=int, default=None, help='Maximum annealing iterations')
    parser.add_argument(
        '--previous',
        help='Result JSON of an earlier run; re-optimizes it instead of generating'
    )
    parser.add_argument('--lock', action='append', default=[], help='Game id to keep in place (repeatable)')
    parser.add_argument(
        '--lock-round',
        type=int,
        action='append',
        default=[],
        help='Round whose games keep their slots (repeatable)'
    )
    parser.add_argument('--output', help='Write the result JSON to this file')
    parser.add_argument('--verbose', action='store_true', help='Enable verbose output')

    args = parser.parse_args()
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING)

    print("\n" + "=" * 80)
    print("COURTPLAN SCHEDULING")
    print("=" * 80)
    print(f"Started at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print("=" * 80)

    try:
        # Step 1: Load the problem
        print(f"\n[STEP 1] Loading problem from {args.problem}...")
        with open(args.problem) as f:
            problem = ProblemPayload.model_validate(json.load(f)).to_problem()

        print(f"\nLoaded:")
        print(f"  - {len(problem.participants)} participants")
        print(f"  - {len(problem.slots)} slots")
        print(f"  - Format: {problem.format.value}")

        overrides = {}
        if args.seed is not None:
            overrides['random_seed'] = args.seed
        if args.iterations is not None:
            overrides['max_iterations'] = args.iterations
        config = SolveConfig(**overrides)

        # Step 2: Solve
        if args.previous:
            print(f"\n[STEP 2] Re-optimizing schedule from {args.previous}...")
            with open(args.previous) as f:
                previous_games = json.load(f)['games']
            previous = SchedulePayload.from_serialized(previous_games).to_solution(problem)
            result = reoptimize(
                problem, previous, frozenset(args.lock), config, locked_rounds=args.lock_round
            )
        else:
            print(f"\n[STEP 2] Generating schedule ({args.mode})...")
            result = generate(problem, ScheduleMode(args.mode), config)

        print("\n" + "=" * 80)
        print("SCHEDULE")
        print("=" * 80)
        _print_schedule(result.solution)

        # Step 3: Conflicts and cost breakdown
        print("\n" + "=" * 80)
        print("VALIDATION SUMMARY")
        print("=" * 80)
        if result.conflicts:
            print(f"WARNING: {len(result.conflicts)} hard constraint conflict(s):")
            for conflict in result.conflicts:
                print(f"  - {conflict}")
        else:
            print("No conflicts")

        print("\n" + "=" * 80)
        print("COST BREAKDOWN")
        print("=" * 80)
        print(result.explanation.get_summary())

        payload = serialize_result(result)
        if args.output:
            with open(args.output, 'w') as f:
                json.dump(payload, f, indent=2)
            print(f"Result written to {args.output}")

        # Final summary
        print("\n" + "=" * 80)
        print("SCHEDULING COMPLETE")
        print("=" * 80)
        print(f"Total games scheduled: {len(result.solution)}")
        print(f"Status: {result.status.value}")
        print(f"Iterations: {result.stats.iterations} (seed {result.stats.random_seed})")
        if 'diff' in payload:
            print(f"Games moved: {len(payload['diff'])}")
        print(f"Completed at: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
        print("=" * 80)

        return 1 if result.conflicts else 0

    except KeyboardInterrupt:
        print("\n\nScheduling interrupted by user.")
        return 1

    except ValidationError as e:
        print(f"\n\nERROR: Invalid input ({e.error_count()} error(s)):")
        print(e)
        return 1

    except SchedulingError as e:
        print(f"\n\nERROR: {type(e).__name__}: {e.message}")
        for key, value in e.details.items():
            print(f"  {key}: {value}")
        return 1

    except (OSError, json.JSONDecodeError) as e:
        print(f"\n\nERROR: Could not read input: {e}")
        return 1


if __name__ == '__main__':
    sys.exit(main())
