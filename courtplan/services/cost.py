"""
Cost evaluation for the courtplan scheduling core.

Each objective is normalized to [0.0, 1.0] independently and is exactly 0.0
when there is no violation. The weighted total is the plain weighted sum:
it is never clamped or re-normalized.
"""

from collections import Counter, defaultdict
from statistics import median, pvariance

from courtplan.models import (
    CostObjective, CostReport, ScheduleSolution, WeightVector, is_placeholder
)


def _bounded(value: float) -> float:
    return min(1.0, max(0.0, value))


class CostEvaluator:
    """
    Computes the weighted multi-objective cost of a schedule.
    Pure: identical (solution, weights) always yield an identical report.
    """

    def evaluate(self, solution: ScheduleSolution, weights: WeightVector) -> CostReport:
        stats = solution.participant_stats()

        costs = {
            CostObjective.SKILL_BALANCE: self.skill_balance(solution),
            CostObjective.SEED_BALANCE: self.seed_balance(solution, stats),
            CostObjective.TEAMMATE_REPETITION: self.repetition(solution, stats, teammates=True),
            CostObjective.OPPONENT_REPETITION: self.repetition(solution, stats, teammates=False),
            CostObjective.SIT_OUT_EQUITY: self.sit_out_equity(solution, stats),
            CostObjective.REST_VARIANCE: self.rest_variance(solution, stats),
            CostObjective.COURT_UTILIZATION: self.court_utilization(solution),
            CostObjective.GENDER_BALANCE: self.gender_balance(solution),
        }
        weight_map = weights.as_mapping()
        total = sum(weight_map[objective] * costs[objective] for objective in CostObjective)
        return CostReport(costs=costs, weights=weight_map, total=total)

    def skill_balance(self, solution: ScheduleSolution) -> float:
        """
        Per game, the variance of the two sides' mean skill, relative to the
        largest two-value variance the problem's skill range allows.
        """
        problem = solution.problem
        ratings = [p.skill_rating for p in problem.participants]
        if len(ratings) < 2:
            return 0.0
        spread = max(ratings) - min(ratings)
        if spread <= 0:
            return 0.0

        scores = []
        for game in solution.games:
            means = []
            for side in (game.side_a, game.side_b):
                members = [problem.participant(ref) for ref in side if not is_placeholder(ref)]
                members = [m for m in members if m is not None]
                if len(members) != len(side) or not members:
                    break
                means.append(sum(m.skill_rating for m in members) / len(members))
            if len(means) != 2:
                continue
            # Two-value variance ((a-b)/2)^2 over its maximum (spread/2)^2
            scores.append(((means[0] - means[1]) / spread) ** 2)

        if not scores:
            return 0.0
        return _bounded(sum(scores) / len(scores))

    def seed_balance(self, solution: ScheduleSolution, stats) -> float:
        """
        Deviation of each seeded entrant's mean opponent seed from the mean
        opponent seed expected in its pool, relative to the seed range.
        """
        problem = solution.problem
        seeded = [p for p in problem.participants if p.seed is not None]
        if len(seeded) < 2:
            return 0.0
        seed_range = max(p.seed for p in seeded) - min(p.seed for p in seeded)
        if seed_range <= 0:
            return 0.0

        seeds_by_pool = defaultdict(list)
        for participant in seeded:
            seeds_by_pool[participant.pool].append(participant.seed)

        deviations = []
        for participant in seeded:
            pool_seeds = seeds_by_pool[participant.pool]
            if len(pool_seeds) < 2:
                continue
            opponent_seeds = []
            for opponent_id, count in stats[participant.id].opponents.items():
                opponent = problem.participant(opponent_id)
                if opponent is not None and opponent.seed is not None:
                    opponent_seeds.extend([opponent.seed] * count)
            if not opponent_seeds:
                continue
            expected = (sum(pool_seeds) - participant.seed) / (len(pool_seeds) - 1)
            actual = sum(opponent_seeds) / len(opponent_seeds)
            deviations.append(abs(actual - expected) / seed_range)

        if not deviations:
            return 0.0
        return _bounded(sum(deviations) / len(deviations))

    def repetition(self, solution: ScheduleSolution, stats, teammates: bool) -> float:
        """
        Repeated pairings beyond those forced by pool size, relative to the
        most repeats the same number of encounters could produce.
        """
        problem = solution.problem
        pool_sizes = Counter(p.pool for p in problem.participants)

        avoidable_total = 0
        worst_total = 0
        for participant_id, entry in stats.items():
            partners = entry.teammates if teammates else entry.opponents
            encounters = sum(partners.values())
            if encounters < 2:
                continue
            distinct = len(partners)
            participant = problem.participant(participant_id)
            pool = participant.pool if participant else None
            candidates = max(pool_sizes.get(pool, 0) - 1, distinct)
            forced = max(0, encounters - candidates)
            avoidable_total += (encounters - distinct) - forced
            worst_total += (encounters - 1) - forced

        if worst_total <= 0:
            return 0.0
        return _bounded(avoidable_total / worst_total)

    def sit_out_equity(self, solution: ScheduleSolution, stats) -> float:
        """Variance of per-participant sit-out counts over its maximum (rounds/2)^2."""
        rounds = len(solution.rounds())
        counts = [entry.sit_outs for entry in stats.values()]
        if rounds == 0 or len(counts) < 2:
            return 0.0
        return _bounded(pvariance(counts) / ((rounds / 2.0) ** 2))

    def rest_variance(self, solution: ScheduleSolution, stats) -> float:
        """
        Variance of same-day gaps between a participant's games, squashed to
        [0, 1) against the minimum rest (or the typical slot length).
        """
        problem = solution.problem
        reference = float(problem.constraints.min_rest_minutes)
        if reference <= 0:
            durations = [slot.duration_minutes for slot in problem.slots]
            reference = median(durations) if durations else 60.0

        scores = []
        for entry in stats.values():
            gaps = [max(0.0, gap) for gap in entry.same_day_gaps]
            if len(gaps) < 2:
                continue
            variance = pvariance(gaps)
            scores.append(variance / (variance + reference ** 2))

        if not scores:
            return 0.0
        return _bounded(sum(scores) / len(scores))

    def court_utilization(self, solution: ScheduleSolution) -> float:
        """Fraction of slots inside each day's played window that stay idle."""
        used_by_day = defaultdict(list)
        for slot in solution.assignments.values():
            used_by_day[slot.day].append(slot)
        if not used_by_day:
            return 0.0

        windows = {
            day: (min(s.start for s in used), max(s.end for s in used))
            for day, used in used_by_day.items()
        }
        used_by_court = defaultdict(list)
        for slot in solution.assignments.values():
            used_by_court[(slot.day, slot.court)].append(slot)

        capacity = 0
        idle = 0
        for slot in solution.problem.slots:
            window = windows.get(slot.day)
            if window is None or slot.start < window[0] or slot.end > window[1]:
                continue
            capacity += 1
            if not any(slot.overlaps_with(other) for other in used_by_court[(slot.day, slot.court)]):
                idle += 1

        if capacity == 0:
            return 0.0
        return _bounded(idle / capacity)

    def gender_balance(self, solution: ScheduleSolution) -> float:
        """Total-variation distance of each multi-member side from the target mix."""
        problem = solution.problem
        target = {g: w for g, w in problem.constraints.target_gender_mix.items() if w > 0}
        target_sum = sum(target.values())
        if target_sum <= 0:
            return 0.0
        target = {g: w / target_sum for g, w in target.items()}

        distances = []
        for game in solution.games:
            for side in (game.side_a, game.side_b):
                if len(side) < 2 or any(is_placeholder(ref) for ref in side):
                    continue
                counts = Counter()
                for ref in side:
                    participant = problem.participant(ref)
                    counts[participant.gender if participant else None] += 1
                actual = {g: c / len(side) for g, c in counts.items()}
                genders = set(actual) | set(target)
                distance = 0.5 * sum(abs(actual.get(g, 0.0) - target.get(g, 0.0)) for g in genders)
                distances.append(distance)

        if not distances:
            return 0.0
        return _bounded(sum(distances) / len(distances))


def evaluate_cost(solution: ScheduleSolution, weights: WeightVector) -> CostReport:
    return CostEvaluator().evaluate(solution, weights)


