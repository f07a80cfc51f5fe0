"""
Turns a cost report into a per-objective breakdown for display.
"""

from typing import Optional

from courtplan.models import (
    CostObjective, CostReport, Explanation, ExplanationEntry, WeightVector
)


def explain(report: CostReport, weights: Optional[WeightVector] = None) -> Explanation:
    """
    Break a cost report down by objective.

    Entries are sorted by weighted contribution, largest first; ties keep the
    objective order. The largest non-zero contributor is the primary trade-off.

    Args:
        report: Cost report to explain
        weights: Weights to apply; defaults to the weights stored in the report
    """
    weight_map = weights.as_mapping() if weights is not None else report.weights
    order = {objective: i for i, objective in enumerate(CostObjective)}

    contributions = {
        objective: report.cost(objective) * weight_map[objective]
        for objective in CostObjective
    }
    total = sum(contributions.values())

    entries = []
    for objective in sorted(CostObjective, key=lambda o: (-contributions[o], order[o])):
        contribution = contributions[objective]
        entries.append(ExplanationEntry(
            objective=objective,
            raw_cost=report.cost(objective),
            weight=weight_map[objective],
            weighted_contribution=contribution,
            share=contribution / total if total > 0 else 0.0,
        ))

    primary = entries[0].objective if entries and entries[0].weighted_contribution > 0 else None
    return Explanation(entries=tuple(entries), total=total, primary_tradeoff=primary)
