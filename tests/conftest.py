"""
Shared problem builders for the courtplan tests.
"""

import sys
import os
from datetime import datetime, timedelta

import pytest

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from courtplan.models import (
    ConstraintSet, Participant, ProblemDescription, Slot, TournamentFormat
)

BASE_DAY = datetime(2025, 3, 1)


def build_slots(courts=("Court 1", "Court 2"), days=1, first_hour=8, hours=10,
                slot_minutes=60, tags=frozenset()):
    slots = []
    for day in range(days):
        for step in range(hours * 60 // slot_minutes):
            start = BASE_DAY + timedelta(days=day, hours=first_hour, minutes=step * slot_minutes)
            for court in courts:
                slots.append(Slot(court=court, start=start,
                                  end=start + timedelta(minutes=slot_minutes), tags=frozenset(tags)))
    return slots


def build_participants(count, pools=None, skill=lambda i: 0.0):
    participants = []
    for i in range(count):
        pool = pools[i % len(pools)] if pools else None
        participants.append(Participant(id=f"T{i + 1:02d}", skill_rating=skill(i), pool=pool, seed=i + 1))
    return participants


@pytest.fixture
def make_slots():
    return build_slots


@pytest.fixture
def make_participants():
    return build_participants


@pytest.fixture
def make_problem():
    def _make(teams=8, courts=("Court 1", "Court 2"), days=2, hours=10, pools=None,
              format=TournamentFormat.ROUND_ROBIN, constraints=None, weights=None, **kwargs):
        return ProblemDescription(
            participants=build_participants(teams, pools=pools, skill=lambda i: float(i % 4)),
            slots=build_slots(courts=courts, days=days, hours=hours),
            constraints=constraints or ConstraintSet(),
            weights=weights,
            format=format,
            **kwargs,
        )
    return _make


@pytest.fixture
def rr_problem(make_problem):
    """8 teams, single round robin, 2 courts, 1-hour slots."""
    return make_problem()


@pytest.fixture
def bracket_problem(make_problem):
    """8-team single elimination with a third-place game (4 rounds)."""
    return make_problem(format=TournamentFormat.BRACKET, third_place_game=True, days=1)
