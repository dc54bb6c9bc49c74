import random

import pytest
import tcod.ecs

from stadium.data_loader import BalanceConfig, ClassificationDef, SectionDef
from stadium.ecs.components import EngagementStats, WaveParticipation
from stadium.ecs.systems import set_stats
from stadium.participation import (
    adjust_wave_strength,
    classify_column,
    classify_section,
    participation_chance,
    roll_column,
    roll_section,
    section_bonus,
    worst_outcome,
)
from stadium.wave import OUTCOME_FAILED, OUTCOME_REDUCED, OUTCOME_SUCCESS
from venue.sections import Section, populate_section

BALANCE = BalanceConfig()


class StubRng(random.Random):
    """Replays a fixed sequence from random()."""

    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)

    def random(self):
        return self.values.pop(0)


def make_section(rows, cols, empty_seats=(), happiness=60.0, thirst=0.0, attention=60.0):
    registry = tcod.ecs.Registry()
    sdef = SectionDef(id="A", rows=rows, cols=cols, empty_seats=[list(s) for s in empty_seats])
    section = populate_section(registry, sdef, random.Random(0), BALANCE.fan_stats)
    for fan in section.fans():
        set_stats(fan, happiness=happiness, thirst=thirst, attention=attention)
    return section

# ============================================================
# Probability
# ============================================================

def test_section_bonus():
    assert section_bonus(EngagementStats(happiness=50.0, thirst=50.0, attention=50.0)) == pytest.approx(12.5)

def test_participation_chance_formula():
    stats = EngagementStats(happiness=80.0, thirst=20.0, attention=60.0)
    chance = participation_chance(stats, 12.5, 70.0, BALANCE.fan_stats, BALANCE.wave_strength)
    assert chance == pytest.approx(86.58)

def test_participation_chance_is_clamped():
    high = EngagementStats(happiness=100.0, thirst=0.0, attention=100.0)
    low = EngagementStats(happiness=0.0, thirst=100.0, attention=0.0)
    assert participation_chance(high, 30.0, 100.0, BALANCE.fan_stats, BALANCE.wave_strength) == 100.0
    assert participation_chance(low, -15.0, 0.0, BALANCE.fan_stats, BALANCE.wave_strength) == 0.0

# ============================================================
# Classification
# ============================================================

@pytest.mark.parametrize("rate, expected", [
    (1.0, OUTCOME_SUCCESS),
    (0.6, OUTCOME_SUCCESS),
    (0.59, OUTCOME_REDUCED),
    (0.4, OUTCOME_REDUCED),
    (0.39, OUTCOME_FAILED),
    (0.0, OUTCOME_FAILED),
])
def test_classification_bands(rate, expected):
    cfg = ClassificationDef()
    assert classify_column(rate, cfg) == expected
    assert classify_section(rate, cfg) == expected

def test_worst_outcome():
    assert worst_outcome([OUTCOME_SUCCESS, OUTCOME_FAILED, OUTCOME_REDUCED]) == OUTCOME_FAILED
    assert worst_outcome([OUTCOME_SUCCESS, OUTCOME_REDUCED]) == OUTCOME_REDUCED
    assert worst_outcome([]) is None

# ============================================================
# Rolling
# ============================================================

def test_peer_pressure_at_exact_threshold():
    section = make_section(rows=5, cols=1)
    rng = StubRng([0.0, 0.0, 0.0, 0.99, 0.99])

    column = roll_column(section.column_fans(0), 0, section.aggregate_stats(), 70.0, rng, BALANCE, "1")

    assert column.raw_participants == 3
    assert column.raw_rate == pytest.approx(0.6)
    assert column.outcome == OUTCOME_SUCCESS
    assert column.peer_pressure_applied
    assert column.final_participants == 5
    converted = [r for r in column.rolls if r.reduced_effort]
    assert len(converted) == 2
    assert all(r.intensity == 0.5 for r in converted)
    assert all(r.intensity == 1.0 for r in column.rolls if not r.reduced_effort)

def test_no_peer_pressure_below_threshold():
    section = make_section(rows=5, cols=1)
    rng = StubRng([0.0, 0.0, 0.99, 0.99, 0.99])

    column = roll_column(section.column_fans(0), 0, section.aggregate_stats(), 70.0, rng, BALANCE)

    assert column.raw_rate == pytest.approx(0.4)
    assert column.outcome == OUTCOME_REDUCED
    assert not column.peer_pressure_applied
    assert column.final_participants == 2

def test_roll_records_participation_component():
    section = make_section(rows=5, cols=1)
    rng = StubRng([0.0, 0.0, 0.0, 0.99, 0.99])

    roll_column(section.column_fans(0), 0, section.aggregate_stats(), 70.0, rng, BALANCE, "9")

    parts = [f.components[WaveParticipation] for f in section.column_fans(0)]
    assert all(p.last_participated for p in parts)
    assert all(p.last_wave_id == "9" for p in parts)
    assert [p.reduced_effort for p in parts] == [False, False, False, True, True]

def test_section_outcome_is_worst_of_band_and_columns():
    section = make_section(rows=2, cols=2)
    # column 0 (two fans) all in, column 1 all out
    rng = StubRng([0.0, 0.0, 0.99, 0.99])

    result, columns = roll_section(section, 70.0, rng, BALANCE, "1")

    assert [c.outcome for c in columns] == [OUTCOME_SUCCESS, OUTCOME_FAILED]
    assert result.participation_rate == pytest.approx(0.5)
    assert result.outcome == OUTCOME_FAILED
    assert len(result.column_results) == 2

def test_section_rate_ignores_peer_pressure_converts():
    section = make_section(rows=5, cols=1)
    rng = StubRng([0.0, 0.0, 0.0, 0.99, 0.99])

    result, columns = roll_section(section, 70.0, rng, BALANCE)

    assert columns[0].final_participants == 5
    assert result.participation_rate == pytest.approx(0.6)
    assert result.outcome == OUTCOME_SUCCESS

def test_empty_columns_are_skipped():
    section = make_section(rows=2, cols=2, empty_seats=[(0, 1), (1, 1)])
    rng = StubRng([0.0, 0.0])

    result, columns = roll_section(section, 70.0, rng, BALANCE)

    assert [c.column_index for c in columns] == [0]
    assert result.outcome == OUTCOME_SUCCESS

def test_empty_section_fails():
    registry = tcod.ecs.Registry()
    section = Section(registry, "Z", rows=2, cols=2)

    result, columns = roll_section(section, 70.0, StubRng([]), BALANCE)

    assert columns == []
    assert result.participation_rate == 0.0
    assert result.outcome == OUTCOME_FAILED

# ============================================================
# Wave strength
# ============================================================

@pytest.mark.parametrize("previous, current, rate, expected", [
    (None, OUTCOME_FAILED, 0.0, 70.0),
    (OUTCOME_SUCCESS, OUTCOME_SUCCESS, 0.9, 75.0),
    (OUTCOME_SUCCESS, OUTCOME_REDUCED, 0.5, 55.0),
    (OUTCOME_SUCCESS, OUTCOME_FAILED, 0.1, 40.0),
    (OUTCOME_REDUCED, OUTCOME_SUCCESS, 0.7, 80.0),
    (OUTCOME_REDUCED, OUTCOME_REDUCED, 0.5, 62.0),
    (OUTCOME_REDUCED, OUTCOME_FAILED, 0.1, 45.0),
    (OUTCOME_FAILED, OUTCOME_SUCCESS, 0.7, 85.0),
    (OUTCOME_FAILED, OUTCOME_REDUCED, 0.5, 60.0),
    (OUTCOME_FAILED, OUTCOME_FAILED, 0.1, 65.0),
])
def test_adjust_wave_strength(previous, current, rate, expected):
    strength = adjust_wave_strength(
        70.0, previous, current, rate, BALANCE.wave_strength, BALANCE.classification,
    )
    assert strength == pytest.approx(expected)

def test_adjust_wave_strength_clamps():
    cfg, cls = BALANCE.wave_strength, BALANCE.classification
    assert adjust_wave_strength(98.0, OUTCOME_SUCCESS, OUTCOME_SUCCESS, 1.0, cfg, cls) == 100.0
    assert adjust_wave_strength(2.0, OUTCOME_SUCCESS, OUTCOME_FAILED, 0.0, cfg, cls) == 0.0
