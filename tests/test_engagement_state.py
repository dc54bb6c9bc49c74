import random

import pytest
import tcod.ecs

from stadium.data_loader import DisengagementDef, FanStatsDef
from stadium.ecs.components import (
    AttentionStagnation,
    EngagementStats,
    FanMood,
    StatFreeze,
    WaveParticipation,
)
from stadium.ecs.systems import (
    derive_fan_state,
    fan_stat_decay_system,
    freeze_stat,
    get_revision,
    is_disinterested,
    modify_stats,
    on_wave_participation,
    serve_drink,
    set_stats,
)
from venue.sections import Section, spawn_fan

CFG = FanStatsDef()
DISENGAGE = DisengagementDef()


def make_fan(registry, happiness=70.0, thirst=20.0, attention=70.0):
    section = Section(registry, "A", rows=1, cols=1)
    fan = spawn_fan(registry, section, 0, 0, random.Random(0), CFG)
    set_stats(fan, happiness=happiness, thirst=thirst, attention=attention)
    return fan

# ============================================================
# Clamped writes
# ============================================================

def test_modify_stats_clamps_to_range():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=95.0, thirst=5.0, attention=50.0)

    stats = modify_stats(fan, happiness=20.0, thirst=-20.0, attention=100.0)

    assert stats.happiness == 100.0
    assert stats.thirst == 0.0
    assert stats.attention == 100.0

def test_set_stats_clamps_and_leaves_others():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=50.0, thirst=50.0, attention=50.0)

    set_stats(fan, happiness=-10.0)

    stats = fan.components[EngagementStats]
    assert stats.happiness == 0.0
    assert stats.thirst == 50.0
    assert stats.attention == 50.0

def test_writes_bump_revision():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry)
    before = get_revision(registry)

    modify_stats(fan, attention=1.0)

    assert get_revision(registry) == before + 1

# ============================================================
# Decay
# ============================================================

def test_thirst_grows_slowly_below_threshold():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, thirst=10.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)

    assert fan.components[EngagementStats].thirst == pytest.approx(11.0)

def test_thirst_grows_fast_above_threshold():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, thirst=70.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)

    assert fan.components[EngagementStats].thirst == pytest.approx(73.0)

def test_happiness_decays_only_when_thirsty():
    registry = tcod.ecs.Registry()
    content = make_fan(registry, happiness=70.0, thirst=20.0)
    parched = make_fan(registry, happiness=70.0, thirst=55.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)

    assert content.components[EngagementStats].happiness == pytest.approx(70.0)
    assert parched.components[EngagementStats].thirst == pytest.approx(56.0)
    assert parched.components[EngagementStats].happiness == pytest.approx(68.75)

def test_attention_decays_to_floor_but_not_below():
    registry = tcod.ecs.Registry()
    normal = make_fan(registry, attention=70.0)
    near_floor = make_fan(registry, attention=30.5)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)

    assert normal.components[EngagementStats].attention == pytest.approx(68.5)
    assert near_floor.components[EngagementStats].attention == pytest.approx(30.0)

def test_attention_below_floor_is_not_raised():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, attention=20.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)

    assert fan.components[EngagementStats].attention == pytest.approx(20.0)

def test_stagnant_attention_speeds_up_thirst():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, thirst=10.0, attention=35.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)
    assert fan.components[AttentionStagnation].low_since_ms == 1000.0
    assert fan.components[EngagementStats].thirst == pytest.approx(11.0)

    fan_stat_decay_system(registry, 1000.0, 9000.0, CFG, DISENGAGE)
    assert fan.components[EngagementStats].thirst == pytest.approx(12.5)

def test_stagnation_clears_when_attention_recovers():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, attention=35.0)
    fan_stat_decay_system(registry, 100.0, 100.0, CFG, DISENGAGE)

    set_stats(fan, attention=90.0)
    fan_stat_decay_system(registry, 100.0, 200.0, CFG, DISENGAGE)

    assert fan.components[AttentionStagnation].low_since_ms is None

def test_decay_returns_processed_count():
    registry = tcod.ecs.Registry()
    make_fan(registry)
    make_fan(registry)
    assert fan_stat_decay_system(registry, 100.0, 100.0, CFG, DISENGAGE) == 2

def test_mood_tracks_derived_state():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=10.0, thirst=20.0, attention=70.0)

    fan_stat_decay_system(registry, 100.0, 100.0, CFG, DISENGAGE)

    mood = fan.components[FanMood]
    assert mood.state == "unhappy"
    assert mood.previous == "happy"

# ============================================================
# Freezes & interactions
# ============================================================

def test_serve_drink_freezes_thirst():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=50.0, thirst=60.0)

    serve_drink(fan, 0.0, CFG)
    stats = fan.components[EngagementStats]
    assert stats.thirst == pytest.approx(10.0)
    assert stats.happiness == pytest.approx(65.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)
    assert stats.thirst == pytest.approx(10.0)

    fan_stat_decay_system(registry, 1000.0, 5000.0, CFG, DISENGAGE)
    assert stats.thirst == pytest.approx(11.0)

def test_frozen_happiness_does_not_decay():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=70.0, thirst=80.0)
    freeze_stat(fan, "happiness", 0.0, 3000.0)

    fan_stat_decay_system(registry, 1000.0, 1000.0, CFG, DISENGAGE)

    assert fan.components[EngagementStats].happiness == pytest.approx(70.0)

def test_freeze_never_shortens():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry)
    freeze_stat(fan, "attention", 0.0, 5000.0)
    freeze_stat(fan, "attention", 1000.0, 1000.0)
    assert fan.components[StatFreeze].attention_until_ms == 5000.0

def test_freeze_unknown_stat_raises():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry)
    with pytest.raises(ValueError):
        freeze_stat(fan, "hunger", 0.0, 1000.0)

def test_wave_success_rewards_and_freezes_attention():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=50.0, attention=50.0)
    fan.components[WaveParticipation].reduced_effort = True

    on_wave_participation(fan, True, 0.0, CFG)

    stats = fan.components[EngagementStats]
    assert stats.attention == pytest.approx(60.0)
    assert stats.happiness == pytest.approx(58.0)
    assert fan.components[StatFreeze].is_frozen("attention", 4999.0)
    assert not fan.components[WaveParticipation].reduced_effort

def test_wave_failure_only_clears_reduced_effort():
    registry = tcod.ecs.Registry()
    fan = make_fan(registry, happiness=50.0, attention=50.0)
    fan.components[WaveParticipation].reduced_effort = True

    on_wave_participation(fan, False, 0.0, CFG)

    assert fan.components[EngagementStats].attention == pytest.approx(50.0)
    assert not fan.components[WaveParticipation].reduced_effort

# ============================================================
# Derived state
# ============================================================

def test_is_disinterested_needs_both_low():
    registry = tcod.ecs.Registry()
    assert is_disinterested(make_fan(registry, happiness=30.0, attention=30.0), DISENGAGE)
    assert not is_disinterested(make_fan(registry, happiness=30.0, attention=60.0), DISENGAGE)
    assert not is_disinterested(make_fan(registry, happiness=45.0, attention=30.0), DISENGAGE)

@pytest.mark.parametrize("stats, frozen_thirst, expected", [
    (EngagementStats(happiness=10.0, thirst=5.0, attention=70.0), True, "drinking"),
    (EngagementStats(happiness=10.0, thirst=5.0, attention=70.0), False, "unhappy"),
    (EngagementStats(happiness=60.0, thirst=65.0, attention=70.0), False, "thirsty"),
    (EngagementStats(happiness=35.0, thirst=20.0, attention=40.0), False, "disengaged"),
    (EngagementStats(happiness=60.0, thirst=20.0, attention=75.0), False, "engaged"),
    (EngagementStats(happiness=60.0, thirst=20.0, attention=55.0), False, "happy"),
])
def test_derive_fan_state_priority(stats, frozen_thirst, expected):
    freeze = StatFreeze(thirst_until_ms=1000.0 if frozen_thirst else 0.0)
    assert derive_fan_state(stats, freeze, 500.0, CFG, DISENGAGE) == expected
