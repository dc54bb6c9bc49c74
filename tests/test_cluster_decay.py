import random

import pytest
import tcod.ecs

from stadium.cluster_decay import (
    PHASE_EARLY,
    PHASE_LATE,
    PHASE_MID,
    ClusterDecaySystem,
    decay_interval_ms,
    decay_phase,
    fans_within_radius,
    happiness_decay_rate,
)
from stadium.data_loader import ClusterDecayDef, FanStatsDef, LevelDef, SectionDef
from stadium.ecs.components import EngagementStats
from stadium.ecs.systems import set_stats
from stadium.events import EVT_CLUSTER_DECAY, EventBus
from venue.sections import build_venue

CFG = ClusterDecayDef()


def make_crowd(rows=4, cols=8, happiness=70.0, attention=70.0):
    registry = tcod.ecs.Registry()
    level = LevelDef(id="t", name="Test", sections=[SectionDef(id="A", rows=rows, cols=cols)])
    venue = build_venue(registry, level, random.Random(0), FanStatsDef())
    fans = venue.all_fans()
    for fan in fans:
        set_stats(fan, happiness=happiness, attention=attention)
    return registry, fans


@pytest.mark.parametrize("fraction, phase, interval, rate", [
    (None, PHASE_EARLY, 6000.0, 0.5),
    (0.0, PHASE_EARLY, 6000.0, 0.5),
    (0.29, PHASE_EARLY, 6000.0, 0.5),
    (0.3, PHASE_MID, 4500.0, 1.0),
    (0.69, PHASE_MID, 4500.0, 1.0),
    (0.7, PHASE_LATE, 3000.0, 2.0),
    (1.0, PHASE_LATE, 3000.0, 2.0),
])
def test_phase_schedule(fraction, phase, interval, rate):
    assert decay_phase(fraction, CFG) == phase
    assert decay_interval_ms(fraction, CFG) == interval
    assert happiness_decay_rate(fraction, CFG) == rate

def test_fans_within_radius_uses_manhattan_distance():
    _, fans = make_crowd(rows=1, cols=8)
    seed = fans[0]
    near = fans_within_radius(fans, seed, 3)
    assert near == fans[:4]

def test_fans_within_radius_empty():
    _, fans = make_crowd(rows=1, cols=2)
    assert fans_within_radius([], fans[0], 3) == []

def test_not_due_before_interval():
    _, fans = make_crowd()
    system = ClusterDecaySystem(CFG, random.Random(1))
    assert system.update(fans, 5999.0, 0.1) is None

def test_disabled_never_fires():
    _, fans = make_crowd()
    system = ClusterDecaySystem(ClusterDecayDef(enabled=False), random.Random(1))
    assert system.update(fans, 60000.0, 0.1) is None

def test_early_phase_decay_magnitudes():
    _, fans = make_crowd()
    system = ClusterDecaySystem(CFG, random.Random(1))

    result = system.update(fans, 6000.0, 0.1)

    assert result is not None
    assert result.phase == PHASE_EARLY
    assert result.seconds_elapsed == pytest.approx(6.0)
    assert 8 <= len(result.members) <= 16
    assert len(set(result.members)) == len(result.members)
    for fan, h_loss, a_loss in zip(result.members, result.happiness_losses, result.attention_losses):
        assert 2.4 <= h_loss <= 3.6
        assert a_loss == pytest.approx(h_loss * 2.5)
        stats = fan.components[EngagementStats]
        assert stats.happiness == pytest.approx(70.0 - h_loss)
        assert stats.attention == pytest.approx(70.0 - a_loss)
    assert system.last_decay_ms == 6000.0

def test_late_phase_caps_attention_not_happiness():
    _, fans = make_crowd()
    system = ClusterDecaySystem(CFG, random.Random(2))

    result = system.apply(fans, 20000.0, 0.9)

    assert result.phase == PHASE_LATE
    for h_loss, a_loss in zip(result.happiness_losses, result.attention_losses):
        assert h_loss >= 32.0
        assert a_loss == pytest.approx(15.0)

def test_untouched_fans_keep_stats():
    _, fans = make_crowd()
    system = ClusterDecaySystem(CFG, random.Random(3))
    result = system.apply(fans, 6000.0, 0.1)
    members = set(result.members)
    for fan in fans:
        if fan not in members:
            assert fan.components[EngagementStats].happiness == 70.0

def test_decay_emits_event():
    _, fans = make_crowd()
    bus = EventBus()
    received = []
    bus.subscribe(EVT_CLUSTER_DECAY, received.append)
    system = ClusterDecaySystem(CFG, random.Random(4), bus)

    result = system.apply(fans, 6000.0, 0.1)

    assert len(received) == 1
    assert received[0].data["cluster_size"] == len(result.members)
    assert received[0].target == result.seed_fan_id

def test_no_fans_no_event():
    system = ClusterDecaySystem(CFG, random.Random(1))
    assert system.apply([], 6000.0, 0.1) is None
    assert system.last_decay_ms == 6000.0
