"""
Stadium — stadium/ecs/systems.py
ECS Systems: Pure functions for spectator stat rules.
=====================================================
Version:     0.3  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs
Status:      Production-ready.

Architecture notes
------------------
- Systems are pure functions operating on a tcod.ecs.Registry.
- Every stat write goes through modify_stats() / set_stats(), which clamp to
  [0, 100] and bump the StatRevision counter on the global entity. Section
  aggregate caches compare against that counter on read.
- Time is always injected as session milliseconds.
"""

from __future__ import annotations
from typing import Iterable, List, Optional

import tcod.ecs
from stadium.ecs.components import (
    STAT_NAMES,
    AttentionStagnation,
    EngagementStats,
    FanIdentity,
    FanMood,
    SeatPosition,
    StatFreeze,
    StatRevision,
    WaveParticipation,
)
from stadium.data_loader import DisengagementDef, FanStatsDef

STAT_MIN = 0.0
STAT_MAX = 100.0

# ============================================================
# STAT WRITES
# ============================================================

def clamp_stat(value: float) -> float:
    return max(STAT_MIN, min(STAT_MAX, value))

def get_revision(registry: tcod.ecs.Registry) -> int:
    rev = registry[None].components.get(StatRevision)
    return rev.value if rev is not None else 0

def bump_revision(registry: tcod.ecs.Registry) -> int:
    glob = registry[None]
    if StatRevision not in glob.components:
        glob.components[StatRevision] = StatRevision()
    glob.components[StatRevision].value += 1
    return glob.components[StatRevision].value

def modify_stats(
    fan: tcod.ecs.Entity,
    happiness: float = 0.0,
    thirst: float = 0.0,
    attention: float = 0.0,
) -> EngagementStats:
    """Adds deltas to a fan's stats, clamping each into [0, 100]."""
    stats = fan.components[EngagementStats]
    stats.happiness = clamp_stat(stats.happiness + happiness)
    stats.thirst = clamp_stat(stats.thirst + thirst)
    stats.attention = clamp_stat(stats.attention + attention)
    bump_revision(fan.registry)
    return stats

def set_stats(
    fan: tcod.ecs.Entity,
    happiness: Optional[float] = None,
    thirst: Optional[float] = None,
    attention: Optional[float] = None,
) -> EngagementStats:
    stats = fan.components[EngagementStats]
    if happiness is not None:
        stats.happiness = clamp_stat(happiness)
    if thirst is not None:
        stats.thirst = clamp_stat(thirst)
    if attention is not None:
        stats.attention = clamp_stat(attention)
    bump_revision(fan.registry)
    return stats

# ============================================================
# DERIVED STATE
# ============================================================

def is_disinterested(fan: tcod.ecs.Entity, config: DisengagementDef) -> bool:
    stats = fan.components[EngagementStats]
    return (
        stats.attention < config.attention_threshold
        and stats.happiness < config.happiness_threshold
    )

def derive_fan_state(
    stats: EngagementStats,
    freeze: StatFreeze,
    now_ms: float,
    config: FanStatsDef,
    disengagement: DisengagementDef,
) -> str:
    """
    Priority: drinking > unhappy > thirsty > disengaged > engaged > happy.
    "drinking" means a fresh serve: thirst is near zero and still frozen.
    """
    if stats.thirst < config.drinking_thirst_ceiling and freeze.is_frozen("thirst", now_ms):
        return "drinking"
    if stats.happiness < config.unhappy_happiness_threshold:
        return "unhappy"
    if stats.thirst > config.thirst_threshold:
        return "thirsty"
    if (
        stats.attention < disengagement.attention_threshold
        and stats.happiness < disengagement.happiness_threshold
    ):
        return "disengaged"
    if stats.attention >= config.engaged_attention_threshold:
        return "engaged"
    return "happy"

def _update_mood(fan: tcod.ecs.Entity, now_ms: float, config: FanStatsDef, disengagement: DisengagementDef) -> None:
    mood = fan.components.get(FanMood)
    if mood is None:
        mood = fan.components[FanMood] = FanMood()
    new_state = derive_fan_state(
        fan.components[EngagementStats],
        fan.components[StatFreeze],
        now_ms,
        config,
        disengagement,
    )
    if new_state != mood.state:
        mood.previous = mood.state
        mood.state = new_state

# ============================================================
# QUERIES
# ============================================================

def average_stats(fans: Iterable[tcod.ecs.Entity]) -> Optional[EngagementStats]:
    fans = list(fans)
    if not fans:
        return None
    n = len(fans)
    return EngagementStats(
        happiness=sum(f.components[EngagementStats].happiness for f in fans) / n,
        thirst=sum(f.components[EngagementStats].thirst for f in fans) / n,
        attention=sum(f.components[EngagementStats].attention for f in fans) / n,
    )

# ============================================================
# DECAY SYSTEM  (tick step 1)
# ============================================================

def fan_stat_decay_system(
    registry: tcod.ecs.Registry,
    delta_ms: float,
    now_ms: float,
    config: FanStatsDef,
    disengagement: DisengagementDef,
) -> int:
    """
    Advances every spectator's stats by delta_ms.

    Thirst grows at a slow rate below the threshold and a fast one above it,
    further multiplied while attention has stagnated. Happiness only decays
    once thirst passes its trigger. Attention decays toward a floor but is
    never pulled up to it. Frozen stats are skipped.

    Returns the number of fans processed.
    """
    dt = delta_ms / 1000.0
    count = 0

    for fan in registry.Q.all_of(components=[EngagementStats, StatFreeze]):
        stats = fan.components[EngagementStats]
        freeze = fan.components[StatFreeze]
        stagnation = fan.components.get(AttentionStagnation)
        if stagnation is None:
            stagnation = fan.components[AttentionStagnation] = AttentionStagnation()

        if not freeze.is_frozen("thirst", now_ms):
            rate = (
                config.thirst_growth_rate
                if stats.thirst < config.thirst_threshold
                else config.thirst_growth_rate_high
            )
            if (
                stagnation.low_since_ms is not None
                and now_ms - stagnation.low_since_ms >= config.attention_stagnation_duration_ms
            ):
                rate *= config.stagnation_thirst_multiplier
            stats.thirst = clamp_stat(stats.thirst + rate * dt)

        if stats.thirst > config.happiness_decay_thirst_trigger and not freeze.is_frozen("happiness", now_ms):
            stats.happiness = clamp_stat(stats.happiness - config.happiness_decay_rate * dt)

        if not freeze.is_frozen("attention", now_ms) and stats.attention > config.attention_minimum:
            stats.attention = clamp_stat(
                max(config.attention_minimum, stats.attention - config.attention_decay_rate * dt)
            )

        if stats.attention < config.attention_stagnation_threshold:
            if stagnation.low_since_ms is None:
                stagnation.low_since_ms = now_ms
        else:
            stagnation.low_since_ms = None

        _update_mood(fan, now_ms, config, disengagement)
        count += 1

    if count:
        bump_revision(registry)
    return count

# ============================================================
# INTERACTION SYSTEMS
# ============================================================

def freeze_stat(fan: tcod.ecs.Entity, stat: str, now_ms: float, duration_ms: float) -> float:
    """Suppresses decay of one stat until now + duration. Returns the expiry."""
    if stat not in STAT_NAMES:
        raise ValueError(f"Unknown stat '{stat}'")
    freeze = fan.components[StatFreeze]
    until = now_ms + duration_ms
    setattr(freeze, f"{stat}_until_ms", max(getattr(freeze, f"{stat}_until_ms"), until))
    return until

def serve_drink(fan: tcod.ecs.Entity, now_ms: float, config: FanStatsDef) -> EngagementStats:
    """A vendor served this fan: thirst drops, happiness recovers, thirst freezes."""
    stats = modify_stats(
        fan,
        thirst=-config.thirst_reduction_on_serve,
        happiness=config.happiness_recovery_on_serve,
    )
    freeze_stat(fan, "thirst", now_ms, config.thirst_freeze_ms)
    return stats

def on_wave_participation(fan: tcod.ecs.Entity, success: bool, now_ms: float, config: FanStatsDef) -> None:
    """Rewards a fan whose column carried the wave; clears reduced-effort either way."""
    part = fan.components.get(WaveParticipation)
    if part is not None:
        part.reduced_effort = False
    if not success:
        return
    modify_stats(
        fan,
        attention=config.attention_recovery_on_wave_success,
        happiness=config.happiness_recovery_on_wave_success,
    )
    freeze_stat(fan, "attention", now_ms, config.attention_freeze_ms)
