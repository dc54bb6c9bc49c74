"""
Stadium — stadium/participation.py
Participation Calculator: Per-column Bernoulli rolls with peer pressure.
========================================================================
Version:     0.3  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs
Status:      Production-ready.

Architecture notes
------------------
- Each occupied seat in a column rolls once against
      clamp(h*wH + a*wA - t*wT + section_bonus + strength_mod + flat, 0, 100)
  using the single shared random.Random of the run.
- section_bonus comes from the section's cached aggregate:
      avgH*0.2 + avgA*0.2 - avgT*0.15
- Peer pressure converts non-participants to reduced-effort participants
  (intensity 0.5) once the raw column rate reaches the threshold. It never
  changes the column's classification, which uses the raw rate.
- A section's outcome is the worse of its own rate band and its worst column.
"""

from __future__ import annotations
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import tcod.ecs

from stadium.data_loader import BalanceConfig, ClassificationDef, FanStatsDef, WaveStrengthDef
from stadium.ecs.components import EngagementStats, FanIdentity, WaveParticipation
from stadium.wave import (
    ColumnResult,
    OUTCOME_FAILED,
    OUTCOME_REDUCED,
    OUTCOME_SUCCESS,
    SectionResult,
)

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

SECTION_BONUS_HAPPINESS_WEIGHT: float = 0.2
SECTION_BONUS_ATTENTION_WEIGHT: float = 0.2
SECTION_BONUS_THIRST_WEIGHT: float = 0.15
STRENGTH_NEUTRAL: float = 50.0
FULL_EFFORT_INTENSITY: float = 1.0

_OUTCOME_RANK = {OUTCOME_FAILED: 0, OUTCOME_REDUCED: 1, OUTCOME_SUCCESS: 2}


@dataclass
class FanRoll:
    fan: tcod.ecs.Entity
    chance: float
    will_participate: bool
    reduced_effort: bool = False
    intensity: float = FULL_EFFORT_INTENSITY

    def to_dict(self) -> dict:
        ident = self.fan.components.get(FanIdentity)
        return {
            "fan_id": ident.fan_id if ident else None,
            "will_participate": self.will_participate,
            "reduced_effort": self.reduced_effort,
            "intensity": self.intensity,
        }


@dataclass
class ColumnParticipation:
    column_index: int
    rolls: List[FanRoll] = field(default_factory=list)
    raw_participants: int = 0
    raw_rate: float = 0.0
    outcome: str = OUTCOME_FAILED
    peer_pressure_applied: bool = False

    @property
    def occupied(self) -> int:
        return len(self.rolls)

    @property
    def final_participants(self) -> int:
        return sum(1 for r in self.rolls if r.will_participate)

    def to_result(self) -> ColumnResult:
        return ColumnResult(
            column_index=self.column_index,
            participation=self.raw_rate,
            outcome=self.outcome,
        )

    def to_dict(self) -> dict:
        return {
            "column_index": self.column_index,
            "raw_rate": self.raw_rate,
            "outcome": self.outcome,
            "peer_pressure_applied": self.peer_pressure_applied,
            "fans": [r.to_dict() for r in self.rolls],
        }

# ============================================================
# PROBABILITY
# ============================================================

def section_bonus(aggregate: EngagementStats) -> float:
    return (
        aggregate.happiness * SECTION_BONUS_HAPPINESS_WEIGHT
        + aggregate.attention * SECTION_BONUS_ATTENTION_WEIGHT
        - aggregate.thirst * SECTION_BONUS_THIRST_WEIGHT
    )

def strength_modifier(wave_strength: float, config: WaveStrengthDef) -> float:
    return (wave_strength - STRENGTH_NEUTRAL) * config.strength_modifier

def participation_chance(
    stats: EngagementStats,
    bonus: float,
    wave_strength: float,
    fan_config: FanStatsDef,
    strength_config: WaveStrengthDef,
) -> float:
    """Participation probability on a 0-100 scale."""
    chance = (
        stats.happiness * fan_config.wave_chance_happiness_weight
        + stats.attention * fan_config.wave_chance_attention_weight
        - stats.thirst * fan_config.wave_chance_thirst_penalty
        + bonus
        + strength_modifier(wave_strength, strength_config)
        + fan_config.wave_chance_flat_bonus
    )
    return max(0.0, min(100.0, chance))

# ============================================================
# CLASSIFICATION
# ============================================================

def classify_column(rate: float, config: ClassificationDef) -> str:
    if rate >= config.column_success_threshold:
        return OUTCOME_SUCCESS
    if rate >= config.column_reduced_threshold:
        return OUTCOME_REDUCED
    return OUTCOME_FAILED

def classify_section(rate: float, config: ClassificationDef) -> str:
    if rate >= config.section_success_threshold:
        return OUTCOME_SUCCESS
    if rate >= config.section_reduced_threshold:
        return OUTCOME_REDUCED
    return OUTCOME_FAILED

def worst_outcome(outcomes: Sequence[str]) -> Optional[str]:
    if not outcomes:
        return None
    return min(outcomes, key=lambda o: _OUTCOME_RANK[o])

# ============================================================
# ROLLING
# ============================================================

def apply_peer_pressure(rolls: List[FanRoll], raw_rate: float, config: WaveStrengthDef) -> bool:
    """Converts holdouts to half-effort participants. Returns True if it fired."""
    if raw_rate < config.peer_pressure_threshold:
        return False
    for roll in rolls:
        if not roll.will_participate:
            roll.will_participate = True
            roll.reduced_effort = True
            roll.intensity = config.reduced_effort_intensity
    return True

def roll_column(
    fans: Sequence[tcod.ecs.Entity],
    column_index: int,
    aggregate: EngagementStats,
    wave_strength: float,
    rng: random.Random,
    balance: BalanceConfig,
    wave_id: Optional[str] = None,
) -> ColumnParticipation:
    """Rolls every occupant of one column, then applies peer pressure."""
    bonus = section_bonus(aggregate)
    column = ColumnParticipation(column_index=column_index)

    for fan in fans:
        chance = participation_chance(
            fan.components[EngagementStats],
            bonus,
            wave_strength,
            balance.fan_stats,
            balance.wave_strength,
        )
        column.rolls.append(FanRoll(fan=fan, chance=chance, will_participate=rng.random() * 100 < chance))

    column.raw_participants = sum(1 for r in column.rolls if r.will_participate)
    column.raw_rate = column.raw_participants / column.occupied if column.rolls else 0.0
    column.outcome = classify_column(column.raw_rate, balance.classification)
    column.peer_pressure_applied = apply_peer_pressure(column.rolls, column.raw_rate, balance.wave_strength)

    for roll in column.rolls:
        part = roll.fan.components.get(WaveParticipation)
        if part is None:
            part = roll.fan.components[WaveParticipation] = WaveParticipation()
        part.last_participated = roll.will_participate
        part.reduced_effort = roll.reduced_effort
        part.last_wave_id = wave_id

    return column

def roll_section(
    section,
    wave_strength: float,
    rng: random.Random,
    balance: BalanceConfig,
    wave_id: Optional[str] = None,
) -> Tuple[SectionResult, List[ColumnParticipation]]:
    """
    Rolls a whole section column by column (left to right).

    Columns with no occupants are skipped. The section rate is raw
    participants over occupants; peer-pressure converts do not count.
    """
    aggregate = section.aggregate_stats()
    columns: List[ColumnParticipation] = []

    for col in range(section.cols):
        fans = section.column_fans(col)
        if not fans:
            continue
        columns.append(roll_column(fans, col, aggregate, wave_strength, rng, balance, wave_id))

    occupied = sum(c.occupied for c in columns)
    raw = sum(c.raw_participants for c in columns)
    rate = raw / occupied if occupied else 0.0

    outcome = classify_section(rate, balance.classification)
    worst_column = worst_outcome([c.outcome for c in columns])
    if worst_column is not None:
        outcome = worst_outcome([outcome, worst_column])

    result = SectionResult(
        section_id=section.id,
        outcome=outcome,
        participation_rate=rate,
        column_results=[c.to_result() for c in columns],
    )
    return result, columns

# ============================================================
# WAVE STRENGTH
# ============================================================

def adjust_wave_strength(
    strength: float,
    previous_outcome: Optional[str],
    current_outcome: str,
    participation_rate: float,
    config: WaveStrengthDef,
    classification: ClassificationDef,
) -> float:
    """
    Next-section strength from the previous section's outcome.

    After a success the current outcome decides the step; after a reduced or
    failed section the raw participation band decides it. The first section
    of a wave has no previous outcome and leaves strength unchanged.
    """
    if previous_outcome is None:
        return strength
    if previous_outcome == OUTCOME_SUCCESS:
        delta = {
            OUTCOME_SUCCESS: config.success_continue,
            OUTCOME_REDUCED: config.success_to_reduced,
            OUTCOME_FAILED: config.success_to_failed,
        }[current_outcome]
    else:
        band = classify_section(participation_rate, classification)
        if previous_outcome == OUTCOME_REDUCED:
            delta = {
                OUTCOME_SUCCESS: config.reduced_recover,
                OUTCOME_REDUCED: config.reduced_hold,
                OUTCOME_FAILED: config.reduced_to_failed,
            }[band]
        else:
            delta = {
                OUTCOME_SUCCESS: config.failed_recover,
                OUTCOME_REDUCED: config.failed_to_reduced,
                OUTCOME_FAILED: config.failed_hold,
            }[band]
    return max(0.0, min(100.0, strength + delta))
