"""
Stadium — stadium/cluster_decay.py
Cluster Decay: Periodic localized disengagement of a random seat cluster.
=========================================================================
Version:     0.2  (crowd feedback loop)
Stack:       Python 3.12 | NumPy | python-tcod-ecs | bespoke EventBus
Status:      Production-ready.

Architecture notes
------------------
- Phase bands split the session at mid_phase_start / late_phase_start of its
  elapsed fraction. Later phases fire more often and hit harder. An eternal
  session (no fraction) stays in the early band.
- The candidate pool is every fan within Manhattan radius of a random seed
  fan on the stadium-global grid; the seed itself is in its own pool.
- Happiness loss = rate * seconds_since_last_decay * variance, uncapped.
  Attention loss = happiness loss * multiplier, capped per event.
- Every fan is eligible; there is no exemption for fans mid-transaction.
"""

from __future__ import annotations
import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import tcod.ecs

from stadium.data_loader import ClusterDecayDef
from stadium.ecs.components import FanIdentity, SeatPosition
from stadium.ecs.systems import modify_stats
from stadium.events import EventBus, EVT_CLUSTER_DECAY

PHASE_EARLY = "early"
PHASE_MID = "mid"
PHASE_LATE = "late"


@dataclass
class ClusterDecayResult:
    phase: str
    seed_fan_id: str
    members: List[tcod.ecs.Entity] = field(default_factory=list)
    happiness_losses: List[float] = field(default_factory=list)
    attention_losses: List[float] = field(default_factory=list)
    seconds_elapsed: float = 0.0


def decay_phase(elapsed_fraction: Optional[float], config: ClusterDecayDef) -> str:
    if elapsed_fraction is None:
        return PHASE_EARLY
    if elapsed_fraction >= config.late_phase_start:
        return PHASE_LATE
    if elapsed_fraction >= config.mid_phase_start:
        return PHASE_MID
    return PHASE_EARLY

def decay_interval_ms(elapsed_fraction: Optional[float], config: ClusterDecayDef) -> float:
    return {
        PHASE_EARLY: config.interval_early_ms,
        PHASE_MID: config.interval_mid_ms,
        PHASE_LATE: config.interval_late_ms,
    }[decay_phase(elapsed_fraction, config)]

def happiness_decay_rate(elapsed_fraction: Optional[float], config: ClusterDecayDef) -> float:
    return {
        PHASE_EARLY: config.happiness_rate_early,
        PHASE_MID: config.happiness_rate_mid,
        PHASE_LATE: config.happiness_rate_late,
    }[decay_phase(elapsed_fraction, config)]

def fans_within_radius(
    fans: Sequence[tcod.ecs.Entity],
    seed: tcod.ecs.Entity,
    radius: int,
) -> List[tcod.ecs.Entity]:
    """Fans whose global Manhattan distance to the seed is <= radius, in input order."""
    if not fans:
        return []
    coords = np.array(
        [(f.components[SeatPosition].grid_row, f.components[SeatPosition].grid_col) for f in fans],
        dtype=np.int32,
    )
    seed_pos = seed.components[SeatPosition]
    origin = np.array((seed_pos.grid_row, seed_pos.grid_col), dtype=np.int32)
    distances = np.abs(coords - origin).sum(axis=1)
    return [fans[i] for i in np.nonzero(distances <= radius)[0]]


class ClusterDecaySystem:
    """
    Owns the decay timer. Call update() once per tick after stat decay.
    """

    def __init__(self, config: ClusterDecayDef, rng: random.Random, bus: Optional[EventBus] = None) -> None:
        self.config = config
        self.rng = rng
        self.bus = bus
        self.last_decay_ms: float = 0.0

    def reset(self, now_ms: float = 0.0) -> None:
        self.last_decay_ms = now_ms

    def is_due(self, now_ms: float, elapsed_fraction: Optional[float]) -> bool:
        return now_ms - self.last_decay_ms >= decay_interval_ms(elapsed_fraction, self.config)

    def update(
        self,
        fans: Sequence[tcod.ecs.Entity],
        now_ms: float,
        elapsed_fraction: Optional[float],
    ) -> Optional[ClusterDecayResult]:
        if not self.config.enabled or not self.is_due(now_ms, elapsed_fraction):
            return None
        return self.apply(fans, now_ms, elapsed_fraction)

    def apply(
        self,
        fans: Sequence[tcod.ecs.Entity],
        now_ms: float,
        elapsed_fraction: Optional[float],
    ) -> Optional[ClusterDecayResult]:
        """Runs one decay event immediately. Returns None when there are no fans."""
        seconds = max(0.0, (now_ms - self.last_decay_ms) / 1000.0)
        self.last_decay_ms = now_ms
        fans = list(fans)
        if not fans:
            return None

        cfg = self.config
        seed = self.rng.choice(fans)
        pool = fans_within_radius(fans, seed, cfg.radius)
        size = min(self.rng.randint(cfg.min_cluster_size, cfg.max_cluster_size), len(pool))
        members = self.rng.sample(pool, size)

        phase = decay_phase(elapsed_fraction, cfg)
        rate = happiness_decay_rate(elapsed_fraction, cfg)
        result = ClusterDecayResult(
            phase=phase,
            seed_fan_id=seed.components[FanIdentity].fan_id,
            seconds_elapsed=seconds,
        )

        for fan in members:
            variance = self.rng.uniform(cfg.variance_min, cfg.variance_max)
            happiness_loss = rate * seconds * variance
            attention_loss = min(happiness_loss * cfg.attention_multiplier, cfg.attention_cap)
            modify_stats(fan, happiness=-happiness_loss, attention=-attention_loss)
            result.members.append(fan)
            result.happiness_losses.append(happiness_loss)
            result.attention_losses.append(attention_loss)

        if self.bus is not None:
            self.bus.publish(
                EVT_CLUSTER_DECAY,
                source="crowd",
                target=result.seed_fan_id,
                phase=phase,
                cluster_size=len(members),
                seconds_elapsed=seconds,
                total_happiness_loss=round(sum(result.happiness_losses), 3),
                total_attention_loss=round(sum(result.attention_losses), 3),
            )
        return result
