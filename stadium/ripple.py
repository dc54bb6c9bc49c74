"""
Stadium — stadium/ripple.py
Ripple Propagation: Distance-decayed re-engagement boost around a stimulus.
===========================================================================
Version:     0.2  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs | bespoke EventBus
Status:      Production-ready.

Architecture notes
------------------
- Distances are section-local Manhattan distances; ripples never cross into
  another section.
- Linear decay: round(base * (1 - d / max_radius)). Seats at d >= max_radius
  are absent from the mapping, never present with zero. max_radius 0 yields
  an empty mapping, origin included.
- Disinterested fans get a flat bonus on top of any in-range value.
- Concurrent ripples sum per fan; the [0, 100] clamp happens once, at the
  write in apply_combined().
- Exponential decay is declared but raises NotImplementedError.
"""

from __future__ import annotations
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional, Tuple

import tcod.ecs

from stadium.data_loader import DisengagementDef, RippleDef
from stadium.ecs.components import FanIdentity
from stadium.ecs.systems import is_disinterested, modify_stats
from stadium.events import EventBus, EVT_RIPPLE_APPLIED

DECAY_LINEAR = "linear"
DECAY_EXPONENTIAL = "exponential"


@dataclass
class RippleEffect:
    origin: Optional[tcod.ecs.Entity]
    origin_position: Tuple[int, int]
    affected: Dict[tcod.ecs.Entity, float] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.affected)


def manhattan(a: Tuple[int, int], b: Tuple[int, int]) -> int:
    return abs(a[0] - b[0]) + abs(a[1] - b[1])

def linear_decay(base_effect: float, distance: int, max_radius: int) -> float:
    if max_radius <= 0 or distance >= max_radius:
        return 0.0
    return float(math.floor(base_effect * (1 - distance / max_radius) + 0.5))


class RipplePropagationEngine:
    def __init__(
        self,
        config: RippleDef,
        disengagement: DisengagementDef,
        bus: Optional[EventBus] = None,
    ) -> None:
        self.config = config
        self.disengagement = disengagement
        self.bus = bus

    def calculate_ripple(self, origin: tcod.ecs.Entity, section) -> RippleEffect:
        """
        Boost for every occupied seat of the section within range of origin.
        An origin that does not sit in the section gives an empty effect.
        """
        origin_pos = section.fan_position(origin)
        effect = RippleEffect(origin=origin, origin_position=origin_pos)
        if origin_pos == (-1, -1):
            return effect

        cfg = self.config
        if cfg.decay_type == DECAY_EXPONENTIAL:
            raise NotImplementedError("Exponential ripple decay is not implemented")
        if cfg.decay_type != DECAY_LINEAR:
            raise ValueError(f"Unknown ripple decay type '{cfg.decay_type}'")

        for fan in section.fans():
            distance = manhattan(section.fan_position(fan), origin_pos)
            if distance >= cfg.max_radius:
                continue
            value = linear_decay(cfg.base_effect, distance, cfg.max_radius)
            if is_disinterested(fan, self.disengagement):
                value += cfg.disinterested_bonus
            if value > 0:
                effect.affected[fan] = value
        return effect

    @staticmethod
    def combine_ripples(ripples: Iterable[RippleEffect]) -> Dict[tcod.ecs.Entity, float]:
        combined: Dict[tcod.ecs.Entity, float] = {}
        for ripple in ripples:
            for fan, value in ripple.affected.items():
                combined[fan] = combined.get(fan, 0.0) + value
        return combined

    def apply_ripple(self, ripple: RippleEffect) -> int:
        return self.apply_combined(ripple.affected)

    def apply_combined(self, combined: Dict[tcod.ecs.Entity, float], source: str = "ripple") -> int:
        """Writes summed attention boosts; each fan is clamped once. Returns fans touched."""
        for fan, boost in combined.items():
            modify_stats(fan, attention=boost)

        if self.bus is not None and combined:
            self.bus.publish(
                EVT_RIPPLE_APPLIED,
                source=source,
                fans_affected=len(combined),
                total_boost=round(sum(combined.values()), 3),
                fan_ids=sorted(
                    f.components[FanIdentity].fan_id
                    for f in combined
                    if FanIdentity in f.components
                ),
            )
        return len(combined)
