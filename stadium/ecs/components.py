"""
Stadium — stadium/ecs/components.py
ECS Component Definitions for python-tcod-ecs.
==============================================
Version:     0.2  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs
Status:      Production-ready.

Spectators are plain entities carrying these dataclasses. Section membership
is an entity tag: ("section", section_id).
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

STAT_NAMES = ("happiness", "thirst", "attention")


def section_tag(section_id: str) -> tuple:
    return ("section", section_id)


@dataclass
class FanIdentity:
    fan_id: str
    section_id: str

@dataclass
class SeatPosition:
    row: int                # section-local
    col: int                # section-local
    grid_row: int           # stadium-global
    grid_col: int           # stadium-global

@dataclass
class EngagementStats:
    happiness: float = 70.0
    thirst: float = 15.0
    attention: float = 70.0

@dataclass
class StatFreeze:
    """Per-stat freeze expiry in session ms. 0 means not frozen."""
    happiness_until_ms: float = 0.0
    thirst_until_ms: float = 0.0
    attention_until_ms: float = 0.0

    def is_frozen(self, stat: str, now_ms: float) -> bool:
        return now_ms < getattr(self, f"{stat}_until_ms")

@dataclass
class AttentionStagnation:
    low_since_ms: Optional[float] = None

@dataclass
class WaveParticipation:
    reduced_effort: bool = False
    last_participated: bool = False
    last_wave_id: Optional[str] = None

@dataclass
class FanMood:
    state: str = "happy"    # "happy" | "engaged" | "disengaged" | "thirsty" | "unhappy" | "drinking"
    previous: Optional[str] = None

@dataclass
class StatRevision:
    """Generation counter on the global entity; bumped by every stat write."""
    value: int = 0
