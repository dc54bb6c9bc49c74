"""
Stadium — venue/sections.py
Seating Layout: Section geometry, spectator population, aggregate caches.
=========================================================================
Version:     0.3  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs
Status:      Production-ready.

Architecture notes
------------------
- A Section is a rows x cols seat grid anchored at (grid_top, grid_left) in
  stadium-global coordinates. Spectators are ECS entities tagged
  ("section", id); the Section object itself only holds geometry.
- Section aggregates are pulled on read: the cache stores the StatRevision
  it was computed at and recomputes when the registry counter has moved.
- Empty sections report neutral 50/50/50 aggregates.
"""

from __future__ import annotations
import random
from typing import Dict, List, Optional, Tuple

import tcod.ecs

from stadium.data_loader import FanStatsDef, LevelDef, SectionDef
from stadium.ecs.components import (
    AttentionStagnation,
    EngagementStats,
    FanIdentity,
    FanMood,
    SeatPosition,
    StatFreeze,
    WaveParticipation,
    section_tag,
)
from stadium.ecs.systems import average_stats, get_revision

NO_POSITION: Tuple[int, int] = (-1, -1)
NEUTRAL_AGGREGATE = 50.0


class Section:
    def __init__(
        self,
        registry: tcod.ecs.Registry,
        section_id: str,
        rows: int,
        cols: int,
        grid_top: int = 0,
        grid_left: int = 0,
        label: Optional[str] = None,
    ) -> None:
        self.registry = registry
        self.id = section_id
        self.label = label or section_id
        self.rows = rows
        self.cols = cols
        self.grid_top = grid_top
        self.grid_left = grid_left
        self._aggregate: Optional[EngagementStats] = None
        self._aggregate_revision = -1

    def __repr__(self) -> str:
        return f"Section({self.id!r}, {self.rows}x{self.cols})"

    # ----------------------------------------------------------
    # Seat queries
    # ----------------------------------------------------------

    def fans(self) -> List[tcod.ecs.Entity]:
        """Occupants in row-major seat order."""
        fans = list(self.registry.Q.all_of(
            components=[EngagementStats, SeatPosition],
            tags=[section_tag(self.id)],
        ))
        fans.sort(key=lambda f: (f.components[SeatPosition].row, f.components[SeatPosition].col))
        return fans

    def column_fans(self, col: int) -> List[tcod.ecs.Entity]:
        """Occupants of one seating column, front row first."""
        return [f for f in self.fans() if f.components[SeatPosition].col == col]

    def fan_at(self, row: int, col: int) -> Optional[tcod.ecs.Entity]:
        for fan in self.fans():
            pos = fan.components[SeatPosition]
            if pos.row == row and pos.col == col:
                return fan
        return None

    def fan_position(self, fan: tcod.ecs.Entity) -> Tuple[int, int]:
        """Section-local (row, col) of a fan, or (-1, -1) if it does not sit here."""
        if section_tag(self.id) not in fan.tags or SeatPosition not in fan.components:
            return NO_POSITION
        pos = fan.components[SeatPosition]
        return (pos.row, pos.col)

    def contains(self, fan: tcod.ecs.Entity) -> bool:
        return section_tag(self.id) in fan.tags

    @property
    def occupied_count(self) -> int:
        return len(self.fans())

    # ----------------------------------------------------------
    # Aggregates
    # ----------------------------------------------------------

    def aggregate_stats(self) -> EngagementStats:
        """Average happiness/thirst/attention; recomputed only after stats changed."""
        revision = get_revision(self.registry)
        if self._aggregate is None or revision != self._aggregate_revision:
            avg = average_stats(self.fans())
            if avg is None:
                avg = EngagementStats(
                    happiness=NEUTRAL_AGGREGATE,
                    thirst=NEUTRAL_AGGREGATE,
                    attention=NEUTRAL_AGGREGATE,
                )
            self._aggregate = avg
            self._aggregate_revision = revision
        return self._aggregate


class Venue:
    """Ordered sections of one stadium layout. Order is the wave's left-to-right."""

    def __init__(self, registry: tcod.ecs.Registry, sections: List[Section]) -> None:
        self.registry = registry
        self.sections = list(sections)
        self._by_id: Dict[str, Section] = {s.id: s for s in self.sections}

    def section_ids(self) -> List[str]:
        return [s.id for s in self.sections]

    def get(self, section_id: str) -> Optional[Section]:
        return self._by_id.get(section_id)

    def section_of(self, fan: tcod.ecs.Entity) -> Optional[Section]:
        ident = fan.components.get(FanIdentity)
        if ident is None:
            return None
        return self._by_id.get(ident.section_id)

    def all_fans(self) -> List[tcod.ecs.Entity]:
        fans: List[tcod.ecs.Entity] = []
        for section in self.sections:
            fans.extend(section.fans())
        return fans

    def refresh_aggregates(self) -> None:
        for section in self.sections:
            section.aggregate_stats()

# ============================================================
# POPULATION
# ============================================================

def spawn_fan(
    registry: tcod.ecs.Registry,
    section: Section,
    row: int,
    col: int,
    rng: random.Random,
    config: FanStatsDef,
) -> tcod.ecs.Entity:
    """Seats a spectator with randomized starting stats."""
    fan = registry.new_entity()
    fan.components[FanIdentity] = FanIdentity(
        fan_id=f"{section.id}-{row}-{col}",
        section_id=section.id,
    )
    fan.components[SeatPosition] = SeatPosition(
        row=row,
        col=col,
        grid_row=section.grid_top + row,
        grid_col=section.grid_left + col,
    )
    fan.components[EngagementStats] = EngagementStats(
        happiness=rng.uniform(config.initial_happiness_min, config.initial_happiness_max),
        thirst=rng.uniform(config.initial_thirst_min, config.initial_thirst_max),
        attention=rng.uniform(config.initial_attention_min, config.initial_attention_max),
    )
    fan.components[StatFreeze] = StatFreeze()
    fan.components[AttentionStagnation] = AttentionStagnation()
    fan.components[WaveParticipation] = WaveParticipation()
    fan.components[FanMood] = FanMood()
    fan.tags.add(section_tag(section.id))
    return fan

def populate_section(
    registry: tcod.ecs.Registry,
    section_def: SectionDef,
    rng: random.Random,
    config: FanStatsDef,
) -> Section:
    section = Section(
        registry,
        section_def.id,
        rows=section_def.rows,
        cols=section_def.cols,
        grid_top=section_def.grid_top,
        grid_left=section_def.grid_left,
        label=section_def.label,
    )
    empty = {(seat[0], seat[1]) for seat in section_def.empty_seats}
    for row in range(section.rows):
        for col in range(section.cols):
            if (row, col) in empty:
                continue
            spawn_fan(registry, section, row, col, rng, config)
    return section

def build_venue(
    registry: tcod.ecs.Registry,
    level: LevelDef,
    rng: random.Random,
    config: FanStatsDef,
) -> Venue:
    sections = [populate_section(registry, sdef, rng, config) for sdef in level.sections]
    return Venue(registry, sections)
