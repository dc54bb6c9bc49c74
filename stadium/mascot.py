"""
Stadium — stadium/mascot.py
Mascot Behavior: Attention economy, momentum, and the ultimate ability.
=======================================================================
Version:     0.4  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs | bespoke EventBus
Status:      Production-ready.

Architecture notes
------------------
- States: entrance -> patrolling <-> hyping / executing_ability -> ultimate
  -> patrolling ... -> exit. exit ends an activation; after the re-entry
  cooldown the mascot comes back through entrance.
- State decisions run on a coarse tick (state_tick_interval_ms); ability
  timers count down every frame.
- Periodic abilities rotate through a fixed targeting cycle
  (section / global / cluster). Each targeted fan is boosted, then drained
  of a little attention, which is banked (cap 100).
- The ultimate fires on whichever comes first:
    * the bank reaching the ready threshold,
    * the momentum-shortened cooldown elapsing,
    * the hard max interval elapsing.
  Firing drains the bank and resets momentum immediately, and multiplies
  momentum effectiveness by (1 - diminishing_return_factor), floored.
- Wave outcomes arrive over the EventBus (EVT_WAVE_SUCCESS / EVT_WAVE_FAILURE).
- The t-shirt cannon picks 1-3 catchers per section; each catcher is a
  ripple origin and the ripples are applied combined.
"""

from __future__ import annotations
import math
import random
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

import tcod.ecs

from stadium.data_loader import (
    AbilityEffectDef,
    CannonDef,
    DisengagementDef,
    MascotBehaviorDef,
    MascotUltimateDef,
)
from stadium.ecs.components import EngagementStats, FanIdentity, SeatPosition
from stadium.ecs.systems import is_disinterested, modify_stats
from stadium.events import (
    EventBus,
    StadiumEvent,
    EVT_CANNON_FIRED,
    EVT_MASCOT_ABILITY_END,
    EVT_MASCOT_ABILITY_START,
    EVT_MASCOT_CYCLE_ADVANCE,
    EVT_MASCOT_STATE_CHANGED,
    EVT_MASCOT_STAT_EFFECT,
    EVT_ULTIMATE_END,
    EVT_ULTIMATE_FIRED,
    EVT_WAVE_FAILURE,
    EVT_WAVE_SUCCESS,
)
from stadium.ripple import RipplePropagationEngine

STATE_ENTRANCE = "entrance"
STATE_HYPING = "hyping"
STATE_PATROLLING = "patrolling"
STATE_EXECUTING_ABILITY = "executing_ability"
STATE_ULTIMATE = "ultimate"
STATE_EXIT = "exit"

MASCOT_SOURCE = "mascot"

# ============================================================
# CANNON TARGETING
# ============================================================

class CannonTargeting:
    """
    Weighted catcher selection for one cannon activation.

    Disinterested fans weigh more and fans farther from the mascot get a
    distance bonus. A fan is never picked twice within one activation; call
    reset() between activations.
    """

    def __init__(self, config: CannonDef, disengagement: DisengagementDef, rng: random.Random) -> None:
        self.config = config
        self.disengagement = disengagement
        self.rng = rng
        self._targeted: Set[tcod.ecs.Entity] = set()

    def reset(self) -> None:
        self._targeted.clear()

    @property
    def targeted_count(self) -> int:
        return len(self._targeted)

    def has_been_targeted(self, fan: tcod.ecs.Entity) -> bool:
        return fan in self._targeted

    def catch_weight(self, fan: tcod.ecs.Entity, mascot_pos: Tuple[float, float]) -> float:
        weight = 1.0
        if is_disinterested(fan, self.disengagement):
            weight *= self.config.disinterested_weight
        pos = fan.components[SeatPosition]
        distance = math.hypot(pos.row - mascot_pos[0], pos.col - mascot_pos[1])
        normalized = min(distance / self.config.distance_normalizer, 1.0)
        return weight * (1.0 + normalized * self.config.distance_weight)

    def select_catchers(self, section, mascot_pos: Optional[Tuple[float, float]] = None) -> List[tcod.ecs.Entity]:
        if mascot_pos is None:
            # Mascot stands in the aisle in front of the section's center column.
            mascot_pos = (-1.0, (section.cols - 1) / 2)

        pool = [
            (fan, self.catch_weight(fan, mascot_pos))
            for fan in section.fans()
            if fan not in self._targeted
        ]
        if not pool:
            return []

        count = self.rng.randint(self.config.min_catchers, self.config.max_catchers)
        catchers: List[tcod.ecs.Entity] = []
        while pool and len(catchers) < count:
            total = sum(w for _, w in pool)
            if total <= 0:
                break
            pick = self.rng.random() * total
            chosen = len(pool) - 1
            for idx, (_, weight) in enumerate(pool):
                pick -= weight
                if pick <= 0:
                    chosen = idx
                    break
            fan, _ = pool.pop(chosen)
            catchers.append(fan)
            self._targeted.add(fan)
        return catchers

# ============================================================
# MASCOT BEHAVIOR
# ============================================================

class MascotBehavior:
    def __init__(
        self,
        behavior: MascotBehaviorDef,
        ultimate: MascotUltimateDef,
        bus: EventBus,
        venue=None,
        cannon: Optional[CannonTargeting] = None,
        ripple: Optional[RipplePropagationEngine] = None,
        now_ms: float = 0.0,
    ) -> None:
        self.behavior = behavior
        self.ultimate = ultimate
        self.bus = bus
        self.venue = venue
        self.cannon = cannon
        self.ripple = ripple

        self.state = STATE_ENTRANCE
        self.entered_at_ms = now_ms
        self.exited_at_ms: Optional[float] = None
        self.cycle_index = 0
        self.last_cycle_advance_ms = now_ms
        self.last_ultimate_ms = now_ms
        self.consecutive_wave_successes = 0
        self.momentum_effectiveness = 1.0
        self.attention_bank = 0.0
        self.ultimate_ready = False
        self.ability_timer_ms = 0.0
        self.ultimate_count = 0
        self._tick_accumulator = 0.0

        bus.subscribe(EVT_WAVE_SUCCESS, self._on_wave_success_event)
        bus.subscribe(EVT_WAVE_FAILURE, self._on_wave_failure_event)

    # ----------------------------------------------------------
    # Attention bank & momentum
    # ----------------------------------------------------------

    @property
    def targeting_phase(self) -> str:
        cycle = self.behavior.targeting_cycle
        return cycle[self.cycle_index % len(cycle)]

    def add_attention(self, amount: float) -> None:
        self.attention_bank = min(self.ultimate.attention_bank_max, self.attention_bank + amount)
        self.ultimate_ready = self.attention_bank >= self.ultimate.attention_bank_threshold

    def drain_attention_bank(self) -> None:
        self.attention_bank = 0.0
        self.ultimate_ready = False

    def on_wave_success(self) -> None:
        self.consecutive_wave_successes += 1
        self.momentum_effectiveness = min(
            1.0, self.momentum_effectiveness + self.ultimate.effectiveness_recovery
        )
        self.add_attention(self.ultimate.wave_success_bank_bonus)

    def on_wave_failure(self) -> None:
        self.consecutive_wave_successes = 0

    def _on_wave_success_event(self, event: StadiumEvent) -> None:
        self.on_wave_success()

    def _on_wave_failure_event(self, event: StadiumEvent) -> None:
        self.on_wave_failure()

    def effective_cooldown_ms(self) -> float:
        cfg = self.ultimate
        raw_reduction = min(
            self.consecutive_wave_successes * cfg.momentum_step_percent,
            cfg.momentum_max_percent,
        )
        reduction = raw_reduction * self.momentum_effectiveness
        return max(cfg.base_cooldown_ms * (1 - reduction), cfg.min_floor_ms)

    def should_trigger_ultimate(self, now_ms: float) -> bool:
        elapsed = now_ms - self.last_ultimate_ms
        if elapsed >= self.ultimate.max_interval_ms:
            return True
        if self.ultimate_ready:
            return True
        return elapsed >= self.effective_cooldown_ms()

    def should_start_ability(self, now_ms: float) -> bool:
        return now_ms - self.last_cycle_advance_ms >= self.behavior.ability_base_interval_ms

    # ----------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------

    def _set_state(self, new_state: str, now_ms: float) -> None:
        if new_state == self.state:
            return
        old = self.state
        self.state = new_state
        self.bus.publish(EVT_MASCOT_STATE_CHANGED, source=MASCOT_SOURCE, old=old, new=new_state, time_ms=now_ms)

    def recall(self, now_ms: float) -> None:
        """Sends the mascot off; it may re-enter after the re-entry cooldown."""
        if self.state == STATE_EXIT:
            return
        self.ability_timer_ms = 0.0
        self.exited_at_ms = now_ms
        self._set_state(STATE_EXIT, now_ms)

    def enter(self, now_ms: float) -> None:
        self.entered_at_ms = now_ms
        self.exited_at_ms = None
        self._set_state(STATE_ENTRANCE, now_ms)

    def tick(self, delta_ms: float, now_ms: float) -> None:
        if self.state == STATE_EXIT:
            if self.exited_at_ms is not None and now_ms - self.exited_at_ms >= self.behavior.reentry_cooldown_ms:
                self.enter(now_ms)
            return

        if self.state == STATE_ENTRANCE and now_ms - self.entered_at_ms >= self.behavior.entrance_duration_ms:
            self._set_state(STATE_PATROLLING, now_ms)

        self._tick_accumulator += delta_ms
        if self._tick_accumulator >= self.behavior.state_tick_interval_ms:
            self._tick_accumulator = 0.0
            if self.state not in (STATE_EXIT, STATE_ULTIMATE) and self.should_trigger_ultimate(now_ms):
                self.start_ultimate(now_ms)
            if self.state == STATE_PATROLLING and self.should_start_ability(now_ms):
                self.start_ability(now_ms)

        if self.state in (STATE_HYPING, STATE_EXECUTING_ABILITY, STATE_ULTIMATE) and self.ability_timer_ms > 0:
            self.ability_timer_ms -= delta_ms
            if self.ability_timer_ms <= 0:
                if self.state == STATE_ULTIMATE:
                    self.complete_ultimate(now_ms)
                else:
                    self.complete_ability(now_ms)

    # ----------------------------------------------------------
    # Abilities
    # ----------------------------------------------------------

    def advance_cycle(self, now_ms: float) -> None:
        self.cycle_index = (self.cycle_index + 1) % len(self.behavior.targeting_cycle)
        self.last_cycle_advance_ms = now_ms
        self.bus.publish(
            EVT_MASCOT_CYCLE_ADVANCE,
            source=MASCOT_SOURCE,
            cycle_index=self.cycle_index,
            phase=self.targeting_phase,
        )

    def start_ability(self, now_ms: float) -> None:
        phase = self.targeting_phase
        self._set_state(STATE_EXECUTING_ABILITY if phase == "cluster" else STATE_HYPING, now_ms)
        self.ability_timer_ms = self.behavior.ability_duration_ms
        self.bus.publish(EVT_MASCOT_ABILITY_START, source=MASCOT_SOURCE, phase=phase, time_ms=now_ms)
        targets = self.apply_phase_effects(phase, ultimate=False)
        if phase == "section" and targets:
            self.fire_cannon([self.venue.section_of(targets[0])])

    def complete_ability(self, now_ms: float) -> None:
        self.bus.publish(EVT_MASCOT_ABILITY_END, source=MASCOT_SOURCE, time_ms=now_ms)
        self.advance_cycle(now_ms)
        self._set_state(STATE_PATROLLING, now_ms)

    def start_ultimate(self, now_ms: float) -> None:
        phase = self.targeting_phase
        bank_spent = self.attention_bank
        self.last_ultimate_ms = now_ms
        self.ultimate_count += 1
        self.drain_attention_bank()
        self.consecutive_wave_successes = 0
        self.momentum_effectiveness = max(
            self.ultimate.min_effectiveness,
            self.momentum_effectiveness * (1 - self.ultimate.diminishing_return_factor),
        )
        self._set_state(STATE_ULTIMATE, now_ms)
        self.ability_timer_ms = self.behavior.ultimate_duration_ms
        self.bus.publish(
            EVT_ULTIMATE_FIRED,
            source=MASCOT_SOURCE,
            phase=phase,
            bank_spent=bank_spent,
            effectiveness=self.momentum_effectiveness,
            time_ms=now_ms,
        )
        self.apply_phase_effects(phase, ultimate=True)
        if self.venue is not None:
            self.fire_cannon(self.venue.sections)

    def complete_ultimate(self, now_ms: float) -> None:
        self.bus.publish(EVT_ULTIMATE_END, source=MASCOT_SOURCE, time_ms=now_ms)
        self._set_state(STATE_PATROLLING, now_ms)
        self.advance_cycle(now_ms)

    def phase_effect(self, phase: str, ultimate: bool) -> AbilityEffectDef:
        base = self.behavior.ability_effects[phase]
        multiplier = self.behavior.ultimate_multiplier if ultimate else 1.0
        return AbilityEffectDef(
            attention=math.floor(base.attention * multiplier + 0.5),
            happiness=math.floor(base.happiness * multiplier + 0.5),
        )

    def apply_phase_effects(self, phase: str, ultimate: bool) -> List[tcod.ecs.Entity]:
        """Boosts the phase's target set. Periodic abilities also bank a drain per fan."""
        effect = self.phase_effect(phase, ultimate)
        targets = self.select_targets(phase)
        # The ultimate spends the bank; it never drains fans to refill it.
        drain = 0.0 if ultimate else self.behavior.attention_drain

        for fan in targets:
            modify_stats(fan, attention=effect.attention, happiness=effect.happiness)
            if drain:
                modify_stats(fan, attention=-drain)
                self.add_attention(drain)

        self.bus.publish(
            EVT_MASCOT_STAT_EFFECT,
            source=MASCOT_SOURCE,
            phase=phase,
            ultimate=ultimate,
            attention=effect.attention,
            happiness=effect.happiness,
            fan_count=len(targets),
            attention_bank=self.attention_bank,
        )
        return targets

    def fire_cannon(self, sections: Sequence[Any]) -> int:
        """One cannon activation over the given sections. Returns fans boosted."""
        if self.cannon is None or self.ripple is None:
            return 0
        self.cannon.reset()
        ripples = []
        catcher_ids: List[str] = []
        for section in sections:
            if section is None:
                continue
            for catcher in self.cannon.select_catchers(section):
                ripples.append(self.ripple.calculate_ripple(catcher, section))
                catcher_ids.append(catcher.components[FanIdentity].fan_id)
        combined = self.ripple.combine_ripples(ripples)
        self.bus.publish(EVT_CANNON_FIRED, source=MASCOT_SOURCE, catchers=catcher_ids)
        return self.ripple.apply_combined(combined, source=MASCOT_SOURCE)

    # ----------------------------------------------------------
    # Targeting
    # ----------------------------------------------------------

    def _lowest_attention_section(self):
        chosen = None
        lowest = math.inf
        for section in self.venue.sections:
            attention = section.aggregate_stats().attention
            if attention < lowest:
                lowest = attention
                chosen = section
        return chosen

    def find_low_attention_cluster(self) -> List[tcod.ecs.Entity]:
        cfg = self.behavior.cluster
        candidates = [
            fan for fan in self.venue.all_fans()
            if fan.components[EngagementStats].attention < cfg.low_attention_threshold
        ]
        if len(candidates) < cfg.min_cluster_size:
            return []
        seed = min(candidates, key=lambda f: f.components[EngagementStats].attention)
        seed_pos = seed.components[SeatPosition]
        cluster = [
            fan for fan in candidates
            if abs(fan.components[SeatPosition].grid_row - seed_pos.grid_row)
            + abs(fan.components[SeatPosition].grid_col - seed_pos.grid_col) <= cfg.scan_radius
        ]
        return cluster if len(cluster) >= cfg.min_cluster_size else []

    def select_targets(self, phase: str) -> List[tcod.ecs.Entity]:
        if self.venue is None or not self.venue.sections:
            return []
        if phase == "global":
            return self.venue.all_fans()
        if phase == "cluster":
            cluster = self.find_low_attention_cluster()
            if cluster:
                return cluster
        section = self._lowest_attention_section()
        return section.fans() if section is not None else []

    # ----------------------------------------------------------
    # Debug
    # ----------------------------------------------------------

    def debug_snapshot(self, now_ms: float) -> Dict[str, Any]:
        elapsed = now_ms - self.last_ultimate_ms
        if self.ultimate_ready:
            eta = 0.0
        else:
            due = min(self.effective_cooldown_ms(), self.ultimate.max_interval_ms)
            eta = max(0.0, due - elapsed)
        return {
            "state": self.state,
            "cycle_index": self.cycle_index,
            "targeting_phase": self.targeting_phase,
            "last_ultimate_ms": self.last_ultimate_ms,
            "next_ultimate_eta_ms": eta,
            "consecutive_wave_successes": self.consecutive_wave_successes,
            "momentum_effectiveness": self.momentum_effectiveness,
            "attention_bank": self.attention_bank,
            "ultimate_ready": self.ultimate_ready,
        }
