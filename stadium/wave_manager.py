"""
Stadium — stadium/wave_manager.py
Wave Manager: Autonomous triggering, countdown, propagation, history.
=====================================================================
Version:     0.4  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs | bespoke EventBus | stdlib json
Status:      Production-ready.

Architecture notes
------------------
- At most one wave is alive at a time: it is created, counts down, then
  propagates synchronously along its whole path inside a single update().
  There is no cancellation; a started wave always finishes its path.
- Column results are handed to the renderer as EVT_WAVE_SECTION payloads;
  the manager never waits on animation.
- Wave outcome notifications (EVT_WAVE_SUCCESS / EVT_WAVE_FAILURE) are the
  only way the mascot learns about momentum.
- Autonomous checks run every check_interval_ms once the startup delay has
  passed and no global cooldown is in effect. Sections are tried in
  position-weight order (edges first, near-ties shuffled) and each rolls
  against a probability picked by its average happiness band.
"""

from __future__ import annotations
import json
import random
from typing import Any, Dict, List, Optional

from stadium.data_loader import BalanceConfig
from stadium.ecs.systems import on_wave_participation
from stadium.events import (
    EventBus,
    EVT_WAVE_COOLDOWN_STARTED,
    EVT_WAVE_CREATED,
    EVT_WAVE_FAILURE,
    EVT_WAVE_FINALIZED,
    EVT_WAVE_SECTION,
    EVT_WAVE_STARTED,
    EVT_WAVE_STRENGTH_CHANGED,
    EVT_WAVE_SUCCESS,
)
from stadium.participation import adjust_wave_strength, roll_section
from stadium.wave import OUTCOME_FAILED, Wave, calculate_path, section_position_weight

WAVE_SOURCE = "wave_manager"
WEIGHT_TIE_PRECISION = 2


class WaveManager:
    def __init__(self, balance: BalanceConfig, venue, bus: EventBus, rng: random.Random) -> None:
        self.balance = balance
        self.venue = venue
        self.bus = bus
        self.rng = rng

        self.active_wave: Optional[Wave] = None
        self.history: List[Wave] = []
        self.max_possible_score = 0
        self.next_wave_id = 1
        self.countdown_ms = 0.0
        self.strength = balance.wave_strength.starting
        self.last_section_outcome: Optional[str] = None

        self.session_start_ms: Optional[float] = None
        self.last_wave_end_ms: Optional[float] = None
        self.last_cooldown_ms = 0.0
        self.last_section_starts: Dict[str, float] = {}
        self._check_accumulator = 0.0

    # ----------------------------------------------------------
    # Cooldowns & triggering
    # ----------------------------------------------------------

    def set_session_start(self, now_ms: float) -> None:
        self.session_start_ms = now_ms

    def is_in_global_cooldown(self, now_ms: float) -> bool:
        if not self.balance.wave_autonomous.enabled:
            return True
        if self.last_wave_end_ms is None:
            return False
        return now_ms - self.last_wave_end_ms < self.last_cooldown_ms

    def can_section_start(self, section_id: str, now_ms: float) -> bool:
        if not self.balance.wave_autonomous.enabled:
            return False
        last = self.last_section_starts.get(section_id)
        if last is None:
            return True
        return now_ms - last >= self.balance.wave_autonomous.section_start_cooldown_ms

    def trigger_probability(self, avg_happiness: float) -> float:
        cfg = self.balance.wave_autonomous
        if avg_happiness < cfg.low_happiness_band:
            return cfg.low_band_probability
        if avg_happiness < cfg.high_happiness_band:
            return cfg.mid_band_probability
        return cfg.high_band_probability

    def _weighted_sections(self) -> list:
        sections = list(self.venue.sections)
        n = len(sections)
        weights = self.balance.wave_autonomous.section_position_weights
        ranked = [
            (section, 1.0 if n == 1 else section_position_weight(i, n, weights))
            for i, section in enumerate(sections)
        ]
        self.rng.shuffle(ranked)
        ranked.sort(key=lambda pair: -round(pair[1], WEIGHT_TIE_PRECISION))
        return [section for section, _ in ranked]

    def check_wave_probability(self, now_ms: float) -> Optional[str]:
        """Returns the id of a section that wants to start a wave, or None."""
        cfg = self.balance.wave_autonomous
        if not cfg.enabled or self.active_wave is not None:
            return None
        if self.is_in_global_cooldown(now_ms):
            return None
        if self.session_start_ms is not None and now_ms - self.session_start_ms < cfg.startup_delay_ms:
            return None

        for section in self._weighted_sections():
            if not self.can_section_start(section.id, now_ms):
                continue
            probability = self.trigger_probability(section.aggregate_stats().happiness)
            if self.rng.random() < probability:
                return section.id
        return None

    # ----------------------------------------------------------
    # Lifecycle
    # ----------------------------------------------------------

    def create_wave(self, origin_section: str, now_ms: float, wave_type: str = "normal") -> Wave:
        """Creates a wave at origin and starts its countdown. Also used for commanded waves."""
        section_ids = self.venue.section_ids()
        path = calculate_path(section_ids, origin_section)
        wave = Wave(
            str(self.next_wave_id),
            origin_section,
            path,
            now_ms,
            wave_type=wave_type,
            section_order=section_ids,
        )
        self.next_wave_id += 1
        self.active_wave = wave
        self.last_section_starts[origin_section] = now_ms
        self.bus.publish(EVT_WAVE_CREATED, source=WAVE_SOURCE, target=wave.id, wave=wave.to_dict())
        self._start_wave()
        return wave

    def _start_wave(self) -> None:
        self.countdown_ms = self.balance.wave_autonomous.trigger_countdown_ms
        self.strength = self.balance.wave_strength.starting
        self.last_section_outcome = None
        wave = self.active_wave
        self.bus.publish(
            EVT_WAVE_STARTED,
            source=WAVE_SOURCE,
            target=wave.id,
            origin=wave.origin_section,
            path=list(wave.path),
            direction=wave.direction,
        )
        self.bus.publish(EVT_WAVE_STRENGTH_CHANGED, source=WAVE_SOURCE, strength=self.strength)

    def update(self, delta_ms: float, now_ms: float) -> Optional[Wave]:
        """Advances countdown or runs the autonomous check. Returns a wave that just finished."""
        if self.active_wave is not None:
            self.countdown_ms -= delta_ms
            if self.countdown_ms <= 0:
                return self.propagate_wave(now_ms)
            return None

        self._check_accumulator += delta_ms
        if self._check_accumulator < self.balance.wave_autonomous.check_interval_ms:
            return None
        self._check_accumulator = 0.0
        origin = self.check_wave_probability(now_ms)
        if origin is not None:
            self.create_wave(origin, now_ms)
        return None

    def propagate_wave(self, now_ms: float) -> Optional[Wave]:
        """Rolls every section on the path in order, then finalizes the wave."""
        wave = self.active_wave
        if wave is None:
            return None

        fan_config = self.balance.fan_stats
        for section_id in wave.path:
            section = self.venue.get(section_id)
            result, columns = roll_section(section, self.strength, self.rng, self.balance, wave.id)
            wave.add_section_result(result)

            self.bus.publish(
                EVT_WAVE_SECTION,
                source=WAVE_SOURCE,
                target=section_id,
                wave_id=wave.id,
                strength=self.strength,
                direction=wave.direction,
                outcome=result.outcome,
                participation_rate=result.participation_rate,
                columns=[c.to_dict() for c in columns],
            )

            for column in columns:
                passed = column.outcome != OUTCOME_FAILED
                for roll in column.rolls:
                    if roll.will_participate:
                        on_wave_participation(roll.fan, passed, now_ms, fan_config)

            new_strength = adjust_wave_strength(
                self.strength,
                self.last_section_outcome,
                result.outcome,
                result.participation_rate,
                self.balance.wave_strength,
                self.balance.classification,
            )
            if new_strength != self.strength:
                self.strength = new_strength
                self.bus.publish(EVT_WAVE_STRENGTH_CHANGED, source=WAVE_SOURCE, strength=self.strength)
            self.last_section_outcome = result.outcome

        self.finalize_wave(now_ms)
        return wave

    def finalize_wave(self, now_ms: float) -> None:
        wave = self.active_wave
        if wave is None:
            return
        base = self.balance.scoring.base_points_per_section
        success = wave.is_success
        wave.complete(now_ms)
        self.history.append(wave)
        self.max_possible_score += wave.max_possible_score(base)
        self.active_wave = None
        self._record_wave_end(success, now_ms)

        results = wave.results()
        rate = sum(r.participation_rate for r in results) / len(results) if results else 0.0
        self.bus.publish(
            EVT_WAVE_SUCCESS if success else EVT_WAVE_FAILURE,
            source=WAVE_SOURCE,
            target=wave.id,
            section=wave.origin_section,
            score=wave.calculate_score(base),
            participation_rate=rate,
        )
        self.bus.publish(EVT_WAVE_FINALIZED, source=WAVE_SOURCE, target=wave.id, wave=wave.to_dict(base), success=success)

    def _record_wave_end(self, success: bool, now_ms: float) -> None:
        cfg = self.balance.wave_autonomous
        cooldown = cfg.success_cooldown_ms if success else cfg.failure_cooldown_ms
        self.last_wave_end_ms = now_ms
        self.last_cooldown_ms = cooldown
        self.bus.publish(
            EVT_WAVE_COOLDOWN_STARTED,
            source=WAVE_SOURCE,
            success=success,
            cooldown_ms=cooldown,
            ends_at_ms=now_ms + cooldown,
        )

    # ----------------------------------------------------------
    # Reporting
    # ----------------------------------------------------------

    @property
    def score(self) -> int:
        base = self.balance.scoring.base_points_per_section
        return sum(w.calculate_score(base) for w in self.history)

    @property
    def completed_waves(self) -> int:
        return sum(1 for w in self.history if w.is_success)

    def export_waves(self) -> str:
        base = self.balance.scoring.base_points_per_section
        data: Dict[str, Any] = {
            "active_wave": self.active_wave.to_dict(base) if self.active_wave else None,
            "history": [w.to_dict(base) for w in self.history],
            "max_possible_score": self.max_possible_score,
        }
        return json.dumps(data, indent=2)
