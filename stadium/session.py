"""
Stadium — stadium/session.py
Game Session: Timed run lifecycle, elapsed phase, grading.
==========================================================
Version:     0.2  (crowd feedback loop)
Stack:       Python 3.12 | bespoke EventBus
Status:      Production-ready.

Lifecycle: idle -> countdown -> active -> complete. A "run" session lasts
run_mode_duration_ms of active time; an "eternal" session never completes on
its own and reports no elapsed fraction.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from stadium.data_loader import ScoringDef, SessionDef
from stadium.ecs.components import EngagementStats
from stadium.events import (
    EventBus,
    StadiumEvent,
    EVT_SESSION_STATE_CHANGED,
    EVT_SESSION_TICK,
    EVT_WAVE_FAILURE,
    EVT_WAVE_SUCCESS,
)

SESSION_IDLE = "idle"
SESSION_COUNTDOWN = "countdown"
SESSION_ACTIVE = "active"
SESSION_COMPLETE = "complete"

MODE_RUN = "run"
MODE_ETERNAL = "eternal"

SESSION_SOURCE = "session"


@dataclass(frozen=True)
class SessionScore:
    grade: str
    completed_waves: int
    wave_attempts: int
    net_happiness: float
    net_attention: float
    net_thirst: float           # positive means the crowd got less thirsty
    final_score: int
    max_possible_score: int
    score_percentage: float


def grade_for(completed_waves: int, scoring: ScoringDef) -> str:
    """S-tiers by raw wave count, then percentage bands of the estimated max."""
    tiers = scoring.grade_thresholds
    for tier in ("S+", "S", "S-"):
        if tier in tiers and completed_waves >= tiers[tier]:
            return tier

    percentage = completed_waves / scoring.max_waves_estimate if scoring.max_waves_estimate else 0.0
    for grade, threshold in sorted(scoring.percentage_thresholds.items(), key=lambda kv: -kv[1]):
        if percentage >= threshold:
            return grade
    return "F"


def venue_aggregate(venue) -> EngagementStats:
    """Mean of the per-section aggregates."""
    aggregates = [s.aggregate_stats() for s in venue.sections]
    if not aggregates:
        return EngagementStats(happiness=0.0, thirst=0.0, attention=0.0)
    n = len(aggregates)
    return EngagementStats(
        happiness=sum(a.happiness for a in aggregates) / n,
        thirst=sum(a.thirst for a in aggregates) / n,
        attention=sum(a.attention for a in aggregates) / n,
    )


class GameSession:
    def __init__(
        self,
        config: SessionDef,
        scoring: ScoringDef,
        bus: EventBus,
        venue,
        mode: str = MODE_RUN,
    ) -> None:
        if mode not in (MODE_RUN, MODE_ETERNAL):
            raise ValueError(f"Unknown session mode '{mode}'")
        self.config = config
        self.scoring = scoring
        self.bus = bus
        self.venue = venue
        self.mode = mode

        self.state = SESSION_IDLE
        self.countdown_remaining_ms = 0.0
        self.time_remaining_ms: Optional[float] = None
        self.active_elapsed_ms = 0.0
        self.started_at_ms: Optional[float] = None
        self.completed_waves = 0
        self.wave_attempts = 0
        self.initial_stats: Optional[EngagementStats] = None

        bus.subscribe(EVT_WAVE_SUCCESS, self._on_wave_success)
        bus.subscribe(EVT_WAVE_FAILURE, self._on_wave_failure)

    @property
    def duration_ms(self) -> Optional[float]:
        return self.config.run_mode_duration_ms if self.mode == MODE_RUN else None

    @property
    def is_active(self) -> bool:
        return self.state == SESSION_ACTIVE

    @property
    def elapsed_fraction(self) -> Optional[float]:
        if self.duration_ms is None:
            return None
        if self.duration_ms <= 0:
            return 1.0
        return max(0.0, min(1.0, self.active_elapsed_ms / self.duration_ms))

    def _set_state(self, new_state: str, now_ms: float) -> None:
        self.state = new_state
        self.bus.publish(EVT_SESSION_STATE_CHANGED, source=SESSION_SOURCE, state=new_state, time_ms=now_ms)

    def start(self, now_ms: float) -> None:
        self.completed_waves = 0
        self.wave_attempts = 0
        self.active_elapsed_ms = 0.0
        self.initial_stats = venue_aggregate(self.venue)
        self.time_remaining_ms = self.duration_ms
        self.countdown_remaining_ms = self.config.countdown_ms
        self.started_at_ms = now_ms
        self._set_state(SESSION_COUNTDOWN, now_ms)

    def activate(self, now_ms: float) -> None:
        self._set_state(SESSION_ACTIVE, now_ms)

    def complete(self, now_ms: float) -> None:
        if self.state == SESSION_COMPLETE:
            return
        self._set_state(SESSION_COMPLETE, now_ms)

    def update(self, delta_ms: float, now_ms: float) -> None:
        if self.state == SESSION_COUNTDOWN:
            self.countdown_remaining_ms -= delta_ms
            if self.countdown_remaining_ms <= 0:
                self.countdown_remaining_ms = 0.0
                self.activate(now_ms)
            return

        if self.state != SESSION_ACTIVE:
            return

        self.active_elapsed_ms += delta_ms
        if self.time_remaining_ms is not None:
            self.time_remaining_ms -= delta_ms
            if self.time_remaining_ms <= 0:
                self.time_remaining_ms = 0.0
                self.complete(now_ms)
        self.bus.publish(EVT_SESSION_TICK, source=SESSION_SOURCE, time_remaining_ms=self.time_remaining_ms)

    def _on_wave_success(self, event: StadiumEvent) -> None:
        self.wave_attempts += 1
        self.completed_waves += 1

    def _on_wave_failure(self, event: StadiumEvent) -> None:
        self.wave_attempts += 1

    def calculate_score(self, final_score: int = 0, max_possible_score: int = 0) -> SessionScore:
        if self.initial_stats is None:
            raise RuntimeError("Cannot calculate score without initial stats snapshot")
        final = venue_aggregate(self.venue)
        return SessionScore(
            grade=grade_for(self.completed_waves, self.scoring),
            completed_waves=self.completed_waves,
            wave_attempts=self.wave_attempts,
            net_happiness=final.happiness - self.initial_stats.happiness,
            net_attention=final.attention - self.initial_stats.attention,
            net_thirst=self.initial_stats.thirst - final.thirst,
            final_score=final_score,
            max_possible_score=max_possible_score,
            score_percentage=final_score / max_possible_score if max_possible_score else 0.0,
        )
