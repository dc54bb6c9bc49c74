"""
Stadium — stadium/loop.py
Main Simulation Loop: Wires ECS, EventBus, Chronicle and the crowd systems.
===========================================================================
Version:     0.3  (crowd feedback loop)
Stack:       Python 3.12 | python-tcod-ecs
Status:      Integration entry point.

Tick order (authoritative)
--------------------------
  1. fan stat decay
  2. section aggregate refresh
  3. cluster decay check
  4. mascot tick (abilities, ultimate)
  5. wave manager (countdown / propagation / autonomous trigger)

Every mutation inside a step is applied before the next step runs. Time is
simulated: tick(delta_ms) advances the session clock; nothing here reads
wall time.
"""

from __future__ import annotations

import random
from pathlib import Path
from typing import Optional

import tcod.ecs

from stadium.chronicle import ChronicleInscriber
from stadium.cluster_decay import ClusterDecaySystem
from stadium.data_loader import BalanceConfig, LevelDef, load_balance, load_level
from stadium.ecs.systems import fan_stat_decay_system
from stadium.events import EventBus
from stadium.mascot import CannonTargeting, MascotBehavior
from stadium.ripple import RipplePropagationEngine
from stadium.session import MODE_ETERNAL, MODE_RUN, SESSION_ACTIVE, SESSION_COMPLETE, GameSession, SessionScore
from stadium.wave_manager import WaveManager
from venue.sections import build_venue

DEFAULT_LEVEL = "triple_deck"
DEFAULT_FRAME_MS = 100.0


class StadiumLoop:
    """
    Core executor for one stadium session.
    Owns the Registry, EventBus, seeded RNG and every crowd subsystem.
    """

    def __init__(
        self,
        balance: Optional[BalanceConfig] = None,
        level: Optional[LevelDef] = None,
        seed: Optional[int] = None,
        chronicle_path: Optional[Path] = None,
        mode: str = MODE_RUN,
    ) -> None:
        if balance is None:
            balance = load_balance()
        if level is None:
            level = load_level(DEFAULT_LEVEL)
        if chronicle_path is None:
            chronicle_path = Path("sessions/chronicle.jsonl")

        self.balance = balance
        self.level = level
        self.seed = seed
        self.rng = random.Random(seed)
        self.registry = tcod.ecs.Registry()
        self.bus = EventBus()
        self.now_ms = 0.0
        self.tick_count = 0

        self.venue = build_venue(self.registry, level, self.rng, balance.fan_stats)

        # Mascot subscribes to wave outcomes before the session so momentum
        # updates land before the session's own counters.
        self.ripple = RipplePropagationEngine(balance.ripple, balance.disengagement, self.bus)
        self.cannon = CannonTargeting(balance.cannon, balance.disengagement, self.rng)
        self.mascot = MascotBehavior(
            balance.mascot_behavior,
            balance.mascot_ultimate,
            self.bus,
            venue=self.venue,
            cannon=self.cannon,
            ripple=self.ripple,
        )
        self.session = GameSession(balance.session, balance.scoring, self.bus, self.venue, mode=mode)
        self.wave_manager = WaveManager(balance, self.venue, self.bus, self.rng)
        self.cluster_decay = ClusterDecaySystem(balance.cluster_decay, self.rng, self.bus)

        # Wildcard subscriber registers last
        self.inscriber = ChronicleInscriber(self.bus, chronicle_path)

    # ----------------------------------------------------------
    # Session control
    # ----------------------------------------------------------

    def start(self) -> None:
        self.inscriber.open_session(level=self.level.id, seed=self.seed, mode=self.session.mode)
        self.session.start(self.now_ms)
        self.venue.refresh_aggregates()

    def _on_activated(self) -> None:
        self.wave_manager.set_session_start(self.now_ms)
        self.cluster_decay.reset(self.now_ms)
        self.mascot.enter(self.now_ms)
        self.mascot.last_cycle_advance_ms = self.now_ms
        self.mascot.last_ultimate_ms = self.now_ms

    def tick(self, delta_ms: float = DEFAULT_FRAME_MS) -> None:
        self.now_ms += delta_ms
        self.tick_count += 1
        self.inscriber.advance(self.tick_count, self.now_ms)

        was_active = self.session.state == SESSION_ACTIVE
        self.session.update(delta_ms, self.now_ms)
        if not was_active and self.session.state == SESSION_ACTIVE:
            self._on_activated()
            return
        if self.session.state != SESSION_ACTIVE:
            return

        # 1. Stat decay
        fan_stat_decay_system(
            self.registry,
            delta_ms,
            self.now_ms,
            self.balance.fan_stats,
            self.balance.disengagement,
        )
        # 2. Aggregates
        self.venue.refresh_aggregates()
        # 3. Cluster decay
        self.cluster_decay.update(self.venue.all_fans(), self.now_ms, self.session.elapsed_fraction)
        # 4. Mascot
        self.mascot.tick(delta_ms, self.now_ms)
        # 5. Waves
        self.wave_manager.update(delta_ms, self.now_ms)

    def finish(self) -> SessionScore:
        score = self.session.calculate_score(
            final_score=self.wave_manager.score,
            max_possible_score=self.wave_manager.max_possible_score,
        )
        self.inscriber.close_session(
            grade=score.grade,
            completed_waves=score.completed_waves,
            final_score=score.final_score,
        )
        return score

    def run(self, frame_ms: float = DEFAULT_FRAME_MS, max_ms: Optional[float] = None) -> SessionScore:
        """Runs a session to completion (or max_ms of simulated time) and scores it."""
        if self.session.mode == MODE_ETERNAL and max_ms is None:
            raise ValueError("Eternal sessions need max_ms")
        self.start()
        while self.session.state != SESSION_COMPLETE:
            if max_ms is not None and self.now_ms >= max_ms:
                break
            self.tick(frame_ms)
        return self.finish()
