"""
Stadium — stadium/events.py
Event Bus: Canonical event keys, typed envelope, ordered pub-sub.
==================================================================
Version:     0.2  (crowd feedback loop)
Stack:       Python 3.12 | Pydantic v2 | bespoke pub-sub
Status:      Production-ready.

Architecture notes
------------------
- All events are StadiumEvent envelopes (Pydantic v2 BaseModel).
- No subsystem mutates another subsystem's state without emitting an event.
- Delivery order is registration order: specific subscribers first, then
  "*" wildcard subscribers (the ChronicleInscriber lives there).
- A handler that raises is reported on stderr and delivery continues.
"""

from __future__ import annotations

import sys
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

# ============================================================
# CANONICAL EVENT KEYS
# Subsystems publish and subscribe with these names only.
# ============================================================

EVT_WAVE_CREATED          = "wave.created"
EVT_WAVE_STARTED          = "wave.started"
EVT_WAVE_SECTION          = "wave.section"
EVT_WAVE_SUCCESS          = "wave.success"
EVT_WAVE_FAILURE          = "wave.failure"
EVT_WAVE_FINALIZED        = "wave.finalized"
EVT_WAVE_STRENGTH_CHANGED = "wave.strength_changed"
EVT_WAVE_COOLDOWN_STARTED = "wave.cooldown_started"

EVT_CLUSTER_DECAY         = "crowd.cluster_decay"
EVT_RIPPLE_APPLIED        = "crowd.ripple_applied"
EVT_CANNON_FIRED          = "crowd.cannon_fired"

EVT_MASCOT_STATE_CHANGED  = "mascot.state_changed"
EVT_MASCOT_ABILITY_START  = "mascot.ability_start"
EVT_MASCOT_ABILITY_END    = "mascot.ability_end"
EVT_MASCOT_STAT_EFFECT    = "mascot.stat_effect"
EVT_MASCOT_CYCLE_ADVANCE  = "mascot.cycle_advance"
EVT_ULTIMATE_FIRED        = "mascot.ultimate_fired"
EVT_ULTIMATE_END          = "mascot.ultimate_end"

EVT_SESSION_STATE_CHANGED = "session.state_changed"
EVT_SESSION_TICK          = "session.tick"

WILDCARD = "*"


# ============================================================
# EVENT MODEL  (Pydantic v2)
# data dict must remain flat-ish + JSON-serializable.
# ============================================================

class StadiumEvent(BaseModel):
    """One published occurrence. target is a wave id, section id or fan id."""
    event_key: str
    source: str
    target: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)


HandlerFn = Callable[[StadiumEvent], None]


class EventBus:
    """
    In-process pub-sub. Each subsystem receives the bus it publishes on.

    Handlers for a key run in the order they subscribed; wildcard handlers
    run after all key-specific handlers.
    """

    def __init__(self) -> None:
        self._subscribers: Dict[str, List[HandlerFn]] = {}

    def subscribe(self, event_key: str, handler: HandlerFn) -> None:
        self._subscribers.setdefault(event_key, []).append(handler)

    def unsubscribe(self, event_key: str, handler: HandlerFn) -> None:
        if event_key in self._subscribers:
            self._subscribers[event_key] = [
                h for h in self._subscribers[event_key] if h != handler
            ]

    def subscriber_count(self, event_key: str) -> int:
        return len(self._subscribers.get(event_key, []))

    def emit(self, event: StadiumEvent) -> None:
        targets = (
            self._subscribers.get(event.event_key, [])
            + self._subscribers.get(WILDCARD, [])
        )
        for handler in targets:
            try:
                handler(event)
            except Exception as exc:  # noqa: BLE001
                print(
                    f"[EventBus] Handler error on '{event.event_key}': {exc}",
                    file=sys.stderr,
                )

    def publish(self, event_key: str, source: str, target: Optional[str] = None, **data: Any) -> None:
        """Shorthand for emit(StadiumEvent(...))."""
        self.emit(StadiumEvent(event_key=event_key, source=source, target=target, data=data))
