"""
Stadium — stadium/chronicle.py
Session Journal: JSONL record of the crowd events worth replaying.
===================================================================
Version:     0.2  (crowd feedback loop)
Stack:       Python 3.12 | stdlib json | bespoke EventBus
Status:      Production-ready. No gameplay logic here.

How it works
------------
The inscriber listens on "*" and only writes; it never publishes. Every
StadiumEvent is ranked 1-5 and anything under the journal's minimum rank
(default 2) is dropped. Lines are appended and never rewritten.

Ranks
-----
  1  per-frame chatter: session ticks, cycle advances, strength steps
  2  routine mascot activity, ripples, cannon shots, wave start
  3  wave creation and per-section passes, cooldowns, cluster decay
  4  wave outcomes and session state changes
  5  the mascot's ultimate

open_session() / close_session() write their markers at rank 5 whatever
the minimum is. The journal's clock is the simulated (tick, ms) pair that
the loop pushes through advance().
"""

from __future__ import annotations

import json
import uuid
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from stadium.events import (
    EventBus,
    StadiumEvent,
    WILDCARD,
    EVT_CANNON_FIRED,
    EVT_CLUSTER_DECAY,
    EVT_MASCOT_ABILITY_END,
    EVT_MASCOT_ABILITY_START,
    EVT_MASCOT_CYCLE_ADVANCE,
    EVT_MASCOT_STATE_CHANGED,
    EVT_MASCOT_STAT_EFFECT,
    EVT_RIPPLE_APPLIED,
    EVT_SESSION_STATE_CHANGED,
    EVT_SESSION_TICK,
    EVT_ULTIMATE_END,
    EVT_ULTIMATE_FIRED,
    EVT_WAVE_COOLDOWN_STARTED,
    EVT_WAVE_CREATED,
    EVT_WAVE_FAILURE,
    EVT_WAVE_FINALIZED,
    EVT_WAVE_SECTION,
    EVT_WAVE_STARTED,
    EVT_WAVE_STRENGTH_CHANGED,
    EVT_WAVE_SUCCESS,
)

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

CHRONICLE_SIGNIFICANCE_MIN: int = 2
MARKER_SIGNIFICANCE: int = 5
HEAVY_DECAY_HAPPINESS_LOSS: float = 50.0

SESSION_OPENED = "chronicle.session_opened"
SESSION_CLOSED = "chronicle.session_closed"

_RANKS: Dict[int, tuple] = {
    1: (EVT_SESSION_TICK, EVT_MASCOT_CYCLE_ADVANCE, EVT_WAVE_STRENGTH_CHANGED),
    2: (
        EVT_MASCOT_ABILITY_START, EVT_MASCOT_ABILITY_END, EVT_MASCOT_STAT_EFFECT,
        EVT_RIPPLE_APPLIED, EVT_CANNON_FIRED, EVT_ULTIMATE_END, EVT_WAVE_STARTED,
    ),
    3: (
        EVT_WAVE_CREATED, EVT_WAVE_SECTION, EVT_WAVE_COOLDOWN_STARTED,
        EVT_CLUSTER_DECAY, EVT_MASCOT_STATE_CHANGED,
    ),
    4: (EVT_WAVE_SUCCESS, EVT_WAVE_FAILURE, EVT_WAVE_FINALIZED, EVT_SESSION_STATE_CHANGED),
    5: (EVT_ULTIMATE_FIRED,),
}
SIGNIFICANCE: Dict[str, int] = {key: rank for rank, keys in _RANKS.items() for key in keys}

# ============================================================
# RECORDS
# ============================================================

@dataclass(frozen=True)
class SessionTimestamp:
    tick: int = 0
    time_ms: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ChronicleEntry:
    event_id: str
    timestamp: Dict[str, Any]
    actor_handle: str
    payload: Dict[str, Any]     # event_type / verb / object / modifier
    significance: int

    def to_json(self) -> str:
        return json.dumps(asdict(self), ensure_ascii=False)

# ============================================================
# PAYLOADS
# ============================================================

def _wave_section_detail(event: StadiumEvent) -> Dict[str, Any]:
    data = event.data
    # Per-fan rolls stay on the bus; the journal keeps column outcomes only.
    return {
        "wave_id": data.get("wave_id"),
        "outcome": data.get("outcome"),
        "participation_rate": data.get("participation_rate"),
        "strength": data.get("strength"),
        "columns": [
            {"column_index": c.get("column_index"), "outcome": c.get("outcome")}
            for c in data.get("columns", [])
        ],
    }

def _wave_outcome_detail(event: StadiumEvent) -> Dict[str, Any]:
    return {k: event.data.get(k) for k in ("section", "score", "participation_rate")}

def _wave_finalized_detail(event: StadiumEvent) -> Dict[str, Any]:
    wave = event.data.get("wave", {})
    return {
        "path": wave.get("path"),
        "score": wave.get("score"),
        "max_possible": wave.get("max_possible"),
        "success": event.data.get("success"),
    }

def _ultimate_detail(event: StadiumEvent) -> Dict[str, Any]:
    return {k: event.data.get(k) for k in ("bank_spent", "effectiveness")}

def _mascot_state_detail(event: StadiumEvent) -> Dict[str, Any]:
    return {"old": event.data.get("old"), "new": event.data.get("new")}

def _cluster_decay_detail(event: StadiumEvent) -> Dict[str, Any]:
    keys = ("phase", "cluster_size", "total_happiness_loss", "total_attention_loss")
    return {k: event.data.get(k) for k in keys}

def _target(event: StadiumEvent) -> Any:
    return event.target

# event key -> (verb, subject, detail)
_PAYLOAD_RULES: Dict[str, tuple] = {
    EVT_WAVE_SECTION:         ("wave_passed", _target, _wave_section_detail),
    EVT_WAVE_SUCCESS:         ("wave_succeeded", _target, _wave_outcome_detail),
    EVT_WAVE_FAILURE:         ("wave_failed", _target, _wave_outcome_detail),
    EVT_WAVE_FINALIZED:       ("wave_finalized", _target, _wave_finalized_detail),
    EVT_ULTIMATE_FIRED:       ("unleashed_ultimate", lambda e: e.data.get("phase"), _ultimate_detail),
    EVT_MASCOT_STATE_CHANGED: ("changed_state", lambda e: e.source, _mascot_state_detail),
    EVT_CLUSTER_DECAY:        ("lost_interest", _target, _cluster_decay_detail),
}

def build_payload(event: StadiumEvent) -> Dict[str, Any]:
    """Normalizes an event into {event_type, verb, object, modifier}; unknown keys keep their raw data."""
    rule = _PAYLOAD_RULES.get(event.event_key)
    if rule is None:
        return {
            "event_type": event.event_key,
            "verb": "occurred",
            "object": event.target or event.source,
            "modifier": dict(event.data),
        }
    verb, subject, detail = rule
    return {
        "event_type": event.event_key,
        "verb": verb,
        "object": subject(event),
        "modifier": detail(event),
    }

def score_significance(event: StadiumEvent) -> int:
    """Rank 1-5. A cluster decay that costs the crowd a lot of happiness ranks as a wave outcome."""
    rank = SIGNIFICANCE.get(event.event_key, 1)
    if event.event_key == EVT_CLUSTER_DECAY:
        loss = event.data.get("total_happiness_loss")
        if isinstance(loss, (int, float)) and loss >= HEAVY_DECAY_HAPPINESS_LOSS:
            rank = max(rank, 4)
    return rank

# ============================================================
# WRITER
# ============================================================

class ChronicleInscriber:
    """
    Writes qualifying events from the bus to a JSONL file.

        inscriber = ChronicleInscriber(bus, Path("sessions/chronicle.jsonl"))
        inscriber.open_session(level="triple_deck", seed=7)
        ...                       # loop calls inscriber.advance(tick, now_ms)
        inscriber.close_session(grade="A")
    """

    def __init__(
        self,
        bus: EventBus,
        chronicle_path: Path,
        clock: Optional[SessionTimestamp] = None,
        significance_min: int = CHRONICLE_SIGNIFICANCE_MIN,
    ) -> None:
        self.path = Path(chronicle_path)
        self.clock = clock or SessionTimestamp()
        self.significance_min = significance_min

        self.path.parent.mkdir(parents=True, exist_ok=True)
        bus.subscribe(WILDCARD, self._on_event)

    def advance(self, tick: int, time_ms: float) -> None:
        self.clock = SessionTimestamp(tick=tick, time_ms=time_ms)

    def open_session(self, **details: Any) -> ChronicleEntry:
        return self._marker(SESSION_OPENED, details)

    def close_session(self, **details: Any) -> ChronicleEntry:
        return self._marker(SESSION_CLOSED, details)

    def _marker(self, key: str, details: Dict[str, Any]) -> ChronicleEntry:
        event = StadiumEvent(event_key=key, source="system", data={"clock": self.clock.to_dict(), **details})
        return self._write(event, MARKER_SIGNIFICANCE)

    def _on_event(self, event: StadiumEvent) -> None:
        rank = score_significance(event)
        if rank >= self.significance_min:
            self._write(event, rank)

    def _write(self, event: StadiumEvent, significance: int) -> ChronicleEntry:
        entry = ChronicleEntry(
            event_id=uuid.uuid4().hex,
            timestamp=self.clock.to_dict(),
            actor_handle=event.source,
            payload=build_payload(event),
            significance=significance,
        )
        with self.path.open("a", encoding="utf-8") as fh:
            fh.write(entry.to_json() + "\n")
        return entry

# ============================================================
# READER
# ============================================================

def _event_type(entry: Dict[str, Any]) -> str:
    return entry.get("payload", {}).get("event_type", "")


class ChronicleReader:
    """Read-only queries over a journal file. Each call re-reads the file."""

    def __init__(self, chronicle_path: Path) -> None:
        self.path = Path(chronicle_path)

    def all_entries(self) -> List[Dict[str, Any]]:
        if not self.path.exists():
            return []
        with self.path.open("r", encoding="utf-8") as fh:
            return [json.loads(line) for line in fh if line.strip()]

    def where(self, predicate: Callable[[Dict[str, Any]], bool]) -> List[Dict[str, Any]]:
        return [e for e in self.all_entries() if predicate(e)]

    def by_event_type(self, event_type: str) -> List[Dict[str, Any]]:
        return self.where(lambda e: _event_type(e) == event_type)

    def by_actor(self, actor_handle: str) -> List[Dict[str, Any]]:
        return self.where(lambda e: e.get("actor_handle") == actor_handle)

    def by_significance(self, minimum: int) -> List[Dict[str, Any]]:
        return self.where(lambda e: e.get("significance", 0) >= minimum)

    def wave_outcomes(self) -> List[Dict[str, Any]]:
        return self.where(lambda e: _event_type(e) in (EVT_WAVE_SUCCESS, EVT_WAVE_FAILURE))

    def ultimates(self) -> List[Dict[str, Any]]:
        return self.by_event_type(EVT_ULTIMATE_FIRED)

    def session_markers(self) -> List[Dict[str, Any]]:
        return self.where(lambda e: _event_type(e) in (SESSION_OPENED, SESSION_CLOSED))
