"""
Stadium — stadium/wave.py
Wave Entity: Path traversal record, section results, scoring.
=============================================================
Version:     0.3  (crowd feedback loop)
Stack:       Python 3.12 | stdlib dataclasses
Status:      Production-ready.

Architecture notes
------------------
- The path is computed once at creation and the direction is derived from it
  at construction; neither is ever recomputed.
- Outcomes are "success" | "reduced" | "failed". Reduced sections pass for
  win/loss purposes and score like successes.
- Score is a pure function of recorded results.
"""

from __future__ import annotations
import math
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

# ============================================================
# DESIGN VARIABLE DEFAULTS
# ============================================================

BASE_POINTS_PER_SECTION: int = 100

OUTCOME_SUCCESS = "success"
OUTCOME_REDUCED = "reduced"
OUTCOME_FAILED = "failed"

PASSING_OUTCOMES = (OUTCOME_SUCCESS, OUTCOME_REDUCED)

WAVE_TYPES = ("normal", "super", "double_down")


@dataclass
class ColumnResult:
    column_index: int
    participation: float
    outcome: str


@dataclass
class SectionResult:
    section_id: str
    outcome: str
    participation_rate: float
    column_results: List[ColumnResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class Wave:
    """One wave traversal. Results accumulate section by section, then complete()."""

    def __init__(
        self,
        wave_id: str,
        origin_section: str,
        path: Sequence[str],
        start_time_ms: float,
        wave_type: str = "normal",
        section_order: Optional[Sequence[str]] = None,
    ) -> None:
        if not path:
            raise ValueError("Wave path must not be empty")
        if path[0] != origin_section:
            raise ValueError(f"Wave path must start at origin '{origin_section}'")
        if wave_type not in WAVE_TYPES:
            raise ValueError(f"Unknown wave type '{wave_type}'")

        self.id = wave_id
        self.type = wave_type
        self.origin_section = origin_section
        self.path: tuple = tuple(path)
        self.direction = _derive_direction(self.path, section_order)
        self.start_time_ms = start_time_ms
        self.end_time_ms: Optional[float] = None
        self._results: List[SectionResult] = []

    def __len__(self) -> int:
        return len(self.path)

    def __repr__(self) -> str:
        return f"Wave({self.id!r}, path={list(self.path)}, direction={self.direction!r})"

    @property
    def completed(self) -> bool:
        return self.end_time_ms is not None

    @property
    def is_success(self) -> bool:
        """True when no recorded section failed. An empty wave is vacuously a success."""
        return all(r.outcome in PASSING_OUTCOMES for r in self._results)

    @property
    def is_failed(self) -> bool:
        return any(r.outcome == OUTCOME_FAILED for r in self._results)

    def add_section_result(self, result: SectionResult) -> None:
        if self.completed:
            raise RuntimeError(f"Wave {self.id} is complete; results are read-only")
        self._results.append(result)

    def complete(self, end_time_ms: float) -> None:
        if self.completed:
            return
        self.end_time_ms = end_time_ms

    def results(self) -> List[SectionResult]:
        return list(self._results)

    def calculate_score(self, base_points_per_section: int = BASE_POINTS_PER_SECTION) -> int:
        return sum(
            base_points_per_section
            for r in self._results
            if r.outcome in PASSING_OUTCOMES
        )

    def max_possible_score(self, base_points_per_section: int = BASE_POINTS_PER_SECTION) -> int:
        return len(self.path) * base_points_per_section

    def to_dict(self, base_points_per_section: int = BASE_POINTS_PER_SECTION) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "origin_section": self.origin_section,
            "path": list(self.path),
            "direction": self.direction,
            "start_time_ms": self.start_time_ms,
            "end_time_ms": self.end_time_ms,
            "completed": self.completed,
            "is_success": self.is_success,
            "is_failed": self.is_failed,
            "section_results": [r.to_dict() for r in self._results],
            "score": self.calculate_score(base_points_per_section),
            "max_possible": self.max_possible_score(base_points_per_section),
        }

# ============================================================
# PATH & WEIGHTING  (pure functions)
# ============================================================

def _derive_direction(path: Sequence[str], section_order: Optional[Sequence[str]]) -> str:
    if len(path) < 2:
        return "right"
    first, second = path[0], path[1]
    if section_order is not None and first in section_order and second in section_order:
        return "right" if list(section_order).index(second) > list(section_order).index(first) else "left"
    return "right" if second > first else "left"


def calculate_path(all_sections: Sequence[str], origin_section: str) -> List[str]:
    """
    Longest run from the origin to either end of the section list.

    The leftward candidate is the prefix ending at origin, reversed; the
    rightward candidate is the suffix starting at origin. Ties go right.
    """
    sections = list(all_sections)
    if origin_section not in sections:
        raise ValueError(f'Origin section "{origin_section}" not found in sections array')
    idx = sections.index(origin_section)

    left_path = list(reversed(sections[: idx + 1]))
    right_path = sections[idx:]

    if len(left_path) > len(right_path):
        return left_path
    return right_path


def section_position_weight(
    section_index: int,
    total_sections: int,
    weights: Optional[Mapping[int, Sequence[float]]] = None,
) -> float:
    """
    Start-probability weight of a section by its position: edges ~1.5x center.

    A custom table entry for total_sections takes over completely; a missing
    or zero index inside that entry reads as 1.0. A single section has no
    distance scale and yields nan.
    """
    if weights is not None and total_sections in weights:
        table = weights[total_sections]
        value = table[section_index] if 0 <= section_index < len(table) else 0
        return value or 1.0

    center = (total_sections - 1) / 2
    max_distance = max(center, total_sections - 1 - center)
    if max_distance == 0:
        return math.nan
    return 0.5 + abs(section_index - center) / max_distance
