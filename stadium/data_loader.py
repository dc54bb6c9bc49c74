"""
Stadium — stadium/data_loader.py
Balance & Level Loaders for TOML seed data powered by Pydantic.
=============================================================================================
Version:     0.3 (crowd feedback loop)
Stack:       Python 3.12 | Pydantic v2 | tomllib
Status:      Core data validation and loading layer.

Every threshold, rate, radius, cooldown and duration used by the core lives in
BalanceConfig. The loop receives one instance at construction and treats it
as read-only; nothing here is cached at module level.
"""

import tomllib
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field, ConfigDict

# ================================================================================
# BALANCE SCHEMAS
# ================================================================================

class FanStatsDef(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Initial stat ranges (inclusive)
    initial_happiness_min: float = 60.0
    initial_happiness_max: float = 80.0
    initial_thirst_min: float = 0.0
    initial_thirst_max: float = 30.0
    initial_attention_min: float = 60.0
    initial_attention_max: float = 80.0

    # Rates are points per second
    thirst_threshold: float = 60.0
    thirst_growth_rate: float = 1.0
    thirst_growth_rate_high: float = 3.0
    happiness_decay_rate: float = 1.25
    happiness_decay_thirst_trigger: float = 50.0
    attention_decay_rate: float = 1.5
    attention_minimum: float = 30.0

    # Prolonged low attention accelerates thirst growth
    attention_stagnation_threshold: float = 40.0
    attention_stagnation_duration_ms: float = 8000.0
    stagnation_thirst_multiplier: float = 1.5

    # Freeze durations (ms)
    thirst_freeze_ms: float = 4000.0
    attention_freeze_ms: float = 5000.0

    # Service / participation recovery
    thirst_reduction_on_serve: float = 50.0
    happiness_recovery_on_serve: float = 15.0
    attention_recovery_on_wave_success: float = 10.0
    happiness_recovery_on_wave_success: float = 8.0

    # Wave chance weights
    wave_chance_happiness_weight: float = 0.5
    wave_chance_attention_weight: float = 0.5
    wave_chance_thirst_penalty: float = 0.3
    wave_chance_flat_bonus: float = 10.0

    # Derived mood thresholds
    unhappy_happiness_threshold: float = 25.0
    engaged_attention_threshold: float = 70.0
    drinking_thirst_ceiling: float = 10.0


class DisengagementDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    attention_threshold: float = 50.0
    happiness_threshold: float = 40.0


class WaveStrengthDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    starting: float = 70.0
    strength_modifier: float = 0.004
    peer_pressure_threshold: float = 0.6
    reduced_effort_intensity: float = 0.5

    # Per-section adjustments keyed by (previous outcome -> current band)
    success_continue: float = 5.0
    success_to_reduced: float = -15.0
    success_to_failed: float = -30.0
    reduced_recover: float = 10.0
    reduced_hold: float = -8.0
    reduced_to_failed: float = -25.0
    failed_recover: float = 15.0
    failed_to_reduced: float = -10.0
    failed_hold: float = -5.0


class ClassificationDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    column_success_threshold: float = 0.6
    column_reduced_threshold: float = 0.4
    section_success_threshold: float = 0.6
    section_reduced_threshold: float = 0.4


class WaveAutonomousDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    enabled: bool = True
    trigger_countdown_ms: float = 3000.0
    startup_delay_ms: float = 5000.0
    check_interval_ms: float = 1000.0
    section_start_cooldown_ms: float = 15000.0
    success_cooldown_ms: float = 8000.0
    failure_cooldown_ms: float = 12000.0
    low_happiness_band: float = 20.0
    high_happiness_band: float = 60.0
    low_band_probability: float = 0.40
    mid_band_probability: float = 0.60
    high_band_probability: float = 0.90
    # Optional override table: section count -> per-index weights
    section_position_weights: Dict[int, List[float]] = Field(default_factory=dict)


class ScoringDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    base_points_per_section: int = 100
    max_waves_estimate: int = 10
    grade_thresholds: Dict[str, int] = Field(
        default_factory=lambda: {"S+": 8, "S": 7, "S-": 6}
    )
    percentage_thresholds: Dict[str, float] = Field(
        default_factory=lambda: {
            "A+": 0.75, "A": 0.70, "A-": 0.65,
            "B+": 0.60, "B": 0.55, "B-": 0.50,
            "C+": 0.475, "C": 0.45, "C-": 0.425,
            "D+": 0.40, "D": 0.375, "D-": 0.35,
            "F": 0.0,
        }
    )


class SessionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    run_mode_duration_ms: float = 100000.0
    countdown_ms: float = 3000.0


class ClusterDecayDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    enabled: bool = True
    mid_phase_start: float = 0.3
    late_phase_start: float = 0.7
    interval_early_ms: float = 6000.0
    interval_mid_ms: float = 4500.0
    interval_late_ms: float = 3000.0
    happiness_rate_early: float = 0.5
    happiness_rate_mid: float = 1.0
    happiness_rate_late: float = 2.0
    radius: int = 3
    min_cluster_size: int = 8
    max_cluster_size: int = 16
    variance_min: float = 0.8
    variance_max: float = 1.2
    attention_multiplier: float = 2.5
    attention_cap: float = 15.0


class RippleDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    base_effect: float = 40.0
    max_radius: int = 4
    disinterested_bonus: float = 5.0
    decay_type: Literal["linear", "exponential"] = "linear"


class AbilityEffectDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    attention: float = 0.0
    happiness: float = 0.0


class MascotClusterDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    low_attention_threshold: float = 50.0
    scan_radius: int = 3
    min_cluster_size: int = 4


class MascotBehaviorDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    state_tick_interval_ms: float = 250.0
    entrance_duration_ms: float = 2000.0
    ability_base_interval_ms: float = 8000.0
    ability_duration_ms: float = 2000.0
    ultimate_duration_ms: float = 2500.0
    reentry_cooldown_ms: float = 15000.0
    targeting_cycle: List[Literal["section", "global", "cluster"]] = Field(
        default_factory=lambda: ["section", "global", "cluster"]
    )
    ability_effects: Dict[str, AbilityEffectDef] = Field(
        default_factory=lambda: {
            "section": AbilityEffectDef(attention=12, happiness=5),
            "global": AbilityEffectDef(attention=5, happiness=2),
            "cluster": AbilityEffectDef(attention=15, happiness=8),
        }
    )
    ultimate_multiplier: float = 2.5
    attention_drain: float = 2.0
    cluster: MascotClusterDef = Field(default_factory=MascotClusterDef)


class MascotUltimateDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    base_cooldown_ms: float = 45000.0
    momentum_step_percent: float = 0.10
    momentum_max_percent: float = 0.40
    min_floor_ms: float = 20000.0
    max_interval_ms: float = 90000.0
    diminishing_return_factor: float = 0.25
    min_effectiveness: float = 0.25
    effectiveness_recovery: float = 0.05
    attention_bank_threshold: float = 30.0
    attention_bank_max: float = 100.0
    wave_success_bank_bonus: float = 10.0


class CannonDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    min_catchers: int = 1
    max_catchers: int = 3
    disinterested_weight: float = 3.0
    distance_weight: float = 0.5
    distance_normalizer: float = 10.0


class BalanceConfig(BaseModel):
    model_config = ConfigDict(frozen=True)
    fan_stats: FanStatsDef = Field(default_factory=FanStatsDef)
    disengagement: DisengagementDef = Field(default_factory=DisengagementDef)
    wave_strength: WaveStrengthDef = Field(default_factory=WaveStrengthDef)
    classification: ClassificationDef = Field(default_factory=ClassificationDef)
    wave_autonomous: WaveAutonomousDef = Field(default_factory=WaveAutonomousDef)
    scoring: ScoringDef = Field(default_factory=ScoringDef)
    session: SessionDef = Field(default_factory=SessionDef)
    cluster_decay: ClusterDecayDef = Field(default_factory=ClusterDecayDef)
    ripple: RippleDef = Field(default_factory=RippleDef)
    mascot_behavior: MascotBehaviorDef = Field(default_factory=MascotBehaviorDef)
    mascot_ultimate: MascotUltimateDef = Field(default_factory=MascotUltimateDef)
    cannon: CannonDef = Field(default_factory=CannonDef)

# ================================================================================
# LEVEL SCHEMAS
# ================================================================================

class SectionDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    label: Optional[str] = None
    grid_top: int = 0
    grid_left: int = 0
    rows: int
    cols: int
    empty_seats: List[List[int]] = Field(default_factory=list)  # [[row, col], ...] section-local


class LevelDef(BaseModel):
    model_config = ConfigDict(frozen=True)
    id: str
    name: str
    sections: List[SectionDef]

# ================================================================================
# LOADERS
# ================================================================================

DATA_DIR = Path(__file__).parent.parent / "data"


def load_balance(path: Optional[Path] = None) -> BalanceConfig:
    """Loads and validates the balance configuration from TOML."""
    if path is None:
        path = DATA_DIR / "balance.toml"
    if not path.exists():
        raise FileNotFoundError(f"Balance configuration not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return BalanceConfig(**data)


def load_level(level_id: str) -> LevelDef:
    """Loads a stadium layout from TOML (e.g. 'triple_deck')."""
    path = DATA_DIR / "levels" / f"{level_id}.toml"
    if not path.exists():
        raise FileNotFoundError(f"Level definition not found: {path}")

    with open(path, "rb") as f:
        data = tomllib.load(f)

    return LevelDef(**data)


def list_levels() -> List[str]:
    """Returns ids of all shipped level layouts."""
    path = DATA_DIR / "levels"
    if not path.exists():
        return []
    return sorted(file.stem for file in path.glob("*.toml"))
