import math

import pytest

from stadium.wave import (
    OUTCOME_FAILED,
    OUTCOME_REDUCED,
    OUTCOME_SUCCESS,
    SectionResult,
    Wave,
    calculate_path,
    section_position_weight,
)


def result(section_id, outcome, rate):
    return SectionResult(section_id=section_id, outcome=outcome, participation_rate=rate)

# ============================================================
# Path
# ============================================================

@pytest.mark.parametrize("sections, origin, expected", [
    (["A", "B", "C", "D"], "B", ["B", "C", "D"]),
    (["A", "B", "C", "D"], "C", ["C", "B", "A"]),
    (["A", "B", "C"], "B", ["B", "C"]),
    (["A", "B", "C"], "A", ["A", "B", "C"]),
    (["A", "B", "C"], "C", ["C", "B", "A"]),
    (["A"], "A", ["A"]),
])
def test_calculate_path(sections, origin, expected):
    assert calculate_path(sections, origin) == expected

def test_calculate_path_unknown_origin():
    with pytest.raises(ValueError, match='Origin section "Z" not found'):
        calculate_path(["A", "B"], "Z")

def test_direction_follows_path():
    order = ["A", "B", "C"]
    assert Wave("1", "A", ["A", "B", "C"], 0.0, section_order=order).direction == "right"
    assert Wave("2", "C", ["C", "B", "A"], 0.0, section_order=order).direction == "left"
    assert Wave("3", "A", ["A"], 0.0).direction == "right"

def test_direction_uses_section_order_over_names():
    order = ["Z", "Y"]
    assert Wave("1", "Z", ["Z", "Y"], 0.0, section_order=order).direction == "right"

def test_wave_rejects_bad_construction():
    with pytest.raises(ValueError):
        Wave("1", "A", [], 0.0)
    with pytest.raises(ValueError):
        Wave("1", "A", ["B", "C"], 0.0)
    with pytest.raises(ValueError):
        Wave("1", "A", ["A"], 0.0, wave_type="tidal")

# ============================================================
# Outcome & scoring
# ============================================================

def test_mixed_outcome_wave():
    wave = Wave("1", "A", ["A", "B", "C"], 0.0)
    wave.add_section_result(result("A", OUTCOME_SUCCESS, 0.9))
    wave.add_section_result(result("B", OUTCOME_REDUCED, 0.5))
    wave.add_section_result(result("C", OUTCOME_FAILED, 0.2))

    assert wave.is_failed
    assert not wave.is_success
    assert wave.calculate_score() == 200
    assert wave.max_possible_score() == 300

def test_reduced_sections_still_pass():
    wave = Wave("1", "A", ["A", "B"], 0.0)
    wave.add_section_result(result("A", OUTCOME_REDUCED, 0.45))
    wave.add_section_result(result("B", OUTCOME_SUCCESS, 0.7))
    assert wave.is_success
    assert not wave.is_failed

def test_empty_wave_scores_zero_and_is_vacuously_successful():
    wave = Wave("1", "B", ["B", "C"], 0.0)
    assert wave.calculate_score() == 0
    assert wave.max_possible_score() == 200
    assert wave.is_success
    assert not wave.is_failed

def test_score_is_idempotent():
    wave = Wave("1", "A", ["A", "B"], 0.0)
    wave.add_section_result(result("A", OUTCOME_SUCCESS, 1.0))
    assert wave.calculate_score() == wave.calculate_score() == 100

def test_custom_base_points():
    wave = Wave("1", "A", ["A", "B"], 0.0)
    wave.add_section_result(result("A", OUTCOME_SUCCESS, 1.0))
    assert wave.calculate_score(250) == 250
    assert wave.max_possible_score(250) == 500

def test_completed_wave_is_read_only():
    wave = Wave("1", "A", ["A"], 0.0)
    wave.complete(1500.0)
    assert wave.completed
    assert wave.end_time_ms == 1500.0
    with pytest.raises(RuntimeError):
        wave.add_section_result(result("A", OUTCOME_SUCCESS, 1.0))

def test_complete_twice_keeps_first_end_time():
    wave = Wave("1", "A", ["A"], 0.0)
    wave.complete(100.0)
    wave.complete(200.0)
    assert wave.end_time_ms == 100.0

def test_results_is_a_copy():
    wave = Wave("1", "A", ["A"], 0.0)
    wave.results().append(result("A", OUTCOME_FAILED, 0.0))
    assert wave.results() == []

def test_to_dict():
    wave = Wave("7", "A", ["A", "B"], 10.0, wave_type="super")
    wave.add_section_result(result("A", OUTCOME_SUCCESS, 0.8))
    data = wave.to_dict()
    assert data["id"] == "7"
    assert data["type"] == "super"
    assert data["path"] == ["A", "B"]
    assert data["score"] == 100
    assert data["max_possible"] == 200
    assert data["section_results"][0]["section_id"] == "A"

# ============================================================
# Position weights
# ============================================================

def test_position_weights_three_sections():
    weights = [section_position_weight(i, 3) for i in range(3)]
    assert weights == pytest.approx([1.5, 0.5, 1.5])

def test_position_weights_four_sections():
    weights = [section_position_weight(i, 4) for i in range(4)]
    assert weights[0] == pytest.approx(1.5)
    assert weights[3] == pytest.approx(1.5)
    assert weights[1] == pytest.approx(0.5 + 0.5 / 1.5)

def test_single_section_weight_is_nan():
    assert math.isnan(section_position_weight(0, 1))

def test_custom_weight_table():
    table = {3: [2.0, 0.0, 1.2]}
    assert section_position_weight(0, 3, table) == 2.0
    assert section_position_weight(1, 3, table) == 1.0
    assert section_position_weight(5, 3, table) == 1.0
    assert section_position_weight(0, 4, table) == pytest.approx(1.5)
    assert section_position_weight(0, 3, {3: []}) == 1.0
