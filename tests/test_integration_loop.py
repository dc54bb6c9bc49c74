"""
End-to-end: full sessions through StadiumLoop with a real registry, bus and
chronicle.
"""
import tempfile
from pathlib import Path

import pytest

from stadium.chronicle import ChronicleReader
from stadium.data_loader import BalanceConfig, SessionDef, load_level
from stadium.ecs.components import EngagementStats
from stadium.loop import StadiumLoop
from stadium.session import MODE_ETERNAL, SESSION_ACTIVE, SESSION_COMPLETE, SESSION_COUNTDOWN


def test_full_run_completes_and_writes_chronicle():
    with tempfile.TemporaryDirectory() as tmpdir:
        path = Path(tmpdir) / "chronicle.jsonl"
        loop = StadiumLoop(seed=1234, chronicle_path=path)

        score = loop.run()

        assert loop.session.state == SESSION_COMPLETE
        assert loop.now_ms == pytest.approx(103000.0)
        assert score.wave_attempts >= 1
        assert score.wave_attempts == len(loop.wave_manager.history)
        assert score.final_score == loop.wave_manager.score
        assert score.max_possible_score == loop.wave_manager.max_possible_score
        assert 0 <= score.final_score <= score.max_possible_score
        assert isinstance(score.grade, str)

        for fan in loop.venue.all_fans():
            stats = fan.components[EngagementStats]
            assert 0.0 <= stats.happiness <= 100.0
            assert 0.0 <= stats.thirst <= 100.0
            assert 0.0 <= stats.attention <= 100.0

        reader = ChronicleReader(path)
        markers = reader.session_markers()
        assert len(markers) == 2
        assert markers[-1]["payload"]["modifier"]["grade"] == score.grade
        assert len(reader.wave_outcomes()) == score.wave_attempts
        assert loop.mascot.ultimate_count >= 1
        assert len(reader.ultimates()) == loop.mascot.ultimate_count

def test_same_seed_same_session():
    with tempfile.TemporaryDirectory() as tmpdir:
        first = StadiumLoop(seed=99, chronicle_path=Path(tmpdir) / "a.jsonl")
        second = StadiumLoop(seed=99, chronicle_path=Path(tmpdir) / "b.jsonl")

        assert first.run() == second.run()
        assert first.wave_manager.export_waves() == second.wave_manager.export_waves()

def test_nothing_decays_during_countdown():
    with tempfile.TemporaryDirectory() as tmpdir:
        loop = StadiumLoop(seed=5, chronicle_path=Path(tmpdir) / "c.jsonl")
        before = [f.components[EngagementStats].thirst for f in loop.venue.all_fans()]

        loop.start()
        for _ in range(20):
            loop.tick(100.0)

        assert loop.session.state == SESSION_COUNTDOWN
        assert [f.components[EngagementStats].thirst for f in loop.venue.all_fans()] == before

def test_bleachers_level_runs():
    with tempfile.TemporaryDirectory() as tmpdir:
        balance = BalanceConfig(session=SessionDef(run_mode_duration_ms=20000.0))
        loop = StadiumLoop(
            balance=balance,
            level=load_level("bleachers"),
            seed=7,
            chronicle_path=Path(tmpdir) / "d.jsonl",
        )
        loop.run(frame_ms=250.0)
        assert loop.session.state == SESSION_COMPLETE
        assert loop.venue.section_ids() == ["A", "B", "C", "D", "E"]

def test_eternal_run_needs_a_limit():
    with tempfile.TemporaryDirectory() as tmpdir:
        loop = StadiumLoop(seed=1, chronicle_path=Path(tmpdir) / "e.jsonl", mode=MODE_ETERNAL)
        with pytest.raises(ValueError):
            loop.run()

        loop.run(max_ms=30000.0)
        assert loop.session.state == SESSION_ACTIVE
        assert loop.now_ms == pytest.approx(30000.0)
