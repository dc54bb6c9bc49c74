"""
Stadium — run.py
Headless entry point: runs one timed stadium session and prints its score.
"""

import argparse
import sys
from pathlib import Path

# Ensure we can import stadium packages
project_root = Path(__file__).parent.resolve()
sys.path.insert(0, str(project_root))

from stadium.data_loader import list_levels, load_balance, load_level
from stadium.loop import DEFAULT_FRAME_MS, DEFAULT_LEVEL, StadiumLoop
from stadium.session import MODE_ETERNAL, MODE_RUN


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run a headless stadium crowd session.")
    parser.add_argument("--level", default=DEFAULT_LEVEL, choices=list_levels() or None)
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--mode", default=MODE_RUN, choices=[MODE_RUN, MODE_ETERNAL])
    parser.add_argument("--max-ms", type=float, default=None, help="stop after this much simulated time")
    parser.add_argument("--frame-ms", type=float, default=DEFAULT_FRAME_MS)
    parser.add_argument("--balance", type=Path, default=None)
    parser.add_argument("--chronicle", type=Path, default=Path("sessions/chronicle.jsonl"))
    parser.add_argument("--export-waves", type=Path, default=None)
    args = parser.parse_args(argv)

    loop = StadiumLoop(
        balance=load_balance(args.balance),
        level=load_level(args.level),
        seed=args.seed,
        chronicle_path=args.chronicle,
        mode=args.mode,
    )
    max_ms = args.max_ms
    if args.mode == MODE_ETERNAL and max_ms is None:
        max_ms = loop.balance.session.run_mode_duration_ms
    score = loop.run(frame_ms=args.frame_ms, max_ms=max_ms)

    print(f"Level: {loop.level.name}  Seed: {args.seed}")
    print(f"Grade: {score.grade}")
    print(f"Waves: {score.completed_waves} succeeded / {score.wave_attempts} attempted")
    print(f"Score: {score.final_score} / {score.max_possible_score} ({score.score_percentage:.0%})")
    print(
        f"Net happiness {score.net_happiness:+.1f}  "
        f"attention {score.net_attention:+.1f}  "
        f"thirst {score.net_thirst:+.1f}"
    )
    print(f"Ultimates fired: {loop.mascot.ultimate_count}")
    print(f"Chronicle: {args.chronicle}")

    if args.export_waves is not None:
        args.export_waves.parent.mkdir(parents=True, exist_ok=True)
        args.export_waves.write_text(loop.wave_manager.export_waves(), encoding="utf-8")
        print(f"Waves exported: {args.export_waves}")


if __name__ == "__main__":
    main()
