# reptrack/runtime/cli.py
from __future__ import annotations
import argparse
import json
import sys
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from reptrack.common.config import load_ladder_config, load_settings, load_timed_config
from reptrack.common.log import setup_logging
from reptrack.counter.exercises import EXERCISES, validate_registry
from reptrack.data import db
from reptrack.workout.circuit import plan_from_dicts
from reptrack.workout.manager import WorkoutManager


def read_frames(path: Path) -> Iterator[Tuple[float, list]]:
    """JSON lines of {"ts": seconds, "landmarks": [...]}; blank lines are skipped."""
    with path.open("r", encoding="utf-8") as fh:
        for lineno, line in enumerate(fh, 1):
            line = line.strip()
            if not line:
                continue
            try:
                row = json.loads(line)
            except json.JSONDecodeError as e:
                raise SystemExit(f"{path}:{lineno}: invalid JSON ({e})") from None
            yield float(row["ts"]), row.get("landmarks") or []


class ReplayClock:
    """Session clock driven by recorded frame timestamps."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def replay(args: argparse.Namespace) -> int:
    log = setup_logging(args.debug)
    clock = ReplayClock()
    sink = None
    if args.db:
        db.configure(args.db)
        sink = db.append_workout_record

    mgr = WorkoutManager(
        settings=load_settings(),
        timed_config=load_timed_config(),
        ladder_config=load_ladder_config(),
        record_sink=sink,
        clock=clock,
    )
    if args.debug:
        mgr.set_event_sink(lambda ev: print(json.dumps(ev), flush=True))

    frames = read_frames(Path(args.file))
    first = next(frames, None)
    if first is None:
        print("no frames in recording", flush=True)
        return 1
    clock.now = first[0]

    if args.mode == "timed":
        started = mgr.start_timed()
    elif args.mode == "ladder":
        started = mgr.start_ladder(args.exercise)
    elif args.mode == "circuit":
        if not args.plan:
            print("--plan is required for circuit mode", flush=True)
            return 2
        plan = plan_from_dicts(json.loads(Path(args.plan).read_text(encoding="utf-8")))
        started = mgr.start_circuit(plan)
    else:
        started = mgr.start_free(args.exercise or "bicep-curls")
    if not started:
        print(f"could not start {args.mode} session", flush=True)
        return 1

    next_tick = first[0] + 1.0
    n = 0
    for ts, landmarks in _chain(first, frames):
        clock.now = ts
        while ts >= next_tick:
            mgr.on_second()
            next_tick += 1.0
        mgr.on_frame(landmarks, ts)
        n += 1

    log.info("replayed %d frames", n)
    snap = mgr.snapshot()
    print(f"frames: {n}", flush=True)
    print(f"reps: left={snap['count']['left']} right={snap['count']['right']}", flush=True)
    print(json.dumps(snap["session"], indent=2, default=str), flush=True)
    mgr.stop()
    if args.db:
        db.close()
    return 0


def _chain(first, rest) -> Iterator[Tuple[float, list]]:
    yield first
    yield from rest


def validate(args: argparse.Namespace) -> int:
    setup_logging(args.debug)
    problems = validate_registry()
    for p in problems:
        print(p, flush=True)
    print(f"{len(EXERCISES)} exercises, {len(problems)} problems", flush=True)
    return 1 if problems else 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--debug", action="store_true", help="log state transitions")
    p = argparse.ArgumentParser(prog="reptrack", description="Rep counting and workout session replay")
    sub = p.add_subparsers(dest="command", required=True)

    r = sub.add_parser("replay", parents=[common], help="feed a recorded landmark stream through a session")
    r.add_argument("file", help="JSON lines recording of pose frames")
    r.add_argument("--mode", choices=["timed", "ladder", "circuit", "free"], default="free")
    r.add_argument("--exercise", choices=sorted(EXERCISES), help="exercise for ladder/free modes")
    r.add_argument("--plan", help="JSON workout plan for circuit mode")
    r.add_argument("--db", help="sqlite file to store the finished session in")
    r.set_defaults(func=replay)

    v = sub.add_parser("validate", parents=[common], help="check the exercise registry")
    v.set_defaults(func=validate)
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
