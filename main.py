"""Command line entry point for the learning traffic signal system."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Dict, Sequence

from learning_traffic import RewardEvent, RewardPolicy, TrafficConfig, TrafficSystem
from learning_traffic.config import DEFAULT_STATE_PATH
from learning_traffic.persistence import StateStore


def parse_reward_overrides(items: Sequence[str]) -> Dict[str, str]:
    """Turn ``NAME=VALUE`` pairs into a mapping, validating the names."""

    overrides: Dict[str, str] = {}
    valid = {event.value for event in RewardEvent}
    for item in items:
        name, sep, value = item.partition("=")
        name = name.strip().upper()
        if not sep or name not in valid:
            raise argparse.ArgumentTypeError(
                f"invalid reward override {item!r}; expected NAME=VALUE with NAME in {sorted(valid)}"
            )
        overrides[name] = value.strip()
    return overrides


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--mode", choices=["headless", "pygame"], default="headless")
    parser.add_argument("--ticks", type=int, default=None, help="Stop once the clock advanced this many ticks")
    parser.add_argument("--speed", type=float, default=1.0, help="Logical ticks per wall-clock second")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible runs")
    parser.add_argument("--state-file", default=str(DEFAULT_STATE_PATH), help="Where the Q-table is saved")
    parser.add_argument("--no-persist", action="store_true", help="Neither load nor save learned values")
    parser.add_argument("--clear-state", action="store_true", help="Delete the saved Q-table and timer first")
    parser.add_argument("--arrival", type=float, default=0.2, help="Base arrival probability per second")
    parser.add_argument("--max-pass", type=int, default=3)
    parser.add_argument("--min-green", type=int, default=20)
    parser.add_argument("--epsilon", type=float, default=0.1)
    parser.add_argument("--alpha", type=float, default=0.1)
    parser.add_argument("--gamma", type=float, default=0.9)
    parser.add_argument("--autosave", type=float, default=10.0, help="Seconds between automatic saves")
    parser.add_argument(
        "--reward",
        action="append",
        default=[],
        metavar="NAME=VALUE",
        help="Override a reward weight, e.g. PHASE_SWITCH=-5 (repeatable)",
    )
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"])
    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level))

    try:
        overrides = parse_reward_overrides(args.reward)
    except argparse.ArgumentTypeError as exc:
        parser.error(str(exc))

    state_path = None if args.no_persist else args.state_file
    if args.clear_state and state_path is not None:
        StateStore(Path(state_path).expanduser()).clear()

    config = TrafficConfig(
        mode=args.mode,
        arrival_probability=args.arrival,
        max_pass=args.max_pass,
        min_green_time=args.min_green,
        epsilon=args.epsilon,
        alpha=args.alpha,
        gamma=args.gamma,
        sim_speed=max(1.0, args.speed),
        state_path=state_path,
        autosave_interval=args.autosave,
    )
    system = TrafficSystem(config, rewards=RewardPolicy(overrides), seed=args.seed)
    system.run(max_ticks=args.ticks)


if __name__ == "__main__":
    main()
