"""Command line: read a problem, schedule it, write the schedule and a report."""

from __future__ import annotations

import argparse
import sys

from .adjust import schedule_adjusted
from .model import format_schedule, parse_problem
from .report import estimate, format_estimate
from .timeline import Cluster

MONITOR_TICKS = 60001
DEFAULT_MONITOR = "schedule_monitor.txt"


def _monitor_text(cluster: Cluster, ticks: int = MONITOR_TICKS) -> str:
    lines = []
    for server, spec in enumerate(cluster.problem.servers):
        for npu in range(spec.npus):
            timeline = cluster.timeline(server, npu)
            lines.append("".join(f"{timeline[time]} " for time in range(ticks)) + "\n")
    return "".join(lines)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="npusched",
        description="Schedule user samples onto server NPUs.",
    )
    parser.add_argument("--input", help="problem file (default: standard input)")
    parser.add_argument("--output", help="schedule file (default: standard output)")
    parser.add_argument(
        "--monitor",
        default=DEFAULT_MONITOR,
        help=f"file for free NPU memory per tick (default: {DEFAULT_MONITOR})",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    try:
        if args.input:
            with open(args.input, encoding="utf-8") as handle:
                text = handle.read()
        else:
            text = sys.stdin.read()
        problem = parse_problem(text)
        outcome = schedule_adjusted(problem)
    except (OSError, ValueError) as error:
        print(f"error: {error}", file=sys.stderr)
        return 1

    schedule_text = format_schedule(outcome.schedule, len(problem.users))
    if args.output:
        with open(args.output, "w", encoding="utf-8") as handle:
            handle.write(schedule_text)
    else:
        sys.stdout.write(schedule_text)

    sys.stderr.write(format_estimate("adjusted", estimate(outcome, weighted=True)))

    with open(args.monitor, "w", encoding="utf-8") as handle:
        handle.write(_monitor_text(outcome.cluster))
    return 0


if __name__ == "__main__":
    sys.exit(main())