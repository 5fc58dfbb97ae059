"""Self-assessment of a finished schedule: memory use, lateness and score."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import pairwise

from .timeline import Outcome


@dataclass(frozen=True)
class Estimate:
    """Memory-ticks per NPU, a bookkeeping check, late users and scores."""

    usage: tuple[tuple[int, ...], ...]
    consistent: bool
    late_count: int
    score: float
    highest_score: float


def estimate(outcome: Outcome, weighted: bool = False, count_moves: bool = False) -> Estimate:
    """Score an outcome by when each user's last request finishes."""
    problem = outcome.problem
    cluster = outcome.cluster
    usage = tuple(
        tuple(cluster.timeline(index, npu).used() for npu in range(server.npus))
        for index, server in enumerate(problem.servers)
    )
    expected = 0
    late_count = 0
    score = 0.0
    highest = 0.0
    for index, (user, requests) in enumerate(zip(problem.users, outcome.schedule)):
        if not requests:
            raise ValueError(f"user {index} has no requests")
        for request in requests:
            expected += problem.memory_need(index, request.batch) * problem.process_time(
                request.server, request.batch
            )
        last = requests[-1]
        if last.process_start is None:
            raise ValueError(f"user {index} has a request without a process start")
        finish = last.process_start + problem.process_time(last.server, last.batch)
        if finish > user.end:
            late_count += 1
        moves = (
            sum(
                (prev.server, prev.npu) != (cur.server, cur.npu)
                for prev, cur in pairwise(requests)
            )
            if count_moves
            else 0
        )
        weight = 2.0 ** (-(index + 1) / 5000.0) if weighted else 1.0
        overrun = (finish - user.end) / (user.end - user.start)
        score += 2.0 ** (-overrun / 100.0) * 10000.0 * 2.0 ** (-moves / 200.0) * weight
        highest += 2.0 ** (1.0 / 100.0) * 10000.0 * weight
    score *= 2.0 ** (-late_count / 100.0)
    total = sum(sum(row) for row in usage)
    return Estimate(usage, total == expected, late_count, score, highest)


def format_estimate(name: str, result: Estimate) -> str:
    """Render an estimate as a diagnostic report."""
    lines = [f"{name}:\n\n"]
    for server, row in enumerate(result.usage, start=1):
        cells = "".join(f"NPU {npu}: {used} " for npu, used in enumerate(row, start=1))
        lines.append(f"server {server} {cells}\n")
    lines.append("\n")
    if not result.consistent:
        lines.append("WRONG\n")
    lines.append(f"latenum: {result.late_count}\n")
    lines.append(f"Score: {result.score:.0f}\n")
    lines.append(f"Highest_Score: {result.highest_score:.0f}\n\n")
    return "".join(lines)