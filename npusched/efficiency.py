"""Scheduler that picks each batch size by its finishing time per sample."""

from __future__ import annotations

from .model import Problem, Request
from .timeline import Cluster, Outcome

MAX_REQUESTS = 300
_UNBOUNDED = 0x3F3F3F3F
_INT_MAX = float(2**31 - 1)
# Smallest batch tried is the largest batch divided by one of these, in turn,
# until the plan fits in MAX_REQUESTS requests.
_DIVISORS = (11, 9, 7, 5, 3, 1)


def _plan_on_npu(
    problem: Problem,
    cluster: Cluster,
    user: int,
    server: int,
    npu: int,
    divisor: int,
) -> list[Request]:
    """Plan all of ``user``'s samples on one NPU, leaving the cluster untouched.

    Planning stops early once the plan has more than MAX_REQUESTS requests.
    """
    owner = problem.users[user]
    timeline = cluster.timeline(server, npu)
    latency = problem.latency[server][user]
    limit = problem.batch_limit(user, server)

    remaining = owner.count
    send = owner.start
    plan: list[Request] = []
    reserved: list[tuple[int, int, int]] = []
    try:
        while remaining and len(plan) <= MAX_REQUESTS:
            high = min(limit, remaining)
            start = send + latency
            best_rate = _INT_MAX
            best_size = 0
            best_start = start
            for size in range(max(high // divisor, 1), high + 1):
                duration = problem.process_time(server, size)
                start = timeline.earliest_start(
                    start, duration, problem.memory_need(user, size)
                )
                rate = (start + duration - send) / size
                if rate < best_rate or (rate == best_rate and size > best_size):
                    best_rate = rate
                    best_size = size
                    best_start = start

            duration = problem.process_time(server, best_size)
            need = problem.memory_need(user, best_size)
            timeline.reserve(best_start, duration, need)
            reserved.append((best_start, duration, need))

            arrival = cluster.receive_time(server, npu, send + latency, best_start)
            send = arrival - latency
            plan.append(Request(send, server, npu, best_size, best_start))
            send += latency + 1
            remaining -= best_size
    finally:
        for window in reserved:
            timeline.release(*window)
    return plan


def _finish(problem: Problem, request: Request) -> int:
    return request.process_start + problem.process_time(request.server, request.batch)


def schedule_efficiency(problem: Problem) -> Outcome:
    """Plan each user on every NPU, batch by batch, and keep the earliest finish.

    Users go in order of ``count * a + b``; ties go to the earlier start.
    """
    cluster = Cluster(problem, track_arrivals=True)
    users = problem.users
    order = sorted(
        range(len(users)),
        key=lambda index: (users[index].count * users[index].a + users[index].b,
                           users[index].start, index),
    )
    for user in order:
        if users[user].count <= 0:
            raise ValueError(f"user {user} has no samples to schedule")
        best_time = _UNBOUNDED
        best: list[Request] = []
        for server, spec in enumerate(problem.servers):
            if problem.batch_limit(user, server) <= 0:
                raise ValueError(f"user {user} does not fit on server {server}")
            for npu in range(spec.npus):
                for divisor in _DIVISORS:
                    plan = _plan_on_npu(problem, cluster, user, server, npu, divisor)
                    if len(plan) <= MAX_REQUESTS:
                        break
                else:
                    raise ValueError(
                        f"user {user} needs more than {MAX_REQUESTS} requests "
                        f"on server {server}"
                    )
                finish = _finish(problem, plan[-1])
                if finish <= best_time:
                    best_time = finish
                    best = plan
        if not best:
            raise ValueError(f"no plan found for user {user}")
        cluster.commit(user, best)
    return Outcome(cluster)