"""Per-sample efficiency scheduler that ranks users and servers before planning."""

from __future__ import annotations

import math

from .model import Problem, Request
from .timeline import Cluster, Outcome

MAX_REQUESTS = 300
_UNBOUNDED = 0x3F3F3F3F
_INT_MAX = float(2**31 - 1)
# Smallest batch tried is the largest batch divided by one of these, in turn,
# until the plan fits in MAX_REQUESTS requests.
_DIVISORS = (13, 10, 7, 4, 1)
_RANKED_SERVERS = 3


def _user_key(problem: Problem, user: int) -> tuple[int, int, int]:
    """Ordering key: samples, typical request count and latency on the best servers."""
    owner = problem.users[user]
    top = problem.server_costs(user)[:_RANKED_SERVERS]
    if not top:
        raise ValueError("the problem has no servers")
    requests = 1 + sum(
        math.ceil(owner.count / problem.batch_limit(user, server)) for _, server in top
    )
    latency = sum(problem.latency[server][user] for _, server in top)
    typical_requests = requests // len(top)
    typical_latency = latency // len(top)
    weight = owner.count * owner.a + typical_requests * owner.b + typical_latency * 200
    return weight, owner.start, user


def _plan_on_npu(
    problem: Problem,
    cluster: Cluster,
    user: int,
    server: int,
    npu: int,
    divisor: int,
    bound: int,
) -> tuple[list[Request], int]:
    """Plan ``user``'s samples on one NPU, leaving the cluster untouched.

    Planning stops once a request finishes at or after ``bound`` or the plan
    holds more than MAX_REQUESTS requests. Returns the plan and the samples left.
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
            if best_start + duration >= bound:
                break
    finally:
        for window in reserved:
            timeline.release(*window)
    return plan, remaining


def _finish(problem: Problem, request: Request) -> int:
    return request.process_start + problem.process_time(request.server, request.batch)


def schedule_efficiency_ranked(problem: Problem) -> Outcome:
    """Plan users in ranked order, trying servers cheapest first and rotating NPUs.

    Each batch size is chosen by its finishing time per sample; the plan with
    the earliest finish over all tried NPUs is committed.
    """
    cluster = Cluster(problem, track_arrivals=True)
    next_npu = [0] * len(problem.servers)
    for user in problem.users:
        if user.count <= 0:
            raise ValueError("every user needs samples to schedule")
    order = sorted(range(len(problem.users)), key=lambda index: _user_key(problem, index))

    for user in order:
        best_time = _UNBOUNDED
        best: list[Request] = []
        for _, server in problem.server_costs(user):
            npus = problem.servers[server].npus
            npu = next_npu[server]
            for _ in range(npus):
                for divisor in _DIVISORS:
                    plan, remaining = _plan_on_npu(
                        problem, cluster, user, server, npu, divisor, best_time
                    )
                    if len(plan) <= MAX_REQUESTS:
                        break
                else:
                    raise ValueError(
                        f"user {user} needs more than {MAX_REQUESTS} requests "
                        f"on server {server}"
                    )
                if remaining == 0 and _finish(problem, plan[-1]) < best_time:
                    best_time = _finish(problem, plan[-1])
                    best = plan
                npu = (npu + 1) % npus
        if not best:
            raise ValueError(f"no complete plan found for user {user}")
        cluster.commit(user, best)
        chosen = best[0].server
        next_npu[chosen] = (next_npu[chosen] + 1) % problem.servers[chosen].npus
    return Outcome(cluster)