"""Scheduler that may move every batch to whichever NPU serves it best."""

from __future__ import annotations

from .model import Problem, Request
from .timeline import Cluster, Outcome

_INT_MAX = float(2**31 - 1)


def schedule_migrating(problem: Problem) -> Outcome:
    """Send each batch to the NPU and size with the least time per sample.

    Users go in order of sample count; ties go to the earlier start.
    """
    cluster = Cluster(problem, track_arrivals=True)
    users = problem.users
    order = sorted(
        range(len(users)),
        key=lambda index: (users[index].count, users[index].start, index),
    )
    for user in order:
        owner = users[user]
        if owner.count <= 0:
            raise ValueError(f"user {user} has no samples to schedule")
        limits = [problem.batch_limit(user, server) for server in range(len(problem.servers))]
        if not any(limit > 0 and spec.npus > 0
                   for limit, spec in zip(limits, problem.servers)):
            raise ValueError(f"user {user} fits on no server")

        send = owner.start
        remaining = owner.count
        while remaining:
            best_rate = _INT_MAX
            best_size = 0
            best_server = best_npu = best_start = -1
            for server, spec in enumerate(problem.servers):
                latency = problem.latency[server][user]
                high = min(limits[server], remaining)
                for npu in range(spec.npus):
                    timeline = cluster.timeline(server, npu)
                    start = send + latency
                    for size in range(1, high + 1):
                        duration = problem.process_time(server, size)
                        start = timeline.earliest_start(
                            start, duration, problem.memory_need(user, size)
                        )
                        rate = (start + duration - send) / size
                        if rate < best_rate or (rate == best_rate and size > best_size):
                            best_rate = rate
                            best_size = size
                            best_server, best_npu, best_start = server, npu, start

            latency = problem.latency[best_server][user]
            arrival = cluster.receive_time(best_server, best_npu, send + latency, best_start)
            send = arrival - latency
            cluster.commit(
                user, [Request(send, best_server, best_npu, best_size, best_start)]
            )
            send += latency + 1
            remaining -= best_size
    return Outcome(cluster)