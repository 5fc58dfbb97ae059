"""Scheduler that commits each user's samples in parts, picking the best NPU per part."""

from __future__ import annotations

from .model import Problem, Request
from .timeline import Cluster, Outcome

MAX_REQUESTS = 300
_PARTS = 3
_REQUESTS_PER_PART = MAX_REQUESTS // _PARTS
_RANKED_SERVERS = 3
_INT_MAX = float(2**31 - 1)


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


def _user_key(problem: Problem, user: int) -> tuple[float, int, int]:
    """Ordering key: memory demand with typical request count, mildly weighted by index."""
    owner = problem.users[user]
    top = problem.server_costs(user)[:_RANKED_SERVERS]
    if not top:
        raise ValueError("the problem has no servers")
    requests = 1 + sum(
        _ceil_div(owner.count, problem.batch_limit(user, server)) for _, server in top
    )
    typical_requests = requests // len(top)
    weight = (owner.count * owner.a + typical_requests * owner.b) * 2.0 ** (
        (user + 1) / 5000.0
    )
    return weight, owner.start, user


def _trial(
    problem: Problem,
    cluster: Cluster,
    user: int,
    server: int,
    npu: int,
    size_range: int,
    delay: int,
    send: int,
    remaining: int,
    quota: int,
    max_requests: int,
) -> tuple[list[Request], int]:
    """Plan up to ``quota`` samples on one NPU from ``send``, leaving the cluster untouched.

    Batches are sized against all ``remaining`` samples, so the last one may
    overshoot the quota. Returns the plan and the samples it covers.
    """
    timeline = cluster.timeline(server, npu)
    latency = problem.latency[server][user]
    limit = problem.batch_limit(user, server)
    start = send + latency
    planned = 0
    plan: list[Request] = []
    reserved: list[tuple[int, int, int]] = []
    try:
        while planned < quota and len(plan) < max_requests:
            high = min(limit, remaining - planned)
            low = max(high * size_range // 100, 1)
            start = timeline.earliest_start(
                start, problem.process_time(server, low), problem.memory_need(user, low)
            )
            while low < high:
                mid = (low + high + 1) // 2
                if timeline.fits(
                    start, problem.process_time(server, mid), problem.memory_need(user, mid)
                ):
                    low = mid
                else:
                    high = mid - 1

            duration = problem.process_time(server, low)
            need = problem.memory_need(user, low)
            timeline.reserve(start, duration, need)
            reserved.append((start, duration, need))

            arrival = cluster.receive_time(server, npu, send + latency, start)
            send = arrival - latency
            plan.append(Request(send, server, npu, low, start))
            send += latency + delay
            start = send + latency
            planned += low
    finally:
        for window in reserved:
            timeline.release(*window)
    return plan, planned


def _finish(problem: Problem, request: Request) -> int:
    return request.process_start + problem.process_time(request.server, request.batch)


def schedule_adjusted(problem: Problem) -> Outcome:
    """Schedule users in ranked order, committing their samples phase by phase.

    Each phase uses one batch fraction and tries every delay, every cumulative
    target of one, two or three thirds of the samples, and every NPU with
    servers cheapest first; the plan with the least time per sample is
    committed. Phases continue until the user's samples are all placed.
    """
    cluster = Cluster(problem, track_arrivals=True)
    users = problem.users
    for index, owner in enumerate(users):
        if owner.count <= 0:
            raise ValueError(f"user {index} has no samples to schedule")
    order = sorted(range(len(users)), key=lambda index: _user_key(problem, index))

    for user in order:
        owner = users[user]
        servers = [server for _, server in problem.server_costs(user)]
        share = owner.count // _PARTS
        committed: list[Request] = []
        used = 0
        for size_range in range(6, 101, 7):
            best_rate = _INT_MAX
            best: list[Request] = []
            best_samples = 0
            for delay in (1, 2):
                for part in range(1, _PARTS + 1):
                    portion = share if part < _PARTS else owner.count - share * (_PARTS - 1)
                    if portion == 0:
                        continue
                    if part == 1 or share == 0 or not committed:
                        send = owner.start
                    else:
                        last = committed[-1]
                        send = last.send_time + problem.latency[last.server][user] + 1
                    target = owner.count * part // _PARTS
                    cap = _REQUESTS_PER_PART * part - len(committed)
                    for server in servers:
                        for npu in range(problem.servers[server].npus):
                            plan, planned = _trial(
                                problem, cluster, user, server, npu, size_range, delay,
                                send, owner.count - used, target - used, cap,
                            )
                            if not plan or used + planned < target:
                                continue
                            rate = (_finish(problem, plan[-1]) - send) / planned
                            if rate < best_rate:
                                best_rate = rate
                                best = plan
                                best_samples = planned
            if best:
                cluster.commit(user, best)
                committed.extend(best)
                used += best_samples
            if used == owner.count:
                break
        else:
            raise ValueError(f"no complete plan found for user {user}")
    return Outcome(cluster)