"""Problem description, scheduled requests and their text formats."""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass

MAX_BATCH = 1000


@dataclass(frozen=True)
class Server:
    """A server type: how many NPUs it has, their speed and their memory."""

    npus: int
    speed: int
    memory: int


@dataclass(frozen=True)
class User:
    """A user's time window, sample count and memory coefficients."""

    start: int
    end: int
    count: int
    a: int
    b: int


@dataclass(frozen=True)
class Request:
    """One batch sent by a user; server and NPU are zero-based."""

    send_time: int
    server: int
    npu: int
    batch: int
    process_start: int | None = None


def _trunc_div(numerator: int, denominator: int) -> int:
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def _ceil_div(numerator: int, denominator: int) -> int:
    return -(-numerator // denominator)


@dataclass(frozen=True)
class Problem:
    """Servers, users and the latency from every server to every user."""

    servers: tuple[Server, ...]
    users: tuple[User, ...]
    latency: tuple[tuple[int, ...], ...]

    def __post_init__(self) -> None:
        object.__setattr__(self, "servers", tuple(self.servers))
        object.__setattr__(self, "users", tuple(self.users))
        object.__setattr__(self, "latency", tuple(tuple(row) for row in self.latency))
        if len(self.latency) != len(self.servers):
            raise ValueError("latency needs one row per server")
        if any(len(row) != len(self.users) for row in self.latency):
            raise ValueError("latency rows need one entry per user")

    def batch_limit(self, user: int, server: int) -> int:
        """Largest batch of ``user`` that fits one NPU of ``server``."""
        owner = self.users[user]
        if owner.a <= 0:
            raise ValueError("memory coefficient a must be positive")
        return min(_trunc_div(self.servers[server].memory - owner.b, owner.a), MAX_BATCH)

    def process_time(self, server: int, batch: int) -> int:
        """Ticks an NPU of ``server`` needs for ``batch`` samples."""
        if batch < 0:
            raise ValueError("batch size cannot be negative")
        return math.ceil(math.sqrt(batch) / self.servers[server].speed)

    def memory_need(self, user: int, batch: int) -> int:
        """Memory a batch of ``user`` occupies while it runs."""
        owner = self.users[user]
        return batch * owner.a + owner.b

    def server_costs(self, user: int) -> list[tuple[int, int]]:
        """Estimated finishing cost of ``user`` on each server, cheapest first."""
        owner = self.users[user]
        costs = []
        for index, server in enumerate(self.servers):
            limit = self.batch_limit(user, index)
            if limit <= 0:
                raise ValueError(f"user {user} does not fit on server {index}")
            latency = self.latency[index][user]
            full_time = self.process_time(index, limit)
            batches = _ceil_div(owner.count, limit)
            tail_time = math.ceil(
                math.sqrt(owner.count - (batches - 1) * limit) / server.speed
            )
            if full_time <= latency + 1:
                cost = batches * (latency + 1) - 1 + tail_time
            else:
                cost = latency + (batches - 1) * full_time + tail_time
            costs.append((cost, index))
        costs.sort()
        return costs


class _Tokens:
    def __init__(self, text: str) -> None:
        self._items = iter(text.split())

    def take(self, count: int) -> tuple[int, ...]:
        values = []
        for _ in range(count):
            try:
                token = next(self._items)
            except StopIteration:
                raise ValueError("unexpected end of input") from None
            try:
                values.append(int(token))
            except ValueError:
                raise ValueError(f"expected an integer, got {token!r}") from None
        return tuple(values)

    def count(self, what: str) -> int:
        (value,) = self.take(1)
        if value < 0:
            raise ValueError(f"{what} cannot be negative")
        return value


def parse_problem(text: str, global_coefficients: bool = False) -> Problem:
    """Read a problem; with ``global_coefficients`` one ``a b`` pair serves all users."""
    tokens = _Tokens(text)
    server_count = tokens.count("server count")
    servers = [Server(*tokens.take(3)) for _ in range(server_count)]
    user_count = tokens.count("user count")
    spans = [tokens.take(3) for _ in range(user_count)]
    latency = [tokens.take(user_count) for _ in range(server_count)]
    if global_coefficients:
        shared = tokens.take(2)
        coefficients = [shared] * user_count
    else:
        coefficients = [tokens.take(2) for _ in range(user_count)]
    users = [
        User(start, end, count, a, b)
        for (start, end, count), (a, b) in zip(spans, coefficients)
    ]
    return Problem(servers, users, latency)


def format_problem(problem: Problem) -> str:
    """Write a problem with per-user coefficients."""
    lines = [str(len(problem.servers))]
    lines += [f"{s.npus} {s.speed} {s.memory}" for s in problem.servers]
    lines.append(str(len(problem.users)))
    lines += [f"{u.start} {u.end} {u.count}" for u in problem.users]
    lines += [" ".join(map(str, row)) for row in problem.latency]
    lines += [f"{u.a} {u.b}" for u in problem.users]
    return "\n".join(lines) + "\n"


def format_schedule(
    schedule: Sequence[Sequence[Request]] | Mapping[int, Sequence[Request]],
    user_count: int,
) -> str:
    """Write each user's request count and requests with one-based indices."""
    parts = []
    for user in range(user_count):
        if isinstance(schedule, Mapping):
            requests = schedule.get(user, ())
        else:
            requests = schedule[user] if user < len(schedule) else ()
        body = "".join(
            f"{r.send_time} {r.server + 1} {r.npu + 1} {r.batch} " for r in requests
        )
        parts.append(f"{len(requests)}\n{body}\n")
    return "".join(parts)


def parse_schedule(text: str, user_count: int) -> list[list[Request]]:
    """Read a schedule for ``user_count`` users; indices become zero-based."""
    tokens = _Tokens(text)
    schedule = []
    for _ in range(user_count):
        count = tokens.count("request count")
        requests = []
        for _ in range(count):
            send_time, server, npu, batch = tokens.take(4)
            requests.append(Request(send_time, server - 1, npu - 1, batch))
        schedule.append(requests)
    return schedule