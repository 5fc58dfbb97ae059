"""Free NPU memory over time, and the cluster of NPUs a schedule is built on."""

from __future__ import annotations

from array import array
from bisect import bisect_left, insort
from dataclasses import dataclass

from .model import Problem, Request


class NpuTimeline:
    """Free memory of one NPU at every tick; untouched ticks are fully free."""

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity cannot be negative")
        self.capacity = capacity
        self._free = array("q")

    def __getitem__(self, time: int) -> int:
        if time < 0:
            raise IndexError("time cannot be negative")
        return self._free[time] if time < len(self._free) else self.capacity

    @staticmethod
    def _check_window(start: int, duration: int) -> None:
        if start < 0:
            raise ValueError("start cannot be negative")
        if duration < 0:
            raise ValueError("duration cannot be negative")

    def _first_short(self, start: int, duration: int, need: int) -> int | None:
        stored = self._free[start:start + duration]
        for offset, free in enumerate(stored):
            if free < need:
                return start + offset
        if len(stored) < duration and self.capacity < need:
            return start + len(stored)
        return None

    def _grow(self, end: int) -> None:
        missing = end - len(self._free)
        if missing > 0:
            self._free.extend(array("q", [self.capacity]) * missing)

    def fits(self, start: int, duration: int, need: int) -> bool:
        """Whether ``need`` memory is free for ``duration`` ticks from ``start``."""
        self._check_window(start, duration)
        return self._first_short(start, duration, need) is None

    def earliest_start(self, start: int, duration: int, need: int) -> int:
        """First tick at or after ``start`` from which the window fits."""
        self._check_window(start, duration)
        if duration > 0 and need > self.capacity:
            raise ValueError("need exceeds the NPU's capacity")
        while (short := self._first_short(start, duration, need)) is not None:
            start = short + 1
        return start

    def reserve(self, start: int, duration: int, need: int) -> None:
        """Take ``need`` memory for the window; it must be free."""
        if not self.fits(start, duration, need):
            raise ValueError("not enough free memory for the reservation")
        self._grow(start + duration)
        for time in range(start, start + duration):
            self._free[time] -= need

    def release(self, start: int, duration: int, need: int) -> None:
        """Give back ``need`` memory for the window."""
        self._check_window(start, duration)
        if any(self[time] + need > self.capacity for time in range(start, start + duration)):
            raise ValueError("release exceeds the NPU's capacity")
        self._grow(start + duration)
        for time in range(start, start + duration):
            self._free[time] += need

    def used(self) -> int:
        """Memory-ticks taken over the whole timeline."""
        return sum(self.capacity - free for free in self._free)


class Cluster:
    """Every NPU of a problem, the arrival ticks seen at each, and the schedule."""

    def __init__(self, problem: Problem, track_arrivals: bool = True) -> None:
        self.problem = problem
        self.track_arrivals = track_arrivals
        self._timelines = [
            [NpuTimeline(server.memory) for _ in range(server.npus)]
            for server in problem.servers
        ]
        self._arrivals: list[list[list[int]]] = [
            [[] for _ in range(server.npus)] for server in problem.servers
        ]
        self.schedule: list[list[Request]] = [[] for _ in problem.users]

    def _check(self, server: int, npu: int) -> None:
        if not 0 <= server < len(self._timelines):
            raise IndexError(f"no server {server}")
        if not 0 <= npu < len(self._timelines[server]):
            raise IndexError(f"no NPU {npu} on server {server}")

    def timeline(self, server: int, npu: int) -> NpuTimeline:
        self._check(server, npu)
        return self._timelines[server][npu]

    def mark_arrival(self, server: int, npu: int, time: int) -> None:
        """Record that a committed request reaches the NPU at ``time``."""
        self._check(server, npu)
        arrivals = self._arrivals[server][npu]
        index = bisect_left(arrivals, time)
        if index == len(arrivals) or arrivals[index] != time:
            insort(arrivals, time)

    def receive_time(self, server: int, npu: int, earliest: int, process_start: int) -> int:
        """Tick after the last arrival in ``[earliest, process_start)``, else ``earliest``."""
        self._check(server, npu)
        arrivals = self._arrivals[server][npu]
        index = bisect_left(arrivals, process_start)
        if index and arrivals[index - 1] >= earliest:
            return arrivals[index - 1] + 1
        return earliest

    def commit(self, user: int, requests) -> None:
        """Reserve memory for ``user``'s requests and add them to the schedule."""
        problem = self.problem
        for request in requests:
            if request.process_start is None:
                raise ValueError("a committed request needs a process start")
            self.timeline(request.server, request.npu).reserve(
                request.process_start,
                problem.process_time(request.server, request.batch),
                problem.memory_need(user, request.batch),
            )
            if self.track_arrivals:
                self.mark_arrival(
                    request.server,
                    request.npu,
                    request.send_time + problem.latency[request.server][user],
                )
            self.schedule[user].append(request)


@dataclass
class Outcome:
    """A finished scheduling run."""

    cluster: Cluster

    @property
    def problem(self) -> Problem:
        return self.cluster.problem

    @property
    def schedule(self) -> list[list[Request]]:
        return self.cluster.schedule