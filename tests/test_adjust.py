import pytest

from npusched.adjust import MAX_REQUESTS, schedule_adjusted
from npusched.model import Problem, Request, Server, User
from npusched.report import estimate


def _problem():
    servers = [Server(2, 1, 1000), Server(1, 2, 800)]
    users = [
        User(0, 500, 300, 10, 100),
        User(5, 400, 50, 5, 50),
        User(10, 1000, 2, 20, 100),
    ]
    latency = [[10, 12, 15], [20, 11, 10]]
    return Problem(servers, users, latency)


def test_single_sample_single_npu():
    problem = Problem([Server(1, 1, 1000)], [User(0, 100, 1, 1, 0)], [[5]])
    outcome = schedule_adjusted(problem)
    assert outcome.schedule == [[Request(0, 0, 0, 1, 5)]]


def test_every_sample_scheduled_once():
    problem = _problem()
    outcome = schedule_adjusted(problem)
    for user, requests in zip(problem.users, outcome.schedule):
        assert sum(r.batch for r in requests) == user.count
        assert 1 <= len(requests) <= MAX_REQUESTS


def test_batches_fit_memory():
    problem = _problem()
    outcome = schedule_adjusted(problem)
    for index, requests in enumerate(outcome.schedule):
        for request in requests:
            assert 1 <= request.batch <= problem.batch_limit(index, request.server)


def test_send_times_ordered_and_spaced():
    problem = _problem()
    outcome = schedule_adjusted(problem)
    for index, (user, requests) in enumerate(zip(problem.users, outcome.schedule)):
        assert requests[0].send_time >= user.start
        for prev, cur in zip(requests, requests[1:]):
            assert cur.send_time - prev.send_time >= problem.latency[prev.server][index]


def test_processing_starts_after_arrival():
    problem = _problem()
    outcome = schedule_adjusted(problem)
    for index, requests in enumerate(outcome.schedule):
        for request in requests:
            arrival = request.send_time + problem.latency[request.server][index]
            assert request.process_start >= arrival


def test_memory_never_overcommitted_and_consistent():
    problem = _problem()
    outcome = schedule_adjusted(problem)
    for server, spec in enumerate(problem.servers):
        for npu in range(spec.npus):
            timeline = outcome.cluster.timeline(server, npu)
            assert all(timeline[t] >= 0 for t in range(2000))
    assert estimate(outcome, weighted=True).consistent


def test_deterministic():
    first = schedule_adjusted(_problem()).schedule
    second = schedule_adjusted(_problem()).schedule
    assert first == second


def test_zero_count_rejected():
    problem = Problem([Server(1, 1, 1000)], [User(0, 100, 0, 1, 0)], [[5]])
    with pytest.raises(ValueError):
        schedule_adjusted(problem)


def test_user_that_fits_nowhere_rejected():
    problem = Problem([Server(1, 1, 100)], [User(0, 100, 10, 10, 200)], [[5]])
    with pytest.raises(ValueError):
        schedule_adjusted(problem)