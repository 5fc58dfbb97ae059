import pytest

from npusched.efficiency import schedule_efficiency
from npusched.model import Problem, Request, Server, User
from npusched.report import estimate


def make_problem(servers, users, latency):
    return Problem(
        tuple(Server(*s) for s in servers),
        tuple(User(*u) for u in users),
        latency,
    )


def check_schedule(problem, outcome):
    for user, requests in enumerate(outcome.schedule):
        owner = problem.users[user]
        assert requests
        assert sum(r.batch for r in requests) == owner.count
        assert requests[0].send_time >= owner.start
        sends = [r.send_time for r in requests]
        assert all(a < b for a, b in zip(sends, sends[1:]))
        assert len(requests) <= 300
        for r in requests:
            assert 1 <= r.batch <= problem.batch_limit(user, r.server)
            assert 0 <= r.server < len(problem.servers)
            assert 0 <= r.npu < problem.servers[r.server].npus
            assert r.process_start >= r.send_time + problem.latency[r.server][user]


def test_single_user_single_request():
    problem = make_problem([(1, 1, 1000)], [(0, 100, 4, 1, 0)], [[5]])
    outcome = schedule_efficiency(problem)
    assert outcome.schedule == [[Request(0, 0, 0, 4, 5)]]


def test_schedule_is_valid_and_consistent():
    problem = make_problem(
        [(2, 1, 300), (1, 2, 500)],
        [(0, 200, 30, 10, 20), (5, 300, 50, 8, 40), (10, 400, 17, 12, 30)],
        [[10, 12, 11], [15, 10, 20]],
    )
    outcome = schedule_efficiency(problem)
    check_schedule(problem, outcome)
    result = estimate(outcome)
    assert result.consistent


def test_full_memory_requests_do_not_overlap():
    problem = make_problem(
        [(1, 1, 20)],
        [(0, 100, 3, 10, 10), (0, 100, 2, 10, 10)],
        [[5, 5]],
    )
    outcome = schedule_efficiency(problem)
    check_schedule(problem, outcome)
    windows = sorted(
        (r.process_start, r.process_start + problem.process_time(r.server, r.batch))
        for requests in outcome.schedule
        for r in requests
    )
    assert all(prev[1] <= cur[0] for prev, cur in zip(windows, windows[1:]))


def test_smaller_user_goes_first():
    problem = make_problem(
        [(1, 1, 20)],
        [(0, 100, 3, 10, 10), (0, 100, 1, 10, 10)],
        [[5, 5]],
    )
    outcome = schedule_efficiency(problem)
    small = outcome.schedule[1]
    assert small[0].process_start == problem.latency[0][1]
    small_finish = small[-1].process_start + problem.process_time(0, small[-1].batch)
    assert outcome.schedule[0][0].process_start >= small_finish


def test_too_many_requests_raises():
    problem = make_problem([(1, 1, 1)], [(0, 1000, 301, 1, 0)], [[2]])
    with pytest.raises(ValueError):
        schedule_efficiency(problem)


def test_empty_user_raises():
    problem = make_problem([(1, 1, 100)], [(0, 10, 0, 1, 0)], [[2]])
    with pytest.raises(ValueError):
        schedule_efficiency(problem)


def test_user_that_does_not_fit_raises():
    problem = make_problem([(1, 1, 10)], [(0, 10, 5, 5, 20)], [[2]])
    with pytest.raises(ValueError):
        schedule_efficiency(problem)