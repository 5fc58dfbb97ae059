import pytest

from npusched.model import (
    MAX_BATCH,
    Problem,
    Request,
    Server,
    User,
    format_problem,
    format_schedule,
    parse_problem,
    parse_schedule,
)


def make_problem():
    servers = [Server(2, 1, 1000), Server(3, 2, 1600)]
    users = [User(0, 500, 300, 16, 150), User(20, 900, 700, 20, 100)]
    latency = [[10, 12], [15, 20]]
    return Problem(servers, users, latency)


def test_problem_round_trip():
    problem = make_problem()
    assert parse_problem(format_problem(problem)) == problem


def test_global_coefficients_apply_to_every_user():
    text = "1\n2 1 1200\n2\n0 100 50\n5 200 80\n10 11\n17 150\n"
    problem = parse_problem(text, global_coefficients=True)
    assert [(u.a, u.b) for u in problem.users] == [(17, 150), (17, 150)]
    assert problem.latency == ((10, 11),)


def test_truncated_problem_raises():
    with pytest.raises(ValueError):
        parse_problem("1\n2 1 1200\n2\n0 100 50\n")


def test_non_integer_token_raises():
    with pytest.raises(ValueError):
        parse_problem("x")


def test_latency_shape_is_checked():
    with pytest.raises(ValueError):
        Problem([Server(1, 1, 1000)], [User(0, 10, 5, 10, 100)], [[10], [12]])


def test_batch_limit_is_capped():
    problem = Problem([Server(1, 1, 100000)], [User(0, 10, 5, 1, 0)], [[10]])
    assert problem.batch_limit(0, 0) == MAX_BATCH


def test_batch_limit_is_largest_fitting_batch():
    problem = make_problem()
    for user in range(2):
        for server in range(2):
            limit = problem.batch_limit(user, server)
            memory = problem.servers[server].memory
            assert problem.memory_need(user, limit) <= memory
            assert problem.memory_need(user, limit + 1) > memory


def test_process_time_value_and_speed():
    problem = make_problem()
    assert problem.process_time(0, 4) == 2
    for batch in range(1, 200):
        assert problem.process_time(1, batch) <= problem.process_time(0, batch)
        assert problem.process_time(0, batch) <= problem.process_time(0, batch + 1)


def test_process_time_rejects_negative():
    with pytest.raises(ValueError):
        make_problem().process_time(0, -1)


def test_memory_need_grows_by_a():
    problem = make_problem()
    user = problem.users[1]
    assert problem.memory_need(1, 0) == user.b
    assert problem.memory_need(1, 8) - problem.memory_need(1, 7) == user.a


def test_server_costs_sorted_and_complete():
    problem = make_problem()
    costs = problem.server_costs(1)
    assert sorted(costs) == costs
    assert sorted(index for _, index in costs) == [0, 1]


def test_server_costs_unfit_user_raises():
    problem = Problem([Server(1, 1, 100)], [User(0, 10, 5, 10, 200)], [[10]])
    with pytest.raises(ValueError):
        problem.server_costs(0)


def test_format_schedule_layout():
    text = format_schedule([[Request(5, 0, 1, 10)]], 2)
    assert text == "1\n5 1 2 10 \n0\n\n"


def test_format_schedule_accepts_mapping():
    assert format_schedule({1: [Request(3, 1, 0, 7)]}, 2) == format_schedule(
        [[], [Request(3, 1, 0, 7)]], 2
    )


def test_schedule_round_trip():
    schedule = [
        [Request(0, 0, 0, 40), Request(12, 1, 2, 30)],
        [Request(7, 1, 1, 60)],
    ]
    assert parse_schedule(format_schedule(schedule, 2), 2) == schedule


def test_truncated_schedule_raises():
    with pytest.raises(ValueError):
        parse_schedule("2\n0 1 1 40\n", 1)