# npusched

Heuristic schedulers that split each user's inference samples into batches
and place them on the NPUs of a small cluster, aiming for every user to
finish as close to (or before) their deadline as possible.

Each NPU has a fixed amount of memory at every time tick. A batch of `B`
samples from a user needs `a * B + b` memory for `ceil(sqrt(B) / k)` ticks
on a server with speed `k`, and reaches the server `latency` ticks after it
is sent. A batch may hold at most `min((m - b) // a, 1000)` samples on a
server with memory `m`.

## Install

```
pip install .
pip install ".[test]"   # with the test dependencies
```

## Input format

Whitespace separated integers:

```
N
g k m            (one line per server: NPU count, speed, memory)
M
s e cnt          (one line per user: start, deadline, sample count)
latency          (N rows of M values: latency from each server to each user)
a b              (one line per user: memory coefficients)
```

`npusched.model.parse_problem` reads this text into a `Problem` and
`npusched.model.format_problem` writes one back. Pass
`global_coefficients=True` to `parse_problem` for the variant that has a
single `a b` pair shared by every user. Malformed input raises `ValueError`.

## Output format

For each user in input order: a line with the request count `T`, then a line
of `T` groups `time server npu batch`, with one-based server and NPU indices.
`npusched.model.format_schedule` writes it and
`npusched.model.parse_schedule` reads it back as zero-based `Request`s.

## Command line

```
npusched < problem.in > schedule.txt
npusched --input problem.in --output schedule.txt --monitor free.txt
```

The command schedules the problem with `schedule_adjusted`, writes the
schedule, prints a report (memory-ticks per NPU, late users, score) to
standard error, and writes the free memory of every NPU for ticks 0 to
60000 to the monitor file (`schedule_monitor.txt` by default). It exits
with status 1 if the input cannot be read or scheduled.

## Library use

```python
from npusched.model import parse_problem, format_schedule
from npusched.adjust import schedule_adjusted
from npusched.report import estimate, format_estimate

with open("problem.in") as handle:
    problem = parse_problem(handle.read(), False)

outcome = schedule_adjusted(problem)
print(format_schedule(outcome.schedule, len(problem.users)))
print(format_estimate("adjusted", estimate(outcome, False, True)))
```

Every strategy takes a `Problem` and returns an `Outcome`, whose
`schedule` holds each user's requests and whose `cluster` holds the NPU
timelines they were placed on:

- `npusched.efficiency.schedule_efficiency`: users in order of
  `count * a + b`; on every NPU, each batch size is chosen by its finishing
  time per sample, and the plan with the earliest finish is kept.
- `npusched.migrate.schedule_migrating`: users in order of sample count;
  every batch may go to whichever NPU and size give the least time per sample.
- `npusched.ranked.schedule_efficiency_ranked`: per-sample efficiency with
  users ranked by demand, servers tried cheapest first
  (`Problem.server_costs`) and NPUs rotated between users.
- `npusched.adjust.schedule_adjusted`: commits each user's samples in
  thirds, picking the NPU, batch fraction and delay with the least time
  per sample for each part.

The per-NPU schedulers keep each user to at most 300 requests and raise
`ValueError` when a user cannot be placed.

`npusched.timeline.NpuTimeline` tracks one NPU's free memory per tick
(`fits`, `earliest_start`, `reserve`, `release`, `used`), and
`npusched.timeline.Cluster` holds all NPUs of a problem and the committed
schedule.

`npusched.report.estimate` scores an outcome from the finishing time of
each user's last request; `weighted` weights users by index and
`count_moves` penalises switching NPUs between requests. The result is an
`Estimate` with per-NPU usage, a bookkeeping check, the late-user count,
the score and the highest possible score.

## What this package does not do

It does not generate random problems, and it has no independent judge:
it does not check a schedule read from a file against the rules or replay
it on a cluster. The only score it computes is `estimate`, taken from the
schedulers' own placement of each request.