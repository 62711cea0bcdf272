import pytest

from teachos.process import Proc, ProcessTable, ProcState
from teachos.scheduler import (
    Scheduler,
    SquareRandom,
    lottery_total,
    shortest_burst,
    update_burst,
)


def _table_with_children(n):
    table = ProcessTable()
    init = table.userinit()
    children = [table.fork(init) for _ in range(n)]
    return table, init, children


def test_square_random_first_value():
    assert SquareRandom(3251).next() == 5690


def test_square_random_is_deterministic_and_bounded():
    a, b = SquareRandom(3251), SquareRandom(3251)
    seq_a = [a.next() for _ in range(50)]
    seq_b = [b.next() for _ in range(50)]
    assert seq_a == seq_b
    assert all(0 <= v <= 9999 for v in seq_a)


def test_in_range_bounds():
    rng = SquareRandom(1234)
    values = [rng.in_range(3, 9) for _ in range(100)]
    assert all(3 <= v <= 9 for v in values)


def test_in_range_empty_raises():
    with pytest.raises(ValueError):
        SquareRandom().in_range(5, 4)


def test_update_burst_stable_when_equal():
    p = Proc(estimated_burst=6, previous_burst=6)
    update_burst(p)
    assert p.estimated_burst == 6


def test_update_burst_between_values():
    p = Proc(estimated_burst=4, previous_burst=20)
    update_burst(p)
    assert 4 <= p.estimated_burst <= 20


def test_shortest_burst_first_minimum():
    queue = [Proc(estimated_burst=b) for b in (5, 3, 7, 3)]
    idx = shortest_burst(queue)
    assert queue[idx] is queue[1]
    assert queue[idx].estimated_burst == min(p.estimated_burst for p in queue)


def test_shortest_burst_empty_queue():
    assert shortest_burst([]) == 0


def test_lottery_total_counts_runnable_only():
    queue = [
        Proc(tickets=10, state=ProcState.RUNNABLE),
        Proc(tickets=5, state=ProcState.RUNNABLE),
        Proc(tickets=7, state=ProcState.SLEEPING),
    ]
    assert lottery_total(queue) == 10 + 5


def test_bad_thresholds_raise():
    with pytest.raises(ValueError):
        Scheduler(ProcessTable(), aging_thresholds=(1, 2))


def test_pick_round_robin_and_empty():
    table = ProcessTable()
    init = table.userinit()
    sched = Scheduler(table)
    picked = sched.pick()
    assert picked is init
    assert picked.state == ProcState.RUNNING
    assert all(not q for q in table.queues)
    assert sched.pick() is None


def test_pick_fcfs_before_round_robin():
    table, init, (a, b) = _table_with_children(2)
    sched = Scheduler(table)
    sched.change_prio(b, 4)
    assert b in table.queues[3]
    assert sched.pick() is b
    assert sched.pick() is init
    assert sched.pick() is a


def test_pick_sjf_chooses_shortest():
    table, init, (a, b) = _table_with_children(2)
    sched = Scheduler(table)
    a.estimated_burst = 9
    b.estimated_burst = 1
    sched.change_prio(a, 3)
    sched.change_prio(b, 3)
    assert sched.pick() is b
    assert sched.pick() is a


def test_pick_lottery_removes_one():
    table, init, children = _table_with_children(3)
    sched = Scheduler(table, rng=SquareRandom(42))
    sched.change_prio(init, 1)
    for c in children:
        sched.change_prio(c, 1)
    before = list(table.queues[0])
    picked = sched.pick()
    assert picked in before
    assert picked not in table.queues[0]
    assert len(table.queues[0]) == len(before) - 1
    assert picked.state == ProcState.RUNNING


def test_pick_resets_aging_and_clock():
    table = ProcessTable()
    init = table.userinit()
    init.ready_time_aging = 7
    init.clock = 3
    sched = Scheduler(table)
    picked = sched.pick()
    assert (picked.ready_time_aging, picked.clock) == (0, 0)


def test_update_clock_accounts_states():
    table, init, (a, b) = _table_with_children(2)
    sched = Scheduler(table)
    running = sched.pick()
    assert running is init
    table.sleep(b, "chan")
    sched.update_clock()
    assert (running.rutime, running.bstime, running.clock) == (1, 1, 1)
    assert (a.retime, a.ready_time_aging) == (1, 1)
    assert b.stime == 1


def test_aging_promotes_one_level():
    table, init, (a,) = _table_with_children(1)
    sched = Scheduler(table, aging_thresholds=(2, 2, 2))
    sched.change_prio(a, 1)
    assert a in table.queues[0]
    sched.update_clock()
    sched.upgrade_priority_aging()
    assert a.priority == 0
    sched.update_clock()
    sched.upgrade_priority_aging()
    assert a.priority == 1
    assert a in table.queues[1]
    assert a not in table.queues[0]
    assert a.ready_time_aging == 0


def test_change_prio_invalid():
    table = ProcessTable()
    init = table.userinit()
    sched = Scheduler(table)
    with pytest.raises(ValueError):
        sched.change_prio(init, 0)
    with pytest.raises(ValueError):
        sched.change_prio(init, 5)


def test_change_prio_running_process():
    table = ProcessTable()
    init = table.userinit()
    sched = Scheduler(table)
    proc = sched.pick()
    sched.change_prio(proc, 3)
    assert proc.priority == 2
    assert proc.state == ProcState.RUNNABLE
    assert table.queues[2] == [init]