"""Multi-level scheduler: FCFS, shortest-job-first, round robin and lottery queues."""

from __future__ import annotations

from .process import NUMQUEUES, ProcState

DEFAULT_SEED = 3251
DEFAULT_AGING_THRESHOLDS = (10, 20, 30)

# Queue levels, highest priority first.
FCFS = 3
SJF = 2
ROUND_ROBIN = 1
LOTTERY = 0

_NO_BURST = 10000


class SquareRandom:
    """Middle-square pseudo random numbers in [0, 9999]."""

    def __init__(self, seed=DEFAULT_SEED):
        self.state = seed

    def next(self) -> int:
        self.state = (self.state * self.state // 100) % 10000
        return self.state

    def in_range(self, lo, hi) -> int:
        """Return a number between ``lo`` and ``hi`` inclusive."""
        if hi < lo:
            raise ValueError(f"empty range: {lo}..{hi}")
        return self.next() % (hi + 1 - lo) + lo


def update_burst(proc) -> None:
    """Estimate the next CPU burst as the mean of the estimate and the last burst."""
    proc.estimated_burst = int(0.5 * proc.estimated_burst + 0.5 * proc.previous_burst)


def shortest_burst(queue) -> int:
    """Index of the first process with the smallest estimated burst; 0 if none."""
    shortest = _NO_BURST
    position = 0
    for index, proc in enumerate(queue):
        if proc.estimated_burst < shortest:
            shortest = proc.estimated_burst
            position = index
    return position


def lottery_total(queue) -> int:
    """Total tickets held by the runnable processes of ``queue``."""
    return sum(p.tickets for p in queue if p.state == ProcState.RUNNABLE)


class Scheduler:
    """Chooses the next process to run from the process table's ready queues.

    Queue 3 is served first come first served, queue 2 shortest job first,
    queue 1 round robin and queue 0 by lottery. Processes waiting too long
    are promoted one queue at a time.
    """

    def __init__(self, table, rng=None, aging_thresholds=DEFAULT_AGING_THRESHOLDS):
        thresholds = tuple(aging_thresholds)
        if len(thresholds) != NUMQUEUES - 1:
            raise ValueError(
                f"need {NUMQUEUES - 1} aging thresholds, got {len(thresholds)}"
            )
        self.table = table
        self.rng = rng if rng is not None else SquareRandom()
        self.aging_thresholds = thresholds

    def _lottery_pick(self, queue) -> int:
        golden = self.rng.in_range(0, lottery_total(queue))
        count = 0
        for index, proc in enumerate(queue):
            if count + proc.tickets < golden:
                count += proc.tickets
                continue
            return index
        return len(queue) - 1

    def pick(self):
        """Take the next process off the ready queues and mark it running.

        Returns None when every queue is empty.
        """
        queues = self.table.queues
        if queues[FCFS]:
            queue, index = queues[FCFS], 0
        elif queues[SJF]:
            queue = queues[SJF]
            index = shortest_burst(queue)
        elif queues[ROUND_ROBIN]:
            queue, index = queues[ROUND_ROBIN], 0
        elif queues[LOTTERY]:
            queue = queues[LOTTERY]
            index = self._lottery_pick(queue)
        else:
            return None
        proc = queue.pop(index)
        proc.clock = 0
        proc.ready_time_aging = 0
        proc.state = ProcState.RUNNING
        return proc

    def update_clock(self) -> None:
        """Account one tick of sleeping, waiting or running time to each process."""
        for p in self.table.procs:
            if p.state == ProcState.SLEEPING:
                p.stime += 1
                p.clock = 0
            elif p.state == ProcState.RUNNABLE:
                p.retime += 1
                p.ready_time_aging += 1
                p.clock = 0
            elif p.state == ProcState.RUNNING:
                p.bstime += 1
                p.rutime += 1
                p.clock += 1

    def _move(self, proc, priority: int) -> None:
        old = self.table.queues[proc.priority]
        if proc in old:
            old.remove(proc)
        proc.priority = priority
        self.table.queues[priority].append(proc)
        proc.ready_time_aging = 0

    def upgrade_priority_aging(self) -> None:
        """Promote runnable processes that have waited past their queue's threshold."""
        for p in self.table.procs:
            if p.state != ProcState.RUNNABLE or p.priority >= NUMQUEUES - 1:
                continue
            if p.ready_time_aging >= self.aging_thresholds[p.priority]:
                self._move(p, p.priority + 1)

    def change_prio(self, proc, priority) -> None:
        """Set ``proc``'s priority (1 to 4) and put it back on the ready queues."""
        if not 1 <= priority <= NUMQUEUES:
            raise ValueError(
                f"priority must be between 1 and {NUMQUEUES}, got {priority}"
            )
        for queue in self.table.queues:
            if proc in queue:
                queue.remove(proc)
        proc.priority = priority - 1
        self.table.yield_(proc)