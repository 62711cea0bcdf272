"""Process table with per-priority ready queues."""

from __future__ import annotations

import errno
from dataclasses import dataclass
from enum import IntEnum

from .errors import KernelPanic

NPROC = 64
NUMQUEUES = 4
DEFAULT_PRIORITY = 1
DEFAULT_TICKETS = 10
DEFAULT_ESTIMATED_BURST = 2


class ProcState(IntEnum):
    UNUSED = 0
    EMBRYO = 1
    SLEEPING = 2
    RUNNABLE = 3
    RUNNING = 4
    ZOMBIE = 5


_STATE_NAMES = {
    ProcState.UNUSED: "unused",
    ProcState.EMBRYO: "embryo",
    ProcState.SLEEPING: "sleep ",
    ProcState.RUNNABLE: "runble",
    ProcState.RUNNING: "run   ",
    ProcState.ZOMBIE: "zombie",
}


@dataclass(eq=False)
class Proc:
    """Per-process state, including scheduling statistics."""

    pid: int = 0
    state: ProcState = ProcState.UNUSED
    parent: Proc | None = None
    name: str = ""
    killed: bool = False
    chan: object = None
    ctime: int = 0
    stime: int = 0
    retime: int = 0
    rutime: int = 0
    bstime: int = 0
    clock: int = 0
    priority: int = 0
    tickets: int = 0
    estimated_burst: int = 0
    previous_burst: int = 0
    ready_time_aging: int = 0


class ProcessTable:
    """All processes, plus one ready queue per priority level."""

    def __init__(self, nproc=NPROC, default_priority=DEFAULT_PRIORITY):
        if not 0 <= default_priority < NUMQUEUES:
            raise ValueError(f"priority out of range: {default_priority}")
        self.procs = [Proc() for _ in range(nproc)]
        self.queues: list[list[Proc]] = [[] for _ in range(NUMQUEUES)]
        self.default_priority = default_priority
        self.nextpid = 1
        self.initproc: Proc | None = None
        self.ticks = 0

    def _enqueue(self, p: Proc) -> None:
        self.queues[p.priority].append(p)

    def _dequeue(self, p: Proc) -> None:
        for queue in self.queues:
            if p in queue:
                queue.remove(p)

    def _children(self, proc: Proc) -> list[Proc]:
        return [p for p in self.procs if p.parent is proc]

    def allocproc(self) -> Proc:
        """Claim an unused slot as an embryo; raise OSError when none is free."""
        for p in self.procs:
            if p.state == ProcState.UNUSED:
                break
        else:
            raise OSError(errno.EAGAIN, "process table full")
        p.state = ProcState.EMBRYO
        p.pid = self.nextpid
        self.nextpid += 1
        p.ctime = self.ticks
        p.stime = p.retime = p.rutime = 0
        p.tickets = DEFAULT_TICKETS
        p.estimated_burst = DEFAULT_ESTIMATED_BURST
        p.previous_burst = 0
        p.bstime = 0
        p.ready_time_aging = 0
        return p

    def userinit(self) -> Proc:
        """Create the first process and make it runnable."""
        p = self.allocproc()
        self.initproc = p
        p.ctime = self.ticks
        p.name = "initcode"
        p.priority = self.default_priority
        self._enqueue(p)
        p.state = ProcState.RUNNABLE
        return p

    def fork(self, parent) -> Proc:
        """Create a runnable child of ``parent``."""
        child = self.allocproc()
        child.parent = parent
        child.name = parent.name
        child.priority = self.default_priority
        self._enqueue(child)
        child.state = ProcState.RUNNABLE
        return child

    def exit(self, proc) -> None:
        """Turn ``proc`` into a zombie and hand its children to init."""
        if proc is self.initproc:
            raise KernelPanic("init exiting")
        self._dequeue(proc)
        self._wakeup1(proc.parent)
        for p in self.procs:
            if p.parent is proc:
                p.parent = self.initproc
                if p.state == ProcState.ZOMBIE:
                    self._wakeup1(self.initproc)
        proc.state = ProcState.ZOMBIE

    def _reap(self, p: Proc) -> int:
        pid = p.pid
        p.pid = 0
        p.parent = None
        p.name = ""
        p.killed = False
        p.ctime = 0
        p.state = ProcState.UNUSED
        return pid

    def _find_zombie(self, proc: Proc) -> Proc | None:
        kids = self._children(proc)
        for p in kids:
            if p.state == ProcState.ZOMBIE:
                return p
        if not kids:
            raise ChildProcessError("no children")
        if proc.killed:
            raise InterruptedError("waiting process was killed")
        return None

    def wait(self, proc):
        """Reap an exited child and return its pid.

        If children exist but none has exited, ``proc`` is put to sleep and
        None is returned; it is woken when a child exits.
        """
        zombie = self._find_zombie(proc)
        if zombie is None:
            self.sleep(proc, proc)
            return None
        return self._reap(zombie)

    def wait2(self, proc):
        """Like wait, but return ``(pid, retime, rutime, stime)`` of the child."""
        zombie = self._find_zombie(proc)
        if zombie is None:
            self.sleep(proc, proc)
            return None
        times = (zombie.retime, zombie.rutime, zombie.stime)
        zombie.retime = zombie.rutime = zombie.stime = 0
        return (self._reap(zombie), *times)

    def sleep(self, proc, chan) -> None:
        """Put ``proc`` to sleep on ``chan``, closing its CPU burst."""
        if proc is None:
            raise KernelPanic("sleep")
        self._dequeue(proc)
        proc.previous_burst = proc.bstime
        proc.estimated_burst = int(0.5 * proc.estimated_burst + 0.5 * proc.previous_burst)
        proc.chan = chan
        proc.state = ProcState.SLEEPING
        proc.bstime = 0

    def _wakeup1(self, chan) -> None:
        for p in self.procs:
            if p.state == ProcState.SLEEPING and p.chan is chan:
                self._enqueue(p)
                p.chan = None
                p.state = ProcState.RUNNABLE

    def wakeup(self, chan) -> None:
        """Make every process sleeping on ``chan`` runnable."""
        self._wakeup1(chan)

    def kill(self, pid) -> None:
        """Mark the process killed, waking it if asleep."""
        for p in self.procs:
            if p.pid == pid and p.state != ProcState.UNUSED:
                p.killed = True
                if p.state == ProcState.SLEEPING:
                    self._enqueue(p)
                    p.state = ProcState.RUNNABLE
                return
        raise ProcessLookupError(f"no process with pid {pid}")

    def yield_(self, proc) -> None:
        """Give up the CPU: back onto the ready queue of its priority."""
        self._enqueue(proc)
        proc.state = ProcState.RUNNABLE

    def procdump(self) -> list[str]:
        """One line per used slot: pid, state and name."""
        return [
            f"{p.pid} {_STATE_NAMES.get(p.state, '???')} {p.name}"
            for p in self.procs
            if p.state != ProcState.UNUSED
        ]