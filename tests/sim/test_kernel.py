# tests/sim/test_kernel.py
from dataclasses import dataclass

import pytest

from nav_engine.sim.event import BaseEvent
from nav_engine.sim.hooks import NoopHooks
from nav_engine.sim.kernel import Kernel


# ---- demo events ----
@dataclass(order=True)
class Fix(BaseEvent):
    n: int = 0


@dataclass(order=True)
class Heading(BaseEvent):
    n: int = 0


@dataclass(order=True)
class Reminder(BaseEvent):
    label: str = ""


# ---- demo handlers ----
def handle_fix(ev: Fix):
    out: list[BaseEvent] = [Heading(t=ev.t, n=ev.n)]
    if ev.n > 0:
        out.append(Fix(t=ev.t + 1.0, n=ev.n - 1))
    return out


def handle_heading(ev: Heading):
    return [Reminder(t=ev.t + 0.5, label=f"after heading {ev.n}")]


def handle_reminder(ev: Reminder):
    return []


# --- test hook that records dispatch order & times ---
class TraceHooks(NoopHooks):
    def __init__(self):
        self.trace = []
        self.errors = []

    def dispatch_start(self, ev, *, seq, pending, handlers):
        self.trace.append((ev.t, type(ev).__name__))

    def error(self, ev, *, reason, **kw):
        self.errors.append(reason)


def test_dispatch_order_and_fan_out():
    hooks = TraceHooks()
    k = Kernel(hooks=hooks)
    k.on(Fix, handle_fix)
    k.on(Heading, handle_heading)
    k.on(Reminder, handle_reminder)

    k.schedule(Fix(t=0.0, n=2))
    processed = k.run(until=3.0)
    assert processed == 9
    names = [name for _, name in hooks.trace]
    times = [t for t, _ in hooks.trace]
    assert names == [
        "Fix", "Heading", "Reminder", "Fix", "Heading", "Reminder", "Fix", "Heading", "Reminder"
    ]
    assert times == [0.0, 0.0, 0.5, 1.0, 1.0, 1.5, 2.0, 2.0, 2.5]
    assert k.pending == 0


def test_handlers_run_in_subscription_order_and_ties_are_fifo():
    k = Kernel()
    seen: list[str] = []
    k.on(Fix, lambda ev: seen.append(f"nav{ev.n}"))
    k.on(Fix, lambda ev: seen.append(f"adv{ev.n}"))
    k.schedule(Fix(t=5.0, n=1))
    k.schedule(Fix(t=5.0, n=2))
    k.run()
    assert seen == ["nav1", "adv1", "nav2", "adv2"]


def test_max_events_and_until_gates():
    k = Kernel()
    k.on(Fix, handle_fix)
    k.schedule(Fix(t=0.0, n=10))
    assert k.run(max_events=1) == 1
    assert k.now == 0.0

    k.run(until=0.4)
    assert k.now == 0.0  # the t=1 fix is still queued
    assert k.pending > 0


def test_scheduling_in_the_past_raises():
    hooks = TraceHooks()
    k = Kernel(hooks=hooks)
    k.on(Fix, lambda ev: [Fix(t=ev.t - 1.0, n=0)])
    k.schedule(Fix(t=1.0, n=0))
    with pytest.raises(RuntimeError):
        k.run()
    assert hooks.errors == ["scheduled_past"]
