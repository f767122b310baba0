# sim/hooks.py
from collections.abc import Callable
from typing import Protocol

from nav_engine.sim.event import BaseEvent


class KernelHooks(Protocol):
    def run_start(self, *, pending, max_events): ...
    def run_end(self, *, processed, last_t, pending, wall_ms): ...
    def schedule(self, ev: BaseEvent, *, now, pending): ...
    def dispatch_start(self, ev: BaseEvent, *, seq, pending, handlers): ...
    def dispatch_end(self, ev: BaseEvent, *, out_events, ms): ...
    def error(self, ev: BaseEvent, *, reason: str, **kw): ...


class NoopHooks:
    def run_start(self, **_):
        pass

    def run_end(self, **_):
        pass

    def schedule(self, *_, **__):
        pass

    def dispatch_start(self, *_, **__):
        pass

    def dispatch_end(self, *_, **__):
        pass

    def error(self, *_, **__):
        pass


class EventTap(NoopHooks):
    """Hands every dispatched event of the given types to `callback`; nothing else."""

    def __init__(self, types: tuple[type[BaseEvent], ...], callback: Callable[[BaseEvent], None]):
        self.types = types
        self.callback = callback

    def dispatch_start(self, ev: BaseEvent, **_):
        if isinstance(ev, self.types):
            self.callback(ev)
