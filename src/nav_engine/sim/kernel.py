# sim/kernel.py

import heapq
import time
from collections.abc import Callable, Iterable

from .event import BaseEvent
from .hooks import KernelHooks, NoopHooks

Handler = Callable[[BaseEvent], Iterable[BaseEvent] | None]


class Kernel:
    """
    Single-stream event loop. Events are dispatched one at a time in (t, submission)
    order; handlers return follow-up events which are queued behind the current one.
    Nothing in here blocks: I/O lives outside and re-enters through schedule().
    """

    def __init__(self, hooks: KernelHooks | None = None):
        self._t = 0.0
        self._q: list[tuple[float, int, BaseEvent]] = []
        self._seq = 0
        self._subs: dict[type[BaseEvent], list[Handler]] = {}
        self._hooks = hooks or NoopHooks()

    @property
    def now(self) -> float:
        return self._t

    @property
    def pending(self) -> int:
        return len(self._q)

    def on(self, etype: type[BaseEvent], handler: Handler) -> None:
        self._subs.setdefault(etype, []).append(handler)

    def schedule(self, ev: BaseEvent) -> None:
        if ev.t + 1e-9 < self._t:
            self._hooks.error(ev, reason="scheduled_past", now=self._t, t=ev.t)
            raise RuntimeError(f"event scheduled in the past: {ev.t} < now {self._t}")
        self._seq += 1
        heapq.heappush(self._q, (ev.t, self._seq, ev))
        self._hooks.schedule(ev, now=self._t, pending=len(self._q))

    def run(self, until: float | None = None, max_events: int | None = None) -> int:
        """Dispatch until the queue is empty (or `until`/`max_events` is hit)."""
        t0 = time.perf_counter()
        self._hooks.run_start(pending=len(self._q), max_events=max_events)
        processed = 0
        while self._q and (until is None or self._q[0][0] <= until):
            t, seq, ev = heapq.heappop(self._q)
            self._t = t
            handlers = self._subs.get(type(ev), ())
            t1 = time.perf_counter()
            self._hooks.dispatch_start(ev, seq=seq, pending=len(self._q), handlers=len(handlers))
            total_out = 0
            for h in handlers:
                for nxt in h(ev) or ():
                    self.schedule(nxt)
                    total_out += 1
            self._hooks.dispatch_end(
                ev, out_events=total_out, ms=(time.perf_counter() - t1) * 1000
            )
            processed += 1
            if max_events and processed >= max_events:
                break
        self._hooks.run_end(
            processed=processed,
            last_t=self._t,
            pending=len(self._q),
            wall_ms=(time.perf_counter() - t0) * 1000,
        )
        return processed
