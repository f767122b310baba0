# nav_engine/app/runtime.py
import asyncio
import dataclasses
import logging

from nav_engine.app.events import FetchCompleted, PositionFix
from nav_engine.services.scheduler import RequestScheduler
from nav_engine.sim.event import BaseEvent
from nav_engine.sim.kernel import Kernel

logger = logging.getLogger(__name__)


class NavigationRuntime:
    """
    Feeds the kernel from one inbox, one event at a time.

    Fixes, user commands and fetch completions all enter through `post`; each
    is dispatched and the kernel is run until quiet before the next is taken,
    so handlers never interleave.
    """

    def __init__(self, kernel: Kernel, scheduler: RequestScheduler | None = None):
        self.kernel = kernel
        self.scheduler = scheduler
        self._inbox: asyncio.Queue[BaseEvent | None] = asyncio.Queue()
        self.dropped = 0

    def post(self, ev: BaseEvent | None) -> None:
        self._inbox.put_nowait(ev)

    def step(self, ev: BaseEvent) -> int:
        """Dispatch one inbound event to quiescence. Returns events processed."""
        admitted = self._admit(ev)
        if admitted is None:
            return 0
        self.kernel.schedule(admitted)
        return self.kernel.run()

    async def run(self) -> None:
        """Serve the inbox until stop() is posted."""
        while True:
            ev = await self._inbox.get()
            if ev is None:
                break
            self.step(ev)

    def stop(self) -> None:
        self.post(None)

    async def settle(self) -> None:
        """Work through the inbox and every outstanding fetch until nothing is left."""
        while True:
            self._drain_inbox()
            if self.scheduler is None:
                return
            await self.scheduler.drain()
            if self._inbox.empty():
                return

    # ---------------------------------------------------------

    def _drain_inbox(self) -> None:
        while not self._inbox.empty():
            ev = self._inbox.get_nowait()
            if ev is not None:
                self.step(ev)

    def _admit(self, ev: BaseEvent) -> BaseEvent | None:
        now = self.kernel.now
        if isinstance(ev, FetchCompleted):
            # completions happen "now" as far as navigation is concerned
            return dataclasses.replace(ev, t=now)
        if ev.t + 1e-9 >= now:
            return ev
        if isinstance(ev, PositionFix):
            self.dropped += 1
            logger.warning(
                "out_of_order_fix",
                extra={"extra": {"t": ev.t, "now": now, "dropped": self.dropped}},
            )
            return None
        return dataclasses.replace(ev, t=now)
