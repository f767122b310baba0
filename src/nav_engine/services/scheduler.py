# nav_engine/services/scheduler.py
import asyncio
import inspect
import itertools
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from contextlib import nullcontext
from dataclasses import dataclass
from typing import Any, Literal

from aiolimiter import AsyncLimiter

from nav_engine.app.events import FetchCompleted
from nav_engine.app.protocols import Fetch
from nav_engine.domain.errors import PermanentBackendError, StaleResult, TransientBackendError

logger = logging.getLogger(__name__)

EntryState = Literal["queued", "running", "done", "dropped"]


@dataclass(eq=False)
class QueueEntry:
    id: int
    call: Fetch
    purpose: str
    key: tuple
    token: int
    attempts: int = 0
    cancelled: bool = False
    state: EntryState = "queued"

    @property
    def group(self) -> tuple[str, tuple]:
        return self.purpose, self.key


class RequestScheduler:
    """
    Bounded, FIFO, token-aware request executor.

    • at most `max_requests` calls in flight, the rest wait in submission order
    • every call attempt takes a slot from a limiter of one call per
      `request_delay_s`; a TransientBackendError is retried after that same fixed
      delay, up to `max_attempts` tries
    • a submit with a newer token for the same (purpose, key) cancels older
      entries: queued ones never start, running ones finish but their result is
      dropped instead of delivered; a cancelled entry still waiting for its slot
      never calls the backend
    • anything a call raises is delivered as a failed FetchCompleted
    • outcomes reach the navigation stream only through `deliver`

    submit() must be called from inside the running event loop.
    """

    def __init__(
        self,
        deliver: Callable[[FetchCompleted], None],
        *,
        now: Callable[[], float] = lambda: 0.0,
        max_requests: int = 6,
        request_delay_s: float = 0.12,
        max_attempts: int = 3,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        self.deliver = deliver
        self.now = now
        self.max_requests = max_requests
        self.request_delay_s = request_delay_s
        self.max_attempts = max(1, max_attempts)
        self._sleep = sleep
        self._ids = itertools.count(1)
        self._queue: deque[QueueEntry] = deque()
        self._running: dict[int, QueueEntry] = {}
        self._latest: dict[tuple[str, tuple], int] = {}
        self._tasks: set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._limiter = AsyncLimiter(1, request_delay_s) if request_delay_s > 0 else nullcontext()
        self._counts = {
            "submitted": 0,
            "delivered": 0,
            "dropped": 0,
            "retried": 0,
            "crashed": 0,
        }

    # --------------- public -----------------------------

    @property
    def in_flight(self) -> list[QueueEntry]:
        return list(self._running.values())

    @property
    def queued(self) -> list[QueueEntry]:
        return [e for e in self._queue if not e.cancelled]

    @property
    def idle(self) -> bool:
        return not self._queue and not self._running

    def latest_token(self, purpose: str, key: tuple = ()) -> int | None:
        return self._latest.get((purpose, key))

    def submit(self, call: Fetch, *, purpose: str, key: tuple = (), token: int = 0) -> QueueEntry:
        entry = QueueEntry(next(self._ids), call, purpose, tuple(key), token)
        latest = self._latest.get(entry.group)
        if latest is None or token > latest:
            self._latest[entry.group] = token
            self._cancel_older(entry.group, token)
        elif token < latest:
            entry.cancelled = True  # stale on arrival
        self._counts["submitted"] += 1
        self._queue.append(entry)
        self._pump()
        return entry

    async def drain(self) -> None:
        """Wait until nothing is queued or running."""
        await self._idle.wait()

    def release(self, key: tuple) -> None:
        """Forget every purpose tracked under `key` and cancel whatever is still pending for it."""
        key = tuple(key)
        for e in itertools.chain(self._queue, self._running.values()):
            if e.key == key:
                e.cancelled = True
        for group in [g for g in self._latest if g[1] == key]:
            del self._latest[group]

    def stats(self) -> dict[str, int]:
        return {
            **self._counts,
            "queued": len(self.queued),
            "running": len(self._running),
        }

    # --------------- internals --------------------------

    def _cancel_older(self, group: tuple[str, tuple], token: int) -> None:
        for e in itertools.chain(self._queue, self._running.values()):
            if e.group == group and e.token < token and not e.cancelled:
                e.cancelled = True
                logger.debug(
                    "request_cancelled",
                    extra={"extra": {"purpose": e.purpose, "token": e.token, "by": token}},
                )

    def _pump(self) -> None:
        while self._queue and len(self._running) < self.max_requests:
            e = self._queue.popleft()
            if e.cancelled:
                e.state = "dropped"
                self._counts["dropped"] += 1
                continue
            e.state = "running"
            self._running[e.id] = e
            task = asyncio.get_running_loop().create_task(self._execute(e))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        if self._queue or self._running:
            self._idle.clear()
        else:
            self._idle.set()

    async def _invoke(self, call: Fetch) -> Any:
        if inspect.iscoroutinefunction(call):
            return await call()
        return await asyncio.to_thread(call)

    async def _execute(self, e: QueueEntry) -> None:
        result, error = None, None
        try:
            while True:
                async with self._limiter:
                    if e.cancelled:
                        break
                    e.attempts += 1
                    try:
                        result = await self._invoke(e.call)
                        break
                    except TransientBackendError as exc:
                        if e.attempts >= self.max_attempts:
                            error = exc
                            break
                        self._counts["retried"] += 1
                        logger.info(
                            "request_retry",
                            extra={
                                "extra": {
                                    "purpose": e.purpose,
                                    "attempt": e.attempts,
                                    "reason": exc.reason,
                                }
                            },
                        )
                    except PermanentBackendError as exc:
                        error = exc
                        break
                await self._sleep(self.request_delay_s)
        except Exception as exc:
            # unclassified failure: waiting controllers still get an answer
            self._counts["crashed"] += 1
            logger.exception(
                "request_crashed",
                extra={"extra": {"purpose": e.purpose, "token": e.token, "error": repr(exc)}},
            )
            result, error = None, exc
        finally:
            self._running.pop(e.id, None)
            if e.state == "running":
                e.state = "done"
            self._pump()
        self._finish(e, result, error)

    def _finish(self, e: QueueEntry, result: Any, error: Exception | None) -> None:
        latest = self._latest.get(e.group, e.token)
        if e.cancelled or e.token < latest:
            e.state = "dropped"
            self._counts["dropped"] += 1
            stale = StaleResult(e.purpose, e.token, latest)
            logger.debug("stale_result", extra={"extra": vars(stale)})
            return
        self._counts["delivered"] += 1
        self.deliver(
            FetchCompleted(
                t=self.now(),
                purpose=e.purpose,
                key=e.key,
                token=e.token,
                result=result,
                error=error,
            )
        )
