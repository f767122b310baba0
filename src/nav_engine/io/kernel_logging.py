# nav_engine/io/kernel_logging.py
import json
import logging
import sys

from nav_engine.app.events import OUTPUT_EVENTS
from nav_engine.io.recorder import Recorder, to_record
from nav_engine.sim.clock import NavClock
from nav_engine.sim.hooks import NoopHooks


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "msg": record.getMessage(),
            "logger": record.name,
        }
        extra = getattr(record, "extra", None)
        if isinstance(extra, dict):
            payload.update(extra)
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=repr)


def default_json_logger(name="nav_engine", level="INFO"):
    logger = logging.getLogger(name)
    if not logger.handlers:
        h = logging.StreamHandler(sys.stdout)
        h.setFormatter(JsonFormatter())
        logger.addHandler(h)
        logger.setLevel(level)
    return logger


class KernelLogging(NoopHooks):
    """
    One place to shape and emit structured logs for the kernel and for the
    navigation output stream. Output events are also forwarded to the recorder.
    """

    BUSINESS = {cls.__name__ for cls in OUTPUT_EVENTS}

    def __init__(
        self,
        run_id: str = "local",
        clock: NavClock | None = None,
        level: str = "INFO",
        debug: bool = False,
        sample_every: int = 1,
        logger: logging.Logger | None = None,
        recorder: Recorder | None = None,
    ):
        self.run_id, self.clock, self.debug, self.sample_every = (
            run_id,
            clock,
            debug,
            max(1, sample_every),
        )
        self.recorder = recorder
        self.log = logger or default_json_logger(level=level)
        self._processed = 0

    # --------------- Helpers -----------------------------

    def _emit(self, level: str, msg: str, **extra):
        t = extra.get("t")
        payload = {"run_id": self.run_id}
        if self.clock and t is not None:
            payload["wall"] = self.clock.to_wall(t).isoformat()
        self.log.log(getattr(logging, level), msg, extra={"extra": {**payload, **extra}})

    @staticmethod
    def _shape_event(ev) -> tuple[str, dict]:
        rec = to_record(ev)
        name = rec.pop("event")
        base = {"t": rec.pop("t", None)}
        if rec:
            base["data"] = rec
        return name, base

    # --------------------------------------------------------

    # engine lifecycle (one run per inbound event, so DEBUG only)

    def run_start(self, *, pending: int, max_events: int | None):
        if self.debug:
            self._emit("DEBUG", "run_start", pending=pending, max_events=max_events)

    def run_end(self, *, processed: int, **extra):
        if self.debug:
            self._emit("DEBUG", "run_end", processed=processed, **extra)

    def schedule(self, ev, *, now: float, pending: int):
        if self.debug and (pending % self.sample_every) == 0:
            name, extra = self._shape_event(ev)
            self._emit("DEBUG", "schedule", event=name, now=now, pending=pending, **extra)

    def dispatch_start(self, ev, *, seq: int, pending: int, handlers: int):
        self._processed += 1
        name, extra = self._shape_event(ev)
        business = name in self.BUSINESS
        level = "INFO" if business else ("DEBUG" if self.debug else None)
        if level:
            self._emit(level, name, **extra, seq=seq, pending=pending, handlers=handlers)
        if business:
            self.biz(ev)

    def dispatch_end(self, ev, *, out_events: int, ms: float):
        if self.debug and (self._processed % self.sample_every) == 0:
            self._emit("DEBUG", "dispatch_done", out_events=out_events, ms=round(ms, 3))

    def error(self, ev, *, reason: str, **extra):
        name, shaped = self._shape_event(ev)
        self._emit("ERROR", "kernel_error", event=name, reason=reason, **{**shaped, **extra})

    # ------------- Output Event Reporting --------------------------

    def biz(self, ev):
        if self.recorder:
            self.recorder.emit(ev)
