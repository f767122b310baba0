# nav_engine/io/recorder.py
import json
import logging
import sys
from dataclasses import fields, is_dataclass
from enum import Enum
from typing import Protocol

import numpy as np

from nav_engine.domain.entities.geography import LatLon
from nav_engine.domain.entities.route import Route

logger = logging.getLogger(__name__)


def _plain(v):
    # routes are summarised; full geometry does not belong in an event log
    if isinstance(v, Route):
        return {
            "distance_m": round(v.distance_m, 1),
            "duration_s": round(v.duration_s, 1),
            "steps": len(v.steps),
            "profile": v.profile,
        }
    if isinstance(v, LatLon):
        return [v.lat, v.lon]
    if is_dataclass(v) and not isinstance(v, type):
        return {f.name: _plain(getattr(v, f.name)) for f in fields(v)}
    if isinstance(v, dict):
        return {str(k): _plain(x) for k, x in v.items()}
    if isinstance(v, list | tuple):
        return [_plain(x) for x in v]
    if isinstance(v, Enum):
        return v.value
    if isinstance(v, np.generic):
        return v.item()
    if isinstance(v, BaseException):
        return repr(v)
    if v is None or isinstance(v, str | int | float | bool):
        return v
    return repr(v)


def to_record(ev) -> dict:
    """JSON-safe dict for an event: {"event": <name>, "t": ..., <fields>}."""
    return {"event": type(ev).__name__, **_plain(ev)}


class Sink(Protocol):
    def write(self, ev) -> None: ...


class JsonlSink:
    def __init__(self, fp=sys.stdout):
        self.fp = fp

    def write(self, ev) -> None:
        self.fp.write(json.dumps(to_record(ev)) + "\n")


class MemorySink:
    def __init__(self):
        self.events: list = []

    def write(self, ev) -> None:
        self.events.append(ev)

    def of(self, etype: type) -> list:
        return [e for e in self.events if isinstance(e, etype)]

    def names(self) -> list[str]:
        return [type(e).__name__ for e in self.events]


class Recorder:
    def __init__(self, *sinks: Sink):
        self.sinks = sinks or (JsonlSink(),)

    def emit(self, ev):
        for s in self.sinks:
            try:
                s.write(ev)
            except Exception:
                # a broken sink must not stop navigation
                logger.exception("sink_failed", extra={"extra": {"sink": type(s).__name__}})
