import io
import json
import logging

from nav_engine.app.events import FetchCompleted, HeadingUpdated, PositionFix, RerouteCompleted
from nav_engine.io.kernel_logging import JsonFormatter, KernelLogging
from nav_engine.io.recorder import JsonlSink, MemorySink, Recorder, to_record
from nav_engine.sim.clock import NavClock
from nav_engine.sim.kernel import Kernel


def capture_logger(name: str):
    buf = io.StringIO()
    logger = logging.getLogger(name)
    logger.handlers.clear()
    h = logging.StreamHandler(buf)
    h.setFormatter(JsonFormatter())
    logger.addHandler(h)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    return logger, buf


def lines(buf):
    return [json.loads(x) for x in buf.getvalue().splitlines()]


def test_output_events_are_logged_and_recorded():
    logger, buf = capture_logger("test.kernel.out")
    sink = MemorySink()
    hooks = KernelLogging(
        run_id="r1",
        clock=NavClock.utc_epoch(2025, 1, 1),
        logger=logger,
        recorder=Recorder(sink),
    )
    k = Kernel(hooks=hooks)
    k.on(PositionFix, lambda ev: [HeadingUpdated(t=ev.t, bearing=12.5)])
    k.schedule(PositionFix(t=60.0, lat=52.5, lon=13.4))
    k.run()

    records = lines(buf)
    # inbound fix is not a business event and debug is off
    assert [r["msg"] for r in records] == ["HeadingUpdated"]
    rec = records[0]
    assert rec["run_id"] == "r1"
    assert rec["t"] == 60.0
    assert rec["wall"] == "2025-01-01T00:01:00+00:00"
    assert rec["data"] == {"bearing": 12.5}
    assert [type(e) for e in sink.events] == [HeadingUpdated]


def test_debug_mode_logs_engine_events():
    logger, buf = capture_logger("test.kernel.debug")
    k = Kernel(hooks=KernelLogging(logger=logger, debug=True))
    k.schedule(PositionFix(t=1.0, lat=0.0, lon=0.0))
    k.run()
    msgs = [r["msg"] for r in lines(buf)]
    assert "schedule" in msgs
    assert "PositionFix" in msgs
    assert msgs[-1] == "run_end"


def test_records_are_json_safe(make_route):
    route = make_route()
    err = FetchCompleted(t=1.0, purpose="route", key=(1, 0), token=2, error=ValueError("x"))
    rec = to_record(err)
    assert rec["event"] == "FetchCompleted"
    assert rec["key"] == [1, 0]
    assert rec["error"] == "ValueError('x')"

    done = to_record(RerouteCompleted(t=2.0, new_route=route))
    assert done["new_route"] == {
        "distance_m": 1000.0,
        "duration_s": 100.0,
        "steps": 3,
        "profile": "driving",
    }

    out = io.StringIO()
    JsonlSink(out).write(RerouteCompleted(t=2.0, new_route=route))
    assert json.loads(out.getvalue())["event"] == "RerouteCompleted"


def test_a_failing_sink_does_not_stop_the_others():
    class Broken:
        def write(self, ev):
            raise OSError("disk full")

    good = MemorySink()
    Recorder(Broken(), good).emit(HeadingUpdated(t=0.0, bearing=1.0))
    assert len(good.events) == 1
