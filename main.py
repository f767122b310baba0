# main.py
# Drive a simulated car down a straight route, with a detour in the middle,
# and print the output stream as JSON lines.
import asyncio
import sys

from nav_engine.app.build import build
from nav_engine.app.events import ApproveRoute, PositionFix, SelectDestination
from nav_engine.domain.entities.geography import LatLon
from nav_engine.domain.geometry import interpolate
from nav_engine.io.recorder import JsonlSink, Recorder

CONFIG = {
    "name": "demo",
    "run_id": "demo-1",
    "log": {"level": "WARNING"},
    "scheduler": {"request_delay_ms": 20},
    "routing": {"kind": "straight_line", "speed_mps": 15.0, "vertex_spacing_m": 25.0},
    "elevation": {"kind": "grade", "grade_pct": 5.0},
    "speed_limit": {"kind": "fixed", "kmh": 50},
}


async def drive(origin: LatLon, destination: LatLon, *, fixes: int = 60, speed_mps=15.0):
    app = build(CONFIG, recorder=Recorder(JsonlSink(sys.stdout)))
    rt = app.runtime

    rt.post(PositionFix(t=0.0, lat=origin.lat, lon=origin.lon))
    rt.post(SelectDestination(t=0.0, stops=[destination]))
    await rt.settle()
    rt.post(ApproveRoute(t=0.5))
    await rt.settle()

    for k in range(1, fixes + 1):
        p = interpolate(origin, destination, k / fixes)
        if fixes // 3 <= k < fixes // 3 + 3:
            p = LatLon(p.lat, p.lon + 0.001)  # ~80 m sideways
        rt.post(PositionFix(t=float(k), lat=p.lat, lon=p.lon, speed_mps=speed_mps))
        await rt.settle()
    return app


if __name__ == "__main__":
    app = asyncio.run(drive(LatLon(52.5200, 13.4050), LatLon(52.5290, 13.4050)))
    print(app.scheduler.stats(), file=sys.stderr)
