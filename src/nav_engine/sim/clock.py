# sim/clock.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

SEC = 1.0
MS = 1e-3
MIN = 60.0


def ms(x: float) -> float:
    """Milliseconds -> kernel seconds."""
    return x * MS


def sec(x: float) -> float:
    return x


def elapsed(since: float | None, now: float, cooldown_s: float) -> bool:
    """True when `cooldown_s` has passed since `since` (None means never fired)."""
    if since is None:
        return True
    return now - since >= cooldown_s


@dataclass(frozen=True)
class NavClock:
    epoch: datetime  # wall time of t=0

    @classmethod
    def unix(cls) -> NavClock:
        return cls(datetime(1970, 1, 1, tzinfo=UTC))

    @classmethod
    def utc_epoch(cls, y: int, m: int, d: int, hh=0, mm=0, ss=0) -> NavClock:
        return cls(datetime(y, m, d, hh, mm, ss, tzinfo=UTC))

    def to_kernel(self, dt: datetime) -> float:
        delta = dt - self.epoch if dt.tzinfo else (dt.replace(tzinfo=UTC) - self.epoch)
        return delta.total_seconds()

    def to_wall(self, t: float) -> datetime:
        return self.epoch + timedelta(seconds=t)

    def from_epoch_ms(self, stamp_ms: int | float) -> float:
        """GPS providers usually stamp fixes in unix milliseconds."""
        return self.to_kernel(datetime.fromtimestamp(stamp_ms / 1000.0, tz=UTC))
