# domain/errors.py
from dataclasses import dataclass
from typing import Literal


class NavEngineError(Exception):
    """Base class for everything the engine raises on purpose."""


# ---------------- backend failures (recoverable) ----------------


class BackendError(NavEngineError):
    reason: str = "backend"

    def __init__(self, message: str = "", *, reason: str | None = None):
        super().__init__(message or self.reason)
        if reason is not None:
            self.reason = reason


class TransientBackendError(BackendError):
    """Rate limited or server busy. The scheduler retries these."""

    reason = "server_busy"


class PermanentBackendError(BackendError):
    """Malformed request, no route, unsupported region. Surfaced without retry."""

    reason = "malformed"


# ---------------- invariant violations (fatal) -------------------


class InvalidTransition(NavEngineError):
    """A command arrived in a state that does not accept it."""

    def __init__(self, state, command: str):
        super().__init__(f"cannot {command} while {state.name}")
        self.state = state
        self.command = command


class StepOrderError(NavEngineError):
    """Steps must complete strictly in order."""


# ---------------- conditions (never raised to callers) -----------


@dataclass(frozen=True)
class StaleResult:
    """A completion whose token no longer matches; dropped at reconciliation."""

    purpose: str
    token: int
    current_token: int


@dataclass(frozen=True)
class DegradedData:
    """Upstream data missing; the advisory pipeline falls back instead of failing."""

    kind: Literal["elevation", "speed_limit"]
    reason: str


@dataclass(frozen=True)
class GeometryAnomaly:
    """Sliding-window match was implausible; a full-route search replaced it."""

    distance_m: float
    hint: int
    segment_index: int
