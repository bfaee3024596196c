# events.py
"""Error types and the observability event log."""
from __future__ import annotations

import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Callable, Deque, List, Optional


# ------------------- Exceptions -------------------
class VisionAimError(RuntimeError):
    """Base class for every error raised by vision_aim components."""


class DetectorUnavailable(VisionAimError):
    """Detector cannot run at all (model missing, worker dead). Fatal to detection."""


class DetectorCycleFailed(VisionAimError):
    """A single detection round trip failed; the next cycle may succeed."""


class ActuatorError(VisionAimError):
    """Raised by an actuator when a command could not be delivered."""


class GeometryUnavailable(VisionAimError):
    """The on-screen rectangle of the video surface is unknown."""


class InvalidFrameDimensions(VisionAimError):
    """Frame source reported a zero or negative size."""


# ---------------------- Events ----------------------
@dataclass(frozen=True)
class ErrorEvent:
    kind: str          # exception class name, e.g. "ActuatorFailed"
    source: str        # component that absorbed it
    message: str
    t: float
    fatal: bool = False


Listener = Callable[[ErrorEvent], None]


class EventLog:
    """Thread-safe bounded record of absorbed errors."""

    def __init__(self, maxlen: int = 200, echo: bool = True):
        self._events: Deque[ErrorEvent] = deque(maxlen=maxlen)
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()
        self.echo = echo

    def add_listener(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def emit(
        self,
        kind: str,
        source: str,
        message: str,
        *,
        fatal: bool = False,
        t: Optional[float] = None,
    ) -> ErrorEvent:
        ev = ErrorEvent(kind, source, message, time.monotonic() if t is None else t, fatal)
        with self._lock:
            self._events.append(ev)
            listeners = list(self._listeners)
        if self.echo:
            print(f"[{source}] {kind}: {message}")
        for listener in listeners:
            try:
                listener(ev)
            except Exception as exc:  # noqa: BLE001
                print(f"[Events] Error in listener {listener}: {exc}")
        return ev

    def events(self, kind: Optional[str] = None) -> List[ErrorEvent]:
        with self._lock:
            evs = list(self._events)
        if kind is None:
            return evs
        return [e for e in evs if e.kind == kind]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()
