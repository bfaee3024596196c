# actuator.py
"""Actuator contract and the dry-run implementation used by the CLI."""
from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import List, Optional, Protocol, Tuple

from vision_aim.events import ActuatorError


class Actuator(Protocol):
    """
    Discrete pointer/button commands. Each call either returns normally
    (delivered) or raises ActuatorError.
    """

    def move_relative(self, dx: float, dy: float) -> None: ...

    def button_down(self, button: str) -> None: ...

    def button_up(self, button: str) -> None: ...

    def click(self, button: str) -> None: ...


@dataclass(frozen=True)
class Command:
    action: str                       # "move" | "down" | "up" | "click"
    args: Tuple[object, ...] = ()


class DryRunActuator:
    """
    Records every command instead of delivering it.  ``fail`` can be flipped
    to simulate an unavailable transport.
    """

    def __init__(self, *, verbose: bool = False, max_log: Optional[int] = 10_000):
        self.verbose = verbose
        self.max_log = max_log
        self.fail = False
        self.commands: List[Command] = []
        self._lock = threading.Lock()

    def _record(self, action: str, *args: object) -> None:
        if self.fail:
            raise ActuatorError(f"transport unavailable ({action})")
        with self._lock:
            self.commands.append(Command(action, args))
            if self.max_log is not None and len(self.commands) > self.max_log:
                del self.commands[: len(self.commands) - self.max_log]
        if self.verbose:
            print(f"[Actuator] {action} {' '.join(str(a) for a in args)}")

    def move_relative(self, dx: float, dy: float) -> None:
        self._record("move", round(dx, 2), round(dy, 2))

    def button_down(self, button: str) -> None:
        self._record("down", button)

    def button_up(self, button: str) -> None:
        self._record("up", button)

    def click(self, button: str) -> None:
        self._record("click", button)

    def count(self, action: str) -> int:
        with self._lock:
            return sum(1 for c in self.commands if c.action == action)
