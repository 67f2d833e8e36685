from __future__ import annotations
from dataclasses import dataclass, field
from typing import Awaitable, Callable, List, Optional
from pathlib import Path as FSPath
import time
import logging

OverlayCallback = Optional[Callable[[FSPath], Awaitable[None]]]
_OVERLAY_CALLBACK: OverlayCallback = None


def set_overlay_callback(cb: OverlayCallback) -> None:
    """Register an async callback invoked whenever a target overlay JPEG is saved."""
    global _OVERLAY_CALLBACK
    _OVERLAY_CALLBACK = cb
    logging.getLogger(__name__).info(
        "Pointer overlay callback %s", "registered" if cb else "cleared"
    )


@dataclass
class PointerEvent:
    """One pointer target handed to (or withheld from) the injector."""

    x: float  # screen space
    y: float
    t: float  # seconds since start (monotonic)
    kind: str  # "move"|"failed"|"out_of_bounds"
    label: str = ""


@dataclass
class PointerRecorder:
    """Collects pointer targets during a session for inspection and rendering."""

    events: List[PointerEvent] = field(default_factory=list)
    start_ts: float = field(default_factory=lambda: time.perf_counter())

    def _now(self) -> float:
        return time.perf_counter() - self.start_ts

    def log_move(self, x: float, y: float, label: str = "") -> None:
        """A target the injector accepted."""
        self.events.append(PointerEvent(x, y, self._now(), "move", label))

    def log_failed(self, x: float, y: float, label: str = "") -> None:
        """A target the injector refused."""
        self.events.append(PointerEvent(x, y, self._now(), "failed", label))

    def log_out_of_bounds(self, x: float, y: float, label: str = "") -> None:
        """A mapped point rejected before injection (unvalidated screen coordinates)."""
        self.events.append(PointerEvent(x, y, self._now(), "out_of_bounds", label))

    def moves(self) -> List[PointerEvent]:
        return [e for e in self.events if e.kind == "move"]

    def reset(self) -> None:
        """Clear all recorded events and reset the time origin to now."""
        self.events.clear()
        self.start_ts = time.perf_counter()


# Singleton recorder
recorder = PointerRecorder()
