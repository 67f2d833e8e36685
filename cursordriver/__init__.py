from __future__ import annotations
# session must load before page: the lifecycle imports the page helpers
from .session import LaunchConfig, Session, open_session, shutdown, start
from .page import ScriptRequest, evaluate, evaluate_json, navigate
from .geometry import (
    ElementRect,
    ScreenPoint,
    ViewportGeometry,
    element_center,
    to_screen_point,
)
from .pointer import PointerController, recorder, save_target_overlay
from .errors import (
    CDPConnectionError,
    CommandError,
    CursorDriverError,
    ElementNotFoundError,
    EvaluationError,
    LaunchError,
    NavigationError,
    OutOfBoundsError,
    PointerInjectionError,
    PortReservationError,
    ShutdownError,
)

__all__ = [
    "LaunchConfig",
    "Session",
    "open_session",
    "shutdown",
    "start",
    "ScriptRequest",
    "evaluate",
    "evaluate_json",
    "navigate",
    "ElementRect",
    "ScreenPoint",
    "ViewportGeometry",
    "element_center",
    "to_screen_point",
    "PointerController",
    "recorder",
    "save_target_overlay",
    "CDPConnectionError",
    "CommandError",
    "CursorDriverError",
    "ElementNotFoundError",
    "EvaluationError",
    "LaunchError",
    "NavigationError",
    "OutOfBoundsError",
    "PointerInjectionError",
    "PortReservationError",
    "ShutdownError",
]
