from __future__ import annotations
from typing import List, Optional, Sequence


class CursorDriverError(RuntimeError):
    """Base class for every error raised by cursordriver."""

    pass


class LaunchError(CursorDriverError):
    """Raised when the browser executable is missing or fails to start."""

    pass


class PortReservationError(CursorDriverError):
    """Raised when a debugging port is already held or cannot be bound."""

    def __init__(self, port: int, reason: str):
        super().__init__(f"debugging port {port} unavailable: {reason}")
        self.port = port
        self.reason = reason


class CDPConnectionError(CursorDriverError, ConnectionError):
    """Raised on endpoint lookup, dial or domain activation failure, and on
    any use of a session whose transport is gone."""

    pass


class NavigationError(CursorDriverError):
    """Raised when a navigation is rejected or its load event never arrives."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"navigation to {url!r} failed: {reason}")
        self.url = url
        self.reason = reason


class EvaluationError(CursorDriverError):
    """Raised when a script evaluation throws, fails in transit or is undecodable."""

    def __init__(self, expression: str, reason: str):
        preview = expression if len(expression) <= 80 else expression[:77] + "..."
        super().__init__(f"evaluation of {preview!r} failed: {reason}")
        self.expression = expression
        self.reason = reason


class OutOfBoundsError(CursorDriverError):
    """Raised when a mapped coordinate falls outside the validated screen rectangle.

    Always recoverable: the caller can skip the pointer action and carry on.
    """

    def __init__(self, axis: str, value: float, lower: float, upper: float):
        super().__init__(
            f"{axis} coordinate {value:g} outside screen bounds [{lower:g}, {upper:g}]"
        )
        self.axis = axis
        self.value = value
        self.lower = lower
        self.upper = upper


class ShutdownError(CursorDriverError):
    """Raised when closing the transport and/or killing the browser failed.

    ``errors`` holds every underlying failure, in the order they happened.
    """

    def __init__(self, errors: Sequence[BaseException], pid: Optional[int] = None):
        self.errors: List[BaseException] = list(errors)
        self.pid = pid
        details = "; ".join(f"{type(e).__name__}: {e}" for e in self.errors)
        super().__init__(f"session shutdown incomplete (pid={pid}): {details}")


class CommandError(CursorDriverError):
    """Raised when a page-level CDP command is rejected."""

    pass


class ElementNotFoundError(CursorDriverError):
    """Raised when a selector matches no element in the current document."""

    def __init__(self, selector: str):
        super().__init__(f"Element not found for selector: {selector!r}")
        self.selector = selector


class PointerInjectionError(CursorDriverError):
    """Raised when the pointer-injection collaborator reports failure."""

    pass
